"""
Duration distributions for On/Off traffic sources.

Distributions are described the same way the scenario scripts describe
them, either in the ns-3 attribute form
(``ns3::ExponentialRandomVariable[Mean=1]``) or in a short form
(``exponential:1``).
"""

import math
import random
import re
import typing as tp
from dataclasses import dataclass

from trafficsim.simulation.errors import ConfigurationError


@dataclass(frozen=True)
class Constant:
    """Every sample equals ``value`` seconds."""

    value: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.value) or self.value < 0:
            raise ConfigurationError(
                f"Constant duration must be finite and >= 0, got {self.value}"
            )

    @property
    def mean(self) -> float:
        return self.value

    def sample(self, rng: random.Random) -> float:
        return self.value


@dataclass(frozen=True)
class Exponential:
    """Samples drawn independently from an exponential with the given mean."""

    mean: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.mean) or self.mean <= 0:
            raise ConfigurationError(
                f"Exponential mean must be finite and > 0, got {self.mean}"
            )

    def sample(self, rng: random.Random) -> float:
        return rng.expovariate(1.0 / self.mean)


Distribution = tp.Union[Constant, Exponential]

_NS3_PATTERN = re.compile(
    r"^ns3::(?P<kind>Constant|Exponential)RandomVariable"
    r"\[(?P<attr>Constant|Mean)=(?P<value>[^\]]+)\]$"
)
_SHORT_PATTERN = re.compile(r"^(?P<kind>constant|exponential)\s*:\s*(?P<value>\S+)$")


def _to_float(text: str, source: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise ConfigurationError(f"Invalid numeric value in distribution '{source}'")


def parse_distribution(text: tp.Union[str, Distribution]) -> Distribution:
    """
    Build a distribution from its textual description.

    Args:
        text: ns-3 attribute string, short form string, or an already
            constructed distribution (returned unchanged)

    Returns:
        Constant or Exponential instance

    Raises:
        ConfigurationError: If the description is not recognised or its
            parameter is invalid
    """
    if isinstance(text, (Constant, Exponential)):
        return text

    description = text.strip()

    match = _NS3_PATTERN.match(description)
    if match:
        kind = match.group("kind").lower()
        attr = match.group("attr").lower()
        if (kind == "constant") != (attr == "constant"):
            raise ConfigurationError(f"Mismatched attribute in distribution '{text}'")
    else:
        match = _SHORT_PATTERN.match(description.lower())
        if not match:
            raise ConfigurationError(f"Unknown distribution '{text}'")
        kind = match.group("kind")

    value = _to_float(match.group("value"), text)

    if kind == "constant":
        return Constant(value)
    return Exponential(value)


_RATE_PATTERN = re.compile(r"^(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>[a-zA-Z]*)$")

_RATE_UNITS = {
    "": 1,
    "bps": 1,
    "k": 1_000,
    "kbps": 1_000,
    "m": 1_000_000,
    "mbps": 1_000_000,
    "g": 1_000_000_000,
    "gbps": 1_000_000_000,
}


def parse_data_rate(rate: tp.Union[str, int, float]) -> float:
    """
    Convert a data rate such as ``"10Mbps"`` or ``"100k"`` to bits per second.

    Units are SI (1000-based), matching how the scenarios specify link and
    application rates.
    """
    if isinstance(rate, (int, float)):
        value = float(rate)
    else:
        match = _RATE_PATTERN.match(rate.strip())
        if not match:
            raise ConfigurationError(f"Invalid data rate '{rate}'")
        unit = match.group("unit").lower()
        if unit not in _RATE_UNITS:
            raise ConfigurationError(f"Unknown data rate unit in '{rate}'")
        value = float(match.group("value")) * _RATE_UNITS[unit]

    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"Data rate must be finite and > 0, got {rate}")
    return value
