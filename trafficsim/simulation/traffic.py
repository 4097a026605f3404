"""
On/Off traffic generation driven by a discrete-event clock.

Each source alternates between an ON period, during which it sends
fixed-size packets at a constant rate, and a silent OFF period. Period
lengths are drawn from the configured distributions, which makes the
source an alternating renewal process: constant periods give CBR or
fixed-cadence bursts, exponential periods give bursty traffic.
"""

import functools
import math
import random
import typing as tp
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from trafficsim.simulation.distributions import (
    Constant,
    Distribution,
    Exponential,
    parse_distribution,
    parse_data_rate,
)
from trafficsim.simulation.errors import ConfigurationError
from trafficsim.simulation.scheduler import Scheduler


class TrafficPhase(Enum):
    IDLE = "idle"
    ON = "on"
    OFF = "off"
    STOPPED = "stopped"


class Transport(tp.Protocol):
    """Hands packets to the network stack. Delivery failures are not reported back."""

    def send(
        self,
        source_node: str,
        destination: tp.Tuple[str, int],
        size_bytes: int,
    ) -> None: ...


@dataclass(frozen=True)
class TrafficSourceConfig:
    """Immutable description of one On/Off traffic source."""

    # Node the application is installed on
    source_node: str
    # (address, port) of the receiving application
    destination: tp.Tuple[str, int]
    # Sending rate while ON, in bits per second
    data_rate_bps: float
    # Payload size of every packet, in bytes
    packet_size: int
    on_time: Distribution
    off_time: Distribution
    # Stop sending once this many bytes were sent (0 = unlimited)
    max_bytes: int = 0
    name: str = ""

    def __post_init__(self) -> None:
        if self.packet_size <= 0:
            raise ConfigurationError(
                f"Packet size must be > 0 bytes, got {self.packet_size}"
            )
        if not math.isfinite(self.data_rate_bps) or self.data_rate_bps <= 0:
            raise ConfigurationError(
                f"Data rate must be finite and > 0 bit/s, got {self.data_rate_bps}"
            )
        if self.max_bytes < 0:
            raise ConfigurationError(f"max_bytes must be >= 0, got {self.max_bytes}")
        if not isinstance(self.on_time, (Constant, Exponential)):
            raise ConfigurationError(f"Unsupported on-time distribution {self.on_time!r}")
        if not isinstance(self.off_time, (Constant, Exponential)):
            raise ConfigurationError(
                f"Unsupported off-time distribution {self.off_time!r}"
            )
        if self.on_time == Constant(0) and self.off_time == Constant(0):
            raise ConfigurationError(
                "On and off durations cannot both be Constant(0)"
            )

    @classmethod
    def from_strings(
        cls,
        source_node: str,
        destination: tp.Tuple[str, int],
        data_rate: tp.Union[str, float],
        packet_size: int,
        on_time: str,
        off_time: str,
        max_bytes: int = 0,
        name: str = "",
    ) -> "TrafficSourceConfig":
        """Build a config from scenario-style strings such as ``"10Mbps"``."""
        return cls(
            source_node=source_node,
            destination=(destination[0], int(destination[1])),
            data_rate_bps=parse_data_rate(data_rate),
            packet_size=packet_size,
            on_time=parse_distribution(on_time),
            off_time=parse_distribution(off_time),
            max_bytes=max_bytes,
            name=name,
        )

    @property
    def packet_interval(self) -> float:
        """Seconds between two packets while ON."""
        return (8 * self.packet_size) / self.data_rate_bps

    def packets_in(self, duration: float) -> int:
        """Number of whole packets sent during an ON period of ``duration`` seconds."""
        return math.floor(self.data_rate_bps * duration / (8 * self.packet_size))


@dataclass
class TrafficSourceState:
    """Run-time state of a source, owned by its application."""

    phase: TrafficPhase = TrafficPhase.IDLE
    phase_end: tp.Optional[float] = None
    bytes_sent: int = 0
    packets_sent: int = 0
    # Time spent in each phase, clipped at the stop time
    on_time: float = 0.0
    off_time: float = 0.0
    transitions: tp.List[tp.Tuple[float, TrafficPhase]] = field(default_factory=list)


class OnOffApplication:
    """
    Traffic source alternating between ON and OFF periods.

    The application only registers callbacks on the scheduler; it never
    reads wall-clock time. ``start`` and ``stop`` schedule the active
    interval, after which the clock drives every transition.
    """

    def __init__(
        self,
        config: TrafficSourceConfig,
        scheduler: Scheduler,
        transport: Transport,
        rng: tp.Optional[random.Random] = None,
    ):
        self.config = config
        self.scheduler = scheduler
        self.transport = transport
        self.rng = rng if rng is not None else random.Random()
        self.state = TrafficSourceState()
        self.name = config.name or f"onoff@{config.source_node}"

        self._stop_time: tp.Optional[float] = None
        self._period_start = 0.0

    @property
    def phase(self) -> TrafficPhase:
        return self.state.phase

    def start(self, time: float) -> None:
        """Schedule the IDLE -> ON transition at ``time``."""
        self.scheduler.schedule_at(time, self._on_start)

    def stop(self, time: float) -> None:
        """Schedule the unconditional transition to STOPPED at ``time``."""
        self._stop_time = time
        self.scheduler.schedule_at(time, self._on_stop)

    def get_statistics(self) -> tp.Dict[str, tp.Any]:
        active = self.state.on_time + self.state.off_time
        return {
            "name": self.name,
            "phase": self.state.phase.value,
            "packets_sent": self.state.packets_sent,
            "bytes_sent": self.state.bytes_sent,
            "on_time": self.state.on_time,
            "off_time": self.state.off_time,
            "on_fraction": self.state.on_time / active if active > 0 else 0.0,
        }

    def _before_stop(self, time: float) -> bool:
        return self._stop_time is None or time < self._stop_time

    def _set_phase(self, phase: TrafficPhase, now: float) -> None:
        self.state.phase = phase
        self.state.transitions.append((now, phase))
        logger.debug(f"{self.name}: {phase.value} at {now:.6f}s")

    def _on_start(self) -> None:
        if self.state.phase is not TrafficPhase.IDLE:
            return
        now = self.scheduler.now()
        logger.info(f"{self.name}: starting at {now:.3f}s")
        self._set_phase(TrafficPhase.ON, now)
        self._start_on_period(now)

    def _start_on_period(self, now: float) -> None:
        self._period_start = now
        duration = self.config.on_time.sample(self.rng)
        if duration <= 0:
            self._end_on_period()
            return

        end = now + duration
        self.state.phase_end = end

        count = self.config.packets_in(duration)
        if count > 0:
            self._schedule_send(now, 0, count)

        if self._before_stop(end):
            self.scheduler.schedule_at(end, self._end_on_period)

    def _schedule_send(self, period_start: float, index: int, count: int) -> None:
        time = period_start + index * self.config.packet_interval
        if not self._before_stop(time):
            return
        self.scheduler.schedule_at(
            time, functools.partial(self._send_packet, period_start, index, count)
        )

    def _send_packet(self, period_start: float, index: int, count: int) -> None:
        if self.state.phase is not TrafficPhase.ON:
            return
        max_bytes = self.config.max_bytes
        if max_bytes and self.state.bytes_sent >= max_bytes:
            return

        self.transport.send(
            self.config.source_node,
            self.config.destination,
            self.config.packet_size,
        )
        self.state.packets_sent += 1
        self.state.bytes_sent += self.config.packet_size

        if index + 1 < count:
            self._schedule_send(period_start, index + 1, count)

    def _end_on_period(self) -> None:
        if self.state.phase is not TrafficPhase.ON:
            return
        now = self.scheduler.now()
        self.state.on_time += now - self._period_start

        duration = self.config.off_time.sample(self.rng)
        if duration <= 0:
            # No idle gap, the source stays ON
            self._start_on_period(now)
            return

        self._set_phase(TrafficPhase.OFF, now)
        self._period_start = now
        end = now + duration
        self.state.phase_end = end
        if self._before_stop(end):
            self.scheduler.schedule_at(end, self._end_off_period)

    def _end_off_period(self) -> None:
        if self.state.phase is not TrafficPhase.OFF:
            return
        now = self.scheduler.now()
        self.state.off_time += now - self._period_start
        self._set_phase(TrafficPhase.ON, now)
        self._start_on_period(now)

    def _on_stop(self) -> None:
        if self.state.phase is TrafficPhase.STOPPED:
            return
        now = self.scheduler.now()
        if self.state.phase is TrafficPhase.ON:
            self.state.on_time += now - self._period_start
        elif self.state.phase is TrafficPhase.OFF:
            self.state.off_time += now - self._period_start
        self.state.phase_end = None
        self._set_phase(TrafficPhase.STOPPED, now)
        logger.info(
            f"{self.name}: stopped at {now:.3f}s after "
            f"{self.state.packets_sent} packets ({self.state.bytes_sent} bytes)"
        )
