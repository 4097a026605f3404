"""
Scenario assembly for the WiFi/CSMA traffic simulation.

A scenario is a set of WiFi stations associated to one access point,
which is wired to a server over CSMA. Depending on the traffic type a CBR
source is installed on the first station and/or a bursty source on the
second one, both sending to the server. Every variant of the scenario is
described by a TrafficSimulationConfig rather than a separate script.
"""

import math
import os
import random
import typing as tp
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger
from tqdm import tqdm

from trafficsim.simulation.errors import ConfigurationError
from trafficsim.simulation.monitor import FlowMonitor, IdealChannelTransport
from trafficsim.simulation.scheduler import EventScheduler
from trafficsim.simulation.traffic import OnOffApplication, TrafficSourceConfig
from trafficsim.simulation_config import TrafficSimulationConfig

WIFI_SUBNET = "192.168.0"
CSMA_SUBNET = "10.1.1"


class TrafficType(Enum):
    CBR = "CBR"
    BURST = "Burst"
    CBR_BURST = "CBR_Burst"

    @classmethod
    def parse(cls, value: tp.Union[str, "TrafficType"]) -> "TrafficType":
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value.lower() == str(value).lower():
                return member
        raise ConfigurationError(
            f"Unknown traffic type '{value}', expected one of "
            f"{', '.join(m.value for m in cls)}"
        )

    @property
    def has_cbr(self) -> bool:
        return self in (TrafficType.CBR, TrafficType.CBR_BURST)

    @property
    def has_burst(self) -> bool:
        return self in (TrafficType.BURST, TrafficType.CBR_BURST)


@dataclass
class Topology:
    """Nodes of the scenario and their addresses."""

    stations: tp.List[str]
    access_point: str
    server: str
    # Node id -> address used as the source of its packets
    addresses: tp.Dict[str, str]
    # "grid" for fixed stations, "random_walk" when mobility is enabled
    placement: str = "grid"

    @property
    def server_address(self) -> str:
        return self.addresses[self.server]


def build_topology(num_nodes: int, mobility_enabled: bool = False) -> Topology:
    """
    Create station, access point and server nodes with their addresses.

    Stations get 192.168.0.1 onwards, the access point the next WiFi
    address, and the server 10.1.1.2 on the wired segment.
    """
    if num_nodes < 1:
        raise ConfigurationError(f"At least one WiFi node is required, got {num_nodes}")
    if num_nodes > 253:
        raise ConfigurationError(
            f"At most 253 WiFi nodes fit in {WIFI_SUBNET}.0/24, got {num_nodes}"
        )

    stations = [f"sta{i}" for i in range(num_nodes)]
    addresses = {sta: f"{WIFI_SUBNET}.{i + 1}" for i, sta in enumerate(stations)}
    addresses["ap"] = f"{WIFI_SUBNET}.{num_nodes + 1}"
    addresses["server"] = f"{CSMA_SUBNET}.2"

    return Topology(
        stations=stations,
        access_point="ap",
        server="server",
        addresses=addresses,
        placement="random_walk" if mobility_enabled else "grid",
    )


def build_traffic_sources(
    config: TrafficSimulationConfig,
    topology: Topology,
) -> tp.List[TrafficSourceConfig]:
    """
    Describe the On/Off sources for the configured traffic type.

    Args:
        config: Scenario configuration
        topology: Topology the sources are installed on

    Returns:
        Source configurations, CBR first

    Raises:
        ConfigurationError: If the traffic type is unknown or needs more
            stations than the topology has
    """
    traffic_type = TrafficType.parse(config.scenario.traffic_type)
    traffic = config.traffic
    destination = (topology.server_address, traffic.server_port)

    if traffic_type.has_burst and len(topology.stations) < 2:
        raise ConfigurationError(
            f"Traffic type {traffic_type.value} needs at least 2 WiFi nodes"
        )

    sources = []
    if traffic_type.has_cbr:
        sources.append(
            TrafficSourceConfig.from_strings(
                source_node=topology.stations[0],
                destination=destination,
                data_rate=traffic.data_rate,
                packet_size=traffic.packet_size,
                on_time=traffic.cbr_on_time,
                off_time=traffic.cbr_off_time,
                max_bytes=traffic.max_bytes,
                name="cbr",
            )
        )
    if traffic_type.has_burst:
        sources.append(
            TrafficSourceConfig.from_strings(
                source_node=topology.stations[1],
                destination=destination,
                data_rate=traffic.data_rate,
                packet_size=traffic.packet_size,
                on_time=traffic.burst_on_time,
                off_time=traffic.burst_off_time,
                max_bytes=traffic.max_bytes,
                name="burst",
            )
        )
    return sources


@dataclass
class Scenario:
    """A fully wired scenario, ready to run."""

    config: TrafficSimulationConfig
    topology: Topology
    scheduler: EventScheduler
    monitor: FlowMonitor
    transport: IdealChannelTransport
    applications: tp.List[OnOffApplication] = field(default_factory=list)

    @property
    def window_seconds(self) -> float:
        """Time during which the applications are active."""
        sim = self.config.simulation
        return min(sim.stop_time, sim.duration) - sim.start_time


def _validate_timing(config: TrafficSimulationConfig) -> None:
    sim = config.simulation
    for name in ("start_time", "stop_time", "duration"):
        if not math.isfinite(getattr(sim, name)):
            raise ConfigurationError(f"{name} must be finite, got {getattr(sim, name)}")
    if sim.start_time < 0:
        raise ConfigurationError(f"start_time must be >= 0, got {sim.start_time}")
    if sim.stop_time <= sim.start_time:
        raise ConfigurationError(
            f"stop_time ({sim.stop_time}) must be after start_time ({sim.start_time})"
        )
    if sim.duration <= sim.start_time:
        raise ConfigurationError(
            f"duration ({sim.duration}) must be after start_time ({sim.start_time})"
        )


def build_scenario(
    config: TrafficSimulationConfig,
    scheduler: tp.Optional[EventScheduler] = None,
) -> Scenario:
    """
    Assemble topology, monitor, transport and applications.

    Applications get their start and stop events scheduled on the clock;
    nothing runs until ``run_scenario`` is called.
    """
    _validate_timing(config)

    scheduler = scheduler if scheduler is not None else EventScheduler()
    rng = random.Random(config.simulation.seed)

    topology = build_topology(
        config.scenario.num_nodes,
        config.scenario.mobility_enabled,
    )
    monitor = FlowMonitor(scheduler)
    transport = IdealChannelTransport(
        scheduler=scheduler,
        monitor=monitor,
        addresses=topology.addresses,
        link_delay=config.simulation.link_delay,
        loss_rate=config.simulation.loss_rate,
        rng=random.Random(rng.getrandbits(64)),
    )

    scenario = Scenario(
        config=config,
        topology=topology,
        scheduler=scheduler,
        monitor=monitor,
        transport=transport,
    )

    for source in build_traffic_sources(config, topology):
        app = OnOffApplication(
            config=source,
            scheduler=scheduler,
            transport=transport,
            rng=random.Random(rng.getrandbits(64)),
        )
        app.start(config.simulation.start_time)
        app.stop(config.simulation.stop_time)
        scenario.applications.append(app)

    logger.info(
        f"Scenario: {len(topology.stations)} stations ({topology.placement}), "
        f"traffic {config.scenario.traffic_type}, "
        f"{len(scenario.applications)} applications"
    )
    return scenario


def run_scenario(scenario: Scenario, show_progress: bool = False) -> int:
    """
    Advance the clock to the configured duration one simulated second at a time.

    Returns:
        Number of events processed
    """
    duration = scenario.config.simulation.duration
    scheduler = scenario.scheduler

    processed = 0
    steps = max(1, int(duration))
    for step in tqdm(
        range(1, steps + 1),
        desc="Simulation Progress",
        unit="s",
        disable=not show_progress,
    ):
        until = duration if step == steps else float(step)
        processed += scheduler.run(until=until)

    for app in scenario.applications:
        stats = app.get_statistics()
        logger.info(
            f"{stats['name']}: {stats['packets_sent']} packets, "
            f"on {stats['on_time']:.3f}s / off {stats['off_time']:.3f}s"
        )
    return processed


def ensure_dir(directory: str) -> None:
    """
    Create directory if it doesn't exist.

    Args:
        directory: Path to directory to create
    """
    if not os.path.exists(directory):
        os.makedirs(directory)
