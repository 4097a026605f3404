"""
Dataclass configuration for the WiFi/CSMA traffic scenario.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ScenarioConfig:
    """Shape of the scenario."""

    # Number of WiFi stations
    num_nodes: int = 5
    # Traffic mix: "CBR", "Burst" or "CBR_Burst"
    traffic_type: str = "CBR"
    # Stations follow a random walk instead of a fixed grid
    mobility_enabled: bool = False


@dataclass
class TrafficConfig:
    """Configuration for the On/Off applications."""

    # Application rate while ON (e.g. "10Mbps", "100k")
    data_rate: str = "10Mbps"
    # Payload size in bytes
    packet_size: int = 4096
    # UDP port of the server application
    server_port: int = 9
    # ON/OFF period distributions of the CBR source
    cbr_on_time: str = "ns3::ConstantRandomVariable[Constant=1]"
    cbr_off_time: str = "ns3::ConstantRandomVariable[Constant=0]"
    # ON/OFF period distributions of the bursty source
    burst_on_time: str = "ns3::ExponentialRandomVariable[Mean=1]"
    burst_off_time: str = "ns3::ExponentialRandomVariable[Mean=1]"
    # Stop each source after this many bytes (0 = unlimited)
    max_bytes: int = 0


@dataclass
class SimulationConfig:
    """Clock and output settings."""

    # Applications start sending at this simulated time (seconds)
    start_time: float = 2.0
    # Applications stop at this simulated time (seconds)
    stop_time: float = 10.0
    # The clock is stopped at this simulated time (seconds)
    duration: float = 10.0
    # Random seed for reproducibility (None for random)
    seed: Optional[int] = None
    # Output directory for reports
    output_dir: str = "dumps"
    # One-way delay of the channel in seconds
    link_delay: float = 0.0005
    # Probability of dropping a packet in the channel
    loss_rate: float = 0.0


@dataclass
class TrafficSimulationConfig:
    """Root configuration for a scenario run."""

    scenario: ScenarioConfig = field(default_factory=ScenarioConfig)
    traffic: TrafficConfig = field(default_factory=TrafficConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
