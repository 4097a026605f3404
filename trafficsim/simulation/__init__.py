"""
Traffic generation and flow statistics for discrete-event network simulation.

This package provides components for:
- On/Off traffic sources with constant or exponential period lengths
- A discrete-event clock to drive them
- Flow monitoring over an ideal channel
- Per-flow and aggregate throughput, delay and loss reports
"""

from trafficsim.simulation.calculations import (
    aggregate_flow_stats,
    calculate_aggregate_report,
    calculate_flow_report,
)
from trafficsim.simulation.distributions import (
    Constant,
    Distribution,
    Exponential,
    parse_data_rate,
    parse_distribution,
)
from trafficsim.simulation.errors import (
    ConfigurationError,
    MalformedRecord,
    TrafficSimError,
)
from trafficsim.simulation.metrics import (
    AggregateReport,
    FlowKey,
    FlowRecord,
    FlowReport,
    FlowStatsResult,
    NoFlowsObserved,
)
from trafficsim.simulation.monitor import FlowMonitor, IdealChannelTransport
from trafficsim.simulation.processor import (
    export_flow_records,
    export_flow_reports,
    format_report,
    process_and_export,
)
from trafficsim.simulation.scenario import (
    Scenario,
    Topology,
    TrafficType,
    build_scenario,
    build_topology,
    build_traffic_sources,
    ensure_dir,
    run_scenario,
)
from trafficsim.simulation.scheduler import EventScheduler, Scheduler
from trafficsim.simulation.traffic import (
    OnOffApplication,
    TrafficPhase,
    TrafficSourceConfig,
    TrafficSourceState,
    Transport,
)

__all__ = [
    "AggregateReport",
    "ConfigurationError",
    "Constant",
    "Distribution",
    "EventScheduler",
    "Exponential",
    "FlowKey",
    "FlowMonitor",
    "FlowRecord",
    "FlowReport",
    "FlowStatsResult",
    "IdealChannelTransport",
    "MalformedRecord",
    "NoFlowsObserved",
    "OnOffApplication",
    "Scenario",
    "Scheduler",
    "Topology",
    "TrafficPhase",
    "TrafficSimError",
    "TrafficSourceConfig",
    "TrafficSourceState",
    "TrafficType",
    "Transport",
    "aggregate_flow_stats",
    "build_scenario",
    "build_topology",
    "build_traffic_sources",
    "calculate_aggregate_report",
    "calculate_flow_report",
    "ensure_dir",
    "export_flow_records",
    "export_flow_reports",
    "format_report",
    "parse_data_rate",
    "parse_distribution",
    "process_and_export",
    "run_scenario",
]
