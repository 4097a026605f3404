"""
Flow statistics calculations.

This module turns the raw per-flow counters collected by the flow monitor
into per-flow throughput, delay and loss figures and the totals across all
flows.
"""

import math
import typing as tp

from loguru import logger

from trafficsim.simulation.errors import ConfigurationError, MalformedRecord
from trafficsim.simulation.metrics import (
    AggregateReport,
    FlowRecord,
    FlowReport,
    FlowStatsResult,
    NoFlowsObserved,
)


def calculate_throughput_mbps(rx_bytes: int, window_seconds: float) -> float:
    """
    Received megabits per second over the observation window.

    Args:
        rx_bytes: Bytes delivered to the destination
        window_seconds: Length of the observation window

    Returns:
        Throughput in Mbps
    """
    return (rx_bytes * 8) / (window_seconds * 1_000_000)


def calculate_flow_report(record: FlowRecord, window_seconds: float) -> FlowReport:
    """
    Derive throughput, mean delay and loss for a single flow.

    Args:
        record: Flow counters from the monitor
        window_seconds: Length of the observation window in seconds

    Returns:
        FlowReport for the record

    Raises:
        MalformedRecord: If the record violates the monitor invariants
    """
    record.validate()

    if record.rx_packets > 0:
        throughput = calculate_throughput_mbps(record.rx_bytes, window_seconds)
        mean_delay: tp.Optional[float] = record.delay_sum / record.rx_packets
    else:
        throughput = 0.0
        mean_delay = None

    return FlowReport(
        flow_id=record.flow_id,
        tx_packets=record.tx_packets,
        rx_packets=record.rx_packets,
        lost_packets=record.tx_packets - record.rx_packets,
        throughput_mbps=throughput,
        mean_delay_s=mean_delay,
        flow=str(record.key) if record.key is not None else "",
    )


def calculate_aggregate_report(
    reports: tp.Sequence[FlowReport],
    records: tp.Sequence[FlowRecord],
) -> AggregateReport:
    """
    Sum per-flow figures into network-wide totals.

    ``summed_mean_delay_s`` adds up per-flow mean delays, the figure the
    scenario report prints as "Average Delay".
    ``weighted_mean_delay_s`` is the packet-weighted mean over all received
    packets.

    Args:
        reports: Per-flow reports, all well-formed
        records: Records the reports were built from, in the same order
    """
    total_rx = sum(r.rx_packets for r in reports)
    total_delay = sum(r.delay_sum for r in records)

    return AggregateReport(
        flow_count=len(reports),
        tx_packets=sum(r.tx_packets for r in reports),
        rx_packets=total_rx,
        lost_packets=sum(r.lost_packets for r in reports),
        throughput_mbps=sum(r.throughput_mbps for r in reports),
        summed_mean_delay_s=sum(
            r.mean_delay_s for r in reports if r.mean_delay_s is not None
        ),
        weighted_mean_delay_s=(total_delay / total_rx) if total_rx > 0 else None,
    )


def aggregate_flow_stats(
    records: tp.Iterable[FlowRecord],
    window_seconds: float,
) -> FlowStatsResult:
    """
    Produce per-flow reports and an aggregate for a set of flow records.

    Malformed records are reported in ``rejected`` and left out of the
    totals. When no well-formed record is left the aggregate is a
    ``NoFlowsObserved`` marker rather than a zero-filled report.

    Args:
        records: Flow records from the monitor snapshot
        window_seconds: Length of the observation window in seconds

    Returns:
        FlowStatsResult with per-flow reports, aggregate and rejected records

    Raises:
        ConfigurationError: If the window is not positive
    """
    if not math.isfinite(window_seconds) or window_seconds <= 0:
        raise ConfigurationError(
            f"Observation window must be finite and > 0 seconds, got {window_seconds}"
        )

    records = sorted(records, key=lambda r: r.flow_id)

    reports: tp.List[FlowReport] = []
    accepted: tp.List[FlowRecord] = []
    rejected: tp.List[MalformedRecord] = []

    for record in records:
        try:
            report = calculate_flow_report(record, window_seconds)
        except MalformedRecord as e:
            logger.warning(f"Skipping malformed flow record: {e}")
            rejected.append(e)
            continue
        reports.append(report)
        accepted.append(record)

    if not records:
        logger.warning("No flows observed, check traffic configuration and connectivity")
        aggregate: tp.Union[AggregateReport, NoFlowsObserved] = NoFlowsObserved()
    elif not reports:
        logger.warning(f"All {len(rejected)} flow records were rejected")
        aggregate = NoFlowsObserved(
            reason="all flow records were malformed",
            rejected_count=len(rejected),
        )
    else:
        aggregate = calculate_aggregate_report(reports, accepted)
        logger.info(
            f"Aggregated {aggregate.flow_count} flows: "
            f"{aggregate.tx_packets} tx, {aggregate.rx_packets} rx, "
            f"{aggregate.throughput_mbps:.3f} Mbps"
        )

    return FlowStatsResult(
        window_seconds=window_seconds,
        per_flow=tuple(reports),
        aggregate=aggregate,
        rejected=tuple(rejected),
    )
