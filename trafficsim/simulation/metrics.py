"""
Data classes for flow statistics.

This module contains the records produced by the flow monitor and the
reports derived from them by the aggregator. Records are read-only input;
reports are produced fresh on every aggregation and never mutated.
"""

import typing as tp
from dataclasses import dataclass, field

from trafficsim.simulation.errors import MalformedRecord


@dataclass(frozen=True)
class FlowKey:
    """
    Five-tuple identifying a unidirectional flow.
    """

    source_address: str
    """IPv4 address of the sending node."""

    destination_address: str
    """IPv4 address of the receiving node."""

    protocol: str
    """Transport protocol, e.g. 'udp'."""

    source_port: int
    """Source port allocated by the sender."""

    destination_port: int
    """Destination port of the receiving application."""

    def __str__(self) -> str:
        return (
            f"{self.protocol} {self.source_address}:{self.source_port}"
            f" -> {self.destination_address}:{self.destination_port}"
        )


@dataclass(frozen=True)
class FlowRecord:
    """
    Counters observed for a single flow over the whole run.

    Supplied by the flow monitor once the clock has stopped.
    """

    flow_id: int
    """Identifier assigned by the flow classifier."""

    tx_packets: int
    """Packets handed to the transport by the source."""

    rx_packets: int
    """Packets delivered to the destination."""

    rx_bytes: int
    """Bytes delivered to the destination."""

    delay_sum: float
    """Sum of end-to-end delays of delivered packets, in seconds."""

    tx_bytes: int = 0
    """Bytes handed to the transport by the source."""

    key: tp.Optional[FlowKey] = None
    """Five-tuple of the flow when known."""

    def validate(self) -> None:
        """
        Check the monitor invariants.

        Raises:
            MalformedRecord: If a counter is negative, more packets were
                received than sent, or delay or bytes were accumulated
                without any received packet
        """
        if min(self.tx_packets, self.rx_packets, self.rx_bytes, self.tx_bytes) < 0:
            raise MalformedRecord(self, "negative counter")
        if self.delay_sum < 0:
            raise MalformedRecord(self, "negative delay sum")
        if self.rx_packets > self.tx_packets:
            raise MalformedRecord(
                self,
                f"received {self.rx_packets} packets but only "
                f"{self.tx_packets} were transmitted",
            )
        if self.rx_packets == 0 and self.delay_sum != 0:
            raise MalformedRecord(
                self, f"delay sum {self.delay_sum} with no received packets"
            )
        if self.rx_packets == 0 and self.rx_bytes != 0:
            raise MalformedRecord(
                self, f"{self.rx_bytes} bytes received with no received packets"
            )


@dataclass(frozen=True)
class FlowReport:
    """
    Metrics derived from one flow record.
    """

    flow_id: int
    """Identifier of the source record."""

    tx_packets: int
    """Transmitted packets."""

    rx_packets: int
    """Received packets."""

    lost_packets: int
    """Transmitted minus received packets."""

    throughput_mbps: float
    """Received megabits per second over the observation window."""

    mean_delay_s: tp.Optional[float]
    """Mean end-to-end delay, None when no packet was received."""

    flow: str = ""
    """Printable five-tuple, empty when the record carried no key."""


@dataclass(frozen=True)
class AggregateReport:
    """
    Totals across all well-formed flows.
    """

    flow_count: int
    """Number of flows included in the totals."""

    tx_packets: int
    """Sum of transmitted packets."""

    rx_packets: int
    """Sum of received packets."""

    lost_packets: int
    """Sum of lost packets."""

    throughput_mbps: float
    """Sum of per-flow throughput."""

    summed_mean_delay_s: float
    """Sum of per-flow mean delays over flows that received packets."""

    weighted_mean_delay_s: tp.Optional[float]
    """Packet-weighted mean delay across all flows, None when nothing was received."""


@dataclass(frozen=True)
class NoFlowsObserved:
    """
    Result returned instead of an aggregate when there is nothing to summarise.

    Usually means the workload never reached the monitor because of a
    configuration or connectivity problem upstream.
    """

    reason: str = "no flows observed"
    rejected_count: int = 0


@dataclass(frozen=True)
class FlowStatsResult:
    """Output of one aggregation pass."""

    window_seconds: float
    per_flow: tp.Tuple[FlowReport, ...]
    aggregate: tp.Union[AggregateReport, NoFlowsObserved]
    rejected: tp.Tuple[MalformedRecord, ...] = field(default_factory=tuple)

    @property
    def flows_observed(self) -> bool:
        return isinstance(self.aggregate, AggregateReport)
