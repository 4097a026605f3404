"""
Flow monitoring for simulated traffic.

The monitor classifies every packet handed to the transport into a flow
and accumulates per-flow counters. Once the clock has stopped, the
counters are frozen into FlowRecord snapshots for the aggregator.

IdealChannelTransport is the transport used by the scenario runner: it
delivers each packet after a fixed link delay unless it is dropped with
a configured probability. Radio, MAC and routing are not modelled.
"""

import random
import typing as tp
from dataclasses import dataclass

from loguru import logger

from trafficsim.simulation.errors import ConfigurationError
from trafficsim.simulation.metrics import FlowKey, FlowRecord
from trafficsim.simulation.scheduler import Scheduler

EPHEMERAL_PORT_START = 49153


@dataclass
class FlowCounters:
    """Mutable counters for one flow while the clock is running."""

    key: FlowKey
    tx_packets: int = 0
    tx_bytes: int = 0
    rx_packets: int = 0
    rx_bytes: int = 0
    lost_packets: int = 0
    delay_sum: float = 0.0
    time_first_tx: tp.Optional[float] = None
    time_last_tx: tp.Optional[float] = None
    time_first_rx: tp.Optional[float] = None
    time_last_rx: tp.Optional[float] = None


class FlowMonitor:
    """
    Classifies packets into flows and tracks their counters.

    Flow ids are assigned from 1 in the order flows are first seen.
    """

    def __init__(self, scheduler: Scheduler):
        self.scheduler = scheduler
        self._flow_ids: tp.Dict[FlowKey, int] = {}
        self._flows: tp.Dict[int, FlowCounters] = {}

    def __len__(self) -> int:
        return len(self._flows)

    def classify(self, key: FlowKey) -> int:
        """Return the flow id for ``key``, allocating one on first sight."""
        flow_id = self._flow_ids.get(key)
        if flow_id is None:
            flow_id = len(self._flow_ids) + 1
            self._flow_ids[key] = flow_id
            self._flows[flow_id] = FlowCounters(key=key)
            logger.debug(f"New flow {flow_id}: {key}")
        return flow_id

    def record_tx(self, key: FlowKey, size_bytes: int) -> int:
        now = self.scheduler.now()
        flow_id = self.classify(key)
        counters = self._flows[flow_id]
        counters.tx_packets += 1
        counters.tx_bytes += size_bytes
        if counters.time_first_tx is None:
            counters.time_first_tx = now
        counters.time_last_tx = now
        return flow_id

    def record_rx(self, flow_id: int, size_bytes: int, sent_at: float) -> None:
        now = self.scheduler.now()
        counters = self._flows[flow_id]
        counters.rx_packets += 1
        counters.rx_bytes += size_bytes
        counters.delay_sum += now - sent_at
        if counters.time_first_rx is None:
            counters.time_first_rx = now
        counters.time_last_rx = now

    def record_drop(self, flow_id: int) -> None:
        self._flows[flow_id].lost_packets += 1

    def counters(self, flow_id: int) -> FlowCounters:
        return self._flows[flow_id]

    def flow_records(self) -> tp.Dict[int, FlowRecord]:
        """
        Snapshot the counters of every flow.

        Packets still in flight are not counted as received.

        Raises:
            RuntimeError: If the clock is still running
        """
        if getattr(self.scheduler, "is_running", False):
            raise RuntimeError("Flow records can only be read once the clock has stopped")

        return {
            flow_id: FlowRecord(
                flow_id=flow_id,
                tx_packets=c.tx_packets,
                rx_packets=c.rx_packets,
                rx_bytes=c.rx_bytes,
                delay_sum=c.delay_sum,
                tx_bytes=c.tx_bytes,
                key=c.key,
            )
            for flow_id, c in self._flows.items()
        }


class IdealChannelTransport:
    """
    UDP-like transport over a fixed-delay, optionally lossy channel.

    Args:
        scheduler: Clock used to schedule deliveries
        monitor: Flow monitor receiving tx/rx notifications
        addresses: Node id to IPv4 address table
        link_delay: One-way delay applied to every packet, in seconds
        loss_rate: Probability that a packet is dropped (0-1)
        rng: Random source used for drops
    """

    protocol = "udp"

    def __init__(
        self,
        scheduler: Scheduler,
        monitor: FlowMonitor,
        addresses: tp.Mapping[str, str],
        link_delay: float = 0.0,
        loss_rate: float = 0.0,
        rng: tp.Optional[random.Random] = None,
    ):
        if link_delay < 0:
            raise ConfigurationError(f"Link delay must be >= 0, got {link_delay}")
        if not 0.0 <= loss_rate <= 1.0:
            raise ConfigurationError(f"Loss rate must be within [0, 1], got {loss_rate}")

        self.scheduler = scheduler
        self.monitor = monitor
        self.addresses = dict(addresses)
        self.link_delay = link_delay
        self.loss_rate = loss_rate
        self.rng = rng if rng is not None else random.Random()

        self._source_ports: tp.Dict[tp.Tuple[str, tp.Tuple[str, int]], int] = {}
        self._next_port: tp.Dict[str, int] = {}

    def _source_port(self, source_node: str, destination: tp.Tuple[str, int]) -> int:
        binding = (source_node, destination)
        port = self._source_ports.get(binding)
        if port is None:
            port = self._next_port.get(source_node, EPHEMERAL_PORT_START)
            self._next_port[source_node] = port + 1
            self._source_ports[binding] = port
        return port

    def send(
        self,
        source_node: str,
        destination: tp.Tuple[str, int],
        size_bytes: int,
    ) -> None:
        try:
            source_address = self.addresses[source_node]
        except KeyError:
            raise ConfigurationError(f"No address assigned to node '{source_node}'")

        key = FlowKey(
            source_address=source_address,
            destination_address=destination[0],
            protocol=self.protocol,
            source_port=self._source_port(source_node, destination),
            destination_port=destination[1],
        )
        flow_id = self.monitor.record_tx(key, size_bytes)

        if self.loss_rate > 0 and self.rng.random() < self.loss_rate:
            self.monitor.record_drop(flow_id)
            return

        sent_at = self.scheduler.now()
        self.scheduler.schedule_at(
            sent_at + self.link_delay,
            lambda: self.monitor.record_rx(flow_id, size_bytes, sent_at),
        )
