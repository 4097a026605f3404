"""
Exception types raised by the traffic and flow statistics modules.
"""

import typing as tp

if tp.TYPE_CHECKING:
    from trafficsim.simulation.metrics import FlowRecord


class TrafficSimError(Exception):
    """Base class for all errors raised by trafficsim."""


class ConfigurationError(TrafficSimError, ValueError):
    """Invalid rate, size, distribution or scenario parameter."""


class MalformedRecord(TrafficSimError):
    """
    A flow record violating the monitor invariants.

    Raised by record validation and collected by the aggregator so that
    well-formed sibling records can still be summarised.
    """

    def __init__(self, record: "FlowRecord", reason: str):
        super().__init__(f"Flow {record.flow_id}: {reason}")
        self.record = record
        self.reason = reason
