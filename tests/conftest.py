import random
import typing as tp

import pytest

from trafficsim.simulation.scheduler import EventScheduler


class RecordingTransport:
    """Transport that remembers every packet handed to it."""

    def __init__(self, scheduler: EventScheduler):
        self.scheduler = scheduler
        self.sent: tp.List[tp.Tuple[float, str, tp.Tuple[str, int], int]] = []

    def send(self, source_node, destination, size_bytes):
        self.sent.append((self.scheduler.now(), source_node, destination, size_bytes))

    @property
    def times(self) -> tp.List[float]:
        return [t for t, *_ in self.sent]


@pytest.fixture
def scheduler() -> EventScheduler:
    return EventScheduler()


@pytest.fixture
def transport(scheduler) -> RecordingTransport:
    return RecordingTransport(scheduler)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)
