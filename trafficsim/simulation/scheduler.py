"""
Discrete-event clock used to drive traffic sources.

Traffic sources only depend on the ``Scheduler`` protocol, so any engine
offering ``now`` and ``schedule_at`` can drive them. ``EventScheduler`` is
the heap-based implementation used by the scenario runner and the tests.
"""

import heapq
import itertools
import typing as tp

from loguru import logger

Callback = tp.Callable[[], None]


class Scheduler(tp.Protocol):
    """Time source and one-shot callback registry."""

    def now(self) -> float: ...

    def schedule_at(self, time: float, callback: Callback) -> None: ...


class EventScheduler:
    """
    Discrete-event simulation clock.

    Callbacks run in increasing time order; callbacks registered for the
    same instant run in registration order.
    """

    def __init__(self, start_time: float = 0.0):
        self._now = start_time
        self._queue: tp.List[tp.Tuple[float, int, Callback]] = []
        self._sequence = itertools.count()
        self._running = False
        self.events_processed = 0

    def now(self) -> float:
        return self._now

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return len(self._queue)

    def schedule_at(self, time: float, callback: Callback) -> None:
        """Register ``callback`` to run at simulated ``time``."""
        if time < self._now:
            raise ValueError(
                f"Cannot schedule at {time:.6f}s, clock is already at {self._now:.6f}s"
            )
        heapq.heappush(self._queue, (time, next(self._sequence), callback))

    def next_event_time(self) -> tp.Optional[float]:
        if self._queue:
            return self._queue[0][0]
        return None

    def run(self, until: tp.Optional[float] = None) -> int:
        """
        Process events in time order.

        Args:
            until: Stop before the first event later than this time and
                advance the clock to it. ``None`` drains the queue.

        Returns:
            Number of events processed during this call
        """
        self._running = True
        processed = 0
        try:
            while self._queue:
                time, _, callback = self._queue[0]
                if until is not None and time > until:
                    break
                heapq.heappop(self._queue)
                self._now = time
                callback()
                processed += 1
        finally:
            self._running = False

        if until is not None and until > self._now:
            self._now = until

        self.events_processed += processed
        logger.debug(f"Clock at {self._now:.6f}s after {processed} events")
        return processed

    def clear(self) -> None:
        """Drop all pending events."""
        self._queue.clear()
