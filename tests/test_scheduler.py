import pytest

from trafficsim.simulation.scheduler import EventScheduler


def test_events_run_in_time_order(scheduler):
    calls = []
    scheduler.schedule_at(3.0, lambda: calls.append(3.0))
    scheduler.schedule_at(1.0, lambda: calls.append(1.0))
    scheduler.schedule_at(2.0, lambda: calls.append(2.0))

    assert scheduler.run() == 3
    assert calls == [1.0, 2.0, 3.0]
    assert scheduler.now() == 3.0


def test_ties_run_in_registration_order(scheduler):
    calls = []
    for name in "abcde":
        scheduler.schedule_at(1.0, lambda name=name: calls.append(name))

    scheduler.run()
    assert calls == list("abcde")


def test_callbacks_can_schedule_at_current_time(scheduler):
    calls = []

    def first():
        calls.append("first")
        scheduler.schedule_at(scheduler.now(), lambda: calls.append("nested"))

    scheduler.schedule_at(1.0, first)
    scheduler.schedule_at(1.0, lambda: calls.append("second"))
    scheduler.run()

    assert calls == ["first", "second", "nested"]


def test_run_until_leaves_later_events_pending(scheduler):
    calls = []
    scheduler.schedule_at(1.0, lambda: calls.append(1.0))
    scheduler.schedule_at(5.0, lambda: calls.append(5.0))

    assert scheduler.run(until=2.0) == 1
    assert scheduler.now() == 2.0
    assert scheduler.pending == 1
    assert scheduler.next_event_time() == 5.0

    scheduler.run(until=5.0)
    assert calls == [1.0, 5.0]
    assert scheduler.next_event_time() is None


def test_scheduling_in_the_past_is_rejected(scheduler):
    scheduler.run(until=4.0)
    with pytest.raises(ValueError):
        scheduler.schedule_at(3.0, lambda: None)


def test_is_running_only_while_processing(scheduler):
    seen = []
    scheduler.schedule_at(1.0, lambda: seen.append(scheduler.is_running))

    assert not scheduler.is_running
    scheduler.run()
    assert seen == [True]
    assert not scheduler.is_running


def test_clear_drops_pending_events():
    scheduler = EventScheduler(start_time=10.0)
    scheduler.schedule_at(11.0, lambda: None)
    scheduler.clear()
    assert scheduler.run() == 0
    assert scheduler.now() == 10.0
