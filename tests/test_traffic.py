import random

import pytest

from trafficsim.simulation.distributions import Constant, Exponential
from trafficsim.simulation.errors import ConfigurationError
from trafficsim.simulation.scheduler import EventScheduler
from trafficsim.simulation.traffic import (
    OnOffApplication,
    TrafficPhase,
    TrafficSourceConfig,
)

SERVER = ("10.1.1.2", 9)


def make_config(on_time, off_time, data_rate_bps=8000.0, packet_size=100, **kwargs):
    # 8000 bit/s with 100 byte packets gives one packet every 0.1s
    return TrafficSourceConfig(
        source_node="sta0",
        destination=SERVER,
        data_rate_bps=data_rate_bps,
        packet_size=packet_size,
        on_time=on_time,
        off_time=off_time,
        **kwargs,
    )


def run_app(config, scheduler, transport, start, stop, rng=None, until=None):
    app = OnOffApplication(config, scheduler, transport, rng or random.Random(0))
    app.start(start)
    app.stop(stop)
    scheduler.run(until=until)
    return app


def phases(app):
    return [phase for _, phase in app.state.transitions]


def test_cbr_source_never_goes_idle(scheduler, transport):
    config = TrafficSourceConfig.from_strings(
        source_node="sta0",
        destination=SERVER,
        data_rate="10Mbps",
        packet_size=4096,
        on_time="ns3::ConstantRandomVariable[Constant=1]",
        off_time="ns3::ConstantRandomVariable[Constant=0]",
    )
    app = run_app(config, scheduler, transport, start=2.0, stop=10.0)

    assert phases(app) == [TrafficPhase.ON, TrafficPhase.STOPPED]
    assert TrafficPhase.OFF not in phases(app)
    assert app.state.off_time == 0.0
    assert app.state.on_time == pytest.approx(8.0)
    # floor(10e6 * 1 / (8 * 4096)) = 305 packets per one-second ON period
    assert app.state.packets_sent == 8 * 305
    assert app.state.bytes_sent == 8 * 305 * 4096


def test_packets_are_evenly_spaced_within_on_period(scheduler, transport):
    config = make_config(Constant(1.0), Constant(1.0))
    run_app(config, scheduler, transport, start=0.0, stop=1.5)

    assert len(transport.sent) == 10
    gaps = [b - a for a, b in zip(transport.times, transport.times[1:])]
    assert gaps == pytest.approx([0.1] * 9)
    assert all(dest == SERVER and size == 100 for _, _, dest, size in transport.sent)


def test_fixed_cadence_bursts(scheduler, transport):
    config = make_config(Constant(1.0), Constant(1.0))
    app = run_app(config, scheduler, transport, start=0.0, stop=10.0)

    assert app.state.packets_sent == 50
    assert phases(app) == [TrafficPhase.ON, TrafficPhase.OFF] * 5 + [
        TrafficPhase.STOPPED
    ]
    assert all(int(t) % 2 == 0 for t in transport.times)
    assert app.get_statistics()["on_fraction"] == pytest.approx(0.5)


def test_no_send_outside_active_interval(scheduler, transport):
    config = make_config(
        Exponential(0.5), Exponential(0.5), data_rate_bps=80_000.0
    )
    app = run_app(
        config, scheduler, transport, start=3.0, stop=7.0, rng=random.Random(99)
    )

    assert transport.sent
    assert all(3.0 <= t < 7.0 for t in transport.times)
    assert app.phase is TrafficPhase.STOPPED
    assert app.state.on_time + app.state.off_time == pytest.approx(4.0)


def test_stop_cuts_on_period_short(scheduler, transport):
    config = make_config(Constant(5.0), Constant(5.0))
    app = run_app(config, scheduler, transport, start=0.0, stop=2.5)

    assert app.state.packets_sent == 25
    assert max(transport.times) < 2.5
    assert app.state.on_time == pytest.approx(2.5)
    assert app.state.phase_end is None
    assert scheduler.pending == 0


def test_stop_during_off_period(scheduler, transport):
    config = make_config(Constant(1.0), Constant(4.0))
    app = run_app(config, scheduler, transport, start=0.0, stop=3.0)

    assert app.state.packets_sent == 10
    assert phases(app) == [TrafficPhase.ON, TrafficPhase.OFF, TrafficPhase.STOPPED]
    assert app.state.off_time == pytest.approx(2.0)


def test_nothing_after_stop_even_if_clock_keeps_running(scheduler, transport):
    config = make_config(Constant(1.0), Constant(0.5))
    app = run_app(config, scheduler, transport, start=0.0, stop=4.0, until=20.0)

    assert max(transport.times) < 4.0
    assert app.state.transitions[-1] == (4.0, TrafficPhase.STOPPED)


def test_zero_on_duration_emits_nothing(scheduler, transport):
    config = make_config(Constant(0.0), Constant(1.0))
    app = run_app(config, scheduler, transport, start=0.0, stop=3.5)

    assert transport.sent == []
    assert app.state.on_time == 0.0
    assert phases(app)[:4] == [
        TrafficPhase.ON,
        TrafficPhase.OFF,
        TrafficPhase.ON,
        TrafficPhase.OFF,
    ]
    assert phases(app)[-1] is TrafficPhase.STOPPED


def test_short_on_period_sends_whole_packets_only(scheduler, transport):
    # 0.25s of ON time fits two whole packets at 0.1s spacing
    config = make_config(Constant(0.25), Constant(1.0))
    app = run_app(config, scheduler, transport, start=0.0, stop=1.0)

    assert app.state.packets_sent == 2


def test_max_bytes_limits_total_volume(scheduler, transport):
    config = make_config(Constant(1.0), Constant(0.0), max_bytes=1000)
    app = run_app(config, scheduler, transport, start=0.0, stop=5.0)

    assert app.state.bytes_sent == 1000
    assert len(transport.sent) == 10


def test_stop_before_start_never_sends(scheduler, transport):
    config = make_config(Constant(1.0), Constant(0.0))
    app = run_app(config, scheduler, transport, start=2.0, stop=1.0)

    assert transport.sent == []
    assert phases(app) == [TrafficPhase.STOPPED]


def test_phase_starts_idle():
    scheduler = EventScheduler()
    app = OnOffApplication(
        make_config(Constant(1.0), Constant(0.0)), scheduler, transport=None
    )
    assert app.phase is TrafficPhase.IDLE
    app.start(1.0)
    assert app.phase is TrafficPhase.IDLE
    assert scheduler.pending == 1


def test_exponential_on_fraction_converges():
    scheduler = EventScheduler()

    class NullTransport:
        def send(self, source_node, destination, size_bytes):
            pass

    # Packet interval of 1000s keeps the event count down to phase changes
    config = make_config(
        Exponential(1.0), Exponential(3.0), data_rate_bps=8.0, packet_size=1000
    )
    app = run_app(
        config,
        scheduler,
        NullTransport(),
        start=0.0,
        stop=20_000.0,
        rng=random.Random(2024),
    )

    stats = app.get_statistics()
    assert stats["on_time"] + stats["off_time"] == pytest.approx(20_000.0)
    assert stats["on_fraction"] == pytest.approx(1.0 / (1.0 + 3.0), abs=0.02)


def test_sources_keep_independent_state(scheduler, transport):
    cbr = OnOffApplication(
        make_config(Constant(1.0), Constant(0.0)), scheduler, transport, random.Random(1)
    )
    bursty = OnOffApplication(
        TrafficSourceConfig(
            source_node="sta1",
            destination=SERVER,
            data_rate_bps=8000.0,
            packet_size=100,
            on_time=Constant(1.0),
            off_time=Constant(1.0),
        ),
        scheduler,
        transport,
        random.Random(2),
    )
    for app in (cbr, bursty):
        app.start(0.0)
        app.stop(4.0)
    scheduler.run()

    assert cbr.state.packets_sent == 40
    assert bursty.state.packets_sent == 20
    by_node = {}
    for _, node, _, _ in transport.sent:
        by_node[node] = by_node.get(node, 0) + 1
    assert by_node == {"sta0": 40, "sta1": 20}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"packet_size": 0},
        {"packet_size": -10},
        {"data_rate_bps": 0.0},
        {"data_rate_bps": -1.0},
        {"data_rate_bps": float("nan")},
        {"data_rate_bps": float("inf")},
        {"max_bytes": -1},
    ],
)
def test_invalid_config_fails_fast(kwargs):
    with pytest.raises(ConfigurationError):
        make_config(Constant(1.0), Constant(0.0), **kwargs)


def test_all_zero_durations_rejected():
    with pytest.raises(ConfigurationError):
        make_config(Constant(0.0), Constant(0.0))


def test_unsupported_distribution_rejected():
    with pytest.raises(ConfigurationError):
        make_config(1.0, Constant(0.0))


def test_from_strings_rejects_bad_rate():
    with pytest.raises(ConfigurationError):
        TrafficSourceConfig.from_strings(
            source_node="sta0",
            destination=SERVER,
            data_rate="-10Mbps",
            packet_size=4096,
            on_time="constant:1",
            off_time="constant:0",
        )


@pytest.mark.parametrize(
    "on_time, off_time",
    [
        ("constant:inf", "constant:0"),
        ("exponential:nan", "constant:1"),
        ("constant:1", "ns3::ConstantRandomVariable[Constant=nan]"),
    ],
)
def test_non_finite_durations_fail_at_construction(on_time, off_time):
    with pytest.raises(ConfigurationError):
        TrafficSourceConfig.from_strings(
            source_node="sta0",
            destination=SERVER,
            data_rate="10Mbps",
            packet_size=4096,
            on_time=on_time,
            off_time=off_time,
        )
