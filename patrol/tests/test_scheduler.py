"""Tests for patrol.runtime.scheduler - Cooperative tick scheduler."""

from __future__ import annotations

import logging

import pytest

from patrol.runtime.scheduler import TickScheduler


def test_ticks_run_in_registration_order() -> None:
    sched = TickScheduler()
    calls: list[str] = []
    sched.add_tick(lambda now: calls.append("service"))
    sched.add_tick(lambda now: calls.append("agent"))
    sched.step(0.1)
    assert calls == ["service", "agent"]


def test_tick_receives_advanced_clock() -> None:
    sched = TickScheduler(start_time=1.0)
    seen: list[float] = []
    sched.add_tick(seen.append)
    sched.step(0.5)
    assert seen == [1.5]
    assert sched.now == 1.5


def test_interval_timer_fires_once_per_interval() -> None:
    """A 0.5 s timer fires four times over two seconds of 0.1 s steps."""
    sched = TickScheduler()
    fired: list[float] = []
    timer = sched.every(0.5, fired.append)
    sched.advance(2.0, 0.1)
    assert len(fired) == 4
    assert timer.fire_count == 4


def test_timer_does_not_burst_after_long_step() -> None:
    sched = TickScheduler()
    fired: list[float] = []
    sched.every(0.5, fired.append)
    sched.step(3.0)
    sched.step(0.1)
    assert len(fired) == 1


def test_invalid_intervals() -> None:
    sched = TickScheduler()
    with pytest.raises(ValueError):
        sched.every(0, lambda now: None)
    with pytest.raises(ValueError):
        sched.step(-1.0)


def test_cancelled_registration_stops_running() -> None:
    sched = TickScheduler()
    calls: list[float] = []
    reg = sched.add_tick(calls.append)
    sched.step(0.1)
    reg.cancel()
    sched.step(0.1)
    assert len(calls) == 1
    assert sched.registrations == []


def test_remove() -> None:
    sched = TickScheduler()
    timer = sched.every(1.0, lambda now: None)
    assert sched.remove(timer) is True
    assert sched.remove(timer) is False


def test_callback_error_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    """One failing callback does not stop the rest of the tick."""
    sched = TickScheduler()
    calls: list[float] = []

    def broken(now: float) -> None:
        raise RuntimeError("boom")

    sched.add_tick(broken, name="broken")
    sched.add_tick(calls.append)
    with caplog.at_level(logging.ERROR):
        sched.step(0.1)
    assert len(calls) == 1
    assert "Error in scheduled callback broken" in caplog.text


def test_run_until_and_max_steps() -> None:
    sched = TickScheduler()
    assert sched.run(rate_hz=100, max_steps=7, realtime=False) == 7
    assert sched.now == pytest.approx(0.07)

    sched = TickScheduler()
    steps = sched.run(rate_hz=10, realtime=False, until=lambda: sched.now >= 1.0 - 1e-9)
    assert steps == 10


def test_stop_from_callback() -> None:
    sched = TickScheduler()
    sched.add_tick(lambda now: sched.stop() if sched.steps >= 2 else None)
    assert sched.run(rate_hz=50, max_steps=100, realtime=False) == 3
