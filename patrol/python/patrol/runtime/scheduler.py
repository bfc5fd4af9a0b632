"""
patrol.runtime.scheduler - Cooperative single-thread tick scheduler.

Every step advances a simulated clock, runs the per-tick callbacks in
registration order, then fires the interval timers that have come due.
Nothing blocks: waits are deadlines checked against ``now``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

# Tolerance for accumulated float error in the simulated clock.
_EPSILON = 1e-9

TickCallback = Callable[[float], Any]


class Registration:
    """Handle for a tick callback or timer; cancel() detaches it."""

    def __init__(self, callback: TickCallback, name: str) -> None:
        self.callback = callback
        self.name = name
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"{type(self).__name__}({self.name!r}, {state})"


class IntervalTimer(Registration):
    """Fires at most once per step, every ``interval_s`` of scheduler time."""

    def __init__(self, callback: TickCallback, name: str, interval_s: float, next_due: float):
        super().__init__(callback, name)
        self.interval_s = interval_s
        self.next_due = next_due
        self.fire_count = 0

    def due(self, now: float) -> bool:
        return not self.cancelled and now >= self.next_due - _EPSILON

    def reschedule(self, now: float) -> None:
        self.next_due += self.interval_s
        # No burst catch-up after a long step.
        if self.next_due <= now + _EPSILON:
            self.next_due = now + self.interval_s


class TickScheduler:
    """Drives any number of agents and services from one loop."""

    def __init__(self, start_time: float = 0.0) -> None:
        self._now = float(start_time)
        self._ticks: list[Registration] = []
        self._timers: list[IntervalTimer] = []
        self._steps = 0
        self._running = False

    @property
    def now(self) -> float:
        return self._now

    @property
    def steps(self) -> int:
        return self._steps

    @property
    def registrations(self) -> list[Registration]:
        return [r for r in (*self._ticks, *self._timers) if not r.cancelled]

    def add_tick(self, callback: TickCallback, name: str | None = None) -> Registration:
        reg = Registration(callback, name or getattr(callback, "__qualname__", "tick"))
        self._ticks.append(reg)
        return reg

    def every(
        self,
        interval_s: float,
        callback: TickCallback,
        name: str | None = None,
    ) -> IntervalTimer:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be > 0, got {interval_s}")
        timer = IntervalTimer(
            callback,
            name or getattr(callback, "__qualname__", "timer"),
            interval_s,
            self._now + interval_s,
        )
        self._timers.append(timer)
        return timer

    def remove(self, registration: Registration) -> bool:
        registration.cancel()
        before = len(self._ticks) + len(self._timers)
        self._ticks = [r for r in self._ticks if r is not registration]
        self._timers = [t for t in self._timers if t is not registration]
        return len(self._ticks) + len(self._timers) != before

    def _invoke(self, reg: Registration) -> None:
        try:
            reg.callback(self._now)
        except Exception:
            logger.exception("Error in scheduled callback %s", reg.name)

    def step(self, dt: float) -> float:
        """Advance the clock by dt and run one tick. Returns the new time."""
        if dt < 0:
            raise ValueError(f"dt must be >= 0, got {dt}")
        self._now += dt

        for reg in tuple(self._ticks):
            if not reg.cancelled:
                self._invoke(reg)

        for timer in tuple(self._timers):
            if timer.due(self._now):
                timer.fire_count += 1
                self._invoke(timer)
                timer.reschedule(self._now)

        self._ticks = [r for r in self._ticks if not r.cancelled]
        self._timers = [t for t in self._timers if not t.cancelled]
        self._steps += 1
        return self._now

    def advance(self, duration_s: float, dt: float) -> int:
        """Step repeatedly with a fixed dt until duration_s of scheduler time has passed."""
        if dt <= 0:
            raise ValueError(f"dt must be > 0, got {dt}")
        steps = 0
        end = self._now + duration_s - _EPSILON
        while self._now < end:
            self.step(dt)
            steps += 1
        return steps

    def stop(self) -> None:
        self._running = False

    def run(
        self,
        rate_hz: float = 50.0,
        max_steps: int | None = None,
        realtime: bool = True,
        until: Callable[[], bool] | None = None,
    ) -> int:
        """
        Tick at rate_hz until stop(), ``until()`` returns True or max_steps is reached.

        With realtime=False the loop never sleeps; scheduler time still
        advances by 1/rate_hz per step.
        """
        period = 1.0 / max(rate_hz, 1.0)
        self._running = True
        steps = 0
        try:
            while self._running:
                t0 = time.perf_counter()
                self.step(period)
                steps += 1
                if until is not None and until():
                    break
                if max_steps is not None and steps >= max_steps:
                    break
                if realtime:
                    elapsed = time.perf_counter() - t0
                    if elapsed < period:
                        time.sleep(period - elapsed)
        finally:
            self._running = False
        return steps
