"""
patrol.nav.agent - Waypoint-following navigation agent.

Phases: IDLE -> MOVING -> WAITING -> MOVING ... with PAUSED, STUCK and DONE
(terminal, ONCE mode only) on the side. The agent never blocks: every
suspension (waiting at a waypoint, stuck window, retry delay) is a deadline
checked in ``tick()``, and a separate interval timer re-validates partial
paths while MOVING.
"""

from __future__ import annotations

import enum
import logging
import random
from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .config import AgentConfig
from .events import AgentEvents
from .geometry import Vec3, magnitude
from .interfaces import NavigationService, PathStatus, TunableNavigation
from .recovery import StuckDetector
from .traversal import MovementMode, TraversalState
from .waypoints import Waypoint, WaypointSet

if TYPE_CHECKING:
    from ..runtime.scheduler import Registration, TickScheduler

logger = logging.getLogger(__name__)


class AgentPhase(enum.Enum):
    IDLE = "idle"
    MOVING = "moving"
    WAITING = "waiting"
    PAUSED = "paused"
    STUCK = "stuck"
    DONE = "done"


# Valid phase changes: from_phase -> allowed to_phases
_TRANSITIONS: dict[AgentPhase, frozenset[AgentPhase]] = {
    AgentPhase.IDLE: frozenset({AgentPhase.MOVING, AgentPhase.STUCK, AgentPhase.DONE}),
    AgentPhase.MOVING: frozenset(
        {AgentPhase.WAITING, AgentPhase.STUCK, AgentPhase.PAUSED, AgentPhase.IDLE, AgentPhase.DONE}
    ),
    AgentPhase.WAITING: frozenset(
        {AgentPhase.MOVING, AgentPhase.STUCK, AgentPhase.PAUSED, AgentPhase.IDLE, AgentPhase.DONE}
    ),
    AgentPhase.STUCK: frozenset(
        {AgentPhase.MOVING, AgentPhase.PAUSED, AgentPhase.IDLE, AgentPhase.DONE}
    ),
    AgentPhase.PAUSED: frozenset(
        {AgentPhase.MOVING, AgentPhase.WAITING, AgentPhase.STUCK, AgentPhase.IDLE}
    ),
    AgentPhase.DONE: frozenset({AgentPhase.MOVING, AgentPhase.STUCK, AgentPhase.IDLE}),
}

_ACTIVE_PHASES = frozenset({AgentPhase.MOVING, AgentPhase.WAITING, AgentPhase.STUCK})


class NavigationAgent:
    """
    Drives a NavigationService through a WaypointSet.

    The waypoint set is shared: callers may add or remove waypoints at any
    time and the agent re-derives its index on the next update. Events are
    exposed on ``agent.events``.

    Example:
        >>> agent = NavigationAgent(service, [a, b, c], AgentConfig(movement_mode="ping_pong"))
        >>> agent.events.waypoint_reached.subscribe(print)
        >>> agent.attach(scheduler)
    """

    def __init__(
        self,
        service: NavigationService | None,
        waypoints: WaypointSet | Iterable[Waypoint | None] | None = None,
        config: AgentConfig | None = None,
        *,
        name: str = "agent",
        rng: random.Random | None = None,
    ) -> None:
        self.name = name
        self.config = config or AgentConfig()
        if isinstance(waypoints, WaypointSet):
            self.waypoints = waypoints
        else:
            self.waypoints = WaypointSet(waypoints or (), name=f"{name}.waypoints")
        self.events = AgentEvents()

        self._service = service
        self._has_navigation = service is not None and isinstance(service, NavigationService)
        self._tunable = self._has_navigation and isinstance(service, TunableNavigation)
        self._rng = rng or random.Random(self.config.seed)

        self._traversal = TraversalState(mode=self.config.movement_mode)
        self._phase = AgentPhase.IDLE
        self._active_target: Waypoint | None = None
        self._destination: Vec3 | None = None
        self._path_valid = False

        self._now = 0.0
        self._wait_until: float | None = None
        self._wait_remaining: float | None = None
        self._paused_from: AgentPhase | None = None
        self._retry_at: float | None = None
        self._last_remaining = 0.0

        self._stuck = StuckDetector(
            speed_threshold=self.config.stuck_speed_threshold,
            window_s=self.config.stuck_detection_time,
            distance_margin=self.config.stuck_distance_margin,
        )
        self._stuck_window = self.config.stuck_detection_time
        self._attempts = 0
        self._stuck_count = 0
        self._repath_count = 0

        self._initialized = False
        self._registrations: list[Registration] = []
        self._history: deque[tuple[AgentPhase, AgentPhase, float]] = deque(maxlen=50)

    def __repr__(self) -> str:
        return (
            f"NavigationAgent({self.name!r}, phase={self._phase.value}, "
            f"index={self._traversal.current_index}, waypoints={len(self.waypoints)})"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """One-time setup: capability checks, service tuning, waypoint validation."""
        if self._initialized:
            return
        self._initialized = True

        if not self._has_navigation:
            logger.warning(
                "%s: no navigation service available (got %r); agent stays idle",
                self.name,
                type(self._service).__name__,
            )
            return

        self._apply_tuning()
        self.waypoints.validate()
        self._warn_off_surface()

        if self.config.move_on_start and len(self.waypoints) > 0:
            self.start_movement()

    def attach(self, scheduler: TickScheduler) -> NavigationAgent:
        """Register the per-tick update and the path re-validation timer, then initialize."""
        self._now = scheduler.now
        self._registrations.append(scheduler.add_tick(self.tick, name=f"{self.name}.tick"))
        if self.config.auto_repath:
            self._registrations.append(
                scheduler.every(
                    self.config.path_recalculation_time,
                    self.check_path,
                    name=f"{self.name}.check_path",
                )
            )
        self.initialize()
        return self

    def close(self) -> None:
        """Stop moving and release scheduler registrations."""
        self.stop_movement()
        for reg in self._registrations:
            reg.cancel()
        self._registrations.clear()

    def __enter__(self) -> NavigationAgent:
        self.initialize()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _apply_tuning(self) -> None:
        if not self._tunable:
            logger.debug("%s: navigation service exposes no tuning; using its defaults", self.name)
            return
        self._service.set_speed(self.config.move_speed)
        self._service.set_angular_speed(self.config.angular_speed)
        self._service.set_acceleration(self.config.acceleration)
        self._service.set_stopping_distance(self.config.stopping_distance)

    def _warn_off_surface(self) -> None:
        for i, waypoint in enumerate(self.waypoints):
            resolved = self._service.resolve_on_surface(
                waypoint.position, self.config.validation_radius
            )
            if resolved is None:
                logger.warning(
                    "%s: waypoint %d (%s) is not on or near the traversable surface",
                    self.name,
                    i,
                    waypoint.name,
                )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def phase(self) -> AgentPhase:
        return self._phase

    @property
    def is_moving(self) -> bool:
        return self._phase in (AgentPhase.MOVING, AgentPhase.STUCK)

    @property
    def is_waiting(self) -> bool:
        return self._phase is AgentPhase.WAITING

    @property
    def is_paused(self) -> bool:
        return self._phase is AgentPhase.PAUSED

    @property
    def is_done(self) -> bool:
        return self._phase is AgentPhase.DONE

    @property
    def current_waypoint_index(self) -> int:
        return self._traversal.current_index

    @property
    def current_waypoint(self) -> Waypoint | None:
        index = self._traversal.current_index
        if 0 <= index < len(self.waypoints):
            return self.waypoints[index]
        return None

    @property
    def active_target(self) -> Waypoint | None:
        return self._active_target

    @property
    def destination(self) -> Vec3 | None:
        return self._destination

    @property
    def waypoint_count(self) -> int:
        return len(self.waypoints)

    @property
    def movement_mode(self) -> MovementMode:
        return self._traversal.mode

    @property
    def remaining_distance(self) -> float:
        if self._phase is AgentPhase.PAUSED or not self._has_navigation:
            return self._last_remaining
        return self._service.remaining_distance()

    @property
    def has_path(self) -> bool:
        return self._has_navigation and self._service.has_path()

    @property
    def path_status(self) -> PathStatus:
        if not self._has_navigation:
            return PathStatus.INVALID
        return self._service.path_status()

    @property
    def path_valid(self) -> bool:
        return self._path_valid

    @property
    def stuck_count(self) -> int:
        return self._stuck_count

    @property
    def repath_count(self) -> int:
        return self._repath_count

    @property
    def transition_history(self) -> list[tuple[AgentPhase, AgentPhase, float]]:
        return list(self._history)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start_movement(self) -> bool:
        if not self._has_navigation:
            logger.warning("%s: cannot start without a navigation service", self.name)
            return False
        self.waypoints.validate()
        count = len(self.waypoints)
        if count == 0:
            logger.warning("%s: cannot start without waypoints", self.name)
            return False

        if self._phase is AgentPhase.PAUSED:
            return self.resume_movement()
        if self._phase in _ACTIVE_PHASES:
            return True

        self._traversal.mode = self.config.movement_mode
        if self._phase is AgentPhase.DONE or self._traversal.current_index >= count:
            self._traversal.reset()
        self._sync_index()

        nxt = self._traversal.advance(count, self._rng)
        if nxt is None:
            self._complete()
            return True
        self._issue_move(nxt)
        return True

    def stop_movement(self) -> None:
        if self._has_navigation:
            self._service.stop()
        self._active_target = None
        self._destination = None
        self._path_valid = False
        self._wait_until = None
        self._wait_remaining = None
        self._paused_from = None
        self._retry_at = None
        self._attempts = 0
        self._stuck.reset()
        self._transition(AgentPhase.IDLE)

    def pause_movement(self) -> bool:
        if self._phase not in _ACTIVE_PHASES:
            logger.debug("%s: nothing to pause in phase %s", self.name, self._phase.value)
            return False
        if self._phase is AgentPhase.WAITING:
            self._wait_remaining = max(0.0, (self._wait_until or self._now) - self._now)
        else:
            self._last_remaining = self._service.remaining_distance()
        self._paused_from = self._phase
        self._service.stop()
        self._stuck.reset()
        self._retry_at = None
        self._transition(AgentPhase.PAUSED)
        return True

    def resume_movement(self) -> bool:
        if self._phase is not AgentPhase.PAUSED:
            return False
        paused_from = self._paused_from
        self._paused_from = None

        if paused_from is AgentPhase.WAITING:
            self._wait_until = self._now + (self._wait_remaining or 0.0)
            self._wait_remaining = None
            self._transition(AgentPhase.WAITING)
            return True

        if self._active_target is None or self._destination is None:
            self._transition(AgentPhase.IDLE)
            return self.start_movement()

        if paused_from is AgentPhase.STUCK:
            # Back to STUCK first so a removed target can advance or complete from there.
            self._transition(AgentPhase.STUCK)
            self._retry()
            return True

        self._service.move_to(self._destination)
        self._stuck.reset()
        self._transition(AgentPhase.MOVING)
        return True

    def go_to_waypoint(self, index: int) -> bool:
        if not self._has_navigation:
            logger.warning("%s: cannot move without a navigation service", self.name)
            return False
        count = len(self.waypoints)
        if not 0 <= index < count:
            logger.warning(
                "%s: waypoint index %d out of range (%d waypoints)", self.name, index, count
            )
            return False
        if self._phase is AgentPhase.DONE:
            logger.warning("%s: route complete; call start_movement() first", self.name)
            return False

        if self._phase is AgentPhase.PAUSED:
            # Takes effect on resume.
            waypoint = self.waypoints[index]
            self._traversal.current_index = index
            self._active_target = waypoint
            self._destination = self._resolve(waypoint)
            self._paused_from = AgentPhase.MOVING
            self._wait_remaining = None
            return True

        self._wait_until = None
        self._retry_at = None
        self._issue_move(index)
        return True

    def go_to_nearest_waypoint(self) -> bool:
        if not self._has_navigation or len(self.waypoints) == 0:
            return False
        index = self.waypoints.nearest_to(self._service.position())
        if index is None:
            return False
        return self.go_to_waypoint(index)

    def set_waypoints(self, waypoints: Iterable[Waypoint | None]) -> None:
        self.waypoints.set(waypoints)
        self._sync_index()

    def add_waypoint(self, waypoint: Waypoint | None) -> bool:
        return self.waypoints.add(waypoint)

    def remove_waypoint(self, waypoint: Waypoint | None) -> bool:
        removed = self.waypoints.remove(waypoint)
        if removed:
            self._sync_index()
        return removed

    def set_move_speed(self, speed: float) -> None:
        if speed < 0:
            raise ValueError(f"move speed must be >= 0, got {speed}")
        self.config.move_speed = float(speed)
        if self._tunable:
            self._service.set_speed(self.config.move_speed)

    def set_stopping_distance(self, distance: float) -> None:
        if distance < 0:
            raise ValueError(f"stopping distance must be >= 0, got {distance}")
        self.config.stopping_distance = float(distance)
        if self._tunable:
            self._service.set_stopping_distance(self.config.stopping_distance)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def tick(self, now: float) -> None:
        """Advance the state machine; called once per scheduler tick."""
        self._now = now
        if not self._has_navigation:
            return

        if self._phase is AgentPhase.MOVING:
            self._tick_moving(now)
        elif self._phase is AgentPhase.WAITING:
            if self._wait_until is None or now >= self._wait_until:
                self._advance()
        elif self._phase is AgentPhase.STUCK:
            if self._retry_at is not None and now >= self._retry_at:
                self._retry()

    def check_path(self, now: float) -> None:
        """Re-validation timer: reissue the move when the active path went partial."""
        self._now = now
        if not self.config.auto_repath or self._phase is not AgentPhase.MOVING:
            return
        service = self._service
        if service.has_pending_path() or not service.has_path():
            return
        if service.path_status() is not PathStatus.PARTIAL:
            return

        logger.warning(
            "%s: path to %s partially blocked, recalculating",
            self.name,
            self._active_target.name if self._active_target else "?",
        )
        self._repath_count += 1
        service.stop()
        service.move_to(self._destination)
        self._path_valid = service.path_status() is PathStatus.COMPLETE

    def _tick_moving(self, now: float) -> None:
        service = self._service
        if service.has_pending_path():
            return
        if not service.has_path():
            self._reject_attempt("navigation service dropped the path")
            return

        remaining = service.remaining_distance()
        self._last_remaining = remaining
        if remaining <= self.config.stopping_distance:
            self._arrive(now)
            return

        if self.config.pause_on_obstacle:
            speed = magnitude(service.current_velocity())
            if self._stuck.update(
                now,
                speed,
                remaining,
                self.config.stopping_distance,
                window_s=self._stuck_window,
            ):
                self._handle_stuck(remaining)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, phase: AgentPhase) -> bool:
        current = self._phase
        if phase is current:
            return True
        if phase not in _TRANSITIONS[current]:
            logger.warning(
                "%s: invalid transition %s -> %s", self.name, current.value, phase.value
            )
            return False
        self._phase = phase
        self._history.append((current, phase, self._now))
        logger.debug("%s: %s -> %s", self.name, current.value, phase.value)
        return True

    def _resolve(self, waypoint: Waypoint) -> Vec3:
        resolved = self._service.resolve_on_surface(waypoint.position, self.config.snap_radius)
        if resolved is None:
            logger.debug(
                "%s: %s not resolvable on the surface; using its raw position",
                self.name,
                waypoint.name,
            )
            return waypoint.position
        return resolved

    def _sync_index(self) -> None:
        """Point the traversal index back at the active waypoint, or clamp it into range."""
        if self._phase is AgentPhase.DONE:
            return
        index = self.waypoints.index_of(self._active_target)
        if index is not None:
            self._traversal.current_index = index
        else:
            self._traversal.clamp(len(self.waypoints))

    def _issue_move(self, index: int) -> bool:
        """One movement attempt toward waypoint ``index``: resolve, compute, guard, move."""
        waypoint = self.waypoints[index]
        self._traversal.current_index = index
        if waypoint != self._active_target:
            self._attempts = 0
            self._stuck_window = self.config.stuck_detection_time
        self._active_target = waypoint
        self._destination = self._resolve(waypoint)
        self._retry_at = None
        self._wait_until = None

        path = self._service.compute_path(self._destination)
        if path is None or path.status is PathStatus.INVALID:
            self._reject_attempt(f"no path to {waypoint.name}")
            return False
        if path.length > self.config.max_path_distance:
            self._reject_attempt(
                f"path to {waypoint.name} is too long: {path.length:.1f} > "
                f"{self.config.max_path_distance:.1f}"
            )
            return False

        self._service.move_to(self._destination)
        self._path_valid = True
        self._stuck.reset()
        self._transition(AgentPhase.MOVING)
        logger.debug("%s: heading to waypoint %d (%s)", self.name, index, waypoint.name)
        self.events.path_found.emit()
        return True

    def _next_retry_delay(self, base: float) -> float | None:
        """Delay before the next attempt on the active target, or None once retries are spent."""
        policy = self.config.retry
        if policy is None:
            return base
        delay = policy.delay_for(self._attempts - 1)
        if delay is None:
            return None
        return max(base, delay)

    def _reject_attempt(self, reason: str) -> None:
        self._attempts += 1
        self._path_valid = False
        logger.warning("%s: %s (attempt %d)", self.name, reason, self._attempts)
        self._transition(AgentPhase.STUCK)
        self.events.path_blocked.emit()
        if self._phase is not AgentPhase.STUCK:
            return  # a listener took over

        delay = self._next_retry_delay(self.config.blocked_retry_delay)
        if delay is None:
            self._give_up()
            return
        self._retry_at = self._now + delay

    def _handle_stuck(self, remaining: float) -> None:
        self._attempts += 1
        self._stuck_count += 1
        logger.warning(
            "%s: possibly stuck %.2f from %s, recalculating path (attempt %d)",
            self.name,
            remaining,
            self._active_target.name if self._active_target else "?",
            self._attempts,
        )
        self._transition(AgentPhase.STUCK)
        self.events.path_blocked.emit()
        if self._phase is not AgentPhase.STUCK:
            return

        delay = self._next_retry_delay(self.config.stuck_detection_time)
        if delay is None:
            self._give_up()
            return

        # Optimistic recovery: clear, recompute toward the same destination, keep moving.
        self._service.stop()
        self._service.move_to(self._destination)
        self._stuck_window = delay
        self._stuck.reset()
        self._transition(AgentPhase.MOVING)

    def _retry(self) -> None:
        self._retry_at = None
        index = self.waypoints.index_of(self._active_target)
        if index is None:
            logger.info("%s: blocked waypoint was removed; moving on", self.name)
            self._advance()
            return
        self._issue_move(index)

    def _give_up(self) -> None:
        logger.error(
            "%s: giving up on %s after %d attempts",
            self.name,
            self._active_target.name if self._active_target else "waypoint",
            self._attempts,
        )
        self.stop_movement()

    def _sample_wait(self) -> float:
        if self.config.randomize_waypoints:
            return self._rng.uniform(0.0, self.config.random_wait_time)
        return self.config.wait_time

    def _arrive(self, now: float) -> None:
        index = self.waypoints.index_of(self._active_target)
        if index is None:
            index = self._traversal.current_index
        else:
            self._traversal.current_index = index
        self._attempts = 0
        self._path_valid = False

        wait = self._sample_wait()
        self._wait_until = now + wait
        if wait > 0:
            self._service.stop()
        self._transition(AgentPhase.WAITING)
        self.events.waypoint_reached.emit(index)

        if self._phase is AgentPhase.WAITING and wait <= 0:
            self._advance()

    def _advance(self) -> None:
        """Pick the next target per the traversal policy and start moving to it."""
        self._wait_until = None
        count = len(self.waypoints)
        if count == 0:
            logger.warning("%s: waypoint set is empty; stopping", self.name)
            self.stop_movement()
            return

        self._sync_index()
        if self._traversal.mode is MovementMode.CUSTOM:
            # Hold position until go_to_waypoint() picks the next one.
            self._transition(AgentPhase.IDLE)
            return

        nxt = self._traversal.advance(count, self._rng)
        if nxt is None:
            self._complete()
            return
        self._issue_move(nxt)

    def _complete(self) -> None:
        self._service.stop()
        self._active_target = None
        self._destination = None
        self._path_valid = False
        self._transition(AgentPhase.DONE)
        logger.info("%s: route complete", self.name)
        self.events.movement_complete.emit()
