"""
patrol.nav.kinematic - In-process navigation service on a flat surface.

Paths are straight segments clipped against the surface bounds and circular
obstacles; there is no search around obstacles. A clipped path is reported
as PARTIAL and the body stops at the clip point, which is exactly the
situation the agent's re-validation and stuck recovery are meant to handle.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .geometry import (
    ZERO,
    Vec3,
    add,
    distance,
    move_towards,
    scale,
    segment_circle_entry_xz,
    sub,
    vec3,
)
from .interfaces import PathHandle, PathStatus

logger = logging.getLogger(__name__)

# Clip points stop this far short of an obstacle boundary.
_CLEARANCE = 1e-3


@dataclass(frozen=True)
class Obstacle:
    center: tuple[float, float]  # (x, z)
    radius: float

    def contains(self, point: Vec3) -> bool:
        return math.hypot(point[0] - self.center[0], point[2] - self.center[1]) < self.radius


@dataclass(frozen=True)
class Surface:
    """Axis-aligned walkable rectangle on the xz plane at a fixed height."""

    min_xz: tuple[float, float] = (-50.0, -50.0)
    max_xz: tuple[float, float] = (50.0, 50.0)
    height: float = 0.0

    def clamp(self, point: Vec3) -> Vec3:
        x = min(max(point[0], self.min_xz[0]), self.max_xz[0])
        z = min(max(point[2], self.min_xz[1]), self.max_xz[1])
        return (x, self.height, z)


def _xz_distance(a: Vec3, b: Vec3) -> float:
    return math.hypot(a[0] - b[0], a[2] - b[2])


class KinematicNavService:
    """Point-mass locomotion along straight paths, ticked by the scheduler."""

    def __init__(
        self,
        start: Vec3 = ZERO,
        surface: Surface | None = None,
        obstacles: list[Obstacle] | tuple[Obstacle, ...] = (),
        speed: float = 3.5,
        acceleration: float = 8.0,
        angular_speed: float = 120.0,
        stopping_distance: float = 0.5,
        path_pending_ticks: int = 0,
    ) -> None:
        self.surface = surface or Surface()
        self.obstacles: list[Obstacle] = list(obstacles)
        self.speed = speed
        self.acceleration = acceleration
        self.angular_speed = angular_speed
        self.stopping_distance = stopping_distance
        self.path_pending_ticks = path_pending_ticks
        self.immobilized = False
        self.move_commands = 0
        self.stop_commands = 0

        self._position = self.surface.clamp(vec3(start))
        self._velocity: Vec3 = ZERO
        self._current_speed = 0.0
        self._destination: Vec3 | None = None
        self._path_end: Vec3 | None = None
        self._status = PathStatus.INVALID
        self._pending = 0
        self._last_tick: float | None = None

    # --- Path computation ---

    def resolve_on_surface(self, point: Vec3, snap_radius: float) -> Vec3 | None:
        snapped = self.surface.clamp(point)
        if distance(point, snapped) > snap_radius:
            return None
        if any(o.contains(snapped) for o in self.obstacles):
            return None
        return snapped

    def compute_path(self, destination: Vec3) -> PathHandle | None:
        start = self._position
        if any(o.contains(start) for o in self.obstacles):
            return None
        end = self.surface.clamp(destination)
        status = PathStatus.COMPLETE
        if _xz_distance(end, destination) > 1e-6:
            status = PathStatus.PARTIAL

        clip = self._first_obstacle_hit(start, end)
        if clip is not None:
            end = add(start, scale(sub(end, start), clip))
            status = PathStatus.PARTIAL
        return PathHandle(status=status, corners=(start, end))

    def _first_obstacle_hit(self, start: Vec3, end: Vec3) -> float | None:
        length = distance(start, end)
        hits = [
            t
            for o in self.obstacles
            if (t := segment_circle_entry_xz(start, end, o.center, o.radius)) is not None
        ]
        if not hits:
            return None
        t = min(hits)
        if length > 0 and t > 0:
            t = max(0.0, t - _CLEARANCE / length)
        return t

    # --- Commands ---

    def move_to(self, destination: Vec3) -> None:
        destination = vec3(destination)
        if self._destination == destination and self.has_path():
            return
        path = self.compute_path(destination)
        if path is None:
            logger.debug("No path from %s to %s", self._position, destination)
            self._clear()
            self._status = PathStatus.INVALID
            return
        self._destination = destination
        self._path_end = path.end
        self._status = path.status
        self._pending = self.path_pending_ticks
        self.move_commands += 1

    def stop(self) -> None:
        self.stop_commands += 1
        self._clear()

    def _clear(self) -> None:
        self._destination = None
        self._path_end = None
        self._velocity = ZERO
        self._current_speed = 0.0
        self._pending = 0

    def add_obstacle(self, obstacle: Obstacle) -> None:
        """Drop an obstacle into the world; a path that now crosses it turns PARTIAL."""
        self.obstacles.append(obstacle)
        if self._path_end is None or self._destination is None:
            return
        clip = self._first_obstacle_hit(self._position, self._path_end)
        if clip is not None:
            self._path_end = add(self._position, scale(sub(self._path_end, self._position), clip))
            self._status = PathStatus.PARTIAL

    def remove_obstacle(self, obstacle: Obstacle) -> bool:
        if obstacle not in self.obstacles:
            return False
        self.obstacles.remove(obstacle)
        return True

    # --- Tunable navigation ---

    def set_speed(self, speed: float) -> None:
        self.speed = speed

    def set_angular_speed(self, angular_speed: float) -> None:
        self.angular_speed = angular_speed

    def set_acceleration(self, acceleration: float) -> None:
        self.acceleration = acceleration

    def set_stopping_distance(self, distance: float) -> None:
        self.stopping_distance = distance

    # --- Queries ---

    def remaining_distance(self) -> float:
        if self._destination is None or self._path_end is None:
            return 0.0
        remaining = distance(self._position, self._path_end)
        if self._status is PathStatus.PARTIAL:
            remaining += _xz_distance(self._path_end, self._destination)
        return remaining

    def current_velocity(self) -> Vec3:
        return self._velocity

    def has_pending_path(self) -> bool:
        return self._pending > 0

    def has_path(self) -> bool:
        return self._destination is not None

    def path_status(self) -> PathStatus:
        if self._pending > 0:
            return PathStatus.PENDING
        return self._status

    def position(self) -> Vec3:
        return self._position

    @property
    def destination(self) -> Vec3 | None:
        return self._destination

    # --- Simulation ---

    def tick(self, now: float) -> None:
        dt = 0.0 if self._last_tick is None else now - self._last_tick
        self._last_tick = now
        self.step(dt)

    def step(self, dt: float) -> None:
        if self._pending > 0:
            self._pending -= 1
            self._velocity = ZERO
            return
        if self._path_end is None or dt <= 0 or self.immobilized:
            self._velocity = ZERO
            self._current_speed = 0.0
            return

        self._current_speed = min(self.speed, self._current_speed + self.acceleration * dt)
        new_position = move_towards(self._position, self._path_end, self._current_speed * dt)
        self._velocity = scale(sub(new_position, self._position), 1.0 / dt)
        self._position = new_position
        if self._position == self._path_end:
            self._current_speed = 0.0
