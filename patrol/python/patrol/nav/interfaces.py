"""
patrol.nav.interfaces - Navigation service protocol definitions.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from .geometry import Vec3, polyline_length


class PathStatus(enum.Enum):
    PENDING = "pending"
    COMPLETE = "complete"
    PARTIAL = "partial"
    INVALID = "invalid"


@dataclass(frozen=True)
class PathHandle:
    """A computed path: its corner points and how far it gets toward the destination."""

    status: PathStatus
    corners: tuple[Vec3, ...] = field(default_factory=tuple)

    @property
    def length(self) -> float:
        return polyline_length(self.corners)

    @property
    def end(self) -> Vec3 | None:
        return self.corners[-1] if self.corners else None


@runtime_checkable
class NavigationService(Protocol):
    """Path computation and locomotion over a traversable surface."""

    def resolve_on_surface(self, point: Vec3, snap_radius: float) -> Vec3 | None:
        """Return the closest surface point within snap_radius, or None if unresolved."""
        ...

    def compute_path(self, destination: Vec3) -> PathHandle | None:
        """Return a path from the current position, or None if blocked."""
        ...

    def move_to(self, destination: Vec3) -> None:
        """Start (or keep) moving toward destination."""
        ...

    def stop(self) -> None:
        """Cancel the current move and clear the path."""
        ...

    def remaining_distance(self) -> float: ...

    def current_velocity(self) -> Vec3: ...

    def has_pending_path(self) -> bool: ...

    def has_path(self) -> bool: ...

    def path_status(self) -> PathStatus: ...

    def position(self) -> Vec3: ...


@runtime_checkable
class TunableNavigation(Protocol):
    """Optional locomotion tuning a service may expose."""

    def set_speed(self, speed: float) -> None: ...

    def set_angular_speed(self, angular_speed: float) -> None: ...

    def set_acceleration(self, acceleration: float) -> None: ...

    def set_stopping_distance(self, distance: float) -> None: ...
