"""
patrol.nav.waypoints - Waypoints and the ordered set an agent traverses.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from .geometry import IDENTITY_ROTATION, Quat, Vec3, distance, is_finite, vec3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Waypoint:
    name: str
    position: Vec3
    rotation: Quat = IDENTITY_ROTATION

    @property
    def is_present(self) -> bool:
        """False once the waypoint no longer describes a real place."""
        return is_finite(self.position)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "position": list(self.position),
            "rotation": list(self.rotation),
        }

    @staticmethod
    def from_dict(d: dict[str, Any]) -> Waypoint:
        rotation = d.get("rotation")
        return Waypoint(
            name=str(d["name"]),
            position=vec3(d["position"]),
            rotation=tuple(float(c) for c in rotation) if rotation else IDENTITY_ROTATION,
        )


class WaypointSet:
    """
    Ordered, duplicate-free sequence of waypoints.

    Waypoints are immutable values, so a duplicate is any entry equal to one
    already held: same name, position and rotation. Two waypoints that share a
    position but differ in name are both kept.

    The set may be mutated at any time by code outside the agent; the agent
    only keeps indexes into it and re-derives them when the set changes.
    """

    def __init__(self, waypoints: Iterable[Waypoint | None] = (), name: str = "waypoints") -> None:
        self.name = name
        self._items: list[Waypoint | None] = list(waypoints)
        self.validate()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Waypoint]:
        return iter(list(self._items))  # type: ignore[arg-type]

    def __getitem__(self, index: int) -> Waypoint:
        return self._items[index]  # type: ignore[return-value]

    def __contains__(self, waypoint: object) -> bool:
        return waypoint in self._items

    def __repr__(self) -> str:
        names = ", ".join(w.name for w in self)
        return f"WaypointSet({self.name!r}, [{names}])"

    @property
    def is_empty(self) -> bool:
        return not self._items

    def index_of(self, waypoint: Waypoint | None) -> int | None:
        if waypoint is None:
            return None
        try:
            return self._items.index(waypoint)
        except ValueError:
            return None

    def add(self, waypoint: Waypoint | None) -> bool:
        if waypoint is None or waypoint in self._items:
            return False
        self._items.append(waypoint)
        self.validate()
        return True

    def remove(self, waypoint: Waypoint | None) -> bool:
        if waypoint is None or waypoint not in self._items:
            return False
        self._items.remove(waypoint)
        self.validate()
        return True

    def replace(self, index: int, waypoint: Waypoint) -> Waypoint:
        """Swap the waypoint at index for a new one, returning the old waypoint."""
        if not 0 <= index < len(self._items):
            raise IndexError(f"Waypoint index {index} out of range for {len(self._items)} waypoints")
        old = self._items[index]
        self._items[index] = waypoint
        self.validate()
        return old  # type: ignore[return-value]

    def set(self, waypoints: Iterable[Waypoint | None]) -> None:
        self._items = list(waypoints)
        self.validate()

    def clear(self) -> None:
        self.set(())

    def nearest_to(self, point: Vec3) -> int | None:
        """Index of the waypoint closest to point; the lowest index wins ties."""
        best_index: int | None = None
        best_distance = float("inf")
        for i, waypoint in enumerate(self):
            d = distance(point, waypoint.position)
            if d < best_distance:
                best_distance = d
                best_index = i
        return best_index

    def validate(self) -> int:
        """Drop missing, absent and duplicate entries. Returns how many were removed."""
        kept: list[Waypoint | None] = []
        for waypoint in self._items:
            if waypoint is None or not waypoint.is_present or waypoint in kept:
                continue
            kept.append(waypoint)

        removed = len(self._items) - len(kept)
        if removed:
            logger.debug("Dropped %d invalid waypoint entries from %s", removed, self.name)
        self._items = kept
        if not kept:
            logger.warning("No waypoints assigned to %s", self.name)
        return removed
