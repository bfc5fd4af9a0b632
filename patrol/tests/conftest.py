"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from patrol.nav.agent import NavigationAgent
from patrol.nav.config import AgentConfig
from patrol.nav.geometry import ZERO, Vec3, distance
from patrol.nav.interfaces import PathHandle, PathStatus
from patrol.nav.waypoints import Waypoint

# ---------------------------------------------------------------------------
# Scripted navigation service
# ---------------------------------------------------------------------------


class FakeNavigationService:
    """Navigation service whose progress is driven by the test.

    ``move_to`` starts a "walk" toward the destination at ``speed``; nothing
    moves until the test calls ``arrive()`` or edits ``remaining`` directly.
    """

    def __init__(self, position: Vec3 = ZERO) -> None:
        self.pos = position
        self.destination: Vec3 | None = None
        self.remaining = 0.0
        self.velocity: Vec3 = ZERO
        self.speed = 1.0
        self.pending = False
        self.status = PathStatus.INVALID
        self.move_status = PathStatus.COMPLETE
        self.no_path = False
        self.resolvable = True
        self.move_calls: list[Vec3] = []
        self.stop_calls = 0
        self.tuning: dict[str, float] = {}

    def resolve_on_surface(self, point: Vec3, snap_radius: float) -> Vec3 | None:
        return point if self.resolvable else None

    def compute_path(self, destination: Vec3) -> PathHandle | None:
        if self.no_path:
            return None
        return PathHandle(status=self.move_status, corners=(self.pos, destination))

    def move_to(self, destination: Vec3) -> None:
        self.move_calls.append(destination)
        self.destination = destination
        self.remaining = distance(self.pos, destination)
        self.velocity = (self.speed, 0.0, 0.0)
        self.status = self.move_status

    def stop(self) -> None:
        self.stop_calls += 1
        self.destination = None
        self.remaining = 0.0
        self.velocity = ZERO

    def arrive(self) -> None:
        assert self.destination is not None
        self.pos = self.destination
        self.remaining = 0.0
        self.velocity = ZERO

    def remaining_distance(self) -> float:
        return self.remaining

    def current_velocity(self) -> Vec3:
        return self.velocity

    def has_pending_path(self) -> bool:
        return self.pending

    def has_path(self) -> bool:
        return self.destination is not None

    def path_status(self) -> PathStatus:
        return PathStatus.PENDING if self.pending else self.status

    def position(self) -> Vec3:
        return self.pos

    def set_speed(self, speed: float) -> None:
        self.tuning["speed"] = speed

    def set_angular_speed(self, angular_speed: float) -> None:
        self.tuning["angular_speed"] = angular_speed

    def set_acceleration(self, acceleration: float) -> None:
        self.tuning["acceleration"] = acceleration

    def set_stopping_distance(self, distance: float) -> None:
        self.tuning["stopping_distance"] = distance


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_service() -> FakeNavigationService:
    return FakeNavigationService()


@pytest.fixture
def abc() -> list[Waypoint]:
    """Three waypoints ten metres apart along x, starting at the origin."""
    return [
        Waypoint("A", (0.0, 0.0, 0.0)),
        Waypoint("B", (10.0, 0.0, 0.0)),
        Waypoint("C", (20.0, 0.0, 0.0)),
    ]


@pytest.fixture
def make_agent(fake_service: FakeNavigationService) -> Callable[..., NavigationAgent]:
    """Build and initialize an agent on the fake service; kwargs go to AgentConfig."""

    def _make(waypoints, **config) -> NavigationAgent:
        agent = NavigationAgent(fake_service, waypoints, AgentConfig(**config), name="test")
        agent.initialize()
        return agent

    return _make
