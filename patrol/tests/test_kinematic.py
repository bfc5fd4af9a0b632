"""Tests for patrol.nav.kinematic - Reference navigation service."""

from __future__ import annotations

import pytest

from patrol.nav.interfaces import NavigationService, PathStatus, TunableNavigation
from patrol.nav.kinematic import KinematicNavService, Obstacle, Surface


def _run(service: KinematicNavService, seconds: float, dt: float = 0.02) -> None:
    for _ in range(int(round(seconds / dt))):
        service.step(dt)


def test_satisfies_protocols() -> None:
    service = KinematicNavService()
    assert isinstance(service, NavigationService)
    assert isinstance(service, TunableNavigation)


# ---------------------------------------------------------------------------
# Surface resolution
# ---------------------------------------------------------------------------


def test_resolve_snaps_onto_surface() -> None:
    """Points above the surface drop to its height; far-off points fail."""
    service = KinematicNavService(surface=Surface(height=0.0))
    assert service.resolve_on_surface((1.0, 2.0, 1.0), 5.0) == (1.0, 0.0, 1.0)
    assert service.resolve_on_surface((1.0, 9.0, 1.0), 5.0) is None
    assert service.resolve_on_surface((60.0, 0.0, 0.0), 5.0) is None


def test_resolve_inside_obstacle_fails() -> None:
    service = KinematicNavService(obstacles=[Obstacle((5.0, 0.0), 1.0)])
    assert service.resolve_on_surface((5.0, 0.0, 0.0), 5.0) is None


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def test_clear_path_is_complete() -> None:
    service = KinematicNavService()
    path = service.compute_path((3.0, 0.0, 4.0))
    assert path is not None
    assert path.status is PathStatus.COMPLETE
    assert path.length == pytest.approx(5.0)


def test_obstacle_makes_path_partial() -> None:
    """A path through an obstacle stops short of it."""
    service = KinematicNavService(obstacles=[Obstacle((5.0, 0.0), 1.0)])
    path = service.compute_path((10.0, 0.0, 0.0))
    assert path.status is PathStatus.PARTIAL
    assert path.end[0] == pytest.approx(4.0, abs=1e-2)


def test_off_surface_destination_is_partial() -> None:
    service = KinematicNavService(surface=Surface(min_xz=(-5, -5), max_xz=(5, 5)))
    path = service.compute_path((10.0, 0.0, 0.0))
    assert path.status is PathStatus.PARTIAL
    assert path.end == (5.0, 0.0, 0.0)


def test_move_to_same_destination_is_idempotent() -> None:
    """Repeating move_to toward the current destination changes nothing."""
    service = KinematicNavService()
    service.move_to((10.0, 0.0, 0.0))
    _run(service, 0.5)
    position = service.position()
    service.move_to((10.0, 0.0, 0.0))
    assert service.move_commands == 1
    assert service.position() == position
    assert service.has_path()


# ---------------------------------------------------------------------------
# Motion
# ---------------------------------------------------------------------------


def test_reaches_destination() -> None:
    service = KinematicNavService(speed=4.0, acceleration=100.0)
    service.move_to((8.0, 0.0, 0.0))
    _run(service, 3.0)
    assert service.position() == (8.0, 0.0, 0.0)
    assert service.remaining_distance() == 0.0


def test_acceleration_ramps_speed() -> None:
    service = KinematicNavService(speed=3.5, acceleration=1.0)
    service.move_to((50.0, 0.0, 0.0))
    service.step(0.1)
    assert service.current_velocity()[0] == pytest.approx(0.1)


def test_stop_clears_path() -> None:
    service = KinematicNavService()
    service.move_to((8.0, 0.0, 0.0))
    service.step(0.1)
    service.stop()
    assert not service.has_path()
    assert service.current_velocity() == (0.0, 0.0, 0.0)
    assert service.remaining_distance() == 0.0


def test_pending_path_delays_motion() -> None:
    service = KinematicNavService(path_pending_ticks=2)
    service.move_to((8.0, 0.0, 0.0))
    assert service.has_pending_path()
    assert service.path_status() is PathStatus.PENDING
    service.step(0.1)
    service.step(0.1)
    assert service.position() == (0.0, 0.0, 0.0)
    assert service.path_status() is PathStatus.COMPLETE


def test_immobilized_body_does_not_move() -> None:
    service = KinematicNavService()
    service.immobilized = True
    service.move_to((8.0, 0.0, 0.0))
    _run(service, 1.0)
    assert service.position() == (0.0, 0.0, 0.0)
    assert service.remaining_distance() == pytest.approx(8.0)


def test_added_obstacle_truncates_current_path() -> None:
    """Dropping an obstacle in front of a moving body turns its path partial."""
    service = KinematicNavService()
    service.move_to((10.0, 0.0, 0.0))
    service.add_obstacle(Obstacle((6.0, 0.0), 1.0))
    assert service.path_status() is PathStatus.PARTIAL
    _run(service, 5.0)
    assert service.position()[0] == pytest.approx(5.0, abs=1e-2)
    assert service.remaining_distance() == pytest.approx(5.0, abs=1e-2)


def test_removed_obstacle_clears_the_way() -> None:
    """After removing the obstacle a fresh move reaches the destination."""
    crate = Obstacle((5.0, 0.0), 1.0)
    service = KinematicNavService(obstacles=[crate], acceleration=100.0)
    assert service.compute_path((10.0, 0.0, 0.0)).status is PathStatus.PARTIAL
    assert service.remove_obstacle(crate) is True
    assert service.remove_obstacle(crate) is False
    service.move_to((10.0, 0.0, 0.0))
    _run(service, 5.0)
    assert service.position() == (10.0, 0.0, 0.0)
