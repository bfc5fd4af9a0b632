"""Waypoint navigation: agent state machine, traversal policies and the navigation contract."""

from .agent import AgentPhase, NavigationAgent
from .config import AgentConfig
from .events import AgentEvents, Event
from .interfaces import NavigationService, PathHandle, PathStatus, TunableNavigation
from .kinematic import KinematicNavService, Obstacle, Surface
from .recovery import RetryPolicy, StuckDetector
from .traversal import Direction, MovementMode, TraversalState, next_index
from .waypoints import Waypoint, WaypointSet

__all__ = [
    "NavigationAgent",
    "AgentPhase",
    "AgentConfig",
    "AgentEvents",
    "Event",
    "NavigationService",
    "TunableNavigation",
    "PathHandle",
    "PathStatus",
    "KinematicNavService",
    "Obstacle",
    "Surface",
    "RetryPolicy",
    "StuckDetector",
    "Direction",
    "MovementMode",
    "TraversalState",
    "next_index",
    "Waypoint",
    "WaypointSet",
]
