"""patrol: Waypoint navigation agents for tick-driven simulations."""

from __future__ import annotations

__version__ = "0.1.0"
VERSION = __version__

# ---------------------------------------------------------------------------
# Core agent & navigation contract
# ---------------------------------------------------------------------------
from . import nav, runtime  # noqa: E402
from .nav import (  # noqa: E402
    AgentConfig,
    AgentPhase,
    KinematicNavService,
    MovementMode,
    NavigationAgent,
    NavigationService,
    PathHandle,
    PathStatus,
    RetryPolicy,
    Waypoint,
    WaypointSet,
)
from .runtime import Scenario, TickScheduler, load_scenario  # noqa: E402

__all__ = [
    "__version__",
    "VERSION",
    "nav",
    "runtime",
    "AgentConfig",
    "AgentPhase",
    "KinematicNavService",
    "MovementMode",
    "NavigationAgent",
    "NavigationService",
    "PathHandle",
    "PathStatus",
    "RetryPolicy",
    "Waypoint",
    "WaypointSet",
    "Scenario",
    "TickScheduler",
    "load_scenario",
]
