"""
patrol.runtime.scenario - YAML scenario files.

A scenario bundles a surface, its obstacles, a start position, the
waypoints and the agent configuration into one file:

    name: courtyard
    start: [0, 0, 0]
    surface: {min: [-20, -20], max: [20, 20], height: 0}
    obstacles:
      - {center: [5, 0], radius: 1.5}
    agent:
      movement_mode: ping_pong
      wait_time: 1.0
    waypoints:
      - {name: gate, position: [10, 0, 0]}
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from ..nav.agent import NavigationAgent
from ..nav.config import AgentConfig
from ..nav.geometry import ZERO, Vec3, vec3
from ..nav.kinematic import KinematicNavService, Obstacle, Surface
from ..nav.waypoints import Waypoint, WaypointSet


@dataclass
class Scenario:
    name: str
    agent: AgentConfig = field(default_factory=AgentConfig)
    start: Vec3 = ZERO
    surface: Surface = field(default_factory=Surface)
    obstacles: list[Obstacle] = field(default_factory=list)
    waypoints: list[Waypoint] = field(default_factory=list)
    path: Path | None = None

    def build_service(self) -> KinematicNavService:
        return KinematicNavService(
            start=self.start,
            surface=self.surface,
            obstacles=self.obstacles,
            speed=self.agent.move_speed,
            acceleration=self.agent.acceleration,
            angular_speed=self.agent.angular_speed,
            stopping_distance=self.agent.stopping_distance,
        )

    def build_agent(self, service: KinematicNavService | None = None) -> NavigationAgent:
        return NavigationAgent(
            service if service is not None else self.build_service(),
            WaypointSet(self.waypoints, name=f"{self.name}.waypoints"),
            AgentConfig.from_dict(self.agent.to_dict()),
            name=self.name,
        )

    def off_surface_waypoints(self, service: KinematicNavService | None = None) -> list[Waypoint]:
        """Waypoints that do not resolve onto the surface within the validation radius."""
        service = service or self.build_service()
        return [
            w
            for w in self.waypoints
            if service.resolve_on_surface(w.position, self.agent.validation_radius) is None
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "agent": self.agent.to_dict(),
            "start": list(self.start),
            "surface": {
                "min": list(self.surface.min_xz),
                "max": list(self.surface.max_xz),
                "height": self.surface.height,
            },
            "obstacles": [
                {"center": list(o.center), "radius": o.radius} for o in self.obstacles
            ],
            "waypoints": [w.to_dict() for w in self.waypoints],
        }


_ENV_PATTERN = re.compile(r"\$\{(\w+)(?::([^}]*))?\}")


def _substitute_env(value: str) -> str:
    """Substitute ${VAR} or ${VAR:default} patterns with environment variables."""

    def _replace(m: re.Match) -> str:
        default = m.group(2)
        return os.environ.get(m.group(1), default if default is not None else m.group(0))

    return _ENV_PATTERN.sub(_replace, value)


def _xz(value: Any, what: str) -> tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"{what} must be an [x, z] pair, got {value!r}")
    return (float(value[0]), float(value[1]))


def _parse_surface(data: Any) -> Surface:
    if data is None:
        return Surface()
    if not isinstance(data, dict):
        raise ValueError("surface must be a mapping")
    default = Surface()
    return Surface(
        min_xz=_xz(data["min"], "surface.min") if "min" in data else default.min_xz,
        max_xz=_xz(data["max"], "surface.max") if "max" in data else default.max_xz,
        height=float(data.get("height", default.height)),
    )


def _parse_obstacles(items: Any) -> list[Obstacle]:
    if not isinstance(items, list):
        raise ValueError("obstacles must be a list")
    obstacles = []
    for item in items:
        if not isinstance(item, dict) or "center" not in item or "radius" not in item:
            raise ValueError(f"obstacle needs center and radius: {item!r}")
        radius = float(item["radius"])
        if radius <= 0:
            raise ValueError(f"obstacle radius must be > 0, got {radius}")
        obstacles.append(Obstacle(center=_xz(item["center"], "obstacle.center"), radius=radius))
    return obstacles


def _parse_waypoints(items: Any) -> list[Waypoint]:
    if not isinstance(items, list):
        raise ValueError("waypoints must be a list")
    waypoints = []
    for i, item in enumerate(items):
        if not isinstance(item, dict) or "position" not in item:
            raise ValueError(f"waypoint {i} needs a position: {item!r}")
        item = {"name": f"waypoint_{i}", **item}
        try:
            waypoints.append(Waypoint.from_dict(item))
        except (TypeError, KeyError) as exc:
            raise ValueError(f"waypoint {i} is malformed: {exc}") from exc
    return waypoints


def load_scenario(path: str | Path) -> Scenario:
    """Load a scenario file. Raises ValueError on malformed content."""
    path = Path(path)
    try:
        data = yaml.safe_load(_substitute_env(path.read_text()))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Scenario file must be a mapping")

    agent = data.get("agent") or {}
    if not isinstance(agent, dict):
        raise ValueError("agent must be a mapping")

    try:
        return Scenario(
            name=str(data.get("name", path.stem)),
            agent=AgentConfig.from_dict(agent),
            start=vec3(data.get("start", ZERO)),
            surface=_parse_surface(data.get("surface")),
            obstacles=_parse_obstacles(data.get("obstacles", []) or []),
            waypoints=_parse_waypoints(data.get("waypoints", []) or []),
            path=path,
        )
    except (TypeError, AttributeError) as exc:
        raise ValueError(f"Malformed scenario {path}: {exc}") from exc
