"""
patrol.nav.config - Agent configuration loading
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .recovery import RetryPolicy
from .traversal import MovementMode

_NON_NEGATIVE_FIELDS = (
    "move_speed",
    "angular_speed",
    "acceleration",
    "stopping_distance",
    "wait_time",
    "random_wait_time",
    "max_path_distance",
    "snap_radius",
    "validation_radius",
    "stuck_speed_threshold",
    "stuck_detection_time",
    "stuck_distance_margin",
    "blocked_retry_delay",
)


@dataclass
class AgentConfig:
    """
    Configuration for a waypoint agent.

    Attributes:
        move_speed: Cruise speed handed to the navigation service
        angular_speed: Turn rate in degrees per second
        acceleration: Linear acceleration
        stopping_distance: Radius around a target that counts as arrived
        movement_mode: Traversal order (loop, ping_pong, random, once, custom)
        move_on_start: Start moving as soon as the agent is initialized
        wait_time: Pause at each waypoint, in seconds
        pause_on_obstacle: Enable stuck detection and recovery
        randomize_waypoints: Replace wait_time with a uniform draw in [0, random_wait_time]
        random_wait_time: Upper bound of the randomized wait
        path_recalculation_time: Interval of the partial-path re-validation timer
        auto_repath: Run the re-validation timer at all
        max_path_distance: Longest path the agent accepts before treating it as blocked
        snap_radius: How far a waypoint may be pulled onto the surface
        validation_radius: Radius used when warning about off-surface waypoints
        stuck_speed_threshold: Speed below which the agent counts as not progressing
        stuck_detection_time: How long it must stay that slow before recovery
        stuck_distance_margin: Extra distance beyond stopping_distance required to be stuck
        blocked_retry_delay: Delay before retrying a waypoint whose path was rejected
        retry: Optional bounded retry/backoff; None keeps retrying forever
        seed: Seed for random mode and randomized waits
    """

    move_speed: float = 3.5
    angular_speed: float = 120.0
    acceleration: float = 8.0
    stopping_distance: float = 0.5
    movement_mode: MovementMode = MovementMode.LOOP
    move_on_start: bool = True
    wait_time: float = 0.0
    pause_on_obstacle: bool = True
    randomize_waypoints: bool = False
    random_wait_time: float = 2.0
    path_recalculation_time: float = 0.5
    auto_repath: bool = True
    max_path_distance: float = 100.0
    snap_radius: float = 5.0
    validation_radius: float = 2.0
    stuck_speed_threshold: float = 0.1
    stuck_detection_time: float = 0.5
    stuck_distance_margin: float = 1.0
    blocked_retry_delay: float = 0.5
    retry: RetryPolicy | None = None
    seed: int | None = None

    def __post_init__(self) -> None:
        self.movement_mode = MovementMode.parse(self.movement_mode)
        if isinstance(self.retry, dict):
            self.retry = RetryPolicy.from_dict(self.retry)
        for name in _NON_NEGATIVE_FIELDS:
            try:
                value = float(getattr(self, name))
            except (TypeError, ValueError) as exc:
                raise ValueError(f"{name} must be a number, got {getattr(self, name)!r}") from exc
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
            setattr(self, name, value)
        if self.path_recalculation_time <= 0:
            raise ValueError(
                f"path_recalculation_time must be > 0, got {self.path_recalculation_time}"
            )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AgentConfig:
        d = dict(d)
        retry = d.pop("retry", None)
        if retry is not None and not isinstance(retry, dict):
            raise ValueError(f"retry must be a mapping, got {type(retry).__name__}")
        valid_keys = cls.__dataclass_fields__.keys()
        filtered = {k: v for k, v in d.items() if k in valid_keys}
        return cls(retry=RetryPolicy.from_dict(retry) if retry else None, **filtered)

    @classmethod
    def from_yaml(cls, path: str | Path) -> AgentConfig:
        import yaml  # type: ignore[import-untyped]

        path = Path(path)
        if not path.exists():
            for search_path in _get_config_search_paths():
                full_path = search_path / path
                if full_path.exists():
                    path = full_path
                    break
            else:
                raise FileNotFoundError(f"Config not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Agent config must be a mapping: {path}")
        # Scenario files nest the agent settings under "agent".
        if isinstance(data.get("agent"), dict):
            data = data["agent"]
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "move_speed": self.move_speed,
            "angular_speed": self.angular_speed,
            "acceleration": self.acceleration,
            "stopping_distance": self.stopping_distance,
            "movement_mode": self.movement_mode.value,
            "move_on_start": self.move_on_start,
            "wait_time": self.wait_time,
            "pause_on_obstacle": self.pause_on_obstacle,
            "randomize_waypoints": self.randomize_waypoints,
            "random_wait_time": self.random_wait_time,
            "path_recalculation_time": self.path_recalculation_time,
            "auto_repath": self.auto_repath,
            "max_path_distance": self.max_path_distance,
            "snap_radius": self.snap_radius,
            "validation_radius": self.validation_radius,
            "stuck_speed_threshold": self.stuck_speed_threshold,
            "stuck_detection_time": self.stuck_detection_time,
            "stuck_distance_margin": self.stuck_distance_margin,
            "blocked_retry_delay": self.blocked_retry_delay,
            "retry": self.retry.to_dict() if self.retry else None,
            "seed": self.seed,
        }


def _get_config_search_paths() -> list[Path]:
    paths = [Path.cwd()]
    package_dir = Path(__file__).parent.parent.parent.parent
    paths.append(package_dir / "examples")
    if "PATROL_CONFIG_DIR" in os.environ:
        paths.append(Path(os.environ["PATROL_CONFIG_DIR"]))
    return paths
