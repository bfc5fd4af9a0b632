"""
patrol.nav.recovery - Stuck detection and retry spacing for blocked paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class StuckDetector:
    """
    Flags an agent that crawls below a speed threshold for a whole time window
    while still clearly short of its target.
    """

    def __init__(
        self,
        speed_threshold: float = 0.1,
        window_s: float = 0.5,
        distance_margin: float = 1.0,
    ) -> None:
        self.speed_threshold = speed_threshold
        self.window_s = window_s
        self.distance_margin = distance_margin
        self._slow_since: float | None = None

    @property
    def slow_since(self) -> float | None:
        return self._slow_since

    def reset(self) -> None:
        self._slow_since = None

    def update(
        self,
        now: float,
        speed: float,
        remaining_distance: float,
        stopping_distance: float,
        window_s: float | None = None,
    ) -> bool:
        """Feed one sample. Returns True once the slow spell has lasted the window."""
        far_from_target = remaining_distance > stopping_distance + self.distance_margin
        if speed >= self.speed_threshold or not far_from_target:
            self._slow_since = None
            return False

        if self._slow_since is None:
            self._slow_since = now
            return False

        window = self.window_s if window_s is None else window_s
        if now - self._slow_since >= window:
            self._slow_since = None
            return True
        return False


@dataclass
class RetryPolicy:
    """Exponential backoff between recovery attempts, with a retry ceiling."""

    max_retries: int = 5
    base_delay_s: float = 0.5
    backoff_factor: float = 2.0
    max_delay_s: float = 8.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay_s < 0 or self.max_delay_s < 0:
            raise ValueError("retry delays must be >= 0")
        if self.backoff_factor < 1.0:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")

    def delay_for(self, attempt: int) -> float | None:
        """Delay before retry number ``attempt`` (0-based), or None when retries are used up."""
        if attempt < 0 or attempt >= self.max_retries:
            return None
        delay = self.base_delay_s * (self.backoff_factor**attempt)
        return min(delay, self.max_delay_s)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> RetryPolicy:
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_retries": self.max_retries,
            "base_delay_s": self.base_delay_s,
            "backoff_factor": self.backoff_factor,
            "max_delay_s": self.max_delay_s,
        }
