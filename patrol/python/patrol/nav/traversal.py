"""
patrol.nav.traversal - Waypoint ordering policies.

``next_index`` is the pure policy; ``TraversalState`` carries the index and
ping-pong direction between calls.
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass


class MovementMode(enum.Enum):
    LOOP = "loop"  # first to last, then wrap to the first
    PING_PONG = "ping_pong"  # first to last and back again
    RANDOM = "random"  # any waypoint except the current one
    ONCE = "once"  # first to last, then stop
    CUSTOM = "custom"  # index driven externally via go_to_waypoint()

    @classmethod
    def parse(cls, value: MovementMode | str) -> MovementMode:
        if isinstance(value, cls):
            return value
        key = str(value).strip().replace("-", "_")
        # Accept CamelCase spellings such as "PingPong" as well as "PING_PONG".
        snake = "".join(f"_{c}" if c.isupper() and i else c for i, c in enumerate(key))
        for candidate in (key.lower(), snake.lower()):
            try:
                return cls(candidate)
            except ValueError:
                continue
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown movement mode {value!r}. Valid: {valid}")


class Direction(enum.Enum):
    FORWARD = 1
    BACKWARD = -1


def clamp_index(index: int, count: int) -> int:
    if count <= 0:
        return 0
    return min(max(index, 0), count - 1)


def next_index(
    index: int,
    direction: Direction,
    mode: MovementMode,
    count: int,
    rng: random.Random | None = None,
) -> tuple[int | None, Direction]:
    """
    Return (next index, direction to use for the following call).

    A next index of None means the set is exhausted (ONCE mode only) or empty.
    """
    if count <= 0:
        return None, direction

    i = clamp_index(index, count)

    if mode is MovementMode.ONCE:
        return (i + 1 if i + 1 < count else None), direction

    if mode is MovementMode.LOOP:
        return (i + 1) % count, direction

    if mode is MovementMode.CUSTOM:
        return i, direction

    if count == 1:
        return 0, direction

    if mode is MovementMode.RANDOM:
        r = (rng or random).randrange(count - 1)
        return (r if r < i else r + 1), direction

    # PING_PONG: the direction flips on arriving at an end, not after overshooting it.
    if direction is Direction.FORWARD:
        if i >= count - 1:
            return i - 1, Direction.BACKWARD
        nxt = i + 1
        return nxt, (Direction.BACKWARD if nxt >= count - 1 else Direction.FORWARD)
    if i <= 0:
        return i + 1, Direction.FORWARD
    nxt = i - 1
    return nxt, (Direction.FORWARD if nxt <= 0 else Direction.BACKWARD)


@dataclass
class TraversalState:
    mode: MovementMode = MovementMode.LOOP
    current_index: int = 0
    direction: Direction = Direction.FORWARD

    def reset(self) -> None:
        self.current_index = 0
        self.direction = Direction.FORWARD

    def clamp(self, count: int) -> None:
        self.current_index = clamp_index(self.current_index, count)

    def advance(self, count: int, rng: random.Random | None = None) -> int | None:
        """Move to the next index. Returns None when there is nothing left to visit."""
        nxt, self.direction = next_index(
            self.current_index, self.direction, self.mode, count, rng
        )
        if nxt is None:
            if self.mode is MovementMode.ONCE and count > 0:
                self.current_index = count  # one past the end marks completion
            return None
        self.current_index = nxt
        return nxt
