"""Tests for patrol.nav.traversal - Waypoint ordering policies."""

from __future__ import annotations

import random

import pytest

from patrol.nav.traversal import (
    Direction,
    MovementMode,
    TraversalState,
    clamp_index,
    next_index,
)


def _walk(mode: MovementMode, count: int, steps: int, seed: int = 0) -> list[int | None]:
    state = TraversalState(mode=mode)
    rng = random.Random(seed)
    return [state.advance(count, rng) for _ in range(steps)]


# ---------------------------------------------------------------------------
# MovementMode parsing
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("loop", MovementMode.LOOP),
        ("ping_pong", MovementMode.PING_PONG),
        ("PingPong", MovementMode.PING_PONG),
        ("ping-pong", MovementMode.PING_PONG),
        ("ONCE", MovementMode.ONCE),
        (MovementMode.RANDOM, MovementMode.RANDOM),
    ],
)
def test_movement_mode_parse(raw, expected) -> None:
    """Lowercase, upper, kebab and CamelCase spellings all resolve."""
    assert MovementMode.parse(raw) is expected


def test_movement_mode_parse_unknown() -> None:
    """Unknown modes raise ValueError naming the valid values."""
    with pytest.raises(ValueError, match="ping_pong"):
        MovementMode.parse("zigzag")


# ---------------------------------------------------------------------------
# Loop / Once / Custom
# ---------------------------------------------------------------------------


def test_loop_is_cyclic() -> None:
    """After N advances the index is back where it started."""
    assert _walk(MovementMode.LOOP, 3, 6) == [1, 2, 0, 1, 2, 0]


def test_once_exhausts_after_last() -> None:
    """From 0, ONCE yields N-1 indexes and then None."""
    state = TraversalState(mode=MovementMode.ONCE)
    assert [state.advance(3) for _ in range(3)] == [1, 2, None]
    assert state.current_index == 3
    assert state.advance(3) is None


def test_once_restarts_after_reset() -> None:
    """reset() rewinds an exhausted ONCE traversal."""
    state = TraversalState(mode=MovementMode.ONCE)
    while state.advance(2) is not None:
        pass
    state.reset()
    assert state.advance(2) == 1


def test_custom_holds_index() -> None:
    """CUSTOM never moves the index on its own."""
    state = TraversalState(mode=MovementMode.CUSTOM, current_index=2)
    assert state.advance(4) == 2


def test_single_waypoint_stays_put() -> None:
    """With one waypoint LOOP, PING_PONG and RANDOM all return 0."""
    for mode in (MovementMode.LOOP, MovementMode.PING_PONG, MovementMode.RANDOM):
        assert next_index(0, Direction.FORWARD, mode, 1)[0] == 0


def test_empty_set_returns_none() -> None:
    """No waypoints means no next index in any mode."""
    for mode in MovementMode:
        assert next_index(0, Direction.FORWARD, mode, 0)[0] is None


# ---------------------------------------------------------------------------
# PingPong
# ---------------------------------------------------------------------------


def test_ping_pong_sequence() -> None:
    """Bounces between the ends without repeating an index."""
    assert _walk(MovementMode.PING_PONG, 4, 8) == [1, 2, 3, 2, 1, 0, 1, 2]


def test_ping_pong_never_repeats_consecutively() -> None:
    """Consecutive indexes always differ for N > 1."""
    seq = [0] + _walk(MovementMode.PING_PONG, 5, 40)
    assert all(a != b for a, b in zip(seq, seq[1:]))


def test_ping_pong_flips_at_ends() -> None:
    """Direction flips exactly on reaching index 0 or N-1."""
    state = TraversalState(mode=MovementMode.PING_PONG)
    state.advance(3)
    assert state.direction is Direction.FORWARD
    state.advance(3)
    assert state.current_index == 2
    assert state.direction is Direction.BACKWARD
    state.advance(3)
    state.advance(3)
    assert state.current_index == 0
    assert state.direction is Direction.FORWARD


def test_ping_pong_from_end_with_stale_direction() -> None:
    """An index already at the end turns around instead of overshooting."""
    nxt, direction = next_index(2, Direction.FORWARD, MovementMode.PING_PONG, 3)
    assert nxt == 1
    assert direction is Direction.BACKWARD


# ---------------------------------------------------------------------------
# Random
# ---------------------------------------------------------------------------


def test_random_never_returns_current() -> None:
    """RANDOM picks any index except the current one."""
    rng = random.Random(42)
    for count in (2, 3, 7):
        for current in range(count):
            for _ in range(25):
                nxt, _ = next_index(current, Direction.FORWARD, MovementMode.RANDOM, count, rng)
                assert nxt != current
                assert 0 <= nxt < count


def test_random_is_reproducible_with_seed() -> None:
    """The same seed gives the same visiting order."""
    assert _walk(MovementMode.RANDOM, 6, 20, seed=3) == _walk(MovementMode.RANDOM, 6, 20, seed=3)


# ---------------------------------------------------------------------------
# Index clamping
# ---------------------------------------------------------------------------


def test_clamp_index() -> None:
    assert clamp_index(5, 3) == 2
    assert clamp_index(-1, 3) == 0
    assert clamp_index(4, 0) == 0


def test_stale_index_is_clamped_before_advancing() -> None:
    """A set that shrank under the index is handled without IndexError."""
    state = TraversalState(mode=MovementMode.LOOP, current_index=9)
    assert state.advance(3) == 0
