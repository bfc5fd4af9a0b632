"""
patrol.nav.geometry - Small 3-vector helpers on plain tuples.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

Vec3 = tuple[float, float, float]
Quat = tuple[float, float, float, float]  # (x, y, z, w)

ZERO: Vec3 = (0.0, 0.0, 0.0)
IDENTITY_ROTATION: Quat = (0.0, 0.0, 0.0, 1.0)


def vec3(values: Iterable[float]) -> Vec3:
    """Coerce a 2- or 3-element sequence to a float triple (2D input maps to x/z)."""
    items = [float(v) for v in values]
    if len(items) == 2:
        return (items[0], 0.0, items[1])
    if len(items) != 3:
        raise ValueError(f"Expected 2 or 3 coordinates, got {len(items)}")
    return (items[0], items[1], items[2])


def add(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def scale(v: Vec3, s: float) -> Vec3:
    return (v[0] * s, v[1] * s, v[2] * s)


def magnitude(v: Sequence[float]) -> float:
    return math.sqrt(sum(c * c for c in v))


def distance(a: Vec3, b: Vec3) -> float:
    return magnitude(sub(a, b))


def is_finite(v: Sequence[float]) -> bool:
    return all(math.isfinite(c) for c in v)


def move_towards(current: Vec3, target: Vec3, max_step: float) -> Vec3:
    """Step from current toward target by at most max_step, never overshooting."""
    delta = sub(target, current)
    dist = magnitude(delta)
    if dist <= max_step or dist == 0.0:
        return target
    return add(current, scale(delta, max_step / dist))


def polyline_length(corners: Sequence[Vec3]) -> float:
    return sum(distance(corners[i - 1], corners[i]) for i in range(1, len(corners)))


def segment_circle_entry_xz(
    start: Vec3,
    end: Vec3,
    center: tuple[float, float],
    radius: float,
) -> float | None:
    """
    First parameter t in [0, 1] where segment start->end enters a circle on the xz plane.

    Returns 0.0 when start already lies inside the circle and None when the
    segment never touches it.
    """
    sx, sz = start[0] - center[0], start[2] - center[1]
    dx, dz = end[0] - start[0], end[2] - start[2]
    c = sx * sx + sz * sz - radius * radius
    if c <= 0.0:
        return 0.0
    a = dx * dx + dz * dz
    if a == 0.0:
        return None
    b = 2.0 * (sx * dx + sz * dz)
    disc = b * b - 4.0 * a * c
    if disc < 0.0:
        return None
    t = (-b - math.sqrt(disc)) / (2.0 * a)
    if 0.0 <= t <= 1.0:
        return t
    return None
