"""Pointer motion: Bezier paths, move durations and the virtual pointer state."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass

Point = tuple[float, float]


@dataclass
class PointerState:
    """Last known position of the on-page virtual pointer (viewport space)."""

    x: float = 0.0
    y: float = 0.0

    @property
    def position(self) -> Point:
        return (self.x, self.y)

    def moved_to(self, x: float, y: float) -> None:
        self.x, self.y = x, y

    def reset(self) -> None:
        self.x, self.y = 0.0, 0.0


@dataclass(frozen=True)
class BezierPath:
    """Cubic Bezier curve from ``p0`` to ``p3``."""

    p0: Point
    p1: Point
    p2: Point
    p3: Point

    def point_at(self, t: float) -> Point:
        """Evaluate the curve at progress *t*, clamped to ``[0, 1]``."""
        t = min(max(t, 0.0), 1.0)
        u = 1.0 - t
        b0, b1, b2, b3 = u * u * u, 3 * u * u * t, 3 * u * t * t, t * t * t
        x = b0 * self.p0[0] + b1 * self.p1[0] + b2 * self.p2[0] + b3 * self.p3[0]
        y = b0 * self.p0[1] + b1 * self.p1[1] + b2 * self.p2[1] + b3 * self.p3[1]
        return (x, y)


def distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def bezier_path(
    start: Point,
    end: Point,
    offset_ratio: float = 0.25,
    offset_cap: float = 120.0,
    rng: random.Random | None = None,
) -> BezierPath:
    """Build a curved path between *start* and *end*.

    The two control points sit at roughly one third and two thirds of the
    straight segment, pushed off it perpendicularly by a random fraction of
    the segment length.  The offset magnitude never exceeds
    ``min(distance * offset_ratio, offset_cap)``.
    """
    rng = rng or random
    dx, dy = end[0] - start[0], end[1] - start[1]
    length = math.hypot(dx, dy)
    if length == 0:
        return BezierPath(start, start, end, end)

    # Unit normal to the segment
    nx, ny = -dy / length, dx / length
    limit = min(length * offset_ratio, offset_cap)
    o1 = rng.uniform(-limit, limit)
    o2 = rng.uniform(-limit, limit)
    t1 = rng.uniform(0.2, 0.4)
    t2 = rng.uniform(0.6, 0.8)

    p1 = (start[0] + dx * t1 + nx * o1, start[1] + dy * t1 + ny * o1)
    p2 = (start[0] + dx * t2 + nx * o2, start[1] + dy * t2 + ny * o2)
    return BezierPath(start, p1, p2, end)


def move_duration_ms(
    dist: float,
    *,
    base_ms: float = 80.0,
    ms_per_px: float = 0.55,
    floor_ms: float = 120.0,
    ceiling_ms: float = 900.0,
    speed_multiplier: float = 1.0,
) -> float:
    """Distance-scaled move duration, bounded to ``[floor, ceiling] * multiplier``."""
    if not math.isfinite(dist):
        dist = 0.0
    raw = base_ms + abs(dist) * ms_per_px
    bounded = min(max(raw, floor_ms), ceiling_ms)
    return bounded * max(speed_multiplier, 0.0)


def ease_in_out(t: float) -> float:
    """Cubic ease-in-out on ``[0, 1]``; monotonic, fixed endpoints."""
    t = min(max(t, 0.0), 1.0)
    if t < 0.5:
        return 4 * t * t * t
    return 1 - ((-2 * t + 2) ** 3) / 2
