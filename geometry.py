"""
geometry.py

Pure geometry helpers for the whiteboard: rectangle normalization,
point/segment distance, rotation, quadratic Bezier evaluation and bounds,
and freehand path simplification.

Nothing in here knows about elements or Qt.
"""

from __future__ import annotations

import math
from typing import List, NamedTuple, Sequence


class Point(NamedTuple):
    """A 2D point in world or screen coordinates."""
    x: float
    y: float


class Rect(NamedTuple):
    """Axis-aligned rectangle. Width/height may be negative until normalized."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)


def normalize_rect(rect: Rect) -> Rect:
    """Return an equivalent rectangle with non-negative width and height.

    The origin is shifted by any negative extent so the covered area is
    unchanged. Calling it on an already-normalized rectangle is a no-op.
    """
    x = rect.x + rect.width if rect.width < 0 else rect.x
    y = rect.y + rect.height if rect.height < 0 else rect.y
    return Rect(x, y, abs(rect.width), abs(rect.height))


def rects_overlap(a: Rect, b: Rect) -> bool:
    """Strict AABB overlap test on two rectangles (normalized first)."""
    a = normalize_rect(a)
    b = normalize_rect(b)
    return a.x < b.right and a.right > b.x and a.y < b.bottom and a.bottom > b.y


def rect_contains(rect: Rect, p: Point) -> bool:
    """Inclusive point-in-rectangle test on the normalized rectangle."""
    r = normalize_rect(rect)
    return r.x <= p.x <= r.right and r.y <= p.y <= r.bottom


def bounds_of_points(points: Sequence[Point]) -> Rect:
    """Bounding box of a point sequence. An empty sequence gives a zero rect at the origin."""
    if not points:
        return Rect(0.0, 0.0, 0.0, 0.0)
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    min_x, min_y = min(xs), min(ys)
    return Rect(min_x, min_y, max(xs) - min_x, max(ys) - min_y)


def distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def distance_to_segment(p: Point, a: Point, b: Point) -> float:
    """Shortest distance from point ``p`` to the finite segment ``a``-``b``.

    The projection parameter is clamped to [0, 1], so points beyond either
    end measure to the nearest endpoint. A zero-length segment measures to ``a``.
    """
    l2 = (a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2
    if l2 == 0:
        return math.hypot(p[0] - a[0], p[1] - a[1])
    t = ((p[0] - a[0]) * (b[0] - a[0]) + (p[1] - a[1]) * (b[1] - a[1])) / l2
    t = max(0.0, min(1.0, t))
    cx = a[0] + t * (b[0] - a[0])
    cy = a[1] + t * (b[1] - a[1])
    return math.hypot(p[0] - cx, p[1] - cy)


def rotate_point(p: Point, origin: Point, angle_rad: float) -> Point:
    """Rotate ``p`` about ``origin`` by ``angle_rad`` (positive = clockwise on a y-down canvas)."""
    cos = math.cos(angle_rad)
    sin = math.sin(angle_rad)
    tx = p[0] - origin[0]
    ty = p[1] - origin[1]
    return Point(tx * cos - ty * sin + origin[0], tx * sin + ty * cos + origin[1])


def angle_degrees(a: Point, b: Point) -> float:
    """Direction of the vector a->b in degrees, in (-180, 180]."""
    return math.degrees(math.atan2(b[1] - a[1], b[0] - a[0]))


# ----------------------------
# Quadratic Bezier
# ----------------------------

def point_on_curve(t: float, p0: Point, p1: Point, p2: Point) -> Point:
    """Evaluate the quadratic Bezier ``p0, p1, p2`` at parameter ``t``."""
    mt = 1 - t
    x = mt * mt * p0[0] + 2 * mt * t * p1[0] + t * t * p2[0]
    y = mt * mt * p0[1] + 2 * mt * t * p1[1] + t * t * p2[1]
    return Point(x, y)


def _axis_extremum(a: float, b: float, c: float) -> List[float]:
    # derivative of the quadratic is zero at t = (a - b) / (a - 2b + c)
    denom = a - 2 * b + c
    if denom == 0:
        return []
    t = (a - b) / denom
    if 0 < t < 1:
        mt = 1 - t
        return [mt * mt * a + 2 * mt * t * b + t * t * c]
    return []


def curve_bounds(p0: Point, p1: Point, p2: Point) -> Rect:
    """Tight bounding box of a quadratic Bezier.

    Starts from the endpoint box and extends it by the parametric extrema on
    each axis, considering only extrema with t strictly inside (0, 1).
    """
    xs = [p0[0], p2[0]] + _axis_extremum(p0[0], p1[0], p2[0])
    ys = [p0[1], p2[1]] + _axis_extremum(p0[1], p1[1], p2[1])
    return Rect(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))


def control_point_for_handle(handle: Point, p0: Point, p2: Point) -> Point:
    """Recover the control point whose curve passes through ``handle`` at t=0.5.

    Inverse of the Bezier midpoint formula: ``cp = 2*H - 0.5*P0 - 0.5*P2``.
    """
    return Point(
        2 * handle[0] - 0.5 * p0[0] - 0.5 * p2[0],
        2 * handle[1] - 0.5 * p0[1] - 0.5 * p2[1],
    )


# ----------------------------
# Path simplification
# ----------------------------

def _perpendicular_distance(p: Point, start: Point, end: Point) -> float:
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    if dx == 0 and dy == 0:
        return math.hypot(p[0] - start[0], p[1] - start[1])
    return abs(dy * p[0] - dx * p[1] + end[0] * start[1] - end[1] * start[0]) / math.hypot(dx, dy)


def simplify_path(points: Sequence[Point], epsilon: float = 1.0) -> List[Point]:
    """Simplify an open polyline with Ramer-Douglas-Peucker.

    Args:
        points: Ordered points of the stroke.
        epsilon: Maximum allowed deviation from the simplified chord, in
            world units. A tolerance of zero (or less) disables
            simplification, so collinear points survive too.

    Returns:
        A new list that always starts and ends with the input's endpoints.
        Inputs with fewer than 3 points are returned unchanged (as a list).
    """
    if len(points) < 3 or epsilon <= 0:
        return list(points)

    start, end = points[0], points[-1]
    max_dist = 0.0
    index = -1
    for i in range(1, len(points) - 1):
        d = _perpendicular_distance(points[i], start, end)
        if d > max_dist:
            max_dist = d
            index = i

    if index != -1 and max_dist > epsilon:
        left = simplify_path(points[:index + 1], epsilon)
        right = simplify_path(points[index:], epsilon)
        return left[:-1] + right
    return [start, end]
