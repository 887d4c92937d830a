"""Tests for the pure geometry helpers in geometry.py."""
from __future__ import annotations

import math

import pytest

from geometry import (
    Point,
    Rect,
    angle_degrees,
    bounds_of_points,
    control_point_for_handle,
    curve_bounds,
    distance_to_segment,
    normalize_rect,
    point_on_curve,
    rect_contains,
    rects_overlap,
    rotate_point,
    simplify_path,
)


# ─────────────────────────────────────────────────────────
# Rectangles
# ─────────────────────────────────────────────────────────

_RECTS = [
    Rect(0, 0, 10, 20),
    Rect(10, 10, -5, 8),
    Rect(3, 4, 6, -9),
    Rect(-2, -2, -7, -3),
    Rect(1, 1, 0, 0),
]


class TestNormalizeRect:
    @pytest.mark.parametrize("r", _RECTS)
    def test_extent_is_non_negative(self, r):
        n = normalize_rect(r)
        assert n.width >= 0
        assert n.height >= 0

    @pytest.mark.parametrize("r", _RECTS)
    def test_idempotent(self, r):
        assert normalize_rect(normalize_rect(r)) == normalize_rect(r)

    def test_negative_extent_shifts_origin(self):
        assert normalize_rect(Rect(10, 10, -5, -4)) == Rect(5, 6, 5, 4)


class TestRectPredicates:
    def test_overlap(self):
        assert rects_overlap(Rect(0, 0, 10, 10), Rect(5, 5, 10, 10))

    def test_touching_edges_do_not_overlap(self):
        assert not rects_overlap(Rect(0, 0, 10, 10), Rect(10, 0, 10, 10))

    def test_overlap_with_negative_extent(self):
        assert rects_overlap(Rect(20, 20, -15, -15), Rect(8, 8, 2, 2))

    def test_contains_is_inclusive(self):
        r = Rect(0, 0, 10, 10)
        assert rect_contains(r, Point(0, 0))
        assert rect_contains(r, Point(10, 10))
        assert not rect_contains(r, Point(10.1, 5))

    def test_bounds_of_points(self):
        assert bounds_of_points([Point(3, 4), Point(-1, 8), Point(5, 0)]) == Rect(-1, 0, 6, 8)

    def test_bounds_of_no_points(self):
        assert bounds_of_points([]) == Rect(0, 0, 0, 0)


# ─────────────────────────────────────────────────────────
# Distances and rotation
# ─────────────────────────────────────────────────────────

class TestDistanceToSegment:
    def test_perpendicular(self):
        assert distance_to_segment(Point(5, 5), Point(0, 0), Point(10, 0)) == pytest.approx(5)

    def test_beyond_end_uses_endpoint(self):
        assert distance_to_segment(Point(13, 4), Point(0, 0), Point(10, 0)) == pytest.approx(5)

    def test_before_start_uses_endpoint(self):
        assert distance_to_segment(Point(-3, -4), Point(0, 0), Point(10, 0)) == pytest.approx(5)

    def test_degenerate_segment(self):
        assert distance_to_segment(Point(3, 4), Point(0, 0), Point(0, 0)) == pytest.approx(5)


class TestRotation:
    def test_quarter_turn(self):
        p = rotate_point(Point(1, 0), Point(0, 0), math.pi / 2)
        assert p.x == pytest.approx(0, abs=1e-9)
        assert p.y == pytest.approx(1)

    def test_about_other_origin(self):
        p = rotate_point(Point(20, 10), Point(10, 10), math.pi)
        assert p.x == pytest.approx(0)
        assert p.y == pytest.approx(10)

    def test_inverse_rotation_restores(self):
        origin = Point(3, -2)
        p = rotate_point(rotate_point(Point(7, 9), origin, 0.7), origin, -0.7)
        assert p.x == pytest.approx(7)
        assert p.y == pytest.approx(9)

    def test_angle_degrees(self):
        assert angle_degrees(Point(0, 0), Point(0, 10)) == pytest.approx(90)
        assert angle_degrees(Point(0, 0), Point(-10, 0)) == pytest.approx(180)


# ─────────────────────────────────────────────────────────
# Quadratic curves
# ─────────────────────────────────────────────────────────

class TestCurves:
    def test_endpoints(self):
        p0, p1, p2 = Point(0, 0), Point(50, 100), Point(100, 0)
        assert point_on_curve(0, p0, p1, p2) == p0
        assert point_on_curve(1, p0, p1, p2) == p2

    @pytest.mark.parametrize("p0,p2,m", [
        (Point(0, 0), Point(100, 0), Point(50, 50)),
        (Point(-20, 7), Point(35, -12), Point(4.5, 60.25)),
        (Point(10, 10), Point(10, 10), Point(-3, 8)),
    ])
    def test_handle_inversion_passes_through_handle(self, p0, p2, m):
        cp = control_point_for_handle(m, p0, p2)
        mid = point_on_curve(0.5, p0, cp, p2)
        assert mid.x == pytest.approx(m.x)
        assert mid.y == pytest.approx(m.y)

    def test_bounds_include_extremum(self):
        b = curve_bounds(Point(0, 0), Point(50, 100), Point(100, 0))
        assert b.x == pytest.approx(0)
        assert b.y == pytest.approx(0)
        assert b.width == pytest.approx(100)
        assert b.height == pytest.approx(50)

    def test_bounds_of_straight_control(self):
        b = curve_bounds(Point(0, 0), Point(5, 5), Point(10, 10))
        assert b == Rect(0, 0, 10, 10)


# ─────────────────────────────────────────────────────────
# Path simplification
# ─────────────────────────────────────────────────────────

class TestSimplifyPath:
    def test_zero_tolerance_keeps_every_point(self):
        pts = [Point(0, 0), Point(1, 0), Point(2, 0), Point(3, 0.5), Point(4, 0)]
        assert simplify_path(pts, 0) == pts

    def test_short_inputs_unchanged(self):
        assert simplify_path([], 1.0) == []
        assert simplify_path([Point(1, 1)], 1.0) == [Point(1, 1)]
        assert simplify_path([Point(1, 1), Point(2, 2)], 1.0) == [Point(1, 1), Point(2, 2)]

    def test_collinear_points_collapse(self):
        pts = [Point(i, 0) for i in range(10)]
        assert simplify_path(pts, 1.0) == [Point(0, 0), Point(9, 0)]

    def test_peak_is_kept(self):
        pts = [Point(0, 0), Point(5, 10), Point(10, 0)]
        assert simplify_path(pts, 1.0) == pts

    def test_endpoints_preserved_and_not_longer(self):
        pts = [Point(i, math.sin(i / 3.0) * 4) for i in range(40)]
        out = simplify_path(pts, 0.5)
        assert out[0] == pts[0]
        assert out[-1] == pts[-1]
        assert len(out) <= len(pts)
