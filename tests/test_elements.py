"""Tests for per-variant element operations in elements.py.

Covers handle placement and hit testing (including rotated elements), shape
hit testing and z-order, marquee intersection, and the copy-on-write move,
resize and clone operations.
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from elements import (
    clone_element,
    element_bounds,
    get_element_at_position,
    get_element_center,
    get_handles,
    hit_test_element,
    hit_test_handle,
    is_element_intersecting_rect,
    measure_text,
    move_element,
    resize_element,
    set_text_measurer,
)
from geometry import Point, Rect
from models import (
    ArrowElement,
    CircleElement,
    DiamondElement,
    Handle,
    LineElement,
    PencilElement,
    RectangleElement,
    TextElement,
)


def _rect(**kw):
    values = dict(id="r", x=0, y=0, width=100, height=50)
    values.update(kw)
    return RectangleElement(**values)


def _unknown():
    return SimpleNamespace(id="u", type="hexagon", x=3, y=4, rotation=0, label=None, version=0)


# ─────────────────────────────────────────────────────────
# Handles
# ─────────────────────────────────────────────────────────

class TestHandles:
    def test_box_handle_types(self):
        types = [h.type for h in get_handles(_rect())]
        assert types == [
            Handle.TOP_LEFT, Handle.TOP_RIGHT, Handle.BOTTOM_LEFT, Handle.BOTTOM_RIGHT,
            Handle.COPY, Handle.ROTATION,
        ]

    def test_copy_and_rotation_above_top_center(self):
        handles = {h.type: h for h in get_handles(_rect())}
        assert (handles[Handle.COPY].x, handles[Handle.COPY].y) == (50, -30)
        assert (handles[Handle.ROTATION].x, handles[Handle.ROTATION].y) == (50, -55)

    def test_circle_handles(self):
        handles = {h.type: h for h in get_handles(CircleElement(id="c", x=10, y=10, radius=5))}
        assert set(handles) == {Handle.RADIUS, Handle.COPY, Handle.ROTATION}
        assert (handles[Handle.RADIUS].x, handles[Handle.RADIUS].y) == (15, 10)

    def test_straight_line_curve_handle_at_midpoint(self):
        handles = {h.type: h for h in get_handles(LineElement(id="l", x=0, y=0, x2=100, y2=40))}
        assert (handles[Handle.CURVE].x, handles[Handle.CURVE].y) == (50, 20)

    def test_pencil_has_only_icon_handles(self):
        el = PencilElement(id="p", points=(Point(0, 0), Point(20, 20)))
        assert [h.type for h in get_handles(el)] == [Handle.COPY, Handle.ROTATION]

    def test_text_handles(self):
        el = TextElement(id="t", x=0, y=0, text="abcde", font_size=20)
        handles = {h.type: h for h in get_handles(el)}
        assert set(handles) == {Handle.BOTTOM_RIGHT, Handle.COPY, Handle.ROTATION}
        assert (handles[Handle.BOTTOM_RIGHT].x, handles[Handle.BOTTOM_RIGHT].y) == pytest.approx((60, 20))

    def test_unknown_variant_has_no_handles(self):
        assert get_handles(_unknown()) == []


class TestHitTestHandle:
    def test_corner_and_body(self):
        el = _rect()
        assert hit_test_handle(el, Point(0, 0)) == Handle.TOP_LEFT
        assert hit_test_handle(el, Point(100, 50)) == Handle.BOTTOM_RIGHT
        assert hit_test_handle(el, Point(50, 25)) is None

    def test_resize_square_is_small(self):
        assert hit_test_handle(_rect(), Point(5, 5)) is None
        assert hit_test_handle(_rect(), Point(3, -3)) == Handle.TOP_LEFT

    def test_icon_handles_use_larger_square(self):
        el = _rect()
        assert hit_test_handle(el, Point(61, -30)) == Handle.COPY
        assert hit_test_handle(el, Point(50, -55)) == Handle.ROTATION

    def test_rotated_element(self):
        el = _rect(rotation=90)
        # local top-left (0, 0) rotates about (50, 25) onto (75, -25)
        assert hit_test_handle(el, Point(75, -25)) == Handle.TOP_LEFT
        assert hit_test_handle(el, Point(0, 0)) is None

    def test_flipped_box_corners_follow_stored_extent(self):
        el = _rect(x=100, y=50, width=-100, height=-50)
        assert hit_test_handle(el, Point(100, 50)) == Handle.TOP_LEFT
        assert hit_test_handle(el, Point(50, -55)) == Handle.ROTATION


# ─────────────────────────────────────────────────────────
# Shape hit testing
# ─────────────────────────────────────────────────────────

class TestHitTestElement:
    def test_box(self):
        assert hit_test_element(_rect(), Point(100, 50))
        assert not hit_test_element(_rect(), Point(101, 50))

    def test_diamond_uses_bounding_box(self):
        assert hit_test_element(DiamondElement(id="d", width=100, height=50), Point(2, 2))

    def test_flipped_box(self):
        assert hit_test_element(_rect(x=100, y=50, width=-100, height=-50), Point(20, 20))

    def test_circle(self):
        el = CircleElement(id="c", x=0, y=0, radius=20)
        assert hit_test_element(el, Point(12, 12))
        assert not hit_test_element(el, Point(15, 15))

    def test_straight_line_threshold(self):
        el = LineElement(id="l", x=0, y=0, x2=100, y2=0)
        assert hit_test_element(el, Point(50, 5))
        assert not hit_test_element(el, Point(50, 15))

    def test_curved_line_uses_curve(self):
        el = LineElement(id="l", x=0, y=0, x2=100, y2=0, cp1x=50, cp1y=100)
        assert hit_test_element(el, Point(50, 50))
        assert not hit_test_element(el, Point(50, 5))

    def test_arrow_tip(self):
        el = ArrowElement(id="a", x=0, y=0, x2=100, y2=0)
        assert hit_test_element(el, Point(105, 8))

    def test_text(self):
        el = TextElement(id="t", x=0, y=0, text="hello", font_size=20)
        assert hit_test_element(el, Point(30, 10))
        assert not hit_test_element(el, Point(70, 10))

    def test_pencil_segments(self):
        el = PencilElement(id="p", points=(Point(0, 0), Point(50, 0), Point(50, 50)))
        assert hit_test_element(el, Point(50, 25))
        assert not hit_test_element(el, Point(25, 25))

    def test_rotated_box(self):
        el = _rect(rotation=90)
        assert hit_test_element(el, Point(50, -20))
        assert not hit_test_element(el, Point(5, 25))

    def test_unknown_variant_never_hit(self):
        assert not hit_test_element(_unknown(), Point(3, 4))


class TestElementAtPosition:
    def test_topmost_wins(self):
        circle = CircleElement(id="c", x=0, y=0, radius=20)
        rect = _rect(x=10, y=10, width=100, height=50)
        assert get_element_at_position([circle, rect], Point(12, 12)) is rect
        assert get_element_at_position([rect, circle], Point(12, 12)) is circle

    def test_empty_space(self):
        assert get_element_at_position([_rect()], Point(200, 200)) is None


# ─────────────────────────────────────────────────────────
# Marquee intersection
# ─────────────────────────────────────────────────────────

class TestMarquee:
    @pytest.mark.parametrize("marquee", [
        Rect(0, 0, 15, 15),
        Rect(15, 0, -15, 15),
        Rect(0, 15, 15, -15),
        Rect(15, 15, -15, -15),
    ])
    def test_drag_direction_does_not_matter(self, marquee):
        el = _rect(x=10, y=10, width=20, height=20)
        assert is_element_intersecting_rect(el, marquee)
        assert not is_element_intersecting_rect(_rect(x=100, y=100, width=10, height=10), marquee)

    def test_circle_uses_nearest_point(self):
        el = CircleElement(id="c", x=0, y=0, radius=10)
        assert not is_element_intersecting_rect(el, Rect(8, 8, 10, 10))
        assert is_element_intersecting_rect(el, Rect(5, 5, 10, 10))

    def test_line_uses_endpoint_box(self):
        el = LineElement(id="l", x=100, y=100, x2=0, y2=0)
        assert is_element_intersecting_rect(el, Rect(40, 40, 5, 5))

    def test_pencil_and_text(self):
        pencil = PencilElement(id="p", points=(Point(0, 0), Point(30, 30)))
        text = TextElement(id="t", x=50, y=50, text="hi", font_size=20)
        marquee = Rect(20, 20, 40, 40)
        assert is_element_intersecting_rect(pencil, marquee)
        assert is_element_intersecting_rect(text, marquee)

    def test_unknown_variant(self):
        assert not is_element_intersecting_rect(_unknown(), Rect(0, 0, 100, 100))


# ─────────────────────────────────────────────────────────
# Centers and bounds
# ─────────────────────────────────────────────────────────

class TestCenters:
    def test_box_center(self):
        assert get_element_center(_rect()) == Point(50, 25)

    def test_flipped_box_center(self):
        assert get_element_center(_rect(x=100, y=50, width=-100, height=-50)) == Point(50, 25)

    def test_circle_center_is_position(self):
        assert get_element_center(CircleElement(id="c", x=7, y=9, radius=4)) == Point(7, 9)

    def test_curved_line_center_is_curve_box_center(self):
        el = LineElement(id="l", x=0, y=0, x2=100, y2=0, cp1x=50, cp1y=100)
        c = get_element_center(el)
        assert c.x == pytest.approx(50)
        assert c.y == pytest.approx(25)

    def test_unknown_variant_falls_back_to_anchor(self):
        assert get_element_center(_unknown()) == Point(3, 4)


class TestBounds:
    def test_padding(self):
        assert element_bounds(_rect(), 5) == Rect(-5, -5, 110, 60)

    def test_rotation_swaps_extent(self):
        b = element_bounds(_rect(rotation=90))
        assert b.width == pytest.approx(50)
        assert b.height == pytest.approx(100)

    def test_label_widens_bounds(self):
        el = LineElement(id="l", x=0, y=0, x2=0, y2=100, label="a long label")
        assert element_bounds(el).width > 0

    def test_unknown_variant(self):
        assert element_bounds(_unknown()) is None


class TestTextMeasurer:
    def test_approximation(self):
        assert measure_text("ab\ncdef", 10) == pytest.approx((24, 20))

    def test_custom_measurer(self):
        set_text_measurer(lambda text, size, family: (1.0, 2.0))
        assert measure_text("anything", 40) == (1.0, 2.0)
        set_text_measurer(None)
        assert measure_text("a", 10) == pytest.approx((6, 10))


# ─────────────────────────────────────────────────────────
# Move / resize / clone
# ─────────────────────────────────────────────────────────

_ALL_VARIANTS = [
    _rect(),
    DiamondElement(id="d", x=1, y=2, width=30, height=40),
    CircleElement(id="c", x=5, y=5, radius=9),
    LineElement(id="l", x=0, y=0, x2=10, y2=10),
    ArrowElement(id="a", x=0, y=0, x2=10, y2=0, cp1x=5, cp1y=20, curve_handle_x=5, curve_handle_y=10),
    TextElement(id="t", x=3, y=3, text="hey"),
    PencilElement(id="p", x=0, y=0, points=(Point(0, 0), Point(4, 5), Point(9, 1))),
]


class TestMove:
    @pytest.mark.parametrize("el", _ALL_VARIANTS, ids=lambda e: e.type)
    def test_move_back_restores(self, el):
        assert move_element(move_element(el, 13.5, -7), -13.5, 7) == el

    @pytest.mark.parametrize("el", _ALL_VARIANTS, ids=lambda e: e.type)
    def test_move_bumps_version(self, el):
        assert move_element(el, 1, 1).version == el.version + 1

    def test_move_carries_control_point(self):
        el = move_element(_ALL_VARIANTS[4], 10, 10)
        assert (el.x2, el.cp1x, el.cp1y, el.curve_handle_y) == (20, 15, 30, 20)

    def test_move_pencil_points(self):
        el = move_element(_ALL_VARIANTS[6], 1, 1)
        assert el.points == (Point(1, 1), Point(5, 6), Point(10, 2))


class TestResize:
    def test_top_left_keeps_opposite_corner(self):
        el = resize_element(_rect(), Handle.TOP_LEFT, 10, 10)
        assert (el.x, el.y, el.width, el.height) == (10, 10, 90, 40)

    def test_box_may_flip(self):
        el = resize_element(_rect(), Handle.BOTTOM_RIGHT, -150, 0)
        assert el.width == -50

    def test_top_right_and_bottom_left(self):
        tr = resize_element(_rect(), Handle.TOP_RIGHT, 10, 10)
        bl = resize_element(_rect(), Handle.BOTTOM_LEFT, 10, 10)
        assert (tr.x, tr.y, tr.width, tr.height) == (0, 10, 110, 40)
        assert (bl.x, bl.y, bl.width, bl.height) == (10, 0, 90, 60)

    def test_line_endpoint_straightens(self):
        el = resize_element(_ALL_VARIANTS[4], Handle.END, 5, 0)
        assert el.x2 == 15
        assert el.cp1x is None and el.curve_handle_x is None

    def test_line_start(self):
        el = resize_element(LineElement(id="l", x2=10, y2=10), Handle.START, -2, 3)
        assert (el.x, el.y) == (-2, 3)

    def test_circle_radius_clamped(self):
        el = CircleElement(id="c", radius=10)
        assert resize_element(el, Handle.RADIUS, 5, 0).radius == 15
        assert resize_element(el, Handle.RADIUS, -20, 0).radius == 0

    def test_text_font_growth_and_floor(self):
        el = TextElement(id="t", text="x", font_size=24)
        assert resize_element(el, Handle.BOTTOM_RIGHT, 10, 0).font_size == 29
        assert resize_element(el, Handle.BOTTOM_RIGHT, -100, 0).font_size == 8

    def test_no_handle_is_unchanged(self):
        el = _rect()
        assert resize_element(el, None, 10, 10) is el
        assert resize_element(el, Handle.RADIUS, 10, 10) is el

    def test_resize_bumps_version(self):
        assert resize_element(_rect(), Handle.BOTTOM_RIGHT, 1, 1).version == 1


class TestClone:
    def test_clone_offsets_and_renames(self):
        src = _rect(label="box", rotation=20)
        copy = clone_element(src, "copy", 15, 15)
        assert copy.id == "copy"
        assert (copy.x, copy.y) == (15, 15)
        assert (copy.width, copy.height, copy.label, copy.rotation) == (100, 50, "box", 20)
        assert src.x == 0
