"""
elements.py

Per-variant element operations: centers, handles, hit testing, marquee
intersection, move and resize.

Every operation treats elements as immutable and returns new instances with
a bumped ``version``, so the render cache can tell a mutated element apart
from the one it last drew.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import replace
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from geometry import (
    Point,
    Rect,
    bounds_of_points,
    curve_bounds,
    distance,
    distance_to_segment,
    normalize_rect,
    point_on_curve,
    rect_contains,
    rects_overlap,
    rotate_point,
)
from models import BOX_TYPES, LINE_TYPES, Element, Handle, Tool, is_curved
from settings import get_settings


class HandlePoint(NamedTuple):
    """A handle hotspot in the element's local (unrotated) space."""
    type: str
    x: float
    y: float


# Text measurer signature: (text, font_size, font_family) -> (width, height)
TextMeasurer = Callable[[str, float, Optional[str]], Tuple[float, float]]


def approximate_text_size(text: str, font_size: float, font_family: Optional[str] = None) -> Tuple[float, float]:
    """Glyph-free text metrics: 0.6 em per character, one font size per line."""
    lines = text.split("\n")
    width = max(len(line) for line in lines) * font_size * 0.6
    return width, len(lines) * font_size


_text_measurer: TextMeasurer = approximate_text_size


def set_text_measurer(measurer: Optional[TextMeasurer]) -> None:
    """Install the function used to measure text (``None`` restores the default).

    The Qt render pipeline installs a font-metrics based measurer so hit
    testing agrees with what is drawn.
    """
    global _text_measurer
    _text_measurer = measurer or approximate_text_size


def measure_text(text: str, font_size: float, font_family: Optional[str] = None) -> Tuple[float, float]:
    """Measure multi-line text with the installed measurer."""
    return _text_measurer(text, font_size, font_family)


def generate_id() -> str:
    """Return a new opaque element id."""
    return uuid.uuid4().hex


# Helper functions to read canvas settings
def _handle_size() -> float:
    """Resize handle square. Default: 8.0."""
    return get_settings().settings.canvas.handles.size


def _icon_size() -> float:
    """Copy/rotation/curve handle square. Default: 24.0."""
    return get_settings().settings.canvas.handles.icon_size


def _line_threshold() -> float:
    """Line hit distance. Default: 10.0."""
    return get_settings().settings.canvas.hit.line_threshold


# ----------------------------
# Bounds and centers
# ----------------------------

def text_rect(el: Element) -> Rect:
    """Measured bounding box of a text element, anchored at its top-left."""
    width, height = measure_text(el.text, el.font_size, el.font_family)
    return Rect(el.x, el.y, width, height)


def shape_rect(el: Element) -> Optional[Rect]:
    """Unrotated, normalized bounding box of an element's shape.

    Curved lines use the tight Bezier box. Returns ``None`` for unknown
    variants.
    """
    if el.type in BOX_TYPES:
        return normalize_rect(Rect(el.x, el.y, el.width, el.height))
    if el.type == Tool.CIRCLE:
        return Rect(el.x - el.radius, el.y - el.radius, 2 * el.radius, 2 * el.radius)
    if el.type in LINE_TYPES:
        if is_curved(el):
            return curve_bounds(Point(el.x, el.y), Point(el.cp1x, el.cp1y), Point(el.x2, el.y2))
        return normalize_rect(Rect(el.x, el.y, el.x2 - el.x, el.y2 - el.y))
    if el.type == Tool.TEXT:
        return text_rect(el)
    if el.type == Tool.PENCIL:
        return bounds_of_points(el.points)
    return None


def get_element_center(el: Element) -> Point:
    """Rotation pivot of an element: the center of its shape box.

    Circles pivot on their own position. Unknown variants fall back to the
    anchor.
    """
    if el.type == Tool.CIRCLE:
        return Point(el.x, el.y)
    rect = shape_rect(el)
    if rect is None:
        return Point(el.x, el.y)
    return rect.center


def to_local(el: Element, pos: Point) -> Point:
    """Map a world point into the element's unrotated frame."""
    if not el.rotation:
        return Point(pos[0], pos[1])
    return rotate_point(pos, get_element_center(el), -math.radians(el.rotation))


def element_bounds(el: Element, padding: float = 0.0) -> Optional[Rect]:
    """World-space box enclosing everything drawn for ``el``.

    Includes the label block and the element's rotation, grown by
    ``padding`` on every side. Used to size render snapshots.
    """
    rect = shape_rect(el)
    if rect is None:
        return None
    corners = [Point(rect.x, rect.y), Point(rect.right, rect.bottom)]

    if el.label:
        render = get_settings().settings.canvas.render
        lines = el.label.split("\n")
        lw, _ = measure_text(el.label, render.label_font_size)
        center = get_element_center(el)
        top = center.y - render.label_line_height / 2
        corners.append(Point(center.x - lw / 2, top))
        corners.append(Point(center.x + lw / 2, top + len(lines) * render.label_line_height))

    box = bounds_of_points(corners)
    if el.rotation:
        center = get_element_center(el)
        angle = math.radians(el.rotation)
        box = bounds_of_points([
            rotate_point(Point(x, y), center, angle)
            for x in (box.x, box.right)
            for y in (box.y, box.bottom)
        ])
    return Rect(box.x - padding, box.y - padding, box.width + 2 * padding, box.height + 2 * padding)


# ----------------------------
# Handles
# ----------------------------

def get_handles(el: Element) -> List[HandlePoint]:
    """Typed handle points in the element's local (unrotated) space.

    The copy and rotation handles sit a fixed distance above the top of the
    shape, horizontally centered. Unknown variants have no handles.
    """
    handles_cfg = get_settings().settings.canvas.handles
    copy_off = handles_cfg.copy_offset
    rot_off = handles_cfg.rotation_offset

    if el.type in BOX_TYPES:
        # corners follow the stored, possibly flipped, extent
        right = el.x + el.width
        bottom = el.y + el.height
        r = normalize_rect(Rect(el.x, el.y, el.width, el.height))
        cx = r.x + r.width / 2
        return [
            HandlePoint(Handle.TOP_LEFT, el.x, el.y),
            HandlePoint(Handle.TOP_RIGHT, right, el.y),
            HandlePoint(Handle.BOTTOM_LEFT, el.x, bottom),
            HandlePoint(Handle.BOTTOM_RIGHT, right, bottom),
            HandlePoint(Handle.COPY, cx, r.y - copy_off),
            HandlePoint(Handle.ROTATION, cx, r.y - rot_off),
        ]

    if el.type == Tool.CIRCLE:
        top = el.y - el.radius
        return [
            HandlePoint(Handle.RADIUS, el.x + el.radius, el.y),
            HandlePoint(Handle.COPY, el.x, top - copy_off),
            HandlePoint(Handle.ROTATION, el.x, top - rot_off),
        ]

    if el.type in LINE_TYPES:
        mid_x = (el.x + el.x2) / 2
        mid_y = (el.y + el.y2) / 2
        if is_curved(el):
            bounds = shape_rect(el)
            anchor_x, anchor_y = bounds.x + bounds.width / 2, bounds.y
        else:
            anchor_x, anchor_y = mid_x, mid_y
        if el.curve_handle_x is not None and el.curve_handle_y is not None:
            curve = HandlePoint(Handle.CURVE, el.curve_handle_x, el.curve_handle_y)
        else:
            curve = HandlePoint(Handle.CURVE, mid_x, mid_y)
        return [
            HandlePoint(Handle.START, el.x, el.y),
            HandlePoint(Handle.END, el.x2, el.y2),
            HandlePoint(Handle.COPY, anchor_x, anchor_y - copy_off),
            HandlePoint(Handle.ROTATION, anchor_x, anchor_y - rot_off),
            curve,
        ]

    if el.type == Tool.TEXT:
        r = text_rect(el)
        cx = r.x + r.width / 2
        return [
            HandlePoint(Handle.BOTTOM_RIGHT, r.right, r.bottom),
            HandlePoint(Handle.COPY, cx, r.y - copy_off),
            HandlePoint(Handle.ROTATION, cx, r.y - rot_off),
        ]

    if el.type == Tool.PENCIL:
        r = bounds_of_points(el.points)
        cx = r.x + r.width / 2
        return [
            HandlePoint(Handle.COPY, cx, r.y - copy_off),
            HandlePoint(Handle.ROTATION, cx, r.y - rot_off),
        ]

    return []


def hit_test_handle(el: Element, pos: Point) -> Optional[str]:
    """Return the type of the first handle of ``el`` under world point ``pos``.

    The point is first inverse-rotated into the element's local space, where
    handles live. Icon handles (copy/rotation/curve) use the larger square.
    """
    local = to_local(el, pos)
    size = _handle_size()
    icon = _icon_size()
    for h in get_handles(el):
        half = (icon if h.type in Handle.ICON_HANDLES else size) / 2
        if abs(local.x - h.x) <= half and abs(local.y - h.y) <= half:
            return h.type
    return None


# ----------------------------
# Hit testing
# ----------------------------

def _line_hit(el: Element, local: Point, threshold: float) -> bool:
    p0 = Point(el.x, el.y)
    p2 = Point(el.x2, el.y2)
    if is_curved(el):
        p1 = Point(el.cp1x, el.cp1y)
        samples = max(1, get_settings().settings.canvas.hit.curve_samples)
        for i in range(samples + 1):
            if distance(point_on_curve(i / samples, p0, p1, p2), local) < threshold:
                return True
    elif distance_to_segment(local, p0, p2) < threshold:
        return True

    if el.type == Tool.ARROW:
        tip_radius = get_settings().settings.canvas.hit.arrow_tip_radius
        return distance(local, p2) < tip_radius
    return False


def hit_test_element(el: Element, pos: Point) -> bool:
    """Shape test for a single element at world point ``pos``.

    Diamonds use their bounding box rather than exact rhombus containment.
    """
    local = to_local(el, pos)
    threshold = _line_threshold()

    if el.type in BOX_TYPES:
        return rect_contains(Rect(el.x, el.y, el.width, el.height), local)
    if el.type == Tool.CIRCLE:
        return distance(local, Point(el.x, el.y)) <= el.radius
    if el.type in LINE_TYPES:
        return _line_hit(el, local, threshold)
    if el.type == Tool.TEXT:
        return rect_contains(text_rect(el), local)
    if el.type == Tool.PENCIL:
        r = bounds_of_points(el.points)
        if not (r.x - threshold <= local.x <= r.right + threshold
                and r.y - threshold <= local.y <= r.bottom + threshold):
            return False
        pts = el.points
        if len(pts) == 1:
            return distance(local, pts[0]) < threshold
        return any(distance_to_segment(local, pts[i], pts[i + 1]) < threshold for i in range(len(pts) - 1))
    return False


def get_element_at_position(elements: Sequence[Element], pos: Point) -> Optional[Element]:
    """Topmost element under ``pos``: the collection is scanned last to first."""
    for el in reversed(elements):
        if hit_test_element(el, pos):
            return el
    return None


def is_element_intersecting_rect(el: Element, marquee: Rect) -> bool:
    """Marquee test against the element's unrotated bounding box.

    Circles use a nearest-point test, lines the box of their endpoints.
    The marquee may have been dragged in any direction.
    """
    m = normalize_rect(marquee)

    if el.type == Tool.CIRCLE:
        dx = el.x - max(m.x, min(el.x, m.right))
        dy = el.y - max(m.y, min(el.y, m.bottom))
        return dx * dx + dy * dy < el.radius * el.radius
    if el.type in LINE_TYPES:
        return rects_overlap(m, Rect(el.x, el.y, el.x2 - el.x, el.y2 - el.y))
    if el.type in BOX_TYPES or el.type in (Tool.TEXT, Tool.PENCIL):
        return rects_overlap(m, shape_rect(el))
    return False


# ----------------------------
# Mutation (copy-on-write)
# ----------------------------

def move_element(el: Element, dx: float, dy: float) -> Element:
    """Translate every position-bearing field of ``el``."""
    changes = {"x": el.x + dx, "y": el.y + dy, "version": el.version + 1}
    if el.type in LINE_TYPES:
        changes["x2"] = el.x2 + dx
        changes["y2"] = el.y2 + dy
        if el.cp1x is not None and el.cp1y is not None:
            changes["cp1x"] = el.cp1x + dx
            changes["cp1y"] = el.cp1y + dy
        if el.curve_handle_x is not None and el.curve_handle_y is not None:
            changes["curve_handle_x"] = el.curve_handle_x + dx
            changes["curve_handle_y"] = el.curve_handle_y + dy
    elif el.type == Tool.PENCIL:
        changes["points"] = tuple(Point(p.x + dx, p.y + dy) for p in el.points)
    return replace(el, **changes)


def resize_element(el: Element, handle: Optional[str], dx: float, dy: float) -> Element:
    """Apply a handle drag delta to ``el``.

    Rectangles and diamonds keep the opposite corner fixed and may flip
    through zero extent. Dragging a line endpoint straightens the line.
    Text grows its font size. Unknown handles leave the element unchanged.
    """
    if not handle:
        return el

    if el.type in BOX_TYPES:
        x, y, w, h = el.x, el.y, el.width, el.height
        if handle == Handle.TOP_LEFT:
            x, y, w, h = x + dx, y + dy, w - dx, h - dy
        elif handle == Handle.TOP_RIGHT:
            y, w, h = y + dy, w + dx, h - dy
        elif handle == Handle.BOTTOM_LEFT:
            x, w, h = x + dx, w - dx, h + dy
        elif handle == Handle.BOTTOM_RIGHT:
            w, h = w + dx, h + dy
        else:
            return el
        return replace(el, x=x, y=y, width=w, height=h, version=el.version + 1)

    if el.type in LINE_TYPES:
        straight = {"cp1x": None, "cp1y": None, "curve_handle_x": None, "curve_handle_y": None}
        if handle == Handle.START:
            return replace(el, x=el.x + dx, y=el.y + dy, version=el.version + 1, **straight)
        if handle == Handle.END:
            return replace(el, x2=el.x2 + dx, y2=el.y2 + dy, version=el.version + 1, **straight)
        return el

    if el.type == Tool.CIRCLE and handle == Handle.RADIUS:
        return replace(el, radius=max(0.0, el.radius + dx), version=el.version + 1)

    if el.type == Tool.TEXT and handle == Handle.BOTTOM_RIGHT:
        cfg = get_settings().settings.canvas.interaction
        size = max(cfg.min_font_size, el.font_size + dx * cfg.font_growth)
        return replace(el, font_size=size, version=el.version + 1)

    return el


def clone_element(el: Element, new_id: str, dx: float, dy: float) -> Element:
    """Structural copy of ``el`` under ``new_id``, offset by (dx, dy)."""
    copy = replace(el, id=new_id, version=0)
    return move_element(copy, dx, dy)
