"""
canvas/render.py

Dual-layer render pipeline.

Two ARGB images are composited by the view:

- static layer: every element that is neither selected nor being edited.
  Each element is rasterized once into a snapshot image at the current
  scale and then only blitted, so panning never re-draws geometry.
- active layer: the selected elements (highlighted, with handles and
  labels), the marquee and the live angle readout. Redrawn on every pass.

Snapshots are keyed by element id and remember the element version and
view scale they were drawn at; a mismatch re-draws the element.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from PyQt6.QtCore import QPointF, QRectF, Qt
from PyQt6.QtGui import (
    QBrush,
    QColor,
    QFont,
    QFontMetricsF,
    QImage,
    QPainter,
    QPainterPath,
    QPen,
)

from debug_trace import trace
from elements import element_bounds, get_element_center, get_handles, set_text_measurer
from geometry import Point, Rect, normalize_rect
from interaction import AngleInfo, EditorState
from models import LINE_TYPES, Element, Handle, Tool, is_curved
from settings import get_settings
from utils import hex_to_qcolor

# Snapshots larger than this (in pixels, per side) are drawn directly
MAX_SNAPSHOT_SIDE = 4096

ARROWHEAD_LENGTH = 10.0
ARROWHEAD_HALF_WIDTH = 5.0


# ----------------------------
# Fonts and text metrics
# ----------------------------

def make_font(size: float, family: Optional[str] = None) -> QFont:
    """Pixel-sized font; ``sans-serif`` maps to the platform sans-serif family."""
    font = QFont()
    if family and family != "sans-serif":
        font.setFamily(family)
    else:
        font.setStyleHint(QFont.StyleHint.SansSerif)
    font.setPixelSize(max(1, int(round(size))))
    return font


def qt_text_size(text: str, font_size: float, font_family: Optional[str] = None) -> Tuple[float, float]:
    """Measure text with Qt font metrics. Lines advance by ``font_size``."""
    fm = QFontMetricsF(make_font(font_size, font_family))
    lines = text.split("\n")
    width = max(fm.horizontalAdvance(line) for line in lines)
    return width, len(lines) * font_size


# ----------------------------
# Snapshot cache
# ----------------------------

class Snapshot(NamedTuple):
    """A rasterized element.

    ``world_origin`` is the world point drawn at the image's top-left pixel.
    """
    version: int
    scale: float
    image: QImage
    world_origin: Point


class SnapshotCache:
    """Per-element raster cache keyed by element id."""

    def __init__(self):
        self._entries: Dict[str, Snapshot] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, element_id: str) -> bool:
        return element_id in self._entries

    def get(self, el: Element, scale: float) -> Optional[Snapshot]:
        """Cached snapshot of ``el`` if it was drawn at this version and scale."""
        snap = self._entries.get(el.id)
        if snap is not None and snap.version == el.version and snap.scale == scale:
            self.hits += 1
            return snap
        self.misses += 1
        return None

    def put(self, element_id: str, snapshot: Snapshot) -> None:
        self._entries[element_id] = snapshot

    def prune(self, live_ids: Iterable[str]) -> int:
        """Drop entries whose element left the collection. Returns how many were dropped."""
        live = set(live_ids)
        stale = [k for k in self._entries if k not in live]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()


# ----------------------------
# Layer partition
# ----------------------------

def static_elements(state: EditorState) -> List[Element]:
    """Committed elements drawn on the static layer, in z-order."""
    hidden = set(state.selected_ids)
    if state.editing is not None:
        hidden.add(state.editing.id)
    return [el for el in state.elements if el.id not in hidden]


# ----------------------------
# Element drawing
# ----------------------------

class _Style:
    """Pens and colors resolved from settings for one render pass."""

    def __init__(self):
        s = get_settings().settings.canvas
        black = QColor(0, 0, 0)
        self.line_width = s.render.line_width
        self.background = hex_to_qcolor(s.render.background_color, QColor(255, 255, 255))
        self.stroke = hex_to_qcolor(s.render.stroke_color, black)
        self.highlight = hex_to_qcolor(s.render.highlight_color, QColor(255, 0, 0))
        self.label_font_size = s.render.label_font_size
        self.label_line_height = s.render.label_line_height
        self.marquee = hex_to_qcolor(s.render.marquee_color, QColor(0, 0, 255))
        self.marquee_fill = hex_to_qcolor(s.render.marquee_fill, QColor(0, 0, 255, 26))
        self.handle_size = s.handles.size
        self.icon_size = s.handles.icon_size
        self.resize_color = hex_to_qcolor(s.handles.resize_color, QColor(0, 0, 255))
        self.curve_color = hex_to_qcolor(s.handles.curve_color, QColor(255, 165, 0))
        self.copy_color = hex_to_qcolor(s.handles.copy_color, QColor(0, 128, 0))
        self.rotation_color = hex_to_qcolor(s.handles.rotation_color, QColor(0, 0, 255))

    def pen(self, highlight: bool) -> QPen:
        pen = QPen(self.highlight if highlight else self.stroke, self.line_width)
        pen.setCapStyle(Qt.PenCapStyle.RoundCap)
        pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
        if highlight:
            # 5 on / 3 off, expressed in pen widths
            pen.setDashPattern([5 / self.line_width, 3 / self.line_width])
        return pen

    def snapshot_padding(self) -> float:
        return self.line_width * 2 + ARROWHEAD_LENGTH


def _line_path(el: Element) -> QPainterPath:
    path = QPainterPath(QPointF(el.x, el.y))
    if is_curved(el):
        path.quadTo(QPointF(el.cp1x, el.cp1y), QPointF(el.x2, el.y2))
    else:
        path.lineTo(QPointF(el.x2, el.y2))
    return path


def _pencil_path(points) -> QPainterPath:
    path = QPainterPath(QPointF(points[0].x, points[0].y))
    # smooth through midpoints of consecutive samples
    for p1, p2 in zip(points[1:-1], points[2:]):
        path.quadTo(QPointF(p1.x, p1.y), QPointF((p1.x + p2.x) / 2, (p1.y + p2.y) / 2))
    if len(points) > 1:
        path.lineTo(QPointF(points[-1].x, points[-1].y))
    return path


def _draw_arrowhead(painter: QPainter, el: Element, color: QColor):
    if is_curved(el):
        # tangent at t=1 runs from the control point to the end point
        angle = math.atan2(el.y2 - el.cp1y, el.x2 - el.cp1x)
    else:
        angle = math.atan2(el.y2 - el.y, el.x2 - el.x)
    head = QPainterPath(QPointF(0, 0))
    head.lineTo(-ARROWHEAD_LENGTH, -ARROWHEAD_HALF_WIDTH)
    head.lineTo(-ARROWHEAD_LENGTH, ARROWHEAD_HALF_WIDTH)
    head.closeSubpath()

    painter.save()
    painter.translate(el.x2, el.y2)
    painter.rotate(math.degrees(angle))
    painter.setPen(Qt.PenStyle.NoPen)
    painter.setBrush(QBrush(color))
    painter.drawPath(head)
    painter.restore()


def draw_label(painter: QPainter, label: str, center: Point, style: _Style):
    """Draw a multi-line label centered horizontally, first line centered on ``center``."""
    font = make_font(style.label_font_size)
    fm = QFontMetricsF(font)
    painter.save()
    painter.setFont(font)
    painter.setPen(QPen(style.stroke))
    baseline_shift = (fm.ascent() - fm.descent()) / 2
    for i, line in enumerate(label.split("\n")):
        w = fm.horizontalAdvance(line)
        painter.drawText(QPointF(center.x - w / 2, center.y + i * style.label_line_height + baseline_shift), line)
    painter.restore()


def _draw_text_element(painter: QPainter, el: Element, color: QColor):
    font = make_font(el.font_size, el.font_family)
    fm = QFontMetricsF(font)
    painter.setFont(font)
    painter.setPen(QPen(color))
    for i, line in enumerate(el.text.split("\n")):
        painter.drawText(QPointF(el.x, el.y + i * el.font_size + fm.ascent()), line)


def _copy_icon() -> QPainterPath:
    # two overlapping sheets on a 24x24 grid
    path = QPainterPath()
    path.addRoundedRect(QRectF(9, 9, 13, 13), 2, 2)
    path.moveTo(5, 15)
    path.lineTo(4, 15)
    path.quadTo(2, 15, 2, 13)
    path.lineTo(2, 4)
    path.quadTo(2, 2, 4, 2)
    path.lineTo(13, 2)
    path.quadTo(15, 2, 15, 4)
    path.lineTo(15, 5)
    return path


def _rotation_icon() -> QPainterPath:
    # circular arrow on a 24x24 grid
    path = QPainterPath()
    path.moveTo(23, 4)
    path.lineTo(23, 10)
    path.lineTo(17, 10)
    path.moveTo(20.49, 15)
    path.arcTo(QRectF(3, 3, 18, 18), -19.5, -295.5)
    path.lineTo(23, 10)
    return path


def _draw_icon(painter: QPainter, path: QPainterPath, x: float, y: float, color: QColor, size: float):
    painter.save()
    painter.translate(x - size / 2, y - size / 2)
    painter.scale(size / 24.0, size / 24.0)
    pen = QPen(color, 2.5)
    pen.setCapStyle(Qt.PenCapStyle.RoundCap)
    pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
    painter.setPen(pen)
    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.drawPath(path)
    painter.restore()


def draw_handles(painter: QPainter, el: Element, style: _Style):
    """Draw the handles of ``el`` in its local frame (the painter is already rotated)."""
    half = style.handle_size / 2
    painter.save()
    painter.setPen(Qt.PenStyle.NoPen)
    for h in get_handles(el):
        if h.type == Handle.COPY:
            _draw_icon(painter, _copy_icon(), h.x, h.y, style.copy_color, style.icon_size)
            continue
        if h.type == Handle.ROTATION:
            _draw_icon(painter, _rotation_icon(), h.x, h.y, style.rotation_color, style.icon_size)
            continue
        color = style.curve_color if h.type == Handle.CURVE else style.resize_color
        painter.setBrush(QBrush(color))
        if el.type in LINE_TYPES or h.type == Handle.CURVE:
            painter.drawEllipse(QPointF(h.x, h.y), half, half)
        else:
            painter.drawRect(QRectF(h.x - half, h.y - half, style.handle_size, style.handle_size))
    painter.restore()


def draw_element(painter: QPainter, el: Element, style: _Style, highlight: bool = False):
    """Draw one element in world coordinates.

    Highlighted elements are stroked in the highlight color with a dashed
    pen and get their handles. Labels are drawn for non-highlighted
    elements only; the active layer draws them on top separately.
    Unknown variants draw nothing.
    """
    painter.save()
    center = get_element_center(el)
    if el.rotation:
        painter.translate(center.x, center.y)
        painter.rotate(el.rotation)
        painter.translate(-center.x, -center.y)

    color = style.highlight if highlight else style.stroke
    painter.setPen(style.pen(highlight))
    painter.setBrush(Qt.BrushStyle.NoBrush)
    label_center: Optional[Point] = center

    if el.type == Tool.RECTANGLE:
        r = normalize_rect(Rect(el.x, el.y, el.width, el.height))
        painter.drawRect(QRectF(r.x, r.y, r.width, r.height))
        label_center = r.center
    elif el.type == Tool.DIAMOND:
        r = normalize_rect(Rect(el.x, el.y, el.width, el.height))
        path = QPainterPath(QPointF(r.x + r.width / 2, r.y))
        path.lineTo(r.right, r.y + r.height / 2)
        path.lineTo(r.x + r.width / 2, r.bottom)
        path.lineTo(r.x, r.y + r.height / 2)
        path.closeSubpath()
        painter.drawPath(path)
        label_center = r.center
    elif el.type == Tool.CIRCLE:
        painter.drawEllipse(QPointF(el.x, el.y), el.radius, el.radius)
    elif el.type in LINE_TYPES:
        painter.drawPath(_line_path(el))
        if el.type == Tool.ARROW:
            _draw_arrowhead(painter, el, color)
    elif el.type == Tool.TEXT:
        _draw_text_element(painter, el, color)
    elif el.type == Tool.PENCIL:
        if el.points:
            painter.drawPath(_pencil_path(el.points))
    else:
        label_center = None

    if label_center is not None and el.label and not highlight:
        draw_label(painter, el.label, label_center, style)
    if highlight and label_center is not None:
        draw_handles(painter, el, style)
    painter.restore()


def draw_angle_indicator(painter: QPainter, info: AngleInfo):
    """Angle readout in screen space, offset from the pointer."""
    text = f"{info.angle}°"
    font = make_font(12)
    fm = QFontMetricsF(font)
    padding = 6
    w = fm.horizontalAdvance(text) + padding * 2
    h = 12 + padding
    rect = QRectF(info.screen.x + 15, info.screen.y + 15, w, h)

    painter.save()
    painter.setPen(Qt.PenStyle.NoPen)
    painter.setBrush(QBrush(QColor(0, 0, 0, 191)))
    painter.drawRoundedRect(rect, 4, 4)
    painter.setFont(font)
    painter.setPen(QPen(QColor(255, 255, 255)))
    painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, text)
    painter.restore()


# ----------------------------
# Pipeline
# ----------------------------

class RenderPipeline:
    """Owns the two layer images and the snapshot cache.

    Creating a pipeline installs the Qt text measurer, so element hit
    testing and drawing agree on text extents.
    """

    def __init__(self, width: int = 0, height: int = 0):
        self.static_layer: Optional[QImage] = None
        self.active_layer: Optional[QImage] = None
        self.cache = SnapshotCache()
        set_text_measurer(qt_text_size)
        if width > 0 and height > 0:
            self.resize(width, height)

    @property
    def size(self) -> Tuple[int, int]:
        if self.static_layer is None:
            return 0, 0
        return self.static_layer.width(), self.static_layer.height()

    def resize(self, width: int, height: int) -> None:
        """Reallocate both layers. Every snapshot is dropped."""
        self.cache.clear()
        if width <= 0 or height <= 0:
            self.static_layer = None
            self.active_layer = None
            return
        fmt = QImage.Format.Format_ARGB32_Premultiplied
        self.static_layer = QImage(width, height, fmt)
        self.active_layer = QImage(width, height, fmt)
        self.static_layer.fill(Qt.GlobalColor.transparent)
        self.active_layer.fill(Qt.GlobalColor.transparent)

    def invalidate(self) -> None:
        """Drop every cached snapshot (e.g. after clear-all)."""
        self.cache.clear()

    def render(self, state: EditorState) -> bool:
        """Draw both layers for ``state``.

        Returns:
            False when there is no drawing surface and the pass was skipped.
        """
        if self.static_layer is None or self.active_layer is None:
            return False
        if self.static_layer.isNull() or self.active_layer.isNull():
            return False

        style = _Style()
        drawn, reused = self._render_static(state, style)
        self._render_active(state, style)
        pruned = self.cache.prune(el.id for el in state.elements)
        trace(
            f"static: {drawn} drawn, {reused} reused, {pruned} pruned; active: {len(state.selected)}",
            "RENDER",
        )
        return True

    def composite(self, painter: QPainter) -> None:
        """Paint both layers, static first."""
        if self.static_layer is None or self.active_layer is None:
            return
        painter.drawImage(0, 0, self.static_layer)
        painter.drawImage(0, 0, self.active_layer)

    # --- static layer ---

    def _snapshot(self, el: Element, scale: float, style: _Style) -> Optional[Snapshot]:
        snap = self.cache.get(el, scale)
        if snap is not None:
            return snap
        bounds = element_bounds(el, style.snapshot_padding())
        if bounds is None:
            return None
        w = int(math.ceil(bounds.width * scale)) + 1
        h = int(math.ceil(bounds.height * scale)) + 1
        if w > MAX_SNAPSHOT_SIDE or h > MAX_SNAPSHOT_SIDE:
            return None

        image = QImage(w, h, QImage.Format.Format_ARGB32_Premultiplied)
        image.fill(Qt.GlobalColor.transparent)
        p = QPainter(image)
        p.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        p.setRenderHint(QPainter.RenderHint.TextAntialiasing, True)
        p.scale(scale, scale)
        p.translate(-bounds.x, -bounds.y)
        draw_element(p, el, style)
        p.end()

        snap = Snapshot(el.version, scale, image, Point(bounds.x, bounds.y))
        self.cache.put(el.id, snap)
        return snap

    def _render_static(self, state: EditorState, style: _Style) -> Tuple[int, int]:
        view = state.view
        self.static_layer.fill(style.background)
        painter = QPainter(self.static_layer)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
        drawn = reused = 0
        try:
            for el in static_elements(state):
                hits_before = self.cache.hits
                snap = self._snapshot(el, view.scale, style)
                if snap is None:
                    # oversized or unknown: draw straight onto the layer
                    painter.save()
                    painter.translate(view.offset_x, view.offset_y)
                    painter.scale(view.scale, view.scale)
                    draw_element(painter, el, style)
                    painter.restore()
                    drawn += 1
                    continue
                if self.cache.hits > hits_before:
                    reused += 1
                else:
                    drawn += 1
                origin = view.to_screen(snap.world_origin)
                painter.drawImage(QPointF(origin.x, origin.y), snap.image)
        finally:
            painter.end()
        return drawn, reused

    # --- active layer ---

    def _render_active(self, state: EditorState, style: _Style) -> None:
        view = state.view
        self.active_layer.fill(Qt.GlobalColor.transparent)
        painter = QPainter(self.active_layer)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.setRenderHint(QPainter.RenderHint.TextAntialiasing, True)
        try:
            painter.save()
            painter.translate(view.offset_x, view.offset_y)
            painter.scale(view.scale, view.scale)
            editing_id = state.editing.id if state.editing is not None else None
            for el in state.selected:
                draw_element(painter, el, style, highlight=True)
                if el.label and el.id != editing_id:
                    self._draw_rotated_label(painter, el, style)
            if state.marquee is not None:
                m = normalize_rect(state.marquee)
                pen = QPen(style.marquee, 1)
                pen.setCosmetic(True)
                painter.setPen(pen)
                painter.setBrush(QBrush(style.marquee_fill))
                painter.drawRect(QRectF(m.x, m.y, m.width, m.height))
            painter.restore()

            if state.angle_info is not None:
                draw_angle_indicator(painter, state.angle_info)
        finally:
            painter.end()

    def _draw_rotated_label(self, painter: QPainter, el: Element, style: _Style):
        center = get_element_center(el)
        painter.save()
        if el.rotation:
            painter.translate(center.x, center.y)
            painter.rotate(el.rotation)
            painter.translate(-center.x, -center.y)
        draw_label(painter, el.label, center, style)
        painter.restore()
