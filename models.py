"""
models.py

Data models and constants for the SketchBoard whiteboard.

Elements are a tagged union of frozen dataclasses. Every variant carries its
own ``type`` tag and shares the fields of ``ElementBase``; code dispatches on
``el.type`` rather than on class hierarchy.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple, Union

from geometry import Point


# ----------------------------
# Tool / action / handle constants
# ----------------------------

class Tool:
    """Toolbar tools. Every drawing tool name doubles as an element type tag."""
    SELECTION = "selection"
    RECTANGLE = "rectangle"
    DIAMOND = "diamond"
    CIRCLE = "circle"
    LINE = "line"
    ARROW = "arrow"
    TEXT = "text"
    PENCIL = "pencil"

    ALL = (SELECTION, RECTANGLE, DIAMOND, CIRCLE, LINE, ARROW, TEXT, PENCIL)


class Action:
    """Interaction states of the editor."""
    NONE = "none"
    DRAWING = "drawing"
    DRAGGING = "dragging"
    RESIZING = "resizing"
    ROTATING = "rotating"
    CURVING = "curving"
    MULTI_SELECTING = "multi-selecting"
    PLACING = "placing"
    PANNING = "panning"


class Handle:
    """Handle type names returned by ``elements.get_handles``."""
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"
    START = "start"
    END = "end"
    RADIUS = "radius"
    COPY = "copy"
    ROTATION = "rotation"
    CURVE = "curve"

    # Drawn as icons and hit-tested with the larger icon square
    ICON_HANDLES = frozenset({COPY, ROTATION, CURVE})


# ----------------------------
# Element variants
# ----------------------------

@dataclass(frozen=True)
class ElementBase:
    """Fields shared by every element variant.

    ``version`` is bumped on every mutation and keys the render snapshot
    cache; it is excluded from equality and never persisted.
    """
    id: str
    x: float = 0.0
    y: float = 0.0
    rotation: float = 0.0
    label: Optional[str] = None
    scale_x: Optional[float] = None
    scale_y: Optional[float] = None
    version: int = field(default=0, compare=False)


@dataclass(frozen=True)
class RectangleElement(ElementBase):
    width: float = 0.0
    height: float = 0.0
    type: str = field(default=Tool.RECTANGLE, init=False)


@dataclass(frozen=True)
class DiamondElement(ElementBase):
    width: float = 0.0
    height: float = 0.0
    type: str = field(default=Tool.DIAMOND, init=False)


@dataclass(frozen=True)
class CircleElement(ElementBase):
    radius: float = 0.0
    type: str = field(default=Tool.CIRCLE, init=False)


@dataclass(frozen=True)
class LineElement(ElementBase):
    """Straight or quadratic line. Curved iff ``cp1x``/``cp1y`` are set."""
    x2: float = 0.0
    y2: float = 0.0
    cp1x: Optional[float] = None
    cp1y: Optional[float] = None
    curve_handle_x: Optional[float] = None
    curve_handle_y: Optional[float] = None
    type: str = field(default=Tool.LINE, init=False)


@dataclass(frozen=True)
class ArrowElement(ElementBase):
    """Same geometry as ``LineElement`` plus an arrowhead at (x2, y2)."""
    x2: float = 0.0
    y2: float = 0.0
    cp1x: Optional[float] = None
    cp1y: Optional[float] = None
    curve_handle_x: Optional[float] = None
    curve_handle_y: Optional[float] = None
    type: str = field(default=Tool.ARROW, init=False)


@dataclass(frozen=True)
class TextElement(ElementBase):
    text: str = ""
    font_size: float = 24.0
    font_family: Optional[str] = None
    type: str = field(default=Tool.TEXT, init=False)


@dataclass(frozen=True)
class PencilElement(ElementBase):
    points: Tuple[Point, ...] = ()
    type: str = field(default=Tool.PENCIL, init=False)


Element = Union[
    RectangleElement,
    DiamondElement,
    CircleElement,
    LineElement,
    ArrowElement,
    TextElement,
    PencilElement,
]

ELEMENT_CLASSES: Dict[str, type] = {
    Tool.RECTANGLE: RectangleElement,
    Tool.DIAMOND: DiamondElement,
    Tool.CIRCLE: CircleElement,
    Tool.LINE: LineElement,
    Tool.ARROW: ArrowElement,
    Tool.TEXT: TextElement,
    Tool.PENCIL: PencilElement,
}

BOX_TYPES = frozenset({Tool.RECTANGLE, Tool.DIAMOND})
LINE_TYPES = frozenset({Tool.LINE, Tool.ARROW})


def is_curved(el: Element) -> bool:
    """True for a line/arrow carrying a control point."""
    return el.type in LINE_TYPES and el.cp1x is not None and el.cp1y is not None


# ----------------------------
# Record conversion
# ----------------------------

# Canonical key order for element records
RECORD_KEY_ORDER = ["id", "type", "x", "y"]


def element_to_record(el: Element) -> Dict[str, Any]:
    """Serialize an element to a plain JSON-ready dict.

    ``None`` fields and the in-memory ``version`` counter are omitted, as is
    a zero rotation. Pencil points become ``{"x": .., "y": ..}`` dicts.
    """
    rec: Dict[str, Any] = {}
    for key in RECORD_KEY_ORDER:
        rec[key] = getattr(el, key)
    for f in fields(el):
        name = f.name
        if name in rec or name == "version":
            continue
        value = getattr(el, name)
        if value is None:
            continue
        if name == "rotation" and not value:
            continue
        if name == "points":
            value = [{"x": p.x, "y": p.y} for p in value]
        rec[name] = value
    return rec


def element_from_record(rec: Dict[str, Any]) -> Element:
    """Build an element from a record dict.

    Unknown keys are ignored. Numeric fields accept numbers or numeric
    strings and are stored as floats.

    Raises:
        ValueError: If the record is not a dict, has no usable ``id``,
            carries an unknown ``type`` tag or has a field of the wrong type.
    """
    if not isinstance(rec, dict):
        raise ValueError(f"element record must be an object, got {type(rec).__name__}")
    el_type = rec.get("type")
    cls = ELEMENT_CLASSES.get(el_type)
    if cls is None:
        raise ValueError(f"unknown element type: {el_type!r}")
    if not rec.get("id"):
        raise ValueError("element record has no id")

    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if not f.init or f.name == "version" or f.name not in rec:
            continue
        value = rec[f.name]
        if f.name == "points":
            if not isinstance(value, list) or not all(isinstance(p, dict) for p in value):
                raise ValueError("points must be a list of {x, y} objects")
            value = tuple(
                Point(_coerce_number("x", p.get("x")), _coerce_number("y", p.get("y")))
                for p in value
            )
        elif f.type in ("float", "Optional[float]"):
            if value is not None or f.type == "float":
                value = _coerce_number(f.name, value)
        elif f.type in ("str", "Optional[str]"):
            if not (isinstance(value, str) or (value is None and f.type == "Optional[str]")):
                raise ValueError(f"{f.name} must be a string, got {type(value).__name__}")
        kwargs[f.name] = value
    return cls(**kwargs)


def _coerce_number(name: str, value: Any) -> float:
    """Convert a stored number (or numeric string) to a finite float."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"{name} must be a number, got {type(value).__name__}")
    try:
        number = float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return number


# ----------------------------
# Viewport transform
# ----------------------------

@dataclass(frozen=True)
class ViewTransform:
    """Scale + pan mapping between world coordinates and screen pixels.

    ``screen = world * scale + offset``.
    """
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def to_world(self, p: Point) -> Point:
        return Point((p[0] - self.offset_x) / self.scale, (p[1] - self.offset_y) / self.scale)

    def to_screen(self, p: Point) -> Point:
        return Point(p[0] * self.scale + self.offset_x, p[1] * self.scale + self.offset_y)

    def panned(self, dx: float, dy: float) -> "ViewTransform":
        """Return a transform translated by a screen-space delta."""
        return ViewTransform(self.scale, self.offset_x + dx, self.offset_y + dy)

    def zoomed(self, factor: float, anchor: Point, min_scale: float, max_scale: float) -> "ViewTransform":
        """Return a transform scaled by ``factor`` keeping ``anchor`` (screen) fixed.

        The resulting scale is clamped to ``[min_scale, max_scale]``.
        """
        new_scale = max(min_scale, min(max_scale, self.scale * factor))
        world = self.to_world(anchor)
        return ViewTransform(
            new_scale,
            anchor[0] - world[0] * new_scale,
            anchor[1] - world[1] * new_scale,
        )
