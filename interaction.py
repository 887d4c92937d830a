"""
interaction.py

Interaction state machine for the whiteboard.

The whole editor is one immutable ``EditorState``. Pointer events and
toolbar/keyboard commands are pure functions ``(state, ...) -> state'``;
nothing here touches Qt, so the state machine can be driven directly from
tests. ``canvas.view.WhiteboardView`` feeds Qt events in and renders the
result.

Actions (``models.Action``):
    none -> drawing | dragging | resizing | rotating | curving
            | multi-selecting | placing | panning
Every pointer-up returns to ``none``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from debug_trace import trace
from elements import (
    clone_element,
    generate_id,
    get_element_at_position,
    get_element_center,
    hit_test_handle,
    is_element_intersecting_rect,
    move_element,
    resize_element,
    to_local,
)
from geometry import (
    Point,
    Rect,
    angle_degrees,
    control_point_for_handle,
    distance,
    normalize_rect,
    rotate_point,
    simplify_path,
)
from models import (
    LINE_TYPES,
    Action,
    ArrowElement,
    CircleElement,
    DiamondElement,
    Element,
    Handle,
    LineElement,
    PencilElement,
    RectangleElement,
    TextElement,
    Tool,
    ViewTransform,
)
from settings import get_settings


class Button:
    """Pointer buttons understood by the state machine."""
    LEFT = "left"
    MIDDLE = "middle"


class Modifier:
    """Held keys that turn a primary-button press into a pan."""
    SPACE = "space"
    CTRL = "ctrl"

    PAN = frozenset({SPACE, CTRL})


class Cursor:
    """Cursor names exposed to the host; the view maps them to Qt cursors."""
    DEFAULT = "default"
    CROSSHAIR = "crosshair"
    MOVE = "move"
    POINTER = "pointer"
    NWSE_RESIZE = "nwse-resize"
    NESW_RESIZE = "nesw-resize"
    EW_RESIZE = "ew-resize"
    GRABBING = "grabbing"


_HANDLE_CURSORS = {
    Handle.TOP_LEFT: Cursor.NWSE_RESIZE,
    Handle.BOTTOM_RIGHT: Cursor.NWSE_RESIZE,
    Handle.TOP_RIGHT: Cursor.NESW_RESIZE,
    Handle.BOTTOM_LEFT: Cursor.NESW_RESIZE,
    Handle.START: Cursor.POINTER,
    Handle.END: Cursor.POINTER,
    Handle.ROTATION: Cursor.CROSSHAIR,
    Handle.CURVE: Cursor.MOVE,
}


@dataclass(frozen=True)
class PointerEvent:
    """A pointer sample in screen (widget) coordinates."""
    x: float
    y: float
    pointer_id: int = 0
    button: str = Button.LEFT

    @property
    def pos(self) -> Point:
        return Point(self.x, self.y)


@dataclass(frozen=True)
class AngleInfo:
    """Live angle readout for a line/arrow being drawn or resized.

    ``screen`` is where the pointer was; the readout is drawn next to it.
    """
    angle: int
    screen: Point


@dataclass(frozen=True)
class Interaction:
    """Scratch data for the action in progress, reset on every pointer-up."""
    start: Optional[Point] = None           # world point of the last anchor sample
    start_screen: Optional[Point] = None
    drag_offset: Optional[Point] = None     # pointer minus lead element anchor
    lead_id: Optional[str] = None
    handle: Optional[str] = None
    rotation_center: Optional[Point] = None  # pivot fixed at rotate/curve start
    initial_rotation: float = 0.0
    pan_anchor: Optional[Point] = None      # screen point (or two-finger midpoint)


@dataclass(frozen=True)
class EditorState:
    """Complete editor state.

    Attributes:
        elements: Committed collection; later elements draw on top.
        selected: Working copies of the selected elements. During an action
            they run ahead of ``elements`` until pointer-up commits them.
        editing: Element whose label (or text) is being edited, if any.
        tool: Active toolbar tool.
        action: Current interaction state.
        view: Viewport transform.
        marquee: World-space marquee while multi-selecting.
        angle_info: Live angle readout for line/arrow edits.
        cursor: Cursor name for the host to display.
        modifiers: Held pan modifiers.
        pointers: Active pointer ids mapped to their screen position.
        interaction: Scratch data for the current action.
    """
    elements: Tuple[Element, ...] = ()
    selected: Tuple[Element, ...] = ()
    editing: Optional[Element] = None
    tool: str = Tool.SELECTION
    action: str = Action.NONE
    view: ViewTransform = field(default_factory=ViewTransform)
    marquee: Optional[Rect] = None
    angle_info: Optional[AngleInfo] = None
    cursor: str = Cursor.DEFAULT
    modifiers: FrozenSet[str] = frozenset()
    pointers: Dict[int, Point] = field(default_factory=dict)
    interaction: Interaction = field(default_factory=Interaction)

    @property
    def selected_ids(self) -> Tuple[str, ...]:
        return tuple(el.id for el in self.selected)

    @property
    def primary(self) -> Optional[Element]:
        """First selected element; its handles are the interactive ones."""
        return self.selected[0] if self.selected else None

    def find(self, element_id: str) -> Optional[Element]:
        """Committed element with ``element_id``, or None."""
        for el in self.elements:
            if el.id == element_id:
                return el
        return None


# ----------------------------
# Helpers
# ----------------------------

def upsert_elements(elements: Tuple[Element, ...], updated: Iterable[Element]) -> Tuple[Element, ...]:
    """Replace elements by id, appending the ones that are new.

    Existing elements keep their z-order position.
    """
    by_id = {el.id: el for el in updated}
    out = [by_id.pop(el.id, el) for el in elements]
    out.extend(by_id.values())
    return tuple(out)


def _tool_cursor(tool: str) -> str:
    return Cursor.DEFAULT if tool == Tool.SELECTION else Cursor.CROSSHAIR


def _transition(state: EditorState, **changes) -> EditorState:
    new_action = changes.get("action", state.action)
    if new_action != state.action:
        trace(f"{state.action} -> {new_action} (tool={changes.get('tool', state.tool)})", "STATE")
    return replace(state, **changes)


def _pan_anchor(pointers: Dict[int, Point], fallback: Point) -> Point:
    if len(pointers) >= 2:
        a, b = list(pointers.values())[:2]
        return Point((a.x + b.x) / 2, (a.y + b.y) / 2)
    if pointers:
        return next(iter(pointers.values()))
    return fallback


def _new_element(tool: str, pos: Point) -> Element:
    new_id = generate_id()
    if tool == Tool.RECTANGLE:
        return RectangleElement(id=new_id, x=pos.x, y=pos.y)
    if tool == Tool.DIAMOND:
        return DiamondElement(id=new_id, x=pos.x, y=pos.y)
    if tool == Tool.CIRCLE:
        return CircleElement(id=new_id, x=pos.x, y=pos.y)
    if tool == Tool.ARROW:
        return ArrowElement(id=new_id, x=pos.x, y=pos.y, x2=pos.x, y2=pos.y)
    if tool == Tool.PENCIL:
        return PencilElement(id=new_id, x=pos.x, y=pos.y, points=(pos,))
    return LineElement(id=new_id, x=pos.x, y=pos.y, x2=pos.x, y2=pos.y)


def _line_angle(el: Element, screen: Point) -> Optional[AngleInfo]:
    if el.x2 == el.x and el.y2 == el.y:
        return None
    return AngleInfo(round(angle_degrees(Point(el.x, el.y), Point(el.x2, el.y2))), screen)


def _begin_pan(state: EditorState, pointers: Dict[int, Point], screen: Point) -> EditorState:
    """Enter panning, abandoning whatever was in progress.

    A shape being drawn is discarded. Working copies of an in-progress
    drag/resize/rotate/curve revert to their committed versions.
    """
    if state.action == Action.DRAWING:
        selected: Tuple[Element, ...] = ()
    else:
        selected = tuple(c for c in (state.find(el.id) for el in state.selected) if c is not None)
    return _transition(
        state,
        action=Action.PANNING,
        selected=selected,
        pointers=pointers,
        marquee=None,
        angle_info=None,
        cursor=Cursor.GRABBING,
        interaction=Interaction(pan_anchor=_pan_anchor(pointers, screen)),
    )


# ----------------------------
# Pointer transitions
# ----------------------------

def pointer_down(state: EditorState, event: PointerEvent) -> EditorState:
    """Start an interaction.

    Middle button, a held space/ctrl modifier or a second touch point start
    a pan. Otherwise the selection tool tries, in order, a handle on the
    primary selected element, an element body, then an empty-canvas marquee.
    Drawing tools create a zero-extent element (text starts placing).
    """
    screen = event.pos
    pointers = dict(state.pointers)
    pointers[event.pointer_id] = screen

    if (
        event.button == Button.MIDDLE
        or state.modifiers & Modifier.PAN
        or len(pointers) >= 2
        or state.action == Action.PANNING
    ):
        return _begin_pan(state, pointers, screen)

    world = state.view.to_world(screen)
    state = replace(state, pointers=pointers)

    if state.tool != Tool.SELECTION:
        if state.tool == Tool.TEXT:
            return _transition(
                state,
                action=Action.PLACING,
                interaction=Interaction(start=world, start_screen=screen),
            )
        el = _new_element(state.tool, world)
        return _transition(
            state,
            action=Action.DRAWING,
            selected=(el,),
            interaction=Interaction(start=world, start_screen=screen, lead_id=el.id),
        )

    primary = state.primary
    if primary is not None:
        handle = hit_test_handle(primary, world)
        if handle == Handle.ROTATION:
            return _transition(
                state,
                action=Action.ROTATING,
                interaction=Interaction(
                    start=world,
                    lead_id=primary.id,
                    handle=handle,
                    rotation_center=get_element_center(primary),
                    initial_rotation=primary.rotation or 0.0,
                ),
            )
        if handle == Handle.CURVE:
            return _transition(
                state,
                action=Action.CURVING,
                interaction=Interaction(
                    start=world,
                    lead_id=primary.id,
                    handle=handle,
                    rotation_center=get_element_center(primary),
                ),
            )
        if handle == Handle.COPY:
            offset = get_settings().settings.canvas.interaction.copy_offset
            clone = clone_element(primary, generate_id(), offset, offset)
            trace(f"copied {primary.id} -> {clone.id}", "STATE")
            return _transition(
                state,
                action=Action.NONE,
                elements=upsert_elements(state.elements, [clone]),
                selected=(clone,),
                interaction=Interaction(),
            )
        if handle:
            return _transition(
                state,
                action=Action.RESIZING,
                interaction=Interaction(start=world, lead_id=primary.id, handle=handle),
            )

    hit = get_element_at_position(state.elements, world)
    if hit is not None:
        selected = state.selected if hit.id in state.selected_ids else (hit,)
        return _transition(
            state,
            action=Action.DRAGGING,
            selected=selected,
            interaction=Interaction(
                start=world,
                lead_id=hit.id,
                drag_offset=Point(world.x - hit.x, world.y - hit.y),
            ),
        )

    return _transition(
        state,
        action=Action.MULTI_SELECTING,
        selected=(),
        marquee=Rect(world.x, world.y, 0.0, 0.0),
        interaction=Interaction(start=world),
    )


def hover_cursor(state: EditorState, world: Point) -> str:
    """Cursor for an idle selection-tool pointer at ``world``.

    Handles of the primary selected element take precedence over element
    bodies.
    """
    candidates = []
    if state.primary is not None:
        candidates.append(state.primary)
    hit = get_element_at_position(state.elements, world)
    if hit is not None:
        candidates.append(hit)
    for el in candidates:
        handle = hit_test_handle(el, world)
        if handle:
            return _HANDLE_CURSORS.get(handle, Cursor.EW_RESIZE)
    return Cursor.MOVE if hit is not None else Cursor.DEFAULT


def _move_drawing(state: EditorState, world: Point, screen: Point) -> EditorState:
    el = state.primary
    if el is None:
        return state
    start = state.interaction.start
    angle_info = None
    if el.type in (Tool.RECTANGLE, Tool.DIAMOND):
        el = replace(el, width=world.x - start.x, height=world.y - start.y, version=el.version + 1)
    elif el.type == Tool.CIRCLE:
        el = replace(el, radius=distance(start, world), version=el.version + 1)
    elif el.type in LINE_TYPES:
        el = replace(el, x2=world.x, y2=world.y, version=el.version + 1)
        angle_info = _line_angle(el, screen)
    elif el.type == Tool.PENCIL:
        el = replace(el, points=el.points + (world,), version=el.version + 1)
    return replace(state, selected=(el,), angle_info=angle_info)


def _move_dragging(state: EditorState, world: Point) -> EditorState:
    it = state.interaction
    lead = next((el for el in state.selected if el.id == it.lead_id), None)
    if lead is None:
        return state
    dx = world.x - it.drag_offset.x - lead.x
    dy = world.y - it.drag_offset.y - lead.y
    if dx == 0 and dy == 0:
        return state
    return replace(state, selected=tuple(move_element(el, dx, dy) for el in state.selected))


def _move_rotating(state: EditorState, world: Point) -> EditorState:
    el = state.primary
    it = state.interaction
    if el is None or it.rotation_center is None:
        return state
    c = it.rotation_center
    start_angle = math.atan2(it.start.y - c.y, it.start.x - c.x)
    current_angle = math.atan2(world.y - c.y, world.x - c.x)
    rotation = it.initial_rotation + math.degrees(current_angle - start_angle)
    el = replace(el, rotation=rotation, version=el.version + 1)
    return replace(state, selected=(el,) + state.selected[1:])


def _move_curving(state: EditorState, world: Point) -> EditorState:
    el = state.primary
    if el is None or el.type not in LINE_TYPES:
        return state
    pivot = state.interaction.rotation_center
    if el.rotation and pivot is not None:
        local = rotate_point(world, pivot, -math.radians(el.rotation))
    else:
        local = to_local(el, world)
    cp = control_point_for_handle(local, Point(el.x, el.y), Point(el.x2, el.y2))
    el = replace(
        el,
        cp1x=cp.x,
        cp1y=cp.y,
        curve_handle_x=local.x,
        curve_handle_y=local.y,
        version=el.version + 1,
    )
    return replace(state, selected=(el,) + state.selected[1:])


def _move_resizing(state: EditorState, world: Point, screen: Point) -> EditorState:
    el = state.primary
    it = state.interaction
    if el is None or not it.handle:
        return state
    delta = Point(world.x - it.start.x, world.y - it.start.y)
    if el.rotation:
        # handle deltas apply in the element's unrotated frame
        delta = rotate_point(delta, Point(0.0, 0.0), -math.radians(el.rotation))
    el = resize_element(el, it.handle, delta.x, delta.y)
    angle_info = _line_angle(el, screen) if el.type in LINE_TYPES else None
    return replace(
        state,
        selected=(el,) + state.selected[1:],
        angle_info=angle_info,
        interaction=replace(it, start=world),
    )


def pointer_move(state: EditorState, event: PointerEvent) -> EditorState:
    """Advance the current action with a new pointer sample."""
    screen = event.pos
    if event.pointer_id in state.pointers:
        pointers = dict(state.pointers)
        pointers[event.pointer_id] = screen
        state = replace(state, pointers=pointers)

    action = state.action
    if action == Action.PANNING:
        anchor = _pan_anchor(state.pointers, screen)
        last = state.interaction.pan_anchor or anchor
        return replace(
            state,
            view=state.view.panned(anchor.x - last.x, anchor.y - last.y),
            interaction=replace(state.interaction, pan_anchor=anchor),
        )

    world = state.view.to_world(screen)

    if action == Action.NONE:
        if state.tool == Tool.SELECTION:
            return replace(state, cursor=hover_cursor(state, world))
        return replace(state, cursor=Cursor.CROSSHAIR)

    if action == Action.PLACING:
        threshold = get_settings().settings.canvas.interaction.placing_threshold
        if distance(screen, state.interaction.start_screen) > threshold:
            return _transition(state, action=Action.NONE, interaction=Interaction())
        return state

    if action == Action.MULTI_SELECTING:
        start = state.interaction.start
        return replace(state, marquee=Rect(start.x, start.y, world.x - start.x, world.y - start.y))

    if action == Action.DRAWING:
        return _move_drawing(state, world, screen)
    if action == Action.DRAGGING:
        return _move_dragging(state, world)
    if action == Action.ROTATING:
        return _move_rotating(state, world)
    if action == Action.CURVING:
        return _move_curving(state, world)
    if action == Action.RESIZING:
        return _move_resizing(state, world, screen)
    return state


_COMMITTING_ACTIONS = frozenset({
    Action.DRAWING,
    Action.RESIZING,
    Action.DRAGGING,
    Action.ROTATING,
    Action.CURVING,
})


def _finalize(el: Element) -> Element:
    if el.type == Tool.PENCIL and len(el.points) > 1:
        tolerance = get_settings().settings.canvas.interaction.simplify_tolerance
        points = tuple(simplify_path(el.points, tolerance))
        if len(points) != len(el.points):
            return replace(el, points=points, version=el.version + 1)
    return el


def pointer_up(state: EditorState, event: PointerEvent) -> EditorState:
    """Finish the current action and return to ``none``.

    Placing opens a new empty text element for editing. A marquee selects
    every element it intersects. Drawing and transform actions commit the
    working copies into the collection.
    """
    pointers = dict(state.pointers)
    pointers.pop(event.pointer_id, None)

    action = state.action
    tool = state.tool
    changes = {}

    if action == Action.PLACING and tool == Tool.TEXT:
        defaults = get_settings().settings.defaults
        start = state.interaction.start
        changes["editing"] = TextElement(
            id=generate_id(),
            x=start.x,
            y=start.y,
            text="",
            font_size=defaults.font_size,
            font_family=defaults.font_family,
        )
    elif action == Action.MULTI_SELECTING and state.marquee is not None:
        marquee = normalize_rect(state.marquee)
        changes["selected"] = tuple(
            el for el in state.elements if is_element_intersecting_rect(el, marquee)
        )
    elif action in _COMMITTING_ACTIONS and state.selected:
        final = tuple(_finalize(el) for el in state.selected)
        changes["selected"] = final
        changes["elements"] = upsert_elements(state.elements, final)
        trace(f"committed {len(final)} element(s) after {action}", "STATE")

    if action == Action.PLACING or (action == Action.DRAWING and tool != Tool.PENCIL):
        tool = Tool.SELECTION

    return _transition(
        state,
        action=Action.NONE,
        tool=tool,
        pointers=pointers,
        marquee=None,
        angle_info=None,
        cursor=_tool_cursor(tool),
        interaction=Interaction(),
        **changes,
    )


# ----------------------------
# Commands
# ----------------------------

def select_tool(state: EditorState, tool: str) -> EditorState:
    """Switch the active tool.

    Raises:
        ValueError: If ``tool`` is not one of ``Tool.ALL``.
    """
    if tool not in Tool.ALL:
        raise ValueError(f"unknown tool: {tool!r}")
    return _transition(state, tool=tool, cursor=_tool_cursor(tool))


def delete_selected(state: EditorState) -> EditorState:
    """Remove the selected elements from the collection and clear the selection."""
    if not state.selected:
        return state
    ids = set(state.selected_ids)
    editing = state.editing
    if editing is not None and editing.id in ids:
        editing = None
    trace(f"deleted {len(ids)} element(s)", "STATE")
    return _transition(
        state,
        elements=tuple(el for el in state.elements if el.id not in ids),
        selected=(),
        editing=editing,
        action=Action.NONE,
        interaction=Interaction(),
    )


def clear_all(state: EditorState) -> EditorState:
    """Remove every element. The tool and viewport are kept."""
    return _transition(
        state,
        elements=(),
        selected=(),
        editing=None,
        action=Action.NONE,
        marquee=None,
        angle_info=None,
        interaction=Interaction(),
    )


def set_modifiers(state: EditorState, modifiers: Iterable[str]) -> EditorState:
    """Record the currently held pan modifiers (``Modifier.SPACE`` / ``Modifier.CTRL``)."""
    held = frozenset(m for m in modifiers if m in Modifier.PAN)
    if held == state.modifiers:
        return state
    return replace(state, modifiers=held)


def wheel_zoom(state: EditorState, steps: float, anchor: Point) -> EditorState:
    """Zoom by ``wheel_factor ** steps`` about screen point ``anchor``.

    Positive steps zoom in.
    """
    zoom = get_settings().settings.canvas.zoom
    view = state.view.zoomed(zoom.wheel_factor ** steps, anchor, zoom.min_scale, zoom.max_scale)
    return replace(state, view=view)


def begin_edit_at(state: EditorState, screen: Point) -> EditorState:
    """Open the label editor on the element under ``screen`` and select it alone."""
    hit = get_element_at_position(state.elements, state.view.to_world(screen))
    if hit is None:
        return state
    return replace(state, editing=hit, selected=(hit,))


def edit_text(el: Element) -> str:
    """Text the label editor starts with: text content for text elements, otherwise the label."""
    if el.type == Tool.TEXT:
        return el.text
    return el.label or ""


def commit_edit(state: EditorState, text: str) -> EditorState:
    """Apply the label editor's text to the editing element.

    Text elements receive it as content, other variants as their label. A
    new text element committed empty is discarded.
    """
    el = state.editing
    if el is None:
        return state
    if el.type == Tool.TEXT:
        if text == "" and state.find(el.id) is None:
            return replace(state, editing=None)
        updated = replace(el, text=text, version=el.version + 1)
    else:
        updated = replace(el, label=text, version=el.version + 1)
    return replace(
        state,
        editing=None,
        elements=upsert_elements(state.elements, [updated]),
        selected=tuple(updated if s.id == updated.id else s for s in state.selected),
    )


def cancel_edit(state: EditorState) -> EditorState:
    """Close the label editor without applying anything."""
    if state.editing is None:
        return state
    return replace(state, editing=None)


def load_elements(state: EditorState, elements: Iterable[Element]) -> EditorState:
    """Replace the collection (e.g. with persisted elements), dropping selection and edits."""
    return _transition(
        state,
        elements=tuple(elements),
        selected=(),
        editing=None,
        action=Action.NONE,
        marquee=None,
        angle_info=None,
        interaction=Interaction(),
    )
