"""
canvas/view.py

Whiteboard canvas widget.

Translates Qt mouse, touch, wheel and key events into ``interaction``
transitions, renders the resulting state through ``RenderPipeline`` and
composites the two layers in ``paintEvent``.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Optional

from PyQt6.QtCore import QEvent, Qt, pyqtSignal
from PyQt6.QtGui import QEventPoint, QPainter
from PyQt6.QtWidgets import QWidget

import interaction
from canvas.render import RenderPipeline
from debug_trace import trace
from geometry import Point
from interaction import Button, Cursor, EditorState, Modifier, PointerEvent
from models import Element

_CURSORS = {
    Cursor.DEFAULT: Qt.CursorShape.ArrowCursor,
    Cursor.CROSSHAIR: Qt.CursorShape.CrossCursor,
    Cursor.MOVE: Qt.CursorShape.SizeAllCursor,
    Cursor.POINTER: Qt.CursorShape.PointingHandCursor,
    Cursor.NWSE_RESIZE: Qt.CursorShape.SizeFDiagCursor,
    Cursor.NESW_RESIZE: Qt.CursorShape.SizeBDiagCursor,
    Cursor.EW_RESIZE: Qt.CursorShape.SizeHorCursor,
    Cursor.GRABBING: Qt.CursorShape.ClosedHandCursor,
}

_BUTTONS = {
    Qt.MouseButton.LeftButton: Button.LEFT,
    Qt.MouseButton.MiddleButton: Button.MIDDLE,
}

# Touch point ids are offset so they never collide with the mouse pointer (0)
_TOUCH_ID_BASE = 1


class WhiteboardView(QWidget):
    """
    Canvas widget holding the editor state.

    Signals:
    - state_changed(EditorState): after every applied transition
    - elements_committed(tuple): when the element collection changed
    - editing_changed(object): when the label-edit target changed (None when closed)
    """

    state_changed = pyqtSignal(object)
    elements_committed = pyqtSignal(object)
    editing_changed = pyqtSignal(object)

    def __init__(self, parent=None, state: Optional[EditorState] = None):
        super().__init__(parent)
        self.state = state or EditorState()
        self.pipeline = RenderPipeline()
        self._held: Dict[str, bool] = {Modifier.SPACE: False, Modifier.CTRL: False}

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setAttribute(Qt.WidgetAttribute.WA_AcceptTouchEvents, True)
        self.setAttribute(Qt.WidgetAttribute.WA_OpaquePaintEvent, True)
        self.setMinimumSize(200, 150)

    # ----------------------------
    # State plumbing
    # ----------------------------

    def apply(self, new_state: EditorState) -> None:
        """Install ``new_state``, re-render and notify listeners."""
        old = self.state
        if new_state is old:
            return
        self.state = new_state

        if new_state.elements is not old.elements:
            if old.elements and not new_state.elements:
                self.pipeline.invalidate()
            self.elements_committed.emit(new_state.elements)
        if new_state.editing is not old.editing:
            self.editing_changed.emit(new_state.editing)

        self.setCursor(_CURSORS.get(new_state.cursor, Qt.CursorShape.ArrowCursor))
        self.refresh()
        self.state_changed.emit(new_state)

    def dispatch(self, transition: Callable[..., EditorState], *args) -> None:
        """Run ``transition(state, *args)`` and apply the result."""
        self.apply(transition(self.state, *args))

    def refresh(self) -> None:
        """Re-render both layers and schedule a repaint."""
        self.pipeline.render(self.state)
        self.update()

    # Commands used by the host window
    def select_tool(self, tool: str) -> None:
        self.dispatch(interaction.select_tool, tool)

    def delete_selected(self) -> None:
        self.dispatch(interaction.delete_selected)

    def clear_all(self) -> None:
        self.dispatch(interaction.clear_all)

    def commit_edit(self, text: str) -> None:
        self.dispatch(interaction.commit_edit, text)

    def cancel_edit(self) -> None:
        self.dispatch(interaction.cancel_edit)

    def load_elements(self, elements: Iterable[Element]) -> None:
        self.dispatch(interaction.load_elements, list(elements))

    def to_screen(self, p: Point) -> Point:
        return self.state.view.to_screen(p)

    # ----------------------------
    # Qt events
    # ----------------------------

    def resizeEvent(self, event):
        """Reallocate the layers; cached snapshots are dropped."""
        super().resizeEvent(event)
        size = event.size()
        self.pipeline.resize(size.width(), size.height())
        trace(f"canvas resized to {size.width()}x{size.height()}", "RENDER")
        self.refresh()

    def paintEvent(self, event):
        painter = QPainter(self)
        try:
            self.pipeline.composite(painter)
        finally:
            painter.end()

    def _pointer(self, event, pointer_id: int = 0, button: str = Button.LEFT) -> PointerEvent:
        pos = event.position()
        return PointerEvent(pos.x(), pos.y(), pointer_id, button)

    def mousePressEvent(self, event):
        button = _BUTTONS.get(event.button())
        if button is None:
            super().mousePressEvent(event)
            return
        self.setFocus()
        self.dispatch(interaction.pointer_down, self._pointer(event, button=button))
        event.accept()

    def mouseMoveEvent(self, event):
        self.dispatch(interaction.pointer_move, self._pointer(event))
        event.accept()

    def mouseReleaseEvent(self, event):
        button = _BUTTONS.get(event.button())
        if button is None:
            super().mouseReleaseEvent(event)
            return
        self.dispatch(interaction.pointer_up, self._pointer(event, button=button))
        event.accept()

    def mouseDoubleClickEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            super().mouseDoubleClickEvent(event)
            return
        pos = event.position()
        self.dispatch(interaction.begin_edit_at, Point(pos.x(), pos.y()))
        event.accept()

    def wheelEvent(self, event):
        """Zoom about the cursor, one wheel notch per step."""
        steps = event.angleDelta().y() / 120.0
        if steps:
            pos = event.position()
            self.dispatch(interaction.wheel_zoom, steps, Point(pos.x(), pos.y()))
        event.accept()

    def event(self, event):
        if event.type() in (QEvent.Type.TouchBegin, QEvent.Type.TouchUpdate,
                            QEvent.Type.TouchEnd, QEvent.Type.TouchCancel):
            self._touch_event(event)
            return True
        return super().event(event)

    def _touch_event(self, event):
        for point in event.points():
            pos = point.position()
            ev = PointerEvent(pos.x(), pos.y(), _TOUCH_ID_BASE + point.id())
            state = point.state()
            if state == QEventPoint.State.Pressed:
                self.dispatch(interaction.pointer_down, ev)
            elif state == QEventPoint.State.Released or event.type() == QEvent.Type.TouchCancel:
                self.dispatch(interaction.pointer_up, ev)
            elif state == QEventPoint.State.Updated:
                self.dispatch(interaction.pointer_move, ev)
        event.accept()

    # ----------------------------
    # Pan modifiers
    # ----------------------------

    def _set_held(self, key: str, down: bool) -> None:
        if self._held[key] == down:
            return
        self._held[key] = down
        self.dispatch(interaction.set_modifiers, [k for k, v in self._held.items() if v])

    def keyPressEvent(self, event):
        if event.isAutoRepeat():
            event.accept()
            return
        if event.key() == Qt.Key.Key_Space:
            self._set_held(Modifier.SPACE, True)
        elif event.key() == Qt.Key.Key_Control:
            self._set_held(Modifier.CTRL, True)
        else:
            super().keyPressEvent(event)
            return
        event.accept()

    def keyReleaseEvent(self, event):
        if event.isAutoRepeat():
            event.accept()
            return
        if event.key() == Qt.Key.Key_Space:
            self._set_held(Modifier.SPACE, False)
        elif event.key() == Qt.Key.Key_Control:
            self._set_held(Modifier.CTRL, False)
        else:
            super().keyReleaseEvent(event)
            return
        event.accept()

    def focusOutEvent(self, event):
        self._set_held(Modifier.SPACE, False)
        self._set_held(Modifier.CTRL, False)
        super().focusOutEvent(event)
