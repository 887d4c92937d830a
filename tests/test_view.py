"""Tests for the canvas widget and main window wiring.

Qt events are constructed directly and handed to the widget's handlers so
the tests do not depend on window activation.
"""
from __future__ import annotations

import json

import pytest
from PyQt6.QtCore import QEvent, QPointF, Qt
from PyQt6.QtGui import QKeyEvent, QMouseEvent
from PyQt6.QtWidgets import QMessageBox

import interaction
import main
from canvas import WhiteboardView
from geometry import Point
from interaction import Modifier, PointerEvent
from main import MainWindow
from models import Action, RectangleElement, Tool
from storage import ElementStore


def _mouse(kind, x, y, button=Qt.MouseButton.LeftButton):
    buttons = button if kind != QEvent.Type.MouseButtonRelease else Qt.MouseButton.NoButton
    pos = QPointF(x, y)
    return QMouseEvent(kind, pos, pos, button, buttons, Qt.KeyboardModifier.NoModifier)


def _key(kind, key):
    return QKeyEvent(kind, key, Qt.KeyboardModifier.NoModifier)


def _drag(view, points):
    x, y = points[0]
    view.mousePressEvent(_mouse(QEvent.Type.MouseButtonPress, x, y))
    for x, y in points[1:]:
        view.mouseMoveEvent(_mouse(QEvent.Type.MouseMove, x, y, Qt.MouseButton.NoButton))
    view.mouseReleaseEvent(_mouse(QEvent.Type.MouseButtonRelease, x, y))


@pytest.fixture
def view(qapp):
    return WhiteboardView()


@pytest.fixture
def window(qapp, tmp_path, isolated_settings):
    return MainWindow(isolated_settings, store=ElementStore(path=tmp_path / "board.json"))


# ─────────────────────────────────────────────────────────
# WhiteboardView
# ─────────────────────────────────────────────────────────

class TestWhiteboardView:
    def test_mouse_drawing_commits(self, view):
        commits = []
        view.elements_committed.connect(commits.append)
        view.select_tool(Tool.RECTANGLE)
        _drag(view, [(10, 10), (60, 40)])

        assert view.state.action == Action.NONE
        assert len(view.state.elements) == 1
        el = view.state.elements[0]
        assert (el.width, el.height) == (50, 30)
        assert commits[-1] == view.state.elements

    def test_moves_without_commit_emit_nothing(self, view):
        commits = []
        view.elements_committed.connect(commits.append)
        view.mouseMoveEvent(_mouse(QEvent.Type.MouseMove, 5, 5, Qt.MouseButton.NoButton))
        assert commits == []

    def test_middle_button_pans(self, view):
        view.mousePressEvent(_mouse(QEvent.Type.MouseButtonPress, 10, 10, Qt.MouseButton.MiddleButton))
        assert view.state.action == Action.PANNING
        view.mouseMoveEvent(_mouse(QEvent.Type.MouseMove, 30, 10, Qt.MouseButton.NoButton))
        view.mouseReleaseEvent(_mouse(QEvent.Type.MouseButtonRelease, 30, 10, Qt.MouseButton.MiddleButton))
        assert view.state.view.offset_x == 20
        assert view.state.action == Action.NONE

    def test_right_button_ignored(self, view):
        view.select_tool(Tool.RECTANGLE)
        view.mousePressEvent(_mouse(QEvent.Type.MouseButtonPress, 10, 10, Qt.MouseButton.RightButton))
        assert view.state.action == Action.NONE
        assert view.state.pointers == {}

    def test_space_key_held(self, view):
        view.keyPressEvent(_key(QEvent.Type.KeyPress, Qt.Key.Key_Space))
        assert view.state.modifiers == frozenset({Modifier.SPACE})
        view.keyReleaseEvent(_key(QEvent.Type.KeyRelease, Qt.Key.Key_Space))
        assert view.state.modifiers == frozenset()

    def test_double_click_opens_editor(self, view):
        edits = []
        view.editing_changed.connect(edits.append)
        view.load_elements([RectangleElement(id="r", width=100, height=50)])
        view.mouseDoubleClickEvent(_mouse(QEvent.Type.MouseButtonDblClick, 50, 25))
        assert edits[-1].id == "r"
        view.commit_edit("Hello")
        assert edits[-1] is None
        assert view.state.elements[0].label == "Hello"

    def test_clear_all_drops_snapshots(self, view):
        view.pipeline.resize(200, 100)
        view.load_elements([RectangleElement(id="r", x=10, y=10, width=20, height=20)])
        assert "r" in view.pipeline.cache
        view.clear_all()
        assert len(view.pipeline.cache) == 0

    def test_dispatch_runs_transition(self, view):
        view.dispatch(interaction.pointer_down, PointerEvent(0, 0, 1))
        view.dispatch(interaction.pointer_down, PointerEvent(10, 0, 2))
        assert view.state.action == Action.PANNING


# ─────────────────────────────────────────────────────────
# MainWindow
# ─────────────────────────────────────────────────────────

class TestMainWindow:
    def test_toolbar_selects_tool(self, window):
        window.tool_actions[Tool.CIRCLE].trigger()
        assert window.view.state.tool == Tool.CIRCLE
        assert window.tool_actions[Tool.CIRCLE].isChecked()
        assert not window.tool_actions[Tool.SELECTION].isChecked()

    def test_drawing_saves_board(self, window):
        window.view.select_tool(Tool.RECTANGLE)
        _drag(window.view, [(10, 10), (60, 40)])
        data = json.loads(window.store.path.read_text())
        records = data[window.store.key]
        assert len(records) == 1
        assert records[0]["type"] == "rectangle"
        assert window.delete_act.isEnabled()

    def test_board_loaded_on_start(self, qapp, tmp_path, isolated_settings):
        store = ElementStore(path=tmp_path / "board.json")
        store.save([RectangleElement(id="r", width=10, height=10)])
        w = MainWindow(isolated_settings, store=store)
        assert [el.id for el in w.view.state.elements] == ["r"]

    def test_label_editor_commit(self, window):
        window.view.load_elements([RectangleElement(id="r", width=100, height=50)])
        window.view.dispatch(interaction.begin_edit_at, Point(50, 25))
        editor = window.label_editor
        assert not editor.isHidden()
        editor.setPlainText("Box")
        editor.keyPressEvent(_key(QEvent.Type.KeyPress, Qt.Key.Key_Return))
        assert editor.isHidden()
        assert window.view.state.elements[0].label == "Box"
        saved = json.loads(window.store.path.read_text())[window.store.key]
        assert saved[0]["label"] == "Box"

    def test_label_editor_escape_cancels(self, window):
        window.view.load_elements([RectangleElement(id="r", width=100, height=50, label="old")])
        window.view.dispatch(interaction.begin_edit_at, Point(50, 25))
        window.label_editor.setPlainText("new")
        window.label_editor.keyPressEvent(_key(QEvent.Type.KeyPress, Qt.Key.Key_Escape))
        assert window.view.state.editing is None
        assert window.view.state.elements[0].label == "old"

    def test_clear_board_confirmed(self, window, monkeypatch):
        window.view.load_elements([RectangleElement(id="r", width=10, height=10)])
        monkeypatch.setattr(main.QMessageBox, "question",
                            lambda *args, **kwargs: QMessageBox.StandardButton.Yes)
        window.clear_board()
        assert window.view.state.elements == ()

    def test_clear_board_declined(self, window, monkeypatch):
        window.view.load_elements([RectangleElement(id="r", width=10, height=10)])
        monkeypatch.setattr(main.QMessageBox, "question",
                            lambda *args, **kwargs: QMessageBox.StandardButton.No)
        window.clear_board()
        assert len(window.view.state.elements) == 1
