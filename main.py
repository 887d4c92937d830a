"""
main.py

SketchBoard - Main Application

PyQt6 vector whiteboard with:
- Drawing tools (rectangle, diamond, circle, line, arrow, text, pencil)
- Selection with move, resize, rotate, curve and copy handles
- Marquee multi-selection, pan and zoom
- Label editing by double click
- Automatic persistence of the board

Usage:
    python main.py

Dependencies:
    pip install PyQt6 platformdirs tomli-w

Environment:
    SKETCHBOARD_TRACE=1 (optional, verbose state/render tracing)
"""

from __future__ import annotations

import logging
import sys
from typing import Dict, Optional

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QAction, QKeySequence
from PyQt6.QtWidgets import (
    QApplication,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QToolBar,
)

from canvas import WhiteboardView
from debug_trace import DEBUG_TRACE, trace, trace_exception
from elements import get_element_center
from interaction import EditorState, edit_text
from models import Element, Tool
from settings import SettingsManager, get_settings
from storage import ElementStore

log = logging.getLogger(__name__)


class LabelEditor(QPlainTextEdit):
    """Floating label/text editor shown over the element being edited.

    Enter commits, Shift+Enter inserts a newline, Escape cancels and losing
    focus commits.
    """

    committed = pyqtSignal(str)
    cancelled = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self._open = False
        self.setFixedSize(180, 56)
        self.setTabChangesFocus(True)
        self.hide()

    def open_at(self, x: float, y: float, text: str):
        self._open = True
        self.setPlainText(text)
        self.move(int(x), int(y))
        self.show()
        self.raise_()
        self.setFocus()
        self.selectAll()

    def _close(self, commit: bool):
        if not self._open:
            return
        self._open = False
        text = self.toPlainText()
        self.hide()
        if commit:
            self.committed.emit(text)
        else:
            self.cancelled.emit()

    def keyPressEvent(self, event):
        if event.key() in (Qt.Key.Key_Return, Qt.Key.Key_Enter) and not (
                event.modifiers() & Qt.KeyboardModifier.ShiftModifier):
            self._close(commit=True)
            event.accept()
            return
        if event.key() == Qt.Key.Key_Escape:
            self._close(commit=False)
            event.accept()
            return
        super().keyPressEvent(event)

    def focusOutEvent(self, event):
        super().focusOutEvent(event)
        self._close(commit=True)


class MainWindow(QMainWindow):
    """Main application window for SketchBoard.

    Args:
        settings_manager: The SettingsManager instance for application settings.
        store: Where the board is loaded from and saved to.
    """

    def __init__(self, settings_manager: SettingsManager, store: Optional[ElementStore] = None):
        super().__init__()
        self.settings_manager = settings_manager
        self.store = store or ElementStore()
        self.setWindowTitle("SketchBoard")

        self.view = WhiteboardView(self)
        self.setCentralWidget(self.view)

        self.label_editor = LabelEditor(self.view)
        self.label_editor.committed.connect(self.view.commit_edit)
        self.label_editor.cancelled.connect(self.view.cancel_edit)

        self._build_toolbar()

        self.view.state_changed.connect(self._on_state_changed)
        self.view.elements_committed.connect(self._on_elements_committed)
        self.view.editing_changed.connect(self._on_editing_changed)

        self._loading = True
        self.view.load_elements(self.store.load())
        self._loading = False

    def _build_toolbar(self):
        """Build the application toolbar."""
        tb = QToolBar("Tools")
        tb.setMovable(False)
        self.addToolBar(tb)

        self.tool_actions: Dict[str, QAction] = {}

        def add_tool_action(text: str, tool: str, shortcut: str, tooltip: str):
            act = QAction(text, self)
            act.setCheckable(True)
            act.setShortcut(shortcut)
            # Canvas-only shortcut
            act.setShortcutContext(Qt.ShortcutContext.WidgetShortcut)
            act.setToolTip(f"{tooltip} ({shortcut})")
            act.setStatusTip(tooltip)
            act.triggered.connect(lambda checked, t=tool: self.view.select_tool(t))
            tb.addAction(act)
            self.view.addAction(act)
            self.tool_actions[tool] = act
            return act

        add_tool_action("Select", Tool.SELECTION, "V", "Select, move, resize and rotate elements")
        add_tool_action("Rectangle", Tool.RECTANGLE, "R", "Draw a rectangle")
        add_tool_action("Diamond", Tool.DIAMOND, "D", "Draw a diamond")
        add_tool_action("Circle", Tool.CIRCLE, "C", "Draw a circle")
        add_tool_action("Arrow", Tool.ARROW, "A", "Draw an arrow")
        add_tool_action("Pencil", Tool.PENCIL, "P", "Draw freehand")
        add_tool_action("Text", Tool.TEXT, "T", "Place text")
        add_tool_action("Line", Tool.LINE, "L", "Draw a line")
        self.tool_actions[Tool.SELECTION].setChecked(True)

        tb.addSeparator()

        self.delete_act = QAction("Delete Selected", self)
        self.delete_act.setShortcuts([QKeySequence(Qt.Key.Key_Delete), QKeySequence(Qt.Key.Key_Backspace)])
        self.delete_act.setShortcutContext(Qt.ShortcutContext.WidgetShortcut)
        self.delete_act.setStatusTip("Delete the selected elements")
        self.delete_act.setEnabled(False)
        self.delete_act.triggered.connect(self.view.delete_selected)
        tb.addAction(self.delete_act)
        self.view.addAction(self.delete_act)

        clear_act = QAction("Clear", self)
        clear_act.setStatusTip("Remove every element from the board")
        clear_act.triggered.connect(self.clear_board)
        tb.addAction(clear_act)

    # ----------------------------
    # Commands
    # ----------------------------

    def clear_board(self):
        """Clear the board after confirmation."""
        if not self.view.state.elements:
            return
        reply = QMessageBox.question(
            self,
            "Clear board",
            "Remove every element from the board?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        if reply == QMessageBox.StandardButton.Yes:
            self.view.clear_all()

    # ----------------------------
    # View signals
    # ----------------------------

    def _on_state_changed(self, state: EditorState):
        for tool, act in self.tool_actions.items():
            act.setChecked(tool == state.tool)
        self.delete_act.setEnabled(bool(state.selected))
        self.statusBar().showMessage(
            f"{len(state.elements)} element(s), {len(state.selected)} selected, "
            f"zoom {state.view.scale * 100:.0f}%"
        )

    def _on_elements_committed(self, elements):
        if self._loading:
            return
        if not self.store.save(elements):
            self.statusBar().showMessage("Could not save the board; see the log for details.")

    def _on_editing_changed(self, el: Optional[Element]):
        if el is None:
            return
        center = self.view.to_screen(get_element_center(el))
        x = center.x - self.label_editor.width() / 2
        y = center.y - self.label_editor.height() / 2
        self.label_editor.open_at(x, y, edit_text(el))


def main():
    """Application entry point."""
    logging.basicConfig(
        level=logging.DEBUG if DEBUG_TRACE else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    trace("Application starting", "MAIN")
    app = QApplication(sys.argv)
    app.setApplicationName("SketchBoard")

    # Load settings (use singleton to ensure single instance)
    settings_manager = get_settings()

    # Ensure settings file has all sections
    settings_manager.ensure_file_complete()

    w = MainWindow(settings_manager)
    w.resize(1280, 860)
    w.show()
    trace("Entering event loop", "MAIN")
    sys.exit(app.exec())


if __name__ == "__main__":
    # Log uncaught exceptions
    def excepthook(exc_type, exc_value, exc_tb):
        log.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = excepthook

    try:
        main()
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        raise
