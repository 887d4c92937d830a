"""Shared pytest fixtures.

Qt runs on the offscreen platform so render and widget tests work headless.
Every test gets a settings manager rooted in a temporary directory, so a
user's own settings.toml never changes hit tolerances or colors under test.
"""
from __future__ import annotations

import os
import sys

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import elements
import settings


@pytest.fixture(scope="session")
def qapp():
    """Provide a single QApplication for the entire test session."""
    from PyQt6.QtWidgets import QApplication
    app = QApplication.instance() or QApplication(sys.argv)
    yield app


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Default settings, stored under the test's temp directory."""
    manager = settings.SettingsManager(settings_dir=tmp_path / "config")
    monkeypatch.setattr(settings, "_settings_manager", manager)
    yield manager
    elements.set_text_measurer(None)
