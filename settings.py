"""
settings.py

Persistent settings management for SketchBoard.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/sketchboard/settings.toml
    - macOS: ~/Library/Application Support/sketchboard/settings.toml
    - Linux: ~/.config/sketchboard/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

APP_NAME = "sketchboard"

log = logging.getLogger(__name__)

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Canvas Settings
# =============================================================================

@dataclass
class CanvasHandleSettings:
    """Selection handle settings (world units unless noted).

    Defaults:
        size: 8.0
        icon_size: 24.0
        copy_offset: 30.0
        rotation_offset: 55.0
        resize_color: "#0000FF"
        curve_color: "#FFA500"
        copy_color: "#008000"
        rotation_color: "#0000FF"
    """
    size: float = 8.0                  # Default: 8.0, resize/endpoint handle square
    icon_size: float = 24.0            # Default: 24.0, copy/rotation/curve hit square
    copy_offset: float = 30.0          # Default: 30.0 above the top edge
    rotation_offset: float = 55.0      # Default: 55.0 above the top edge
    resize_color: str = "#0000FF"      # Default: blue
    curve_color: str = "#FFA500"       # Default: orange
    copy_color: str = "#008000"        # Default: green
    rotation_color: str = "#0000FF"    # Default: blue


@dataclass
class CanvasHitSettings:
    """Hit-testing tolerances.

    Defaults:
        line_threshold: 10.0
        arrow_tip_radius: 10.0
        curve_samples: 10
    """
    line_threshold: float = 10.0       # Default: 10.0 world units
    arrow_tip_radius: float = 10.0     # Default: 10.0 world units
    curve_samples: int = 10            # Default: 10 segments (11 sampled points)


@dataclass
class CanvasInteractionSettings:
    """Pointer interaction settings.

    Defaults:
        placing_threshold: 5.0
        copy_offset: 15.0
        simplify_tolerance: 1.0
        min_font_size: 8.0
        font_growth: 0.5
    """
    placing_threshold: float = 5.0     # Default: 5.0 screen pixels before a text click becomes a drag
    copy_offset: float = 15.0          # Default: 15.0 world units, offset of a copied element
    simplify_tolerance: float = 1.0    # Default: 1.0 world unit, freehand RDP epsilon
    min_font_size: float = 8.0         # Default: 8.0 px
    font_growth: float = 0.5           # Default: 0.5 px of font size per px dragged


@dataclass
class CanvasZoomSettings:
    """Zoom behavior settings.

    Defaults:
        wheel_factor: 1.1
        min_scale: 0.1
        max_scale: 10.0
    """
    wheel_factor: float = 1.1   # Default: 1.1 (10% per scroll step)
    min_scale: float = 0.1      # Default: 0.1
    max_scale: float = 10.0     # Default: 10.0


@dataclass
class CanvasRenderSettings:
    """Drawing colors and strokes.

    Defaults:
        background_color: "#FFFFFF"
        stroke_color: "#000000"
        highlight_color: "#FF0000"
        line_width: 2.0
        label_font_size: 16
        label_line_height: 20
        marquee_color: "#0000FF"
        marquee_fill: "#0000FF1A"
    """
    background_color: str = "#FFFFFF"   # Default: white
    stroke_color: str = "#000000"       # Default: black
    highlight_color: str = "#FF0000"    # Default: red
    line_width: float = 2.0             # Default: 2.0 world units
    label_font_size: int = 16           # Default: 16 px
    label_line_height: int = 20         # Default: 20 px
    marquee_color: str = "#0000FF"      # Default: blue
    marquee_fill: str = "#0000FF1A"     # Default: blue at 10% alpha


@dataclass
class CanvasSettings:
    """All canvas-related settings."""
    handles: CanvasHandleSettings = field(default_factory=CanvasHandleSettings)
    hit: CanvasHitSettings = field(default_factory=CanvasHitSettings)
    interaction: CanvasInteractionSettings = field(default_factory=CanvasInteractionSettings)
    zoom: CanvasZoomSettings = field(default_factory=CanvasZoomSettings)
    render: CanvasRenderSettings = field(default_factory=CanvasRenderSettings)


# =============================================================================
# Default Text Settings
# =============================================================================

@dataclass
class DefaultTextSettings:
    """Defaults for newly placed text elements.

    Defaults:
        font_size: 24.0
        font_family: "sans-serif"
    """
    font_size: float = 24.0          # Default: 24 px
    font_family: str = "sans-serif"  # Default: "sans-serif"


# =============================================================================
# Storage Settings
# =============================================================================

@dataclass
class StorageSettings:
    """Persistence settings.

    Defaults:
        key: "sketchboard.elements"
        file_name: "board.json"
        precision: 2
    """
    key: str = "sketchboard.elements"   # Default: "sketchboard.elements"
    file_name: str = "board.json"       # Default: "board.json" in the user data dir
    precision: int = 2                  # Default: 2 decimal places


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        canvas: Canvas-related settings.
        defaults: Default text settings.
        storage: Persistence settings.
    """
    canvas: CanvasSettings = field(default_factory=CanvasSettings)
    defaults: DefaultTextSettings = field(default_factory=DefaultTextSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Override for the config directory (used by tests).
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        self.settings_dir = Path(settings_dir) if settings_dir else Path(platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)

            return self._parse_toml(data)
        except Exception as e:
            # If file is corrupted or invalid, return defaults
            log.warning("Ignoring unreadable settings file %s: %s", self.settings_file, e)
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        # Canvas section
        canvas = data.get("canvas", {})
        if "handles" in canvas:
            h = canvas["handles"]
            settings.canvas.handles.size = h.get("size", settings.canvas.handles.size)
            settings.canvas.handles.icon_size = h.get("icon_size", settings.canvas.handles.icon_size)
            settings.canvas.handles.copy_offset = h.get("copy_offset", settings.canvas.handles.copy_offset)
            settings.canvas.handles.rotation_offset = h.get("rotation_offset", settings.canvas.handles.rotation_offset)
            settings.canvas.handles.resize_color = h.get("resize_color", settings.canvas.handles.resize_color)
            settings.canvas.handles.curve_color = h.get("curve_color", settings.canvas.handles.curve_color)
            settings.canvas.handles.copy_color = h.get("copy_color", settings.canvas.handles.copy_color)
            settings.canvas.handles.rotation_color = h.get("rotation_color", settings.canvas.handles.rotation_color)
        if "hit" in canvas:
            ht = canvas["hit"]
            settings.canvas.hit.line_threshold = ht.get("line_threshold", settings.canvas.hit.line_threshold)
            settings.canvas.hit.arrow_tip_radius = ht.get("arrow_tip_radius", settings.canvas.hit.arrow_tip_radius)
            settings.canvas.hit.curve_samples = ht.get("curve_samples", settings.canvas.hit.curve_samples)
        if "interaction" in canvas:
            it = canvas["interaction"]
            settings.canvas.interaction.placing_threshold = it.get("placing_threshold", settings.canvas.interaction.placing_threshold)
            settings.canvas.interaction.copy_offset = it.get("copy_offset", settings.canvas.interaction.copy_offset)
            settings.canvas.interaction.simplify_tolerance = it.get("simplify_tolerance", settings.canvas.interaction.simplify_tolerance)
            settings.canvas.interaction.min_font_size = it.get("min_font_size", settings.canvas.interaction.min_font_size)
            settings.canvas.interaction.font_growth = it.get("font_growth", settings.canvas.interaction.font_growth)
        if "zoom" in canvas:
            zm = canvas["zoom"]
            settings.canvas.zoom.wheel_factor = zm.get("wheel_factor", settings.canvas.zoom.wheel_factor)
            settings.canvas.zoom.min_scale = zm.get("min_scale", settings.canvas.zoom.min_scale)
            settings.canvas.zoom.max_scale = zm.get("max_scale", settings.canvas.zoom.max_scale)
        if "render" in canvas:
            r = canvas["render"]
            settings.canvas.render.background_color = r.get("background_color", settings.canvas.render.background_color)
            settings.canvas.render.stroke_color = r.get("stroke_color", settings.canvas.render.stroke_color)
            settings.canvas.render.highlight_color = r.get("highlight_color", settings.canvas.render.highlight_color)
            settings.canvas.render.line_width = r.get("line_width", settings.canvas.render.line_width)
            settings.canvas.render.label_font_size = r.get("label_font_size", settings.canvas.render.label_font_size)
            settings.canvas.render.label_line_height = r.get("label_line_height", settings.canvas.render.label_line_height)
            settings.canvas.render.marquee_color = r.get("marquee_color", settings.canvas.render.marquee_color)
            settings.canvas.render.marquee_fill = r.get("marquee_fill", settings.canvas.render.marquee_fill)

        # Defaults section
        defaults = data.get("defaults", {})
        if "text" in defaults:
            t = defaults["text"]
            settings.defaults.font_size = t.get("font_size", settings.defaults.font_size)
            settings.defaults.font_family = t.get("font_family", settings.defaults.font_family)

        # Storage section
        storage = data.get("storage", {})
        settings.storage.key = storage.get("key", settings.storage.key)
        settings.storage.file_name = storage.get("file_name", settings.storage.file_name)
        settings.storage.precision = storage.get("precision", settings.storage.precision)

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        # Ensure directory exists
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        # Convert settings to TOML structure
        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "canvas": {
                "handles": {
                    "size": s.canvas.handles.size,
                    "icon_size": s.canvas.handles.icon_size,
                    "copy_offset": s.canvas.handles.copy_offset,
                    "rotation_offset": s.canvas.handles.rotation_offset,
                    "resize_color": s.canvas.handles.resize_color,
                    "curve_color": s.canvas.handles.curve_color,
                    "copy_color": s.canvas.handles.copy_color,
                    "rotation_color": s.canvas.handles.rotation_color,
                },
                "hit": {
                    "line_threshold": s.canvas.hit.line_threshold,
                    "arrow_tip_radius": s.canvas.hit.arrow_tip_radius,
                    "curve_samples": s.canvas.hit.curve_samples,
                },
                "interaction": {
                    "placing_threshold": s.canvas.interaction.placing_threshold,
                    "copy_offset": s.canvas.interaction.copy_offset,
                    "simplify_tolerance": s.canvas.interaction.simplify_tolerance,
                    "min_font_size": s.canvas.interaction.min_font_size,
                    "font_growth": s.canvas.interaction.font_growth,
                },
                "zoom": {
                    "wheel_factor": s.canvas.zoom.wheel_factor,
                    "min_scale": s.canvas.zoom.min_scale,
                    "max_scale": s.canvas.zoom.max_scale,
                },
                "render": {
                    "background_color": s.canvas.render.background_color,
                    "stroke_color": s.canvas.render.stroke_color,
                    "highlight_color": s.canvas.render.highlight_color,
                    "line_width": s.canvas.render.line_width,
                    "label_font_size": s.canvas.render.label_font_size,
                    "label_line_height": s.canvas.render.label_line_height,
                    "marquee_color": s.canvas.render.marquee_color,
                    "marquee_fill": s.canvas.render.marquee_fill,
                },
            },
            "defaults": {
                "text": {
                    "font_size": s.defaults.font_size,
                    "font_family": s.defaults.font_family,
                },
            },
            "storage": {
                "key": s.storage.key,
                "file_name": s.storage.file_name,
                "precision": s.storage.precision,
            },
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        data = self._to_toml_dict()
        return tomli_w.dumps(data)

    def get_data_dir(self) -> Path:
        """Get the directory holding the persisted board.

        Returns:
            Platform user data directory for the application.
        """
        return Path(platformdirs.user_data_dir(APP_NAME))

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
