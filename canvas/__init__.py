"""
canvas package

PyQt6 render pipeline and canvas widget for the whiteboard.
"""

from canvas.render import RenderPipeline, Snapshot, SnapshotCache
from canvas.view import WhiteboardView

__all__ = [
    "RenderPipeline",
    "Snapshot",
    "SnapshotCache",
    "WhiteboardView",
]
