"""
debug_trace.py

Debug instrumentation for following the editor's state machine and render
passes. Enable by setting SKETCHBOARD_TRACE=1 in the environment.

Categories:
    STATE  - interaction state transitions
    RENDER - per-pass render statistics (very verbose, needs SKETCHBOARD_TRACE_RENDER=1)
    STORE  - persistence
"""

import logging
import os
import traceback

# Set SKETCHBOARD_TRACE=1 to enable debug tracing
DEBUG_TRACE = os.environ.get("SKETCHBOARD_TRACE", "") == "1"

# Set SKETCHBOARD_TRACE_RENDER=1 to trace render passes (very verbose)
TRACE_RENDER = os.environ.get("SKETCHBOARD_TRACE_RENDER", "") == "1"

_log = logging.getLogger("sketchboard.trace")


def trace(msg: str, category: str = "INFO"):
    """Emit a trace message tagged with its category."""
    if not DEBUG_TRACE:
        return
    if category == "RENDER" and not TRACE_RENDER:
        return
    _log.debug("[%s] %s", category, msg)


def trace_exception(msg: str = "Exception"):
    """Trace the exception currently being handled."""
    if not DEBUG_TRACE:
        return
    trace(f"{msg}: {traceback.format_exc()}", "ERROR")

