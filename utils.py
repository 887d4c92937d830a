"""
utils.py

Utility functions for the SketchBoard application.
"""

from __future__ import annotations

from typing import Any, Dict, List

from PyQt6.QtGui import QColor

from models import RECORD_KEY_ORDER


def round_value(value: Any, precision: int) -> Any:
    """
    Round every float inside ``value`` to ``precision`` decimal places.

    Recurses into dicts and lists. Booleans, ints and strings pass through.

    Args:
        value: A JSON-ready value
        precision: Number of decimal places to keep

    Returns:
        A new value with rounded numbers
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return round(value, precision)
    if isinstance(value, dict):
        return {k: round_value(v, precision) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [round_value(v, precision) for v in value]
    return value


def sort_record_keys(rec: Dict[str, Any]) -> Dict[str, Any]:
    """
    Sort element record keys in canonical order.

    Order: id, type, x, y
    Any keys not in this list are appended at the end in their original order.
    """
    result = {}
    for key in RECORD_KEY_ORDER:
        if key in rec:
            result[key] = rec[key]
    for key in rec:
        if key not in result:
            result[key] = rec[key]
    return result


def prepare_records(records: List[Dict[str, Any]], precision: int) -> List[Dict[str, Any]]:
    """Round and key-sort a list of element records for saving."""
    return [sort_record_keys(round_value(rec, precision)) for rec in records]


def hex_to_qcolor(s: str, fallback: QColor) -> QColor:
    """
    Parse a hex string to a QColor.

    Args:
        s: Hex string like "#RRGGBB" or "#RRGGBBAA"
        fallback: Color to return if parsing fails

    Returns:
        Parsed QColor or fallback
    """
    if not s:
        return QColor(fallback)
    s = s.strip().lstrip("#")
    try:
        channels = [int(s[i:i + 2], 16) for i in range(0, len(s), 2)]
    except ValueError:
        return QColor(fallback)
    if len(s) in (6, 8):
        return QColor(*channels)
    return QColor(fallback)
