"""
storage.py

Persistence of the element collection.

The board is kept in a small JSON key-value file in the platform user data
directory::

    {"sketchboard.elements": [{"id": "...", "type": "rectangle", ...}, ...]}

Numbers are rounded on save. Loading never fails: a missing or unreadable
file gives an empty board, and records that cannot be decoded are skipped.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from debug_trace import trace
from models import Element, element_from_record, element_to_record
from settings import get_settings
from utils import prepare_records

log = logging.getLogger(__name__)


def decode_elements(records: Any) -> List[Element]:
    """Decode a list of element records, skipping the ones that are invalid."""
    if not isinstance(records, list):
        log.warning("Stored elements are not a list (%s); starting empty", type(records).__name__)
        return []
    elements: List[Element] = []
    seen = set()
    for rec in records:
        try:
            el = element_from_record(rec)
        except (ValueError, TypeError, KeyError) as e:
            log.warning("Skipping stored element: %s", e)
            continue
        if el.id in seen:
            log.warning("Skipping stored element with duplicate id %r", el.id)
            continue
        seen.add(el.id)
        elements.append(el)
    return elements


class ElementStore:
    """Reads and writes the element collection under a single key.

    Args:
        path: JSON file to use. Defaults to ``<user data dir>/<file_name>``.
        key: Key the collection is stored under.
        precision: Decimal places kept for numbers on save.
    """

    def __init__(self, path: Optional[Path] = None, key: Optional[str] = None,
                 precision: Optional[int] = None):
        storage = get_settings().settings.storage
        if path is None:
            path = get_settings().get_data_dir() / storage.file_name
        self.path = Path(path)
        self.key = key or storage.key
        self.precision = storage.precision if precision is None else precision

    def _read_file(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            log.warning("Could not read %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            log.warning("Ignoring %s: top level is not an object", self.path)
            return {}
        return data

    def load(self) -> List[Element]:
        """Load the stored collection (empty if nothing usable is stored)."""
        data = self._read_file()
        if self.key not in data:
            return []
        elements = decode_elements(data[self.key])
        trace(f"loaded {len(elements)} element(s) from {self.path}", "STORE")
        return elements

    def save(self, elements: Iterable[Element]) -> bool:
        """Write the collection, keeping any other keys in the file.

        Returns:
            True on success. Failures are logged, not raised.
        """
        data = self._read_file()
        records = [element_to_record(el) for el in elements]
        data[self.key] = prepare_records(records, self.precision)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            log.error("Could not save board to %s: %s", self.path, e)
            return False
        trace(f"saved {len(records)} element(s) to {self.path}", "STORE")
        return True
