"""
veritas.monitor.catalogue – content taxonomy loader.

The cards offered to the scanner come from a JSON file named by
``VERITAS_CATALOGUE_PATH`` rather than from code.
"""
from __future__ import annotations

import json
from pathlib import Path

from pydantic import TypeAdapter

from .status import DisplayItem

_ITEMS = TypeAdapter(list[DisplayItem])


def load_catalogue(path: str | Path) -> list[DisplayItem]:
    """
    Read and validate a catalogue file.

    Raises:
        FileNotFoundError         The file does not exist.
        pydantic.ValidationError  An entry is missing required fields.
        ValueError                Duplicate item ids, or the file is not JSON.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    items = _ITEMS.validate_python(raw)

    seen: set[str] = set()
    for item in items:
        if item.id in seen:
            raise ValueError(f"duplicate catalogue id {item.id!r}")
        seen.add(item.id)
    return items
