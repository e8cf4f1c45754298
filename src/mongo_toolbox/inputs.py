from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional

import yaml
from bson import ObjectId


def load_id_list(path: Path) -> Any:
    """Load document ids from a YAML or JSON file.

    Accepts a bare list or a mapping with an ``ids`` key. Anything else is
    returned unchanged so the caller can reject it.
    """
    data = yaml.safe_load(path.read_text())
    if isinstance(data, dict) and "ids" in data:
        data = data["ids"]
    if isinstance(data, list):
        return [coerce_id(item) for item in data]
    return data


def coerce_id(value: Any) -> Any:
    # YAML reads an all-digit hex id as an int
    if isinstance(value, int) and not isinstance(value, bool):
        candidate = str(value)
    else:
        candidate = value
    if isinstance(candidate, str) and ObjectId.is_valid(candidate):
        return ObjectId(candidate)
    return value


def coerce_ids(values: Optional[List[Any]]) -> List[Any]:
    return [coerce_id(value) for value in values or []]


def parse_value(raw: Optional[str]) -> Any:
    """Parse a command-line value as JSON, keeping it as a string when that fails."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw
