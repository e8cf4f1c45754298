from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, Optional, Set

from bson import Int64

from mongo_toolbox.exceptions import InvalidArgumentError, UnsupportedTypeError


class FieldKind(str, Enum):
    NULL = "null"
    ABSENT = "absent"
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


# Marker for a field that is missing from a document, distinct from None
ABSENT = object()

SOURCE_TYPES: Dict[str, Set[FieldKind]] = {
    "null": {FieldKind.NULL},
    "absent": {FieldKind.ABSENT},
    "undefined": {FieldKind.ABSENT},
    "string": {FieldKind.STRING},
    "integer": {FieldKind.INTEGER},
    "float": {FieldKind.FLOAT},
    "number": {FieldKind.INTEGER, FieldKind.FLOAT},
    "boolean": {FieldKind.BOOLEAN},
    "array": {FieldKind.ARRAY},
    "object": {FieldKind.OBJECT},
}

TARGET_TYPES = ("string", "number", "integer", "float", "boolean", "array", "object")


def classify_value(value: Any) -> Optional[FieldKind]:
    """Classify a document field value into one of the FieldKind variants.

    Pass ``ABSENT`` for a missing field. Values outside the closed set
    (dates, ObjectIds, binary data, NaN) are unclassified and return None.
    """
    if value is ABSENT:
        return FieldKind.ABSENT

    if value is None:
        return FieldKind.NULL

    # Bool must be checked before int (bool is subclass of int in Python)
    if isinstance(value, bool):
        return FieldKind.BOOLEAN

    if isinstance(value, (int, Int64)):
        return FieldKind.INTEGER

    if isinstance(value, float):
        if math.isnan(value):
            return None
        return FieldKind.FLOAT

    if isinstance(value, str):
        return FieldKind.STRING

    if isinstance(value, list):
        return FieldKind.ARRAY

    if isinstance(value, dict):
        return FieldKind.OBJECT

    return None


def source_kinds(type_name: str) -> Set[FieldKind]:
    """Resolve a source type name to the set of kinds it matches."""
    kinds = SOURCE_TYPES.get(str(type_name).lower())
    if kinds is None:
        raise InvalidArgumentError(
            f"Unknown source type '{type_name}'. Supported: {', '.join(SOURCE_TYPES)}"
        )
    return kinds


def matches_type(value: Any, type_name: str) -> bool:
    kind = classify_value(value)
    return kind is not None and kind in source_kinds(type_name)


def initial_value(type_name: str) -> Any:
    """Return the zero-value used to initialise a field of the given type."""
    name = str(type_name).lower()
    if name == "string":
        return ""
    if name in ("number", "integer"):
        return 0
    if name == "float":
        return 0.0
    if name == "boolean":
        return False
    if name == "array":
        return []
    if name == "object":
        return {}

    raise UnsupportedTypeError(f"Cannot init value of type {type_name}")


def lookup(document: Dict[str, Any], path: str) -> Any:
    """Read a possibly dotted field path, returning ABSENT when any part is missing."""
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return ABSENT
        current = current[part]
    return current
