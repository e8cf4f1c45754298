"""Tests for field value classification."""

from __future__ import annotations

from datetime import datetime

import pytest
from bson import Int64, ObjectId

from mongo_toolbox.exceptions import InvalidArgumentError, UnsupportedTypeError
from mongo_toolbox.values import (
    ABSENT,
    FieldKind,
    classify_value,
    initial_value,
    lookup,
    matches_type,
    source_kinds,
)


class TestClassifyValue:
    """Tests for classify_value function."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (ABSENT, FieldKind.ABSENT),
            (None, FieldKind.NULL),
            ("", FieldKind.STRING),
            (0, FieldKind.INTEGER),
            (Int64(5), FieldKind.INTEGER),
            (1.5, FieldKind.FLOAT),
            (False, FieldKind.BOOLEAN),
            ([], FieldKind.ARRAY),
            ({}, FieldKind.OBJECT),
            ({"a": 1}, FieldKind.OBJECT),
        ],
    )
    def test_closed_set(self, value, expected):
        assert classify_value(value) == expected

    def test_bool_is_not_integer(self):
        """Booleans must not be classified as integers."""
        assert classify_value(True) == FieldKind.BOOLEAN

    @pytest.mark.parametrize("value", [float("nan"), datetime(2024, 1, 1), ObjectId()])
    def test_unclassified_values(self, value):
        """Values outside the closed set are unclassified."""
        assert classify_value(value) is None


class TestSourceTypes:
    """Tests for source type resolution."""

    def test_number_matches_integer_and_float(self):
        assert source_kinds("number") == {FieldKind.INTEGER, FieldKind.FLOAT}

    def test_undefined_is_alias_for_absent(self):
        assert source_kinds("undefined") == {FieldKind.ABSENT}

    def test_unknown_type_raises(self):
        with pytest.raises(InvalidArgumentError):
            source_kinds("date")

    def test_null_does_not_match_absent(self):
        """An explicit null is not the same as a missing field."""
        assert matches_type(None, "null")
        assert not matches_type(None, "absent")
        assert matches_type(ABSENT, "absent")

    def test_unclassified_never_matches(self):
        assert not matches_type(float("nan"), "number")


class TestInitialValue:
    """Tests for initial_value function."""

    @pytest.mark.parametrize(
        "type_name,expected",
        [("string", ""), ("number", 0), ("integer", 0), ("float", 0.0), ("boolean", False), ("array", []), ("object", {})],
    )
    def test_zero_values(self, type_name, expected):
        assert initial_value(type_name) == expected

    def test_fresh_containers(self):
        """Each call returns a new container."""
        assert initial_value("array") is not initial_value("array")

    @pytest.mark.parametrize("type_name", ["null", "date", ""])
    def test_unsupported_type(self, type_name):
        with pytest.raises(UnsupportedTypeError):
            initial_value(type_name)


class TestLookup:
    """Tests for lookup function."""

    def test_top_level(self):
        assert lookup({"a": None}, "a") is None

    def test_missing(self):
        assert lookup({"a": 1}, "b") is ABSENT

    def test_nested(self):
        assert lookup({"a": {"b": {"c": 3}}}, "a.b.c") == 3

    def test_nested_through_non_dict(self):
        assert lookup({"a": [1, 2]}, "a.b") is ABSENT
