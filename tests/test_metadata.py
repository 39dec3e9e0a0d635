"""Tests for issue_states.metadata (typed metadata snapshots and kinds)."""

from datetime import date

import pytest

from issue_states.errors import MetadataError
from issue_states.metadata import FieldSpec, Metadata, compile_schema, is_valid_identifier, value_type_for
from issue_states.values import DATE, NUMBER, SET, STRING, MetadataValue, OrdinalType


def test_from_raw_infers_types() -> None:
    """Undeclared identifiers get their type from the Python value."""
    md = Metadata.from_raw({"closed": False, "count": 2, "labels": ["a"], "title": "x"})
    assert md["count"].type is NUMBER
    assert md["labels"].type is SET
    assert md["title"].type is STRING
    assert md["closed"].value is False


def test_from_raw_uses_declared_kinds() -> None:
    """Declared kinds win over inference."""
    schema = {
        "due": "date",
        "priority": {"kind": "ordinal", "levels": ["low", "high"]},
        "estimate": FieldSpec(kind="number"),
    }
    md = Metadata.from_raw({"due": "2024-03-01", "priority": "high", "estimate": "3"}, schema)
    assert md["due"].type is DATE
    assert md["due"].value == date(2024, 3, 1)
    assert isinstance(md["priority"].type, OrdinalType)
    assert md["estimate"].value == 3


def test_get_absent_returns_none() -> None:
    """Unknown identifiers are absent, not errors."""
    md = Metadata.from_raw({"a": 1})
    assert md.get("b") is None
    assert "b" not in md
    assert len(md) == 1


def test_none_values_are_absent() -> None:
    """None in raw input means the identifier is absent."""
    md = Metadata.from_raw({"assignee": None})
    assert md.get("assignee") is None


def test_value_not_fitting_kind_rejected() -> None:
    """A raw value that does not fit the declared kind raises MetadataError."""
    with pytest.raises(MetadataError):
        Metadata.from_raw({"count": "many"}, {"count": "number"})
    with pytest.raises(MetadataError):
        Metadata.from_raw({"priority": "urgent"}, {"priority": {"kind": "ordinal", "levels": ["low"]}})


@pytest.mark.parametrize("identifier", ["a b", "x=y", "!x", "a<b", "a>b", "a~b", ""])
def test_invalid_identifiers_rejected(identifier: str) -> None:
    """Identifiers containing operator characters or whitespace are rejected."""
    assert not is_valid_identifier(identifier)
    with pytest.raises(MetadataError):
        Metadata.from_raw({identifier: 1})


def test_unknown_kind_rejected() -> None:
    """Schema entries with unknown kinds raise MetadataError."""
    with pytest.raises(MetadataError):
        compile_schema({"x": "colour"})
    with pytest.raises(MetadataError):
        compile_schema({"x": {"kind": "ordinal"}})


def test_value_type_for_ordinal() -> None:
    """value_type_for builds ordinal types with their levels."""
    vt = value_type_for({"kind": "ordinal", "levels": ["a", "b"]})
    assert vt == OrdinalType(["a", "b"])


@pytest.mark.parametrize(
    "raw, truthy",
    [
        (True, True),
        (False, False),
        ("", False),
        ("x", True),
        (0, False),
        (7, True),
        ([], False),
        (["a"], True),
        (date(2024, 1, 1), True),
    ],
)
def test_truthiness(raw, truthy) -> None:
    """Each type has its own truthiness rule."""
    md = Metadata.from_raw({"field": raw})
    assert md.is_truthy("field") is truthy


def test_absent_is_not_truthy() -> None:
    """A missing identifier is not truthy."""
    assert not Metadata.from_raw({}).is_truthy("field")


def test_snapshot_not_affected_by_source_mutation() -> None:
    """Metadata copies its input."""
    raw = {"a": 1}
    md = Metadata.from_raw(raw)
    raw["a"] = 2
    raw["b"] = 3
    assert md["a"].value == 1
    assert "b" not in md


def test_constructor_requires_metadata_values() -> None:
    """Metadata() only accepts MetadataValue instances."""
    assert Metadata({"a": MetadataValue.of(1)})["a"].value == 1
    with pytest.raises(MetadataError):
        Metadata({"a": 1})
