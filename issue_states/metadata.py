"""Issue metadata as an immutable snapshot of typed values.

The kind of each identifier comes from the metadata source (a schema mapping
identifiers to kinds). Identifiers without a declared kind get one inferred
from the raw Python value.
"""

import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Iterator

from pydantic import BaseModel, Field, model_validator

from issue_states.errors import MetadataError
from issue_states.values import VALUE_TYPES, MetadataValue, OrdinalType, ValueType

IDENTIFIER_RE = re.compile(r"^[^!<>=~\s]+$")


def is_valid_identifier(identifier: str) -> bool:
    return bool(IDENTIFIER_RE.match(identifier))


class FieldSpec(BaseModel):
    """Declared kind of a metadata identifier."""

    kind: str = Field(..., description="boolean, string, number, date, set or ordinal")
    levels: list[str] = Field(default_factory=list, description="Ordered levels (ordinal only), lowest first")

    model_config = {"extra": "forbid", "frozen": True}

    @model_validator(mode="after")
    def _check_kind(self) -> "FieldSpec":
        if self.kind != "ordinal" and self.kind not in VALUE_TYPES:
            raise ValueError(f"unknown metadata kind {self.kind!r}")
        if self.kind == "ordinal" and not self.levels:
            raise ValueError("ordinal kind needs levels")
        return self


def value_type_for(spec: "FieldSpec | str | Mapping[str, Any]") -> ValueType:
    """Return the value type for a kind declaration.

    Accepts a FieldSpec, a bare kind name, or a mapping such as
    ``{"kind": "ordinal", "levels": ["low", "high"]}``.
    """
    if isinstance(spec, str):
        spec = FieldSpec(kind=spec)
    elif not isinstance(spec, FieldSpec):
        spec = FieldSpec.model_validate(dict(spec))
    if spec.kind == "ordinal":
        return OrdinalType(spec.levels)
    return VALUE_TYPES[spec.kind]


def compile_schema(schema: Mapping[str, Any] | None) -> dict[str, ValueType]:
    """Turn kind declarations per identifier into value types."""
    if not schema:
        return {}
    compiled = {}
    for identifier, spec in schema.items():
        if not is_valid_identifier(identifier):
            raise MetadataError(f"Invalid metadata identifier {identifier!r}")
        try:
            compiled[identifier] = spec if isinstance(spec, ValueType) else value_type_for(spec)
        except ValueError as e:
            raise MetadataError(f"Invalid kind for {identifier!r}: {e}") from e
    return compiled


class Metadata(Mapping):
    """Read-only mapping of identifier to MetadataValue.

    ``get`` returns None for absent identifiers, which is a normal input for
    condition evaluation.
    """

    def __init__(self, values: Mapping[str, MetadataValue] | None = None) -> None:
        values = dict(values or {})
        for identifier, value in values.items():
            if not is_valid_identifier(identifier):
                raise MetadataError(f"Invalid metadata identifier {identifier!r}")
            if not isinstance(value, MetadataValue):
                raise MetadataError(f"Value for {identifier!r} is not a MetadataValue")
        self._values = MappingProxyType(values)

    @classmethod
    def from_raw(
        cls,
        raw: Mapping[str, Any],
        schema: Mapping[str, Any] | None = None,
    ) -> "Metadata":
        """Build typed metadata from plain values.

        ``None`` values are treated as absent.
        """
        types = compile_schema(schema)
        values = {}
        for identifier, item in raw.items():
            identifier = str(identifier)
            if item is None:
                continue
            if not is_valid_identifier(identifier):
                raise MetadataError(f"Invalid metadata identifier {identifier!r}")
            try:
                values[identifier] = MetadataValue.of(item, types.get(identifier))
            except (TypeError, ValueError) as e:
                raise MetadataError(f"Invalid value for {identifier!r}: {e}") from e
        return cls(values)

    def is_truthy(self, identifier: str) -> bool:
        """True if the identifier is present and its value counts as set."""
        value = self._values.get(identifier)
        return value is not None and value.truthy()

    def __getitem__(self, identifier: str) -> MetadataValue:
        return self._values[identifier]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Metadata({dict(self._values)!r})"
