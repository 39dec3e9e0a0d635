"""Errors raised while building state graphs and resolving issue states.

Build-time problems are ConfigurationError (fatal to graph construction),
evaluation problems are ConditionTypeError, and resolution problems are
AmbiguousStateError. A missing metadata key is never an error.
"""

from enum import StrEnum
from typing import Iterable


class ErrorKind(StrEnum):
    """Kinds of configuration errors."""

    CYCLE_DETECTED = "cycle_detected"
    DUPLICATE_NAME = "duplicate_name"
    RELATION_CONFLICT = "relation_conflict"
    INVALID_COUNTER_REFERENCE = "invalid_counter_reference"
    UNKNOWN_REFERENCE = "unknown_reference"
    INVALID_DESCRIPTOR = "invalid_descriptor"
    INVALID_CONDITION = "invalid_condition"
    INCONSISTENT_VALUE_TYPE = "inconsistent_value_type"


class IssueStatesError(Exception):
    """Base class for all errors raised by issue_states."""

    pass


class ConfigurationError(IssueStatesError):
    """Raised when a state list or value type violates a build-time rule."""

    def __init__(self, kind: ErrorKind, detail: str, states: Iterable[str] = ()) -> None:
        self.kind = kind
        self.detail = detail
        self.states = tuple(states)
        super().__init__(f"{kind.value}: {detail}")


class ConditionParseError(ConfigurationError):
    """Raised when a condition atom string does not follow the atom grammar."""

    def __init__(self, text: str, reason: str) -> None:
        self.text = text
        self.reason = reason
        super().__init__(ErrorKind.INVALID_CONDITION, f"{reason} in condition {text!r}")


class ConditionTypeError(IssueStatesError, TypeError):
    """Raised when an operator is not defined for a metadata value's type."""

    def __init__(self, operator: str, type_name: str, reason: str = "") -> None:
        self.operator = operator
        self.type_name = type_name
        message = f"Operator {operator!r} is not defined for type {type_name!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class AmbiguousStateError(IssueStatesError):
    """Raised when more than one unrelated state is engaged for an issue.

    The caller decides what to do with it: the resolver never picks one of
    the engaged states on its own.
    """

    def __init__(self, engaged: Iterable[str]) -> None:
        self.engaged = tuple(engaged)
        super().__init__(f"Ambiguous issue state, engaged: {', '.join(self.engaged)}")


class MetadataError(IssueStatesError):
    """Raised when issue metadata can not be turned into typed values."""

    pass


class StateFileError(IssueStatesError):
    """Raised when a YAML document with states or metadata can not be read."""

    pass
