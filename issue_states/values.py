"""Typed metadata values and the value comparator.

Every metadata value belongs to one of a closed set of value types. Each type
declares which match operators it supports; the declaration is checked when
the type is defined, so a type supporting "=" always supports "~" and a type
with a strict order always supports "<=" and ">=".
"""

import logging
from datetime import date, datetime
from enum import StrEnum
from typing import Any, Iterable

from issue_states.errors import ConditionTypeError, ConfigurationError, ErrorKind

LOG = logging.getLogger("issue_states.values")

TRUE_WORDS = ("true", "yes", "on", "1")
FALSE_WORDS = ("false", "no", "off", "0")


class MatchOp(StrEnum):
    """Operators comparing a metadata value (left) with a literal (right)."""

    EQUIVALENCE = "="
    LOWER_THAN = "<"
    GREATER_THAN = ">"
    LOWER_THAN_OR_EQUAL = "<="
    GREATER_THAN_OR_EQUAL = ">="
    CONTAINS = "~"


ORDER_OPS = frozenset({MatchOp.LOWER_THAN, MatchOp.GREATER_THAN})
ORDER_OR_EQUAL_OPS = frozenset({MatchOp.LOWER_THAN_OR_EQUAL, MatchOp.GREATER_THAN_OR_EQUAL})
ALL_OPS = frozenset(MatchOp)


def check_capabilities(name: str, operators: Iterable[MatchOp]) -> frozenset[MatchOp]:
    """Validate an operator capability table.

    Raises ConfigurationError(INCONSISTENT_VALUE_TYPE) when the table breaks
    one of the composition rules between operators.
    """
    ops = frozenset(operators)

    def fail(reason: str) -> ConfigurationError:
        return ConfigurationError(ErrorKind.INCONSISTENT_VALUE_TYPE, f"value type {name!r}: {reason}")

    if MatchOp.EQUIVALENCE in ops and MatchOp.CONTAINS not in ops:
        raise fail("'=' is defined but '~' is not")
    if MatchOp.EQUIVALENCE in ops and ORDER_OPS <= ops and not ORDER_OR_EQUAL_OPS <= ops:
        raise fail("'<' and '>' are defined but '<=' or '>=' is not")
    if ops & ORDER_OR_EQUAL_OPS and not (ORDER_OPS | {MatchOp.EQUIVALENCE}) <= ops:
        raise fail("'<=' or '>=' is defined without '=', '<' and '>'")
    if bool(ops & ORDER_OPS) and not ORDER_OPS <= ops:
        raise fail("only one of '<' and '>' is defined")
    return ops


class ValueType:
    """Base of all metadata value types.

    Subclasses set ``name`` and ``operators`` and override the hooks they need.
    ``coerce`` turns a raw value from the metadata source into the canonical
    Python value; ``parse_literal`` does the same for literals written in a
    condition.
    """

    name: str = ""
    operators: frozenset[MatchOp] = frozenset()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.operators = check_capabilities(cls.name or cls.__name__, cls.operators)

    def coerce(self, raw: Any) -> Any:
        raise NotImplementedError(self.name)

    def parse_literal(self, text: str) -> Any:
        return self.coerce(text.strip())

    def equals(self, left: Any, right: Any) -> bool:
        return left == right

    def less(self, left: Any, right: Any) -> bool:
        raise NotImplementedError(self.name)

    def contains(self, left: Any, right: Any) -> bool:
        """Containment beyond equality; types without it contain only equals."""
        return False

    def truthy(self, value: Any) -> bool:
        return bool(value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class BooleanType(ValueType):
    name = "boolean"
    operators = frozenset({MatchOp.EQUIVALENCE, MatchOp.CONTAINS})

    def coerce(self, raw: Any) -> bool:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, int) and raw in (0, 1):
            return bool(raw)
        if isinstance(raw, str):
            word = raw.strip().lower()
            if word in TRUE_WORDS:
                return True
            if word in FALSE_WORDS:
                return False
        raise ValueError(f"not a boolean: {raw!r}")


class StringType(ValueType):
    name = "string"
    operators = frozenset({MatchOp.EQUIVALENCE, MatchOp.CONTAINS})

    def coerce(self, raw: Any) -> str:
        if raw is None:
            raise ValueError("string value may not be null")
        return str(raw)

    def parse_literal(self, text: str) -> str:
        return text

    def contains(self, left: str, right: str) -> bool:
        return right in left


class NumberType(ValueType):
    name = "number"
    operators = ALL_OPS

    def coerce(self, raw: Any) -> int | float:
        if isinstance(raw, bool):
            raise ValueError(f"not a number: {raw!r}")
        if isinstance(raw, (int, float)):
            return raw
        if isinstance(raw, str):
            text = raw.strip()
            try:
                return int(text)
            except ValueError:
                return float(text)
        raise ValueError(f"not a number: {raw!r}")

    def less(self, left: int | float, right: int | float) -> bool:
        return left < right


class DateType(ValueType):
    name = "date"
    operators = ALL_OPS

    def coerce(self, raw: Any) -> date:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        if isinstance(raw, str):
            text = raw.strip()
            if "T" in text or " " in text:
                return datetime.fromisoformat(text).date()
            return date.fromisoformat(text)
        raise ValueError(f"not a date: {raw!r}")

    def less(self, left: date, right: date) -> bool:
        return left < right

    def truthy(self, value: date) -> bool:
        return True


class SetType(ValueType):
    """Unordered collection of strings, e.g. labels.

    A literal is a comma separated list; "~" checks that every literal item is
    in the value.
    """

    name = "set"
    operators = frozenset({MatchOp.EQUIVALENCE, MatchOp.CONTAINS})

    def coerce(self, raw: Any) -> frozenset[str]:
        if isinstance(raw, str):
            return frozenset(item.strip() for item in raw.split(",") if item.strip())
        if isinstance(raw, (list, tuple, set, frozenset)):
            return frozenset(str(item) for item in raw)
        raise ValueError(f"not a set: {raw!r}")

    def contains(self, left: frozenset[str], right: frozenset[str]) -> bool:
        return right <= left


class OrdinalType(ValueType):
    """Ordered enumeration declared per metadata field (e.g. priorities)."""

    name = "ordinal"
    operators = ALL_OPS

    def __init__(self, levels: Iterable[str]) -> None:
        self.levels = tuple(str(level) for level in levels)
        if not self.levels:
            raise ConfigurationError(ErrorKind.INCONSISTENT_VALUE_TYPE, "ordinal type needs at least one level")
        if len(set(self.levels)) != len(self.levels):
            raise ConfigurationError(ErrorKind.INCONSISTENT_VALUE_TYPE, f"duplicate ordinal levels: {self.levels}")
        self._rank = {level: i for i, level in enumerate(self.levels)}

    def coerce(self, raw: Any) -> str:
        level = str(raw).strip()
        if level not in self._rank:
            raise ValueError(f"{level!r} is not one of {', '.join(self.levels)}")
        return level

    def less(self, left: str, right: str) -> bool:
        return self._rank[left] < self._rank[right]

    def truthy(self, value: str) -> bool:
        return True

    def __eq__(self, other: object) -> bool:
        return isinstance(other, OrdinalType) and other.levels == self.levels

    def __hash__(self) -> int:
        return hash(("ordinal", self.levels))

    def __repr__(self) -> str:
        return f"<OrdinalType {' < '.join(self.levels)}>"


BOOLEAN = BooleanType()
STRING = StringType()
NUMBER = NumberType()
DATE = DateType()
SET = SetType()

# Value types without parameters, by kind name
VALUE_TYPES: dict[str, ValueType] = {}


def register_value_type(value_type: ValueType) -> ValueType:
    """Make a value type available by its kind name."""
    check_capabilities(value_type.name, value_type.operators)
    if value_type.name in VALUE_TYPES and VALUE_TYPES[value_type.name] is not value_type:
        raise ConfigurationError(
            ErrorKind.INCONSISTENT_VALUE_TYPE,
            f"value type {value_type.name!r} is already registered",
        )
    VALUE_TYPES[value_type.name] = value_type
    return value_type


for _builtin in (BOOLEAN, STRING, NUMBER, DATE, SET):
    register_value_type(_builtin)


def infer_value_type(raw: Any) -> ValueType:
    """Pick a value type for a raw value when no kind is declared."""
    if isinstance(raw, bool):
        return BOOLEAN
    if isinstance(raw, (int, float)):
        return NUMBER
    if isinstance(raw, (date, datetime)):
        return DATE
    if isinstance(raw, (list, tuple, set, frozenset)):
        return SET
    return STRING


class MetadataValue:
    """A piece of issue metadata together with its value type."""

    __slots__ = ("type", "value")

    def __init__(self, value_type: ValueType, value: Any) -> None:
        object.__setattr__(self, "type", value_type)
        object.__setattr__(self, "value", value)

    @classmethod
    def of(cls, raw: Any, value_type: ValueType | None = None) -> "MetadataValue":
        """Build a value from raw input, inferring the type if not given.

        Raises ValueError when the raw value does not fit the type.
        """
        if isinstance(raw, MetadataValue):
            return raw
        value_type = value_type or infer_value_type(raw)
        return cls(value_type, value_type.coerce(raw))

    def truthy(self) -> bool:
        return self.type.truthy(self.value)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("MetadataValue is immutable")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MetadataValue):
            return NotImplemented
        return self.type == other.type and self.value == other.value

    def __hash__(self) -> int:
        return hash((self.type.name, self.value))

    def __repr__(self) -> str:
        return f"MetadataValue({self.type.name}, {self.value!r})"


class Comparator:
    """Evaluates match operators between metadata values and literals.

    With ``strict`` set, applying an operator the value type does not define
    raises ConditionTypeError. Otherwise the relation counts as not matching;
    negation is still applied on top of it.
    """

    def __init__(self, strict: bool = True) -> None:
        self.strict = strict

    def compare(self, op: MatchOp, negated: bool, lhs: MetadataValue, rhs: Any) -> bool:
        result = self._relation(op, lhs, rhs)
        return not result if negated else result

    def _relation(self, op: MatchOp, lhs: MetadataValue, rhs: Any) -> bool:
        value_type = lhs.type
        if op not in value_type.operators:
            return self._undefined(op, value_type, "unsupported operator")
        try:
            right = self._literal(value_type, rhs)
        except (TypeError, ValueError) as e:
            return self._undefined(op, value_type, str(e))

        left = lhs.value
        if op is MatchOp.EQUIVALENCE:
            return value_type.equals(left, right)
        if op is MatchOp.LOWER_THAN:
            return value_type.less(left, right)
        if op is MatchOp.GREATER_THAN:
            return value_type.less(right, left)
        if op is MatchOp.LOWER_THAN_OR_EQUAL:
            return value_type.less(left, right) or value_type.equals(left, right)
        if op is MatchOp.GREATER_THAN_OR_EQUAL:
            return value_type.less(right, left) or value_type.equals(left, right)
        # MatchOp.CONTAINS
        return value_type.equals(left, right) or value_type.contains(left, right)

    @staticmethod
    def _literal(value_type: ValueType, rhs: Any) -> Any:
        if isinstance(rhs, MetadataValue):
            if rhs.type != value_type:
                raise TypeError(f"literal has type {rhs.type.name!r}")
            return rhs.value
        if rhs is None:
            raise ValueError("missing literal")
        return value_type.parse_literal(str(rhs))

    def _undefined(self, op: MatchOp, value_type: ValueType, reason: str) -> bool:
        if self.strict:
            raise ConditionTypeError(op.value, value_type.name, reason)
        LOG.debug("Operator %s undefined for %s (%s), treating as no match", op.value, value_type.name, reason)
        return False
