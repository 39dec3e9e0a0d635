"""Condition atoms: parsing and evaluation against issue metadata.

An atom is written as ``identifier [!] [operator value]``:

    assignee            identifier present and set
    !assignee           identifier absent or not set (also ``assignee!``)
    closed=true         value equals literal
    priority>high       value greater than literal
    labels!~wontfix     value does not contain literal

A condition is the conjunction of its atoms.
"""

import re
from typing import Any, Iterable

from pydantic import BaseModel

from issue_states.errors import ConditionParseError
from issue_states.values import Comparator, MatchOp, MetadataValue

ATOM_RE = re.compile(
    r"^(?P<bang>!)?(?P<identifier>[^!<>=~\s]+)\s*(?P<negated>!)?"
    r"(?:\s*(?P<op><=|>=|=|<|>|~)\s*(?P<value>.*?))?\s*$",
    re.DOTALL,
)

DEFAULT_COMPARATOR = Comparator(strict=True)


class ConditionAtom(BaseModel):
    """Single comparison between one metadata identifier and a literal."""

    identifier: str
    operator: MatchOp | None = None
    negated: bool = False
    literal: str | MetadataValue | None = None

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    def __str__(self) -> str:
        if self.operator is None:
            return f"!{self.identifier}" if self.negated else self.identifier
        literal = self.literal.value if isinstance(self.literal, MetadataValue) else self.literal
        bang = "!" if self.negated else ""
        return f"{self.identifier}{bang}{self.operator.value}{literal}"


def parse_atom(text: str) -> ConditionAtom:
    """Parse one condition atom string.

    Raises ConditionParseError on malformed input.
    """
    if not isinstance(text, str):
        raise ConditionParseError(repr(text), "condition must be a string")
    stripped = text.strip()
    if not stripped:
        raise ConditionParseError(text, "empty condition")
    m = ATOM_RE.match(stripped)
    if not m:
        if stripped.lstrip("!")[:1] in "<>=~":
            raise ConditionParseError(text, "missing identifier")
        raise ConditionParseError(text, "unexpected text after identifier")

    op = m.group("op")
    if m.group("bang"):
        if op is not None:
            raise ConditionParseError(text, "leading '!' is only allowed on presence checks")
        if m.group("negated"):
            raise ConditionParseError(text, "double negation")
        return ConditionAtom(identifier=m.group("identifier"), negated=True)

    negated = m.group("negated") is not None
    if op is None:
        return ConditionAtom(identifier=m.group("identifier"), negated=negated)

    value = m.group("value")
    if not value:
        raise ConditionParseError(text, "missing value")
    if value.startswith("="):
        raise ConditionParseError(text, "literal may not begin with '='")
    return ConditionAtom(
        identifier=m.group("identifier"),
        operator=MatchOp(op),
        negated=negated,
        literal=value,
    )


def parse_condition(value: str | ConditionAtom | Iterable[str | ConditionAtom] | None) -> tuple[ConditionAtom, ...]:
    """Parse a condition given as one atom string or a list of them.

    Duplicate atoms are dropped, order is kept.
    """
    if value is None:
        return ()
    if isinstance(value, (str, ConditionAtom)):
        value = [value]
    atoms: dict[ConditionAtom, None] = {}
    for item in value:
        atom = item if isinstance(item, ConditionAtom) else parse_atom(item)
        atoms.setdefault(atom, None)
    return tuple(atoms)


def evaluate_atom(atom: ConditionAtom, metadata: Any, comparator: Comparator | None = None) -> bool:
    """Evaluate one atom against a metadata accessor (anything with ``get``)."""
    value = metadata.get(atom.identifier)
    if value is not None and not isinstance(value, MetadataValue):
        value = MetadataValue.of(value)

    if atom.operator is None:
        present = value is not None and value.truthy()
        return present != atom.negated
    if value is None:
        # Absence never satisfies a comparison, negated or not
        return False
    return (comparator or DEFAULT_COMPARATOR).compare(atom.operator, atom.negated, value, atom.literal)


def evaluate_condition(
    atoms: Iterable[ConditionAtom],
    metadata: Any,
    comparator: Comparator | None = None,
) -> bool:
    """Conjunction of atoms; stops at the first false atom."""
    return all(evaluate_atom(atom, metadata, comparator) for atom in atoms)
