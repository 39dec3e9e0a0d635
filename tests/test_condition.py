"""Tests for issue_states.condition (atom grammar and evaluation)."""

import pytest

from issue_states.condition import (
    ConditionAtom,
    evaluate_atom,
    evaluate_condition,
    parse_atom,
    parse_condition,
)
from issue_states.errors import ConditionParseError, ConditionTypeError, ConfigurationError, ErrorKind
from issue_states.metadata import Metadata
from issue_states.values import Comparator, MatchOp


class TestParseAtom:
    """parse_atom follows identifier [!] [operator value]."""

    @pytest.mark.parametrize(
        "text, identifier, operator, negated, literal",
        [
            ("assignee", "assignee", None, False, None),
            ("!assignee", "assignee", None, True, None),
            ("assignee!", "assignee", None, True, None),
            ("closed=true", "closed", MatchOp.EQUIVALENCE, False, "true"),
            ("review_count>=1", "review_count", MatchOp.GREATER_THAN_OR_EQUAL, False, "1"),
            ("review_count<=1", "review_count", MatchOp.LOWER_THAN_OR_EQUAL, False, "1"),
            ("priority>high", "priority", MatchOp.GREATER_THAN, False, "high"),
            ("age<3", "age", MatchOp.LOWER_THAN, False, "3"),
            ("age~overdue", "age", MatchOp.CONTAINS, False, "overdue"),
            ("labels!~wontfix", "labels", MatchOp.CONTAINS, True, "wontfix"),
            ("status!=done", "status", MatchOp.EQUIVALENCE, True, "done"),
            ("  title = hello world  ", "title", MatchOp.EQUIVALENCE, False, "hello world"),
        ],
    )
    def test_valid(self, text, identifier, operator, negated, literal) -> None:
        """Well-formed atoms parse into identifier, operator, negation and literal."""
        atom = parse_atom(text)
        assert atom.identifier == identifier
        assert atom.operator == operator
        assert atom.negated is negated
        assert atom.literal == literal

    @pytest.mark.parametrize(
        "text",
        ["", "   ", "=x", "!", "a==b", "a<==b", "a b", "a!b", "!a=b", "!a!", "title=", "n< ", "labels!~"],
    )
    def test_invalid(self, text) -> None:
        """Malformed atoms raise ConditionParseError (a ConfigurationError)."""
        with pytest.raises(ConditionParseError) as exc:
            parse_atom(text)
        assert isinstance(exc.value, ConfigurationError)
        assert exc.value.kind is ErrorKind.INVALID_CONDITION

    def test_str_round_trip(self) -> None:
        """str(atom) renders the atom grammar."""
        for text in ("assignee", "!assignee", "priority>high", "labels!~wontfix"):
            assert str(parse_atom(text)) == text


def test_parse_condition_single_string_and_duplicates() -> None:
    """A single string is one atom; duplicates are dropped in order."""
    assert parse_condition("closed=true") == (parse_atom("closed=true"),)
    atoms = parse_condition(["a", "b=1", "a"])
    assert [str(a) for a in atoms] == ["a", "b=1"]
    assert parse_condition(None) == ()


def test_parse_condition_accepts_atoms() -> None:
    """Pre-parsed atoms pass through."""
    atom = ConditionAtom(identifier="x", operator=MatchOp.LOWER_THAN, literal="3")
    assert parse_condition([atom]) == (atom,)


class TestEvaluateAtom:
    """evaluate_atom handles presence, absence and comparisons."""

    def test_presence(self) -> None:
        """A bare identifier needs the value to be present and truthy."""
        md = Metadata.from_raw({"assignee": "alice", "closed": False})
        assert evaluate_atom(parse_atom("assignee"), md)
        assert not evaluate_atom(parse_atom("closed"), md)
        assert not evaluate_atom(parse_atom("missing"), md)

    def test_negated_presence_true_when_absent_or_falsy(self) -> None:
        """!x holds for a missing identifier and for a falsy value."""
        md = Metadata.from_raw({"assignee": "alice", "closed": False})
        assert not evaluate_atom(parse_atom("!assignee"), md)
        assert evaluate_atom(parse_atom("!closed"), md)
        assert evaluate_atom(parse_atom("!missing"), md)

    def test_absent_never_satisfies_comparison(self) -> None:
        """Absence fails comparisons, negated ones included."""
        md = Metadata.from_raw({})
        for text in ("a=1", "a!=1", "a<1", "a!<1", "a~x", "a!~x"):
            assert not evaluate_atom(parse_atom(text), md)

    def test_comparison_delegates(self) -> None:
        """Operator atoms compare the metadata value against the literal."""
        md = Metadata.from_raw({"review_count": 2})
        assert evaluate_atom(parse_atom("review_count>=1"), md)
        assert not evaluate_atom(parse_atom("review_count!>=1"), md)

    def test_plain_mapping_accessor(self) -> None:
        """Any object with get() works; raw values get inferred types."""
        assert evaluate_atom(parse_atom("n>1"), {"n": 5})

    def test_type_error_policy(self) -> None:
        """Strict comparators raise; lenient ones count the atom false."""
        md = Metadata.from_raw({"title": "abc"})
        atom = parse_atom("title<b")
        with pytest.raises(ConditionTypeError):
            evaluate_atom(atom, md, Comparator(strict=True))
        assert not evaluate_atom(atom, md, Comparator(strict=False))


def test_evaluate_condition_is_conjunction() -> None:
    """All atoms must hold; the empty condition holds."""
    md = Metadata.from_raw({"a": True, "b": 3})
    assert evaluate_condition(parse_condition(["a", "b>2"]), md)
    assert not evaluate_condition(parse_condition(["a", "b>3"]), md)
    assert evaluate_condition((), md)


def test_evaluate_condition_short_circuits() -> None:
    """Evaluation stops at the first false atom, so later type errors are not hit."""
    md = Metadata.from_raw({"a": False, "title": "abc"})
    assert not evaluate_condition(parse_condition(["a", "title<b"]), md, Comparator(strict=True))
