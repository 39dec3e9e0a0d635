"""Issue states: resolve the state of an issue from its metadata.

Build a StateGraph once from state descriptors, then resolve any number of
issues against it:

    graph = build_graph([
        "open",
        {"name": "closed", "condition": "closed=true", "overrides": "open"},
    ])
    resolve(graph, {"closed": True}).state  # "closed"
"""

import logging

from issue_states.condition import ConditionAtom, evaluate_atom, evaluate_condition, parse_atom, parse_condition
from issue_states.errors import (
    AmbiguousStateError,
    ConditionParseError,
    ConditionTypeError,
    ConfigurationError,
    ErrorKind,
    IssueStatesError,
    MetadataError,
    StateFileError,
)
from issue_states.graph import IssueState, StateDescriptor, StateGraph, build_graph
from issue_states.metadata import FieldSpec, Metadata
from issue_states.resolution import Resolution, Resolver, resolve
from issue_states.values import Comparator, MatchOp, MetadataValue

__all__ = [
    "AmbiguousStateError",
    "Comparator",
    "ConditionAtom",
    "ConditionParseError",
    "ConditionTypeError",
    "ConfigurationError",
    "ErrorKind",
    "FieldSpec",
    "IssueState",
    "IssueStatesError",
    "MatchOp",
    "Metadata",
    "MetadataError",
    "MetadataValue",
    "Resolution",
    "Resolver",
    "StateDescriptor",
    "StateFileError",
    "StateGraph",
    "build_graph",
    "evaluate_atom",
    "evaluate_condition",
    "parse_atom",
    "parse_condition",
    "resolve",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
