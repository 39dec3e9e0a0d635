"""Resolution of an issue's state from its metadata.

A resolution runs in three steps:

1. every state is checked for being enabled (counter-states are enabled
   exactly when their origin is not),
2. enabled states suppressed by another enabled state that extends or
   overrides them are dropped, leaving the engaged states,
3. no engaged state means the issue has no state, one engaged state is the
   result, and more than one raises AmbiguousStateError.

Resolution is a pure function of the graph and the metadata.
"""

import logging
from collections.abc import Mapping
from typing import Any, Hashable, TypeVar

from pydantic import BaseModel, Field

from issue_states.errors import AmbiguousStateError, IssueStatesError
from issue_states.graph import StateGraph
from issue_states.metadata import Metadata
from issue_states.values import Comparator

LOG = logging.getLogger("issue_states.resolution")

K = TypeVar("K", bound=Hashable)


class Resolution(BaseModel):
    """Outcome of resolving one issue's state."""

    state: str | None = Field(default=None, description="Selected state, None if no state is engaged")
    enabled: tuple[str, ...] = Field(default=(), description="States whose conditions hold")
    engaged: tuple[str, ...] = Field(default=(), description="Enabled states not suppressed by another")

    model_config = {"frozen": True}


class Resolver:
    """Resolves issue states against one StateGraph.

    Plain mappings passed as metadata are converted with ``schema`` (kind
    declarations per identifier) before evaluation.
    """

    def __init__(
        self,
        graph: StateGraph,
        comparator: Comparator | None = None,
        schema: Mapping[str, Any] | None = None,
    ) -> None:
        self.graph = graph
        self.comparator = comparator or Comparator(strict=True)
        self.schema = dict(schema or {})

    def _snapshot(self, metadata: Any) -> Any:
        if isinstance(metadata, Mapping) and not isinstance(metadata, Metadata):
            return Metadata.from_raw(metadata, self.schema)
        return metadata

    def enabled_indices(self, metadata: Any) -> list[int]:
        """Indices of enabled states, in arena order."""
        graph = self.graph
        enabled = [False] * len(graph)
        for state in graph.states:
            if state.counter_of is not None:
                enabled[state.index] = not enabled[graph.index_of(state.counter_of)]
            else:
                enabled[state.index] = graph.is_enabled(state.name, metadata, self.comparator)
        return [i for i, flag in enumerate(enabled) if flag]

    def resolve(self, metadata: Any) -> Resolution:
        """Resolve the state for one issue's metadata.

        Raises AmbiguousStateError if several unrelated states are engaged and
        ConditionTypeError if a strict comparator meets an undefined relation.
        """
        metadata = self._snapshot(metadata)
        graph = self.graph
        enabled = self.enabled_indices(metadata)
        enabled_set = frozenset(enabled)
        engaged = [i for i in enabled if not graph.suppressors_at(i) & enabled_set]

        names = graph.states
        enabled_names = tuple(names[i].name for i in enabled)
        engaged_names = tuple(names[i].name for i in engaged)
        LOG.debug("Enabled states: %s; engaged: %s", enabled_names, engaged_names)

        if len(engaged) > 1:
            raise AmbiguousStateError(engaged_names)
        return Resolution(
            state=engaged_names[0] if engaged_names else None,
            enabled=enabled_names,
            engaged=engaged_names,
        )

    def resolve_all(self, issues: Mapping[K, Any]) -> dict[K, Resolution | IssueStatesError]:
        """Resolve many issues; a failing issue yields its error as the value."""
        results: dict[K, Resolution | IssueStatesError] = {}
        for key, metadata in issues.items():
            try:
                results[key] = self.resolve(metadata)
            except IssueStatesError as e:
                LOG.warning("Issue %s: %s", key, e)
                results[key] = e
        return results


def resolve(graph: StateGraph, metadata: Any, comparator: Comparator | None = None) -> Resolution:
    """Resolve one issue's state; see Resolver.resolve."""
    return Resolver(graph, comparator).resolve(metadata)
