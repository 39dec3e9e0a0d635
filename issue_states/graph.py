"""State graph: issue states and their extends/overrides relations.

``build_graph`` turns raw state descriptors into a validated, immutable
StateGraph. States live in an arena addressed by integer index; relations are
stored as frozensets of indices and their transitive closures are computed once
here. Nothing is handed out before every check passed.

Relations:
- ``A extends B``: A inherits B's conditions and wins over B when both are
  enabled.
- ``A overrides B``: A wins over B when both are enabled, no conditions are
  inherited.
- counter-state of A: synthetic state, enabled exactly when A is not.
"""

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Sequence

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from issue_states.condition import ConditionAtom, evaluate_condition, parse_condition
from issue_states.errors import ConfigurationError, ErrorKind
from issue_states.values import Comparator

LOG = logging.getLogger("issue_states.graph")

Adjacency = tuple[frozenset[int], ...]


class StateDescriptor(BaseModel):
    """Raw description of one state, as produced by a parser or by hand."""

    name: str = Field(..., description="Unique state name")
    condition: list[str | ConditionAtom] = Field(
        default_factory=list,
        validation_alias=AliasChoices("condition", "conditions"),
        description="Condition atoms, all of which must hold",
    )
    extends: list[str] = Field(default_factory=list, description="States whose conditions are inherited")
    overrides: list[str] = Field(default_factory=list, description="States suppressed by this one")
    counter: str | None = Field(default=None, description="Name of the synthetic counter-state")

    model_config = {"extra": "forbid", "populate_by_name": True}

    @field_validator("condition", "extends", "overrides", mode="before")
    @classmethod
    def _one_or_many(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (str, ConditionAtom)):
            return [value]
        return value

    @field_validator("name", "counter")
    @classmethod
    def _non_empty(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("state name may not be empty")
        return value


class IssueState(BaseModel):
    """A state record owned by a StateGraph."""

    name: str
    index: int
    condition: tuple[ConditionAtom, ...] = ()
    extends: frozenset[str] = frozenset()
    overrides: frozenset[str] = frozenset()
    counter_of: str | None = None

    model_config = {"frozen": True}

    @property
    def is_counter(self) -> bool:
        return self.counter_of is not None


def _find_cycle(adjacency: Adjacency, remaining: set[int]) -> list[int]:
    """Follow edges inside ``remaining`` until a node repeats.

    Every node left over by a topological sort has an edge to another
    leftover node, so the walk always closes a cycle.
    """
    path: list[int] = []
    seen: dict[int, int] = {}
    node = min(remaining)
    while node not in seen:
        seen[node] = len(path)
        path.append(node)
        node = min(j for j in adjacency[node] if j in remaining)
    return path[seen[node]:] + [node]


def _topological_order(adjacency: Adjacency, names: Sequence[str], relation: str) -> tuple[int, ...]:
    """Order nodes so that every edge target comes before its source.

    Raises ConfigurationError(CYCLE_DETECTED) naming one cycle.
    """
    pending = [len(targets) for targets in adjacency]
    dependents: list[list[int]] = [[] for _ in adjacency]
    for source, targets in enumerate(adjacency):
        for target in targets:
            dependents[target].append(source)

    ready = [i for i, count in enumerate(pending) if count == 0]
    order: list[int] = []
    while ready:
        ready.sort(reverse=True)
        node = ready.pop()
        order.append(node)
        for source in dependents[node]:
            pending[source] -= 1
            if pending[source] == 0:
                ready.append(source)

    if len(order) < len(adjacency):
        remaining = set(range(len(adjacency))) - set(order)
        cycle = [names[i] for i in _find_cycle(adjacency, remaining)]
        raise ConfigurationError(
            ErrorKind.CYCLE_DETECTED,
            f"cyclic {relation} relation: {' -> '.join(cycle)}",
            states=cycle[:-1],
        )
    return tuple(order)


def _closure(adjacency: Adjacency, order: Sequence[int]) -> Adjacency:
    closure: list[frozenset[int]] = [frozenset()] * len(adjacency)
    for node in order:
        reached = set(adjacency[node])
        for target in adjacency[node]:
            reached |= closure[target]
        closure[node] = frozenset(reached)
    return tuple(closure)


def _check_conflicts(extends: Adjacency, overrides: Adjacency, names: Sequence[str]) -> None:
    """Raise RELATION_CONFLICT for a pair related by both the extends and overrides closures."""
    for a, targets in enumerate(extends):
        for b in targets:
            if b in overrides[a] or a in overrides[b]:
                raise ConfigurationError(
                    ErrorKind.RELATION_CONFLICT,
                    f"states {names[a]!r} and {names[b]!r} are related by both extends and overrides",
                    states=(names[a], names[b]),
                )


def normalize_descriptor(item: "StateDescriptor | Mapping[str, Any] | str") -> StateDescriptor:
    """Accept a descriptor, a mapping of descriptor fields, or a bare state name."""
    if isinstance(item, StateDescriptor):
        return item
    try:
        if isinstance(item, str):
            return StateDescriptor(name=item)
        if isinstance(item, Mapping):
            return StateDescriptor.model_validate(dict(item))
    except ValidationError as e:
        raise ConfigurationError(ErrorKind.INVALID_DESCRIPTOR, str(e)) from e
    raise ConfigurationError(
        ErrorKind.INVALID_DESCRIPTOR,
        f"expected a state name or mapping, got {type(item).__name__}",
    )


class StateGraph:
    """Validated, immutable set of issue states.

    Use ``build_graph`` to create one. The graph only answers questions; it
    never changes after construction and can be shared between threads.
    """

    __slots__ = (
        "_states",
        "_index",
        "_extends",
        "_overrides",
        "_union",
        "_suppressors",
        "_order",
        "_effective",
    )

    def __init__(
        self,
        states: Sequence[IssueState],
        extends_closure: Adjacency,
        overrides_closure: Adjacency,
        union_closure: Adjacency,
        order: Sequence[int],
        effective: Sequence[tuple[ConditionAtom, ...]],
    ) -> None:
        suppressors: list[set[int]] = [set() for _ in states]
        for winner, losers in enumerate(union_closure):
            for loser in losers:
                suppressors[loser].add(winner)

        init = object.__setattr__
        init(self, "_states", tuple(states))
        init(self, "_index", MappingProxyType({s.name: s.index for s in states}))
        init(self, "_extends", extends_closure)
        init(self, "_overrides", overrides_closure)
        init(self, "_union", union_closure)
        init(self, "_suppressors", tuple(frozenset(s) for s in suppressors))
        init(self, "_order", tuple(order))
        init(self, "_effective", tuple(effective))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("StateGraph is immutable")

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[IssueState]:
        return iter(self._states)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __getitem__(self, name: str) -> IssueState:
        return self._states[self.index_of(name)]

    def __repr__(self) -> str:
        return f"StateGraph({', '.join(self.names)})"

    @property
    def states(self) -> tuple[IssueState, ...]:
        return self._states

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._states)

    @property
    def counters(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._states if s.is_counter)

    @property
    def topological_order(self) -> tuple[str, ...]:
        """State names, every state after all states it extends or overrides."""
        return tuple(self._states[i].name for i in self._order)

    def index_of(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(f"Unknown issue state {name!r}") from None

    def _names(self, indices: Iterable[int]) -> frozenset[str]:
        return frozenset(self._states[i].name for i in indices)

    def extends_closure(self, name: str) -> frozenset[str]:
        """All states ``name`` extends, directly or transitively."""
        return self._names(self._extends[self.index_of(name)])

    def overrides_closure(self, name: str) -> frozenset[str]:
        """All states ``name`` overrides, directly or transitively."""
        return self._names(self._overrides[self.index_of(name)])

    def dominated_by(self, name: str) -> frozenset[str]:
        """States that suppress ``name`` when both are enabled."""
        return self._names(self._suppressors[self.index_of(name)])

    def dominates(self, winner: str, loser: str) -> bool:
        """Whether ``winner`` extends or overrides ``loser``, possibly transitively."""
        return self.index_of(loser) in self._union[self.index_of(winner)]

    def suppressors_at(self, index: int) -> frozenset[int]:
        return self._suppressors[index]

    def effective_condition(self, name: str) -> tuple[ConditionAtom, ...]:
        """Own condition plus the conditions of every extended state."""
        return self._effective[self.index_of(name)]

    def is_enabled(self, name: str, metadata: Any, comparator: Comparator | None = None) -> bool:
        """Whether a state is enabled for the metadata, ignoring other states.

        A counter-state is enabled exactly when its origin is not.
        """
        state = self[name]
        if state.counter_of is not None:
            return not self.is_enabled(state.counter_of, metadata, comparator)
        return evaluate_condition(self._effective[state.index], metadata, comparator)


def build_graph(descriptors: Iterable["StateDescriptor | Mapping[str, Any] | str"]) -> StateGraph:
    """Validate raw state descriptors and build a StateGraph.

    Raises ConfigurationError when names collide, a relation names an unknown
    state or a counter-state, a relation is cyclic, or a pair of states is
    related by both extends and overrides.
    """
    items = [normalize_descriptor(item) for item in descriptors]

    # Arena: declared states in order, each counter-state right after its origin
    names: list[str] = []
    index: dict[str, int] = {}
    origin: dict[str, str] = {}
    for item in items:
        for name in (item.name, item.counter):
            if name is None:
                continue
            if name in index:
                LOG.warning("Rejected states: duplicate name %r", name)
                raise ConfigurationError(ErrorKind.DUPLICATE_NAME, f"duplicate state name {name!r}", states=(name,))
            index[name] = len(names)
            names.append(name)
        if item.counter is not None:
            origin[item.counter] = item.name

    def resolve_refs(item: StateDescriptor, relation: str, targets: list[str]) -> frozenset[int]:
        for target in targets:
            if target in origin:
                raise ConfigurationError(
                    ErrorKind.INVALID_COUNTER_REFERENCE,
                    f"state {item.name!r} {relation} counter-state {target!r}",
                    states=(item.name, target),
                )
            if target not in index:
                raise ConfigurationError(
                    ErrorKind.UNKNOWN_REFERENCE,
                    f"state {item.name!r} {relation} unknown state {target!r}",
                    states=(item.name, target),
                )
        return frozenset(index[t] for t in targets)

    size = len(names)
    own: list[tuple[ConditionAtom, ...]] = [()] * size
    extends: list[frozenset[int]] = [frozenset()] * size
    overrides: list[frozenset[int]] = [frozenset()] * size
    states: list[IssueState | None] = [None] * size
    for item in items:
        i = index[item.name]
        own[i] = parse_condition(item.condition)
        extends[i] = resolve_refs(item, "extends", item.extends)
        overrides[i] = resolve_refs(item, "overrides", item.overrides)
        states[i] = IssueState(
            name=item.name,
            index=i,
            condition=own[i],
            extends=frozenset(item.extends),
            overrides=frozenset(item.overrides),
        )
        if item.counter is not None:
            c = index[item.counter]
            states[c] = IssueState(name=item.counter, index=c, counter_of=item.name)

    extends_adj, overrides_adj = tuple(extends), tuple(overrides)
    try:
        overrides_order = _topological_order(overrides_adj, names, "overrides")
        extends_order = _topological_order(extends_adj, names, "extends")
        extends_closure = _closure(extends_adj, extends_order)
        overrides_closure = _closure(overrides_adj, overrides_order)
        _check_conflicts(extends_closure, overrides_closure, names)
        union_adj = tuple(e | o for e, o in zip(extends_adj, overrides_adj))
        union_order = _topological_order(union_adj, names, "extends/overrides")
    except ConfigurationError as e:
        LOG.warning("Rejected states: %s", e.detail)
        raise

    effective: list[tuple[ConditionAtom, ...]] = [()] * size
    for i in extends_order:
        atoms = dict.fromkeys(own[i])
        for target in sorted(extends_adj[i]):
            atoms.update(dict.fromkeys(effective[target]))
        effective[i] = tuple(atoms)

    graph = StateGraph(
        states=[s for s in states if s is not None],
        extends_closure=extends_closure,
        overrides_closure=overrides_closure,
        union_closure=_closure(union_adj, union_order),
        order=union_order,
        effective=effective,
    )
    LOG.info("Built state graph with %d states (%d counter-states)", len(graph), len(origin))
    return graph
