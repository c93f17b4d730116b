"""Query plan nodes.

A plan is an immutable chain of nodes; every node except Scan wraps the
node it was built on (`source`). Building a query never mutates an
existing node, so any plan can be shared and extended independently.

Node kinds:
    Scan      - all entities of one type
    Filter    - rows matching a predicate
    Sort      - ordered by one or more keys (sort + then_sort)
    GroupBy   - Grouping(key, members) per distinct key
    Join      - inner, group or cross join with another plan
    Select    - projection (flattened for select_many)
    Skip/Take - offset and limit
    Distinct  - duplicates removed, first occurrence kept
    Include   - eager-load hint, result shape unchanged
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from pluto_orm.domain.value_objects import JoinKind, SortDirection


@dataclass(frozen=True, eq=False)
class PlanNode:
    """Base class of plan nodes."""

    def chain(self) -> Iterator[PlanNode]:
        """This node and its sources, root first."""
        node: PlanNode | None = self
        while node is not None:
            yield node
            node = getattr(node, "source", None)


@dataclass(frozen=True, eq=False)
class Scan(PlanNode):
    entity: str


@dataclass(frozen=True, eq=False)
class Filter(PlanNode):
    source: PlanNode
    predicate: Callable[[Any], Any]


@dataclass(frozen=True, eq=False)
class SortKey:
    key: Callable[[Any], Any]
    direction: SortDirection = SortDirection.ASCENDING

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESCENDING


@dataclass(frozen=True, eq=False)
class Sort(PlanNode):
    source: PlanNode
    keys: tuple[SortKey, ...]


@dataclass(frozen=True, eq=False)
class GroupBy(PlanNode):
    source: PlanNode
    key: Callable[[Any], Any]
    element: Callable[[Any], Any] | None = None


@dataclass(frozen=True, eq=False)
class Join(PlanNode):
    """Join of `source` (left) with `other` (right).

    INNER:  shape(left, right) per pair with equal keys
    GROUP:  shape(left, [matching rights]) per left row
    CROSS:  shape(left, right) per pair, keys unused
    """

    source: PlanNode
    other: PlanNode
    kind: JoinKind
    left_key: Callable[[Any], Any] | None = None
    right_key: Callable[[Any], Any] | None = None
    shape: Callable[[Any, Any], Any] | None = None


@dataclass(frozen=True, eq=False)
class Select(PlanNode):
    source: PlanNode
    projection: Callable[[Any], Any]
    flatten: bool = False


@dataclass(frozen=True, eq=False)
class Skip(PlanNode):
    source: PlanNode
    count: int


@dataclass(frozen=True, eq=False)
class Take(PlanNode):
    source: PlanNode
    count: int


@dataclass(frozen=True, eq=False)
class Distinct(PlanNode):
    source: PlanNode


@dataclass(frozen=True, eq=False)
class Include(PlanNode):
    source: PlanNode
    path: str


@dataclass
class Grouping:
    """One group produced by GroupBy or a group join."""

    key: Any
    members: list[Any] = field(default_factory=list)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)

    @property
    def size(self) -> int:
        return len(self.members)
