"""Deferred, chainable queries.

A Query pairs a plan node with the executor that will run it. Builder
methods return new queries; terminal methods execute.

    cheap = ctx.courses.filter(F.price < 10)
    by_level = cheap.sort(F.level).then_sort(F.name, SortDirection.DESCENDING)
    first = by_level.first()
    count = cheap.count()         # cheap is unchanged by the sort above
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterator

from pluto_orm.application.expressions import as_function
from pluto_orm.application.plan import (
    Distinct,
    Filter,
    GroupBy,
    Include,
    Join,
    PlanNode,
    Select,
    Skip,
    Sort,
    SortKey,
    Take,
)
from pluto_orm.domain.exceptions import EmptyResult, MultipleElementsFound, QueryUsageError
from pluto_orm.domain.value_objects import JoinKind, SortDirection

if TYPE_CHECKING:
    from pluto_orm.application.executor import QueryExecutor

_MISSING = object()


class Query:
    """Immutable query over one executor."""

    def __init__(self, plan: PlanNode, executor: QueryExecutor) -> None:
        self._plan = plan
        self._executor = executor

    @property
    def plan(self) -> PlanNode:
        return self._plan

    def _wrap(self, plan: PlanNode) -> Query:
        return Query(plan, self._executor)

    def __repr__(self) -> str:
        kinds = " <- ".join(type(n).__name__ for n in self._plan.chain())
        return f"Query({kinds})"

    # =========================================================================
    # Builders
    # =========================================================================

    def filter(self, predicate: Any) -> Query:
        return self._wrap(Filter(self._plan, as_function(predicate)))

    def sort(self, key: Any, direction: SortDirection = SortDirection.ASCENDING) -> Query:
        return self._wrap(Sort(self._plan, (SortKey(as_function(key), direction),)))

    def sort_descending(self, key: Any) -> Query:
        return self.sort(key, SortDirection.DESCENDING)

    def then_sort(self, key: Any, direction: SortDirection = SortDirection.ASCENDING) -> Query:
        """Add a secondary key to the sort this query ends with.

        Raises:
            QueryUsageError: The query does not end with a sort.
        """
        if not isinstance(self._plan, Sort):
            raise QueryUsageError("then_sort() must directly follow sort() or then_sort()")
        keys = (*self._plan.keys, SortKey(as_function(key), direction))
        return self._wrap(Sort(self._plan.source, keys))

    def then_sort_descending(self, key: Any) -> Query:
        return self.then_sort(key, SortDirection.DESCENDING)

    def group_by(self, key: Any, element: Any = None) -> Query:
        pick = as_function(element) if element is not None else None
        return self._wrap(GroupBy(self._plan, as_function(key), pick))

    def join(
        self,
        other: Query,
        left_key: Any,
        right_key: Any,
        result_shape: Callable[[Any, Any], Any] | None = None,
    ) -> Query:
        """Inner join: one result per (left, right) pair with equal keys."""
        return self._wrap(
            Join(
                self._plan, other.plan, JoinKind.INNER,
                as_function(left_key), as_function(right_key), result_shape,
            )
        )

    def group_join(
        self,
        other: Query,
        left_key: Any,
        right_key: Any,
        result_shape: Callable[[Any, list[Any]], Any] | None = None,
    ) -> Query:
        """Group join: one result per left row with its (possibly empty) matches."""
        return self._wrap(
            Join(
                self._plan, other.plan, JoinKind.GROUP,
                as_function(left_key), as_function(right_key), result_shape,
            )
        )

    def cross_join(self, other: Query, result_shape: Callable[[Any, Any], Any] | None = None) -> Query:
        return self._wrap(Join(self._plan, other.plan, JoinKind.CROSS, shape=result_shape))

    def select(self, projection: Any) -> Query:
        return self._wrap(Select(self._plan, as_function(projection)))

    def select_many(self, projection: Any) -> Query:
        return self._wrap(Select(self._plan, as_function(projection), flatten=True))

    def skip(self, count: int) -> Query:
        if count < 0:
            raise QueryUsageError(f"skip() count must be >= 0, got {count}")
        return self._wrap(Skip(self._plan, count))

    def take(self, count: int) -> Query:
        if count < 0:
            raise QueryUsageError(f"take() count must be >= 0, got {count}")
        return self._wrap(Take(self._plan, count))

    def distinct(self) -> Query:
        return self._wrap(Distinct(self._plan))

    def include(self, relation: str) -> Query:
        """Eager-load `relation` ("author", "courses.tags") for every result."""
        return self._wrap(Include(self._plan, relation))

    # =========================================================================
    # Terminal operations
    # =========================================================================

    def to_list(self) -> list[Any]:
        return self._executor.execute(self._plan)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.to_list())

    def first(self, predicate: Any = None) -> Any:
        """First element.

        Raises:
            EmptyResult: Nothing matches.
        """
        rows = self._narrow(predicate).take(1).to_list()
        if not rows:
            raise EmptyResult("Sequence contains no matching element")
        return rows[0]

    def first_or_default(self, predicate: Any = None, default: Any = None) -> Any:
        rows = self._narrow(predicate).take(1).to_list()
        return rows[0] if rows else default

    def single(self, predicate: Any = None) -> Any:
        """The only element.

        Raises:
            EmptyResult: Nothing matches.
            MultipleElementsFound: Two or more match.
        """
        found = self.single_or_default(predicate, default=_MISSING)
        if found is _MISSING:
            raise EmptyResult("Sequence contains no matching element")
        return found

    def single_or_default(self, predicate: Any = None, default: Any = None) -> Any:
        """The only element, or `default` when nothing matches.

        Raises:
            MultipleElementsFound: Two or more match.
        """
        rows = self._narrow(predicate).to_list()
        if len(rows) > 1:
            raise MultipleElementsFound(len(rows))
        return rows[0] if rows else default

    def last(self, predicate: Any = None) -> Any:
        """Last element of an explicitly sorted query.

        Raises:
            QueryUsageError: The query has no sort.
            EmptyResult: Nothing matches.
        """
        found = self.last_or_default(predicate, default=_MISSING)
        if found is _MISSING:
            raise EmptyResult("Sequence contains no matching element")
        return found

    def last_or_default(self, predicate: Any = None, default: Any = None) -> Any:
        if not any(isinstance(node, Sort) for node in self._plan.chain()):
            raise QueryUsageError("last() needs an explicit sort(); store order is not defined")
        rows = self._narrow(predicate).to_list()
        return rows[-1] if rows else default

    def count(self, predicate: Any = None) -> int:
        return len(self._narrow(predicate).to_list())

    def any(self, predicate: Any = None) -> bool:
        return bool(self._narrow(predicate).take(1).to_list())

    def all(self, predicate: Any) -> bool:
        test = as_function(predicate)
        return all(test(row) for row in self.to_list())

    def max(self, selector: Any = None) -> Any:
        return max(self._values(selector, "max"))

    def min(self, selector: Any = None) -> Any:
        return min(self._values(selector, "min"))

    def average(self, selector: Any = None) -> float:
        values = self._values(selector, "average")
        return sum(values) / len(values)

    def sum(self, selector: Any = None) -> Any:
        pick = as_function(selector) if selector is not None else (lambda row: row)
        return sum(pick(row) for row in self.to_list())

    def to_sql(self) -> str:
        """SQL text equivalent to this query.

        Raises:
            UntranslatableQuery: The plan uses callables or unsupported nodes.
        """
        from pluto_orm.adapters.outbound.sql_renderer import SqlRenderer

        renderer = SqlRenderer(
            self._executor.store.model,
            self._executor.store.snapshot(),
            dialect=self._executor.options.sql_dialect,
        )
        return renderer.render(self._plan)

    def _narrow(self, predicate: Any) -> Query:
        return self.filter(predicate) if predicate is not None else self

    def _values(self, selector: Any, operation: str) -> list[Any]:
        pick = as_function(selector) if selector is not None else (lambda row: row)
        values = [pick(row) for row in self.to_list()]
        if not values:
            raise EmptyResult(f"{operation}() of an empty sequence")
        return values
