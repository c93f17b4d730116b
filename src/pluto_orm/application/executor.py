"""Query Executor.

Evaluates plan trees against one store snapshot. Every execute() call reads
the snapshot published when it started, so a commit that begins while a
query runs is never half visible to it.

Nodes are evaluated leaf to root in the order they were chained. A single
evaluator dispatches on the node type; there is no per-node virtual method.

Loading:
    Include nodes preload relations for all rows produced so far, with a
    bounded number of store scans. Relations that were not included are
    reached through resolve(), which is explicit about its loading mode.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from pluto_orm.application.plan import (
    Distinct,
    Filter,
    GroupBy,
    Grouping,
    Include,
    Join,
    PlanNode,
    Scan,
    Select,
    Skip,
    Sort,
    Take,
)
from pluto_orm.domain.exceptions import QueryUsageError
from pluto_orm.domain.services.entity_store import StoreSnapshot
from pluto_orm.domain.services.relation_loader import RelationLoader
from pluto_orm.domain.value_objects import JoinKind, LoadingMode
from pluto_orm.infrastructure.config import Config
from pluto_orm.infrastructure.metrics import MetricsRegistry, get_metrics
from pluto_orm.infrastructure.tracing import trace_span
from pluto_orm.ports.inbound.entity_store import EntityStore


@dataclass(frozen=True)
class ExecutionOptions:
    """Per-execution settings, passed explicitly instead of global flags.

    Attributes:
        lazy_loading: Whether resolve() may fetch relations that were not included
        sql_dialect: Dialect used when rendering plans as SQL
    """

    lazy_loading: bool = True
    sql_dialect: str = "sqlite"

    @property
    def loading_mode(self) -> LoadingMode:
        return LoadingMode.LAZY if self.lazy_loading else LoadingMode.EAGER

    @classmethod
    def from_config(cls, config: Config) -> ExecutionOptions:
        return cls(
            lazy_loading=config.loading.lazy_loading_enabled,
            sql_dialect=config.loading.sql_dialect,
        )


def _sort_value(value: Any) -> tuple[bool, Any]:
    # None sorts before any value
    return (value is not None, value)


class QueryExecutor:
    """Executes query plans against an EntityStore.

    Usage:
        executor = QueryExecutor(store)
        rows = executor.execute(Filter(Scan("Course"), F.price == 0))
        author = executor.resolve(rows[0], "author")
    """

    def __init__(
        self,
        store: EntityStore,
        loader: RelationLoader | None = None,
        options: ExecutionOptions | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            store: The entity store to read from.
            loader: Relation loader (created if not provided).
            options: Default execution options.
            metrics: Optional metrics registry (global one if not provided).
        """
        self._store = store
        self._metrics = metrics or get_metrics()
        self._loader = loader or RelationLoader(store, self._metrics)
        self._options = options or ExecutionOptions()

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def options(self) -> ExecutionOptions:
        return self._options

    def execute(self, plan: PlanNode) -> list[Any]:
        """Execute a plan and materialize its rows.

        Raises:
            QueryUsageError: The plan cannot be evaluated as composed.
            SchemaError: Unknown entity or relation.
        """
        snapshot = self._store.snapshot()
        start = time.perf_counter()
        with trace_span("pluto.query.execute", {"plan": type(plan).__name__}) as span:
            try:
                rows = self._evaluate(plan, snapshot)
            except Exception:
                self._metrics.queries_total.labels(status="error").inc()
                raise
            span.set_attribute("pluto.rows", len(rows))
        self._metrics.queries_total.labels(status="success").inc()
        self._metrics.query_latency_seconds.observe(time.perf_counter() - start)
        return rows

    def resolve(self, entity: Any, relation: str, mode: LoadingMode | None = None) -> Any:
        """Return a relation of an entity under an explicit loading mode.

        Args:
            entity: A materialized entity.
            relation: Navigation name.
            mode: LAZY or EAGER; defaults to the mode of the executor options.

        Raises:
            RelationNotLoaded: EAGER mode and the relation was not included.
        """
        return self._loader.resolve(entity, relation, mode or self._options.loading_mode)

    def _evaluate(self, node: PlanNode, snapshot: StoreSnapshot) -> list[Any]:
        if isinstance(node, Scan):
            return list(self._store.scan(node.entity, snapshot))

        elif isinstance(node, Filter):
            return [row for row in self._evaluate(node.source, snapshot) if node.predicate(row)]

        elif isinstance(node, Sort):
            rows = self._evaluate(node.source, snapshot)
            # Stable sorts applied from the least significant key
            for key in reversed(node.keys):
                rows.sort(key=lambda row, k=key.key: _sort_value(k(row)), reverse=key.descending)
            return rows

        elif isinstance(node, GroupBy):
            groups: dict[Any, Grouping] = {}
            for row in self._evaluate(node.source, snapshot):
                key = node.key(row)
                group = groups.get(key)
                if group is None:
                    group = groups[key] = Grouping(key)
                group.members.append(node.element(row) if node.element is not None else row)
            return list(groups.values())

        elif isinstance(node, Join):
            return self._join(node, snapshot)

        elif isinstance(node, Select):
            rows = self._evaluate(node.source, snapshot)
            if node.flatten:
                return [item for row in rows for item in node.projection(row)]
            return [node.projection(row) for row in rows]

        elif isinstance(node, Skip):
            return self._evaluate(node.source, snapshot)[node.count:]

        elif isinstance(node, Take):
            return self._evaluate(node.source, snapshot)[: node.count]

        elif isinstance(node, Distinct):
            return self._distinct(self._evaluate(node.source, snapshot))

        elif isinstance(node, Include):
            rows = self._evaluate(node.source, snapshot)
            self._loader.preload(rows, node.path, snapshot)
            return rows

        raise QueryUsageError(f"Unsupported plan node: {type(node).__name__}")

    def _join(self, node: Join, snapshot: StoreSnapshot) -> list[Any]:
        left = self._evaluate(node.source, snapshot)
        right = self._evaluate(node.other, snapshot)
        shape = node.shape or (lambda a, b: (a, b))

        if node.kind is JoinKind.CROSS:
            return [shape(a, b) for a in left for b in right]

        if node.left_key is None or node.right_key is None:
            raise QueryUsageError(f"{node.kind.name.lower()} join needs both keys")
        by_key: dict[Any, list[Any]] = {}
        for row in right:
            by_key.setdefault(node.right_key(row), []).append(row)

        if node.kind is JoinKind.GROUP:
            return [shape(a, list(by_key.get(node.left_key(a), []))) for a in left]
        return [shape(a, b) for a in left for b in by_key.get(node.left_key(a), [])]

    def _distinct(self, rows: list[Any]) -> list[Any]:
        model = self._store.model
        seen: set[Any] = set()
        unhashable: list[Any] = []
        result = []
        for row in rows:
            if hasattr(row, "loaded"):
                marker: Any = model.entity(row).key_of(row) or id(row)
            else:
                marker = row
            try:
                if marker in seen:
                    continue
                seen.add(marker)
            except TypeError:
                if marker in unhashable:
                    continue
                unhashable.append(marker)
            result.append(row)
        return result
