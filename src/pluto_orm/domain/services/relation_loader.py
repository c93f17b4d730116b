"""Relation loading.

Three ways to fill `Entity.loaded`:

- preload(): eager loading for a whole result set. Costs one store scan per
  relation level (two for many-to-many: join table and target), no matter
  how many entities are in the set.
- resolve(): per-entity resolution at access time. In LAZY mode a missing
  relation is fetched with a logged lookup and cached on the entity;
  iterating N entities this way costs N lookups (the N+1 pattern).
  In EAGER mode a missing relation is an error.
- load(): explicit loading of one relation of one entity on request,
  optionally narrowed by a predicate.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Iterable

from pluto_orm.domain.exceptions import NotFound, QueryUsageError, RelationNotLoaded
from pluto_orm.domain.services.entity_store import StoreSnapshot
from pluto_orm.domain.value_objects import EntityKey, LoadingMode, Relationship, RelationKind
from pluto_orm.infrastructure.logging import get_logger
from pluto_orm.infrastructure.metrics import MetricsRegistry, get_metrics
from pluto_orm.ports.inbound.entity_store import EntityStore

logger = get_logger(__name__)


class RelationLoader:
    """Loads navigation relations from an entity store."""

    def __init__(self, store: EntityStore, metrics: MetricsRegistry | None = None) -> None:
        self._store = store
        self._metrics = metrics or get_metrics()

    def preload(
        self,
        entities: Iterable[Any],
        path: str,
        snapshot: StoreSnapshot | None = None,
    ) -> None:
        """Eagerly load a relation path ("courses" or "courses.tags") for all entities.

        Raises:
            QueryUsageError: An element is not a mapped entity.
            SchemaError: Unknown relation.
        """
        level = [e for e in entities if e is not None]
        for name in path.split("."):
            if not level:
                return
            level = self._preload_level(level, name, snapshot)

    def _preload_level(
        self, entities: list[Any], name: str, snapshot: StoreSnapshot | None
    ) -> list[Any]:
        model = self._store.model
        by_type: dict[str, list[Any]] = defaultdict(list)
        for entity in entities:
            if not hasattr(entity, "loaded"):
                raise QueryUsageError(
                    f"include('{name}') needs entity rows, got {type(entity).__name__}"
                )
            by_type[model.entity(entity).name].append(entity)

        children: list[Any] = []
        for source, group in by_type.items():
            rel = model.relationship(source, name)
            pending = [e for e in group if name not in e.loaded]
            if pending:
                self._fill(pending, rel, snapshot)
                self._metrics.eager_loads_total.labels(relation=str(rel)).inc()
            for entity in group:
                value = entity.loaded[name]
                if rel.is_collection:
                    children.extend(value)
                elif value is not None:
                    children.append(value)
        return children

    def _fill(self, entities: list[Any], rel: Relationship, snapshot: StoreSnapshot | None) -> None:
        model = self._store.model
        source_type = model.entity(rel.source)
        target_type = model.entity(rel.target)
        targets = list(self._store.scan(rel.target, snapshot))

        if rel.kind in (RelationKind.REFERENCE, RelationKind.SHARED_KEY):
            by_key = {target_type.key_value(t): t for t in targets}
            for entity in entities:
                ref = (
                    getattr(entity, rel.foreign_key)
                    if rel.kind is RelationKind.REFERENCE
                    else source_type.key_value(entity)
                )
                entity.loaded[rel.name] = by_key.get(ref)

        elif rel.kind is RelationKind.COLLECTION:
            grouped: dict[Any, list[Any]] = defaultdict(list)
            for target in targets:
                grouped[getattr(target, rel.foreign_key)].append(target)
            for entity in entities:
                entity.loaded[rel.name] = list(grouped.get(source_type.key_value(entity), []))

        else:
            by_key = {target_type.key_value(t): t for t in targets}
            pairs: dict[Any, list[Any]] = defaultdict(list)
            for row in self._store.scan(rel.join_entity, snapshot):
                pairs[getattr(row, rel.left_key)].append(getattr(row, rel.right_key))
            for entity in entities:
                entity.loaded[rel.name] = [
                    by_key[k] for k in pairs.get(source_type.key_value(entity), []) if k in by_key
                ]

    def resolve(self, entity: Any, relation: str, mode: LoadingMode) -> Any:
        """Return a relation of one entity, loading it if the mode allows.

        Args:
            entity: A materialized entity.
            relation: Navigation name ("author", "courses", "tags", "cover").
            mode: LAZY fetches a missing relation; EAGER requires it preloaded.

        Returns:
            The related entity (or None) for references, a list for collections.

        Raises:
            RelationNotLoaded: EAGER mode and the relation was not included.
        """
        if relation in entity.loaded:
            return entity.loaded[relation]
        model = self._store.model
        source_type = model.entity(entity)
        if mode is LoadingMode.EAGER:
            raise RelationNotLoaded(source_type.name, relation)

        rel = model.relationship(source_type.name, relation)
        logger.debug(
            "Lazy loading relation",
            entity=source_type.name,
            key=source_type.key_value(entity),
            relation=relation,
        )
        self._metrics.lazy_loads_total.labels(relation=str(rel)).inc()

        value = self._fetch(entity, rel)
        entity.loaded[relation] = value
        return value

    def load(
        self, entity: Any, relation: str, predicate: Callable[[Any], Any] | None = None
    ) -> Any:
        """Explicitly load one relation of one entity, replacing what was loaded.

        With a predicate only matching targets are kept: a collection is
        filtered, a reference that does not match loads as None. A one-to-many
        collection costs one store scan, a many-to-many one two.

        Raises:
            SchemaError: Unknown relation.
        """
        model = self._store.model
        source_type = model.entity(entity)
        rel = model.relationship(source_type.name, relation)
        logger.debug(
            "Explicitly loading relation",
            entity=source_type.name,
            key=source_type.key_value(entity),
            relation=relation,
            filtered=predicate is not None,
        )
        self._metrics.explicit_loads_total.labels(relation=str(rel)).inc()

        value = self._fetch(entity, rel)
        if predicate is not None:
            if rel.is_collection:
                value = [t for t in value if predicate(t)]
            elif value is not None and not predicate(value):
                value = None
        entity.loaded[relation] = value
        return value

    def _fetch(self, entity: Any, rel: Relationship) -> Any:
        model = self._store.model
        key_value = model.entity(rel.source).key_value(entity)

        if rel.kind is RelationKind.REFERENCE:
            ref = getattr(entity, rel.foreign_key)
            return self._store.get(EntityKey(rel.target, ref)) if ref is not None else None
        if rel.kind is RelationKind.SHARED_KEY:
            try:
                return self._store.get(EntityKey(rel.target, key_value))
            except NotFound:
                return None
        if rel.kind is RelationKind.COLLECTION:
            return [t for t in self._store.scan(rel.target) if getattr(t, rel.foreign_key) == key_value]

        wanted = [
            getattr(row, rel.right_key)
            for row in self._store.scan(rel.join_entity)
            if getattr(row, rel.left_key) == key_value
        ]
        target_type = model.entity(rel.target)
        by_key = {target_type.key_value(t): t for t in self._store.scan(rel.target)}
        return [by_key[k] for k in wanted if k in by_key]
