"""Change Tracker.

Stages inserts, updates and deletes against the entity store and commits
them as one atomic store write.

Entries are keyed by entity identity: the EntityKey once a key is known, a
TransientKey for added entities whose identity key is assigned on commit.
Staging the same identity again overwrites the pending operation:

    add, then modify      -> still ADDED (inserted with the latest values)
    add, then remove      -> dropped, nothing is written
    modify, then remove   -> DELETED
    remove, then add      -> MODIFIED (the row is kept and replaced)

Tracked UNCHANGED entities are compared with their original values at
commit time, so plain field assignment on an instance returned by find()
is picked up without calling mark_modified().
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any

from pluto_orm.domain.exceptions import (
    ConstraintViolation,
    NotFound,
    ReferentialIntegrityViolation,
)
from pluto_orm.domain.value_objects import (
    EntityKey,
    EntityState,
    EntityType,
    OperationKind,
    StoreVersion,
    TransientKey,
)
from pluto_orm.infrastructure.logging import get_logger
from pluto_orm.infrastructure.metrics import MetricsRegistry, get_metrics
from pluto_orm.infrastructure.tracing import trace_span
from pluto_orm.ports.inbound.entity_store import EntityStore

logger = get_logger(__name__)

TrackingKey = EntityKey | TransientKey

_STATE_TO_OPERATION = {
    EntityState.ADDED: OperationKind.INSERT,
    EntityState.MODIFIED: OperationKind.UPDATE,
    EntityState.DELETED: OperationKind.DELETE,
}


@dataclass
class TrackedEntry:
    """Tracking record of one entity instance."""

    entity: Any
    entity_type: EntityType
    state: EntityState
    original: dict[str, Any] = field(default_factory=dict)
    sequence: int = 0


@dataclass(frozen=True)
class StagedOperation:
    """One store write produced by a commit, in application order."""

    index: int
    kind: OperationKind
    entity: Any

    def __str__(self) -> str:
        return f"#{self.index} {self.kind.value} {type(self.entity).__name__}"


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a successful commit."""

    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    version: StoreVersion | None = None

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.deleted


class ChangeTracker:
    """Unit of work over an EntityStore.

    Usage:
        tracker = ChangeTracker(store)
        tracker.add(Author(name="Author 3"))
        course = tracker.find(Course, 1)
        course.price = 15.0
        result = tracker.commit()

    Thread Safety:
        A tracker belongs to one caller; share the store, not the tracker.
    """

    def __init__(
        self,
        store: EntityStore,
        commit_timeout_seconds: float | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            store: The entity store to commit to.
            commit_timeout_seconds: Write lock wait (store default if None).
            metrics: Optional metrics registry (global one if not provided).
        """
        self._store = store
        self._timeout = commit_timeout_seconds
        self._metrics = metrics or get_metrics()
        self._entries: dict[TrackingKey, TrackedEntry] = {}
        self._by_object: dict[int, TrackingKey] = {}
        self._sequence = itertools.count(1)

    # =========================================================================
    # Staging
    # =========================================================================

    def add(self, entity: Any) -> None:
        """Stage an insert."""
        etype = self._store.model.entity(entity)
        key = self._key_for(entity, etype)
        entry = self._entries.get(key)
        if entry is not None and entry.state is EntityState.DELETED:
            self._track(key, entity, etype, EntityState.MODIFIED, entry.original)
            return
        if entry is not None and entry.state is not EntityState.ADDED:
            self._track(key, entity, etype, entry.state, entry.original)
            return
        self._track(key, entity, etype, EntityState.ADDED)

    def mark_modified(self, entity: Any) -> None:
        """Stage a full-record update."""
        etype = self._store.model.entity(entity)
        key = self._key_for(entity, etype)
        entry = self._entries.get(key)
        if entry is not None and entry.state is EntityState.ADDED:
            self._track(key, entity, etype, EntityState.ADDED)
            return
        if isinstance(key, TransientKey):
            raise NotFound(etype.name, None)
        original = entry.original if entry is not None else etype.values_of(entity)
        self._track(key, entity, etype, EntityState.MODIFIED, original)

    def remove(self, entity: Any) -> None:
        """Stage a delete."""
        etype = self._store.model.entity(entity)
        key = self._key_for(entity, etype)
        entry = self._entries.get(key)
        if entry is not None and entry.state is EntityState.ADDED:
            self._detach(key)
            return
        if isinstance(key, TransientKey):
            raise NotFound(etype.name, None)
        original = entry.original if entry is not None else etype.values_of(entity)
        self._track(key, entity, etype, EntityState.DELETED, original)

    def attach(self, entity: Any) -> None:
        """Track an already stored entity as UNCHANGED."""
        etype = self._store.model.entity(entity)
        key = etype.key_of(entity)
        if key is None:
            raise NotFound(etype.name, None)
        self._track(key, entity, etype, EntityState.UNCHANGED, etype.values_of(entity))

    def find(self, entity_type: type | str, key: Any) -> Any:
        """Tracked lookup by key.

        Returns the tracked instance when there is one, otherwise loads the
        entity from the store and tracks it as UNCHANGED.

        Raises:
            NotFound: No entity with that key.
        """
        etype = self._store.model.entity(entity_type)
        entity_key = EntityKey(etype.name, key)
        entry = self._entries.get(entity_key)
        if entry is not None:
            if entry.state is EntityState.DELETED:
                raise NotFound(etype.name, key)
            return entry.entity
        entity = self._store.get(entity_key)
        self._track(entity_key, entity, etype, EntityState.UNCHANGED, etype.values_of(entity))
        return entity

    def entry_state(self, entity: Any) -> EntityState:
        """Current tracking state of an instance."""
        key = self._by_object.get(id(entity))
        if key is None:
            return EntityState.DETACHED
        entry = self._entries[key]
        if entry.entity is not entity:
            return EntityState.DETACHED
        if entry.state is EntityState.UNCHANGED and self._changed(entry):
            return EntityState.MODIFIED
        return entry.state

    def has_changes(self) -> bool:
        self._detect_changes()
        return any(e.state.is_pending() for e in self._entries.values())

    def pending(self) -> list[StagedOperation]:
        """Operations the next commit would apply, in order."""
        self._detect_changes()
        return [
            StagedOperation(index, _STATE_TO_OPERATION[e.state], e.entity)
            for index, e in enumerate(self._staged())
        ]

    def clear(self) -> None:
        """Stop tracking everything; staged operations are dropped."""
        self._entries.clear()
        self._by_object.clear()

    # =========================================================================
    # Commit
    # =========================================================================

    def commit(self) -> CommitResult:
        """Apply every staged operation in one atomic store write.

        Returns:
            Counts of applied operations and the published store version.

        Raises:
            ConstraintViolation, ReferentialIntegrityViolation, NotFound:
                The first failing operation, identified by `operation_index`
                and `operation`. Nothing is applied and the staged set is kept.
            CommitTimeout: The store write lock was not acquired in time.
        """
        self._detect_changes()
        staged = self._staged()
        if not staged:
            return CommitResult(version=self._store.snapshot().version)

        counts = {kind: 0 for kind in OperationKind}
        removed: list[EntityKey] = []
        with trace_span("pluto.commit", {"operations": len(staged)}):
            try:
                with self._store.write(self._timeout) as draft:
                    for index, entry in enumerate(staged):
                        kind = _STATE_TO_OPERATION[entry.state]
                        try:
                            if kind is OperationKind.INSERT:
                                draft.insert(entry.entity)
                            elif kind is OperationKind.UPDATE:
                                draft.update(entry.entity)
                            else:
                                key = entry.entity_type.key_of(entry.entity)
                                removed.extend(draft.delete(key))
                        except (ConstraintViolation, ReferentialIntegrityViolation, NotFound) as e:
                            e.operation_index = index
                            e.operation = StagedOperation(index, kind, entry.entity)
                            raise
                        counts[kind] += 1
            except Exception as e:
                self._metrics.commits_total.labels(status="failure").inc()
                logger.warning(
                    "Commit failed",
                    operations=len(staged),
                    operation=str(getattr(e, "operation", "")) or None,
                    error=str(e),
                )
                raise

        version = self._store.snapshot().version
        self._settle(staged, removed)

        self._metrics.commits_total.labels(status="success").inc()
        for kind, count in counts.items():
            if count:
                self._metrics.committed_operations_total.labels(operation=kind.value).inc(count)
        result = CommitResult(
            inserted=counts[OperationKind.INSERT],
            updated=counts[OperationKind.UPDATE],
            deleted=counts[OperationKind.DELETE],
            version=version,
        )
        logger.info(
            "Commit applied",
            inserted=result.inserted,
            updated=result.updated,
            deleted=result.deleted,
            cascaded=max(0, len(removed) - result.deleted),
            version=version,
        )
        return result

    def _settle(self, staged: list[TrackedEntry], removed: list[EntityKey]) -> None:
        """Reset tracking state after a published commit."""
        for entry in staged:
            old_key = self._by_object[id(entry.entity)]
            if entry.state is EntityState.DELETED:
                self._detach(old_key)
                continue
            new_key = entry.entity_type.key_of(entry.entity)
            self._detach(old_key)
            self._track(
                new_key, entry.entity, entry.entity_type,
                EntityState.UNCHANGED, entry.entity_type.values_of(entry.entity),
            )
        # Rows removed by cascade
        for key in removed:
            if key in self._entries:
                self._detach(key)

    # =========================================================================
    # Internals
    # =========================================================================

    def _key_for(self, entity: Any, etype: EntityType) -> TrackingKey:
        tracked = self._by_object.get(id(entity))
        if tracked is not None and self._entries[tracked].entity is entity:
            return tracked
        return etype.key_of(entity) or TransientKey(etype.name, id(entity))

    def _track(
        self,
        key: TrackingKey,
        entity: Any,
        etype: EntityType,
        state: EntityState,
        original: dict[str, Any] | None = None,
    ) -> None:
        previous = self._entries.get(key)
        if previous is not None and previous.entity is not entity:
            self._by_object.pop(id(previous.entity), None)
        self._entries[key] = TrackedEntry(
            entity=entity,
            entity_type=etype,
            state=state,
            original=dict(original or {}),
            sequence=next(self._sequence),
        )
        self._by_object[id(entity)] = key

    def _detach(self, key: TrackingKey) -> None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._by_object.pop(id(entry.entity), None)

    def _changed(self, entry: TrackedEntry) -> bool:
        return entry.entity_type.values_of(entry.entity) != entry.original

    def _detect_changes(self) -> None:
        for entry in self._entries.values():
            if entry.state is EntityState.UNCHANGED and self._changed(entry):
                entry.state = EntityState.MODIFIED

    def _staged(self) -> list[TrackedEntry]:
        return sorted(
            (e for e in self._entries.values() if e.state.is_pending()),
            key=lambda e: e.sequence,
        )
