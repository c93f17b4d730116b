"""In-memory Entity Store with snapshot reads and copy-on-write drafts.

The store keeps its whole state in an immutable StoreSnapshot. Readers grab
the current snapshot reference at call time and never see later commits.
Writers open a StoreDraft, which copies only the tables it touches; when
the write block exits normally the draft is frozen into the next snapshot
and swapped in, otherwise it is simply dropped.

Write path per entity:
    1. Property rules (required, max length, minimum, allowed values, unique)
    2. Foreign keys held by the entity must resolve in the draft
    3. Deletes check foreign keys pointing at the entity; cascading
       relations remove dependents, all others block

Thread Safety:
    One writer at a time (write lock with timeout); any number of readers.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Generator, Iterator, Mapping

from pluto_orm.domain.exceptions import (
    CommitTimeout,
    ConstraintViolation,
    NotFound,
    ReferentialIntegrityViolation,
    SchemaError,
)
from pluto_orm.domain.value_objects import (
    INITIAL_VERSION,
    EntityKey,
    EntityType,
    Model,
    StoreVersion,
    TableSchema,
)
from pluto_orm.infrastructure.logging import bind_store_version, get_logger
from pluto_orm.infrastructure.metrics import MetricsRegistry, get_metrics
from pluto_orm.ports.inbound.entity_store import StoreStats

logger = get_logger(__name__)

Row = Mapping[str, Any]


def to_row(
    schema: TableSchema, values: Mapping[str, Any], partial: bool = False
) -> dict[str, Any]:
    """Physical row (column -> value) from entity property values.

    Columns whose property is not among `values` are filled with None,
    or left out when `partial` is set.
    """
    return {
        column: values.get(prop)
        for prop, column in schema.columns
        if not partial or prop in values
    }


def materialize(entity_type: EntityType, schema: TableSchema, row: Row) -> Any:
    """Fresh entity instance from a physical row."""
    known = set(entity_type.property_names())
    kwargs = {prop: row[column] for prop, column in schema.columns if prop in known}
    return entity_type.cls(**kwargs)


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable state of the store at one version.

    Attributes:
        version: Snapshot version, incremented by every published write
        schemas: Table schema per entity name
        tables: Rows per entity name, keyed by primary key value
        identities: Last assigned identity value per entity name
        history: Names of applied migrations, in order
    """

    version: StoreVersion = INITIAL_VERSION
    schemas: Mapping[str, TableSchema] = field(default_factory=dict)
    tables: Mapping[str, Mapping[Any, Row]] = field(default_factory=dict)
    identities: Mapping[str, int] = field(default_factory=dict)
    history: tuple[str, ...] = ()

    def has_table(self, entity: str) -> bool:
        return entity in self.schemas

    def schema(self, entity: str) -> TableSchema:
        try:
            return self.schemas[entity]
        except KeyError:
            raise SchemaError(f"No table stores {entity}; apply migrations first") from None

    def schema_for_table(self, table: str) -> TableSchema:
        for schema in self.schemas.values():
            if schema.name == table:
                return schema
        raise SchemaError(f"Table '{table}' does not exist")

    def rows(self, entity: str) -> list[Row]:
        """Read-only views of the raw rows of one table, in store order."""
        self.schema(entity)
        return [MappingProxyType(r) for r in self.tables.get(entity, {}).values()]

    def row(self, entity: str, key: Any) -> Row | None:
        found = self.tables.get(entity, {}).get(key)
        return MappingProxyType(found) if found is not None else None


class ScanResult:
    """Restartable sequence of entities captured at scan time.

    Every iteration materializes fresh entity objects from the captured rows,
    so later commits and caller-side mutations never leak into it.
    """

    def __init__(self, rows: list[Row], factory: Callable[[Row], Any]) -> None:
        self._rows = rows
        self._factory = factory

    def __iter__(self) -> Iterator[Any]:
        for row in self._rows:
            yield self._factory(row)

    def __len__(self) -> int:
        return len(self._rows)


class StoreDraft:
    """Mutable, copy-on-write view of a snapshot used by one write.

    Nothing done through a draft is visible until the owning write block
    exits normally.
    """

    def __init__(self, base: StoreSnapshot, model: Model) -> None:
        self._base = base
        self._model = model
        self._schemas: dict[str, TableSchema] = dict(base.schemas)
        self._tables: dict[str, Mapping[Any, Row]] = dict(base.tables)
        self._copied: set[str] = set()
        self._identities: dict[str, int] = dict(base.identities)
        self._history: list[str] = list(base.history)
        self.assigned_keys: list[tuple[Any, str, Any]] = []

    @property
    def model(self) -> Model:
        return self._model

    @property
    def history(self) -> tuple[str, ...]:
        return tuple(self._history)

    # =========================================================================
    # Reads
    # =========================================================================

    def has_table(self, entity: str) -> bool:
        return entity in self._schemas

    def schema(self, entity: str) -> TableSchema:
        try:
            return self._schemas[entity]
        except KeyError:
            raise SchemaError(f"No table stores {entity}; apply migrations first") from None

    def schema_for_table(self, table: str) -> TableSchema:
        for schema in self._schemas.values():
            if schema.name == table:
                return schema
        raise SchemaError(f"Table '{table}' does not exist")

    def exists(self, key: EntityKey) -> bool:
        return key.value in self._tables.get(key.entity, {})

    def get(self, key: EntityKey) -> Any:
        etype = self._model.entity(key.entity)
        row = self._tables.get(key.entity, {}).get(key.value)
        if row is None:
            raise NotFound(key.entity, key.value)
        return materialize(etype, self.schema(key.entity), row)

    def scan(self, entity: type | str) -> list[Any]:
        etype = self._model.entity(entity)
        schema = self.schema(etype.name)
        return [materialize(etype, schema, row) for row in self._tables.get(etype.name, {}).values()]

    def find_by(self, entity: type | str, prop: str, value: Any) -> list[Any]:
        """Entities whose property equals `value`."""
        return [e for e in self.scan(entity) if getattr(e, prop) == value]

    # =========================================================================
    # Entity writes
    # =========================================================================

    def insert(self, entity: Any) -> EntityKey:
        etype = self._model.entity(entity)
        schema = self.schema(etype.name)
        values = etype.values_of(entity)
        table = self._writable(etype.name)

        key_value = etype.key_value(entity)
        if etype.identity and key_value is None:
            key_value = max(self._identities.get(etype.name, 0), max(table, default=0)) + 1
            self._identities[etype.name] = key_value
            values[etype.key[0]] = key_value
            self.assigned_keys.append((entity, etype.key[0], key_value))
        elif key_value is None or (isinstance(key_value, tuple) and None in key_value):
            raise ConstraintViolation(
                f"{etype.name} key {etype.key} is required", entity=etype.name
            )
        elif etype.identity:
            self._identities[etype.name] = max(self._identities.get(etype.name, 0), key_value)

        if key_value in table:
            raise ConstraintViolation(
                f"{etype.name} with key {key_value!r} already exists", entity=etype.name
            )
        self._validate(etype, schema, values, key_value)
        table[key_value] = to_row(schema, values)
        return EntityKey(etype.name, key_value)

    def update(self, entity: Any) -> EntityKey:
        etype = self._model.entity(entity)
        schema = self.schema(etype.name)
        key = etype.key_of(entity)
        if key is None or key.value not in self._tables.get(etype.name, {}):
            raise NotFound(etype.name, etype.key_value(entity))
        values = etype.values_of(entity)
        self._validate(etype, schema, values, key.value)
        table = self._writable(etype.name)
        # Columns with no entity property keep their stored values
        table[key.value] = {**table[key.value], **to_row(schema, values, partial=True)}
        return key

    def delete(self, key: EntityKey) -> list[EntityKey]:
        if not self.exists(key):
            raise NotFound(key.entity, key.value)
        removed: list[EntityKey] = []
        self._delete(key, removed)
        return removed

    def _delete(self, key: EntityKey, removed: list[EntityKey]) -> None:
        if key in removed:
            return
        removed.append(key)
        principal_values = key.value if isinstance(key.value, tuple) else (key.value,)

        for fk in self._model.references_to(key.entity):
            if not self.has_table(fk.dependent):
                continue
            dep_schema = self.schema(fk.dependent)
            columns = [dep_schema.column_for(p) for p in fk.properties]
            dependents = [
                EntityKey(fk.dependent, dep_key)
                for dep_key, row in self._tables.get(fk.dependent, {}).items()
                if tuple(row[c] for c in columns) == principal_values
            ]
            dependents = [d for d in dependents if d not in removed]
            if not dependents:
                continue
            if not fk.cascade_on_delete:
                raise ReferentialIntegrityViolation(
                    f"Cannot delete {key!r}: referenced by {len(dependents)} "
                    f"{fk.dependent} row(s) through {fk.name} (no cascade configured)",
                    relationship=fk.name,
                )
            for dependent in dependents:
                self._delete(dependent, removed)

        del self._writable(key.entity)[key.value]

    def _validate(
        self, etype: EntityType, schema: TableSchema, values: dict[str, Any], key_value: Any
    ) -> None:
        for name, rule in etype.rules.items():
            value = values.get(name)
            rule.check(etype.name, value)
            if rule.unique and value is not None:
                column = schema.column_for(name)
                for other_key, row in self._tables.get(etype.name, {}).items():
                    if other_key != key_value and row.get(column) == value:
                        raise ConstraintViolation(
                            f"{etype.name}.{name} must be unique; {value!r} is taken",
                            entity=etype.name,
                            property_name=name,
                        )

        for fk in self._model.references_from(etype.name):
            refs = tuple(values.get(p) for p in fk.properties)
            if any(v is None for v in refs):
                if fk.required:
                    raise ConstraintViolation(
                        f"{fk.name} is required ({', '.join(fk.properties)} not set)",
                        entity=etype.name,
                        property_name=fk.properties[0],
                    )
                continue
            principal = EntityKey(fk.principal, refs[0] if len(refs) == 1 else refs)
            if not self.has_table(fk.principal) or not self.exists(principal):
                raise ReferentialIntegrityViolation(
                    f"{fk.name} references missing {principal!r}", relationship=fk.name
                )

    def _writable(self, entity: str) -> dict[Any, Row]:
        """Table of `entity`, copied on first write."""
        if entity not in self._copied:
            self._tables[entity] = dict(self._tables.get(entity, {}))
            self._copied.add(entity)
        return self._tables[entity]  # type: ignore[return-value]

    # =========================================================================
    # Schema writes (used by migrations)
    # =========================================================================

    def create_table(self, schema: TableSchema) -> None:
        if schema.entity in self._schemas:
            raise SchemaError(f"{schema.entity} already has table {self._schemas[schema.entity].name}")
        if any(s.name == schema.name for s in self._schemas.values()):
            raise SchemaError(f"Table '{schema.name}' already exists")
        self._schemas[schema.entity] = schema
        self._tables[schema.entity] = {}
        self._copied.add(schema.entity)

    def drop_table(self, table: str) -> TableSchema:
        schema = self.schema_for_table(table)
        del self._schemas[schema.entity]
        self._tables.pop(schema.entity, None)
        self._identities.pop(schema.entity, None)
        return schema

    def rename_column(self, table: str, old: str, new: str) -> None:
        schema = self.schema_for_table(table)
        self._schemas[schema.entity] = schema.renamed(old, new)
        rows = self._writable(schema.entity)
        for key, row in rows.items():
            rows[key] = {(new if column == old else column): v for column, v in row.items()}

    def add_column(self, table: str, prop: str, column: str, default: Any = None) -> None:
        schema = self.schema_for_table(table)
        if schema.has_column(column):
            raise SchemaError(f"Column '{column}' already exists in table {table}")
        self._schemas[schema.entity] = schema.with_column(prop, column)
        rows = self._writable(schema.entity)
        for key, row in rows.items():
            rows[key] = {**row, column: default}

    def drop_column(self, table: str, column: str) -> None:
        schema = self.schema_for_table(table)
        self._schemas[schema.entity] = schema.without_column(column)
        rows = self._writable(schema.entity)
        for key, row in rows.items():
            rows[key] = {c: v for c, v in row.items() if c != column}

    def record_migration(self, name: str) -> None:
        self._history.append(name)

    def forget_migration(self, name: str) -> None:
        if not self._history or self._history[-1] != name:
            raise SchemaError(f"Migration '{name}' is not the latest applied migration")
        self._history.pop()

    def freeze(self, version: StoreVersion) -> StoreSnapshot:
        return StoreSnapshot(
            version=version,
            schemas=MappingProxyType(dict(self._schemas)),
            tables=MappingProxyType(dict(self._tables)),
            identities=MappingProxyType(dict(self._identities)),
            history=tuple(self._history),
        )


class InMemoryEntityStore:
    """Entity store holding all tables in memory.

    Usage:
        store = InMemoryEntityStore(model)
        with store.write() as draft:
            draft.create_table(schema)
        store.insert(Author(name="Author 2"))
        authors = list(store.scan(Author))
    """

    def __init__(
        self,
        model: Model,
        commit_timeout_seconds: float = 5.0,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            model: The entity model to enforce.
            commit_timeout_seconds: Default wait for the write lock.
            metrics: Optional metrics registry (global one if not provided).
        """
        self._model = model
        self._commit_timeout = commit_timeout_seconds
        self._metrics = metrics or get_metrics()

        self._write_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._snapshot = StoreSnapshot()

        self._scans = 0
        self._gets = 0

    @property
    def model(self) -> Model:
        return self._model

    def snapshot(self) -> StoreSnapshot:
        return self._snapshot

    @contextmanager
    def write(self, timeout: float | None = None) -> Generator[StoreDraft, None, None]:
        """Serialized, all-or-nothing write.

        Args:
            timeout: Seconds to wait for the write lock (config default if None).

        Raises:
            CommitTimeout: Lock not acquired in time; nothing was applied.
        """
        wait = self._commit_timeout if timeout is None else timeout
        if not self._write_lock.acquire(timeout=wait):
            logger.warning("Write lock timeout", timeout_seconds=wait)
            raise CommitTimeout(f"Write lock not acquired within {wait}s")
        try:
            draft = StoreDraft(self._snapshot, self._model)
            with bind_store_version(self._snapshot.version):
                try:
                    yield draft
                except Exception:
                    logger.debug("Draft discarded")
                    raise
            self._snapshot = draft.freeze(StoreVersion(self._snapshot.version + 1))
            self._metrics.store_version.set(self._snapshot.version)
            for entity, prop, value in draft.assigned_keys:
                setattr(entity, prop, value)
            logger.debug(
                "Snapshot published",
                version=self._snapshot.version,
                identities_assigned=len(draft.assigned_keys),
            )
        finally:
            self._write_lock.release()

    def insert(self, entity: Any) -> EntityKey:
        with self.write() as draft:
            return draft.insert(entity)

    def update(self, entity: Any) -> EntityKey:
        with self.write() as draft:
            return draft.update(entity)

    def delete(self, key: EntityKey) -> list[EntityKey]:
        with self.write() as draft:
            return draft.delete(key)

    def get(self, key: EntityKey, snapshot: StoreSnapshot | None = None) -> Any:
        snap = snapshot or self._snapshot
        self._record_access("get")
        etype = self._model.entity(key.entity)
        row = snap.tables.get(key.entity, {}).get(key.value)
        if row is None:
            raise NotFound(key.entity, key.value)
        return materialize(etype, snap.schema(key.entity), row)

    def scan(self, entity_type: type | str, snapshot: StoreSnapshot | None = None) -> ScanResult:
        snap = snapshot or self._snapshot
        self._record_access("scan")
        etype = self._model.entity(entity_type)
        schema = snap.schema(etype.name)
        rows = list(snap.tables.get(etype.name, {}).values())
        return ScanResult(rows, lambda row: materialize(etype, schema, row))

    def get_stats(self) -> StoreStats:
        with self._stats_lock:
            return StoreStats(
                scans=self._scans,
                gets=self._gets,
                version=self._snapshot.version,
                tables=len(self._snapshot.schemas),
            )

    def _record_access(self, kind: str) -> None:
        with self._stats_lock:
            if kind == "scan":
                self._scans += 1
            else:
                self._gets += 1
        self._metrics.store_accesses_total.labels(kind=kind).inc()
