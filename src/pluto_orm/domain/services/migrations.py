"""Schema evolution.

A migration is a named, ordered list of reversible steps. Upgrading applies
each step's `apply`; downgrading runs each step's `inverse` in reverse
order. Every migration runs inside one store write, so a failing step
leaves both schema and data as they were. Applied migration names are kept
in the store snapshot, so a migration is never applied twice.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

from pluto_orm.domain.exceptions import SchemaError
from pluto_orm.domain.services.entity_store import StoreDraft
from pluto_orm.domain.value_objects import TableSchema
from pluto_orm.infrastructure.logging import get_logger
from pluto_orm.infrastructure.metrics import MetricsRegistry, get_metrics
from pluto_orm.infrastructure.tracing import trace_span
from pluto_orm.ports.inbound.entity_store import EntityStore

logger = get_logger(__name__)


class MigrationStep(ABC):
    """One reversible schema change."""

    @abstractmethod
    def apply(self, draft: StoreDraft) -> None:
        ...

    @abstractmethod
    def inverse(self) -> MigrationStep:
        """The step that undoes this one."""
        ...


@dataclass(frozen=True)
class CreateTable(MigrationStep):
    """Create a table from (property, column) pairs."""

    name: str
    entity: str
    columns: tuple[tuple[str, str], ...]
    key: tuple[str, ...] = ("id",)

    def apply(self, draft: StoreDraft) -> None:
        draft.create_table(TableSchema(self.name, self.entity, self.columns, self.key))

    def inverse(self) -> MigrationStep:
        return DropTable(self.name, self.entity, self.columns, self.key)


@dataclass(frozen=True)
class DropTable(MigrationStep):
    """Drop a table and its rows.

    The layout is kept so the step can be inverted; dropped rows are not
    restored.
    """

    name: str
    entity: str
    columns: tuple[tuple[str, str], ...]
    key: tuple[str, ...] = ("id",)

    def apply(self, draft: StoreDraft) -> None:
        draft.drop_table(self.name)

    def inverse(self) -> MigrationStep:
        return CreateTable(self.name, self.entity, self.columns, self.key)


@dataclass(frozen=True)
class RenameColumn(MigrationStep):
    """Rename a column, keeping every row's value under the new name."""

    table: str
    old: str
    new: str

    def apply(self, draft: StoreDraft) -> None:
        draft.rename_column(self.table, self.old, self.new)

    def inverse(self) -> MigrationStep:
        return RenameColumn(self.table, self.new, self.old)


@dataclass(frozen=True)
class AddColumn(MigrationStep):
    """Add a column filled with `default` in existing rows."""

    table: str
    prop: str
    column: str
    default: Any = None

    def apply(self, draft: StoreDraft) -> None:
        draft.add_column(self.table, self.prop, self.column, self.default)

    def inverse(self) -> MigrationStep:
        return DropColumn(self.table, self.prop, self.column, self.default)


@dataclass(frozen=True)
class DropColumn(MigrationStep):
    """Drop a column and its values."""

    table: str
    prop: str
    column: str
    default: Any = None

    def apply(self, draft: StoreDraft) -> None:
        draft.drop_column(self.table, self.column)

    def inverse(self) -> MigrationStep:
        return AddColumn(self.table, self.prop, self.column, self.default)


@dataclass(frozen=True)
class Migration:
    """A named group of steps applied atomically."""

    name: str
    steps: tuple[MigrationStep, ...]

    def up(self, draft: StoreDraft) -> None:
        for step in self.steps:
            step.apply(draft)

    def down(self, draft: StoreDraft) -> None:
        for step in reversed(self.steps):
            step.inverse().apply(draft)


class MigrationRunner:
    """Applies and reverts an ordered migration history.

    Usage:
        runner = MigrationRunner(store, PLUTO_MIGRATIONS)
        runner.upgrade()                      # everything pending
        runner.downgrade("InitialModel")      # back to after InitialModel
    """

    def __init__(
        self,
        store: EntityStore,
        migrations: Sequence[Migration],
        metrics: MetricsRegistry | None = None,
    ) -> None:
        names = [m.name for m in migrations]
        if len(set(names)) != len(names):
            raise SchemaError(f"Duplicate migration names: {names}")
        self._store = store
        self._migrations = list(migrations)
        self._metrics = metrics or get_metrics()

    @property
    def migrations(self) -> list[Migration]:
        return list(self._migrations)

    def applied(self) -> list[str]:
        """Names of applied migrations, oldest first."""
        return list(self._store.snapshot().history)

    def pending(self) -> list[Migration]:
        done = set(self.applied())
        return [m for m in self._migrations if m.name not in done]

    def upgrade(self, target: str | None = None) -> list[str]:
        """Apply pending migrations up to and including `target`.

        Returns:
            Names of the migrations applied by this call.

        Raises:
            SchemaError: Unknown target or a failing step.
        """
        stop = self._index_of(target) if target is not None else len(self._migrations) - 1
        applied = set(self.applied())
        done: list[str] = []
        for migration in self._migrations[: stop + 1]:
            if migration.name in applied:
                continue
            with trace_span("pluto.migration.up", {"migration": migration.name}):
                with self._store.write() as draft:
                    migration.up(draft)
                    draft.record_migration(migration.name)
            self._metrics.migrations_total.labels(direction="up").inc()
            logger.info("Migration applied", migration=migration.name)
            done.append(migration.name)
        return done

    def downgrade(self, target: str | None = None) -> list[str]:
        """Revert applied migrations newer than `target`.

        Args:
            target: Migration to keep as the latest one; None reverts all.

        Returns:
            Names of the migrations reverted by this call, newest first.
        """
        keep = self._index_of(target) if target is not None else -1
        by_name = {m.name: m for m in self._migrations}
        done: list[str] = []
        for name in reversed(self.applied()):
            if name not in by_name:
                raise SchemaError(f"Applied migration '{name}' is not in the history")
            if self._migrations.index(by_name[name]) <= keep:
                break
            with trace_span("pluto.migration.down", {"migration": name}):
                with self._store.write() as draft:
                    by_name[name].down(draft)
                    draft.forget_migration(name)
            self._metrics.migrations_total.labels(direction="down").inc()
            logger.info("Migration reverted", migration=name)
            done.append(name)
        return done

    def _index_of(self, name: str) -> int:
        for index, migration in enumerate(self._migrations):
            if migration.name == name:
                return index
        raise SchemaError(f"Unknown migration '{name}'")
