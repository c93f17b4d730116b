"""Unit tests for schema migrations."""

from __future__ import annotations

import pytest

from pluto_orm.application.migration_history import PLUTO_MIGRATIONS
from pluto_orm.domain.entities import Author, Course, Cover
from pluto_orm.domain.exceptions import SchemaError
from pluto_orm.domain.services.entity_store import InMemoryEntityStore
from pluto_orm.domain.services.migrations import (
    AddColumn,
    CreateTable,
    DropColumn,
    Migration,
    MigrationRunner,
    RenameColumn,
)
from pluto_orm.domain.value_objects import EntityKey, Model
from pluto_orm.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def empty_store(model: Model, metrics_registry: MetricsRegistry) -> InMemoryEntityStore:
    return InMemoryEntityStore(model, metrics=metrics_registry)


@pytest.fixture
def runner(empty_store: InMemoryEntityStore, metrics_registry: MetricsRegistry) -> MigrationRunner:
    return MigrationRunner(empty_store, PLUTO_MIGRATIONS, metrics_registry)


@pytest.mark.unit
class TestMigrationRunner:
    """Tests for applying and reverting the history."""

    def test_upgrade_applies_in_order(self, runner: MigrationRunner) -> None:
        applied = runner.upgrade()

        assert applied == [
            "InitialModel",
            "RenameTitleToNameInCoursesTable",
            "AddCoversTable",
        ]
        assert runner.applied() == applied
        assert runner.pending() == []

    def test_upgrade_is_applied_once(self, runner: MigrationRunner) -> None:
        runner.upgrade()

        assert runner.upgrade() == []

    def test_upgrade_to_target(
        self, runner: MigrationRunner, empty_store: InMemoryEntityStore
    ) -> None:
        runner.upgrade("InitialModel")

        schema = empty_store.snapshot().schema("Course")
        assert schema.column_for("name") == "Title"
        assert not empty_store.snapshot().has_table("Cover")
        assert [m.name for m in runner.pending()] == [
            "RenameTitleToNameInCoursesTable",
            "AddCoversTable",
        ]

    def test_downgrade_to_target(
        self, runner: MigrationRunner, empty_store: InMemoryEntityStore
    ) -> None:
        runner.upgrade()

        reverted = runner.downgrade("InitialModel")

        assert reverted == ["AddCoversTable", "RenameTitleToNameInCoursesTable"]
        assert runner.applied() == ["InitialModel"]
        assert empty_store.snapshot().schema("Course").column_for("name") == "Title"

    def test_downgrade_all(self, runner: MigrationRunner, empty_store: InMemoryEntityStore) -> None:
        runner.upgrade()

        runner.downgrade()

        assert runner.applied() == []
        assert len(empty_store.snapshot().schemas) == 0

    def test_unknown_target(self, runner: MigrationRunner) -> None:
        with pytest.raises(SchemaError):
            runner.upgrade("NoSuchMigration")

    def test_duplicate_names(self, empty_store: InMemoryEntityStore) -> None:
        migration = Migration("Twice", ())

        with pytest.raises(SchemaError):
            MigrationRunner(empty_store, [migration, migration])

    def test_failing_migration_is_atomic(
        self, runner: MigrationRunner, empty_store: InMemoryEntityStore, metrics_registry: MetricsRegistry
    ) -> None:
        runner.upgrade()
        broken = Migration(
            "Broken",
            (
                AddColumn("Courses", "subtitle", "Subtitle"),
                RenameColumn("Courses", "Missing", "Other"),
            ),
        )
        version = empty_store.snapshot().version

        with pytest.raises(SchemaError):
            MigrationRunner(empty_store, [*PLUTO_MIGRATIONS, broken], metrics_registry).upgrade()

        assert empty_store.snapshot().version == version
        assert not empty_store.snapshot().schema("Course").has_column("Subtitle")
        assert "Broken" not in runner.applied()

    def test_migration_metrics(
        self, runner: MigrationRunner, metrics_registry: MetricsRegistry
    ) -> None:
        runner.upgrade()
        runner.downgrade("RenameTitleToNameInCoursesTable")

        assert metrics_registry.migrations_total.labels(direction="up")._value.get() == 3
        assert metrics_registry.migrations_total.labels(direction="down")._value.get() == 1


@pytest.mark.unit
class TestRenameColumn:
    """Tests for the rename step and its inverse."""

    def test_rename_round_trip_preserves_data(
        self, runner: MigrationRunner, empty_store: InMemoryEntityStore
    ) -> None:
        runner.upgrade("InitialModel")
        empty_store.insert(Author(id=1, name="Author 2"))
        empty_store.insert(
            Course(id=1, name="Course 1", description="Description 2", author_id=1)
        )
        original = dict(empty_store.snapshot().row("Course", 1))
        assert original["Title"] == "Course 1"

        runner.upgrade("RenameTitleToNameInCoursesTable")
        renamed = dict(empty_store.snapshot().row("Course", 1))
        assert "Title" not in renamed
        assert renamed["Name"] == "Course 1"
        # Entity code is unaffected by the physical rename
        assert empty_store.get(EntityKey("Course", 1)).name == "Course 1"

        runner.downgrade("InitialModel")
        assert dict(empty_store.snapshot().row("Course", 1)) == original

    def test_inverse(self) -> None:
        step = RenameColumn("Courses", "Title", "Name")

        assert step.inverse() == RenameColumn("Courses", "Name", "Title")

    def test_add_and_drop_column(
        self, runner: MigrationRunner, empty_store: InMemoryEntityStore
    ) -> None:
        runner.upgrade()
        empty_store.insert(Author(id=1, name="Author 2"))
        add = AddColumn("Authors", "bio", "Bio", default="")

        with empty_store.write() as draft:
            add.apply(draft)
        assert empty_store.snapshot().row("Author", 1)["Bio"] == ""

        with empty_store.write() as draft:
            add.inverse().apply(draft)
        assert "Bio" not in empty_store.snapshot().row("Author", 1)
        assert isinstance(add.inverse(), DropColumn)

    def test_update_keeps_added_column(
        self, runner: MigrationRunner, empty_store: InMemoryEntityStore
    ) -> None:
        runner.upgrade()
        empty_store.insert(Author(id=1, name="Author 2"))
        with empty_store.write() as draft:
            AddColumn("Authors", "bio", "Bio", default="keep").apply(draft)

        empty_store.update(Author(id=1, name="Renamed"))

        row = empty_store.snapshot().row("Author", 1)
        assert row["Name"] == "Renamed"
        assert row["Bio"] == "keep"

    def test_cannot_drop_key_column(
        self, runner: MigrationRunner, empty_store: InMemoryEntityStore
    ) -> None:
        runner.upgrade()

        with pytest.raises(SchemaError):
            with empty_store.write() as draft:
                DropColumn("Authors", "id", "Id").apply(draft)

    def test_create_table_inverse_drops(
        self, runner: MigrationRunner, empty_store: InMemoryEntityStore
    ) -> None:
        runner.upgrade()
        step = CreateTable("Covers", "Cover", (("id", "Id"), ("image", "Image")))

        with empty_store.write() as draft:
            step.inverse().apply(draft)

        assert not empty_store.snapshot().has_table("Cover")
        with pytest.raises(SchemaError):
            empty_store.insert(Cover(id=1))
