"""Pluto Context - unified entry point for the ORM.

Wires the entity store, change tracker, query executor, relation loader and
migration runner together from one configuration.

Usage:
    from pluto_orm.application import PlutoContext
    from pluto_orm.application.expressions import F

    with PlutoContext() as ctx:                 # applies migrations on start
        ctx.seed(DEFAULT_SEED)
        free = ctx.courses.filter(F.price == 0).to_list()

        ctx.add(Author(name="Author 3"))
        ctx.save_changes()

        author = ctx.resolve(free[0], "author")   # one logged lookup
"""

from __future__ import annotations

from types import TracebackType
from typing import Any, Iterable, Sequence

from pluto_orm.application.executor import ExecutionOptions, QueryExecutor
from pluto_orm.application.expressions import as_function
from pluto_orm.application.migration_history import PLUTO_MIGRATIONS
from pluto_orm.application.model import build_pluto_model
from pluto_orm.application.plan import Scan
from pluto_orm.application.query import Query
from pluto_orm.application.seeding import AuthorSeed, SeedLoader, SeedResult
from pluto_orm.domain.entities import Author, Course, CourseTag, Cover, Tag
from pluto_orm.domain.services.change_tracker import ChangeTracker, CommitResult
from pluto_orm.domain.services.entity_store import InMemoryEntityStore
from pluto_orm.domain.services.migrations import Migration, MigrationRunner
from pluto_orm.domain.services.relation_loader import RelationLoader
from pluto_orm.domain.value_objects import EntityState, LoadingMode, Model
from pluto_orm.infrastructure.config import Config, get_config
from pluto_orm.infrastructure.logging import get_logger
from pluto_orm.infrastructure.metrics import MetricsRegistry, get_metrics
from pluto_orm.ports.inbound.entity_store import StoreStats

logger = get_logger(__name__)


class PlutoContext:
    """Session over an in-memory Pluto database.

    Thread Safety:
        The store may be shared; the change tracker of a context belongs to
        one caller.
    """

    def __init__(
        self,
        config: Config | None = None,
        model: Model | None = None,
        migrations: Sequence[Migration] | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the context.

        Args:
            config: Configuration (global config if not provided).
            model: Entity model (the Pluto model if not provided).
            migrations: Migration history (the Pluto history if not provided).
            metrics: Optional metrics registry (global one if not provided).
        """
        self._config = config or get_config()
        self._metrics = metrics or get_metrics()
        self._model = model or build_pluto_model()

        self._store = InMemoryEntityStore(
            self._model,
            commit_timeout_seconds=self._config.store.commit_timeout_seconds,
            metrics=self._metrics,
        )
        self._loader = RelationLoader(self._store, self._metrics)
        self._options = ExecutionOptions.from_config(self._config)
        self._executor = QueryExecutor(self._store, self._loader, self._options, self._metrics)
        self._tracker = ChangeTracker(
            self._store,
            commit_timeout_seconds=self._config.store.commit_timeout_seconds,
            metrics=self._metrics,
        )
        self._migrator = MigrationRunner(
            self._store,
            PLUTO_MIGRATIONS if migrations is None else migrations,
            self._metrics,
        )
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def config(self) -> Config:
        return self._config

    @property
    def model(self) -> Model:
        return self._model

    @property
    def store(self) -> InMemoryEntityStore:
        return self._store

    @property
    def tracker(self) -> ChangeTracker:
        return self._tracker

    @property
    def executor(self) -> QueryExecutor:
        return self._executor

    @property
    def migrator(self) -> MigrationRunner:
        return self._migrator

    def start(self) -> None:
        """Start the context, applying pending migrations if configured.

        Raises:
            RuntimeError: If already started.
        """
        if self._started:
            raise RuntimeError("Pluto context already started")
        if self._config.store.migrate_on_start:
            applied = self._migrator.upgrade()
            logger.info("Context started", migrations_applied=len(applied))
        self._started = True

    def __enter__(self) -> PlutoContext:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._tracker.has_changes():
            logger.warning("Context closed with unsaved changes", pending=len(self._tracker.pending()))
        self._tracker.clear()
        self._started = False

    # =========================================================================
    # Queries
    # =========================================================================

    def query(self, entity_type: type | str) -> Query:
        """Root query over all entities of a type."""
        return Query(Scan(self._model.entity(entity_type).name), self._executor)

    @property
    def authors(self) -> Query:
        return self.query(Author)

    @property
    def courses(self) -> Query:
        return self.query(Course)

    @property
    def tags(self) -> Query:
        return self.query(Tag)

    @property
    def covers(self) -> Query:
        return self.query(Cover)

    @property
    def course_tags(self) -> Query:
        return self.query(CourseTag)

    def resolve(self, entity: Any, relation: str, mode: LoadingMode | None = None) -> Any:
        """Related entities of `entity`; see QueryExecutor.resolve()."""
        return self._executor.resolve(entity, relation, mode)

    def load(self, entity: Any, relation: str, predicate: Any = None) -> Any:
        """Explicitly load `relation` of `entity`, keeping only targets matching `predicate`.

            ctx.load(author, "courses", F.price == 0)
        """
        test = as_function(predicate) if predicate is not None else None
        return self._loader.load(entity, relation, test)

    # =========================================================================
    # Changes
    # =========================================================================

    def add(self, entity: Any) -> None:
        self._tracker.add(entity)

    def add_range(self, entities: Iterable[Any]) -> None:
        for entity in entities:
            self._tracker.add(entity)

    def remove(self, entity: Any) -> None:
        self._tracker.remove(entity)

    def mark_modified(self, entity: Any) -> None:
        self._tracker.mark_modified(entity)

    def attach(self, entity: Any) -> None:
        self._tracker.attach(entity)

    def find(self, entity_type: type | str, key: Any) -> Any:
        return self._tracker.find(entity_type, key)

    def entry_state(self, entity: Any) -> EntityState:
        return self._tracker.entry_state(entity)

    def save_changes(self) -> CommitResult:
        """Commit all staged changes atomically."""
        return self._tracker.commit()

    commit = save_changes

    def seed(self, seeds: Iterable[AuthorSeed], key: str = "name") -> SeedResult:
        return SeedLoader(self._store).add_or_update(seeds, key=key)

    def get_stats(self) -> StoreStats:
        return self._store.get_stats()
