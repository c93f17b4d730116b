"""Pytest configuration and fixtures for pluto_orm tests."""

from __future__ import annotations

from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from pluto_orm.application.catalog import SAMPLE_CATALOG
from pluto_orm.application.context import PlutoContext
from pluto_orm.application.model import build_pluto_model
from pluto_orm.application.migration_history import PLUTO_MIGRATIONS
from pluto_orm.domain.entities import Author, Course, CourseLevel
from pluto_orm.domain.services.entity_store import InMemoryEntityStore
from pluto_orm.domain.services.migrations import MigrationRunner
from pluto_orm.domain.value_objects import Model
from pluto_orm.infrastructure.config import Config, LoadingConfig, StoreConfig
from pluto_orm.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def test_config() -> Config:
    """Provide a test configuration with a short commit timeout."""
    return Config(
        store=StoreConfig(commit_timeout_seconds=0.5, migrate_on_start=True),
        loading=LoadingConfig(lazy_loading_enabled=True),
    )


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def model() -> Model:
    return build_pluto_model()


@pytest.fixture
def store(model: Model, metrics_registry: MetricsRegistry) -> InMemoryEntityStore:
    """Provide a migrated, empty store."""
    s = InMemoryEntityStore(model, commit_timeout_seconds=0.5, metrics=metrics_registry)
    MigrationRunner(s, PLUTO_MIGRATIONS, metrics_registry).upgrade()
    return s


@pytest.fixture
def seeded_store(store: InMemoryEntityStore) -> InMemoryEntityStore:
    """Store with Author 1 ("Author 2") owning Course 1 (price 0, level 1)."""
    store.insert(Author(id=1, name="Author 2"))
    store.insert(
        Course(id=1, name="Course 1", description="Description 2", price=0.0,
               level=CourseLevel.BEGINNER, author_id=1)
    )
    return store


@pytest.fixture
def context(
    test_config: Config, metrics_registry: MetricsRegistry
) -> Generator[PlutoContext, None, None]:
    """Provide a started context over a fresh migrated store."""
    ctx = PlutoContext(test_config, metrics=metrics_registry)
    with ctx:
        yield ctx


@pytest.fixture
def catalog(context: PlutoContext) -> PlutoContext:
    """Context loaded with the sample catalog.

    Authors 1-4: Anna Lee, Bruno Costa, Chen Wei, Dana Smith (no courses).
    Courses 1-5: C# Basics, C# Advanced, SQL Fundamentals, Query Tuning,
    Python for C# Developers. Tags 1-4: c#, beginner, sql, python.
    """
    context.seed(SAMPLE_CATALOG)
    return context


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
