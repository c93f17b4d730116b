"""Application layer for the ORM.

The application layer composes the domain services into the query and
session API.

Exports:
    Context:
        - PlutoContext: Main entry point (queries, changes, seeding, migrations)
    Queries:
        - Query: Deferred, chainable query
        - F: Field expression factory
        - QueryExecutor, ExecutionOptions: Plan evaluation
        - Grouping: Result of group_by
    Schema:
        - build_pluto_model: Author/Course/Tag/Cover model
        - PLUTO_MIGRATIONS: Migration history
    Seeding:
        - SeedLoader, AuthorSeed, CourseSeed, DEFAULT_SEED
"""

from pluto_orm.application.context import PlutoContext
from pluto_orm.application.executor import ExecutionOptions, QueryExecutor
from pluto_orm.application.expressions import F, Field
from pluto_orm.application.migration_history import PLUTO_MIGRATIONS
from pluto_orm.application.model import build_pluto_model
from pluto_orm.application.plan import Grouping
from pluto_orm.application.query import Query
from pluto_orm.application.seeding import (
    DEFAULT_SEED,
    AuthorSeed,
    CourseSeed,
    SeedLoader,
    SeedResult,
    load_seed_file,
)

__all__ = [
    "PlutoContext",
    "Query",
    "F",
    "Field",
    "QueryExecutor",
    "ExecutionOptions",
    "Grouping",
    "build_pluto_model",
    "PLUTO_MIGRATIONS",
    "SeedLoader",
    "SeedResult",
    "AuthorSeed",
    "CourseSeed",
    "DEFAULT_SEED",
    "load_seed_file",
]
