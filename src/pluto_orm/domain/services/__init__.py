"""Domain services for the ORM.

Exports:
    - InMemoryEntityStore, StoreSnapshot, StoreDraft: Storage with snapshot reads
    - ChangeTracker, CommitResult: Unit of work
    - MigrationRunner, Migration and steps: Schema evolution
    - RelationLoader: Eager preload and lazy resolution
    - ModelBuilder, EntityTypeConfiguration: Fluent model configuration
"""

from pluto_orm.domain.services.change_tracker import (
    ChangeTracker,
    CommitResult,
    StagedOperation,
    TrackedEntry,
)
from pluto_orm.domain.services.entity_store import (
    InMemoryEntityStore,
    ScanResult,
    StoreDraft,
    StoreSnapshot,
)
from pluto_orm.domain.services.migrations import (
    AddColumn,
    CreateTable,
    DropColumn,
    DropTable,
    Migration,
    MigrationRunner,
    MigrationStep,
    RenameColumn,
)
from pluto_orm.domain.services.model_builder import (
    CollectionNavigationConfiguration,
    EntityTypeConfiguration,
    ModelBuilder,
    PropertyConfiguration,
    ReferenceNavigationConfiguration,
)
from pluto_orm.domain.services.relation_loader import RelationLoader

__all__ = [
    "InMemoryEntityStore",
    "ScanResult",
    "StoreDraft",
    "StoreSnapshot",
    "ChangeTracker",
    "CommitResult",
    "StagedOperation",
    "TrackedEntry",
    "Migration",
    "MigrationRunner",
    "MigrationStep",
    "CreateTable",
    "DropTable",
    "RenameColumn",
    "AddColumn",
    "DropColumn",
    "RelationLoader",
    "ModelBuilder",
    "EntityTypeConfiguration",
    "PropertyConfiguration",
    "ReferenceNavigationConfiguration",
    "CollectionNavigationConfiguration",
]
