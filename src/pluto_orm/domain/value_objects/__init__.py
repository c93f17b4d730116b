"""Value objects for the ORM domain.

Value objects are immutable types that represent domain concepts.

Exports:
    Identifiers:
        - EntityKey: Entity type name plus primary key value
        - TransientKey: Identity of an added entity awaiting its key
        - StoreVersion, INITIAL_VERSION: Snapshot versions

    Tracking Types:
        - EntityState: Change tracker lifecycle states
        - OperationKind: Insert/update/delete
        - LoadingMode: Eager or lazy relation resolution
        - SortDirection, JoinKind, RelationKind

    Schema & Model:
        - TableSchema: Physical table layout
        - Model, EntityType, PropertyRule, Relationship, ForeignKey
"""

from pluto_orm.domain.value_objects.identifiers import (
    INITIAL_VERSION,
    EntityKey,
    StoreVersion,
    TransientKey,
)
from pluto_orm.domain.value_objects.model import (
    EntityType,
    ForeignKey,
    Model,
    PropertyRule,
    Relationship,
)
from pluto_orm.domain.value_objects.schema import TableSchema
from pluto_orm.domain.value_objects.tracking_types import (
    EntityState,
    JoinKind,
    LoadingMode,
    OperationKind,
    RelationKind,
    SortDirection,
)

__all__ = [
    # Identifiers
    "EntityKey",
    "TransientKey",
    "StoreVersion",
    "INITIAL_VERSION",
    # Tracking types
    "EntityState",
    "OperationKind",
    "LoadingMode",
    "SortDirection",
    "JoinKind",
    "RelationKind",
    # Schema & model
    "TableSchema",
    "Model",
    "EntityType",
    "PropertyRule",
    "Relationship",
    "ForeignKey",
]
