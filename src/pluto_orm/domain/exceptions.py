"""Error taxonomy for the ORM.

All errors are raised synchronously at the point of violation and are never
retried internally. Write paths guarantee that a raised error leaves the
entity store exactly as it was before the write started.
"""

from __future__ import annotations

from typing import Any


class PlutoError(Exception):
    """Base class for all ORM errors."""


class ConstraintViolation(PlutoError):
    """A uniqueness, length, range or required-property rule was broken."""

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        property_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.entity = entity
        self.property_name = property_name
        self.operation_index: int | None = None
        self.operation: Any = None


class ReferentialIntegrityViolation(PlutoError):
    """A foreign key is dangling, or a delete is blocked by live references."""

    def __init__(self, message: str, *, relationship: str | None = None) -> None:
        super().__init__(message)
        self.relationship = relationship
        self.operation_index: int | None = None
        self.operation: Any = None


class NotFound(PlutoError):
    """Lookup by key found nothing."""

    def __init__(self, entity: str, key: Any) -> None:
        super().__init__(f"{entity} with key {key!r} not found")
        self.entity = entity
        self.key = key
        self.operation_index: int | None = None
        self.operation: Any = None


class EmptyResult(PlutoError):
    """A terminal operation required at least one element."""


class MultipleElementsFound(PlutoError):
    """A terminal operation required at most one element."""

    def __init__(self, count: int) -> None:
        super().__init__(f"Sequence contains more than one matching element ({count})")
        self.count = count


class QueryUsageError(PlutoError):
    """The query was composed in a way the executor cannot honor."""


class RelationNotLoaded(PlutoError):
    """A relation was accessed without being pre-fetched or lazily resolved."""

    def __init__(self, entity: str, relation: str) -> None:
        super().__init__(
            f"Relation '{relation}' of {entity} is not loaded; "
            f"include it in the query or resolve it lazily"
        )
        self.entity = entity
        self.relation = relation


class UntranslatableQuery(PlutoError):
    """The plan cannot be rendered as SQL."""


class SchemaError(PlutoError):
    """Unknown table or column, or an invalid migration request."""


class CommitTimeout(PlutoError):
    """The store write lock could not be acquired in time; nothing was applied."""
