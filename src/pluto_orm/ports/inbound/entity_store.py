"""Entity Store port.

This inbound port defines the contract of the storage layer that the query
executor, change tracker, migration runner and seed loader build on.

Key responsibilities:
- Keyed insert/update/delete with constraint and foreign-key enforcement
- Snapshot reads: scan/get see the state as of the call
- Serialized, all-or-nothing writes through drafts
"""

from __future__ import annotations

from abc import abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Protocol

from pluto_orm.domain.value_objects import EntityKey, Model, StoreVersion

if TYPE_CHECKING:
    from pluto_orm.domain.services.entity_store import StoreDraft, StoreSnapshot


@dataclass
class StoreStats:
    """Statistics for store access monitoring."""

    scans: int
    gets: int
    version: StoreVersion
    tables: int

    @property
    def accesses(self) -> int:
        """Total store accesses (scans plus keyed lookups)."""
        return self.scans + self.gets


class EntityStore(Protocol):
    """Protocol for entity storage.

    Thread Safety:
        Reads may run concurrently with each other and with a writer.
        Writes are serialized; a write either publishes completely or not at all.
    """

    @property
    @abstractmethod
    def model(self) -> Model:
        """The entity model the store enforces."""
        ...

    @abstractmethod
    def insert(self, entity: Any) -> EntityKey:
        """Insert a new entity.

        Raises:
            ConstraintViolation: Duplicate key or broken property rule.
            ReferentialIntegrityViolation: Dangling foreign key.
        """
        ...

    @abstractmethod
    def update(self, entity: Any) -> EntityKey:
        """Replace the stored values of an existing entity.

        Raises:
            NotFound: No entity with that key.
            ConstraintViolation, ReferentialIntegrityViolation: As for insert.
        """
        ...

    @abstractmethod
    def delete(self, key: EntityKey) -> list[EntityKey]:
        """Delete an entity (and cascading dependents).

        Returns:
            Every key removed, the requested one first.

        Raises:
            NotFound: No entity with that key.
            ReferentialIntegrityViolation: Live references without cascade.
        """
        ...

    @abstractmethod
    def get(self, key: EntityKey, snapshot: StoreSnapshot | None = None) -> Any:
        """Materialize one entity by key.

        Raises:
            NotFound: No entity with that key.
        """
        ...

    @abstractmethod
    def scan(self, entity_type: type | str, snapshot: StoreSnapshot | None = None) -> Iterable[Any]:
        """Restartable sequence of all entities of a type, as of the call."""
        ...

    @abstractmethod
    def snapshot(self) -> StoreSnapshot:
        """The latest published snapshot."""
        ...

    @abstractmethod
    def write(self, timeout: float | None = None) -> AbstractContextManager[StoreDraft]:
        """Open a serialized, all-or-nothing write.

        Raises:
            CommitTimeout: The write lock was not acquired in time.
        """
        ...

    @abstractmethod
    def get_stats(self) -> StoreStats:
        """Get store access statistics."""
        ...
