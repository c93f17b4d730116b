"""Core identifiers for the ORM.

Entities are addressed by an EntityKey: the entity type name plus the value
of its primary key (a tuple for composite keys such as join-table rows).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NewType


StoreVersion = NewType("StoreVersion", int)
"""Version of a published store snapshot. Monotonically increasing per commit."""

INITIAL_VERSION = StoreVersion(0)


@dataclass(frozen=True, slots=True)
class EntityKey:
    """Identity of a stored entity.

    Attributes:
        entity: Entity type name (e.g. "Course")
        value: Primary key value; a tuple for composite keys

    Example:
        >>> EntityKey("Course", 1)
        Course[1]
        >>> EntityKey("CourseTag", (1, 2))
        CourseTag[(1, 2)]
    """

    entity: str
    value: Any

    def __post_init__(self) -> None:
        """Validate the key."""
        if self.value is None:
            raise ValueError(f"{self.entity} key must not be None")
        if isinstance(self.value, tuple) and any(v is None for v in self.value):
            raise ValueError(f"{self.entity} composite key has a None part: {self.value}")

    def __repr__(self) -> str:
        return f"{self.entity}[{self.value!r}]"


@dataclass(frozen=True, slots=True)
class TransientKey:
    """Identity of an added entity whose key is assigned on commit."""

    entity: str
    object_id: int

    def __repr__(self) -> str:
        return f"{self.entity}[new@{self.object_id:#x}]"
