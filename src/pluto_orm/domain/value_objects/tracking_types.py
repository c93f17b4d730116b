"""Change tracking, loading and query enumerations."""

from __future__ import annotations

from enum import Enum, auto


class EntityState(Enum):
    """Lifecycle state of a tracked entity.

    State machine:

        DETACHED ──add()──> ADDED ──commit()──> UNCHANGED
        DETACHED ──attach()/find()──> UNCHANGED
        UNCHANGED ──mark_modified()/field change──> MODIFIED ──commit()──> UNCHANGED
        UNCHANGED|MODIFIED ──remove()──> DELETED ──commit()──> DETACHED
        ADDED ──remove()──> DETACHED
    """

    DETACHED = auto()
    """Not tracked."""

    UNCHANGED = auto()
    """Tracked; matches the store as of the last commit or lookup."""

    ADDED = auto()
    """Staged for insert."""

    MODIFIED = auto()
    """Staged for update."""

    DELETED = auto()
    """Staged for delete."""

    def is_pending(self) -> bool:
        """Check if the state carries a write for the next commit."""
        return self in (EntityState.ADDED, EntityState.MODIFIED, EntityState.DELETED)


class OperationKind(Enum):
    """Kind of store write produced by a commit."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class LoadingMode(Enum):
    """How an unfetched relation is resolved on access.

    EAGER: relations must have been pre-fetched with include(); accessing an
        unfetched relation is an error.
    LAZY: an unfetched relation triggers one logged store access. Iterating a
        collection this way costs one access per row (the N+1 pattern).
    """

    EAGER = auto()
    LAZY = auto()


class SortDirection(Enum):
    """Sort direction for sort()/then_sort()."""

    ASCENDING = "asc"
    DESCENDING = "desc"


class JoinKind(Enum):
    """Join variants understood by the executor."""

    INNER = auto()
    """Pairs with equal keys on both sides."""

    GROUP = auto()
    """Each left row with the (possibly empty) group of matching right rows."""

    CROSS = auto()
    """Full Cartesian product, no key."""


class RelationKind(Enum):
    """Shape of a navigation relation."""

    REFERENCE = auto()
    """Foreign key on the source points at the target's key (Course.author)."""

    COLLECTION = auto()
    """Foreign key on the target points at the source's key (Author.courses)."""

    SHARED_KEY = auto()
    """Target shares the source's primary key (Course.cover)."""

    MANY_TO_MANY = auto()
    """Pairs stored in a join table (Course.tags)."""
