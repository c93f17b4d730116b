"""Base class for mapped entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pluto_orm.domain.exceptions import RelationNotLoaded


@dataclass
class Entity:
    """A uniquely keyed record mapped to one table.

    Subclasses declare their persisted properties as dataclass fields.
    Related entities are never fetched implicitly: they live in `loaded`,
    filled either by eager loading (include) or by an explicit lazy
    resolution through the executor. `related()` only reads that cache.
    """

    loaded: dict[str, Any] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def related(self, relation: str) -> Any:
        """Return an already-loaded relation.

        Raises:
            RelationNotLoaded: If the relation was neither included nor resolved.
        """
        try:
            return self.loaded[relation]
        except KeyError:
            raise RelationNotLoaded(type(self).__name__, relation) from None

    def is_loaded(self, relation: str) -> bool:
        return relation in self.loaded
