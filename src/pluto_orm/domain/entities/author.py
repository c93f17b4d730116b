"""Author entity."""

from __future__ import annotations

from dataclasses import dataclass

from pluto_orm.domain.entities.base import Entity


@dataclass
class Author(Entity):
    """A course author. Owns zero or more courses."""

    id: int | None = None
    name: str | None = None
