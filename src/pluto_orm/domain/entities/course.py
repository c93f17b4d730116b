"""Course and Cover entities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from pluto_orm.domain.entities.base import Entity


class CourseLevel(IntEnum):
    """Difficulty level, stored as a small integer."""

    BEGINNER = 1
    INTERMEDIATE = 2
    ADVANCED = 3


@dataclass
class Course(Entity):
    """A course published by exactly one author.

    Relations: author (required), tags (many-to-many through CourseTags),
    cover (optional, shares this course's key).
    """

    id: int | None = None
    name: str | None = None
    description: str | None = None
    price: float = 0.0
    level: int = CourseLevel.BEGINNER
    author_id: int | None = None


@dataclass
class Cover(Entity):
    """Cover art of a course. Its key is the owning course's key."""

    id: int | None = None
    image: bytes | str | None = None
