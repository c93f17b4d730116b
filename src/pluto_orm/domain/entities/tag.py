"""Tag entity and the Course/Tag join row."""

from __future__ import annotations

from dataclasses import dataclass

from pluto_orm.domain.entities.base import Entity


@dataclass
class Tag(Entity):
    """A uniquely named label attached to courses."""

    id: int | None = None
    name: str | None = None


@dataclass
class CourseTag(Entity):
    """Join row pairing a course with a tag. Keyed by (course_id, tag_id)."""

    course_id: int | None = None
    tag_id: int | None = None
