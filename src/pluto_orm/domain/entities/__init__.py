"""Domain entities for the ORM.

Entities are objects with identity. Two instances with the same attribute
values compare equal, but the store and change tracker address them by key.

Exports:
    - Entity: Base class holding loaded relations
    - Author: Course author
    - Course, CourseLevel: Course and its difficulty level
    - Cover: One-to-one cover art sharing the course key
    - Tag: Course label
    - CourseTag: Course/Tag join row
"""

from pluto_orm.domain.entities.author import Author
from pluto_orm.domain.entities.base import Entity
from pluto_orm.domain.entities.course import Course, CourseLevel, Cover
from pluto_orm.domain.entities.tag import CourseTag, Tag

__all__ = [
    "Entity",
    "Author",
    "Course",
    "CourseLevel",
    "Cover",
    "Tag",
    "CourseTag",
]
