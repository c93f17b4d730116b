"""Seed data loading with add-or-update semantics.

Seeds are authors with embedded courses. Loading is idempotent on a
caller-chosen author property (the name by default): a matching author is
updated, never duplicated. Courses are upserted by name within their
author; existing courses missing from the seed are left alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, Field, TypeAdapter

from pluto_orm.domain.entities import Author, Course, CourseLevel, CourseTag, Tag
from pluto_orm.domain.exceptions import SchemaError
from pluto_orm.domain.services.entity_store import StoreDraft
from pluto_orm.domain.value_objects import EntityKey
from pluto_orm.infrastructure.logging import get_logger
from pluto_orm.infrastructure.tracing import trace_span
from pluto_orm.ports.inbound.entity_store import EntityStore

logger = get_logger(__name__)


class CourseSeed(BaseModel):
    """A course embedded in an author seed."""

    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=2000)
    price: float = Field(default=0.0, ge=0)
    level: CourseLevel = CourseLevel.BEGINNER
    tags: list[str] = Field(default_factory=list)


class AuthorSeed(BaseModel):
    """An author and the courses to add or update for it."""

    name: str = Field(min_length=1)
    courses: list[CourseSeed] = Field(default_factory=list)


DEFAULT_SEED: tuple[AuthorSeed, ...] = (
    AuthorSeed(
        name="Author 2",
        courses=[CourseSeed(name="Course 1", description="Description 2")],
    ),
)

_seed_list = TypeAdapter(list[AuthorSeed])


def load_seed_file(path: str | Path) -> list[AuthorSeed]:
    """Read and validate seeds from a JSON file (a list of authors).

    Raises:
        pydantic.ValidationError: The file does not describe valid seeds.
    """
    return _seed_list.validate_json(Path(path).read_bytes())


@dataclass
class SeedResult:
    """Counts of rows written by one seed run."""

    authors_added: int = 0
    authors_updated: int = 0
    courses_added: int = 0
    courses_updated: int = 0
    tags_added: int = 0


class SeedLoader:
    """Applies seeds to an entity store in a single atomic write.

    Usage:
        SeedLoader(store).add_or_update(DEFAULT_SEED)
    """

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def add_or_update(self, seeds: Iterable[AuthorSeed], key: str = "name") -> SeedResult:
        """Add authors that do not exist yet, update the ones that do.

        Args:
            seeds: Authors with embedded courses.
            key: Author property identifying an existing author.

        Raises:
            SchemaError: `key` is not a seeded author property.
            ConstraintViolation, ReferentialIntegrityViolation: Invalid data;
                nothing is written.
        """
        if key not in AuthorSeed.model_fields or key == "courses":
            raise SchemaError(f"Cannot match authors on '{key}'")

        seeds = list(seeds)
        result = SeedResult()
        with trace_span("pluto.seed", {"authors": len(seeds)}):
            with self._store.write() as draft:
                for seed in seeds:
                    author_id = self._upsert_author(draft, seed, key, result)
                    for course in seed.courses:
                        self._upsert_course(draft, author_id, course, result)

        logger.info(
            "Seed applied",
            authors_added=result.authors_added,
            authors_updated=result.authors_updated,
            courses_added=result.courses_added,
            courses_updated=result.courses_updated,
        )
        return result

    def _upsert_author(self, draft: StoreDraft, seed: AuthorSeed, key: str, result: SeedResult) -> int:
        matches = draft.find_by(Author, key, getattr(seed, key))
        if matches:
            author = matches[0]
            author.name = seed.name
            draft.update(author)
            result.authors_updated += 1
            return author.id
        result.authors_added += 1
        return draft.insert(Author(name=seed.name)).value

    def _upsert_course(
        self, draft: StoreDraft, author_id: int, seed: CourseSeed, result: SeedResult
    ) -> None:
        existing = [c for c in draft.find_by(Course, "author_id", author_id) if c.name == seed.name]
        if existing:
            course = existing[0]
            course.description = seed.description
            course.price = seed.price
            course.level = seed.level
            draft.update(course)
            course_id = course.id
            result.courses_updated += 1
        else:
            course_id = draft.insert(
                Course(
                    name=seed.name,
                    description=seed.description,
                    price=seed.price,
                    level=seed.level,
                    author_id=author_id,
                )
            ).value
            result.courses_added += 1

        for tag_name in seed.tags:
            tags = draft.find_by(Tag, "name", tag_name)
            if tags:
                tag_id = tags[0].id
            else:
                tag_id = draft.insert(Tag(name=tag_name)).value
                result.tags_added += 1
            if not draft.exists(EntityKey("CourseTag", (course_id, tag_id))):
                draft.insert(CourseTag(course_id=course_id, tag_id=tag_id))
