"""Unit tests for add-or-update seeding."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from pluto_orm.application.seeding import (
    DEFAULT_SEED,
    AuthorSeed,
    CourseSeed,
    SeedLoader,
    load_seed_file,
)
from pluto_orm.domain.entities import Author, Course, CourseTag, Tag
from pluto_orm.domain.exceptions import ConstraintViolation, SchemaError
from pluto_orm.domain.services.entity_store import InMemoryEntityStore
from pluto_orm.domain.value_objects import EntityKey


@pytest.fixture
def loader(store: InMemoryEntityStore) -> SeedLoader:
    return SeedLoader(store)


@pytest.mark.unit
class TestSeedLoader:
    """Tests for idempotent seeding."""

    def test_default_seed(self, loader: SeedLoader, store: InMemoryEntityStore) -> None:
        result = loader.add_or_update(DEFAULT_SEED)

        assert (result.authors_added, result.courses_added) == (1, 1)
        author = store.get(EntityKey("Author", 1))
        course = store.get(EntityKey("Course", 1))
        assert author.name == "Author 2"
        assert (course.name, course.description, course.price, course.level) == (
            "Course 1",
            "Description 2",
            0.0,
            1,
        )
        assert course.author_id == author.id

    def test_reseed_updates_instead_of_duplicating(
        self, loader: SeedLoader, store: InMemoryEntityStore
    ) -> None:
        loader.add_or_update(DEFAULT_SEED)

        result = loader.add_or_update(DEFAULT_SEED)

        assert (result.authors_added, result.authors_updated) == (0, 1)
        assert (result.courses_added, result.courses_updated) == (0, 1)
        assert len(store.scan(Author)) == 1
        assert len(store.scan(Course)) == 1

    def test_course_fields_are_updated(
        self, loader: SeedLoader, store: InMemoryEntityStore
    ) -> None:
        loader.add_or_update(DEFAULT_SEED)
        changed = AuthorSeed(
            name="Author 2",
            courses=[CourseSeed(name="Course 1", description="Rewritten", price=12.5, level=2)],
        )

        loader.add_or_update([changed])

        course = store.get(EntityKey("Course", 1))
        assert (course.description, course.price, course.level) == ("Rewritten", 12.5, 2)

    def test_unlisted_courses_are_kept(
        self, loader: SeedLoader, store: InMemoryEntityStore
    ) -> None:
        loader.add_or_update(DEFAULT_SEED)

        loader.add_or_update([AuthorSeed(name="Author 2")])

        assert len(store.scan(Course)) == 1

    def test_tags_are_shared(self, loader: SeedLoader, store: InMemoryEntityStore) -> None:
        seeds = [
            AuthorSeed(
                name="Author 2",
                courses=[
                    CourseSeed(name="A", description="a", tags=["c#", "beginner"]),
                    CourseSeed(name="B", description="b", tags=["c#"]),
                ],
            )
        ]

        first = loader.add_or_update(seeds)
        second = loader.add_or_update(seeds)

        assert first.tags_added == 2
        assert second.tags_added == 0
        assert sorted(t.name for t in store.scan(Tag)) == ["beginner", "c#"]
        assert len(store.scan(CourseTag)) == 3

    def test_invalid_key(self, loader: SeedLoader) -> None:
        with pytest.raises(SchemaError):
            loader.add_or_update(DEFAULT_SEED, key="courses")
        with pytest.raises(SchemaError):
            loader.add_or_update(DEFAULT_SEED, key="email")

    def test_seed_is_atomic(self, loader: SeedLoader, store: InMemoryEntityStore) -> None:
        too_long = "x" * 300
        seeds = [
            AuthorSeed(name="Author 2"),
            AuthorSeed(
                name="Author 3",
                courses=[CourseSeed.model_construct(
                    name=too_long, description="d", price=0.0, level=1, tags=[]
                )],
            ),
        ]
        version = store.snapshot().version

        with pytest.raises(ConstraintViolation):
            loader.add_or_update(seeds)

        assert store.snapshot().version == version
        assert len(store.scan(Author)) == 0


@pytest.mark.unit
class TestSeedModels:
    """Tests for seed validation and seed files."""

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CourseSeed(name="A", description="a", price=-1)

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CourseSeed(name="A", description="a", level=9)

    def test_load_seed_file(self, tmp_path: Path) -> None:
        path = tmp_path / "seed.json"
        path.write_text(
            json.dumps(
                [
                    {
                        "name": "Anna Lee",
                        "courses": [
                            {"name": "C# Basics", "description": "Intro", "price": 49, "tags": ["c#"]}
                        ],
                    }
                ]
            )
        )

        seeds = load_seed_file(path)

        assert seeds[0].name == "Anna Lee"
        assert seeds[0].courses[0].price == 49.0
        assert seeds[0].courses[0].tags == ["c#"]

    def test_load_invalid_seed_file(self, tmp_path: Path) -> None:
        path = tmp_path / "seed.json"
        path.write_text(json.dumps([{"courses": []}]))

        with pytest.raises(ValidationError):
            load_seed_file(path)
