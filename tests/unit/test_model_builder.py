"""Unit tests for fluent model configuration."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from pluto_orm.domain.entities import Author, Course, CourseTag, Cover, Entity, Tag
from pluto_orm.domain.exceptions import ConstraintViolation, SchemaError
from pluto_orm.domain.services.model_builder import EntityTypeConfiguration, ModelBuilder
from pluto_orm.domain.value_objects import EntityKey, Model, RelationKind


@pytest.mark.unit
class TestPlutoModel:
    """Tests for the compiled Pluto model."""

    def test_tables(self, model: Model) -> None:
        tables = {t.name: t.table for t in model.entity_types}

        assert tables == {
            "Author": "Authors",
            "Course": "Courses",
            "Tag": "Tags",
            "CourseTag": "CourseTags",
            "Cover": "Covers",
        }

    def test_identity_keys(self, model: Model) -> None:
        """Single keys are identities unless borrowed from a principal."""
        assert model.entity(Author).identity is True
        assert model.entity(Course).identity is True
        assert model.entity(Cover).identity is False
        assert model.entity(CourseTag).identity is False
        assert model.entity(CourseTag).key == ("course_id", "tag_id")

    def test_author_relationship_does_not_cascade(self, model: Model) -> None:
        fk = next(fk for fk in model.foreign_keys if fk.name == "Course.author")

        assert fk.dependent == "Course"
        assert fk.principal == "Author"
        assert fk.properties == ("author_id",)
        assert fk.required is True
        assert fk.cascade_on_delete is False

    def test_cover_shares_course_key(self, model: Model) -> None:
        fk = next(fk for fk in model.foreign_keys if fk.name == "Course.cover")

        assert fk.dependent == "Cover"
        assert fk.properties == ("id",)
        assert fk.cascade_on_delete is False
        assert model.relationship("Course", "cover").kind is RelationKind.SHARED_KEY

    def test_many_to_many_join_rows_cascade(self, model: Model) -> None:
        join_fks = model.references_from("CourseTag")

        assert {fk.principal for fk in join_fks} == {"Course", "Tag"}
        assert all(fk.cascade_on_delete for fk in join_fks)

        tags = model.relationship("Course", "tags")
        assert tags.kind is RelationKind.MANY_TO_MANY
        assert (tags.join_entity, tags.left_key, tags.right_key) == ("CourseTag", "course_id", "tag_id")

        courses = model.relationship("Tag", "courses")
        assert (courses.left_key, courses.right_key) == ("tag_id", "course_id")

    def test_inverse_navigations(self, model: Model) -> None:
        assert model.relationship("Author", "courses").kind is RelationKind.COLLECTION
        assert model.relationship("Author", "courses").foreign_key == "author_id"
        assert model.relationship("Cover", "course").kind is RelationKind.REFERENCE

    def test_unknown_relationship(self, model: Model) -> None:
        with pytest.raises(SchemaError):
            model.relationship("Author", "tags")

    def test_unknown_entity(self, model: Model) -> None:
        with pytest.raises(SchemaError):
            model.entity("Publisher")

    def test_key_of(self, model: Model) -> None:
        course_type = model.entity(Course)

        assert course_type.key_of(Course(id=3)) == EntityKey("Course", 3)
        assert course_type.key_of(Course()) is None
        assert model.entity(CourseTag).key_of(CourseTag(course_id=1, tag_id=2)) == EntityKey(
            "CourseTag", (1, 2)
        )

    def test_loaded_is_not_a_property(self, model: Model) -> None:
        assert "loaded" not in model.entity(Course).property_names()


@pytest.mark.unit
class TestPropertyRules:
    """Tests for property rule checks."""

    def test_name_length(self, model: Model) -> None:
        rule = model.entity(Course).rules["name"]

        rule.check("Course", "x" * 255)
        with pytest.raises(ConstraintViolation) as exc_info:
            rule.check("Course", "x" * 256)
        assert exc_info.value.property_name == "name"

    def test_required(self, model: Model) -> None:
        with pytest.raises(ConstraintViolation):
            model.entity(Course).rules["description"].check("Course", None)

    def test_price_minimum(self, model: Model) -> None:
        with pytest.raises(ConstraintViolation):
            model.entity(Course).rules["price"].check("Course", -1.0)

    def test_price_required(self, model: Model) -> None:
        with pytest.raises(ConstraintViolation) as exc_info:
            model.entity(Course).rules["price"].check("Course", None)
        assert exc_info.value.property_name == "price"

    @pytest.mark.parametrize(
        ("prop", "value"),
        [("price", "free"), ("name", 42), ("level", ["beginner"])],
    )
    def test_wrong_type_is_a_violation(self, model: Model, prop: str, value: object) -> None:
        with pytest.raises(ConstraintViolation) as exc_info:
            model.entity(Course).rules[prop].check("Course", value)
        assert exc_info.value.property_name == prop

    def test_level_allowed_values(self, model: Model) -> None:
        rule = model.entity(Course).rules["level"]

        rule.check("Course", 3)
        with pytest.raises(ConstraintViolation):
            rule.check("Course", 4)


@dataclass
class Publisher(Entity):
    id: int | None = None
    name: str | None = None


@dataclass
class Book(Entity):
    id: int | None = None
    publisher_id: int | None = None


@pytest.mark.unit
class TestModelBuilder:
    """Tests for building custom models."""

    def test_reference_without_foreign_key(self) -> None:
        builder = ModelBuilder()
        builder.entity(Publisher)
        builder.entity(Book).has_required("publisher", Publisher).with_many("books")

        with pytest.raises(SchemaError):
            builder.build()

    def test_unconfigured_principal(self) -> None:
        builder = ModelBuilder()
        builder.entity(Book).has_required("publisher", Publisher).has_foreign_key("publisher_id")

        with pytest.raises(SchemaError):
            builder.build()

    def test_default_table_name_and_no_cascade(self) -> None:
        builder = ModelBuilder()
        builder.entity(Publisher)
        (builder.entity(Book)
            .has_optional("publisher", Publisher)
            .with_many("books")
            .has_foreign_key("publisher_id"))

        model = builder.build()

        assert model.entity(Book).table == "Books"
        fk = model.references_from("Book")[0]
        assert fk.required is False
        assert fk.cascade_on_delete is False

    def test_collection_with_required(self) -> None:
        publisher = EntityTypeConfiguration(Publisher)
        publisher.has_many("books", Book).with_required("publisher").has_foreign_key("publisher_id")

        model = ModelBuilder().add(publisher).add(EntityTypeConfiguration(Book)).build()

        fk = model.references_to("Publisher")[0]
        assert fk.dependent == "Book"
        assert fk.required is True
        assert model.relationship("Book", "publisher").kind is RelationKind.REFERENCE

    def test_configuration_accessors(self) -> None:
        config = EntityTypeConfiguration(Tag).to_table("Labels").has_key("name")
        config.property("name").is_required()
        config.has_many("courses", Course)

        assert config.table == "Labels"
        assert config.key == ("name",)
        assert len(config.navigations) == 1
        assert config.rules()["name"].required is True

    def test_has_key_requires_properties(self) -> None:
        with pytest.raises(ValueError):
            EntityTypeConfiguration(Tag).has_key()
