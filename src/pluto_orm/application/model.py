"""Entity configuration of the Pluto course catalog."""

from __future__ import annotations

from pluto_orm.domain.entities import Author, Course, CourseLevel, CourseTag, Cover, Tag
from pluto_orm.domain.services.model_builder import EntityTypeConfiguration, ModelBuilder
from pluto_orm.domain.value_objects import Model


class AuthorConfiguration(EntityTypeConfiguration):
    def __init__(self) -> None:
        super().__init__(Author)
        self.to_table("Authors")
        self.property("name").is_required()


class CourseConfiguration(EntityTypeConfiguration):
    """Courses: required author (no cascade), tags via CourseTags, optional cover."""

    def __init__(self) -> None:
        super().__init__(Course)
        self.to_table("Courses")
        self.property("name").is_required().has_max_length(255)
        self.property("description").is_required().has_max_length(2000)
        self.property("price").is_required().has_min_value(0)
        self.property("level").is_required().has_allowed_values(*(lv.value for lv in CourseLevel))

        (self.has_required("author", Author)
            .with_many("courses")
            .has_foreign_key("author_id")
            .will_cascade_on_delete(False))

        self.has_optional("cover", Cover).with_required_principal("course")

        # Join rows carry no data of their own
        (self.has_many("tags", Tag)
            .with_many("courses")
            .map(CourseTag, "course_id", "tag_id")
            .will_cascade_on_delete(True))


class TagConfiguration(EntityTypeConfiguration):
    def __init__(self) -> None:
        super().__init__(Tag)
        self.to_table("Tags")
        self.property("name").is_required().is_unique()


class CourseTagConfiguration(EntityTypeConfiguration):
    def __init__(self) -> None:
        super().__init__(CourseTag)
        self.to_table("CourseTags").has_key("course_id", "tag_id")


class CoverConfiguration(EntityTypeConfiguration):
    def __init__(self) -> None:
        super().__init__(Cover)
        self.to_table("Covers")


def build_pluto_model() -> Model:
    """Compile the Author/Course/Tag/Cover model."""
    return (
        ModelBuilder()
        .add(AuthorConfiguration())
        .add(CourseConfiguration())
        .add(TagConfiguration())
        .add(CourseTagConfiguration())
        .add(CoverConfiguration())
        .build()
    )
