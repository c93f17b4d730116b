"""Migration history of the Pluto schema, oldest first."""

from __future__ import annotations

from pluto_orm.domain.services.migrations import CreateTable, Migration, RenameColumn

INITIAL_MODEL = Migration(
    "InitialModel",
    (
        CreateTable("Authors", "Author", (("id", "Id"), ("name", "Name"))),
        CreateTable(
            "Courses",
            "Course",
            (
                ("id", "Id"),
                ("name", "Title"),
                ("description", "Description"),
                ("price", "FullPrice"),
                ("level", "Level"),
                ("author_id", "AuthorId"),
            ),
        ),
        CreateTable("Tags", "Tag", (("id", "Id"), ("name", "Name"))),
        CreateTable(
            "CourseTags",
            "CourseTag",
            (("course_id", "CourseId"), ("tag_id", "TagId")),
            key=("course_id", "tag_id"),
        ),
    ),
)

RENAME_TITLE_TO_NAME = Migration(
    "RenameTitleToNameInCoursesTable",
    (RenameColumn("Courses", "Title", "Name"),),
)

ADD_COVERS_TABLE = Migration(
    "AddCoversTable",
    (CreateTable("Covers", "Cover", (("id", "Id"), ("image", "Image"))),),
)

PLUTO_MIGRATIONS: tuple[Migration, ...] = (
    INITIAL_MODEL,
    RENAME_TITLE_TO_NAME,
    ADD_COVERS_TABLE,
)
