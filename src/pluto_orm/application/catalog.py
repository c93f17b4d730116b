"""Sample data and the query catalog shown by the console demos."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from pluto_orm.application.expressions import F
from pluto_orm.application.seeding import AuthorSeed, CourseSeed
from pluto_orm.domain.entities import CourseLevel

if TYPE_CHECKING:
    from pluto_orm.application.context import PlutoContext
    from pluto_orm.application.query import Query

SAMPLE_CATALOG: tuple[AuthorSeed, ...] = (
    AuthorSeed(
        name="Anna Lee",
        courses=[
            CourseSeed(
                name="C# Basics", description="Types, control flow and classes",
                price=49.0, level=CourseLevel.BEGINNER, tags=["c#", "beginner"],
            ),
            CourseSeed(
                name="C# Advanced", description="Generics, LINQ and async",
                price=69.0, level=CourseLevel.ADVANCED, tags=["c#"],
            ),
        ],
    ),
    AuthorSeed(
        name="Bruno Costa",
        courses=[
            CourseSeed(
                name="SQL Fundamentals", description="Selecting, joining and grouping",
                price=0.0, level=CourseLevel.BEGINNER, tags=["sql", "beginner"],
            ),
            CourseSeed(
                name="Query Tuning", description="Indexes and execution plans",
                price=99.0, level=CourseLevel.INTERMEDIATE, tags=["sql"],
            ),
        ],
    ),
    AuthorSeed(
        name="Chen Wei",
        courses=[
            CourseSeed(
                name="Python for C# Developers", description="Mapping idioms across languages",
                price=29.0, level=CourseLevel.BEGINNER, tags=["python", "c#"],
            ),
        ],
    ),
    AuthorSeed(name="Dana Smith"),
)


@dataclass(frozen=True)
class CatalogQuery:
    title: str
    build: Callable[[PlutoContext], Query]


QUERY_CATALOG: tuple[CatalogQuery, ...] = (
    CatalogQuery(
        "Courses with 'c#' in the name",
        lambda ctx: ctx.courses.filter(F.name.contains("c#")).sort(F.name),
    ),
    CatalogQuery(
        "Beginner courses, most expensive first",
        lambda ctx: ctx.courses.filter(F.level == CourseLevel.BEGINNER)
        .sort_descending(F.price)
        .then_sort(F.name),
    ),
    CatalogQuery(
        "Free courses",
        lambda ctx: ctx.courses.filter(F.price == 0),
    ),
    CatalogQuery(
        "Second page of courses (2 per page)",
        lambda ctx: ctx.courses.sort(F.id).skip(2).take(2),
    ),
    CatalogQuery(
        "Course names of authors 1 and 2",
        lambda ctx: ctx.courses.filter(F.author_id.in_([1, 2])).sort(F.name).select(F.name),
    ),
    CatalogQuery(
        "Courses with their author (eager)",
        lambda ctx: ctx.courses.include("author").sort(F.name).select(
            lambda c: {"course": c.name, "author": c.related("author").name}
        ),
    ),
    CatalogQuery(
        "Courses grouped by level",
        lambda ctx: ctx.courses.group_by(F.level).select(
            lambda g: {"level": CourseLevel(g.key).name, "courses": len(g)}
        ),
    ),
    CatalogQuery(
        "Inner join courses/authors",
        lambda ctx: ctx.courses.join(
            ctx.authors, F.author_id, F.id, lambda c, a: {"course": c.name, "author": a.name}
        ),
    ),
    CatalogQuery(
        "Group join: courses per author",
        lambda ctx: ctx.authors.group_join(
            ctx.courses, F.id, F.author_id, lambda a, cs: {"author": a.name, "courses": len(cs)}
        ),
    ),
    CatalogQuery(
        "Cross join authors x tags",
        lambda ctx: ctx.authors.cross_join(
            ctx.tags, lambda a, t: {"author": a.name, "tag": t.name}
        ),
    ),
    CatalogQuery(
        "Distinct tags of beginner courses",
        lambda ctx: ctx.courses.filter(F.level == CourseLevel.BEGINNER)
        .include("tags")
        .select_many(lambda c: c.related("tags"))
        .distinct(),
    ),
)
