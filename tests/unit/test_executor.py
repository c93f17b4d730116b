"""Unit tests for QueryExecutor: joins, grouping and relation loading."""

from __future__ import annotations

from typing import Any

import pytest

from pluto_orm.application.context import PlutoContext
from pluto_orm.application.executor import ExecutionOptions, QueryExecutor
from pluto_orm.application.expressions import F
from pluto_orm.application.plan import Grouping
from pluto_orm.application.query import Query
from pluto_orm.domain.entities import Author, Cover
from pluto_orm.domain.exceptions import QueryUsageError, RelationNotLoaded, SchemaError
from pluto_orm.domain.value_objects import LoadingMode
from pluto_orm.infrastructure.metrics import MetricsRegistry


def _accesses(ctx: PlutoContext) -> int:
    return ctx.get_stats().accesses


@pytest.mark.unit
class TestGroupingAndJoins:
    """Tests for group_by, joins and distinct."""

    def test_group_by_level(self, catalog: PlutoContext) -> None:
        groups = catalog.courses.group_by(F.level).to_list()

        assert all(isinstance(g, Grouping) for g in groups)
        assert [g.key for g in groups] == [1, 3, 2]
        assert [len(g) for g in groups] == [3, 1, 1]
        assert sorted(c.name for c in groups[0]) == [
            "C# Basics",
            "Python for C# Developers",
            "SQL Fundamentals",
        ]

    def test_group_by_with_element(self, catalog: PlutoContext) -> None:
        groups = catalog.courses.group_by(F.author_id, F.name).sort(F.key).to_list()

        assert [(g.key, g.members) for g in groups] == [
            (1, ["C# Basics", "C# Advanced"]),
            (2, ["SQL Fundamentals", "Query Tuning"]),
            (3, ["Python for C# Developers"]),
        ]

    def test_inner_join(self, catalog: PlutoContext) -> None:
        rows = catalog.courses.join(
            catalog.authors, F.author_id, F.id, lambda c, a: (c.name, a.name)
        ).to_list()

        assert len(rows) == 5
        assert ("Query Tuning", "Bruno Costa") in rows

    def test_join_default_shape_is_pair(self, catalog: PlutoContext) -> None:
        course, author = catalog.courses.join(catalog.authors, F.author_id, F.id).first(
            lambda pair: pair[0].id == 5
        )

        assert author.name == "Chen Wei"
        assert course.name == "Python for C# Developers"

    def test_group_join_keeps_empty_groups(self, catalog: PlutoContext) -> None:
        rows = catalog.authors.sort(F.id).group_join(
            catalog.courses, F.id, F.author_id, lambda a, cs: (a.name, len(cs))
        ).to_list()

        assert rows == [("Anna Lee", 2), ("Bruno Costa", 2), ("Chen Wei", 1), ("Dana Smith", 0)]

    def test_cross_join(self, catalog: PlutoContext) -> None:
        rows = catalog.authors.cross_join(catalog.tags).to_list()

        assert len(rows) == 16

    def test_select_many_distinct(self, catalog: PlutoContext) -> None:
        names = (
            catalog.courses.filter(F.level == 1)
            .include("tags")
            .select_many(lambda c: c.related("tags"))
            .distinct()
            .select(F.name)
            .to_list()
        )

        assert names == ["c#", "beginner", "sql", "python"]

    def test_distinct_values(self, catalog: PlutoContext) -> None:
        assert catalog.courses.select(F.level).distinct().to_list() == [1, 3, 2]

    def test_distinct_unhashable_rows(self, catalog: PlutoContext) -> None:
        rows = catalog.courses.select(lambda c: [c.level]).distinct().to_list()

        assert rows == [[1], [3], [2]]


@pytest.mark.unit
class TestRelationLoading:
    """Tests for eager and lazy loading."""

    def test_lazy_loading_costs_one_lookup_per_entity(self, catalog: PlutoContext) -> None:
        before = _accesses(catalog)

        courses = catalog.courses.to_list()
        authors = [catalog.resolve(c, "author").name for c in courses]

        assert _accesses(catalog) - before == 6
        assert authors.count("Anna Lee") == 2

    def test_eager_loading_is_bounded(self, catalog: PlutoContext) -> None:
        before = _accesses(catalog)

        courses = catalog.courses.include("author").to_list()
        authors = [c.related("author").name for c in courses]

        assert _accesses(catalog) - before == 2
        assert authors.count("Anna Lee") == 2

    def test_eager_and_lazy_agree(self, catalog: PlutoContext) -> None:
        eager = [c.related("author").name for c in catalog.courses.include("author").sort(F.id)]
        lazy = [catalog.resolve(c, "author").name for c in catalog.courses.sort(F.id)]

        assert eager == lazy

    def test_many_to_many_include(self, catalog: PlutoContext) -> None:
        before = _accesses(catalog)

        course = catalog.courses.include("tags").single(F.id == 5)

        assert _accesses(catalog) - before == 3
        assert [t.name for t in course.related("tags")] == ["python", "c#"]

    def test_nested_include(self, catalog: PlutoContext) -> None:
        before = _accesses(catalog)

        anna = catalog.authors.include("courses.tags").single(F.name == "Anna Lee")

        assert _accesses(catalog) - before == 4
        tags = {c.name: [t.name for t in c.related("tags")] for c in anna.related("courses")}
        assert tags == {"C# Basics": ["c#", "beginner"], "C# Advanced": ["c#"]}

    def test_include_collection_for_author_without_courses(self, catalog: PlutoContext) -> None:
        dana = catalog.authors.include("courses").single(F.id == 4)

        assert dana.related("courses") == []

    def test_optional_shared_key_relation(self, catalog: PlutoContext) -> None:
        catalog.add(Cover(id=1, image="covers/1.png"))
        catalog.save_changes()

        courses = catalog.courses.include("cover").sort(F.id).take(2).to_list()

        assert courses[0].related("cover").image == "covers/1.png"
        assert courses[1].related("cover") is None
        assert catalog.resolve(catalog.courses.single(F.id == 2), "cover") is None

    def test_not_loaded_relation(self, catalog: PlutoContext) -> None:
        course = catalog.courses.first()

        with pytest.raises(RelationNotLoaded) as exc_info:
            course.related("author")

        assert exc_info.value.relation == "author"

    def test_eager_mode_resolve_requires_include(self, catalog: PlutoContext) -> None:
        course = catalog.courses.first()

        with pytest.raises(RelationNotLoaded):
            catalog.resolve(course, "author", LoadingMode.EAGER)

    def test_eager_mode_executor(
        self, catalog: PlutoContext, metrics_registry: MetricsRegistry
    ) -> None:
        executor = QueryExecutor(
            catalog.store, options=ExecutionOptions(lazy_loading=False), metrics=metrics_registry
        )
        course = executor.execute(catalog.courses.plan)[0]

        with pytest.raises(RelationNotLoaded):
            executor.resolve(course, "author")

        included = Query(catalog.courses.include("author").plan, executor).first()
        assert executor.resolve(included, "author").name == "Anna Lee"

    def test_lazy_resolution_is_cached(
        self, catalog: PlutoContext, metrics_registry: MetricsRegistry
    ) -> None:
        course = catalog.courses.first()
        relation = str(catalog.model.relationship("Course", "author"))

        first = catalog.resolve(course, "author")
        before = _accesses(catalog)
        second = catalog.resolve(course, "author")

        assert first is second
        assert _accesses(catalog) == before
        assert course.related("author") is first
        assert metrics_registry.lazy_loads_total.labels(relation=relation)._value.get() == 1

    def test_lazy_many_to_many(self, catalog: PlutoContext) -> None:
        tag = catalog.tags.single(F.name == "beginner")

        courses = catalog.resolve(tag, "courses")

        assert sorted(c.name for c in courses) == ["C# Basics", "SQL Fundamentals"]

    def test_explicit_load_filters_collection(
        self, catalog: PlutoContext, metrics_registry: MetricsRegistry
    ) -> None:
        bruno = catalog.authors.single(F.id == 2)
        relation = str(catalog.model.relationship("Author", "courses"))

        before = _accesses(catalog)
        free = catalog.load(bruno, "courses", F.price == 0)

        assert [c.name for c in free] == ["SQL Fundamentals"]
        assert _accesses(catalog) - before == 1
        assert bruno.related("courses") is free
        assert metrics_registry.explicit_loads_total.labels(relation=relation)._value.get() == 1

    def test_explicit_load_replaces_included(self, catalog: PlutoContext) -> None:
        anna = catalog.authors.include("courses").single(F.id == 1)
        assert len(anna.related("courses")) == 2

        catalog.load(anna, "courses", F.price > 60)

        assert [c.name for c in anna.related("courses")] == ["C# Advanced"]

    def test_explicit_load_reference(self, catalog: PlutoContext) -> None:
        course = catalog.courses.single(F.id == 1)

        assert catalog.load(course, "author", F.name == "Bruno Costa") is None
        assert catalog.load(course, "author").name == "Anna Lee"
        assert course.related("author").name == "Anna Lee"

    def test_explicit_load_many_to_many(self, catalog: PlutoContext) -> None:
        tag = catalog.tags.single(F.name == "c#")

        before = _accesses(catalog)
        beginner = catalog.load(tag, "courses", lambda c: c.level == 1)

        assert sorted(c.name for c in beginner) == ["C# Basics", "Python for C# Developers"]
        assert _accesses(catalog) - before == 2

    def test_explicit_load_unknown_relation(self, catalog: PlutoContext) -> None:
        with pytest.raises(SchemaError):
            catalog.load(catalog.authors.first(), "publisher")

    def test_unknown_relation(self, catalog: PlutoContext) -> None:
        with pytest.raises(SchemaError):
            catalog.courses.include("publisher").to_list()

    def test_include_after_select(self, catalog: PlutoContext) -> None:
        with pytest.raises(QueryUsageError):
            catalog.courses.select(F.name).include("author").to_list()


@pytest.mark.unit
class TestExecution:
    """Tests for snapshots and query metrics."""

    def test_one_snapshot_per_execution(self, catalog: PlutoContext) -> None:
        inserted: list[Any] = []

        def insert_once(course: Any) -> bool:
            if not inserted:
                author = Author(name="Late Author")
                catalog.store.insert(author)
                inserted.append(author)
            return True

        rows = catalog.courses.filter(insert_once).cross_join(catalog.authors).to_list()

        assert len(rows) == 20
        assert catalog.authors.count() == 5

    def test_query_metrics(
        self, catalog: PlutoContext, metrics_registry: MetricsRegistry
    ) -> None:
        catalog.courses.to_list()
        with pytest.raises(QueryUsageError):
            catalog.courses.select(F.name).include("tags").to_list()

        assert metrics_registry.queries_total.labels(status="success")._value.get() == 1
        assert metrics_registry.queries_total.labels(status="error")._value.get() == 1

    def test_options_from_config(self, catalog: PlutoContext) -> None:
        assert catalog.executor.options.loading_mode is LoadingMode.LAZY
        assert catalog.executor.options.sql_dialect == "sqlite"
