"""SQL rendering of query plans using sqlglot.

Shows the SQL a relational backend would run for a query, the way an ORM
logs its generated statements. Only plans built from field expressions
over a single entity set translate:

    ctx.courses.filter(F.level == 1).sort(F.name).take(10).to_sql()
    -> SELECT Id, Name, ... FROM Courses WHERE Level = 1 ORDER BY Name LIMIT 10

Property names are mapped to the physical columns of the snapshot the
query would run against, so a renamed column renders under its new name.

References:
    - sqlglot documentation: https://sqlglot.com/
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import sqlglot
from sqlglot import exp

from pluto_orm.application.expressions import (
    And,
    Compare,
    Const,
    Expr,
    Field,
    In,
    IsNone,
    Match,
    Not,
    Or,
)
from pluto_orm.application.plan import (
    Distinct,
    Filter,
    Include,
    PlanNode,
    Scan,
    Select,
    Skip,
    Sort,
    Take,
)
from pluto_orm.domain.exceptions import UntranslatableQuery
from pluto_orm.domain.services.entity_store import StoreSnapshot
from pluto_orm.domain.value_objects import Model, TableSchema

_COMPARISONS: dict[str, type[exp.Expression]] = {
    "==": exp.EQ,
    "!=": exp.NEQ,
    ">": exp.GT,
    ">=": exp.GTE,
    "<": exp.LT,
    "<=": exp.LTE,
}

_LIKE_PATTERNS = {
    "contains": "%{}%",
    "startswith": "{}%",
    "endswith": "%{}",
}


class SqlRenderer:
    """Renders plans as SQL text for one model and snapshot."""

    def __init__(self, model: Model, snapshot: StoreSnapshot, dialect: str = "sqlite") -> None:
        """Initialize the renderer.

        Args:
            model: The entity model.
            snapshot: Snapshot whose table layout names the columns.
            dialect: sqlglot dialect of the output (default: sqlite).
        """
        self._model = model
        self._snapshot = snapshot
        self._dialect = dialect

    def render(self, plan: PlanNode) -> str:
        """Render a plan as a single SELECT statement.

        Raises:
            UntranslatableQuery: The plan cannot be expressed as one SELECT.
            SchemaError: The entity has no table in the snapshot.
        """
        nodes = list(plan.chain())[::-1]
        scan = nodes[0]
        if not isinstance(scan, Scan):
            raise UntranslatableQuery(f"Plans must start with a scan, got {type(scan).__name__}")
        schema = self._snapshot.schema(self._model.entity(scan.entity).name)

        conditions: list[exp.Expression] = []
        order: list[exp.Expression] = []
        columns: list[exp.Expression] | None = None
        distinct = False
        offset = 0
        limit: int | None = None

        for node in nodes[1:]:
            if isinstance(node, Include):
                continue
            paged = offset > 0 or limit is not None

            if isinstance(node, Filter):
                if columns is not None or paged:
                    raise UntranslatableQuery("filter() after select(), skip() or take()")
                conditions.append(self._condition(node.predicate, schema))

            elif isinstance(node, Sort):
                if columns is not None or paged:
                    raise UntranslatableQuery("sort() after select(), skip() or take()")
                # A later sort is the primary order; earlier keys break its ties.
                # NULLs sort first ascending, last descending, as in the executor.
                order = [
                    exp.Ordered(
                        this=self._value(k.key, schema),
                        desc=k.descending,
                        nulls_first=not k.descending,
                    )
                    for k in node.keys
                ] + order

            elif isinstance(node, Select):
                if columns is not None or node.flatten:
                    raise UntranslatableQuery("Only one plain select() of fields translates")
                columns = self._projection(node.projection, schema)

            elif isinstance(node, Distinct):
                if paged:
                    raise UntranslatableQuery("distinct() after skip() or take()")
                distinct = True

            elif isinstance(node, Skip):
                offset += node.count
                if limit is not None:
                    limit = max(0, limit - node.count)

            elif isinstance(node, Take):
                limit = node.count if limit is None else min(limit, node.count)

            else:
                raise UntranslatableQuery(f"{type(node).__name__} has no single-table SQL form")

        query = sqlglot.select(*(columns or [exp.column(c) for c in schema.column_names]))
        query = query.from_(schema.name)
        if distinct:
            query = query.distinct()
        if conditions:
            query = query.where(exp.and_(*conditions))
        if order:
            query = query.order_by(*order)
        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)
        return query.sql(dialect=self._dialect)

    def _projection(self, projection: Any, schema: TableSchema) -> list[exp.Expression]:
        if isinstance(projection, Field):
            return [self._column(projection, schema)]
        raise UntranslatableQuery("select() must project a single field expression")

    def _condition(self, expr: Any, schema: TableSchema) -> exp.Expression:
        if not isinstance(expr, Expr):
            raise UntranslatableQuery("Callables cannot be translated; use field expressions")

        if isinstance(expr, Compare):
            left = self._value(expr.left, schema)
            right = self._value(expr.right, schema)
            if isinstance(right, exp.Null) and expr.op in ("==", "!="):
                is_null = exp.Is(this=left, expression=exp.Null())
                return is_null if expr.op == "==" else exp.not_(is_null)
            return _COMPARISONS[expr.op](this=left, expression=right)
        elif isinstance(expr, Match):
            pattern = _LIKE_PATTERNS[expr.kind].format(expr.text)
            return exp.Like(this=self._value(expr.operand, schema), expression=exp.convert(pattern))
        elif isinstance(expr, In):
            return exp.In(
                this=self._value(expr.operand, schema),
                expressions=[_literal(v) for v in expr.values],
            )
        elif isinstance(expr, IsNone):
            return exp.Is(this=self._value(expr.operand, schema), expression=exp.Null())
        elif isinstance(expr, And):
            return exp.and_(self._condition(expr.left, schema), self._condition(expr.right, schema))
        elif isinstance(expr, Or):
            return exp.or_(self._condition(expr.left, schema), self._condition(expr.right, schema))
        elif isinstance(expr, Not):
            return exp.not_(self._condition(expr.operand, schema))
        elif isinstance(expr, Field):
            return self._column(expr, schema)

        raise UntranslatableQuery(f"{type(expr).__name__} cannot be used as a condition")

    def _value(self, expr: Any, schema: TableSchema) -> exp.Expression:
        if isinstance(expr, Field):
            return self._column(expr, schema)
        if isinstance(expr, Const):
            return _literal(expr.value)
        if isinstance(expr, Expr):
            return self._condition(expr, schema)
        raise UntranslatableQuery("Callables cannot be translated; use field expressions")

    def _column(self, field: Field, schema: TableSchema) -> exp.Expression:
        if "." in field.path:
            raise UntranslatableQuery(f"Navigation {field!r} needs a join and does not translate")
        return exp.column(schema.column_for(field.path))


def _literal(value: Any) -> exp.Expression:
    if isinstance(value, Enum):
        value = value.value
    return exp.convert(value)
