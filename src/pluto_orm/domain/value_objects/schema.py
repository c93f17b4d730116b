"""Physical table schema.

A TableSchema records how one entity type is laid out in the store: the
physical table name, the ordered property -> column mapping and the key.
Schemas are created and changed only by migrations; entity code always
goes through the property names, so renaming a column never touches it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from pluto_orm.domain.exceptions import SchemaError


@dataclass(frozen=True, slots=True)
class TableSchema:
    """Layout of one table.

    Attributes:
        name: Physical table name (e.g. "Courses")
        entity: Entity type stored in the table (e.g. "Course")
        columns: Ordered (property, column) pairs
        key: Key property names
    """

    name: str
    entity: str
    columns: tuple[tuple[str, str], ...]
    key: tuple[str, ...] = ("id",)

    def __post_init__(self) -> None:
        """Validate the layout."""
        props = [p for p, _ in self.columns]
        cols = [c for _, c in self.columns]
        if len(set(props)) != len(props):
            raise SchemaError(f"Duplicate property in table {self.name}: {props}")
        if len(set(cols)) != len(cols):
            raise SchemaError(f"Duplicate column in table {self.name}: {cols}")
        missing = [k for k in self.key if k not in props]
        if missing:
            raise SchemaError(f"Key properties {missing} have no column in {self.name}")

    @property
    def properties(self) -> tuple[str, ...]:
        return tuple(p for p, _ in self.columns)

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c for _, c in self.columns)

    def column_for(self, prop: str) -> str:
        """Physical column of a property."""
        for p, c in self.columns:
            if p == prop:
                return c
        raise SchemaError(f"Property '{prop}' is not mapped in table {self.name}")

    def has_column(self, column: str) -> bool:
        return column in self.column_names

    def renamed(self, old: str, new: str) -> TableSchema:
        """Return a copy with column `old` renamed to `new`."""
        if not self.has_column(old):
            raise SchemaError(f"Column '{old}' does not exist in table {self.name}")
        if self.has_column(new):
            raise SchemaError(f"Column '{new}' already exists in table {self.name}")
        columns = tuple((p, new if c == old else c) for p, c in self.columns)
        return replace(self, columns=columns)

    def with_column(self, prop: str, column: str) -> TableSchema:
        """Return a copy with a column appended."""
        return replace(self, columns=(*self.columns, (prop, column)))

    def without_column(self, column: str) -> TableSchema:
        """Return a copy with a column removed."""
        if not self.has_column(column):
            raise SchemaError(f"Column '{column}' does not exist in table {self.name}")
        prop = next(p for p, c in self.columns if c == column)
        if prop in self.key:
            raise SchemaError(f"Cannot drop key column '{column}' from table {self.name}")
        return replace(self, columns=tuple((p, c) for p, c in self.columns if c != column))
