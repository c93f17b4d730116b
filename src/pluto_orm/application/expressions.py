"""Field expressions for predicates, keys and projections.

Expressions are small trees that can both be evaluated against a row and be
rendered as SQL:

    F.price > 10
    (F.level == 1) & F.name.contains("C#")
    F.author_id.in_([1, 2])
    ~F.description.is_none()
    F.author.name            # navigation, needs include("author")
    F["author.path"]         # paths whose segments clash with Field attributes

Every expression is callable, so it can be used anywhere a plain function
is accepted. Plain lambdas work too, they just cannot be rendered as SQL.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from pluto_orm.domain.exceptions import QueryUsageError


class Expr:
    """Base class of all expressions."""

    __hash__ = object.__hash__

    def evaluate(self, row: Any) -> Any:
        raise NotImplementedError

    def __call__(self, row: Any) -> Any:
        return self.evaluate(row)

    # Comparisons build trees instead of comparing
    def __eq__(self, other: Any) -> Compare:  # type: ignore[override]
        return Compare("==", self, lift(other))

    def __ne__(self, other: Any) -> Compare:  # type: ignore[override]
        return Compare("!=", self, lift(other))

    def __gt__(self, other: Any) -> Compare:
        return Compare(">", self, lift(other))

    def __ge__(self, other: Any) -> Compare:
        return Compare(">=", self, lift(other))

    def __lt__(self, other: Any) -> Compare:
        return Compare("<", self, lift(other))

    def __le__(self, other: Any) -> Compare:
        return Compare("<=", self, lift(other))

    def __and__(self, other: Expr) -> And:
        return And(self, lift(other))

    def __or__(self, other: Expr) -> Or:
        return Or(self, lift(other))

    def __invert__(self) -> Not:
        return Not(self)

    def contains(self, text: str) -> Match:
        return Match("contains", self, text)

    def startswith(self, text: str) -> Match:
        return Match("startswith", self, text)

    def endswith(self, text: str) -> Match:
        return Match("endswith", self, text)

    def in_(self, values: Iterable[Any]) -> In:
        return In(self, tuple(values))

    def is_none(self) -> IsNone:
        return IsNone(self)


@dataclass(frozen=True, eq=False)
class Field(Expr):
    """Property access by dotted path.

    Each segment is looked up as a mapping key, a loaded relation or an
    attribute, in that order.
    """

    path: str

    def evaluate(self, row: Any) -> Any:
        value = row
        for segment in self.path.split("."):
            if value is None:
                return None
            if isinstance(value, Mapping):
                value = value[segment]
            elif segment in getattr(value, "loaded", {}):
                value = value.loaded[segment]
            else:
                value = getattr(value, segment)
        if callable(value):
            raise QueryUsageError(
                f"F.{self.path} resolves to a method of {type(row).__name__}, not a value"
            )
        return value

    def __getattr__(self, item: str) -> Field:
        if item.startswith("_"):
            raise AttributeError(item)
        return Field(f"{self.path}.{item}")

    def __getitem__(self, item: str) -> Field:
        if not isinstance(item, str):
            raise TypeError(f"Field segments are property names, got {item!r}")
        return Field(f"{self.path}.{item}")

    def __repr__(self) -> str:
        return f"F.{self.path}"


@dataclass(frozen=True, eq=False)
class Const(Expr):
    value: Any

    def evaluate(self, row: Any) -> Any:
        return self.value

    def __repr__(self) -> str:
        return repr(self.value)


_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    ">": lambda a, b: a is not None and b is not None and a > b,
    ">=": lambda a, b: a is not None and b is not None and a >= b,
    "<": lambda a, b: a is not None and b is not None and a < b,
    "<=": lambda a, b: a is not None and b is not None and a <= b,
}


@dataclass(frozen=True, eq=False)
class Compare(Expr):
    op: str
    left: Expr
    right: Expr

    def evaluate(self, row: Any) -> bool:
        return _COMPARATORS[self.op](self.left.evaluate(row), self.right.evaluate(row))

    def __bool__(self) -> bool:
        raise TypeError(
            "Expressions have no truth value; combine them with &, | and ~ "
            "instead of and, or and not"
        )

    def __repr__(self) -> str:
        return f"({self.left!r} {self.op} {self.right!r})"


@dataclass(frozen=True, eq=False)
class Match(Expr):
    """Case-insensitive substring, prefix or suffix test (SQL LIKE)."""

    kind: str
    operand: Expr
    text: str

    def evaluate(self, row: Any) -> bool:
        value = self.operand.evaluate(row)
        if value is None:
            return False
        value, text = str(value).lower(), self.text.lower()
        if self.kind == "contains":
            return text in value
        if self.kind == "startswith":
            return value.startswith(text)
        return value.endswith(text)


@dataclass(frozen=True, eq=False)
class In(Expr):
    operand: Expr
    values: tuple[Any, ...]

    def evaluate(self, row: Any) -> bool:
        return self.operand.evaluate(row) in self.values


@dataclass(frozen=True, eq=False)
class IsNone(Expr):
    operand: Expr

    def evaluate(self, row: Any) -> bool:
        return self.operand.evaluate(row) is None


@dataclass(frozen=True, eq=False)
class And(Expr):
    left: Expr
    right: Expr

    def evaluate(self, row: Any) -> bool:
        return bool(self.left.evaluate(row)) and bool(self.right.evaluate(row))


@dataclass(frozen=True, eq=False)
class Or(Expr):
    left: Expr
    right: Expr

    def evaluate(self, row: Any) -> bool:
        return bool(self.left.evaluate(row)) or bool(self.right.evaluate(row))


@dataclass(frozen=True, eq=False)
class Not(Expr):
    operand: Expr

    def evaluate(self, row: Any) -> bool:
        return not self.operand.evaluate(row)


class _FieldFactory:
    """`F.name` is shorthand for `Field("name")`."""

    def __getattr__(self, item: str) -> Field:
        if item.startswith("_"):
            raise AttributeError(item)
        return Field(item)

    def __getitem__(self, path: str) -> Field:
        return Field(path)


F = _FieldFactory()


def lift(value: Any) -> Expr:
    """Wrap a plain value as a constant expression."""
    if isinstance(value, Expr):
        return value
    if isinstance(value, Enum):
        value = value.value
    return Const(value)


def as_function(value: Any) -> Callable[[Any], Any]:
    """Callable for a key, predicate or projection.

    Accepts an expression, a property name or any callable.
    """
    if isinstance(value, str):
        return Field(value)
    if callable(value):
        return value
    raise TypeError(f"Expected an expression, a property name or a callable, got {value!r}")
