"""Compiled entity model.

The Model is the immutable result of fluent configuration: per-entity
property rules, navigation relationships and the foreign keys that the
entity store enforces on every write.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Iterable

from pluto_orm.domain.exceptions import ConstraintViolation, SchemaError
from pluto_orm.domain.value_objects.identifiers import EntityKey
from pluto_orm.domain.value_objects.tracking_types import RelationKind


@dataclass(frozen=True, slots=True)
class PropertyRule:
    """Validation rule for one property."""

    name: str
    required: bool = False
    max_length: int | None = None
    min_value: float | None = None
    allowed_values: frozenset[Any] | None = None
    unique: bool = False

    def check(self, entity: str, value: Any) -> None:
        """Raise ConstraintViolation if `value` breaks the rule."""
        if value is None:
            if self.required:
                raise ConstraintViolation(
                    f"{entity}.{self.name} is required",
                    entity=entity,
                    property_name=self.name,
                )
            return
        try:
            self._check_value(entity, value)
        except TypeError as e:
            raise ConstraintViolation(
                f"{entity}.{self.name} has the wrong type: {value!r}",
                entity=entity,
                property_name=self.name,
            ) from e

    def _check_value(self, entity: str, value: Any) -> None:
        if self.max_length is not None and len(value) > self.max_length:
            raise ConstraintViolation(
                f"{entity}.{self.name} exceeds {self.max_length} characters ({len(value)})",
                entity=entity,
                property_name=self.name,
            )
        if self.min_value is not None and value < self.min_value:
            raise ConstraintViolation(
                f"{entity}.{self.name} must be >= {self.min_value}, got {value!r}",
                entity=entity,
                property_name=self.name,
            )
        if self.allowed_values is not None and value not in self.allowed_values:
            raise ConstraintViolation(
                f"{entity}.{self.name} must be one of {sorted(self.allowed_values)}, got {value!r}",
                entity=entity,
                property_name=self.name,
            )


@dataclass(frozen=True, slots=True)
class ForeignKey:
    """A dependent -> principal reference enforced by the store.

    Attributes:
        name: Readable name ("Course.author")
        dependent: Entity holding the key values
        properties: Dependent properties, in principal key order
        principal: Referenced entity
        required: Whether the reference may be None
        cascade_on_delete: Delete dependents with their principal instead of blocking
    """

    name: str
    dependent: str
    properties: tuple[str, ...]
    principal: str
    required: bool = True
    cascade_on_delete: bool = False


@dataclass(frozen=True, slots=True)
class Relationship:
    """A navigation from one entity to related entities.

    REFERENCE: `foreign_key` is the property on the source.
    COLLECTION: `foreign_key` is the property on the target.
    SHARED_KEY: target's key equals source's key.
    MANY_TO_MANY: `join_entity` rows pair `left_key` (source) with `right_key` (target).
    """

    source: str
    name: str
    target: str
    kind: RelationKind
    foreign_key: str | None = None
    join_entity: str | None = None
    left_key: str | None = None
    right_key: str | None = None

    @property
    def is_collection(self) -> bool:
        return self.kind in (RelationKind.COLLECTION, RelationKind.MANY_TO_MANY)

    def __str__(self) -> str:
        return f"{self.source}.{self.name}"


@dataclass(frozen=True)
class EntityType:
    """Mapping metadata for one entity class."""

    name: str
    cls: type
    table: str
    key: tuple[str, ...]
    rules: dict[str, PropertyRule] = field(default_factory=dict)
    identity: bool = False

    def property_names(self) -> tuple[str, ...]:
        """Persisted properties of the entity class (navigation state excluded)."""
        return tuple(f.name for f in fields(self.cls) if f.init)

    def key_value(self, entity: Any) -> Any:
        """Primary key value of an instance; a tuple for composite keys."""
        if len(self.key) == 1:
            return getattr(entity, self.key[0])
        return tuple(getattr(entity, k) for k in self.key)

    def key_of(self, entity: Any) -> EntityKey | None:
        """EntityKey of an instance, or None while its key is unassigned."""
        value = self.key_value(entity)
        if value is None or (isinstance(value, tuple) and None in value):
            return None
        return EntityKey(self.name, value)

    def values_of(self, entity: Any) -> dict[str, Any]:
        """Current persisted property values of an instance."""
        return {name: getattr(entity, name) for name in self.property_names()}


class Model:
    """Immutable, queryable view over the configured entity types."""

    def __init__(
        self,
        entity_types: Iterable[EntityType],
        relationships: Iterable[Relationship],
        foreign_keys: Iterable[ForeignKey],
    ) -> None:
        self._types = {t.name: t for t in entity_types}
        self._by_class = {t.cls: t for t in self._types.values()}
        self._relationships = {(r.source, r.name): r for r in relationships}
        self._foreign_keys = tuple(foreign_keys)

    @property
    def entity_types(self) -> tuple[EntityType, ...]:
        return tuple(self._types.values())

    @property
    def foreign_keys(self) -> tuple[ForeignKey, ...]:
        return self._foreign_keys

    def entity(self, ref: str | type | Any) -> EntityType:
        """Look up an entity type by name, class or instance."""
        if isinstance(ref, str):
            found = self._types.get(ref)
        elif isinstance(ref, type):
            found = self._by_class.get(ref)
        else:
            found = self._by_class.get(type(ref))
        if found is None:
            raise SchemaError(f"Entity type {ref!r} is not part of the model")
        return found

    def relationship(self, source: str, name: str) -> Relationship:
        """Look up a navigation by source entity name and navigation name."""
        try:
            return self._relationships[(source, name)]
        except KeyError:
            raise SchemaError(f"{source} has no relation named '{name}'") from None

    def relationships_of(self, source: str) -> list[Relationship]:
        return [r for (s, _), r in self._relationships.items() if s == source]

    def references_from(self, dependent: str) -> list[ForeignKey]:
        """Foreign keys held by `dependent`."""
        return [fk for fk in self._foreign_keys if fk.dependent == dependent]

    def references_to(self, principal: str) -> list[ForeignKey]:
        """Foreign keys pointing at `principal`."""
        return [fk for fk in self._foreign_keys if fk.principal == principal]
