"""Fluent entity configuration.

Entity types are configured with chainable calls and compiled into an
immutable Model:

    course = EntityTypeConfiguration(Course)
    course.to_table("Courses").has_key("id")
    course.property("name").is_required().has_max_length(255)
    (course.has_required("author", Author)
        .with_many("courses")
        .has_foreign_key("author_id")
        .will_cascade_on_delete(False))

    model = ModelBuilder().add(course).build()

No relationship cascades unless configured to. A blocked delete raises
ReferentialIntegrityViolation.
"""

from __future__ import annotations

from typing import Any, Self

from pluto_orm.domain.exceptions import SchemaError
from pluto_orm.domain.value_objects.model import (
    EntityType,
    ForeignKey,
    Model,
    PropertyRule,
    Relationship,
)
from pluto_orm.domain.value_objects.tracking_types import RelationKind


class PropertyConfiguration:
    """Rules for one property."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._required = False
        self._max_length: int | None = None
        self._min_value: float | None = None
        self._allowed: frozenset[Any] | None = None
        self._unique = False

    def is_required(self) -> Self:
        self._required = True
        return self

    def is_optional(self) -> Self:
        self._required = False
        return self

    def has_max_length(self, length: int) -> Self:
        if length <= 0:
            raise ValueError(f"max length must be positive, got {length}")
        self._max_length = length
        return self

    def has_min_value(self, value: float) -> Self:
        self._min_value = value
        return self

    def has_allowed_values(self, *values: Any) -> Self:
        self._allowed = frozenset(values)
        return self

    def is_unique(self) -> Self:
        self._unique = True
        return self

    def build(self) -> PropertyRule:
        return PropertyRule(
            name=self._name,
            required=self._required,
            max_length=self._max_length,
            min_value=self._min_value,
            allowed_values=self._allowed,
            unique=self._unique,
        )


class _NavigationConfiguration:
    """Common state for relationship builders."""

    def __init__(self, source: type, navigation: str, target: type, required: bool) -> None:
        self._source = source.__name__
        self._navigation = navigation
        self._target = target.__name__
        self._required = required
        self._inverse: str | None = None
        self._cascade = False

    def will_cascade_on_delete(self, cascade: bool = True) -> Self:
        self._cascade = cascade
        return self

    def build(self) -> tuple[list[Relationship], list[ForeignKey]]:
        raise NotImplementedError


class ReferenceNavigationConfiguration(_NavigationConfiguration):
    """Builder started by has_required()/has_optional()."""

    def __init__(self, source: type, navigation: str, target: type, required: bool) -> None:
        super().__init__(source, navigation, target, required)
        self._foreign_key: str | None = None
        self._shared_key = False

    def with_many(self, inverse: str | None = None) -> Self:
        """Many sources reference one target (Course -> Author)."""
        self._inverse = inverse
        return self

    def with_required_principal(self, inverse: str | None = None) -> Self:
        """One-to-one where the source is principal and the target shares its key."""
        self._inverse = inverse
        self._shared_key = True
        return self

    def has_foreign_key(self, prop: str) -> Self:
        self._foreign_key = prop
        return self

    def build(self) -> tuple[list[Relationship], list[ForeignKey]]:
        name = f"{self._source}.{self._navigation}"
        if self._shared_key:
            relationships = [
                Relationship(self._source, self._navigation, self._target, RelationKind.SHARED_KEY)
            ]
            if self._inverse:
                relationships.append(
                    Relationship(
                        self._target, self._inverse, self._source,
                        RelationKind.REFERENCE, foreign_key="id",
                    )
                )
            fk = ForeignKey(
                name=name,
                dependent=self._target,
                properties=("id",),
                principal=self._source,
                required=True,
                cascade_on_delete=self._cascade,
            )
            return relationships, [fk]

        if self._foreign_key is None:
            raise SchemaError(f"Relationship {name} needs has_foreign_key()")
        relationships = [
            Relationship(
                self._source, self._navigation, self._target,
                RelationKind.REFERENCE, foreign_key=self._foreign_key,
            )
        ]
        if self._inverse:
            relationships.append(
                Relationship(
                    self._target, self._inverse, self._source,
                    RelationKind.COLLECTION, foreign_key=self._foreign_key,
                )
            )
        fk = ForeignKey(
            name=name,
            dependent=self._source,
            properties=(self._foreign_key,),
            principal=self._target,
            required=self._required,
            cascade_on_delete=self._cascade,
        )
        return relationships, [fk]


class CollectionNavigationConfiguration(_NavigationConfiguration):
    """Builder started by has_many()."""

    def __init__(self, source: type, navigation: str, target: type) -> None:
        super().__init__(source, navigation, target, required=False)
        self._many_to_many = False
        self._foreign_key: str | None = None
        self._join: str | None = None
        self._left_key: str | None = None
        self._right_key: str | None = None

    def with_required(self, inverse: str | None = None) -> Self:
        """One source owns many targets; each target requires its source."""
        self._inverse = inverse
        self._required = True
        return self

    def with_many(self, inverse: str | None = None) -> Self:
        """Many-to-many; pair rows live in the entity given to map()."""
        self._inverse = inverse
        self._many_to_many = True
        return self

    def has_foreign_key(self, prop: str) -> Self:
        self._foreign_key = prop
        return self

    def map(self, join_entity: type, left_key: str, right_key: str) -> Self:
        self._join = join_entity.__name__
        self._left_key = left_key
        self._right_key = right_key
        return self

    def build(self) -> tuple[list[Relationship], list[ForeignKey]]:
        name = f"{self._source}.{self._navigation}"
        if not self._many_to_many:
            if self._foreign_key is None:
                raise SchemaError(f"Relationship {name} needs has_foreign_key()")
            relationships = [
                Relationship(
                    self._source, self._navigation, self._target,
                    RelationKind.COLLECTION, foreign_key=self._foreign_key,
                )
            ]
            if self._inverse:
                relationships.append(
                    Relationship(
                        self._target, self._inverse, self._source,
                        RelationKind.REFERENCE, foreign_key=self._foreign_key,
                    )
                )
            fk = ForeignKey(
                name=name,
                dependent=self._target,
                properties=(self._foreign_key,),
                principal=self._source,
                required=self._required,
                cascade_on_delete=self._cascade,
            )
            return relationships, [fk]

        if self._join is None:
            raise SchemaError(f"Many-to-many relationship {name} needs map()")
        relationships = [
            Relationship(
                self._source, self._navigation, self._target, RelationKind.MANY_TO_MANY,
                join_entity=self._join, left_key=self._left_key, right_key=self._right_key,
            )
        ]
        if self._inverse:
            relationships.append(
                Relationship(
                    self._target, self._inverse, self._source, RelationKind.MANY_TO_MANY,
                    join_entity=self._join, left_key=self._right_key, right_key=self._left_key,
                )
            )
        fks = [
            ForeignKey(
                name=f"{self._join}.{self._left_key}",
                dependent=self._join,
                properties=(self._left_key,),
                principal=self._source,
                cascade_on_delete=self._cascade,
            ),
            ForeignKey(
                name=f"{self._join}.{self._right_key}",
                dependent=self._join,
                properties=(self._right_key,),
                principal=self._target,
                cascade_on_delete=self._cascade,
            ),
        ]
        return relationships, fks


class EntityTypeConfiguration:
    """Fluent configuration of one entity class."""

    def __init__(self, entity_type: type) -> None:
        self.entity_type = entity_type
        self._table = f"{entity_type.__name__}s"
        self._key: tuple[str, ...] = ("id",)
        self._properties: dict[str, PropertyConfiguration] = {}
        self._navigations: list[_NavigationConfiguration] = []

    # Accessors come before property(), which shadows the builtin in this class body
    @property
    def table(self) -> str:
        return self._table

    @property
    def key(self) -> tuple[str, ...]:
        return self._key

    @property
    def navigations(self) -> list[_NavigationConfiguration]:
        return list(self._navigations)

    def to_table(self, name: str) -> Self:
        self._table = name
        return self

    def has_key(self, *props: str) -> Self:
        if not props:
            raise ValueError("has_key() needs at least one property")
        self._key = props
        return self

    def property(self, name: str) -> PropertyConfiguration:
        if name not in self._properties:
            self._properties[name] = PropertyConfiguration(name)
        return self._properties[name]

    def has_required(self, navigation: str, target: type) -> ReferenceNavigationConfiguration:
        nav = ReferenceNavigationConfiguration(self.entity_type, navigation, target, required=True)
        self._navigations.append(nav)
        return nav

    def has_optional(self, navigation: str, target: type) -> ReferenceNavigationConfiguration:
        nav = ReferenceNavigationConfiguration(self.entity_type, navigation, target, required=False)
        self._navigations.append(nav)
        return nav

    def has_many(self, navigation: str, target: type) -> CollectionNavigationConfiguration:
        nav = CollectionNavigationConfiguration(self.entity_type, navigation, target)
        self._navigations.append(nav)
        return nav

    def rules(self) -> dict[str, PropertyRule]:
        return {name: prop.build() for name, prop in self._properties.items()}


class ModelBuilder:
    """Collects entity configurations and compiles them into a Model."""

    def __init__(self) -> None:
        self._configurations: dict[type, EntityTypeConfiguration] = {}

    def entity(self, entity_type: type) -> EntityTypeConfiguration:
        """Get or create the configuration of an entity class."""
        if entity_type not in self._configurations:
            self._configurations[entity_type] = EntityTypeConfiguration(entity_type)
        return self._configurations[entity_type]

    def add(self, configuration: EntityTypeConfiguration) -> Self:
        self._configurations[configuration.entity_type] = configuration
        return self

    def build(self) -> Model:
        relationships: list[Relationship] = []
        foreign_keys: list[ForeignKey] = []
        for config in self._configurations.values():
            for nav in config.navigations:
                rels, fks = nav.build()
                relationships.extend(rels)
                foreign_keys.extend(fks)

        names = {cls.__name__ for cls in self._configurations}
        for fk in foreign_keys:
            for entity in (fk.dependent, fk.principal):
                if entity not in names:
                    raise SchemaError(f"{fk.name} references unconfigured entity {entity}")

        entity_types = []
        for cls, config in self._configurations.items():
            # A single key that is also a foreign key is copied from the principal
            borrowed = any(
                fk.dependent == cls.__name__ and fk.properties == config.key
                for fk in foreign_keys
            )
            entity_types.append(
                EntityType(
                    name=cls.__name__,
                    cls=cls,
                    table=config.table,
                    key=config.key,
                    rules=config.rules(),
                    identity=len(config.key) == 1 and not borrowed,
                )
            )
        return Model(entity_types, relationships, foreign_keys)
