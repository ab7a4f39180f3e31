"""Pydantic v2 models for entity, field and relation definitions.

Defines the closed set of field kinds, validation rules, visibility levels and
relation kinds, plus the ``EntityDefinition`` that every generator consumes.
Definitions are immutable once parsed.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stackgen.utils import camel_case, kebab_case, pascal_case, pluralize, snake_case


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class FieldKind(str, Enum):
    """Primitive storage kinds a field can have."""
    STRING = "string"
    TEXT = "text"
    BOOL = "bool"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT64 = "float64"
    DECIMAL = "decimal"
    UUID = "uuid"
    DATETIME = "datetime"
    DATE = "date"
    JSON = "json"
    ENUM = "enum"
    FILE = "file"
    IMAGE = "image"


class RuleKind(str, Enum):
    """Validation rule kinds. MIN, MAX and REGEX carry a value."""
    MIN = "min"
    MAX = "max"
    EMAIL = "email"
    URL = "url"
    REGEX = "regex"
    REQUIRED = "required"
    UNIQUE = "unique"


class VisibilityKind(str, Enum):
    """Who may read a field in generated API responses."""
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ADMIN_ONLY = "admin_only"
    ROLES = "roles"


class RelationKind(str, Enum):
    """Relation kinds between entities."""
    BELONGS_TO = "BelongsTo"
    HAS_MANY = "HasMany"
    MANY_TO_MANY = "ManyToMany"


# ---------------------------------------------------------------------------
# Field models
# ---------------------------------------------------------------------------

class FieldType(BaseModel):
    """A field type: a kind plus, for enumerations only, the ordered variants."""
    model_config = ConfigDict(frozen=True)

    kind: FieldKind
    variants: tuple[str, ...] = Field(
        default=(), description="Ordered variant names; only for ENUM"
    )

    @model_validator(mode="after")
    def _check_variants(self) -> "FieldType":
        if self.kind is FieldKind.ENUM and not self.variants:
            raise ValueError("enum type requires at least one variant")
        if self.kind is not FieldKind.ENUM and self.variants:
            raise ValueError(f"{self.kind.value} type does not take variants")
        return self


class ValidationRule(BaseModel):
    """A single validation rule, e.g. ``min=3`` or ``email``."""
    model_config = ConfigDict(frozen=True)

    kind: RuleKind
    value: Optional[Union[int, str]] = None

    def as_context(self) -> dict[str, object]:
        data: dict[str, object] = {"type": self.kind.value}
        if self.value is not None:
            data["value"] = self.value
        return data


class Visibility(BaseModel):
    """Field visibility; ``roles`` is only populated for ``ROLES``."""
    model_config = ConfigDict(frozen=True)

    kind: VisibilityKind = VisibilityKind.PUBLIC
    roles: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_roles(self) -> "Visibility":
        if self.kind is VisibilityKind.ROLES and not self.roles:
            raise ValueError("roles visibility requires at least one role")
        return self


class FieldDefinition(BaseModel):
    """A column-backed field of an entity."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Field name as written, e.g. 'category_id'")
    type: FieldType
    optional: bool = False
    relation_target: Optional[str] = Field(
        default=None, description="Target entity for a foreign-key field"
    )
    validation_rules: tuple[ValidationRule, ...] = ()
    visibility: Visibility = Field(default_factory=Visibility)
    searchable: bool = False


class RelationDefinition(BaseModel):
    """A relation declared on an entity."""
    model_config = ConfigDict(frozen=True)

    kind: RelationKind
    field_name: str
    target_entity: str
    optional: bool = False
    fk_column: Optional[str] = Field(
        default=None, description="Foreign-key column; BelongsTo only"
    )


# ---------------------------------------------------------------------------
# Entity model
# ---------------------------------------------------------------------------

class EntityDefinition(BaseModel):
    """An entity with its ordered fields and relations."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Canonical (PascalCase) entity name")
    fields: tuple[FieldDefinition, ...] = ()
    relations: tuple[RelationDefinition, ...] = ()

    @property
    def snake(self) -> str:
        return snake_case(self.name)

    @property
    def pascal(self) -> str:
        return pascal_case(self.name)

    @property
    def camel(self) -> str:
        return camel_case(self.name)

    @property
    def kebab(self) -> str:
        return kebab_case(self.name)

    @property
    def plural(self) -> str:
        """Plural snake-case form, used for table names and URL segments."""
        return pluralize(self.snake)

    def relations_of(self, kind: RelationKind) -> list[RelationDefinition]:
        return [r for r in self.relations if r.kind is kind]
