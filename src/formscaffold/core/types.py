"""Core types for formscaffold.

An entity descriptor is the single source of truth: the validator, the SQL
schema and the CRUD statements are all derived from it. Descriptors are frozen
and use tuples for their collections so they are hashable and can key the
compiled-artifact caches.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Columns owned by the engine, present on every table in this order
IMPLICIT_COLUMNS: tuple[str, ...] = ("id", "created_at", "updated_at")


class FieldKind(StrEnum):
    """Closed set of semantic field kinds."""

    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"
    SINGLE_CHOICE = "single_choice"
    FILE_REFERENCE = "file_reference"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid field kind values."""
        return [k.value for k in cls]


class StorageType(StrEnum):
    """Column types a field may override its kind's default with."""

    VARCHAR = "VARCHAR"
    TEXT = "TEXT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    SMALLINT = "SMALLINT"
    DECIMAL = "DECIMAL"
    NUMERIC = "NUMERIC"
    REAL = "REAL"
    DOUBLE_PRECISION = "DOUBLE_PRECISION"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"
    BOOLEAN = "BOOLEAN"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid storage type values."""
        return [t.value for t in cls]


class TextFormat(StrEnum):
    """Well-known string formats."""

    EMAIL = "email"
    URL = "url"


class SortDirection(StrEnum):
    """Ordering direction for list queries."""

    ASC = "asc"
    DESC = "desc"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid sort direction values."""
        return [d.value for d in cls]


class Refinement(BaseModel):
    """A custom predicate run after the built-in checks of a field."""

    check: Callable[[Any], bool]
    message: str

    model_config = ConfigDict(frozen=True)


class ValidationConstraints(BaseModel):
    """Kind-specific validation rules for a field."""

    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    pattern: str | None = Field(default=None, description="Regex searched within the value")
    format: TextFormat | None = None
    integer_only: bool = False
    positive: bool = False
    minimum: int | float | None = None
    maximum: int | float | None = None
    options: tuple[str, ...] = Field(default=(), description="Allowed single-choice values")
    refine: tuple[Refinement, ...] = ()

    model_config = ConfigDict(frozen=True, extra="forbid")

    def declared(self) -> list[str]:
        """Names of the constraints that were actually set."""
        declared = []
        for name, field in type(self).model_fields.items():
            if getattr(self, name) != field.default:
                declared.append(name)
        return declared


class StorageConstraints(BaseModel):
    """Kind-specific storage rules for a field."""

    type: StorageType | None = Field(default=None, description="Overrides the kind's column type")
    length: int | None = Field(default=None, gt=0)
    precision: int | None = Field(default=None, gt=0)
    scale: int | None = Field(default=None, ge=0)
    nullable: bool | None = Field(
        default=None, description="Defaults to nullable for optional fields"
    )
    unique: bool = False
    index: bool = False
    default: bool | int | float | str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class FieldDescriptor(BaseModel):
    """One logical column of an entity."""

    name: str
    kind: FieldKind
    required: bool = False
    validation: ValidationConstraints = Field(default_factory=ValidationConstraints)
    storage: StorageConstraints = Field(default_factory=StorageConstraints)

    # Presentation hints, ignored by the compilers
    label: str | None = None
    description: str | None = None
    placeholder: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def has_default(self) -> bool:
        return self.storage.default is not None

    @property
    def default(self) -> Any:
        return self.storage.default

    @property
    def is_nullable(self) -> bool:
        """Whether the column accepts NULL."""
        if self.storage.nullable is not None:
            return self.storage.nullable
        return not self.required


class EntityDescriptor(BaseModel):
    """Declarative description of an entity and its table."""

    name: str = Field(..., description="Table name, letters, digits and underscore only")
    fields: tuple[FieldDescriptor, ...] = ()
    title: str | None = None
    description: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def column_names(self) -> list[str]:
        """Implicit columns followed by declared fields, in table order."""
        return [*IMPLICIT_COLUMNS, *self.field_names]

    def get_field(self, name: str) -> FieldDescriptor | None:
        for field in self.fields:
            if field.name == name:
                return field
        return None


class Violation(BaseModel):
    """A single field-level validation failure."""

    field: str
    reason: str
    code: str = "invalid"

    model_config = ConfigDict(frozen=True)


class QueryResult(BaseModel):
    """Result from a list query."""

    records: list[dict[str, Any]]
    total_count: int
    limit: int
    offset: int
    has_more: bool = False


class ColumnInfo(BaseModel):
    """A live column as reported by the database."""

    name: str
    type: str
    nullable: bool
    default: str | None = None


class TableInfo(BaseModel):
    """Live table structure as reported by the database."""

    name: str
    columns: list[ColumnInfo]
    indexes: list[str] = Field(default_factory=list)
    row_count: int = 0
    inspected_at: datetime | None = None
