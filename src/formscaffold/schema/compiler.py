"""Storage schema compiler.

Turns an entity descriptor into idempotent DDL: the table (implicit columns
first, then declared fields in order), one index per field that asks for it,
and a trigger that refreshes ``updated_at`` on every row update. Every
statement can be applied repeatedly with the same end result.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from sqlalchemy import (
    DDL,
    REAL,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Double,
    Index,
    Integer,
    MetaData,
    Numeric,
    SmallInteger,
    String,
    Table,
    Text,
    UniqueConstraint,
    literal,
    text,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Dialect
from sqlalchemy.schema import CreateIndex, CreateTable, ExecutableDDLElement
from sqlalchemy.types import TypeEngine

from formscaffold.core.types import EntityDescriptor, FieldDescriptor, StorageType
from formscaffold.schema.descriptor import (
    MAX_IDENTIFIER_LENGTH,
    check_descriptor,
    storage_type_for,
    varchar_length_for,
)

logger = logging.getLogger(__name__)

TOUCH_FUNCTION_NAME = "formscaffold_touch_updated_at"

# Mapping from storage types to SQLAlchemy column types
COLUMN_TYPES: dict[StorageType, Callable[[FieldDescriptor], TypeEngine[Any]]] = {
    StorageType.VARCHAR: lambda f: String(varchar_length_for(f)),
    StorageType.TEXT: lambda f: Text(),
    StorageType.INTEGER: lambda f: Integer(),
    StorageType.BIGINT: lambda f: BigInteger(),
    StorageType.SMALLINT: lambda f: SmallInteger(),
    StorageType.DECIMAL: lambda f: Numeric(f.storage.precision, f.storage.scale),
    StorageType.NUMERIC: lambda f: Numeric(f.storage.precision, f.storage.scale),
    StorageType.REAL: lambda f: REAL(),
    StorageType.DOUBLE_PRECISION: lambda f: Double(),
    StorageType.DATE: lambda f: Date(),
    StorageType.TIMESTAMP: lambda f: DateTime(timezone=True),
    StorageType.BOOLEAN: lambda f: Boolean(),
}

_DIALECTS: dict[str, Callable[[], Dialect]] = {
    "postgresql": postgresql.dialect,
    "sqlite": sqlite.dialect,
}


def bounded_identifier(name: str) -> str:
    """Shorten a generated identifier to the PostgreSQL limit, deterministically."""
    if len(name) <= MAX_IDENTIFIER_LENGTH:
        return name
    digest = hashlib.sha1(name.encode()).hexdigest()[:8]
    return f"{name[: MAX_IDENTIFIER_LENGTH - 9]}_{digest}"


def resolve_dialect(dialect: Dialect | str) -> Dialect:
    """Accept a SQLAlchemy dialect or its name."""
    if isinstance(dialect, str):
        if dialect not in _DIALECTS:
            raise ValueError(
                f"Unsupported dialect '{dialect}'. Supported: {', '.join(_DIALECTS)}"
            )
        return _DIALECTS[dialect]()
    return dialect


def _server_default(field: FieldDescriptor) -> Any:
    if not field.has_default:
        return None
    if isinstance(field.default, str):
        # Rendered as an escaped SQL string literal by SQLAlchemy
        return field.default
    return literal(field.default)


@dataclass(frozen=True)
class CompiledSchema:
    """DDL derived from one entity descriptor."""

    descriptor: EntityDescriptor
    table: Table
    indexes: tuple[Index, ...]
    trigger_name: str

    @property
    def table_name(self) -> str:
        return self.table.name

    def statements(self, dialect: Dialect | str) -> list[ExecutableDDLElement]:
        """DDL elements in application order for a dialect."""
        resolved = resolve_dialect(dialect)
        elements: list[ExecutableDDLElement] = [CreateTable(self.table, if_not_exists=True)]
        elements.extend(CreateIndex(index, if_not_exists=True) for index in self.indexes)
        elements.extend(DDL(sql) for sql in self._trigger_sql(resolved))
        return elements

    def render(self, dialect: Dialect | str) -> str:
        """DDL as SQL text for a dialect."""
        resolved = resolve_dialect(dialect)
        rendered = [
            str(statement.compile(dialect=resolved)).strip()
            for statement in self.statements(resolved)
        ]
        return ";\n\n".join(rendered) + ";\n"

    def _trigger_sql(self, dialect: Dialect) -> list[str]:
        preparer = dialect.identifier_preparer
        table = preparer.format_table(self.table)
        trigger = preparer.quote(self.trigger_name)

        if dialect.name == "postgresql":
            return [
                f"""CREATE OR REPLACE FUNCTION {TOUCH_FUNCTION_NAME}()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql""",
                f"DROP TRIGGER IF EXISTS {trigger} ON {table}",
                f"""CREATE TRIGGER {trigger}
    BEFORE UPDATE ON {table}
    FOR EACH ROW
    EXECUTE FUNCTION {TOUCH_FUNCTION_NAME}()""",
            ]

        # SQLite: fires only when the statement left updated_at untouched
        return [
            f"DROP TRIGGER IF EXISTS {trigger}",
            f"""CREATE TRIGGER {trigger}
    AFTER UPDATE ON {table}
    FOR EACH ROW WHEN NEW.updated_at IS OLD.updated_at
BEGIN
    UPDATE {table} SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
END""",
        ]


def _field_column(field: FieldDescriptor) -> Column[Any]:
    column_type = COLUMN_TYPES[storage_type_for(field)](field)
    return Column(
        field.name,
        column_type,
        nullable=field.is_nullable,
        server_default=_server_default(field),
    )


@lru_cache(maxsize=256)
def compile_schema(descriptor: EntityDescriptor) -> CompiledSchema:
    """Compile (once per descriptor) the storage schema of an entity.

    Raises:
        DescriptorError: If the descriptor fails the startup-time checks
    """
    check_descriptor(descriptor)
    table_name = descriptor.name

    columns: list[Column[Any]] = [
        Column("id", String(36), primary_key=True),
        Column(
            "created_at",
            DateTime(timezone=True),
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
        ),
        Column(
            "updated_at",
            DateTime(timezone=True),
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
        ),
    ]
    columns.extend(_field_column(field) for field in descriptor.fields)

    constraints = [
        UniqueConstraint(field.name, name=bounded_identifier(f"uq_{table_name}_{field.name}"))
        for field in descriptor.fields
        if field.storage.unique
    ]

    # Fresh metadata per compile so descriptors never share table objects
    table = Table(table_name, MetaData(), *columns, *constraints)

    indexes = tuple(
        Index(bounded_identifier(f"idx_{table_name}_{field.name}"), table.c[field.name])
        for field in descriptor.fields
        if field.storage.index
    )

    logger.debug(
        f"Compiled schema for '{table_name}': {len(columns)} columns, {len(indexes)} indexes"
    )
    return CompiledSchema(
        descriptor=descriptor,
        table=table,
        indexes=indexes,
        trigger_name=bounded_identifier(f"trg_{table_name}_updated_at"),
    )
