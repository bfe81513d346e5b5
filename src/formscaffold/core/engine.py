"""Main FormScaffold facade and Entity handle."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.engine import URL

from formscaffold.core.config import DatabaseSettings
from formscaffold.core.connection import DatabaseConnection
from formscaffold.core.types import EntityDescriptor, QueryResult, SortDirection, TableInfo
from formscaffold.data.engine import DEFAULT_ORDER_BY, MAX_PAGE_SIZE, DataAccessEngine
from formscaffold.schema.compiler import CompiledSchema, compile_schema
from formscaffold.schema.descriptor import check_descriptor, load_descriptor
from formscaffold.schema.sync import SchemaSynchronizer
from formscaffold.validation.compiler import ValidationResult, compile_validator

logger = logging.getLogger(__name__)


class Entity:
    """An entity bound to a store.

    Provides the CRUD surface for one descriptor. Every call synchronizes the
    table first, so a fresh database needs no migration step.
    """

    def __init__(self, descriptor: EntityDescriptor, store: FormScaffold) -> None:
        """Initialize entity.

        Args:
            descriptor: Checked entity descriptor
            store: Parent FormScaffold instance
        """
        self._descriptor = descriptor
        self._store = store

    @property
    def name(self) -> str:
        """Get entity name."""
        return self._descriptor.name

    @property
    def descriptor(self) -> EntityDescriptor:
        return self._descriptor

    def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Validate and insert a record.

        Args:
            data: Record data (field: value pairs)

        Returns:
            The stored record, including id, created_at and updated_at
        """
        return self._store.data.create(self._descriptor, data)

    def get(
        self,
        filters: Mapping[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
        order_by: str = DEFAULT_ORDER_BY,
        direction: SortDirection | str = SortDirection.DESC,
    ) -> QueryResult:
        """List records with exact-equality filters, newest first by default."""
        return self._store.data.get(
            self._descriptor,
            filters=filters,
            limit=limit,
            offset=offset,
            order_by=order_by,
            direction=direction,
        )

    def get_by_id(self, record_id: Any) -> dict[str, Any] | None:
        """Find a record by ID.

        Args:
            record_id: Record ID

        Returns:
            Record dict or None if not found
        """
        return self._store.data.get_by_id(self._descriptor, record_id)

    def update(self, record_id: Any, data: Mapping[str, Any]) -> dict[str, Any] | None:
        """Update some fields of a record.

        Args:
            record_id: Record ID to update
            data: Fields to update

        Returns:
            Updated record dict, or None if not found
        """
        return self._store.data.update(self._descriptor, record_id, data)

    def delete(self, record_id: Any) -> bool:
        """Delete a record.

        Returns:
            True if deleted, False if not found
        """
        return self._store.data.delete(self._descriptor, record_id)

    def count(self, filters: Mapping[str, Any] | None = None) -> int:
        """Count records matching the filters."""
        return self._store.data.count(self._descriptor, filters)

    def validate(self, data: Mapping[str, Any], partial: bool = False) -> ValidationResult:
        """Check input without touching storage."""
        return compile_validator(self._descriptor).validate(data, partial=partial)

    def sync(self) -> CompiledSchema:
        """Apply the entity's DDL now instead of on first use."""
        return self._store.synchronizer.ensure(self._descriptor)

    def ddl(self, dialect: str | None = None) -> str:
        """Render the entity's DDL, for the connected dialect by default."""
        return compile_schema(self._descriptor).render(dialect or self._store.connection.dialect)

    def __repr__(self) -> str:
        return f"Entity({self.name!r})"


class FormScaffold:
    """Declarative entities over PostgreSQL or SQLite.

    Example:
        store = FormScaffold("sqlite:///:memory:")
        books = store.entity(
            {
                "name": "books",
                "fields": [
                    {"name": "title", "kind": "short_text", "required": True},
                    {
                        "name": "isbn",
                        "kind": "short_text",
                        "required": True,
                        "storage": {"unique": True, "index": True},
                    },
                ],
            }
        )
        book = books.create({"title": "Dune", "isbn": "9780441013593"})
        books.get(filters={"isbn": "9780441013593"})
    """

    def __init__(
        self,
        database: str | URL | DatabaseSettings,
        echo: bool = False,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        """Initialize the store.

        Args:
            database: Connection URL or DatabaseSettings
            echo: Whether to echo SQL statements
            max_page_size: Upper bound accepted for list page sizes
        """
        self._connection = DatabaseConnection(database, echo=echo)
        self._synchronizer = SchemaSynchronizer(self._connection)
        self._data = DataAccessEngine(
            self._connection, self._synchronizer, max_page_size=max_page_size
        )
        self._entities: dict[str, Entity] = {}

    @classmethod
    def from_env(cls, **overrides: Any) -> FormScaffold:
        """Create a store from ``FORMSCAFFOLD_*`` environment variables."""
        return cls(DatabaseSettings.from_env(**overrides))

    @property
    def connection(self) -> DatabaseConnection:
        return self._connection

    @property
    def synchronizer(self) -> SchemaSynchronizer:
        return self._synchronizer

    @property
    def data(self) -> DataAccessEngine:
        return self._data

    def entity(self, descriptor: EntityDescriptor | Mapping[str, Any]) -> Entity:
        """Bind a descriptor to this store.

        Args:
            descriptor: EntityDescriptor or its plain-mapping form

        Returns:
            Entity handle

        Raises:
            DescriptorError: If the descriptor fails its checks
        """
        if isinstance(descriptor, EntityDescriptor):
            checked = check_descriptor(descriptor)
        else:
            checked = load_descriptor(dict(descriptor))

        existing = self._entities.get(checked.name)
        if existing is not None and existing.descriptor == checked:
            return existing
        if existing is not None:
            logger.warning(f"Entity '{checked.name}' rebound to a different descriptor")

        entity = Entity(checked, self)
        self._entities[checked.name] = entity
        return entity

    def sync(self, descriptor: EntityDescriptor) -> CompiledSchema:
        """Apply a descriptor's DDL to the database."""
        return self._synchronizer.ensure(descriptor)

    def inspect_table(self, table_name: str) -> TableInfo | None:
        """Describe a live table, or None if it does not exist."""
        return self._synchronizer.inspect_table(table_name)

    def test_connection(self) -> bool:
        """Check that the database answers."""
        return self._connection.test_connection()

    def server_info(self) -> dict[str, Any]:
        """Server version, database and user."""
        return self._connection.server_info()

    def close(self) -> None:
        """Close database connection."""
        self._connection.close()

    def __enter__(self) -> FormScaffold:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
