"""Schema synchronizer.

Applies compiled DDL to the live database before any data operation runs.
Statements execute one by one in autocommit mode; they are idempotent, so two
callers racing on an unseen table can both apply them.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, inspect, select, table
from sqlalchemy.exc import SQLAlchemyError

from formscaffold.core.types import ColumnInfo, EntityDescriptor, TableInfo
from formscaffold.exceptions import QueryError, SchemaSyncError
from formscaffold.schema.compiler import CompiledSchema, compile_schema
from formscaffold.schema.descriptor import IDENTIFIER_PATTERN

if TYPE_CHECKING:
    from formscaffold.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)


class SchemaSynchronizer:
    """Keeps live tables in line with their entity descriptors.

    Descriptors already applied by this process are remembered and skipped.
    No lock is taken: concurrent first callers may both apply the DDL.
    """

    def __init__(self, connection: DatabaseConnection) -> None:
        """Initialize the synchronizer.

        Args:
            connection: Database connection owning the pool
        """
        self._connection = connection
        self._synced: set[EntityDescriptor] = set()

    def ensure(self, descriptor: EntityDescriptor) -> CompiledSchema:
        """Make sure the descriptor's table, indexes and trigger exist.

        Args:
            descriptor: The entity descriptor

        Returns:
            The compiled schema that was applied

        Raises:
            DescriptorError: If the descriptor is invalid
            SchemaSyncError: If the DDL cannot be applied
        """
        compiled = compile_schema(descriptor)
        if descriptor in self._synced:
            return compiled

        try:
            self._apply(compiled)
        except SQLAlchemyError as first_error:
            # Another caller may have created the table between our statements
            if not self._table_exists(compiled.table_name):
                logger.error(f"Schema sync failed for '{compiled.table_name}': {first_error}")
                raise SchemaSyncError(compiled.table_name, str(first_error)) from first_error
            logger.info(f"Table '{compiled.table_name}' appeared concurrently, reapplying DDL")
            try:
                self._apply(compiled)
            except SQLAlchemyError as e:
                logger.error(f"Schema sync failed for '{compiled.table_name}': {e}")
                raise SchemaSyncError(compiled.table_name, str(e)) from e

        self._synced.add(descriptor)
        logger.info(f"Table '{compiled.table_name}' synchronized")
        return compiled

    def reset(self) -> None:
        """Forget which descriptors were applied, forcing the next ensure to run DDL."""
        self._synced.clear()

    def _apply(self, compiled: CompiledSchema) -> None:
        engine = self._connection.engine
        with engine.connect() as conn:
            conn = conn.execution_options(isolation_level="AUTOCOMMIT")
            for statement in compiled.statements(engine.dialect):
                conn.execute(statement)

    def _table_exists(self, table_name: str) -> bool:
        try:
            return inspect(self._connection.engine).has_table(table_name)
        except SQLAlchemyError:
            return False

    def inspect_table(self, table_name: str) -> TableInfo | None:
        """Describe a live table as the database reports it.

        Args:
            table_name: Table to inspect

        Returns:
            TableInfo, or None if the table does not exist

        Raises:
            QueryError: If the name is not a valid identifier
            SchemaSyncError: If the database cannot be inspected
        """
        if not IDENTIFIER_PATTERN.match(table_name):
            raise QueryError(f"Invalid table name '{table_name}'", {"table_name": table_name})

        engine = self._connection.engine
        try:
            inspector = inspect(engine)
            if not inspector.has_table(table_name):
                return None
            columns = [
                ColumnInfo(
                    name=column["name"],
                    type=str(column["type"]),
                    nullable=bool(column["nullable"]),
                    default=None if column.get("default") is None else str(column["default"]),
                )
                for column in inspector.get_columns(table_name)
            ]
            indexes = [
                index["name"] for index in inspector.get_indexes(table_name) if index["name"]
            ]
            with engine.connect() as conn:
                row_count = conn.execute(
                    select(func.count()).select_from(table(table_name))
                ).scalar_one()
        except SQLAlchemyError as e:
            raise SchemaSyncError(table_name, str(e)) from e

        return TableInfo(
            name=table_name,
            columns=columns,
            indexes=indexes,
            row_count=row_count,
            inspected_at=datetime.now(UTC),
        )
