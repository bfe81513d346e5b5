"""Generic data access engine.

One CRUD implementation serves every entity: each operation looks up the
compiled table for the descriptor, synchronizes it, validates input and runs
parameterized statements. Only values are ever bound; identifiers come from
checked descriptors.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import Connection, Row, Table, delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import ColumnElement

from formscaffold.core.types import EntityDescriptor, QueryResult, SortDirection
from formscaffold.data.errors import translate_storage_error
from formscaffold.exceptions import FieldNotFoundError, QueryError
from formscaffold.schema.compiler import CompiledSchema
from formscaffold.schema.sync import SchemaSynchronizer
from formscaffold.validation.compiler import compile_validator

if TYPE_CHECKING:
    from formscaffold.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
DEFAULT_ORDER_BY = "created_at"


def generate_uuid() -> str:
    """Generate a new UUID as string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class _NoMatch(Exception):
    """A filter value no stored row can hold."""


class DataAccessEngine:
    """CRUD over any entity described by an ``EntityDescriptor``.

    Records are returned as plain dicts holding the implicit columns plus every
    declared field. Timestamps are timezone-aware UTC on every backend.
    """

    def __init__(
        self,
        connection: DatabaseConnection,
        synchronizer: SchemaSynchronizer | None = None,
        max_page_size: int = MAX_PAGE_SIZE,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """Initialize the engine.

        Args:
            connection: Database connection owning the pool
            synchronizer: Schema synchronizer; one is created when omitted
            max_page_size: Upper bound accepted for ``limit``
            default_page_size: Page size used when ``limit`` is omitted
        """
        if not 1 <= default_page_size <= max_page_size:
            raise ValueError("default_page_size must be between 1 and max_page_size")
        self._connection = connection
        self._synchronizer = synchronizer or SchemaSynchronizer(connection)
        self._max_page_size = max_page_size
        self._default_page_size = default_page_size

    @property
    def synchronizer(self) -> SchemaSynchronizer:
        return self._synchronizer

    # === Write operations ===

    def create(self, descriptor: EntityDescriptor, data: Mapping[str, Any]) -> dict[str, Any]:
        """Validate and insert a record.

        Args:
            descriptor: Entity to insert into
            data: Field values keyed by field name

        Returns:
            The stored record, including id and timestamps

        Raises:
            ValidationError: If the input violates the descriptor (nothing is written)
            UniqueViolationError: If a unique column already holds a supplied value
            StorageError: If the database rejects the statement
        """
        compiled = self._synchronizer.ensure(descriptor)
        values = compile_validator(descriptor).validate_or_raise(data)
        table = compiled.table

        now = utc_now()
        row_values = {"id": generate_uuid(), "created_at": now, "updated_at": now, **values}
        stmt = insert(table).values(row_values).returning(*table.c)

        with self._transaction(descriptor, "create") as conn:
            row = conn.execute(stmt).one()

        logger.debug(f"Created '{descriptor.name}' record {row_values['id']}")
        return self._to_record(table, row)

    def update(
        self, descriptor: EntityDescriptor, record_id: Any, data: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """Apply a partial update to one record.

        Only the supplied fields are validated and changed; ``updated_at`` is
        refreshed.

        Args:
            descriptor: Entity the record belongs to
            record_id: Record ID
            data: Field values to change

        Returns:
            The updated record, or None if no record has this id

        Raises:
            ValidationError: If a supplied value violates the descriptor
            UniqueViolationError: If the change collides on a unique column
            StorageError: If the database rejects the statement
        """
        compiled = self._synchronizer.ensure(descriptor)
        values = compile_validator(descriptor).validate_or_raise(data, partial=True)
        record_id = self._coerce_id(record_id)
        if record_id is None:
            return None

        table = compiled.table
        stmt = (
            update(table)
            .where(table.c.id == record_id)
            .values({**values, "updated_at": utc_now()})
            .returning(*table.c)
        )

        with self._transaction(descriptor, "update") as conn:
            row = conn.execute(stmt).one_or_none()

        if row is None:
            logger.debug(f"Update of '{descriptor.name}' record {record_id}: not found")
            return None
        return self._to_record(table, row)

    def delete(self, descriptor: EntityDescriptor, record_id: Any) -> bool:
        """Delete one record.

        Args:
            descriptor: Entity the record belongs to
            record_id: Record ID

        Returns:
            True if a record was deleted, False if none had this id
        """
        compiled = self._synchronizer.ensure(descriptor)
        record_id = self._coerce_id(record_id)
        if record_id is None:
            return False

        table = compiled.table
        with self._transaction(descriptor, "delete") as conn:
            result = conn.execute(delete(table).where(table.c.id == record_id))

        deleted = result.rowcount > 0
        logger.debug(f"Delete of '{descriptor.name}' record {record_id}: {deleted}")
        return deleted

    # === Read operations ===

    def get(
        self,
        descriptor: EntityDescriptor,
        filters: Mapping[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
        order_by: str = DEFAULT_ORDER_BY,
        direction: SortDirection | str = SortDirection.DESC,
    ) -> QueryResult:
        """List records matching exact-equality filters.

        The total count and the page are read by two statements sharing one
        filter, so a concurrent write can make them disagree.

        Args:
            descriptor: Entity to read
            filters: Column name to value; None matches NULL
            limit: Page size (default 50, at most ``max_page_size``)
            offset: Records to skip
            order_by: Column to sort on
            direction: "asc" or "desc"

        Returns:
            QueryResult with the page, the total count and has_more

        Raises:
            FieldNotFoundError: If a filter or sort key names no column
            QueryError: If limit, offset or direction is out of range
        """
        compiled = self._synchronizer.ensure(descriptor)
        limit, offset = self._check_page(limit, offset)
        table = compiled.table
        sort_column = self._column(compiled, order_by)
        ascending = self._direction(direction) == SortDirection.ASC

        try:
            conditions = self._conditions(compiled, filters)
        except _NoMatch:
            return QueryResult(records=[], total_count=0, limit=limit, offset=offset)

        count_stmt = select(func.count()).select_from(table).where(*conditions)
        page_stmt = (
            select(table)
            .where(*conditions)
            .order_by(
                sort_column.asc() if ascending else sort_column.desc(),
                table.c.id.asc() if ascending else table.c.id.desc(),
            )
            .limit(limit)
            .offset(offset)
        )

        with self._transaction(descriptor, "get") as conn:
            total_count = conn.execute(count_stmt).scalar_one()
            rows = conn.execute(page_stmt).all()

        records = [self._to_record(table, row) for row in rows]
        return QueryResult(
            records=records,
            total_count=total_count,
            limit=limit,
            offset=offset,
            has_more=offset + len(records) < total_count,
        )

    def get_by_id(self, descriptor: EntityDescriptor, record_id: Any) -> dict[str, Any] | None:
        """Get one record by id.

        Returns:
            The record, or None if no record has this id
        """
        result = self.get(descriptor, filters={"id": record_id}, limit=1)
        return result.records[0] if result.records else None

    def count(self, descriptor: EntityDescriptor, filters: Mapping[str, Any] | None = None) -> int:
        """Count records matching exact-equality filters."""
        compiled = self._synchronizer.ensure(descriptor)
        try:
            conditions = self._conditions(compiled, filters)
        except _NoMatch:
            return 0

        stmt = select(func.count()).select_from(compiled.table).where(*conditions)
        with self._transaction(descriptor, "count") as conn:
            return conn.execute(stmt).scalar_one()

    # === Helpers ===

    @contextmanager
    def _transaction(self, descriptor: EntityDescriptor, operation: str) -> Iterator[Connection]:
        try:
            with self._connection.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            error = translate_storage_error(e, descriptor.name, operation)
            logger.error(f"{operation} on '{descriptor.name}' failed: {error.message}")
            raise error from e

    def _check_page(self, limit: int | None, offset: int) -> tuple[int, int]:
        if limit is None:
            limit = self._default_page_size
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise QueryError(f"limit must be an integer, got {limit!r}", {"limit": limit})
        if not 1 <= limit <= self._max_page_size:
            raise QueryError(
                f"limit must be between 1 and {self._max_page_size}, got {limit}",
                {"limit": limit, "max_page_size": self._max_page_size},
            )
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise QueryError(f"offset must be a non-negative integer, got {offset!r}")
        return limit, offset

    @staticmethod
    def _direction(direction: SortDirection | str) -> SortDirection:
        try:
            return SortDirection(str(direction).lower())
        except ValueError:
            raise QueryError(
                f"direction must be one of {', '.join(SortDirection.values())}, got {direction!r}"
            ) from None

    @staticmethod
    def _column(compiled: CompiledSchema, name: str) -> ColumnElement[Any]:
        table = compiled.table
        if not isinstance(name, str) or name not in table.c:
            raise FieldNotFoundError(str(name), compiled.descriptor.name, list(table.c.keys()))
        return table.c[name]

    def _conditions(
        self, compiled: CompiledSchema, filters: Mapping[str, Any] | None
    ) -> list[ColumnElement[bool]]:
        """Build equality conditions, raising _NoMatch for impossible values."""
        conditions: list[ColumnElement[bool]] = []
        if not filters:
            return conditions

        for name, value in filters.items():
            column = self._column(compiled, name)
            if value is None:
                conditions.append(column.is_(None))
            else:
                conditions.append(column == self._filter_value(compiled, name, value))
        return conditions

    def _filter_value(self, compiled: CompiledSchema, name: str, value: Any) -> Any:
        descriptor = compiled.descriptor
        if name == "id":
            record_id = self._coerce_id(value)
            if record_id is None:
                raise _NoMatch(name)
            return record_id
        if name in ("created_at", "updated_at"):
            return self._coerce_timestamp(name, value)

        result = compile_validator(descriptor).validate({name: value}, partial=True)
        if not result.ok:
            logger.debug(f"Filter on '{descriptor.name}.{name}' cannot match: {value!r}")
            raise _NoMatch(name)
        return result.values[name]

    @staticmethod
    def _coerce_id(record_id: Any) -> str | None:
        if isinstance(record_id, UUID):
            return str(record_id)
        if isinstance(record_id, str):
            return record_id
        return None

    @staticmethod
    def _coerce_timestamp(name: str, value: Any) -> datetime:
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value)
            except ValueError:
                raise _NoMatch(name) from None
        if not isinstance(value, datetime):
            raise _NoMatch(name)
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)

    @staticmethod
    def _to_record(table: Table, row: Row[Any]) -> dict[str, Any]:
        record: dict[str, Any] = {}
        mapping = row._mapping
        for column in table.c:
            value = mapping[column.name]
            if isinstance(value, datetime):
                # SQLite hands back naive values; stored timestamps are UTC
                value = value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
            record[column.name] = value
        return record
