"""Translation of driver errors into formscaffold storage errors."""

from __future__ import annotations

import re

from sqlalchemy import exc as sa_exc

from formscaffold.exceptions import (
    ConnectionError,
    StorageError,
    StorageTimeoutError,
    UniqueViolationError,
)

UNIQUE_VIOLATION = "23505"
QUERY_CANCELED = "57014"

_PG_KEY_DETAIL = re.compile(r"Key \((?P<columns>[^)]+)\)=")
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w.]+)")


def _sqlstate(error: sa_exc.DBAPIError) -> str | None:
    orig = error.orig
    # psycopg exposes sqlstate, psycopg2 pgcode
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _unique_field(message: str) -> str | None:
    match = _PG_KEY_DETAIL.search(message)
    if match:
        return match.group("columns").split(",")[0].strip().strip('"')
    match = _SQLITE_UNIQUE.search(message)
    if match:
        return match.group("columns").rsplit(".", 1)[-1]
    return None


_CONNECTION_MARKERS = ("could not connect", "connection refused", "unable to open database")


def _is_connection_failure(error: sa_exc.DBAPIError, state: str | None, message: str) -> bool:
    if error.connection_invalidated or isinstance(error, sa_exc.InterfaceError):
        return True
    if not isinstance(error, sa_exc.OperationalError):
        return False
    if state is not None and state.startswith("08"):
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in _CONNECTION_MARKERS)


def translate_storage_error(
    error: sa_exc.SQLAlchemyError, entity_name: str, operation: str
) -> StorageError:
    """Map a SQLAlchemy error onto the storage error hierarchy.

    Args:
        error: The error raised while executing a statement
        entity_name: Entity the statement targeted
        operation: Name of the engine operation, for the message

    Returns:
        StorageError (or a subclass) to raise in its place
    """
    context = {"entity_name": entity_name, "operation": operation}

    if isinstance(error, sa_exc.TimeoutError):
        return StorageTimeoutError(
            f"Timed out waiting for a database connection: {error}", context
        )

    if isinstance(error, sa_exc.DBAPIError):
        message = str(error.orig)
        state = _sqlstate(error)

        if isinstance(error, sa_exc.IntegrityError) and (
            state == UNIQUE_VIOLATION or "UNIQUE constraint failed" in message
        ):
            return UniqueViolationError(entity_name, _unique_field(message), message)

        if state == QUERY_CANCELED or "database is locked" in message:
            return StorageTimeoutError(
                f"Statement timed out during {operation}: {message}", context
            )

        if _is_connection_failure(error, state, message):
            return ConnectionError(
                f"Lost database connection during {operation}: {message}", context
            )

        return StorageError(f"Failed to {operation} '{entity_name}': {message}", context)

    return StorageError(f"Failed to {operation} '{entity_name}': {error}", context)
