"""Tests for storage error translation."""

import sqlite3

from sqlalchemy import exc as sa_exc

from formscaffold.data.errors import translate_storage_error
from formscaffold.exceptions import (
    ConnectionError,
    StorageError,
    StorageTimeoutError,
    UniqueViolationError,
)


class FakePgError(Exception):
    """Stands in for a psycopg error carrying a SQLSTATE."""

    def __init__(self, message: str, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


class TestTranslateStorageError:
    """Tests for translate_storage_error."""

    def test_postgresql_unique_violation(self):
        """SQLSTATE 23505 becomes a uniqueness conflict naming the column."""
        orig = FakePgError(
            'duplicate key value violates unique constraint "uq_books_isbn"\n'
            "DETAIL:  Key (isbn)=(9780441013593) already exists.",
            sqlstate="23505",
        )
        error = translate_storage_error(
            sa_exc.IntegrityError("INSERT", {}, orig), "books", "create"
        )
        assert isinstance(error, UniqueViolationError)
        assert error.field_name == "isbn"
        assert error.entity_name == "books"

    def test_sqlite_unique_violation(self):
        orig = sqlite3.IntegrityError("UNIQUE constraint failed: books.isbn")
        error = translate_storage_error(
            sa_exc.IntegrityError("INSERT", {}, orig), "books", "create"
        )
        assert isinstance(error, UniqueViolationError)
        assert error.field_name == "isbn"

    def test_other_integrity_error(self):
        """NOT NULL and similar failures stay generic storage errors."""
        orig = sqlite3.IntegrityError("NOT NULL constraint failed: books.title")
        error = translate_storage_error(
            sa_exc.IntegrityError("INSERT", {}, orig), "books", "create"
        )
        assert type(error) is StorageError

    def test_pool_timeout(self):
        error = translate_storage_error(
            sa_exc.TimeoutError("QueuePool limit of size 10 overflow 0 reached"), "books", "get"
        )
        assert isinstance(error, StorageTimeoutError)

    def test_statement_timeout(self):
        orig = FakePgError("canceling statement due to statement timeout", sqlstate="57014")
        error = translate_storage_error(sa_exc.OperationalError("SELECT", {}, orig), "books", "get")
        assert isinstance(error, StorageTimeoutError)

    def test_connection_refused(self):
        orig = FakePgError("connection failed: Connection refused")
        error = translate_storage_error(sa_exc.OperationalError("SELECT", {}, orig), "books", "get")
        assert isinstance(error, ConnectionError)
        assert isinstance(error, StorageError)

    def test_generic_failure(self):
        orig = FakePgError('relation "books" does not exist', sqlstate="42P01")
        error = translate_storage_error(
            sa_exc.ProgrammingError("SELECT", {}, orig), "books", "get"
        )
        assert type(error) is StorageError
        assert error.context == {"entity_name": "books", "operation": "get"}
