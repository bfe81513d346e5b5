"""Tests for the schema synchronizer."""

import pytest
from sqlalchemy.exc import OperationalError

from formscaffold.core.connection import DatabaseConnection
from formscaffold.exceptions import QueryError, SchemaSyncError
from formscaffold.schema.sync import SchemaSynchronizer


@pytest.fixture
def connection():
    conn = DatabaseConnection("sqlite:///:memory:")
    yield conn
    conn.close()


@pytest.fixture
def synchronizer(connection):
    return SchemaSynchronizer(connection)


def _ddl_failure() -> OperationalError:
    return OperationalError("CREATE TABLE books", {}, Exception("table books already exists"))


class TestEnsure:
    """Tests for SchemaSynchronizer.ensure."""

    def test_creates_table(self, synchronizer, books):
        """The table appears with the compiled columns."""
        compiled = synchronizer.ensure(books)
        info = synchronizer.inspect_table(compiled.table_name)
        assert info is not None
        assert [c.name for c in info.columns] == books.column_names
        assert set(info.indexes) == {"idx_books_isbn", "idx_books_genre"}
        assert info.row_count == 0

    def test_second_call_skips_ddl(self, synchronizer, books, monkeypatch):
        """A descriptor is applied once per process."""
        synchronizer.ensure(books)
        calls = []
        monkeypatch.setattr(synchronizer, "_apply", lambda compiled: calls.append(compiled))
        synchronizer.ensure(books)
        assert calls == []

    def test_reset_forces_reapply(self, synchronizer, books):
        """After reset the idempotent DDL runs again without error."""
        synchronizer.ensure(books)
        synchronizer.reset()
        synchronizer.ensure(books)
        assert synchronizer.inspect_table("books") is not None

    def test_failure_without_table_is_fatal(self, synchronizer, books, monkeypatch):
        """DDL failing on a missing table raises SchemaSyncError."""

        def fail(compiled):
            raise _ddl_failure()

        monkeypatch.setattr(synchronizer, "_apply", fail)
        with pytest.raises(SchemaSyncError) as exc_info:
            synchronizer.ensure(books)
        assert exc_info.value.table_name == "books"

        # Not remembered as synced
        monkeypatch.undo()
        synchronizer.ensure(books)
        assert synchronizer.inspect_table("books") is not None

    def test_concurrent_creation_is_reapplied(self, synchronizer, books, monkeypatch):
        """If another caller created the table meanwhile, the DDL is applied once more."""
        real_apply = synchronizer._apply
        attempts = []

        def racing_apply(compiled):
            attempts.append(compiled)
            if len(attempts) == 1:
                real_apply(compiled)
                raise _ddl_failure()
            real_apply(compiled)

        monkeypatch.setattr(synchronizer, "_apply", racing_apply)
        synchronizer.ensure(books)
        assert len(attempts) == 2

    def test_second_failure_is_fatal(self, synchronizer, books, monkeypatch):
        """A failing re-apply is surfaced."""
        real_apply = synchronizer._apply

        def always_fail(compiled):
            real_apply(compiled)
            raise _ddl_failure()

        monkeypatch.setattr(synchronizer, "_apply", always_fail)
        with pytest.raises(SchemaSyncError):
            synchronizer.ensure(books)


class TestInspectTable:
    """Tests for SchemaSynchronizer.inspect_table."""

    def test_missing_table(self, synchronizer):
        assert synchronizer.inspect_table("nothing_here") is None

    def test_invalid_name(self, synchronizer):
        """Names that are not identifiers are refused before reaching SQL."""
        with pytest.raises(QueryError):
            synchronizer.inspect_table("books; DROP TABLE books")

    def test_row_count_and_nullability(self, memory_store, books):
        memory_store.entity(books).create({"title": "Dune", "isbn": "9780441013593"})
        info = memory_store.inspect_table("books")
        assert info.row_count == 1
        columns = {c.name: c for c in info.columns}
        assert columns["title"].nullable is False
        assert columns["rating"].nullable is True
