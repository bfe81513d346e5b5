"""Shared test fixtures for formscaffold."""

import os
from collections.abc import Generator
from typing import Any

import pytest

from formscaffold import EntityDescriptor, FormScaffold, load_descriptor


def _psycopg_available() -> bool:
    """Check if psycopg is installed."""
    try:
        import psycopg  # noqa: F401

        return True
    except ImportError:
        return False


def _postgresql_connectable(url: str) -> bool:
    """Check if we can connect to PostgreSQL."""
    if not _psycopg_available():
        return False
    try:
        from formscaffold.core.connection import DatabaseConnection

        conn = DatabaseConnection(url)
        result = conn.test_connection()
        conn.close()
        return result
    except Exception:
        return False


BOOKS: dict[str, Any] = {
    "name": "books",
    "title": "Books",
    "fields": [
        {
            "name": "title",
            "kind": "short_text",
            "required": True,
            "validation": {"min_length": 1, "max_length": 200},
        },
        {
            "name": "isbn",
            "kind": "short_text",
            "required": True,
            "validation": {"pattern": "^[0-9]{13}$"},
            "storage": {"length": 13, "unique": True, "index": True},
        },
        {
            "name": "rating",
            "kind": "integer",
            "validation": {"minimum": 1, "maximum": 5},
        },
        {
            "name": "price",
            "kind": "decimal",
            "validation": {"minimum": 0},
            "storage": {"precision": 8, "scale": 2},
        },
        {"name": "in_stock", "kind": "boolean", "storage": {"default": True, "nullable": False}},
        {"name": "published_on", "kind": "date"},
        {
            "name": "genre",
            "kind": "single_choice",
            "validation": {"options": ["fiction", "non_fiction", "poetry"]},
            "storage": {"index": True},
        },
        {"name": "summary", "kind": "long_text"},
        {"name": "contact", "kind": "short_text", "validation": {"format": "email"}},
    ],
}


@pytest.fixture
def books_spec() -> dict[str, Any]:
    """The books descriptor in its plain JSON form."""
    return BOOKS


@pytest.fixture
def books() -> EntityDescriptor:
    """A checked books descriptor covering most field kinds."""
    return load_descriptor(BOOKS)


@pytest.fixture
def postgresql_url() -> str:
    """Get PostgreSQL URL from environment or use default, skipping when unreachable."""
    url = os.environ.get("TEST_DATABASE_URL")
    if not url:
        # Default to local PostgreSQL
        url = "postgresql://localhost/formscaffold_test"

    # Skip if psycopg not available
    if not _psycopg_available():
        pytest.skip("psycopg not installed")

    # Skip if can't connect (no PostgreSQL server)
    if not _postgresql_connectable(url):
        pytest.skip(f"Cannot connect to PostgreSQL at {url}")

    return url


@pytest.fixture
def memory_store() -> Generator[FormScaffold, None, None]:
    """Create a FormScaffold instance with SQLite in-memory.

    This is faster for unit tests that don't need PostgreSQL-specific features.
    """
    store = FormScaffold("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def pg_store(postgresql_url: str) -> Generator[FormScaffold, None, None]:
    """Create a FormScaffold instance with PostgreSQL.

    The postgresql_url fixture handles skipping when PostgreSQL isn't available.
    Tables created by the test are dropped afterwards.
    """
    store = FormScaffold(postgresql_url)
    yield store
    from sqlalchemy import text

    with store.connection.engine.connect() as conn:
        for table in ("books", "fs_workflow_notes"):
            conn.execute(text(f'DROP TABLE IF EXISTS "{table}" CASCADE'))
        conn.commit()
    store.close()

