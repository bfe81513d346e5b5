"""Core components for formscaffold."""

from formscaffold.core.config import DatabaseSettings
from formscaffold.core.connection import DatabaseConnection
from formscaffold.core.types import (
    EntityDescriptor,
    FieldDescriptor,
    FieldKind,
    QueryResult,
    SortDirection,
    StorageType,
    TableInfo,
)

__all__ = [
    "DatabaseConnection",
    "DatabaseSettings",
    "EntityDescriptor",
    "FieldDescriptor",
    "FieldKind",
    "QueryResult",
    "SortDirection",
    "StorageType",
    "TableInfo",
]
