"""Data operations for formscaffold."""

from formscaffold.data.engine import DataAccessEngine
from formscaffold.data.errors import translate_storage_error

__all__ = [
    "DataAccessEngine",
    "translate_storage_error",
]
