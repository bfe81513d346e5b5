"""Custom exceptions for formscaffold.

Errors are split by who can act on them:
- Descriptor errors are fatal at startup and mean the configuration is wrong
- Validation errors are per request and carry a field-addressable violation list
- Storage errors come from the database and are surfaced without retries
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from formscaffold.core.types import Violation


class FormScaffoldError(Exception):
    """Base exception for all formscaffold errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class DescriptorError(FormScaffoldError):
    """Entity descriptor is invalid and cannot be compiled."""

    def __init__(self, entity_name: str, problems: list[str]) -> None:
        listing = "; ".join(problems)
        message = f"Entity descriptor '{entity_name}' is invalid: {listing}"
        super().__init__(message, {"entity_name": entity_name, "problems": problems})
        self.entity_name = entity_name
        self.problems = problems


class ValidationError(FormScaffoldError):
    """Input data failed validation."""

    def __init__(self, entity_name: str, violations: tuple[Violation, ...]) -> None:
        fields = ", ".join(dict.fromkeys(v.field for v in violations))
        message = f"Validation failed for '{entity_name}' on: {fields}"
        super().__init__(
            message,
            {
                "entity_name": entity_name,
                "violations": [v.model_dump() for v in violations],
            },
        )
        self.entity_name = entity_name
        self.violations = violations

    @property
    def field_errors(self) -> dict[str, list[str]]:
        """Violations grouped by field, in reporting order."""
        grouped: dict[str, list[str]] = {}
        for violation in self.violations:
            grouped.setdefault(violation.field, []).append(violation.reason)
        return grouped


class FieldNotFoundError(FormScaffoldError):
    """Field does not exist on entity."""

    def __init__(
        self, field_name: str, entity_name: str, available_fields: list[str] | None = None
    ) -> None:
        available = available_fields or []
        if available:
            message = (
                f"Field '{field_name}' not found on '{entity_name}'. "
                f"Available fields: {', '.join(available)}"
            )
        else:
            message = f"Field '{field_name}' not found on '{entity_name}'. No fields defined."

        super().__init__(
            message,
            {
                "field_name": field_name,
                "entity_name": entity_name,
                "available_fields": available,
            },
        )
        self.field_name = field_name
        self.entity_name = entity_name
        self.available_fields = available


class QueryError(FormScaffoldError):
    """Query arguments are invalid (pagination, sort direction)."""

    pass


class ConfigurationError(FormScaffoldError):
    """Database settings are incomplete or contradictory."""

    pass


# === Storage Errors ===


class StorageError(FormScaffoldError):
    """A database statement failed."""

    pass


class UniqueViolationError(StorageError):
    """A value collides with an existing row on a unique column."""

    def __init__(self, entity_name: str, field_name: str | None, detail: str = "") -> None:
        if field_name:
            message = f"A '{entity_name}' record with this '{field_name}' already exists."
        else:
            message = f"A '{entity_name}' record with these values already exists."
        super().__init__(
            message, {"entity_name": entity_name, "field_name": field_name, "detail": detail}
        )
        self.entity_name = entity_name
        self.field_name = field_name


class ConnectionError(StorageError):
    """Failed to connect to the database."""

    pass


class StorageTimeoutError(StorageError):
    """Waiting for a connection or a statement took longer than its timeout."""

    pass


class SchemaSyncError(StorageError):
    """Applying the compiled DDL to the live database failed."""

    def __init__(self, table_name: str, reason: str) -> None:
        message = f"Cannot synchronize schema for table '{table_name}': {reason}"
        super().__init__(message, {"table_name": table_name, "reason": reason})
        self.table_name = table_name
        self.reason = reason
