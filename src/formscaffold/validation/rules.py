"""Per-kind validation rules.

Each field kind maps to a builder that returns a pydantic annotation: a base
type for the kind, narrowed by the field's validation constraints. Custom
refinements are appended last so they only run once every built-in check has
passed.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    AnyUrl,
    BeforeValidator,
    Field,
    StrictBool,
    StrictStr,
    StringConstraints,
    TypeAdapter,
)
from pydantic_core import PydanticCustomError

from formscaffold.core.types import FieldDescriptor, FieldKind, Refinement, StorageType, TextFormat
from formscaffold.schema.descriptor import (
    integer_range_for,
    storage_type_for,
    varchar_length_for,
)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_url_adapter: TypeAdapter[AnyUrl] = TypeAdapter(AnyUrl)


def _pattern_check(pattern: str) -> Callable[[str], str]:
    compiled = re.compile(pattern)

    def check(value: str) -> str:
        if not compiled.search(value):
            raise PydanticCustomError(
                "string_pattern_mismatch",
                "String should match pattern '{pattern}'",
                {"pattern": pattern},
            )
        return value

    return check


def _email_check(value: str) -> str:
    if not EMAIL_PATTERN.match(value):
        raise PydanticCustomError("email", "Invalid email format")
    return value


def _url_check(value: str) -> str:
    # Validate only; the caller's string is stored as given
    try:
        url = _url_adapter.validate_python(value)
    except ValueError:
        raise PydanticCustomError("url", "Invalid URL format") from None
    if not url.host:
        raise PydanticCustomError("url", "Invalid URL format")
    return value


def _reject_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise PydanticCustomError("number_type", "Input should be a number, not a boolean")
    return value


def _bounds_check(
    minimum: int | float | None, maximum: int | float | None, positive: bool
) -> Callable[[Any], Any]:
    def check(value: Any) -> Any:
        if positive and value <= 0:
            raise PydanticCustomError("greater_than", "Input should be greater than 0")
        if minimum is not None and value < minimum:
            raise PydanticCustomError(
                "greater_than_equal",
                "Input should be greater than or equal to {ge}",
                {"ge": minimum},
            )
        if maximum is not None and value > maximum:
            raise PydanticCustomError(
                "less_than_equal",
                "Input should be less than or equal to {le}",
                {"le": maximum},
            )
        return value

    return check


def _column_range_check(column_type: StorageType, low: int, high: int) -> Callable[[int], int]:
    def check(value: int) -> int:
        if not low <= value <= high:
            raise PydanticCustomError(
                "int_range",
                "Input should fit a {column_type} column ({low} to {high})",
                {"column_type": str(column_type), "low": low, "high": high},
            )
        return value

    return check


def _integral_check(value: Decimal | float) -> Decimal | float:
    if value != int(value):
        raise PydanticCustomError("int_from_float", "Input should be a whole number")
    return value


def _parse_date(value: Any) -> Any:
    if isinstance(value, datetime):
        raise PydanticCustomError("date_type", "Input should be a date, not a timestamp")
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise PydanticCustomError("date_type", "Input should be an ISO date string")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise PydanticCustomError(
            "date_parsing", "Invalid date '{value}'", {"value": value}
        ) from None


def _parse_timestamp(value: Any) -> Any:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        raise PydanticCustomError("datetime_type", "Input should be a timestamp, not a date")
    if not isinstance(value, str):
        raise PydanticCustomError("datetime_type", "Input should be an ISO timestamp string")
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise PydanticCustomError(
            "datetime_parsing", "Invalid timestamp '{value}'", {"value": value}
        ) from None


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _refinement_check(refinement: Refinement) -> Callable[[Any], Any]:
    def check(value: Any) -> Any:
        if not refinement.check(value):
            raise PydanticCustomError("refinement", refinement.message)
        return value

    return check


def _text(field: FieldDescriptor) -> list[Any]:
    rules = field.validation
    max_length = rules.max_length
    column_length = varchar_length_for(field)
    if column_length is not None:
        # Never accept what the column would reject
        max_length = column_length if max_length is None else min(max_length, column_length)

    metadata: list[Any] = [StrictStr]
    if rules.min_length is not None or max_length is not None:
        metadata.append(StringConstraints(min_length=rules.min_length, max_length=max_length))
    if rules.pattern is not None:
        metadata.append(AfterValidator(_pattern_check(rules.pattern)))
    if rules.format == TextFormat.EMAIL:
        metadata.append(AfterValidator(_email_check))
    elif rules.format == TextFormat.URL:
        metadata.append(AfterValidator(_url_check))
    return metadata


def _integer(field: FieldDescriptor) -> list[Any]:
    rules = field.validation
    metadata: list[Any] = [
        int,
        BeforeValidator(_reject_bool),
        AfterValidator(_bounds_check(rules.minimum, rules.maximum, rules.positive)),
    ]
    value_range = integer_range_for(field)
    if value_range is not None:
        metadata.append(AfterValidator(_column_range_check(storage_type_for(field), *value_range)))
    return metadata


def _decimal(field: FieldDescriptor) -> list[Any]:
    rules = field.validation
    storage = field.storage
    if storage_type_for(field) in (StorageType.REAL, StorageType.DOUBLE_PRECISION):
        metadata: list[Any] = [float, Field(allow_inf_nan=False)]
    elif storage.precision is not None:
        # Out-of-scale input is a violation, never rounded by the database
        metadata = [
            Decimal,
            Field(
                allow_inf_nan=False,
                max_digits=storage.precision,
                decimal_places=storage.scale or 0,
            ),
        ]
    else:
        metadata = [Decimal, Field(allow_inf_nan=False)]
    metadata.append(BeforeValidator(_reject_bool))
    if rules.integer_only:
        metadata.append(AfterValidator(_integral_check))
    metadata.append(AfterValidator(_bounds_check(rules.minimum, rules.maximum, rules.positive)))
    return metadata


def _boolean(field: FieldDescriptor) -> list[Any]:
    return [StrictBool]


def _date(field: FieldDescriptor) -> list[Any]:
    return [date, BeforeValidator(_parse_date)]


def _timestamp(field: FieldDescriptor) -> list[Any]:
    return [datetime, BeforeValidator(_parse_timestamp), AfterValidator(_as_utc)]


def _single_choice(field: FieldDescriptor) -> list[Any]:
    return [Literal[field.validation.options]]  # type: ignore[valid-type]


def _file_reference(field: FieldDescriptor) -> list[Any]:
    # Content is checked by the file-storage collaborator; only the reference is kept here
    column_length = varchar_length_for(field)
    if column_length is None:
        return [StrictStr]
    return [StrictStr, StringConstraints(max_length=column_length)]


KIND_RULES: dict[FieldKind, Callable[[FieldDescriptor], list[Any]]] = {
    FieldKind.SHORT_TEXT: _text,
    FieldKind.LONG_TEXT: _text,
    FieldKind.INTEGER: _integer,
    FieldKind.DECIMAL: _decimal,
    FieldKind.BOOLEAN: _boolean,
    FieldKind.DATE: _date,
    FieldKind.TIMESTAMP: _timestamp,
    FieldKind.SINGLE_CHOICE: _single_choice,
    FieldKind.FILE_REFERENCE: _file_reference,
}


def field_annotation(field: FieldDescriptor) -> Any:
    """Build the pydantic annotation validating one present, non-null value."""
    base, *metadata = KIND_RULES[field.kind](field)
    for refinement in field.validation.refine:
        metadata.append(AfterValidator(_refinement_check(refinement)))
    if not metadata:
        return base
    return Annotated[(base, *metadata)]  # type: ignore[valid-type]
