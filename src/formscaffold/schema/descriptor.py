"""Descriptor loading and startup-time checks.

Both compilers run ``check_descriptor`` before deriving anything, so a
descriptor that passes here compiles to a validator and a schema that agree
with each other.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import date, datetime
from functools import lru_cache
from typing import Any

import pydantic

from formscaffold.core.types import (
    IMPLICIT_COLUMNS,
    EntityDescriptor,
    FieldDescriptor,
    FieldKind,
    StorageType,
)
from formscaffold.exceptions import DescriptorError

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
MAX_IDENTIFIER_LENGTH = 63

# Column type used when a field does not override it
DEFAULT_STORAGE_TYPES: dict[FieldKind, StorageType] = {
    FieldKind.SHORT_TEXT: StorageType.VARCHAR,
    FieldKind.LONG_TEXT: StorageType.TEXT,
    FieldKind.INTEGER: StorageType.INTEGER,
    FieldKind.DECIMAL: StorageType.NUMERIC,
    FieldKind.BOOLEAN: StorageType.BOOLEAN,
    FieldKind.DATE: StorageType.DATE,
    FieldKind.TIMESTAMP: StorageType.TIMESTAMP,
    FieldKind.SINGLE_CHOICE: StorageType.VARCHAR,
    FieldKind.FILE_REFERENCE: StorageType.VARCHAR,
}

# VARCHAR length used when a field does not set one
DEFAULT_VARCHAR_LENGTH = 255
DEFAULT_VARCHAR_LENGTHS: dict[FieldKind, int] = {
    FieldKind.SHORT_TEXT: DEFAULT_VARCHAR_LENGTH,
    FieldKind.LONG_TEXT: DEFAULT_VARCHAR_LENGTH,
    FieldKind.SINGLE_CHOICE: 100,
    FieldKind.FILE_REFERENCE: 1024,
}

ALLOWED_STORAGE_TYPES: dict[FieldKind, frozenset[StorageType]] = {
    FieldKind.SHORT_TEXT: frozenset({StorageType.VARCHAR, StorageType.TEXT}),
    FieldKind.LONG_TEXT: frozenset({StorageType.TEXT, StorageType.VARCHAR}),
    FieldKind.INTEGER: frozenset({StorageType.INTEGER, StorageType.BIGINT, StorageType.SMALLINT}),
    FieldKind.DECIMAL: frozenset(
        {
            StorageType.NUMERIC,
            StorageType.DECIMAL,
            StorageType.REAL,
            StorageType.DOUBLE_PRECISION,
        }
    ),
    FieldKind.BOOLEAN: frozenset({StorageType.BOOLEAN}),
    FieldKind.DATE: frozenset({StorageType.DATE}),
    FieldKind.TIMESTAMP: frozenset({StorageType.TIMESTAMP}),
    FieldKind.SINGLE_CHOICE: frozenset({StorageType.VARCHAR, StorageType.TEXT}),
    FieldKind.FILE_REFERENCE: frozenset({StorageType.VARCHAR, StorageType.TEXT}),
}

_TEXT_CONSTRAINTS = frozenset({"min_length", "max_length", "pattern", "format", "refine"})
_NUMBER_CONSTRAINTS = frozenset({"integer_only", "positive", "minimum", "maximum", "refine"})

APPLICABLE_CONSTRAINTS: dict[FieldKind, frozenset[str]] = {
    FieldKind.SHORT_TEXT: _TEXT_CONSTRAINTS,
    FieldKind.LONG_TEXT: _TEXT_CONSTRAINTS,
    FieldKind.INTEGER: _NUMBER_CONSTRAINTS,
    FieldKind.DECIMAL: _NUMBER_CONSTRAINTS,
    FieldKind.BOOLEAN: frozenset({"refine"}),
    FieldKind.DATE: frozenset({"refine"}),
    FieldKind.TIMESTAMP: frozenset({"refine"}),
    FieldKind.SINGLE_CHOICE: frozenset({"options", "refine"}),
    FieldKind.FILE_REFERENCE: frozenset({"refine"}),
}

_PRECISION_TYPES = frozenset({StorageType.NUMERIC, StorageType.DECIMAL})

# Inclusive value range of each integer column type
INTEGER_RANGES: dict[StorageType, tuple[int, int]] = {
    StorageType.SMALLINT: (-(2**15), 2**15 - 1),
    StorageType.INTEGER: (-(2**31), 2**31 - 1),
    StorageType.BIGINT: (-(2**63), 2**63 - 1),
}


def storage_type_for(field: FieldDescriptor) -> StorageType:
    """Resolve the column type of a field."""
    return field.storage.type or DEFAULT_STORAGE_TYPES[field.kind]


def varchar_length_for(field: FieldDescriptor) -> int | None:
    """Resolve the VARCHAR length of a field, or None for other column types."""
    if storage_type_for(field) != StorageType.VARCHAR:
        return None
    return field.storage.length or DEFAULT_VARCHAR_LENGTHS.get(field.kind, DEFAULT_VARCHAR_LENGTH)


def integer_range_for(field: FieldDescriptor) -> tuple[int, int] | None:
    """Resolve the value range of an integer column, or None for other column types."""
    return INTEGER_RANGES.get(storage_type_for(field))


def load_descriptor(data: dict[str, Any]) -> EntityDescriptor:
    """Build and check a descriptor from a plain mapping (e.g. parsed JSON).

    Raises:
        DescriptorError: If the mapping is malformed or fails the checks
    """
    try:
        descriptor = EntityDescriptor.model_validate(data)
    except pydantic.ValidationError as e:
        name = data.get("name") if isinstance(data, dict) else None
        problems = [
            f"{'.'.join(str(part) for part in err['loc']) or 'descriptor'}: {err['msg']}"
            for err in e.errors()
        ]
        raise DescriptorError(str(name or "<unnamed>"), problems) from e
    return check_descriptor(descriptor)


@lru_cache(maxsize=256)
def check_descriptor(descriptor: EntityDescriptor) -> EntityDescriptor:
    """Reject descriptors whose derived artifacts could disagree.

    Returns:
        The same descriptor, for chaining

    Raises:
        DescriptorError: Listing every problem found
    """
    problems: list[str] = []
    problems.extend(_identifier_problems("entity name", descriptor.name))

    counts = Counter(descriptor.field_names)
    for name, count in counts.items():
        if count > 1:
            problems.append(f"field '{name}' is declared {count} times")

    for field in descriptor.fields:
        problems.extend(_field_problems(field))

    if problems:
        logger.error(f"Descriptor '{descriptor.name}' rejected: {problems}")
        raise DescriptorError(descriptor.name, problems)
    return descriptor


def _identifier_problems(what: str, name: str) -> list[str]:
    if not IDENTIFIER_PATTERN.match(name):
        return [f"{what} '{name}' must contain only letters, digits and underscore"]
    if len(name) > MAX_IDENTIFIER_LENGTH:
        return [f"{what} '{name}' is longer than {MAX_IDENTIFIER_LENGTH} characters"]
    return []


def _field_problems(field: FieldDescriptor) -> list[str]:
    problems = _identifier_problems("field name", field.name)
    if field.name in IMPLICIT_COLUMNS:
        problems.append(f"field '{field.name}' collides with an engine-owned column")

    prefix = f"field '{field.name}'"
    rules = field.validation
    storage = field.storage
    column_type = storage_type_for(field)

    if column_type not in ALLOWED_STORAGE_TYPES[field.kind]:
        allowed = ", ".join(sorted(ALLOWED_STORAGE_TYPES[field.kind]))
        problems.append(
            f"{prefix}: storage type {column_type} is not allowed for kind "
            f"{field.kind} (allowed: {allowed})"
        )
    if storage.length is not None and column_type != StorageType.VARCHAR:
        problems.append(f"{prefix}: length only applies to VARCHAR columns")
    if (storage.precision is not None or storage.scale is not None) and (
        column_type not in _PRECISION_TYPES
    ):
        problems.append(f"{prefix}: precision and scale only apply to NUMERIC/DECIMAL columns")
    if storage.scale is not None and storage.precision is None:
        problems.append(f"{prefix}: scale requires precision")
    if (
        storage.scale is not None
        and storage.precision is not None
        and storage.scale > storage.precision
    ):
        problems.append(f"{prefix}: scale cannot exceed precision")

    for name in rules.declared():
        if name not in APPLICABLE_CONSTRAINTS[field.kind]:
            problems.append(f"{prefix}: validation rule '{name}' does not apply to {field.kind}")

    if (
        rules.min_length is not None
        and rules.max_length is not None
        and rules.min_length > rules.max_length
    ):
        problems.append(f"{prefix}: min_length is greater than max_length")
    if rules.minimum is not None and rules.maximum is not None and rules.minimum > rules.maximum:
        problems.append(f"{prefix}: minimum is greater than maximum")
    if rules.pattern is not None:
        try:
            re.compile(rules.pattern)
        except re.error as e:
            problems.append(f"{prefix}: invalid pattern ({e})")

    length = varchar_length_for(field)
    if field.kind == FieldKind.SINGLE_CHOICE:
        if not rules.options:
            problems.append(f"{prefix}: single_choice requires at least one option")
        if len(set(rules.options)) != len(rules.options):
            problems.append(f"{prefix}: options contain duplicates")
        if length is not None and any(len(option) > length for option in rules.options):
            problems.append(f"{prefix}: an option is longer than the column length {length}")

    if not field.required and not field.is_nullable and not field.has_default:
        problems.append(f"{prefix}: optional field is NOT NULL but declares no default")

    if field.has_default:
        problems.extend(_default_problems(field, length))

    return problems


def _default_problems(field: FieldDescriptor, length: int | None) -> list[str]:
    prefix = f"field '{field.name}'"
    value = field.default
    kind = field.kind

    if kind == FieldKind.BOOLEAN:
        ok = isinstance(value, bool)
    elif kind == FieldKind.INTEGER:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif kind == FieldKind.DECIMAL:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    else:
        ok = isinstance(value, str)
    if not ok:
        return [f"{prefix}: default {value!r} does not match kind {kind}"]

    if kind == FieldKind.SINGLE_CHOICE and value not in field.validation.options:
        return [f"{prefix}: default {value!r} is not one of the options"]
    if kind == FieldKind.DATE:
        try:
            date.fromisoformat(value)
        except ValueError:
            return [f"{prefix}: default {value!r} is not an ISO date"]
    if kind == FieldKind.TIMESTAMP:
        try:
            datetime.fromisoformat(value)
        except ValueError:
            return [f"{prefix}: default {value!r} is not an ISO timestamp"]
    value_range = integer_range_for(field)
    if kind == FieldKind.INTEGER and value_range is not None:
        low, high = value_range
        if not low <= value <= high:
            return [f"{prefix}: default {value} does not fit the column range"]
    if length is not None and isinstance(value, str) and len(value) > length:
        return [f"{prefix}: default is longer than the column length {length}"]
    return []
