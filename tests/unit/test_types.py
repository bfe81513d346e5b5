"""Tests for core types."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from formscaffold.core.types import (
    IMPLICIT_COLUMNS,
    EntityDescriptor,
    FieldDescriptor,
    FieldKind,
    SortDirection,
    StorageConstraints,
    StorageType,
    ValidationConstraints,
)


class TestFieldKind:
    """Tests for the FieldKind enum."""

    def test_values(self):
        """All nine kinds are listed."""
        assert FieldKind.values() == [
            "short_text",
            "long_text",
            "integer",
            "decimal",
            "boolean",
            "date",
            "timestamp",
            "single_choice",
            "file_reference",
        ]

    def test_storage_type_values(self):
        """Storage types use their SQL spelling."""
        assert "DOUBLE_PRECISION" in StorageType.values()
        assert StorageType("VARCHAR") == StorageType.VARCHAR

    def test_sort_direction_values(self):
        assert SortDirection.values() == ["asc", "desc"]


class TestFieldDescriptor:
    """Tests for FieldDescriptor."""

    def test_optional_field_is_nullable(self):
        """Optional fields are nullable unless storage says otherwise."""
        field = FieldDescriptor(name="note", kind=FieldKind.LONG_TEXT)
        assert field.required is False
        assert field.is_nullable is True

    def test_required_field_is_not_nullable(self):
        """Required fields are NOT NULL by default."""
        field = FieldDescriptor(name="title", kind=FieldKind.SHORT_TEXT, required=True)
        assert field.is_nullable is False

    def test_explicit_nullable_wins(self):
        """storage.nullable overrides the required flag."""
        field = FieldDescriptor(
            name="flag",
            kind=FieldKind.BOOLEAN,
            storage=StorageConstraints(nullable=False, default=False),
        )
        assert field.is_nullable is False
        assert field.has_default is True
        assert field.default is False

    def test_unknown_key_rejected(self):
        """Descriptors reject keys they do not know."""
        with pytest.raises(PydanticValidationError):
            FieldDescriptor(name="x", kind=FieldKind.INTEGER, colour="red")

    def test_frozen(self):
        """Descriptors cannot be mutated after construction."""
        field = FieldDescriptor(name="x", kind=FieldKind.INTEGER)
        with pytest.raises(PydanticValidationError):
            field.name = "y"


class TestValidationConstraints:
    """Tests for ValidationConstraints."""

    def test_declared_lists_only_set_rules(self):
        """declared() reports the rules that differ from their defaults."""
        rules = ValidationConstraints(minimum=1, maximum=5)
        assert rules.declared() == ["minimum", "maximum"]

    def test_nothing_declared(self):
        """An empty rule set declares nothing."""
        assert ValidationConstraints().declared() == []


class TestEntityDescriptor:
    """Tests for EntityDescriptor."""

    def test_column_names_start_with_implicit_columns(self):
        """Implicit columns come first, then declared fields in order."""
        descriptor = EntityDescriptor(
            name="notes",
            fields=(
                FieldDescriptor(name="body", kind=FieldKind.LONG_TEXT),
                FieldDescriptor(name="pinned", kind=FieldKind.BOOLEAN),
            ),
        )
        assert descriptor.column_names == [*IMPLICIT_COLUMNS, "body", "pinned"]
        assert descriptor.field_names == ["body", "pinned"]

    def test_get_field(self):
        """get_field finds declared fields and returns None otherwise."""
        descriptor = EntityDescriptor(
            name="notes", fields=(FieldDescriptor(name="body", kind=FieldKind.LONG_TEXT),)
        )
        assert descriptor.get_field("body").kind == FieldKind.LONG_TEXT
        assert descriptor.get_field("missing") is None

    def test_hashable_and_equal_by_value(self):
        """Equal descriptors hash the same, so compiled artifacts can be cached."""
        first = EntityDescriptor.model_validate(
            {"name": "tags", "fields": [{"name": "label", "kind": "short_text"}]}
        )
        second = EntityDescriptor.model_validate(
            {"name": "tags", "fields": [{"name": "label", "kind": "short_text"}]}
        )
        assert first == second
        assert hash(first) == hash(second)
