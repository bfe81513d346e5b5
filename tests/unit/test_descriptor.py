"""Tests for descriptor loading and startup-time checks."""

from typing import Any

import pytest

from formscaffold.core.types import EntityDescriptor, FieldKind, StorageType
from formscaffold.exceptions import DescriptorError
from formscaffold.schema.descriptor import (
    check_descriptor,
    load_descriptor,
    storage_type_for,
    varchar_length_for,
)


def _entity(*fields: dict[str, Any], name: str = "things") -> dict[str, Any]:
    return {"name": name, "fields": list(fields)}


def _problems(data: dict[str, Any]) -> list[str]:
    with pytest.raises(DescriptorError) as exc_info:
        load_descriptor(data)
    return exc_info.value.problems


class TestLoadDescriptor:
    """Tests for load_descriptor."""

    def test_valid_descriptor(self, books_spec):
        """A well-formed descriptor loads and keeps field order."""
        descriptor = load_descriptor(books_spec)
        assert isinstance(descriptor, EntityDescriptor)
        assert descriptor.field_names[:3] == ["title", "isbn", "rating"]

    def test_unknown_kind(self):
        """Kinds outside the closed set are rejected."""
        problems = _problems(_entity({"name": "colour", "kind": "color"}))
        assert any("kind" in p for p in problems)

    def test_malformed_shape(self):
        """Structural errors name the offending location."""
        problems = _problems({"name": "things", "fields": [{"kind": "integer"}]})
        assert any(p.startswith("fields.0.name") for p in problems)


class TestCheckDescriptor:
    """Tests for check_descriptor."""

    def test_invalid_entity_name(self):
        """Entity names must be plain identifiers."""
        problems = _problems(_entity({"name": "a", "kind": "integer"}, name="bad-name"))
        assert any("entity name" in p for p in problems)

    def test_identifier_too_long(self):
        """Identifiers longer than 63 characters are rejected."""
        problems = _problems(_entity({"name": "x" * 64, "kind": "integer"}))
        assert any("longer than 63" in p for p in problems)

    def test_duplicate_field_names(self):
        """A field name may appear only once."""
        problems = _problems(
            _entity({"name": "a", "kind": "integer"}, {"name": "a", "kind": "boolean"})
        )
        assert any("declared 2 times" in p for p in problems)

    @pytest.mark.parametrize("name", ["id", "created_at", "updated_at"])
    def test_implicit_column_collision(self, name: str):
        """Fields cannot reuse engine-owned column names."""
        problems = _problems(_entity({"name": name, "kind": "short_text"}))
        assert any("engine-owned" in p for p in problems)

    def test_storage_type_must_fit_kind(self):
        """An integer field cannot be stored as VARCHAR."""
        problems = _problems(
            _entity({"name": "n", "kind": "integer", "storage": {"type": "VARCHAR"}})
        )
        assert any("not allowed for kind integer" in p for p in problems)

    @pytest.mark.parametrize("kind", ["integer", "boolean", "date", "decimal"])
    def test_varchar_override_on_non_text_kind(self, kind: str):
        """Rejected storage types surface as DescriptorError, never a lookup failure."""
        problems = _problems(_entity({"name": "v", "kind": kind, "storage": {"type": "VARCHAR"}}))
        assert any(f"not allowed for kind {kind}" in p for p in problems)

    def test_length_only_for_varchar(self):
        """length applies to VARCHAR columns only."""
        problems = _problems(_entity({"name": "n", "kind": "integer", "storage": {"length": 5}}))
        assert any("length only applies" in p for p in problems)

    def test_scale_requires_precision(self):
        """scale without precision is rejected."""
        problems = _problems(_entity({"name": "p", "kind": "decimal", "storage": {"scale": 2}}))
        assert any("scale requires precision" in p for p in problems)

    def test_scale_cannot_exceed_precision(self):
        """scale larger than precision is rejected."""
        problems = _problems(
            _entity({"name": "p", "kind": "decimal", "storage": {"precision": 2, "scale": 4}})
        )
        assert any("scale cannot exceed precision" in p for p in problems)

    def test_inapplicable_rule(self):
        """Text rules do not apply to numbers."""
        problems = _problems(
            _entity({"name": "n", "kind": "integer", "validation": {"min_length": 2}})
        )
        assert any("'min_length' does not apply to integer" in p for p in problems)

    def test_min_greater_than_max(self):
        """Contradictory bounds are rejected."""
        problems = _problems(
            _entity({"name": "n", "kind": "integer", "validation": {"minimum": 5, "maximum": 1}})
        )
        assert any("minimum is greater than maximum" in p for p in problems)

    def test_invalid_pattern(self):
        """Patterns must compile."""
        problems = _problems(
            _entity({"name": "s", "kind": "short_text", "validation": {"pattern": "("}})
        )
        assert any("invalid pattern" in p for p in problems)

    def test_choice_requires_options(self):
        """single_choice needs at least one option."""
        problems = _problems(_entity({"name": "c", "kind": "single_choice"}))
        assert any("at least one option" in p for p in problems)

    def test_choice_option_longer_than_column(self):
        """Options must fit the column."""
        problems = _problems(
            _entity(
                {
                    "name": "c",
                    "kind": "single_choice",
                    "validation": {"options": ["short", "much_too_long"]},
                    "storage": {"length": 5},
                }
            )
        )
        assert any("longer than the column length 5" in p for p in problems)

    def test_optional_not_null_without_default(self):
        """An optional NOT NULL field would make every omission fail in storage."""
        problems = _problems(
            _entity({"name": "flag", "kind": "boolean", "storage": {"nullable": False}})
        )
        assert any("NOT NULL but declares no default" in p for p in problems)

    def test_default_must_match_kind(self):
        """Defaults are type-checked against the kind."""
        problems = _problems(
            _entity({"name": "n", "kind": "integer", "storage": {"default": "five"}})
        )
        assert any("does not match kind integer" in p for p in problems)

    def test_default_must_be_an_option(self):
        """A choice default must be one of the options."""
        problems = _problems(
            _entity(
                {
                    "name": "c",
                    "kind": "single_choice",
                    "validation": {"options": ["a", "b"]},
                    "storage": {"default": "z"},
                }
            )
        )
        assert any("not one of the options" in p for p in problems)

    def test_integer_default_must_fit_column(self):
        """A default outside the SMALLINT range is rejected."""
        problems = _problems(
            _entity(
                {
                    "name": "n",
                    "kind": "integer",
                    "storage": {"type": "SMALLINT", "default": 40000},
                }
            )
        )
        assert any("does not fit the column range" in p for p in problems)

    def test_date_default_must_be_iso(self):
        """Date defaults use ISO format."""
        problems = _problems(
            _entity({"name": "d", "kind": "date", "storage": {"default": "01/02/2024"}})
        )
        assert any("not an ISO date" in p for p in problems)

    def test_all_problems_reported(self):
        """Every problem is listed, not only the first."""
        problems = _problems(
            _entity(
                {"name": "id", "kind": "short_text"},
                {"name": "n", "kind": "integer", "validation": {"pattern": "x"}},
            )
        )
        assert len(problems) >= 2

    def test_check_returns_descriptor(self, books):
        """check_descriptor returns its argument for chaining."""
        assert check_descriptor(books) == books


class TestStorageDefaults:
    """Tests for storage type resolution."""

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            (FieldKind.SHORT_TEXT, StorageType.VARCHAR),
            (FieldKind.LONG_TEXT, StorageType.TEXT),
            (FieldKind.INTEGER, StorageType.INTEGER),
            (FieldKind.DECIMAL, StorageType.NUMERIC),
            (FieldKind.BOOLEAN, StorageType.BOOLEAN),
            (FieldKind.DATE, StorageType.DATE),
            (FieldKind.TIMESTAMP, StorageType.TIMESTAMP),
            (FieldKind.SINGLE_CHOICE, StorageType.VARCHAR),
            (FieldKind.FILE_REFERENCE, StorageType.VARCHAR),
        ],
    )
    def test_default_storage_type(self, kind: FieldKind, expected: StorageType):
        """Each kind has a default column type."""
        field: dict[str, Any] = {"name": "f", "kind": kind.value}
        if kind == FieldKind.SINGLE_CHOICE:
            field["validation"] = {"options": ["a"]}
        descriptor = load_descriptor(_entity(field))
        assert storage_type_for(descriptor.fields[0]) == expected

    def test_varchar_length(self, books):
        """Explicit lengths win over the kind default."""
        assert varchar_length_for(books.get_field("isbn")) == 13
        assert varchar_length_for(books.get_field("title")) == 255
        assert varchar_length_for(books.get_field("summary")) is None
