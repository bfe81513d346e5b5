"""Validation rule compiler.

Compiles an entity descriptor into a ``Validator``: a pure function from raw
key/value input to either a normalized record or an ordered list of
field-level violations. It never touches storage, so callers can also use it
for client-side pre-checks.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Annotated, Any, Optional

import pydantic
from pydantic import BeforeValidator, ConfigDict, Field, create_model
from pydantic_core import PydanticCustomError

from formscaffold.core.types import IMPLICIT_COLUMNS, EntityDescriptor, Violation
from formscaffold.exceptions import ValidationError
from formscaffold.schema.descriptor import check_descriptor
from formscaffold.validation.rules import field_annotation

logger = logging.getLogger(__name__)

_INPUT_LOCATION = "_input"


def _reject_null(value: Any) -> Any:
    if value is None:
        raise PydanticCustomError("null_not_allowed", "Field cannot be null")
    return value


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one payload."""

    values: dict[str, Any] = field(default_factory=dict)
    violations: tuple[Violation, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.violations


class Validator:
    """Validates raw input against one entity descriptor.

    Two pydantic models are built per descriptor: a full one for inserts, where
    required fields must be present and defaults are applied, and a partial one
    for updates, where only the supplied keys are checked.
    """

    def __init__(self, descriptor: EntityDescriptor) -> None:
        self._descriptor = descriptor
        self._attrs = {f.name: f"field_{i}" for i, f in enumerate(descriptor.fields)}
        self._order = {f.name: i for i, f in enumerate(descriptor.fields)}
        self._full_model = self._build_model(partial=False)
        self._partial_model = self._build_model(partial=True)
        self._defaults = self._normalized_defaults()

    @property
    def descriptor(self) -> EntityDescriptor:
        return self._descriptor

    def _build_model(self, partial: bool) -> type[pydantic.BaseModel]:
        definitions: dict[str, Any] = {}
        for fd in self._descriptor.fields:
            annotation = field_annotation(fd)
            if not fd.required and fd.is_nullable:
                annotation = Optional[annotation]
            else:
                # NOT NULL columns reject an explicit None, even when a default exists
                annotation = Annotated[annotation, BeforeValidator(_reject_null)]
            # Attribute names are positional so field names never shadow BaseModel members
            if fd.required and not fd.has_default and not partial:
                info = Field(alias=fd.name)
            else:
                info = Field(default=None, alias=fd.name)
            definitions[self._attrs[fd.name]] = (annotation, info)

        suffix = "Patch" if partial else "Input"
        return create_model(
            f"{self._descriptor.name}{suffix}",
            __config__=ConfigDict(extra="forbid", populate_by_name=False),
            **definitions,
        )

    def _normalized_defaults(self) -> dict[str, Any]:
        # Defaults go through the same rules as input so dates, timestamps and
        # decimals are returned as Python values rather than their JSON form
        defaults: dict[str, Any] = {}
        for fd in self._descriptor.fields:
            if not fd.has_default:
                continue
            attr = self._attrs[fd.name]
            try:
                instance = self._partial_model.model_validate({fd.name: fd.default})
            except pydantic.ValidationError:
                logger.warning(
                    f"Default of '{self._descriptor.name}.{fd.name}' fails its own rules"
                )
                defaults[fd.name] = fd.default
            else:
                defaults[fd.name] = getattr(instance, attr)
        return defaults

    def validate(self, data: Mapping[str, Any], partial: bool = False) -> ValidationResult:
        """Validate a payload.

        Args:
            data: Raw field values keyed by field name
            partial: Validate only the supplied keys and apply no defaults

        Returns:
            ValidationResult with normalized values or violations
        """
        model = self._partial_model if partial else self._full_model
        try:
            instance = model.model_validate(dict(data) if isinstance(data, Mapping) else data)
        except pydantic.ValidationError as e:
            return ValidationResult(violations=self._violations(e))

        values: dict[str, Any] = {}
        for fd in self._descriptor.fields:
            attr = self._attrs[fd.name]
            if attr in instance.model_fields_set:
                values[fd.name] = getattr(instance, attr)
            elif fd.has_default and not partial:
                values[fd.name] = self._defaults[fd.name]
            # Absent optional fields are omitted, never zero-filled
        return ValidationResult(values=values)

    def validate_or_raise(self, data: Mapping[str, Any], partial: bool = False) -> dict[str, Any]:
        """Validate a payload and return the normalized values.

        Raises:
            ValidationError: Carrying every violation found
        """
        result = self.validate(data, partial=partial)
        if not result.ok:
            raise ValidationError(self._descriptor.name, result.violations)
        return result.values

    def _violations(self, error: pydantic.ValidationError) -> tuple[Violation, ...]:
        violations = []
        for err in error.errors(include_url=False):
            loc = err["loc"]
            name = str(loc[0]) if loc else _INPUT_LOCATION
            if err["type"] == "extra_forbidden" and name in IMPLICIT_COLUMNS:
                violations.append(
                    Violation(
                        field=name,
                        reason="Managed by the engine and cannot be set",
                        code="read_only",
                    )
                )
            elif err["type"] == "extra_forbidden":
                violations.append(
                    Violation(field=name, reason="Unknown field", code="unknown_field")
                )
            else:
                violations.append(Violation(field=name, reason=err["msg"], code=err["type"]))

        unknown = len(self._order)
        ranked = sorted(
            enumerate(violations),
            key=lambda item: (self._order.get(item[1].field, unknown), item[0]),
        )
        return tuple(v for _, v in ranked)


@lru_cache(maxsize=256)
def compile_validator(descriptor: EntityDescriptor) -> Validator:
    """Compile (once per descriptor) the validator of an entity.

    Raises:
        DescriptorError: If the descriptor fails the startup-time checks
    """
    check_descriptor(descriptor)
    logger.debug(f"Compiling validator for '{descriptor.name}'")
    return Validator(descriptor)
