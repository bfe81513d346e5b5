"""Validation rule compilation."""

from formscaffold.validation.compiler import ValidationResult, Validator, compile_validator

__all__ = [
    "ValidationResult",
    "Validator",
    "compile_validator",
]
