"""Descriptor checks, DDL compilation and schema synchronization."""

from formscaffold.schema.compiler import CompiledSchema, compile_schema
from formscaffold.schema.descriptor import check_descriptor, load_descriptor
from formscaffold.schema.sync import SchemaSynchronizer

__all__ = [
    "CompiledSchema",
    "SchemaSynchronizer",
    "check_descriptor",
    "compile_schema",
    "load_descriptor",
]
