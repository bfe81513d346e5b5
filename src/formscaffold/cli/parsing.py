"""Input parsing utilities for CLI commands."""

import json
from pathlib import Path
from typing import Any

from formscaffold.core.types import EntityDescriptor, FieldKind
from formscaffold.schema.descriptor import load_descriptor


def read_json_file(path: str) -> Any:
    """Read a JSON document from file.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON value

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with file_path.open("r") as f:
        return json.load(f)


def read_descriptor(path: str) -> EntityDescriptor:
    """Load and check an entity descriptor from a JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If the file does not hold a JSON object
        DescriptorError: If the descriptor fails its checks
    """
    data = read_json_file(path)
    if not isinstance(data, dict):
        raise ValueError(f"Descriptor file must contain a JSON object: {path}")
    return load_descriptor(data)


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse a JSON object given inline on the command line.

    Raises:
        ValueError: If the text is not a JSON object
    """
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e.msg} (position {e.pos})") from e
    if not isinstance(value, dict):
        raise ValueError("Expected a JSON object")
    return value


def parse_filters(pairs: list[str], descriptor: EntityDescriptor) -> dict[str, Any]:
    """Parse ``name=value`` filter arguments.

    Values stay strings and are converted by the field's own rules, except
    ``null`` (matches NULL) and ``true``/``false`` on boolean fields.

    Examples:
        ["rating=5", "title=Dune"] → {"rating": "5", "title": "Dune"}

    Raises:
        ValueError: If an argument has no ``=``
    """
    filters: dict[str, Any] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Invalid filter: '{pair}'. Expected format: name=value")
        name, raw = pair.split("=", 1)
        name = name.strip()
        field = descriptor.get_field(name)
        if raw == "null":
            filters[name] = None
        elif field is not None and field.kind == FieldKind.BOOLEAN and raw in ("true", "false"):
            filters[name] = raw == "true"
        else:
            filters[name] = raw
    return filters
