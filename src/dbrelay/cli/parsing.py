"""Input parsing utilities for CLI commands."""

import json
from typing import Any

import typer


def parse_json_object(value: str | None, option: str) -> dict[str, Any] | None:
    """Parse a JSON object given on the command line.

    Examples:
        '{"id": 1}' -> {"id": 1}
        '{"deleted_at": null}' -> {"deleted_at": None}

    Args:
        value: Raw JSON text (None passes through)
        option: Option name for error messages

    Raises:
        typer.BadParameter: If the text is not a JSON object
    """
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"{option} must be valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise typer.BadParameter(f"{option} must be a JSON object, got: {value}")
    return parsed


def parse_param(value: str) -> Any:
    """Parse one SQL parameter: JSON literals are decoded, anything else stays a string.

    Examples:
        "42" -> 42
        "null" -> None
        "alice" -> "alice"
    """
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value
