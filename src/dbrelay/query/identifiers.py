"""Identifier validation.

Table and column names are the only parts of a statement that get
interpolated into SQL text, so each one must pass these checks first.
Values never go through here: they are always bound parameters.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from dbrelay.exceptions import InvalidIdentifierError

# Letters, digits, underscores; no leading digit
IDENT_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Same grammar with one optional "table." qualifier
QUALIFIED_IDENT_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def is_valid_identifier(name: object, qualified: bool = False) -> bool:
    """Check a name against the identifier grammar without raising.

    Args:
        name: Candidate name
        qualified: Allow a single ``table.column`` qualifier

    Returns:
        True if the name is a string matching the grammar
    """
    if not isinstance(name, str) or not name:
        return False
    pattern = QUALIFIED_IDENT_PATTERN if qualified else IDENT_PATTERN
    # fullmatch so a trailing newline is not accepted by "$"
    return pattern.fullmatch(name) is not None


def validate_identifier(name: object, kind: str = "identifier") -> str:
    """Validate a table, column or generated name.

    Args:
        name: Candidate name
        kind: What is being validated. ``"column"`` allows a ``table.column``
            qualifier; any other value (``"table"``, ``"model"``...) only labels
            the error message.

    Returns:
        The validated name

    Raises:
        InvalidIdentifierError: If the name is empty, not a string or breaks
            the grammar
    """
    if not isinstance(name, str) or not name:
        raise InvalidIdentifierError(name, kind, reason="must be a non-empty string")
    if not is_valid_identifier(name, qualified=kind == "column"):
        raise InvalidIdentifierError(name, kind)
    return name


def validate_identifier_list(names: str | Iterable[object], kind: str = "column") -> list[str]:
    """Validate every entry of a list of names.

    A single string is treated as a one-element list. The first invalid entry
    fails the whole call and is named in the error.
    """
    if isinstance(names, str):
        names = [names]
    return [validate_identifier(name, kind) for name in names]


__all__ = [
    "IDENT_PATTERN",
    "QUALIFIED_IDENT_PATTERN",
    "is_valid_identifier",
    "validate_identifier",
    "validate_identifier_list",
]
