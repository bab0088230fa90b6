"""Identifier validation and parameterized query building.

Example:
    query = build_select("users", columns=["id", "name"], where={"active": 1}, limit=10)
    # query.sql == "SELECT id, name FROM users WHERE active = ? LIMIT 10"
    # query.params == [1]
"""

from dbrelay.query.builder import (
    BuiltQuery,
    SortDirection,
    build_delete,
    build_insert,
    build_select,
    build_update,
    build_where,
)
from dbrelay.query.identifiers import (
    is_valid_identifier,
    validate_identifier,
    validate_identifier_list,
)

__all__ = [
    "BuiltQuery",
    "SortDirection",
    "build_delete",
    "build_insert",
    "build_select",
    "build_update",
    "build_where",
    "is_valid_identifier",
    "validate_identifier",
    "validate_identifier_list",
]
