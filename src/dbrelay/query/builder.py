"""Parameterized SQL construction.

Turns declarative operation specs into ``BuiltQuery(sql, params)`` pairs.
Identifiers pass through :mod:`dbrelay.query.identifiers` before they are
interpolated; values always travel as ``?`` bound parameters. LIMIT and
OFFSET are coerced to integers and interpolated directly, because not every
driver accepts them as parameters.

WHERE mappings only support equality and ``IS NULL`` tests joined by AND.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from dbrelay.exceptions import UnsafeOperationError, ValidationError
from dbrelay.query.identifiers import validate_identifier, validate_identifier_list

logger = logging.getLogger(__name__)


class SortDirection(StrEnum):
    """ORDER BY directions."""

    ASC = "ASC"
    DESC = "DESC"


@dataclass
class BuiltQuery:
    """A SQL template and its bound parameters, in placeholder order."""

    sql: str
    params: list[Any] = field(default_factory=list)


def build_where(where: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    """Compile a WHERE mapping into a clause and its parameters.

    ``{"a": 1, "b": None}`` becomes ``("a = ? AND b IS NULL", [1])``.
    An empty or missing mapping yields ``("", [])``.
    """
    if not where:
        return "", []
    validate_identifier_list(list(where.keys()), "column")

    conditions: list[str] = []
    params: list[Any] = []
    for column, value in where.items():
        if value is None:
            conditions.append(f"{column} IS NULL")
        else:
            conditions.append(f"{column} = ?")
            params.append(value)
    return " AND ".join(conditions), params


def _select_list(columns: str | Sequence[str] | None) -> str:
    if columns is None:
        return "*"
    if isinstance(columns, str):
        if columns.strip() == "*":
            return "*"
        columns = [c.strip() for c in columns.split(",")]
    if not columns:
        return "*"
    return ", ".join(validate_identifier_list(list(columns), "column"))


def _order_by_list(order_by: str | Sequence[str]) -> str:
    terms = [t.strip() for t in order_by.split(",")] if isinstance(order_by, str) else order_by
    parts: list[str] = []
    for term in terms:
        tokens = str(term).split()
        if not tokens or len(tokens) > 2:
            raise ValidationError(
                f"Invalid ORDER BY term: {term!r}. Use 'column' or 'column ASC|DESC'.",
                {"order_by": term},
            )
        column = validate_identifier(tokens[0], "column")
        if len(tokens) == 1:
            parts.append(column)
            continue
        try:
            direction = SortDirection(tokens[1].upper())
        except ValueError:
            raise ValidationError(
                f"Invalid ORDER BY direction: {tokens[1]!r}. Use ASC or DESC.",
                {"order_by": term},
            ) from None
        parts.append(f"{column} {direction}")
    return ", ".join(parts)


def _non_negative_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{name} must be an integer, got {value!r}.", {name.lower(): repr(value)}
        ) from None
    if number < 0:
        raise ValidationError(f"{name} must not be negative, got {number}.", {name.lower(): number})
    return number


def build_select(
    table: str,
    columns: str | Sequence[str] | None = None,
    where: Mapping[str, Any] | None = None,
    order_by: str | Sequence[str] | None = None,
    limit: int | str | None = None,
    offset: int | str | None = None,
) -> BuiltQuery:
    """Build ``SELECT {columns|*} FROM table [WHERE] [ORDER BY] [LIMIT [OFFSET]]``.

    Args:
        table: Table name
        columns: Column list, comma separated string, ``"*"`` or None
        where: Equality / NULL conditions
        order_by: ``"col [ASC|DESC], ..."`` string or list of such terms
        limit: Maximum rows (coerced to int)
        offset: Rows to skip; only emitted together with ``limit``

    Returns:
        BuiltQuery with SQL and parameters
    """
    validate_identifier(table, "table")
    sql = f"SELECT {_select_list(columns)} FROM {table}"

    clause, params = build_where(where)
    if clause:
        sql += f" WHERE {clause}"
    if order_by:
        sql += f" ORDER BY {_order_by_list(order_by)}"
    if limit is not None and limit != "":
        sql += f" LIMIT {_non_negative_int(limit, 'LIMIT')}"
        if offset is not None and offset != "":
            sql += f" OFFSET {_non_negative_int(offset, 'OFFSET')}"

    logger.debug("Built select: %s", sql)
    return BuiltQuery(sql, params)


def build_insert(table: str, data: Mapping[str, Any], returning: bool = False) -> BuiltQuery:
    """Build ``INSERT INTO table (cols) VALUES (?, ...)``.

    Args:
        table: Table name
        data: Column -> value mapping (must not be empty)
        returning: Append ``RETURNING *`` so drivers without a last-row-id
            (PostgreSQL) still report the generated key

    Returns:
        BuiltQuery with values bound in column order
    """
    validate_identifier(table, "table")
    if not data:
        raise ValidationError("Data object is required and must not be empty.", {"table": table})
    columns = validate_identifier_list(list(data.keys()), "column")

    placeholders = ", ".join("?" for _ in columns)
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
    if returning:
        sql += " RETURNING *"

    logger.debug("Built insert: %s", sql)
    return BuiltQuery(sql, list(data.values()))


def build_update(
    table: str,
    data: Mapping[str, Any],
    where: Mapping[str, Any] | None,
) -> BuiltQuery:
    """Build ``UPDATE table SET col = ?, ... WHERE ...``.

    Raises:
        ValidationError: If ``data`` is empty
        UnsafeOperationError: If ``where`` is empty
    """
    validate_identifier(table, "table")
    if not data:
        raise ValidationError("Data object is required and must not be empty.", {"table": table})
    if not where:
        raise UnsafeOperationError("update", table)

    columns = validate_identifier_list(list(data.keys()), "column")
    set_clause = ", ".join(f"{column} = ?" for column in columns)
    where_clause, where_params = build_where(where)

    sql = f"UPDATE {table} SET {set_clause} WHERE {where_clause}"
    logger.debug("Built update: %s", sql)
    return BuiltQuery(sql, [*data.values(), *where_params])


def build_delete(table: str, where: Mapping[str, Any] | None) -> BuiltQuery:
    """Build ``DELETE FROM table WHERE ...``.

    Raises:
        UnsafeOperationError: If ``where`` is empty
    """
    validate_identifier(table, "table")
    if not where:
        raise UnsafeOperationError("delete from", table)

    where_clause, params = build_where(where)
    sql = f"DELETE FROM {table} WHERE {where_clause}"
    logger.debug("Built delete: %s", sql)
    return BuiltQuery(sql, params)


__all__ = [
    "BuiltQuery",
    "SortDirection",
    "build_delete",
    "build_insert",
    "build_select",
    "build_update",
    "build_where",
]
