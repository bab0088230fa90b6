"""Consistency checks between outlet-orm project files and the live database.

Model and controller files are read with regular expressions; the checks
look for the ``static table/fillable/casts`` declarations and relation calls
that :mod:`dbrelay.codegen.templates` produces. Results are plain dicts with
an ``issues`` list and an ``isValid`` flag (no error-severity issues).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from dbrelay.core.manager import ConnectionHandle
from dbrelay.exceptions import CodegenError, DriverError
from dbrelay.query.identifiers import validate_identifier
from dbrelay.schema.cache import SchemaCache

logger = logging.getLogger(__name__)

TABLE_PATTERN = re.compile(r"static\s+table\s*=\s*['\"]([^'\"]+)['\"]")
FILLABLE_PATTERN = re.compile(r"static\s+fillable\s*=\s*\[([^\]]*)\]")
CASTS_PATTERN = re.compile(r"static\s+casts\s*=\s*\{([^}]*)\}")
RELATION_PATTERN = re.compile(
    r"(hasOne|hasMany|belongsTo|belongsToMany|hasManyThrough|morphOne|morphMany)\s*\(\s*([^,)]+)"
)
QUOTED_PATTERN = re.compile(r"['\"]([^'\"]+)['\"]")
CAST_ENTRY_PATTERN = re.compile(r"['\"]?(\w+)['\"]?\s*:\s*['\"]([^'\"]+)['\"]")

# Columns managed by the ORM itself, never expected in fillable
MANAGED_COLUMNS = {"id", "created_at", "updated_at", "deleted_at"}

CRUD_METHODS = ("index", "show", "store", "update", "destroy")


class Issue(BaseModel):
    """A single finding; extra keys carry issue-specific detail."""

    model_config = ConfigDict(extra="allow")

    type: str
    severity: Literal["error", "warning", "info"]
    message: str


def _is_valid(issues: list[Issue]) -> bool:
    return not any(issue.severity == "error" for issue in issues)


def _read(path: Path, kind: str) -> str:
    if not path.exists():
        raise CodegenError(f"{kind} file not found: {path}", {"path": str(path)})
    return path.read_text(encoding="utf-8")


def parse_model(content: str) -> dict[str, Any]:
    """Extract table, fillable, casts and relations from model source.

    Raises:
        CodegenError: If the model declares no table
    """
    table_match = TABLE_PATTERN.search(content)
    if not table_match:
        raise CodegenError("Could not find table name in model file")
    fillable_match = FILLABLE_PATTERN.search(content)
    casts_match = CASTS_PATTERN.search(content)
    return {
        "table": table_match.group(1),
        "fillable": QUOTED_PATTERN.findall(fillable_match.group(1)) if fillable_match else [],
        "casts": dict(CAST_ENTRY_PATTERN.findall(casts_match.group(1))) if casts_match else {},
        "relations": [
            {"type": m.group(1), "relatedModel": m.group(2).strip()}
            for m in RELATION_PATTERN.finditer(content)
        ],
    }


async def verify_model_schema(
    model_path: Path, connection: ConnectionHandle, cache: SchemaCache
) -> dict[str, Any]:
    """Compare a model's fillable and cast columns with the table schema."""
    model = parse_model(_read(model_path, "Model"))
    table = validate_identifier(model["table"], "table")
    schema = await cache.get_schema(connection, table)
    db_columns = [col.field for col in schema]

    issues: list[Issue] = []
    for field in model["fillable"]:
        if field not in db_columns:
            issues.append(
                Issue(
                    type="missing_column",
                    severity="error",
                    field=field,
                    message=f"Fillable field '{field}' does not exist in database table '{table}'",
                )
            )
    for field in model["casts"]:
        if field not in db_columns:
            issues.append(
                Issue(
                    type="missing_column",
                    severity="error",
                    field=field,
                    message=f"Cast field '{field}' does not exist in database table '{table}'",
                )
            )

    unguarded = [
        col for col in db_columns if col not in model["fillable"] and col not in MANAGED_COLUMNS
    ]
    if unguarded:
        issues.append(
            Issue(
                type="unguarded_columns",
                severity="warning",
                fields=unguarded,
                message=f"Columns exist in database but not in fillable: {', '.join(unguarded)}",
            )
        )

    return {
        "tableName": table,
        "modelPath": str(model_path),
        "schema": [
            {
                "name": col.field,
                "type": col.type,
                "nullable": col.nullable,
                "key": col.key,
                "default": col.default,
            }
            for col in schema
        ],
        "fillable": model["fillable"],
        "casts": model["casts"],
        "issues": [issue.model_dump() for issue in issues],
        "isValid": _is_valid(issues),
    }


async def verify_relations(model_path: Path, connection: ConnectionHandle) -> dict[str, Any]:
    """Compare belongsTo relations with the table's foreign keys."""
    model = parse_model(_read(model_path, "Model"))
    table = validate_identifier(model["table"], "table")
    relations = model["relations"]
    foreign_keys = await connection.foreign_keys(table)

    issues: list[Issue] = []
    belongs_to = [r for r in relations if r["type"] == "belongsTo"]
    for rel in belongs_to:
        expected = f"{rel['relatedModel'].lower()}_id"
        if not any(fk.column == expected for fk in foreign_keys):
            issues.append(
                Issue(
                    type="missing_foreign_key",
                    severity="warning",
                    relation=rel["type"],
                    relatedModel=rel["relatedModel"],
                    expectedColumn=expected,
                    message=(
                        f"belongsTo relation to {rel['relatedModel']} expects foreign key "
                        f"'{expected}' but it was not found"
                    ),
                )
            )

    for fk in foreign_keys:
        if not any(rel["relatedModel"].lower() in fk.column for rel in belongs_to):
            issues.append(
                Issue(
                    type="orphaned_foreign_key",
                    severity="info",
                    column=fk.column,
                    referencedTable=fk.referenced_table,
                    message=(
                        f"Foreign key '{fk.column}' references '{fk.referenced_table}' "
                        "but no belongsTo relation found"
                    ),
                )
            )

    return {
        "tableName": table,
        "modelPath": str(model_path),
        "relations": relations,
        "foreignKeys": [
            {
                "column": fk.column,
                "referencedTable": fk.referenced_table,
                "referencedColumn": fk.referenced_column,
            }
            for fk in foreign_keys
        ],
        "issues": [issue.model_dump() for issue in issues],
        "isValid": _is_valid(issues),
    }


async def verify_migration_status(
    migrations_path: Path, connection: ConnectionHandle
) -> dict[str, Any]:
    """Compare migration files with the rows of the ``migrations`` table."""
    if not migrations_path.is_dir():
        raise CodegenError(
            f"Migrations directory not found: {migrations_path}", {"path": str(migrations_path)}
        )
    files = sorted(p.name for p in migrations_path.glob("*.js"))

    try:
        outcome = await connection.query("SELECT * FROM migrations ORDER BY batch, migration")
        applied_names = [row["migration"] for row in outcome.rows]
    except DriverError as e:
        # No migrations table yet means nothing has been applied
        logger.debug("Could not read migrations table: %s", e)
        applied_names = []

    applied = [f for f in files if f in applied_names]
    pending = [f for f in files if f not in applied_names]
    deleted = [m for m in applied_names if m not in files]

    issues: list[Issue] = []
    if deleted:
        issues.append(
            Issue(
                type="deleted_migrations",
                severity="error",
                migrations=deleted,
                message=f"{len(deleted)} migration(s) were applied but files are now missing",
            )
        )

    return {
        "migrationsPath": str(migrations_path),
        "total": len(files),
        "applied": len(applied),
        "pending": len(pending),
        "deleted": len(deleted),
        "appliedMigrations": applied,
        "pendingMigrations": pending,
        "deletedMigrations": deleted,
        "issues": [issue.model_dump() for issue in issues],
        "isValid": not deleted,
    }


def analyze_controller(controller_path: Path, model_name: str) -> dict[str, Any]:
    """Check a controller for model import, CRUD methods and error handling."""
    validate_identifier(model_name, "model")
    content = _read(controller_path, "Controller")

    has_import = bool(
        re.search(rf"require\(['\"].*{model_name}['\"]\)", content, re.IGNORECASE)
        or re.search(rf"import\s+{model_name}\b", content)
    )
    methods = {m: bool(re.search(rf"async\s+{m}\s*\(", content)) for m in CRUD_METHODS}
    usage_count = len(re.findall(rf"{model_name}\.(find|create|all|where|with)", content))
    has_error_handling = bool(
        re.search(r"try\s*{|catch\s*\(", content) or re.search(r"throw\s+new\s+Error", content)
    )
    has_pagination = "paginate(" in content
    has_eager_loading = ".with(" in content

    issues: list[Issue] = []
    if not has_import:
        issues.append(
            Issue(
                type="missing_import",
                severity="error",
                message=f"Model '{model_name}' is not imported in controller",
            )
        )
    missing = [m for m, present in methods.items() if not present]
    if missing:
        issues.append(
            Issue(
                type="missing_methods",
                severity="warning",
                methods=missing,
                message=f"Controller is missing standard CRUD methods: {', '.join(missing)}",
            )
        )
    if has_import and usage_count == 0:
        issues.append(
            Issue(
                type="unused_model",
                severity="warning",
                message=f"Model '{model_name}' is imported but never used",
            )
        )
    if not has_error_handling:
        issues.append(
            Issue(
                type="no_error_handling",
                severity="warning",
                message="Controller has no error handling (try/catch or throw)",
            )
        )

    return {
        "controllerPath": str(controller_path),
        "modelName": model_name,
        "hasImport": has_import,
        "methods": methods,
        "modelUsageCount": usage_count,
        "hasPagination": has_pagination,
        "hasEagerLoading": has_eager_loading,
        "hasErrorHandling": has_error_handling,
        "issues": [issue.model_dump() for issue in issues],
        "isValid": _is_valid(issues),
    }
