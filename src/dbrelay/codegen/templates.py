"""Source templates for outlet-orm models, controllers and migrations.

Templates only assemble strings. Every name that ends up in generated code
is identifier-validated first, and nothing here touches a database or the
filesystem.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import datetime
from enum import StrEnum
from typing import Any

from dbrelay.exceptions import CodegenError
from dbrelay.query.identifiers import validate_identifier, validate_identifier_list

_INDENT = "  "


class RelationType(StrEnum):
    """Relations understood by outlet-orm models."""

    HAS_ONE = "hasOne"
    HAS_MANY = "hasMany"
    BELONGS_TO = "belongsTo"
    BELONGS_TO_MANY = "belongsToMany"
    HAS_MANY_THROUGH = "hasManyThrough"
    MORPH_ONE = "morphOne"
    MORPH_MANY = "morphMany"


class MigrationAction(StrEnum):
    """What a migration does to its table."""

    CREATE = "create"
    ALTER = "alter"
    DROP = "drop"


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def _pascal(name: str) -> str:
    return "".join(_capitalize(part) for part in name.split("_"))


def _js_literal(value: Any) -> str:
    if isinstance(value, str):
        return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"
    return json.dumps(value)


def _js_block(value: Any) -> str:
    # JSON.stringify(value, null, 4) inside a two-space class body
    return json.dumps(value, indent=4)


def render_model(
    model_name: str,
    table: str | None = None,
    fillable: Sequence[str] = (),
    hidden: Sequence[str] = (),
    casts: Mapping[str, str] | None = None,
    timestamps: bool = True,
    primary_key: str = "id",
    relations: Sequence[Mapping[str, Any]] = (),
) -> str:
    """Render an outlet-orm Model class.

    Args:
        model_name: Model name (class name is the capitalized form)
        table: Table name, defaults to the lowercased model name plus ``s``
        fillable: Mass-assignable columns
        hidden: Columns hidden from serialization
        casts: Column -> cast type
        timestamps: Whether the model manages created_at/updated_at
        primary_key: Primary key column
        relations: Relation dicts with ``name``, ``type``, ``model`` and
            optional ``foreignKey``, ``localKey``, ``pivotTable``, ``through``,
            ``morphType``

    Returns:
        JavaScript source
    """
    validate_identifier(model_name, "model")
    table = table or f"{model_name.lower()}s"
    validate_identifier(table, "table")
    validate_identifier(primary_key, "primary key")
    validate_identifier_list(list(fillable), "column")
    validate_identifier_list(list(hidden), "column")
    casts = dict(casts or {})
    validate_identifier_list(list(casts), "column")

    class_name = _capitalize(model_name)
    singular = table[:-1] if table.endswith("s") else table
    lines = ["const { Model } = require('outlet-orm');", ""]

    related: list[str] = []
    for rel in relations:
        model = rel.get("model")
        if model and model not in related:
            validate_identifier(model, "related model")
            related.append(model)
    for model in related:
        lines.append(f"const {model} = require('./{model}');")
    if related:
        lines.append("")

    lines.append(f"class {class_name} extends Model {{")
    lines.append(f"{_INDENT}static table = '{table}';")
    lines.append(f"{_INDENT}static primaryKey = '{primary_key}';")
    lines.append(f"{_INDENT}static timestamps = {'true' if timestamps else 'false'};")
    lines.append("")

    if fillable:
        lines.extend([f"{_INDENT}static fillable = {_js_block(list(fillable))};", ""])
    if hidden:
        lines.extend([f"{_INDENT}static hidden = {_js_block(list(hidden))};", ""])
    if casts:
        lines.extend([f"{_INDENT}static casts = {_js_block(casts)};", ""])

    for rel in relations:
        lines.extend(_render_relation(rel, singular))

    lines.append("}")
    lines.append("")
    lines.append(f"module.exports = {class_name};")
    return "\n".join(lines) + "\n"


def _render_relation(rel: Mapping[str, Any], singular: str) -> list[str]:
    name = validate_identifier(rel.get("name"), "relation")
    try:
        rel_type = RelationType(rel.get("type"))
    except ValueError:
        raise CodegenError(
            f"Invalid relation type {rel.get('type')!r} for '{name}'. "
            f"Valid types: {', '.join(t.value for t in RelationType)}",
            {"relation": name},
        ) from None
    model = validate_identifier(rel.get("model"), "related model")
    own_key = rel.get("foreignKey") or f"{singular}_id"

    body: list[str]
    if rel_type in (RelationType.HAS_ONE, RelationType.HAS_MANY):
        body = [f"return this.{rel_type}({model}, '{own_key}');"]
    elif rel_type is RelationType.BELONGS_TO:
        foreign_key = rel.get("foreignKey") or f"{model.lower()}_id"
        body = [f"return this.belongsTo({model}, '{foreign_key}');"]
    elif rel_type is RelationType.BELONGS_TO_MANY:
        pivot = validate_identifier(rel.get("pivotTable"), "pivot table")
        related_key = rel.get("localKey") or f"{model.lower()}_id"
        body = [
            "return this.belongsToMany(",
            f"{_INDENT}{model},",
            f"{_INDENT}'{pivot}',",
            f"{_INDENT}'{own_key}',",
            f"{_INDENT}'{related_key}'",
            ");",
        ]
    elif rel_type is RelationType.HAS_MANY_THROUGH:
        through = validate_identifier(rel.get("through"), "through model")
        local_key = rel.get("localKey") or f"{through.lower()}_id"
        body = [
            "return this.hasManyThrough(",
            f"{_INDENT}{model},",
            f"{_INDENT}{through},",
            f"{_INDENT}'{own_key}',",
            f"{_INDENT}'{local_key}'",
            ");",
        ]
    else:
        morph_type = rel.get("morphType")
        morph_name = morph_type.replace("_type", "") if morph_type else "morphable"
        body = [f"return this.{rel_type}({model}, '{morph_name}');"]

    for key in ("foreignKey", "localKey"):
        if rel.get(key):
            validate_identifier(rel[key], "column")

    lines = [f"{_INDENT}// {rel_type} relation", f"{_INDENT}{name}() {{"]
    lines.extend(f"{_INDENT * 2}{line}" for line in body)
    lines.extend([f"{_INDENT}}}", ""])
    return lines


def render_controller(controller_name: str, model_name: str) -> str:
    """Render a CRUD controller (index, show, store, update, destroy) for a model."""
    validate_identifier(controller_name, "controller")
    validate_identifier(model_name, "model")

    class_name = _capitalize(controller_name)
    if not class_name.endswith("Controller"):
        class_name += "Controller"
    model = _capitalize(model_name)
    with_relations = [
        "    if (withRelations) {",
        "      const relations = Array.isArray(withRelations) ? withRelations : [withRelations];",
        "      query = query.with(...relations);",
        "    }",
        "",
    ]
    find_or_fail = [
        f"    const record = await {model}.find(id);",
        "",
        "    if (!record) {",
        "      throw new Error('Record not found');",
        "    }",
        "",
    ]

    lines = [f"const {model} = require('../models/{model}');", "", f"class {class_name} {{", ""]
    lines += [
        "  /**",
        "   * Get all records with optional pagination",
        "   * @param {Object} req - Request with query params (page, perPage, with)",
        "   */",
        "  async index(req) {",
        "    const { page, perPage = 15, with: withRelations } = req.query || {};",
        "",
        f"    let query = {model};",
        "",
        *with_relations,
        "    if (page) {",
        "      return await query.paginate(Number.parseInt(page, 10), Number.parseInt(perPage, 10));",
        "    }",
        "",
        "    return await query.all();",
        "  }",
        "",
    ]
    lines += [
        "  /**",
        "   * Get a single record by ID",
        "   * @param {Object} req - Request with params.id and query.with",
        "   */",
        "  async show(req) {",
        "    const { id } = req.params;",
        "    const { with: withRelations } = req.query || {};",
        "",
        f"    let query = {model};",
        "",
        *with_relations,
        "    const record = await query.find(id);",
        "",
        "    if (!record) {",
        "      throw new Error('Record not found');",
        "    }",
        "",
        "    return record;",
        "  }",
        "",
    ]
    lines += [
        "  /**",
        "   * Create a new record",
        "   * @param {Object} req - Request with body data",
        "   */",
        "  async store(req) {",
        "    const data = req.body;",
        f"    return await {model}.create(data);",
        "  }",
        "",
    ]
    lines += [
        "  /**",
        "   * Update an existing record",
        "   * @param {Object} req - Request with params.id and body data",
        "   */",
        "  async update(req) {",
        "    const { id } = req.params;",
        "    const data = req.body;",
        "",
        *find_or_fail,
        "    for (const [key, value] of Object.entries(data)) {",
        "      record.setAttribute(key, value);",
        "    }",
        "",
        "    await record.save();",
        "    return record;",
        "  }",
        "",
    ]
    lines += [
        "  /**",
        "   * Delete a record",
        "   * @param {Object} req - Request with params.id",
        "   */",
        "  async destroy(req) {",
        "    const { id } = req.params;",
        "",
        *find_or_fail,
        "    await record.destroy();",
        "    return { success: true, message: 'Record deleted successfully' };",
        "  }",
        "}",
        "",
        f"module.exports = new {class_name}();",
    ]
    return "\n".join(lines) + "\n"


def _column_line(col: Mapping[str, Any], alter: bool = False) -> str:
    col_type = validate_identifier(col.get("type"), "column type")
    name = validate_identifier(col.get("name"), "column")
    line = f"table.{col_type}('{name}'"
    if col.get("length"):
        line += f", {int(col['length'])}"
    line += ")"
    if col.get("nullable"):
        line += ".nullable()"
    if col.get("unique"):
        line += ".unique()"
    if col.get("unsigned") and not alter:
        line += ".unsigned()"
    if "default" in col and col["default"] is not None:
        line += f".default({_js_literal(col['default'])})"
    if col.get("comment") and not alter:
        line += f".comment({_js_literal(col['comment'])})"
    if col.get("after"):
        line += f".after('{validate_identifier(col['after'], 'column')}')"
    if col.get("first") and not alter:
        line += ".first()"
    return line + ";"


def migration_file_name(migration_name: str, now: datetime | None = None) -> str:
    """Return ``YYYYMMDD_HHMMSS_<name>.js`` for a migration."""
    validate_identifier(migration_name, "migration")
    now = now or datetime.now()
    return f"{now:%Y%m%d_%H%M%S}_{migration_name}.js"


def render_migration(
    migration_name: str,
    table: str,
    action: str = "create",
    columns: Sequence[Mapping[str, Any]] = (),
    indexes: Sequence[Mapping[str, Any]] = (),
    foreign_keys: Sequence[Mapping[str, Any]] = (),
    timestamps: bool = True,
    soft_deletes: bool = False,
    now: datetime | None = None,
) -> tuple[str, str]:
    """Render an outlet-orm migration.

    Args:
        migration_name: snake_case migration name (class name is its PascalCase)
        table: Table the migration targets
        action: create, alter or drop
        columns: Column dicts (``name``, ``type`` and modifiers; for alter an
            ``action`` of add/drop/rename with ``from``/``to`` for renames)
        indexes: ``{"type": "index"|"unique", "columns": [...]}`` (create only)
        foreign_keys: ``{"column", "references", "on", "onDelete", "onUpdate"}``
        timestamps: Add created_at/updated_at on create
        soft_deletes: Add a nullable deleted_at on create
        now: Timestamp for the file name (defaults to the current time)

    Returns:
        (file_name, source)
    """
    file_name = migration_file_name(migration_name, now)
    if not table:
        raise CodegenError("Table name is required for a migration.")
    validate_identifier(table, "table")
    try:
        migration_action = MigrationAction(action)
    except ValueError:
        raise CodegenError(
            f"Invalid migration action {action!r}. Valid actions: create, alter, drop",
            {"action": action},
        ) from None

    class_name = _pascal(migration_name)
    ind = _INDENT * 3
    up: list[str] = []
    down: list[str] = []

    if migration_action is MigrationAction.CREATE:
        up.append(f"    await this.schema.create('{table}', (table) => {{")
        up.extend(ind + _column_line(col) for col in columns)
        if timestamps:
            up.append(f"{ind}table.timestamps();")
        if soft_deletes:
            up.append(f"{ind}table.timestamp('deleted_at').nullable();")
        for idx in indexes:
            idx_columns = validate_identifier_list(list(idx.get("columns") or []), "column")
            if idx.get("type") in ("index", "unique"):
                up.append(f"{ind}table.{idx['type']}({json.dumps(idx_columns)});")
        for fk in foreign_keys:
            column = validate_identifier(fk.get("column"), "column")
            references = validate_identifier(fk.get("references"), "column")
            on = validate_identifier(fk.get("on"), "table")
            line = f"{ind}table.foreign('{column}').references('{references}').on('{on}')"
            if fk.get("onDelete"):
                line += f".onDelete({_js_literal(fk['onDelete'])})"
            if fk.get("onUpdate"):
                line += f".onUpdate({_js_literal(fk['onUpdate'])})"
            up.append(line + ";")
        up.append("    });")
        down.append(f"    await this.schema.dropIfExists('{table}');")

    elif migration_action is MigrationAction.ALTER:
        up.append(f"    await this.schema.table('{table}', (table) => {{")
        down.append(f"    await this.schema.table('{table}', (table) => {{")
        down.append(f"{ind}// Reverse the changes made in up()")
        for col in columns:
            col_action = col.get("action")
            if col_action == "add":
                up.append(ind + _column_line(col, alter=True))
                down.append(f"{ind}table.dropColumn('{col['name']}');")
            elif col_action == "drop":
                up.append(f"{ind}table.dropColumn('{validate_identifier(col.get('name'), 'column')}');")
            elif col_action == "rename":
                old = validate_identifier(col.get("from"), "column")
                new = validate_identifier(col.get("to"), "column")
                up.append(f"{ind}table.renameColumn('{old}', '{new}');")
                down.append(f"{ind}table.renameColumn('{new}', '{old}');")
        up.append("    });")
        down.append("    });")

    else:
        up.append(f"    await this.schema.dropIfExists('{table}');")
        down.append("    // Cannot easily reverse a drop operation")
        down.append("    // You would need to recreate the table with its original structure")

    lines = [
        "const { Schema } = require('outlet-orm/lib/Schema/Schema');",
        "",
        f"class {class_name} {{",
        "  constructor(connection) {",
        "    this.schema = new Schema(connection);",
        "  }",
        "",
        "  async up() {",
        *up,
        "  }",
        "",
        "  async down() {",
        *down,
        "  }",
        "}",
        "",
        f"module.exports = {class_name};",
    ]
    return file_name, "\n".join(lines) + "\n"
