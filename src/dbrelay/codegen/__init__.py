"""Code generation and project verification for outlet-orm projects.

Decoupled from the query core: templates only consume validated names and
verification reads schema through the same cache the handlers use.
"""

from dbrelay.codegen.templates import (
    MigrationAction,
    RelationType,
    migration_file_name,
    render_controller,
    render_migration,
    render_model,
)
from dbrelay.codegen.verify import (
    analyze_controller,
    parse_model,
    verify_migration_status,
    verify_model_schema,
    verify_relations,
)
from dbrelay.codegen.writer import write_source

__all__ = [
    "MigrationAction",
    "RelationType",
    "analyze_controller",
    "migration_file_name",
    "parse_model",
    "render_controller",
    "render_migration",
    "render_model",
    "verify_migration_status",
    "verify_model_schema",
    "verify_relations",
    "write_source",
]
