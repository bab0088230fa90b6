"""Schema introspection cache."""

from dbrelay.schema.cache import SCHEMA_CACHE_TTL, SchemaCache, SchemaSource

__all__ = ["SCHEMA_CACHE_TTL", "SchemaCache", "SchemaSource"]
