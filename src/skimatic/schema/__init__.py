"""Live schema introspection."""
from __future__ import annotations

from .reader import (
    SchemaReader,
    SchemaSnapshot,
    SkippedTable,
    check_primary_key,
    parse_index_columns,
)

__all__ = [
    "SchemaReader",
    "SchemaSnapshot",
    "SkippedTable",
    "check_primary_key",
    "parse_index_columns",
]
