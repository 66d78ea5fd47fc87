"""Intermediate representation: tables, queries, columns, parameters."""
from __future__ import annotations

from .models import (
    Column,
    Index,
    Parameter,
    Query,
    QueryType,
    Table,
)
from .naming import is_valid_identifier, to_pascal_case, to_snake_case

__all__ = [
    "Column",
    "Index",
    "Parameter",
    "Query",
    "QueryType",
    "Table",
    "is_valid_identifier",
    "to_pascal_case",
    "to_snake_case",
]
