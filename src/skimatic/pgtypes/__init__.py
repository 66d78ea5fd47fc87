"""PostgreSQL type mapping shared by schema and query analysis."""
from __future__ import annotations

from .mapper import (
    BASE_TYPES,
    NULLABLE_TYPES,
    TypeMapper,
    imports_for_type,
    validate_identifier_column,
)
from .oids import OidType, UNKNOWN_TYPE, type_for_oid

__all__ = [
    "BASE_TYPES",
    "NULLABLE_TYPES",
    "TypeMapper",
    "imports_for_type",
    "validate_identifier_column",
    "OidType",
    "UNKNOWN_TYPE",
    "type_for_oid",
]
