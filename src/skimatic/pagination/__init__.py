"""Keyset (cursor) pagination contract."""
from __future__ import annotations

from .contract import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    PaginationParams,
    PaginationResult,
    build_page,
    build_page_sql,
    decode_cursor,
    effective_limit,
    encode_cursor,
    fetch_page,
    is_time_ordered,
    pagination_key,
    validate_params,
)

__all__ = [
    "DEFAULT_LIMIT",
    "MAX_LIMIT",
    "PaginationParams",
    "PaginationResult",
    "build_page",
    "build_page_sql",
    "decode_cursor",
    "effective_limit",
    "encode_cursor",
    "fetch_page",
    "is_time_ordered",
    "pagination_key",
    "validate_params",
]
