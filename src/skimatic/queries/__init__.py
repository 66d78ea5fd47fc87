"""Annotated query parsing and live-database analysis."""
from __future__ import annotations

from .analyzer import (
    QueryAnalyzer,
    QueryFailure,
    build_probe_sql,
    extract_parameters,
)
from .lexer import Token, TokenKind, tokenize
from .parser import QueryParser, parse_queries, validate_query

__all__ = [
    "QueryAnalyzer",
    "QueryFailure",
    "build_probe_sql",
    "extract_parameters",
    "Token",
    "TokenKind",
    "tokenize",
    "QueryParser",
    "parse_queries",
    "validate_query",
]
