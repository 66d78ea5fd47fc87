"""skimatic: PostgreSQL schema and query analysis for Go code generation."""
from __future__ import annotations

from .errors import (
    AnalysisError,
    IdentifierColumnError,
    PaginationError,
    ParseError,
    SchemaError,
    SkimaticError,
    UnsupportedTypeError,
)

__version__ = "0.1.0"

__all__ = [
    "AnalysisError",
    "IdentifierColumnError",
    "PaginationError",
    "ParseError",
    "SchemaError",
    "SkimaticError",
    "UnsupportedTypeError",
    "__version__",
]
