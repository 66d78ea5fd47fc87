"""Error taxonomy for the analysis engine.

Every error carries the component that raised it and the table, query or
column it concerns, so the rendered message is useful without a traceback.
"""
from __future__ import annotations


class SkimaticError(Exception):
    """Base class for all engine errors."""

    component = "skimatic"

    def __init__(self, detail: str, subject: str | None = None):
        self.detail = detail
        self.subject = subject
        super().__init__(self._render())

    def _render(self) -> str:
        if self.subject:
            return f"{self.component}: {self.subject}: {self.detail}"
        return f"{self.component}: {self.detail}"


class SchemaError(SkimaticError):
    """Catalog read failure or an unusable table definition."""

    component = "schema"


class IdentifierColumnError(SchemaError):
    """Column cannot serve as a primary key / pagination identifier."""


class ParseError(SkimaticError):
    """Annotation syntax, empty body, bad name or wrong statement shape."""

    component = "parser"

    def __init__(self, detail: str, subject: str | None = None, line: int | None = None):
        self.line = line
        if line is not None:
            detail = f"{detail} (line {line})"
        super().__init__(detail, subject)


class UnsupportedTypeError(SkimaticError):
    """Native type with no target type mapping."""

    component = "types"

    def __init__(self, native_type: str, subject: str | None = None):
        self.native_type = native_type
        super().__init__(f"unsupported PostgreSQL type: {native_type}", subject)


class AnalysisError(SkimaticError):
    """Probe/prepare failure, parameter mismatch, timeout or missing connection."""

    component = "analyzer"


class PaginationError(SkimaticError):
    """Invalid cursor or out-of-range limit."""

    component = "pagination"
