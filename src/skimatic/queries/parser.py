"""Annotated query file parser.

Query files hold any number of statements, each introduced by an annotation
comment naming it and declaring what it returns:

    -- name: GetUserByEmail :one
    SELECT id, name, email FROM users WHERE email = $1;

    -- name: DeactivateUser :exec
    UPDATE users SET is_active = false WHERE id = $1;

Parsing produces unresolved queries: no parameters or columns yet, those are
filled in by the analyzer against a live database.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from ..errors import ParseError
from ..ir.models import Query, QueryType
from ..ir.naming import is_valid_identifier
from .lexer import strip_leading_comments

logger = logging.getLogger(__name__)

ANNOTATION_RE = re.compile(
    r"^--\s*name:\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*:([a-zA-Z]+)\s*;?\s*$"
)
# Same shape with any name/kind token, used to spot malformed annotations.
ANNOTATION_SHAPE_RE = re.compile(r"^--\s*name:\s*(\S+)\s*:(\S+?)\s*;?\s*$")
# Any line opening like an annotation, however malformed the rest.
ANNOTATION_PREFIX_RE = re.compile(r"^--\s*name:")

RETURNING_RE = re.compile(r"^(select|with)\b", re.IGNORECASE)
SNIPPET_LENGTH = 50


@dataclass
class Annotation:
    name: str
    type: QueryType


class QueryParser:
    """Parses annotated SQL text into unresolved queries.

    Args:
        strict_annotations: Raise on annotation lines that carry an unknown
            operation kind instead of treating them as plain comments.
    """

    def __init__(self, strict_annotations: bool = True):
        self.strict_annotations = strict_annotations

    def parse(self, source: str, source_file: str = "") -> list[Query]:
        queries: list[Query] = []
        current: Query | None = None
        current_line = 0
        body: list[str] = []

        def flush() -> None:
            if current is None:
                return
            current.sql = "\n".join(body).strip()
            if not current.sql:
                raise ParseError(
                    f"empty query in {source_file or '<string>'}",
                    subject=current.name,
                    line=current_line,
                )
            queries.append(current)

        for line_no, line in enumerate(source.splitlines(), start=1):
            stripped = line.strip()

            annotation = self.parse_annotation(stripped, line_no)
            if annotation is not None:
                flush()
                current = Query(
                    name=annotation.name,
                    sql="",
                    type=annotation.type,
                    source_file=source_file,
                )
                current_line = line_no
                body = []
                continue

            if not stripped or (stripped.startswith("--") and "name:" not in stripped):
                continue

            if current is not None:
                body.append(line)

        flush()
        logger.debug("Parsed %d queries from %s", len(queries), source_file or "<string>")
        return queries

    def parse_annotation(self, line: str, line_no: int | None = None) -> Annotation | None:
        """Parse ``-- name: QueryName :kind``; None for anything else."""
        match = ANNOTATION_RE.match(line)
        if match is not None:
            try:
                return Annotation(name=match.group(1), type=QueryType.parse(match.group(2)))
            except ValueError as e:
                if self.strict_annotations:
                    raise ParseError(str(e), subject=match.group(1), line=line_no) from e
                logger.debug("Ignoring annotation with unknown kind at line %s: %s", line_no, line)
                return None

        if not self.strict_annotations:
            return None
        shape = ANNOTATION_SHAPE_RE.match(line)
        if shape is not None:
            raise ParseError(
                f"query name '{shape.group(1)}' is not a valid identifier",
                subject=shape.group(1),
                line=line_no,
            )
        if ANNOTATION_PREFIX_RE.match(line):
            raise ParseError(
                f"malformed query annotation (expected '-- name: QueryName :kind'): {line}",
                line=line_no,
            )
        return None

    def parse_file(self, path: str | Path) -> list[Query]:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ParseError(f"failed to read file: {e}", subject=str(path)) from e
        return self.parse(text, source_file=str(path))

    def parse_directory(self, directory: str | Path) -> list[Query]:
        """Parse every ``*.sql`` file below ``directory`` in path order."""
        if not directory:
            raise ParseError("queries directory not specified")
        root = Path(directory)
        if not root.is_dir():
            raise ParseError(f"queries directory does not exist: {root}")

        files = sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() == ".sql")
        if not files:
            raise ParseError(f"no SQL files found in directory: {root}")

        queries: list[Query] = []
        for sql_file in files:
            queries.extend(self.parse_file(sql_file))
        logger.info("Parsed %d queries from %d files in %s", len(queries), len(files), root)
        return queries


def validate_query(query: Query) -> None:
    """Check name and statement shape against the declared kind.

    Raises:
        ParseError: If the query cannot be generated as declared
    """
    if not query.name:
        raise ParseError("query name cannot be empty")
    if not query.sql:
        raise ParseError("query SQL cannot be empty", subject=query.name)
    if not query.type:
        raise ParseError("query type cannot be empty", subject=query.name)
    if not is_valid_identifier(query.name):
        raise ParseError(f"query name '{query.name}' is not a valid Go identifier", subject=query.name)

    is_select = RETURNING_RE.match(strip_leading_comments(query.sql).lstrip()) is not None
    snippet = _snippet(query.sql)

    if query.type.returns_rows and not is_select:
        raise ParseError(
            f"query type {query.type.value} requires SELECT statement or CTE, got: {snippet}",
            subject=query.name,
        )
    if not query.type.returns_rows and is_select:
        raise ParseError(
            f"query type {query.type.value} cannot use SELECT statement or CTE, got: {snippet}",
            subject=query.name,
        )


def parse_queries(source: str, source_file: str = "", strict_annotations: bool = True) -> list[Query]:
    return QueryParser(strict_annotations=strict_annotations).parse(source, source_file)


def _snippet(sql: str) -> str:
    if len(sql) > SNIPPET_LENGTH:
        return sql[:SNIPPET_LENGTH] + "..."
    return sql
