"""Live-database type inference for annotated queries.

Three passes per query:

1. Parameter extraction from the token stream (no database needed).
2. Result columns for row-returning queries: the statement is wrapped in a
   zero-row probe, executed, and the returned attribute descriptors are mapped
   OID -> type name -> Go type.
3. Parameter types: the statement is prepared inside a transaction that is
   always rolled back, and the prepared parameter OIDs are copied onto the
   extracted parameters.

Nothing here parses SQL beyond tokenizing it; PostgreSQL does the type checking.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Literal, Sequence, TypeVar

import asyncpg

from ..db import Database, acquire, is_pool
from ..errors import AnalysisError, SkimaticError
from ..ir.models import Column, Parameter, Query
from ..pgtypes.mapper import TypeMapper
from ..pgtypes.oids import UNKNOWN_TYPE, type_for_oid
from .lexer import Token, TokenKind, placeholder_indexes, render, replace_placeholder, tokenize

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROBE_ALIAS = "skimatic_probe"
PROBE_SENTINEL = "NULL"
DEFAULT_PARAMETER_TYPE = "text"

DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

ErrorPolicy = Literal["abort", "skip"]


@dataclass
class QueryFailure:
    query: Query
    error: SkimaticError


def extract_parameters(sql: str) -> list[Parameter]:
    """Distinct positional parameters in ``sql``, ascending by index.

    Placeholders inside string literals, quoted identifiers, comments and
    dollar-quoted bodies are ignored.
    """
    return [Parameter(index=i, type=DEFAULT_PARAMETER_TYPE) for i in placeholder_indexes(tokenize(sql))]


def trim_statement(sql: str) -> list[Token]:
    """Tokens of ``sql`` minus trailing whitespace, comments and semicolons."""
    tokens = tokenize(sql.strip())
    while tokens:
        last = tokens[-1]
        if last.kind is TokenKind.COMMENT:
            tokens.pop()
            continue
        if last.kind is not TokenKind.OTHER:
            break
        # OTHER runs can mix literals with the terminator, e.g. " 1; ".
        text = last.text.rstrip(" \t\r\n;")
        if text == last.text:
            break
        if text:
            tokens[-1] = Token(TokenKind.OTHER, text, last.position)
        else:
            tokens.pop()
    return tokens


def null_out_placeholders(tokens: list[Token]) -> list[Token]:
    # Highest index first, one distinct parameter at a time.
    for index in sorted(placeholder_indexes(tokens), reverse=True):
        tokens = replace_placeholder(tokens, index, PROBE_SENTINEL)
    return tokens


def build_probe_sql(sql: str) -> str:
    """Zero-row wrapper that lets PostgreSQL plan ``sql`` without returning data.

    The statement is placed on its own lines so a trailing line comment cannot
    swallow the closing parenthesis.
    """
    body = render(null_out_placeholders(trim_statement(sql)))
    return f"SELECT * FROM (\n{body}\n) AS {PROBE_ALIAS} LIMIT 0"


class QueryAnalyzer:
    """Resolves parameters and result columns of parsed queries.

    Args:
        db: asyncpg connection or pool; may be None when only parameter
            extraction is needed
        type_mapper: Shared TypeMapper (a default one is built if omitted)
        timeout: Seconds allowed for each probe/prepare round trip
        infer_select_parameters: Also prepare row-returning queries to type
            their parameters (exec queries are always prepared)
    """

    def __init__(
        self,
        db: Database | None,
        type_mapper: TypeMapper | None = None,
        timeout: float | None = None,
        infer_select_parameters: bool = True,
    ):
        self.db = db
        self.type_mapper = type_mapper or TypeMapper()
        self.timeout = timeout
        self.infer_select_parameters = infer_select_parameters

    async def analyze(self, query: Query | None) -> None:
        """Fill ``query.parameters`` and ``query.columns`` in place.

        Raises:
            AnalysisError: On missing connection, probe/prepare failure,
                parameter count mismatch or timeout
            UnsupportedTypeError: If a result or parameter type has no mapping
        """
        if query is None:
            return

        query.parameters = extract_parameters(query.sql)
        if not query.sql.strip():
            return

        if self.db is None:
            raise AnalysisError("database connection required for query analysis", subject=query.name)

        async with acquire(self.db) as conn:
            if query.returns_rows:
                query.columns = await self._probe_columns(conn, query)
            if not query.returns_rows or self.infer_select_parameters:
                await self._prepare_parameters(conn, query)
        self.type_mapper.map_query_columns(query)

        logger.debug(
            "Analyzed %s: %d parameters, %d columns",
            query.name, len(query.parameters), len(query.columns),
        )

    async def analyze_all(
        self,
        queries: Sequence[Query],
        concurrency: int = 1,
        on_error: ErrorPolicy = "abort",
    ) -> list[QueryFailure]:
        """Analyze many queries behind a bounded semaphore.

        A single connection cannot run statements concurrently, so concurrency
        only applies when ``db`` is a pool.

        Returns:
            Failures in input order (always empty with ``on_error="abort"``)

        Raises:
            SkimaticError: The first failure in input order, when aborting
        """
        if not is_pool(self.db):
            concurrency = 1
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def run(query: Query) -> None:
            async with semaphore:
                await self.analyze(query)

        results = await asyncio.gather(*(run(q) for q in queries), return_exceptions=True)

        failures: list[QueryFailure] = []
        for query, result in zip(queries, results):
            if result is None:
                continue
            if not isinstance(result, SkimaticError):
                raise result
            if on_error == "abort":
                raise result
            failures.append(QueryFailure(query=query, error=result))
        return failures

    async def _bounded(self, awaitable: Awaitable[T], query: Query, action: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise AnalysisError(f"{action} timed out after {self.timeout}s", subject=query.name) from e
        except DB_ERRORS as e:
            raise AnalysisError(f"{action} failed: {e}", subject=query.name) from e

    async def _probe_columns(self, conn: asyncpg.Connection, query: Query) -> list[Column]:
        probe_sql = build_probe_sql(query.sql)
        logger.debug("Probing %s: %s", query.name, probe_sql)

        stmt = await self._bounded(conn.prepare(probe_sql), query, "query column analysis")
        await self._bounded(stmt.fetch(), query, "query column analysis")

        columns = []
        for attr in stmt.get_attributes():
            pg_type, is_array = self._native_type(attr.type)
            columns.append(Column(
                name=attr.name,
                type=pg_type,
                # A probe cannot see NOT NULL provenance through expressions.
                is_nullable=True,
                is_array=is_array,
            ))
        return columns

    async def _prepare_parameters(self, conn: asyncpg.Connection, query: Query) -> None:
        # Never committed: the transaction only scopes the prepared statement.
        tr = conn.transaction()
        await self._bounded(tr.start(), query, "transaction start")
        try:
            stmt = await self._bounded(conn.prepare(query.sql), query, "query preparation")
            param_types = stmt.get_parameters()
        except BaseException:
            try:
                await self._bounded(tr.rollback(), query, "transaction rollback")
            except AnalysisError as rollback_error:
                logger.warning("Rollback after failed preparation of %s: %s", query.name, rollback_error)
            raise
        await self._bounded(tr.rollback(), query, "transaction rollback")

        if len(param_types) != len(query.parameters):
            raise AnalysisError(
                f"parameter count mismatch: query expects {len(param_types)} parameters, "
                f"found {len(query.parameters)}",
                subject=query.name,
            )

        for param, pg in zip(query.parameters, param_types):
            param.type, param.is_array = self._native_type(pg)

    def _native_type(self, pg: Any) -> tuple[str, bool]:
        """(type name, is_array) for an asyncpg Type record.

        Unknown OIDs fall back to the server-side type name so overrides can
        cover enums and domains.
        """
        name, is_array = type_for_oid(pg.oid)
        if name == UNKNOWN_TYPE and getattr(pg, "name", None):
            return pg.name, False
        return name, is_array
