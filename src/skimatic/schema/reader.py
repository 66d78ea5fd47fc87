"""Table introspection for code generation.

Reads base tables, their columns, primary keys and secondary indexes from a
live PostgreSQL schema and resolves every column to a Go type.

Generated repositories page and look up rows by a single uuid primary key, so
tables without one (no key, composite key, non-uuid key) are returned as
skipped rather than failing the whole read.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

import asyncpg

from ..db import Database, acquire, is_pool
from ..errors import IdentifierColumnError, SchemaError
from ..ir.models import Column, Index, Table
from ..pgtypes.mapper import TypeMapper, validate_identifier_column
from . import catalog

logger = logging.getLogger(__name__)

T = TypeVar("T")

DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


@dataclass
class SkippedTable:
    name: str
    reason: str


@dataclass
class SchemaSnapshot:
    """Result of one schema read."""
    schema: str
    tables: list[Table] = field(default_factory=list)
    skipped: list[SkippedTable] = field(default_factory=list)

    def get_table(self, name: str) -> Table | None:
        for table in self.tables:
            if table.name == name:
                return table
        return None


class SchemaReader:
    """Introspects tables in one schema.

    Args:
        db: asyncpg connection or pool
        type_mapper: Shared TypeMapper
        timeout: Seconds allowed for each catalog query
        concurrency: Tables read in parallel (pools only)
    """

    def __init__(
        self,
        db: Database,
        type_mapper: TypeMapper | None = None,
        timeout: float | None = None,
        concurrency: int = 1,
    ):
        self.db = db
        self.type_mapper = type_mapper or TypeMapper()
        self.timeout = timeout
        self.concurrency = concurrency if is_pool(db) else 1

    async def list_tables(
        self,
        schema: str = "public",
        include: Callable[[str], bool] | None = None,
    ) -> SchemaSnapshot:
        """Read every base table in ``schema``.

        Args:
            schema: Schema name
            include: Optional predicate on table names; tables it rejects are ignored

        Returns:
            SchemaSnapshot with usable tables and skipped ones

        Raises:
            SchemaError: On catalog failures or tables without columns
        """
        async with acquire(self.db) as conn:
            names = await self._bounded(catalog.list_table_names(conn, schema), schema, "list tables")

        if include is not None:
            names = [n for n in names if include(n)]
        logger.info("Reading %d tables from schema %s", len(names), schema)

        semaphore = asyncio.Semaphore(max(1, self.concurrency))

        async def read(name: str) -> Table:
            async with semaphore:
                async with acquire(self.db) as conn:
                    return await self.read_table(conn, schema, name)

        results = await asyncio.gather(*(read(n) for n in names), return_exceptions=True)

        snapshot = SchemaSnapshot(schema=schema)
        for name, result in zip(names, results):
            if isinstance(result, IdentifierColumnError):
                logger.debug("Skipping table %s: %s", name, result.detail)
                snapshot.skipped.append(SkippedTable(name=name, reason=result.detail))
            elif isinstance(result, BaseException):
                raise result
            else:
                snapshot.tables.append(result)
        return snapshot

    async def read_table(self, conn: asyncpg.Connection, schema: str, name: str) -> Table:
        """Introspect a single table.

        Raises:
            IdentifierColumnError: Missing, composite or non-uuid primary key
            SchemaError: Catalog failure or a table without columns
            UnsupportedTypeError: A column type with no mapping
        """
        subject = f"{schema}.{name}"
        column_rows = await self._bounded(catalog.list_columns(conn, schema, name), subject, "list columns")
        if not column_rows:
            raise SchemaError("table has no columns", subject=subject)

        primary_key = await self._bounded(
            catalog.list_primary_key(conn, schema, name), subject, "list primary key"
        )
        index_rows = await self._bounded(catalog.list_indexes(conn, schema, name), subject, "list indexes")

        table = Table(
            name=name,
            schema=schema,
            columns=[column_from_row(r) for r in column_rows],
            primary_key=primary_key,
            indexes=[index_from_row(r) for r in index_rows],
        )

        check_primary_key(table)
        self.type_mapper.map_table_columns(table)
        return table

    async def _bounded(self, awaitable: Awaitable[T], subject: str, action: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise SchemaError(f"{action} timed out after {self.timeout}s", subject=subject) from e
        except DB_ERRORS as e:
            raise SchemaError(f"{action} failed: {e}", subject=subject) from e


def check_primary_key(table: Table) -> None:
    if not table.primary_key:
        raise IdentifierColumnError("table has no primary key", subject=table.name)
    if len(table.primary_key) > 1:
        raise IdentifierColumnError(
            f"composite primary key ({', '.join(table.primary_key)}) is not supported",
            subject=table.name,
        )
    validate_identifier_column(table.primary_key_column(), table=table.name)


def column_from_row(row: dict[str, Any]) -> Column:
    return Column(
        name=row["column_name"],
        type=row["normalized_type"],
        is_nullable=bool(row["is_nullable"]),
        is_array=bool(row["is_array"]),
        default_value=row.get("column_default") or "",
        max_length=row.get("character_maximum_length") or 0,
    )


def index_from_row(row: dict[str, Any]) -> Index:
    definition = row["indexdef"]
    return Index(
        name=row["indexname"],
        columns=parse_index_columns(definition),
        is_unique=definition.lstrip().upper().startswith("CREATE UNIQUE"),
    )


def parse_index_columns(definition: str) -> list[str]:
    """Column list of a ``pg_get_indexdef`` string.

    ``CREATE INDEX idx ON public.t USING btree (lower(email), "Name" DESC)``
    gives ``["lower(email)", '"Name"']``: quoted identifiers are kept verbatim,
    unquoted entries lose anything after their first space outside
    parentheses (ordering, operator classes).
    """
    segment = _first_parenthesized(definition)
    if segment is None:
        return []

    columns = []
    for entry in _split_top_level(segment):
        entry = entry.strip()
        if not entry:
            continue
        if entry.startswith('"'):
            end = entry.find('"', 1)
            while end != -1 and entry.startswith('"', end + 1):
                end = entry.find('"', end + 2)
            if end != -1:
                entry = entry[:end + 1]
        else:
            entry = _cut_at_top_level_space(entry)
        if entry:
            columns.append(entry)
    return columns


def _cut_at_top_level_space(entry: str) -> str:
    depth = 0
    in_quotes = False
    in_string = False
    for i, ch in enumerate(entry):
        if ch == '"' and not in_string:
            in_quotes = not in_quotes
        elif ch == "'" and not in_quotes:
            in_string = not in_string
        elif in_quotes or in_string:
            continue
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == " " and depth == 0:
            return entry[:i]
    return entry


def _first_parenthesized(text: str) -> str | None:
    depth = 0
    start = None
    in_quotes = False
    for i, ch in enumerate(text):
        if ch == '"':
            in_quotes = not in_quotes
        elif in_quotes:
            continue
        elif ch == "(":
            if depth == 0:
                start = i + 1
            depth += 1
        elif ch == ")" and depth:
            depth -= 1
            if depth == 0:
                return text[start:i]
    return None


def _split_top_level(segment: str) -> list[str]:
    parts = []
    depth = 0
    in_quotes = False
    in_string = False
    current = []
    for ch in segment:
        if ch == '"' and not in_string:
            in_quotes = not in_quotes
        elif ch == "'" and not in_quotes:
            in_string = not in_string
        elif not (in_quotes or in_string):
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
            elif ch == "," and depth == 0:
                parts.append("".join(current))
                current = []
                continue
        current.append(ch)
    parts.append("".join(current))
    return parts
