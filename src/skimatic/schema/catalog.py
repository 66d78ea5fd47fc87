"""Catalog queries against information_schema and pg_indexes."""
from __future__ import annotations

from typing import Any

import asyncpg


async def list_table_names(conn: asyncpg.Connection, schema: str) -> list[str]:
    """Base tables in ``schema``, by name."""
    rows = await conn.fetch("""
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = $1
          AND table_type = 'BASE TABLE'
        ORDER BY table_name
    """, schema)
    return [r["table_name"] for r in rows]


async def list_columns(
    conn: asyncpg.Connection,
    schema: str,
    table: str
) -> list[dict[str, Any]]:
    """Columns in ordinal order with a normalized type name.

    Array columns report their element type (``udt_name`` without the
    leading underscore); enums and other user-defined types report
    ``udt_name`` so the override table can map them.
    """
    rows = await conn.fetch("""
        SELECT
            column_name,
            is_nullable = 'YES' AS is_nullable,
            column_default,
            character_maximum_length,
            data_type = 'ARRAY' AS is_array,
            CASE
                WHEN data_type = 'ARRAY' THEN substr(udt_name, 2)
                WHEN data_type = 'USER-DEFINED' THEN udt_name
                WHEN data_type = 'character varying' THEN 'varchar'
                WHEN data_type = 'timestamp without time zone' THEN 'timestamp'
                WHEN data_type = 'timestamp with time zone' THEN 'timestamptz'
                ELSE data_type
            END AS normalized_type
        FROM information_schema.columns
        WHERE table_schema = $1 AND table_name = $2
        ORDER BY ordinal_position
    """, schema, table)
    return [dict(r) for r in rows]


async def list_primary_key(conn: asyncpg.Connection, schema: str, table: str) -> list[str]:
    """Primary key column names ordered by key position."""
    rows = await conn.fetch("""
        SELECT kcu.column_name
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
            ON tc.constraint_name = kcu.constraint_name
            AND tc.table_schema = kcu.table_schema
            AND tc.table_name = kcu.table_name
        WHERE tc.table_schema = $1
          AND tc.table_name = $2
          AND tc.constraint_type = 'PRIMARY KEY'
        ORDER BY kcu.ordinal_position
    """, schema, table)
    return [r["column_name"] for r in rows]


async def list_indexes(
    conn: asyncpg.Connection,
    schema: str,
    table: str
) -> list[dict[str, Any]]:
    """Non-primary-key indexes with their textual definitions."""
    rows = await conn.fetch("""
        SELECT indexname, indexdef
        FROM pg_indexes
        WHERE schemaname = $1 AND tablename = $2
          AND indexname NOT LIKE '%\\_pkey'
        ORDER BY indexname
    """, schema, table)
    return [dict(r) for r in rows]
