"""End-to-end tests against a live PostgreSQL (skipped when TEST_DB_URL is unreachable)."""
import uuid

import pytest
import pytest_asyncio

from skimatic.errors import AnalysisError
from skimatic.ir.models import Query, QueryType
from skimatic.pagination import PaginationParams, decode_cursor, fetch_page
from skimatic.queries.analyzer import QueryAnalyzer
from skimatic.schema import SchemaReader

SCHEMA = "skimatic_it"

SCHEMA_SQL = f"""
DROP SCHEMA IF EXISTS {SCHEMA} CASCADE;
CREATE SCHEMA {SCHEMA};

CREATE TABLE {SCHEMA}.users (
    id uuid PRIMARY KEY,
    email varchar(255) NOT NULL UNIQUE,
    bio text,
    tags text[],
    created_at timestamptz NOT NULL DEFAULT now()
);
CREATE INDEX idx_users_created ON {SCHEMA}.users (created_at DESC) WHERE bio IS NOT NULL;

CREATE TABLE {SCHEMA}.counters (
    id serial PRIMARY KEY,
    n integer NOT NULL
);
"""


@pytest_asyncio.fixture
async def conn(db_conn):
    """Connection with a freshly created test schema."""
    await db_conn.execute(SCHEMA_SQL)
    try:
        yield db_conn
    finally:
        await db_conn.execute(f"DROP SCHEMA IF EXISTS {SCHEMA} CASCADE")


@pytest.mark.asyncio
async def test_schema_reader(conn):
    snapshot = await SchemaReader(conn).list_tables(SCHEMA)

    users = snapshot.get_table("users")
    assert [t.name for t in snapshot.tables] == ["users"]
    assert [(s.name, "UUID" in s.reason) for s in snapshot.skipped] == [("counters", True)]
    assert [(c.name, c.go_type) for c in users.columns] == [
        ("id", "uuid.UUID"),
        ("email", "string"),
        ("bio", "pgtype.Text"),
        ("tags", "[]pgtype.Text"),
        ("created_at", "time.Time"),
    ]
    assert users.get_column("email").max_length == 255
    indexes = {i.name: i for i in users.indexes}
    assert indexes["idx_users_created"].columns == ["created_at"]
    assert not indexes["idx_users_created"].is_unique
    assert indexes["users_email_key"].is_unique


@pytest.mark.asyncio
async def test_analyze_select(conn):
    query = Query(
        name="FindUsers",
        sql=f"SELECT id, email, tags FROM {SCHEMA}.users WHERE email = $1 AND created_at > $2; -- newest",
        type=QueryType.MANY,
    )

    await QueryAnalyzer(conn).analyze(query)

    assert [(c.name, c.go_type) for c in query.columns] == [
        ("id", "pgtype.UUID"),
        ("email", "pgtype.Text"),
        ("tags", "[]pgtype.Text"),
    ]
    assert [p.go_type for p in query.parameters] == ["string", "time.Time"]
    assert query.parameters[1].type == "timestamptz"


@pytest.mark.asyncio
async def test_analyze_exec_leaves_no_trace(conn):
    query = Query(
        name="InsertUser",
        sql=f"INSERT INTO {SCHEMA}.users (id, email) VALUES ($1, $2)",
        type=QueryType.EXEC,
    )

    await QueryAnalyzer(conn).analyze(query)

    assert [p.go_type for p in query.parameters] == ["uuid.UUID", "string"]
    assert await conn.fetchval(f"SELECT count(*) FROM {SCHEMA}.users") == 0
    assert not conn.is_in_transaction()


@pytest.mark.asyncio
async def test_analyze_invalid_sql(conn):
    query = Query(name="Broken", sql=f"SELECT nope FROM {SCHEMA}.users", type=QueryType.ONE)
    with pytest.raises(AnalysisError, match="Broken"):
        await QueryAnalyzer(conn).analyze(query)


@pytest.mark.asyncio
async def test_fetch_page(conn):
    ids = sorted(uuid.uuid4() for _ in range(3))
    for i, identifier in enumerate(ids):
        await conn.execute(
            f"INSERT INTO {SCHEMA}.users (id, email) VALUES ($1, $2)", identifier, f"u{i}@example.com"
        )
    table = (await SchemaReader(conn).list_tables(SCHEMA)).get_table("users")

    first = await fetch_page(conn, table, PaginationParams(limit=2))
    assert [r["id"] for r in first.items] == ids[:2]
    assert first.has_more
    assert decode_cursor(first.next_cursor) == ids[1]

    second = await fetch_page(conn, table, PaginationParams(cursor=first.next_cursor, limit=2))
    assert [r["id"] for r in second.items] == ids[2:]
    assert not second.has_more
    assert second.next_cursor == ""
