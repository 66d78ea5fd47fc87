"""Connection helpers shared by the schema reader and the query analyzer."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Union

import asyncpg
import asyncpg.pool

Database = Union[asyncpg.Connection, asyncpg.pool.Pool]


async def create_pool(dsn: str, max_size: int = 4, timeout: float | None = None) -> asyncpg.pool.Pool:
    """Open a small pool and verify it answers.

    Args:
        dsn: PostgreSQL connection string
        max_size: Upper bound on pooled connections
        timeout: Connection timeout in seconds

    Returns:
        Ready asyncpg pool
    """
    kwargs = {"timeout": timeout} if timeout is not None else {}
    pool = await asyncpg.create_pool(
        dsn=dsn,
        min_size=1,
        max_size=max(1, max_size),
        **kwargs,
    )
    try:
        await ping(pool)
    except BaseException:
        await pool.close()
        raise
    return pool


async def ping(db: Database) -> str:
    """Run ``SELECT version()`` and return the server version string."""
    async with acquire(db) as conn:
        return await conn.fetchval("SELECT version()")


def is_pool(db: Database | None) -> bool:
    return isinstance(db, asyncpg.pool.Pool)


@asynccontextmanager
async def acquire(db: Database) -> AsyncIterator[asyncpg.Connection]:
    """Yield a connection: borrowed from a pool, or ``db`` itself."""
    if is_pool(db):
        async with db.acquire() as conn:
            yield conn
    else:
        yield db
