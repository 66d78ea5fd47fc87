"""Keyset pagination contract for paginated queries and table listings.

Pages are ordered by a uuid identifier and bounded by the last identifier of
the previous page, carried between calls as an opaque cursor: the URL-safe
base64 encoding of the identifier's 16 raw bytes.

Ordering by the identifier only matches cursor order when identifiers are
byte-monotonic in time (UUIDv7). Random UUIDs still paginate without gaps or
duplicates, but pages no longer follow insertion order.
"""
from __future__ import annotations

import base64
import binascii
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Mapping, Sequence, TypeVar

import asyncpg

from ..errors import IdentifierColumnError, PaginationError
from ..ir.models import Table
from ..pgtypes.mapper import validate_identifier_column

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
CURSOR_BYTES = 16

_SIMPLE_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")
_CURSOR_ALPHABET = re.compile(r"^[A-Za-z0-9_-]*={0,2}$")


@dataclass
class PaginationParams:
    cursor: str = ""
    limit: int = 0


@dataclass
class PaginationResult(Generic[T]):
    items: list[T] = field(default_factory=list)
    has_more: bool = False
    next_cursor: str = ""
    total: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"items": self.items, "has_more": self.has_more}
        if self.next_cursor:
            data["next_cursor"] = self.next_cursor
        if self.total is not None:
            data["total"] = self.total
        return data


def encode_cursor(identifier: uuid.UUID) -> str:
    return base64.urlsafe_b64encode(identifier.bytes).decode("ascii")


def decode_cursor(cursor: str) -> uuid.UUID | None:
    """Decode a cursor; the empty cursor means "from the beginning".

    Raises:
        PaginationError: Malformed base64 or a payload that is not 16 bytes
    """
    if not cursor:
        return None
    if not _CURSOR_ALPHABET.fullmatch(cursor):
        raise PaginationError("invalid cursor format: not URL-safe base64", subject="cursor")
    try:
        raw = base64.b64decode(cursor.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError) as e:
        raise PaginationError(f"invalid cursor format: {e}", subject="cursor") from e
    if len(raw) != CURSOR_BYTES:
        raise PaginationError(
            f"invalid cursor length: expected {CURSOR_BYTES} bytes, got {len(raw)}",
            subject="cursor",
        )
    return uuid.UUID(bytes=raw)


def validate_params(params: PaginationParams) -> None:
    if params.limit < 0:
        raise PaginationError("limit cannot be negative", subject="limit")
    if params.limit > MAX_LIMIT:
        raise PaginationError(f"limit cannot exceed {MAX_LIMIT}", subject="limit")
    if params.cursor:
        decode_cursor(params.cursor)


def effective_limit(params: PaginationParams) -> int:
    if params.limit <= 0:
        return DEFAULT_LIMIT
    return min(params.limit, MAX_LIMIT)


def quote_identifier(name: str) -> str:
    if _SIMPLE_IDENTIFIER.match(name):
        return name
    return '"' + name.replace('"', '""') + '"'


def build_page_sql(columns: Sequence[str], source: str, id_column: str) -> str:
    """Keyset page statement; ``$1`` is the cursor (uuid or NULL), ``$2`` is limit + 1."""
    select_list = ", ".join(quote_identifier(c) for c in columns)
    ident = quote_identifier(id_column)
    return (
        f"SELECT {select_list}\n"
        f"FROM {source}\n"
        f"WHERE ($1::uuid IS NULL OR {ident} > $1)\n"
        f"ORDER BY {ident} ASC\n"
        f"LIMIT $2"
    )


def build_page(
    rows: Sequence[T],
    limit: int,
    id_of: Callable[[T], uuid.UUID],
) -> PaginationResult[T]:
    """Trim ``limit + 1`` fetched rows to a page and compute the next cursor."""
    items = list(rows)
    has_more = len(items) > limit
    if has_more:
        items = items[:limit]

    next_cursor = ""
    if has_more and items:
        next_cursor = encode_cursor(id_of(items[-1]))
    return PaginationResult(items=items, has_more=has_more, next_cursor=next_cursor)


def pagination_key(table: Table) -> str:
    """Name of the table's cursor column.

    Raises:
        IdentifierColumnError: If the primary key cannot order pages
    """
    if len(table.primary_key) != 1:
        raise IdentifierColumnError("pagination requires a single-column primary key", subject=table.name)
    validate_identifier_column(table.primary_key_column(), table=table.name)
    return table.primary_key[0]


async def fetch_page(
    conn: asyncpg.Connection,
    table: Table,
    params: PaginationParams,
) -> PaginationResult[Mapping[str, Any]]:
    """Fetch one page of ``table`` rows as dicts.

    Raises:
        PaginationError: Invalid parameters
        IdentifierColumnError: Table cannot be keyset-paginated
    """
    validate_params(params)
    id_column = pagination_key(table)
    limit = effective_limit(params)
    cursor = decode_cursor(params.cursor)

    source = f"{quote_identifier(table.schema)}.{quote_identifier(table.name)}"
    sql = build_page_sql([c.name for c in table.columns], source, id_column)
    logger.debug("Fetching page of %s (limit=%d, cursor=%s)", table.qualified_name, limit, cursor)

    records = await conn.fetch(sql, cursor, limit + 1)
    return build_page([dict(r) for r in records], limit, lambda row: row[id_column])


def is_time_ordered(identifier: uuid.UUID) -> bool:
    """True for UUIDv7, whose byte order follows creation time."""
    return identifier.version == 7
