"""PostgreSQL -> Go type mapping.

The mapper is a pure function over two fixed tables (base types and their
nullable pgtype counterparts) plus an optional caller-supplied override map.
Composition is always array first, then nullable:

    text, nullable            -> pgtype.Text
    text[], not nullable      -> []string
    text[], nullable          -> []pgtype.Text
    bytea, nullable           -> *[]byte
"""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Mapping

from ..errors import IdentifierColumnError, UnsupportedTypeError
from ..ir.models import Column, Query, Table

logger = logging.getLogger(__name__)


def _table(groups: dict[tuple[str, ...], str]) -> Mapping[str, str]:
    flat = {}
    for names, go_type in groups.items():
        for name in names:
            flat[name] = go_type
    return MappingProxyType(flat)


BASE_TYPES: Mapping[str, str] = _table({
    ("uuid",): "uuid.UUID",
    ("text", "varchar", "character varying", "char", "character"): "string",
    ("smallint", "int2"): "int16",
    ("integer", "int", "int4"): "int32",
    ("bigint", "int8"): "int64",
    ("real", "float4"): "float32",
    ("double precision", "float8"): "float64",
    ("numeric", "decimal"): "float64",
    ("boolean", "bool"): "bool",
    (
        "date",
        "time", "time without time zone",
        "timetz", "time with time zone",
        "timestamp", "timestamp without time zone",
        "timestamptz", "timestamp with time zone",
    ): "time.Time",
    ("bytea",): "[]byte",
    ("json", "jsonb"): "json.RawMessage",
    ("inet", "cidr", "macaddr"): "string",
    ("point", "line", "lseg", "box", "path", "polygon", "circle"): "string",
    ("int4range", "int8range", "numrange", "tsrange", "tstzrange", "daterange"): "string",
    # TODO: map interval to time.Duration once the runtime scans it natively
    ("interval",): "string",
    ("xml",): "string",
})

NULLABLE_TYPES: Mapping[str, str] = MappingProxyType({
    "[]byte": "*[]byte",
    "string": "pgtype.Text",
    "int16": "pgtype.Int2",
    "int32": "pgtype.Int4",
    "int64": "pgtype.Int8",
    "float32": "pgtype.Float4",
    "float64": "pgtype.Float8",
    "bool": "pgtype.Bool",
    "time.Time": "pgtype.Timestamptz",
    "uuid.UUID": "pgtype.UUID",
    "json.RawMessage": "*json.RawMessage",
})

_GO_BASE_TYPES = frozenset(BASE_TYPES.values())
_NULLABLE_TO_BASE = {nullable: base for base, nullable in NULLABLE_TYPES.items()}

# Markers looked up in resolved types, after []/* wrappers are stripped.
IMPORT_MARKERS: tuple[tuple[str, str], ...] = (
    ("uuid.UUID", "github.com/google/uuid"),
    ("time.Time", "time"),
    ("json.RawMessage", "encoding/json"),
    ("pgtype.", "github.com/jackc/pgx/v5/pgtype"),
)

IDENTIFIER_TYPE = "uuid"


class TypeMapper:
    """Maps PostgreSQL types to Go type descriptors.

    Args:
        overrides: Optional map of exact PostgreSQL type name -> Go base type.
            An override replaces the base lookup; array and nullable wrapping
            are still applied on top of it.
    """

    def __init__(self, overrides: Mapping[str, str] | None = None):
        self._overrides = MappingProxyType(dict(overrides or {}))

    @property
    def overrides(self) -> Mapping[str, str]:
        return self._overrides

    def resolve(self, pg_type: str, is_nullable: bool = False, is_array: bool = False) -> str:
        """Resolve a PostgreSQL type to its Go type.

        Raises:
            UnsupportedTypeError: If the type has no override and no base mapping
        """
        base = self._overrides.get(pg_type)
        if base is None:
            base = self.base_type(pg_type)
        return self._wrap(base, is_nullable, is_array)

    def base_type(self, pg_type: str) -> str:
        try:
            return BASE_TYPES[pg_type.strip().lower()]
        except KeyError:
            raise UnsupportedTypeError(pg_type) from None

    def pg_types_for(self, go_type: str) -> list[str]:
        """PostgreSQL type names that resolve to ``go_type``'s base type.

        Slice, pointer and pgtype wrappers are peeled first, so
        ``[]pgtype.Text`` and ``string`` give the same answer. Overridden
        names come first, then the base table in declaration order.
        """
        base = _NULLABLE_TO_BASE.get(go_type, go_type)
        while base not in _GO_BASE_TYPES and base.startswith(("[]", "*")):
            base = base[2:] if base.startswith("[]") else base[1:]
        base = _NULLABLE_TO_BASE.get(base, base)
        names = [name for name, target in self._overrides.items() if target == base]
        names.extend(
            name for name, target in BASE_TYPES.items()
            if target == base and name not in self._overrides
        )
        return names

    def is_supported(self, pg_type: str) -> bool:
        return pg_type in self._overrides or pg_type.strip().lower() in BASE_TYPES

    def _wrap(self, base: str, is_nullable: bool, is_array: bool) -> str:
        result = base
        if is_array:
            result = "[]" + result
        if is_nullable:
            result = self.make_nullable(result)
        return result

    def make_nullable(self, go_type: str) -> str:
        """Nullable counterpart of a Go type (pgtype, element-wise for slices, else pointer)."""
        if go_type in NULLABLE_TYPES:
            return NULLABLE_TYPES[go_type]
        if go_type.startswith("[]"):
            return "[]" + self.make_nullable(go_type[2:])
        return "*" + go_type

    def required_imports(self, columns: Iterable[Column]) -> set[str]:
        """Go import paths the resolved types of ``columns`` depend on.

        Columns with unsupported types are skipped.
        """
        imports: set[str] = set()
        for column in columns:
            try:
                go_type = self.resolve(column.type, column.is_nullable, column.is_array)
            except UnsupportedTypeError:
                continue
            imports.update(imports_for_type(go_type))
        return imports

    def map_table_columns(self, table: Table) -> None:
        if table is None:
            raise ValueError("table cannot be None")
        for column in table.columns:
            try:
                column.go_type = self.resolve(column.type, column.is_nullable, column.is_array)
            except UnsupportedTypeError as e:
                raise UnsupportedTypeError(
                    column.type, subject=f"{table.qualified_name}.{column.name}"
                ) from e

    def map_query_columns(self, query: Query) -> None:
        """Fill Go types for result columns and parameters (parameters are never nullable)."""
        if query is None:
            raise ValueError("query cannot be None")
        for column in query.columns:
            try:
                column.go_type = self.resolve(column.type, column.is_nullable, column.is_array)
            except UnsupportedTypeError as e:
                raise UnsupportedTypeError(
                    column.type, subject=f"{query.name}: column {column.name}"
                ) from e
        for param in query.parameters:
            try:
                param.go_type = self.resolve(param.type, is_array=param.is_array)
            except UnsupportedTypeError as e:
                raise UnsupportedTypeError(
                    param.type, subject=f"{query.name}: parameter ${param.index}"
                ) from e


def imports_for_type(go_type: str) -> set[str]:
    while go_type.startswith(("[]", "*")):
        go_type = go_type[2:] if go_type.startswith("[]") else go_type[1:]
    for marker, import_path in IMPORT_MARKERS:
        if marker in go_type:
            return {import_path}
    return set()


def validate_identifier_column(column: Column | None, table: str | None = None) -> None:
    """Gate for primary keys and pagination cursor fields.

    The identifier must be a non-null, scalar uuid column.

    Raises:
        IdentifierColumnError: If the column is missing or unusable
    """
    if column is None:
        raise IdentifierColumnError("identifier column cannot be None", subject=table)

    subject = f"{table}.{column.name}" if table else column.name
    if column.type.lower() != IDENTIFIER_TYPE:
        raise IdentifierColumnError(
            f"primary key column must be UUID type, got {column.type}", subject=subject
        )
    if column.is_nullable:
        raise IdentifierColumnError("primary key column cannot be nullable", subject=subject)
    if column.is_array:
        raise IdentifierColumnError("primary key column cannot be an array", subject=subject)
