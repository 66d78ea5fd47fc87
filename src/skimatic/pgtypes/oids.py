"""Fixed PostgreSQL type OID table.

Result columns and prepared-statement parameters only expose type OIDs; this
maps them back to the canonical names the TypeMapper understands. Array OIDs
map to their element name with ``is_array`` set.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, NamedTuple

UNKNOWN_TYPE = "unknown"


class OidType(NamedTuple):
    name: str
    is_array: bool = False


SCALAR_OIDS: Mapping[int, str] = MappingProxyType({
    16: "boolean",
    17: "bytea",
    18: "char",
    20: "bigint",
    21: "smallint",
    23: "integer",
    25: "text",
    114: "json",
    142: "xml",
    600: "point",
    601: "lseg",
    602: "path",
    603: "box",
    604: "polygon",
    628: "line",
    650: "cidr",
    700: "real",
    701: "double precision",
    718: "circle",
    829: "macaddr",
    869: "inet",
    1042: "character",
    1043: "varchar",
    1082: "date",
    1083: "time",
    1114: "timestamp",
    1184: "timestamptz",
    1186: "interval",
    1266: "timetz",
    1700: "numeric",
    2950: "uuid",
    3802: "jsonb",
    3904: "int4range",
    3906: "numrange",
    3908: "tsrange",
    3910: "tstzrange",
    3912: "daterange",
    3926: "int8range",
})

ARRAY_OIDS: Mapping[int, str] = MappingProxyType({
    1000: "boolean",
    1001: "bytea",
    1002: "char",
    1005: "smallint",
    1007: "integer",
    1009: "text",
    1014: "character",
    1015: "varchar",
    1016: "bigint",
    1021: "real",
    1022: "double precision",
    1041: "inet",
    1115: "timestamp",
    1182: "date",
    1183: "time",
    1185: "timestamptz",
    1187: "interval",
    1231: "numeric",
    1270: "timetz",
    199: "json",
    2951: "uuid",
    3807: "jsonb",
})


def type_for_oid(oid: int) -> OidType:
    """Canonical type for an OID; unknown OIDs yield ``OidType("unknown")``."""
    if oid in SCALAR_OIDS:
        return OidType(SCALAR_OIDS[oid])
    if oid in ARRAY_OIDS:
        return OidType(ARRAY_OIDS[oid], is_array=True)
    return OidType(UNKNOWN_TYPE)
