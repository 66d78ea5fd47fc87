"""Intermediate representation handed to the code emitter.

Tables come from catalog introspection, queries from annotated SQL files.
Both are plain dataclasses: built once per generation run and serialized with
``to_dict`` for whatever renders them.
"""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from pathlib import PurePath
from typing import Any

from .naming import to_pascal_case, to_snake_case


class QueryType(str, enum.Enum):
    """Operation kind declared by a query annotation."""
    ONE = "one"              # single row
    MANY = "many"            # list of rows
    EXEC = "exec"            # no rows returned
    PAGINATED = "paginated"  # keyset-paginated rows

    @property
    def returns_rows(self) -> bool:
        return self is not QueryType.EXEC

    @classmethod
    def parse(cls, token: str) -> QueryType:
        """Case-insensitive lookup; raises ValueError for unknown tokens."""
        try:
            return cls(token.strip().lower())
        except ValueError:
            supported = ", ".join(t.value for t in cls)
            raise ValueError(f"invalid query type: {token} (supported: {supported})") from None


@dataclass
class Column:
    """Table column or query result column."""
    name: str
    type: str                     # PostgreSQL type, e.g. "uuid", "text"
    go_type: str = ""             # filled by TypeMapper
    is_nullable: bool = False
    is_array: bool = False
    default_value: str = ""
    max_length: int = 0

    @property
    def field_name(self) -> str:
        return to_pascal_case(self.name)

    @property
    def struct_tag(self) -> str:
        return f'json:"{self.name}" db:"{self.name}"'

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["field_name"] = self.field_name
        data["struct_tag"] = self.struct_tag
        return data


@dataclass
class Index:
    name: str
    columns: list[str] = field(default_factory=list)
    is_unique: bool = False


@dataclass
class Table:
    """Introspected base table."""
    name: str
    schema: str
    columns: list[Column] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=list)
    indexes: list[Index] = field(default_factory=list)

    def get_column(self, name: str) -> Column | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def primary_key_column(self) -> Column | None:
        """Single primary key column, or None for missing/composite keys."""
        if len(self.primary_key) != 1:
            return None
        return self.get_column(self.primary_key[0])

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}"

    @property
    def struct_name(self) -> str:
        return to_pascal_case(self.name)

    @property
    def file_name(self) -> str:
        return to_snake_case(self.name) + "_generated.go"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["columns"] = [c.to_dict() for c in self.columns]
        data["struct_name"] = self.struct_name
        data["file_name"] = self.file_name
        return data


@dataclass
class Parameter:
    """Positional ($N) query parameter."""
    index: int
    type: str = "text"
    go_type: str = "string"
    is_array: bool = False
    name: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            self.name = f"param{self.index}"


@dataclass
class Query:
    """Annotated SQL statement."""
    name: str
    sql: str
    type: QueryType
    parameters: list[Parameter] = field(default_factory=list)
    columns: list[Column] = field(default_factory=list)
    source_file: str = ""

    @property
    def returns_rows(self) -> bool:
        return self.type.returns_rows

    @property
    def function_name(self) -> str:
        return to_pascal_case(self.name)

    @property
    def file_name(self) -> str:
        stem = PurePath(self.source_file).name
        if stem.endswith(".sql"):
            stem = stem[: -len(".sql")]
        return to_snake_case(stem) + "_queries_generated.go"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["columns"] = [c.to_dict() for c in self.columns]
        data["function_name"] = self.function_name
        if self.source_file:
            data["file_name"] = self.file_name
        return data
