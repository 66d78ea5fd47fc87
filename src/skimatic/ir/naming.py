"""Identifier case conversion for generated names."""
from __future__ import annotations

import re

_GO_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def to_pascal_case(name: str) -> str:
    """Convert snake_case to PascalCase.

    Names without underscores are assumed to already be camel/Pascal case and
    only get their first letter upper-cased.
    """
    if not name:
        return ""
    if "_" in name:
        return "".join(part[:1].upper() + part[1:].lower() for part in name.split("_") if part)
    return name[:1].upper() + name[1:]


def to_snake_case(name: str) -> str:
    """Convert PascalCase or camelCase to snake_case."""
    if not name:
        return ""
    out = []
    for i, ch in enumerate(name):
        if i > 0 and "A" <= ch <= "Z":
            out.append("_")
        out.append(ch)
    return "".join(out).lower()


def is_valid_identifier(name: str) -> bool:
    """True if name is a valid (ASCII) Go identifier."""
    return bool(name) and _GO_IDENTIFIER.match(name) is not None
