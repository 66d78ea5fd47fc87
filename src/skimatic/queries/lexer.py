"""Minimal PostgreSQL lexer for placeholder detection.

Splits SQL text into a flat token stream that is just detailed enough to tell
positional placeholders ($1, $2, ...) apart from look-alikes inside string
literals, quoted identifiers, comments and dollar-quoted bodies. Concatenating
the token texts always reproduces the input.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterable, Iterator


class TokenKind(enum.Enum):
    STRING = "string"          # 'abc', E'a\'b', $$body$$, $tag$body$tag$
    IDENTIFIER = "identifier"  # "quoted identifier"
    COMMENT = "comment"        # -- line, /* block (nested) */
    PLACEHOLDER = "placeholder"
    WORD = "word"              # keywords, bare identifiers
    OTHER = "other"            # whitespace, operators, punctuation


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    position: int

    @property
    def placeholder_index(self) -> int | None:
        if self.kind is not TokenKind.PLACEHOLDER:
            return None
        return int(self.text[1:])


_WORD = re.compile(r"[A-Za-z_\x80-\uffff][A-Za-z0-9_$\x80-\uffff]*")
_PLACEHOLDER = re.compile(r"\$\d+")
_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_\x80-\uffff][A-Za-z0-9_\x80-\uffff]*)?\$")
_OTHER = re.compile(r"[^'\"$/A-Za-z_\x80-\uffff-]+|.", re.DOTALL)


def tokenize(sql: str) -> list[Token]:
    return list(iter_tokens(sql))


def iter_tokens(sql: str) -> Iterator[Token]:
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]
        start = i

        if ch == "'" or (ch in "eE" and sql.startswith("'", i + 1)):
            i = _scan_quoted(sql, i + 1 if ch != "'" else i, "'", backslash=ch != "'")
            yield Token(TokenKind.STRING, sql[start:i], start)
        elif ch == '"':
            i = _scan_quoted(sql, i, '"', backslash=False)
            yield Token(TokenKind.IDENTIFIER, sql[start:i], start)
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end == -1 else end
            yield Token(TokenKind.COMMENT, sql[start:i], start)
        elif sql.startswith("/*", i):
            i = _scan_block_comment(sql, i)
            yield Token(TokenKind.COMMENT, sql[start:i], start)
        elif ch == "$":
            m = _PLACEHOLDER.match(sql, i)
            if m:
                i = m.end()
                yield Token(TokenKind.PLACEHOLDER, m.group(), start)
                continue
            m = _DOLLAR_TAG.match(sql, i)
            if m:
                tag = m.group()
                end = sql.find(tag, m.end())
                i = n if end == -1 else end + len(tag)
                yield Token(TokenKind.STRING, sql[start:i], start)
                continue
            i += 1
            yield Token(TokenKind.OTHER, ch, start)
        else:
            m = _WORD.match(sql, i)
            if m:
                i = m.end()
                yield Token(TokenKind.WORD, m.group(), start)
                continue
            m = _OTHER.match(sql, i)
            i = m.end()
            yield Token(TokenKind.OTHER, m.group(), start)


def _scan_quoted(sql: str, i: int, quote: str, backslash: bool) -> int:
    """Index just past the closing quote; doubled quotes are escapes."""
    n = len(sql)
    i += 1
    while i < n:
        ch = sql[i]
        if backslash and ch == "\\":
            i += 2
            continue
        if ch == quote:
            if sql.startswith(quote, i + 1):
                i += 2
                continue
            return i + 1
        i += 1
    return n


def _scan_block_comment(sql: str, i: int) -> int:
    depth = 0
    n = len(sql)
    while i < n:
        if sql.startswith("/*", i):
            depth += 1
            i += 2
        elif sql.startswith("*/", i):
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return n


def placeholder_indexes(tokens: Iterable[Token]) -> list[int]:
    """Distinct placeholder numbers, ascending."""
    return sorted({t.placeholder_index for t in tokens if t.kind is TokenKind.PLACEHOLDER})


def replace_placeholder(tokens: list[Token], index: int, replacement: str) -> list[Token]:
    """Copy of ``tokens`` with every ``$index`` placeholder rewritten."""
    out = []
    for token in tokens:
        if token.placeholder_index == index:
            token = Token(TokenKind.OTHER, replacement, token.position)
        out.append(token)
    return out


def render(tokens: Iterable[Token]) -> str:
    return "".join(t.text for t in tokens)


def strip_leading_comments(sql: str) -> str:
    """SQL text with leading whitespace and comments removed."""
    for token in iter_tokens(sql):
        if token.kind is TokenKind.COMMENT or (token.kind is TokenKind.OTHER and token.text.isspace()):
            continue
        return sql[token.position:]
    return ""
