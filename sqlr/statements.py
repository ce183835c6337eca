"""Statement segmentation for the "run" request mode."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

import sqlglot
from sqlglot.errors import TokenError
from sqlglot.tokens import Token, TokenType

from .vendors import Vendor, dialect_for

LOG = logging.getLogger(__name__)

# Words after BEGIN that start a transaction rather than a block.
_TRANSACTION_WORDS = frozenset({"TRAN", "TRANSACTION", "DISTRIBUTED", "WORK"})
# END IF / END LOOP close constructs that never opened a block here.
_NON_BLOCK_ENDINGS = frozenset({"IF", "LOOP", "WHILE", "REPEAT"})
# Procedural units whose body runs to the end of the submitted text.
_ROUTINE_KINDS = frozenset({"PROCEDURE", "PROC", "FUNCTION", "TRIGGER", "PACKAGE", "TYPE"})
_CREATE_MODIFIERS = frozenset({"OR", "REPLACE", "ALTER", "EDITIONABLE", "NONEDITIONABLE"})
_LITERAL_TYPES = frozenset({TokenType.STRING, TokenType.IDENTIFIER, TokenType.NATIONAL_STRING})


class StatementSplitter(Protocol):
    """Syntax-aware collaborator that turns SQL text into single statements."""

    def split(self, sql: str, vendor: Vendor) -> list[str]: ...


class SqlglotStatementSplitter:
    """Split on statement-terminating semicolons using sqlglot's tokenizer.

    Semicolons inside ``BEGIN ... END`` and ``CASE ... END`` do not split, nor
    do those in an Oracle ``DECLARE`` section. A ``CREATE`` of a procedure,
    function, trigger, package or type takes the rest of the text with it.

    Each statement is rendered on a single line: comments and line breaks
    between tokens collapse to one space while the token text itself
    (string literals included) is kept verbatim.
    """

    def split(self, sql: str, vendor: Vendor) -> list[str]:
        dialect = dialect_for(vendor).sqlglot_dialect
        try:
            tokens = sqlglot.tokenize(sql, read=dialect)
        except TokenError as exc:
            LOG.warning("Could not tokenize SQL, sending it as one statement", extra={"error": str(exc)})
            return [flatten(sql)] if sql.strip() else []

        statements: list[str] = []
        current: list[Token] = []
        depth = 0
        in_declare = False
        in_routine = False
        skip_next = False
        for index, token in enumerate(tokens):
            if token.token_type == TokenType.SEMICOLON and not (depth or in_declare or in_routine):
                if current:
                    statements.append(_render(sql, current))
                current = []
                continue
            current.append(token)
            if skip_next:
                skip_next = False
                continue

            word = _word(token)
            following = _word(tokens[index + 1]) if index + 1 < len(tokens) else ""
            if word == "BEGIN" and following not in _TRANSACTION_WORDS and following != ";":
                in_declare = False
                depth += 1
            elif word == "CASE":
                depth += 1
            elif word == "END":
                if following in _NON_BLOCK_ENDINGS:
                    skip_next = True
                else:
                    depth = max(depth - 1, 0)
                    skip_next = following == "CASE"
            elif word == "DECLARE" and vendor is Vendor.ORACLE and len(current) == 1:
                in_declare = True
            elif word in _ROUTINE_KINDS and _creates_routine(current):
                in_routine = True
        if current:
            statements.append(_render(sql, current))
        return statements


def flatten(statement: str) -> str:
    """Keep a caller-supplied statement on one line for the line-based protocol."""

    return statement.replace("\n", "\r")


def _word(token: Token) -> str:
    if token.token_type in _LITERAL_TYPES:
        return ""
    return token.text.upper()


def _creates_routine(tokens: Sequence[Token]) -> bool:
    words = [_word(token) for token in tokens]
    return words[0] == "CREATE" and all(word in _CREATE_MODIFIERS for word in words[1:-1])


def _render(sql: str, tokens: Sequence[Token]) -> str:
    parts: list[str] = []
    previous_end: int | None = None
    for token in tokens:
        if previous_end is not None and token.start > previous_end + 1:
            parts.append(" ")
        parts.append(flatten(sql[token.start : token.end + 1]))
        previous_end = token.end
    return "".join(parts)


__all__ = ["SqlglotStatementSplitter", "StatementSplitter", "flatten"]
