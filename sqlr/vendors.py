"""Database vendors understood by the sqlrepl server and their quirks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Sequence


class Vendor(str, Enum):
    """Database backends a connection can target (sent as ``dbtype``)."""

    SQLSERVER = "sqlserver"
    ORACLE = "oracle"


@dataclass(frozen=True, slots=True)
class OutputLines:
    """Command output split into result lines and informational messages."""

    output: tuple[str, ...]
    messages: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Dialect:
    """Vendor-specific behaviour used when building requests and reading output."""

    vendor: Vendor
    batch_separator: str | None
    sqlglot_dialect: str
    message_patterns: tuple[re.Pattern[str], ...]
    result_starts: Callable[[Sequence[str]], list[int]]

    def classify_output(self, lines: Sequence[str]) -> OutputLines:
        """Move row-count chatter into messages and drop "No errors." lines."""

        output: list[str] = []
        messages: list[str] = []
        for line in lines:
            if any(pattern.search(line) for pattern in self.message_patterns):
                messages.append(line)
            elif not _NO_ERRORS.match(line):
                output.append(line)
        return OutputLines(output=tuple(output), messages=tuple(messages))


_NO_ERRORS = re.compile(r"^No errors\.")
_SPACER = re.compile(r"^--+")


def _sqlserver_result_starts(lines: Sequence[str]) -> list[int]:
    # sqlcmd prints a header line, a line of dashes, then rows; a scalar
    # without a header starts right after the dashes instead.
    starts: list[int] = []
    for index, line in enumerate(lines):
        if not _SPACER.match(line):
            continue
        if index == 0 or not lines[index - 1].strip():
            start = index + 1
        else:
            start = index - 1
        if start < len(lines):
            starts.append(start)
    return starts


def _oracle_result_starts(lines: Sequence[str]) -> list[int]:
    # sqlplus separates result sets with blank lines.
    if not lines:
        return []
    starts = [0]
    for index, line in enumerate(lines[:-1]):
        if line == "" and lines[index + 1] != "":
            starts.append(index + 1)
    return starts


DIALECTS: Mapping[Vendor, Dialect] = {
    Vendor.SQLSERVER: Dialect(
        vendor=Vendor.SQLSERVER,
        batch_separator="GO",
        sqlglot_dialect="tsql",
        message_patterns=(re.compile(r"\(\d+ rows? affected\)"),),
        result_starts=_sqlserver_result_starts,
    ),
    Vendor.ORACLE: Dialect(
        vendor=Vendor.ORACLE,
        batch_separator="/",
        sqlglot_dialect="oracle",
        message_patterns=(re.compile(r"^SP\d-\d+"), re.compile(r"^\d+ rows selected")),
        result_starts=_oracle_result_starts,
    ),
}

_missing = [vendor.value for vendor in Vendor if vendor not in DIALECTS]
if _missing:
    raise RuntimeError(f"No dialect registered for vendor(s): {', '.join(_missing)}")


def parse_vendor(value: str | Vendor) -> Vendor:
    """Return the vendor for ``value`` or raise ``ValueError``."""

    try:
        return Vendor(value)
    except ValueError:
        supported = ", ".join(vendor.value for vendor in Vendor)
        raise ValueError(f"Unsupported database vendor '{value}' (expected one of: {supported})") from None


def dialect_for(vendor: Vendor | str) -> Dialect:
    return DIALECTS[parse_vendor(vendor)]


__all__ = [
    "DIALECTS",
    "Dialect",
    "OutputLines",
    "Vendor",
    "dialect_for",
    "parse_vendor",
]
