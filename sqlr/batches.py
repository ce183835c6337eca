"""Batch splitting for the execute-script request mode."""

from __future__ import annotations

from typing import Iterable

from .framing import ETX, STX


def wrap_batch(body: str) -> str:
    """Surround one batch with the begin/end sentinels the server expects."""

    return f"{STX}\n{body}\n{ETX}"


def split_batches(lines: Iterable[str], separator: str | None = None) -> list[str]:
    """Split script lines into wrapped batches.

    A line that equals ``separator`` once surrounding whitespace is trimmed
    closes the current batch and is itself dropped. Batches holding only blank
    lines are skipped. Without a separator the whole script is a single batch.
    """

    lines = list(lines)
    if separator is None:
        return [wrap_batch("\n".join(lines))]

    token = separator.strip()
    batches: list[str] = []
    current: list[str] = []
    for line in lines:
        if line.strip() == token:
            _close(batches, current)
            current = []
        else:
            current.append(line)
    _close(batches, current)
    return batches


def _close(batches: list[str], lines: list[str]) -> None:
    if any(line.strip() for line in lines):
        batches.append(wrap_batch("\n".join(lines)))


def join_batches(batches: Iterable[str]) -> str:
    """Concatenate wrapped batches into one request body."""

    return "".join(batches)


__all__ = ["join_batches", "split_batches", "wrap_batch"]
