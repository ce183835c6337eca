"""Progress indicators shown while a connection has work in flight."""

from __future__ import annotations

import logging
from typing import Protocol

LOG = logging.getLogger(__name__)


class ProgressHandle(Protocol):
    def finish(self) -> None: ...


class ProgressReporter(Protocol):
    """Host hook that displays a spinner (or similar) per busy connection."""

    def start(self, message: str, *, source: str) -> ProgressHandle: ...


class _LogHandle:
    def __init__(self, message: str, source: str) -> None:
        self._message = message
        self._source = source

    def finish(self) -> None:
        LOG.debug("Finished: %s", self._message, extra={"source": self._source})


class LogProgressReporter:
    """Default reporter that only writes to the log."""

    def start(self, message: str, *, source: str) -> ProgressHandle:
        LOG.info(message, extra={"source": source})
        return _LogHandle(message, source)


__all__ = ["LogProgressReporter", "ProgressHandle", "ProgressReporter"]
