"""Exceptions raised by the sqlr client engine."""

from __future__ import annotations


class SqlrError(RuntimeError):
    """Base error for the sqlr client."""


class ConnectError(SqlrError):
    """Raised when a TCP session to the sqlrepl server cannot be opened."""


class FrameReadError(SqlrError):
    """Raised when a response frame cannot be read completely."""


class ResultDecodeError(FrameReadError):
    """Raised when a frame payload is not a valid QueryResult."""


class RequestTimeoutError(FrameReadError):
    """Raised when a request waits longer than the configured timeout."""


class RequestWriteError(SqlrError):
    """Raised when a request cannot be written to the socket."""


class ServerProcessError(SqlrError):
    """Base error for sqlrepl server process management."""


class SpawnError(ServerProcessError):
    """Raised when the sqlrepl binary cannot be launched."""


class DiscoveryError(ServerProcessError):
    """Raised when the port lookup tool fails for a reason other than "not found"."""


class DiscoveryToolMissingError(ServerProcessError):
    """Raised when the port lookup tool is not installed."""


__all__ = [
    "ConnectError",
    "DiscoveryError",
    "DiscoveryToolMissingError",
    "FrameReadError",
    "RequestTimeoutError",
    "RequestWriteError",
    "ResultDecodeError",
    "ServerProcessError",
    "SpawnError",
    "SqlrError",
]
