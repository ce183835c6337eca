"""Client engine for the sqlrepl query server."""

from __future__ import annotations

from .batches import join_batches, split_batches, wrap_batch
from .client import Client
from .config import ClientConfig, load_config
from .connection import Connection, ConnectionState, Request, ResultCallback
from .environment import Environment
from .errors import (
    ConnectError,
    DiscoveryError,
    DiscoveryToolMissingError,
    FrameReadError,
    RequestTimeoutError,
    RequestWriteError,
    ResultDecodeError,
    ServerProcessError,
    SpawnError,
    SqlrError,
)
from .framing import FrameReader, encode_frame, is_terminator
from .protocol import QueryResult, Row, decode_result, encode_result
from .server import ServerProcess, ServerProcessManager
from .vendors import Dialect, OutputLines, Vendor, dialect_for, parse_vendor

__version__ = "0.1.0"

__all__ = [
    "Client",
    "ClientConfig",
    "ConnectError",
    "Connection",
    "ConnectionState",
    "DiscoveryError",
    "DiscoveryToolMissingError",
    "Dialect",
    "Environment",
    "FrameReadError",
    "FrameReader",
    "OutputLines",
    "QueryResult",
    "Request",
    "RequestTimeoutError",
    "RequestWriteError",
    "ResultCallback",
    "ResultDecodeError",
    "Row",
    "ServerProcess",
    "ServerProcessError",
    "ServerProcessManager",
    "SpawnError",
    "SqlrError",
    "Vendor",
    "__version__",
    "decode_result",
    "dialect_for",
    "encode_frame",
    "encode_result",
    "is_terminator",
    "join_batches",
    "load_config",
    "parse_vendor",
    "split_batches",
    "wrap_batch",
]
