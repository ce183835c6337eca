"""Wire framing for the sqlrepl protocol.

Requests are plain text: a JSON handshake line once per socket, then SQL text
closed by a line holding a single group separator. Responses are a stream of
frames, each a 4-byte big-endian length followed by that many payload bytes,
ending with a one-byte terminator frame.
"""

from __future__ import annotations

import socket
import struct
import time
from typing import Callable

from pydantic import BaseModel

from .errors import FrameReadError

GS = "\x1d"
STX = "\x02"
ETX = "\x03"

TERMINATOR = GS.encode("ascii")

_LENGTH = struct.Struct(">I")
_RECV_SIZE = 65536


class HandshakeParams(BaseModel):
    """First message written on every new socket."""

    dbtype: str
    connstring: str


def encode_handshake(dbtype: str, connstring: str) -> bytes:
    """Return the handshake line for a vendor/connection-string pair."""

    params = HandshakeParams(dbtype=dbtype, connstring=connstring)
    return (params.model_dump_json() + "\n").encode("utf-8")


def encode_request(sql: str) -> bytes:
    """Return SQL text followed by the end-of-submission line."""

    return f"{sql}\n{GS}\n".encode("utf-8")


def encode_frame(payload: bytes) -> bytes:
    return _LENGTH.pack(len(payload)) + payload


TERMINATOR_FRAME = encode_frame(TERMINATOR)


def is_terminator(payload: bytes) -> bool:
    """True when the payload closes the current batch."""

    return payload == TERMINATOR


class FrameReader:
    """Assemble response frames from a non-blocking socket across poll ticks.

    ``read_frame`` never blocks. Bytes of an unfinished frame stay buffered
    until the rest arrives; if it has not arrived ``partial_timeout`` seconds
    after the reader first came up short, the frame is a read failure. With
    ``partial_timeout=0`` an unfinished frame fails the first time no more
    bytes are available.
    """

    def __init__(self, *, partial_timeout: float = 0.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._partial_timeout = partial_timeout
        self._clock = clock
        self._buffer = bytearray()
        self._stalled_since: float | None = None

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def clear(self) -> None:
        """Forget buffered bytes, e.g. when the socket is replaced."""

        self._buffer.clear()
        self._stalled_since = None

    def read_frame(self, sock: socket.socket) -> bytes | None:
        """Return the next frame payload, or ``None`` when it is not complete yet."""

        while True:
            payload = self._take()
            if payload is not None:
                self._stalled_since = None
                return payload
            try:
                chunk = sock.recv(_RECV_SIZE)
            except (BlockingIOError, InterruptedError):
                return self._stalled()
            except OSError as exc:
                raise FrameReadError(f"Failed to read from server: {exc}") from exc
            if not chunk:
                raise FrameReadError("Connection closed by server")
            self._buffer += chunk

    def _take(self) -> bytes | None:
        if len(self._buffer) < _LENGTH.size:
            return None
        (length,) = _LENGTH.unpack_from(self._buffer)
        end = _LENGTH.size + length
        if len(self._buffer) < end:
            return None
        payload = bytes(self._buffer[_LENGTH.size : end])
        del self._buffer[:end]
        return payload

    def _stalled(self) -> None:
        if not self._buffer:
            return None
        if self._partial_timeout <= 0:
            raise FrameReadError("Failed to read data: incomplete frame")
        now = self._clock()
        if self._stalled_since is None:
            self._stalled_since = now
        elif now - self._stalled_since > self._partial_timeout:
            raise FrameReadError(
                f"Failed to read data: incomplete frame after {now - self._stalled_since:.1f}s "
                f"({len(self._buffer)} bytes buffered)"
            )
        return None


__all__ = [
    "ETX",
    "FrameReader",
    "GS",
    "HandshakeParams",
    "STX",
    "TERMINATOR",
    "TERMINATOR_FRAME",
    "encode_frame",
    "encode_handshake",
    "encode_request",
    "is_terminator",
]
