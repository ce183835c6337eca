"""Shared fakes: an in-memory socket and a manually driven scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import count
from typing import Any, Callable

import pytest

from sqlr.framing import TERMINATOR_FRAME, encode_frame
from sqlr.protocol import QueryResult, encode_result


class FakeSocket:
    """Non-blocking socket stand-in; ``recv`` raises BlockingIOError when empty."""

    def __init__(self) -> None:
        self.sent = bytearray()
        self.closed = False
        self.blocking = True
        self.eof = False
        self.fail_send = False
        self.timeouts: list[float | None] = []
        self._inbox = bytearray()

    def sendall(self, data: bytes) -> None:
        if self.closed:
            raise OSError("Bad file descriptor")
        if self.fail_send:
            raise BrokenPipeError("Broken pipe")
        self.sent += data

    def recv(self, size: int) -> bytes:
        if self.closed:
            raise OSError("Bad file descriptor")
        if not self._inbox:
            if self.eof:
                return b""
            raise BlockingIOError("Resource temporarily unavailable")
        chunk = bytes(self._inbox[:size])
        del self._inbox[:size]
        return chunk

    def setblocking(self, flag: bool) -> None:
        self.blocking = flag

    def settimeout(self, value: float | None) -> None:
        self.timeouts.append(value)

    def close(self) -> None:
        self.closed = True

    def feed(self, data: bytes) -> None:
        self._inbox += data

    def respond(self, *results: QueryResult) -> None:
        """Queue one full batch response: result frames then the terminator."""

        for result in results:
            self.feed(encode_frame(encode_result(result)))
        self.feed(TERMINATOR_FRAME)

    def lines(self) -> list[bytes]:
        return bytes(self.sent).split(b"\n")


class FakeNetwork:
    """Socket factory handing out :class:`FakeSocket` instances."""

    def __init__(self) -> None:
        self.sockets: list[FakeSocket] = []
        self.addresses: list[tuple[str, int]] = []
        self.refuse = False

    def __call__(self, address: tuple[str, int], timeout: float) -> FakeSocket:
        if self.refuse:
            raise ConnectionRefusedError(111, "Connection refused")
        sock = FakeSocket()
        self.sockets.append(sock)
        self.addresses.append(address)
        return sock

    @property
    def latest(self) -> FakeSocket:
        return self.sockets[-1]


@dataclass
class _Timer:
    when: float
    seq: int
    callback: Callable[..., Any]
    args: tuple[Any, ...]
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """``call_later`` implementation whose clock only moves in ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[_Timer] = []
        self._seq = count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _Timer:
        timer = _Timer(self.now + delay, next(self._seq), callback, args)
        self._timers.append(timer)
        return timer

    def clock(self) -> float:
        return self.now

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, seconds: float = 0.0) -> None:
        target = self.now + seconds
        while True:
            due = [timer for timer in self._timers if not timer.cancelled and timer.when <= target]
            if not due:
                break
            timer = min(due, key=lambda item: (item.when, item.seq))
            self._timers.remove(timer)
            self.now = max(self.now, timer.when)
            timer.callback(*timer.args)
        self.now = target
        self._timers = [timer for timer in self._timers if not timer.cancelled]


class Recorder:
    """Result callback that remembers every invocation."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, Any]] = []

    def __call__(self, error: Any, results: Any) -> None:
        self.calls.append((error, results))


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def recorder_factory() -> Callable[[], Recorder]:
    return Recorder
