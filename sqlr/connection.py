"""A single sqlrepl session for one environment/database pair."""

from __future__ import annotations

import logging
import socket
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from .errors import ConnectError, FrameReadError, RequestTimeoutError, RequestWriteError, SqlrError
from .framing import FrameReader, encode_handshake, encode_request, is_terminator
from .poller import Poller, Scheduler
from .progress import LogProgressReporter, ProgressHandle, ProgressReporter
from .protocol import QueryResult, decode_result
from .vendors import Vendor, parse_vendor

LOG = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.2

ResultCallback = Callable[[SqlrError | None, Sequence[QueryResult] | None], None]
SocketFactory = Callable[[tuple[str, int], float], socket.socket]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"


@dataclass(frozen=True, slots=True)
class Request:
    """SQL text queued on a connection together with its result callback."""

    sql: str
    callback: ResultCallback


class Connection:
    """Serialises requests over one TCP socket and polls for framed results.

    Only one request is in flight at a time; the rest wait in a FIFO queue.
    Responses are read by a :class:`Poller` on the host scheduler so nothing
    here ever blocks waiting for the server to finish a query.

    ``disconnect`` drops queued requests without calling their callbacks
    (silent cancel). It leaves the busy flag alone; use ``reset`` to also
    retire the in-progress indicator.
    """

    def __init__(
        self,
        host: str,
        port: int,
        vendor: Vendor | str,
        connstring: str,
        *,
        scheduler: Scheduler,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        connect_timeout: float = 5.0,
        partial_read_timeout: float = 5.0,
        request_timeout: float | None = None,
        progress: ProgressReporter | None = None,
        socket_factory: SocketFactory = socket.create_connection,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.host = host
        self.port = port
        self.vendor = parse_vendor(vendor)
        self.connstring = connstring
        self.queue: deque[Request] = deque()
        self.busy = False
        self._scheduler = scheduler
        self._poll_interval = poll_interval
        self._connect_timeout = connect_timeout
        self._reader = FrameReader(partial_timeout=partial_read_timeout, clock=clock)
        self._request_timeout = request_timeout
        self._progress = progress or LogProgressReporter()
        self._socket_factory = socket_factory
        self._clock = clock
        self._sock: socket.socket | None = None
        self._poller: Poller | None = None
        self._in_flight: Request | None = None
        self._results: list[QueryResult] = []
        self._sent_at = 0.0
        self._progress_handle: ProgressHandle | None = None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    @property
    def state(self) -> ConnectionState:
        if self._sock is None:
            return ConnectionState.DISCONNECTED
        if self._in_flight is not None:
            return ConnectionState.AWAITING_RESPONSE
        return ConnectionState.IDLE

    def connect(self) -> Connection:
        """Open the socket and send the handshake; no-op when already open."""

        if self._sock is not None:
            return self
        address = (self.host, self.port)
        try:
            sock = self._socket_factory(address, self._connect_timeout)
        except OSError as exc:
            raise ConnectError(f"Unable to connect to {self.host}:{self.port} - {exc}") from exc
        try:
            sock.sendall(encode_handshake(self.vendor.value, self.connstring))
        except OSError as exc:
            sock.close()
            raise ConnectError(f"Unable to send handshake to {self.host}:{self.port} - {exc}") from exc
        sock.setblocking(False)
        self._sock = sock
        self._reader.clear()
        LOG.debug("Connected to sqlrepl", extra={"host": self.host, "port": self.port, "dbtype": self.vendor.value})
        return self

    def send(self, sql: str, callback: ResultCallback) -> None:
        """Queue ``sql``; ``callback(error, results)`` fires once it completes.

        Raises :class:`ConnectError` (and queues nothing) when the socket has
        to be opened and cannot be.
        """

        self.connect()
        self.queue.append(Request(sql=sql, callback=callback))
        if not self.busy:
            self.process_request()

    def process_request(self) -> None:
        """Dispatch the next queued request, or go idle when there is none."""

        while self._in_flight is None and self.queue:
            self.busy = True
            self._start_progress()
            request = self.queue.popleft()
            try:
                self.connect()
                self._write(encode_request(request.sql))
            except (ConnectError, RequestWriteError) as exc:
                LOG.warning("Request could not be sent", extra={"error": str(exc)})
                self._deliver(request, exc, None)
                continue
            self._in_flight = request
            self._results = []
            self._sent_at = self._clock()
            LOG.debug("Request sent, awaiting response", extra={"dbtype": self.vendor.value})
            self._poller = Poller(self._scheduler, self._poll_interval, self._await_response)
            self._poller.start()
            return
        if self._in_flight is None:
            self.busy = False
            self._finish_progress()

    def write_raw(self, data: str) -> None:
        """Write ``data`` straight to the transport, bypassing the queue."""

        self.connect()
        self._write(data.encode("utf-8"))

    def disconnect(self) -> None:
        """Close the socket and silently drop queued and in-flight requests."""

        self._stop_poller()
        self._in_flight = None
        self._results = []
        self._close_socket()
        self.queue.clear()

    def reset(self, *, reconnect: bool = True) -> None:
        """Cancel all pending work, optionally reconnect, and go idle."""

        self.disconnect()
        self.busy = False
        if reconnect:
            self.connect()
        self.process_request()

    def _await_response(self) -> bool:
        request = self._in_flight
        sock = self._sock
        if request is None or sock is None:
            return False
        try:
            payload = self._reader.read_frame(sock)
            if payload is None:
                self._check_timeout()
                return False
            if is_terminator(payload):
                LOG.debug("End of batch", extra={"results": len(self._results)})
                self._finish(request, None, list(self._results))
                return False
            self._results.append(decode_result(payload))
            return True
        except FrameReadError as exc:
            LOG.warning("Failed to read response", extra={"error": str(exc)})
            self._close_socket()
            self._finish(request, exc, None)
            return False

    def _check_timeout(self) -> None:
        if self._request_timeout is None:
            return
        waited = self._clock() - self._sent_at
        if waited > self._request_timeout:
            raise RequestTimeoutError(f"No response from server after {waited:.1f}s")

    def _finish(self, request: Request, error: SqlrError | None, results: list[QueryResult] | None) -> None:
        self._stop_poller()
        self._in_flight = None
        self._results = []
        self._deliver(request, error, results)
        if self._in_flight is None:
            self.process_request()

    def _deliver(self, request: Request, error: SqlrError | None, results: list[QueryResult] | None) -> None:
        try:
            request.callback(error, results)
        except Exception:
            LOG.exception("Request callback raised", extra={"dbtype": self.vendor.value})

    def _write(self, data: bytes) -> None:
        sock = self._sock
        assert sock is not None
        try:
            sock.settimeout(self._connect_timeout)
            sock.sendall(data)
        except OSError as exc:
            self._close_socket()
            raise RequestWriteError(f"Unable to write request to {self.host}:{self.port} - {exc}") from exc
        sock.setblocking(False)

    def _stop_poller(self) -> None:
        if self._poller is not None:
            self._poller.stop()
            self._poller = None

    def _close_socket(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.close()
        except OSError:  # pragma: no cover - close on a dead socket
            LOG.debug("Socket close failed", exc_info=True)
        self._sock = None
        self._reader.clear()

    def _start_progress(self) -> None:
        if self._progress_handle is None:
            self._progress_handle = self._progress.start("Running SQL...", source=f"sqlr.{self.vendor.value}")

    def _finish_progress(self) -> None:
        if self._progress_handle is not None:
            self._progress_handle.finish()
            self._progress_handle = None


__all__ = [
    "Connection",
    "ConnectionState",
    "DEFAULT_POLL_INTERVAL",
    "Request",
    "ResultCallback",
    "SocketFactory",
]
