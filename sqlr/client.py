"""Registry of sqlrepl connections keyed by environment and database."""

from __future__ import annotations

import logging
import socket
from typing import Sequence

from .batches import join_batches, split_batches
from .config import ClientConfig
from .connection import Connection, ResultCallback, SocketFactory
from .environment import Environment
from .errors import ServerProcessError
from .poller import Scheduler
from .progress import ProgressReporter
from .server import ServerProcess, ServerProcessManager
from .statements import StatementSplitter, flatten
from .vendors import dialect_for

LOG = logging.getLogger(__name__)


class Client:
    """Owns every :class:`Connection` for one host application.

    Construct one per application and pass it around; connections are created
    on first use and reused for the same ``environment:database`` key.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        scheduler: Scheduler,
        progress: ProgressReporter | None = None,
        server: ServerProcessManager | None = None,
        splitter: StatementSplitter | None = None,
        socket_factory: SocketFactory = socket.create_connection,
    ) -> None:
        self.config = config or ClientConfig()
        self.connections: dict[str, Connection] = {}
        self._scheduler = scheduler
        self._progress = progress
        self._server = server
        self._splitter = splitter
        self._socket_factory = socket_factory

    @property
    def server(self) -> ServerProcessManager | None:
        return self._server

    def keys(self) -> list[str]:
        """Keys of the open connections, e.g. for command completion."""

        return list(self.connections)

    def ensure_server(self) -> ServerProcess | None:
        """Find or start the local server; remote hosts are left alone."""

        if not self.config.is_local:
            return None
        if self._server is None:
            self._server = ServerProcessManager.from_config(self.config)
        return self._server.ensure_running()

    def connect(
        self,
        env: Environment,
        db: str,
        initial_statements: Sequence[str] | None = None,
    ) -> Connection:
        """Return the connection for ``env``/``db``, opening it if needed.

        ``initial_statements`` are written once, straight to the socket, when
        the connection is first created; their output is not awaited.
        """

        key = env.key(db)
        conn = self.connections.get(key)
        if conn is not None:
            return conn

        conn = Connection(
            self.config.host,
            self.config.port,
            env.vendor,
            env.resolve_connstring(db),
            scheduler=self._scheduler,
            poll_interval=self.config.poll_interval,
            connect_timeout=self.config.connect_timeout,
            partial_read_timeout=self.config.partial_read_timeout,
            request_timeout=self.config.request_timeout,
            progress=self._progress,
            socket_factory=self._socket_factory,
        )
        self.connections[key] = conn.connect()
        LOG.info("Opened connection", extra={"key": key})

        if initial_statements:
            conn.write_raw("\n".join(initial_statements) + "\n")
        return conn

    def disconnect(self, env: Environment, db: str) -> None:
        conn = self.connections.pop(env.key(db), None)
        if conn is not None:
            conn.disconnect()
            LOG.info("Closed connection", extra={"key": env.key(db)})

    def send(self, env: Environment, db: str, sql: str, callback: ResultCallback) -> None:
        """Send raw request text on the ``env``/``db`` connection."""

        conn = self.connections.get(env.key(db)) or self.connect(env, db)
        conn.send(sql, callback)

    def run(self, env: Environment, db: str, sql: str | Sequence[str], callback: ResultCallback) -> None:
        """Run statements expecting tabular results.

        A string is sent as a single statement unless the client was given a
        statement splitter; a sequence is taken as statements already. Each
        statement travels on its own line.
        """

        if isinstance(sql, str):
            if self._splitter is not None:
                statements = self._splitter.split(sql, env.vendor)
            else:
                statements = [flatten(sql)] if sql.strip() else []
        else:
            statements = [flatten(statement) for statement in sql if statement.strip()]
        if not statements:
            raise ValueError("No statements provided")
        self.send(env, db, "\n".join(statements), callback)

    def execute(
        self,
        env: Environment,
        db: str,
        script: str | Sequence[str],
        callback: ResultCallback,
        *,
        separator: str | None = None,
    ) -> None:
        """Execute a script as one or more batches.

        Batches are split on ``separator`` or, by default, on the vendor's batch
        separator (``GO`` for SQL Server, ``/`` for Oracle).
        """

        lines = script.splitlines() if isinstance(script, str) else list(script)
        if not any(line.strip() for line in lines):
            raise ValueError("No sql provided")
        token = separator if separator is not None else dialect_for(env.vendor).batch_separator
        self.send(env, db, join_batches(split_batches(lines, token)), callback)

    def reset(self, key: str) -> bool:
        """Cancel everything queued on ``key`` and reconnect it.

        Cancelled callbacks are never invoked. Returns ``False`` for an
        unknown key.
        """

        conn = self.connections.get(key)
        if conn is None:
            return False
        conn.reset()
        LOG.info("Connection reset", extra={"key": key})
        return True

    def restart_server(self) -> ServerProcess | None:
        """Stop the server started by this client and start a fresh one."""

        manager = self._server
        current = manager.process if manager is not None else None
        if manager is None or current is None or not current.spawned:
            raise ServerProcessError("Unable to stop sqlrepl server process (is it running locally?)")

        LOG.info("Stopping server", extra={"pid": current.pid})
        manager.stop()
        for conn in self.connections.values():
            conn.reset(reconnect=False)
        process = self.ensure_server()
        LOG.info("Server restarted")
        return process

    def close(self) -> None:
        """Drop every connection and stop a server started by this client."""

        for conn in self.connections.values():
            conn.disconnect()
        self.connections.clear()
        if self._server is not None:
            self._server.stop()


__all__ = ["Client"]
