"""Discovery and lifecycle of the local sqlrepl server process."""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .config import ClientConfig
from .errors import DiscoveryError, DiscoveryToolMissingError, SpawnError

LOG = logging.getLogger(__name__)

# lsof exits with 1 when nothing matches the query.
_LOOKUP_NOT_FOUND = 1


@dataclass(slots=True)
class ServerProcess:
    """A server found on the port (no handle) or started by us (with handle)."""

    pid: int
    handle: subprocess.Popen[bytes] | None = None

    @property
    def spawned(self) -> bool:
        return self.handle is not None


class ServerProcessManager:
    """Find a sqlrepl server listening on ``port`` or start one.

    Output of a spawned server is appended to ``log_path`` together with
    lifecycle lines written here. Only servers started by this manager are
    ever stopped by it.
    """

    def __init__(
        self,
        *,
        port: int,
        log_path: Path,
        binary: str = "sqlrepl",
        lookup_tool: str = "lsof",
        stop_timeout: float = 5.0,
    ) -> None:
        lookup = shutil.which(lookup_tool)
        if lookup is None:
            raise DiscoveryToolMissingError(f"`{lookup_tool}` required to find a running {binary} server")
        self.port = port
        self.binary = binary
        self.log_path = log_path
        self._lookup = lookup
        self._stop_timeout = stop_timeout
        self._process: ServerProcess | None = None
        self._watcher: threading.Thread | None = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> ServerProcessManager:
        return cls(
            port=config.port,
            log_path=config.log,
            binary=config.binary,
            lookup_tool=config.lookup_tool,
            stop_timeout=config.stop_timeout,
        )

    @property
    def process(self) -> ServerProcess | None:
        return self._process

    @property
    def name(self) -> str:
        return Path(self.binary).stem

    def discover(self) -> int | None:
        """Return the pid listening on the port, or ``None`` when there is none."""

        command = [self._lookup, "-t", f"-i:{self.port}", "-sTCP:LISTEN"]
        try:
            completed = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise DiscoveryError(f"Failed to execute {self._lookup}: {exc}") from exc
        if completed.returncode == _LOOKUP_NOT_FOUND:
            return None
        if completed.returncode != 0:
            raise DiscoveryError(f"{Path(self._lookup).name} exited with error code: {completed.returncode}")
        lines = completed.stdout.splitlines()
        try:
            pid = int(lines[0].strip())
        except (IndexError, ValueError):
            return None
        LOG.debug("%s process found", self.name, extra={"pid": pid, "port": self.port})
        return pid

    def spawn(self) -> int:
        """Start the server binary and return its pid."""

        return self._launch().pid

    def ensure_running(self) -> ServerProcess:
        """Reuse a known or listening server, spawning one only if needed.

        Raises :class:`SpawnError` when a freshly spawned server has already
        exited (port in use, bad arguments); its output is in the log.
        """

        current = self._process
        if current is not None and (current.handle is None or current.handle.poll() is None):
            return current
        pid = self.discover()
        if pid is not None:
            self._process = ServerProcess(pid=pid)
            return self._process
        process = self._launch()
        code = process.handle.poll() if process.handle is not None else None
        if code is not None:
            raise SpawnError(f"{self.binary} exited immediately with code {code}; see {self.log_path}")
        return process

    def _launch(self) -> ServerProcess:
        current = self._process
        if current is not None and current.handle is not None and current.handle.poll() is None:
            return current

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with self.log_path.open("ab") as sink:
            try:
                handle = subprocess.Popen(
                    [self.binary, "-p", str(self.port)],
                    stdin=subprocess.DEVNULL,
                    stdout=sink,
                    stderr=sink,
                )
            except OSError as exc:
                self._append_log(f"ERROR: unable to spawn {self.name}: {exc}")
                raise SpawnError(f"Unable to spawn {self.binary}: {exc}") from exc

        process = ServerProcess(pid=handle.pid, handle=handle)
        self._process = process
        self._watcher = threading.Thread(
            target=self._watch,
            args=(handle,),
            name=f"sqlr-{self.name}-watch",
            daemon=True,
        )
        self._watcher.start()
        message = f"{self.name} server started, listening on {self.port}"
        LOG.info(message, extra={"pid": handle.pid})
        self._append_log(f"{message} (pid {handle.pid})")
        return process

    def stop(self) -> bool:
        """Terminate a spawned server; returns ``False`` if there was none."""

        current = self._process
        if current is None:
            return False
        if current.handle is None:
            LOG.info("Leaving %s running; it was not started here", self.name, extra={"pid": current.pid})
            return False

        handle = current.handle
        handle.terminate()
        try:
            handle.wait(timeout=self._stop_timeout)
        except subprocess.TimeoutExpired:
            LOG.warning("%s did not exit, killing it", self.name, extra={"pid": current.pid})
            handle.kill()
            handle.wait()
        if self._watcher is not None:
            self._watcher.join(timeout=1)
            self._watcher = None
        if self._process is current:
            self._process = None
        return True

    def _watch(self, handle: subprocess.Popen[bytes]) -> None:
        code = handle.wait()
        self._append_log(f"{self.name} exited with code: {code}")
        LOG.info("%s exited", self.name, extra={"pid": handle.pid, "returncode": code})
        current = self._process
        if current is not None and current.handle is handle:
            self._process = None

    def _append_log(self, message: str) -> None:
        stamp = datetime.now(tz=timezone.utc).isoformat(timespec="seconds")
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with self.log_path.open("a", encoding="utf-8") as handle:
                handle.write(f"{stamp} {message}\n")
        except OSError:
            LOG.warning("Unable to write server log", extra={"path": str(self.log_path)}, exc_info=True)


__all__ = ["ServerProcess", "ServerProcessManager"]
