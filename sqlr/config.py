"""Client configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError

CONFIG_FILE = Path.home() / ".config" / "sqlr" / "config.toml"
DATA_DIR = Path.home() / ".local" / "share" / "sqlr"

LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


class ClientConfig(BaseModel):
    """Where the sqlrepl server lives and how connections talk to it."""

    host: str = "localhost"
    port: int = Field(default=8080, ge=1, le=65535)
    binary: str = "sqlrepl"
    log: Path = DATA_DIR / "log.client.txt"
    lookup_tool: str = "lsof"
    poll_interval: float = Field(default=0.2, gt=0)
    connect_timeout: float = Field(default=5.0, gt=0)
    partial_read_timeout: float = Field(default=5.0, ge=0)
    request_timeout: float | None = Field(default=None, gt=0)
    stop_timeout: float = Field(default=5.0, gt=0)

    @property
    def is_local(self) -> bool:
        """Whether the server is expected on this machine (and may be spawned)."""

        return self.host in LOCAL_HOSTS


def load_config(path: Path | None = None) -> ClientConfig:
    """Load configuration from disk; fall back to defaults if missing or invalid."""

    try:
        data = _read_config_file(path or CONFIG_FILE)
    except FileNotFoundError:
        return ClientConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return ClientConfig()

    try:
        return ClientConfig(**data)
    except ValidationError:
        return ClientConfig()


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    section = raw.get("client", raw)
    data: dict[str, object] = {}
    if not isinstance(section, dict):
        return data
    for key in ("host", "binary", "lookup_tool"):
        value = section.get(key)
        if isinstance(value, str):
            data[key] = value
    port = section.get("port")
    if isinstance(port, int):
        data["port"] = port
    log = section.get("log")
    if isinstance(log, str):
        data["log"] = Path(log).expanduser()
    for key in ("poll_interval", "connect_timeout", "partial_read_timeout", "request_timeout", "stop_timeout"):
        value = section.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            data[key] = float(value)
    return data


__all__ = ["CONFIG_FILE", "ClientConfig", "DATA_DIR", "load_config"]
