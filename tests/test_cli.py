"""Tests for the command line entry point."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from sqlr import cli as cli_module
from sqlr.errors import ConnectError
from sqlr.protocol import QueryResult, Row
from sqlr.statements import SqlglotStatementSplitter


def test_parser_requires_connection_details() -> None:
    with pytest.raises(SystemExit):
        cli_module.build_parser().parse_args(["SELECT 1"])


def test_parser_reads_flags() -> None:
    args = cli_module.build_parser().parse_args(
        ["-", "--vendor", "oracle", "--connstring", "scott/tiger@{DATABASE}", "--database", "orcl", "--script"]
    )

    assert args.sql == "-"
    assert args.vendor == "oracle"
    assert args.script is True
    assert args.no_server is False


def _argv(tmp_path: Path, *extra: str) -> list[str]:
    return [
        "SELECT 1",
        "--vendor",
        "sqlserver",
        "--connstring",
        "Server=x;Database={DATABASE}",
        "--database",
        "master",
        "--config",
        str(tmp_path / "missing.toml"),
        "--no-server",
        *extra,
    ]


def test_main_prints_results_as_json(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    seen: dict[str, Any] = {}

    async def _fake_submit(client, env, database, sql, *, script):  # type: ignore[no-untyped-def]
        seen.update(port=client.config.port, connstring=env.resolve_connstring(database), sql=sql, script=script)
        return [QueryResult(columns=("n",), rows=(Row(values=("1",)),))]

    monkeypatch.setattr(cli_module, "_submit", _fake_submit)

    assert cli_module.main(_argv(tmp_path, "--port", "9999")) == 0

    output = json.loads(capsys.readouterr().out)
    assert output == [{"columns": ["n"], "rows": [{"values": ["1"]}], "message": "", "error": ""}]
    assert seen == {"port": 9999, "connstring": "Server=x;Database=master", "sql": "SELECT 1", "script": False}


def test_main_reports_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    async def _failing_submit(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise ConnectError("Unable to connect to localhost:8080 - refused")

    monkeypatch.setattr(cli_module, "_submit", _failing_submit)

    assert cli_module.main(_argv(tmp_path)) == 1
    assert "Unable to connect" in capsys.readouterr().err


def test_split_flag_enables_statement_splitting(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    splitters: list[Any] = []

    async def _fake_submit(client, env, database, sql, *, script):  # type: ignore[no-untyped-def]
        splitters.append(client._splitter)
        return []

    monkeypatch.setattr(cli_module, "_submit", _fake_submit)

    assert cli_module.main(_argv(tmp_path)) == 0
    assert cli_module.main(_argv(tmp_path, "--split")) == 0

    assert splitters[0] is None
    assert isinstance(splitters[1], SqlglotStatementSplitter)
