"""Command line entry point: run one SQL text against a sqlrepl server."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from .client import Client
from .config import load_config
from .environment import Environment
from .errors import SqlrError
from .protocol import QueryResult
from .statements import SqlglotStatementSplitter
from .vendors import Vendor

LOG = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sqlr", description=__doc__)
    parser.add_argument("sql", help="SQL text, or '-' to read it from stdin")
    parser.add_argument("--vendor", choices=[vendor.value for vendor in Vendor], required=True)
    parser.add_argument("--connstring", required=True, help="Connection string; {DATABASE} is substituted")
    parser.add_argument("--database", required=True)
    parser.add_argument("--config", type=Path, help="Path to config.toml")
    parser.add_argument("--host", help="Override the configured server host")
    parser.add_argument("--port", type=int, help="Override the configured server port")
    parser.add_argument("--script", action="store_true", help="Execute as a batch script instead of statements")
    parser.add_argument("--split", action="store_true", help="Split the SQL text into statements before running it")
    parser.add_argument("--no-server", action="store_true", help="Do not discover or start a local server")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


async def _submit(client: Client, env: Environment, database: str, sql: str, *, script: bool) -> Sequence[QueryResult]:
    loop = asyncio.get_running_loop()
    done: asyncio.Future[tuple[SqlrError | None, Sequence[QueryResult] | None]] = loop.create_future()

    def _callback(error: SqlrError | None, results: Sequence[QueryResult] | None) -> None:
        if not done.done():
            done.set_result((error, results))

    if script:
        client.execute(env, database, sql, _callback)
    else:
        client.run(env, database, sql, _callback)
    error, results = await done
    if error is not None:
        raise error
    return results or ()


async def _main(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    overrides = {key: value for key, value in (("host", args.host), ("port", args.port)) if value is not None}
    if overrides:
        config = config.model_copy(update=overrides)
    sql = sys.stdin.read() if args.sql == "-" else args.sql
    env = Environment(name="cli", vendor=Vendor(args.vendor), connstring=args.connstring, databases=(args.database,))

    splitter = SqlglotStatementSplitter() if args.split else None
    client = Client(config, scheduler=asyncio.get_running_loop(), splitter=splitter)
    try:
        if not args.no_server:
            client.ensure_server()
        results = await _submit(client, env, args.database, sql, script=args.script)
    except (SqlrError, ValueError) as exc:
        print(f"sqlr: {exc}", file=sys.stderr)
        return 1
    finally:
        client.close()
    json.dump([dataclasses.asdict(result) for result in results], sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_main(args))


__all__ = ["build_parser", "main"]
