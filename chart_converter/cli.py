"""Command-line interface for the chart converter.

WHY: Operators run the conversion as a one-shot batch (re-run to pick up
new or failed charts), check the archive for levels still missing files,
and serve the catalog. One entry point with subcommands covers all three.

HOW: argparse with subcommands:
  init-db  — create the archive tables if missing
  convert  — run the conversion pipeline over every pending chart
  check    — list levels missing any required published file
  serve    — run the catalog API under uvicorn
The pipeline runs via asyncio.run(). Logging goes to stderr.

RULES:
- `convert` validates WEBHOOK_URL before touching any chart (exit 1 if missing)
- `check` exits 1 when any level is incomplete
- --verbose switches logging to DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from chart_converter.alerts import build_alerter
from chart_converter.api.client import SourceFetcher, WebhookUploader
from chart_converter.check import find_incomplete_levels
from chart_converter.config import ARCHIVE_DB_PATH, QUEUE_CAPACITY, load_webhook_url
from chart_converter.pipeline import PipelineReport, run_pipeline
from chart_converter.store import ArchiveStore


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


async def _run_convert(args: argparse.Namespace, webhook_url: str) -> PipelineReport:
    with ArchiveStore(args.db) as store:
        store.ensure_schema()
        async with SourceFetcher() as fetcher, WebhookUploader(webhook_url) as uploader:
            return await run_pipeline(
                store,
                fetcher,
                uploader,
                queue_capacity=args.queue_capacity,
                alerter=build_alerter(),
            )


def _cmd_convert(args: argparse.Namespace) -> int:
    try:
        webhook_url = load_webhook_url()
    except ValueError as e:
        print("Error: {}".format(e), file=sys.stderr)
        return 1

    report = asyncio.run(_run_convert(args, webhook_url))
    _status("")
    _status("Done! {} converted, {} failed, {} delivered, {} unchanged, {} abandoned".format(
        report.converted, report.failed, report.delivered, report.unchanged, report.abandoned,
    ))
    return 0


def _cmd_init_db(args: argparse.Namespace) -> int:
    with ArchiveStore(args.db) as store:
        store.ensure_schema()
    _status("Initialized {}".format(args.db))
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    with ArchiveStore(args.db) as store:
        incomplete = find_incomplete_levels(store)
    for name, missing in incomplete:
        _status("{}: missing {}".format(name, ", ".join(missing)))
    if incomplete:
        _status("{} incomplete level(s)".format(len(incomplete)))
        return 1
    _status("All levels complete.")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    from chart_converter.server.app import run_api
    run_api(host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="chart_converter",
        description="Convert archived LevelData charts to NewLevelData and publish them.",
    )
    parser.add_argument(
        "--db",
        default=ARCHIVE_DB_PATH,
        help="Path to the archive database (default: %(default)s).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the archive tables if missing.")

    convert = sub.add_parser("convert", help="Convert and publish every pending chart.")
    convert.add_argument(
        "--queue-capacity",
        type=int,
        default=QUEUE_CAPACITY,
        help="Converted charts buffered ahead of the uploader (default: %(default)s).",
    )

    sub.add_parser("check", help="List levels missing any required file.")

    serve = sub.add_parser("serve", help="Run the read-only catalog API.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=3000, help="Port (default: %(default)s).")

    return parser


_COMMANDS = {
    "init-db": _cmd_init_db,
    "convert": _cmd_convert,
    "check": _cmd_check,
    "serve": _cmd_serve,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m chart_converter``.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    code = _COMMANDS[args.command](args)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
