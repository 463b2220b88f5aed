"""Command-line interface for the liquidation watcher."""
from __future__ import annotations

import argparse
import asyncio
import sys

from .app import Application
from .config import load_config
from .logging_setup import configure_logging


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="liquidation-watch",
        description="Aave V3 liquidation opportunity monitor",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("init-db", help="Create the SQLite schema")
    sub.add_parser("sync-assets", help="Load reserve decimals and symbols")
    sub.add_parser("discover", help="Seed borrowers from the subgraph and evaluate them")

    worker_parser = sub.add_parser("worker", help="Run one tier worker loop")
    worker_parser.add_argument("name", help="Worker name from scheduler.workers")

    run_parser = sub.add_parser("run", help="Run all configured workers")
    run_parser.add_argument(
        "--only",
        nargs="+",
        default=None,
        metavar="NAME",
        help="Run only these workers",
    )

    return parser


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    app = Application(config)

    try:
        if args.command == "init-db":
            await app.init_db()
            return

        await app.verify_chain()
        await app.init_db()

        if args.command == "sync-assets":
            await app.sync_assets()
        elif args.command == "discover":
            await app.discover()
        elif args.command == "worker":
            await app.run_workers([args.name])
        elif args.command == "run":
            await app.run_workers(args.only or list(config.scheduler.workers))
        else:
            build_parser().print_help()
            sys.exit(1)
    finally:
        await app.close()


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    asyncio.run(_run(args))
