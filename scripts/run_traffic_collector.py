#!/usr/bin/env python3
"""CLI entry point for traffic collection.

Usage:
    # Reconcile today's window for every discovered repository
    GITHUB_TOKEN=... PYTHONPATH=. python scripts/run_traffic_collector.py

    # Explicit repositories and ledger location
    PYTHONPATH=. python scripts/run_traffic_collector.py --repos repo-a,repo-b \
        --ledger data/traffic-history.json

Exit codes:
    0  run completed (individual repository failures are only logged)
    1  fatal precondition: missing token, nothing to track, unreadable ledger
    2  invalid configuration
"""
import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.traffic_ledger.collector import (
    CollectorPreconditionError,
    TrafficCollectorService,
)
from src.traffic_ledger.config import CollectorSettings
from src.traffic_ledger.ledger.exceptions import LedgerError


logger = logging.getLogger("run_traffic_collector")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_settings(args: argparse.Namespace) -> CollectorSettings:
    """Environment settings with command-line overrides applied."""
    settings = CollectorSettings.from_env()
    overrides = {}
    if args.ledger:
        overrides["ledger_path"] = Path(args.ledger)
    if args.owner:
        overrides["owner"] = args.owner
    if args.repos:
        overrides["repos"] = tuple(
            name.strip() for name in args.repos.split(",") if name.strip()
        )
    if args.retention_days is not None:
        overrides["retention_days"] = args.retention_days
    if args.include_private:
        overrides["include_private"] = True
    if args.save_each:
        overrides["save_each_entity"] = True
    return dataclasses.replace(settings, **overrides) if overrides else settings


async def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="GitHub traffic ledger collector")
    parser.add_argument(
        "--ledger",
        type=str,
        help="Ledger JSON path (default: TRAFFIC_LEDGER_PATH or data/traffic-history.json)",
    )
    parser.add_argument(
        "--owner",
        type=str,
        help="Repository owner (default: GITHUB_USERNAME / GITHUB_REPOSITORY / token owner)",
    )
    parser.add_argument(
        "--repos",
        type=str,
        help="Comma-separated repositories to track instead of discovery",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        help="Days of per-day history to keep before folding into the baseline",
    )
    parser.add_argument(
        "--include-private",
        action="store_true",
        help="Include private repositories in discovery",
    )
    parser.add_argument(
        "--save-each",
        action="store_true",
        help="Save the ledger after every repository",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        settings = build_settings(args)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    service = TrafficCollectorService(settings)

    try:
        await service.run_once()
    except CollectorPreconditionError as exc:
        logger.error("%s", exc)
        return 1
    except LedgerError as exc:
        logger.error("Ledger error, nothing was written: %s", exc)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
