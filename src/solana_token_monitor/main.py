"""Entrypoint for the Solana token lifecycle monitor."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Optional

from .config.settings import AppMode, get_app_config
from .ingestion.snapshot_replay import SnapshotFileFetcher
from .lifecycle.scanner import MarketScanner
from .monitoring import bootstrap_observability
from .monitoring.logger import get_logger
from .monitoring.metrics import METRICS

logger = get_logger(__name__)


def build_scanner(snapshot_path: Path, *, dry_run: bool = True) -> MarketScanner:
    config = get_app_config()
    if dry_run:
        # The cached config is shared process-wide; override the mode on a copy.
        config = config.model_copy(update={"mode": config.mode.model_copy(update={"active": AppMode.DRY_RUN})})
    notifier = bootstrap_observability(config)
    return MarketScanner(
        SnapshotFileFetcher(snapshot_path),
        strategy=config.strategy,
        config=config.scanner,
        notifier=notifier,
    )


def run_once(scanner: MarketScanner) -> None:
    result = scanner.tick()
    if result is None:
        if scanner.api_error:
            logger.error("Scan failed: %s", scanner.api_error)
        return
    logger.info(
        "Tracking %d tokens, removed %d, %d new alerts",
        len(result.retained),
        result.removed_count,
        len(result.alerts),
    )


async def run_loop(
    scanner: MarketScanner,
    interval_seconds: float,
    max_cycles: Optional[int] = None,
) -> None:
    cycle = 0
    while True:
        cycle += 1
        try:
            run_once(scanner)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Loop iteration %d failed: %s", cycle, exc, extra={"cycle": cycle})
        if max_cycles is not None and cycle >= max_cycles:
            break
        await asyncio.sleep(max(interval_seconds, 0.0))


def main() -> None:
    config = get_app_config()
    parser = argparse.ArgumentParser(description="Track freshly launched Solana tokens and retire dead ones")
    parser.add_argument(
        "--snapshot",
        type=Path,
        default=config.scanner.snapshot_path,
        help="JSON file of token snapshots to replay (default: scanner.snapshot_path)",
    )
    parser.add_argument("--dry-run", action="store_true", default=False, help="Log notifications instead of sending them")
    parser.add_argument("--loop", action="store_true", help="Keep scanning at the configured interval.")
    parser.add_argument(
        "--interval",
        type=float,
        default=config.scanner.interval_seconds,
        help="Seconds between scans when --loop is enabled (default: %(default)s)",
    )
    parser.add_argument("--max-cycles", type=int, default=None, help="Optional limit on loop iterations.")
    parser.add_argument("--metrics", action="store_true", help="Print Prometheus metrics on exit.")
    args = parser.parse_args()
    if args.snapshot is None:
        parser.error("--snapshot is required when scanner.snapshot_path is not configured")

    scanner = build_scanner(args.snapshot, dry_run=args.dry_run)
    if args.loop:
        asyncio.run(run_loop(scanner, args.interval, args.max_cycles))
    else:
        run_once(scanner)
    if args.metrics:
        print(METRICS.export_prometheus(), end="")


if __name__ == "__main__":
    main()
