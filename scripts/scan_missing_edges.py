"""
List items that have no present copy on a backend (default: the permanent
ledger), e.g. to feed a migration backfill.

Prints one ``item_type item_id`` pair per line.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storage_presence.dependencies import get_edge_store
from storage_presence.errors import PresenceError
from storage_presence.sync_monitor import SyncMonitor
from storage_presence.types import PERMANENT_BACKEND, Artifact, Backend

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def main() -> int:
    parser = argparse.ArgumentParser(description="Scan for items missing from a backend")
    parser.add_argument(
        "-b",
        "--backend",
        choices=[b.value for b in Backend],
        default=PERMANENT_BACKEND.value,
        help="Backend to check",
    )
    parser.add_argument(
        "-a",
        "--artifact",
        choices=[a.value for a in Artifact],
        default=None,
        help="Only check this artifact (default: both)",
    )
    parser.add_argument(
        "--batch-size",
        type=positive_int,
        default=500,
        help="Rows fetched per query",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=0,
        help="Stop after N items (0 for no limit)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    monitor = SyncMonitor(get_edge_store())
    found = 0
    offset = 0
    try:
        while True:
            batch = monitor.items_missing_from(
                args.backend, args.artifact, limit=args.batch_size, offset=offset
            )
            for item_id, item_type in batch:
                print(f"{item_type.value} {item_id}")
                found += 1
                if args.limit and found >= args.limit:
                    break
            if len(batch) < args.batch_size or (args.limit and found >= args.limit):
                break
            offset += args.batch_size
    except PresenceError as exc:
        logger.error("Scan failed: %s", exc)
        return 1

    logger.info("%d items missing from %s", found, args.backend)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
