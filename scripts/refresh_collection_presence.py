"""
Refresh cached collection presence rollups.

Refreshes inline by default; with ``--enqueue`` the ids are pushed onto the
refresh queue for the worker instead. Ids come from arguments or stdin.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storage_presence.dependencies import get_edge_store, get_refresh_queue
from storage_presence.errors import StoreUnavailable, ValidationError
from storage_presence.rollup import CollectionAggregator

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Refresh collection presence rollups")
    parser.add_argument(
        "collection_ids",
        nargs="*",
        help="Collection ids to refresh (reads stdin when omitted)",
    )
    parser.add_argument(
        "--enqueue",
        action="store_true",
        help="Queue refreshes for the worker instead of running them here",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    collection_ids = args.collection_ids or [
        line.strip() for line in sys.stdin if line.strip()
    ]
    aggregator = CollectionAggregator(
        get_edge_store(), queue=get_refresh_queue() if args.enqueue else None
    )

    failures = 0
    for collection_id in collection_ids:
        try:
            if args.enqueue:
                aggregator.request_refresh(collection_id)
            else:
                summary = aggregator.refresh(collection_id)
                print(
                    f"{collection_id} {summary.status.value} "
                    f"{summary.completeness_percentage}%"
                )
        except ValidationError as exc:
            logger.warning("Skipping %s: %s", collection_id, exc)
            failures += 1
        except StoreUnavailable as exc:
            logger.error("Store unavailable while refreshing %s: %s", collection_id, exc)
            return 1

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
