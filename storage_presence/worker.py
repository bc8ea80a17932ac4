"""
Worker loop that drains the rollup refresh queue.

Each dequeued collection id gets a full recompute of its cached presence
rollup. Refreshes are idempotent, so duplicate queue entries are harmless.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from storage_presence.dependencies import get_edge_store, get_refresh_queue
from storage_presence.errors import StoreUnavailable, ValidationError
from storage_presence.queue import RefreshQueue
from storage_presence.rollup import CollectionAggregator

logger = logging.getLogger(__name__)


def process_next(
    *,
    aggregator: Optional[CollectionAggregator] = None,
    queue: Optional[RefreshQueue] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Refresh one queued collection. Returns True if a refresh was attempted.
    """
    queue = queue or get_refresh_queue()
    aggregator = aggregator or CollectionAggregator(get_edge_store())

    collection_id = queue.dequeue(block=block, timeout=timeout)
    if not collection_id:
        return False

    try:
        aggregator.refresh(collection_id)
    except ValidationError:
        logger.warning("Dropping malformed collection id %r from refresh queue", collection_id)
    except StoreUnavailable:
        logger.exception("[%s] Rollup refresh failed, requeueing", collection_id)
        try:
            queue.enqueue(collection_id)
        except StoreUnavailable as requeue_exc:
            logger.error(
                "[%s] Requeue failed, refresh request lost: %s", collection_id, requeue_exc
            )
        raise
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Simple polling loop that blocks on the queue. Intended to be run under systemd/supervisor.
    """
    queue = get_refresh_queue()
    aggregator = CollectionAggregator(get_edge_store())
    while True:
        try:
            processed = process_next(
                aggregator=aggregator,
                queue=queue,
                block=True,
                timeout=int(poll_interval_seconds),
            )
        except StoreUnavailable:
            processed = False
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )
    run_loop()
