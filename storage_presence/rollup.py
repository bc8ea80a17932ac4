"""
Collection-level presence rollups.

A rollup is either computed live or read from the ``collection_presence``
cache. The cache is only ever rewritten by an explicit refresh (directly or
through the refresh queue), never on edge writes, so cached reads may lag
behind recent upserts. Every summary carries ``computed_at`` so callers can
decide whether to force a refresh.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from storage_presence.db import CollectionPresenceSummary, EdgeStore
from storage_presence.edges import validate_identifier
from storage_presence.errors import StoreUnavailable
from storage_presence.presence import classify_ledger_artifacts
from storage_presence.queue import RefreshQueue
from storage_presence.types import PresenceStatus

logger = logging.getLogger(__name__)

LEDGER_STATUSES = (PresenceStatus.FULLY_DURABLE, PresenceStatus.PARTIALLY_DURABLE)


def completeness_percentage(fully_durable: int, known_items: int) -> int:
    """Rounded half-up percentage; 0 when nothing is known."""
    if known_items <= 0:
        return 0
    ratio = min(max(fully_durable / known_items, 0.0), 1.0)
    return int(math.floor(100 * ratio + 0.5))


def summarize_collection(
    collection_id: str,
    total_items: int,
    member_statuses: Iterable[PresenceStatus],
    computed_at: Optional[float],
) -> CollectionPresenceSummary:
    """
    Roll member statuses up into a collection summary.

    ``member_statuses`` may cover only part of the membership: members it
    does not mention are transient-only. Members with an unknown status are
    left out of the percentage instead of counting as not durable.
    """
    fully_durable = 0
    unknown = 0
    any_ledger = False
    for status in member_statuses:
        if status == PresenceStatus.FULLY_DURABLE:
            fully_durable += 1
        elif status == PresenceStatus.UNKNOWN:
            unknown += 1
        if status in LEDGER_STATUSES:
            any_ledger = True

    known = total_items - unknown
    percentage = completeness_percentage(fully_durable, known)
    if total_items > 0 and known <= 0:
        status = PresenceStatus.UNKNOWN
    elif known > 0 and fully_durable == known:
        status = PresenceStatus.FULLY_DURABLE
    elif any_ledger:
        status = PresenceStatus.PARTIALLY_DURABLE
    else:
        status = PresenceStatus.TRANSIENT_ONLY

    return CollectionPresenceSummary(
        collection_id=collection_id,
        total_items=total_items,
        fully_durable_items=fully_durable,
        unknown_items=unknown,
        any_ledger_presence=any_ledger,
        completeness_percentage=percentage,
        status=status,
        computed_at=computed_at,
    )


class CollectionAggregator:
    def __init__(
        self,
        store: EdgeStore,
        queue: Optional[RefreshQueue] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.queue = queue
        self.clock = clock

    def compute(self, collection_id: str) -> CollectionPresenceSummary:
        """Live rollup. Two queries regardless of collection size."""
        validate_identifier(collection_id, "collection_id")
        total = self.store.count_collection_items(collection_id)
        ledger = self.store.collection_ledger_artifacts(collection_id)
        statuses = [classify_ledger_artifacts(found) for found in ledger.values()]
        return summarize_collection(collection_id, total, statuses, self.clock())

    def refresh(self, collection_id: str) -> CollectionPresenceSummary:
        """Recompute and persist one cache entry. Raises StoreUnavailable."""
        summary = self.compute(collection_id)
        self.store.save_collection_presence(summary)
        logger.info(
            "Refreshed presence rollup for collection %s: %s/%s fully durable (%s%%)",
            collection_id,
            summary.fully_durable_items,
            summary.total_items,
            summary.completeness_percentage,
        )
        return summary

    def cached(self, collection_id: str) -> CollectionPresenceSummary:
        """Cached rollup; never triggers a refresh and never raises on read failure."""
        validate_identifier(collection_id, "collection_id")
        try:
            summary = self.store.get_collection_presence(collection_id)
        except (StoreUnavailable, SQLAlchemyError) as exc:
            logger.warning("Rollup read failed for collection %s: %s", collection_id, exc)
            return CollectionPresenceSummary(
                collection_id=collection_id, status=PresenceStatus.UNKNOWN
            )
        if summary is None:
            return CollectionPresenceSummary(collection_id=collection_id)
        return summary

    def cached_many(self, collection_ids: Iterable[str]) -> List[CollectionPresenceSummary]:
        return [self.cached(collection_id) for collection_id in collection_ids]

    def request_refresh(self, collection_id: str) -> None:
        """Queue a refresh for the worker. Falls back to refreshing inline without a queue."""
        validate_identifier(collection_id, "collection_id")
        if self.queue is None:
            self.refresh(collection_id)
            return
        self.queue.enqueue(collection_id)
        logger.debug("Queued rollup refresh for collection %s", collection_id)
