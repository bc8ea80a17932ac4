"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from storage_presence.config import get_settings
from storage_presence.db import EdgeStore, InMemoryEdgeStore, SqlEdgeStore
from storage_presence.edges import EdgeService
from storage_presence.presence import PresenceAggregator
from storage_presence.queue import InMemoryRefreshQueue, RedisRefreshQueue, RefreshQueue
from storage_presence.rollup import CollectionAggregator
from storage_presence.sync_monitor import SyncMonitor

logger = logging.getLogger(__name__)

_edge_store: EdgeStore | None = None
_refresh_queue: RefreshQueue | None = None


def get_edge_store() -> EdgeStore:
    """
    Return a singleton store so edge state persists across requests.
    """
    global _edge_store
    if _edge_store:
        return _edge_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory edge store")
        _edge_store = InMemoryEdgeStore()
    else:
        _edge_store = SqlEdgeStore(settings.database_url)
    return _edge_store


def get_refresh_queue() -> RefreshQueue:
    """
    Return a singleton queue for dispatching rollup refreshes to workers.
    """
    global _refresh_queue
    if _refresh_queue:
        return _refresh_queue

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _refresh_queue = RedisRefreshQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _refresh_queue = InMemoryRefreshQueue()
    return _refresh_queue


def get_edge_service() -> EdgeService:
    return EdgeService(get_edge_store())


def get_presence_aggregator() -> PresenceAggregator:
    return PresenceAggregator(get_edge_store())


def get_collection_aggregator() -> CollectionAggregator:
    return CollectionAggregator(get_edge_store(), queue=get_refresh_queue())


def get_sync_monitor() -> SyncMonitor:
    settings = get_settings()
    return SyncMonitor(
        get_edge_store(),
        stuck_threshold_seconds=settings.stuck_threshold_minutes * 60,
    )
