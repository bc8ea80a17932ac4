"""
Queue abstraction for rollup refresh requests.

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from storage_presence.errors import StoreUnavailable


class RefreshQueue(Protocol):
    """Minimal queue interface for dispatching collection ids to workers."""

    def enqueue(self, collection_id: str) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        ...


@dataclass
class InMemoryRefreshQueue:
    """Simple FIFO queue for testing/dev. Pending duplicates are collapsed."""

    items: list[str] = field(default_factory=list)

    def enqueue(self, collection_id: str) -> None:
        if collection_id not in self.items:
            self.items.append(collection_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        if not self.items:
            return None
        return self.items.pop(0)


@dataclass
class RedisRefreshQueue:
    """Redis-backed queue using list push/pop operations."""

    url: str
    queue_key: str = "presence:rollup-refresh"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, collection_id: str) -> None:
        try:
            self.client.rpush(self.queue_key, collection_id)
        except redis_exceptions.ConnectionError as exc:
            raise StoreUnavailable(f"refresh queue unavailable: {exc}") from exc

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, collection_id = result
            else:
                collection_id = self.client.lpop(self.queue_key)
                if collection_id is None:
                    return None
            return collection_id.decode("utf-8")
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and let the loop retry.
            self.client = redis.Redis.from_url(self.url)
            return None
