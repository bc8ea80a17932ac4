"""
Item-level presence aggregation.

Presence is always computed fresh from the item's current edges; there is
no item-level cache, so reads observe every committed upsert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from storage_presence.db import EdgeStore, StorageEdge
from storage_presence.errors import StoreUnavailable
from storage_presence.types import (
    PERMANENT_BACKEND,
    Artifact,
    Backend,
    ItemType,
    PresenceStatus,
    SyncState,
)

logger = logging.getLogger(__name__)


def classify_ledger_artifacts(artifacts: Iterable[Artifact]) -> PresenceStatus:
    """Overall status from the set of artifacts present on the permanent backend."""
    found = set(artifacts)
    if found >= set(Artifact):
        return PresenceStatus.FULLY_DURABLE
    if found:
        return PresenceStatus.PARTIALLY_DURABLE
    return PresenceStatus.TRANSIENT_ONLY


@dataclass
class ItemPresenceSummary:
    item_id: str
    item_type: Optional[ItemType]
    status: PresenceStatus
    # (artifact, backend) -> present; missing edges count as absent
    flags: Dict[Tuple[Artifact, Backend], bool] = field(default_factory=dict)
    tracked_edges: int = 0
    present_edges: int = 0
    migrating_edges: int = 0
    failed_edges: int = 0

    def has(self, artifact: Artifact, backend: Backend) -> bool:
        return self.flags.get((artifact, backend), False)

    @property
    def complete_artifacts(self) -> List[Artifact]:
        return [a for a in Artifact if self.has(a, PERMANENT_BACKEND)]

    def as_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_type": self.item_type.value if self.item_type else None,
            "status": self.status.value,
            "presence": {
                artifact.value: {
                    backend.value: self.has(artifact, backend) for backend in Backend
                }
                for artifact in Artifact
            },
            "tracked_edges": self.tracked_edges,
            "present_edges": self.present_edges,
            "migrating_edges": self.migrating_edges,
            "failed_edges": self.failed_edges,
        }


def summarize_edges(
    item_id: str, item_type: Optional[ItemType], edges: Sequence[StorageEdge]
) -> ItemPresenceSummary:
    flags = {(a, b): False for a in Artifact for b in Backend}
    for edge in edges:
        if edge.present:
            flags[(edge.artifact, edge.backend)] = True
    ledger = [a for a in Artifact if flags[(a, PERMANENT_BACKEND)]]
    return ItemPresenceSummary(
        item_id=item_id,
        item_type=item_type,
        status=classify_ledger_artifacts(ledger),
        flags=flags,
        tracked_edges=len(edges),
        present_edges=sum(1 for e in edges if e.present),
        migrating_edges=sum(1 for e in edges if e.sync_state == SyncState.MIGRATING),
        failed_edges=sum(1 for e in edges if e.sync_state == SyncState.FAILED),
    )


def unknown_summary(item_id: str, item_type: Optional[ItemType]) -> ItemPresenceSummary:
    return ItemPresenceSummary(
        item_id=item_id, item_type=item_type, status=PresenceStatus.UNKNOWN
    )


class PresenceAggregator:
    """Reduces one item's edges into an ``ItemPresenceSummary``."""

    def __init__(self, store: EdgeStore):
        self.store = store

    def presence_of(
        self, item_id: str, item_type: Optional[ItemType] = None
    ) -> ItemPresenceSummary:
        try:
            edges = self.store.edges_for_item(item_id, item_type)
        except (StoreUnavailable, SQLAlchemyError) as exc:
            logger.warning("Presence read failed for %s: %s", item_id, exc)
            return unknown_summary(item_id, item_type)
        return summarize_edges(item_id, item_type, edges)

    def presence_of_many(
        self, items: Iterable[Tuple[str, ItemType]]
    ) -> List[ItemPresenceSummary]:
        return [self.presence_of(item_id, item_type) for item_id, item_type in items]
