"""
Read-only view over in-flight and failed migrations.

Nothing here remediates: retrying or abandoning a stuck migration is an
operator action that ends in another edge upsert. Timeouts are advisory
and only surface as the ``is_stuck`` flag.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from storage_presence.db import EdgeFilter, EdgeStore, ItemKey, StorageEdge
from storage_presence.errors import ValidationError
from storage_presence.types import (
    ACTIVE_SYNC_STATES,
    PERMANENT_BACKEND,
    Artifact,
    Backend,
    ItemType,
    SyncState,
    parse_enum,
    parse_optional_enum,
)

DEFAULT_STUCK_THRESHOLD_SECONDS = 30 * 60


@dataclass(frozen=True)
class SyncFilter:
    backend: Optional[Backend] = None
    item_type: Optional[ItemType] = None
    sync_state: Optional[SyncState] = None
    stuck_only: bool = False

    @classmethod
    def parse(
        cls,
        *,
        backend=None,
        item_type=None,
        sync_state=None,
        stuck_only: bool = False,
    ) -> "SyncFilter":
        state = parse_optional_enum(SyncState, sync_state, "sync_state")
        if state is not None and state not in ACTIVE_SYNC_STATES:
            allowed = ", ".join(s.value for s in ACTIVE_SYNC_STATES)
            raise ValidationError(
                f"Invalid sync_state. Must be one of: {allowed}", field="sync_state"
            )
        return cls(
            backend=parse_optional_enum(Backend, backend, "backend"),
            item_type=parse_optional_enum(ItemType, item_type, "item_type"),
            sync_state=state,
            stuck_only=stuck_only,
        )


@dataclass
class SyncStatusRecord:
    edge: StorageEdge
    duration_since_last_transition: float
    is_stuck: bool

    def as_dict(self) -> dict:
        payload = self.edge.as_dict()
        payload["duration_since_last_transition"] = self.duration_since_last_transition
        payload["is_stuck"] = self.is_stuck
        return payload


@dataclass
class SyncCounts:
    total: int = 0
    migrating: int = 0
    failed: int = 0
    stuck: int = 0
    by_backend: Dict[str, int] = field(
        default_factory=lambda: {b.value: 0 for b in Backend}
    )
    by_item_type: Dict[str, int] = field(
        default_factory=lambda: {t.value: 0 for t in ItemType}
    )


@dataclass
class ActiveSyncReport:
    records: List[SyncStatusRecord]
    counts: SyncCounts
    total: int
    stuck_threshold_seconds: float
    generated_at: float


class SyncMonitor:
    def __init__(
        self,
        store: EdgeStore,
        clock: Callable[[], float] = time.time,
        stuck_threshold_seconds: float = DEFAULT_STUCK_THRESHOLD_SECONDS,
    ):
        self.store = store
        self.clock = clock
        self.stuck_threshold_seconds = stuck_threshold_seconds

    def _edge_filter(self, sync_filter: SyncFilter, stuck_before: float) -> EdgeFilter:
        if sync_filter.sync_state is not None:
            states = (sync_filter.sync_state,)
        else:
            states = ACTIVE_SYNC_STATES
        if sync_filter.stuck_only:
            states = tuple(s for s in states if s == SyncState.MIGRATING)
        return EdgeFilter(
            backend=sync_filter.backend,
            item_type=sync_filter.item_type,
            sync_states=states,
            updated_before=stuck_before if sync_filter.stuck_only else None,
        )

    def list_active_syncs(
        self,
        sync_filter: Optional[SyncFilter] = None,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
        stuck_threshold_seconds: Optional[float] = None,
    ) -> ActiveSyncReport:
        sync_filter = sync_filter or SyncFilter()
        threshold = (
            self.stuck_threshold_seconds
            if stuck_threshold_seconds is None
            else stuck_threshold_seconds
        )
        if threshold <= 0:
            raise ValidationError(
                "Invalid stuck threshold. Must be positive", field="stuck_threshold"
            )
        now = self.clock()
        stuck_before = now - threshold
        edge_filter = self._edge_filter(sync_filter, stuck_before)

        edges, total = self.store.list_edges(edge_filter, limit=limit, offset=offset)
        records = [self._record(edge, now, threshold) for edge in edges]

        counts = SyncCounts()
        for row in self.store.sync_counts(edge_filter, stuck_before=stuck_before):
            counts.total += row.count
            counts.stuck += row.stuck
            if row.sync_state == SyncState.MIGRATING:
                counts.migrating += row.count
            elif row.sync_state == SyncState.FAILED:
                counts.failed += row.count
            counts.by_backend[row.backend.value] += row.count
            counts.by_item_type[row.item_type.value] += row.count

        return ActiveSyncReport(
            records=records,
            counts=counts,
            total=total,
            stuck_threshold_seconds=threshold,
            generated_at=now,
        )

    @staticmethod
    def _record(edge: StorageEdge, now: float, threshold: float) -> SyncStatusRecord:
        duration = max(now - edge.updated_at, 0.0)
        return SyncStatusRecord(
            edge=edge,
            duration_since_last_transition=duration,
            is_stuck=edge.sync_state == SyncState.MIGRATING and duration > threshold,
        )

    def items_missing_from(
        self,
        backend=PERMANENT_BACKEND,
        artifact=None,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[ItemKey]:
        """Items with at least one edge but no present copy of ``artifact`` (or of either) on ``backend``."""
        return self.store.items_missing_from(
            parse_enum(Backend, backend, "backend"),
            parse_optional_enum(Artifact, artifact, "artifact"),
            limit=limit,
            offset=offset,
        )
