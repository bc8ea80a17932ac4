"""
Edge upsert service: validation in front of the store's atomic upsert.

This is the only write path for presence facts. It never touches the
aggregators; collection rollups only change when explicitly refreshed.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Optional

from storage_presence.db import EdgeStore, EdgeWrite, StorageEdge
from storage_presence.errors import ValidationError
from storage_presence.types import (
    PERMANENT_BACKEND,
    Artifact,
    Backend,
    ItemType,
    SyncState,
    parse_enum,
)

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def validate_identifier(value, field: str = "item_id") -> str:
    if not isinstance(value, str) or not UUID_PATTERN.match(value):
        raise ValidationError(
            f"Invalid {field} format. Must be a valid UUID", field=field
        )
    return value


def validate_size_bytes(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(
            "Invalid size_bytes. Must be a non-negative integer", field="size_bytes"
        )
    return value


def build_edge_write(
    item_id,
    item_type,
    artifact,
    backend,
    *,
    present: bool = False,
    location: Optional[str] = None,
    content_hash: Optional[str] = None,
    size_bytes=None,
    sync_state=SyncState.IDLE,
    sync_error: Optional[str] = None,
) -> EdgeWrite:
    """Validate raw upsert input into an ``EdgeWrite``. Raises ValidationError."""
    if not isinstance(present, bool):
        raise ValidationError("Invalid present. Must be a boolean", field="present")
    return EdgeWrite(
        item_id=validate_identifier(item_id),
        item_type=parse_enum(ItemType, item_type, "item_type"),
        artifact=parse_enum(Artifact, artifact, "artifact"),
        backend=parse_enum(Backend, backend, "backend"),
        present=present,
        location=location,
        content_hash=content_hash,
        size_bytes=validate_size_bytes(size_bytes),
        sync_state=parse_enum(
            SyncState, SyncState.IDLE if sync_state is None else sync_state, "sync_state"
        ),
        sync_error=sync_error,
    )


class EdgeService:
    """Validated create-or-update of presence facts."""

    def __init__(self, store: EdgeStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    def upsert_edge(
        self,
        item_id,
        item_type,
        artifact,
        backend,
        *,
        present: bool = False,
        location: Optional[str] = None,
        content_hash: Optional[str] = None,
        size_bytes=None,
        sync_state=SyncState.IDLE,
        sync_error: Optional[str] = None,
    ) -> StorageEdge:
        try:
            write = build_edge_write(
                item_id,
                item_type,
                artifact,
                backend,
                present=present,
                location=location,
                content_hash=content_hash,
                size_bytes=size_bytes,
                sync_state=sync_state,
                sync_error=sync_error,
            )
        except ValidationError as exc:
            logger.info("Rejected edge upsert for %s: %s", item_id, exc)
            raise
        edge = self.store.upsert_edge(write, now=self.clock())
        logger.debug(
            "Upserted edge %s/%s %s@%s present=%s state=%s",
            edge.item_type.value,
            edge.item_id,
            edge.artifact.value,
            edge.backend.value,
            edge.present,
            edge.sync_state.value,
        )
        return edge

    def record_upload(
        self,
        item_id,
        item_type,
        *,
        location: Optional[str],
        size_bytes=None,
        content_hash: Optional[str] = None,
        metadata_location: Optional[str] = None,
    ) -> tuple[StorageEdge, StorageEdge]:
        """
        Write the two upload-time edges for a freshly stored item: the metadata
        row lives in the relational backend and the asset in blob storage.
        """
        metadata_edge = self.upsert_edge(
            item_id,
            item_type,
            Artifact.METADATA,
            Backend.TRANSIENT_RELATIONAL,
            present=True,
            location=metadata_location or f"{_value(item_type)}/{item_id}",
        )
        asset_edge = self.upsert_edge(
            item_id,
            item_type,
            Artifact.ASSET,
            Backend.TRANSIENT_BLOB,
            present=True,
            location=location,
            content_hash=content_hash,
            size_bytes=size_bytes,
        )
        return metadata_edge, asset_edge

    def begin_migration(
        self, item_id, item_type, artifact, backend=PERMANENT_BACKEND
    ) -> StorageEdge:
        """Mark an artifact as in flight towards ``backend``; its location is not yet authoritative."""
        return self.upsert_edge(
            item_id, item_type, artifact, backend, sync_state=SyncState.MIGRATING
        )

    def complete_migration(
        self,
        item_id,
        item_type,
        artifact,
        backend=PERMANENT_BACKEND,
        *,
        location: Optional[str],
        content_hash: Optional[str] = None,
        size_bytes=None,
    ) -> StorageEdge:
        return self.upsert_edge(
            item_id,
            item_type,
            artifact,
            backend,
            present=True,
            location=location,
            content_hash=content_hash,
            size_bytes=size_bytes,
            sync_state=SyncState.IDLE,
        )

    def fail_migration(
        self,
        item_id,
        item_type,
        artifact,
        backend=PERMANENT_BACKEND,
        *,
        error: str,
    ) -> StorageEdge:
        return self.upsert_edge(
            item_id,
            item_type,
            artifact,
            backend,
            sync_state=SyncState.FAILED,
            sync_error=error,
        )


def _value(member) -> str:
    return member.value if hasattr(member, "value") else str(member)
