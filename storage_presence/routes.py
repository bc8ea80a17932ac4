"""
HTTP routes for the presence API.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from storage_presence.config import get_settings
from storage_presence.db import EdgeFilter, EdgeStore
from storage_presence.dependencies import (
    get_collection_aggregator,
    get_edge_service,
    get_edge_store,
    get_presence_aggregator,
    get_sync_monitor,
)
from storage_presence.edges import EdgeService, validate_identifier
from storage_presence.errors import StoreUnavailable, ValidationError
from storage_presence.presence import PresenceAggregator
from storage_presence.rollup import CollectionAggregator
from storage_presence.schemas import (
    BatchPresenceRequest,
    BatchPresenceResponse,
    CollectionPresenceResponse,
    EdgeResponse,
    EdgeUpsertRequest,
    ItemPresenceResponse,
    ListEdgesResponse,
    MissingItemsResponse,
    RecordUploadRequest,
    RecordUploadResponse,
    RefreshQueuedResponse,
    SyncStatusResponse,
)
from storage_presence.sync_monitor import SyncFilter, SyncMonitor
from storage_presence.types import (
    Artifact,
    Backend,
    ItemType,
    SyncState,
    parse_enum,
    parse_optional_enum,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@contextmanager
def _http_errors():
    try:
        yield
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        logger.warning("Store unavailable: %s", exc)
        raise HTTPException(
            status_code=503,
            detail="Storage temporarily unavailable, retry later",
            headers={"Retry-After": "1"},
        ) from exc


def _paging(page: int, page_size: Optional[int]) -> tuple[int, int, int]:
    settings = get_settings()
    size = min(page_size or settings.default_page_size, settings.max_page_size)
    return page, size, (page - 1) * size


@router.put("/storage/edges", response_model=EdgeResponse)
def upsert_edge(
    payload: EdgeUpsertRequest,
    service: EdgeService = Depends(get_edge_service),
):
    """
    Create or update one presence fact. Unspecified optionals default to
    present=false and sync_state=idle.
    """
    with _http_errors():
        edge = service.upsert_edge(
            payload.item_id,
            payload.item_type,
            payload.artifact,
            payload.backend,
            present=payload.present if payload.present is not None else False,
            location=payload.location,
            content_hash=payload.content_hash,
            size_bytes=payload.size_bytes,
            sync_state=payload.sync_state or SyncState.IDLE,
            sync_error=payload.sync_error,
        )
    return EdgeResponse(data=edge.as_dict())


@router.get("/storage/edges", response_model=ListEdgesResponse)
def list_edges(
    item_id: str | None = Query(None),
    item_type: str | None = Query(None),
    backend: str | None = Query(None),
    artifact: str | None = Query(None),
    sync_state: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    store: EdgeStore = Depends(get_edge_store),
):
    page, size, offset = _paging(page, page_size)
    with _http_errors():
        state = parse_optional_enum(SyncState, sync_state, "sync_state")
        edge_filter = EdgeFilter(
            item_id=validate_identifier(item_id) if item_id else None,
            item_type=parse_optional_enum(ItemType, item_type, "item_type"),
            backend=parse_optional_enum(Backend, backend, "backend"),
            artifact=parse_optional_enum(Artifact, artifact, "artifact"),
            sync_states=(state,) if state else None,
        )
        edges, total = store.list_edges(edge_filter, limit=size, offset=offset)
    return ListEdgesResponse(
        edges=[edge.as_dict() for edge in edges],
        total=total,
        page=page,
        page_size=size,
    )


@router.post("/storage/uploads", response_model=RecordUploadResponse, status_code=201)
def record_upload(
    payload: RecordUploadRequest,
    service: EdgeService = Depends(get_edge_service),
):
    with _http_errors():
        edges = service.record_upload(
            payload.item_id,
            payload.item_type,
            location=payload.location,
            size_bytes=payload.size_bytes,
            content_hash=payload.content_hash,
            metadata_location=payload.metadata_location,
        )
    return RecordUploadResponse(edges=[edge.as_dict() for edge in edges])


@router.get("/items/presence", response_model=ItemPresenceResponse)
def item_presence(
    id: str = Query(..., description="Item id (UUID)"),
    type: str = Query(..., description="Item type"),
    aggregator: PresenceAggregator = Depends(get_presence_aggregator),
):
    with _http_errors():
        item_id = validate_identifier(id)
        item_type = parse_enum(ItemType, type, "item_type")
    return ItemPresenceResponse(**aggregator.presence_of(item_id, item_type).as_dict())


@router.post("/items/presence/batch", response_model=BatchPresenceResponse)
def batch_item_presence(
    payload: BatchPresenceRequest,
    aggregator: PresenceAggregator = Depends(get_presence_aggregator),
):
    max_batch = get_settings().max_batch_size
    if len(payload.items) > max_batch:
        raise HTTPException(
            status_code=400, detail=f"At most {max_batch} items per batch"
        )
    with _http_errors():
        keys = [
            (validate_identifier(ref.id), parse_enum(ItemType, ref.type, "item_type"))
            for ref in payload.items
        ]
    summaries = aggregator.presence_of_many(keys)
    return BatchPresenceResponse(items=[s.as_dict() for s in summaries])


@router.get(
    "/collections/{collection_id}/presence",
    response_model=CollectionPresenceResponse,
)
def collection_presence(
    collection_id: str,
    live: bool = Query(False, description="Compute now instead of reading the cache"),
    aggregator: CollectionAggregator = Depends(get_collection_aggregator),
):
    """
    Served from the rollup cache, which may lag recent edge writes; see
    ``computed_at``. ``live=true`` computes without touching the cache.
    """
    with _http_errors():
        summary = (
            aggregator.compute(collection_id) if live else aggregator.cached(collection_id)
        )
    return CollectionPresenceResponse(**summary.as_dict())


@router.post(
    "/collections/{collection_id}/presence/refresh",
    response_model=CollectionPresenceResponse,
    responses={202: {"model": RefreshQueuedResponse}},
)
def refresh_collection_presence(
    collection_id: str,
    background: bool = Query(False, description="Queue the refresh for the worker"),
    aggregator: CollectionAggregator = Depends(get_collection_aggregator),
):
    with _http_errors():
        if background:
            aggregator.request_refresh(collection_id)
            return JSONResponse(
                status_code=202,
                content=RefreshQueuedResponse(
                    collection_id=collection_id, status="queued"
                ).model_dump(),
            )
        summary = aggregator.refresh(collection_id)
    return CollectionPresenceResponse(**summary.as_dict())


@router.get("/storage/sync-status", response_model=SyncStatusResponse)
def sync_status(
    sync_state: str | None = Query(None),
    backend: str | None = Query(None),
    item_type: str | None = Query(None),
    stuck: bool = Query(False, description="Only migrations past the stuck threshold"),
    stuck_after_minutes: float | None = Query(None, gt=0),
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    monitor: SyncMonitor = Depends(get_sync_monitor),
):
    page, size, offset = _paging(page, page_size)
    with _http_errors():
        sync_filter = SyncFilter.parse(
            backend=backend,
            item_type=item_type,
            sync_state=sync_state,
            stuck_only=stuck,
        )
        report = monitor.list_active_syncs(
            sync_filter,
            limit=size,
            offset=offset,
            stuck_threshold_seconds=(
                stuck_after_minutes * 60 if stuck_after_minutes is not None else None
            ),
        )
    return SyncStatusResponse(
        data=[record.as_dict() for record in report.records],
        summary=asdict(report.counts),
        total=report.total,
        page=page,
        page_size=size,
        stuck_threshold_seconds=report.stuck_threshold_seconds,
        generated_at=report.generated_at,
    )


@router.get("/storage/missing", response_model=MissingItemsResponse)
def missing_items(
    backend: str = Query(Backend.PERMANENT_LEDGER.value),
    artifact: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    monitor: SyncMonitor = Depends(get_sync_monitor),
):
    """Repair scan: items that have edges but no present copy on ``backend``."""
    page, size, offset = _paging(page, page_size)
    with _http_errors():
        items = monitor.items_missing_from(backend, artifact, limit=size, offset=offset)
    return MissingItemsResponse(
        backend=backend,
        artifact=artifact,
        items=[
            {"item_id": item_id, "item_type": item_type.value}
            for item_id, item_type in items
        ],
        page=page,
        page_size=size,
    )
