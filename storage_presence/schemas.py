"""
Pydantic schemas for the presence API.

Closed value sets arrive as plain strings and are parsed by the services so
that bad values come back as 400s with the allowed values listed.
"""

from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field


class EdgeUpsertRequest(BaseModel):
    item_id: str = Field(..., max_length=64)
    item_type: str
    artifact: str
    backend: str
    present: Optional[bool] = None
    location: Optional[str] = None
    content_hash: Optional[str] = None
    size_bytes: Optional[int] = None
    sync_state: Optional[str] = None
    sync_error: Optional[str] = None


class EdgeModel(BaseModel):
    id: str
    item_id: str
    item_type: str
    artifact: str
    backend: str
    present: bool
    location: Optional[str] = None
    content_hash: Optional[str] = None
    size_bytes: Optional[int] = None
    sync_state: str
    sync_error: Optional[str] = None
    last_synced_at: Optional[float] = None
    created_at: float
    updated_at: float


class EdgeResponse(BaseModel):
    success: Literal[True] = True
    data: EdgeModel


class ListEdgesResponse(BaseModel):
    edges: list[EdgeModel]
    total: int
    page: int
    page_size: int


class RecordUploadRequest(BaseModel):
    item_id: str = Field(..., max_length=64)
    item_type: str
    location: Optional[str] = None
    metadata_location: Optional[str] = None
    content_hash: Optional[str] = None
    size_bytes: Optional[int] = None


class RecordUploadResponse(BaseModel):
    edges: list[EdgeModel]


class ItemPresenceResponse(BaseModel):
    item_id: str
    item_type: Optional[str] = None
    status: str
    presence: Dict[str, Dict[str, bool]]
    tracked_edges: int
    present_edges: int
    migrating_edges: int
    failed_edges: int


class ItemRef(BaseModel):
    id: str
    type: str


class BatchPresenceRequest(BaseModel):
    items: list[ItemRef]


class BatchPresenceResponse(BaseModel):
    items: list[ItemPresenceResponse]


class CollectionPresenceResponse(BaseModel):
    collection_id: str
    total_items: int
    fully_durable_items: int
    unknown_items: int
    any_ledger_presence: bool
    completeness_percentage: int
    status: str
    computed_at: Optional[float] = None


class RefreshQueuedResponse(BaseModel):
    collection_id: str
    status: Literal["queued"]


class SyncStatusModel(EdgeModel):
    duration_since_last_transition: float
    is_stuck: bool


class SyncCountsModel(BaseModel):
    total: int
    migrating: int
    failed: int
    stuck: int
    by_backend: Dict[str, int]
    by_item_type: Dict[str, int]


class SyncStatusResponse(BaseModel):
    data: list[SyncStatusModel]
    summary: SyncCountsModel
    total: int
    page: int
    page_size: int
    stuck_threshold_seconds: float
    generated_at: float


class MissingItem(BaseModel):
    item_id: str
    item_type: str


class MissingItemsResponse(BaseModel):
    backend: str
    artifact: Optional[str] = None
    items: list[MissingItem]
    page: int
    page_size: int
