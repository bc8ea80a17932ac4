"""
Edge store abstraction for Postgres and an in-memory test implementation.

The edge table is the ground truth for which backend holds which artifact
of which item. Every write goes through ``upsert_edge``, a single atomic
insert-or-update keyed by (item_id, item_type, artifact, backend).
"""

from __future__ import annotations

import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Protocol, Set, Tuple

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Enum as SAEnum,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
    and_,
    case,
    create_engine,
    distinct,
    func,
    select,
)
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from storage_presence.errors import StoreUnavailable
from storage_presence.types import (
    PERMANENT_BACKEND,
    Artifact,
    Backend,
    ItemType,
    PresenceStatus,
    SyncState,
)

EdgeKey = Tuple[str, ItemType, Artifact, Backend]
ItemKey = Tuple[str, ItemType]


@dataclass
class StorageEdge:
    """One presence fact: ``backend`` holds (or not) ``artifact`` of an item."""

    item_id: str
    item_type: ItemType
    artifact: Artifact
    backend: Backend
    present: bool = False
    location: Optional[str] = None
    content_hash: Optional[str] = None
    size_bytes: Optional[int] = None
    sync_state: SyncState = SyncState.IDLE
    sync_error: Optional[str] = None
    last_synced_at: Optional[float] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def key(self) -> EdgeKey:
        return (self.item_id, self.item_type, self.artifact, self.backend)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_type": self.item_type.value,
            "artifact": self.artifact.value,
            "backend": self.backend.value,
            "present": self.present,
            "location": self.location,
            "content_hash": self.content_hash,
            "size_bytes": self.size_bytes,
            "sync_state": self.sync_state.value,
            "sync_error": self.sync_error,
            "last_synced_at": self.last_synced_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class EdgeWrite:
    """A validated upsert request. Every field is written together."""

    item_id: str
    item_type: ItemType
    artifact: Artifact
    backend: Backend
    present: bool = False
    location: Optional[str] = None
    content_hash: Optional[str] = None
    size_bytes: Optional[int] = None
    sync_state: SyncState = SyncState.IDLE
    sync_error: Optional[str] = None

    @property
    def key(self) -> EdgeKey:
        return (self.item_id, self.item_type, self.artifact, self.backend)


@dataclass(frozen=True)
class EdgeFilter:
    """Conjunctive edge filter. ``None`` means "any"."""

    item_id: Optional[str] = None
    item_type: Optional[ItemType] = None
    artifact: Optional[Artifact] = None
    backend: Optional[Backend] = None
    sync_states: Optional[Tuple[SyncState, ...]] = None
    present: Optional[bool] = None
    updated_before: Optional[float] = None

    def matches(self, edge: StorageEdge) -> bool:
        if self.item_id is not None and edge.item_id != self.item_id:
            return False
        if self.item_type is not None and edge.item_type != self.item_type:
            return False
        if self.artifact is not None and edge.artifact != self.artifact:
            return False
        if self.backend is not None and edge.backend != self.backend:
            return False
        if self.sync_states is not None and edge.sync_state not in self.sync_states:
            return False
        if self.present is not None and edge.present != self.present:
            return False
        if self.updated_before is not None and not edge.updated_at < self.updated_before:
            return False
        return True


@dataclass(frozen=True)
class SyncCountRow:
    backend: Backend
    item_type: ItemType
    sync_state: SyncState
    count: int
    stuck: int = 0


@dataclass
class CollectionPresenceSummary:
    collection_id: str
    total_items: int = 0
    fully_durable_items: int = 0
    unknown_items: int = 0
    any_ledger_presence: bool = False
    completeness_percentage: int = 0
    status: PresenceStatus = PresenceStatus.TRANSIENT_ONLY
    computed_at: Optional[float] = None

    def as_dict(self) -> dict:
        return {
            "collection_id": self.collection_id,
            "total_items": self.total_items,
            "fully_durable_items": self.fully_durable_items,
            "unknown_items": self.unknown_items,
            "any_ledger_presence": self.any_ledger_presence,
            "completeness_percentage": self.completeness_percentage,
            "status": self.status.value,
            "computed_at": self.computed_at,
        }


class EdgeStore(Protocol):
    """Interface for presence storage."""

    def upsert_edge(self, write: EdgeWrite, *, now: float) -> StorageEdge:
        ...

    def get_edge(
        self, item_id: str, item_type: ItemType, artifact: Artifact, backend: Backend
    ) -> Optional[StorageEdge]:
        ...

    def list_edges(
        self,
        edge_filter: EdgeFilter,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[StorageEdge], int]:
        ...

    def edges_for_item(
        self, item_id: str, item_type: Optional[ItemType] = None
    ) -> list[StorageEdge]:
        ...

    def sync_counts(
        self, edge_filter: EdgeFilter, *, stuck_before: float
    ) -> list[SyncCountRow]:
        ...

    def items_missing_from(
        self,
        backend: Backend,
        artifact: Optional[Artifact] = None,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[ItemKey]:
        ...

    def add_collection_item(
        self,
        collection_id: str,
        item_id: str,
        item_type: ItemType,
        position: Optional[int] = None,
    ) -> None:
        ...

    def count_collection_items(self, collection_id: str) -> int:
        ...

    def collection_ledger_artifacts(
        self, collection_id: str
    ) -> Dict[ItemKey, Set[Artifact]]:
        ...

    def get_collection_presence(
        self, collection_id: str
    ) -> Optional[CollectionPresenceSummary]:
        ...

    def save_collection_presence(self, summary: CollectionPresenceSummary) -> None:
        ...


def _apply_write(edge: StorageEdge, write: EdgeWrite, now: float) -> StorageEdge:
    updated = replace(
        edge,
        present=write.present,
        location=write.location,
        content_hash=write.content_hash,
        size_bytes=write.size_bytes,
        sync_state=write.sync_state,
        sync_error=write.sync_error,
        updated_at=now,
    )
    if write.sync_state == SyncState.IDLE:
        updated.last_synced_at = now
    return updated


def _required_artifacts(artifact: Optional[Artifact]) -> Set[Artifact]:
    return {artifact} if artifact is not None else set(Artifact)


class InMemoryEdgeStore:
    """Simple in-memory edge store for development and tests."""

    def __init__(self):
        self.edges: Dict[EdgeKey, StorageEdge] = {}
        self.collection_items: Dict[str, Dict[ItemKey, int]] = {}
        self.rollups: Dict[str, CollectionPresenceSummary] = {}
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.edges.clear()
            self.collection_items.clear()
            self.rollups.clear()

    def upsert_edge(self, write: EdgeWrite, *, now: float) -> StorageEdge:
        with self._lock:
            existing = self.edges.get(write.key)
            if existing is None:
                existing = StorageEdge(
                    item_id=write.item_id,
                    item_type=write.item_type,
                    artifact=write.artifact,
                    backend=write.backend,
                    created_at=now,
                )
            edge = _apply_write(existing, write, now)
            self.edges[write.key] = edge
            return replace(edge)

    def get_edge(
        self, item_id: str, item_type: ItemType, artifact: Artifact, backend: Backend
    ) -> Optional[StorageEdge]:
        edge = self.edges.get((item_id, item_type, artifact, backend))
        return replace(edge) if edge else None

    def list_edges(
        self,
        edge_filter: EdgeFilter,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[StorageEdge], int]:
        with self._lock:
            matched = [e for e in self.edges.values() if edge_filter.matches(e)]
        matched.sort(key=lambda e: (-e.updated_at, e.id))
        total = len(matched)
        end = offset + limit if limit is not None else None
        return [replace(e) for e in matched[offset:end]], total

    def edges_for_item(
        self, item_id: str, item_type: Optional[ItemType] = None
    ) -> list[StorageEdge]:
        edges, _ = self.list_edges(EdgeFilter(item_id=item_id, item_type=item_type))
        return edges

    def sync_counts(
        self, edge_filter: EdgeFilter, *, stuck_before: float
    ) -> list[SyncCountRow]:
        buckets: Dict[tuple, List[int]] = {}
        with self._lock:
            edges = [e for e in self.edges.values() if edge_filter.matches(e)]
        for edge in edges:
            counts = buckets.setdefault(
                (edge.backend, edge.item_type, edge.sync_state), [0, 0]
            )
            counts[0] += 1
            if edge.sync_state == SyncState.MIGRATING and edge.updated_at < stuck_before:
                counts[1] += 1
        return [
            SyncCountRow(backend, item_type, sync_state, count=count, stuck=stuck)
            for (backend, item_type, sync_state), (count, stuck) in buckets.items()
        ]

    def items_missing_from(
        self,
        backend: Backend,
        artifact: Optional[Artifact] = None,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[ItemKey]:
        required = _required_artifacts(artifact)
        present: Dict[ItemKey, Set[Artifact]] = {}
        with self._lock:
            for edge in self.edges.values():
                found = present.setdefault((edge.item_id, edge.item_type), set())
                if edge.backend == backend and edge.present:
                    found.add(edge.artifact)
        missing = sorted(
            (key for key, found in present.items() if not required <= found),
            key=lambda key: (key[0], key[1].value),
        )
        end = offset + limit if limit is not None else None
        return missing[offset:end]

    def add_collection_item(
        self,
        collection_id: str,
        item_id: str,
        item_type: ItemType,
        position: Optional[int] = None,
    ) -> None:
        with self._lock:
            members = self.collection_items.setdefault(collection_id, {})
            if position is None:
                position = len(members)
            members.setdefault((item_id, item_type), position)

    def count_collection_items(self, collection_id: str) -> int:
        return len(self.collection_items.get(collection_id, {}))

    def collection_ledger_artifacts(
        self, collection_id: str
    ) -> Dict[ItemKey, Set[Artifact]]:
        result: Dict[ItemKey, Set[Artifact]] = {}
        with self._lock:
            members = set(self.collection_items.get(collection_id, {}))
            for edge in self.edges.values():
                if (
                    edge.backend == PERMANENT_BACKEND
                    and edge.present
                    and (edge.item_id, edge.item_type) in members
                ):
                    result.setdefault((edge.item_id, edge.item_type), set()).add(
                        edge.artifact
                    )
        return result

    def get_collection_presence(
        self, collection_id: str
    ) -> Optional[CollectionPresenceSummary]:
        summary = self.rollups.get(collection_id)
        return replace(summary) if summary else None

    def save_collection_presence(self, summary: CollectionPresenceSummary) -> None:
        with self._lock:
            self.rollups[summary.collection_id] = replace(summary)


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


ITEM_TYPE_T = SAEnum(ItemType, name="item_type_t", values_callable=_enum_values)
ARTIFACT_T = SAEnum(Artifact, name="artifact_t", values_callable=_enum_values)
BACKEND_T = SAEnum(Backend, name="backend_t", values_callable=_enum_values)
SYNC_T = SAEnum(SyncState, name="sync_t", values_callable=_enum_values)
PRESENCE_STATUS_T = SAEnum(
    PresenceStatus, name="presence_status_t", values_callable=_enum_values
)

EDGE_KEY_COLUMNS = ("item_id", "item_type", "artifact", "backend")


@contextmanager
def _store_errors() -> Iterator[None]:
    """Map connection-level SQLAlchemy failures to ``StoreUnavailable``."""
    try:
        yield
    except OperationalError as exc:
        raise StoreUnavailable(str(exc.orig or exc)) from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise StoreUnavailable(str(exc.orig or exc)) from exc
        raise


class SqlEdgeStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL; the atomic
    upsert needs a dialect with ON CONFLICT support (Postgres or SQLite).

    Construction never connects. Tables are created on first use, so a
    database that is down at startup surfaces as ``StoreUnavailable`` from
    the first operation instead of failing the process.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlEdgeStore")
        engine_kwargs: dict = {"future": True, "pool_pre_ping": True}
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection, otherwise every thread sees an empty database.
            engine_kwargs.update(
                connect_args={"check_same_thread": False}, poolclass=StaticPool
            )
        else:
            engine_kwargs["pool_recycle"] = 1800
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with self._schema_lock:
            if not self._schema_ready:
                Base.metadata.create_all(self.engine)
                self._schema_ready = True

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with _store_errors():
            self._ensure_schema()
            with self.Session() as session:
                yield session

    def _insert(self):
        dialect = self.engine.dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise NotImplementedError(f"No atomic upsert for dialect {dialect}")
        return insert

    def _to_edge(self, row) -> StorageEdge:
        return StorageEdge(
            id=row.id,
            item_id=row.item_id,
            item_type=ItemType(row.item_type),
            artifact=Artifact(row.artifact),
            backend=Backend(row.backend),
            present=bool(row.present),
            location=row.location,
            content_hash=row.content_hash,
            size_bytes=row.size_bytes,
            sync_state=SyncState(row.sync_state),
            sync_error=row.sync_error,
            last_synced_at=row.last_synced_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _conditions(self, edge_filter: EdgeFilter) -> list:
        conditions = []
        if edge_filter.item_id is not None:
            conditions.append(EdgeRow.item_id == edge_filter.item_id)
        if edge_filter.item_type is not None:
            conditions.append(EdgeRow.item_type == edge_filter.item_type)
        if edge_filter.artifact is not None:
            conditions.append(EdgeRow.artifact == edge_filter.artifact)
        if edge_filter.backend is not None:
            conditions.append(EdgeRow.backend == edge_filter.backend)
        if edge_filter.sync_states is not None:
            conditions.append(EdgeRow.sync_state.in_(edge_filter.sync_states))
        if edge_filter.present is not None:
            conditions.append(EdgeRow.present.is_(edge_filter.present))
        if edge_filter.updated_before is not None:
            conditions.append(EdgeRow.updated_at < edge_filter.updated_before)
        return conditions

    def upsert_edge(self, write: EdgeWrite, *, now: float) -> StorageEdge:
        idle = write.sync_state == SyncState.IDLE
        values = {
            "id": uuid.uuid4().hex,
            "item_id": write.item_id,
            "item_type": write.item_type,
            "artifact": write.artifact,
            "backend": write.backend,
            "present": write.present,
            "location": write.location,
            "content_hash": write.content_hash,
            "size_bytes": write.size_bytes,
            "sync_state": write.sync_state,
            "sync_error": write.sync_error,
            "last_synced_at": now if idle else None,
            "created_at": now,
            "updated_at": now,
        }
        overwrite = {
            "present": write.present,
            "location": write.location,
            "content_hash": write.content_hash,
            "size_bytes": write.size_bytes,
            "sync_state": write.sync_state,
            "sync_error": write.sync_error,
            "updated_at": now,
        }
        if idle:
            overwrite["last_synced_at"] = now

        insert = self._insert()
        stmt = (
            insert(EdgeRow.__table__)
            .values(**values)
            .on_conflict_do_update(index_elements=list(EDGE_KEY_COLUMNS), set_=overwrite)
            .returning(*EdgeRow.__table__.c)
        )
        with self._session() as session:
            row = session.execute(stmt).one()
            session.commit()
            return self._to_edge(row)

    def get_edge(
        self, item_id: str, item_type: ItemType, artifact: Artifact, backend: Backend
    ) -> Optional[StorageEdge]:
        edges, _ = self.list_edges(
            EdgeFilter(
                item_id=item_id, item_type=item_type, artifact=artifact, backend=backend
            )
        )
        return edges[0] if edges else None

    def list_edges(
        self,
        edge_filter: EdgeFilter,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[StorageEdge], int]:
        conditions = self._conditions(edge_filter)
        stmt = (
            select(EdgeRow)
            .where(*conditions)
            .order_by(EdgeRow.updated_at.desc(), EdgeRow.id)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        count_stmt = select(func.count()).select_from(EdgeRow).where(*conditions)
        with self._session() as session:
            rows = session.execute(stmt).scalars().all()
            total = session.execute(count_stmt).scalar_one()
            return [self._to_edge(row) for row in rows], total

    def edges_for_item(
        self, item_id: str, item_type: Optional[ItemType] = None
    ) -> list[StorageEdge]:
        edges, _ = self.list_edges(EdgeFilter(item_id=item_id, item_type=item_type))
        return edges

    def sync_counts(
        self, edge_filter: EdgeFilter, *, stuck_before: float
    ) -> list[SyncCountRow]:
        stuck = func.sum(
            case(
                (
                    and_(
                        EdgeRow.sync_state == SyncState.MIGRATING,
                        EdgeRow.updated_at < stuck_before,
                    ),
                    1,
                ),
                else_=0,
            )
        )
        stmt = (
            select(
                EdgeRow.backend,
                EdgeRow.item_type,
                EdgeRow.sync_state,
                func.count().label("total"),
                stuck.label("stuck"),
            )
            .where(*self._conditions(edge_filter))
            .group_by(EdgeRow.backend, EdgeRow.item_type, EdgeRow.sync_state)
        )
        with self._session() as session:
            return [
                SyncCountRow(
                    backend=Backend(row.backend),
                    item_type=ItemType(row.item_type),
                    sync_state=SyncState(row.sync_state),
                    count=row.total,
                    stuck=int(row.stuck or 0),
                )
                for row in session.execute(stmt)
            ]

    def items_missing_from(
        self,
        backend: Backend,
        artifact: Optional[Artifact] = None,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[ItemKey]:
        on_backend = [EdgeRow.backend == backend, EdgeRow.present.is_(True)]
        if artifact is not None:
            on_backend.append(EdgeRow.artifact == artifact)
        present_artifacts = func.count(
            distinct(case((and_(*on_backend), EdgeRow.artifact), else_=None))
        )
        stmt = (
            select(EdgeRow.item_id, EdgeRow.item_type)
            .group_by(EdgeRow.item_id, EdgeRow.item_type)
            .having(present_artifacts < len(_required_artifacts(artifact)))
            .order_by(EdgeRow.item_id, EdgeRow.item_type)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session() as session:
            return [
                (row.item_id, ItemType(row.item_type)) for row in session.execute(stmt)
            ]

    def add_collection_item(
        self,
        collection_id: str,
        item_id: str,
        item_type: ItemType,
        position: Optional[int] = None,
    ) -> None:
        with self._session() as session:
            if position is None:
                position = self._count_members(session, collection_id)
            stmt = (
                self._insert()(CollectionItemRow.__table__)
                .values(
                    id=uuid.uuid4().hex,
                    collection_id=collection_id,
                    item_id=item_id,
                    item_type=item_type,
                    position=position,
                    created_at=time.time(),
                )
                .on_conflict_do_nothing(
                    index_elements=["collection_id", "item_id", "item_type"]
                )
            )
            session.execute(stmt)
            session.commit()

    def _count_members(self, session: Session, collection_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(CollectionItemRow)
            .where(CollectionItemRow.collection_id == collection_id)
        )
        return session.execute(stmt).scalar_one()

    def count_collection_items(self, collection_id: str) -> int:
        with self._session() as session:
            return self._count_members(session, collection_id)

    def collection_ledger_artifacts(
        self, collection_id: str
    ) -> Dict[ItemKey, Set[Artifact]]:
        stmt = (
            select(EdgeRow.item_id, EdgeRow.item_type, EdgeRow.artifact)
            .join(
                CollectionItemRow,
                and_(
                    CollectionItemRow.item_id == EdgeRow.item_id,
                    CollectionItemRow.item_type == EdgeRow.item_type,
                ),
            )
            .where(
                CollectionItemRow.collection_id == collection_id,
                EdgeRow.backend == PERMANENT_BACKEND,
                EdgeRow.present.is_(True),
            )
            .distinct()
        )
        result: Dict[ItemKey, Set[Artifact]] = {}
        with self._session() as session:
            for row in session.execute(stmt):
                key = (row.item_id, ItemType(row.item_type))
                result.setdefault(key, set()).add(Artifact(row.artifact))
        return result

    def get_collection_presence(
        self, collection_id: str
    ) -> Optional[CollectionPresenceSummary]:
        with self._session() as session:
            row = session.get(CollectionPresenceRow, collection_id)
            if not row:
                return None
            return CollectionPresenceSummary(
                collection_id=row.collection_id,
                total_items=row.total_items,
                fully_durable_items=row.fully_durable_items,
                unknown_items=row.unknown_items,
                any_ledger_presence=bool(row.any_ledger_presence),
                completeness_percentage=row.completeness_percentage,
                status=PresenceStatus(row.status),
                computed_at=row.computed_at,
            )

    def save_collection_presence(self, summary: CollectionPresenceSummary) -> None:
        values = {
            "total_items": summary.total_items,
            "fully_durable_items": summary.fully_durable_items,
            "unknown_items": summary.unknown_items,
            "any_ledger_presence": summary.any_ledger_presence,
            "completeness_percentage": summary.completeness_percentage,
            "status": summary.status,
            "computed_at": summary.computed_at,
        }
        stmt = (
            self._insert()(CollectionPresenceRow.__table__)
            .values(collection_id=summary.collection_id, **values)
            .on_conflict_do_update(index_elements=["collection_id"], set_=values)
        )
        with self._session() as session:
            session.execute(stmt)
            session.commit()


Base = declarative_base()


class EdgeRow(Base):
    __tablename__ = "storage_edges"

    id = Column(String, primary_key=True)
    item_id = Column(String, nullable=False)
    item_type = Column(ITEM_TYPE_T, nullable=False)
    artifact = Column(ARTIFACT_T, nullable=False)
    backend = Column(BACKEND_T, nullable=False)
    present = Column(Boolean, nullable=False, default=False)
    location = Column(String, nullable=True)
    content_hash = Column(String, nullable=True)
    size_bytes = Column(BigInteger, nullable=True)
    sync_state = Column(SYNC_T, nullable=False, default=SyncState.IDLE)
    sync_error = Column(String, nullable=True)
    last_synced_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint(*EDGE_KEY_COLUMNS, name="uq_edge"),
        Index("ix_edges_item", "item_id", "item_type"),
        Index("ix_edges_backend_present", "backend", "artifact", "present"),
        Index("ix_edges_sync_state", "sync_state"),
    )


class CollectionItemRow(Base):
    """Collection membership, owned by the collection CRUD layer."""

    __tablename__ = "collection_items"

    id = Column(String, primary_key=True)
    collection_id = Column(String, nullable=False)
    item_id = Column(String, nullable=False)
    item_type = Column(ITEM_TYPE_T, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "collection_id", "item_id", "item_type", name="uq_collection_item"
        ),
        Index("ix_collection_items_position", "collection_id", "position"),
        Index("ix_collection_items_item", "item_id", "item_type"),
    )


class CollectionPresenceRow(Base):
    __tablename__ = "collection_presence"

    collection_id = Column(String, primary_key=True)
    total_items = Column(Integer, nullable=False, default=0)
    fully_durable_items = Column(Integer, nullable=False, default=0)
    unknown_items = Column(Integer, nullable=False, default=0)
    any_ledger_presence = Column(Boolean, nullable=False, default=False)
    completeness_percentage = Column(Integer, nullable=False, default=0)
    status = Column(PRESENCE_STATUS_T, nullable=False)
    computed_at = Column(Float, nullable=False)
