"""
Closed value sets shared by the store, the aggregators and the API.
"""

from __future__ import annotations

from enum import Enum
from typing import Type, TypeVar

from storage_presence.errors import ValidationError

E = TypeVar("E", bound=Enum)


class ItemType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    NOTE = "note"
    DOCUMENT = "document"
    AUDIO = "audio"


class Artifact(str, Enum):
    METADATA = "metadata"
    ASSET = "asset"


class Backend(str, Enum):
    """Storage backends, declared from least to most durable."""

    TRANSIENT_RELATIONAL = "transient-relational"
    TRANSIENT_BLOB = "transient-blob"
    PERMANENT_LEDGER = "permanent-ledger"

    @property
    def durability(self) -> int:
        return list(Backend).index(self)

    @property
    def is_permanent(self) -> bool:
        return self is PERMANENT_BACKEND


PERMANENT_BACKEND = Backend.PERMANENT_LEDGER


class SyncState(str, Enum):
    IDLE = "idle"
    MIGRATING = "migrating"
    FAILED = "failed"


ACTIVE_SYNC_STATES = (SyncState.MIGRATING, SyncState.FAILED)


class PresenceStatus(str, Enum):
    FULLY_DURABLE = "fully-durable"
    PARTIALLY_DURABLE = "partially-durable"
    TRANSIENT_ONLY = "transient-only"
    UNKNOWN = "unknown"


def parse_enum(enum_cls: Type[E], value, field: str) -> E:
    """
    Coerce a raw value (enum member or its string value) into ``enum_cls``.

    Raises ValidationError with the allowed values when it does not belong
    to the closed set.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field}. Must be one of: {allowed}", field=field
        ) from None


def parse_optional_enum(enum_cls: Type[E], value, field: str) -> E | None:
    if value is None or value == "":
        return None
    return parse_enum(enum_cls, value, field)
