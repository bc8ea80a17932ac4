"""
Error taxonomy for the presence service.

Absent edges, empty collections and stale rollups are not errors; they
come back as zero-valued or timestamped summaries instead.
"""

from __future__ import annotations

from typing import Optional


class PresenceError(Exception):
    """Base class for errors raised by the presence service."""


class ValidationError(PresenceError, ValueError):
    """Malformed enumeration value, identifier or numeric field. Nothing was written."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class StoreUnavailable(PresenceError):
    """Transient infrastructure failure. Safe to retry with backoff."""
