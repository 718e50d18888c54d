"""Datetime helpers. All timestamps leaving Depot are timezone-aware UTC."""

from __future__ import annotations

from datetime import datetime, timezone


def from_timestamp(ts: float) -> datetime:
    """Convert an ``st_mtime`` value to an aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)
