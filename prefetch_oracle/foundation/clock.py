"""Timezone-aware clock utilities.

Every timestamp inside prefetch-oracle is UTC-aware.  Modules import
``utc_now`` from here so tests can freeze time by patching the name in
the importing module.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime; leave aware datetimes untouched."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def elapsed_ms(later: datetime, earlier: datetime) -> float:
    """Milliseconds between two datetimes (negative if *later* is earlier)."""
    return (later - earlier).total_seconds() * 1000.0
