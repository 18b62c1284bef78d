"""Canonical time reference.

Every stored timestamp and every comparison cutoff is produced here, as a
timezone-aware UTC ``datetime``. Callers never shift times by hand and never
lean on the database's own ``NOW()``.
"""
from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime) -> dt.datetime:
    """Normalise a datetime to aware UTC.

    Naive values are taken to already be UTC (that is how the store keeps them).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def cutoff(minutes: float, now: dt.datetime | None = None) -> dt.datetime:
    """Instant ``minutes`` before ``now`` on the canonical clock."""
    reference = as_utc(now) if now is not None else utcnow()
    return reference - dt.timedelta(minutes=minutes)


def isoformat(value: dt.datetime | None) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat().replace("+00:00", "Z")
