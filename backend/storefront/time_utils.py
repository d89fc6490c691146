from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

# Every datetime stored or compared by the app is UTC with tzinfo stripped.


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_utc(dt: datetime) -> datetime:
    """Aware values are converted to UTC; naive values are already UTC."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2026-01-31", "2026-01-31T08:00", "...Z" and "...+02:00" are accepted.
    Blank input gives None; anything else unparseable raises ValueError.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return normalize_utc(datetime.fromisoformat(text))


def window_contains(start: datetime, end: datetime, moment: datetime) -> bool:
    """Closed interval: both boundaries count as inside."""
    return normalize_utc(start) <= normalize_utc(moment) <= normalize_utc(end)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with a trailing Z, or None."""
    if dt is None:
        return None
    stamp = normalize_utc(dt).replace(microsecond=0)
    return stamp.isoformat() + "Z"
