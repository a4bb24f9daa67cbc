from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC; every timestamp column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """Drop tzinfo after converting to UTC. Naive values are assumed UTC already."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """"2025-12-10T08:30:00Z"; whole seconds, naive input read as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = to_utc_naive(dt)
    return dt.replace(microsecond=0).isoformat() + "Z"


def cents_to_str(cents: Optional[int]) -> Optional[str]:
    """1250 -> "12.50"."""
    if cents is None:
        return None
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"
