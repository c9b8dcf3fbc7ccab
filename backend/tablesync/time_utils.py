from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

# Postgres trims trailing zeros from fractional seconds; fromisoformat on 3.10
# only accepts 3 or 6 digits
_FRACTION_RE = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    s = _FRACTION_RE.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", s, count=1)

    dt = datetime.fromisoformat(s)
    return _to_utc_naive(dt)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Lenient variant of parse_iso_datetime for snapshot records.

    Accepts datetimes as-is (normalized to UTC-naive) and returns None for
    anything that cannot be parsed instead of raising.
    """
    if value is None:
        return None
    try:
        if isinstance(value, datetime):
            return _to_utc_naive(value)
        return parse_iso_datetime(str(value))
    except (ValueError, OverflowError):
        # e.g. 0001-01-01 with a positive offset falls before datetime.min in UTC
        return None


def _to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
