from __future__ import annotations

from datetime import date, datetime, time as time_t, timedelta
from typing import Optional, Tuple

import pandas as pd


def iso_from_date_time(d: date, t: time_t) -> str:
    """
    Compose a local naive datetime from date + time and return ISO string
    with minute precision, e.g. '2026-02-01T13:45'.
    """
    dt = datetime.combine(d, t)
    return dt.isoformat(timespec="minutes")


def measured_at_from_strings(date_str: str, time_str: str) -> str:
    """
    Build the canonical timestamp from operator-entered 'YYYY-MM-DD' and
    'HH:MM' strings. Raises ValueError if either part does not parse.
    """
    try:
        d = date.fromisoformat(str(date_str).strip())
        hour, minute = (int(part) for part in str(time_str).strip().split(":")[:2])
        t = time_t(hour, minute)
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid date or time.") from exc
    return iso_from_date_time(d, t)


def day_range(start: date, end: date) -> Tuple[str, str]:
    """Inclusive ISO bounds covering whole days, start 00:00 to end 23:59."""
    return (
        iso_from_date_time(start, time_t(0, 0)),
        iso_from_date_time(end, time_t(23, 59)),
    )


def retention_cutoff(days: int, now: Optional[datetime] = None) -> str:
    if days <= 0:
        raise ValueError("Retention period must be a positive number of days.")
    now = now or datetime.now()
    return (now - timedelta(days=days)).isoformat(timespec="minutes")


def to_iso_minutes_string(s: str) -> str:
    """
    Parse arbitrary datetime-like string via pandas and reformat to
    'YYYY-MM-DDTHH:MM'. If parsing fails, return original string.
    """
    try:
        dt = pd.to_datetime(s)
    except (TypeError, ValueError):
        return str(s)
    if pd.isna(dt):
        return str(s)
    return dt.strftime("%Y-%m-%dT%H:%M")
