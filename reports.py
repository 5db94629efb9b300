"""Aggregations over fetched temperature readings for tables and charts.

Every function here is pure: it reads an in-memory snapshot and returns new
objects. Malformed readings never raise; a missing grouping key lands in the
``"unknown"`` bucket and missing temperatures are skipped in the means while
the reading still counts.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, TypeVar

from constants import (
    FROZEN_ALERT_THRESHOLD_C,
    POSITIONS,
    UNKNOWN_KEY,
    USER_SHIFTS,
)
from models import TemperatureReading, UserProfile

T = TypeVar("T")
KeyFunc = Callable[[TemperatureReading], object]


@dataclass(frozen=True)
class GroupSummary:
    """Count and averages of one group, rounded to two decimals.

    ``mean`` is the mean over every temperature value in the group (start,
    middle and end of all readings together); the position means average
    each position separately.
    """

    key: str
    count: int
    mean: Optional[float]
    start_mean: Optional[float]
    middle_mean: Optional[float]
    end_mean: Optional[float]


@dataclass(frozen=True)
class ThresholdAlert:
    reading: TemperatureReading
    breaches: Tuple[str, ...]


@dataclass(frozen=True)
class DashboardSummary:
    total_readings: int
    distinct_locations: int
    internal_mean: Optional[float]
    external_mean: Optional[float]


@dataclass(frozen=True)
class UserPerformance:
    user_id: int
    name: str
    shift: Optional[str]
    entries: int


@dataclass(frozen=True)
class ShiftPerformance:
    shift: str
    total_entries: int
    active_users: int
    mean_per_user: float


@dataclass(frozen=True)
class PerformanceReport:
    ranking: List[UserPerformance]
    shifts: List[ShiftPerformance]
    top_shift: Optional[str]


# Key extractors


def by_product(reading: TemperatureReading) -> object:
    return reading.product_name


def by_location(reading: TemperatureReading) -> object:
    return reading.location


def by_day(reading: TemperatureReading) -> object:
    if reading.measured_date:
        return reading.measured_date
    if reading.measured_at:
        return reading.measured_at[:10]
    return None


def by_shift(reading: TemperatureReading) -> object:
    return reading.shift


def by_market(reading: TemperatureReading) -> object:
    return reading.market


def by_recorder(reading: TemperatureReading) -> object:
    return reading.recorded_by


def _bucket(reading: TemperatureReading, key: KeyFunc) -> str:
    try:
        value = key(reading)
    except (AttributeError, KeyError, IndexError, TypeError, ValueError):
        return UNKNOWN_KEY
    if value is None:
        return UNKNOWN_KEY
    text = str(value).strip()
    return text or UNKNOWN_KEY


def _display_order(key: str) -> Tuple[str, str]:
    return key.casefold(), key


def _mean(total: float, count: int) -> Optional[float]:
    if count == 0:
        return None
    return round(total / count, 2)


def _present(values: Iterable[object]) -> List[float]:
    return [v for v in values if v is not None]


def _temperature(value: object) -> Optional[float]:
    # Strings, booleans and NaN are treated as missing.
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    if math.isnan(value):
        return None
    return float(value)


def _temperatures(reading: TemperatureReading) -> Dict[str, Optional[float]]:
    return {position: _temperature(value) for position, value in reading.temperatures().items()}


def group_and_average(readings: Iterable[TemperatureReading], key: KeyFunc) -> List[GroupSummary]:
    """Group readings by ``key`` and average their temperatures.

    Rows come back in case-insensitive order of the key. The counts of all
    rows add up to the number of readings given.
    """
    counts: Dict[str, int] = {}
    totals: Dict[str, Dict[str, float]] = {}
    value_counts: Dict[str, Dict[str, int]] = {}

    for reading in readings:
        bucket = _bucket(reading, key)
        counts[bucket] = counts.get(bucket, 0) + 1
        bucket_totals = totals.setdefault(bucket, dict.fromkeys(POSITIONS, 0.0))
        bucket_counts = value_counts.setdefault(bucket, dict.fromkeys(POSITIONS, 0))
        for position, value in _temperatures(reading).items():
            if value is None:
                continue
            bucket_totals[position] += value
            bucket_counts[position] += 1

    rows = []
    for bucket in sorted(counts, key=_display_order):
        bucket_totals = totals[bucket]
        bucket_counts = value_counts[bucket]
        rows.append(
            GroupSummary(
                key=bucket,
                count=counts[bucket],
                mean=_mean(sum(bucket_totals.values()), sum(bucket_counts.values())),
                start_mean=_mean(bucket_totals["start"], bucket_counts["start"]),
                middle_mean=_mean(bucket_totals["middle"], bucket_counts["middle"]),
                end_mean=_mean(bucket_totals["end"], bucket_counts["end"]),
            )
        )
    return rows


def top_n(rows: Sequence[GroupSummary], n: int, *, descending: bool = True) -> List[GroupSummary]:
    """Rank rows by their mean and keep the first ``n``.

    Equal means keep the lexicographic key order. Rows without a mean go last.
    """
    if n <= 0 or not rows:
        return []
    ordered = sorted(rows, key=lambda row: _display_order(row.key))

    def rank(row: GroupSummary) -> Tuple[bool, float]:
        if row.mean is None:
            return True, 0.0
        return False, -row.mean if descending else row.mean

    return sorted(ordered, key=rank)[:n]


def _matches(value: object, expected: str) -> bool:
    return value is not None and str(value).strip().casefold() == expected


def threshold_alerts(
    readings: Iterable[TemperatureReading],
    threshold: float = FROZEN_ALERT_THRESHOLD_C,
) -> List[ThresholdAlert]:
    """External-market frozen readings with any position above ``threshold``."""
    alerts = []
    for reading in readings:
        if not (_matches(reading.market, "external") and _matches(reading.state, "frozen")):
            continue
        breaches = tuple(
            position
            for position, value in _temperatures(reading).items()
            if value is not None and value > threshold
        )
        if breaches:
            alerts.append(ThresholdAlert(reading=reading, breaches=breaches))
    return alerts


def chunked(rows: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size < 1:
        raise ValueError("Chunk size must be at least 1.")
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def _reading_mean(reading: TemperatureReading) -> Optional[float]:
    values = _present(_temperatures(reading).values())
    if not values:
        return None
    return sum(values) / len(values)


def dashboard_summary(readings: Sequence[TemperatureReading]) -> DashboardSummary:
    per_market: Dict[str, List[float]] = {"internal": [], "external": []}
    for reading in readings:
        avg = _reading_mean(reading)
        if avg is None:
            continue
        for market, values in per_market.items():
            if _matches(reading.market, market):
                values.append(avg)

    return DashboardSummary(
        total_readings=len(readings),
        distinct_locations=len({_bucket(r, by_location) for r in readings}),
        internal_mean=_mean(sum(per_market["internal"]), len(per_market["internal"])),
        external_mean=_mean(sum(per_market["external"]), len(per_market["external"])),
    )


def _entries_by_user(readings: Iterable[TemperatureReading]) -> Dict[int, int]:
    entries: Dict[int, int] = {}
    for reading in readings:
        if reading.recorded_by is None:
            continue
        entries[reading.recorded_by] = entries.get(reading.recorded_by, 0) + 1
    return entries


def user_activity(
    readings: Iterable[TemperatureReading], users: Iterable[UserProfile]
) -> List[Tuple[str, int]]:
    """Entries per non-admin user, users without entries included."""
    entries = _entries_by_user(readings)
    staff = sorted((u for u in users if not u.is_admin), key=lambda u: _display_order(u.name))
    return [(u.name, entries.get(u.id, 0)) for u in staff]


def shift_performance(
    readings: Iterable[TemperatureReading], users: Iterable[UserProfile]
) -> PerformanceReport:
    entries = _entries_by_user(readings)
    staff = [u for u in users if not u.is_admin]
    per_user = [
        UserPerformance(user_id=u.id, name=u.name, shift=u.shift, entries=entries.get(u.id, 0))
        for u in staff
    ]
    ranking = sorted(per_user, key=lambda p: (-p.entries, p.name.casefold(), p.name))

    shifts = []
    for shift in USER_SHIFTS:
        members = [p for p in per_user if p.shift == shift]
        total = sum(p.entries for p in members)
        active = sum(1 for p in members if p.entries > 0)
        shifts.append(
            ShiftPerformance(
                shift=shift,
                total_entries=total,
                active_users=active,
                mean_per_user=round(total / active, 2) if active else 0.0,
            )
        )

    busiest = max(shifts, key=lambda s: s.total_entries)
    top_shift = busiest.shift if busiest.total_entries > 0 else None
    return PerformanceReport(ranking=ranking, shifts=shifts, top_shift=top_shift)


def variation_series(readings: Iterable[TemperatureReading]) -> List[TemperatureReading]:
    """Readings in chronological order; undated ones last."""
    return sorted(
        readings,
        key=lambda r: (r.measured_at is None, str(r.measured_at or ""), r.id if isinstance(r.id, int) else -1),
    )
