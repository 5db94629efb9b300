"""Domain records shared by the store, the reports and the UI."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Mapping, Optional

import pandas as pd

from constants import ROLE_ADMIN


@dataclass(frozen=True)
class TemperatureReading:
    """One temperature measurement of a product at a plant location.

    Everything except ``id`` may be missing on records coming back from the
    store; the report functions bucket such records instead of failing.
    """

    id: Optional[int] = None
    shift: Optional[str] = None
    location: Optional[str] = None
    product_code: Optional[str] = None
    product_name: Optional[str] = None
    market: Optional[str] = None
    state: Optional[str] = None
    measured_date: Optional[str] = None
    measured_time: Optional[str] = None
    temp_start: Optional[float] = None
    temp_middle: Optional[float] = None
    temp_end: Optional[float] = None
    recorded_by: Optional[int] = None
    measured_at: Optional[str] = None

    def temperatures(self) -> dict[str, Optional[float]]:
        return {"start": self.temp_start, "middle": self.temp_middle, "end": self.temp_end}


@dataclass(frozen=True)
class UserProfile:
    id: int
    name: str
    badge: str
    email: str
    role: str
    shift: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def _clean(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def _clean_float(value: Any) -> Optional[float]:
    value = _clean(value)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _clean_int(value: Any) -> Optional[int]:
    value = _clean_float(value)
    return None if value is None else int(value)


def _clean_str(value: Any) -> Optional[str]:
    value = _clean(value)
    return None if value is None else str(value)


def reading_from_mapping(row: Mapping[str, Any]) -> TemperatureReading:
    return TemperatureReading(
        id=_clean_int(row.get("id")),
        shift=_clean_str(row.get("shift")),
        location=_clean_str(row.get("location")),
        product_code=_clean_str(row.get("product_code")),
        product_name=_clean_str(row.get("product_name")),
        market=_clean_str(row.get("market")),
        state=_clean_str(row.get("state")),
        measured_date=_clean_str(row.get("measured_date")),
        measured_time=_clean_str(row.get("measured_time")),
        temp_start=_clean_float(row.get("temp_start")),
        temp_middle=_clean_float(row.get("temp_middle")),
        temp_end=_clean_float(row.get("temp_end")),
        recorded_by=_clean_int(row.get("recorded_by")),
        measured_at=_clean_str(row.get("measured_at")),
    )


def readings_from_frame(df: pd.DataFrame) -> List[TemperatureReading]:
    if df.empty:
        return []
    return [reading_from_mapping(row) for row in df.to_dict(orient="records")]

