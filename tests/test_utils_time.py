from datetime import date, datetime, time as time_t

import pytest

from utils.time import (
    day_range,
    iso_from_date_time,
    measured_at_from_strings,
    retention_cutoff,
    to_iso_minutes_string,
)


def test_iso_from_date_time_minute_precision():
    d = date(2026, 2, 1)
    t = time_t(13, 45, 59)
    assert iso_from_date_time(d, t) == "2026-02-01T13:45"


def test_measured_at_from_strings():
    assert measured_at_from_strings("2026-02-01", "07:05") == "2026-02-01T07:05"
    assert measured_at_from_strings(" 2026-02-01 ", "7:05:30") == "2026-02-01T07:05"


@pytest.mark.parametrize("date_str, time_str", [("01/02/2026", "10:00"), ("2026-02-01", "24:00"), ("", ""), ("2026-02-01", "noon")])
def test_measured_at_from_strings_rejects_bad_input(date_str, time_str):
    with pytest.raises(ValueError, match="Invalid date or time"):
        measured_at_from_strings(date_str, time_str)


def test_day_range_covers_whole_days():
    assert day_range(date(2026, 2, 1), date(2026, 2, 3)) == ("2026-02-01T00:00", "2026-02-03T23:59")


def test_retention_cutoff():
    now = datetime(2026, 3, 2, 8, 30, 45)
    assert retention_cutoff(30, now=now) == "2026-01-31T08:30"
    with pytest.raises(ValueError):
        retention_cutoff(0, now=now)


def test_to_iso_minutes_string_parses_and_rounds_to_minutes():
    assert to_iso_minutes_string("2026-02-01 13:45:59") == "2026-02-01T13:45"
    assert to_iso_minutes_string("2026-02-01T00:00:00Z") == "2026-02-01T00:00"


def test_to_iso_minutes_string_unparseable_returns_original():
    assert to_iso_minutes_string("n/a") == "n/a"
