"""Tests for SAST calendar and week arithmetic."""

from datetime import datetime, timezone

import pytest

from schemas.metrics import DateRange
from services.week_utils import (
    SAST,
    current_day_number,
    current_week_range,
    format_week_label,
    hours_into_week,
    is_partial_week,
    last_completed_week,
    partial_week_days,
    previous_period,
    previous_week,
    resolve_date_range,
    sast_date,
    short_week_label,
    week_start_for,
    weeks_between,
)

from conftest import frozen_clock


def fixed(year, month, day, hour=0, minute=0, tz=SAST):
    return lambda: datetime(year, month, day, hour, minute, tzinfo=tz)


class TestWeekRanges:
    def test_previous_week(self):
        week = previous_week("2025-01-06")
        assert (week.week_start, week.week_end) == ("2024-12-30", "2025-01-05")

    def test_current_week_range(self):
        week = current_week_range(frozen_clock)
        assert (week.week_start, week.week_end) == ("2025-01-06", "2025-01-12")

    def test_current_week_uses_sast_not_utc(self):
        # Sunday 23:00 UTC is already Monday 01:00 in SAST
        clock = fixed(2025, 1, 12, 23, 0, tz=timezone.utc)
        assert current_week_range(clock).week_start == "2025-01-13"

    def test_last_completed_week_midweek(self):
        week = last_completed_week(frozen_clock)
        assert (week.week_start, week.week_end) == ("2024-12-30", "2025-01-05")

    def test_last_completed_week_on_sunday_is_previous_week(self):
        week = last_completed_week(fixed(2025, 1, 12, 20))
        assert week.week_start == "2024-12-30"

    def test_last_completed_week_on_monday(self):
        week = last_completed_week(fixed(2025, 1, 13, 8))
        assert week.week_start == "2025-01-06"


class TestProgress:
    def test_hours_into_week(self):
        assert hours_into_week(frozen_clock) == 58.0

    def test_hours_at_week_start(self):
        assert hours_into_week(fixed(2025, 1, 6, 0, 0)) == 0

    def test_hours_stay_below_a_full_week(self):
        assert hours_into_week(fixed(2025, 1, 12, 23, 58)) == 167.9

    def test_current_day_number(self):
        assert current_day_number(frozen_clock) == 3

    def test_partial_week(self):
        assert is_partial_week("2025-01-06", "2025-01-12", frozen_clock)
        assert not is_partial_week("2024-12-30", "2025-01-05", frozen_clock)
        assert partial_week_days("2025-01-06", frozen_clock) == 3
        assert partial_week_days("2024-12-30", frozen_clock) == 7


class TestBucketing:
    def test_week_start_for_string_date(self):
        assert week_start_for("2025-01-08") == "2025-01-06"
        assert week_start_for("2025-01-12") == "2025-01-06"

    def test_week_start_for_late_sunday_utc_rolls_into_monday(self):
        assert week_start_for(datetime(2025, 1, 12, 22, 30, tzinfo=timezone.utc)) == "2025-01-13"

    def test_week_start_for_iso_string(self):
        assert week_start_for("2025-01-12T22:30:00Z") == "2025-01-13"

    def test_sast_date(self):
        assert sast_date(datetime(2025, 1, 7, 23, 0, tzinfo=timezone.utc)) == "2025-01-08"

    def test_naive_datetimes_are_utc(self):
        assert sast_date(datetime(2025, 1, 7, 23, 0)) == "2025-01-08"

    def test_weeks_between(self):
        assert weeks_between("2025-01-01", "2025-01-20") == ["2024-12-30", "2025-01-06", "2025-01-13", "2025-01-20"]


def test_labels():
    assert format_week_label("2025-01-06") == "6 Jan 2025"
    assert short_week_label("2025-01-06") == "Jan 6"


class TestDateRanges:
    @pytest.mark.parametrize("preset,start", [
        ("1w", "2025-01-01"),
        ("4w", "2024-12-11"),
        ("12w", "2024-10-16"),
        ("ytd", "2025-01-01"),
        ("all", "2020-01-01"),
        (None, "2024-12-11"),
    ])
    def test_presets(self, preset, start):
        assert resolve_date_range(preset, frozen_clock) == DateRange(start=start, end="2025-01-08")

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            resolve_date_range("6m", frozen_clock)

    def test_previous_period_has_same_length(self):
        previous = previous_period(DateRange(start="2024-12-11", end="2025-01-08"))
        assert previous == DateRange(start="2024-11-12", end="2024-12-10")
