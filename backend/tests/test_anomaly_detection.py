"""Tests for anomaly, discrepancy, zero-value and freshness checks."""

from datetime import datetime, timedelta

import pytest

from schemas.metrics import AggregateMetrics, PlatformMetrics
from services.anomaly_detection import (
    check_discrepancies,
    detect_anomalies,
    detect_zero_values,
    freshness_level,
)

from conftest import FROZEN_NOW, frozen_clock, make_daily


def daily_series(platform, values, start_day=1):
    return [make_daily(f"2025-01-{start_day + i:02d}", platform, engagements=v) for i, v in enumerate(values)]


def platform_metrics(platform="x", available=True, **totals):
    return PlatformMetrics(
        platform=platform,
        profile_name=f"{platform} profile",
        profile_handle=f"@{platform}",
        available=available,
        **totals,
    )


class TestDetectAnomalies:
    def test_spike_is_flagged(self):
        rows = daily_series("x", [100, 102, 98, 101, 99, 100, 100, 103, 97, 1000])

        flags = detect_anomalies(rows, window_days=7, sigma_threshold=3)

        assert len(flags) == 1
        flag = flags[0]
        assert flag.date == "2025-01-10"
        assert flag.platform == "x"
        assert flag.metric == "engagements"
        assert flag.direction == "spike"
        assert flag.deviations > 3

    def test_flat_baseline_has_zero_variance_and_is_skipped(self):
        rows = daily_series("x", [100] * 9 + [1000])
        assert detect_anomalies(rows, window_days=7, sigma_threshold=3) == []

    def test_drop_is_flagged(self):
        rows = daily_series("instagram", [500, 510, 490, 505, 495, 500, 500, 0])
        flags = detect_anomalies(rows, window_days=7, sigma_threshold=3)
        assert [f.direction for f in flags] == ["drop"]

    def test_short_history_is_skipped(self):
        rows = daily_series("x", [100, 102, 98, 1000])
        assert detect_anomalies(rows, window_days=7, sigma_threshold=3) == []

    def test_rows_are_sorted_by_date_first(self):
        rows = daily_series("x", [100, 102, 98, 101, 99, 100, 100, 103, 97, 1000])
        flags = detect_anomalies(list(reversed(rows)), window_days=7, sigma_threshold=3)
        assert [f.date for f in flags] == ["2025-01-10"]


class TestDiscrepancies:
    def test_thirty_percent_gap(self):
        aggregate = AggregateMetrics(total_engagements=1000)
        platforms = [platform_metrics("x", total_engagements=700)]

        warnings = check_discrepancies(aggregate, platforms, threshold_percent=10)

        assert len(warnings) == 1
        assert warnings[0].metric == "engagements"
        assert warnings[0].deviation_percent == pytest.approx(30)

    def test_unavailable_platforms_are_not_summed(self):
        aggregate = AggregateMetrics(total_engagements=1000)
        platforms = [
            platform_metrics("x", total_engagements=1000),
            platform_metrics("tiktok", available=False, total_engagements=500),
        ]
        assert check_discrepancies(aggregate, platforms, threshold_percent=5) == []

    def test_zero_aggregate_is_skipped(self):
        assert check_discrepancies(AggregateMetrics(), [platform_metrics(total_engagements=10)]) == []


def test_zero_values_flag_each_metric_of_available_platforms():
    platforms = [
        platform_metrics("x", total_views=0, total_impressions=500, total_engagements=20),
        platform_metrics("tiktok", available=False),
    ]

    alerts = detect_zero_values(platforms)

    assert [(a.platform, a.metric) for a in alerts] == [("x", "Views")]
    assert "potential API issue" in alerts[0].message


class TestFreshness:
    def test_levels(self):
        assert freshness_level(None, frozen_clock) == "red"
        assert freshness_level(FROZEN_NOW - timedelta(hours=2), frozen_clock) == "fresh"
        assert freshness_level(FROZEN_NOW - timedelta(hours=30), frozen_clock) == "amber"
        assert freshness_level(FROZEN_NOW - timedelta(hours=49), frozen_clock) == "red"

    def test_naive_timestamps_are_utc(self):
        # 07:00 UTC is 09:00 SAST, one hour before the frozen clock
        assert freshness_level(datetime(2025, 1, 8, 7, 0), frozen_clock, amber_hours=0.5) == "amber"
