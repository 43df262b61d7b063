"""Data-quality checks over daily metrics and aggregated totals.

- detect_anomalies: rolling z-score over each platform's daily series. A
  deliberately simple, non-robust detector (no seasonality handling).
- check_discrepancies: cross-checks the aggregate totals against the sum of
  the per-platform totals to catch double counting or dropped platforms.
- detect_zero_values: an exact zero on a key metric is treated as an
  upstream permission or mapping failure, even for a genuinely quiet range.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime

from schemas.metrics import (
    AggregateMetrics,
    AnomalyFlag,
    DailyMetricRow,
    DiscrepancyWarning,
    PlatformMetrics,
    ZeroValueAlert,
)
from services.stats import mean_and_std
from services.week_utils import Clock, system_clock, to_sast

logger = logging.getLogger(__name__)

ANOMALY_METRICS = ("engagements", "impressions", "video_views")


def detect_anomalies(
    rows: Sequence[DailyMetricRow],
    window_days: int = 7,
    sigma_threshold: float = 2.5,
    minimum_data_days: int | None = None,
) -> list[AnomalyFlag]:
    """Flag days deviating more than ``sigma_threshold`` from the prior window.

    Each day is compared with the ``window_days`` days before it. Platforms
    with fewer than ``minimum_data_days`` rows (default: one more than the
    window) are skipped, and so is any window with zero variance.
    """
    if minimum_data_days is None:
        minimum_data_days = window_days + 1

    by_platform: dict[str, list[DailyMetricRow]] = defaultdict(list)
    for row in rows:
        by_platform[row.platform].append(row)

    flags: list[AnomalyFlag] = []
    for platform, platform_rows in by_platform.items():
        ordered = sorted(platform_rows, key=lambda r: r.date)
        if len(ordered) < minimum_data_days:
            continue

        for metric in ANOMALY_METRICS:
            series = [getattr(r, metric) or 0 for r in ordered]
            for i in range(window_days, len(ordered)):
                mean, std_dev = mean_and_std(series[i - window_days:i])
                if std_dev == 0:
                    continue

                z = (series[i] - mean) / std_dev
                if abs(z) > sigma_threshold:
                    flags.append(AnomalyFlag(
                        date=ordered[i].date,
                        platform=platform,
                        metric=metric,
                        value=series[i],
                        rolling_mean=mean,
                        rolling_std_dev=std_dev,
                        deviations=abs(z),
                        direction="spike" if z > 0 else "drop",
                    ))

    logger.debug(f"Anomaly scan over {len(rows)} rows produced {len(flags)} flags")
    return flags


def check_discrepancies(
    aggregate: AggregateMetrics,
    platforms: Sequence[PlatformMetrics],
    threshold_percent: float = 5.0,
) -> list[DiscrepancyWarning]:
    """Compare aggregate totals with the sum over available platforms."""
    threshold = threshold_percent / 100
    checks = (
        ("engagements", aggregate.total_engagements, "total_engagements"),
        ("impressions", aggregate.total_impressions, "total_impressions"),
        ("views", aggregate.total_views, "total_views"),
    )

    warnings = []
    for metric, aggregate_value, field in checks:
        if aggregate_value == 0:
            continue
        summed = sum(getattr(p, field) for p in platforms if p.available)
        deviation = abs(summed - aggregate_value) / aggregate_value
        if deviation > threshold:
            warnings.append(DiscrepancyWarning(
                metric=metric,
                aggregate_value=aggregate_value,
                summed_value=summed,
                deviation_percent=deviation * 100,
            ))
    return warnings


def detect_zero_values(platforms: Sequence[PlatformMetrics]) -> list[ZeroValueAlert]:
    key_metrics = (
        ("total_views", "Views"),
        ("total_impressions", "Impressions"),
        ("total_engagements", "Engagements"),
    )

    alerts = []
    for platform in platforms:
        if not platform.available:
            continue
        for field, label in key_metrics:
            if getattr(platform, field) == 0:
                alerts.append(ZeroValueAlert(
                    platform=platform.platform,
                    metric=label,
                    message=f"{label} returned zero for {platform.profile_name}: potential API issue",
                ))
    return alerts


def freshness_level(
    last_updated: datetime | None,
    clock: Clock = system_clock,
    amber_hours: float = 26,
    red_hours: float = 48,
) -> str:
    """'fresh', 'amber' or 'red' depending on the age of the last refresh."""
    if last_updated is None:
        return "red"
    hours = (to_sast(clock()) - to_sast(last_updated)).total_seconds() / 3600
    if hours > red_hours:
        return "red"
    if hours > amber_hours:
        return "amber"
    return "fresh"
