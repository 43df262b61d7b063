"""Lifetime dashboard builders.

Turns daily profile metrics and posts into the all-time dashboard: totals,
per-platform breakdowns, hero cards with sparklines, chart datasets and the
data-quality panel. Inputs are already range-filtered by the caller.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timedelta

from schemas.metrics import (
    PLATFORM_IDS,
    AggregateMetrics,
    DailyMetricRow,
    DashboardCharts,
    DashboardData,
    DataQualityStatus,
    DonutSegment,
    EmvBarSegment,
    GrowthIndicator,
    GrowthLinePoint,
    HeatmapDay,
    HeroCardData,
    PlatformMetrics,
    PostMetrics,
    SparklinePoint,
)
from services.anomaly_detection import (
    check_discrepancies,
    detect_anomalies,
    detect_zero_values,
    freshness_level,
)
from services.emv_calculator import RateTable, calculate_emv, currency_symbol, daily_counts, get_emv_breakdown
from services.registry import DashboardConfig
from services.stats import engagement_rate, growth_direction
from services.week_utils import Clock, format_date, sast_date, sast_today, system_clock

logger = logging.getLogger(__name__)

HEATMAP_DAYS = 365
GROWTH_WINDOW_DAYS = 30
PLATFORM_TOP_POSTS = 5

# (label, key, format, daily series feeding the sparkline and growth)
HERO_CARD_METRICS = (
    ("Total Views", "views", "number", "video_views"),
    ("Total Impressions", "impressions", "number", "impressions"),
    ("Total Engagements", "engagements", "number", "engagements"),
    ("Engagement Rate", "eng_rate", "percentage", "engagements"),
    ("Total Posts", "posts", "number", "posts_published"),
    ("Total Followers", "followers", "number", "followers"),
    ("Earned Media Value", "emv", "currency", "engagements"),
)


def group_by_platform(rows: Sequence[DailyMetricRow]) -> dict[str, list[DailyMetricRow]]:
    grouped: dict[str, list[DailyMetricRow]] = defaultdict(list)
    for row in rows:
        grouped[row.platform].append(row)
    return grouped


def sum_metric(rows: Sequence[DailyMetricRow], field: str) -> int:
    return sum(getattr(r, field) or 0 for r in rows)


def latest_value(rows: Sequence[DailyMetricRow], field: str) -> int:
    """Value of ``field`` on the most recent date (snapshot metrics)."""
    if not rows:
        return 0
    return getattr(max(rows, key=lambda r: r.date), field) or 0


def summed_counts(rows: Sequence[DailyMetricRow]) -> dict[str, int]:
    """EMV action counts summed over a set of daily rows."""
    return daily_counts(
        views=sum_metric(rows, "video_views"),
        impressions=sum_metric(rows, "impressions"),
        reactions=sum_metric(rows, "reactions"),
        comments=sum_metric(rows, "comments"),
        shares=sum_metric(rows, "shares"),
        saves=sum_metric(rows, "saves"),
        clicks=sum_metric(rows, "clicks"),
    )


def aggregate_metrics(rows: Sequence[DailyMetricRow], rates: RateTable) -> AggregateMetrics:
    """Totals across all platforms and dates.

    Followers is a snapshot: the latest value per platform, then summed.
    EMV is computed per platform on platform-summed counts.
    """
    by_platform = group_by_platform(rows)
    total_impressions = sum_metric(rows, "impressions")
    total_engagements = sum_metric(rows, "engagements")

    return AggregateMetrics(
        total_views=sum_metric(rows, "video_views"),
        total_impressions=total_impressions,
        total_engagements=total_engagements,
        engagement_rate=engagement_rate(total_engagements, total_impressions),
        total_posts=sum_metric(rows, "posts_published"),
        total_followers=sum(latest_value(by_platform.get(p, []), "followers") for p in PLATFORM_IDS),
        emv=sum(
            calculate_emv(p, summed_counts(by_platform.get(p, [])), rates)
            for p in PLATFORM_IDS
        ),
    )


def top_posts(posts: Sequence[PostMetrics], limit: int) -> list[PostMetrics]:
    return sorted(posts, key=lambda p: p.engagements, reverse=True)[:limit]


def per_platform_breakdown(
    rows: Sequence[DailyMetricRow],
    posts: Sequence[PostMetrics],
    config: DashboardConfig,
) -> list[PlatformMetrics]:
    """One entry per platform; ``available`` is False when it has no rows."""
    by_platform = group_by_platform(rows)
    result = []
    for platform in PLATFORM_IDS:
        platform_rows = by_platform.get(platform, [])
        platform_config = config.platform_config(platform)
        impressions = sum_metric(platform_rows, "impressions")
        engagements = sum_metric(platform_rows, "engagements")

        result.append(PlatformMetrics(
            platform=platform,
            profile_name=platform_config.name,
            profile_handle=platform_config.handle,
            available=bool(platform_rows),
            total_views=sum_metric(platform_rows, "video_views"),
            total_impressions=impressions,
            total_engagements=engagements,
            engagement_rate=engagement_rate(engagements, impressions),
            total_posts=sum_metric(platform_rows, "posts_published"),
            total_followers=latest_value(platform_rows, "followers"),
            emv=calculate_emv(platform, summed_counts(platform_rows), config.emv.rates),
            top_posts=top_posts([p for p in posts if p.platform == platform], PLATFORM_TOP_POSTS),
        ))
    return result


def sparkline_data(
    rows: Sequence[DailyMetricRow],
    field: str,
    days: int,
    clock: Clock = system_clock,
) -> list[SparklinePoint]:
    """Daily cross-platform sums for the last ``days`` days; missing days are omitted."""
    cutoff = format_date(sast_today(clock) - timedelta(days=days))
    by_date: dict[str, int] = defaultdict(int)
    for row in rows:
        if row.date >= cutoff:
            by_date[row.date] += getattr(row, field) or 0
    return [SparklinePoint(date=d, value=v) for d, v in sorted(by_date.items())]


def thirty_day_growth(
    rows: Sequence[DailyMetricRow],
    field: str,
    clock: Clock = system_clock,
) -> GrowthIndicator:
    """Last 30 days against the 30 days before them."""
    today = sast_today(clock)
    now_str = format_date(today)
    thirty = format_date(today - timedelta(days=GROWTH_WINDOW_DAYS))
    sixty = format_date(today - timedelta(days=2 * GROWTH_WINDOW_DAYS))

    current = previous = 0
    for row in rows:
        value = getattr(row, field) or 0
        if thirty <= row.date <= now_str:
            current += value
        if sixty <= row.date < thirty:
            previous += value

    diff = current - previous
    if previous > 0:
        percentage = diff / previous * 100
    else:
        percentage = 100.0 if current > 0 else 0.0
    return GrowthIndicator(value=diff, percentage=percentage, direction=growth_direction(percentage))


def build_hero_cards(
    aggregate: AggregateMetrics,
    rows: Sequence[DailyMetricRow],
    clock: Clock = system_clock,
    sparkline_days: int = 90,
    symbol: str | None = None,
) -> list[HeroCardData]:
    values = {
        "views": aggregate.total_views,
        "impressions": aggregate.total_impressions,
        "engagements": aggregate.total_engagements,
        "eng_rate": aggregate.engagement_rate,
        "posts": aggregate.total_posts,
        "followers": aggregate.total_followers,
        "emv": aggregate.emv,
    }
    return [
        HeroCardData(
            label=label,
            key=key,
            value=values[key],
            format=fmt,
            sparkline=sparkline_data(rows, field, sparkline_days, clock),
            growth=thirty_day_growth(rows, field, clock),
            currency_symbol=symbol if fmt == "currency" else None,
        )
        for label, key, fmt, field in HERO_CARD_METRICS
    ]


def donut_data(platforms: Sequence[PlatformMetrics], config: DashboardConfig) -> list[DonutSegment]:
    """Engagement share per available platform."""
    total = sum(p.total_engagements for p in platforms)
    return [
        DonutSegment(
            platform=p.platform,
            name=config.platform_name(p.platform),
            value=p.total_engagements,
            color=config.platform_config(p.platform).color,
            percentage=p.total_engagements / total * 100 if total > 0 else 0.0,
        )
        for p in platforms
        if p.available
    ]


def growth_data(rows: Sequence[DailyMetricRow]) -> list[GrowthLinePoint]:
    """Follower count per platform per month, taken from the month's last reported day."""
    latest: dict[str, dict[str, DailyMetricRow]] = defaultdict(dict)
    for row in rows:
        if row.platform not in PLATFORM_IDS:
            continue
        month = row.date[:7]
        current = latest[month].get(row.platform)
        if current is None or row.date > current.date:
            latest[month][row.platform] = row

    points = []
    for month in sorted(latest):
        followers = {p: r.followers for p, r in latest[month].items()}
        points.append(GrowthLinePoint(month=month, total=sum(followers.values()), **followers))
    return points


def heatmap_data(posts: Sequence[PostMetrics], clock: Clock = system_clock) -> list[HeatmapDay]:
    """Post counts for exactly the trailing 365 days, zero-filled."""
    counts: dict[str, int] = defaultdict(int)
    for post in posts:
        counts[sast_date(post.created_at)] += 1

    today = sast_today(clock)
    start = today - timedelta(days=HEATMAP_DAYS - 1)
    days = []
    for offset in range(HEATMAP_DAYS):
        day = start + timedelta(days=offset)
        date_str = format_date(day)
        days.append(HeatmapDay(
            date=date_str,
            count=counts.get(date_str, 0),
            day_of_week=day.isoweekday() % 7,
            week_index=offset // 7,
        ))
    return days


def emv_breakdown_bars(rows: Sequence[DailyMetricRow], config: DashboardConfig) -> list[EmvBarSegment]:
    """EMV split per platform, for platforms that reported any rows."""
    by_platform = group_by_platform(rows)
    bars = []
    for platform in PLATFORM_IDS:
        platform_rows = by_platform.get(platform)
        if not platform_rows:
            continue
        breakdown = get_emv_breakdown(platform, summed_counts(platform_rows), config.emv.rates)
        bars.append(EmvBarSegment(
            platform=platform,
            name=config.platform_name(platform),
            total=breakdown.total,
            **breakdown.model_dump(),
        ))
    return bars


def build_data_quality(
    rows: Sequence[DailyMetricRow],
    aggregate: AggregateMetrics,
    platforms: Sequence[PlatformMetrics],
    last_updated: datetime | None,
    config: DashboardConfig,
    clock: Clock = system_clock,
) -> DataQualityStatus:
    settings = config.dashboard
    return DataQualityStatus(
        last_updated=last_updated,
        freshness_level=freshness_level(
            last_updated,
            clock,
            amber_hours=settings.freshness.amber_hours,
            red_hours=settings.freshness.red_hours,
        ),
        anomalies=detect_anomalies(
            rows,
            window_days=settings.anomaly_detection.rolling_window_days,
            sigma_threshold=settings.anomaly_detection.sigma_threshold,
            minimum_data_days=settings.anomaly_detection.minimum_data_days,
        ),
        discrepancies=check_discrepancies(aggregate, platforms, settings.discrepancy_threshold_percent),
        zero_value_alerts=detect_zero_values(platforms),
    )


def build_dashboard_data(
    rows: Sequence[DailyMetricRow],
    posts: Sequence[PostMetrics],
    last_updated: datetime | None,
    config: DashboardConfig,
    clock: Clock = system_clock,
) -> DashboardData:
    """Assemble the full lifetime dashboard payload."""
    aggregate = aggregate_metrics(rows, config.emv.rates)
    platforms = per_platform_breakdown(rows, posts, config)

    logger.debug(f"Building dashboard from {len(rows)} daily rows and {len(posts)} posts")
    return DashboardData(
        aggregate=aggregate,
        hero_cards=build_hero_cards(
            aggregate, rows, clock, config.dashboard.sparkline_days, currency_symbol(config.emv)
        ),
        platforms=platforms,
        charts=DashboardCharts(
            donut=donut_data(platforms, config),
            growth=growth_data(rows),
            heatmap=heatmap_data(posts, clock),
            emv_breakdown=emv_breakdown_bars(rows, config),
        ),
        top_posts=top_posts(posts, config.dashboard.top_posts_limit),
        data_quality=build_data_quality(rows, aggregate, platforms, last_updated, config, clock),
    )
