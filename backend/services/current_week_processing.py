"""Live tracker for the in-progress SAST week.

Everything here is relative to "now", read from the injected ``clock``.
Hour offsets count from Monday 00:00 SAST, so a week spans hours 0-167.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timedelta

from schemas.current_week import (
    CurrentWeekData,
    DayBreakdown,
    EmvCounterData,
    HourlyDataPoint,
    LivePostEntry,
    LiveStatusData,
    PaceMetricCard,
    PlatformRaceEntry,
    TrackerAlert,
)
from schemas.metrics import (
    PLATFORM_IDS,
    TOTAL_PLATFORM,
    DailyMetricRow,
    EmvBreakdown,
    PostMetrics,
    WeeklySnapshotRow,
)
from services.data_processing import summed_counts
from services.emv_calculator import RateTable, currency_symbol, get_emv_breakdown
from services.registry import AlertThresholds, DashboardConfig
from services.stats import percent_change
from services.week_utils import (
    DAY_LABELS,
    HOURS_PER_WEEK,
    Clock,
    current_day_number,
    current_week_range,
    hours_into_week,
    previous_week,
    sast_date,
    shift_date,
    system_clock,
    week_start_datetime,
)
from services.weekly_processing import build_snapshot_from_daily_metrics

logger = logging.getLogger(__name__)

POST_LOG_LIMIT = 50
POST_PREVIEW_LENGTH = 100
OUTPERFORMING_MULTIPLIER = 1.5
UNDERPERFORMING_MULTIPLIER = 0.5

PACE_METRICS = (
    ("Engagements", "engagements", "engagements", "number"),
    ("Views", "views", "views", "number"),
    ("Impressions", "impressions", "impressions", "number"),
    ("Posts Published", "posts", "posts_count", "number"),
    ("EMV", "emv", "emv_total", "currency"),
)

# metric -> (post field, daily row field)
TIMELINE_METRICS = {
    "engagements": ("engagements", "engagements"),
    "views": ("video_views", "video_views"),
    "impressions": ("impressions", "impressions"),
}


def _find(rows: Sequence[WeeklySnapshotRow], platform: str) -> WeeklySnapshotRow | None:
    return next((r for r in rows if r.platform == platform), None)


def _day_status(day_number: int, current_day: int) -> str:
    if day_number < current_day:
        return "completed"
    if day_number == current_day:
        return "in_progress"
    return "upcoming"


def projection_multiplier(hours_elapsed: float) -> float:
    """Factor extrapolating a partial week to 168 hours; 1 at the very start."""
    return HOURS_PER_WEEK / hours_elapsed if hours_elapsed > 0 else 1.0


def platform_averages(recent_posts: Sequence[PostMetrics]) -> dict[str, float]:
    """Mean engagements per post for each platform with history."""
    totals: dict[str, list[int]] = defaultdict(list)
    for post in recent_posts:
        totals[post.platform].append(post.engagements)
    return {platform: sum(values) / len(values) for platform, values in totals.items()}


# ============== Live status ==============

def build_live_status(last_refreshed: datetime | None, clock: Clock = system_clock) -> LiveStatusData:
    week = current_week_range(clock)
    current_day = current_day_number(clock)
    return LiveStatusData(
        week_start=week.week_start,
        week_end=week.week_end,
        current_day=current_day,
        hours_into_week=hours_into_week(clock),
        last_refreshed=last_refreshed,
        day_statuses=[_day_status(day, current_day) for day in range(1, 8)],
    )


# ============== Pace ==============

def pace_status(pace_percentage: float) -> str:
    if pace_percentage >= 10:
        return "ahead"
    if pace_percentage >= -5:
        return "on_track"
    if pace_percentage >= -20:
        return "behind"
    return "significantly_behind"


def build_pace_metric_cards(
    this_week_rows: Sequence[WeeklySnapshotRow],
    last_week_rows: Sequence[WeeklySnapshotRow],
    hours_elapsed: float,
) -> list[PaceMetricCard]:
    """Project each total to a full week and compare with last week's final."""
    tw_total = _find(this_week_rows, TOTAL_PLATFORM)
    lw_total = _find(last_week_rows, TOTAL_PLATFORM)
    multiplier = projection_multiplier(hours_elapsed)

    cards = []
    for label, key, field, fmt in PACE_METRICS:
        current = getattr(tw_total, field) if tw_total else 0
        last_week_final = getattr(lw_total, field) if lw_total else 0
        projected = current * multiplier
        pace = percent_change(projected, last_week_final)
        cards.append(PaceMetricCard(
            label=label,
            key=key,
            current_total=current,
            projected_total=projected,
            last_week_final=last_week_final,
            pace_status=pace_status(pace),
            pace_percentage=pace,
            format=fmt,
        ))
    return cards


# ============== Hourly timeline ==============

def bucket_posts_by_hour(posts: Sequence[PostMetrics], week_start: str) -> dict[int, dict[str, float]]:
    """Sum post metrics into hour buckets; posts outside the week are dropped."""
    start = week_start_datetime(week_start)
    buckets: dict[int, dict[str, float]] = {}
    for post in posts:
        hour = (post.created_at - start) // timedelta(hours=1)
        if not 0 <= hour < HOURS_PER_WEEK:
            continue
        bucket = buckets.setdefault(hour, {"engagements": 0, "views": 0, "impressions": 0, "emv": 0.0, "count": 0})
        for metric, (post_field, _) in TIMELINE_METRICS.items():
            bucket[metric] += getattr(post, post_field)
        bucket["emv"] += post.emv
        bucket["count"] += 1
    return buckets


def daily_totals(rows: Sequence[DailyMetricRow]) -> dict[str, dict[str, int]]:
    totals: dict[str, dict[str, int]] = defaultdict(lambda: dict.fromkeys(TIMELINE_METRICS, 0))
    for row in rows:
        for metric, (_, row_field) in TIMELINE_METRICS.items():
            totals[row.date][metric] += getattr(row, row_field)
    return totals


def build_hourly_timeline(
    this_week_posts: Sequence[PostMetrics],
    last_week_posts: Sequence[PostMetrics],
    this_week_daily_rows: Sequence[DailyMetricRow],
    week_start: str,
    last_week_start: str,
    hours_elapsed: float,
) -> list[HourlyDataPoint]:
    """168 hourly points with cumulative this-week and last-week lines.

    This week's cumulative values stop at the current hour; last week keeps
    accumulating to hour 167. Hour 23 of each day is topped up with any part
    of that day's profile-level total that no post accounts for (metrics
    reported for the day but not attributable to a particular post). This
    puts the whole remainder in one hour, an accepted approximation.
    """
    current_hour = min(int(hours_elapsed), HOURS_PER_WEEK - 1)
    tw_buckets = bucket_posts_by_hour(this_week_posts, week_start)
    lw_buckets = bucket_posts_by_hour(last_week_posts, last_week_start)
    tw_daily = daily_totals(this_week_daily_rows)

    empty = {"engagements": 0, "views": 0, "impressions": 0, "emv": 0.0, "count": 0}
    cumulative = dict.fromkeys(("engagements", "views", "impressions", "emv"), 0)
    lw_cumulative = dict.fromkeys(("engagements", "views", "impressions", "emv"), 0)

    points = []
    for hour in range(HOURS_PER_WEEK):
        day_index, hour_in_day = divmod(hour, 24)
        lw_bucket = lw_buckets.get(hour, empty)
        for metric in lw_cumulative:
            lw_cumulative[metric] += lw_bucket[metric]

        point = HourlyDataPoint(
            hour_offset=hour,
            day_label=DAY_LABELS[day_index],
            hour_label=f"{hour_in_day:02d}:00",
            last_week_cumulative_engagements=lw_cumulative["engagements"],
            last_week_cumulative_views=lw_cumulative["views"],
            last_week_cumulative_impressions=lw_cumulative["impressions"],
            last_week_cumulative_emv=lw_cumulative["emv"],
        )

        if hour <= current_hour:
            bucket = dict(tw_buckets.get(hour, empty))
            day_total = tw_daily.get(shift_date(week_start, day_index))
            if day_total and hour_in_day == 23:
                day_hours = range(day_index * 24, day_index * 24 + 24)
                for metric in TIMELINE_METRICS:
                    from_posts = sum(tw_buckets.get(h, empty)[metric] for h in day_hours)
                    if day_total[metric] > from_posts:
                        bucket[metric] += day_total[metric] - from_posts

            for metric in cumulative:
                cumulative[metric] += bucket[metric]
            point.engagements = bucket["engagements"]
            point.views = bucket["views"]
            point.impressions = bucket["impressions"]
            point.emv = bucket["emv"]
            point.posts_count = bucket["count"]
            point.cumulative_engagements = cumulative["engagements"]
            point.cumulative_views = cumulative["views"]
            point.cumulative_impressions = cumulative["impressions"]
            point.cumulative_emv = cumulative["emv"]

        points.append(point)
    return points


# ============== Day breakdown ==============

def _rows_emv(rows: Sequence[DailyMetricRow], rates: RateTable) -> float:
    return sum(get_emv_breakdown(r.platform, summed_counts([r]), rates).total for r in rows)


def build_day_breakdown(
    this_week_daily_rows: Sequence[DailyMetricRow],
    last_week_daily_rows: Sequence[DailyMetricRow],
    this_week_posts: Sequence[PostMetrics],
    week_start: str,
    last_week_start: str,
    rates: RateTable,
    clock: Clock = system_clock,
) -> list[DayBreakdown]:
    """Mon..Sun totals, each compared with the same weekday last week."""
    current_day = current_day_number(clock)
    posts_per_day: dict[str, int] = defaultdict(int)
    for post in this_week_posts:
        posts_per_day[sast_date(post.created_at)] += 1

    days = []
    for index in range(7):
        date = shift_date(week_start, index)
        lw_date = shift_date(last_week_start, index)
        tw_rows = [r for r in this_week_daily_rows if r.date == date]
        lw_rows = [r for r in last_week_daily_rows if r.date == lw_date]

        engagements = sum(r.engagements for r in tw_rows)
        views = sum(r.video_views for r in tw_rows)
        lw_engagements = sum(r.engagements for r in lw_rows)
        lw_views = sum(r.video_views for r in lw_rows)

        days.append(DayBreakdown(
            day_index=index,
            day_label=DAY_LABELS[index],
            date=date,
            status=_day_status(index + 1, current_day),
            engagements=engagements,
            views=views,
            impressions=sum(r.impressions for r in tw_rows),
            emv=_rows_emv(tw_rows, rates),
            posts_count=posts_per_day.get(date, 0),
            last_week_engagements=lw_engagements,
            last_week_views=lw_views,
            delta_engagements=engagements - lw_engagements,
            delta_views=views - lw_views,
            percent_change_engagements=percent_change(engagements, lw_engagements),
            percent_change_views=percent_change(views, lw_views),
        ))
    return days


# ============== Platform race, post log, EMV counter ==============

def build_platform_race(this_week_rows: Sequence[WeeklySnapshotRow], config: DashboardConfig) -> list[PlatformRaceEntry]:
    entries = []
    for platform in PLATFORM_IDS:
        row = _find(this_week_rows, platform)
        entries.append(PlatformRaceEntry(
            platform=platform,
            engagements=row.engagements if row else 0,
            views=row.views if row else 0,
            impressions=row.impressions if row else 0,
            posts_count=row.posts_count if row else 0,
            emv=row.emv_total if row else 0.0,
            color=config.platform_config(platform).color,
        ))
    return sorted(entries, key=lambda e: e.engagements, reverse=True)


def velocity_status(multiplier: float) -> str:
    if multiplier >= OUTPERFORMING_MULTIPLIER:
        return "outperforming"
    if multiplier < UNDERPERFORMING_MULTIPLIER:
        return "underperforming"
    return "normal"


def build_post_log(
    this_week_posts: Sequence[PostMetrics],
    recent_posts: Sequence[PostMetrics],
) -> list[LivePostEntry]:
    """The 50 most recent posts, rated against their platform's 4-week average."""
    averages = platform_averages(recent_posts)
    newest_first = sorted(this_week_posts, key=lambda p: p.created_at, reverse=True)[:POST_LOG_LIMIT]

    entries = []
    for post in newest_first:
        average = averages.get(post.platform, 0)
        multiplier = post.engagements / average if average > 0 else 0.0
        entries.append(LivePostEntry(
            id=post.id,
            platform=post.platform,
            created_at=post.created_at,
            content=post.content[:POST_PREVIEW_LENGTH],
            permalink=post.permalink,
            engagements=post.engagements,
            views=post.video_views,
            impressions=post.impressions,
            emv=post.emv,
            velocity=velocity_status(multiplier),
            velocity_multiplier=round(multiplier, 1),
        ))
    return entries


def build_emv_counter(
    this_week_rows: Sequence[WeeklySnapshotRow],
    last_week_rows: Sequence[WeeklySnapshotRow],
    hours_elapsed: float,
    symbol: str,
) -> EmvCounterData:
    tw_total = _find(this_week_rows, TOTAL_PLATFORM)
    lw_total = _find(last_week_rows, TOTAL_PLATFORM)
    current = tw_total.emv_total if tw_total else 0.0
    last_week_final = lw_total.emv_total if lw_total else 0.0

    if last_week_final > 0:
        progress = current / last_week_final * 100
    else:
        progress = 100.0 if current > 0 else 0.0

    breakdown = EmvBreakdown()
    if tw_total:
        breakdown = EmvBreakdown(
            views=tw_total.emv_views,
            likes=tw_total.emv_likes,
            comments=tw_total.emv_comments,
            shares=tw_total.emv_shares,
            other=tw_total.emv_other,
        )
    return EmvCounterData(
        current_total=current,
        projected_total=current * projection_multiplier(hours_elapsed),
        last_week_final=last_week_final,
        progress_percentage=progress,
        breakdown=breakdown,
        currency_symbol=symbol,
    )


# ============== Alerts ==============

def generate_alerts(
    this_week_posts: Sequence[PostMetrics],
    recent_posts: Sequence[PostMetrics],
    this_week_rows: Sequence[WeeklySnapshotRow],
    last_week_rows: Sequence[WeeklySnapshotRow],
    thresholds: AlertThresholds,
    config: DashboardConfig,
    clock: Clock = system_clock,
) -> list[TrackerAlert]:
    """Viral post, posting gap, engagement drop and milestone alerts, newest first."""
    now = clock()
    alerts = []
    tw_total = _find(this_week_rows, TOTAL_PLATFORM)
    lw_total = _find(last_week_rows, TOTAL_PLATFORM)

    if thresholds.enabled.viral:
        averages = platform_averages(recent_posts)
        for post in this_week_posts:
            average = averages.get(post.platform, 0)
            if average > 0 and post.engagements >= average * thresholds.viral_threshold_multiplier:
                lift = post.engagements / average * 100 - 100
                alerts.append(TrackerAlert(
                    id=f"viral-{post.id}",
                    type="viral",
                    severity="positive",
                    title="Viral Post Detected",
                    message=(
                        f"A post on {config.platform_name(post.platform)} is outperforming the "
                        f"average by {lift:.0f}% with {post.engagements:,} engagements."
                    ),
                    timestamp=post.created_at,
                    platform=post.platform,
                ))

    if thresholds.enabled.posting_gap and this_week_posts:
        latest = max(this_week_posts, key=lambda p: p.created_at)
        hours_since = (now - latest.created_at).total_seconds() / 3600
        if hours_since >= thresholds.posting_gap_hours:
            alerts.append(TrackerAlert(
                id=f"gap-{int(now.timestamp())}",
                type="posting_gap",
                severity="neutral",
                title="Posting Gap Detected",
                message=(
                    f"No new posts in the last {round(hours_since)} hours. "
                    f"The last post was on {config.platform_name(latest.platform)}."
                ),
                timestamp=now,
            ))

    if thresholds.enabled.engagement_drop and tw_total and lw_total:
        hours_elapsed = hours_into_week(clock)
        last_week_pace = lw_total.engagements * (hours_elapsed / HOURS_PER_WEEK)
        if last_week_pace > 0:
            ratio = tw_total.engagements / last_week_pace
            if ratio <= thresholds.engagement_drop_threshold:
                alerts.append(TrackerAlert(
                    id=f"drop-{int(now.timestamp())}",
                    type="engagement_drop",
                    severity="negative",
                    title="Engagement Drop",
                    message=(
                        f"Engagements are tracking at {round(ratio * 100)}% of last week's "
                        "pace at this point in the week."
                    ),
                    timestamp=now,
                ))

    if thresholds.enabled.milestone and tw_total and lw_total:
        for threshold in sorted(thresholds.milestone_thresholds, reverse=True):
            if tw_total.engagements >= threshold > lw_total.engagements:
                alerts.append(TrackerAlert(
                    id=f"milestone-{threshold}",
                    type="milestone",
                    severity="positive",
                    title="Milestone Reached",
                    message=f"This week surpassed {threshold:,} total engagements!",
                    timestamp=now,
                ))
                break

    return sorted(alerts, key=lambda a: a.timestamp, reverse=True)


# ============== Payload ==============

def build_current_week_payload(
    this_week_daily_rows: Sequence[DailyMetricRow],
    last_week_daily_rows: Sequence[DailyMetricRow],
    this_week_posts: Sequence[PostMetrics],
    last_week_posts: Sequence[PostMetrics],
    recent_posts: Sequence[PostMetrics],
    last_week_snapshot_rows: Sequence[WeeklySnapshotRow],
    last_refreshed: datetime | None,
    config: DashboardConfig,
    clock: Clock = system_clock,
) -> CurrentWeekData:
    """Assemble the live tracker payload.

    This week's snapshot is always rebuilt from daily rows. Last week uses
    the stored snapshot when there is one.
    """
    rates = config.emv.rates
    week = current_week_range(clock)
    last_week = previous_week(week.week_start)
    hours_elapsed = hours_into_week(clock)

    this_week_rows = build_snapshot_from_daily_metrics(
        this_week_daily_rows, week.week_start, week.week_end, rates
    )
    last_week_rows = list(last_week_snapshot_rows) or build_snapshot_from_daily_metrics(
        last_week_daily_rows, last_week.week_start, last_week.week_end, rates
    )
    logger.debug(
        f"Current week {week.week_start}: {len(this_week_posts)} posts, "
        f"{hours_elapsed}h elapsed"
    )

    return CurrentWeekData(
        live_status=build_live_status(last_refreshed, clock),
        pace_cards=build_pace_metric_cards(this_week_rows, last_week_rows, hours_elapsed),
        hourly_timeline=build_hourly_timeline(
            this_week_posts,
            last_week_posts,
            this_week_daily_rows,
            week.week_start,
            last_week.week_start,
            hours_elapsed,
        ),
        day_breakdown=build_day_breakdown(
            this_week_daily_rows,
            last_week_daily_rows,
            this_week_posts,
            week.week_start,
            last_week.week_start,
            rates,
            clock,
        ),
        platform_race=build_platform_race(this_week_rows, config),
        post_log=build_post_log(this_week_posts, recent_posts),
        emv_counter=build_emv_counter(this_week_rows, last_week_rows, hours_elapsed, currency_symbol(config.emv)),
        alerts=generate_alerts(
            this_week_posts, recent_posts, this_week_rows, last_week_rows,
            config.alerts, config, clock,
        ),
    )
