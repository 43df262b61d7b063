"""Week-over-week comparison builders.

Snapshot rows are one per platform plus a synthetic "total" row per week.
``recent_weeks`` arguments are always ordered newest week first, the way
the repository returns them.
"""

import logging
import re
from collections.abc import Mapping, Sequence

from schemas.metrics import (
    PLATFORM_IDS,
    TOTAL_PLATFORM,
    AvailableWeek,
    DailyMetricRow,
    PostMetrics,
    WeekRange,
    WeeklySnapshotRow,
)
from schemas.weekly import (
    ContentInsight,
    DayEngagement,
    EmvComparison,
    EngagementGauge,
    SparkValue,
    WeeklyComparisonData,
    WeeklyEmvBar,
    WeeklyGrowthPoint,
    WeeklyHeroCard,
    WeeklyPlatformRow,
)
from services.emv_calculator import RateTable, currency_symbol, get_emv_breakdown
from services.registry import DashboardConfig
from services.stats import engagement_rate, growth_direction, growth_label, mean_and_std, percent_change
from services.week_utils import DAY_LABELS, to_sast

logger = logging.getLogger(__name__)

INDUSTRY_BENCHMARK_RATE = 3.5
GROWTH_CURVE_WEEKS = 12
GAUGE_AVERAGE_WEEKS = 4
ANOMALY_HISTORY_WEEKS = 4
ANOMALY_MIN_HISTORY = 3
ANOMALY_SIGMA = 2.0
TOP_POSTS_LIMIT = 5
PREVIEW_LENGTH = 60

DEFAULT_TEMPLATES = {
    ("growth", "biggest"): "{platform} {metric} grew {percentage}% week-on-week.",
    ("decline", "biggest"): "{platform} {metric} dropped {percentage}% week-on-week.{context}",
    ("top_post", "best"): 'The top post was on {platform} with {engagements} engagements: "{preview}..."',
    ("anomaly", "detected"): "{platform} engagements show an unusual {direction} "
                             "({deviations}σ from 4-week average).",
    ("recommendation", "engagement"): "Consider adapting {strong_platform} content strategies for "
                                      "{weak_platform}, which has the lowest engagement rate at {rate}%.",
}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def fill_template(template: str, values: Mapping[str, object]) -> str:
    """Substitute ``{name}`` placeholders; unknown names are left as written."""
    return _PLACEHOLDER.sub(
        lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0),
        template,
    )


def _template(config: DashboardConfig, group: str, name: str) -> str:
    return config.insight_template(group, name, DEFAULT_TEMPLATES[(group, name)])


def _find(rows: Sequence[WeeklySnapshotRow], platform: str) -> WeeklySnapshotRow | None:
    return next((r for r in rows if r.platform == platform), None)


# ============== Snapshot ==============

def build_snapshot_from_daily_metrics(
    rows: Sequence[DailyMetricRow],
    week_start: str,
    week_end: str,
    rates: RateTable,
) -> list[WeeklySnapshotRow]:
    """Weekly snapshot rows for every platform plus the "total" row.

    Platforms with no rows in the window still get a zero row. Followers
    start/end come from the first and last day in the window; the total
    row's engagement rate is recomputed from its own sums.
    """
    results = []
    for platform in PLATFORM_IDS:
        platform_rows = sorted(
            (r for r in rows if r.platform == platform and week_start <= r.date <= week_end),
            key=lambda r: r.date,
        )
        if not platform_rows:
            results.append(WeeklySnapshotRow(week_start=week_start, week_end=week_end, platform=platform))
            continue

        views = sum(r.video_views for r in platform_rows)
        impressions = sum(r.impressions for r in platform_rows)
        engagements = sum(r.engagements for r in platform_rows)
        breakdown = get_emv_breakdown(platform, {
            "views": views,
            "impressions": impressions,
            "likes": sum(r.reactions for r in platform_rows),
            "comments": sum(r.comments for r in platform_rows),
            "shares": sum(r.shares for r in platform_rows),
            "saves": sum(r.saves for r in platform_rows),
            "clicks": sum(r.clicks for r in platform_rows),
        }, rates)

        results.append(WeeklySnapshotRow(
            week_start=week_start,
            week_end=week_end,
            platform=platform,
            views=views,
            impressions=impressions,
            engagements=engagements,
            engagement_rate=engagement_rate(engagements, impressions),
            posts_count=sum(r.posts_published for r in platform_rows),
            followers_start=platform_rows[0].followers,
            followers_end=platform_rows[-1].followers,
            follower_growth=sum(r.follower_growth for r in platform_rows),
            emv_total=breakdown.total,
            emv_views=breakdown.views,
            emv_likes=breakdown.likes,
            emv_comments=breakdown.comments,
            emv_shares=breakdown.shares,
            emv_other=breakdown.other,
        ))

    results.append(total_row(results, week_start, week_end))
    return results


def total_row(platform_rows: Sequence[WeeklySnapshotRow], week_start: str, week_end: str) -> WeeklySnapshotRow:
    """Arithmetic sum of per-platform rows, with its own engagement rate."""
    summed_fields = (
        "views", "impressions", "engagements", "posts_count", "followers_start",
        "followers_end", "follower_growth", "emv_total", "emv_views", "emv_likes",
        "emv_comments", "emv_shares", "emv_other",
    )
    sums = {
        field: sum(getattr(r, field) for r in platform_rows if r.platform != TOTAL_PLATFORM)
        for field in summed_fields
    }
    return WeeklySnapshotRow(
        week_start=week_start,
        week_end=week_end,
        platform=TOTAL_PLATFORM,
        engagement_rate=engagement_rate(sums["engagements"], sums["impressions"]),
        **sums,
    )


# ============== Comparison sections ==============

def build_weekly_hero_cards(
    this_week: WeeklySnapshotRow | None,
    last_week: WeeklySnapshotRow | None,
) -> list[WeeklyHeroCard]:
    tw = this_week or WeeklySnapshotRow(week_start="", week_end="", platform=TOTAL_PLATFORM)
    lw = last_week or WeeklySnapshotRow(week_start="", week_end="", platform=TOTAL_PLATFORM)
    definitions = (
        ("Views", "views", "views"),
        ("Impressions", "impressions", "impressions"),
        ("Engagements", "engagements", "engagements"),
        ("Posts Published", "posts", "posts_count"),
        ("Follower Growth", "follower_growth", "follower_growth"),
    )

    cards = []
    for metric, key, field in definitions:
        tw_value, lw_value = getattr(tw, field), getattr(lw, field)
        pct = percent_change(tw_value, lw_value)
        cards.append(WeeklyHeroCard(
            metric=metric,
            key=key,
            this_week=tw_value,
            last_week=lw_value,
            delta=tw_value - lw_value,
            percent_change=pct,
            direction=growth_direction(pct),
            label=growth_label(pct),
            format="number",
        ))
    return cards


def build_engagement_gauge(
    this_week: WeeklySnapshotRow | None,
    last_week: WeeklySnapshotRow | None,
    recent_weeks: Sequence[WeeklySnapshotRow],
) -> EngagementGauge:
    current = this_week.engagement_rate if this_week else 0.0
    previous = last_week.engagement_rate if last_week else 0.0

    totals = [r for r in recent_weeks if r.platform == TOTAL_PLATFORM][:GAUGE_AVERAGE_WEEKS]
    four_week_average = (
        sum(r.engagement_rate for r in totals) / len(totals) if totals else current
    )
    return EngagementGauge(
        current_rate=current,
        previous_rate=previous,
        four_week_average=four_week_average,
        industry_benchmark=INDUSTRY_BENCHMARK_RATE,
        change_points=current - previous,
    )


def _emv_bar(label: str, row: WeeklySnapshotRow | None) -> WeeklyEmvBar:
    if row is None:
        return WeeklyEmvBar(label=label, views=0, likes=0, comments=0, shares=0, other=0, total=0)
    return WeeklyEmvBar(
        label=label,
        views=row.emv_views,
        likes=row.emv_likes,
        comments=row.emv_comments,
        shares=row.emv_shares,
        other=row.emv_other,
        total=row.emv_total,
    )


def build_emv_comparison(
    this_week: WeeklySnapshotRow | None,
    last_week: WeeklySnapshotRow | None,
    symbol: str,
) -> EmvComparison:
    tw_bar = _emv_bar("This Week", this_week)
    lw_bar = _emv_bar("Last Week", last_week)
    return EmvComparison(
        this_week=tw_bar,
        last_week=lw_bar,
        delta=tw_bar.total - lw_bar.total,
        percent_change=percent_change(tw_bar.total, lw_bar.total),
        currency_symbol=symbol,
    )


PLATFORM_TABLE_METRICS = (
    ("Views", "views", "views", "number"),
    ("Engagements", "engagements", "engagements", "number"),
    ("Eng. Rate", "engagement_rate", "engagement_rate", "percentage"),
    ("Posts", "posts", "posts_count", "number"),
    ("EMV", "emv", "emv_total", "currency"),
)


def build_platform_table(
    this_week_rows: Sequence[WeeklySnapshotRow],
    last_week_rows: Sequence[WeeklySnapshotRow],
    recent_weeks: Sequence[WeeklySnapshotRow],
) -> list[WeeklyPlatformRow]:
    """Five metrics per platform, each with an oldest-first history sparkline."""
    table = []
    for platform in PLATFORM_IDS:
        tw = _find(this_week_rows, platform)
        lw = _find(last_week_rows, platform)
        history = [r for r in recent_weeks if r.platform == platform][::-1]

        for metric, key, field, fmt in PLATFORM_TABLE_METRICS:
            tw_value = getattr(tw, field) if tw else 0
            lw_value = getattr(lw, field) if lw else 0
            pct = percent_change(tw_value, lw_value)
            table.append(WeeklyPlatformRow(
                platform=platform,
                metric=metric,
                metric_key=key,
                this_week=tw_value,
                last_week=lw_value,
                delta=tw_value - lw_value,
                percent_change=pct,
                direction=growth_direction(pct),
                format=fmt,
                sparkline=[SparkValue(value=getattr(r, field) or 0) for r in history],
            ))
    return table


def build_growth_curve(recent_weeks: Sequence[WeeklySnapshotRow]) -> list[WeeklyGrowthPoint]:
    """Up to 12 most recent total rows, oldest first, labelled W1..Wn."""
    totals = [r for r in recent_weeks if r.platform == TOTAL_PLATFORM][::-1][-GROWTH_CURVE_WEEKS:]
    return [
        WeeklyGrowthPoint(
            week_label=f"W{i}",
            week_start=r.week_start,
            views=r.views,
            impressions=r.impressions,
            engagements=r.engagements,
            engagement_rate=r.engagement_rate,
            emv=r.emv_total,
        )
        for i, r in enumerate(totals, start=1)
    ]


def build_day_heatmap(posts: Sequence[PostMetrics]) -> list[DayEngagement]:
    """Engagements per platform per weekday (Monday = 0), by SAST posting day."""
    totals: dict[tuple[str, int], int] = {}
    for post in posts:
        key = (post.platform, to_sast(post.created_at).weekday())
        totals[key] = totals.get(key, 0) + post.engagements

    return [
        DayEngagement(
            day_of_week=day,
            day_label=DAY_LABELS[day],
            platform=platform,
            engagements=totals.get((platform, day), 0),
        )
        for platform in PLATFORM_IDS
        for day in range(7)
    ]


# ============== Insights ==============

INSIGHT_METRICS = ("engagements", "views", "impressions")


def generate_insights(
    this_week_rows: Sequence[WeeklySnapshotRow],
    last_week_rows: Sequence[WeeklySnapshotRow],
    top_posts: Sequence[PostMetrics],
    recent_weeks: Sequence[WeeklySnapshotRow],
    config: DashboardConfig,
) -> list[ContentInsight]:
    """Rule-based analyst notes rendered through the configured templates.

    - biggest week-on-week growth and decline across platform x metric
    - the top post (``top_posts`` must already be sorted best first)
    - per-platform engagement anomaly against up to 4 prior weeks (2 sigma)
    - a recommendation naming the weakest and strongest engagement rates
    """
    insights = []

    growth = decline = None
    for platform in PLATFORM_IDS:
        tw = _find(this_week_rows, platform)
        lw = _find(last_week_rows, platform)
        if tw is None or lw is None:
            continue
        for metric in INSIGHT_METRICS:
            pct = percent_change(getattr(tw, metric), getattr(lw, metric))
            if growth is None or pct > growth[2]:
                growth = (platform, metric, pct)
            if decline is None or pct < decline[2]:
                decline = (platform, metric, pct)

    if growth and growth[2] > 0:
        platform, metric, pct = growth
        insights.append(ContentInsight(
            type="growth",
            icon="📈",
            title="Biggest Growth",
            body=fill_template(_template(config, "growth", "biggest"), {
                "platform": config.platform_name(platform),
                "metric": metric,
                "percentage": f"{pct:.1f}",
            }),
            severity="positive",
        ))

    if decline and decline[2] < 0:
        platform, metric, pct = decline
        tw_posts = _find(this_week_rows, platform).posts_count
        lw_posts = _find(last_week_rows, platform).posts_count
        context = (
            f" Posting frequency dropped from {lw_posts} to {tw_posts} posts."
            if tw_posts < lw_posts else ""
        )
        insights.append(ContentInsight(
            type="decline",
            icon="📉",
            title="Biggest Decline",
            body=fill_template(_template(config, "decline", "biggest"), {
                "platform": config.platform_name(platform),
                "metric": metric,
                "percentage": f"{abs(pct):.1f}",
                "context": context,
            }),
            severity="negative",
        ))

    if top_posts:
        best = top_posts[0]
        insights.append(ContentInsight(
            type="top_post",
            icon="⭐",
            title="Top Performer",
            body=fill_template(_template(config, "top_post", "best"), {
                "platform": config.platform_name(best.platform),
                "engagements": f"{best.engagements:,}",
                "preview": best.content[:PREVIEW_LENGTH],
            }),
            severity="positive",
        ))

    for platform in PLATFORM_IDS:
        tw = _find(this_week_rows, platform)
        if tw is None:
            continue
        history = [
            r for r in recent_weeks
            if r.platform == platform and r.week_start < tw.week_start
        ][:ANOMALY_HISTORY_WEEKS]
        if len(history) < ANOMALY_MIN_HISTORY:
            continue

        mean, std_dev = mean_and_std([r.engagements for r in history])
        if std_dev > 0 and abs(tw.engagements - mean) > ANOMALY_SIGMA * std_dev:
            name = config.platform_name(platform)
            insights.append(ContentInsight(
                type="anomaly",
                icon="⚠️",
                title=f"{name} Anomaly",
                body=fill_template(_template(config, "anomaly", "detected"), {
                    "platform": name,
                    "direction": "spike" if tw.engagements > mean else "drop",
                    "deviations": f"{abs(tw.engagements - mean) / std_dev:.1f}",
                }),
                severity="neutral",
            ))

    active = sorted(
        (r for r in this_week_rows if r.platform != TOTAL_PLATFORM and r.engagements > 0),
        key=lambda r: r.engagement_rate,
    )
    if active:
        weakest, strongest = active[0], active[-1]
        insights.append(ContentInsight(
            type="recommendation",
            icon="💡",
            title="Recommendation",
            body=fill_template(_template(config, "recommendation", "engagement"), {
                "strong_platform": config.platform_name(strongest.platform),
                "weak_platform": config.platform_name(weakest.platform),
                "rate": f"{weakest.engagement_rate:.2f}",
            }),
            severity="info",
        ))

    return insights


# ============== Payload ==============

def build_weekly_comparison(
    this_week_rows: Sequence[WeeklySnapshotRow],
    last_week_rows: Sequence[WeeklySnapshotRow],
    recent_weeks: Sequence[WeeklySnapshotRow],
    posts: Sequence[PostMetrics],
    this_week: WeekRange,
    last_week: WeekRange,
    config: DashboardConfig,
    available_weeks: Sequence[AvailableWeek] = (),
    is_partial_week: bool = False,
    partial_day_count: int = 7,
) -> WeeklyComparisonData:
    """Assemble the weekly comparison payload for ``this_week`` vs ``last_week``."""
    tw_total = _find(this_week_rows, TOTAL_PLATFORM)
    lw_total = _find(last_week_rows, TOTAL_PLATFORM)
    ranked_posts = sorted(posts, key=lambda p: p.engagements, reverse=True)

    return WeeklyComparisonData(
        this_week_start=this_week.week_start,
        this_week_end=this_week.week_end,
        last_week_start=last_week.week_start,
        last_week_end=last_week.week_end,
        is_partial_week=is_partial_week,
        partial_day_count=partial_day_count,
        hero_cards=build_weekly_hero_cards(tw_total, lw_total),
        engagement_gauge=build_engagement_gauge(tw_total, lw_total, recent_weeks),
        emv_comparison=build_emv_comparison(tw_total, lw_total, currency_symbol(config.emv)),
        platform_table=build_platform_table(this_week_rows, last_week_rows, recent_weeks),
        growth_curve=build_growth_curve(recent_weeks),
        day_heatmap=build_day_heatmap(ranked_posts),
        top_posts=ranked_posts[:TOP_POSTS_LIMIT],
        insights=generate_insights(this_week_rows, last_week_rows, ranked_posts, recent_weeks, config),
        available_weeks=list(available_weeks),
    )
