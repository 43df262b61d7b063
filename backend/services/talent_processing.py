"""Talent advocacy rollups.

Posts from presenters' personal accounts, grouped per talent member and
cross-tabulated against shows. Callers pass posts that already carry
``show_ids`` (see ``enrich_talent_posts_with_shows``); duplicates are dropped
here before anything is counted.
"""

import logging
from collections import Counter, defaultdict
from collections.abc import Sequence
from datetime import timedelta

from schemas.metrics import DateRange, TalentPost
from schemas.talent import (
    TalentAccount,
    TalentActivityEntry,
    TalentActivityWeek,
    TalentAdvocacyStats,
    TalentAlert,
    TalentDrillDownData,
    TalentEngagementBarEntry,
    TalentFrequencyPoint,
    TalentHeroCard,
    TalentLeaderboardEntry,
    TalentOverviewData,
    TalentPlatformBreakdown,
    TalentPostCreate,
    TalentShowBreakdown,
    TalentShowCell,
    TalentShowMatrixEntry,
    TalentTimelinePoint,
)
from services.emv_calculator import calculate_post_emv
from services.registry import DashboardConfig, handle_from_url, talent_platform_ids
from services.stats import compute_delta, engagement_rate, get_initials
from services.talent_attribution import deduplicate_talent_posts, group_posts_by_talent
from services.week_utils import Clock, short_week_label, system_clock, week_start_for, weeks_between

logger = logging.getLogger(__name__)

INACTIVE_DAYS = 14
DECLINING_PERCENT = -30
RISING_STAR_PERCENT = 50
NO_HASHTAG_PERCENT = 30


def _total(posts: Sequence[TalentPost], field: str):
    return sum(getattr(p, field) for p in posts)


def _top_platform(posts: Sequence[TalentPost], by_engagement: bool = False) -> tuple[str | None, int]:
    """Platform with the most posts (or engagements); first seen wins ties."""
    counts: Counter[str] = Counter()
    for post in posts:
        counts[post.platform] += post.engagements if by_engagement else 1
    if not counts:
        return None, 0
    platform, value = counts.most_common(1)[0]
    return (platform, value) if value > 0 else (None, 0)


def _brand_posts(posts: Sequence[TalentPost]) -> int:
    return sum(1 for p in posts if p.has_brand_hashtag)


def build_advocacy_stats(posts: Sequence[TalentPost]) -> TalentAdvocacyStats:
    active = len({p.talent_id for p in posts})
    top_platform, top_posts = _top_platform(posts)
    return TalentAdvocacyStats(
        total_posts=len(posts),
        active_talent=active,
        avg_posts_per_talent=round(len(posts) / active, 1) if active else 0.0,
        top_platform=top_platform,
        top_platform_posts=top_posts,
        brand_posts=_brand_posts(posts),
    )


def build_talent_leaderboard(
    posts: Sequence[TalentPost],
    previous_posts: Sequence[TalentPost],
    config: DashboardConfig,
) -> list[TalentLeaderboardEntry]:
    """Every configured talent member, ranked 1..n by engagements."""
    current = group_posts_by_talent(posts)
    previous = group_posts_by_talent(previous_posts)

    entries = []
    for talent in config.talent:
        talent_posts = current.get(talent.id, [])
        prev_posts = previous.get(talent.id, [])
        engagements = _total(talent_posts, "engagements")

        entries.append(TalentLeaderboardEntry(
            talent_id=talent.id,
            name=talent.name,
            initials=get_initials(talent.name),
            avatar_color=talent.color,
            total_posts=len(talent_posts),
            brand_posts=_brand_posts(talent_posts),
            total_engagements=engagements,
            total_views=_total(talent_posts, "video_views"),
            emv=round(_total(talent_posts, "emv"), 2),
            engagement_rate=round(engagement_rate(engagements, _total(talent_posts, "impressions")), 2),
            top_platform=_top_platform(talent_posts, by_engagement=True)[0],
            delta_posts=compute_delta(len(talent_posts), len(prev_posts)),
            delta_engagements=compute_delta(engagements, _total(prev_posts, "engagements")),
        ))

    entries.sort(key=lambda e: e.total_engagements, reverse=True)
    for rank, entry in enumerate(entries, start=1):
        entry.rank = rank
    return entries


def build_activity_grid(
    posts: Sequence[TalentPost],
    date_range: DateRange,
    config: DashboardConfig,
) -> list[TalentActivityEntry]:
    """Posts and engagements per talent member per week of the range."""
    weeks = weeks_between(date_range.start, date_range.end)
    cells: dict[tuple[str, str], list[int]] = defaultdict(lambda: [0, 0])
    for post in posts:
        cell = cells[(post.talent_id, week_start_for(post.created_at))]
        cell[0] += 1
        cell[1] += post.engagements

    grid = []
    for talent in config.talent:
        week_data = []
        for week_start in weeks:
            count, engagements = cells.get((talent.id, week_start), (0, 0))
            week_data.append(TalentActivityWeek(
                week_label=short_week_label(week_start),
                week_start=week_start,
                posts=count,
                engagements=engagements,
            ))
        grid.append(TalentActivityEntry(
            talent_id=talent.id,
            name=talent.name,
            avatar_color=talent.color,
            week_data=week_data,
        ))
    return grid


def build_show_matrix(posts: Sequence[TalentPost], config: DashboardConfig) -> list[TalentShowMatrixEntry]:
    """Talent x show cross-tab of attributed post counts and engagements."""
    cells: dict[tuple[str, str], list[int]] = defaultdict(lambda: [0, 0])
    for post in posts:
        for show_id in post.show_ids:
            cell = cells[(post.talent_id, show_id)]
            cell[0] += 1
            cell[1] += post.engagements

    matrix = []
    for talent in config.talent:
        row = []
        for show in config.shows:
            count, engagements = cells.get((talent.id, show.id), (0, 0))
            row.append(TalentShowCell(
                show_id=show.id,
                show_name=show.name,
                show_color=show.color,
                post_count=count,
                engagements=engagements,
            ))
        matrix.append(TalentShowMatrixEntry(
            talent_id=talent.id,
            name=talent.name,
            avatar_color=talent.color,
            shows=row,
        ))
    return matrix


def build_frequency_chart(posts: Sequence[TalentPost], date_range: DateRange) -> list[TalentFrequencyPoint]:
    post_counts: Counter[str] = Counter()
    active: dict[str, set[str]] = defaultdict(set)
    for post in posts:
        week_start = week_start_for(post.created_at)
        post_counts[week_start] += 1
        active[week_start].add(post.talent_id)

    return [
        TalentFrequencyPoint(
            week_label=short_week_label(week_start),
            week_start=week_start,
            posts_count=post_counts.get(week_start, 0),
            active_talent=len(active.get(week_start, ())),
        )
        for week_start in weeks_between(date_range.start, date_range.end)
    ]


def build_engagement_bars(posts: Sequence[TalentPost], config: DashboardConfig) -> list[TalentEngagementBarEntry]:
    """Average engagement per post for each talent member, highest first."""
    by_talent = group_posts_by_talent(posts)
    entries = []
    for talent in config.talent:
        talent_posts = by_talent.get(talent.id, [])
        show_counts = Counter(show_id for p in talent_posts for show_id in p.show_ids)
        top_show = config.show_by_id(show_counts.most_common(1)[0][0]) if show_counts else None

        entries.append(TalentEngagementBarEntry(
            talent_id=talent.id,
            name=talent.name,
            avatar_color=talent.color,
            avg_engagement=round(_total(talent_posts, "engagements") / len(talent_posts)) if talent_posts else 0,
            total_posts=len(talent_posts),
            top_show=top_show.name if top_show else None,
            top_show_color=top_show.color if top_show else None,
        ))
    return sorted(entries, key=lambda e: e.avg_engagement, reverse=True)


def generate_talent_alerts(
    posts: Sequence[TalentPost],
    previous_posts: Sequence[TalentPost],
    config: DashboardConfig,
    clock: Clock = system_clock,
) -> list[TalentAlert]:
    """Inactive, declining, rising-star and missing-hashtag alerts per talent member."""
    cutoff = clock() - timedelta(days=INACTIVE_DAYS)
    current = group_posts_by_talent(posts)
    previous = group_posts_by_talent(previous_posts)

    alerts = []
    for talent in config.talent:
        talent_posts = current.get(talent.id, [])
        prev_posts = previous.get(talent.id, [])

        if not any(p.created_at >= cutoff for p in talent_posts):
            alerts.append(TalentAlert(
                type="inactive",
                talent_id=talent.id,
                name=talent.name,
                message=f"{talent.name} hasn't posted in the last 2 weeks",
                severity="warning",
            ))

        current_eng = _total(talent_posts, "engagements")
        prev_eng = _total(prev_posts, "engagements")
        if prev_eng > 0:
            delta = (current_eng - prev_eng) / prev_eng * 100
            if delta < DECLINING_PERCENT:
                alerts.append(TalentAlert(
                    type="declining",
                    talent_id=talent.id,
                    name=talent.name,
                    message=f"{talent.name}'s engagement dropped {abs(round(delta))}% vs previous period",
                    severity="warning",
                ))
            if delta > RISING_STAR_PERCENT:
                alerts.append(TalentAlert(
                    type="rising_star",
                    talent_id=talent.id,
                    name=talent.name,
                    message=f"{talent.name}'s engagement up {round(delta)}% vs previous period",
                    severity="success",
                ))

        untagged = [p for p in talent_posts if not p.show_ids]
        if untagged:
            pct = round(len(untagged) / len(talent_posts) * 100)
            if pct >= NO_HASHTAG_PERCENT:
                alerts.append(TalentAlert(
                    type="no_hashtag",
                    talent_id=talent.id,
                    name=talent.name,
                    message=(
                        f"{pct}% of {talent.name}'s posts lack show hashtags "
                        f"({len(untagged)}/{len(talent_posts)})"
                    ),
                    severity="info",
                ))
    return alerts


def build_talent_overview(
    raw_posts: Sequence[TalentPost],
    raw_previous_posts: Sequence[TalentPost],
    date_range: DateRange,
    config: DashboardConfig,
    clock: Clock = system_clock,
) -> TalentOverviewData:
    posts = deduplicate_talent_posts(raw_posts)
    previous_posts = deduplicate_talent_posts(raw_previous_posts)

    return TalentOverviewData(
        advocacy_stats=build_advocacy_stats(posts),
        leaderboard=build_talent_leaderboard(posts, previous_posts, config),
        activity_grid=build_activity_grid(posts, date_range, config),
        show_matrix=build_show_matrix(posts, config),
        frequency_chart=build_frequency_chart(posts, date_range),
        engagement_bars=build_engagement_bars(posts, config),
        alerts=generate_talent_alerts(posts, previous_posts, config, clock),
        date_range=date_range,
        total_posts=len(posts),
        total_talent=len(config.talent),
    )


# ============== Drill-down ==============

def build_talent_drill_down(
    talent_id: str,
    raw_posts: Sequence[TalentPost],
    raw_previous_posts: Sequence[TalentPost],
    date_range: DateRange,
    config: DashboardConfig,
) -> TalentDrillDownData | None:
    """Detail view for one talent member, or None if they aren't configured."""
    talent = config.talent_by_id(talent_id)
    if talent is None:
        return None

    posts = [p for p in deduplicate_talent_posts(raw_posts) if p.talent_id == talent_id]
    prev_posts = [p for p in deduplicate_talent_posts(raw_previous_posts) if p.talent_id == talent_id]

    emv = _total(posts, "emv")
    hero_cards = [
        TalentHeroCard(label="Total Posts", value=len(posts), format="number",
                       delta=compute_delta(len(posts), len(prev_posts))),
        TalentHeroCard(label="Engagements", value=_total(posts, "engagements"), format="number",
                       delta=compute_delta(_total(posts, "engagements"), _total(prev_posts, "engagements"))),
        TalentHeroCard(label="Views", value=_total(posts, "video_views"), format="number",
                       delta=compute_delta(_total(posts, "video_views"), _total(prev_posts, "video_views"))),
        TalentHeroCard(label="EMV", value=round(emv, 2), format="currency",
                       delta=compute_delta(emv, _total(prev_posts, "emv"))),
    ]

    platforms: dict[str, TalentPlatformBreakdown] = {}
    for post in posts:
        entry = platforms.get(post.platform)
        if entry is None:
            entry = platforms[post.platform] = TalentPlatformBreakdown(
                platform=post.platform,
                color=config.platform_config(post.platform).color,
            )
        entry.posts += 1
        entry.engagements += post.engagements
        entry.views += post.video_views
        entry.emv += post.emv
    for entry in platforms.values():
        entry.emv = round(entry.emv, 2)

    show_breakdown = []
    for show in config.shows:
        show_posts = [p for p in posts if show.id in p.show_ids]
        if not show_posts:
            continue
        show_breakdown.append(TalentShowBreakdown(
            show_id=show.id,
            show_name=show.name,
            show_color=show.color,
            posts=len(show_posts),
            engagements=_total(show_posts, "engagements"),
            emv=round(_total(show_posts, "emv"), 2),
        ))

    weekly: dict[str, list[int]] = defaultdict(lambda: [0, 0, 0])
    for post in posts:
        week = weekly[week_start_for(post.created_at)]
        week[0] += post.engagements
        week[1] += 1
        week[2] += post.video_views
    timeline = []
    for week_start in weeks_between(date_range.start, date_range.end):
        engagements, count, views = weekly.get(week_start, (0, 0, 0))
        timeline.append(TalentTimelinePoint(
            week_label=short_week_label(week_start),
            week_start=week_start,
            engagements=engagements,
            posts=count,
            views=views,
        ))

    return TalentDrillDownData(
        talent=talent,
        accounts=[
            TalentAccount(platform=p, url=talent.accounts[p], handle=handle_from_url(talent.accounts[p]))
            for p in talent_platform_ids(talent)
        ],
        hero_cards=hero_cards,
        platform_breakdown=sorted(platforms.values(), key=lambda e: e.engagements, reverse=True),
        show_breakdown=sorted(show_breakdown, key=lambda s: s.engagements, reverse=True),
        timeline=timeline,
        posts=sorted(posts, key=lambda p: p.created_at, reverse=True),
        date_range=date_range,
        total_posts=len(posts),
    )


# ============== Manual logging ==============

def build_manual_talent_post(
    body: TalentPostCreate,
    post_id: str,
    config: DashboardConfig,
    clock: Clock = system_clock,
) -> TalentPost:
    """Row for a hand-logged talent post, with defaulted engagements and computed EMV."""
    engagements = body.engagements
    if engagements is None:
        engagements = body.reactions + body.comments + body.shares + body.saves

    post = TalentPost(
        id=post_id,
        talent_id=body.talent_id,
        platform=body.platform,
        created_at=body.created_at or clock(),
        content=body.content,
        permalink=body.permalink,
        impressions=body.impressions,
        engagements=engagements,
        video_views=body.video_views,
        reactions=body.reactions,
        comments=body.comments,
        shares=body.shares,
        saves=body.saves,
        clicks=body.clicks,
    )
    post.emv = calculate_post_emv(post, config.emv.rates)
    return post
