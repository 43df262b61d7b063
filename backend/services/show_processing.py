"""Show rollups: per-show totals, comparisons and drill-downs from attributed posts."""

import logging
from collections import Counter, defaultdict
from collections.abc import Sequence

from schemas.metrics import DateRange, PostMetrics
from schemas.shows import (
    HashtagHealthEntry,
    ShowComparisonEntry,
    ShowContributionSegment,
    ShowDrillDownData,
    ShowEngagementBreakdown,
    ShowHeroCard,
    ShowOverviewData,
    ShowPlatformBreakdown,
    ShowSummary,
    ShowTimelinePoint,
    ShowTopHashtag,
    ShowValue,
)
from services.registry import DashboardConfig, ShowConfig
from services.show_attribution import (
    attribute_post_to_shows,
    count_attributed_posts,
    extract_hashtags,
    get_attributed_posts,
)
from services.stats import compute_delta, engagement_rate
from services.week_utils import short_week_label, week_start_for

logger = logging.getLogger(__name__)

TOP_HASHTAGS_LIMIT = 20

ENGAGEMENT_TYPES = (
    ("Reactions", "reactions", "#00D4FF"),
    ("Comments", "comments", "#7B2FF7"),
    ("Shares", "shares", "#00FF88"),
    ("Saves", "saves", "#FFB800"),
    ("Clicks", "clicks", "#FF3366"),
)


def _total(posts: Sequence[PostMetrics], field: str):
    return sum(getattr(p, field) for p in posts)


def build_show_summaries(
    attributed: dict[str, list[PostMetrics]],
    previous_attributed: dict[str, list[PostMetrics]],
    shows: Sequence[ShowConfig],
) -> list[ShowSummary]:
    summaries = []
    for show in shows:
        posts = attributed.get(show.id, [])
        prev = previous_attributed.get(show.id, [])
        engagements = _total(posts, "engagements")
        views = _total(posts, "video_views")
        emv = _total(posts, "emv")

        summaries.append(ShowSummary(
            show_id=show.id,
            show_name=show.name,
            color=show.color,
            logo_path=show.logo_path,
            total_engagements=engagements,
            total_views=views,
            total_impressions=_total(posts, "impressions"),
            total_posts=len(posts),
            emv_total=emv,
            engagement_rate=engagement_rate(engagements, _total(posts, "impressions")),
            delta_engagements=compute_delta(engagements, _total(prev, "engagements")),
            delta_views=compute_delta(views, _total(prev, "video_views")),
            delta_posts=compute_delta(len(posts), len(prev)),
            delta_emv=compute_delta(emv, _total(prev, "emv")),
        ))
    return summaries


def build_show_comparison(
    attributed: dict[str, list[PostMetrics]],
    shows: Sequence[ShowConfig],
) -> list[ShowComparisonEntry]:
    entries = []
    for show in shows:
        posts = attributed.get(show.id, [])
        entries.append(ShowComparisonEntry(
            show_id=show.id,
            show_name=show.name,
            color=show.color,
            engagements=_total(posts, "engagements"),
            views=_total(posts, "video_views"),
            impressions=_total(posts, "impressions"),
            emv=_total(posts, "emv"),
            posts=len(posts),
        ))
    return sorted(entries, key=lambda e: e.engagements, reverse=True)


def build_show_contribution(
    attributed: dict[str, list[PostMetrics]],
    shows: Sequence[ShowConfig],
) -> list[ShowContributionSegment]:
    """Each show's share of attributed engagement.

    A post tagged for two shows counts towards both.
    """
    values = {show.id: _total(attributed.get(show.id, []), "engagements") for show in shows}
    total = sum(values.values())
    segments = [
        ShowContributionSegment(
            show_id=show.id,
            show_name=show.name,
            color=show.color,
            value=values[show.id],
            percentage=values[show.id] / total * 100 if total > 0 else 0.0,
        )
        for show in shows
    ]
    return sorted(segments, key=lambda s: s.value, reverse=True)


def build_show_timeline(
    attributed: dict[str, list[PostMetrics]],
    shows: Sequence[ShowConfig],
) -> list[ShowTimelinePoint]:
    """Weekly engagements per show, one value per configured show in every point."""
    weeks: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for show in shows:
        for post in attributed.get(show.id, []):
            weeks[week_start_for(post.created_at)][show.id] += post.engagements

    return [
        ShowTimelinePoint(
            week_label=short_week_label(week_start),
            week_start=week_start,
            values=[ShowValue(show_id=show.id, value=weeks[week_start].get(show.id, 0)) for show in shows],
        )
        for week_start in sorted(weeks)
    ]


def build_hashtag_health(posts: Sequence[PostMetrics], shows: Sequence[ShowConfig]) -> list[HashtagHealthEntry]:
    """Usage of each configured show hashtag, most used first."""
    tag_to_show = {f"#{tag.lower()}": show for show in shows for tag in show.hashtags}

    counts: Counter[str] = Counter()
    engagements: dict[str, int] = defaultdict(int)
    platforms: dict[str, Counter[str]] = defaultdict(Counter)
    for post in posts:
        for tag in extract_hashtags(post.content):
            if tag not in tag_to_show:
                continue
            counts[tag] += 1
            engagements[tag] += post.engagements
            platforms[tag][post.platform] += 1

    entries = []
    for tag, count in counts.items():
        show = tag_to_show[tag]
        top = platforms[tag].most_common(1)
        entries.append(HashtagHealthEntry(
            hashtag=tag,
            show_id=show.id,
            show_name=show.name,
            show_color=show.color,
            post_count=count,
            avg_engagement=round(engagements[tag] / count),
            total_engagements=engagements[tag],
            top_platform=top[0][0] if top else None,
        ))
    return sorted(entries, key=lambda e: e.post_count, reverse=True)


def build_shows_overview(
    posts: Sequence[PostMetrics],
    previous_posts: Sequence[PostMetrics],
    date_range: DateRange,
    config: DashboardConfig,
) -> ShowOverviewData:
    shows = config.shows
    attributed = get_attributed_posts(posts, shows)
    previous_attributed = get_attributed_posts(previous_posts, shows)
    attributed_count, unattributed_count = count_attributed_posts(posts, shows)

    logger.debug(
        f"Shows overview {date_range.start}..{date_range.end}: "
        f"{attributed_count} attributed, {unattributed_count} unattributed"
    )
    return ShowOverviewData(
        summaries=build_show_summaries(attributed, previous_attributed, shows),
        comparison=build_show_comparison(attributed, shows),
        contribution=build_show_contribution(attributed, shows),
        timeline=build_show_timeline(attributed, shows),
        hashtag_health=build_hashtag_health(posts, shows),
        date_range=date_range,
        total_attributed_posts=attributed_count,
        total_unattributed_posts=unattributed_count,
    )


# ============== Drill-down ==============

def build_drill_down_hero_cards(
    posts: Sequence[PostMetrics],
    previous_posts: Sequence[PostMetrics],
) -> list[ShowHeroCard]:
    cards = (
        ("Total Engagements", "number", _total(posts, "engagements"), _total(previous_posts, "engagements")),
        ("Total Views", "number", _total(posts, "video_views"), _total(previous_posts, "video_views")),
        ("Posts", "number", len(posts), len(previous_posts)),
        ("EMV", "currency", _total(posts, "emv"), _total(previous_posts, "emv")),
    )
    return [
        ShowHeroCard(label=label, value=value, format=fmt, delta=compute_delta(value, previous))
        for label, fmt, value, previous in cards
    ]


def build_platform_breakdown(posts: Sequence[PostMetrics], config: DashboardConfig) -> list[ShowPlatformBreakdown]:
    entries: dict[str, ShowPlatformBreakdown] = {}
    for post in posts:
        entry = entries.get(post.platform)
        if entry is None:
            entry = entries[post.platform] = ShowPlatformBreakdown(
                platform=post.platform,
                color=config.platform_config(post.platform).color,
            )
        entry.engagements += post.engagements
        entry.views += post.video_views
        entry.impressions += post.impressions
        entry.emv += post.emv
        entry.posts += 1
    return sorted(entries.values(), key=lambda e: e.engagements, reverse=True)


def build_engagement_breakdown(posts: Sequence[PostMetrics]) -> list[ShowEngagementBreakdown]:
    """Engagement split by interaction type; empty types are left out."""
    breakdown = [
        ShowEngagementBreakdown(name=name, value=_total(posts, field), color=color)
        for name, field, color in ENGAGEMENT_TYPES
    ]
    return [b for b in breakdown if b.value > 0]


def build_top_hashtags(posts: Sequence[PostMetrics]) -> list[ShowTopHashtag]:
    counts: Counter[str] = Counter()
    engagements: dict[str, int] = defaultdict(int)
    for post in posts:
        for tag in extract_hashtags(post.content):
            counts[tag] += 1
            engagements[tag] += post.engagements

    return [
        ShowTopHashtag(hashtag=tag, post_count=count, avg_engagement=round(engagements[tag] / count))
        for tag, count in counts.most_common(TOP_HASHTAGS_LIMIT)
    ]


def build_show_drill_down(
    show_id: str,
    posts: Sequence[PostMetrics],
    previous_posts: Sequence[PostMetrics],
    date_range: DateRange,
    config: DashboardConfig,
) -> ShowDrillDownData | None:
    """Detail view for one show, or None if the show isn't configured."""
    show = config.show_by_id(show_id)
    if show is None:
        return None

    shows = config.shows
    show_posts = [p for p in posts if show_id in attribute_post_to_shows(p.content, shows)]
    previous_show_posts = [p for p in previous_posts if show_id in attribute_post_to_shows(p.content, shows)]

    return ShowDrillDownData(
        show=show,
        hero_cards=build_drill_down_hero_cards(show_posts, previous_show_posts),
        platform_breakdown=build_platform_breakdown(show_posts, config),
        engagement_breakdown=build_engagement_breakdown(show_posts),
        timeline=build_show_timeline({show_id: show_posts}, [show]),
        posts=sorted(show_posts, key=lambda p: p.engagements, reverse=True),
        top_hashtags=build_top_hashtags(show_posts),
        date_range=date_range,
        total_posts=len(show_posts),
    )
