"""Sprout ingestion orchestrator.

Pulls the brand's profiles, a year of daily profile analytics and the posts
published in the same window from Sprout, maps them onto our platform ids
and upserts them into the analytics cache. Every run is recorded in the
refresh log.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from models import RefreshStatus
from schemas.metrics import DailyMetricRow, PostMetrics
from schemas.refresh import ProfileSummary, RefreshResult
from schemas.sprout import SproutPostRow, SproutProfile, SproutProfileAnalyticsRow
from services import metrics_repository as repo
from services.emv_calculator import calculate_post_emv
from services.registry import DashboardConfig
from services.sprout_client import SproutClient
from services.week_utils import Clock, format_date, sast_today, system_clock

logger = logging.getLogger(__name__)
settings = get_settings()

# Sprout reports Instagram business accounts under their Facebook link type
NETWORK_TYPE_ALIASES = {"fb_instagram_account": "instagram"}

PROFILE_METRICS = (
    "impressions",
    "reactions",
    "comments",
    "shares",
    "saves",
    "post_clicks",
    "video_views",
    "net_follower_growth",
    "lifetime_snapshot.followers_count",
    "posts_sent_count",
)

# Saves are not available per post; clicks only come back for X and Facebook.
POST_METRICS = (
    "lifetime.impressions",
    "lifetime.reactions",
    "lifetime.comments_count",
    "lifetime.shares_count",
    "lifetime.post_content_clicks",
    "lifetime.video_views",
    "lifetime.views",
)

POST_FIELDS = ("created_time", "perma_link", "text", "customer_profile_id", "guid")
POST_SORT = ("lifetime.impressions:desc",)
CONTENT_MAX_LENGTH = 500


def to_platform_id(network_type: str, config: DashboardConfig) -> str | None:
    """Our platform id for a Sprout network type, None if it isn't configured."""
    normalised = NETWORK_TYPE_ALIASES.get(network_type, network_type)
    for platform_id, platform in config.platforms.items():
        if platform.sprout_network_type == normalised:
            return platform_id
    return None


def _parse_iso_datetime(val: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string, returning None on failure."""
    if not val:
        return None
    try:
        return datetime.fromisoformat(val.replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None


def _count(metrics: dict, key: str) -> int:
    return int(metrics.get(key) or 0)


def daily_row_from_sprout(row: SproutProfileAnalyticsRow, platform: str) -> DailyMetricRow:
    m = row.metrics
    reactions = _count(m, "reactions")
    comments = _count(m, "comments")
    shares = _count(m, "shares")
    saves = _count(m, "saves")
    clicks = _count(m, "post_clicks")
    return DailyMetricRow(
        date=row.date,
        platform=platform,
        profile_id=row.customer_profile_id,
        impressions=_count(m, "impressions"),
        engagements=reactions + comments + shares + saves + clicks,
        reactions=reactions,
        comments=comments,
        shares=shares,
        saves=saves,
        video_views=_count(m, "video_views"),
        clicks=clicks,
        followers=_count(m, "lifetime_snapshot.followers_count"),
        follower_growth=_count(m, "net_follower_growth"),
        posts_published=_count(m, "posts_sent_count"),
    )


def post_from_sprout(
    row: SproutPostRow,
    profile_id: int,
    platform: str,
    config: DashboardConfig,
) -> PostMetrics | None:
    """Map a Sprout post row; None when it has no usable created_time."""
    created_at = _parse_iso_datetime(row.created_time)
    if created_at is None:
        logger.warning(f"Skipping Sprout post {row.guid} with unparseable created_time {row.created_time!r}")
        return None

    m = row.metrics
    reactions = _count(m, "lifetime.reactions")
    comments = _count(m, "lifetime.comments_count")
    shares = _count(m, "lifetime.shares_count")
    clicks = _count(m, "lifetime.post_content_clicks")
    impressions = _count(m, "lifetime.impressions")
    # YouTube impressions always come back as 0; views stand in for reach
    if impressions == 0 and platform == "youtube":
        impressions = _count(m, "lifetime.views") or _count(m, "lifetime.video_views")
    video_views = _count(m, "lifetime.video_views") or _count(m, "lifetime.views")

    post = PostMetrics(
        id=row.guid or f"{platform}-{row.created_time}-{profile_id}",
        platform=platform,
        profile_id=profile_id,
        created_at=created_at,
        content=(row.text or "")[:CONTENT_MAX_LENGTH],
        permalink=row.perma_link or "",
        impressions=impressions,
        engagements=reactions + comments + shares + clicks,
        video_views=video_views,
        reactions=reactions,
        comments=comments,
        shares=shares,
        saves=0,
        clicks=clicks,
    )
    post.emv = calculate_post_emv(post, config.emv.rates)
    return post


def _summaries(profiles: list[SproutProfile], config: DashboardConfig) -> list[ProfileSummary]:
    return [
        ProfileSummary(
            customer_profile_id=p.customer_profile_id,
            name=p.name,
            network=p.network_type,
            platform=to_platform_id(p.network_type, config),
        )
        for p in profiles
    ]


async def refresh_all_data(
    db: AsyncSession,
    client: SproutClient,
    config: DashboardConfig,
    clock: Clock = system_clock,
) -> RefreshResult:
    """Run one full ingestion pass. Errors propagate after the run is logged as failed."""
    log = await repo.start_refresh(db, clock)
    records_updated = 0

    try:
        logger.info("Starting Sprout Social data refresh...")
        profiles = await client.get_profiles()
        relevant = [p for p in profiles if to_platform_id(p.network_type, config)]
        logger.info(f"Found {len(profiles)} profiles, {len(relevant)} match configured platforms")

        if not relevant:
            await repo.complete_refresh(db, log, RefreshStatus.COMPLETED, 0, clock=clock)
            return RefreshResult(
                status="completed",
                message="No matching profiles found. Check platform configuration.",
                profiles=_summaries(profiles, config),
                timestamp=clock(),
            )

        platform_by_profile: dict[int, str] = {}
        for p in relevant:
            platform = to_platform_id(p.network_type, config)
            await repo.upsert_profile(
                db, p.customer_profile_id, platform, p.name, p.native_name or p.name, p.native_id
            )
            platform_by_profile[p.customer_profile_id] = platform

        end_date = sast_today(clock)
        start_date = end_date - timedelta(days=settings.refresh_lookback_days)
        start, end = format_date(start_date), format_date(end_date)
        profile_ids = list(platform_by_profile)

        logger.info(f"Fetching profile analytics from {start} to {end}...")
        analytics = await client.get_all_profile_analytics(profile_ids, start, end, PROFILE_METRICS)
        daily_rows = [
            daily_row_from_sprout(row, platform_by_profile[row.customer_profile_id])
            for row in analytics
            if row.customer_profile_id in platform_by_profile
        ]
        records_updated += await repo.upsert_daily_metrics(db, daily_rows)
        logger.info(f"Upserted {len(daily_rows)} daily metric rows")

        logger.info("Fetching post analytics...")
        raw_posts = await client.get_all_post_analytics(
            profile_ids, start, end, POST_METRICS, POST_FIELDS, POST_SORT
        )
        posts = []
        for row in raw_posts:
            # customer_profile_id arrives as a string on post rows
            if not row.customer_profile_id:
                continue
            profile_id = int(row.customer_profile_id)
            platform = platform_by_profile.get(profile_id)
            if platform is None:
                continue
            post = post_from_sprout(row, profile_id, platform, config)
            if post is not None:
                posts.append(post)
        records_updated += await repo.upsert_posts(db, posts)
        logger.info(f"Upserted {len(posts)} of {len(raw_posts)} fetched posts")

    except Exception as e:
        logger.error(f"Refresh failed: {e}")
        await db.rollback()
        await db.refresh(log)
        await repo.complete_refresh(db, log, RefreshStatus.FAILED, records_updated, str(e), clock=clock)
        raise

    log = await repo.complete_refresh(db, log, RefreshStatus.COMPLETED, records_updated, clock=clock)
    logger.info(f"Refresh complete: {records_updated} records updated in {log.duration_ms}ms")

    return RefreshResult(
        status="completed",
        message=f"Refresh complete. {records_updated} records updated.",
        profiles=_summaries(relevant, config),
        daily_metrics=len(analytics),
        posts=len(raw_posts),
        records_updated=records_updated,
        timestamp=clock(),
    )
