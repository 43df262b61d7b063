"""Database access for the analytics cache.

Every read returns the plain row schemas the analytics builders consume, so
nothing outside this module touches ORM objects. Date ranges are inclusive
SAST calendar days; post timestamps are stored in UTC.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import DailyMetric, Post, Profile, RefreshLog, RefreshStatus, TalentPost, WeeklySnapshot
from schemas.metrics import AvailableWeek, DailyMetricRow, PostMetrics, TalentPost as TalentPostRow, WeeklySnapshotRow
from schemas.refresh import RefreshStatusInfo
from services.week_utils import (
    Clock,
    format_week_label,
    shift_date,
    system_clock,
    week_range_for,
    week_start_datetime,
)

logger = logging.getLogger(__name__)

STALENESS_THRESHOLD_HOURS = 26
AVAILABLE_WEEKS_LIMIT = 52
_IN_CHUNK = 500

DAILY_FIELDS = (
    "impressions", "engagements", "reactions", "comments", "shares", "saves",
    "video_views", "clicks", "followers", "follower_growth", "posts_published",
)
POST_FIELDS = (
    "impressions", "engagements", "video_views", "reactions", "comments",
    "shares", "saves", "clicks", "emv",
)
SNAPSHOT_FIELDS = tuple(f for f in WeeklySnapshotRow.model_fields if f not in ("week_start", "platform"))


def to_utc(value: datetime) -> datetime:
    """Normalise to aware UTC; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _day_bounds(start: str, end: str) -> tuple[datetime, datetime]:
    """[start 00:00 SAST, day after end 00:00 SAST) as UTC instants."""
    return to_utc(week_start_datetime(start)), to_utc(week_start_datetime(shift_date(end, 1)))


def _chunks(values: Sequence, size: int = _IN_CHUNK) -> Iterable[Sequence]:
    for i in range(0, len(values), size):
        yield values[i:i + size]


# ============== Daily metrics ==============

async def count_daily_metrics(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(DailyMetric))
    return result.scalar_one()


async def get_daily_metrics(
    session: AsyncSession,
    start: str | None = None,
    end: str | None = None,
) -> list[DailyMetricRow]:
    """Per-profile daily rows, oldest first."""
    query = select(DailyMetric).order_by(DailyMetric.date)
    if start:
        query = query.where(DailyMetric.date >= start)
    if end:
        query = query.where(DailyMetric.date <= end)
    result = await session.execute(query)
    return [DailyMetricRow.model_validate(m, from_attributes=True) for m in result.scalars()]


async def get_daily_metrics_by_platform(session: AsyncSession, start: str, end: str) -> list[DailyMetricRow]:
    """Daily rows summed across profiles of the same platform.

    Followers is a snapshot, so it takes the max rather than the sum.
    """
    summed = [func.sum(getattr(DailyMetric, f)).label(f) for f in DAILY_FIELDS if f != "followers"]
    query = (
        select(
            DailyMetric.date,
            DailyMetric.platform,
            func.max(DailyMetric.followers).label("followers"),
            *summed,
        )
        .where(DailyMetric.date >= start, DailyMetric.date <= end)
        .group_by(DailyMetric.date, DailyMetric.platform)
        .order_by(DailyMetric.date)
    )
    result = await session.execute(query)
    return [DailyMetricRow(**row._mapping) for row in result]


async def upsert_daily_metrics(session: AsyncSession, rows: Sequence[DailyMetricRow]) -> int:
    """Insert or overwrite rows keyed by (profile_id, date). Returns rows written."""
    if not rows:
        return 0

    first = min(r.date for r in rows)
    last = max(r.date for r in rows)
    profile_ids = {r.profile_id for r in rows}
    result = await session.execute(
        select(DailyMetric).where(
            DailyMetric.profile_id.in_(profile_ids),
            DailyMetric.date >= first,
            DailyMetric.date <= last,
        )
    )
    existing = {(m.profile_id, m.date): m for m in result.scalars()}

    for row in rows:
        metric = existing.get((row.profile_id, row.date))
        if metric is None:
            metric = DailyMetric(profile_id=row.profile_id, date=row.date)
            session.add(metric)
            existing[(row.profile_id, row.date)] = metric
        metric.platform = row.platform
        for field in DAILY_FIELDS:
            setattr(metric, field, getattr(row, field))

    await session.commit()
    return len(rows)


# ============== Posts ==============

def _post_row(post: Post) -> PostMetrics:
    return PostMetrics.model_validate(post, from_attributes=True)


async def get_posts(
    session: AsyncSession,
    start: str | None = None,
    end: str | None = None,
) -> list[PostMetrics]:
    """Posts created on SAST days start..end (all posts when unbounded), newest first."""
    query = select(Post).order_by(Post.created_at.desc())
    if start and end:
        lower, upper = _day_bounds(start, end)
        query = query.where(Post.created_at >= lower, Post.created_at < upper)
    result = await session.execute(query)
    return [_post_row(p) for p in result.scalars()]


async def upsert_posts(session: AsyncSession, posts: Sequence[PostMetrics]) -> int:
    """Insert or refresh posts keyed by id. Content and timestamps are kept from first sight."""
    if not posts:
        return 0

    existing: dict[str, Post] = {}
    ids = [p.id for p in posts]
    for chunk in _chunks(ids):
        result = await session.execute(select(Post).where(Post.id.in_(chunk)))
        existing.update((p.id, p) for p in result.scalars())

    for row in posts:
        post = existing.get(row.id)
        if post is None:
            post = Post(
                id=row.id,
                profile_id=row.profile_id,
                platform=row.platform,
                created_at=to_utc(row.created_at),
                content=row.content,
                permalink=row.permalink,
            )
            session.add(post)
            existing[row.id] = post
        for field in POST_FIELDS:
            setattr(post, field, getattr(row, field))

    await session.commit()
    return len(posts)


# ============== Profiles ==============

async def upsert_profile(
    session: AsyncSession,
    customer_profile_id: int,
    platform: str,
    name: str,
    handle: str | None,
    native_id: str | None,
) -> Profile:
    profile = await session.get(Profile, customer_profile_id)
    if profile is None:
        profile = Profile(customer_profile_id=customer_profile_id)
        session.add(profile)
    profile.platform = platform
    profile.name = name
    profile.handle = handle
    profile.native_id = native_id
    profile.updated_at = datetime.now(timezone.utc)
    await session.commit()
    return profile


# ============== Talent posts ==============

async def get_talent_posts(session: AsyncSession, start: str, end: str) -> list[TalentPostRow]:
    """Talent posts on SAST days start..end, newest first, without show attribution."""
    lower, upper = _day_bounds(start, end)
    result = await session.execute(
        select(TalentPost)
        .where(TalentPost.created_at >= lower, TalentPost.created_at < upper)
        .order_by(TalentPost.created_at.desc())
    )
    return [TalentPostRow.model_validate(p, from_attributes=True) for p in result.scalars()]


async def add_talent_post(session: AsyncSession, post: TalentPostRow) -> TalentPostRow:
    record = TalentPost(
        id=post.id,
        talent_id=post.talent_id,
        platform=post.platform,
        created_at=to_utc(post.created_at),
        content=post.content,
        permalink=post.permalink,
        **{field: getattr(post, field) for field in POST_FIELDS},
    )
    session.add(record)
    await session.commit()
    logger.info(f"Recorded talent post {post.id} for {post.talent_id} on {post.platform}")
    return post


# ============== Weekly snapshots ==============

def _snapshot_row(snapshot: WeeklySnapshot) -> WeeklySnapshotRow:
    return WeeklySnapshotRow.model_validate(snapshot, from_attributes=True)


async def get_weekly_snapshot(session: AsyncSession, week_start: str) -> list[WeeklySnapshotRow]:
    result = await session.execute(select(WeeklySnapshot).where(WeeklySnapshot.week_start == week_start))
    return [_snapshot_row(s) for s in result.scalars()]


async def get_recent_snapshots(session: AsyncSession, up_to: str, weeks: int = 12) -> list[WeeklySnapshotRow]:
    """Snapshot rows of the ``weeks`` most recent archived weeks up to ``up_to``, newest first."""
    week_starts = (
        select(WeeklySnapshot.week_start)
        .where(WeeklySnapshot.week_start <= up_to)
        .distinct()
        .order_by(WeeklySnapshot.week_start.desc())
        .limit(weeks)
    )
    result = await session.execute(
        select(WeeklySnapshot)
        .where(WeeklySnapshot.week_start.in_(week_starts.scalar_subquery()))
        .order_by(WeeklySnapshot.week_start.desc(), WeeklySnapshot.platform)
    )
    return [_snapshot_row(s) for s in result.scalars()]


async def upsert_weekly_snapshots(session: AsyncSession, rows: Sequence[WeeklySnapshotRow]) -> int:
    """Insert or overwrite snapshot rows keyed by (week_start, platform)."""
    if not rows:
        return 0

    week_starts = {r.week_start for r in rows}
    result = await session.execute(select(WeeklySnapshot).where(WeeklySnapshot.week_start.in_(week_starts)))
    existing = {(s.week_start, s.platform): s for s in result.scalars()}

    for row in rows:
        snapshot = existing.get((row.week_start, row.platform))
        if snapshot is None:
            snapshot = WeeklySnapshot(week_start=row.week_start, platform=row.platform)
            session.add(snapshot)
            existing[(row.week_start, row.platform)] = snapshot
        for field in SNAPSHOT_FIELDS:
            setattr(snapshot, field, getattr(row, field))

    await session.commit()
    logger.debug(f"Upserted {len(rows)} weekly snapshot rows for {sorted(week_starts)}")
    return len(rows)


async def get_available_weeks(session: AsyncSession, limit: int = AVAILABLE_WEEKS_LIMIT) -> list[AvailableWeek]:
    """Archived weeks for the week picker, newest first."""
    result = await session.execute(
        select(WeeklySnapshot.week_start)
        .distinct()
        .order_by(WeeklySnapshot.week_start.desc())
        .limit(limit)
    )
    weeks = []
    for week_start in result.scalars():
        week = week_range_for(week_start)
        weeks.append(AvailableWeek(
            week_start=week.week_start,
            week_end=week.week_end,
            label=format_week_label(week_start),
        ))
    return weeks


# ============== Refresh log ==============

async def start_refresh(session: AsyncSession, clock: Clock = system_clock) -> RefreshLog:
    log = RefreshLog(started_at=to_utc(clock()), status=RefreshStatus.RUNNING)
    session.add(log)
    await session.commit()
    return log


async def complete_refresh(
    session: AsyncSession,
    log: RefreshLog,
    status: RefreshStatus,
    records_updated: int,
    error: str | None = None,
    clock: Clock = system_clock,
) -> RefreshLog:
    completed = to_utc(clock())
    log.completed_at = completed
    log.status = status
    log.records_updated = records_updated
    log.error = error
    log.duration_ms = int((completed - to_utc(log.started_at)).total_seconds() * 1000)
    await session.commit()
    return log


async def _latest_completed(session: AsyncSession) -> RefreshLog | None:
    result = await session.execute(
        select(RefreshLog)
        .where(RefreshLog.status == RefreshStatus.COMPLETED)
        .order_by(RefreshLog.completed_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_last_refresh_time(session: AsyncSession) -> datetime | None:
    log = await _latest_completed(session)
    return to_utc(log.completed_at) if log and log.completed_at else None


async def get_refresh_status(session: AsyncSession, clock: Clock = system_clock) -> RefreshStatusInfo:
    """Last successful refresh and whether it is older than the staleness threshold."""
    log = await _latest_completed(session)
    if log is None or log.completed_at is None:
        return RefreshStatusInfo(last_refresh_at=None, is_stale=True, hours_ago=None, last_duration_ms=None)

    completed = to_utc(log.completed_at)
    hours_ago = (to_utc(clock()) - completed).total_seconds() / 3600
    return RefreshStatusInfo(
        last_refresh_at=completed,
        is_stale=hours_ago > STALENESS_THRESHOLD_HOURS,
        hours_ago=round(hours_ago, 1),
        last_duration_ms=log.duration_ms,
    )
