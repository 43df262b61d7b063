"""Weekly snapshot archive.

Completed weeks are summarised once from the daily metrics and stored in
weekly_snapshots, so the weekly comparison reads a handful of rows instead
of re-aggregating a year of daily data. The week in progress is always
computed on the fly and never stored.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from schemas.metrics import WeekRange, WeeklySnapshotRow
from schemas.refresh import ArchiveResult
from services import metrics_repository as repo
from services.emv_calculator import RateTable
from services.week_utils import Clock, is_partial_week, last_completed_week, previous_week, system_clock
from services.weekly_processing import build_snapshot_from_daily_metrics

logger = logging.getLogger(__name__)

BACKFILL_WEEKS = 12


async def load_week_snapshot(
    db: AsyncSession,
    week: WeekRange,
    rates: RateTable,
    clock: Clock = system_clock,
) -> list[WeeklySnapshotRow]:
    """Stored snapshot rows for ``week``, building (and archiving) them when missing.

    Returns an empty list when there is neither a snapshot nor daily data.
    """
    stored = await repo.get_weekly_snapshot(db, week.week_start)
    if stored:
        return stored

    daily = await repo.get_daily_metrics_by_platform(db, week.week_start, week.week_end)
    if not daily:
        return []

    rows = build_snapshot_from_daily_metrics(daily, week.week_start, week.week_end, rates)
    if not is_partial_week(week.week_start, week.week_end, clock):
        await repo.upsert_weekly_snapshots(db, rows)
        logger.info(f"Archived snapshot for week {week.week_start} ({len(rows)} rows)")
    return rows


async def backfill_snapshots(
    db: AsyncSession,
    before_week_start: str,
    rates: RateTable,
    clock: Clock = system_clock,
    weeks: int = BACKFILL_WEEKS,
) -> int:
    """Make sure the ``weeks`` weeks preceding ``before_week_start`` are archived.

    Returns how many weeks have snapshot rows afterwards.
    """
    available = 0
    week_start = before_week_start
    for _ in range(weeks):
        week = previous_week(week_start)
        if await load_week_snapshot(db, week, rates, clock):
            available += 1
        week_start = week.week_start
    return available


async def archive_completed_week(
    db: AsyncSession,
    rates: RateTable,
    clock: Clock = system_clock,
) -> ArchiveResult:
    """Archive the most recent fully elapsed week unless it is already stored."""
    week = last_completed_week(clock)

    existing = await repo.get_weekly_snapshot(db, week.week_start)
    if existing:
        return ArchiveResult(
            status="skipped",
            message=f"Week {week.week_start} already archived ({len(existing)} rows)",
            week_start=week.week_start,
            rows=len(existing),
        )

    daily = await repo.get_daily_metrics_by_platform(db, week.week_start, week.week_end)
    if not daily:
        return ArchiveResult(
            status="skipped",
            message=f"No daily metrics found for week {week.week_start}",
            week_start=week.week_start,
        )

    rows = build_snapshot_from_daily_metrics(daily, week.week_start, week.week_end, rates)
    await repo.upsert_weekly_snapshots(db, rows)
    logger.info(f"Archived week {week.week_start} -> {week.week_end} ({len(rows)} rows)")
    return ArchiveResult(
        status="ok",
        message=f"Archived week {week.week_start} -> {week.week_end} ({len(rows)} rows)",
        week_start=week.week_start,
        rows=len(rows),
    )
