"""Background scheduler for periodic tasks.

Uses APScheduler to refresh the Sprout analytics cache and to archive each
week's snapshot once the week has ended.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from database import async_session
from services.redis_store import RedisTokenCache
from services.refresh import refresh_all_data
from services.registry import get_dashboard_config
from services.snapshot_archive import archive_completed_week
from services.sprout_client import SproutClient

logger = logging.getLogger(__name__)
settings = get_settings()

WEEK_ARCHIVE_INTERVAL_HOURS = 6

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def scheduled_refresh():
    """Background task pulling fresh data from Sprout."""
    logger.info("Starting scheduled Sprout refresh...")

    async with SproutClient(token_cache=RedisTokenCache()) as client:
        if not client.is_configured():
            logger.info("Sprout credentials not configured, skipping refresh")
            return

        async with async_session() as db:
            try:
                result = await refresh_all_data(db, client, get_dashboard_config())
                logger.info(f"Scheduled refresh done: {result.message}")
            except Exception as e:
                logger.error(f"Scheduled refresh failed: {e}")


async def archive_last_week():
    """Background task archiving the last completed week's snapshot."""
    async with async_session() as db:
        try:
            result = await archive_completed_week(db, get_dashboard_config().emv.rates)
            logger.info(f"Week transition {result.status}: {result.message}")
        except Exception as e:
            logger.error(f"Failed to archive last week: {e}")


def start_scheduler():
    """Start the background scheduler with all jobs."""
    if scheduler.running:
        print("✓ Scheduler already running")
        return

    scheduler.add_job(
        scheduled_refresh,
        trigger=IntervalTrigger(hours=settings.refresh_interval_hours),
        id="sprout_refresh",
        name="Refresh Sprout analytics cache",
        replace_existing=True,
    )

    scheduler.add_job(
        archive_last_week,
        trigger=IntervalTrigger(hours=WEEK_ARCHIVE_INTERVAL_HOURS),
        id="week_transition",
        name="Archive last completed week",
        replace_existing=True,
    )

    scheduler.start()
    print(
        f"✓ Background scheduler started (Sprout refresh every {settings.refresh_interval_hours} hours, "
        f"week archive every {WEEK_ARCHIVE_INTERVAL_HOURS} hours)"
    )


def stop_scheduler():
    """Stop the background scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped")
