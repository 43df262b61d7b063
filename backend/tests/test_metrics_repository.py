"""Tests for the analytics cache repository on in-memory SQLite."""

from datetime import datetime, timedelta

import pytest

from conftest import FROZEN_NOW, make_daily, make_post, make_talent_post
from models import RefreshStatus
from schemas.metrics import WeeklySnapshotRow
from services import metrics_repository as repo
from services.week_utils import SAST


class TestDailyMetrics:
    async def test_upsert_overwrites_by_profile_and_date(self, db):
        await repo.upsert_daily_metrics(db, [
            make_daily("2025-01-06", profile_id=1, impressions=100),
            make_daily("2025-01-07", profile_id=1, impressions=200),
        ])
        written = await repo.upsert_daily_metrics(db, [make_daily("2025-01-06", profile_id=1, impressions=150)])

        rows = await repo.get_daily_metrics(db)
        assert written == 1
        assert await repo.count_daily_metrics(db) == 2
        assert [(r.date, r.impressions) for r in rows] == [("2025-01-06", 150), ("2025-01-07", 200)]

    async def test_date_filter(self, db):
        await repo.upsert_daily_metrics(db, [
            make_daily("2025-01-05", profile_id=1),
            make_daily("2025-01-06", profile_id=1),
        ])
        rows = await repo.get_daily_metrics(db, "2025-01-06", "2025-01-12")
        assert [r.date for r in rows] == ["2025-01-06"]

    async def test_by_platform_sums_profiles(self, db):
        await repo.upsert_daily_metrics(db, [
            make_daily("2025-01-06", "instagram", profile_id=1, impressions=100, followers=500),
            make_daily("2025-01-06", "instagram", profile_id=2, impressions=50, followers=800),
            make_daily("2025-01-06", "x", profile_id=3, impressions=10, followers=40),
        ])
        rows = {r.platform: r for r in await repo.get_daily_metrics_by_platform(db, "2025-01-06", "2025-01-12")}

        assert rows["instagram"].impressions == 150
        # followers is a snapshot, not additive
        assert rows["instagram"].followers == 800
        assert rows["x"].impressions == 10

    async def test_empty_upsert(self, db):
        assert await repo.upsert_daily_metrics(db, []) == 0


class TestPosts:
    async def test_posts_filter_on_sast_days(self, db):
        sunday_night = datetime(2025, 1, 5, 23, 30, tzinfo=SAST)
        await repo.upsert_posts(db, [
            make_post("late-sunday", created_at=sunday_night),
            make_post("wednesday", created_at=FROZEN_NOW),
        ])

        this_week = await repo.get_posts(db, "2025-01-06", "2025-01-12")
        last_week = await repo.get_posts(db, "2024-12-30", "2025-01-05")

        assert [p.id for p in this_week] == ["wednesday"]
        assert [p.id for p in last_week] == ["late-sunday"]
        assert last_week[0].created_at == sunday_night

    async def test_all_posts_newest_first(self, db):
        await repo.upsert_posts(db, [
            make_post("old", created_at=FROZEN_NOW - timedelta(days=30)),
            make_post("new", created_at=FROZEN_NOW),
        ])
        assert [p.id for p in await repo.get_posts(db)] == ["new", "old"]

    async def test_upsert_refreshes_metrics_but_keeps_content(self, db):
        await repo.upsert_posts(db, [make_post("p1", content="original", engagements=5)])
        await repo.upsert_posts(db, [make_post("p1", content="edited", engagements=50, emv=3.5)])

        (post,) = await repo.get_posts(db)
        assert post.content == "original"
        assert post.engagements == 50
        assert post.emv == 3.5


class TestTalentPosts:
    async def test_add_and_read_back(self, db):
        await repo.add_talent_post(db, make_talent_post(
            "tp-1", "kgotso-molefe", "x", FROZEN_NOW, "On air #thebig3", engagements=12,
        ))
        posts = await repo.get_talent_posts(db, "2025-01-06", "2025-01-12")

        assert [(p.id, p.talent_id, p.engagements) for p in posts] == [("tp-1", "kgotso-molefe", 12)]
        # attribution is applied by callers, not stored
        assert posts[0].show_ids == []
        assert await repo.get_talent_posts(db, "2024-12-30", "2025-01-05") == []


def snapshot(week_start: str, platform: str = "total", **fields) -> WeeklySnapshotRow:
    return WeeklySnapshotRow(week_start=week_start, week_end=week_start, platform=platform, **fields)


class TestWeeklySnapshots:
    async def test_upsert_and_read(self, db):
        await repo.upsert_weekly_snapshots(db, [snapshot("2024-12-30", views=1), snapshot("2024-12-30", "x")])
        await repo.upsert_weekly_snapshots(db, [snapshot("2024-12-30", views=9)])

        rows = {r.platform: r for r in await repo.get_weekly_snapshot(db, "2024-12-30")}
        assert set(rows) == {"total", "x"}
        assert rows["total"].views == 9

    async def test_recent_snapshots_newest_first(self, db):
        await repo.upsert_weekly_snapshots(db, [
            snapshot(week_start) for week_start in ("2024-12-16", "2024-12-23", "2024-12-30", "2025-01-06")
        ])
        recent = await repo.get_recent_snapshots(db, "2024-12-30", weeks=2)
        assert [r.week_start for r in recent] == ["2024-12-30", "2024-12-23"]

    async def test_available_weeks(self, db):
        await repo.upsert_weekly_snapshots(db, [snapshot("2024-12-30"), snapshot("2024-12-30", "x"), snapshot("2025-01-06")])
        weeks = await repo.get_available_weeks(db)

        assert [w.week_start for w in weeks] == ["2025-01-06", "2024-12-30"]
        assert weeks[0].week_end == "2025-01-12"
        assert weeks[0].label == "6 Jan 2025"


class TestRefreshLog:
    async def test_never_refreshed_is_stale(self, db):
        status = await repo.get_refresh_status(db, lambda: FROZEN_NOW)
        assert status.is_stale is True
        assert status.last_refresh_at is None
        assert await repo.get_last_refresh_time(db) is None

    @pytest.mark.parametrize("hours_ago, stale", [(2, False), (30, True)])
    async def test_freshness(self, db, hours_ago, stale):
        started = FROZEN_NOW - timedelta(hours=hours_ago)
        log = await repo.start_refresh(db, lambda: started)
        await repo.complete_refresh(
            db, log, RefreshStatus.COMPLETED, 10, clock=lambda: started + timedelta(seconds=1.5)
        )

        status = await repo.get_refresh_status(db, lambda: FROZEN_NOW)
        assert status.is_stale is stale
        assert status.hours_ago == pytest.approx(hours_ago, abs=0.1)
        assert status.last_duration_ms == 1500

    async def test_failed_runs_do_not_count(self, db):
        log = await repo.start_refresh(db, lambda: FROZEN_NOW)
        await repo.complete_refresh(db, log, RefreshStatus.FAILED, 0, "boom", clock=lambda: FROZEN_NOW)
        assert await repo.get_last_refresh_time(db) is None
