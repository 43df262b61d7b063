"""Tests for Sprout ingestion and the weekly snapshot archive."""

import pytest
from sqlalchemy import select

from conftest import make_daily
from models import RefreshLog, RefreshStatus
from schemas.metrics import WeekRange
from schemas.sprout import SproutPostRow, SproutProfile, SproutProfileAnalyticsRow
from services import metrics_repository as repo
from services.refresh import daily_row_from_sprout, post_from_sprout, refresh_all_data, to_platform_id
from services.snapshot_archive import archive_completed_week, backfill_snapshots, load_week_snapshot
from services.sprout_client import SproutAPIError


def analytics_row(profile_id: int, day: str, **metrics) -> SproutProfileAnalyticsRow:
    return SproutProfileAnalyticsRow(
        dimensions={"customer_profile_id": profile_id, "reporting_period.by(day)": f"{day}T00:00:00Z"},
        metrics=metrics,
    )


class FakeSproutClient:
    """Stands in for SproutClient with canned responses."""

    def __init__(self, profiles, analytics=(), posts=(), post_error=None):
        self.profiles = profiles
        self.analytics = list(analytics)
        self.posts = list(posts)
        self.post_error = post_error
        self.analytics_calls = []

    async def get_profiles(self):
        return self.profiles

    async def get_all_profile_analytics(self, profile_ids, start_date, end_date, metrics):
        self.analytics_calls.append((list(profile_ids), start_date, end_date))
        return self.analytics

    async def get_all_post_analytics(self, profile_ids, start_date, end_date, metrics, fields, sort=None):
        if self.post_error:
            raise self.post_error
        return self.posts


PROFILES = [
    SproutProfile(customer_profile_id=1, network_type="fb_instagram_account", name="Smash IG", native_name="smashsportsza"),
    SproutProfile(customer_profile_id=2, network_type="youtube", name="Smash YT"),
    SproutProfile(customer_profile_id=3, network_type="linkedin_company", name="Smash LinkedIn"),
]


class TestMapping:
    def test_platform_ids(self, config):
        assert to_platform_id("fb_instagram_account", config) == "instagram"
        assert to_platform_id("twitter", config) == "x"
        assert to_platform_id("linkedin_company", config) is None

    def test_daily_row(self):
        row = daily_row_from_sprout(analytics_row(
            1, "2025-01-06",
            impressions=1000, reactions=50, comments=5, shares=3, saves=2, post_clicks=10,
            **{"lifetime_snapshot.followers_count": 900, "net_follower_growth": 4, "posts_sent_count": 2},
        ), "instagram")

        assert row.date == "2025-01-06"
        assert row.profile_id == 1
        assert row.engagements == 70
        assert row.followers == 900
        assert row.follower_growth == 4
        assert row.posts_published == 2

    def test_youtube_post_uses_views_for_impressions(self, config):
        post = post_from_sprout(SproutPostRow(
            guid="yt-1",
            text="Highlights",
            created_time="2025-01-06T18:00:00Z",
            metrics={"lifetime.impressions": 0, "lifetime.views": 400, "lifetime.reactions": 20},
        ), 2, "youtube", config)

        assert post.impressions == 400
        assert post.video_views == 400
        assert post.saves == 0
        assert post.emv == pytest.approx(400 * 0.1 + 20 * 0.5)

    def test_post_without_guid_gets_synthetic_id(self, config):
        post = post_from_sprout(SproutPostRow(created_time="2025-01-06T18:00:00Z", text="x" * 600), 1, "instagram", config)
        assert post.id == "instagram-2025-01-06T18:00:00Z-1"
        assert len(post.content) == 500

    def test_unparseable_created_time_is_skipped(self, config):
        assert post_from_sprout(SproutPostRow(guid="bad", created_time="yesterday"), 1, "instagram", config) is None


class TestRefreshAllData:
    async def test_full_run(self, db, config, clock):
        client = FakeSproutClient(
            PROFILES,
            analytics=[
                analytics_row(1, "2025-01-06", impressions=100, reactions=10),
                analytics_row(2, "2025-01-06", video_views=50),
                analytics_row(3, "2025-01-06", impressions=999),
            ],
            posts=[
                SproutPostRow(guid="p1", customer_profile_id="1", created_time="2025-01-06T08:00:00Z",
                              metrics={"lifetime.impressions": 100, "lifetime.reactions": 7}),
                SproutPostRow(guid="p2", customer_profile_id="2", created_time="not a date"),
                SproutPostRow(guid="p3", customer_profile_id="3", created_time="2025-01-06T08:00:00Z"),
                SproutPostRow(guid="p4", created_time="2025-01-06T08:00:00Z"),
            ],
        )
        result = await refresh_all_data(db, client, config, clock)

        assert result.status == "completed"
        assert [p.platform for p in result.profiles] == ["instagram", "youtube"]
        assert result.daily_metrics == 3
        assert result.posts == 4
        assert result.records_updated == 3
        assert result.message == "Refresh complete. 3 records updated."

        assert client.analytics_calls == [([1, 2], "2024-01-09", "2025-01-08")]
        assert {r.platform for r in await repo.get_daily_metrics(db)} == {"instagram", "youtube"}
        (post,) = await repo.get_posts(db)
        assert (post.id, post.platform, post.engagements) == ("p1", "instagram", 7)
        assert await repo.get_last_refresh_time(db) is not None

    async def test_no_matching_profiles(self, db, config, clock):
        client = FakeSproutClient([PROFILES[2]])
        result = await refresh_all_data(db, client, config, clock)

        assert result.message == "No matching profiles found. Check platform configuration."
        assert result.profiles[0].platform is None
        assert client.analytics_calls == []

    async def test_failure_is_logged_and_raised(self, db, config, clock):
        client = FakeSproutClient(
            PROFILES,
            analytics=[analytics_row(1, "2025-01-06", impressions=100)],
            post_error=SproutAPIError("Sprout API error 500: boom", 500),
        )
        with pytest.raises(SproutAPIError):
            await refresh_all_data(db, client, config, clock)

        log = (await db.execute(select(RefreshLog))).scalar_one()
        assert log.status == RefreshStatus.FAILED
        assert log.error == "Sprout API error 500: boom"
        assert log.records_updated == 1
        assert await repo.get_last_refresh_time(db) is None


class TestSnapshotArchive:
    async def test_archives_last_completed_week(self, db, config, clock):
        await repo.upsert_daily_metrics(db, [make_daily("2025-01-02", profile_id=1, impressions=100, engagements=10)])

        result = await archive_completed_week(db, config.emv.rates, clock)
        assert result.status == "ok"
        assert result.week_start == "2024-12-30"
        assert result.rows == 6
        assert result.message == "Archived week 2024-12-30 -> 2025-01-05 (6 rows)"

        again = await archive_completed_week(db, config.emv.rates, clock)
        assert again.status == "skipped"
        assert again.message == "Week 2024-12-30 already archived (6 rows)"

    async def test_nothing_to_archive(self, db, config, clock):
        result = await archive_completed_week(db, config.emv.rates, clock)
        assert result.status == "skipped"
        assert result.message == "No daily metrics found for week 2024-12-30"

    async def test_week_in_progress_is_never_stored(self, db, config, clock):
        await repo.upsert_daily_metrics(db, [make_daily("2025-01-06", profile_id=1, impressions=100)])
        week = WeekRange(week_start="2025-01-06", week_end="2025-01-12")

        rows = await load_week_snapshot(db, week, config.emv.rates, clock)
        assert len(rows) == 6
        assert await repo.get_weekly_snapshot(db, "2025-01-06") == []

    async def test_backfill_counts_weeks_with_data(self, db, config, clock):
        await repo.upsert_daily_metrics(db, [
            make_daily("2024-12-24", profile_id=1, impressions=10),
            make_daily("2024-12-17", profile_id=1, impressions=20),
        ])
        assert await backfill_snapshots(db, "2024-12-30", config.emv.rates, clock) == 2
        assert [w.week_start for w in await repo.get_available_weeks(db)] == ["2024-12-23", "2024-12-16"]
