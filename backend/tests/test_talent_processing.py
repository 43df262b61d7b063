"""Tests for talent advocacy rollups, drill-downs and manual logging."""

from datetime import datetime, timedelta

import pytest

from conftest import FROZEN_NOW, make_talent_post
from schemas.metrics import DateRange
from schemas.talent import TalentPostCreate
from services.talent_attribution import enrich_talent_posts_with_shows
from services.talent_processing import (
    build_manual_talent_post,
    build_talent_drill_down,
    build_talent_overview,
    generate_talent_alerts,
)
from services.week_utils import SAST

DATE_RANGE = DateRange(start="2024-12-30", end="2025-01-12")


@pytest.fixture
def posts(config):
    raw = [
        make_talent_post("t1", "kgotso-molefe", "instagram", FROZEN_NOW - timedelta(days=1),
                         "Tune in to #TheBig3 #smash", engagements=200, impressions=1000, emv=10.0),
        make_talent_post("t2", "kgotso-molefe", "x", FROZEN_NOW - timedelta(days=2),
                         "Big game tonight", engagements=100),
        make_talent_post("t3", "kgotso-molefe", "x", FROZEN_NOW - timedelta(days=2),
                         "big game  TONIGHT", engagements=50),
        make_talent_post("t4", "sky-tshabalala", "instagram", datetime(2024, 12, 31, 12, 0, tzinfo=SAST),
                         "#matchdaylive with the crew", engagements=30),
    ]
    return enrich_talent_posts_with_shows(raw, config.shows, config.brand_hashtags)


@pytest.fixture
def previous_posts(config):
    raw = [
        make_talent_post("o1", "kgotso-molefe", "instagram", datetime(2024, 12, 10, tzinfo=SAST), engagements=100),
        make_talent_post("o2", "sky-tshabalala", "instagram", datetime(2024, 12, 10, tzinfo=SAST), engagements=100),
    ]
    return enrich_talent_posts_with_shows(raw, config.shows, config.brand_hashtags)


class TestTalentOverview:
    @pytest.fixture
    def overview(self, posts, previous_posts, config, clock):
        return build_talent_overview(posts, previous_posts, DATE_RANGE, config, clock)

    def test_duplicates_are_dropped(self, overview):
        assert overview.total_posts == 3
        assert overview.total_talent == 2

    def test_advocacy_stats(self, overview):
        stats = overview.advocacy_stats
        assert stats.active_talent == 2
        assert stats.avg_posts_per_talent == 1.5
        assert stats.top_platform == "instagram"
        assert stats.top_platform_posts == 2
        assert stats.brand_posts == 1

    def test_leaderboard(self, overview):
        first, second = overview.leaderboard
        assert (first.talent_id, first.rank) == ("kgotso-molefe", 1)
        assert (second.talent_id, second.rank) == ("sky-tshabalala", 2)
        assert first.initials == "KM"
        assert (first.brand_posts, second.brand_posts) == (1, 0)
        assert first.total_engagements == 300
        assert first.top_platform == "instagram"
        assert first.delta_engagements == pytest.approx(200.0)

    def test_activity_grid_and_frequency(self, overview):
        kgotso = overview.activity_grid[0]
        assert [(w.week_start, w.posts, w.engagements) for w in kgotso.week_data] == [
            ("2024-12-30", 0, 0),
            ("2025-01-06", 2, 300),
        ]
        assert [(p.posts_count, p.active_talent) for p in overview.frequency_chart] == [(1, 1), (2, 1)]

    def test_show_matrix(self, overview):
        kgotso, sky = overview.show_matrix
        assert [(c.show_id, c.post_count, c.engagements) for c in kgotso.shows] == [
            ("the-big-3", 1, 200),
            ("matchday-live", 0, 0),
        ]
        assert sky.shows[1].post_count == 1

    def test_engagement_bars(self, overview):
        bars = {b.talent_id: b for b in overview.engagement_bars}
        assert bars["kgotso-molefe"].avg_engagement == 150
        assert bars["kgotso-molefe"].top_show == "The Big 3"
        assert bars["sky-tshabalala"].top_show == "Matchday Live"

    def test_alerts(self, overview):
        assert [(a.talent_id, a.type) for a in overview.alerts] == [
            ("kgotso-molefe", "rising_star"),
            ("kgotso-molefe", "no_hashtag"),
            ("sky-tshabalala", "declining"),
        ]
        messages = [a.message for a in overview.alerts]
        assert messages[0] == "Kgotso Molefe's engagement up 200% vs previous period"
        assert messages[1] == "50% of Kgotso Molefe's posts lack show hashtags (1/2)"
        assert messages[2] == "Sky Tshabalala's engagement dropped 70% vs previous period"

    def test_inactive_talent(self, config, clock):
        alerts = generate_talent_alerts([], [], config, clock)
        assert [a.type for a in alerts] == ["inactive", "inactive"]
        assert alerts[0].message == "Kgotso Molefe hasn't posted in the last 2 weeks"


class TestTalentDrillDown:
    def test_drill_down(self, posts, previous_posts, config):
        data = build_talent_drill_down("kgotso-molefe", posts, previous_posts, DATE_RANGE, config)

        assert data.talent.name == "Kgotso Molefe"
        assert [(a.platform, a.handle) for a in data.accounts] == [
            ("instagram", "@kgotsomolefe"),
            ("x", "@KgotsoMolefe"),
        ]
        assert data.total_posts == 2
        assert [p.id for p in data.posts] == ["t1", "t2"]
        hero = {c.label: c for c in data.hero_cards}
        assert hero["Total Posts"].delta == pytest.approx(100.0)
        assert hero["EMV"].value == 10.0
        assert [b.platform for b in data.platform_breakdown] == ["instagram", "x"]
        assert [s.show_id for s in data.show_breakdown] == ["the-big-3"]
        assert [t.week_start for t in data.timeline] == ["2024-12-30", "2025-01-06"]

    def test_unknown_talent(self, posts, config):
        assert build_talent_drill_down("nobody", posts, [], DATE_RANGE, config) is None


class TestManualTalentPost:
    def test_defaults(self, config, clock):
        body = TalentPostCreate(
            talent_id="sky-tshabalala",
            platform="instagram",
            content="Live now",
            impressions=100,
            reactions=10,
            comments=2,
            shares=1,
            saves=1,
            clicks=5,
        )
        post = build_manual_talent_post(body, "tp-1", config, clock)

        assert post.id == "tp-1"
        assert post.created_at == FROZEN_NOW
        # clicks are not part of the default engagement count
        assert post.engagements == 14
        assert post.emv == pytest.approx(14.0)

    def test_explicit_engagements_are_kept(self, config, clock):
        body = TalentPostCreate(talent_id="sky-tshabalala", platform="tiktok", content="Clip", engagements=77)
        assert build_manual_talent_post(body, "tp-2", config, clock).engagements == 77
