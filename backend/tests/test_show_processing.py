"""Tests for show rollups and drill-downs."""

from datetime import datetime

import pytest

from conftest import make_post
from schemas.metrics import DateRange
from services.show_processing import build_show_drill_down, build_shows_overview
from services.week_utils import SAST

DATE_RANGE = DateRange(start="2024-12-30", end="2025-01-12")


@pytest.fixture
def posts():
    return [
        make_post("p1", "instagram", content="Catch #TheBig3 tonight", engagements=100,
                  video_views=10, impressions=1000, reactions=80, comments=20, emv=5.0),
        make_post("p2", "youtube", created_at=datetime(2024, 12, 31, 18, 0, tzinfo=SAST),
                  content="Matchday live highlights #smash", engagements=50, video_views=500),
        make_post("p3", "x", content="#big3show meets #matchdaylive", engagements=30),
        make_post("p4", "instagram", content="Behind the scenes", engagements=999),
    ]


@pytest.fixture
def previous_posts():
    return [make_post("p0", content="#thebig3 warm-up", engagements=50)]


class TestShowsOverview:
    @pytest.fixture
    def overview(self, posts, previous_posts, config):
        return build_shows_overview(posts, previous_posts, DATE_RANGE, config)

    def test_attribution_counts(self, overview):
        assert overview.total_attributed_posts == 3
        assert overview.total_unattributed_posts == 1

    def test_summaries(self, overview):
        big3, matchday = overview.summaries
        assert big3.total_engagements == 130
        assert big3.total_posts == 2
        assert big3.delta_engagements == pytest.approx(160.0)
        assert big3.delta_posts == pytest.approx(100.0)
        assert matchday.total_engagements == 80
        assert matchday.total_views == 500
        # no previous posts but activity now
        assert matchday.delta_engagements == 100.0

    def test_empty_periods_have_no_delta(self, config):
        overview = build_shows_overview([], [], DATE_RANGE, config)
        assert overview.summaries[0].delta_engagements is None
        assert overview.contribution[0].percentage == 0.0

    def test_contribution_shares(self, overview):
        big3, matchday = overview.contribution
        assert big3.show_id == "the-big-3"
        assert big3.percentage == pytest.approx(130 / 210 * 100)
        assert matchday.percentage == pytest.approx(80 / 210 * 100)

    def test_comparison_sorted_by_engagement(self, overview):
        assert [e.show_id for e in overview.comparison] == ["the-big-3", "matchday-live"]

    def test_timeline_has_a_value_per_show(self, overview):
        first, second = overview.timeline
        assert first.week_start == "2024-12-30"
        assert first.week_label == "Dec 30"
        assert [(v.show_id, v.value) for v in first.values] == [("the-big-3", 0), ("matchday-live", 50)]
        assert [(v.show_id, v.value) for v in second.values] == [("the-big-3", 130), ("matchday-live", 30)]

    def test_hashtag_health_covers_show_tags_only(self, overview):
        health = {e.hashtag: e for e in overview.hashtag_health}
        assert set(health) == {"#thebig3", "#big3show", "#matchdaylive"}
        assert health["#thebig3"].avg_engagement == 100
        assert health["#thebig3"].top_platform == "instagram"
        assert health["#matchdaylive"].show_id == "matchday-live"


class TestShowDrillDown:
    def test_drill_down(self, posts, previous_posts, config):
        data = build_show_drill_down("the-big-3", posts, previous_posts, DATE_RANGE, config)

        assert data.show.name == "The Big 3"
        assert data.total_posts == 2
        assert [p.id for p in data.posts] == ["p1", "p3"]
        hero = {c.label: c for c in data.hero_cards}
        assert hero["Total Engagements"].value == 130
        assert hero["Total Engagements"].delta == pytest.approx(160.0)
        assert [b.platform for b in data.platform_breakdown] == ["instagram", "x"]
        assert [(b.name, b.value) for b in data.engagement_breakdown] == [("Reactions", 80), ("Comments", 20)]
        assert {h.hashtag for h in data.top_hashtags} == {"#thebig3", "#big3show", "#matchdaylive"}
        assert len(data.timeline) == 1

    def test_unknown_show(self, posts, config):
        assert build_show_drill_down("no-such-show", posts, [], DATE_RANGE, config) is None
