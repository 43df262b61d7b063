"""Tests for the lifetime dashboard builders."""

from datetime import datetime, timedelta, timezone

import pytest

from services.data_processing import (
    aggregate_metrics,
    build_dashboard_data,
    donut_data,
    emv_breakdown_bars,
    growth_data,
    heatmap_data,
    per_platform_breakdown,
    sparkline_data,
    thirty_day_growth,
)

from conftest import FROZEN_NOW, frozen_clock, make_daily, make_post


@pytest.fixture
def rows():
    return [
        make_daily("2025-01-01", "instagram", impressions=1000, engagements=100, reactions=50,
                   saves=10, followers=500, posts_published=2),
        make_daily("2025-01-02", "instagram", impressions=2000, engagements=200, reactions=100,
                   followers=520, posts_published=1),
        make_daily("2025-01-02", "youtube", video_views=300, engagements=30, reactions=20,
                   followers=1000, posts_published=1),
    ]


class TestAggregate:
    def test_totals(self, rows, config):
        aggregate = aggregate_metrics(rows, config.emv.rates)

        assert aggregate.total_impressions == 3000
        assert aggregate.total_engagements == 330
        assert aggregate.total_views == 300
        assert aggregate.total_posts == 4
        assert aggregate.engagement_rate == pytest.approx(11.0)

    def test_followers_take_latest_snapshot_per_platform(self, rows, config):
        assert aggregate_metrics(rows, config.emv.rates).total_followers == 1520

    def test_emv_is_summed_per_platform(self, rows, config):
        # instagram: 3000*0.05 + 150*0.35 + 10*2 = 222.5; youtube: 300*0.1 + 20*0.5 = 40
        assert aggregate_metrics(rows, config.emv.rates).emv == pytest.approx(262.5)

    def test_empty(self, config):
        aggregate = aggregate_metrics([], config.emv.rates)
        assert aggregate.total_engagements == 0
        assert aggregate.engagement_rate == 0


class TestPlatforms:
    def test_breakdown_covers_every_platform(self, rows, config):
        platforms = per_platform_breakdown(rows, [], config)

        assert [p.platform for p in platforms] == ["youtube", "instagram", "tiktok", "x", "facebook"]
        available = {p.platform for p in platforms if p.available}
        assert available == {"youtube", "instagram"}

    def test_top_posts_per_platform(self, rows, config):
        posts = [
            make_post("a", "instagram", engagements=5),
            make_post("b", "instagram", engagements=50),
            make_post("c", "youtube", engagements=500),
        ]
        instagram = per_platform_breakdown(rows, posts, config)[1]
        assert [p.id for p in instagram.top_posts] == ["b", "a"]

    def test_donut_shares(self, rows, config):
        donut = donut_data(per_platform_breakdown(rows, [], config), config)

        assert [d.platform for d in donut] == ["youtube", "instagram"]
        assert sum(d.percentage for d in donut) == pytest.approx(100)
        assert donut[0].color == "#FF0000"

    def test_emv_bars_match_platform_emv(self, rows, config):
        bars = {b.platform: b for b in emv_breakdown_bars(rows, config)}
        assert set(bars) == {"youtube", "instagram"}
        assert bars["instagram"].total == pytest.approx(222.5)
        assert bars["instagram"].other == pytest.approx(20)


class TestCharts:
    def test_growth_uses_last_reported_day_of_month(self):
        rows = [
            make_daily("2024-12-05", "instagram", followers=400),
            make_daily("2024-12-28", "instagram", followers=450),
            make_daily("2024-12-10", "x", followers=90),
            make_daily("2025-01-02", "instagram", followers=470),
        ]

        points = growth_data(rows)

        assert [p.month for p in points] == ["2024-12", "2025-01"]
        assert points[0].instagram == 450
        assert points[0].total == 540
        assert points[1].x == 0

    def test_heatmap_spans_365_days(self):
        posts = [make_post("a"), make_post("b"), make_post("c", created_at=FROZEN_NOW - timedelta(days=400))]

        days = heatmap_data(posts, frozen_clock)

        assert len(days) == 365
        assert days[-1].date == "2025-01-08"
        assert days[-1].count == 2
        assert days[-1].day_of_week == 3
        assert sum(d.count for d in days) == 2

    def test_sparkline_omits_missing_days_and_old_rows(self):
        rows = [
            make_daily("2024-01-01", "x", engagements=999),
            make_daily("2025-01-01", "x", engagements=5),
            make_daily("2025-01-01", "instagram", engagements=7),
        ]
        points = sparkline_data(rows, "engagements", 90, frozen_clock)
        assert [(p.date, p.value) for p in points] == [("2025-01-01", 12)]

    def test_thirty_day_growth(self):
        rows = [
            make_daily("2025-01-05", "x", engagements=150),
            make_daily("2024-11-20", "x", engagements=100),
        ]
        growth = thirty_day_growth(rows, "engagements", frozen_clock)
        assert growth.value == 50
        assert growth.percentage == pytest.approx(50)
        assert growth.direction == "up"


def test_dashboard_payload(rows, config):
    posts = [make_post("a", "instagram", engagements=80), make_post("b", "youtube", engagements=90)]
    last_updated = datetime(2025, 1, 8, 6, 0, tzinfo=timezone.utc)

    data = build_dashboard_data(rows, posts, last_updated, config, frozen_clock)

    assert len(data.hero_cards) == 7
    assert data.hero_cards[0].label == "Total Views"
    emv_card = data.hero_cards[-1]
    assert (emv_card.key, emv_card.currency_symbol) == ("emv", "R")
    assert data.hero_cards[0].currency_symbol is None
    assert [p.id for p in data.top_posts] == ["b", "a"]
    assert data.data_quality.freshness_level == "fresh"
    zero_alerts = {(a.platform, a.metric) for a in data.data_quality.zero_value_alerts}
    assert ("instagram", "Views") in zero_alerts
    assert ("youtube", "Impressions") in zero_alerts
