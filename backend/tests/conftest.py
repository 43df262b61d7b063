"""Shared fixtures: a frozen clock, an in-memory registry and row factories."""

from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from models import Base
from schemas.metrics import DailyMetricRow, PostMetrics, TalentPost
from services.registry import (
    AlertThresholds,
    DashboardConfig,
    EmvRates,
    PlatformConfig,
    ShowConfig,
    TalentConfig,
)
from services.week_utils import SAST

# Wednesday of the week starting Monday 2025-01-06, 10:00 SAST (58 hours in)
FROZEN_NOW = datetime(2025, 1, 8, 10, 0, tzinfo=SAST)


def frozen_clock() -> datetime:
    return FROZEN_NOW


def make_daily(date: str, platform: str = "instagram", **metrics) -> DailyMetricRow:
    return DailyMetricRow(date=date, platform=platform, **metrics)


def make_post(
    post_id: str,
    platform: str = "instagram",
    created_at: datetime = FROZEN_NOW,
    content: str = "",
    **metrics,
) -> PostMetrics:
    return PostMetrics(id=post_id, platform=platform, created_at=created_at, content=content, **metrics)


def make_talent_post(
    post_id: str,
    talent_id: str,
    platform: str = "instagram",
    created_at: datetime = FROZEN_NOW,
    content: str = "",
    **fields,
) -> TalentPost:
    return TalentPost(
        id=post_id,
        talent_id=talent_id,
        platform=platform,
        created_at=created_at,
        content=content,
        **fields,
    )


@pytest.fixture
def clock():
    return frozen_clock


@pytest.fixture
def config() -> DashboardConfig:
    return DashboardConfig(
        emv=EmvRates(rates={
            "instagram": {"impression": 0.05, "like": 0.35, "comment": 1.0, "share": 1.5, "save": 2.0},
            "youtube": {"view": 0.1, "like": 0.5, "comment": 1.0},
            "x": {"impression": 0.01, "like": 0.2, "retweet": 0.5, "reply": 0.8},
        }),
        platforms={
            "youtube": PlatformConfig(name="YouTube", color="#FF0000", sprout_network_type="youtube"),
            "instagram": PlatformConfig(name="Instagram", color="#E1306C", sprout_network_type="instagram"),
            "tiktok": PlatformConfig(name="TikTok", color="#00F2EA", sprout_network_type="tiktok"),
            "x": PlatformConfig(name="X", color="#1DA1F2", sprout_network_type="twitter"),
            "facebook": PlatformConfig(name="Facebook", color="#1877F2", sprout_network_type="facebook"),
        },
        shows=[
            ShowConfig(id="the-big-3", name="The Big 3", color="#00D4FF",
                       hashtags=["thebig3", "big3show"], keywords=["the big three"]),
            ShowConfig(id="matchday-live", name="Matchday Live", color="#7B2FF7",
                       hashtags=["matchdaylive"], keywords=["matchday live"]),
        ],
        talent=[
            TalentConfig(id="kgotso-molefe", name="Kgotso Molefe", color="#FF6B35", accounts={
                "instagram": "https://www.instagram.com/kgotsomolefe/",
                "x": "https://x.com/KgotsoMolefe",
                "youtube": None,
            }),
            TalentConfig(id="sky-tshabalala", name="Sky Tshabalala", color="#4ECDC4", accounts={
                "instagram": "https://www.instagram.com/skytshabalala/",
                "tiktok": "https://www.tiktok.com/@skytshabalala",
            }),
        ],
        brand_hashtags=["smash", "smashsports"],
        alerts=AlertThresholds(milestone_thresholds=[1000, 10000, 100000]),
    )


@pytest.fixture
async def db():
    """A session on a fresh in-memory SQLite database."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()
