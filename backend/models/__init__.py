"""Database models."""

from database import Base

# Upstream analytics cache
from models.daily_metric import DailyMetric
from models.post import Post
from models.profile import Profile
from models.weekly_snapshot import WeeklySnapshot

# Talent advocacy
from models.talent_post import TalentPost

# Ingestion bookkeeping
from models.refresh_log import RefreshLog, RefreshStatus

__all__ = [
    # Base
    "Base",
    # Analytics cache
    "DailyMetric",
    "Post",
    "Profile",
    "WeeklySnapshot",
    # Talent
    "TalentPost",
    # Ingestion
    "RefreshLog",
    "RefreshStatus",
]
