"""Routers package."""

from .analytics import router as analytics_router
from .refresh import router as refresh_router
from .shows import router as shows_router
from .talent import router as talent_router

__all__ = [
    "analytics_router",
    "refresh_router",
    "shows_router",
    "talent_router",
]
