"""Refresh router - manual Sprout ingestion and data freshness."""

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from database import get_db
from middleware.rate_limit import limiter
from schemas.refresh import RefreshResult, RefreshStatusInfo
from services import metrics_repository as repo
from services.redis_store import RedisTokenCache
from services.refresh import refresh_all_data
from services.registry import DashboardConfig, get_dashboard_config
from services.sprout_client import SproutAPIError, SproutClient
from services.week_utils import Clock, get_clock

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api/refresh", tags=["refresh"])


async def get_sprout_client() -> AsyncGenerator[SproutClient, None]:
    """Request-scoped Sprout client sharing its OAuth token through Redis."""
    async with SproutClient(token_cache=RedisTokenCache()) as client:
        yield client


@router.post("", response_model=RefreshResult)
@limiter.limit(settings.refresh_rate_limit)
async def trigger_refresh(
    request: Request,  # Required for rate limiting - must be named 'request'
    db: Annotated[AsyncSession, Depends(get_db)],
    client: Annotated[SproutClient, Depends(get_sprout_client)],
    config: Annotated[DashboardConfig, Depends(get_dashboard_config)],
    clock: Annotated[Clock, Depends(get_clock)],
):
    """Pull the last year of profile and post analytics from Sprout."""
    if not client.is_configured():
        raise HTTPException(status_code=503, detail="Sprout API credentials not configured")

    try:
        return await refresh_all_data(db, client, config, clock)
    except SproutAPIError as e:
        raise HTTPException(status_code=502, detail=f"Refresh failed: {e}")


@router.get("/status", response_model=RefreshStatusInfo)
async def get_refresh_status(
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
):
    return await repo.get_refresh_status(db, clock)
