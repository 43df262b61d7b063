"""SMASH Dashboard - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from sqlalchemy.engine import make_url

from config import get_settings
from database import engine
from middleware.rate_limit import limiter, rate_limit_exceeded_handler
from models import Base
from routers import analytics_router, refresh_router, shows_router, talent_router
from services.redis_store import RedisStore
from services.registry import get_dashboard_config
from services.scheduler import start_scheduler, stop_scheduler

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(database_url: str) -> None:
    """SQLite won't create the directory holding its file."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - create tables on startup, cleanup on shutdown."""
    # Startup: create database tables
    _ensure_sqlite_dir(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Fail fast on a broken registry
    config = get_dashboard_config()
    print(f"✓ Registry loaded: {len(config.platforms)} platforms, {len(config.shows)} shows, "
          f"{len(config.talent)} talent")

    # Check Redis connectivity
    redis_ok = await RedisStore.health_check()
    if redis_ok:
        print("✓ Redis connection established")
    else:
        print("⚠ Redis not available - Sprout OAuth tokens will not be shared")

    if settings.enable_scheduler:
        start_scheduler()

    yield

    # Shutdown: stop scheduler and close Redis connection pool
    stop_scheduler()
    await RedisStore.close()


app = FastAPI(
    title="SMASH Dashboard API",
    description="Social media analytics: lifetime, weekly, live week, shows and talent",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(analytics_router)
app.include_router(refresh_router)
app.include_router(shows_router)
app.include_router(talent_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "smash-dashboard"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "SMASH Dashboard API",
        "version": "0.1.0",
        "docs": "/docs",
    }
