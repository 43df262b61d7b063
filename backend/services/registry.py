"""Static configuration registry.

Loads the dashboard's read-only configuration (EMV rate table, platform
metadata, show and talent definitions, alert thresholds and insight
templates) from the YAML files in ``settings.registry_dir``. Every optional
field falls back to an empty or zero default, so a partially filled registry
still yields a usable config.
"""

import logging
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field

from config import get_settings
from schemas.metrics import PLATFORM_IDS

logger = logging.getLogger(__name__)


class EmvRates(BaseModel):
    """EMV rate table: platform id -> action name -> rate per action."""

    currency: str = "ZAR"
    currency_symbol: str = "R"
    last_updated: str | None = None
    rates: dict[str, dict[str, float]] = Field(default_factory=dict)


class PlatformConfig(BaseModel):
    name: str
    color: str = "#888888"
    color_light: str = "#BBBBBB"
    handle: str = ""
    sprout_network_type: str = ""


class ShowConfig(BaseModel):
    id: str
    name: str
    color: str = "#888888"
    logo_path: str = ""
    hashtags: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class TalentConfig(BaseModel):
    id: str
    name: str
    role: str = "Talent"
    color: str = "#888888"
    accounts: dict[str, str | None] = Field(default_factory=dict)


class AlertToggles(BaseModel):
    viral: bool = True
    posting_gap: bool = True
    engagement_drop: bool = True
    milestone: bool = True


class AlertThresholds(BaseModel):
    """Thresholds for the live-week alert rules."""

    viral_threshold_multiplier: float = 3.0
    posting_gap_hours: float = 24
    engagement_drop_threshold: float = 0.7
    milestone_thresholds: list[int] = Field(default_factory=list)
    enabled: AlertToggles = Field(default_factory=AlertToggles)


class AnomalySettings(BaseModel):
    rolling_window_days: int = 7
    sigma_threshold: float = 2.5
    minimum_data_days: int = 14


class FreshnessSettings(BaseModel):
    amber_hours: float = 26
    red_hours: float = 48


class DashboardSettings(BaseModel):
    anomaly_detection: AnomalySettings = Field(default_factory=AnomalySettings)
    discrepancy_threshold_percent: float = 5
    freshness: FreshnessSettings = Field(default_factory=FreshnessSettings)
    sparkline_days: int = 90
    top_posts_limit: int = 10


class DashboardConfig(BaseModel):
    """Everything the analytics builders read from configuration."""

    emv: EmvRates = Field(default_factory=EmvRates)
    platforms: dict[str, PlatformConfig] = Field(default_factory=dict)
    shows: list[ShowConfig] = Field(default_factory=list)
    talent: list[TalentConfig] = Field(default_factory=list)
    brand_hashtags: list[str] = Field(default_factory=list)
    alerts: AlertThresholds = Field(default_factory=AlertThresholds)
    insight_templates: dict[str, dict[str, str]] = Field(default_factory=dict)
    dashboard: DashboardSettings = Field(default_factory=DashboardSettings)

    def platform_config(self, platform: str) -> PlatformConfig:
        """Metadata for a platform, with a bare placeholder for unknown ids."""
        config = self.platforms.get(platform)
        if config is None:
            return PlatformConfig(name=platform.title())
        return config

    def platform_name(self, platform: str) -> str:
        return self.platform_config(platform).name

    def show_by_id(self, show_id: str) -> ShowConfig | None:
        return next((s for s in self.shows if s.id == show_id), None)

    def talent_by_id(self, talent_id: str) -> TalentConfig | None:
        return next((t for t in self.talent if t.id == talent_id), None)

    def insight_template(self, group: str, name: str, default: str) -> str:
        return self.insight_templates.get(group, {}).get(name, default)


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        logger.warning(f"Registry file missing, using defaults: {path}")
        return {}
    with path.open(encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_dashboard_config(directory: Path) -> DashboardConfig:
    """Read and validate all registry files under ``directory``.

    Raises pydantic.ValidationError if a file is present but malformed.
    """
    talent_file = _read_yaml(directory / "talent.yaml")
    shows_file = _read_yaml(directory / "shows.yaml")

    config = DashboardConfig(
        emv=_read_yaml(directory / "emv_rates.yaml"),
        platforms=_read_yaml(directory / "platforms.yaml"),
        shows=shows_file.get("shows", []),
        talent=talent_file.get("talent", []),
        brand_hashtags=talent_file.get("brand_hashtags", []),
        alerts=_read_yaml(directory / "alerts.yaml"),
        insight_templates=_read_yaml(directory / "insight_templates.yaml"),
        dashboard=_read_yaml(directory / "dashboard.yaml"),
    )
    logger.info(
        f"Loaded registry from {directory}: {len(config.platforms)} platforms, "
        f"{len(config.shows)} shows, {len(config.talent)} talent"
    )
    return config


@lru_cache
def get_dashboard_config() -> DashboardConfig:
    """Get the process-wide registry, loaded once."""
    return load_dashboard_config(Path(get_settings().registry_dir))


def talent_platform_ids(talent: TalentConfig) -> list[str]:
    """Platforms on which the talent member has an account, in canonical order."""
    return [p for p in PLATFORM_IDS if talent.accounts.get(p)]


def handle_from_url(url: str | None) -> str | None:
    """Turn an account URL into a display handle.

    "https://www.instagram.com/skytshabalala/" -> "@skytshabalala"
    """
    if not url:
        return None
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    parts = [p for p in parsed.path.split("/") if p]
    last = parts[-1] if parts else ""
    return "@" + last.lstrip("@")
