"""Raw response shapes from the Sprout Social analytics API."""

from pydantic import BaseModel, Field


class SproutProfile(BaseModel):
    customer_profile_id: int
    network_type: str
    name: str = ""
    native_name: str | None = None
    native_id: str | None = None


class SproutProfileAnalyticsRow(BaseModel):
    """One profile-day. ``dimensions`` carries customer_profile_id and reporting_period.by(day)."""

    dimensions: dict[str, int | str]
    metrics: dict[str, float | None] = Field(default_factory=dict)

    @property
    def customer_profile_id(self) -> int:
        return int(self.dimensions["customer_profile_id"])

    @property
    def date(self) -> str:
        return str(self.dimensions["reporting_period.by(day)"])[:10]


class SproutPostRow(BaseModel):
    guid: str | None = None
    text: str | None = None
    perma_link: str | None = None
    created_time: str | None = None
    customer_profile_id: int | str | None = None
    metrics: dict[str, float | None] = Field(default_factory=dict)
