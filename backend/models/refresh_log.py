"""RefreshLog model - one row per ingestion run."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class RefreshStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RefreshLog(Base):
    """Audit trail of data refreshes. The latest completed run drives freshness."""

    __tablename__ = "refresh_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[RefreshStatus] = mapped_column(
        Enum(RefreshStatus, values_callable=lambda enum: [e.value for e in enum]),
        default=RefreshStatus.RUNNING,
        nullable=False
    )
    records_updated: Mapped[int] = mapped_column(Integer, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<RefreshLog {self.id}: {self.status.value} ({self.records_updated} records)>"
