# ABOUTME: SQLModel for the persisted sync session state machine.
# ABOUTME: A single row records status, progress, and the outcome of the last run.

from datetime import datetime
from enum import Enum

from pydantic import BaseModel
from sqlmodel import Field, SQLModel

from linkedin_sync.clock import utc_now

SESSION_ROW_ID = 1


class SyncStatus(str, Enum):
    """States of the sync session."""

    IDLE = "idle"
    SYNCING = "syncing"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class SyncTrigger(str, Enum):
    """What started a sync: the user or the recurring timer."""

    MANUAL = "manual"
    AUTO = "auto"


class SyncProgress(BaseModel):
    current: int = 0
    total: int | None = None
    page_index: int = 0
    started_at: datetime | None = None


class SyncSession(SQLModel, table=True):
    """The one logical sync session of this installation."""

    __tablename__ = "sync_sessions"

    id: int = Field(default=SESSION_ROW_ID, primary_key=True)
    status: SyncStatus = SyncStatus.IDLE
    trigger: SyncTrigger | None = None
    progress_current: int = 0
    progress_total: int | None = None
    page_index: int = 0
    started_at: datetime | None = None
    last_sync_at: datetime | None = None
    total_synced: int = 0
    last_error: str | None = None
    owner_id: str | None = None
    heartbeat_at: datetime | None = None
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def progress(self) -> SyncProgress:
        """Return the progress fields grouped together."""
        return SyncProgress(
            current=self.progress_current,
            total=self.progress_total,
            page_index=self.page_index,
            started_at=self.started_at,
        )
