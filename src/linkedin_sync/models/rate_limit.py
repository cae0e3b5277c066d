# ABOUTME: SQLModel for the persisted per-category request budget.
# ABOUTME: One row per category survives restarts and is only reset by explicit user action.

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from linkedin_sync.clock import utc_now


class RateLimitCategory(str, Enum):
    """Independent budgets for outbound LinkedIn actions."""

    BULK = "bulk"
    INCREMENTAL = "incremental"
    QUICK_ADD = "quick_add"


class RateLimitScope(str, Enum):
    """Window that refused an action."""

    HOURLY = "hourly"
    DAILY = "daily"


class RateLimitBudget(SQLModel, table=True):
    """Counters and window starts for one rate-limit category."""

    __tablename__ = "rate_limit_budgets"

    category: RateLimitCategory = Field(primary_key=True)
    hourly_count: int = Field(default=0, ge=0)
    daily_count: int = Field(default=0, ge=0)
    hour_window_start: datetime = Field(default_factory=utc_now)
    day_window_start: datetime = Field(default_factory=utc_now)
    last_action_at: datetime | None = None
