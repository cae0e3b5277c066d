# ABOUTME: Configuration module for application settings.
# ABOUTME: Uses pydantic-settings for environment variable overrides and provides cached access.

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from linkedin_sync.models.rate_limit import RateLimitCategory


class CategoryLimits(BaseModel):
    """Static request budget and pacing for one rate-limit category."""

    max_per_hour: Annotated[int, Field(description="Maximum actions per rolling hour", ge=1)]
    max_per_day: Annotated[int, Field(description="Maximum actions per rolling day", ge=1)]
    delay_min_seconds: Annotated[
        float, Field(description="Minimum gap between two actions in seconds", ge=0)
    ]
    delay_max_seconds: Annotated[
        float, Field(description="Upper bound of the gap including random jitter", ge=0)
    ]

    @model_validator(mode="after")
    def _check_delay_range(self) -> "CategoryLimits":
        if self.delay_max_seconds < self.delay_min_seconds:
            raise ValueError(
                f"delay_max_seconds ({self.delay_max_seconds}) cannot be lower than "
                f"delay_min_seconds ({self.delay_min_seconds})"
            )
        return self


class RateLimitSettings(BaseModel):
    """Rate-limit configuration for every category of outbound action."""

    bulk: CategoryLimits = CategoryLimits(
        max_per_hour=200, max_per_day=1000, delay_min_seconds=2, delay_max_seconds=5
    )
    incremental: CategoryLimits = CategoryLimits(
        max_per_hour=50, max_per_day=100, delay_min_seconds=3, delay_max_seconds=7
    )
    quick_add: CategoryLimits = CategoryLimits(
        max_per_hour=20, max_per_day=100, delay_min_seconds=1, delay_max_seconds=2
    )

    @model_validator(mode="before")
    @classmethod
    def _merge_category_defaults(cls, data: Any) -> Any:
        # Environment overrides may set a single value of a category.
        if not isinstance(data, dict):
            return data
        merged: dict[str, Any] = {}
        for name, value in data.items():
            field = cls.model_fields.get(name)
            default = field.default if field is not None else None
            if isinstance(value, dict) and isinstance(default, CategoryLimits):
                value = {**default.model_dump(), **value}
            merged[name] = value
        return merged

    def for_category(self, category: "RateLimitCategory") -> CategoryLimits:
        """Return the limits configured for a category.

        Args:
            category: The rate-limit category to look up.

        Returns:
            The CategoryLimits for that category.
        """
        limits: CategoryLimits = getattr(self, category.value)
        return limits


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the
    LINKEDIN_SYNC_ prefix (e.g., LINKEDIN_SYNC_DB_PATH). Nested rate-limit
    values use a double underscore (e.g., LINKEDIN_SYNC_RATE_LIMITS__BULK__MAX_PER_HOUR).
    """

    model_config = SettingsConfigDict(
        env_prefix="LINKEDIN_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    db_path: Annotated[Path, Field(description="Path to SQLite database file")] = (
        Path.home() / ".linkedin-sync" / "data.db"
    )

    accounts_file: Annotated[Path, Field(description="Path to accounts JSON file")] = (
        Path.home() / ".linkedin-sync" / "accounts.json"
    )

    rate_limits: RateLimitSettings = RateLimitSettings()

    page_size: Annotated[int, Field(description="Connections requested per page", ge=1)] = 80

    max_connections: Annotated[
        int, Field(description="Hard ceiling on connections fetched in one sync", ge=1)
    ] = 30000

    page_delay_seconds: Annotated[
        float, Field(description="Fixed delay between two page requests", ge=0)
    ] = 1.0

    retry_delay_seconds: Annotated[
        float, Field(description="Base delay for retry backoff", ge=0)
    ] = 2.0

    max_retries: Annotated[int, Field(description="Attempts per request", ge=1)] = 3

    max_backoff_seconds: Annotated[
        float, Field(description="Upper bound for a single backoff sleep", ge=0)
    ] = 30.0

    request_timeout_seconds: Annotated[
        float, Field(description="Timeout for a single HTTP request", gt=0)
    ] = 15.0

    enrichment_delay_seconds: Annotated[
        float, Field(description="Fixed delay between two profile enrichments", ge=0)
    ] = 2.0

    enrich_batch_limit: Annotated[
        int, Field(description="Profiles enriched per manual enrichment run", ge=1)
    ] = 50

    auto_sync_interval_hours: Annotated[
        float, Field(description="Interval between automatic syncs in hours", gt=0)
    ] = 12

    headers_max_age_minutes: Annotated[
        float, Field(description="Maximum credential age accepted by auto-sync", gt=0)
    ] = 3

    credential_refresh_timeout_seconds: Annotated[
        float, Field(description="How long a manual sync waits for fresh credentials", ge=0)
    ] = 30

    credential_poll_interval_seconds: Annotated[
        float, Field(description="Polling interval while waiting for fresh credentials", gt=0)
    ] = 1.0

    sync_lease_timeout_seconds: Annotated[
        float, Field(description="Heartbeat age after which a syncing session counts as dead", gt=0)
    ] = 300

    tos_accepted: Annotated[bool, Field(description="Whether Terms of Service was accepted")] = (
        False
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings.

    Returns a cached Settings instance. Use get_settings.cache_clear()
    to clear the cache if needed.

    Returns:
        Cached Settings instance.
    """
    return Settings()
