# ABOUTME: Shared pytest fixtures for linkedin-sync tests.
# ABOUTME: Provides temporary databases, settings with unpaced limits, a fake clock and sleeps.

from pathlib import Path

import pytest

from fakes import FakeClock, SleepRecorder
from linkedin_sync.config import CategoryLimits, RateLimitSettings, Settings
from linkedin_sync.database import DatabaseService


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def db_service(temp_db_path: Path) -> DatabaseService:
    """Create a DatabaseService with a temporary database."""
    service = DatabaseService(db_path=temp_db_path)
    service.init_db()
    return service


@pytest.fixture
def unpaced_limits() -> RateLimitSettings:
    """Rate limits with generous budgets and no pacing delays."""
    limits = CategoryLimits(
        max_per_hour=1000, max_per_day=5000, delay_min_seconds=0, delay_max_seconds=0
    )
    return RateLimitSettings(bulk=limits, incremental=limits, quick_add=limits)


@pytest.fixture
def settings(tmp_path: Path, unpaced_limits: RateLimitSettings) -> Settings:
    """Create Settings pointing at temporary files, with unpaced rate limits."""
    return Settings(
        db_path=tmp_path / "test.db",
        accounts_file=tmp_path / "accounts.json",
        rate_limits=unpaced_limits,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()
