# ABOUTME: Tests for the RateLimitDisplay class.
# ABOUTME: Covers duration formatting, status dictionary generation and Rich panel rendering.

from datetime import timedelta

import pytest
from rich.panel import Panel

from fakes import FakeClock, SleepRecorder
from linkedin_sync.config import CategoryLimits, RateLimitSettings, Settings
from linkedin_sync.database import DatabaseService
from linkedin_sync.models import RateLimitCategory
from linkedin_sync.rate_limit import RateLimiter
from linkedin_sync.rate_limit.display import RateLimitDisplay


@pytest.fixture
def settings(settings: Settings) -> Settings:
    """Allow ten bulk actions per hour and twenty per day."""
    bulk = CategoryLimits(
        max_per_hour=10, max_per_day=20, delay_min_seconds=0, delay_max_seconds=0
    )
    return settings.model_copy(update={"rate_limits": RateLimitSettings(bulk=bulk)})


@pytest.fixture
def rate_limiter(
    db_service: DatabaseService, settings: Settings, clock: FakeClock, sleep: SleepRecorder
) -> RateLimiter:
    return RateLimiter(db_service, settings, sleep=sleep, clock=clock)


@pytest.fixture
def display(rate_limiter: RateLimiter) -> RateLimitDisplay:
    return RateLimitDisplay(rate_limiter=rate_limiter)


async def _consume(rate_limiter: RateLimiter, count: int) -> None:
    for _ in range(count):
        await rate_limiter.wait(RateLimitCategory.BULK)


class TestFormatDuration:
    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (timedelta(hours=5, minutes=23), "5h 23m"),
            (timedelta(minutes=45), "45m"),
            (timedelta(hours=2), "2h 0m"),
            (timedelta(0), "resetting soon"),
            (timedelta(seconds=-5), "resetting soon"),
        ],
    )
    def test_format(self, delta: timedelta, expected: str) -> None:
        assert RateLimitDisplay.format_duration(delta) == expected


class TestGetStatusDict:
    """Tests for the status dictionary."""

    def test_contains_required_keys(self, display: RateLimitDisplay) -> None:
        status = display.get_status_dict(RateLimitCategory.BULK)

        assert set(status) == {
            "category",
            "max_per_hour",
            "max_per_day",
            "remaining_hourly",
            "remaining_daily",
            "hourly_reset_in",
            "daily_reset_in",
            "last_action_time",
            "is_warning",
        }

    def test_when_no_actions(self, display: RateLimitDisplay) -> None:
        status = display.get_status_dict(RateLimitCategory.BULK)

        assert status["category"] == "bulk"
        assert status["remaining_hourly"] == 10
        assert status["remaining_daily"] == 20
        assert status["last_action_time"] is None
        assert status["is_warning"] is False
        assert status["hourly_reset_in"] == timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_after_some_actions(
        self, display: RateLimitDisplay, rate_limiter: RateLimiter, clock: FakeClock
    ) -> None:
        await _consume(rate_limiter, 3)
        clock.advance(minutes=15)

        status = display.get_status_dict(RateLimitCategory.BULK)

        assert status["remaining_hourly"] == 7
        assert status["remaining_daily"] == 17
        assert status["hourly_reset_in"] == timedelta(minutes=45)
        assert status["last_action_time"] is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("used", "warning"), [(5, False), (6, True), (10, True)])
    async def test_warning_threshold(
        self, display: RateLimitDisplay, rate_limiter: RateLimiter, used: int, warning: bool
    ) -> None:
        await _consume(rate_limiter, used)

        assert display.get_status_dict(RateLimitCategory.BULK)["is_warning"] is warning

    def test_categories_are_independent(self, display: RateLimitDisplay) -> None:
        status = display.get_status_dict(RateLimitCategory.INCREMENTAL)

        assert status["category"] == "incremental"
        assert status["max_per_hour"] == 50
        assert status["max_per_day"] == 100


class TestRenderStatus:
    """Tests for the Rich panel."""

    def test_returns_panel(self, display: RateLimitDisplay) -> None:
        panel = display.render_status(RateLimitCategory.BULK)

        assert isinstance(panel, Panel)
        assert panel.title == "Rate Limit: bulk"

    @pytest.mark.asyncio
    async def test_warning_title(
        self, display: RateLimitDisplay, rate_limiter: RateLimiter
    ) -> None:
        await _consume(rate_limiter, 7)

        panel = display.render_status(RateLimitCategory.BULK)

        assert panel.title is not None
        assert "Rate Limit Warning: bulk" in str(panel.title)

    @pytest.mark.asyncio
    async def test_reached_title(
        self, display: RateLimitDisplay, rate_limiter: RateLimiter
    ) -> None:
        await _consume(rate_limiter, 10)

        panel = display.render_status(RateLimitCategory.BULK)

        assert "Rate Limit Reached: bulk" in str(panel.title)
