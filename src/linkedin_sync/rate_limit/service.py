# ABOUTME: Rate limiter service that enforces per-category request budgets and pacing.
# ABOUTME: Budgets persist in the database, roll over hourly and daily, and add random jitter.

import asyncio
import logging
import math
import random
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from linkedin_sync.clock import as_utc, utc_now
from linkedin_sync.config import CategoryLimits, Settings
from linkedin_sync.database import DatabaseService
from linkedin_sync.models import RateLimitBudget, RateLimitCategory, RateLimitScope
from linkedin_sync.rate_limit.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


@dataclass(frozen=True)
class RemainingBudget:
    hourly: int
    daily: int


@dataclass(frozen=True)
class ResetIn:
    hourly: timedelta
    daily: timedelta


class RateLimiter:
    """Service that enforces request budgets for each rate-limit category.

    Each category (bulk, incremental, quick_add) keeps independent hourly and
    daily counters in the database so they survive restarts. This is the only
    place that deliberately delays outbound requests; it never retries them.
    """

    def __init__(
        self,
        db_service: DatabaseService,
        settings: Settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            db_service: Database service for persisting budgets.
            settings: Application settings containing rate limit configuration.
            sleep: Coroutine used to pause. Injected so tests never wait.
            clock: Returns the current aware UTC time.
            jitter: Returns a uniform random float in [0, 1).
        """
        self._db_service = db_service
        self._settings = settings
        self._sleep = sleep
        self._clock = clock
        self._jitter = jitter
        self._locks: defaultdict[RateLimitCategory, asyncio.Lock] = defaultdict(asyncio.Lock)

    def limits_for(self, category: RateLimitCategory) -> CategoryLimits:
        """Return the configured limits of a category."""
        return self._settings.rate_limits.for_category(category)

    def _load(self, category: RateLimitCategory) -> RateLimitBudget:
        """Load a category's budget, creating it on first use."""
        budget = self._db_service.load_budget(category)
        if budget is None:
            now = self._clock()
            return RateLimitBudget(category=category, hour_window_start=now, day_window_start=now)

        budget.hour_window_start = as_utc(budget.hour_window_start)
        budget.day_window_start = as_utc(budget.day_window_start)
        budget.last_action_at = as_utc(budget.last_action_at)
        return budget

    def _roll_windows(self, budget: RateLimitBudget, now: datetime) -> bool:
        """Zero the counters of every window that has fully elapsed.

        Returns:
            True if the budget changed.
        """
        changed = False
        if now - budget.hour_window_start > HOUR:
            budget.hourly_count = 0
            budget.hour_window_start = now
            changed = True
        if now - budget.day_window_start > DAY:
            budget.daily_count = 0
            budget.day_window_start = now
            changed = True
        return changed

    def _current(self, category: RateLimitCategory) -> RateLimitBudget:
        """Load a budget and persist any window rollover."""
        budget = self._load(category)
        if self._roll_windows(budget, self._clock()):
            self._db_service.save_budget(budget)
        return budget

    def _exhausted_error(
        self, budget: RateLimitBudget, limits: CategoryLimits, now: datetime
    ) -> RateLimitExceeded | None:
        if budget.hourly_count >= limits.max_per_hour:
            reset_time = budget.hour_window_start + HOUR
            retry_after = max(reset_time - now, timedelta(0))
            minutes = math.ceil(retry_after.total_seconds() / 60)
            return RateLimitExceeded(
                f"Hourly rate limit reached. Try again in {minutes} minutes.",
                scope=RateLimitScope.HOURLY,
                retry_after=retry_after,
                reset_time=reset_time,
            )
        if budget.daily_count >= limits.max_per_day:
            reset_time = budget.day_window_start + DAY
            retry_after = max(reset_time - now, timedelta(0))
            hours = math.ceil(retry_after.total_seconds() / 3600)
            return RateLimitExceeded(
                f"Daily rate limit reached. Try again in {hours} hours.",
                scope=RateLimitScope.DAILY,
                retry_after=retry_after,
                reset_time=reset_time,
            )
        return None

    def can_proceed(self, category: RateLimitCategory) -> bool:
        """Check whether one more action fits in both windows.

        Args:
            category: The rate-limit category to check.

        Returns:
            True if the action can be performed now.
        """
        budget = self._current(category)
        return self._exhausted_error(budget, self.limits_for(category), self._clock()) is None

    async def wait(self, category: RateLimitCategory) -> None:
        """Reserve one action, pausing first to respect pacing.

        Enforces the minimum gap since the previous action, then sleeps a
        uniform random jitter in [0, delay_max - delay_min), then counts the
        action and persists the budget.

        Args:
            category: The rate-limit category of the action.

        Raises:
            RateLimitExceeded: If the hourly or daily budget is used up.
        """
        async with self._locks[category]:
            limits = self.limits_for(category)
            budget = self._current(category)
            now = self._clock()

            error = self._exhausted_error(budget, limits, now)
            if error is not None:
                logger.warning("%s budget refused: %s", category.value, error)
                raise error

            if budget.last_action_at is not None:
                elapsed = (now - budget.last_action_at).total_seconds()
                if elapsed < limits.delay_min_seconds:
                    await self._sleep(limits.delay_min_seconds - elapsed)

            jitter = self._jitter() * (limits.delay_max_seconds - limits.delay_min_seconds)
            if jitter > 0:
                await self._sleep(jitter)

            budget.hourly_count += 1
            budget.daily_count += 1
            budget.last_action_at = self._clock()
            self._db_service.save_budget(budget)
            logger.debug(
                "%s action %d/%d this hour, %d/%d today",
                category.value,
                budget.hourly_count,
                limits.max_per_hour,
                budget.daily_count,
                limits.max_per_day,
            )

    def remaining(self, category: RateLimitCategory) -> RemainingBudget:
        """Return how many actions are left in each window.

        Args:
            category: The rate-limit category to inspect.

        Returns:
            Remaining hourly and daily actions, never negative.
        """
        budget = self._current(category)
        limits = self.limits_for(category)
        return RemainingBudget(
            hourly=max(0, limits.max_per_hour - budget.hourly_count),
            daily=max(0, limits.max_per_day - budget.daily_count),
        )

    def reset_in(self, category: RateLimitCategory) -> ResetIn:
        """Return the time until each window rolls over.

        Args:
            category: The rate-limit category to inspect.

        Returns:
            Time until the hourly and daily windows roll over.
        """
        budget = self._current(category)
        now = self._clock()
        return ResetIn(
            hourly=max(budget.hour_window_start + HOUR - now, timedelta(0)),
            daily=max(budget.day_window_start + DAY - now, timedelta(0)),
        )

    def last_action_at(self, category: RateLimitCategory) -> datetime | None:
        """Return the time of the most recent action in a category."""
        return self._load(category).last_action_at

    def reset(self, category: RateLimitCategory | None = None) -> None:
        """Zero the counters of one category, or of every category.

        Args:
            category: The category to reset. Resets all categories if None.
        """
        categories = [category] if category is not None else list(RateLimitCategory)
        now = self._clock()
        for item in categories:
            self._db_service.save_budget(
                RateLimitBudget(category=item, hour_window_start=now, day_window_start=now)
            )
            logger.info("Reset %s rate limit budget", item.value)
