# ABOUTME: Recurring timer that attempts an automatic sync at a fixed interval.
# ABOUTME: Each tick defers to the orchestrator gates; failures are logged and never stop it.

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta

from linkedin_sync.errors import LinkedInSyncError
from linkedin_sync.models import SyncSession
from linkedin_sync.sync.orchestrator import SkipReason, SyncOrchestrator

logger = logging.getLogger(__name__)


class AutoSyncScheduler:
    """Runs orchestrator.auto_sync() on a fixed interval in an asyncio task."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        interval: timedelta,
        first_delay: timedelta = timedelta(seconds=60),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._orchestrator = orchestrator
        self.interval = interval
        self.first_delay = first_delay
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    async def tick(self) -> SyncSession | SkipReason | None:
        """Attempt one automatic sync.

        Returns:
            The final session, the skip reason, or None if the sync failed.
        """
        try:
            return await self._orchestrator.auto_sync()
        except LinkedInSyncError as e:
            logger.error("Auto-sync failed: %s", e)
            return None
        except Exception:
            logger.exception("Auto-sync failed unexpectedly")
            return None

    async def run_forever(self, max_ticks: int | None = None) -> None:
        """Wait for the first delay, then tick on every interval.

        Args:
            max_ticks: Stop after this many ticks. Runs until cancelled if None.
        """
        await self._sleep(self.first_delay.total_seconds())
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            await self.tick()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            await self._sleep(self.interval.total_seconds())

    def start(self) -> asyncio.Task[None]:
        """Start the timer in a background task of the running loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        """Cancel the timer task. An active sync is asked to stop first."""
        self._orchestrator.stop_sync()
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
