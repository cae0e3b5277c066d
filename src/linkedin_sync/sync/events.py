# ABOUTME: Progress event channel decoupling the sync engine from whatever displays progress.
# ABOUTME: Events are broadcast fire-and-forget; a failing listener never affects the sync.

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from linkedin_sync.models import SyncStatus

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    FETCH = "fetch"
    ENRICH = "enrich"


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot broadcast after every page, every enriched profile and every transition."""

    status: SyncStatus
    current: int = 0
    total: int | None = None
    phase: SyncPhase | None = None
    error: str | None = None


ProgressListener = Callable[[ProgressEvent], None]


class ProgressChannel:
    """Broadcasts progress events to any number of subscribers."""

    def __init__(self) -> None:
        self._listeners: list[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener.

        Args:
            listener: Called with every published event.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        """Deliver an event to every listener, ignoring delivery failures."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.debug("Progress listener %r failed", listener, exc_info=True)
