# ABOUTME: Exceptions raised by the sync orchestrator.
# ABOUTME: SyncInProgressError rejects a trigger while another session is active.

from linkedin_sync.errors import LinkedInSyncError


class SyncInProgressError(LinkedInSyncError):
    """Exception raised when a sync is requested while one is already running."""

    def __init__(self, message: str = "Sync already in progress") -> None:
        super().__init__(message)
