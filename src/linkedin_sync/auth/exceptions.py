# ABOUTME: Exceptions for missing or unusable LinkedIn session credentials.
# ABOUTME: NoSessionError aborts a sync immediately and asks the user to revisit LinkedIn.

from linkedin_sync.errors import LinkedInSyncError

NO_SESSION_MESSAGE = "No LinkedIn session. Please visit LinkedIn first."


class NoSessionError(LinkedInSyncError):
    """Exception raised when no usable credential bag is available."""

    def __init__(self, message: str = NO_SESSION_MESSAGE) -> None:
        super().__init__(message)
