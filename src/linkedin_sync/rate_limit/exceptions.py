# ABOUTME: Exception classes for rate limiting functionality.
# ABOUTME: Contains RateLimitExceeded raised when an hourly or daily budget is used up.

from datetime import datetime, timedelta

from linkedin_sync.errors import LinkedInSyncError
from linkedin_sync.models.rate_limit import RateLimitScope


class RateLimitExceeded(LinkedInSyncError):
    """Exception raised when a category's request budget has been used up.

    The caller must not retry automatically; the user has to wait.

    Attributes:
        scope: Which window refused the action (hourly or daily).
        retry_after: Time until that window rolls over.
        reset_time: Optional datetime when the window rolls over.
    """

    def __init__(
        self,
        message: str,
        scope: RateLimitScope,
        retry_after: timedelta,
        reset_time: datetime | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the error.
            scope: The window that refused the action.
            retry_after: Time until the window rolls over.
            reset_time: Optional datetime when the window rolls over.
        """
        super().__init__(message)
        self.scope = scope
        self.retry_after = retry_after
        self.reset_time = reset_time
