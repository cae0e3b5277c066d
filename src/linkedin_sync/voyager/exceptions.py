# ABOUTME: Custom exceptions for Voyager API operations.
# ABOUTME: Splits failures into transient (retried with backoff) and permanent access denials.

from linkedin_sync.errors import LinkedInSyncError


class VoyagerError(LinkedInSyncError):
    """Base exception for all Voyager API errors.

    Attributes:
        status_code: HTTP status of the failed response, or None for transport errors.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientFetchError(VoyagerError):
    """Network failure, 5xx, 429 or unreadable body. Retried with backoff up to a cap."""

    pass


class PermanentAccessError(VoyagerError):
    """HTTP 410 or 403: profile unavailable or access blocked. Never retried."""

    pass
