# ABOUTME: Voyager package wrapping LinkedIn's private JSON API.
# ABOUTME: Exports the async HTTP client, its error taxonomy and the response normalizer.

from linkedin_sync.voyager.client import VoyagerClient
from linkedin_sync.voyager.exceptions import (
    PermanentAccessError,
    TransientFetchError,
    VoyagerError,
)

__all__ = ["PermanentAccessError", "TransientFetchError", "VoyagerClient", "VoyagerError"]
