# ABOUTME: Authentication package for LinkedIn session credentials.
# ABOUTME: Exports the credential bag, its keyring store and session refreshers.

from linkedin_sync.auth.credentials import (
    CSRF_HEADER,
    REQUIRED_HEADERS,
    CredentialBag,
    CredentialStore,
    csrf_from_cookie_value,
)
from linkedin_sync.auth.exceptions import NO_SESSION_MESSAGE, NoSessionError
from linkedin_sync.auth.refresh import BrowserSessionRefresher, SessionRefresher

__all__ = [
    "BrowserSessionRefresher",
    "CSRF_HEADER",
    "CredentialBag",
    "CredentialStore",
    "NO_SESSION_MESSAGE",
    "NoSessionError",
    "REQUIRED_HEADERS",
    "SessionRefresher",
    "csrf_from_cookie_value",
]
