# ABOUTME: Display package for Rich terminal output.
# ABOUTME: Exports tables, status panels and error panels used by the CLI.

from linkedin_sync.display.errors import (
    display_access_denied,
    display_error,
    display_login_help,
    display_network_error,
    display_rate_limit_exceeded,
)
from linkedin_sync.display.status import (
    display_auth_status,
    display_session_status,
    display_sync_summary,
)
from linkedin_sync.display.tables import ConnectionTable

__all__ = [
    "ConnectionTable",
    "display_access_denied",
    "display_auth_status",
    "display_error",
    "display_login_help",
    "display_network_error",
    "display_rate_limit_exceeded",
    "display_session_status",
    "display_sync_summary",
]
