# ABOUTME: Base exception class for LinkedIn Sync application errors.
# ABOUTME: Provides a common base for all custom exceptions in the application.


class LinkedInSyncError(Exception):
    """Base exception for all LinkedIn Sync errors.

    This is the root exception class for the application. All custom
    exceptions inherit from this class to enable unified error handling
    throughout the CLI and the sync engine.
    """

    pass
