# ABOUTME: Database package for the LinkedIn sync persistence layer.
# ABOUTME: Provides DatabaseService for SQLite operations using SQLModel.

from linkedin_sync.database.service import DatabaseService, SyncStats, UpsertResult

__all__ = ["DatabaseService", "SyncStats", "UpsertResult"]
