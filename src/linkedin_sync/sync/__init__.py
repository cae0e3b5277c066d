# ABOUTME: Sync engine package: fetcher, enrichment pipeline, orchestrator and scheduler.
# ABOUTME: Exports the public entry points used by the CLI.

from linkedin_sync.sync.enrichment import EnrichmentPipeline
from linkedin_sync.sync.events import ProgressChannel, ProgressEvent, SyncPhase
from linkedin_sync.sync.exceptions import SyncInProgressError
from linkedin_sync.sync.fetcher import FetchResult, PaginatedFetcher
from linkedin_sync.sync.orchestrator import AuthStatus, SkipReason, SyncOrchestrator
from linkedin_sync.sync.scheduler import AutoSyncScheduler

__all__ = [
    "AuthStatus",
    "AutoSyncScheduler",
    "EnrichmentPipeline",
    "FetchResult",
    "PaginatedFetcher",
    "ProgressChannel",
    "ProgressEvent",
    "SkipReason",
    "SyncInProgressError",
    "SyncOrchestrator",
    "SyncPhase",
]
