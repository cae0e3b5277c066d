# ABOUTME: Sync session state machine coordinating credentials, fetcher, enrichment and persistence.
# ABOUTME: Owns the single-flight guard; every transition is persisted for crash recovery.

import asyncio
import logging
import math
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from linkedin_sync.auth import (
    CredentialBag,
    CredentialStore,
    NoSessionError,
    SessionRefresher,
)
from linkedin_sync.clock import as_utc, utc_now
from linkedin_sync.config import Settings
from linkedin_sync.database import DatabaseService
from linkedin_sync.models import (
    Connection,
    ProfileDetail,
    RateLimitCategory,
    SyncSession,
    SyncStatus,
    SyncTrigger,
)
from linkedin_sync.rate_limit import RateLimiter
from linkedin_sync.sync.enrichment import EnrichmentPipeline
from linkedin_sync.sync.events import ProgressChannel, ProgressEvent, SyncPhase
from linkedin_sync.sync.exceptions import SyncInProgressError
from linkedin_sync.sync.fetcher import PaginatedFetcher
from linkedin_sync.voyager import VoyagerClient, VoyagerError
from linkedin_sync.voyager import normalizer

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Interrupted"

ClientFactory = Callable[[CredentialBag], VoyagerClient]


class SkipReason(str, Enum):
    """Why an automatic sync attempt did not start."""

    SYNC_IN_PROGRESS = "sync_in_progress"
    NO_CREDENTIALS = "no_credentials"
    STALE_CREDENTIALS = "stale_credentials"
    TOO_SOON = "too_soon"


@dataclass(frozen=True)
class AuthStatus:
    has_credentials: bool
    has_token: bool
    fresh_for_auto_sync: bool
    captured_at: datetime | None = None


class SyncOrchestrator:
    """Runs sync, enrichment and quick-add sessions one at a time.

    States: idle -> syncing -> completed | error | paused. A new trigger is
    accepted from any state except syncing; a trigger arriving while a
    session is active is rejected, never queued.
    """

    def __init__(
        self,
        db_service: DatabaseService,
        settings: Settings,
        credential_store: CredentialStore,
        rate_limiter: RateLimiter | None = None,
        refresher: SessionRefresher | None = None,
        client_factory: ClientFactory | None = None,
        channel: ProgressChannel | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
        account_name: str = "default",
        recover: bool = True,
    ) -> None:
        """Initialize the orchestrator and recover a session left by a dead process.

        Args:
            db_service: Database service for connections, details and session state.
            settings: Application settings.
            credential_store: Store holding the captured credential bag.
            rate_limiter: Limiter charged per page and per quick-add.
            refresher: Asks for fresh credentials when a manual run has none.
            client_factory: Builds a VoyagerClient from credentials.
            channel: Receives progress events. A private channel is used if None.
            sleep: Coroutine used for every deliberate pause.
            clock: Returns the current aware UTC time.
            account_name: Credential account to use.
            recover: Expire a syncing session whose holder stopped heartbeating.
                Read-only callers pass False.
        """
        self._db_service = db_service
        self._settings = settings
        self._credential_store = credential_store
        self._rate_limiter = rate_limiter
        self._refresher = refresher
        self._client_factory = client_factory or (
            lambda credentials: VoyagerClient.from_settings(credentials, settings, sleep=sleep)
        )
        self.channel = channel or ProgressChannel()
        self._sleep = sleep
        self._clock = clock
        self._account_name = account_name
        self._owner_id = uuid.uuid4().hex

        self._fetcher = PaginatedFetcher(settings, rate_limiter, sleep)
        self._pipeline = EnrichmentPipeline(db_service, settings, rate_limiter, sleep)

        self._active = False
        self._cancel = asyncio.Event()
        self._session: SyncSession | None = None
        self._refresh_requested = False

        if recover:
            self.recover_interrupted()

    # Status

    @property
    def is_running(self) -> bool:
        return self._active

    def get_status(self) -> SyncSession:
        """Return the persisted session, or a fresh idle one."""
        session = self._db_service.load_session()
        return session if session is not None else SyncSession()

    def get_auth_status(self) -> AuthStatus:
        """Describe the stored credentials."""
        bag = self._credential_store.load(self._account_name)
        if bag is None:
            return AuthStatus(has_credentials=False, has_token=False, fresh_for_auto_sync=False)
        return AuthStatus(
            has_credentials=True,
            has_token=bag.has_token() or bag.cookie_token() is not None,
            fresh_for_auto_sync=bag.is_fresh(self._max_header_age, self._clock()),
            captured_at=bag.captured_at,
        )

    def recover_interrupted(self) -> bool:
        """Move a session whose holder stopped heartbeating to error.

        A session still heartbeating belongs to another live process and is left alone.

        Returns:
            True if a session was recovered.
        """
        if not self._db_service.expire_stale_session(self._stale_before(), INTERRUPTED_MESSAGE):
            return False
        logger.warning("Recovered a sync session interrupted by a previous crash")
        return True

    @property
    def _max_header_age(self) -> timedelta:
        return timedelta(minutes=self._settings.headers_max_age_minutes)

    def _stale_before(self) -> datetime:
        return self._clock() - timedelta(seconds=self._settings.sync_lease_timeout_seconds)

    # Session lifecycle

    def _publish(
        self, phase: SyncPhase | None = None, current: int = 0, total: int | None = None
    ) -> None:
        assert self._session is not None
        self.channel.publish(
            ProgressEvent(
                status=self._session.status,
                current=current,
                total=total,
                phase=phase,
                error=self._session.last_error,
            )
        )

    def _save(self) -> None:
        assert self._session is not None
        self._session.heartbeat_at = self._clock()
        self._db_service.save_session(self._session)

    def _begin(self, trigger: SyncTrigger) -> SyncSession:
        """Claim the persisted session for this orchestrator, moving it to syncing.

        Raises:
            SyncInProgressError: If this or another process holds a live session.
        """
        if self._active:
            raise SyncInProgressError()
        session = self._db_service.claim_session(
            self._owner_id, self._clock(), self._stale_before()
        )
        if session is None:
            raise SyncInProgressError()

        self._active = True
        try:
            self._cancel = asyncio.Event()
            self._refresh_requested = False
            session.trigger = trigger
            session.progress_current = 0
            session.progress_total = None
            session.page_index = 0
            session.started_at = self._clock()
            session.last_error = None
            self._session = session
            self._save()
        except Exception:
            self._release()
            raise
        self._publish()
        logger.info("Starting %s session", trigger.value)
        return session

    def _finish(self, status: SyncStatus, error: str | None = None) -> SyncSession:
        assert self._session is not None
        self._session.status = status
        self._session.last_error = error
        self._session.owner_id = None
        self._save()
        self._publish(current=self._session.progress_current, total=self._session.progress_total)
        return self._session

    def _release(self) -> None:
        if self._refresh_requested and self._refresher is not None:
            self._refresher.close()
        self._refresh_requested = False
        self._active = False

    async def _run(
        self, trigger: SyncTrigger, body: Callable[[SyncSession], Awaitable[SyncStatus]]
    ) -> SyncSession:
        session = self._begin(trigger)
        try:
            status = await body(session)
        except asyncio.CancelledError:
            self._finish(SyncStatus.PAUSED, "Cancelled")
            raise
        except Exception as e:
            logger.error("%s session failed: %s", trigger.value.capitalize(), e)
            self._finish(SyncStatus.ERROR, str(e))
            raise
        else:
            return self._finish(status)
        finally:
            self._release()

    def stop_sync(self) -> bool:
        """Ask the active session to stop before its next page or profile.

        A request already in flight runs to completion.

        Returns:
            True if a session was running.
        """
        if not self._active:
            return False
        logger.info("Stop requested; finishing the request in flight")
        self._cancel.set()
        return True

    # Credentials

    async def _wait_for_capture(self, requested_at: datetime) -> CredentialBag | None:
        interval = self._settings.credential_poll_interval_seconds
        polls = max(1, math.ceil(self._settings.credential_refresh_timeout_seconds / interval))
        for _ in range(polls):
            await self._sleep(interval)
            bag = self._credential_store.load(self._account_name)
            if bag is not None and bag.captured_at >= requested_at:
                return bag
        return None

    async def _resolve_credentials(self, trigger: SyncTrigger) -> CredentialBag:
        """Find usable credentials, refreshing them out of band for manual runs.

        Raises:
            NoSessionError: If no credentials with a CSRF token can be found.
        """
        bag = self._credential_store.load(self._account_name)

        if trigger == SyncTrigger.AUTO:
            if bag is None or not bag.is_fresh(self._max_header_age, self._clock()):
                raise NoSessionError()
        elif bag is None and self._refresher is not None:
            requested_at = self._clock()
            self._refresh_requested = True
            self._refresher.request_refresh()
            bag = await self._wait_for_capture(requested_at)

        if bag is None:
            raise NoSessionError()

        if not bag.has_token():
            token = bag.cookie_token()
            if token is None:
                raise NoSessionError()
            logger.debug("Derived CSRF token from the JSESSIONID cookie")
            bag = bag.with_token(token)
        return bag

    # Progress handlers

    def _on_fetch_progress(self, current: int, total: int | None, page_index: int) -> None:
        assert self._session is not None
        self._session.progress_current = current
        self._session.progress_total = total
        self._session.page_index = page_index
        self._save()
        self._publish(SyncPhase.FETCH, current, total)

    def _on_enrich_progress(self, completed: int, total: int, detail: ProfileDetail | None) -> None:
        self._save()
        self._publish(SyncPhase.ENRICH, completed, total)

    def _persist_page(self, records: list[Connection]) -> None:
        try:
            result = self._db_service.upsert_connections(records)
        except SQLAlchemyError as e:
            logger.error("Failed to save %d connections: %s", len(records), e)
            return
        logger.debug("Saved page: %d new, %d updated", result.new_count, result.updated_count)

    # Operations

    async def start_sync(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncSession:
        """Run one sync session: fetch connections, persist them, enrich them.

        Manual syncs pull the full list under the bulk budget. Auto syncs stop
        at the most recent stored contact and use the incremental budget.

        Args:
            trigger: What started the sync.

        Returns:
            The final session, completed or paused.

        Raises:
            SyncInProgressError: If a session is already active. State is untouched.
            NoSessionError: If no usable credentials are available.
            RateLimitExceeded: If the page budget is used up.
            VoyagerError: If a page fails permanently or exhausts its retries.
        """

        async def body(session: SyncSession) -> SyncStatus:
            stats = self._db_service.get_sync_stats()
            credentials = await self._resolve_credentials(trigger)

            if trigger == SyncTrigger.AUTO:
                category = RateLimitCategory.INCREMENTAL
                cursor = self._db_service.get_most_recent_connection_url()
            else:
                category = RateLimitCategory.BULK
                cursor = None

            async with self._client_factory(credentials) as client:
                result = await self._fetcher.fetch_all(
                    client,
                    on_progress=self._on_fetch_progress,
                    resume_cursor=cursor,
                    category=category,
                    cancel=self._cancel,
                    on_page=self._persist_page,
                )
                if result.cancelled:
                    return SyncStatus.PAUSED

                identifiers = [record.public_identifier for record in result.records]
                await self._pipeline.enrich(
                    identifiers, client, on_progress=self._on_enrich_progress, cancel=self._cancel
                )

            if self._cancel.is_set():
                return SyncStatus.PAUSED

            session.last_sync_at = self._clock()
            session.total_synced = stats.total_contacts + len(result.records)
            logger.info("Sync complete: %d connections fetched", len(result.records))
            return SyncStatus.COMPLETED

        return await self._run(trigger, body)

    async def enrich_pending(self, limit: int | None = None) -> SyncSession:
        """Enrich stored contacts flagged as needing enrichment.

        Args:
            limit: Maximum number of profiles. Defaults to the configured batch limit.

        Returns:
            The final session.

        Raises:
            SyncInProgressError: If a session is already active.
            NoSessionError: If no usable credentials are available.
        """

        async def body(session: SyncSession) -> SyncStatus:
            identifiers = self._db_service.get_identifiers_needing_enrichment(
                limit or self._settings.enrich_batch_limit
            )
            if not identifiers:
                logger.info("No contacts need enrichment")
                return SyncStatus.COMPLETED

            credentials = await self._resolve_credentials(SyncTrigger.MANUAL)
            async with self._client_factory(credentials) as client:
                await self._pipeline.enrich(
                    identifiers, client, on_progress=self._on_enrich_progress, cancel=self._cancel
                )
            return SyncStatus.PAUSED if self._cancel.is_set() else SyncStatus.COMPLETED

        return await self._run(SyncTrigger.MANUAL, body)

    async def quick_add(self, url_or_identifier: str) -> ProfileDetail:
        """Add or refresh one contact by profile URL or public identifier.

        Args:
            url_or_identifier: A linkedin.com/in/ URL or a bare public identifier.

        Returns:
            The stored profile detail.

        Raises:
            SyncInProgressError: If a session is already active.
            NoSessionError: If no usable credentials are available.
            RateLimitExceeded: If the quick-add budget is used up.
            VoyagerError: If the profile cannot be fetched.
        """
        identifier = normalizer.public_identifier_from_url(url_or_identifier) or (
            url_or_identifier.strip("/ ")
        )
        added: list[ProfileDetail] = []

        async def body(session: SyncSession) -> SyncStatus:
            credentials = await self._resolve_credentials(SyncTrigger.MANUAL)
            if self._rate_limiter is not None:
                await self._rate_limiter.wait(RateLimitCategory.QUICK_ADD)

            async with self._client_factory(credentials) as client:
                detail = await self._pipeline.fetch_detail(client, identifier)
            if detail is None:
                raise VoyagerError(f"No profile data for {identifier}")

            self._db_service.upsert_connections([normalizer.connection_from_detail(detail)])
            self._db_service.replace_detail(identifier, detail)
            added.append(detail)
            logger.info("Added %s", detail.full_name or identifier)
            return SyncStatus.COMPLETED

        await self._run(SyncTrigger.MANUAL, body)
        return added[0]

    async def auto_sync(self) -> SyncSession | SkipReason:
        """Attempt a scheduled sync, skipping it when any gate is closed.

        Gates: no active session, credentials captured within the freshness
        window, and at least one full interval since the last sync.

        Returns:
            The final session, or why the attempt was skipped.
        """
        if self._active:
            return self._skip(SkipReason.SYNC_IN_PROGRESS)

        bag = self._credential_store.load(self._account_name)
        if bag is None:
            return self._skip(SkipReason.NO_CREDENTIALS)
        now = self._clock()
        if not bag.is_fresh(self._max_header_age, now):
            return self._skip(SkipReason.STALE_CREDENTIALS)

        last_sync_at = as_utc(self.get_status().last_sync_at)
        interval = timedelta(hours=self._settings.auto_sync_interval_hours)
        if last_sync_at is not None and now - last_sync_at < interval:
            return self._skip(SkipReason.TOO_SOON)

        try:
            return await self.start_sync(SyncTrigger.AUTO)
        except SyncInProgressError:
            return self._skip(SkipReason.SYNC_IN_PROGRESS)

    def _skip(self, reason: SkipReason) -> SkipReason:
        logger.warning("Skipping auto-sync: %s", reason.value.replace("_", " "))
        return reason
