# ABOUTME: Sequential per-profile enrichment from the profile, contact info and skills endpoints.
# ABOUTME: Detail rows are replaced wholesale; one failed profile never stops the rest.

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from linkedin_sync.config import Settings
from linkedin_sync.database import DatabaseService
from linkedin_sync.models import ProfileDetail, RateLimitCategory
from linkedin_sync.rate_limit import RateLimiter
from linkedin_sync.voyager import VoyagerClient, VoyagerError
from linkedin_sync.voyager import normalizer

logger = logging.getLogger(__name__)

EnrichmentCallback = Callable[[int, int, ProfileDetail | None], None]


class EnrichmentPipeline:
    """Fetches, normalizes and persists full profiles one identifier at a time."""

    def __init__(
        self,
        db_service: DatabaseService,
        settings: Settings,
        rate_limiter: RateLimiter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the pipeline.

        Args:
            db_service: Database service receiving replace-all detail writes.
            settings: Application settings with the inter-profile delay.
            rate_limiter: Optional limiter, charged only when a category is given.
            sleep: Coroutine used for the fixed delay between profiles.
        """
        self._db_service = db_service
        self._settings = settings
        self._rate_limiter = rate_limiter
        self._sleep = sleep

    async def _optional(self, request: Awaitable[Any], label: str, identifier: str) -> Any:
        """Await a secondary endpoint, treating its failure as missing data."""
        try:
            return await request
        except VoyagerError as e:
            logger.debug("No %s for %s: %s", label, identifier, e)
            return None

    async def fetch_detail(self, client: VoyagerClient, identifier: str) -> ProfileDetail | None:
        """Fetch and merge the full profile of one identifier.

        The three main endpoints are requested concurrently. The positions and
        educations endpoints are only consulted when the profile view has none.

        Args:
            client: An open VoyagerClient.
            identifier: Public identifier of the profile.

        Returns:
            The merged ProfileDetail, or None if the profile view holds no profile.

        Raises:
            VoyagerError: If the profile view itself cannot be fetched.
        """
        profile_view, contact_info, skills = await asyncio.gather(
            client.get_profile_view(identifier),
            self._optional(client.get_contact_info(identifier), "contact info", identifier),
            self._optional(client.get_skills(identifier), "skills", identifier),
        )

        primary = normalizer.parse_profile_view(profile_view, identifier)
        if primary is None:
            return None

        positions = None
        if not primary.experiences:
            logger.debug("No experiences in profile view, trying positions for %s", identifier)
            positions = await self._optional(
                client.get_positions(identifier), "positions", identifier
            )

        educations = None
        if not primary.educations:
            logger.debug("No educations in profile view, trying educations for %s", identifier)
            educations = await self._optional(
                client.get_educations(identifier), "educations", identifier
            )

        return normalizer.to_profile_detail(
            identifier, profile_view, contact_info, skills, positions, educations
        )

    async def enrich(
        self,
        identifiers: Sequence[str],
        client: VoyagerClient,
        on_progress: EnrichmentCallback | None = None,
        cancel: asyncio.Event | None = None,
        category: RateLimitCategory | None = None,
    ) -> dict[str, ProfileDetail]:
        """Enrich each identifier in turn, pausing between them.

        Args:
            identifiers: Public identifiers to enrich, in order.
            client: An open VoyagerClient.
            on_progress: Called after every identifier with (completed, total, detail or None).
            cancel: When set, no further identifier is started.
            category: Rate-limit budget charged per identifier, if any.

        Returns:
            Map of identifier to the detail that was persisted.

        Raises:
            RateLimitExceeded: When a category is given and its budget is used up.
        """
        results: dict[str, ProfileDetail] = {}
        total = len(identifiers)
        logger.info("Starting profile enrichment for %d profiles", total)

        for index, identifier in enumerate(identifiers):
            if cancel is not None and cancel.is_set():
                logger.info("Enrichment cancelled after %d profiles", index)
                break

            if category is not None and self._rate_limiter is not None:
                await self._rate_limiter.wait(category)

            detail: ProfileDetail | None = None
            try:
                detail = await self.fetch_detail(client, identifier)
                if detail is None:
                    logger.warning("No profile data for %s", identifier)
                else:
                    self._db_service.replace_detail(identifier, detail)
                    results[identifier] = detail
                    logger.debug("Enriched profile %d/%d: %s", index + 1, total, identifier)
            except Exception as e:
                logger.error("Failed to enrich %s: %s", identifier, e)
                detail = None

            if on_progress is not None:
                on_progress(index + 1, total, detail)

            if index < total - 1:
                await self._sleep(self._settings.enrichment_delay_seconds)

        logger.info("Profile enrichment complete: %d/%d successful", len(results), total)
        return results
