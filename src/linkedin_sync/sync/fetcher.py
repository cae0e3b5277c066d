# ABOUTME: Paginated retrieval of the connections feed with incremental stop conditions.
# ABOUTME: Stops at the resume cursor, at a short page, at the ceiling, or when cancelled.

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from linkedin_sync.config import Settings
from linkedin_sync.models import Connection, RateLimitCategory
from linkedin_sync.rate_limit import RateLimiter
from linkedin_sync.voyager import VoyagerClient
from linkedin_sync.voyager import normalizer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int | None, int], None]
PageCallback = Callable[[list[Connection]], None]


@dataclass
class FetchResult:
    """Connections fetched by one pass, most recently connected first."""

    records: list[Connection]
    total: int
    cancelled: bool = False
    reached_cursor: bool = False


class PaginatedFetcher:
    """Pages through the connections feed until a stop condition fires."""

    def __init__(
        self,
        settings: Settings,
        rate_limiter: RateLimiter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the fetcher.

        Args:
            settings: Application settings with page size, ceiling and page delay.
            rate_limiter: Optional limiter; one unit is consumed before each page.
            sleep: Coroutine used for the fixed delay between pages.
        """
        self._settings = settings
        self._rate_limiter = rate_limiter
        self._sleep = sleep

    async def fetch_all(
        self,
        client: VoyagerClient,
        on_progress: ProgressCallback | None = None,
        resume_cursor: str | None = None,
        category: RateLimitCategory = RateLimitCategory.BULK,
        cancel: asyncio.Event | None = None,
        on_page: PageCallback | None = None,
    ) -> FetchResult:
        """Fetch every connection newer than the resume cursor.

        Args:
            client: An open VoyagerClient.
            on_progress: Called after every page with (fetched, total, page_index).
            resume_cursor: Canonical URL of the most recent known contact. The
                result holds only records before it, and no page after it is fetched.
            category: Rate-limit budget charged for each page request.
            cancel: When set, no further page is started.
            on_page: Called with the records kept from every page.

        Returns:
            The fetched records and the total reported by the API, or the
            number fetched when the API reports none.

        Raises:
            VoyagerError: When a page fails permanently or exhausts its retries.
            RateLimitExceeded: When the category's budget is used up.
        """
        page_size = self._settings.page_size
        ceiling = self._settings.max_connections
        cursor = normalizer.canonical_profile_url(resume_cursor) if resume_cursor else None

        records: list[Connection] = []
        total: int | None = None
        offset = 0
        page_index = 0
        cancelled = False
        reached_cursor = False

        logger.info("Starting to fetch connections%s", " (incremental)" if cursor else "")

        while offset < ceiling:
            if cancel is not None and cancel.is_set():
                logger.info("Fetch cancelled after %d connections", len(records))
                cancelled = True
                break

            if self._rate_limiter is not None:
                await self._rate_limiter.wait(category)

            page = await client.get_connections_page(offset, page_size)
            page_records = normalizer.to_connections(page)
            if total is None:
                total = normalizer.page_total(page)

            if cursor is not None:
                cursor_index = next(
                    (i for i, record in enumerate(page_records) if record.network_url == cursor),
                    None,
                )
                if cursor_index is not None:
                    page_records = page_records[:cursor_index]
                    reached_cursor = True

            page_records = page_records[: ceiling - len(records)]
            records.extend(page_records)
            if on_page is not None and page_records:
                on_page(page_records)
            if on_progress is not None:
                on_progress(len(records), total, page_index)
            logger.debug("Fetched page %d, %d connections so far", page_index, len(records))

            if reached_cursor:
                logger.info("Found most recent connection, stopping after %d new", len(records))
                break
            if normalizer.page_element_count(page) < page_size:
                logger.info("Reached end of connections list")
                break
            if len(records) >= ceiling:
                logger.info("Reached the ceiling of %d connections", ceiling)
                break

            offset += page_size
            page_index += 1
            await self._sleep(self._settings.page_delay_seconds)

        logger.info("Finished fetching %d connections", len(records))
        return FetchResult(
            records=records,
            total=total or len(records),
            cancelled=cancelled,
            reached_cursor=reached_cursor,
        )
