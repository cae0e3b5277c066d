# ABOUTME: Tests for the paginated connections fetcher.
# ABOUTME: Covers the resume cursor, end of list, ceiling, cancellation and rate-limit charging.

import asyncio

import pytest

from fakes import FakeClock, FakeVoyagerClient, SleepRecorder, connections_page
from linkedin_sync.config import CategoryLimits, RateLimitSettings, Settings
from linkedin_sync.database import DatabaseService
from linkedin_sync.models import Connection, RateLimitCategory
from linkedin_sync.rate_limit import RateLimiter, RateLimitExceeded
from linkedin_sync.sync import PaginatedFetcher
from linkedin_sync.voyager import PermanentAccessError


def _ids(prefix: str, count: int) -> list[str]:
    return [f"{prefix}{i}" for i in range(count)]


@pytest.fixture
def settings(settings: Settings) -> Settings:
    """Use pages of ten connections."""
    return settings.model_copy(update={"page_size": 10})


@pytest.fixture
def fetcher(settings: Settings, sleep: SleepRecorder) -> PaginatedFetcher:
    return PaginatedFetcher(settings, sleep=sleep)


class TestFetchAll:
    """Tests for fetching every page."""

    @pytest.mark.asyncio
    async def test_stops_at_short_page(
        self, fetcher: PaginatedFetcher, sleep: SleepRecorder
    ) -> None:
        client = FakeVoyagerClient(
            pages=[connections_page(_ids("a", 10), total=13), connections_page(_ids("b", 3))]
        )

        result = await fetcher.fetch_all(client)

        assert len(result.records) == 13
        assert result.total == 13
        assert client.page_requests == [(0, 10), (10, 10)]
        assert sleep.calls == [1.0]
        assert result.cancelled is False

    @pytest.mark.asyncio
    async def test_empty_network(self, fetcher: PaginatedFetcher) -> None:
        client = FakeVoyagerClient(pages=[connections_page([])])

        result = await fetcher.fetch_all(client)

        assert result.records == []
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_total_falls_back_to_fetched_count(self, fetcher: PaginatedFetcher) -> None:
        client = FakeVoyagerClient(pages=[connections_page(_ids("a", 4))])

        result = await fetcher.fetch_all(client)

        assert result.total == 4

    @pytest.mark.asyncio
    async def test_ceiling_caps_records(self, settings: Settings, sleep: SleepRecorder) -> None:
        capped = settings.model_copy(update={"max_connections": 15})
        fetcher = PaginatedFetcher(capped, sleep=sleep)
        client = FakeVoyagerClient(
            pages=[
                connections_page(_ids("a", 10)),
                connections_page(_ids("b", 10)),
                connections_page(_ids("c", 10)),
            ]
        )

        result = await fetcher.fetch_all(client)

        assert len(result.records) == 15
        assert len(client.page_requests) == 2

    @pytest.mark.asyncio
    async def test_callbacks_receive_each_page(self, fetcher: PaginatedFetcher) -> None:
        pages: list[list[Connection]] = []
        progress: list[tuple[int, int | None, int]] = []
        client = FakeVoyagerClient(
            pages=[connections_page(_ids("a", 10), total=12), connections_page(_ids("b", 2))]
        )

        await fetcher.fetch_all(
            client,
            on_progress=lambda current, total, page: progress.append((current, total, page)),
            on_page=pages.append,
        )

        assert [len(page) for page in pages] == [10, 2]
        assert progress == [(10, 12, 0), (12, 12, 1)]

    @pytest.mark.asyncio
    async def test_page_error_propagates(self, fetcher: PaginatedFetcher) -> None:
        client = FakeVoyagerClient(
            pages=[connections_page(_ids("a", 10)), PermanentAccessError("HTTP 403", 403)]
        )

        with pytest.raises(PermanentAccessError):
            await fetcher.fetch_all(client)


class TestResumeCursor:
    """Tests for incremental fetches that stop at the most recent known contact."""

    @pytest.mark.asyncio
    async def test_cursor_inside_first_page(self, fetcher: PaginatedFetcher) -> None:
        """A cursor at index 4 of a page of 10 yields 4 records and no further page."""
        client = FakeVoyagerClient(
            pages=[connections_page(_ids("a", 10)), connections_page(_ids("b", 10))]
        )

        result = await fetcher.fetch_all(
            client, resume_cursor="https://www.linkedin.com/in/a4"
        )

        assert [r.public_identifier for r in result.records] == ["a0", "a1", "a2", "a3"]
        assert result.reached_cursor is True
        assert len(client.page_requests) == 1

    @pytest.mark.asyncio
    async def test_cursor_on_later_page(self, fetcher: PaginatedFetcher) -> None:
        client = FakeVoyagerClient(
            pages=[connections_page(_ids("a", 10)), connections_page(_ids("b", 10))]
        )

        result = await fetcher.fetch_all(client, resume_cursor="b2")

        assert len(result.records) == 12
        assert len(client.page_requests) == 2

    @pytest.mark.asyncio
    async def test_cursor_url_is_canonicalized(self, fetcher: PaginatedFetcher) -> None:
        client = FakeVoyagerClient(pages=[connections_page(_ids("a", 10))])

        result = await fetcher.fetch_all(
            client, resume_cursor="https://linkedin.com/in/a1/?trk=feed"
        )

        assert [r.public_identifier for r in result.records] == ["a0"]

    @pytest.mark.asyncio
    async def test_cursor_first_means_nothing_new(self, fetcher: PaginatedFetcher) -> None:
        client = FakeVoyagerClient(pages=[connections_page(_ids("a", 10))])
        pages: list[list[Connection]] = []

        result = await fetcher.fetch_all(client, resume_cursor="a0", on_page=pages.append)

        assert result.records == []
        assert result.reached_cursor is True
        assert pages == []


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, fetcher: PaginatedFetcher) -> None:
        cancel = asyncio.Event()
        cancel.set()
        client = FakeVoyagerClient(pages=[connections_page(_ids("a", 10))])

        result = await fetcher.fetch_all(client, cancel=cancel)

        assert result.cancelled is True
        assert client.page_requests == []

    @pytest.mark.asyncio
    async def test_cancel_between_pages(self, fetcher: PaginatedFetcher) -> None:
        """The page in flight completes; no further page is requested."""
        cancel = asyncio.Event()
        client = FakeVoyagerClient(
            pages=[connections_page(_ids("a", 10)), connections_page(_ids("b", 10))]
        )

        result = await fetcher.fetch_all(
            client, cancel=cancel, on_progress=lambda *_: cancel.set()
        )

        assert result.cancelled is True
        assert len(result.records) == 10
        assert len(client.page_requests) == 1


class TestRateLimiting:
    """Tests for charging the rate limiter per page."""

    @pytest.mark.asyncio
    async def test_each_page_consumes_one_unit(
        self,
        settings: Settings,
        db_service: DatabaseService,
        clock: FakeClock,
        sleep: SleepRecorder,
    ) -> None:
        limiter = RateLimiter(db_service, settings, sleep=sleep, clock=clock)
        fetcher = PaginatedFetcher(settings, rate_limiter=limiter, sleep=sleep)
        client = FakeVoyagerClient(
            pages=[connections_page(_ids("a", 10)), connections_page(_ids("b", 5))]
        )

        await fetcher.fetch_all(client, category=RateLimitCategory.INCREMENTAL)

        limits = settings.rate_limits
        incremental = limiter.remaining(RateLimitCategory.INCREMENTAL)
        assert incremental.hourly == limits.incremental.max_per_hour - 2
        assert limiter.remaining(RateLimitCategory.BULK).hourly == limits.bulk.max_per_hour

    @pytest.mark.asyncio
    async def test_exhausted_budget_stops_fetch(
        self,
        settings: Settings,
        db_service: DatabaseService,
        clock: FakeClock,
        sleep: SleepRecorder,
    ) -> None:
        tight = settings.model_copy(
            update={
                "rate_limits": RateLimitSettings(
                    bulk=CategoryLimits(
                        max_per_hour=1, max_per_day=10, delay_min_seconds=0, delay_max_seconds=0
                    )
                )
            }
        )
        limiter = RateLimiter(db_service, tight, sleep=sleep, clock=clock)
        fetcher = PaginatedFetcher(tight, rate_limiter=limiter, sleep=sleep)
        client = FakeVoyagerClient(
            pages=[connections_page(_ids("a", 10)), connections_page(_ids("b", 10))]
        )

        with pytest.raises(RateLimitExceeded):
            await fetcher.fetch_all(client)

        assert len(client.page_requests) == 1
