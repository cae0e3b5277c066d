# ABOUTME: Async HTTP client for LinkedIn's private Voyager API using captured session headers.
# ABOUTME: Applies the retry policy: 429 exponential backoff, 403/410 permanent, others linear.

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx

from linkedin_sync.auth.credentials import CSRF_HEADER, CredentialBag
from linkedin_sync.config import Settings
from linkedin_sync.voyager.exceptions import PermanentAccessError, TransientFetchError

logger = logging.getLogger(__name__)

VOYAGER_BASE_URL = "https://www.linkedin.com/voyager/api"
CONNECTIONS_PATH = "/relationships/dash/connections"
CONNECTIONS_DECORATION_ID = (
    "com.linkedin.voyager.dash.deco.web.mynetwork.ConnectionListWithProfile-16"
)

PERMANENT_STATUSES = frozenset({403, 410})
RATE_LIMITED_STATUS = 429


def build_request_headers(credentials: CredentialBag) -> dict[str, str]:
    """Build Voyager request headers from a credential bag.

    Args:
        credentials: The captured header bag.

    Returns:
        Headers to send with every Voyager request.
    """
    headers = credentials.headers
    return {
        "accept": "application/vnd.linkedin.normalized+json+2.1",
        "accept-language": "en-US,en;q=0.9",
        "x-li-lang": headers.get("x-li-lang") or "en_US",
        "x-li-page-instance": headers.get("x-li-page-instance") or "",
        "x-li-track": headers.get("x-li-track") or "",
        "x-restli-protocol-version": headers.get("x-restli-protocol-version") or "2.0.0",
        CSRF_HEADER: headers.get(CSRF_HEADER) or "",
    }


class VoyagerClient:
    """Async client for the Voyager endpoints used by sync and enrichment.

    Use as an async context manager; the underlying httpx.AsyncClient is
    opened on entry and closed on exit.
    """

    def __init__(
        self,
        credentials: CredentialBag,
        *,
        base_url: str = VOYAGER_BASE_URL,
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        max_backoff: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            credentials: Captured session headers and cookies.
            base_url: Voyager API root.
            timeout: Timeout for a single HTTP request in seconds.
            max_retries: Attempts per request.
            retry_delay: Base delay for backoff in seconds.
            max_backoff: Upper bound for a single backoff sleep in seconds.
            sleep: Coroutine used to pause between attempts.
            transport: Optional httpx transport, used by tests.
        """
        self.credentials = credentials
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_backoff = max_backoff
        self._sleep = sleep
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls, credentials: CredentialBag, settings: Settings, **kwargs: Any
    ) -> "VoyagerClient":
        """Create a client configured from application settings."""
        return cls(
            credentials,
            timeout=settings.request_timeout_seconds,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay_seconds,
            max_backoff=settings.max_backoff_seconds,
            **kwargs,
        )

    async def __aenter__(self) -> "VoyagerClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=build_request_headers(self.credentials),
            cookies=self.credentials.cookies,
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _backoff(self, attempt: int, exponential: bool) -> float:
        if exponential:
            delay = self.retry_delay * (2**attempt)
        else:
            delay = self.retry_delay * (attempt + 1)
        return min(delay, self.max_backoff)

    async def request_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a Voyager path and decode its JSON body, retrying transient failures.

        Args:
            path: Path relative to the Voyager API root.
            params: Optional query parameters.

        Returns:
            The decoded JSON body.

        Raises:
            PermanentAccessError: On HTTP 403 or 410, without retrying.
            TransientFetchError: When every attempt failed.
        """
        if self._client is None:
            raise RuntimeError("VoyagerClient must be used as an async context manager")

        last_error: TransientFetchError | None = None
        for attempt in range(self.max_retries):
            try:
                response = await self._client.get(path, params=params)
            except httpx.HTTPError as e:
                last_error = TransientFetchError(f"Request to {path} failed: {e}")
                delay = self._backoff(attempt, exponential=False)
            else:
                status = response.status_code
                if status in PERMANENT_STATUSES:
                    raise PermanentAccessError(
                        f"HTTP {status}: Profile unavailable or access blocked",
                        status_code=status,
                    )
                if status == RATE_LIMITED_STATUS:
                    last_error = TransientFetchError("HTTP 429: Rate limited", status_code=status)
                    delay = self._backoff(attempt, exponential=True)
                elif not response.is_success:
                    last_error = TransientFetchError(
                        f"HTTP {status}: {response.reason_phrase}", status_code=status
                    )
                    delay = self._backoff(attempt, exponential=False)
                else:
                    try:
                        return response.json()
                    except ValueError:
                        last_error = TransientFetchError(
                            f"Response from {path} is not JSON", status_code=status
                        )
                        delay = self._backoff(attempt, exponential=False)

            logger.warning(
                "Request to %s failed, attempt %d/%d: %s",
                path,
                attempt + 1,
                self.max_retries,
                last_error,
            )
            if attempt < self.max_retries - 1:
                await self._sleep(delay)

        if last_error is None:
            raise TransientFetchError(f"No attempts were made for {path}")
        raise last_error

    async def get_connections_page(self, start: int, count: int) -> Any:
        """Fetch one page of connections, most recently added first."""
        logger.debug("Fetching connections: start=%d, count=%d", start, count)
        return await self.request_json(
            CONNECTIONS_PATH,
            params={
                "decorationId": CONNECTIONS_DECORATION_ID,
                "count": count,
                "q": "search",
                "sortType": "RECENTLY_ADDED",
                "start": start,
            },
        )

    def _profile_path(self, public_identifier: str, section: str) -> str:
        return f"/identity/profiles/{quote(public_identifier, safe='')}/{section}"

    async def get_profile_view(self, public_identifier: str) -> Any:
        return await self.request_json(self._profile_path(public_identifier, "profileView"))

    async def get_contact_info(self, public_identifier: str) -> Any:
        return await self.request_json(self._profile_path(public_identifier, "profileContactInfo"))

    async def get_skills(self, public_identifier: str) -> Any:
        return await self.request_json(self._profile_path(public_identifier, "skills"))

    async def get_positions(self, public_identifier: str) -> Any:
        return await self.request_json(self._profile_path(public_identifier, "positions"))

    async def get_educations(self, public_identifier: str) -> Any:
        return await self.request_json(self._profile_path(public_identifier, "educations"))
