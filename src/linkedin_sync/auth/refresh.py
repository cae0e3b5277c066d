# ABOUTME: Out-of-band credential refresh used when a manual sync has no fresh headers.
# ABOUTME: The default refresher opens LinkedIn in the user's browser so headers are re-emitted.

import logging
import webbrowser
from typing import Protocol

logger = logging.getLogger(__name__)

CONNECTIONS_PAGE_URL = "https://www.linkedin.com/mynetwork/invite-connect/connections/"


class SessionRefresher(Protocol):
    """Asks the outside world to re-emit session headers."""

    def request_refresh(self) -> None: ...

    def close(self) -> None: ...


class BrowserSessionRefresher:
    """Opens the LinkedIn connections page once per refresh request."""

    def __init__(self, url: str = CONNECTIONS_PAGE_URL) -> None:
        self.url = url
        self._opened = False

    def request_refresh(self) -> None:
        if self._opened:
            return
        logger.info("Opening %s to refresh the LinkedIn session", self.url)
        self._opened = webbrowser.open(self.url, new=2)
        if not self._opened:
            logger.warning("Could not open a browser; visit %s manually", self.url)

    def close(self) -> None:
        # Browser tabs are owned by the user; only forget that one was opened.
        self._opened = False
