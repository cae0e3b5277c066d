# ABOUTME: Credential bag consumed by the sync engine and its keyring-backed store.
# ABOUTME: Bags hold captured request headers, session cookies and the capture timestamp.

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import keyring

from linkedin_sync.clock import utc_now

logger = logging.getLogger(__name__)

CSRF_HEADER = "csrf-token"
REQUIRED_HEADERS = (
    "x-li-lang",
    "x-li-page-instance",
    "x-li-track",
    "x-restli-protocol-version",
    CSRF_HEADER,
)
SESSION_COOKIES = ("JSESSIONID", "li_at")


@dataclass(frozen=True)
class CredentialBag:
    """Opaque header set captured from an authenticated LinkedIn page.

    The engine only checks for the CSRF token and the age of the capture.
    """

    headers: dict[str, str]
    captured_at: datetime
    cookies: dict[str, str] = field(default_factory=dict)

    @classmethod
    def capture(
        cls,
        headers: dict[str, Any],
        cookies: dict[str, Any] | None = None,
        captured_at: datetime | None = None,
    ) -> "CredentialBag":
        """Build a bag from raw captured headers, keeping only the ones the engine sends.

        Args:
            headers: Header names to values, in any case.
            cookies: Optional session cookies (JSESSIONID, li_at).
            captured_at: Capture time. Defaults to now.

        Returns:
            A new CredentialBag.
        """
        lowered = {str(name).lower(): str(value) for name, value in headers.items() if value}
        kept = {name: lowered[name] for name in REQUIRED_HEADERS if name in lowered}
        kept_cookies = {
            name: str(value) for name, value in (cookies or {}).items() if name in SESSION_COOKIES
        }
        return cls(headers=kept, captured_at=captured_at or utc_now(), cookies=kept_cookies)

    def has_token(self) -> bool:
        """Return True if the bag carries a non-empty CSRF token."""
        return bool(self.headers.get(CSRF_HEADER, "").strip())

    def cookie_token(self) -> str | None:
        """Derive the CSRF token from the captured JSESSIONID cookie, if any."""
        return csrf_from_cookie_value(self.cookies.get("JSESSIONID", ""))

    def age(self, now: datetime | None = None) -> timedelta:
        """Return how long ago the bag was captured."""
        return (now or utc_now()) - self.captured_at

    def is_fresh(self, max_age: timedelta, now: datetime | None = None) -> bool:
        """Return True if the bag was captured within max_age."""
        return self.age(now) <= max_age

    def with_token(self, token: str) -> "CredentialBag":
        """Return a copy of the bag carrying the given CSRF token."""
        return replace(self, headers={**self.headers, CSRF_HEADER: token})

    def to_json(self) -> str:
        return json.dumps(
            {
                "headers": self.headers,
                "cookies": self.cookies,
                "captured_at": self.captured_at.isoformat(),
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> "CredentialBag":
        data = json.loads(raw)
        captured_at = datetime.fromisoformat(data["captured_at"])
        if captured_at.tzinfo is None:
            captured_at = captured_at.replace(tzinfo=UTC)
        return cls(
            headers=dict(data.get("headers", {})),
            captured_at=captured_at,
            cookies=dict(data.get("cookies", {})),
        )


def csrf_from_cookie_value(jsessionid: str) -> str | None:
    """Derive the CSRF token from a JSESSIONID cookie value.

    LinkedIn quotes the cookie value; the token is the value without quotes.

    Args:
        jsessionid: Raw JSESSIONID cookie value.

    Returns:
        The token, or None if the value is empty.
    """
    token = jsessionid.strip().replace('"', "")
    return token or None


class CredentialStore:
    """Service for storing credential bags securely using the OS keyring."""

    SERVICE_NAME = "linkedin-sync"
    DEFAULT_ACCOUNTS_FILE = Path.home() / ".linkedin-sync" / "accounts.json"

    def __init__(self, accounts_file: Path | None = None) -> None:
        """Initialize the credential store.

        Args:
            accounts_file: Path to JSON file storing account names.
                Defaults to ~/.linkedin-sync/accounts.json
        """
        self.accounts_file = (
            accounts_file if accounts_file is not None else self.DEFAULT_ACCOUNTS_FILE
        )

    def save(self, bag: CredentialBag, account_name: str = "default") -> None:
        """Store a credential bag in the OS keyring.

        Args:
            bag: The captured credentials.
            account_name: Name to identify this account. Defaults to "default".
        """
        keyring.set_password(self.SERVICE_NAME, account_name, bag.to_json())
        self._add_account_to_list(account_name)
        logger.debug("Stored credentials for account %s", account_name)

    def load(self, account_name: str = "default") -> CredentialBag | None:
        """Retrieve a credential bag from the OS keyring.

        Args:
            account_name: Name of the account to retrieve. Defaults to "default".

        Returns:
            The CredentialBag if found and readable, None otherwise.
        """
        stored = keyring.get_password(self.SERVICE_NAME, account_name)
        if stored is None:
            return None

        try:
            return CredentialBag.from_json(stored)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning("Stored credentials for account %s are unreadable", account_name)
            return None

    def delete(self, account_name: str = "default") -> None:
        """Delete a credential bag from the OS keyring.

        Args:
            account_name: Name of the account to delete. Defaults to "default".
        """
        keyring.delete_password(self.SERVICE_NAME, account_name)
        self._remove_account_from_list(account_name)

    def list_accounts(self) -> list[str]:
        """List all stored account names."""
        return self._load_accounts()

    def _load_accounts(self) -> list[str]:
        """Load account names from the accounts file.

        Returns:
            List of account names, or empty list if file doesn't exist or is empty/invalid.
        """
        if not self.accounts_file.exists():
            return []

        try:
            content = self.accounts_file.read_text().strip()
            if not content:
                return []
            data: dict[str, Any] = json.loads(content)
            accounts = data.get("accounts", [])
            if isinstance(accounts, list):
                return [str(acc) for acc in accounts]
            return []
        except (json.JSONDecodeError, OSError):
            return []

    def _save_accounts(self, accounts: list[str]) -> None:
        self.accounts_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.accounts_file, "w") as f:
            json.dump({"accounts": accounts}, f, indent=2)

    def _add_account_to_list(self, account_name: str) -> None:
        accounts = self._load_accounts()
        if account_name not in accounts:
            accounts.append(account_name)
            self._save_accounts(accounts)

    def _remove_account_from_list(self, account_name: str) -> None:
        accounts = self._load_accounts()
        if account_name in accounts:
            accounts.remove(account_name)
            self._save_accounts(accounts)
