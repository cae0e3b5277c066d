# ABOUTME: Tests for the credential bag, the keyring-backed store and the browser refresher.
# ABOUTME: Covers header filtering, freshness, CSRF-from-cookie derivation and account management.

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from fakes import START_TIME, make_bag
from linkedin_sync.auth import (
    BrowserSessionRefresher,
    CredentialBag,
    CredentialStore,
    NoSessionError,
    csrf_from_cookie_value,
)
from linkedin_sync.auth.refresh import CONNECTIONS_PAGE_URL


@pytest.fixture
def temp_accounts_file(tmp_path: Path) -> Path:
    """Create a temporary accounts file path."""
    return tmp_path / "accounts.json"


@pytest.fixture
def mock_keyring() -> MagicMock:
    """Create a dict-backed mock keyring for testing."""
    storage: dict[tuple[str, str], str] = {}
    with patch("linkedin_sync.auth.credentials.keyring") as mock:
        mock.set_password = MagicMock(
            side_effect=lambda service, account, value: storage.__setitem__(
                (service, account), value
            )
        )
        mock.get_password = MagicMock(
            side_effect=lambda service, account: storage.get((service, account))
        )
        mock.delete_password = MagicMock(
            side_effect=lambda service, account: storage.pop((service, account), None)
        )
        yield mock


@pytest.fixture
def store(temp_accounts_file: Path, mock_keyring: MagicMock) -> CredentialStore:
    """Create a CredentialStore instance with mocked dependencies."""
    return CredentialStore(accounts_file=temp_accounts_file)


class TestCredentialBag:
    """Tests for building and inspecting credential bags."""

    def test_capture_keeps_only_sent_headers(self) -> None:
        """Header names are lower-cased and unknown headers dropped."""
        bag = CredentialBag.capture(
            {
                "CSRF-Token": "ajax:1",
                "X-Li-Track": '{"clientVersion":"1.0"}',
                "User-Agent": "Mozilla",
                "x-li-lang": "",
            },
            captured_at=START_TIME,
        )

        assert bag.headers == {"csrf-token": "ajax:1", "x-li-track": '{"clientVersion":"1.0"}'}
        assert bag.captured_at == START_TIME

    def test_capture_keeps_only_session_cookies(self) -> None:
        bag = CredentialBag.capture({}, {"li_at": "AQE", "JSESSIONID": '"ajax:1"', "lang": "en"})
        assert bag.cookies == {"li_at": "AQE", "JSESSIONID": '"ajax:1"'}

    def test_has_token(self) -> None:
        assert make_bag().has_token() is True
        assert make_bag(token=None).has_token() is False
        assert CredentialBag.capture({"csrf-token": "   "}).has_token() is False

    def test_freshness(self) -> None:
        bag = make_bag(captured_at=START_TIME)
        max_age = timedelta(minutes=3)

        assert bag.is_fresh(max_age, START_TIME + timedelta(minutes=2)) is True
        assert bag.is_fresh(max_age, START_TIME + timedelta(minutes=3)) is True
        assert bag.is_fresh(max_age, START_TIME + timedelta(minutes=4)) is False
        assert bag.age(START_TIME + timedelta(seconds=30)) == timedelta(seconds=30)

    def test_with_token_returns_copy(self) -> None:
        bag = make_bag(token=None)
        updated = bag.with_token("ajax:2")

        assert updated.headers["csrf-token"] == "ajax:2"
        assert bag.has_token() is False

    def test_json_round_trip(self) -> None:
        bag = make_bag(cookies={"li_at": "AQE"})
        assert CredentialBag.from_json(bag.to_json()) == bag

    def test_from_json_naive_timestamp_is_utc(self) -> None:
        raw = json.dumps({"headers": {}, "captured_at": "2025-03-10T12:00:00"})
        bag = CredentialBag.from_json(raw)
        assert bag.captured_at == datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


class TestCsrfFromCookie:
    """Tests for deriving the CSRF token from JSESSIONID."""

    def test_strips_quotes(self) -> None:
        assert csrf_from_cookie_value('"ajax:5512"') == "ajax:5512"

    def test_unquoted_value(self) -> None:
        assert csrf_from_cookie_value("ajax:5512") == "ajax:5512"

    def test_empty_value(self) -> None:
        assert csrf_from_cookie_value('""') is None
        assert csrf_from_cookie_value("") is None

    def test_bag_cookie_token(self) -> None:
        bag = make_bag(token=None, cookies={"JSESSIONID": '"ajax:77"'})
        assert bag.cookie_token() == "ajax:77"

    def test_bag_without_cookie(self) -> None:
        assert make_bag().cookie_token() is None


class TestCredentialStore:
    """Tests for the keyring-backed credential store."""

    def test_init_with_default_accounts_file(self, mock_keyring: MagicMock) -> None:
        store = CredentialStore()
        assert store.accounts_file == Path.home() / ".linkedin-sync" / "accounts.json"

    def test_save_writes_to_keyring(self, store: CredentialStore, mock_keyring: MagicMock) -> None:
        bag = make_bag()
        store.save(bag, "work")

        mock_keyring.set_password.assert_called_once_with("linkedin-sync", "work", bag.to_json())

    def test_load_round_trip(self, store: CredentialStore) -> None:
        bag = make_bag(cookies={"li_at": "AQE"})
        store.save(bag)

        assert store.load() == bag

    def test_load_missing_returns_none(self, store: CredentialStore) -> None:
        assert store.load("nobody") is None

    def test_load_unreadable_returns_none(
        self, store: CredentialStore, mock_keyring: MagicMock
    ) -> None:
        mock_keyring.set_password("linkedin-sync", "default", "not json")
        assert store.load() is None

    def test_accounts_are_tracked(self, store: CredentialStore, temp_accounts_file: Path) -> None:
        store.save(make_bag(), "default")
        store.save(make_bag(), "work")
        store.save(make_bag(), "work")

        assert store.list_accounts() == ["default", "work"]
        assert json.loads(temp_accounts_file.read_text()) == {"accounts": ["default", "work"]}

    def test_delete_removes_account(self, store: CredentialStore) -> None:
        store.save(make_bag(), "work")
        store.delete("work")

        assert store.load("work") is None
        assert store.list_accounts() == []

    def test_list_accounts_with_corrupt_file(
        self, store: CredentialStore, temp_accounts_file: Path
    ) -> None:
        temp_accounts_file.write_text("{broken")
        assert store.list_accounts() == []


class TestBrowserSessionRefresher:
    """Tests for the out-of-band refresh."""

    def test_opens_connections_page_once(self) -> None:
        refresher = BrowserSessionRefresher()
        with patch("linkedin_sync.auth.refresh.webbrowser.open", return_value=True) as mock_open:
            refresher.request_refresh()
            refresher.request_refresh()

        mock_open.assert_called_once_with(CONNECTIONS_PAGE_URL, new=2)

    def test_close_allows_another_refresh(self) -> None:
        refresher = BrowserSessionRefresher()
        with patch("linkedin_sync.auth.refresh.webbrowser.open", return_value=True) as mock_open:
            refresher.request_refresh()
            refresher.close()
            refresher.request_refresh()

        assert mock_open.call_count == 2


class TestNoSessionError:
    def test_default_message(self) -> None:
        assert str(NoSessionError()) == "No LinkedIn session. Please visit LinkedIn first."
