"""Unit tests for the sync orchestrator."""

from pathlib import Path
from unittest.mock import MagicMock, Mock

import pytest

from zidsync.api import ZidClient
from zidsync.config import Credentials
from zidsync.exceptions import (
    ZidArchiverExecError,
    ZidAuthenticationError,
    ZidNetworkError,
)
from zidsync.models import THEME_NOT_FOUND_MARKER, Theme, UploadResult
from zidsync.output import OutputFormatter
from zidsync.packager import ThemePackager
from zidsync.session import Session, SessionCache
from zidsync.sync import ThemeSync

COOKIES = [
    {"name": "XSRF-TOKEN", "value": "abc"},
    {"name": "zid_session", "value": "xyz"},
]
FRESH_COOKIES = [{"name": "XSRF-TOKEN", "value": "fresh"}]


@pytest.fixture
def credentials(tmp_path):
    return Credentials(
        base_url="https://web.zid.sa",
        email="merchant@example.com",
        password="secret",
        theme_id="101",
        theme_name="Vineta",
        theme_code="vineta",
        theme_folder="Vineta",
        workdir=tmp_path,
    )


@pytest.fixture
def client():
    mock_client = Mock(spec=ZidClient)
    mock_client.get_account_status.return_value = 200
    mock_client.upload_theme.return_value = UploadResult(
        success=True, status="success", message="ok"
    )
    return mock_client


@pytest.fixture
def cache():
    mock_cache = Mock(spec=SessionCache)
    mock_cache.load.return_value = list(COOKIES)
    return mock_cache


@pytest.fixture
def authenticator():
    mock_auth = Mock()
    mock_auth.login.return_value = Session.from_cookies(FRESH_COOKIES)
    return mock_auth


@pytest.fixture
def packager(credentials):
    mock_packager = Mock(spec=ThemePackager)
    mock_packager.pack.return_value = credentials.archive_path
    return mock_packager


@pytest.fixture
def output():
    return MagicMock(spec=OutputFormatter)


@pytest.fixture
def theme_sync(credentials, client, cache, authenticator, packager, output):
    """A ThemeSync wired to mocks, with sleeping disabled."""
    return ThemeSync(
        credentials=credentials,
        client=client,
        cache=cache,
        authenticator=authenticator,
        packager=packager,
        output=output,
        sleep=lambda seconds: None,
    )


class TestEnsureAuth:
    """Tests for ThemeSync.ensure_auth."""

    def test_reuses_valid_cookies(self, theme_sync, authenticator, client):
        """Test a cached session accepted by the account check is used without login."""
        session = theme_sync.ensure_auth()
        assert session.csrf_token == "abc"
        client.get_account_status.assert_called_once()
        authenticator.login.assert_not_called()

    def test_rejected_cookies_trigger_login(self, theme_sync, authenticator, client):
        """Test a non-200 account check falls back to exactly one browser login."""
        client.get_account_status.return_value = 403
        session = theme_sync.ensure_auth()
        assert session.csrf_token == "fresh"
        authenticator.login.assert_called_once_with(theme_sync.credentials)

    def test_no_cache_triggers_login(self, theme_sync, authenticator, cache, client):
        """Test a missing cookie file goes straight to login."""
        cache.load.return_value = None
        theme_sync.ensure_auth()
        client.get_account_status.assert_not_called()
        authenticator.login.assert_called_once()

    def test_force_skips_cache(self, theme_sync, authenticator, cache):
        """Test force=True always logs in."""
        theme_sync.ensure_auth(force=True)
        cache.load.assert_not_called()
        authenticator.login.assert_called_once()

    def test_status_check_error_triggers_login(self, theme_sync, authenticator, client):
        """Test a failing account check is treated as an invalid session."""
        client.get_account_status.side_effect = ZidNetworkError("Network error")
        assert theme_sync.ensure_auth().csrf_token == "fresh"
        authenticator.login.assert_called_once()

    def test_cookies_without_csrf_trigger_login(self, theme_sync, authenticator, cache, client):
        """Test cached cookies lacking XSRF-TOKEN are not checked remotely."""
        cache.load.return_value = [{"name": "zid_session", "value": "xyz"}]
        theme_sync.ensure_auth()
        client.get_account_status.assert_not_called()
        authenticator.login.assert_called_once()


class TestCheckSession:
    """Tests for ThemeSync.check_session."""

    def test_valid(self, theme_sync, authenticator):
        """Test a valid cached session is returned."""
        assert theme_sync.check_session() is not None
        authenticator.login.assert_not_called()

    def test_invalid_never_logs_in(self, theme_sync, authenticator, client):
        """Test an invalid session returns None without opening a browser."""
        client.get_account_status.return_value = 401
        assert theme_sync.check_session() is None
        authenticator.login.assert_not_called()


class TestListThemes:
    """Tests for ThemeSync.list_themes."""

    def test_lists_with_session(self, theme_sync, client):
        """Test the themes are fetched with the authenticated session."""
        client.list_themes.return_value = [Theme(id="101", name="Vineta")]
        themes = theme_sync.list_themes()
        assert [t.id for t in themes] == ["101"]
        session = client.list_themes.call_args.args[0]
        assert session.csrf_token == "abc"


class TestUploadTheme:
    """Tests for ThemeSync.upload_theme."""

    def test_success(self, theme_sync, client, packager, authenticator, output, credentials):
        """Test a successful upload packs the folder and uploads it once."""
        assert theme_sync.upload_theme() is True

        packager.pack.assert_called_once_with(credentials.folder_path)
        client.upload_theme.assert_called_once()
        args = client.upload_theme.call_args.args
        assert args[1:] == ("101", "Vineta", "vineta", Path(credentials.archive_path))
        authenticator.login.assert_not_called()
        output.success.assert_called_once_with("Upload success: ok")

    def test_waits_before_packing(self, credentials, client, cache, authenticator, packager, output):
        """Test the pre-pack delay is applied before zipping."""
        sleep = Mock()
        theme_sync = ThemeSync(
            credentials, client, cache, authenticator, packager, output, sleep=sleep
        )
        theme_sync.upload_theme()
        sleep.assert_called_once_with(0.5)

    def test_auth_error_retries_with_fresh_login(self, theme_sync, client, authenticator):
        """Test an HTTP 401 forces one login and one more upload."""
        client.upload_theme.side_effect = [
            ZidAuthenticationError("Unauthorized", status_code=401),
            UploadResult(success=True, status="success", message="ok"),
        ]

        assert theme_sync.upload_theme() is True
        assert client.upload_theme.call_count == 2
        authenticator.login.assert_called_once()
        second_session = client.upload_theme.call_args_list[1].args[0]
        assert second_session.csrf_token == "fresh"

    def test_theme_not_found_lists_themes(self, theme_sync, client, cache, authenticator, output):
        """Test a missing theme lists the account themes and does not retry."""
        client.upload_theme.return_value = UploadResult(
            success=False, status="fail", message=THEME_NOT_FOUND_MARKER
        )
        themes = [Theme(id="202", name="Other")]
        client.list_themes.return_value = themes

        assert theme_sync.upload_theme() is False

        client.upload_theme.assert_called_once()
        client.list_themes.assert_called_once()
        output.print_themes.assert_called_once_with(themes, current_id="101")
        cache.invalidate.assert_not_called()
        authenticator.login.assert_not_called()

    def test_upload_failure_invalidates_and_retries(self, theme_sync, client, cache, authenticator):
        """Test another failure drops the cookies and retries after a login."""
        client.upload_theme.side_effect = [
            UploadResult(success=False, status="fail", message="expired"),
            UploadResult(success=True, status="success", message="ok"),
        ]

        assert theme_sync.upload_theme() is True
        cache.invalidate.assert_called_once()
        authenticator.login.assert_called_once()
        assert client.upload_theme.call_count == 2

    def test_persistent_failure_is_bounded(self, theme_sync, client, authenticator, output):
        """Test a failure that persists after the retry gives up."""
        client.upload_theme.return_value = UploadResult(
            success=False, status="fail", message="expired"
        )

        assert theme_sync.upload_theme() is False
        assert client.upload_theme.call_count == 2
        authenticator.login.assert_called_once()
        output.error.assert_called_with("Upload failed after 2 attempts: expired")

    def test_no_retries(self, credentials, client, cache, authenticator, packager, output):
        """Test max_retries=0 gives up after the first failure."""
        client.upload_theme.side_effect = ZidAuthenticationError("Unauthorized", 401)
        theme_sync = ThemeSync(
            credentials,
            client,
            cache,
            authenticator,
            packager,
            output,
            max_retries=0,
            sleep=lambda seconds: None,
        )

        assert theme_sync.upload_theme() is False
        client.upload_theme.assert_called_once()
        authenticator.login.assert_not_called()

    def test_archiver_error_aborts(self, theme_sync, client, packager, authenticator, output):
        """Test a packaging failure is reported and nothing is uploaded."""
        packager.pack.side_effect = ZidArchiverExecError("Archiver exited with code 2", 2)

        assert theme_sync.upload_theme() is False
        client.upload_theme.assert_not_called()
        authenticator.login.assert_not_called()
        output.error.assert_called_once()

    def test_http_error_aborts(self, theme_sync, client, authenticator):
        """Test HTTP errors other than 401 are not retried."""
        client.upload_theme.side_effect = ZidNetworkError("Network error")

        assert theme_sync.upload_theme() is False
        client.upload_theme.assert_called_once()
        authenticator.login.assert_not_called()
