"""Keeps a remote theme in sync with the local theme folder.

:class:`ThemeSync` is the only place sessions are obtained: every remote call
goes through :meth:`ThemeSync.ensure_auth`, which reuses the cached cookies
while the dashboard accepts them and falls back to a browser login.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

from .api import ZidClient
from .config import Credentials
from .exceptions import (
    ZidAuthenticationError,
    ZidError,
    ZidThemeNotFoundError,
    ZidUploadError,
)
from .models import Theme
from .output import OutputFormatter
from .packager import ThemePackager
from .session import Session, SessionCache

logger = logging.getLogger(__name__)

# Pause before zipping so editors finish flushing files
PRE_PACK_DELAY = 0.5
MAX_UPLOAD_RETRIES = 1


class Authenticator(Protocol):
    def login(self, credentials: Credentials) -> Session: ...


class ThemeSync:
    """Authenticates, packages and uploads the configured theme."""

    def __init__(
        self,
        credentials: Credentials,
        client: ZidClient,
        cache: SessionCache,
        authenticator: Authenticator,
        packager: ThemePackager,
        output: Optional[OutputFormatter] = None,
        max_retries: int = MAX_UPLOAD_RETRIES,
        pre_pack_delay: float = PRE_PACK_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the orchestrator.

        Args:
            credentials: Account and theme settings
            client: Dashboard API client
            cache: Cookie cache
            authenticator: Performs the browser login when needed
            packager: Builds the theme archive
            output: Output formatter for user-facing messages
            max_retries: Upload retries after an auth or upload failure
            pre_pack_delay: Seconds to wait before zipping
            sleep: Sleep function (injectable for tests)
        """
        self.credentials = credentials
        self.client = client
        self.cache = cache
        self.authenticator = authenticator
        self.packager = packager
        self.output = output or OutputFormatter()
        self.max_retries = max_retries
        self.pre_pack_delay = pre_pack_delay
        self._sleep = sleep

    def ensure_auth(self, force: bool = False) -> Session:
        """Return a usable session, logging in through the browser if needed.

        Args:
            force: Skip the cached cookies and always log in again

        Returns:
            Session to use for API calls
        """
        if not force:
            session = self._cached_session()
            if session is not None:
                return session
        return self.authenticator.login(self.credentials)

    def _cached_session(self) -> Optional[Session]:
        cookies = self.cache.load()
        if cookies is None:
            return None
        try:
            session = Session.from_cookies(cookies)
            status = self.client.get_account_status(session)
        except ZidError as e:
            logger.warning(f"Error with saved cookies, logging in again: {e}")
            return None
        if status == 200:
            logger.info("Reusing saved cookies")
            return session
        logger.warning(f"Saved cookies rejected (HTTP {status}), logging in again")
        return None

    def check_session(self) -> Optional[Session]:
        """Validate the cached session without opening a browser.

        Returns:
            The cached session if the dashboard accepts it, None otherwise
        """
        return self._cached_session()

    def list_themes(self) -> list[Theme]:
        """List the themes of the account.

        Returns:
            Themes of the account
        """
        session = self.ensure_auth()
        logger.info("Fetching available themes")
        return self.client.list_themes(session)

    def upload_theme(self) -> bool:
        """Package the theme folder and upload it to the configured theme.

        Authentication and upload failures trigger a new login and at most
        ``max_retries`` further attempts. A missing theme lists the available
        themes instead. Other errors abort the cycle.

        Returns:
            True if the dashboard accepted the upload
        """
        force_login = False
        attempt = 0
        while True:
            try:
                self._upload_once(force_login)
                return True
            except ZidAuthenticationError as e:
                logger.warning(f"Session expired during upload: {e}")
                self.output.warning("Session expired, logging in again...")
                last_error: ZidError = e
            except ZidThemeNotFoundError as e:
                self.output.error(f"Upload error: {e.message}")
                self._report_missing_theme()
                return False
            except ZidUploadError as e:
                self.output.error(f"Upload error: {e.message}")
                # The dashboard refused the cookies in some other way: start over
                self.cache.invalidate()
                last_error = e
            except ZidError as e:
                logger.error(f"Upload cycle aborted: {e}")
                self.output.error(f"Upload error: {e}")
                return False

            if attempt >= self.max_retries:
                self.output.error(
                    f"Upload failed after {attempt + 1} attempts: {last_error}"
                )
                return False
            attempt += 1
            force_login = True

    def _upload_once(self, force_login: bool) -> None:
        session = self.ensure_auth(force=force_login)
        self._sleep(self.pre_pack_delay)
        with self.output.progress("Packing theme..."):
            archive = self.packager.pack(self.credentials.folder_path)
        with self.output.progress(f"Uploading {Path(archive).name}..."):
            result = self.client.upload_theme(
                session,
                self.credentials.theme_id,
                self.credentials.theme_name,
                self.credentials.theme_code,
                Path(archive),
            )
        result.raise_for_failure()
        logger.debug(f"Upload response: {result.payload}")
        self.output.success(f"Upload success: {result.message or result.status}")

    def _report_missing_theme(self) -> None:
        self.output.info("Theme ID not found. Listing available themes...")
        try:
            themes = self.list_themes()
        except ZidError as e:
            self.output.error(f"Error listing themes: {e}")
            return
        self.output.print_themes(themes, current_id=self.credentials.theme_id)
        self.output.info(
            "Please update THEME_ID in your .env file with the correct ID "
            "from the list above."
        )
