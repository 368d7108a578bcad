"""API client for the Zid merchant dashboard."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from .exceptions import ZidAPIError, ZidAuthenticationError, ZidNetworkError
from .models import Theme, UploadResult
from .session import Session

logger = logging.getLogger(__name__)

ACCOUNT_ENDPOINT = "/api/v1/account"
THEMES_ENDPOINT = "/api/v1/themes"
THEME_UPDATE_ENDPOINT = "/api/v1/themes/{theme_id}/update"


class ZidClient:
    """Client for the theme endpoints of the Zid dashboard API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        upload_timeout: float = 120.0,
    ):
        """Initialize Zid API client.

        Args:
            base_url: Dashboard base URL (e.g. ``https://web.zid.sa``)
            timeout: Request timeout in seconds (default: 30.0)
            upload_timeout: Timeout for theme uploads in seconds (default: 120.0)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.upload_timeout = upload_timeout
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=False,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> ZidClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """Send a request, translating transport failures.

        Raises:
            ZidNetworkError: If the server could not be reached
        """
        logger.debug(f"HTTP {method} {endpoint}")
        try:
            response = self._get_client().request(method, endpoint, **kwargs)
        except httpx.RequestError as e:
            raise ZidNetworkError(f"Network error: {e}") from e
        logger.debug(f"HTTP {method} {endpoint} -> {response.status_code}")
        return response

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request and return the decoded JSON body.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Decoded JSON body, or None if the body is empty or not JSON

        Raises:
            ZidAuthenticationError: On HTTP 401
            ZidAPIError: On any other HTTP error status
            ZidNetworkError: If the server could not be reached
        """
        response = self._send(method, endpoint, **kwargs)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._handle_http_error(e) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.debug(
                f"Non-JSON response from {endpoint}: "
                f"{response.headers.get('Content-Type', '')}"
            )
            return None

    def _handle_http_error(self, e: httpx.HTTPStatusError) -> ZidAPIError:
        """Map an HTTP error status to a zidsync exception."""
        status_code = e.response.status_code
        if status_code == 401:
            return ZidAuthenticationError(
                "Session expired or unauthorized", status_code=status_code
            )

        error_msg = f"API request failed with status {status_code}"
        try:
            error_data = e.response.json()
            if isinstance(error_data, dict):
                msg = error_data.get("message") or error_data.get("error")
                if msg:
                    error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Not JSON, keep the status-based message
            pass
        return ZidAPIError(error_msg, status_code=status_code)

    # =========================
    # Account
    # =========================

    def get_account_status(self, session: Session) -> int:
        """Check a session against the account endpoint.

        Args:
            session: Session to check

        Returns:
            HTTP status code of the check (200 means the session is usable)

        Raises:
            ZidNetworkError: If the server could not be reached
        """
        response = self._send("GET", ACCOUNT_ENDPOINT, headers=session.auth_headers())
        return response.status_code

    # =========================
    # Themes
    # =========================

    def list_themes(self, session: Session) -> list[Theme]:
        """List the themes of the account.

        Args:
            session: Authenticated session

        Returns:
            Themes of the account (empty if the response has an unexpected shape)
        """
        payload = self._request("GET", THEMES_ENDPOINT, headers=session.auth_headers())
        rows = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            logger.warning("Unexpected response format from themes listing")
            return []
        return [Theme.from_api(row) for row in rows if isinstance(row, dict)]

    def upload_theme(
        self,
        session: Session,
        theme_id: str,
        theme_name: str,
        theme_code: str,
        archive_path: Path,
    ) -> UploadResult:
        """Upload a packaged theme to replace an existing theme.

        Args:
            session: Authenticated session
            theme_id: ID of the theme to update
            theme_name: Theme name sent with the upload
            theme_code: Theme code sent with the upload
            archive_path: Zip archive of the theme folder

        Returns:
            Upload result as reported by the dashboard

        Raises:
            ZidAuthenticationError: On HTTP 401
            ZidAPIError: On any other HTTP error status
        """
        archive_path = Path(archive_path)
        headers = {
            **session.auth_headers(),
            "Origin": self.base_url,
            "Referer": f"{self.base_url}/theme-market",
        }
        data = {"name": theme_name, "code": theme_code}

        with open(archive_path, "rb") as f:
            files = {"file": (archive_path.name, f, "application/zip")}
            payload = self._request(
                "POST",
                THEME_UPDATE_ENDPOINT.format(theme_id=theme_id),
                headers=headers,
                data=data,
                files=files,
                timeout=httpx.Timeout(self.upload_timeout),
            )
        return UploadResult.from_api(payload)
