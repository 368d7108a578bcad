"""Authenticated session derived from browser cookies, and its on-disk cache.

The cookie list captured from the browser is the source of truth. A
:class:`Session` is built from it and carries the CSRF token the dashboard API
expects in the ``X-Xsrf-Token`` header. The :class:`SessionCache` keeps the
cookie list in a JSON file so a later run can reuse it without a new login.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote

from .exceptions import ZidSessionError

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "XSRF-TOKEN"

Cookie = dict[str, Any]


def serialize_cookies(cookies: list[Cookie]) -> str:
    """Serialize cookies into a ``Cookie`` header value.

    Args:
        cookies: Cookie records with ``name`` and ``value`` keys

    Returns:
        Header value like ``"a=1; b=2"`` (cookie order is preserved)
    """
    return "; ".join(f"{c['name']}={c['value']}" for c in cookies)


@dataclass(frozen=True)
class Session:
    """Cookies of a logged-in dashboard session plus the derived CSRF token."""

    cookies: tuple[Cookie, ...]
    csrf_token: str
    cookie_header: str = field(repr=False)

    @classmethod
    def from_cookies(cls, cookies: list[Cookie]) -> "Session":
        """Derive a session from a cookie list.

        Args:
            cookies: Cookie records as exported by the browser

        Returns:
            Session instance

        Raises:
            ZidSessionError: If the cookies are malformed or lack the CSRF cookie
        """
        try:
            header = serialize_cookies(cookies)
            xsrf = next((c for c in cookies if c.get("name") == CSRF_COOKIE_NAME), None)
        except (KeyError, TypeError, AttributeError) as e:
            raise ZidSessionError(f"Malformed cookie list: {e}") from e
        if xsrf is None:
            raise ZidSessionError(f"{CSRF_COOKIE_NAME} not found in cookies")
        return cls(
            cookies=tuple(cookies),
            csrf_token=unquote(str(xsrf["value"])),
            cookie_header=header,
        )

    def auth_headers(self) -> dict[str, str]:
        """Headers required on every authenticated API call."""
        return {"X-Xsrf-Token": self.csrf_token, "Cookie": self.cookie_header}


class SessionCache:
    """Persists the browser cookie list as a JSON array."""

    def __init__(self, path: Path):
        """Initialize the cache.

        Args:
            path: Location of the cookies file
        """
        self.path = Path(path)

    def load(self) -> Optional[list[Cookie]]:
        """Load the cached cookies.

        Returns:
            Cookie list, or None if the file is missing or not a valid snapshot
        """
        if not self.path.exists():
            logger.debug(f"No cached session at {self.path}")
            return None

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session cache {self.path}: {e}")
            return None

        if not isinstance(data, list) or not all(
            isinstance(item, dict) and "name" in item and "value" in item
            for item in data
        ):
            logger.warning(f"Ignoring malformed session cache {self.path}")
            return None

        logger.debug(f"Loaded {len(data)} cached cookies from {self.path}")
        return data

    def save(self, cookies: list[Cookie]) -> None:
        """Write the cookies, replacing any previous snapshot atomically.

        Args:
            cookies: Cookie records to persist
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(list(cookies), f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Saved {len(cookies)} cookies to {self.path}")

    def invalidate(self) -> bool:
        """Remove the cached cookies.

        Returns:
            True if a snapshot was removed, False if none existed
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.debug(f"Removed session cache {self.path}")
        return True
