"""Exceptions raised by zidsync."""

from typing import Optional


class ZidError(Exception):
    """Base exception for all zidsync errors."""


class ZidConfigError(ZidError):
    """Required configuration is missing or invalid."""


class ZidSessionError(ZidError):
    """A cookie set cannot be turned into a usable session."""


class ZidLoginError(ZidError):
    """The browser login flow failed."""


class ZidLoginTimeoutError(ZidLoginError, TimeoutError):
    """The browser login flow did not complete in time."""


class ZidArchiverError(ZidError):
    """Packaging the theme folder failed."""


class ZidArchiverLockError(ZidArchiverError):
    """The previous archive stayed locked and could not be removed."""


class ZidArchiverExecError(ZidArchiverError):
    """The external archiver failed."""

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class ZidAPIError(ZidError):
    """Base exception for errors returned by the Zid dashboard API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ZidAuthenticationError(ZidAPIError):
    """The API rejected the session (HTTP 401)."""


class ZidNetworkError(ZidAPIError):
    """The API could not be reached."""


class ZidUploadError(ZidAPIError):
    """The API answered a theme upload with a failure status."""

    def __init__(self, message: str, payload: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}


class ZidThemeNotFoundError(ZidUploadError):
    """The theme to update does not exist in the account."""
