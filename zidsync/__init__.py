"""zidsync - sync a local storefront theme folder with a Zid theme."""

from .api import ZidClient
from .config import Credentials
from .exceptions import (
    ZidAPIError,
    ZidArchiverError,
    ZidArchiverExecError,
    ZidArchiverLockError,
    ZidAuthenticationError,
    ZidConfigError,
    ZidError,
    ZidLoginError,
    ZidLoginTimeoutError,
    ZidNetworkError,
    ZidSessionError,
    ZidThemeNotFoundError,
    ZidUploadError,
)
from .session import Session, SessionCache

__all__ = [
    "ZidClient",
    "Credentials",
    "Session",
    "SessionCache",
    "ZidAPIError",
    "ZidArchiverError",
    "ZidArchiverExecError",
    "ZidArchiverLockError",
    "ZidAuthenticationError",
    "ZidConfigError",
    "ZidError",
    "ZidLoginError",
    "ZidLoginTimeoutError",
    "ZidNetworkError",
    "ZidSessionError",
    "ZidThemeNotFoundError",
    "ZidUploadError",
]
