"""Data models for Zid dashboard API responses."""

from dataclasses import dataclass, field
from typing import Any, Optional

from .exceptions import ZidThemeNotFoundError, ZidUploadError

# Message the dashboard returns when THEME_ID does not exist in the account
THEME_NOT_FOUND_MARKER = "لم يتم إيجاد الثييم المطلوب"


@dataclass
class Theme:
    """A theme listed in the account."""

    id: str
    name: str
    code: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Theme":
        """Create a Theme from one entry of the themes listing."""
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name") or ""),
            code=data.get("code"),
            status=data.get("status"),
            created_at=data.get("created_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "status": self.status,
            "created_at": self.created_at,
        }


@dataclass
class UploadResult:
    """Outcome of a theme upload as reported by the dashboard."""

    success: bool
    status: Optional[str] = None
    message: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: Any) -> "UploadResult":
        if not isinstance(payload, dict):
            return cls(success=False, message="Unknown error")
        status = payload.get("status")
        success = status == "success"
        message = payload.get("message") or ("" if success else "Unknown error")
        return cls(
            success=success,
            status=status,
            message=str(message),
            payload=payload,
        )

    @property
    def theme_not_found(self) -> bool:
        return not self.success and THEME_NOT_FOUND_MARKER in self.message

    def raise_for_failure(self) -> None:
        """Raise the matching upload error when the upload did not succeed.

        Raises:
            ZidThemeNotFoundError: If the target theme does not exist
            ZidUploadError: For any other failure response
        """
        if self.success:
            return
        if self.theme_not_found:
            raise ZidThemeNotFoundError(self.message, self.payload)
        raise ZidUploadError(self.message, self.payload)
