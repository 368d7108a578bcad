"""Configuration loaded from the environment (and an optional .env file)."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ZidConfigError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://web.zid.sa"
DEFAULT_HOME_URL = "https://web.zid.sa/home"
DEFAULT_ARCHIVER = "7z"
COOKIES_FILE_NAME = "cookies.json"
ARCHIVE_DIR_NAME = "zip"

_TRUE_VALUES = ("1", "true", "yes", "on")


def load_env_file(path: Optional[str] = None) -> bool:
    """Load variables from a .env file without overriding the environment.

    Args:
        path: Path to the .env file (defaults to ``.env`` in the working directory)

    Returns:
        True if a file was found and loaded
    """
    env_path = Path(path) if path else Path.cwd() / ".env"
    if not env_path.is_file():
        logger.debug(f"No env file at {env_path}")
        return False
    logger.debug(f"Loading environment from {env_path}")
    return load_dotenv(env_path, override=False)


@dataclass(frozen=True)
class Credentials:
    """Secrets and theme settings, read once at startup."""

    base_url: str
    email: str
    password: str
    theme_id: str = ""
    theme_name: str = ""
    theme_code: str = ""
    theme_folder: str = ""
    archiver_path: str = DEFAULT_ARCHIVER
    home_url: str = DEFAULT_HOME_URL
    headless: bool = False
    workdir: Path = Path(".")

    @classmethod
    def from_env(
        cls,
        require_theme: bool = False,
        environ: Optional[Mapping[str, str]] = None,
        workdir: Optional[Path] = None,
    ) -> "Credentials":
        """Build credentials from environment variables.

        Args:
            require_theme: Also require THEME_ID and THEME_FOLDER (upload and
                watch commands)
            environ: Mapping to read from (defaults to ``os.environ``)
            workdir: Directory that relative paths are resolved against

        Returns:
            Credentials instance

        Raises:
            ZidConfigError: If a required variable is missing, or the theme
                folder would contain its own archive
        """
        env = os.environ if environ is None else environ

        def get(key: str, default: str = "") -> str:
            return (env.get(key) or default).strip()

        required = ["ZID_EMAIL", "ZID_PASSWORD"]
        if require_theme:
            required.extend(["THEME_ID", "THEME_FOLDER"])
        missing = [key for key in required if not get(key)]
        if missing:
            raise ZidConfigError(
                f"Please set {', '.join(missing)} in the environment or .env file"
            )

        credentials = cls(
            base_url=get("ZID_BASE", DEFAULT_BASE_URL).rstrip("/"),
            email=get("ZID_EMAIL"),
            password=get("ZID_PASSWORD"),
            theme_id=get("THEME_ID"),
            theme_name=get("THEME_NAME"),
            theme_code=get("THEME_CODE"),
            theme_folder=get("THEME_FOLDER"),
            archiver_path=get("ZIP_EXE_PATH", DEFAULT_ARCHIVER),
            home_url=get("ZID_HOME_URL", DEFAULT_HOME_URL),
            headless=get("ZID_HEADLESS").lower() in _TRUE_VALUES,
            workdir=workdir or Path.cwd(),
        )
        if require_theme:
            credentials._check_theme_folder()
        return credentials

    def _check_theme_folder(self) -> None:
        # An archive written inside the watched folder would trigger a new
        # upload on every upload, and would be packed into itself
        folder = self.folder_path.resolve()
        archive = self.archive_path.resolve()
        if archive == folder or folder in archive.parents:
            raise ZidConfigError(
                f"THEME_FOLDER must not contain the archive {self.archive_path}; "
                "point it at the theme's own folder"
            )

    @property
    def login_url(self) -> str:
        return f"{self.base_url}/login"

    @property
    def folder_path(self) -> Path:
        return self.workdir / self.theme_folder

    @property
    def archive_path(self) -> Path:
        return self.workdir / ARCHIVE_DIR_NAME / f"{self.theme_folder}.zip"

    @property
    def cookies_path(self) -> Path:
        return self.workdir / COOKIES_FILE_NAME

    def __repr__(self) -> str:
        return (
            f"Credentials(base_url={self.base_url!r}, email={self.email!r}, "
            f"password='***', theme_id={self.theme_id!r}, "
            f"theme_folder={self.theme_folder!r})"
        )
