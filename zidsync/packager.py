"""Packaging of the theme folder into a zip archive with an external archiver."""

import errno
import logging
import subprocess
import time
from pathlib import Path
from typing import Callable

from .exceptions import ZidArchiverError, ZidArchiverExecError, ZidArchiverLockError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_RETRIES = 5
DEFAULT_LOCK_RETRY_DELAY = 1.0

_LOCK_ERRNOS = (errno.EBUSY, errno.EACCES)


def _is_locked(error: OSError) -> bool:
    # Windows reports a file held by another process as PermissionError
    return isinstance(error, PermissionError) or error.errno in _LOCK_ERRNOS


def remove_archive(
    path: Path,
    retries: int = DEFAULT_LOCK_RETRIES,
    retry_delay: float = DEFAULT_LOCK_RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Remove an archive, waiting for it to be released if it is locked.

    Args:
        path: Archive to remove
        retries: Number of retries after the first locked attempt
        retry_delay: Seconds to wait before each retry
        sleep: Sleep function (injectable for tests)

    Returns:
        True if a file was removed, False if there was nothing to remove

    Raises:
        ZidArchiverLockError: If the archive is still locked after all retries
        OSError: For any other removal failure
    """
    for attempt in range(retries + 1):
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            if not _is_locked(e):
                raise
            if attempt >= retries:
                raise ZidArchiverLockError(
                    f"Archive {path} is still locked after {retries} retries"
                ) from e
            logger.info(
                f"Archive busy, retrying... ({retries - attempt} attempts left)"
            )
            sleep(retry_delay)
    return False


class ThemePackager:
    """Builds the upload archive of a theme folder using 7-Zip."""

    def __init__(
        self,
        archiver_path: str,
        archive_path: Path,
        lock_retries: int = DEFAULT_LOCK_RETRIES,
        lock_retry_delay: float = DEFAULT_LOCK_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the packager.

        Args:
            archiver_path: Path of the 7-Zip executable (``7z``, ``7z.exe``...)
            archive_path: Where the zip archive is written
            lock_retries: Retries when the previous archive is locked
            lock_retry_delay: Seconds between those retries
            sleep: Sleep function (injectable for tests)
        """
        self.archiver_path = archiver_path
        self.archive_path = Path(archive_path)
        self.lock_retries = lock_retries
        self.lock_retry_delay = lock_retry_delay
        self._sleep = sleep

    def build_command(self) -> list[str]:
        """Archiver command line: zip everything in the cwd recursively, overwrite."""
        return [
            self.archiver_path,
            "a",
            "-tzip",
            str(self.archive_path),
            "*",
            "-r",
            "-y",
        ]

    def pack(self, folder: Path) -> Path:
        """Compress the contents of a folder into the archive.

        The folder itself is not part of the archive, only its contents.

        Args:
            folder: Theme folder to compress

        Returns:
            Path of the written archive

        Raises:
            ZidArchiverLockError: If the previous archive cannot be removed
            ZidArchiverExecError: If the archiver is missing or fails
            ZidArchiverError: If the folder is missing or the old archive
                cannot be removed
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise ZidArchiverError(f"Theme folder does not exist: {folder}")

        logger.info(f"Zipping theme folder {folder}")
        self.archive_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            remove_archive(
                self.archive_path,
                retries=self.lock_retries,
                retry_delay=self.lock_retry_delay,
                sleep=self._sleep,
            )
        except OSError as e:
            raise ZidArchiverError(f"Could not remove {self.archive_path}: {e}") from e

        command = self.build_command()
        try:
            result = subprocess.run(
                command,
                cwd=folder,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise ZidArchiverExecError(
                f"Could not run archiver {self.archiver_path}: {e}"
            ) from e

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise ZidArchiverExecError(
                f"Archiver exited with code {result.returncode}: {output}",
                returncode=result.returncode,
                output=output,
            )

        logger.info(f"Zipped to {self.archive_path}")
        return self.archive_path
