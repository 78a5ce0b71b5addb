"""
Archive mover for the intake domain.

Relocates processed files into the archive directory. Name collisions are
resolved with a timestamp plus counter suffix, and transient rename failures
(locked or vanished files) are retried with a fixed backoff. A file that
cannot be moved stays where it is; this module never raises for it.
"""

import errno
import os
import shutil
import time
from pathlib import Path
from typing import Optional

from loguru import logger

from hotfolder.errors import MoveTransientFailure
from hotfolder.utils.helpers import archive_timestamp, disambiguated_name

# EBUSY/ENOENT are what a locked or concurrently-moved file produces;
# EACCES/EPERM cover Windows sharing violations.
TRANSIENT_ERRNOS = {errno.EBUSY, errno.ENOENT, errno.EACCES, errno.EPERM}
WINDOWS_SHARING_VIOLATIONS = {32, 33}


def is_transient(error: OSError) -> bool:
    """Whether a rename failure is worth retrying."""
    if getattr(error, "winerror", None) in WINDOWS_SHARING_VIOLATIONS:
        return True
    return error.errno in TRANSIENT_ERRNOS


class ArchiveMover:
    """Moves processed files into the archive directory."""

    def __init__(
        self,
        move_to_folder: Optional[Path],
        retries: int = 3,
        backoff: float = 2.0,
    ):
        """
        Initialize archive mover.

        Args:
            move_to_folder: Archive directory, or None to leave files in place
            retries: Rename attempts before giving up
            backoff: Seconds to wait between attempts
        """
        self.move_to_folder = Path(move_to_folder) if move_to_folder else None
        self.retries = max(1, retries)
        self.backoff = backoff

    def resolve_destination(self, file_name: str) -> Path:
        """
        Pick a destination path that does not exist yet.

        Args:
            file_name: Name of the file being archived

        Returns:
            ``move_to_folder / file_name`` or, on collision, the first free
            ``<stem>_<timestamp>_<n><ext>`` variant
        """
        destination = self.move_to_folder / file_name
        counter = 1

        while destination.exists():
            destination = self.move_to_folder / disambiguated_name(
                file_name, archive_timestamp(), counter
            )
            counter += 1

        return destination

    def move(self, file_path: Path, file_name: Optional[str] = None) -> Optional[Path]:
        """
        Move a processed file into the archive directory.

        Args:
            file_path: Current location of the file
            file_name: Name to archive under (defaults to the current name)

        Returns:
            Final destination, or None if the file was left in place or was
            already gone
        """
        file_path = Path(file_path)
        file_name = file_name or file_path.name

        if self.move_to_folder is None:
            logger.info(f"No move folder specified, keeping {file_name} in place")
            return None

        if not file_path.exists():
            logger.warning(f"Source file no longer exists: {file_name}")
            return None

        try:
            if not self.move_to_folder.exists():
                self.move_to_folder.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created destination folder: {self.move_to_folder}")

            destination = self.resolve_destination(file_name)
        except OSError as e:
            logger.error(f"Error preparing archive for {file_name}: {e}")
            logger.info(f"File remains in watch folder: {file_path}")
            return None

        for attempt in range(1, self.retries + 1):
            try:
                self._rename(file_path, destination)
                logger.success(f"Moved file to: {destination}")
                return destination

            except MoveTransientFailure as e:
                if not file_path.exists():
                    logger.info(f"{file_name} was already moved away, nothing to do")
                    return None

                logger.warning(f"File busy, retrying move... ({attempt}/{self.retries}): {e.cause}")
                if attempt < self.retries:
                    time.sleep(self.backoff)

            except OSError as e:
                logger.error(f"Error moving file {file_name}: {e}")
                logger.info(f"File remains in watch folder: {file_path}")
                return None

        logger.error(f"Failed to move {file_name} after {self.retries} attempts")
        logger.info(f"File remains in watch folder: {file_path}")
        return None

    def _rename(self, source: Path, destination: Path):
        """Atomic rename, falling back to copy+delete across filesystems."""
        try:
            os.rename(source, destination)
        except OSError as e:
            if e.errno == errno.EXDEV:
                shutil.move(str(source), str(destination))
                return
            if is_transient(e):
                raise MoveTransientFailure(source, e) from e
            raise
