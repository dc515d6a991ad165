"""Snapshot engine for simplebackup.

This module provides the SnapshotEngine class that copies a directory tree
into a backup folder and removes backup folders again.

Copies are full and best-effort: entries that fail to copy are logged and
skipped, and nothing is rolled back. Only directory structure and regular
file content are replicated.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union
import logging
import os
import shutil
import time


logger = logging.getLogger(__name__)


PathLike = Union[str, Path]


@dataclass
class SnapshotResult:
    """Result of a snapshot operation."""
    success: bool
    snapshot_path: Optional[Path]
    items_copied: int  # Files plus subdirectories copied
    duration_seconds: float
    error_message: Optional[str]
    collision: bool = False
    invalid_source: bool = False


class SnapshotEngine:
    """
    Copies and deletes directory trees.

    ``copy`` and ``delete`` are the low-level operations. ``create_snapshot``
    wraps ``copy`` with a staging directory that is renamed into place once
    the copy is complete, so a half-written backup never carries the final
    name.
    """

    # Prefix for in-progress snapshots
    IN_PROGRESS_PREFIX = "in_progress_"

    def copy(self, source: PathLike, destination: PathLike) -> int:
        """
        Recursively copy ``source`` into ``destination``.

        ``destination`` and any missing parents are created. Failures to
        create a directory or copy a file are logged and the walk continues.

        The returned count starts at 1 for the top-level directory and adds
        one for every file and subdirectory traversed, so the number of
        copied items is the result minus one. A result of 0 means ``source``
        is not a directory and nothing was touched.

        Args:
            source: Directory to copy
            destination: Directory to copy into

        Returns:
            Raw traversal count, or 0 if ``source`` is not a directory
        """
        source = Path(source)
        destination = Path(destination)

        if not source.is_dir():
            return 0

        count = 1
        pending: List[Tuple[Path, Path]] = [(source, destination)]

        while pending:
            src_dir, dst_dir = pending.pop()
            self._make_directory(dst_dir)

            try:
                with os.scandir(src_dir) as it:
                    entries = list(it)
            except OSError as e:
                logger.warning(f"Cannot read directory {src_dir}: {e}")
                continue

            for entry in entries:
                src = Path(entry.path)
                dst = dst_dir / entry.name

                try:
                    if entry.is_dir(follow_symlinks=False):
                        count += 1
                        pending.append((src, dst))
                        continue
                    if entry.is_symlink() and entry.is_dir():
                        logger.warning(f"Skipping symlinked directory: {src}")
                        continue
                    if not entry.is_file():
                        logger.warning(f"Skipping special file: {src}")
                        continue
                except OSError as e:
                    logger.warning(f"Cannot stat {src}: {e}")
                    continue

                count += 1
                try:
                    shutil.copyfile(src, dst)
                except OSError as e:
                    logger.warning(f"Failed to copy {src} to {dst}: {e}")

        return count

    @staticmethod
    def _make_directory(path: Path) -> None:
        """Create ``path`` and its parents, logging failures."""
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create directory {path}: {e}")

    def delete(self, path: PathLike) -> bool:
        """
        Recursively delete the directory at ``path``.

        Files are unlinked and subdirectories removed bottom-up. Failures are
        logged and the walk continues with the remaining entries.

        Args:
            path: Directory to delete

        Returns:
            True if ``path`` itself was removed; False if it is not a
            directory or could not be emptied and removed
        """
        path = Path(path)

        if path.is_symlink() or not path.is_dir():
            return False

        def on_walk_error(error: OSError) -> None:
            logger.warning(f"Cannot read directory {error.filename}: {error}")

        for root, dirnames, filenames in os.walk(path, topdown=False, onerror=on_walk_error):
            root_path = Path(root)

            for name in filenames:
                self._unlink(root_path / name)

            # Symlinks to directories show up in dirnames but are never walked
            for name in dirnames:
                link = root_path / name
                if link.is_symlink():
                    self._unlink(link)

            if root_path != path:
                try:
                    root_path.rmdir()
                except OSError as e:
                    logger.warning(f"Failed to remove directory {root_path}: {e}")

        try:
            path.rmdir()
        except OSError as e:
            logger.warning(f"Failed to remove directory {path}: {e}")
            return False

        return True

    @staticmethod
    def _unlink(path: Path) -> None:
        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Failed to delete {path}: {e}")

    def staging_path(self, destination: PathLike) -> Path:
        """Return the in-progress path used while ``destination`` is copied."""
        destination = Path(destination)
        return destination.parent / f"{self.IN_PROGRESS_PREFIX}{destination.name}"

    def create_snapshot(self, source: PathLike, destination: PathLike) -> SnapshotResult:
        """
        Copy ``source`` into the new backup folder ``destination``.

        Process:
        1. Fail if ``source`` is not a directory
        2. Fail with ``collision`` set if ``destination`` exists
        3. Create in_progress_<name> exclusively (an existing one means a
           backup of the same name is already running)
        4. Copy into the staging directory
        5. Rename the staging directory to ``destination``

        Args:
            source: Directory to back up
            destination: Backup folder to create

        Returns:
            SnapshotResult with the number of copied files and folders
        """
        start_time = time.time()
        source = Path(source)
        destination = Path(destination)

        def failed(message: str, collision: bool = False, invalid_source: bool = False) -> SnapshotResult:
            return SnapshotResult(
                success=False,
                snapshot_path=None,
                items_copied=0,
                duration_seconds=time.time() - start_time,
                error_message=message,
                collision=collision,
                invalid_source=invalid_source,
            )

        if not source.is_dir():
            return failed(f"'{source}' is not a valid directory", invalid_source=True)

        if destination.exists():
            return failed(f"'{destination}' already exists", collision=True)

        if destination.resolve().is_relative_to(source.resolve()):
            return failed(f"'{destination}' is inside '{source}'")

        staging = self.staging_path(destination)
        try:
            staging.parent.mkdir(parents=True, exist_ok=True)
            staging.mkdir()
        except FileExistsError:
            return failed(f"A backup into '{destination}' is already in progress", collision=True)
        except OSError as e:
            return failed(f"Cannot create '{staging}': {e}")

        raw_count = self.copy(source, staging)

        if destination.exists():
            # Created by someone else while we were copying
            self.delete(staging)
            return failed(f"'{destination}' already exists", collision=True)

        try:
            staging.rename(destination)
        except OSError as e:
            self.delete(staging)
            return failed(f"Cannot move '{staging}' into place: {e}")

        return SnapshotResult(
            success=True,
            snapshot_path=destination,
            items_copied=raw_count - 1,
            duration_seconds=time.time() - start_time,
            error_message=None,
        )

    def find_incomplete(self, root: PathLike) -> List[Path]:
        """Return the in_progress_* directories under ``root``, sorted by name."""
        root = Path(root)
        if not root.is_dir():
            return []
        return sorted(
            entry for entry in root.iterdir()
            if entry.name.startswith(self.IN_PROGRESS_PREFIX) and entry.is_dir()
        )

    def final_path(self, staging: PathLike) -> Path:
        """Return the backup folder a staging directory is renamed to."""
        staging = Path(staging)
        return staging.parent / staging.name[len(self.IN_PROGRESS_PREFIX):]

    def cleanup_incomplete(self, root: PathLike) -> int:
        """
        Remove any in_progress_* directories from previous interrupted runs.

        Only safe while no backup is running into ``root``; see
        BackupUtility.cleanup_incomplete for the lock-aware variant.

        Returns:
            Count of directories removed
        """
        removed_count = 0
        for staging in self.find_incomplete(root):
            if self.delete(staging):
                removed_count += 1
                logger.info(f"Removed incomplete backup: {staging.name}")

        return removed_count
