"""Backup registry for simplebackup.

Enumerates the backup folders under a root directory, newest first.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union
import logging
import os

from simplebackup.listing import list_directories
from simplebackup.naming import NamedSnapshot, split_display_name


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupRecord:
    """One backup folder on disk."""
    name: str
    path: Path
    created_at: datetime

    @property
    def display(self) -> NamedSnapshot:
        """Source name and label for display."""
        return split_display_name(self.name)


def creation_time(path: Union[str, Path]) -> float:
    """
    Return the creation time of ``path`` as a POSIX timestamp.

    Uses ``st_birthtime`` where the platform reports it, otherwise the
    inode change time.
    """
    stat_info = os.stat(path)
    birthtime = getattr(stat_info, "st_birthtime", None)
    if birthtime:
        return birthtime
    return stat_info.st_ctime


class BackupRegistry:
    """
    Lists backup folders under ``root``.

    Every subdirectory of ``root`` is treated as a backup; nothing is cached
    and every call re-scans the filesystem.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def list_backups(self) -> List[BackupRecord]:
        """
        Return all backups sorted by creation time, newest first.

        Backups created within the same timestamp keep name order.
        """
        records = []
        for entry in sorted(list_directories(self.root), key=lambda e: e.name):
            path = self.root / entry.name
            try:
                created = creation_time(path)
            except OSError as e:
                # Removed between listing and stat
                logger.debug(f"Cannot stat {path}: {e}")
                continue
            records.append(BackupRecord(
                name=entry.name,
                path=path,
                created_at=datetime.fromtimestamp(created),
            ))

        # sort() is stable, so ties keep name order
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    def get(self, name: str) -> Optional[BackupRecord]:
        """Return the backup called ``name``, or None."""
        for record in self.list_backups():
            if record.name == name:
                return record
        return None


def list_backups(root: Union[str, Path]) -> List[BackupRecord]:
    """Return the backups under ``root``, newest first."""
    return BackupRegistry(root).list_backups()
