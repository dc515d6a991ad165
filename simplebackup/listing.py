"""Directory listing helpers for simplebackup.

Lists the directories directly under a path, and discovers the sibling
folders that can be selected as backup sources.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Union
import logging
import os


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryEntry:
    """A single entry produced by a directory listing."""
    name: str
    is_dir: bool


def list_directories(path: Union[str, Path]) -> List[DirectoryEntry]:
    """
    List the directories directly under ``path``.

    Only directories are returned (symlinks that resolve to a directory
    count as directories). The order is whatever the filesystem yields;
    callers that need a stable order sort the result themselves.

    Never raises: a missing, unreadable or non-directory ``path`` yields an
    empty list.

    Args:
        path: Directory to list

    Returns:
        List of DirectoryEntry objects with ``is_dir`` set
    """
    entries: List[DirectoryEntry] = []
    try:
        with os.scandir(path) as it:
            for entry in it:
                # scandir never yields "." or ".."
                try:
                    if entry.is_dir():
                        entries.append(DirectoryEntry(name=entry.name, is_dir=True))
                except OSError:
                    continue
    except OSError as e:
        logger.debug(f"Cannot list directories under {path}: {e}")
        return []

    return entries


def list_sibling_folders(app_directory: Union[str, Path]) -> List[str]:
    """
    Return the names of the folders next to ``app_directory``.

    The application's own folder is excluded. Names are sorted
    case-insensitively.

    Args:
        app_directory: The directory the tool runs from

    Returns:
        Sorted list of sibling folder names
    """
    app_directory = Path(app_directory).resolve()
    names = [
        entry.name
        for entry in list_directories(app_directory.parent)
        if entry.name != app_directory.name
    ]
    names.sort(key=lambda name: (name.lower(), name))
    return names
