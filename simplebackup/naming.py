"""Backup folder naming for simplebackup.

A backup of folder ``projectA`` with label ``nightly run`` is stored as
``projectA_nightly-run``. The split back into source and label is only used
for display and is lossy when the source name itself contains ``_``.
"""

from pathlib import Path
from typing import NamedTuple, Union
import os
import re


SEPARATOR = "_"

_WHITESPACE_RUN = re.compile(r"\s+")


class NamedSnapshot(NamedTuple):
    """Display-only decomposition of a backup folder name."""
    source_name: str
    label: str


def normalize_label(label: str) -> str:
    """Trim the label and collapse every whitespace run to a single '-'."""
    return _WHITESPACE_RUN.sub("-", label.strip())


def derive_destination_name(source_name: str, label: str) -> str:
    """
    Build the backup folder name for ``source_name`` and ``label``.

    An empty label yields ``source_name + "_"``; callers that want to reject
    empty labels must check ``normalize_label(label)`` first.
    """
    return f"{source_name}{SEPARATOR}{normalize_label(label)}"


def check_collision(destination_path: Union[str, Path]) -> bool:
    """Return True if a directory already exists at ``destination_path``."""
    return Path(destination_path).is_dir()


def split_display_name(name: str) -> NamedSnapshot:
    """
    Split a backup folder name on the first '_'.

    ``"projectA_nightly-run"`` gives ``("projectA", "nightly-run")``; a name
    without '_' gives ``(name, "")``.
    """
    source_name, _, label = name.partition(SEPARATOR)
    return NamedSnapshot(source_name=source_name, label=label)


def is_safe_name(name: str) -> bool:
    """
    Return True if ``name`` is a plain folder name.

    Rejects empty names, "." and "..", and anything containing a path
    separator, so a user-supplied name cannot point outside its parent.
    """
    if not name or name in (".", ".."):
        return False
    if "/" in name or os.sep in name:
        return False
    if os.altsep and os.altsep in name:
        return False
    return "\x00" not in name
