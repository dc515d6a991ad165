"""Version comparison for simplebackup.

Compares the installed version with the latest published release tag.
"""

from enum import Enum
from typing import List
import re


VERSION_PREFIX = "v"

# Tag of the installed release
CURRENT_VERSION = "v1.2.1"

_LEADING_DIGITS = re.compile(r"\d+")


class VersionStatus(Enum):
    """Outcome of comparing the installed version with the latest release."""
    OLDER = "older"  # An update is available
    SAME = "same"
    NEWER = "newer"  # Ahead of the last published tag (beta)


def _strip_prefix(version: str) -> str:
    """Strip exactly one leading lowercase 'v'."""
    if version.startswith(VERSION_PREFIX):
        return version[len(VERSION_PREFIX):]
    return version


def _segments(version: str) -> List[int]:
    """
    Split a version string into numeric segments.

    Each dot-separated segment contributes its leading digits; a segment
    without leading digits (including the empty string) counts as 0.
    """
    segments = []
    for part in _strip_prefix(version).split("."):
        match = _LEADING_DIGITS.match(part)
        segments.append(int(match.group()) if match else 0)
    return segments


def compare_versions(current: str, latest: str) -> VersionStatus:
    """
    Compare the installed version with the latest release.

    Segments are compared left to right; the shorter version is padded with
    zeros, so "v1.2" and "v1.2.0" are the same. An empty ``latest`` compares
    as all zeros.

    Args:
        current: Installed version, e.g. "v1.2.1"
        latest: Latest release tag, e.g. "v1.3.0" or ""

    Returns:
        VersionStatus.OLDER if current < latest, SAME if equal,
        NEWER if current > latest
    """
    current_segments = _segments(current)
    latest_segments = _segments(latest)

    width = max(len(current_segments), len(latest_segments))
    current_segments += [0] * (width - len(current_segments))
    latest_segments += [0] * (width - len(latest_segments))

    if current_segments < latest_segments:
        return VersionStatus.OLDER
    if current_segments > latest_segments:
        return VersionStatus.NEWER
    return VersionStatus.SAME


def describe_version_status(current: str, latest: str) -> str:
    """Return the plain-text version banner shown to the operator."""
    status = compare_versions(current, latest)
    if status is VersionStatus.OLDER:
        return f"New version {latest} available!"
    if status is VersionStatus.NEWER:
        return f"BETA-{current} INSTALLED"
    return current
