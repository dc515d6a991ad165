"""Release feed and self-update for simplebackup.

Reads the newest release tag from a GitHub-style releases endpoint and
downloads the newest release asset over the application file.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging
import os
import tempfile

import requests

from simplebackup.logger import ErrorCode, log_error, log_warning


logger = logging.getLogger(__name__)


class ReleaseError(Exception):
    """Raised when the release feed cannot be read or an update fails."""
    pass


def _fetch_releases(api_url: str, repository: str, timeout: float) -> List[Dict[str, Any]]:
    """
    Fetch the release list.

    Raises:
        ReleaseError: On network errors, non-200 responses or bad JSON
    """
    try:
        response = requests.get(
            api_url,
            headers={
                "User-Agent": repository,
                "Accept": "application/vnd.github+json",
            },
            timeout=timeout,
        )
    except requests.exceptions.RequestException as e:
        raise ReleaseError(f"Cannot reach release feed {api_url}: {e}")

    if response.status_code != 200:
        raise ReleaseError(
            f"Release feed returned HTTP {response.status_code}: {response.text[:200]}"
        )

    try:
        releases = response.json()
    except ValueError as e:
        raise ReleaseError(f"Release feed returned invalid JSON: {e}")

    if not isinstance(releases, list):
        raise ReleaseError("Release feed did not return a list of releases")

    return releases


def get_latest_release(api_url: str, repository: str, timeout: float = 10) -> str:
    """
    Return the tag name of the newest release.

    Never raises: any failure is logged and yields "" (which compares as
    older than every real version).
    """
    try:
        releases = _fetch_releases(api_url, repository, timeout)
    except ReleaseError as e:
        log_warning(logger, ErrorCode.RELEASE_FEED_UNAVAILABLE, str(e), api_url=api_url)
        return ""

    if not releases or not isinstance(releases[0], dict):
        return ""
    tag = releases[0].get("tag_name")
    return tag if isinstance(tag, str) else ""


def release_url(release_page_url: str, tag: str) -> str:
    """Return the release-notes URL for ``tag``."""
    return f"{release_page_url}{tag}"


def _latest_asset_url(releases: List[Dict[str, Any]]) -> str:
    try:
        url = releases[0]["assets"][0]["browser_download_url"]
    except (IndexError, KeyError, TypeError):
        raise ReleaseError("The newest release has no downloadable asset")
    if not isinstance(url, str) or not url:
        raise ReleaseError("The newest release has no downloadable asset")
    return url


def apply_update(
    api_url: str,
    repository: str,
    target: Union[str, Path],
    timeout: float = 30,
) -> Optional[str]:
    """
    Replace ``target`` with the first asset of the newest release.

    The download is written to a temporary file next to ``target`` and moved
    over it with ``os.replace``, so ``target`` is never left half-written.

    Args:
        api_url: Releases endpoint
        repository: "owner/name", sent as the User-Agent
        target: File to overwrite
        timeout: Request timeout in seconds

    Returns:
        The tag name of the installed release, if the feed reports one

    Raises:
        ReleaseError: If the feed, the download or the write fails
    """
    target = Path(target)
    releases = _fetch_releases(api_url, repository, timeout)
    asset_url = _latest_asset_url(releases)

    try:
        response = requests.get(
            asset_url,
            headers={"User-Agent": repository},
            timeout=timeout,
        )
    except requests.exceptions.RequestException as e:
        log_error(logger, ErrorCode.UPDATE_DOWNLOAD_FAILED, f"Update download failed: {e}", url=asset_url)
        raise ReleaseError(f"Cannot download {asset_url}: {e}")

    if response.status_code != 200:
        log_error(
            logger, ErrorCode.UPDATE_DOWNLOAD_FAILED,
            f"Update download returned HTTP {response.status_code}", url=asset_url,
        )
        raise ReleaseError(f"Download of {asset_url} returned HTTP {response.status_code}")

    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".download", dir=target.parent
        )
        with os.fdopen(fd, "wb") as f:
            f.write(response.content)
        os.replace(tmp_path, target)
    except OSError as e:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        log_error(
            logger, ErrorCode.UPDATE_WRITE_FAILED,
            f"Cannot write update to {target}: {e}", target=str(target),
        )
        raise ReleaseError(f"Cannot write update to {target}: {e}")

    tag = releases[0].get("tag_name")
    logger.info(f"Installed release {tag or 'unknown'} into {target}")
    return tag if isinstance(tag, str) else None
