"""Tests for the release feed and self-update."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from simplebackup.release import ReleaseError, apply_update, get_latest_release, release_url


API_URL = "https://api.example.com/repos/owner/app/releases"
REPOSITORY = "owner/app"


def _response(status_code=200, payload=None, content=b"", text=""):
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


RELEASES = [
    {
        "tag_name": "v1.3.0",
        "assets": [{"browser_download_url": "https://example.com/download/app.pyz"}],
    },
    {"tag_name": "v1.2.1", "assets": []},
]


class TestGetLatestRelease:
    """Tests for get_latest_release."""

    def test_returns_first_tag(self):
        with patch("simplebackup.release.requests.get", return_value=_response(payload=RELEASES)) as get:
            assert get_latest_release(API_URL, REPOSITORY, timeout=3) == "v1.3.0"

        args, kwargs = get.call_args
        assert args == (API_URL,)
        assert kwargs["headers"]["User-Agent"] == REPOSITORY
        assert kwargs["timeout"] == 3

    def test_empty_release_list(self):
        with patch("simplebackup.release.requests.get", return_value=_response(payload=[])):
            assert get_latest_release(API_URL, REPOSITORY) == ""

    def test_network_error(self):
        with patch(
            "simplebackup.release.requests.get",
            side_effect=requests.exceptions.ConnectionError("offline"),
        ):
            assert get_latest_release(API_URL, REPOSITORY) == ""

    def test_http_error(self):
        response = _response(status_code=403, payload={"message": "rate limited"}, text="rate limited")
        with patch("simplebackup.release.requests.get", return_value=response):
            assert get_latest_release(API_URL, REPOSITORY) == ""

    def test_invalid_json(self):
        with patch("simplebackup.release.requests.get", return_value=_response(payload=ValueError("bad"))):
            assert get_latest_release(API_URL, REPOSITORY) == ""

    def test_not_a_list(self):
        with patch("simplebackup.release.requests.get", return_value=_response(payload={"tag_name": "v9"})):
            assert get_latest_release(API_URL, REPOSITORY) == ""

    def test_missing_tag_name(self):
        with patch("simplebackup.release.requests.get", return_value=_response(payload=[{}])):
            assert get_latest_release(API_URL, REPOSITORY) == ""


class TestReleaseUrl:
    def test_appends_tag(self):
        assert release_url("https://example.com/releases/tag/", "v1.3.0") == (
            "https://example.com/releases/tag/v1.3.0"
        )


class TestApplyUpdate:
    """Tests for apply_update."""

    def test_replaces_target(self, tmp_path):
        target = tmp_path / "app.pyz"
        target.write_bytes(b"old")
        responses = [_response(payload=RELEASES), _response(content=b"new build")]

        with patch("simplebackup.release.requests.get", side_effect=responses) as get:
            tag = apply_update(API_URL, REPOSITORY, target, timeout=5)

        assert tag == "v1.3.0"
        assert target.read_bytes() == b"new build"
        assert get.call_args_list[1].args == ("https://example.com/download/app.pyz",)
        assert [p.name for p in tmp_path.iterdir()] == ["app.pyz"]

    def test_creates_missing_target(self, tmp_path):
        target = tmp_path / "app.pyz"
        responses = [_response(payload=RELEASES), _response(content=b"fresh")]

        with patch("simplebackup.release.requests.get", side_effect=responses):
            apply_update(API_URL, REPOSITORY, target)

        assert target.read_bytes() == b"fresh"

    def test_feed_failure_raises(self, tmp_path):
        with patch(
            "simplebackup.release.requests.get",
            side_effect=requests.exceptions.Timeout("slow"),
        ):
            with pytest.raises(ReleaseError):
                apply_update(API_URL, REPOSITORY, tmp_path / "app.pyz")

    def test_no_asset_raises(self, tmp_path):
        releases = [{"tag_name": "v1.3.0", "assets": []}]
        with patch("simplebackup.release.requests.get", return_value=_response(payload=releases)):
            with pytest.raises(ReleaseError) as exc_info:
                apply_update(API_URL, REPOSITORY, tmp_path / "app.pyz")

        assert "asset" in str(exc_info.value)

    def test_download_http_error_keeps_target(self, tmp_path):
        target = tmp_path / "app.pyz"
        target.write_bytes(b"old")
        responses = [_response(payload=RELEASES), _response(status_code=404)]

        with patch("simplebackup.release.requests.get", side_effect=responses):
            with pytest.raises(ReleaseError):
                apply_update(API_URL, REPOSITORY, target)

        assert target.read_bytes() == b"old"

    def test_unwritable_directory_raises(self, tmp_path):
        target = tmp_path / "missing" / "app.pyz"
        responses = [_response(payload=RELEASES), _response(content=b"new")]

        with patch("simplebackup.release.requests.get", side_effect=responses):
            with pytest.raises(ReleaseError) as exc_info:
                apply_update(API_URL, REPOSITORY, target)

        assert "Cannot write update" in str(exc_info.value)
