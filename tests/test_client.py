"""Tests for the HTTP client wrapper (httpx calls patched)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from studio import client


def _response(status: int, payload) -> httpx.Response:
    return httpx.Response(status, json=payload, request=httpx.Request("GET", "http://test"))


def test_check_health_down():
    with patch("studio.client.httpx.get", side_effect=httpx.ConnectError("refused")):
        assert client.check_health("http://test") is False


def test_check_health_up():
    with patch("studio.client.httpx.get", return_value=_response(200, {"status": "healthy"})):
        assert client.check_health("http://test") is True


def test_submit_transcript_posts_file():
    with patch("studio.client.httpx.post", return_value=_response(200, {"id": "abc"})) as post:
        assert client.submit_transcript(b"Hello.", "stream.txt", api_url="http://test") == {"id": "abc"}
    assert post.call_args.kwargs["files"] == {"file": ("stream.txt", b"Hello.", "text/plain")}


def test_submit_transcript_raises_with_detail():
    rejected = _response(415, {"detail": "Please upload a .txt or .md transcript."})
    with patch("studio.client.httpx.post", return_value=rejected):
        with pytest.raises(httpx.HTTPStatusError) as excinfo:
            client.submit_transcript(b"%PDF", "slides.pdf", api_url="http://test")
    assert client.error_detail(excinfo.value) == "Please upload a .txt or .md transcript."


def test_list_history_passes_limit():
    with patch("studio.client.httpx.get", return_value=_response(200, [])) as get:
        assert client.list_history(limit=3, api_url="http://test") == []
    assert get.call_args.kwargs["params"] == {"limit": 3}


def test_error_detail_for_transport_error():
    assert client.error_detail(httpx.ConnectError("refused")) == "refused"


def test_submit_file(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text("Hello.", encoding="utf-8")
    with patch("studio.client.submit_transcript", MagicMock(return_value={"id": "1"})) as submit:
        assert client.submit_file(path, api_url="http://test") == {"id": "1"}
    submit.assert_called_once_with(b"Hello.", "notes.md", api_url="http://test")
