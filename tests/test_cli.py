"""Tests for the command-line entry point."""

from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest

from studio.cli import main


def test_json_output(tmp_path, capsys, transcript_text):
    path = tmp_path / "stream.txt"
    path.write_text(transcript_text, encoding="utf-8")

    assert main([str(path), "--backend", "extractive", "--chapters", "2"]) == 0

    record = json.loads(capsys.readouterr().out)
    assert record["file_name"] == "stream.txt"
    assert len(record["processed_data"]["chapters"]) == 2


def test_markdown_output(tmp_path, capsys, transcript_text):
    path = tmp_path / "stream.md"
    path.write_text(transcript_text, encoding="utf-8")

    assert main([str(path), "--backend", "extractive", "--format", "markdown"]) == 0

    out = capsys.readouterr().out
    assert out.startswith("# stream.md")
    assert "## Book Chapters" in out


def test_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "nope.txt")]) == 1
    assert "Could not read" in capsys.readouterr().err


def test_empty_transcript(tmp_path, capsys):
    path = tmp_path / "empty.txt"
    path.write_text("   \n", encoding="utf-8")
    assert main([str(path), "--backend", "extractive"]) == 1
    assert "Transcript is empty." in capsys.readouterr().err


def test_invalid_configuration(tmp_path, capsys, transcript_text):
    path = tmp_path / "stream.txt"
    path.write_text(transcript_text, encoding="utf-8")
    assert main([str(path), "--backend", "extractive", "--blogs", "11"]) == 2
    assert "blog_count" in capsys.readouterr().err


REMOTE_RECORD = {
    "id": "abc",
    "file_name": "stream.txt",
    "state": "completed",
    "processed_data": {"insights": [{"title": "Habits", "content": "Small habits compound."}]},
    "diagnostics": [
        {"stage": "synthesizing", "section": "blogs", "error": "PartialContentError", "message": "Produced 2 of 3"}
    ],
}


def test_remote_submission(tmp_path, capsys, transcript_text):
    path = tmp_path / "stream.txt"
    path.write_text(transcript_text, encoding="utf-8")

    with patch("studio.client.check_health", return_value=True), patch(
        "studio.client.submit_file", return_value=REMOTE_RECORD
    ) as submit:
        assert main([str(path), "--api-url", "http://test/", "--format", "markdown"]) == 0

    submit.assert_called_once_with(path, api_url="http://test")
    out = capsys.readouterr().out
    assert out.startswith("# stream.txt")
    assert "### Habits\n\nSmall habits compound." in out


def test_remote_rejection_prints_detail(tmp_path, capsys, transcript_text):
    path = tmp_path / "stream.txt"
    path.write_text(transcript_text, encoding="utf-8")
    request = httpx.Request("POST", "http://test/api/transcripts")
    rejected = httpx.Response(422, json={"detail": "Transcript is empty."}, request=request)
    error = httpx.HTTPStatusError("422", request=request, response=rejected)

    with patch("studio.client.check_health", return_value=True), patch(
        "studio.client.submit_file", side_effect=error
    ):
        assert main([str(path), "--api-url", "http://test"]) == 1
    assert "Request failed: Transcript is empty." in capsys.readouterr().err


def test_remote_server_down(tmp_path, capsys, transcript_text):
    path = tmp_path / "stream.txt"
    path.write_text(transcript_text, encoding="utf-8")
    with patch("studio.client.check_health", return_value=False):
        assert main([str(path), "--api-url", "http://test"]) == 1
    assert "not reachable" in capsys.readouterr().err


def test_remote_history(capsys):
    rows = [{"id": "abc", "file_name": "stream.txt", "section_counts": {"insights": 1}}]
    with patch("studio.client.check_health", return_value=True), patch(
        "studio.client.list_history", return_value=rows
    ) as history:
        assert main(["--api-url", "http://test", "--history", "5"]) == 0

    history.assert_called_once_with(5, api_url="http://test")
    assert json.loads(capsys.readouterr().out) == rows


def test_remote_show(capsys):
    with patch("studio.client.check_health", return_value=True), patch(
        "studio.client.get_processed", return_value=REMOTE_RECORD
    ) as show:
        assert main(["--api-url", "http://test", "--show", "abc"]) == 0

    show.assert_called_once_with("abc", api_url="http://test")
    assert json.loads(capsys.readouterr().out)["id"] == "abc"


@pytest.mark.parametrize("argv", [["--history", "5"], ["--show", "abc"], []])
def test_invalid_argument_combinations(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 2
