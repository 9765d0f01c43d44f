"""HTTP client wrapper for the Transcript Studio FastAPI backend."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import httpx

API_URL = os.getenv("API_URL", "http://localhost:8000")


def check_health(api_url: str = API_URL) -> bool:
    """Return True if the API server responds to /health."""
    try:
        r = httpx.get(f"{api_url}/health", timeout=5.0)
        return r.status_code == 200
    except httpx.ConnectError:
        return False


def submit_transcript(
    file_content: bytes,
    filename: str,
    api_url: str = API_URL,
    timeout: float = 300.0,
) -> dict[str, Any]:
    """Upload a transcript and wait for the processed result.

    Raises:
        httpx.HTTPStatusError: The server rejected or failed the submission; the
            response ``detail`` carries the human-readable reason.
    """
    r = httpx.post(
        f"{api_url}/api/transcripts",
        files={"file": (filename, file_content, "text/plain")},
        timeout=timeout,
    )
    r.raise_for_status()
    return r.json()  # type: ignore[no-any-return]


def submit_file(path: str | Path, api_url: str = API_URL) -> dict[str, Any]:
    """Upload a transcript file from disk."""
    path = Path(path)
    return submit_transcript(path.read_bytes(), path.name, api_url=api_url)


def get_processed(record_id: str, api_url: str = API_URL) -> dict[str, Any]:
    """Fetch a processed transcript by id."""
    r = httpx.get(f"{api_url}/api/transcripts/{record_id}", timeout=10.0)
    r.raise_for_status()
    return r.json()  # type: ignore[no-any-return]


def list_history(limit: int | None = None, api_url: str = API_URL) -> list[dict[str, Any]]:
    """Fetch processed transcripts, newest first."""
    params = {"limit": limit} if limit else None
    r = httpx.get(f"{api_url}/api/transcripts", params=params, timeout=10.0)
    r.raise_for_status()
    return r.json()  # type: ignore[no-any-return]


def error_detail(exc: httpx.HTTPError) -> str:
    """Single human-readable message for a failed request."""
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            return str(exc.response.json().get("detail", exc))
        except ValueError:
            return exc.response.text or str(exc)
    return str(exc)
