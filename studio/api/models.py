"""Pydantic request/response schemas for the Transcript Studio API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class TextSubmission(BaseModel):
    """Request body for the /api/transcripts/text endpoint."""

    transcript: str
    file_name: str = "transcript.txt"


class DiagnosticResponse(BaseModel):
    """A non-fatal problem recorded during processing."""

    stage: str
    section: str
    error: str
    message: str
    segment_index: int | None = None


class SubmissionResponse(BaseModel):
    """Response body after a transcript has been processed and saved."""

    id: str
    file_name: str
    created_at: str | None = None
    state: str
    processed_data: dict[str, Any]
    diagnostics: list[DiagnosticResponse] = []


class ProcessedRecord(BaseModel):
    """A stored processed transcript."""

    id: str
    file_name: str
    original_transcript: str | None = None
    processed_data: dict[str, Any] = {}
    created_at: str | None = None


class HistoryItem(BaseModel):
    """Summary row for the history list."""

    id: str
    file_name: str
    created_at: str | None = None
    section_counts: dict[str, int] = {}


class SectionItemResponse(BaseModel):
    """One display item of a content section."""

    title: str
    content: str
