"""Transcript endpoints: submit for processing, fetch by id, history, section views."""

from __future__ import annotations

import asyncio
import logging
import threading
from functools import lru_cache
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile

from studio.api.models import (
    DiagnosticResponse,
    HistoryItem,
    ProcessedRecord,
    SectionItemResponse,
    SubmissionResponse,
    TextSubmission,
)
from studio.config import settings
from studio.content.sections import normalize_section, section_counts
from studio.errors import (
    EmptyInputError,
    NotFoundError,
    PersistenceError,
    PipelineCancelledError,
    PipelineFailedError,
)
from studio.pipeline.models import SECTION_KEYS
from studio.pipeline.orchestrator import Orchestrator, Submission
from studio.pipeline_config import PipelineConfig
from studio.storage.repository import TranscriptStore, build_store

logger = logging.getLogger(__name__)

router = APIRouter()

# Extensions accepted as transcript uploads
TRANSCRIPT_EXTENSIONS = {"txt", "md"}

# How often a running submission checks whether the client went away
DISCONNECT_POLL_SECONDS = 0.5


@lru_cache(maxsize=1)
def get_store() -> TranscriptStore:
    """Process-wide record store chosen from settings."""
    return build_store()


def get_pipeline_config() -> PipelineConfig:
    return PipelineConfig.from_settings(settings)


StoreDep = Annotated[TranscriptStore, Depends(get_store)]
ConfigDep = Annotated[PipelineConfig, Depends(get_pipeline_config)]


async def _process(
    request: Request,
    text: str,
    file_name: str,
    store: TranscriptStore,
    config: PipelineConfig,
) -> SubmissionResponse:
    """Run the pipeline off the event loop, cancelling it if the client disconnects."""
    if not text.strip():
        raise HTTPException(status_code=400, detail=str(EmptyInputError()))

    cancel = threading.Event()
    orchestrator = Orchestrator(config, store)
    task = asyncio.create_task(asyncio.to_thread(orchestrator.submit, text, file_name, cancel))
    while not task.done():
        await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
        if not task.done() and await request.is_disconnected():
            logger.info("Client disconnected; cancelling %s", file_name)
            cancel.set()

    try:
        submission: Submission = task.result()
    except EmptyInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PipelineCancelledError as exc:
        raise HTTPException(status_code=499, detail=str(exc)) from exc
    except PipelineFailedError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    record = submission.record
    return SubmissionResponse(
        id=str(record["id"]),
        file_name=record["file_name"],
        created_at=record.get("created_at"),
        state=submission.run.state.value,
        processed_data=record["processed_data"],
        diagnostics=[DiagnosticResponse(**d.to_dict()) for d in submission.run.diagnostics],  # type: ignore[arg-type]
    )


@router.post("/api/transcripts", response_model=SubmissionResponse)
async def upload_transcript(
    request: Request,
    file: Annotated[UploadFile, File(...)],
    store: StoreDep,
    config: ConfigDep,
) -> SubmissionResponse:
    """Upload a ``.txt`` or ``.md`` transcript and process it."""
    raw = await file.read()
    if len(raw) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)} MB.",
        )

    filename = file.filename or "transcript.txt"
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    content_type = (file.content_type or "").lower()
    if ext not in TRANSCRIPT_EXTENSIONS and not content_type.startswith("text/plain"):
        raise HTTPException(status_code=415, detail="Please upload a .txt or .md transcript.")

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="Transcript must be UTF-8 text.") from exc

    return await _process(request, text, filename, store, config)


@router.post("/api/transcripts/text", response_model=SubmissionResponse)
async def submit_text(
    request: Request,
    body: TextSubmission,
    store: StoreDep,
    config: ConfigDep,
) -> SubmissionResponse:
    """Process a transcript sent as JSON."""
    return await _process(request, body.transcript, body.file_name, store, config)


@router.get("/api/transcripts", response_model=list[HistoryItem])
async def list_transcripts(
    store: StoreDep,
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
) -> list[HistoryItem]:
    """List processed transcripts, newest first."""
    try:
        rows = store.list_all(limit=limit)
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return [
        HistoryItem(
            id=str(r["id"]),
            file_name=r["file_name"],
            created_at=r.get("created_at"),
            section_counts=section_counts(r.get("processed_data")),
        )
        for r in rows
    ]


def _load(store: TranscriptStore, record_id: str) -> dict:  # type: ignore[type-arg]
    try:
        return store.get_by_id(record_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/api/transcripts/{record_id}", response_model=ProcessedRecord)
async def get_transcript(record_id: str, store: StoreDep) -> ProcessedRecord:
    """Fetch one processed transcript."""
    r = _load(store, record_id)
    return ProcessedRecord(
        id=str(r["id"]),
        file_name=r["file_name"],
        original_transcript=r.get("original_transcript"),
        processed_data=r.get("processed_data") or {},
        created_at=r.get("created_at"),
    )


@router.get(
    "/api/transcripts/{record_id}/sections/{section}",
    response_model=list[SectionItemResponse],
)
async def get_section(record_id: str, section: str, store: StoreDep) -> list[SectionItemResponse]:
    """Display items for one section; empty when the section has no content."""
    if section not in SECTION_KEYS:
        raise HTTPException(status_code=404, detail=f"Unknown section {section!r}")
    r = _load(store, record_id)
    try:
        items = normalize_section(section, (r.get("processed_data") or {}).get(section))
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return [SectionItemResponse(title=i.title, content=i.content) for i in items]
