"""Record store for processed transcripts: Supabase table or in-process memory."""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
import uuid
from typing import Any, Protocol, cast

from httpx import HTTPError
from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client, create_client

from studio.config import settings
from studio.errors import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

Record = dict[str, Any]

RECORD_FIELDS: tuple[str, ...] = ("file_name", "original_transcript", "processed_data", "created_at")


class TranscriptStore(Protocol):
    """Persistence collaborator used by the orchestrator and the API."""

    def save(self, record: Record) -> Record: ...

    def get_by_id(self, record_id: str) -> Record: ...

    def list_all(self, limit: int | None = None) -> list[Record]: ...


def _validate_record(record: Record) -> Record:
    missing = [f for f in RECORD_FIELDS if f not in record]
    if missing:
        raise PersistenceError(f"Record is missing fields: {', '.join(missing)}")
    return {f: record[f] for f in RECORD_FIELDS}


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def get_supabase_client() -> Client:
    """Create and return a Supabase client from environment variables."""
    return create_client(
        os.getenv("SUPABASE_URL", settings.supabase_url),
        os.getenv("SUPABASE_KEY", settings.supabase_key),
    )


class SupabaseTranscriptStore:
    """Store records in a Supabase table (``processed_transcripts`` by default)."""

    def __init__(self, client: Client | None = None, table: str | None = None) -> None:
        self._client = client
        self.table = table or settings.supabase_table

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def save(self, record: Record) -> Record:
        row = _validate_record(record)
        try:
            result = self.client.table(self.table).insert(row).execute()
        except (PostgrestAPIError, HTTPError) as exc:
            raise PersistenceError(str(exc)) from exc

        rows = cast(list[dict[str, Any]], result.data)
        if not rows:
            raise PersistenceError(f"Insert into {self.table} returned no row")
        logger.info("Saved processed transcript %s (%s)", rows[0].get("id"), row["file_name"])
        return rows[0]

    def get_by_id(self, record_id: str) -> Record:
        # Malformed ids make PostgREST fail with a 500; report them as not found instead.
        if not _is_uuid(record_id):
            raise NotFoundError(record_id)
        try:
            result = self.client.table(self.table).select("*").eq("id", record_id).execute()
        except (PostgrestAPIError, HTTPError) as exc:
            raise PersistenceError(str(exc)) from exc

        rows = cast(list[dict[str, Any]], result.data)
        if not rows:
            raise NotFoundError(record_id)
        return rows[0]

    def list_all(self, limit: int | None = None) -> list[Record]:
        query = self.client.table(self.table).select("*").order("created_at", desc=True)
        if limit is not None:
            query = query.limit(limit)
        try:
            result = query.execute()
        except (PostgrestAPIError, HTTPError) as exc:
            raise PersistenceError(str(exc)) from exc
        return cast(list[dict[str, Any]], result.data or [])


class InMemoryTranscriptStore:
    """Thread-safe in-process store; records are kept as JSON so reads never share state."""

    def __init__(self) -> None:
        self._rows: dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, record: Record) -> Record:
        row = _validate_record(record)
        row = {"id": str(uuid.uuid4()), **copy.deepcopy(row)}
        try:
            encoded = json.dumps(row, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Record is not JSON serializable: {exc}") from exc
        with self._lock:
            self._rows[row["id"]] = encoded
        return json.loads(encoded)

    def get_by_id(self, record_id: str) -> Record:
        with self._lock:
            encoded = self._rows.get(record_id)
        if encoded is None:
            raise NotFoundError(record_id)
        return json.loads(encoded)

    def list_all(self, limit: int | None = None) -> list[Record]:
        with self._lock:
            rows = [json.loads(v) for v in self._rows.values()]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[:limit] if limit is not None else rows


def build_store(kind: str | None = None) -> TranscriptStore:
    """Return the configured store: ``"supabase"`` when credentials exist, else memory."""
    if kind is None:
        kind = "supabase" if settings.supabase_url else "memory"
    if kind == "supabase":
        return SupabaseTranscriptStore()
    if kind == "memory":
        return InMemoryTranscriptStore()
    raise ValueError(f"Unknown store: {kind!r}. Supported: ['supabase', 'memory']")
