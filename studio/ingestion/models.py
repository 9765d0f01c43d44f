"""Data models for transcript ingestion."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class Transcript:
    """A submitted transcript; immutable once created."""

    text: str
    file_name: str
    received_at: str = field(default_factory=_utc_now)


@dataclass(frozen=True)
class Segment:
    """An ordered, contiguous span of the normalized transcript.

    ``start``/``end`` are character offsets into the normalized text and
    ``separator`` is whatever followed the span there (empty for the last one).
    """

    index: int
    text: str
    start: int
    end: int
    speaker: str | None = None
    separator: str = ""

    @property
    def body(self) -> str:
        """Segment text without a leading speaker label."""
        if self.speaker and self.text.startswith(f"{self.speaker}:"):
            return self.text[len(self.speaker) + 1 :].strip()
        return self.text
