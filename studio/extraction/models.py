"""Data models for structured extraction results."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Insight:
    """A titled key point traced back to the segments it came from."""

    title: str
    content: str
    segment_indices: tuple[int, ...]

    def to_payload(self) -> dict[str, str]:
        return {"title": self.title, "content": self.content}


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem recorded while running a stage."""

    stage: str
    section: str
    error: str  # error class name, e.g. "PartialContentError"
    message: str
    segment_index: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "stage": self.stage,
            "section": self.section,
            "error": self.error,
            "message": self.message,
            "segment_index": self.segment_index,
        }


@dataclass(frozen=True)
class ExtractionResult:
    """Insights plus the diagnostics collected while extracting them."""

    insights: tuple[Insight, ...]
    diagnostics: tuple[Diagnostic, ...] = ()
