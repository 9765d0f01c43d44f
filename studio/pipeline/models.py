"""Pipeline state machine and the assembled result."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from studio.errors import InvalidTransitionError
from studio.extraction.models import Diagnostic, Insight
from studio.ingestion.models import Segment, Transcript
from studio.repurposing.models import SocialPost
from studio.synthesis.models import DerivedDocument

SECTION_KEYS: tuple[str, ...] = ("insights", "chapters", "blogs", "social")


class PipelineState(str, Enum):
    """Lifecycle of one transcript through the pipeline."""

    RECEIVED = "received"
    SEGMENTING = "segmenting"
    EXTRACTING = "extracting"
    SYNTHESIZING = "synthesizing"  # chapters, blogs and social posts run concurrently
    ASSEMBLING = "assembling"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.RECEIVED: frozenset({PipelineState.SEGMENTING, PipelineState.FAILED}),
    PipelineState.SEGMENTING: frozenset({PipelineState.EXTRACTING, PipelineState.FAILED}),
    PipelineState.EXTRACTING: frozenset({PipelineState.SYNTHESIZING, PipelineState.FAILED}),
    PipelineState.SYNTHESIZING: frozenset({PipelineState.ASSEMBLING, PipelineState.FAILED}),
    PipelineState.ASSEMBLING: frozenset({PipelineState.COMPLETED, PipelineState.FAILED}),
    PipelineState.COMPLETED: frozenset(),
    PipelineState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class ProcessedResult:
    """The four content sections produced for one transcript."""

    insights: tuple[Insight, ...] = ()
    chapters: tuple[DerivedDocument, ...] = ()
    blogs: tuple[DerivedDocument, ...] = ()
    social: tuple[SocialPost, ...] = ()

    def to_payload(self) -> dict[str, list[dict[str, str]]]:
        """Serialize to the stored ``processed_data`` shape (keys fixed, ``title`` optional)."""
        return {key: [item.to_payload() for item in getattr(self, key)] for key in SECTION_KEYS}


@dataclass
class PipelineRun:
    """Mutable record of one run: state history, stage outputs and diagnostics."""

    transcript: Transcript
    state: PipelineState = PipelineState.RECEIVED
    segments: tuple[Segment, ...] = ()
    result: ProcessedResult | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.RECEIVED])
    error: Exception | None = None

    def advance(self, new_state: PipelineState) -> None:
        """Move to *new_state*; transitions only ever go forward."""
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"Cannot move from {self.state.value} to {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def diagnostics_for(self, section: str) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.section == section]

    def summary(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "segments": len(self.segments),
            "sections": {
                key: len(getattr(self.result, key)) if self.result else 0 for key in SECTION_KEYS
            },
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
