"""Insight extraction from segmented transcripts (extractive or Claude-powered)."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from anthropic import Anthropic, APIError

from studio.errors import PartialContentError, StageCancelledError
from studio.extraction.models import Diagnostic, ExtractionResult, Insight
from studio.extraction.text_stats import (
    content_words,
    corpus_frequencies,
    normalize_title,
    score_sentence,
    title_from_keywords,
    top_keywords,
)
from studio.ingestion.models import Segment
from studio.ingestion.parsers import split_sentences, strip_fillers
from studio.llm import call_tool, format_segments, segment_refs, tool_items, tool_text
from studio.pipeline_config import GenerationBackend, PipelineConfig

logger = logging.getLogger(__name__)

STAGE = "extracting"
SECTION = "insights"

# Tool definition for Claude structured output
INSIGHTS_TOOL: dict[str, Any] = {
    "name": "store_insights",
    "description": (
        "Store the key insights found in a transcript excerpt. "
        "Call this once with every insight."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "insights": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {
                            "type": "string",
                            "description": "Short headline for the insight (max 8 words).",
                        },
                        "content": {
                            "type": "string",
                            "description": (
                                "The insight in the speaker's own words, quoting the "
                                "transcript wherever possible."
                            ),
                        },
                        "segment_indices": {
                            "type": "array",
                            "items": {"type": "integer"},
                            "description": "Indices of the [N] segments the insight comes from.",
                        },
                    },
                    "required": ["title", "content", "segment_indices"],
                },
            },
        },
        "required": ["insights"],
    },
}

SYSTEM_PROMPT = (
    "You extract key insights from livestream and talk transcripts.\n\n"
    "Each segment is prefixed with its index in square brackets. For every "
    "distinct key point or theme, return a short title, the point itself in the "
    "speaker's own words, and the indices of the segments it comes from.\n\n"
    "Only extract points clearly supported by the transcript. Ignore filler, "
    "greetings and housekeeping. Use the store_insights tool to return your results."
)


@dataclass
class _Candidate:
    insight: Insight
    score: float


def _merge(candidates: list[_Candidate]) -> list[_Candidate]:
    """Merge candidates whose titles normalize to the same key.

    The longer content wins; segment indices are unioned and the best score kept.
    """
    merged: dict[str, _Candidate] = {}
    for cand in candidates:
        key = normalize_title(cand.insight.title)
        existing = merged.get(key)
        if existing is None:
            merged[key] = cand
            continue
        keep = cand.insight if len(cand.insight.content) > len(existing.insight.content) else existing.insight
        indices = tuple(sorted(set(existing.insight.segment_indices) | set(cand.insight.segment_indices)))
        merged[key] = _Candidate(
            insight=Insight(title=keep.title, content=keep.content, segment_indices=indices),
            score=max(existing.score, cand.score),
        )
    return list(merged.values())


class Extractor:
    """Derive ordered :class:`Insight` instances from a segment sequence.

    Deterministic for a fixed configuration: the extractive backend uses only
    corpus statistics, and the Claude backend runs at ``config.creativity``
    temperature (0.0 by default).
    """

    def __init__(self, config: PipelineConfig, client: Anthropic | None = None) -> None:
        self.config = config
        self.client = client

    def extract(
        self,
        segments: Sequence[Segment],
        should_stop: Callable[[], bool] | None = None,
    ) -> ExtractionResult:
        """Extract insights; per-segment failures become diagnostics.

        Raises:
            StageCancelledError: If *should_stop* returns True at a segment boundary.
        """
        diagnostics: list[Diagnostic] = []
        usable: list[Segment] = []
        for seg in segments:
            try:
                self._check_intelligible(seg)
            except PartialContentError as exc:
                diagnostics.append(
                    Diagnostic(STAGE, SECTION, type(exc).__name__, str(exc), seg.index)
                )
                continue
            usable.append(seg)

        if self.config.backend is GenerationBackend.CLAUDE:
            candidates = self._extract_with_claude(usable, diagnostics, should_stop)
        else:
            candidates = self._extract_locally(usable, diagnostics, should_stop)

        ranked = sorted(
            _merge(candidates),
            key=lambda c: (-c.score, c.insight.segment_indices[0]),
        )[: self.config.max_insights]
        insights = sorted((c.insight for c in ranked), key=lambda i: i.segment_indices)

        logger.info(
            "Extracted %d insights from %d segments (%d diagnostics)",
            len(insights),
            len(segments),
            len(diagnostics),
        )
        return ExtractionResult(insights=tuple(insights), diagnostics=tuple(diagnostics))

    def _check_intelligible(self, seg: Segment) -> None:
        words = content_words(strip_fillers(seg.body))
        if len(words) < self.config.min_content_words:
            raise PartialContentError(
                f"Segment {seg.index} has too little content to extract from "
                f"({len(words)} content words)"
            )

    # -- extractive backend -------------------------------------------------

    def _extract_locally(
        self,
        segments: list[Segment],
        diagnostics: list[Diagnostic],
        should_stop: Callable[[], bool] | None,
    ) -> list[_Candidate]:
        frequencies = corpus_frequencies(strip_fillers(s.body) for s in segments)
        candidates: list[_Candidate] = []

        for seg in segments:
            if should_stop is not None and should_stop():
                raise StageCancelledError(f"Extraction cancelled at segment {seg.index}")

            body = strip_fillers(seg.body)
            sentences = [s for s in split_sentences(body) if content_words(s)]
            if not sentences:
                diagnostics.append(
                    Diagnostic(
                        STAGE,
                        SECTION,
                        PartialContentError.__name__,
                        f"Segment {seg.index} has no usable sentence",
                        seg.index,
                    )
                )
                continue

            position, best = max(
                enumerate(sentences),
                key=lambda pair: (score_sentence(pair[1], frequencies), -pair[0]),
            )
            keywords = top_keywords(best, frequencies) or top_keywords(body, frequencies)
            candidates.append(
                _Candidate(
                    insight=Insight(
                        title=title_from_keywords(keywords),
                        content=best,
                        segment_indices=(seg.index,),
                    ),
                    score=score_sentence(best, frequencies),
                )
            )
            logger.debug("Segment %d: picked sentence %d", seg.index, position)

        return candidates

    # -- Claude backend -------------------------------------------------------

    def _extract_with_claude(
        self,
        segments: list[Segment],
        diagnostics: list[Diagnostic],
        should_stop: Callable[[], bool] | None,
    ) -> list[_Candidate]:
        candidates: list[_Candidate] = []
        window = self.config.extraction_window

        for start in range(0, len(segments), window):
            if should_stop is not None and should_stop():
                raise StageCancelledError(f"Extraction cancelled at window {start // window}")

            batch = segments[start : start + window]
            allowed = {s.index for s in batch}
            try:
                data = call_tool(
                    INSIGHTS_TOOL,
                    SYSTEM_PROMPT,
                    f"Extract the key insights from these transcript segments:\n\n{format_segments(batch)}",
                    model=self.config.llm_model,
                    temperature=self.config.creativity,
                    client=self.client,
                )
            except (APIError, ValueError) as exc:
                logger.exception("Insight extraction failed for segments %s", sorted(allowed))
                diagnostics.extend(
                    Diagnostic(STAGE, SECTION, PartialContentError.__name__, f"Extraction failed: {exc}", idx)
                    for idx in sorted(allowed)
                )
                continue

            items, malformed = tool_items(data, "insights")
            if malformed:
                diagnostics.append(
                    Diagnostic(
                        STAGE,
                        SECTION,
                        PartialContentError.__name__,
                        f"Dropped {malformed} malformed insight entries for segments {sorted(allowed)}",
                    )
                )
            for rank, item in enumerate(items):
                indices = segment_refs(item.get("segment_indices"), allowed)
                title = tool_text(item, "title")
                content = tool_text(item, "content")
                if not indices or not title or not content:
                    diagnostics.append(
                        Diagnostic(
                            STAGE,
                            SECTION,
                            PartialContentError.__name__,
                            f"Dropped insight {title!r}: no valid segment reference or empty content",
                        )
                    )
                    continue
                candidates.append(
                    _Candidate(
                        insight=Insight(title=title, content=content, segment_indices=indices),
                        # Claude returns insights by importance within a window.
                        score=float(window - rank),
                    )
                )

        return candidates
