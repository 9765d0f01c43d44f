"""Long-form synthesis: book chapters and blog posts built from transcript segments."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from anthropic import Anthropic, APIError

from studio.errors import PartialContentError, StageCancelledError
from studio.extraction.models import Diagnostic, Insight
from studio.extraction.text_stats import content_words, corpus_frequencies, title_from_keywords, top_keywords
from studio.ingestion.models import Segment
from studio.ingestion.parsers import split_sentences, strip_fillers
from studio.llm import call_tool, format_segments, segment_refs, tool_text
from studio.pipeline_config import GenerationBackend, PipelineConfig
from studio.synthesis.models import DerivedDocument, SectionResult, StyleProfile

logger = logging.getLogger(__name__)

STAGE = "synthesizing"

DOCUMENT_TOOL: dict[str, Any] = {
    "name": "store_document",
    "description": "Store one finished piece of long-form content.",
    "input_schema": {
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "Title of the piece."},
            "content": {
                "type": "string",
                "description": "Full body text, paragraphs separated by blank lines.",
            },
            "segment_indices": {
                "type": "array",
                "items": {"type": "integer"},
                "description": "Indices of the [N] segments the piece draws on.",
            },
        },
        "required": ["title", "content", "segment_indices"],
    },
}

SYSTEM_PROMPT = (
    "You turn livestream transcripts into polished written content while "
    "preserving the speaker's authentic voice.\n\n"
    "Rules:\n"
    "- Reuse the speaker's literal phrases and sentences wherever possible; "
    "prefer light editing over paraphrase.\n"
    "- Keep the speaker's point of view and characteristic phrasing.\n"
    "- Do not add facts, stories or claims that are not in the segments.\n"
    "- Use the store_document tool to return the piece."
)

_KIND_INSTRUCTIONS = {
    "chapter": "Write a book chapter of about {words} words covering these segments in order.",
    "blog": (
        "Write a standalone blog post of about {words} words built around this key point: "
        "{focus}"
    ),
}


def _take_words(sentences: list[str], limit: int) -> list[str]:
    """Leading sentences up to roughly *limit* words (always at least one)."""
    taken: list[str] = []
    count = 0
    for sentence in sentences:
        if taken and count + len(sentence.split()) > limit:
            break
        taken.append(sentence)
        count += len(sentence.split())
    return taken


def partition(segments: Sequence[Segment], groups: int) -> list[list[Segment]]:
    """Split *segments* into at most *groups* contiguous runs of similar length."""
    if groups <= 0 or not segments:
        return []
    groups = min(groups, len(segments))
    total = sum(len(s.text) for s in segments)
    runs: list[list[Segment]] = [[]]
    consumed = 0
    for pos, seg in enumerate(segments):
        remaining_segments = len(segments) - pos
        remaining_groups = groups - len(runs)
        boundary = total * len(runs) / groups
        if runs[-1] and remaining_groups > 0 and (consumed >= boundary or remaining_segments <= remaining_groups):
            runs.append([])
        runs[-1].append(seg)
        consumed += len(seg.text)
    return runs


class Synthesizer:
    """Produce ordered chapters and blog posts.

    Chapters cover contiguous runs of the transcript; blog posts are each built
    around one insight.  Content reuses the speaker's literal sentences; a
    document that cannot be produced is left out and reported as a diagnostic.
    """

    def __init__(self, config: PipelineConfig, client: Anthropic | None = None) -> None:
        self.config = config
        self.client = client

    def synthesize(
        self,
        segments: Sequence[Segment],
        insights: Sequence[Insight],
        style: StyleProfile,
        should_stop: Callable[[], bool] | None = None,
    ) -> tuple[SectionResult, SectionResult]:
        """Return ``(chapters, blogs)``."""
        return (
            self.synthesize_chapters(segments, insights, style, should_stop),
            self.synthesize_blogs(segments, insights, style, should_stop),
        )

    # -- chapters ---------------------------------------------------------------

    def synthesize_chapters(
        self,
        segments: Sequence[Segment],
        insights: Sequence[Insight],
        style: StyleProfile,
        should_stop: Callable[[], bool] | None = None,
    ) -> SectionResult:
        requested = self.config.chapter_count
        usable = [s for s in segments if content_words(s.body)]
        frequencies = corpus_frequencies(strip_fillers(s.body) for s in usable)
        documents: list[DerivedDocument] = []
        diagnostics: list[Diagnostic] = []

        for number, run in enumerate(partition(usable, requested), start=1):
            if should_stop is not None and should_stop():
                raise StageCancelledError(f"Chapter synthesis cancelled before chapter {number}")
            try:
                if self.config.backend is GenerationBackend.CLAUDE:
                    doc = self._generate("chapter", run, style, self.config.chapter_words)
                else:
                    doc = self._chapter_locally(number, run, insights, frequencies)
            except (APIError, ValueError, PartialContentError) as exc:
                logger.warning("Chapter %d could not be produced: %s", number, exc)
                diagnostics.append(
                    Diagnostic(STAGE, "chapters", PartialContentError.__name__, f"Chapter {number}: {exc}")
                )
                continue
            documents.append(doc)

        self._record_shortfall("chapters", requested, len(documents), diagnostics)
        return SectionResult(tuple(documents), tuple(diagnostics))

    def _chapter_locally(
        self,
        number: int,
        run: list[Segment],
        insights: Sequence[Insight],
        frequencies: Any,
    ) -> DerivedDocument:
        indices = {s.index for s in run}
        overlapping = [i for i in insights if indices & set(i.segment_indices)]
        if overlapping:
            anchor = max(overlapping, key=lambda i: (len(indices & set(i.segment_indices)), -i.segment_indices[0]))
            heading = anchor.title
        else:
            heading = title_from_keywords(top_keywords(" ".join(s.body for s in run), frequencies))
        if not heading:
            raise PartialContentError("no material to title the chapter")

        budget = self.config.chapter_words
        paragraphs: list[str] = []
        used: list[int] = []
        for seg in run:
            if budget <= 0:
                break
            sentences = _take_words(split_sentences(strip_fillers(seg.body)), budget)
            if not sentences:
                continue
            paragraphs.append(" ".join(sentences))
            used.append(seg.index)
            budget -= sum(len(s.split()) for s in sentences)

        if not paragraphs:
            raise PartialContentError("segments contain no usable sentences")
        return DerivedDocument(
            kind="chapter",
            title=f"Chapter {number}: {heading}",
            content="\n\n".join(paragraphs),
            segment_indices=tuple(used),
        )

    # -- blogs ------------------------------------------------------------------

    def synthesize_blogs(
        self,
        segments: Sequence[Segment],
        insights: Sequence[Insight],
        style: StyleProfile,
        should_stop: Callable[[], bool] | None = None,
    ) -> SectionResult:
        requested = self.config.blog_count
        by_index = {s.index: s for s in segments}
        documents: list[DerivedDocument] = []
        diagnostics: list[Diagnostic] = []

        for insight in list(insights)[:requested]:
            if should_stop is not None and should_stop():
                raise StageCancelledError(f"Blog synthesis cancelled before {insight.title!r}")
            sources = self._blog_sources(insight, by_index)
            try:
                if self.config.backend is GenerationBackend.CLAUDE:
                    doc = self._generate("blog", sources, style, self.config.blog_words, focus=insight)
                else:
                    doc = self._blog_locally(insight, sources, style)
            except (APIError, ValueError, PartialContentError) as exc:
                logger.warning("Blog post %r could not be produced: %s", insight.title, exc)
                diagnostics.append(
                    Diagnostic(STAGE, "blogs", PartialContentError.__name__, f"{insight.title}: {exc}")
                )
                continue
            documents.append(doc)

        self._record_shortfall("blogs", requested, len(documents), diagnostics)
        return SectionResult(tuple(documents), tuple(diagnostics))

    @staticmethod
    def _blog_sources(insight: Insight, by_index: dict[int, Segment]) -> list[Segment]:
        """The insight's segments plus their immediate neighbours, in transcript order."""
        wanted: set[int] = set()
        for idx in insight.segment_indices:
            wanted.update({idx - 1, idx, idx + 1})
        return [by_index[i] for i in sorted(wanted) if i in by_index]

    def _blog_locally(self, insight: Insight, sources: list[Segment], style: StyleProfile) -> DerivedDocument:
        sentences: list[str] = []
        origin: dict[str, int] = {}
        for seg in sources:
            for sentence in split_sentences(strip_fillers(seg.body)):
                if content_words(sentence) and sentence not in origin:
                    sentences.append(sentence)
                    origin[sentence] = seg.index
        if not sentences:
            raise PartialContentError("source segments contain no usable sentences")

        # Open on a sentence carrying one of the speaker's signature phrases when possible.
        opening = next(
            (s for s in sentences if any(p in s.lower() for p in style.phrases)),
            insight.content if insight.content in origin else sentences[0],
        )
        rest = [s for s in sentences if s != opening]
        body = _take_words(rest, max(self.config.blog_words - len(opening.split()), 1)) if rest else []

        paragraphs = [opening]
        for start in range(0, len(body), 3):
            paragraphs.append(" ".join(body[start : start + 3]))
        used = sorted({origin[s] for s in [opening, *body] if s in origin} | set(insight.segment_indices))
        return DerivedDocument(
            kind="blog",
            title=insight.title,
            content="\n\n".join(paragraphs),
            segment_indices=tuple(used),
        )

    # -- shared -----------------------------------------------------------------

    def _generate(
        self,
        kind: str,
        sources: list[Segment],
        style: StyleProfile,
        words: int,
        focus: Insight | None = None,
    ) -> DerivedDocument:
        if not sources:
            raise PartialContentError("no source segments")
        instruction = _KIND_INSTRUCTIONS[kind].format(
            words=words,
            focus=f"{focus.title}: {focus.content}" if focus else "",
        )
        data = call_tool(
            DOCUMENT_TOOL,
            SYSTEM_PROMPT,
            f"{instruction}\n\n{style.describe()}\n\nSegments:\n\n{format_segments(sources)}",
            model=self.config.llm_model,
            temperature=self.config.creativity,
            client=self.client,
        )
        title = tool_text(data, "title")
        content = tool_text(data, "content")
        if not title or not content:
            raise PartialContentError("model returned an empty title or body")

        allowed = {s.index for s in sources}
        indices = segment_refs(data.get("segment_indices"), allowed)
        return DerivedDocument(
            kind=kind,
            title=title,
            content=content,
            segment_indices=indices or tuple(sorted(allowed)),
        )

    @staticmethod
    def _record_shortfall(section: str, requested: int, produced: int, diagnostics: list[Diagnostic]) -> None:
        if produced < requested:
            diagnostics.append(
                Diagnostic(
                    STAGE,
                    section,
                    PartialContentError.__name__,
                    f"Produced {produced} of {requested} requested {section}",
                )
            )
