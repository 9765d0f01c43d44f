"""Segmenter: split a transcript into bounded, ordered segments on natural boundaries."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from studio.errors import EmptyInputError
from studio.ingestion.models import Segment
from studio.ingestion.parsers import detect_speaker, normalize_transcript, sentence_spans, word_spans

logger = logging.getLogger(__name__)

_PARAGRAPH_RE = re.compile(r"[^\n]+(?:\n[^\n]+)*")
_LINE_RE = re.compile(r"[^\n]+")

Span = tuple[int, int]


def _pack(spans: list[Span], max_chars: int) -> list[Span]:
    """Greedily merge consecutive spans while the merged span fits in *max_chars*.

    Spans longer than *max_chars* are passed through unchanged for the caller
    to split further.
    """
    packed: list[Span] = []
    current: Span | None = None
    for start, end in spans:
        if current is not None and end - current[0] <= max_chars:
            current = (current[0], end)
            continue
        if current is not None:
            packed.append(current)
        current = (start, end)
    if current is not None:
        packed.append(current)
    return packed


def _hard_split(text: str, span: Span, max_chars: int) -> list[Span]:
    """Split an oversized sentence at word boundaries.

    A single token longer than *max_chars* is cut at the limit; it is the only
    place a segment boundary can fall inside a token.
    """
    start, end = span
    pieces: list[Span] = []
    for w_start, w_end in word_spans(text[start:end], offset=start):
        while w_end - w_start > max_chars:
            pieces.append((w_start, w_start + max_chars))
            w_start += max_chars
        pieces.append((w_start, w_end))
    return _pack(pieces, max_chars)


def _turns(text: str, paragraph: Span) -> list[tuple[Span, str | None]]:
    """Group the lines of a paragraph into speaker turns.

    A line opening with a speaker label starts a new turn; unlabelled lines
    continue the current one.
    """
    p_start, p_end = paragraph
    turns: list[tuple[Span, str | None]] = []
    for match in _LINE_RE.finditer(text, p_start, p_end):
        speaker = detect_speaker(match.group())
        if turns and speaker is None:
            (t_start, _), t_speaker = turns[-1]
            turns[-1] = ((t_start, match.end()), t_speaker)
        else:
            turns.append(((match.start(), match.end()), speaker))
    return turns


class Segmenter:
    """Split raw transcript text into ordered :class:`Segment` instances.

    Boundaries are tried in order: paragraph breaks, speaker turns, sentence
    boundaries, then length-based splitting at whitespace.  No segment is empty
    and none exceeds ``max_segment_chars``.
    """

    def __init__(self, max_segment_chars: int = 1200) -> None:
        if max_segment_chars < 20:
            raise ValueError(f"max_segment_chars must be >= 20, got {max_segment_chars}")
        self.max_segment_chars = max_segment_chars

    def _split_turn(self, text: str, turn: Span) -> list[Span]:
        start, end = turn
        if end - start <= self.max_segment_chars:
            return [turn]

        spans: list[Span] = []
        for sentence in _pack(sentence_spans(text[start:end], offset=start), self.max_segment_chars):
            if sentence[1] - sentence[0] <= self.max_segment_chars:
                spans.append(sentence)
            else:
                spans.extend(_hard_split(text, sentence, self.max_segment_chars))
        return spans

    def segment(
        self,
        content: str,
        should_stop: Callable[[], bool] | None = None,
    ) -> list[Segment]:
        """Segment *content*.

        Args:
            content: Raw transcript text.
            should_stop: Optional callable polled at paragraph boundaries; when
                it returns True the segments produced so far are returned.

        Raises:
            EmptyInputError: If *content* is empty after normalization.
        """
        if not content or not content.strip():
            raise EmptyInputError()

        text = normalize_transcript(content)
        if not text:
            raise EmptyInputError("Transcript contains no text after removing timestamps.")

        spans: list[tuple[Span, str | None]] = []
        text_end = len(text)
        for paragraph in _PARAGRAPH_RE.finditer(text):
            if should_stop is not None and should_stop():
                logger.info("Segmentation stopped after %d segments", len(spans))
                text_end = spans[-1][0][1] if spans else 0
                break
            for turn, speaker in _turns(text, paragraph.span()):
                spans.extend((span, speaker) for span in self._split_turn(text, turn))

        segments: list[Segment] = []
        for idx, ((start, end), speaker) in enumerate(spans):
            next_start = spans[idx + 1][0][0] if idx + 1 < len(spans) else text_end
            segments.append(
                Segment(
                    index=idx,
                    text=text[start:end],
                    start=start,
                    end=end,
                    speaker=speaker,
                    separator=text[end:next_start],
                )
            )

        logger.debug("Segmented %d chars into %d segments", len(text), len(segments))
        return segments


def reassemble(segments: list[Segment]) -> str:
    """Rebuild the normalized transcript from its segments."""
    return "".join(s.text + s.separator for s in segments)
