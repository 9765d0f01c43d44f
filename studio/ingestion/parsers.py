"""Transcript normalization: timestamps, speaker labels, sentences and filler words."""

from __future__ import annotations

import re

# VTT-style cue line: ``00:01:23.456 --> 00:01:30.789`` (optionally followed by settings)
_CUE_RE = re.compile(
    r"^\d{1,2}:\d{2}(?::\d{2})?(?:[.,]\d{1,3})?\s*-->\s*\d{1,2}:\d{2}(?::\d{2})?(?:[.,]\d{1,3})?"
)
# Inline timestamps: ``[00:12]``, ``(01:02:03)``, ``[1:02:03.500]``
_BRACKETED_TS_RE = re.compile(r"[\[(]\d{1,2}:\d{2}(?::\d{2})?(?:[.,]\d{1,3})?[\])]")
# Bare timestamp opening a line: ``00:12 Hello``
_LEADING_TS_RE = re.compile(r"^\d{1,2}:\d{2}(?::\d{2})?(?:[.,]\d{1,3})?(?:\s+|$)")
_WHITESPACE_RE = re.compile(r"[ \t\f\v ]+")

# ``Speaker 1: Hello``, ``Jane Doe: Hi``, ``HOST: Welcome``.  Labels are short and capitalised so
# ordinary prose such as ``here is the thing: ...`` is not mistaken for a turn.
SPEAKER_RE = re.compile(r"^([A-Z0-9][\w.'-]*(?: [\w.'-]+){0,3}):\s+(\S.*)$", re.DOTALL)

_SENTENCE_BREAK_RE = re.compile(r"(?<=[.!?])[\"'”’)\]]*(\s+)")
_TOKEN_RE = re.compile(r"\S+")

FILLER_WORDS: frozenset[str] = frozenset(
    {"um", "umm", "uh", "uhh", "uhm", "erm", "er", "ah", "hmm", "mhm"}
)
_FILLERS = "|".join(sorted(FILLER_WORDS, key=len, reverse=True))
# A filler before closing punctuation takes its leading space with it (``agree um.`` -> ``agree.``);
# elsewhere it takes a trailing comma and space. Sentence punctuation is never consumed.
_FILLER_RE = re.compile(
    r"\s*(?<![\w'])(?:" + _FILLERS + r")\b(?=[.!?;:])"
    r"|(?<![\w'])(?:" + _FILLERS + r")\b(?:,\s*|\s+|$)",
    re.IGNORECASE,
)
_FILLER_PHRASE_RE = re.compile(r"(?<![\w'])you know,\s*", re.IGNORECASE)


def _clean_line(line: str) -> str:
    line = _BRACKETED_TS_RE.sub(" ", line)
    line = _WHITESPACE_RE.sub(" ", line).strip()
    line = _LEADING_TS_RE.sub("", line)
    return line.strip()


def normalize_transcript(content: str) -> str:
    """Return the canonical form every segment offset refers to.

    Line endings become ``\\n``, timestamp artifacts and a ``WEBVTT`` header are
    removed, whitespace inside a line collapses to one space, lines of a paragraph
    are joined by ``\\n`` and paragraphs by a single blank line.
    """
    paragraphs: list[list[str]] = [[]]
    for raw in content.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        stripped = raw.strip()
        if not stripped:
            if paragraphs[-1]:
                paragraphs.append([])
            continue
        if stripped.upper() == "WEBVTT" or _CUE_RE.match(stripped):
            continue
        line = _clean_line(stripped)
        if line:
            paragraphs[-1].append(line)

    return "\n\n".join("\n".join(lines) for lines in paragraphs if lines)


def detect_speaker(line: str) -> str | None:
    """Return the speaker label opening *line*, if any."""
    match = SPEAKER_RE.match(line)
    if match:
        return match.group(1)
    return None


def sentence_spans(text: str, offset: int = 0) -> list[tuple[int, int]]:
    """Split *text* into sentence spans (absolute offsets, trailing whitespace excluded).

    A boundary is whitespace following terminal punctuation (optionally closed by a
    quote or bracket).  Text without terminal punctuation is one sentence.
    """
    spans: list[tuple[int, int]] = []
    start = 0
    for match in _SENTENCE_BREAK_RE.finditer(text):
        end = match.start(1)
        if end > start:
            spans.append((offset + start, offset + end))
        start = match.end(1)
    if start < len(text):
        spans.append((offset + start, offset + len(text.rstrip())))
    return [(s, e) for s, e in spans if e > s]


def word_spans(text: str, offset: int = 0) -> list[tuple[int, int]]:
    """Spans of whitespace-free tokens in *text*."""
    return [(offset + m.start(), offset + m.end()) for m in _TOKEN_RE.finditer(text)]


def split_sentences(text: str) -> list[str]:
    """Sentences of *text* as strings."""
    return [text[s:e] for s, e in sentence_spans(text)]


def strip_fillers(text: str) -> str:
    """Remove filler words (``um``, ``uh``, ``you know,``) and tidy the spacing."""
    cleaned = _FILLER_PHRASE_RE.sub("", text)
    cleaned = _FILLER_RE.sub("", cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    if text[:1].isalnum():
        # a removed leading filler can leave its punctuation behind (``Um. Next`` -> ``. Next``)
        cleaned = cleaned.lstrip(" ,.;:!?")
    if cleaned and cleaned[0].islower() and text[:1].isupper():
        cleaned = cleaned[0].upper() + cleaned[1:]
    return cleaned
