"""Data models for long-form derived content."""

from __future__ import annotations

from dataclasses import dataclass

from studio.extraction.models import Diagnostic


@dataclass(frozen=True)
class DerivedDocument:
    """A book chapter or blog post derived from the transcript."""

    kind: str  # "chapter" or "blog"
    title: str
    content: str
    segment_indices: tuple[int, ...]

    def to_payload(self) -> dict[str, str]:
        return {"title": self.title, "content": self.content}


@dataclass(frozen=True)
class StyleProfile:
    """Voice markers detected in the source transcript."""

    person: str = "neutral"  # "first", "second", "plural" or "neutral"
    phrases: tuple[str, ...] = ()
    avg_sentence_words: float = 0.0

    def describe(self) -> str:
        voice = {
            "first": "first person singular (I, me, my)",
            "second": "second person, addressing the reader directly (you, your)",
            "plural": "first person plural (we, us, our)",
            "neutral": "the speaker's own register",
        }[self.person]
        lines = [f"Voice: {voice}.", f"Average sentence length: {self.avg_sentence_words:.0f} words."]
        if self.phrases:
            lines.append("Characteristic phrases to reuse: " + "; ".join(f'"{p}"' for p in self.phrases))
        return "\n".join(lines)


@dataclass(frozen=True)
class SectionResult:
    """Documents produced for one section plus the shortfall diagnostics."""

    documents: tuple[DerivedDocument, ...]
    diagnostics: tuple[Diagnostic, ...] = ()
