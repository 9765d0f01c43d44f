"""Data models for short-form social content."""

from __future__ import annotations

from dataclasses import dataclass

from studio.extraction.models import Diagnostic


@dataclass(frozen=True)
class SocialPost:
    """A short post; ``position`` keeps display order."""

    content: str
    position: int
    segment_indices: tuple[int, ...]

    def to_payload(self) -> dict[str, str]:
        return {"content": self.content}


@dataclass(frozen=True)
class RepurposeResult:
    posts: tuple[SocialPost, ...]
    diagnostics: tuple[Diagnostic, ...] = ()
