"""Pipeline configuration: backend enum and the PipelineConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from studio.config import Settings


class GenerationBackend(str, Enum):
    """Available generation backends for the content stages."""

    EXTRACTIVE = "extractive"
    CLAUDE = "claude"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for one pipeline run.

    Defaults mirror ``Settings``.  Timeouts are per stage; ``stage_retries``
    is the number of additional attempts after the first one.
    """

    backend: GenerationBackend = GenerationBackend.EXTRACTIVE
    max_segment_chars: int = 1200
    max_insights: int = 8
    min_content_words: int = 3
    extraction_window: int = 12
    chapter_count: int = 3
    blog_count: int = 4
    social_count: int = 5
    social_max_chars: int = 280
    chapter_words: int = 600
    blog_words: int = 350
    creativity: float = 0.0
    stage_retries: int = 1
    stage_timeout_seconds: float = 60.0
    required_stage_timeout_seconds: float = 120.0
    llm_model: str = "claude-sonnet-4-20250514"

    def __post_init__(self) -> None:
        if self.max_segment_chars < 20:
            raise ValueError(f"max_segment_chars must be >= 20, got {self.max_segment_chars}")
        if self.max_insights < 1:
            raise ValueError(f"max_insights must be >= 1, got {self.max_insights}")
        for name in ("chapter_count", "blog_count", "social_count"):
            value = getattr(self, name)
            if not 0 <= value <= 10:
                raise ValueError(f"{name} must be between 0 and 10, got {value}")
        if self.social_max_chars < 20:
            raise ValueError(f"social_max_chars must be >= 20, got {self.social_max_chars}")
        if not 0.0 <= self.creativity <= 1.0:
            raise ValueError(f"creativity must be between 0 and 1, got {self.creativity}")
        if self.stage_retries < 0:
            raise ValueError(f"stage_retries must be >= 0, got {self.stage_retries}")
        if self.stage_timeout_seconds <= 0 or self.required_stage_timeout_seconds <= 0:
            raise ValueError("stage timeouts must be positive")

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: object) -> PipelineConfig:
        """Build a config from application settings, applying keyword overrides."""
        values: dict[str, object] = {
            "backend": GenerationBackend(settings.generation_backend),
            "max_segment_chars": settings.max_segment_chars,
            "max_insights": settings.max_insights,
            "chapter_count": settings.chapter_count,
            "blog_count": settings.blog_count,
            "social_count": settings.social_count,
            "social_max_chars": settings.social_max_chars,
            "chapter_words": settings.chapter_words,
            "blog_words": settings.blog_words,
            "creativity": settings.creativity,
            "stage_retries": settings.stage_retries,
            "stage_timeout_seconds": settings.stage_timeout_seconds,
            "required_stage_timeout_seconds": settings.required_stage_timeout_seconds,
            "llm_model": settings.llm_model,
        }
        values.update(overrides)
        if isinstance(values["backend"], str):
            values["backend"] = GenerationBackend(values["backend"])
        return cls(**values)  # type: ignore[arg-type]
