"""Short-form repurposing: social posts from insights, under a hard length ceiling."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from anthropic import Anthropic, APIError

from studio.errors import PartialContentError, StageCancelledError
from studio.extraction.models import Diagnostic, Insight
from studio.extraction.text_stats import content_words
from studio.ingestion.parsers import split_sentences
from studio.llm import call_tool, tool_items, tool_text
from studio.pipeline_config import GenerationBackend, PipelineConfig
from studio.repurposing.models import RepurposeResult, SocialPost
from studio.synthesis.models import StyleProfile

logger = logging.getLogger(__name__)

STAGE = "repurposing"
SECTION = "social"
ELLIPSIS = "…"

SOCIAL_TOOL: dict[str, Any] = {
    "name": "store_social_posts",
    "description": "Store short social media posts, one or more per insight.",
    "input_schema": {
        "type": "object",
        "properties": {
            "posts": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "content": {"type": "string", "description": "The post text."},
                        "insight_index": {
                            "type": "integer",
                            "description": "Index of the [N] insight the post is based on.",
                        },
                    },
                    "required": ["content", "insight_index"],
                },
            },
        },
        "required": ["posts"],
    },
}

SYSTEM_PROMPT = (
    "You write short social media posts from key insights of a livestream, in the "
    "speaker's own voice. Quote the speaker's wording where you can, do not invent "
    "claims, and keep every post under {limit} characters including hashtags. "
    "Use the store_social_posts tool to return the posts."
)


def truncate_at_word(text: str, limit: int) -> str:
    """Shorten *text* to at most *limit* characters, cutting at a word boundary.

    An ellipsis marks the cut and counts towards the limit.  Returns an empty
    string when the first word alone does not fit.
    """
    text = text.strip()
    if len(text) <= limit:
        return text
    cut = text[: limit - len(ELLIPSIS) + 1]
    boundary = max(cut.rfind(" "), cut.rfind("\n"))
    if boundary <= 0:
        return ""
    kept = cut[:boundary].rstrip(" ,;:-\n")
    return kept + ELLIPSIS if kept else ""


def _hashtags(title: str, limit: int = 2) -> str:
    tags = [w.capitalize() for w in content_words(title) if w.isalpha()][:limit]
    return " ".join(f"#{t}" for t in tags)


class Repurposer:
    """Turn insights into social posts that never exceed ``social_max_chars``.

    A post over the ceiling is regenerated once in a compact form, then cut at
    a word boundary; if nothing survives the cut it is dropped with a diagnostic.
    """

    def __init__(self, config: PipelineConfig, client: Anthropic | None = None) -> None:
        self.config = config
        self.client = client

    @property
    def ceiling(self) -> int:
        return self.config.social_max_chars

    def repurpose(
        self,
        insights: Sequence[Insight],
        style: StyleProfile | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> RepurposeResult:
        selected = list(insights)[: self.config.social_count]
        diagnostics: list[Diagnostic] = []

        if self.config.backend is GenerationBackend.CLAUDE:
            drafts = self._draft_with_claude(selected, style, diagnostics)
        else:
            drafts = [
                (insight, self._compose(insight), lambda i=insight: self._compose(i, compact=True))
                for insight in selected
            ]

        posts: list[SocialPost] = []
        for insight, draft, regenerate in drafts:
            if len(posts) == self.config.social_count:
                break
            if should_stop is not None and should_stop():
                raise StageCancelledError(f"Repurposing cancelled after {len(posts)} posts")
            content = self.enforce_ceiling(draft, regenerate)
            if not content:
                diagnostics.append(
                    Diagnostic(
                        STAGE,
                        SECTION,
                        PartialContentError.__name__,
                        f"Post for {insight.title!r} dropped: could not fit {self.ceiling} characters",
                    )
                )
                continue
            posts.append(SocialPost(content=content, position=len(posts), segment_indices=insight.segment_indices))

        if len(posts) < self.config.social_count:
            diagnostics.append(
                Diagnostic(
                    STAGE,
                    SECTION,
                    PartialContentError.__name__,
                    f"Produced {len(posts)} of {self.config.social_count} requested social posts",
                )
            )
        logger.info("Produced %d social posts", len(posts))
        return RepurposeResult(tuple(posts), tuple(diagnostics))

    def enforce_ceiling(self, draft: str, regenerate: Callable[[], str]) -> str:
        """Apply the length gate to *draft*; returns "" when the post must be dropped."""
        draft = draft.strip()
        if draft and len(draft) <= self.ceiling:
            return draft
        try:
            retry = regenerate().strip()
        except (APIError, ValueError) as exc:
            logger.warning("Regenerating an over-long post failed: %s", exc)
            retry = draft
        if retry and len(retry) <= self.ceiling:
            return retry
        return truncate_at_word(retry or draft, self.ceiling)

    def _compose(self, insight: Insight, compact: bool = False) -> str:
        if compact:
            sentences = split_sentences(insight.content) or [insight.content]
            return min(sentences, key=len)
        tags = _hashtags(insight.title)
        return f"{insight.content}\n\n{tags}" if tags else insight.content

    def _draft_with_claude(
        self,
        insights: list[Insight],
        style: StyleProfile | None,
        diagnostics: list[Diagnostic],
    ) -> list[tuple[Insight, str, Callable[[], str]]]:
        if not insights:
            return []
        listing = "\n".join(f"[{n}] {i.title}: {i.content}" for n, i in enumerate(insights))
        voice = f"\n\n{style.describe()}" if style else ""
        system = SYSTEM_PROMPT.format(limit=self.ceiling)
        try:
            data = call_tool(
                SOCIAL_TOOL,
                system,
                f"Write one post per insight.{voice}\n\nInsights:\n{listing}",
                model=self.config.llm_model,
                temperature=self.config.creativity,
                client=self.client,
            )
        except (APIError, ValueError) as exc:
            logger.exception("Social post generation failed")
            diagnostics.append(Diagnostic(STAGE, SECTION, PartialContentError.__name__, f"Generation failed: {exc}"))
            return []

        items, malformed = tool_items(data, "posts")
        if malformed:
            diagnostics.append(
                Diagnostic(STAGE, SECTION, PartialContentError.__name__, f"Dropped {malformed} malformed post entries")
            )

        drafts: list[tuple[Insight, str, Callable[[], str]]] = []
        for item in items:
            idx = item.get("insight_index")
            if isinstance(idx, bool) or not isinstance(idx, int) or not 0 <= idx < len(insights):
                diagnostics.append(
                    Diagnostic(
                        STAGE, SECTION, PartialContentError.__name__, f"Dropped post with unknown insight {idx!r}"
                    )
                )
                continue
            draft = tool_text(item, "content")
            drafts.append((insights[idx], draft, lambda d=draft: self._shorten_with_claude(d, system)))
        return drafts

    def _shorten_with_claude(self, draft: str, system: str) -> str:
        data = call_tool(
            SOCIAL_TOOL,
            system,
            f"Rewrite this post in under {self.ceiling} characters, keeping the wording:\n\n[0] {draft}",
            model=self.config.llm_model,
            temperature=self.config.creativity,
            client=self.client,
        )
        posts, _ = tool_items(data, "posts")
        return tool_text(posts[0], "content") if posts else ""
