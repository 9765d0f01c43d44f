"""Reading side of the ``processed_data`` schema.

Stored sections may be a plain string or a list of ``{title?, content}`` objects
(older records also hold bare strings inside the list).  Both shapes are
accepted and turned into uniform display items.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from studio.pipeline.models import SECTION_KEYS

logger = logging.getLogger(__name__)

SECTION_LABELS: dict[str, str] = {
    "insights": "Insights",
    "chapters": "Book Chapters",
    "blogs": "Blog Posts",
    "social": "Social Media",
}

EMPTY_SECTION_MESSAGE = "No content available for this section."


@dataclass(frozen=True)
class SectionItem:
    title: str
    content: str


def normalize_section(section: str, data: Any) -> list[SectionItem]:
    """Turn one stored section into display items.

    Items without a title get ``"<section> <n>"`` (1-based).  Missing or empty
    sections yield an empty list.
    """
    if data is None or data == "" or data == []:
        return []
    if isinstance(data, str):
        return [SectionItem(title=SECTION_LABELS.get(section, section), content=data)]
    if not isinstance(data, list):
        raise ValueError(f"Section {section!r} must be a string or a list, got {type(data).__name__}")

    items: list[SectionItem] = []
    for n, entry in enumerate(data, start=1):
        if isinstance(entry, dict):
            title = entry.get("title") or f"{section} {n}"
            content = entry.get("content")
            if content is None:
                content = json.dumps(entry, ensure_ascii=False)
            items.append(SectionItem(title=str(title), content=str(content)))
        else:
            items.append(SectionItem(title=f"{section} {n}", content=str(entry)))
    return items


def section_counts(processed_data: dict[str, Any] | None) -> dict[str, int]:
    """Number of display items per section key.

    A malformed section is logged and counted as zero.
    """
    data = processed_data if isinstance(processed_data, dict) else {}
    counts: dict[str, int] = {}
    for key in SECTION_KEYS:
        try:
            counts[key] = len(normalize_section(key, data.get(key)))
        except ValueError as exc:
            logger.warning("Counting section %r failed: %s", key, exc)
            counts[key] = 0
    return counts


def render_markdown(file_name: str, processed_data: dict[str, Any] | None) -> str:
    """Render a stored result as Markdown, one heading per section."""
    data = processed_data or {}
    lines = [f"# {file_name}", ""]
    for key in SECTION_KEYS:
        lines.extend([f"## {SECTION_LABELS[key]}", ""])
        items = normalize_section(key, data.get(key))
        if not items:
            lines.extend([f"_{EMPTY_SECTION_MESSAGE}_", ""])
            continue
        for item in items:
            lines.extend([f"### {item.title}", "", item.content, ""])
    return "\n".join(lines).rstrip() + "\n"
