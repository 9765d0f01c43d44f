"""Claude structured-output helper shared by the Claude-backed stages."""

from __future__ import annotations

import json
from typing import Any

from anthropic import Anthropic

from studio.config import settings


def get_anthropic_client() -> Anthropic:
    """Create an Anthropic client from settings."""
    return Anthropic(api_key=settings.anthropic_api_key)


def parse_tool_input(response: Any, tool_name: str) -> dict[str, Any] | None:
    """Return the input of the first ``tool_use`` block named *tool_name*.

    Returns None when the response carries no such block.
    """
    for block in response.content:
        if block.type != "tool_use":
            continue
        if block.name != tool_name:
            continue

        data = block.input
        if isinstance(data, str):
            data = json.loads(data)
        return dict(data)
    return None


def call_tool(
    tool: dict[str, Any],
    system: str,
    prompt: str,
    *,
    model: str,
    temperature: float = 0.0,
    max_tokens: int = 4096,
    client: Anthropic | None = None,
) -> dict[str, Any]:
    """Force Claude to answer through *tool* and return the tool input.

    Raises:
        ValueError: If the response contains no matching tool call.
    """
    client = client or get_anthropic_client()
    response = client.messages.create(
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        system=system,
        tools=[tool],
        tool_choice={"type": "tool", "name": tool["name"]},
        messages=[{"role": "user", "content": prompt}],
    )

    data = parse_tool_input(response, tool["name"])
    if data is None:
        raise ValueError(f"Claude response contained no {tool['name']!r} tool call")
    return data


def format_segments(segments: Any) -> str:
    """Render segments as ``[index] Speaker: text`` lines for a prompt."""
    lines: list[str] = []
    for seg in segments:
        speaker = f"{seg.speaker}: " if seg.speaker else ""
        lines.append(f"[{seg.index}] {speaker}{seg.body}")
    return "\n\n".join(lines)


def tool_items(data: dict[str, Any], key: str) -> tuple[list[dict[str, Any]], int]:
    """Object items under ``data[key]`` and the number of malformed entries skipped.

    A missing key yields no items; a non-list value counts as one malformed entry.
    """
    raw = data.get(key)
    if raw is None:
        return [], 0
    if not isinstance(raw, list):
        return [], 1
    items = [item for item in raw if isinstance(item, dict)]
    return items, len(raw) - len(items)


def tool_text(item: dict[str, Any], key: str) -> str:
    """A stripped string field; anything else (missing, null, nested) is empty."""
    value = item.get(key)
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value).strip()
    return ""


def segment_refs(raw: Any, allowed: set[int]) -> tuple[int, ...]:
    """Sorted segment indices from a model-supplied list, restricted to *allowed*.

    Non-list values yield nothing; entries that are not integers (or digit
    strings) are ignored.
    """
    if not isinstance(raw, list):
        return ()
    refs: set[int] = set()
    for value in raw:
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            idx = value
        elif isinstance(value, str) and value.strip().isdigit():
            idx = int(value)
        else:
            continue
        if idx in allowed:
            refs.add(idx)
    return tuple(sorted(refs))
