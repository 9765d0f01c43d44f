"""Shared fixtures: a short livestream transcript and helpers for mocked Claude responses."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from studio.ingestion.models import Segment
from studio.ingestion.segmenter import Segmenter

STREAM_TRANSCRIPT = """Welcome back to the stream everyone. Today I want to talk about building habits that actually stick.

The first thing I learned is that small habits compound over time. If you read ten pages every day, you finish a dozen books every year.

Motivation fades quickly after the first week. Systems keep you moving when motivation disappears and you feel tired.

I track every habit in a simple notebook. Tracking habits makes progress visible, and visible progress keeps me motivated.

Environment matters more than willpower. I keep my running shoes next to the door so running becomes the default choice.

Remember that small habits compound into big results. Start tiny, stay consistent, and let the system carry you."""


@pytest.fixture
def transcript_text() -> str:
    return STREAM_TRANSCRIPT


@pytest.fixture
def segments() -> list[Segment]:
    return Segmenter().segment(STREAM_TRANSCRIPT)


def _tool_response(name: str, payload: Any) -> MagicMock:
    block = MagicMock()
    block.type = "tool_use"
    block.name = name
    block.input = payload
    response = MagicMock()
    response.content = [block]
    return response


@pytest.fixture
def tool_response():
    """Factory for Messages API responses holding a single ``tool_use`` block."""
    return _tool_response


@pytest.fixture
def claude_client() -> MagicMock:
    """Anthropic client stand-in; set ``messages.create`` return values per test."""
    return MagicMock()
