"""Tests for chapter and blog synthesis and style detection."""

from __future__ import annotations

import pytest

from studio.errors import StageCancelledError
from studio.extraction.extractor import Extractor
from studio.ingestion.parsers import normalize_transcript, split_sentences
from studio.ingestion.segmenter import Segmenter
from studio.pipeline_config import GenerationBackend, PipelineConfig
from studio.synthesis.models import StyleProfile
from studio.synthesis.style import detect_style
from studio.synthesis.synthesizer import Synthesizer, partition


@pytest.fixture
def insights(segments):
    return Extractor(PipelineConfig()).extract(segments).insights


@pytest.fixture
def style(segments) -> StyleProfile:
    return detect_style(segments)


class TestPartition:
    def test_contiguous_and_complete(self, segments) -> None:
        runs = partition(segments, 3)
        assert len(runs) == 3
        assert [s.index for run in runs for s in run] == [s.index for s in segments]
        assert all(runs)

    def test_more_groups_than_segments(self, segments) -> None:
        assert len(partition(segments[:2], 5)) == 2

    def test_zero_groups(self, segments) -> None:
        assert partition(segments, 0) == []


class TestStyle:
    def test_first_person(self) -> None:
        segs = Segmenter().segment("I think I can do it. My plan works for me.")
        assert detect_style(segs).person == "first"

    def test_second_person(self) -> None:
        segs = Segmenter().segment("You should try this. Your results will follow you.")
        assert detect_style(segs).person == "second"

    def test_neutral_without_pronouns(self) -> None:
        segs = Segmenter().segment("Habits compound. Systems matter.")
        assert detect_style(segs).person == "neutral"

    def test_repeated_phrases(self, style) -> None:
        assert "small habits compound" in style.phrases
        assert "that small habits" in style.phrases
        # sub-phrases of a kept phrase are not repeated
        assert "small habits" not in style.phrases

    def test_describe_mentions_phrases(self, style) -> None:
        assert '"small habits compound"' in style.describe()


class TestChapters:
    def test_requested_count_and_titles(self, segments, insights, style) -> None:
        result = Synthesizer(PipelineConfig(chapter_count=3)).synthesize_chapters(segments, insights, style)
        assert [d.title.split(":")[0] for d in result.documents] == ["Chapter 1", "Chapter 2", "Chapter 3"]
        assert result.diagnostics == ()

    def test_chapters_reuse_literal_text(self, segments, insights, style, transcript_text) -> None:
        normalized = normalize_transcript(transcript_text)
        result = Synthesizer(PipelineConfig()).synthesize_chapters(segments, insights, style)
        for doc in result.documents:
            for paragraph in doc.content.split("\n\n"):
                assert paragraph in normalized

    def test_chapters_cover_segments_in_order(self, segments, insights, style) -> None:
        result = Synthesizer(PipelineConfig()).synthesize_chapters(segments, insights, style)
        covered = [i for doc in result.documents for i in doc.segment_indices]
        assert covered == sorted(covered)

    def test_zero_chapters(self, segments, insights, style) -> None:
        result = Synthesizer(PipelineConfig(chapter_count=0)).synthesize_chapters(segments, insights, style)
        assert result.documents == ()
        assert result.diagnostics == ()

    def test_shortfall_when_too_few_segments(self, insights, style) -> None:
        segs = Segmenter().segment("Small habits compound over time. Motivation fades quickly.")
        result = Synthesizer(PipelineConfig(chapter_count=3)).synthesize_chapters(segs, insights, style)
        assert len(result.documents) == 1
        assert result.diagnostics[-1].message == "Produced 1 of 3 requested chapters"

    def test_should_stop_cancels(self, segments, insights, style) -> None:
        with pytest.raises(StageCancelledError):
            Synthesizer(PipelineConfig()).synthesize_chapters(segments, insights, style, lambda: True)


class TestBlogs:
    def test_one_blog_per_insight(self, segments, insights, style) -> None:
        result = Synthesizer(PipelineConfig(blog_count=2)).synthesize_blogs(segments, insights, style)
        assert [d.title for d in result.documents] == [i.title for i in insights[:2]]
        assert all(d.kind == "blog" for d in result.documents)

    def test_blog_sentences_come_from_transcript(self, segments, insights, style, transcript_text) -> None:
        normalized = normalize_transcript(transcript_text)
        result = Synthesizer(PipelineConfig()).synthesize_blogs(segments, insights, style)
        for doc in result.documents:
            for paragraph in doc.content.split("\n\n"):
                for sentence in split_sentences(paragraph):
                    assert sentence in normalized

    def test_blog_opens_with_signature_phrase(self, segments, insights, style) -> None:
        habits = next(i for i in insights if 1 in i.segment_indices)
        result = Synthesizer(PipelineConfig(blog_count=1)).synthesize_blogs(segments, [habits], style)
        opening = result.documents[0].content.split("\n\n")[0]
        assert "small habits compound" in opening.lower()

    def test_shortfall_diagnostic(self, segments, insights, style) -> None:
        result = Synthesizer(PipelineConfig(blog_count=10)).synthesize_blogs(segments, insights, style)
        assert len(result.documents) == len(insights)
        assert result.diagnostics[-1].message == f"Produced {len(insights)} of 10 requested blogs"
        assert result.diagnostics[-1].section == "blogs"


class TestClaudeSynthesis:
    def test_documents_from_tool_calls(self, segments, insights, style, claude_client, tool_response) -> None:
        claude_client.messages.create.return_value = tool_response(
            "store_document",
            {"title": "Habits That Stick", "content": "Body text.", "segment_indices": [0, 99]},
        )
        config = PipelineConfig(backend=GenerationBackend.CLAUDE, chapter_count=2, blog_count=1)
        chapters, blogs = Synthesizer(config, claude_client).synthesize(segments, insights, style)

        assert len(chapters.documents) == 2
        assert len(blogs.documents) == 1
        assert claude_client.messages.create.call_count == 3
        valid = {s.index for s in segments}
        for doc in (*chapters.documents, *blogs.documents):
            assert doc.segment_indices
            assert set(doc.segment_indices) <= valid

    def test_style_is_in_prompt(self, segments, insights, style, claude_client, tool_response) -> None:
        claude_client.messages.create.return_value = tool_response(
            "store_document", {"title": "T", "content": "C", "segment_indices": []}
        )
        config = PipelineConfig(backend=GenerationBackend.CLAUDE, chapter_count=1)
        Synthesizer(config, claude_client).synthesize_chapters(segments, insights, style)
        prompt = claude_client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert "small habits compound" in prompt

    def test_empty_body_becomes_diagnostic(self, segments, insights, style, claude_client, tool_response) -> None:
        claude_client.messages.create.return_value = tool_response(
            "store_document", {"title": "", "content": "", "segment_indices": []}
        )
        config = PipelineConfig(backend=GenerationBackend.CLAUDE, blog_count=1)
        result = Synthesizer(config, claude_client).synthesize_blogs(segments, insights, style)
        assert result.documents == ()
        assert [d.message for d in result.diagnostics][-1] == "Produced 0 of 1 requested blogs"

    def test_non_list_segment_indices_fall_back_to_sources(
        self, segments, insights, style, claude_client, tool_response
    ) -> None:
        claude_client.messages.create.return_value = tool_response(
            "store_document", {"title": "Habits", "content": "Body text.", "segment_indices": None}
        )
        config = PipelineConfig(backend=GenerationBackend.CLAUDE, chapter_count=1)
        result = Synthesizer(config, claude_client).synthesize_chapters(segments, insights, style)

        assert len(result.documents) == 1
        assert result.documents[0].segment_indices == tuple(s.index for s in segments)

    def test_non_string_title_becomes_diagnostic(self, segments, insights, style, claude_client, tool_response) -> None:
        claude_client.messages.create.return_value = tool_response(
            "store_document", {"title": {"text": "T"}, "content": "Body.", "segment_indices": [0]}
        )
        config = PipelineConfig(backend=GenerationBackend.CLAUDE, blog_count=1)
        result = Synthesizer(config, claude_client).synthesize_blogs(segments, insights, style)
        assert result.documents == ()
        assert any("empty title or body" in d.message for d in result.diagnostics)
