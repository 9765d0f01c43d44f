"""Tests for transcript normalization and the Segmenter."""

from __future__ import annotations

import pytest

from studio.errors import EmptyInputError
from studio.ingestion.parsers import (
    detect_speaker,
    normalize_transcript,
    sentence_spans,
    split_sentences,
    strip_fillers,
)
from studio.ingestion.segmenter import Segmenter, reassemble

THREE_PARAGRAPHS = """Welcome back to the stream everyone. Today I want to talk about building habits that actually stick.

The first thing I learned is that small habits compound over time. If you read ten pages every day, you finish a dozen books a year.

Motivation fades quickly. Systems keep you moving when you feel tired."""

LONG_PARAGRAPH = " ".join(
    f"Sentence number {i} talks about consistency and why showing up matters more than intensity."
    for i in range(40)
)


class TestNormalization:
    def test_paragraphs_and_lines(self) -> None:
        raw = "  Line one.  \r\nLine   two.\r\n\r\n\r\n\r\nNext paragraph.  "
        assert normalize_transcript(raw) == "Line one.\nLine two.\n\nNext paragraph."

    def test_removes_bracketed_timestamps(self) -> None:
        raw = "[00:01] Host: Hello there.\n(01:02:03) Guest: Hi."
        assert normalize_transcript(raw) == "Host: Hello there.\nGuest: Hi."

    def test_removes_vtt_header_and_cues(self) -> None:
        raw = """WEBVTT

00:00:01.000 --> 00:00:05.000
Speaker 1: Hello everyone.

00:00:05.500 --> 00:00:10.000
Speaker 2: Thanks.
"""
        assert normalize_transcript(raw) == "Speaker 1: Hello everyone.\n\nSpeaker 2: Thanks."

    def test_leading_bare_timestamp(self) -> None:
        assert normalize_transcript("00:12 So we begin.") == "So we begin."

    def test_timestamp_only_lines_are_dropped(self) -> None:
        assert normalize_transcript("[00:01]\nHello.") == "Hello."


class TestParsers:
    def test_detect_speaker(self) -> None:
        assert detect_speaker("Speaker 1: Hello") == "Speaker 1"
        assert detect_speaker("Jane Doe: Hi there") == "Jane Doe"
        assert detect_speaker("here is the thing: lowercase prose") is None
        assert detect_speaker("No label here.") is None

    def test_sentence_spans_cover_text(self) -> None:
        text = "One. Two! Three? Four"
        assert [text[s:e] for s, e in sentence_spans(text)] == ["One.", "Two!", "Three?", "Four"]

    def test_split_sentences_keeps_closing_quotes(self) -> None:
        assert split_sentences('He said "stop." Then left.') == ['He said "stop."', "Then left."]

    def test_strip_fillers(self) -> None:
        assert strip_fillers("Um, so we, uh, start here.") == "So we, start here."
        assert strip_fillers("You know, this matters.") == "This matters."

    def test_strip_fillers_keeps_real_words(self) -> None:
        assert strip_fillers("The umbrella is ahead.") == "The umbrella is ahead."

    def test_strip_fillers_keeps_sentence_end(self) -> None:
        cleaned = strip_fillers("I agree um. Next point.")
        assert cleaned == "I agree. Next point."
        assert split_sentences(cleaned) == ["I agree.", "Next point."]
        assert strip_fillers("Um. Let's go.") == "Let's go."

    def test_strip_fillers_keeps_units(self) -> None:
        assert strip_fillers("The slot is 5 mm wide.") == "The slot is 5 mm wide."


class TestSegmenter:
    def test_three_paragraphs_three_segments(self) -> None:
        segments = Segmenter().segment(THREE_PARAGRAPHS)
        assert len(segments) == 3
        assert [s.index for s in segments] == [0, 1, 2]
        assert segments[1].text.startswith("The first thing")

    def test_round_trip(self) -> None:
        for raw in (THREE_PARAGRAPHS, LONG_PARAGRAPH, "Host: Hi.\nGuest: Hello.\n\n[00:10] Host: Bye."):
            segments = Segmenter(max_segment_chars=120).segment(raw)
            assert reassemble(segments) == normalize_transcript(raw)

    def test_offsets_point_into_normalized_text(self) -> None:
        normalized = normalize_transcript(THREE_PARAGRAPHS)
        for seg in Segmenter().segment(THREE_PARAGRAPHS):
            assert normalized[seg.start : seg.end] == seg.text

    def test_no_segment_exceeds_max_or_is_empty(self) -> None:
        segments = Segmenter(max_segment_chars=100).segment(LONG_PARAGRAPH)
        assert len(segments) > 1
        assert all(0 < len(s.text) <= 100 for s in segments)

    def test_splits_on_sentence_boundaries_first(self) -> None:
        segments = Segmenter(max_segment_chars=200).segment(LONG_PARAGRAPH)
        assert all(s.text.endswith(".") for s in segments)

    def test_never_splits_mid_word(self) -> None:
        raw = " ".join(["consistency"] * 60)  # one long sentence, no punctuation
        segments = Segmenter(max_segment_chars=50).segment(raw)
        assert all(0 < len(s.text) <= 50 for s in segments)
        for seg in segments:
            assert all(word == "consistency" for word in seg.text.split())

    def test_oversized_token_is_cut_at_limit(self) -> None:
        raw = "a" * 250
        segments = Segmenter(max_segment_chars=100).segment(raw)
        assert [len(s.text) for s in segments] == [100, 100, 50]
        assert reassemble(segments) == raw

    def test_speaker_turns_are_boundaries(self) -> None:
        raw = "Host: Welcome to the show.\nGuest: Thanks for having me.\nHost: Let's get started."
        segments = Segmenter().segment(raw)
        assert [s.speaker for s in segments] == ["Host", "Guest", "Host"]
        assert segments[0].body == "Welcome to the show."
        assert segments[1].separator == "\n"

    def test_unlabelled_lines_continue_turn(self) -> None:
        raw = "Host: First line.\nstill the host talking.\nGuest: Reply."
        segments = Segmenter().segment(raw)
        assert len(segments) == 2
        assert segments[0].text == "Host: First line.\nstill the host talking."

    @pytest.mark.parametrize("raw", ["", "   ", "\n\n\t", "[00:01]\n[00:02]"])
    def test_empty_input_raises(self, raw: str) -> None:
        with pytest.raises(EmptyInputError):
            Segmenter().segment(raw)

    def test_rejects_tiny_max(self) -> None:
        with pytest.raises(ValueError):
            Segmenter(max_segment_chars=5)

    def test_should_stop_truncates_at_paragraph(self) -> None:
        calls = {"n": 0}

        def stop_after_first() -> bool:
            calls["n"] += 1
            return calls["n"] > 1

        segments = Segmenter().segment(THREE_PARAGRAPHS, should_stop=stop_after_first)
        assert len(segments) == 1
        assert segments[-1].separator == ""
