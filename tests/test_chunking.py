"""Tests for splitting documents into bounded, contiguous chunks."""

import pytest

from models.document import TextRange
from tools.chunking import extract_text_by_ranges, split_into_chunks
from tools.tokenizer import count_tokens


def _assert_well_formed(text, chunks, max_tokens):
    assert chunks, "expected at least one chunk"
    assert chunks[0].start_offset == 0
    assert chunks[-1].end_offset == len(text)
    for i, chunk in enumerate(chunks):
        assert chunk.index == i
        assert chunk.text == text[chunk.start_offset:chunk.end_offset]
        assert chunk.token_count == count_tokens(chunk.text)
        assert chunk.token_count <= max_tokens
    for prev, nxt in zip(chunks, chunks[1:]):
        # No gaps between consecutive chunks
        assert nxt.start_offset <= prev.end_offset
        assert nxt.start_offset > prev.start_offset


@pytest.fixture
def paragraphs():
    return "\n\n".join(
        f"Paragraph {i} explains how step {i} of the procedure moves material from one stage to the next."
        for i in range(60)
    )


class TestSplitIntoChunks:
    def test_empty_input_gives_no_chunks(self):
        assert split_into_chunks("") == []
        assert split_into_chunks("   \n\n  ") == []

    def test_overlap_must_be_below_max(self):
        with pytest.raises(ValueError):
            split_into_chunks("text", max_tokens=100, overlap=100)
        with pytest.raises(ValueError):
            split_into_chunks("text", max_tokens=0, overlap=0)
        with pytest.raises(ValueError):
            split_into_chunks("text", max_tokens=10, overlap=-1)

    def test_short_text_is_single_chunk(self):
        text = "A short note about enzymes."
        chunks = split_into_chunks(text, max_tokens=100, overlap=10)
        assert len(chunks) == 1
        assert chunks[0].text == text
        assert (chunks[0].start_offset, chunks[0].end_offset) == (0, len(text))

    def test_paragraph_strategy_respects_bounds(self, paragraphs):
        chunks = split_into_chunks(paragraphs, max_tokens=120, overlap=20)
        assert len(chunks) > 1
        _assert_well_formed(paragraphs, chunks, 120)

    def test_paragraph_chunks_overlap(self, paragraphs):
        chunks = split_into_chunks(paragraphs, max_tokens=120, overlap=20)
        overlapping = [
            (a, b) for a, b in zip(chunks, chunks[1:]) if b.start_offset < a.end_offset
        ]
        assert overlapping

    def test_zero_overlap_chunks_are_adjacent(self, paragraphs):
        chunks = split_into_chunks(paragraphs, max_tokens=120, overlap=0)
        _assert_well_formed(paragraphs, chunks, 120)
        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.start_offset == prev.end_offset

    def test_oversized_paragraph_falls_back_to_sentences(self):
        text = " ".join(f"Sentence {i} describes one small fact." for i in range(80))
        chunks = split_into_chunks(text, max_tokens=60, overlap=5)
        _assert_well_formed(text, chunks, 60)

    def test_text_without_boundaries_uses_fixed_windows(self):
        text = "lorem" * 2000
        chunks = split_into_chunks(text, max_tokens=50, overlap=5)
        _assert_well_formed(text, chunks, 50)

    def test_sentence_strategy(self):
        text = "First point. Second point! Third point? " * 40
        chunks = split_into_chunks(text, max_tokens=40, overlap=5, strategy="sentence")
        _assert_well_formed(text, chunks, 40)

    def test_fixed_strategy_on_cjk_text(self):
        text = "细胞是生命的基本单位" * 200
        chunks = split_into_chunks(text, max_tokens=64, overlap=8, strategy="fixed")
        _assert_well_formed(text, chunks, 64)

    def test_deterministic(self, paragraphs):
        first = split_into_chunks(paragraphs, max_tokens=100, overlap=10)
        second = split_into_chunks(paragraphs, max_tokens=100, overlap=10)
        assert [c.to_dict() for c in first] == [c.to_dict() for c in second]

    def test_unknown_strategy_rejected(self, paragraphs):
        with pytest.raises(ValueError):
            split_into_chunks(paragraphs, max_tokens=100, overlap=10, strategy="chapter")


class TestExtractTextByRanges:
    def test_joins_ranges_with_blank_line(self):
        text = "abcdefghij"
        ranges = [TextRange(start=0, end=3), TextRange(start=5, end=7)]
        assert extract_text_by_ranges(text, ranges) == "abc\n\nfg"
