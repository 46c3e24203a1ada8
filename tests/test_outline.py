"""Tests for chapter marker resolution and outline helpers."""

import pytest

from config.exceptions import MarkerResolutionError
from models.document import DocumentOutline
from tools.outline import (
    CHAPTER_SEPARATOR,
    FULL_DOCUMENT_TITLE,
    build_chapter_info,
    calculate_selected_tokens,
    estimate_card_count,
    extract_selected_chapters_text,
    page_span,
    resolve_marker,
)
from tools.tokenizer import count_tokens


@pytest.fixture
def text():
    return (
        "Introduction to cells. Cells are the basic unit of life and every organism has them.\n\n"
        "Membranes and transport. The membrane controls what enters and leaves the cell.\n\n"
        "Energy and mitochondria. Mitochondria turn nutrients into usable chemical energy."
    )


class TestResolveMarker:
    def test_exact_marker(self, text):
        assert resolve_marker(text, "Membranes and transport.") == text.index("Membranes")

    def test_surrounding_whitespace_ignored(self, text):
        assert resolve_marker(text, "  Energy and mitochondria.  ") == text.index("Energy")

    def test_falls_back_to_first_50_chars(self, text):
        start = text.index("Membranes")
        marker = text[start:start + 50] + " but the model rewrote the rest of it"
        assert resolve_marker(text, marker) == start

    def test_falls_back_to_first_20_chars(self, text):
        start = text.index("Energy")
        marker = text[start:start + 20] + " (paraphrased by the model, differs early on)"
        assert len(marker) > 50
        assert resolve_marker(text, marker) == start

    def test_empty_marker_raises(self, text):
        with pytest.raises(MarkerResolutionError):
            resolve_marker(text, "   ")

    def test_missing_marker_raises(self, text):
        with pytest.raises(MarkerResolutionError):
            resolve_marker(text, "Photosynthesis in chloroplasts")


class TestPageSpan:
    @pytest.mark.parametrize("start,end,expected", [
        (0, 2000, (1, 1)),
        (0, 2001, (1, 2)),
        (2000, 4001, (2, 3)),
        (0, 0, (1, 1)),
        (5000, 5000, (3, 3)),
    ])
    def test_page_span(self, start, end, expected):
        assert page_span(start, end, 2000) == expected


class TestBuildChapterInfo:
    def test_chapters_sorted_and_contiguous(self, text):
        raw = [
            {"title": "Energy", "summary": "c", "startMarker": "Energy and mitochondria."},
            {"title": "Intro", "summary": "a", "startMarker": "Introduction to cells."},
            {"title": "Membranes", "summary": "b", "startMarker": "Membranes and transport."},
        ]
        chapters = build_chapter_info(text, raw, chars_per_page=100)
        assert [c.title for c in chapters] == ["Intro", "Membranes", "Energy"]
        assert [c.index for c in chapters] == [0, 1, 2]
        assert chapters[0].text_range.start == 0
        assert chapters[-1].text_range.end == len(text)
        for prev, nxt in zip(chapters, chapters[1:]):
            assert prev.text_range.end == nxt.text_range.start

    def test_token_counts_recomputed_from_ranges(self, text):
        raw = [
            {"title": "Intro", "startMarker": "Introduction to cells.", "estimatedTokens": 99999},
            {"title": "Energy", "startMarker": "Energy and mitochondria."},
        ]
        chapters = build_chapter_info(text, raw)
        for c in chapters:
            assert c.estimated_tokens == count_tokens(text[c.text_range.start:c.text_range.end])

    def test_unresolvable_markers_are_dropped(self, text):
        raw = [
            {"title": "Intro", "startMarker": "Introduction to cells."},
            {"title": "Ghost", "startMarker": "This sentence is nowhere in the text"},
            {"title": "Blank", "startMarker": ""},
        ]
        chapters = build_chapter_info(text, raw)
        assert [c.title for c in chapters] == ["Intro"]
        assert chapters[0].text_range.end == len(text)

    def test_nothing_resolves_gives_full_document(self, text):
        chapters = build_chapter_info(text, [{"title": "Ghost", "startMarker": "nowhere at all"}])
        assert len(chapters) == 1
        assert chapters[0].title == FULL_DOCUMENT_TITLE
        assert (chapters[0].text_range.start, chapters[0].text_range.end) == (0, len(text))
        assert chapters[0].estimated_tokens == count_tokens(text)

    def test_empty_response_gives_full_document(self, text):
        chapters = build_chapter_info(text, [])
        assert [c.title for c in chapters] == [FULL_DOCUMENT_TITLE]

    def test_first_chapter_not_at_offset_zero(self, text):
        raw = [{"title": "Membranes", "startMarker": "Membranes and transport."}]
        chapters = build_chapter_info(text, raw)
        assert chapters[0].text_range.start == text.index("Membranes")

    def test_max_chapters_caps_entries(self, text):
        raw = [
            {"title": "Intro", "startMarker": "Introduction to cells."},
            {"title": "Membranes", "startMarker": "Membranes and transport."},
            {"title": "Energy", "startMarker": "Energy and mitochondria."},
        ]
        chapters = build_chapter_info(text, raw, max_chapters=2)
        assert [c.title for c in chapters] == ["Intro", "Membranes"]

    def test_missing_title_and_malformed_entries(self, text):
        raw = ["not a dict", {"startMarker": "Membranes and transport."}]
        chapters = build_chapter_info(text, raw)
        assert [c.title for c in chapters] == ["Section 1"]


class TestSelection:
    @pytest.fixture
    def outline(self, text):
        raw = [
            {"title": "Intro", "startMarker": "Introduction to cells."},
            {"title": "Membranes", "startMarker": "Membranes and transport."},
            {"title": "Energy", "startMarker": "Energy and mitochondria."},
        ]
        chapters = build_chapter_info(text, raw)
        return DocumentOutline(total_pages=1, total_tokens=count_tokens(text), chapters=chapters)

    def test_selected_text_in_document_order(self, text, outline):
        selected = extract_selected_chapters_text(text, outline, [2, 0])
        intro = text[:text.index("Membranes")]
        energy = text[text.index("Energy"):]
        assert selected == intro + CHAPTER_SEPARATOR + energy

    def test_unknown_indices_ignored(self, text, outline):
        assert extract_selected_chapters_text(text, outline, [7]) == ""

    def test_selected_tokens_sum(self, outline):
        expected = outline.chapters[0].estimated_tokens + outline.chapters[2].estimated_tokens
        assert calculate_selected_tokens(outline, [0, 2]) == expected


class TestEstimateCardCount:
    def test_ten_thousand_tokens(self):
        assert estimate_card_count(10000) == {"min": 30, "max": 50, "average": 40}

    def test_zero_tokens(self):
        assert estimate_card_count(0) == {"min": 0, "max": 0, "average": 0}

    def test_rounding(self):
        assert estimate_card_count(1500) == {"min": 4, "max": 8, "average": 6}
