"""Chapter marker resolution and outline helpers.

The LLM only names where each chapter starts (a verbatim snippet of the
text). Everything else about a chapter, its range, token count and page
span, is computed here from the original text.
"""

import logging
import math
from typing import Iterable

from config.exceptions import MarkerResolutionError
from models.document import ChapterInfo, DocumentOutline, TextRange
from tools.tokenizer import DEFAULT_ENCODING, count_tokens

logger = logging.getLogger(__name__)

FULL_DOCUMENT_TITLE = "Full Document"
FULL_DOCUMENT_SUMMARY = "The entire document content"
CHAPTER_SEPARATOR = "\n\n---\n\n"

# Marker prefixes tried after the full marker fails, longest first
_MARKER_PREFIX_LENGTHS = (50, 20)


def resolve_marker(text: str, marker: str) -> int:
    """Find the character offset where ``marker`` occurs in ``text``.

    Tries the whole marker, then its first 50 characters, then its first
    20, using exact substring search.

    Raises:
        MarkerResolutionError: Empty marker, or no variant occurs in the text.
    """
    marker = (marker or "").strip()
    if not marker:
        raise MarkerResolutionError(marker)

    idx = text.find(marker)
    if idx != -1:
        return idx
    for length in _MARKER_PREFIX_LENGTHS:
        if len(marker) > length:
            idx = text.find(marker[:length])
            if idx != -1:
                return idx
    raise MarkerResolutionError(marker)


def page_span(start: int, end: int, chars_per_page: int) -> tuple[int, int]:
    start_page = start // chars_per_page + 1
    end_page = max(start_page, math.ceil(end / chars_per_page))
    return start_page, end_page


def full_document_chapter(text: str, chars_per_page: int, encoding: str = DEFAULT_ENCODING) -> ChapterInfo:
    """Single chapter spanning the whole document."""
    start_page, end_page = page_span(0, len(text), chars_per_page)
    return ChapterInfo(
        index=0,
        title=FULL_DOCUMENT_TITLE,
        summary=FULL_DOCUMENT_SUMMARY,
        start_page=start_page,
        end_page=end_page,
        estimated_tokens=count_tokens(text, encoding),
        text_range=TextRange(start=0, end=len(text)),
    )


def build_chapter_info(
    text: str,
    raw_chapters: Iterable,
    chars_per_page: int = 2000,
    max_chapters: int = 15,
    encoding: str = DEFAULT_ENCODING,
) -> list[ChapterInfo]:
    """Turn LLM chapter entries into ordered, contiguous ChapterInfo records.

    Entries whose start marker cannot be located are dropped. The rest
    are sorted by start offset, re-indexed from 0, and each one ends where
    the next begins (the last ends at the end of the text). Token counts
    are recomputed from the resolved ranges. If nothing resolves, a
    single full-document chapter is returned, so the result is never empty.
    """
    resolved: list[tuple[int, str, str]] = []
    for raw in list(raw_chapters)[:max_chapters]:
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed chapter entry: %r", raw)
            continue
        title = str(raw.get("title") or "").strip()
        summary = str(raw.get("summary") or "").strip()
        try:
            start = resolve_marker(text, str(raw.get("startMarker") or ""))
        except MarkerResolutionError as e:
            logger.warning("Dropping chapter %r: %s", title, e)
            continue
        resolved.append((start, title, summary))

    resolved.sort(key=lambda item: item[0])

    chapters = []
    for i, (start, title, summary) in enumerate(resolved):
        end = resolved[i + 1][0] if i + 1 < len(resolved) else len(text)
        start_page, end_page = page_span(start, end, chars_per_page)
        chapters.append(ChapterInfo(
            index=i,
            title=title or f"Section {i + 1}",
            summary=summary,
            start_page=start_page,
            end_page=end_page,
            estimated_tokens=count_tokens(text[start:end], encoding),
            text_range=TextRange(start=start, end=end),
        ))

    if not chapters:
        logger.warning("No chapter markers resolved; using a single full-document chapter")
        chapters = [full_document_chapter(text, chars_per_page, encoding)]
    return chapters


def _selected(outline: DocumentOutline, selected_indices: Iterable[int]) -> list[ChapterInfo]:
    wanted = set(selected_indices)
    chapters = [c for c in outline.chapters if c.index in wanted]
    chapters.sort(key=lambda c: c.text_range.start)
    return chapters


def extract_selected_chapters_text(
    full_text: str,
    outline: DocumentOutline,
    selected_indices: Iterable[int],
) -> str:
    """Text of the selected chapters in document order, separated by a rule."""
    return CHAPTER_SEPARATOR.join(
        full_text[c.text_range.start:c.text_range.end]
        for c in _selected(outline, selected_indices)
    )


def calculate_selected_tokens(outline: DocumentOutline, selected_indices: Iterable[int]) -> int:
    return sum(c.estimated_tokens for c in _selected(outline, selected_indices))


def estimate_card_count(tokens: int) -> dict:
    """Expected card yield at 3-5 cards per 1000 tokens."""
    low = math.floor(tokens / 1000 * 3)
    high = math.ceil(tokens / 1000 * 5)
    return {"min": low, "max": high, "average": math.floor((low + high) / 2 + 0.5)}
