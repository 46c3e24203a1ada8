"""Text utilities: CJK counting, whitespace normalization, word counts."""

import re

_CJK_RE = re.compile(r"[\u4e00-\u9fff]")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def count_cjk_chars(text: str) -> int:
    """Count CJK Unified Ideographs in text."""
    return len(_CJK_RE.findall(text))


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def normalize_newlines(text: str) -> str:
    """Convert CRLF/CR to LF and collapse runs of 3+ newlines into a blank line."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return _EXCESS_NEWLINES_RE.sub("\n\n", text).strip()


def shorten(text: str, limit: int, suffix: str = "...") -> str:
    """Cut text to ``limit`` characters, appending ``suffix`` when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + suffix
