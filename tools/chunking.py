"""Split documents into bounded, overlapping chunks for flashcard generation.

Every chunk is an exact slice of the source: ``chunk.text ==
text[chunk.start_offset:chunk.end_offset]``. The first chunk starts at 0,
the last ends at ``len(text)``, and each chunk starts at or before the
previous one's end, so the chunks cover the whole input with no gaps.

Boundaries are preferred in this order: blank line (paragraph), sentence
terminator, then fixed token windows. Units are kept with their trailing
separator, which is what makes the slices contiguous.
"""

import logging
import math
import re

from models.document import TextChunk, TextRange
from models.enums import ChunkStrategy
from tools.tokenizer import DEFAULT_ENCODING, count_tokens, truncate_to_tokens

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 3500
DEFAULT_OVERLAP_TOKENS = 200

_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n\s*")
_SENTENCE_BREAK_RE = re.compile(r"(?<=[.!?])\s+|(?<=[。！？])\s*")

# Upper bound on characters per token when sizing a fixed window
_MAX_CHARS_PER_TOKEN = 32

Span = tuple[int, int]


def _split_units(text: str, lo: int, hi: int, pattern: re.Pattern) -> list[Span]:
    """Cut text[lo:hi] into contiguous spans, each ending just after a separator."""
    units = []
    start = lo
    for match in pattern.finditer(text, lo, hi):
        end = match.end()
        if end <= start:
            continue
        units.append((start, end))
        start = end
    if start < hi:
        units.append((start, hi))
    return units


def _overlap_start(text: str, start: int, end: int, overlap: int, encoding: str) -> int:
    """Start offset of a suffix of text[start:end] worth roughly ``overlap`` tokens."""
    if overlap <= 0:
        return end
    tokens = count_tokens(text[start:end], encoding)
    if tokens == 0:
        return end
    overlap_chars = math.floor(overlap * (end - start) / tokens)
    seed = max(start, end - overlap_chars)
    # Prefer beginning the overlap on a word boundary
    space = text.find(" ", seed, end)
    if seed > start and space != -1 and space + 1 < end:
        seed = space + 1
    return seed


def _fixed_windows(text: str, lo: int, hi: int, max_tokens: int, overlap: int, encoding: str) -> list[Span]:
    """Slice text[lo:hi] into token windows of at most ``max_tokens``.

    Each step moves the start forward by at least one character, so
    this terminates on any input.
    """
    windows = []
    start = lo
    while start < hi:
        window_hi = min(hi, start + max_tokens * _MAX_CHARS_PER_TOKEN)
        piece = truncate_to_tokens(text[start:window_hi], max_tokens, encoding)
        # A single character that needs more tokens than allowed still has to move forward
        end = start + max(1, len(piece))
        windows.append((start, end))
        if end >= hi:
            break
        piece_tokens = count_tokens(text[start:end], encoding)
        overlap_chars = math.floor(overlap * (end - start) / piece_tokens) if piece_tokens else 0
        start = max(start + 1, end - overlap_chars)
    return windows


def _split_oversized(
    text: str, lo: int, hi: int, max_tokens: int, overlap: int, strategy: ChunkStrategy, encoding: str,
) -> list[Span]:
    """Split a single unit that alone exceeds ``max_tokens``."""
    if strategy == ChunkStrategy.PARAGRAPH:
        sentences = _split_units(text, lo, hi, _SENTENCE_BREAK_RE)
        if len(sentences) > 1:
            return _pack_units(text, sentences, max_tokens, overlap, ChunkStrategy.SENTENCE, encoding)
    logger.debug("No usable boundaries in span [%d, %d); using fixed windows", lo, hi)
    return _fixed_windows(text, lo, hi, max_tokens, overlap, encoding)


def _pack_units(
    text: str, units: list[Span], max_tokens: int, overlap: int, strategy: ChunkStrategy, encoding: str,
) -> list[Span]:
    """Greedily accumulate contiguous units into windows of at most ``max_tokens``."""
    windows: list[Span] = []
    cur: Span | None = None

    for u_start, u_end in units:
        if cur is None:
            if count_tokens(text[u_start:u_end], encoding) > max_tokens:
                windows.extend(_split_oversized(text, u_start, u_end, max_tokens, overlap, strategy, encoding))
            else:
                cur = (u_start, u_end)
            continue

        if count_tokens(text[cur[0]:u_end], encoding) <= max_tokens:
            cur = (cur[0], u_end)
            continue

        # Close the running chunk and seed the next one with its tail
        windows.append(cur)
        seed = _overlap_start(text, cur[0], cur[1], overlap, encoding)
        if count_tokens(text[seed:u_end], encoding) <= max_tokens:
            cur = (seed, u_end)
        elif count_tokens(text[u_start:u_end], encoding) <= max_tokens:
            cur = (u_start, u_end)
        else:
            windows.extend(_split_oversized(text, u_start, u_end, max_tokens, overlap, strategy, encoding))
            cur = None

    if cur is not None:
        windows.append(cur)
    return windows


def split_into_chunks(
    text: str,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    overlap: int = DEFAULT_OVERLAP_TOKENS,
    strategy: ChunkStrategy | str = ChunkStrategy.PARAGRAPH,
    encoding: str = DEFAULT_ENCODING,
) -> list[TextChunk]:
    """Split ``text`` into ordered chunks of at most ``max_tokens`` tokens.

    Args:
        text: Source text.
        max_tokens: Token ceiling per chunk.
        overlap: Approximate tokens repeated from the end of one chunk
            at the start of the next.
        strategy: "paragraph" (default), "sentence" or "fixed".
        encoding: tiktoken encoding name.

    Returns:
        Chunks in source order. Empty or whitespace-only input gives [].

    Raises:
        ValueError: Unless ``max_tokens > overlap >= 0``.
    """
    if max_tokens <= 0 or overlap < 0 or overlap >= max_tokens:
        raise ValueError(
            f"Require max_tokens > overlap >= 0 (got max_tokens={max_tokens}, overlap={overlap})"
        )
    if not text or not text.strip():
        return []

    strategy = ChunkStrategy(strategy)
    total = count_tokens(text, encoding)
    if total <= max_tokens:
        return [TextChunk(index=0, text=text, token_count=total, start_offset=0, end_offset=len(text))]

    if strategy == ChunkStrategy.FIXED:
        windows = _fixed_windows(text, 0, len(text), max_tokens, overlap, encoding)
    else:
        pattern = _PARAGRAPH_BREAK_RE if strategy == ChunkStrategy.PARAGRAPH else _SENTENCE_BREAK_RE
        units = _split_units(text, 0, len(text), pattern)
        windows = _pack_units(text, units, max_tokens, overlap, strategy, encoding)

    chunks = []
    for i, (start, end) in enumerate(windows):
        piece = text[start:end]
        chunks.append(TextChunk(
            index=i,
            text=piece,
            token_count=count_tokens(piece, encoding),
            start_offset=start,
            end_offset=end,
        ))
    logger.debug(
        "Split %d tokens into %d chunks (max=%d, overlap=%d, strategy=%s)",
        total, len(chunks), max_tokens, overlap, strategy.value,
    )
    return chunks


def extract_text_by_ranges(text: str, ranges: list[TextRange]) -> str:
    """Join the given character ranges of ``text`` with blank lines."""
    return "\n\n".join(text[r.start:r.end] for r in ranges)
