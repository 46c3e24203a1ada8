"""Token counting and truncation backed by tiktoken.

Billing and chunk sizing always use the exact counter here.
``estimate_tokens`` is a cheap display-only approximation and is never
used for costs.
"""

import math
from functools import lru_cache

import tiktoken

from tools.text_utils import count_cjk_chars, count_words

DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=8)
def get_encoding(name: str = DEFAULT_ENCODING) -> tiktoken.Encoding:
    """Load (and cache) a tiktoken encoding by name."""
    return tiktoken.get_encoding(name)


def encode(text: str, encoding: str = DEFAULT_ENCODING) -> list[int]:
    # User documents may contain literals like "<|endoftext|>"; treat them as plain text
    return get_encoding(encoding).encode(text, disallowed_special=())


def count_tokens(text: str, encoding: str = DEFAULT_ENCODING) -> int:
    """Exact token count of ``text``."""
    if not text:
        return 0
    return len(encode(text, encoding))


def truncate_to_tokens(text: str, max_tokens: int, encoding: str = DEFAULT_ENCODING) -> str:
    """Return the longest prefix of ``text`` made of at most ``max_tokens`` tokens.

    Decoding goes through bytes so a token that ends inside a multi-byte
    character drops that partial character instead of producing U+FFFD.
    The result is always a true prefix of ``text``.
    """
    if max_tokens <= 0 or not text:
        return ""
    enc = get_encoding(encoding)
    tokens = encode(text, encoding)
    if len(tokens) <= max_tokens:
        return text

    n = max_tokens
    while n > 0:
        prefix = enc.decode_bytes(tokens[:n]).decode("utf-8", errors="ignore")
        if text.startswith(prefix) and count_tokens(prefix, encoding) <= max_tokens:
            return prefix
        n -= 1
    return ""


def exceeds_token_limit(text: str, limit: int, encoding: str = DEFAULT_ENCODING) -> bool:
    return count_tokens(text, encoding) > limit


def estimate_tokens(text: str) -> int:
    """Approximate token count: CJK characters / 2 plus other characters / 4, rounded up."""
    if not text:
        return 0
    cjk = count_cjk_chars(text)
    other = len(text) - cjk
    return math.ceil(cjk / 2 + other / 4)


def get_token_info(text: str, encoding: str = DEFAULT_ENCODING) -> dict:
    """Summary counts for display: exact tokens, estimated tokens, characters, words."""
    return {
        "token_count": count_tokens(text, encoding),
        "estimated_count": estimate_tokens(text),
        "character_count": len(text),
        "word_count": count_words(text),
    }
