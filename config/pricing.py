"""Credit pricing for document indexing and flashcard creation.

Token-proportional costs are truncated (never rounded) to two decimal
places so fractional credits always resolve in the platform's favor.
"""

from decimal import Decimal, ROUND_DOWN

from models.enums import SourceType

INDEXING_RATE_PER_10K_TOKENS = 1.2
CREATION_RATE_PER_10K_TOKENS = 2.0
MIN_CREDITS_COST = 0.01

# Flat fee for the single-shot generation path
CREDIT_COSTS_BY_SOURCE: dict[SourceType, int] = {
    SourceType.TEXT: 1,
    SourceType.URL: 3,
    SourceType.FILE: 3,
    SourceType.VIDEO: 5,
}

_CENT = Decimal("0.01")


def truncate_to_two_decimals(value: float | Decimal) -> float:
    """Truncate toward zero at two decimal places."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_DOWN))


def _token_cost(tokens: int, rate: float) -> float:
    if tokens < 0:
        raise ValueError("Token count must be non-negative")
    raw = Decimal(tokens) / Decimal(10000) * Decimal(str(rate))
    return max(MIN_CREDITS_COST, truncate_to_two_decimals(raw))


def calculate_indexing_cost(total_tokens: int) -> float:
    """Credits charged for analyzing a document of ``total_tokens`` tokens."""
    return _token_cost(total_tokens, INDEXING_RATE_PER_10K_TOKENS)


def calculate_creation_cost(selected_tokens: int) -> float:
    """Credits charged for generating flashcards from ``selected_tokens`` tokens."""
    return _token_cost(selected_tokens, CREATION_RATE_PER_10K_TOKENS)


def get_fixed_cost(source_type: SourceType | str) -> int:
    return CREDIT_COSTS_BY_SOURCE[SourceType(source_type)]

