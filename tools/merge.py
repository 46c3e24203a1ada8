"""Merge per-chunk flashcard batches and drop duplicate questions."""

import logging
from typing import Iterable

from models.deck import Flashcard

logger = logging.getLogger(__name__)


def deduplicate_flashcards(cards: Iterable[Flashcard]) -> list[Flashcard]:
    """Keep the first card for each normalized front; later duplicates are dropped.

    The key is ``front.strip().lower()``. ``back`` is not compared, so two
    different answers to the same question collapse to the earlier one.
    """
    seen: set[str] = set()
    unique = []
    for card in cards:
        key = card.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(card)
    return unique


def merge_flashcard_batches(batches: dict[int, list[Flashcard]] | list[list[Flashcard]]) -> list[Flashcard]:
    """Flatten batches in chunk-index order, then deduplicate.

    Batches may arrive in any completion order; passing a dict keyed by
    chunk index makes the merge independent of that order.
    """
    if isinstance(batches, dict):
        ordered = [batches[i] for i in sorted(batches)]
    else:
        ordered = list(batches)
    flat = [card for batch in ordered for card in batch]
    merged = deduplicate_flashcards(flat)
    if len(merged) < len(flat):
        logger.info("Dropped %d duplicate flashcards (%d kept)", len(flat) - len(merged), len(merged))
    return merged
