"""Deck, card, and flashcard data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Flashcard:
    """Question/answer pair produced by the LLM; no identity until saved as a Card."""
    front: str
    back: str

    @property
    def dedup_key(self) -> str:
        return self.front.strip().lower()

    def to_dict(self) -> dict:
        return {"front": self.front, "back": self.back}


@dataclass
class Deck:
    """A saved collection of cards owned by one user."""
    id: Optional[int] = None
    user_id: str = ""
    title: str = ""
    description: str = ""
    created_at: Optional[datetime] = None


@dataclass
class Card:
    """A persisted flashcard row."""
    id: Optional[int] = None
    deck_id: int = 0
    front: str = ""
    back: str = ""
    sort_index: int = 0
    created_at: Optional[datetime] = None
