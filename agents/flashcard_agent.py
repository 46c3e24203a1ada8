"""Flashcard Agent: turns one chunk of text into question/answer cards."""

import logging
from typing import Optional

from agents.base_agent import BaseAgent
from config.exceptions import LLMResponseParseError
from config.settings import Settings
from models.deck import Flashcard
from tools.llm_client import extract_list
from tools.llm_providers import LLMProvider

logger = logging.getLogger(__name__)

_FLASHCARD_TEMPERATURE = 0.7
_FLASHCARD_MAX_OUTPUT_TOKENS = 4096


def _valid_cards(items: list) -> list[Flashcard]:
    cards = []
    for item in items:
        if not isinstance(item, dict):
            continue
        front, back = item.get("front"), item.get("back")
        if isinstance(front, str) and isinstance(back, str) and front.strip() and back.strip():
            cards.append(Flashcard(front=front.strip(), back=back.strip()))
    return cards


class FlashcardAgent(BaseAgent):
    """Generates flashcards for a single piece of content."""

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(provider, settings)
        self._template = self._load_prompt("flashcards")

    async def generate_flashcards(self, content: str, max_cards: Optional[int] = None) -> list[Flashcard]:
        """Generate up to ``max_cards`` cards from ``content``.

        Raises:
            LLMResponseParseError: Unparseable response or no usable card in it.
        """
        max_cards = max_cards or self.settings.max_cards_per_chunk
        system_prompt = self._fill(
            self._extract_section(self._template, "System Prompt"),
            max_cards=max_cards,
        )
        user_prompt = self._fill(
            self._extract_section(self._template, "User Prompt"),
            max_cards=max_cards,
            content=content,
        )

        raw = await self.llm.complete(
            system_prompt,
            user_prompt,
            model=self.settings.llm_model_flashcards,
            json_mode=True,
            temperature=_FLASHCARD_TEMPERATURE,
            max_output_tokens=_FLASHCARD_MAX_OUTPUT_TOKENS,
        )

        payload = self._parse_payload(raw)
        try:
            items = extract_list(payload, "cards", "flashcards")
        except ValueError as e:
            raise LLMResponseParseError(f"Flashcard response has no card list: {e}", raw_response=raw) from e

        cards = _valid_cards(items)
        if not cards:
            raise LLMResponseParseError("No valid flashcards generated", raw_response=raw)
        if len(cards) < len(items):
            logger.debug("Discarded %d malformed card entries", len(items) - len(cards))
        return cards[:max_cards]
