"""Outline Agent: asks the LLM where a document's sections start and resolves them."""

import logging
import math
from typing import Optional

from agents.base_agent import BaseAgent
from config.exceptions import LLMResponseParseError
from config.settings import Settings
from models.document import DocumentOutline
from tools.llm_client import extract_list
from tools.llm_providers import LLMProvider
from tools.outline import build_chapter_info
from tools.tokenizer import count_tokens, truncate_to_tokens

logger = logging.getLogger(__name__)

_OUTLINE_TEMPERATURE = 0.3
_OUTLINE_MAX_OUTPUT_TOKENS = 4096


class OutlineAgent(BaseAgent):
    """Builds a DocumentOutline with character-accurate chapter ranges."""

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(provider, settings)
        self._template = self._load_prompt("outline")

    @property
    def input_budget(self) -> int:
        """Tokens of document text the model may see."""
        return self.settings.llm_context_tokens - self.settings.outline_output_reserve

    async def generate_outline(
        self,
        text: str,
        chars_per_page: Optional[int] = None,
        max_chapters: Optional[int] = None,
    ) -> DocumentOutline:
        """Analyze ``text`` and return its outline.

        Only a prefix of very long documents is sent to the model, so
        sections past the cut are not represented by any chapter. Markers
        are always resolved against the full, untruncated text.

        Args:
            text: Full document text.
            chars_per_page: Page size used for the display-only page estimates.
            max_chapters: Upper bound on chapters kept from the response.

        Returns:
            DocumentOutline with at least one chapter.

        Raises:
            LLMResponseParseError: Empty, non-JSON, or chapter-less response.
        """
        chars_per_page = chars_per_page or self.settings.chars_per_page
        max_chapters = max_chapters or self.settings.max_chapters
        encoding = self.settings.tokenizer_encoding

        total_tokens = count_tokens(text, encoding)
        total_pages = math.ceil(len(text) / chars_per_page)

        visible = text
        if total_tokens > self.input_budget:
            visible = truncate_to_tokens(text, self.input_budget, encoding)
            logger.warning(
                "Document has %d tokens; outline built from the first %d (%d of %d chars)",
                total_tokens, self.input_budget, len(visible), len(text),
            )

        system_prompt = self._fill(
            self._extract_section(self._template, "System Prompt"),
            max_chapters=max_chapters,
        )
        user_prompt = self._fill(
            self._extract_section(self._template, "User Prompt"),
            document=visible,
        )

        logger.info("Requesting outline for %d tokens (%d pages)", total_tokens, total_pages)
        raw = await self.llm.complete(
            system_prompt,
            user_prompt,
            model=self.settings.llm_model_outline,
            json_mode=True,
            temperature=_OUTLINE_TEMPERATURE,
            max_output_tokens=_OUTLINE_MAX_OUTPUT_TOKENS,
        )

        payload = self._parse_payload(raw)
        try:
            raw_chapters = extract_list(payload, "chapters")
        except ValueError as e:
            raise LLMResponseParseError(f"Outline response has no chapter list: {e}", raw_response=raw) from e

        chapters = build_chapter_info(
            text,
            raw_chapters,
            chars_per_page=chars_per_page,
            max_chapters=max_chapters,
            encoding=encoding,
        )
        logger.info("Outline resolved %d of %d proposed chapters", len(chapters), len(raw_chapters))
        return DocumentOutline(total_pages=total_pages, total_tokens=total_tokens, chapters=chapters)
