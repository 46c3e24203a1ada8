"""Tools package: tokenizer, chunking, outlines, parsing, storage and LLM providers."""

from tools.llm_client import parse_json_payload, extract_list
from tools.llm_providers import LLMProvider, AgentSDKProvider, OpenAIProvider, build_provider, get_provider
from tools.tokenizer import count_tokens, truncate_to_tokens, estimate_tokens
from tools.chunking import split_into_chunks, extract_text_by_ranges
from tools.outline import (
    resolve_marker,
    build_chapter_info,
    extract_selected_chapters_text,
    calculate_selected_tokens,
    estimate_card_count,
)
from tools.merge import deduplicate_flashcards, merge_flashcard_batches
from tools.document_parser import get_file_type, parse_document
from tools.storage import LocalStorage, StorageReader, fetch_url_text
from tools.text_utils import count_cjk_chars, normalize_newlines, shorten

__all__ = [
    "parse_json_payload",
    "extract_list",
    "LLMProvider",
    "AgentSDKProvider",
    "OpenAIProvider",
    "build_provider",
    "get_provider",
    "count_tokens",
    "truncate_to_tokens",
    "estimate_tokens",
    "split_into_chunks",
    "extract_text_by_ranges",
    "resolve_marker",
    "build_chapter_info",
    "extract_selected_chapters_text",
    "calculate_selected_tokens",
    "estimate_card_count",
    "deduplicate_flashcards",
    "merge_flashcard_batches",
    "get_file_type",
    "parse_document",
    "LocalStorage",
    "StorageReader",
    "fetch_url_text",
    "count_cjk_chars",
    "normalize_newlines",
    "shorten",
]
