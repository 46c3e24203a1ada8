"""Agents package: LLM-backed agent classes."""

from agents.base_agent import BaseAgent
from agents.outline_agent import OutlineAgent
from agents.flashcard_agent import FlashcardAgent

__all__ = [
    "BaseAgent",
    "OutlineAgent",
    "FlashcardAgent",
]
