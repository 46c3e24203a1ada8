"""Models package: database, dataclass records, and enums."""

from models.database import Database
from models.task import GenerationTask
from models.document import TextRange, ChapterInfo, DocumentOutline, TextChunk
from models.deck import Deck, Card, Flashcard
from models.credits import CreditsBalance, CreditsTransaction
from models.enums import (
    TaskStatus,
    SourceType,
    ChunkStrategy,
    UserPlan,
    TransactionType,
    BillingPhase,
)

__all__ = [
    "Database",
    "GenerationTask",
    "TextRange",
    "ChapterInfo",
    "DocumentOutline",
    "TextChunk",
    "Deck",
    "Card",
    "Flashcard",
    "CreditsBalance",
    "CreditsTransaction",
    "TaskStatus",
    "SourceType",
    "ChunkStrategy",
    "UserPlan",
    "TransactionType",
    "BillingPhase",
]
