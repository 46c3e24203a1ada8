"""Enumerations for generation task tracking."""

from enum import Enum


class TaskStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    OUTLINE_READY = "outline_ready"
    PROCESSING = "processing"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


ACTIVE_STATUSES = (
    TaskStatus.PENDING,
    TaskStatus.ANALYZING,
    TaskStatus.OUTLINE_READY,
    TaskStatus.PROCESSING,
    TaskStatus.GENERATING,
)


class SourceType(str, Enum):
    TEXT = "text"
    FILE = "file"
    URL = "url"
    VIDEO = "video"


class ChunkStrategy(str, Enum):
    PARAGRAPH = "paragraph"
    SENTENCE = "sentence"
    FIXED = "fixed"


class UserPlan(str, Enum):
    FREE = "free"
    PRO = "pro"


class TransactionType(str, Enum):
    GRANT = "grant"
    DEBIT = "debit"


class BillingPhase(str, Enum):
    """Ledger key for idempotent debits: one charge per task per phase."""
    FIXED = "fixed"
    INDEXING = "indexing"
    CREATION = "creation"
