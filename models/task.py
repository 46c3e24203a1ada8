"""Generation task data model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.document import DocumentOutline
from models.enums import TaskStatus, SourceType, UserPlan


@dataclass
class GenerationTask:
    """The unit of work tracked through analysis and generation."""
    id: str = ""
    user_id: str = ""
    user_plan: UserPlan = UserPlan.FREE
    status: TaskStatus = TaskStatus.PENDING
    source_type: SourceType = SourceType.TEXT
    source_content: Optional[str] = None
    source_url: Optional[str] = None
    source_filename: Optional[str] = None
    document_text: Optional[str] = None
    document_outline: Optional[DocumentOutline] = None
    selected_chapters: Optional[list[int]] = None
    total_chunks: int = 0
    completed_chunks: int = 0
    credits_cost: float = 0.0
    indexing_cost: float = 0.0
    card_count: int = 0
    error_message: Optional[str] = None
    deck_id: Optional[int] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def progress_percent(self) -> int:
        if self.total_chunks <= 0:
            return 100 if self.status == TaskStatus.COMPLETED else 0
        return min(100, self.completed_chunks * 100 // self.total_chunks)
