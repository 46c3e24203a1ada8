"""Task actions: create, select chapters, and read status.

These run synchronously before a workflow is started, so bad input and
short balances surface to the caller before any credit is debited. The
debits themselves happen inside the workflows.
"""

import logging
from typing import Iterable, Optional

from config.exceptions import (
    InputError, InsufficientCreditsError, TaskNotFoundError, UnsupportedFileTypeError,
    ValidationError, WorkflowError,
)
from config.pricing import MIN_CREDITS_COST, calculate_creation_cost, get_fixed_cost
from config.settings import Settings, get_settings
from models.database import Database
from models.enums import SourceType, TaskStatus, UserPlan
from models.task import GenerationTask
from tools.document_parser import MIN_TEXT_LENGTH, get_file_type
from tools.outline import calculate_selected_tokens, estimate_card_count

logger = logging.getLogger(__name__)


def text_char_limit(plan: UserPlan | str, settings: Optional[Settings] = None) -> int:
    settings = settings or get_settings()
    if UserPlan(plan) == UserPlan.PRO:
        return settings.text_char_limit_pro
    return settings.text_char_limit_free


def _require_balance(db: Database, user_id: str, required: float) -> None:
    available = db.get_balance(user_id).balance
    if available < required:
        raise InsufficientCreditsError(required=required, available=available)


def _owned_task(db: Database, task_id: str, user_id: Optional[str]) -> GenerationTask:
    task = db.require_task(task_id)
    # Other users' tasks are reported as missing
    if user_id is not None and task.user_id != user_id:
        raise TaskNotFoundError(task_id)
    return task


def create_generation_task(
    db: Database,
    user_id: str,
    source_type: SourceType | str,
    content: Optional[str] = None,
    url: Optional[str] = None,
    filename: Optional[str] = None,
    plan: UserPlan | str = UserPlan.FREE,
    settings: Optional[Settings] = None,
) -> str:
    """Validate input and create a pending single-shot generation task.

    For file sources ``url`` is the storage key of the uploaded file.

    Returns:
        The new task id.

    Raises:
        InputError: Missing or oversized content, or an unsupported source.
        InsufficientCreditsError: Balance below the flat fee.
    """
    settings = settings or get_settings()
    source_type = SourceType(source_type)
    plan = UserPlan(plan)

    if source_type == SourceType.TEXT:
        content = (content or "").strip()
        if not content:
            raise InputError("Content is required for text input")
        if len(content) < MIN_TEXT_LENGTH:
            raise InputError(f"Content must be at least {MIN_TEXT_LENGTH} characters")
        limit = text_char_limit(plan, settings)
        if len(content) > limit:
            hint = "" if plan == UserPlan.PRO else (
                f" Upgrade to Pro for up to {settings.text_char_limit_pro} characters."
            )
            raise InputError(f"Text exceeds {limit} character limit.{hint}", {"length": len(content)})
    elif source_type == SourceType.URL:
        if not url:
            raise InputError("URL is required for URL input")
    elif source_type == SourceType.FILE:
        if not url or not filename:
            raise InputError("File key and filename are required for file input")
        if get_file_type(filename) is None:
            raise UnsupportedFileTypeError(filename)
    else:
        raise InputError(f"Source type '{source_type.value}' is not supported")

    _require_balance(db, user_id, get_fixed_cost(source_type))

    task = GenerationTask(
        user_id=user_id,
        user_plan=plan,
        source_type=source_type,
        source_content=content if source_type == SourceType.TEXT else None,
        source_url=url if source_type != SourceType.TEXT else None,
        source_filename=filename,
    )
    return db.create_task(task)


def create_analysis_task(
    db: Database,
    user_id: str,
    file_key: str,
    filename: str,
    plan: UserPlan | str = UserPlan.FREE,
) -> str:
    """Create a pending task for outline analysis of an uploaded document.

    Raises:
        InputError: Missing key or filename.
        UnsupportedFileTypeError: Extension is not pdf, docx, md or txt.
        InsufficientCreditsError: Balance cannot cover even the minimum charge.
    """
    if not file_key or not filename:
        raise InputError("File key and filename are required for analysis")
    if get_file_type(filename) is None:
        raise UnsupportedFileTypeError(filename)
    _require_balance(db, user_id, MIN_CREDITS_COST)

    task = GenerationTask(
        user_id=user_id,
        user_plan=UserPlan(plan),
        source_type=SourceType.FILE,
        source_url=file_key,
        source_filename=filename,
    )
    return db.create_task(task)


def select_chapters(
    db: Database,
    task_id: str,
    chapter_indices: Iterable[int],
    user_id: Optional[str] = None,
) -> dict:
    """Record the chapters to generate from and quote the cost.

    Returns:
        Dict with keys: selected_chapters, selected_tokens, credits_cost, estimated_cards.

    Raises:
        WorkflowError: Task is not waiting for a selection, or generation
            has already started from an earlier one.
        ValidationError: Empty selection or unknown chapter index.
        InsufficientCreditsError: Balance below the creation cost.
    """
    task = _owned_task(db, task_id, user_id)
    if task.status != TaskStatus.OUTLINE_READY or task.document_outline is None:
        raise WorkflowError(
            f"Task {task_id} is {task.status.value}; chapters can only be selected when outline_ready",
            {"task_id": task_id},
        )
    # Generation freezes the selection it started with
    if db.get_step(task_id, "prepare_selection") is not None:
        raise WorkflowError(
            f"Task {task_id} already started generating from its selection; resume it instead",
            {"task_id": task_id},
        )

    selected = sorted(set(int(i) for i in chapter_indices))
    if not selected:
        raise ValidationError("Select at least one chapter")
    valid = {c.index for c in task.document_outline.chapters}
    unknown = [i for i in selected if i not in valid]
    if unknown:
        raise ValidationError(f"Unknown chapter indices: {unknown}", {"valid": sorted(valid)})

    selected_tokens = calculate_selected_tokens(task.document_outline, selected)
    cost = calculate_creation_cost(selected_tokens)
    _require_balance(db, task.user_id, cost)

    db.update_task(task_id, selected_chapters=selected)
    logger.info("Task %s: selected chapters %s (%d tokens, %.2f credits)", task_id, selected, selected_tokens, cost)
    return {
        "selected_chapters": selected,
        "selected_tokens": selected_tokens,
        "credits_cost": cost,
        "estimated_cards": estimate_card_count(selected_tokens),
    }


def _task_summary(task: GenerationTask, deck_titles: dict[int, str]) -> dict:
    return {
        "id": task.id,
        "status": task.status.value,
        "source_type": task.source_type.value,
        "source_filename": task.source_filename,
        "card_count": task.card_count,
        "credits_cost": task.credits_cost,
        "indexing_cost": task.indexing_cost,
        "error_message": task.error_message,
        "created_at": task.created_at,
        "started_at": task.started_at,
        "completed_at": task.completed_at,
        "document_outline": task.document_outline.to_dict() if task.document_outline else None,
        "selected_chapters": task.selected_chapters,
        "total_chunks": task.total_chunks,
        "completed_chunks": task.completed_chunks,
        "progress_percent": task.progress_percent,
        "deck": (
            {"id": task.deck_id, "title": deck_titles.get(task.deck_id, "Untitled Deck")}
            if task.deck_id else None
        ),
    }


def get_task_status(db: Database, task_id: str, user_id: Optional[str] = None) -> dict:
    """Read-only projection of a task, with its deck and ordered cards once completed."""
    task = _owned_task(db, task_id, user_id)
    deck = db.get_deck(task.deck_id) if task.deck_id else None
    status = _task_summary(task, {deck.id: deck.title} if deck else {})
    status["cards"] = []
    if task.status == TaskStatus.COMPLETED and deck is not None:
        status["deck"]["description"] = deck.description
        status["cards"] = [
            {"id": c.id, "front": c.front, "back": c.back, "sort_index": c.sort_index}
            for c in db.get_cards(deck.id)
        ]
    return status


def list_user_tasks(db: Database, user_id: str, limit: int = 50) -> list[dict]:
    """User's tasks, newest first, each with a deck summary when one exists."""
    tasks = db.list_tasks(user_id, limit)
    deck_titles = {d.id: d.title for d in db.list_decks(user_id)}
    return [_task_summary(t, deck_titles) for t in tasks]


def get_active_task_count(db: Database, user_id: str) -> int:
    return db.count_active_tasks(user_id)
