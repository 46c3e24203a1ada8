"""LangGraph workflow state definition."""

from typing import TypedDict


class TaskWorkflowState(TypedDict, total=False):
    """State shared by the nodes of one task's graph.

    Anything a later node needs is also kept in the step ledger, so a
    re-run that starts from an empty state can still recover it.

    Fields are grouped logically:
    - Identity: task_id, flow
    - Source: document_text, outline
    - Selection: selected_chapters, selected_tokens, total_chunks
    - Results: flashcards, failed_chunks, card_count, deck_id
    - Control: error, error_transient, last_node, retry_count, should_stop
    """

    # Identity
    task_id: str
    flow: str  # "generate", "analyze" or "generate_from_outline"

    # Source
    document_text: str
    outline: dict  # DocumentOutline.to_dict()

    # Selection (phase B), frozen when prepare_selection runs
    selected_chapters: list
    selected_tokens: int
    total_chunks: int

    # Results
    flashcards: list  # [{"front", "back"}] from the single-shot path
    failed_chunks: list
    card_count: int
    deck_id: int

    # Control flow
    error: str
    error_transient: bool
    last_node: str  # Node to re-enter when a transient error is retried
    retry_count: int  # Retries spent on last_node
    should_stop: bool
