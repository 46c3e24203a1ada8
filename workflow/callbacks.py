"""Workflow progress callbacks for monitoring and real-time reporting."""

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class WorkflowCallback(Protocol):
    """Protocol for workflow progress callbacks.

    Implement this protocol to hook into the workflow execution lifecycle.
    """

    def on_node_exit(self, node: str, state: dict) -> None:
        """Called after a node finishes executing with the current accumulated state."""
        ...

    def on_chunk_complete(self, completed: int, total: int) -> None:
        """Called each time a chunk's flashcard call finishes (successfully or not)."""
        ...

    def on_error(self, node: str, error: str) -> None:
        """Called when an error is detected in the workflow state."""
        ...

    def on_workflow_complete(self, final_state: dict) -> None:
        """Called when the entire workflow finishes."""
        ...


class LoggingCallback:
    """Lightweight callback that logs progress to the standard logger."""

    def on_node_exit(self, node: str, state: dict) -> None:
        logger.debug("<- node: %s", node)

    def on_chunk_complete(self, completed: int, total: int) -> None:
        logger.info("Chunk %d/%d complete", completed, total)

    def on_error(self, node: str, error: str) -> None:
        logger.error("Workflow error in '%s': %s", node, error)

    def on_workflow_complete(self, final_state: dict) -> None:
        if final_state.get("should_stop"):
            logger.info("Workflow stopped: %s", final_state.get("error", ""))
        else:
            logger.info("Workflow complete: card_count=%d", final_state.get("card_count", 0))


class RichProgressCallback:
    """Progress callback that renders a Rich live progress display in the terminal."""

    # When a node exits, show the label of the step that is *entering* next.
    # (astream fires events after each node completes, so we display the next step.)
    _ENTERING_LABEL: dict[str, str] = {
        "mark_processing": "Reading source",
        "load_source": "Charging credits",
        "deduct_credits": "Generating flashcards",
        "generate_cards": "Saving deck",
        "mark_analyzing": "Parsing document",
        "parse_document": "Building outline",
        "build_outline": "Charging indexing fee",
        "charge_indexing": "Saving outline",
        "prepare_selection": "Charging generation fee",
        "charge_generation": "Starting generation",
        "mark_generating": "Generating flashcards",
        "generate_chunks": "Saving deck",
        "handle_error": "Handling error",
    }

    def __init__(self, console=None, title: str = "Working"):
        """
        Args:
            console: Rich Console instance. Creates one if not provided.
            title: Description shown on the main progress line.
        """
        self._console = console
        self._title = title
        self._progress = None
        self._chunk_task_id = None
        self._node_task_id = None

    def start(self):
        """Start the progress display. Call before running the workflow."""
        from rich.console import Console
        from rich.progress import (
            Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn,
        )

        console = self._console or Console()
        self._progress = Progress(
            SpinnerColumn("dots"),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        )
        self._progress.start()

        self._chunk_task_id = self._progress.add_task(self._title, total=None)
        self._node_task_id = self._progress.add_task("[dim]Starting...[/]", total=None)

    def stop(self):
        """Stop the progress display."""
        if self._progress:
            self._progress.stop()
            self._progress = None

    def on_node_exit(self, node: str, state: dict) -> None:
        if not self._progress:
            return
        label = self._ENTERING_LABEL.get(node, node)
        self._progress.update(self._node_task_id, description=f"[dim]{label}[/]")

    def on_chunk_complete(self, completed: int, total: int) -> None:
        if not self._progress:
            return
        self._progress.update(
            self._chunk_task_id,
            total=total,
            completed=completed,
            description=f"[green]Chunks {completed}/{total}[/]",
        )

    def on_error(self, node: str, error: str) -> None:
        if not self._progress:
            return
        self._progress.update(
            self._node_task_id,
            description=f"[red]Error ({node}): {error[:80]}[/]",
        )

    def on_workflow_complete(self, final_state: dict) -> None:
        if not self._progress:
            return
        if final_state.get("should_stop"):
            description = "[bold red]Failed[/]"
        elif "card_count" in final_state:
            description = f"[bold green]Done! {final_state['card_count']} cards[/]"
        else:
            description = "[bold green]Done![/]"
        self._progress.update(self._chunk_task_id, description=description)
        self._progress.update(self._node_task_id, description="")
