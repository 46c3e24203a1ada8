"""LangGraph StateGraphs: the three task flows and their shared step machinery.

Flows:
  generate               mark_processing -> load_source -> deduct_credits -> generate_cards -> save_deck
  analyze                mark_analyzing -> parse_document -> build_outline -> charge_indexing -> save_outline
  generate_from_outline  prepare_selection -> charge_generation -> mark_generating -> generate_chunks -> save_deck

Every node is a durable step: its output is written to the step ledger
(task_steps) when it finishes, and a re-run of the same task returns the
recorded output instead of doing the work again. generate_chunks also
records each chunk as ``generate_chunk:<i>``, so an interrupted fan-out
resumes with only the chunks that never finished.
"""

import asyncio
import logging
from datetime import datetime
from functools import lru_cache
from typing import Awaitable, Callable, Optional

from langchain_core.runnables import RunnableConfig
from langgraph.graph import StateGraph, END

from agents.flashcard_agent import FlashcardAgent
from agents.outline_agent import OutlineAgent
from config.exceptions import (
    CardsmithError, InputError, TransientProviderError, WorkflowError,
)
from config.pricing import calculate_creation_cost, calculate_indexing_cost, get_fixed_cost
from config.settings import Settings, get_settings
from models.database import Database
from models.deck import Deck, Flashcard
from models.document import DocumentOutline, TextChunk
from models.enums import BillingPhase, SourceType, TaskStatus
from models.task import GenerationTask
from tools.chunking import split_into_chunks
from tools.llm_providers import LLMProvider, build_provider
from tools.merge import merge_flashcard_batches
from tools.outline import calculate_selected_tokens, extract_selected_chapters_text
from tools.storage import LocalStorage, StorageReader, fetch_url_text
from tools.tokenizer import count_tokens, truncate_to_tokens

from workflow.state import TaskWorkflowState
from workflow.conditions import route_after_step, route_after_error

logger = logging.getLogger(__name__)

# Plenty for five nodes, each retried up to step_retries times
_RECURSION_LIMIT = 50

_URL_TITLE_CHARS = 50


# ---------------------------------------------------------------------------
# Shared resource management; one instance may serve many concurrent runs
# ---------------------------------------------------------------------------

class WorkflowResources:
    """Lazily-initialized resources shared by the workflow nodes."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        db: Optional[Database] = None,
        provider: Optional[LLMProvider] = None,
        storage: Optional[StorageReader] = None,
    ):
        self._settings = settings
        self._db = db
        self._llm = provider
        self._storage = storage

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = Database(self.settings.sqlite_db_path)
        return self._db

    @property
    def llm(self) -> LLMProvider:
        if self._llm is None:
            self._llm = build_provider(self.settings)
        return self._llm

    @property
    def storage(self) -> StorageReader:
        if self._storage is None:
            self._storage = LocalStorage(self.settings.storage_dir)
        return self._storage


def _get_resources(config: RunnableConfig) -> WorkflowResources:
    return config["configurable"]["resources"]


def _get_callback(config: RunnableConfig):
    return config["configurable"].get("callback")


# ---------------------------------------------------------------------------
# Step ledger
# ---------------------------------------------------------------------------

StepBody = Callable[..., Awaitable[dict]]


async def _run_step(r: WorkflowResources, task_id: str, step_name: str, work: Callable[[], Awaitable[dict]]) -> dict:
    """Run ``work`` once per task; later calls return the recorded output."""
    recorded = r.db.get_step(task_id, step_name)
    if recorded is not None:
        logger.info("Task %s: step %s already finished, reusing its output", task_id, step_name)
        return recorded
    output = await work() or {}
    r.db.save_step(task_id, step_name, output)
    return output


async def _execute(node: str, state: TaskWorkflowState, config: RunnableConfig, body: StepBody) -> dict:
    """Run one node's body as a ledger step and fold the outcome into state.

    The recorded output doubles as the node's state update, so a re-run
    that skips the work still hands later nodes what they need.
    """
    logger.info("Entering node: %s", node)
    r = _get_resources(config)
    task_id = state["task_id"]
    callback = _get_callback(config)

    try:
        task = r.db.require_task(task_id)
        output = await _run_step(r, task_id, node, lambda: body(r, task, state, callback))
    except CardsmithError as e:
        logger.warning("Node %s failed for task %s: %s", node, task_id, e)
        return {
            "error": str(e),
            "error_transient": isinstance(e, TransientProviderError),
            "last_node": node,
        }

    return {**output, "error": "", "error_transient": False, "last_node": node, "retry_count": 0}


def _to_status(r: WorkflowResources, task: GenerationTask, target: TaskStatus, stamp: Optional[str] = None, **fields):
    # A crash between the transition and the ledger write leaves the task already there
    if task.status == target:
        return
    r.db.transition_task(task.id, target, stamp=stamp, **fields)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _read_source(r: WorkflowResources, task: GenerationTask) -> str:
    """Resolve a task's source to plain text.

    File tasks keep their storage key in ``source_url``.
    """
    if task.source_type == SourceType.TEXT:
        if not (task.source_content or "").strip():
            raise InputError("No content provided for text source", {"task_id": task.id})
        return task.source_content
    if task.source_type == SourceType.URL:
        if not task.source_url:
            raise InputError("No URL provided", {"task_id": task.id})
        return await fetch_url_text(task.source_url, r.settings)
    if task.source_type == SourceType.FILE:
        if not task.source_url:
            raise InputError("No file provided", {"task_id": task.id})
        return await r.storage.fetch_and_parse(task.source_url, task.source_filename)
    raise InputError(f"Unsupported source type: {task.source_type.value}", {"task_id": task.id})


def _input_budget(settings: Settings) -> int:
    return settings.llm_context_tokens - settings.outline_output_reserve


def _selected_chunks(r: WorkflowResources, task: GenerationTask, selection: list[int]) -> list[TextChunk]:
    """Chunks of ``selection``; deterministic for a given task and settings."""
    if not task.document_text or task.document_outline is None or not selection:
        raise WorkflowError(f"Task {task.id} has no selected chapters to generate from", {"task_id": task.id})
    text = extract_selected_chapters_text(task.document_text, task.document_outline, selection)
    s = r.settings
    return split_into_chunks(
        text,
        max_tokens=s.chunk_max_tokens,
        overlap=s.chunk_overlap_tokens,
        strategy=s.chunk_strategy,
        encoding=s.tokenizer_encoding,
    )


def _chunk_step(index: int) -> str:
    return f"generate_chunk:{index}"


async def _generate_chunk(agent: FlashcardAgent, chunk: TextChunk, retries: int) -> tuple[list[Flashcard], Optional[str]]:
    """Cards for one chunk, or no cards and the error that stopped it.

    Transient provider errors are retried up to ``retries`` times.
    """
    attempt = 0
    while True:
        try:
            return await agent.generate_flashcards(chunk.text), None
        except TransientProviderError as e:
            if attempt < retries:
                attempt += 1
                logger.warning("Chunk %d transient error (retry %d/%d): %s", chunk.index, attempt, retries, e)
                continue
            error = e
        except Exception as e:
            # A failing chunk contributes no cards; its siblings carry on
            error = e
        logger.warning("Chunk %d produced no cards: %s", chunk.index, error)
        return [], str(error)


def _deck_title(task: GenerationTask) -> str:
    if task.source_type == SourceType.TEXT:
        return f"Text Flashcards - {datetime.now().strftime('%Y-%m-%d')}"
    if task.source_type == SourceType.URL:
        return f"URL: {(task.source_url or '')[:_URL_TITLE_CHARS]}..."
    if task.source_filename:
        return task.source_filename
    return f"{task.source_type.value.capitalize()} Flashcards"


def _cards_from(items: list) -> list[Flashcard]:
    return [Flashcard(front=c["front"], back=c["back"]) for c in items]


# ---------------------------------------------------------------------------
# Step bodies
# ---------------------------------------------------------------------------

async def _mark_processing(r, task, state, callback=None) -> dict:
    _to_status(r, task, TaskStatus.PROCESSING, stamp="started_at")
    return {}


async def _load_source(r, task, state, callback=None) -> dict:
    return {"document_text": await _read_source(r, task)}


async def _deduct_credits(r, task, state, callback=None) -> dict:
    cost = get_fixed_cost(task.source_type)
    r.db.debit_credits(
        task.user_id, cost, task.id, BillingPhase.FIXED,
        f"Flashcard generation from {task.source_type.value}",
    )
    return {}


async def _generate_cards(r, task, state, callback=None) -> dict:
    text = state.get("document_text") or ""
    budget = _input_budget(r.settings)
    if count_tokens(text, r.settings.tokenizer_encoding) > budget:
        logger.warning("Task %s: source exceeds %d tokens, generating from the leading part", task.id, budget)
        text = truncate_to_tokens(text, budget, r.settings.tokenizer_encoding)

    agent = FlashcardAgent(provider=r.llm, settings=r.settings)
    cards = await agent.generate_flashcards(text, r.settings.max_cards_per_chunk)
    return {"flashcards": [c.to_dict() for c in cards]}


async def _mark_analyzing(r, task, state, callback=None) -> dict:
    _to_status(r, task, TaskStatus.ANALYZING, stamp="started_at")
    return {}


async def _parse_document(r, task, state, callback=None) -> dict:
    text = await _read_source(r, task)
    logger.info("Task %s: extracted %d characters", task.id, len(text))
    return {"document_text": text}


async def _build_outline(r, task, state, callback=None) -> dict:
    agent = OutlineAgent(provider=r.llm, settings=r.settings)
    outline = await agent.generate_outline(
        state["document_text"],
        chars_per_page=r.settings.chars_per_page,
        max_chapters=r.settings.max_chapters,
    )
    return {"outline": outline.to_dict()}


async def _charge_indexing(r, task, state, callback=None) -> dict:
    outline = DocumentOutline.from_dict(state["outline"])
    cost = calculate_indexing_cost(outline.total_tokens)
    r.db.debit_credits(
        task.user_id, cost, task.id, BillingPhase.INDEXING,
        f"Document indexing ({outline.total_tokens} tokens)",
    )
    return {}


async def _save_outline(r, task, state, callback=None) -> dict:
    _to_status(
        r, task, TaskStatus.OUTLINE_READY,
        document_text=state["document_text"],
        document_outline=DocumentOutline.from_dict(state["outline"]),
        source_filename=task.source_filename,
    )
    return {}


async def _prepare_selection(r, task, state, callback=None) -> dict:
    if task.status not in (TaskStatus.OUTLINE_READY, TaskStatus.GENERATING):
        raise WorkflowError(
            f"Task {task.id} is {task.status.value}, expected outline_ready",
            {"task_id": task.id},
        )
    # Later steps read the selection from this step's output, never from the task row
    selection = list(task.selected_chapters or [])
    chunks = await asyncio.to_thread(_selected_chunks, r, task, selection)
    selected_tokens = calculate_selected_tokens(task.document_outline, selection)
    logger.info(
        "Task %s: %d chapters selected, %d tokens in %d chunks",
        task.id, len(selection), selected_tokens, len(chunks),
    )
    return {"selected_chapters": selection, "selected_tokens": selected_tokens, "total_chunks": len(chunks)}


async def _charge_generation(r, task, state, callback=None) -> dict:
    cost = calculate_creation_cost(state["selected_tokens"])
    r.db.debit_credits(
        task.user_id, cost, task.id, BillingPhase.CREATION,
        f"Flashcard generation ({state['selected_tokens']} tokens)",
    )
    return {}


async def _mark_generating(r, task, state, callback=None) -> dict:
    _to_status(r, task, TaskStatus.GENERATING, total_chunks=state["total_chunks"])
    return {}


async def _generate_chunks(r, task, state, callback=None) -> dict:
    chunks = await asyncio.to_thread(_selected_chunks, r, task, state["selected_chapters"])
    total = len(chunks)
    if total != state["total_chunks"]:
        raise WorkflowError(
            f"Task {task.id} chunked into {total} pieces, expected {state['total_chunks']}",
            {"task_id": task.id},
        )
    agent = FlashcardAgent(provider=r.llm, settings=r.settings)
    semaphore = asyncio.Semaphore(r.settings.chunk_concurrency)

    async def process(chunk: TextChunk):
        step_name = _chunk_step(chunk.index)
        if await asyncio.to_thread(r.db.get_step, task.id, step_name) is not None:
            return
        async with semaphore:
            cards, error = await _generate_chunk(agent, chunk, r.settings.step_retries)
        done = await asyncio.to_thread(
            r.db.record_chunk_step, task.id, step_name,
            {"cards": [c.to_dict() for c in cards], "error": error},
        )
        logger.info("Task %s: chunk %d done (%d/%d), %d cards", task.id, chunk.index, done, total, len(cards))
        if callback is not None:
            callback.on_chunk_complete(done, total)

    # Let every chunk settle before surfacing a failure
    results = await asyncio.gather(*(process(c) for c in chunks), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result

    failed = [
        c.index for c in chunks
        if (r.db.get_step(task.id, _chunk_step(c.index)) or {}).get("error")
    ]
    if failed:
        logger.warning("Task %s: %d of %d chunks produced no cards", task.id, len(failed), total)
    return {"failed_chunks": failed}


async def _save_deck(r, task, state, callback=None) -> dict:
    if state.get("flow") == "generate_from_outline":
        batches = {}
        for i in range(state["total_chunks"]):
            recorded = r.db.get_step(task.id, _chunk_step(i)) or {}
            batches[i] = _cards_from(recorded.get("cards", []))
        description = f"Generated from {len(state['selected_chapters'])} selected section(s)"
    else:
        batches = [_cards_from(state.get("flashcards", []))]
        description = f"Generated from {task.source_type.value}"

    flashcards = merge_flashcard_batches(batches)
    if not flashcards:
        logger.warning("Task %s: completing with an empty deck", task.id)
    deck = Deck(user_id=task.user_id, title=_deck_title(task), description=description)
    deck_id = r.db.complete_task_with_deck(task.id, deck, flashcards)
    return {"deck_id": deck_id, "card_count": len(flashcards)}


# ---------------------------------------------------------------------------
# Node functions (all async)
# ---------------------------------------------------------------------------

async def mark_processing(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """pending -> processing for the single-shot path."""
    return await _execute("mark_processing", state, config, _mark_processing)


async def load_source(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """Resolve text, URL or file source to plain text before anything is charged."""
    return await _execute("load_source", state, config, _load_source)


async def deduct_credits(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """Charge the flat per-source fee, once."""
    return await _execute("deduct_credits", state, config, _deduct_credits)


async def generate_cards(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """One flashcard call over the whole source."""
    return await _execute("generate_cards", state, config, _generate_cards)


async def mark_analyzing(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    return await _execute("mark_analyzing", state, config, _mark_analyzing)


async def parse_document(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """Fetch the uploaded file and extract its text."""
    return await _execute("parse_document", state, config, _parse_document)


async def build_outline(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """Ask the LLM for section markers and resolve them into chapters."""
    return await _execute("build_outline", state, config, _build_outline)


async def charge_indexing(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    return await _execute("charge_indexing", state, config, _charge_indexing)


async def save_outline(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """analyzing -> outline_ready, persisting text and outline together."""
    return await _execute("save_outline", state, config, _save_outline)


async def prepare_selection(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """Measure and chunk the selected chapters."""
    return await _execute("prepare_selection", state, config, _prepare_selection)


async def charge_generation(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    return await _execute("charge_generation", state, config, _charge_generation)


async def mark_generating(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    return await _execute("mark_generating", state, config, _mark_generating)


async def generate_chunks(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """Fan the chunks out to the LLM, isolating per-chunk failures."""
    return await _execute("generate_chunks", state, config, _generate_chunks)


async def save_deck(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """Merge, dedupe and persist the deck; completes the task."""
    return await _execute("save_deck", state, config, _save_deck)


async def handle_error(state: TaskWorkflowState, config: RunnableConfig) -> dict:
    """Retry transient errors, fail the task on anything else."""
    logger.info("Entering node: handle_error")
    r = _get_resources(config)
    error = state.get("error") or "Unknown error"
    last_node = state.get("last_node", "")
    retry_count = state.get("retry_count", 0)
    max_retries = r.settings.step_retries

    if state.get("error_transient") and retry_count < max_retries:
        logger.warning(
            "Transient error in %s (retry %d/%d): %s",
            last_node, retry_count + 1, max_retries, error,
        )
        return {
            "error": "",
            "error_transient": False,
            "retry_count": retry_count + 1,
            "should_stop": False,
        }

    logger.error("Task %s failed in %s: %s", state["task_id"], last_node, error)
    r.db.fail_task(state["task_id"], error)
    return {"error": error, "should_stop": True}


# ---------------------------------------------------------------------------
# Graph construction
# ---------------------------------------------------------------------------

FLOWS: dict[str, list[tuple[str, Callable]]] = {
    "generate": [
        ("mark_processing", mark_processing),
        ("load_source", load_source),
        ("deduct_credits", deduct_credits),
        ("generate_cards", generate_cards),
        ("save_deck", save_deck),
    ],
    "analyze": [
        ("mark_analyzing", mark_analyzing),
        ("parse_document", parse_document),
        ("build_outline", build_outline),
        ("charge_indexing", charge_indexing),
        ("save_outline", save_outline),
    ],
    "generate_from_outline": [
        ("prepare_selection", prepare_selection),
        ("charge_generation", charge_generation),
        ("mark_generating", mark_generating),
        ("generate_chunks", generate_chunks),
        ("save_deck", save_deck),
    ],
}


@lru_cache(maxsize=None)
def build_graph(flow: str):
    """Build and return the compiled graph for one flow.

    The nodes run in a line; any node may divert to handle_error, which
    either re-enters the failed node or ends the run.
    """
    if flow not in FLOWS:
        raise WorkflowError(f"Unknown workflow: {flow}")
    nodes = FLOWS[flow]
    names = [name for name, _ in nodes]

    graph = StateGraph(TaskWorkflowState)
    for name, fn in nodes:
        graph.add_node(name, fn)
    graph.add_node("handle_error", handle_error)

    graph.set_entry_point(names[0])
    for name, following in zip(names, names[1:] + [END]):
        graph.add_conditional_edges(
            name,
            route_after_step,
            {"next": following, "handle_error": "handle_error"},
        )

    graph.add_conditional_edges(
        "handle_error",
        route_after_error,
        {**{name: name for name in names}, "__end__": END},
    )
    return graph.compile()


async def run_flow(
    flow: str,
    task_id: str,
    resources: Optional[WorkflowResources] = None,
    callback=None,
) -> dict:
    """Run one flow for ``task_id`` to completion or failure.

    Args:
        flow: "generate", "analyze" or "generate_from_outline".
        task_id: Task to drive.
        resources: Shared resources; a fresh set is created if omitted.
        callback: Optional WorkflowCallback for progress reporting.

    Returns:
        Final workflow state dict.
    """
    app = build_graph(flow)
    resources = resources or WorkflowResources()
    initial_state: TaskWorkflowState = {"task_id": task_id, "flow": flow}
    config = {
        "recursion_limit": _RECURSION_LIMIT,
        "configurable": {"resources": resources, "callback": callback},
    }

    logger.info("Starting %s workflow for task %s", flow, task_id)
    try:
        if callback is not None:
            final_state = await _run_with_callback(app, initial_state, config, callback)
        else:
            final_state = await app.ainvoke(initial_state, config=config)
    except Exception as e:
        # Unexpected failures still leave the task in a terminal state
        resources.db.fail_task(task_id, f"Unexpected error: {e}")
        raise

    logger.info("Workflow %s finished for task %s", flow, task_id)
    return final_state


async def run_generate(task_id: str, resources: Optional[WorkflowResources] = None, callback=None) -> dict:
    return await run_flow("generate", task_id, resources, callback)


async def run_analysis(task_id: str, resources: Optional[WorkflowResources] = None, callback=None) -> dict:
    return await run_flow("analyze", task_id, resources, callback)


async def run_generate_from_outline(
    task_id: str,
    resources: Optional[WorkflowResources] = None,
    callback=None,
) -> dict:
    return await run_flow("generate_from_outline", task_id, resources, callback)


def flow_for_task(task: GenerationTask, steps: list[str]) -> Optional[str]:
    """Which flow an unfinished task belongs to, judged from its status and ledger."""
    if task.status.is_terminal:
        return None
    if task.status == TaskStatus.GENERATING or "prepare_selection" in steps:
        return "generate_from_outline"
    if task.status == TaskStatus.ANALYZING or "mark_analyzing" in steps:
        return "analyze"
    if task.status == TaskStatus.PROCESSING or "mark_processing" in steps:
        return "generate"
    return None


async def resume_task(task_id: str, resources: Optional[WorkflowResources] = None, callback=None) -> dict:
    """Re-run an interrupted task; finished steps are skipped.

    Raises:
        WorkflowError: The task is finished, or was never started.
    """
    resources = resources or WorkflowResources()
    task = resources.db.require_task(task_id)
    flow = flow_for_task(task, resources.db.list_steps(task_id))
    if flow is None:
        raise WorkflowError(
            f"Task {task_id} ({task.status.value}) has nothing to resume",
            {"task_id": task_id},
        )
    logger.info("Resuming task %s with the %s workflow", task_id, flow)
    return await run_flow(flow, task_id, resources, callback)


async def _run_with_callback(app, initial_state: dict, config, callback) -> dict:
    """Run the workflow using astream() and emit progress callbacks.

    Args:
        app: Compiled LangGraph application.
        initial_state: Initial workflow state.
        config: LangGraph config dict.
        callback: WorkflowCallback instance.

    Returns:
        Accumulated final state dict.
    """
    accumulated: dict = dict(initial_state)

    async for event in app.astream(initial_state, config=config):
        # Each event is {node_name: state_update_dict}
        for node_name, node_update in event.items():
            if node_name == "__end__":
                continue
            if isinstance(node_update, dict):
                accumulated.update(node_update)

            callback.on_node_exit(node_name, accumulated)
            if accumulated.get("error") and node_name != "handle_error":
                callback.on_error(node_name, accumulated["error"])

    callback.on_workflow_complete(accumulated)
    return accumulated
