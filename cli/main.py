"""CLI entry point: cardsmith document-to-flashcard generator.

Usage:
  cardsmith generate -t "some text"      single-shot generation from text
  cardsmith generate -u https://...       single-shot generation from a web page
  cardsmith analyze notes.pdf             build an outline of a document
  cardsmith select TASK_ID -c 0,2-3       generate from selected chapters
  cardsmith status [TASK_ID]              list tasks or show one
  cardsmith credits [--grant 10]          show or add credits
  cardsmith deck DECK_ID                  show a deck's cards
"""

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.table import Table

from cli.theme import (
    get_console,
    app_header,
    command_panel,
    success_panel,
    status_text,
    outline_table,
    cards_table,
)
from config.exceptions import CardsmithError
from config.logging_config import setup_logging
from config.settings import Settings
from models.database import Database
from models.enums import SourceType, TaskStatus, UserPlan
from tools.storage import LocalStorage
from workflow.callbacks import RichProgressCallback
from workflow.graph import WorkflowResources, resume_task, run_analysis, run_generate, run_generate_from_outline
from workflow.tasks import (
    create_analysis_task,
    create_generation_task,
    get_task_status,
    list_user_tasks,
    select_chapters,
)

console = get_console()
logger = logging.getLogger(__name__)


def _init_logging(verbose: bool):
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    settings = Settings()
    setup_logging(level=level, log_dir=settings.log_dir, console_enabled=verbose)


def _open(settings: Settings) -> tuple[Database, WorkflowResources]:
    db = Database(settings.sqlite_db_path)
    return db, WorkflowResources(settings=settings, db=db)


def _run_with_progress(coro_fn, task_id: str, resources: WorkflowResources, title: str) -> dict:
    cb = RichProgressCallback(console=console, title=title)
    cb.start()
    try:
        return asyncio.run(coro_fn(task_id, resources, cb))
    finally:
        cb.stop()


def _fail(message: str, code: int = 1):
    console.print(f"\n[error]{message}[/]")
    sys.exit(code)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--user", "-U", default="local", envvar="CARDSMITH_USER", show_default=True,
              help="User id that owns tasks, decks and credits")
@click.pass_context
def cli(ctx, verbose, user):
    """cardsmith: turn documents into flashcards with an LLM.

    \b
    Short inputs go through a single generation call:
      cardsmith generate -t "Photosynthesis converts light into..."
    \b
    Long documents are analyzed first, then generated chapter by chapter:
      cardsmith analyze book.pdf
      cardsmith select <task-id> -c 0,2-3
    """
    _init_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["user"] = user


# ---------------------------------------------------------------------------
# generate command
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--text", "-t", default=None, help="Text to turn into flashcards")
@click.option("--url", "-u", default=None, help="Web page to turn into flashcards")
@click.option("--file", "-f", "file_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Document (pdf, docx, md, txt) to turn into flashcards in one call")
@click.option("--plan", "-p", default="free", type=click.Choice([p.value for p in UserPlan]),
              help="Plan tier, sets the text length limit")
@click.pass_context
def generate(ctx, text, url, file_path, plan):
    """Generate a deck in one step from text, a URL or a small file.

    Examples:
      cardsmith generate -t "The mitochondria is the powerhouse of the cell..."
      cardsmith generate -u https://en.wikipedia.org/wiki/Flashcard
    """
    sources = [s for s in (text, url, file_path) if s]
    if len(sources) != 1:
        _fail("Give exactly one of --text, --url or --file")

    settings = Settings()
    db, resources = _open(settings)
    user = ctx.obj["user"]

    try:
        if text:
            source_type, label = SourceType.TEXT, f"{len(text)} characters of text"
            task_id = create_generation_task(db, user, source_type, content=text, plan=plan, settings=settings)
        elif url:
            source_type, label = SourceType.URL, url
            task_id = create_generation_task(db, user, source_type, url=url, plan=plan, settings=settings)
        else:
            source_type, label = SourceType.FILE, file_path
            storage = LocalStorage(settings.storage_dir)
            file_key = storage.save_upload(file_path)
            task_id = create_generation_task(
                db, user, source_type, url=file_key, filename=Path(file_path).name,
                plan=plan, settings=settings,
            )
    except CardsmithError as e:
        _fail(f"Cannot start generation: {e}")

    console.print(app_header())
    console.print()
    console.print(command_panel("Generate flashcards", {
        "Source": f"{source_type.value}: {label}",
        "Task": task_id,
    }))
    console.print()

    try:
        final_state = _run_with_progress(run_generate, task_id, resources, "Generating")
    except KeyboardInterrupt:
        console.print("\n[warning]Interrupted[/]")
        sys.exit(130)

    if final_state.get("should_stop"):
        _fail(f"Generation failed: {final_state.get('error', '')}")
    _print_deck_result(db, task_id)


# ---------------------------------------------------------------------------
# analyze command
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--plan", "-p", default="free", type=click.Choice([p.value for p in UserPlan]))
@click.pass_context
def analyze(ctx, file_path, plan):
    """Analyze a document into chapters (phase A).

    Examples:
      cardsmith analyze textbook.pdf
    """
    settings = Settings()
    db, resources = _open(settings)
    user = ctx.obj["user"]

    try:
        storage = LocalStorage(settings.storage_dir)
        file_key = storage.save_upload(file_path)
        task_id = create_analysis_task(db, user, file_key, Path(file_path).name, plan=plan)
    except CardsmithError as e:
        _fail(f"Cannot start analysis: {e}")

    console.print(app_header())
    console.print()
    console.print(command_panel("Analyze document", {"File": file_path, "Task": task_id}))
    console.print()

    try:
        final_state = _run_with_progress(run_analysis, task_id, resources, "Analyzing")
    except KeyboardInterrupt:
        console.print("\n[warning]Interrupted[/]")
        sys.exit(130)

    if final_state.get("should_stop"):
        _fail(f"Analysis failed: {final_state.get('error', '')}")

    status = get_task_status(db, task_id)
    outline = status["document_outline"]
    console.print(outline_table(outline))
    console.print()
    console.print(success_panel("Outline ready", (
        f"  Pages: [stat.value]{outline['totalPages']}[/]\n"
        f"  Tokens: [stat.value]{outline['totalTokens']:,}[/]\n"
        f"  Indexing cost: [stat.value]{status['indexing_cost']:.2f}[/] credits"
    )))
    last = len(outline["chapters"]) - 1
    console.print(f"\nNext: [info]cardsmith select {task_id} -c 0-{last}[/]")


# ---------------------------------------------------------------------------
# select command
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("task_id")
@click.option("--chapters", "-c", required=True, type=str,
              help="Chapter selection: 2, 0-4, or 0,2-3")
@click.option("--yes", "-y", is_flag=True, help="Skip the cost confirmation")
@click.pass_context
def select(ctx, task_id, chapters, yes):
    """Generate flashcards from selected chapters of an analyzed document (phase B).

    Examples:
      cardsmith select 3f2a... -c 0,2-3
    """
    settings = Settings()
    db, resources = _open(settings)
    indices = _parse_chapter_indices(chapters)

    try:
        quote = select_chapters(db, task_id, indices, user_id=ctx.obj["user"])
    except CardsmithError as e:
        _fail(f"Cannot select chapters: {e}")

    cards = quote["estimated_cards"]
    console.print(app_header())
    console.print()
    console.print(command_panel("Generate from outline", {
        "Task": task_id,
        "Chapters": ", ".join(str(i) for i in quote["selected_chapters"]),
        "Tokens": f"{quote['selected_tokens']:,}",
        "Cost": f"{quote['credits_cost']:.2f} credits",
        "Expected cards": f"{cards['min']}-{cards['max']}",
    }))
    console.print()

    if not yes and not click.confirm("Continue?", default=True):
        console.print("[warning]Cancelled; the selection is saved, run select again to start[/]")
        return

    try:
        final_state = _run_with_progress(run_generate_from_outline, task_id, resources, "Generating")
    except KeyboardInterrupt:
        console.print("\n[warning]Interrupted; run [info]cardsmith resume[/] to continue[/]")
        sys.exit(130)

    if final_state.get("should_stop"):
        _fail(f"Generation failed: {final_state.get('error', '')}")
    failed = final_state.get("failed_chunks") or []
    if failed:
        console.print(f"[warning]{len(failed)} chunk(s) produced no cards[/]")
    _print_deck_result(db, task_id)


# ---------------------------------------------------------------------------
# resume command
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("task_id")
def resume(task_id):
    """Continue an interrupted task; finished steps are not repeated."""
    settings = Settings()
    db, resources = _open(settings)
    try:
        final_state = _run_with_progress(resume_task, task_id, resources, "Resuming")
    except CardsmithError as e:
        _fail(f"Cannot resume: {e}")

    if final_state.get("should_stop"):
        _fail(f"Task failed: {final_state.get('error', '')}")
    task = db.require_task(task_id)
    if task.status == TaskStatus.COMPLETED:
        _print_deck_result(db, task_id)
    else:
        console.print(f"Task {task_id} is now {status_text(task.status.value)}")


# ---------------------------------------------------------------------------
# status command
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("task_id", required=False)
@click.pass_context
def status(ctx, task_id):
    """List tasks, or show one task in detail.

    Examples:
      cardsmith status
      cardsmith status 3f2a...
    """
    settings = Settings()
    db = Database(settings.sqlite_db_path)
    user = ctx.obj["user"]

    console.print(app_header())
    console.print()

    if task_id:
        try:
            info = get_task_status(db, task_id, user_id=user)
        except CardsmithError as e:
            _fail(str(e))
        _show_task_detail(info)
        return

    tasks = list_user_tasks(db, user)
    if not tasks:
        console.print("[warning]No tasks yet. Use [info]cardsmith generate[/] or [info]cardsmith analyze[/].[/]")
        return
    _show_task_list(tasks, db.count_active_tasks(user))


def _show_task_list(tasks: list[dict], active: int):
    """Display a table of tasks."""
    table = Table(title=f"Tasks ({active} active)", show_lines=True, border_style="dim")
    table.add_column("ID", style="chapter.num")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Cards", justify="right")
    table.add_column("Deck")

    for t in tasks:
        source = t["source_filename"] or t["source_type"]
        deck = f"{t['deck']['id']}: {t['deck']['title']}" if t["deck"] else ""
        table.add_row(
            t["id"][:12],
            source,
            status_text(t["status"]),
            f"{t['progress_percent']}%" if t["total_chunks"] else "",
            str(t["card_count"]),
            deck,
        )
    console.print(table)


def _show_task_detail(info: dict):
    """Display one task's projection."""
    fields = {
        "Status": status_text(info["status"]),
        "Source": info["source_filename"] or info["source_type"],
        "Created": str(info["created_at"] or ""),
        "Indexing cost": f"{info['indexing_cost']:.2f}",
        "Generation cost": f"{info['credits_cost']:.2f}",
    }
    if info["total_chunks"]:
        fields["Chunks"] = f"{info['completed_chunks']}/{info['total_chunks']} ({info['progress_percent']}%)"
    if info["error_message"]:
        fields["Error"] = f"[error]{info['error_message']}[/]"
    if info["deck"]:
        fields["Deck"] = f"{info['deck']['id']}: {info['deck']['title']}"
    console.print(command_panel(f"Task {info['id']}", fields))

    outline = info["document_outline"]
    if outline and info["status"] == TaskStatus.OUTLINE_READY.value:
        console.print()
        console.print(outline_table(outline))
        console.print(f"\nNext: [info]cardsmith select {info['id']} -c 0-{len(outline['chapters']) - 1}[/]")
    if info["cards"]:
        console.print()
        console.print(cards_table(info["cards"], limit=10))


# ---------------------------------------------------------------------------
# credits command
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--grant", "-g", "amount", default=None, type=float, help="Add credits to the balance")
@click.option("--history", is_flag=True, help="Show recent transactions")
@click.pass_context
def credits(ctx, amount, history):
    """Show the credit balance, optionally granting more.

    Examples:
      cardsmith credits
      cardsmith credits --grant 20
    """
    settings = Settings()
    db = Database(settings.sqlite_db_path)
    user = ctx.obj["user"]

    if amount is not None:
        try:
            db.grant_credits(user, amount, "Granted from CLI")
        except ValueError as e:
            _fail(str(e))

    balance = db.get_balance(user)
    console.print(command_panel(f"Credits for {user}", {
        "Balance": f"{balance.balance:.2f}",
        "Earned": f"{balance.total_earned:.2f}",
        "Spent": f"{balance.total_spent:.2f}",
    }))

    if history:
        table = Table(show_lines=False, border_style="dim")
        table.add_column("When", style="muted")
        table.add_column("Type")
        table.add_column("Amount", justify="right")
        table.add_column("Task", style="chapter.num")
        table.add_column("Description")
        for tx in db.list_transactions(user):
            sign = "+" if tx.type.value == "grant" else "-"
            table.add_row(
                str(tx.created_at or ""), tx.type.value, f"{sign}{tx.amount:.2f}",
                (tx.task_id or "")[:12], tx.description,
            )
        console.print(table)


# ---------------------------------------------------------------------------
# deck command
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("deck_id", type=int)
@click.pass_context
def deck(ctx, deck_id):
    """Show a deck and its cards in order."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)
    found = db.get_deck(deck_id)
    if not found or found.user_id != ctx.obj["user"]:
        _fail(f"No deck with id {deck_id}")

    cards = db.get_cards(deck_id)
    console.print(command_panel(found.title, {
        "Cards": str(len(cards)),
        "Description": found.description or "",
    }))
    console.print(cards_table(cards))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_chapter_indices(arg: str) -> list[int]:
    """Parse a chapter selection into sorted, unique 0-based indices.

    Supported formats:
      "2"       -> [2]
      "0-4"     -> [0, 1, 2, 3, 4]
      "0,2-3"   -> [0, 2, 3]
    """
    indices: set[int] = set()
    try:
        for part in arg.split(","):
            part = part.strip()
            if not part:
                continue
            if "-" in part:
                start_s, end_s = part.split("-", 1)
                start, end = int(start_s), int(end_s)
                if start > end:
                    _fail(f"Invalid range: {part} (start is after end)")
                indices.update(range(start, end + 1))
            else:
                indices.add(int(part))
    except ValueError:
        _fail(f"Invalid chapter selection: {arg} (use 2, 0-4 or 0,2-3)")
    if not indices:
        _fail("Select at least one chapter")
    return sorted(indices)


def _print_deck_result(db: Database, task_id: str) -> None:
    info = get_task_status(db, task_id)
    if not info["deck"]:
        _fail(f"Task {task_id} finished without a deck")
    console.print()
    console.print(cards_table(info["cards"], limit=10))
    console.print()
    console.print(success_panel("Deck saved", (
        f"  Deck: [stat.value]{info['deck']['id']}[/] {info['deck']['title']}\n"
        f"  Cards: [stat.value]{info['card_count']}[/]\n"
        f"  Cost: [stat.value]{info['credits_cost'] + info['indexing_cost']:.2f}[/] credits"
    )))
    console.print(f"\nNext: [info]cardsmith deck {info['deck']['id']}[/]")


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
