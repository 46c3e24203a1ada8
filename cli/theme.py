"""Unified Rich theme and reusable UI helper functions for the CLI."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme

from tools.text_utils import shorten

CARDSMITH_THEME = Theme({
    "app.title": "bold",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "blue",
    "muted": "dim",
    "accent": "cyan",
    "stat.label": "dim",
    "stat.value": "bold",
    "chapter.num": "blue",
    "card.front": "bold cyan",
})

STATUS_STYLES = {
    "pending": "yellow",
    "analyzing": "cyan",
    "outline_ready": "magenta",
    "processing": "cyan",
    "generating": "cyan",
    "completed": "green",
    "failed": "red",
}


def get_console() -> Console:
    """Return a Console instance with the cardsmith theme applied."""
    return Console(theme=CARDSMITH_THEME)


def app_header(title: str = "cardsmith") -> Rule:
    """Return a Rule element for the application header banner."""
    return Rule(title=f"[bold]{title}[/]", style="dim")


def command_panel(title: str, fields: dict[str, str]) -> Panel:
    """Return a Panel displaying command parameters.

    Args:
        title: Panel title (e.g. "Analyze document").
        fields: Ordered dict of label -> value pairs.
    """
    lines = []
    for label, value in fields.items():
        lines.append(f"  [stat.label]{label}:[/] [stat.value]{value}[/]")
    body = "\n".join(lines)
    return Panel(body, title=f"[bold]{title}[/]", box=box.ROUNDED, border_style="dim", padding=(0, 2))


def success_panel(title: str, body: str) -> Panel:
    """Return a green-bordered Panel for success results."""
    return Panel(body, title=f"[success]{title}[/]", box=box.ROUNDED, border_style="green", padding=(0, 2))


def status_text(status: str) -> str:
    return f"[{STATUS_STYLES.get(status, 'white')}]{status}[/]"


def outline_table(outline: dict) -> Table:
    """Build a table of outline chapters.

    Args:
        outline: DocumentOutline.to_dict() output.
    """
    table = Table(box=box.ROUNDED, border_style="dim", show_header=True, padding=(0, 1))
    table.add_column("#", style="chapter.num", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Pages", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Summary", style="muted")

    for ch in outline.get("chapters", []):
        summary = shorten(ch.get("summary", ""), 60)
        table.add_row(
            str(ch.get("index")),
            ch.get("title", ""),
            f"{ch.get('startPage')}-{ch.get('endPage')}",
            f"{ch.get('estimatedTokens', 0):,}",
            summary,
        )
    return table


def cards_table(cards: list, limit: int = 0) -> Table:
    """Build a table of flashcards (Card objects or dicts with front/back)."""
    table = Table(box=box.ROUNDED, border_style="dim", show_header=True, show_lines=True, padding=(0, 1))
    table.add_column("#", style="muted", justify="right")
    table.add_column("Front", style="card.front")
    table.add_column("Back")

    shown = cards[:limit] if limit else cards
    for i, c in enumerate(shown, 1):
        front = c["front"] if isinstance(c, dict) else c.front
        back = c["back"] if isinstance(c, dict) else c.back
        table.add_row(str(i), front, back)

    if limit and len(cards) > limit:
        table.add_row("", f"[muted]+{len(cards) - limit} more[/]", "")
    return table
