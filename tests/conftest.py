"""Shared pytest fixtures for the cardsmith test suite."""

import json
import re

import pytest


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite database path."""
    return tmp_path / "test_cardsmith.db"


@pytest.fixture
def db(tmp_db_path):
    """Return an initialized Database instance backed by a temp file."""
    from models.database import Database
    return Database(tmp_db_path)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    """Return a Settings instance with all paths pointing to tmp_path."""
    from config.settings import Settings
    return Settings(
        _env_file=None,
        sqlite_db_path=tmp_path / "cardsmith.db",
        storage_dir=tmp_path / "uploads",
        log_dir=tmp_path / "logs",
        step_retries=2,
    )


@pytest.fixture
def storage(settings):
    from tools.storage import LocalStorage
    return LocalStorage(settings.storage_dir)


# ---------------------------------------------------------------------------
# LLM provider fake
# ---------------------------------------------------------------------------

_HEADING_RE = re.compile(r"^# .+$", re.MULTILINE)


class FakeProvider:
    """Deterministic stand-in for an LLMProvider.

    Outline prompts get one chapter per markdown "# " heading in the
    document, using the heading line as the start marker. Flashcard
    prompts get one card per paragraph of the content.

    Attributes:
        outline_response: Raw text returned for outline prompts instead of the heading scan.
        card_response: Raw text returned for flashcard prompts instead of the paragraph cards.
        fail_on: Content substring -> exception raised for flashcard prompts containing it.
        transient_failures: Number of upcoming calls that raise LLMTimeoutError first.
    """

    name = "fake"

    def __init__(self):
        self.calls: list[dict] = []
        self.outline_response: str | None = None
        self.card_response: str | None = None
        self.fail_on: dict[str, Exception] = {}
        self.transient_failures = 0

    @property
    def flashcard_calls(self) -> list[dict]:
        return [c for c in self.calls if c["kind"] == "flashcards"]

    @property
    def outline_calls(self) -> list[dict]:
        return [c for c in self.calls if c["kind"] == "outline"]

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model=None,
        json_mode: bool = False,
        temperature: float = 0.7,
        max_output_tokens: int = 4096,
    ) -> str:
        from config.exceptions import LLMTimeoutError

        kind = "outline" if "identify its sections" in user_prompt else "flashcards"
        body = user_prompt.split(":\n\n", 1)[1] if ":\n\n" in user_prompt else user_prompt
        self.calls.append({
            "kind": kind,
            "model": model,
            "json_mode": json_mode,
            "temperature": temperature,
            "system": system_prompt,
            "body": body,
        })

        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise LLMTimeoutError("fake provider timed out")

        if kind == "outline":
            if self.outline_response is not None:
                return self.outline_response
            chapters = [
                {"title": h[2:].strip(), "summary": f"About {h[2:].strip()}", "startMarker": h}
                for h in _HEADING_RE.findall(body)
            ]
            return json.dumps({"chapters": chapters})

        for needle, exc in self.fail_on.items():
            if needle in body:
                raise exc
        if self.card_response is not None:
            return self.card_response
        paragraphs = [p.strip() for p in body.split("\n\n") if p.strip() and not p.startswith("# ") and p.strip() != "---"]
        cards = [{"front": f"What does this say: {p[:60]}?", "back": p[:200]} for p in paragraphs]
        return json.dumps({"cards": cards})


@pytest.fixture
def fake_llm():
    return FakeProvider()


@pytest.fixture
def resources(settings, db, fake_llm, storage):
    """WorkflowResources wired to the temp database, fake LLM and temp storage."""
    from workflow.graph import WorkflowResources
    return WorkflowResources(settings=settings, db=db, provider=fake_llm, storage=storage)


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

def make_document(sections: int, paragraphs_per_section: int) -> str:
    """Markdown document with "# Section k" headings and distinct fact paragraphs."""
    parts = []
    for k in range(sections):
        parts.append(f"# Section {k}")
        for j in range(paragraphs_per_section):
            parts.append(
                f"Fact {k}.{j}: the process numbered {j} in section {k} converts input "
                f"material into a stable product under controlled conditions."
            )
    return "\n\n".join(parts)


@pytest.fixture
def funded_user(db):
    """User id with 100 credits."""
    db.grant_credits("alice", 100, "test grant")
    return "alice"


@pytest.fixture
def small_document():
    return make_document(sections=3, paragraphs_per_section=4)


@pytest.fixture
def document_factory():
    return make_document
