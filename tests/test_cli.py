"""Tests for the click CLI, driven through CliRunner against a temp database."""

import pytest
from click.testing import CliRunner


@pytest.fixture
def cli_env(tmp_path, monkeypatch, fake_llm):
    """Point Settings at tmp_path and swap the LLM for the fake provider."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SQLITE_DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("CARDSMITH_USER", raising=False)
    monkeypatch.setattr("workflow.graph.build_provider", lambda settings: fake_llm)
    return tmp_path


@pytest.fixture
def cli_db(cli_env):
    from models.database import Database
    return Database(cli_env / "cli.db")


def _invoke(*args, input=None):
    from cli.main import cli
    return CliRunner().invoke(cli, list(args), input=input)


class TestParseChapterIndices:
    @pytest.mark.parametrize("arg,expected", [
        ("2", [2]),
        ("0-4", [0, 1, 2, 3, 4]),
        ("0,2-3", [0, 2, 3]),
        ("3, 1, 3", [1, 3]),
        ("1-1", [1]),
    ])
    def test_valid(self, arg, expected):
        from cli.main import _parse_chapter_indices
        assert _parse_chapter_indices(arg) == expected

    @pytest.mark.parametrize("arg", ["x", "4-2", "1-a", "", " , "])
    def test_invalid_exits(self, arg):
        from cli.main import _parse_chapter_indices
        with pytest.raises(SystemExit) as exc_info:
            _parse_chapter_indices(arg)
        assert exc_info.value.code == 1


class TestCreditsCommand:
    def test_grant_and_show(self, cli_env, cli_db):
        result = _invoke("credits", "--grant", "12.5")
        assert result.exit_code == 0, result.output
        assert "12.50" in result.output
        assert cli_db.get_balance("local").balance == 12.5

    def test_history(self, cli_env):
        _invoke("credits", "-g", "5")
        result = _invoke("credits", "--history")
        assert result.exit_code == 0, result.output
        assert "Granted from CLI" in result.output

    def test_non_positive_grant(self, cli_env):
        result = _invoke("credits", "--grant", "0")
        assert result.exit_code == 1

    def test_user_option(self, cli_env, cli_db):
        _invoke("--user", "zoe", "credits", "-g", "4")
        assert cli_db.get_balance("zoe").balance == 4
        assert cli_db.get_balance("local").balance == 0


class TestGenerateCommand:
    def test_text(self, cli_env, cli_db, fake_llm):
        cli_db.grant_credits("local", 10)
        result = _invoke("generate", "-t", "Osmosis moves water.\n\nDiffusion spreads solutes.")
        assert result.exit_code == 0, result.output
        assert "Deck saved" in result.output
        assert len(fake_llm.flashcard_calls) == 1
        assert cli_db.get_balance("local").balance == 9

    def test_file(self, cli_env, cli_db):
        cli_db.grant_credits("local", 10)
        path = cli_env / "notes.md"
        path.write_text("Ribosomes build proteins.\n\nLysosomes digest waste.", encoding="utf-8")
        result = _invoke("generate", "--file", str(path))
        assert result.exit_code == 0, result.output
        assert cli_db.list_decks("local")[0].title == "notes.md"

    def test_requires_exactly_one_source(self, cli_env):
        assert _invoke("generate").exit_code == 1
        result = _invoke("generate", "-t", "Some text here.", "-u", "https://example.org")
        assert result.exit_code == 1
        assert "exactly one" in result.output

    def test_insufficient_credits(self, cli_env, cli_db):
        result = _invoke("generate", "-t", "Osmosis moves water across membranes.")
        assert result.exit_code == 1
        assert "Insufficient credits" in result.output
        assert cli_db.list_tasks("local") == []

    def test_failed_run_exits_nonzero(self, cli_env, cli_db, fake_llm):
        cli_db.grant_credits("local", 10)
        fake_llm.card_response = "not json"
        result = _invoke("generate", "-t", "Osmosis moves water across membranes.")
        assert result.exit_code == 1
        assert "Generation failed" in result.output


class TestTwoPhaseCommands:
    def test_analyze_then_select(self, cli_env, cli_db, small_document):
        cli_db.grant_credits("local", 50)
        path = cli_env / "book.md"
        path.write_text(small_document, encoding="utf-8")

        result = _invoke("analyze", str(path))
        assert result.exit_code == 0, result.output
        assert "Outline ready" in result.output
        assert "Section 1" in result.output
        task = cli_db.list_tasks("local")[0]
        assert f"cardsmith select {task.id} -c 0-2" in result.output

        result = _invoke("select", task.id, "-c", "0,2", "--yes")
        assert result.exit_code == 0, result.output
        assert "Deck saved" in result.output
        assert cli_db.get_task(task.id).selected_chapters == [0, 2]

        result = _invoke("status", task.id)
        assert result.exit_code == 0, result.output
        assert "completed" in result.output

    def test_select_cancelled_keeps_selection(self, cli_env, cli_db, small_document, fake_llm):
        cli_db.grant_credits("local", 50)
        path = cli_env / "book.md"
        path.write_text(small_document, encoding="utf-8")
        _invoke("analyze", str(path))
        task = cli_db.list_tasks("local")[0]

        result = _invoke("select", task.id, "-c", "1", input="n\n")
        assert result.exit_code == 0, result.output
        assert "Cancelled" in result.output
        assert fake_llm.flashcard_calls == []
        assert cli_db.get_task(task.id).selected_chapters == [1]

    def test_select_unknown_chapter(self, cli_env, cli_db, small_document):
        cli_db.grant_credits("local", 50)
        path = cli_env / "book.md"
        path.write_text(small_document, encoding="utf-8")
        _invoke("analyze", str(path))
        task = cli_db.list_tasks("local")[0]

        result = _invoke("select", task.id, "-c", "9", "-y")
        assert result.exit_code == 1
        assert "Unknown chapter" in result.output

    def test_select_other_users_task(self, cli_env, cli_db, small_document):
        cli_db.grant_credits("local", 50)
        path = cli_env / "book.md"
        path.write_text(small_document, encoding="utf-8")
        _invoke("analyze", str(path))
        task = cli_db.list_tasks("local")[0]

        result = _invoke("-U", "mallory", "select", task.id, "-c", "0", "-y")
        assert result.exit_code == 1
        assert "not found" in result.output.lower()


class TestStatusAndDeckCommands:
    def test_empty_status(self, cli_env):
        result = _invoke("status")
        assert result.exit_code == 0
        assert "No tasks yet" in result.output

    def test_status_list(self, cli_env, cli_db):
        cli_db.grant_credits("local", 10)
        _invoke("generate", "-t", "Osmosis moves water.\n\nDiffusion spreads solutes.")
        result = _invoke("status")
        assert result.exit_code == 0, result.output
        assert "1 active" not in result.output
        assert "completed" in result.output

    def test_deck(self, cli_env, cli_db):
        cli_db.grant_credits("local", 10)
        _invoke("generate", "-t", "Osmosis moves water.\n\nDiffusion spreads solutes.")
        deck_id = cli_db.list_decks("local")[0].id

        result = _invoke("deck", str(deck_id))
        assert result.exit_code == 0, result.output
        assert "Cards: 2" in result.output

        result = _invoke("--user", "someone-else", "deck", str(deck_id))
        assert result.exit_code == 1

    def test_resume_finished_task(self, cli_env, cli_db):
        cli_db.grant_credits("local", 10)
        _invoke("generate", "-t", "Osmosis moves water.\n\nDiffusion spreads solutes.")
        task = cli_db.list_tasks("local")[0]

        result = _invoke("resume", task.id)
        assert result.exit_code == 1
        assert "Cannot resume" in result.output
