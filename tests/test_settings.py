"""Tests for Settings validation."""

import pytest
from pydantic import ValidationError


def _make(tmp_path, **overrides):
    from config.settings import Settings
    return Settings(
        _env_file=None,
        sqlite_db_path=tmp_path / "cardsmith.db",
        storage_dir=tmp_path / "uploads",
        log_dir=tmp_path / "logs",
        **overrides,
    )


class TestSettingsDefaults:
    def test_chunking_defaults(self, tmp_path):
        s = _make(tmp_path)
        assert s.chunk_max_tokens == 3500
        assert s.chunk_overlap_tokens == 200
        assert s.chunk_strategy == "paragraph"

    def test_outline_defaults(self, tmp_path):
        s = _make(tmp_path)
        assert s.chars_per_page == 2000
        assert s.max_chapters == 15
        assert s.llm_context_tokens == 128000
        assert s.outline_output_reserve == 4000

    def test_limits_and_concurrency_defaults(self, tmp_path):
        s = _make(tmp_path)
        assert s.text_char_limit_free == 1000
        assert s.text_char_limit_pro == 10000
        assert s.max_cards_per_chunk == 20
        assert s.generation_concurrency == 10
        assert s.analysis_concurrency == 20
        assert s.partition_concurrency_by_plan is False

    def test_default_provider(self, tmp_path):
        s = _make(tmp_path)
        assert s.llm_provider == "agent_sdk"

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CHUNK_MAX_TOKENS", "2000")
        monkeypatch.setenv("LLM_PROVIDER", "OpenAI")
        s = _make(tmp_path)
        assert s.chunk_max_tokens == 2000
        assert s.llm_provider == "openai"

    def test_parent_dirs_created(self, tmp_path):
        from config.settings import Settings
        Settings(
            _env_file=None,
            sqlite_db_path=tmp_path / "nested" / "db" / "cardsmith.db",
            log_dir=tmp_path / "logs" / "app",
        )
        assert (tmp_path / "nested" / "db").is_dir()


class TestSettingsValidation:
    def test_overlap_not_below_max_raises(self, tmp_path):
        with pytest.raises(ValidationError, match="chunk_overlap_tokens"):
            _make(tmp_path, chunk_max_tokens=200, chunk_overlap_tokens=200)

    def test_negative_overlap_raises(self, tmp_path):
        with pytest.raises(ValidationError, match="non-negative"):
            _make(tmp_path, chunk_overlap_tokens=-1)

    def test_unknown_provider_raises(self, tmp_path):
        with pytest.raises(ValidationError, match="llm_provider"):
            _make(tmp_path, llm_provider="bard")

    def test_unknown_strategy_raises(self, tmp_path):
        with pytest.raises(ValidationError, match="chunk_strategy"):
            _make(tmp_path, chunk_strategy="chapter")

    @pytest.mark.parametrize("field", [
        "chars_per_page", "max_chapters", "max_cards_per_chunk",
        "chunk_concurrency", "generation_concurrency", "analysis_concurrency",
    ])
    def test_zero_rejected(self, tmp_path, field):
        with pytest.raises(ValidationError, match=">= 1"):
            _make(tmp_path, **{field: 0})

    def test_reserve_must_fit_context(self, tmp_path):
        with pytest.raises(ValidationError, match="outline_output_reserve"):
            _make(tmp_path, llm_context_tokens=4000, outline_output_reserve=4000)


class TestGetSettings:
    def test_cached_instance(self, monkeypatch, tmp_path):
        import config.settings as settings_module
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(settings_module, "_settings_instance", None)
        first = settings_module.get_settings()
        assert settings_module.get_settings() is first
