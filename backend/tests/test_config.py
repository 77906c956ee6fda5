"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from app.config import Settings
from core.constants import LlmProvider


@pytest.mark.unit
class TestSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LLM_PROVIDER", raising=False)
        settings = Settings(_env_file=None)
        assert settings.LLM_PROVIDER == LlmProvider.OPENAI
        assert settings.MAX_WORKFLOW_DEPTH == 10

    def test_llm_config_from_settings(self):
        settings = Settings(_env_file=None, LLM_PROVIDER="anthropic", LLM_MODEL="claude-x")
        config = settings.llm_config()
        assert config.provider == LlmProvider.ANTHROPIC
        assert config.model == "claude-x"

    def test_unknown_provider_rejected_at_load(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LLM_PROVIDER="bogus")

    def test_provider_from_environment(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "ollama")
        assert Settings(_env_file=None).llm_config().provider == LlmProvider.OLLAMA
