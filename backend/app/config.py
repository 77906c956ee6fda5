"""Application configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from core.constants import (
    BASE_RETRY_DELAY_MS,
    DEFAULT_EXISTS_TIMEOUT_MS,
    DEFAULT_SCROLL_AMOUNT,
    DEFAULT_WAIT_TIMEOUT_MS,
    ENV_PARAM_PREFIX,
    LlmProvider,
    MAX_RETRIES,
    MAX_WORKFLOW_DEPTH,
    RETRY_BLOCK_DELAY_MS,
    RETRY_BLOCK_MAX_ATTEMPTS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    APP_NAME: str = "YAML Workflow Engine"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, testing, production

    # Engine
    MAX_WORKFLOW_DEPTH: int = MAX_WORKFLOW_DEPTH
    STEP_MAX_RETRIES: int = MAX_RETRIES
    STEP_RETRY_BASE_DELAY_MS: int = BASE_RETRY_DELAY_MS
    RETRY_BLOCK_MAX_ATTEMPTS: int = RETRY_BLOCK_MAX_ATTEMPTS
    RETRY_BLOCK_DELAY_MS: int = RETRY_BLOCK_DELAY_MS
    ENV_PARAM_PREFIX: str = ENV_PARAM_PREFIX

    # Browser step defaults
    BROWSER_WAIT_TIMEOUT_MS: int = DEFAULT_WAIT_TIMEOUT_MS
    BROWSER_EXISTS_TIMEOUT_MS: int = DEFAULT_EXISTS_TIMEOUT_MS
    BROWSER_SCROLL_AMOUNT: int = DEFAULT_SCROLL_AMOUNT

    # LLM backend
    LLM_PROVIDER: LlmProvider = LlmProvider.OPENAI
    LLM_MODEL: Optional[str] = None
    LLM_BASE_URL: Optional[str] = None
    LLM_TIMEOUT: int = 120
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 4096
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""

    # Workflow storage
    ACTIONS_DIR: str = "./actions"
    WORKFLOWS_DIR: str = "./workflows"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    def llm_config(self):
        """Build the default LLM configuration for new runs."""
        from workflow.models import LlmConfig

        return LlmConfig(
            provider=self.LLM_PROVIDER,
            model=self.LLM_MODEL,
            base_url=self.LLM_BASE_URL,
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings.

    Uses caching to ensure settings are loaded only once.

    Returns:
        Settings object with all configuration values
    """
    return Settings()
