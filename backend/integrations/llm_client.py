"""
LLM client: text generation over OpenAI-compatible, Anthropic and Ollama APIs.

One ``generate(prompt, config)`` entry point; the config selects the
provider, model, key and endpoint. Configuration problems and provider error
responses raise ``LLMError`` (never retried by the step runner). Transport
failures (connection refused, timeouts) propagate as httpx errors and are
retried like any other transient step failure.
"""

import time
from typing import Any, Dict, Optional

import httpx
import structlog

from app.config import get_settings
from core.constants import LlmProvider
from core.exceptions import LLMError
from workflow.models import LlmConfig

logger = structlog.get_logger(__name__)


OPENAI_URL = "https://api.openai.com/v1/chat/completions"
OPENAI_MODEL = "gpt-4o-mini"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_MODEL = "claude-3-haiku-20240307"
ANTHROPIC_VERSION = "2023-06-01"
OLLAMA_URL = "http://localhost:11434/api/generate"
OLLAMA_MODEL = "llama2"


class LLMClient:
    """
    Async LLM client with a pooled httpx connection.

    Usage:
        client = get_llm_client()
        text = await client.generate("Say hi", LlmConfig(provider="anthropic"))
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = get_settings()
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=10.0,
                    read=float(self.settings.LLM_TIMEOUT),
                    write=30.0,
                    pool=10.0,
                ),
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def generate(self, prompt: str, config: LlmConfig) -> str:
        """Generate text for a prompt with the configured provider.

        Raises:
            LLMError: Missing API key, unknown provider, or non-2xx response
        """
        provider = config.provider
        start = time.monotonic()

        if provider == LlmProvider.OPENAI:
            text = await self._openai(prompt, config)
        elif provider == LlmProvider.ANTHROPIC:
            text = await self._anthropic(prompt, config)
        elif provider == LlmProvider.OLLAMA:
            text = await self._ollama(prompt, config)
        else:
            raise LLMError(f"Unknown LLM provider: {provider}")

        logger.info(
            "LLM generation completed",
            provider=LlmProvider(provider).value,
            prompt_chars=len(prompt),
            response_chars=len(text),
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return text

    async def _post(self, provider_name: str, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> Any:
        response = await self._get_client().post(url, headers=headers, json=body)
        if response.status_code >= 400:
            logger.warning(
                "LLM provider returned an error",
                provider=provider_name,
                status_code=response.status_code,
            )
            raise LLMError(f"{provider_name} API error: {response.text}")
        return response.json()

    async def _openai(self, prompt: str, config: LlmConfig) -> str:
        api_key = config.api_key or self.settings.OPENAI_API_KEY
        if not api_key:
            raise LLMError("OpenAI API key not configured")

        data = await self._post(
            "OpenAI",
            config.base_url or OPENAI_URL,
            {"Authorization": f"Bearer {api_key}"},
            {
                "model": config.model or OPENAI_MODEL,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self.settings.LLM_TEMPERATURE,
            },
        )
        choices = data.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""

    async def _anthropic(self, prompt: str, config: LlmConfig) -> str:
        api_key = config.api_key or self.settings.ANTHROPIC_API_KEY
        if not api_key:
            raise LLMError("Anthropic API key not configured")

        data = await self._post(
            "Anthropic",
            config.base_url or ANTHROPIC_URL,
            {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION},
            {
                "model": config.model or ANTHROPIC_MODEL,
                "max_tokens": self.settings.LLM_MAX_TOKENS,
                "messages": [{"role": "user", "content": prompt}],
            },
        )
        for block in data.get("content") or []:
            if block.get("type") == "text":
                return block.get("text") or ""
        return ""

    async def _ollama(self, prompt: str, config: LlmConfig) -> str:
        data = await self._post(
            "Ollama",
            config.base_url or OLLAMA_URL,
            {},
            {
                "model": config.model or OLLAMA_MODEL,
                "prompt": prompt,
                "stream": False,
            },
        )
        return data.get("response") or ""


# Singleton
_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create the singleton LLM client."""
    global _client
    if _client is None:
        _client = LLMClient()
    return _client
