"""Tests for the LLM HTTP client, using httpx.MockTransport."""

import json

import httpx
import pytest

from core.constants import LlmProvider
from core.exceptions import LLMError
from integrations.llm_client import ANTHROPIC_URL, OLLAMA_URL, OPENAI_URL, LLMClient
from workflow.models import LlmConfig


def _client(handler, **settings_overrides) -> LLMClient:
    client = LLMClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    client.settings = client.settings.model_copy(
        update={"OPENAI_API_KEY": "", "ANTHROPIC_API_KEY": "", **settings_overrides}
    )
    return client


class Recorder:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def body(self):
        return json.loads(self.requests[-1].content)


@pytest.mark.unit
class TestOpenAI:

    @pytest.mark.asyncio
    async def test_generate(self):
        recorder = Recorder({"choices": [{"message": {"content": "hello"}}]})
        client = _client(recorder)

        text = await client.generate("hi", LlmConfig(api_key="sk-test"))

        assert text == "hello"
        request = recorder.requests[0]
        assert str(request.url) == OPENAI_URL
        assert request.headers["authorization"] == "Bearer sk-test"
        assert recorder.body["model"] == "gpt-4o-mini"
        assert recorder.body["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_key_from_settings_and_custom_endpoint(self):
        recorder = Recorder({"choices": [{"message": {"content": "ok"}}]})
        client = _client(recorder, OPENAI_API_KEY="sk-env")
        config = LlmConfig(model="local-model", base_url="http://localhost:8000/v1/chat/completions")

        await client.generate("hi", config)

        assert str(recorder.requests[0].url) == "http://localhost:8000/v1/chat/completions"
        assert recorder.requests[0].headers["authorization"] == "Bearer sk-env"
        assert recorder.body["model"] == "local-model"

    @pytest.mark.asyncio
    async def test_missing_key(self):
        recorder = Recorder({})
        client = _client(recorder)
        with pytest.raises(LLMError, match="OpenAI API key not configured"):
            await client.generate("hi", LlmConfig())
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        client = _client(Recorder({"choices": []}))
        assert await client.generate("hi", LlmConfig(api_key="k")) == ""

    @pytest.mark.asyncio
    async def test_error_status(self):
        client = _client(Recorder({"error": "quota"}, status_code=429))
        with pytest.raises(LLMError, match="OpenAI API error"):
            await client.generate("hi", LlmConfig(api_key="k"))


@pytest.mark.unit
class TestAnthropic:

    @pytest.mark.asyncio
    async def test_generate(self):
        recorder = Recorder({"content": [{"type": "text", "text": "bonjour"}]})
        client = _client(recorder)

        text = await client.generate("hi", LlmConfig(provider=LlmProvider.ANTHROPIC, api_key="ak"))

        assert text == "bonjour"
        request = recorder.requests[0]
        assert str(request.url) == ANTHROPIC_URL
        assert request.headers["x-api-key"] == "ak"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert recorder.body["max_tokens"] == 4096

    @pytest.mark.asyncio
    async def test_missing_key(self):
        client = _client(Recorder({}))
        with pytest.raises(LLMError, match="Anthropic API key not configured"):
            await client.generate("hi", LlmConfig(provider="anthropic"))

    @pytest.mark.asyncio
    async def test_no_text_block(self):
        client = _client(Recorder({"content": [{"type": "tool_use"}]}))
        assert await client.generate("hi", LlmConfig(provider="anthropic", api_key="ak")) == ""


@pytest.mark.unit
class TestOllama:

    @pytest.mark.asyncio
    async def test_generate_without_key(self):
        recorder = Recorder({"response": "local answer"})
        client = _client(recorder)

        text = await client.generate("hi", LlmConfig(provider="ollama", model="llama3"))

        assert text == "local answer"
        assert str(recorder.requests[0].url) == OLLAMA_URL
        assert recorder.body == {"model": "llama3", "prompt": "hi", "stream": False}

    @pytest.mark.asyncio
    async def test_error_status(self):
        client = _client(Recorder({"error": "model not found"}, status_code=404))
        with pytest.raises(LLMError, match="Ollama API error"):
            await client.generate("hi", LlmConfig(provider="ollama"))

    @pytest.mark.asyncio
    async def test_transport_error_is_not_wrapped(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(refuse)
        with pytest.raises(httpx.ConnectError):
            await client.generate("hi", LlmConfig(provider="ollama"))


@pytest.mark.unit
class TestLifecycle:

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client_open(self):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(Recorder({})))
        client = LLMClient(http_client=http_client)
        await client.close()
        assert not http_client.is_closed
        await http_client.aclose()
