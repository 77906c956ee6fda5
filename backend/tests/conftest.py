"""Shared pytest fixtures for the workflow engine test suite.

Provides:
- A fake browser transport that records every call
- A fake LLM client with scripted responses
- A recording sleep so retry/backoff delays are observable and instant
- An executor wired to the fakes, plus context and workflow builders
"""

import os
from typing import Any, Callable, Dict, List, Optional

import pytest

# Override settings BEFORE any app imports
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from integrations.browser_client import BrowserClient  # noqa: E402
from workflow.context import ExecutionContext  # noqa: E402
from workflow.executor import WorkflowExecutor  # noqa: E402
from workflow.models import LlmConfig, Workflow  # noqa: E402


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeBrowserClient(BrowserClient):
    """In-memory browser transport.

    ``texts`` maps selectors to extracted text, ``present`` is the set of
    selectors that exist, and ``failures`` maps selectors to the number of
    times an action on them should raise before succeeding.
    """

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.calls: List[tuple] = []
        self.texts: Dict[str, str] = {}
        self.present: set = set()
        self.failures: Dict[str, int] = {}
        self.focus_error: Optional[Exception] = None

    def _maybe_fail(self, selector: str) -> None:
        remaining = self.failures.get(selector, 0)
        if remaining > 0:
            self.failures[selector] = remaining - 1
            raise RuntimeError(f"Element not found: {selector}")

    async def is_connected(self) -> bool:
        return self.connected

    async def navigate(self, url: str) -> None:
        self.calls.append(("navigate", url))

    async def click(self, selector: str) -> None:
        self.calls.append(("click", selector))
        self._maybe_fail(selector)

    async def type_text(self, selector: str, text: str, submit: bool) -> None:
        self.calls.append(("type", selector, text, submit))
        self._maybe_fail(selector)

    async def scroll(self, direction: str, amount: int) -> None:
        self.calls.append(("scroll", direction, amount))

    async def extract(self, selector: str) -> str:
        self.calls.append(("extract", selector))
        self._maybe_fail(selector)
        return self.texts.get(selector, "")

    async def extract_all(self, selector: str, separator: str) -> str:
        self.calls.append(("extract_all", selector, separator))
        value = self.texts.get(selector, "")
        if isinstance(value, list):
            return separator.join(value)
        return value

    async def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        self.calls.append(("wait", selector, timeout_ms))
        self._maybe_fail(selector)

    async def exists(self, selector: str, timeout_ms: int) -> bool:
        self.calls.append(("exists", selector, timeout_ms))
        return selector in self.present

    async def hover(self, selector: str) -> None:
        self.calls.append(("hover", selector))

    async def press_key(self, key: str, selector: Optional[str] = None) -> None:
        self.calls.append(("key", key, selector))

    async def focus(self) -> None:
        self.calls.append(("focus",))
        if self.focus_error is not None:
            raise self.focus_error


class FakeLLMClient:
    """LLM client returning scripted responses and recording prompts."""

    def __init__(self, responses: Optional[List[Any]] = None, default: str = "ok"):
        self.responses = list(responses or [])
        self.default = default
        self.prompts: List[str] = []
        self.configs: List[LlmConfig] = []

    async def generate(self, prompt: str, config: LlmConfig) -> str:
        self.prompts.append(prompt)
        self.configs.append(config)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, BaseException):
                raise response
            return response
        return self.default


class RecordingSleep:
    """Drop-in for asyncio.sleep that records delays (seconds) without waiting."""

    def __init__(self, on_sleep: Optional[Callable[[float], None]] = None):
        self.delays: List[float] = []
        self.on_sleep = on_sleep

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.on_sleep is not None:
            self.on_sleep(delay)

    @property
    def delays_ms(self) -> List[int]:
        return [int(round(d * 1000)) for d in self.delays]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def executor(sleep) -> WorkflowExecutor:
    return WorkflowExecutor(sleep=sleep)


@pytest.fixture
def browser() -> FakeBrowserClient:
    return FakeBrowserClient()


@pytest.fixture
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def make_context(browser, llm):
    """Build a root ExecutionContext wired to the fakes."""

    def _make(run_id: str = "run-1", **kwargs) -> ExecutionContext:
        kwargs.setdefault("browser", browser)
        kwargs.setdefault("llm_client", llm)
        return ExecutionContext(run_id, **kwargs)

    return _make


@pytest.fixture
def make_workflow():
    """Build a Workflow from plain step dicts, as YAML would produce them."""

    def _make(workflow_id: str, steps: List[dict], title: Optional[str] = None, **extra) -> Workflow:
        return Workflow.model_validate({
            "id": workflow_id,
            "title": title or workflow_id.replace("_", " ").title(),
            "steps": steps,
            **extra,
        })

    return _make


@pytest.fixture
def event_types():
    """Flatten captured events to (type, depth) pairs."""

    def _types(events) -> List[tuple]:
        return [(e.type.value, e.depth) for e in events]

    return _types


@pytest.fixture
def make_sleep():
    """Build a RecordingSleep, optionally with a side effect per delay."""
    return RecordingSleep
