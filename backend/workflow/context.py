"""Execution context for workflow runs.

One context is created per top-level run and a fresh child context is
derived for every nested ``workflow.call``. Contexts in one tree share the
browser transport, LLM client, workflow registries and a single
``CancellationToken``; configuration (LLM config, user contexts, repo paths,
call stack) is copied into children.
"""

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import structlog

from core.constants import ENV_PARAM_PREFIX, LogLevel
from workflow.events import LogEvent, WorkflowEvent
from workflow.interpolation import interpolate
from workflow.models import LlmConfig, Workflow

if TYPE_CHECKING:
    from integrations.browser_client import BrowserClient
    from integrations.llm_client import LLMClient

logger = structlog.get_logger(__name__)

EventCallback = Callable[[WorkflowEvent], None]


class CancellationToken:
    """Mutable cancellation cell shared by every context in a run tree."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


class ExecutionContext:
    """Mutable state for one workflow invocation level."""

    def __init__(
        self,
        run_id: str,
        *,
        params: Optional[Dict[str, str]] = None,
        browser: Optional["BrowserClient"] = None,
        llm_client: Optional["LLMClient"] = None,
        llm_config: Optional[LlmConfig] = None,
        actions_registry: Optional[List[Workflow]] = None,
        workflows_registry: Optional[List[Workflow]] = None,
        user_contexts: Optional[List[str]] = None,
        repos: Optional[Dict[str, str]] = None,
        cancellation: Optional[CancellationToken] = None,
        env_prefix: str = ENV_PARAM_PREFIX,
    ):
        self.run_id = run_id

        # Set by steps during execution
        self.variables: Dict[str, str] = {}
        # Supplied by the caller; read-only within this context
        self.params: Dict[str, str] = dict(params or {})

        self.browser = browser
        self.llm_client = llm_client
        self.llm_config = llm_config or LlmConfig()

        # User-authored workflows are searched before published ones
        self.actions_registry: List[Workflow] = actions_registry if actions_registry is not None else []
        self.workflows_registry: List[Workflow] = workflows_registry if workflows_registry is not None else []

        # 0 = top-level workflow
        self.current_depth = 0
        # Workflow ids currently executing, for circular call detection
        self.call_stack: List[str] = []

        self.terminal_active = False
        self.last_step_result: Optional[str] = None
        self.captured_events: List[WorkflowEvent] = []
        self.cancellation = cancellation or CancellationToken()

        # Prepended to LLM prompts
        self.user_contexts: List[str] = list(user_contexts or [])
        # org/repo -> local path, for {{_repo:org/repo}}
        self.repos: Dict[str, str] = dict(repos or {})

        # Set by control.stop
        self.output_message: Optional[str] = None

        self.env_prefix = env_prefix
        self._event_callback: Optional[EventCallback] = None

    # ─── Events ───────────────────────────────────────────────

    def on_event(self, callback: Optional[EventCallback]) -> None:
        """Register the push sink invoked synchronously for every event."""
        self._event_callback = callback

    def emit_event(self, event: WorkflowEvent) -> None:
        """Append to the capture log and forward to the sink, if any."""
        self.captured_events.append(event)
        if self._event_callback is not None:
            self._event_callback(event)

    def emit_log(self, level: str, message: str) -> None:
        """Emit a log event at the current depth."""
        if isinstance(level, LogLevel):
            level = level.value
        self.emit_event(LogEvent(depth=self.current_depth, level=level, message=message))
        logger.debug("Workflow log", run_id=self.run_id, depth=self.current_depth, level=level, message=message)

    def merge_child_events(self, child: "ExecutionContext") -> None:
        """Append a finished or failed child's captured events as one contiguous batch."""
        self.captured_events.extend(child.captured_events)

    # ─── Cancellation ─────────────────────────────────────────

    def is_cancelled(self) -> bool:
        return self.cancellation.is_cancelled

    def cancel(self) -> None:
        """Request cancellation for the whole context tree."""
        self.cancellation.cancel()

    # ─── Scoping ──────────────────────────────────────────────

    def create_child_context(self) -> "ExecutionContext":
        """Derive a context for a nested workflow call.

        Only ``env.``-prefixed params flow down; variables and ordinary
        params stay with the parent. The caller pushes the target id onto
        the child's call stack.
        """
        child = ExecutionContext(
            self.run_id,
            params={k: v for k, v in self.params.items() if k.startswith(self.env_prefix)},
            browser=self.browser,
            llm_client=self.llm_client,
            llm_config=self.llm_config.model_copy(),
            actions_registry=self.actions_registry,
            workflows_registry=self.workflows_registry,
            user_contexts=self.user_contexts,
            repos=self.repos,
            cancellation=self.cancellation,
            env_prefix=self.env_prefix,
        )
        child.current_depth = self.current_depth + 1
        child.call_stack = list(self.call_stack)
        child.terminal_active = self.terminal_active
        child._event_callback = self._event_callback
        return child

    def find_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Look up a workflow by exact id, user-authored registry first."""
        for registry in (self.actions_registry, self.workflows_registry):
            for workflow in registry:
                if workflow.id == workflow_id:
                    return workflow
        return None

    # ─── Variables ────────────────────────────────────────────

    def set_variable(self, key: str, value: str) -> None:
        """Set a workflow variable."""
        self.variables[key] = value

    def get_variable(self, key: str, default: Any = None) -> Any:
        """Get a workflow variable."""
        return self.variables.get(key, default)

    def interpolate(self, text: str) -> str:
        """Resolve ``{{name}}`` and ``{{_repo:org/repo}}`` placeholders."""
        return interpolate(text, self.variables, self.params, self.repos)

    def to_dict(self) -> dict:
        """Snapshot of the scoped state, for run logs and debugging."""
        return {
            "run_id": self.run_id,
            "depth": self.current_depth,
            "call_stack": list(self.call_stack),
            "variables": dict(self.variables),
            "params": dict(self.params),
            "cancelled": self.is_cancelled(),
            "output_message": self.output_message,
            "event_count": len(self.captured_events),
        }
