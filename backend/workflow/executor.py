"""Workflow Executor: the step-sequence runner and the workflow runner.

Takes a parsed workflow and runs its steps strictly in order against an
ExecutionContext, handling:

- Automatic per-step retry with linear backoff (500ms, 1000ms, 1500ms)
- Cancellation checkpoints before every step and every retry attempt
- ``control.stop`` as successful early termination
- Nested workflow calls (re-entered through ``execute_workflow``)
- Event emission: workflow_start / step_start / step_end / log / error /
  workflow_end, pushed to the context's sink as they happen

Control flow:
    run() → execute_workflow() → execute_steps() → execute_step_with_retry()
          → StepDispatcher → step handler
    control.if / control.retry re-enter execute_steps();
    workflow.call re-enters execute_workflow() with a child context.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from app.config import Settings, get_settings
from core.constants import CANCELLED_MESSAGE, CANCELLED_RUN_MESSAGE, EventType, RunStatus
from core.exceptions import WorkflowCancelled, WorkflowStopped
from steps.registry import StepRegistry, get_step_registry
from workflow.context import EventCallback, ExecutionContext
from workflow.dispatcher import StepDispatcher
from workflow.events import (
    ErrorEvent,
    StepEndEvent,
    StepStartEvent,
    WorkflowEndEvent,
    WorkflowEvent,
    WorkflowStartEvent,
)
from workflow.models import LlmConfig, Workflow, count_steps
from workflow.retry_strategies import RetryStrategy

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


def is_cancellation(error: Optional[BaseException]) -> bool:
    """True if ``error`` is a cancellation, directly or wrapped by nested calls."""
    seen = set()
    while error is not None and id(error) not in seen:
        if isinstance(error, WorkflowCancelled):
            return True
        seen.add(id(error))
        error = getattr(error, "cause", None) or error.__cause__
    return False


# ─── Run Result ───────────────────────────────────────────────

@dataclass
class RunResult:
    """Terminal classification and record of one top-level run."""
    run_id: str
    workflow_id: str
    workflow_title: str
    status: RunStatus
    started_at: str
    duration_ms: int
    message: Optional[str] = None
    output_message: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)
    events: List[WorkflowEvent] = field(default_factory=list)
    workflow_version: Optional[str] = None
    triggered_by: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == RunStatus.SUCCESS

    @property
    def failure_step(self) -> Optional[int]:
        """Index of the failed top-level step, if any."""
        for event in reversed(self.events):
            if event.type == EventType.STEP_END and event.depth == 0 and not event.success:
                return event.step_index
        return None

    def to_dict(self) -> dict:
        """Run log shape: metadata, events, params, output_message."""
        metadata = {
            "id": self.run_id,
            "workflow_id": self.workflow_id,
            "workflow_title": self.workflow_title,
            "timestamp": self.started_at,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "event_count": len(self.events),
            "workflow_version": self.workflow_version,
            "triggered_by": self.triggered_by,
            "failure_step": self.failure_step,
        }
        data = {
            "metadata": {k: v for k, v in metadata.items() if v is not None},
            "events": [event.to_dict() for event in self.events],
            "params": dict(self.params),
        }
        if self.output_message is not None:
            data["output_message"] = self.output_message
        return data


# ─── Executor ─────────────────────────────────────────────────

class WorkflowExecutor:
    """Runs workflows and step sequences.

    One executor can serve many concurrent runs; all per-run state lives in
    the ExecutionContext. ``sleep`` is the coroutine used for every timed
    delay (retry backoff, retry-block delay, fixed waits, terminal settle).
    """

    def __init__(
        self,
        registry: Optional[StepRegistry] = None,
        settings: Optional[Settings] = None,
        sleep: Optional[SleepFunc] = None,
        max_depth: Optional[int] = None,
        step_retry: Optional[RetryStrategy] = None,
    ):
        self.settings = settings or get_settings()
        self.max_depth = max_depth if max_depth is not None else self.settings.MAX_WORKFLOW_DEPTH
        self.step_retry = step_retry or RetryStrategy.for_steps(
            max_retries=self.settings.STEP_MAX_RETRIES,
            base_delay_ms=self.settings.STEP_RETRY_BASE_DELAY_MS,
        )
        self.sleep: SleepFunc = sleep or asyncio.sleep
        self._dispatcher = StepDispatcher(registry or get_step_registry(), self)
        self._running_executions: Dict[str, Dict[str, Any]] = {}

    @property
    def dispatcher(self) -> StepDispatcher:
        return self._dispatcher

    # ─── Step sequence ────────────────────────────────────────

    async def execute_steps(self, steps: Sequence[Any], ctx: ExecutionContext) -> None:
        """Run steps in order.

        Returns normally when every step succeeded.

        Raises:
            WorkflowStopped: a step stopped the workflow (success)
            WorkflowCancelled: cancellation observed before a step
            Exception: the failing step's error, after its retries
        """
        for index, step in enumerate(steps):
            if ctx.is_cancelled():
                ctx.emit_log("warn", CANCELLED_MESSAGE)
                raise WorkflowCancelled()

            depth = ctx.current_depth
            ctx.emit_event(StepStartEvent(
                depth=depth,
                step_index=index,
                step_type=step.type,
                step_details=self.describe_step(step, ctx),
            ))

            ctx.last_step_result = None
            stopped: Optional[WorkflowStopped] = None
            error: Optional[Exception] = None

            try:
                await self.execute_step_with_retry(step, ctx, index)
            except WorkflowStopped as e:
                stopped = e
            except Exception as e:
                error = e

            if stopped is not None:
                message = stopped.message
            elif error is not None:
                message = str(error)
            else:
                message = None

            ctx.emit_event(StepEndEvent(
                depth=depth,
                step_index=index,
                success=error is None,
                message=message,
                result=ctx.last_step_result,
            ))

            if error is not None:
                logger.info(
                    "Step failed",
                    run_id=ctx.run_id,
                    step_index=index,
                    step_type=step.type,
                    depth=depth,
                    error=message,
                )
                raise error

            if stopped is not None:
                raise stopped

    async def execute_step_with_retry(self, step: Any, ctx: ExecutionContext, index: int) -> None:
        """Run one step, retrying transient failures with linear backoff.

        if/retry/workflow.call are dispatched once; they own their repetition.
        """
        if self._dispatcher.has_own_retry_logic(step):
            await self._dispatcher.execute_step(step, ctx)
            return

        strategy = self.step_retry
        attempt = 0

        while True:
            if ctx.is_cancelled():
                raise WorkflowCancelled()

            try:
                await self._dispatcher.execute_step(step, ctx)
                return
            except Exception as e:
                attempt += 1
                if not strategy.should_retry(attempt, e):
                    raise

                delay = strategy.compute_delay(attempt)
                ctx.emit_log(
                    "warn",
                    f"Step {index + 1} failed, retrying in {int(round(delay * 1000))}ms "
                    f"(attempt {attempt}/{strategy.max_retries})",
                )
                await self.sleep(delay)

    def describe_step(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        """Short rendering of a step's primary argument for step_start."""
        return self._dispatcher.describe(step, ctx)

    # ─── Workflow ─────────────────────────────────────────────

    async def execute_workflow(self, workflow: Workflow, ctx: ExecutionContext) -> None:
        """Run a workflow at the context's depth with lifecycle events.

        Returns normally on success, including an early stop. Re-raises the
        failure otherwise, so nested callers see the exception.
        """
        if ctx.is_cancelled():
            raise WorkflowCancelled()

        depth = ctx.current_depth
        if depth == 0 and not ctx.call_stack:
            ctx.call_stack.append(workflow.id)

        ctx.emit_event(WorkflowStartEvent(
            depth=depth,
            action_id=workflow.id,
            action_title=workflow.title,
            run_id=ctx.run_id if depth == 0 else None,
        ))

        if depth == 0 and ctx.browser is not None and self._dispatcher.has_browser_steps(workflow.steps):
            try:
                await ctx.browser.focus()
            except Exception as e:
                logger.warning("Failed to focus browser tab", run_id=ctx.run_id, error=str(e))
                ctx.emit_log("warn", f"Failed to focus browser tab: {e}")

        success = True
        message: Optional[str] = None
        failure: Optional[Exception] = None

        try:
            await self.execute_steps(workflow.steps, ctx)
        except WorkflowStopped as e:
            message = e.message
            ctx.output_message = e.message
        except Exception as e:
            failure = e
            success = False
            if is_cancellation(e):
                message = CANCELLED_RUN_MESSAGE
            else:
                message = str(e)
                ctx.emit_event(ErrorEvent(depth=depth, message=message))

        ctx.emit_event(WorkflowEndEvent(
            depth=depth,
            action_id=workflow.id,
            success=success,
            message=message,
        ))

        if failure is not None:
            raise failure

    # ─── Top-level runs ───────────────────────────────────────

    @staticmethod
    def generate_run_id(workflow_id: str) -> str:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        return f"{workflow_id}_{stamp}_{uuid.uuid4().hex[:6]}"

    async def run(
        self,
        workflow: Workflow,
        params: Optional[Dict[str, str]] = None,
        *,
        browser=None,
        llm_client=None,
        llm_config: Optional[LlmConfig] = None,
        actions_registry: Optional[List[Workflow]] = None,
        workflows_registry: Optional[List[Workflow]] = None,
        user_contexts: Optional[List[str]] = None,
        repos: Optional[Dict[str, str]] = None,
        on_event: Optional[EventCallback] = None,
        run_id: Optional[str] = None,
        triggered_by: Optional[str] = None,
    ) -> RunResult:
        """Run a workflow from the top and classify the outcome.

        Never raises for workflow failures; the result carries the status.

        Args:
            workflow: Parsed workflow definition
            params: Top-level parameters
            browser: Browser transport for browser.* steps
            llm_client: Client for llm.* steps (defaults to the shared one)
            llm_config: Provider selection (defaults from settings)
            actions_registry: User-authored workflows for workflow.call
            workflows_registry: Published workflows for workflow.call
            user_contexts: Instructions prepended to LLM prompts
            repos: org/repo -> local path for {{_repo:org/repo}}
            on_event: Sink receiving every event as it is emitted
            run_id: Explicit run id (generated when omitted)
            triggered_by: Free-form origin label stored on the result

        Returns:
            RunResult with status, messages and the captured events
        """
        params = dict(params or {})
        run_id = run_id or self.generate_run_id(workflow.id)

        ctx = ExecutionContext(
            run_id,
            params=params,
            browser=browser,
            llm_client=llm_client,
            llm_config=llm_config or self.settings.llm_config(),
            actions_registry=actions_registry,
            workflows_registry=workflows_registry,
            user_contexts=user_contexts,
            repos=repos,
            env_prefix=self.settings.ENV_PARAM_PREFIX,
        )
        ctx.on_event(on_event)
        ctx.call_stack.append(workflow.id)

        started_at = datetime.now(timezone.utc).isoformat()
        start = time.monotonic()

        self._running_executions[run_id] = {
            "context": ctx,
            "info": {
                "run_id": run_id,
                "workflow_id": workflow.id,
                "workflow_title": workflow.title,
                "started_at": started_at,
                "params": params,
            },
        }

        log = logger.bind(run_id=run_id, workflow_id=workflow.id)
        log.info("Workflow run started", step_count=count_steps(workflow.steps))

        status = RunStatus.SUCCESS
        message: Optional[str] = None

        try:
            await self.execute_workflow(workflow, ctx)
            message = ctx.output_message
        except Exception as e:
            if is_cancellation(e):
                status = RunStatus.CANCELLED
                message = CANCELLED_RUN_MESSAGE
            else:
                status = RunStatus.FAILED
                message = str(e)
        finally:
            self._running_executions.pop(run_id, None)

        duration_ms = int((time.monotonic() - start) * 1000)
        log.info("Workflow run finished", status=status.value, duration_ms=duration_ms, message=message)

        return RunResult(
            run_id=run_id,
            workflow_id=workflow.id,
            workflow_title=workflow.title,
            status=status,
            started_at=started_at,
            duration_ms=duration_ms,
            message=message,
            output_message=ctx.output_message,
            params=params,
            events=list(ctx.captured_events),
            workflow_version=workflow.version,
            triggered_by=triggered_by,
        )

    def cancel_execution(self, run_id: str) -> bool:
        """Cancel a running execution.

        Args:
            run_id: ID of the run to cancel

        Returns:
            True if cancelled, False if not found
        """
        entry = self._running_executions.get(run_id)
        if entry:
            entry["context"].cancel()
            logger.info("Execution marked for cancellation", run_id=run_id)
            return True
        return False

    def get_running_executions(self) -> Dict[str, dict]:
        """Get status of all running executions."""
        return {
            run_id: {
                **entry["info"],
                "depth": entry["context"].current_depth,
                "event_count": len(entry["context"].captured_events),
                "cancelled": entry["context"].is_cancelled(),
            }
            for run_id, entry in self._running_executions.items()
        }


# ─── Singleton ─────────────────────────────────────────────────

_executor: Optional[WorkflowExecutor] = None


def get_workflow_executor() -> WorkflowExecutor:
    """Get or create the singleton WorkflowExecutor."""
    global _executor
    if _executor is None:
        _executor = WorkflowExecutor()
    return _executor
