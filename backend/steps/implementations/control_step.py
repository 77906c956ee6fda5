"""
Control flow steps: control.if, control.retry, control.stop.

``if`` and ``retry`` re-enter the executor's step sequence runner with
their embedded step lists, so they own their repetition and branching and
are never wrapped by the automatic per-step retry.
"""

from typing import Any, Dict, Optional, Type

import structlog

from core.exceptions import RetryExhaustedError, WorkflowCancelled, WorkflowStopped
from steps.base_step import BaseStep
from workflow.context import ExecutionContext
from workflow.interpolation import evaluate_condition
from workflow.retry_strategies import RetryStrategy

logger = structlog.get_logger(__name__)


class IfControlStep(BaseStep):
    """
    Conditional branch.

    The condition is interpolated, then evaluated as ``a == b``, ``a != b``
    or plain truthiness. The ``then`` list runs on true, ``else_steps`` (if
    any) on false.
    """

    step_type = "control.if"
    display_name = "If"
    description = "Run one of two step lists depending on a condition"
    owns_control_flow = True

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        condition = ctx.interpolate(step.condition)
        is_true = evaluate_condition(condition)

        ctx.emit_log("info", f"Condition '{condition}' = {'true' if is_true else 'false'}")

        if is_true:
            await self.executor.execute_steps(step.then, ctx)
        elif step.else_steps:
            await self.executor.execute_steps(step.else_steps, ctx)


class RetryControlStep(BaseStep):
    """
    Retry block.

    Runs the embedded steps up to ``max_attempts`` times with a fixed delay
    between attempts. Stop and cancellation end the block immediately;
    any other failure is retried, and the last one is raised once attempts
    run out.
    """

    step_type = "control.retry"
    display_name = "Retry"
    description = "Retry a block of steps with a fixed delay"
    owns_control_flow = True

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        strategy = RetryStrategy.for_retry_block(
            max_attempts=step.max_attempts if step.max_attempts is not None else self.settings.RETRY_BLOCK_MAX_ATTEMPTS,
            delay_ms=step.delay_ms if step.delay_ms is not None else self.settings.RETRY_BLOCK_DELAY_MS,
        )
        max_attempts = strategy.max_attempts
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            ctx.emit_log("info", f"Retry attempt {attempt}/{max_attempts}")

            try:
                await self.executor.execute_steps(step.steps, ctx)
                return
            except (WorkflowStopped, WorkflowCancelled):
                raise
            except Exception as e:
                last_error = e
                logger.debug(
                    "Retry block attempt failed",
                    run_id=ctx.run_id,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error=str(e),
                )
                if attempt < max_attempts:
                    await self.executor.sleep(strategy.compute_delay(attempt))

        if last_error is not None:
            raise last_error
        raise RetryExhaustedError()


class StopControlStep(BaseStep):
    """End the workflow early, successfully, with an optional message."""

    step_type = "control.stop"
    display_name = "Stop"
    description = "Stop the workflow successfully"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        message = ctx.interpolate(step.message) if step.message else None
        ctx.emit_log("info", message or "Workflow stopped")

        ctx.output_message = message

        if message:
            raise WorkflowStopped(message)
        raise WorkflowStopped()


CONTROL_STEP_TYPES: Dict[str, Type[BaseStep]] = {
    "control.if": IfControlStep,
    "control.retry": RetryControlStep,
    "control.stop": StopControlStep,
}
