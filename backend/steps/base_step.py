"""
Base step interface for all workflow step handlers.

Every step kind (browser.click, llm.generate, control.if, ...) is handled by
a BaseStep subclass that implements execute(). Handlers signal failure by
raising; a WorkflowError subclass carries the classification that decides
whether the step runner retries it.
"""

import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

import structlog

from workflow.context import ExecutionContext

if TYPE_CHECKING:
    from workflow.executor import WorkflowExecutor

logger = structlog.get_logger(__name__)


class BaseStep(ABC):
    """
    Abstract base class for all step handlers.

    Subclasses must implement:
    - execute(step, ctx)
    - step_type (class property)
    - display_name (class property)

    Handlers are built with the executor that owns them, so control-flow
    handlers can re-enter the step sequence and workflow runners.
    """

    step_type: str = "base"
    display_name: str = "Base Step"
    description: str = "Abstract base step"
    # control.if / control.retry / workflow.call manage their own repetition
    owns_control_flow: bool = False

    def __init__(self, executor: "WorkflowExecutor"):
        self.executor = executor

    @property
    def settings(self):
        return self.executor.settings

    @abstractmethod
    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        """
        Execute the step against the context.

        Args:
            step: The step definition (a workflow.models step)
            ctx: Execution context of the current invocation level

        Raises:
            WorkflowError or any exception on failure
        """
        pass

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        """Short human-readable rendering of the step's primary argument."""
        return None

    async def run(self, step: Any, ctx: ExecutionContext) -> None:
        """
        Run the step with timing and debug logging.

        This is the entry point called by the dispatcher. Errors propagate.
        """
        start = time.monotonic()
        log = logger.bind(step_type=self.step_type, run_id=ctx.run_id, depth=ctx.current_depth)
        log.debug("Step starting")
        try:
            await self.execute(step, ctx)
        except Exception as e:
            log.debug(
                "Step raised",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            raise
        log.debug("Step completed", duration_ms=round((time.monotonic() - start) * 1000, 2))
