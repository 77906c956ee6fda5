"""Step dispatch: routes a step to the handler registered for its kind."""

from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from core.exceptions import StepNotImplementedError
from steps.base_step import BaseStep
from steps.registry import StepRegistry
from workflow.context import ExecutionContext
from workflow.models import has_step_type

if TYPE_CHECKING:
    from workflow.executor import WorkflowExecutor

BROWSER_STEP_PREFIX = "browser."


class StepDispatcher:
    """Executes individual steps by delegating to step handlers.

    Handlers are instantiated once per kind and bound to the executor, so
    control-flow handlers can call back into the step sequence runner.
    """

    def __init__(self, registry: StepRegistry, executor: "WorkflowExecutor"):
        self._registry = registry
        self._executor = executor
        self._handlers: Dict[str, BaseStep] = {}

    def get_handler(self, step_type: str) -> Optional[BaseStep]:
        handler = self._handlers.get(step_type)
        if handler is None:
            handler = self._registry.create_instance(step_type, self._executor)
            if handler is not None:
                self._handlers[step_type] = handler
        return handler

    async def execute_step(self, step: Any, ctx: ExecutionContext) -> None:
        """Run one step through its handler.

        Raises:
            StepNotImplementedError: no handler is registered for the kind
        """
        handler = self.get_handler(step.type)
        if handler is None:
            raise StepNotImplementedError(f"Unknown step type: {step.type}")
        await handler.run(step, ctx)

    def has_own_retry_logic(self, step: Any) -> bool:
        """True for kinds that control their own repetition or branching."""
        step_class = self._registry.get(step.type)
        return bool(step_class and step_class.owns_control_flow)

    @staticmethod
    def has_browser_steps(steps: Sequence[Any]) -> bool:
        """True if any step in the tree (through if/retry bodies) is a browser step."""
        return has_step_type(steps, BROWSER_STEP_PREFIX)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        handler = self.get_handler(step.type)
        if handler is None:
            return None
        return handler.describe(step, ctx)
