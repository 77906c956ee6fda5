"""
Step type registry: central registry for all workflow step handlers.

Maintains a mapping of step kind strings (``browser.click``,
``control.retry``, ...) to their handler classes.
"""

from typing import TYPE_CHECKING, Dict, Optional, Type

from steps.base_step import BaseStep
from steps.implementations.browser_step import BROWSER_STEP_TYPES
from steps.implementations.control_step import CONTROL_STEP_TYPES
from steps.implementations.data_step import DATA_STEP_TYPES
from steps.implementations.llm_step import LLM_STEP_TYPES
from steps.implementations.shell_step import SHELL_STEP_TYPES
from steps.implementations.workflow_call_step import WORKFLOW_STEP_TYPES

if TYPE_CHECKING:
    from workflow.executor import WorkflowExecutor


class StepRegistry:
    """Central registry for all step handler implementations."""

    def __init__(self):
        self._steps: Dict[str, Type[BaseStep]] = {}
        self._register_builtin_steps()

    def _register_builtin_steps(self):
        """Register all built-in step kinds."""
        # Browser automation (remote transport)
        for step_type, step_class in BROWSER_STEP_TYPES.items():
            self.register(step_type, step_class)

        # Shell & terminal
        for step_type, step_class in SHELL_STEP_TYPES.items():
            self.register(step_type, step_class)

        # LLM
        for step_type, step_class in LLM_STEP_TYPES.items():
            self.register(step_type, step_class)

        # Control flow
        for step_type, step_class in CONTROL_STEP_TYPES.items():
            self.register(step_type, step_class)

        # Nested workflows
        for step_type, step_class in WORKFLOW_STEP_TYPES.items():
            self.register(step_type, step_class)

        # Data & variables
        for step_type, step_class in DATA_STEP_TYPES.items():
            self.register(step_type, step_class)

    def register(self, step_type: str, step_class: Type[BaseStep]):
        """Register a new step kind."""
        self._steps[step_type] = step_class

    def get(self, step_type: str) -> Optional[Type[BaseStep]]:
        """Get a handler class by step kind."""
        return self._steps.get(step_type)

    def create_instance(self, step_type: str, executor: "WorkflowExecutor") -> Optional[BaseStep]:
        """Create a handler bound to an executor."""
        step_class = self.get(step_type)
        if step_class:
            return step_class(executor)
        return None

    def list_all(self) -> list:
        """List all registered step kinds with metadata."""
        return [
            {
                "step_type": step_type,
                "display_name": cls.display_name,
                "description": cls.description,
                "owns_control_flow": cls.owns_control_flow,
            }
            for step_type, cls in self._steps.items()
        ]

    @property
    def available_types(self) -> list:
        return list(self._steps.keys())


# Singleton
_registry: Optional[StepRegistry] = None


def get_step_registry() -> StepRegistry:
    """Get or create the singleton step registry."""
    global _registry
    if _registry is None:
        _registry = StepRegistry()
    return _registry
