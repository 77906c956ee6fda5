"""
Nested workflow call step (workflow.call).

Runs another workflow in a child context and folds its variables back into
the caller under a namespace:

    - type: workflow.call
      workflow: fetch_weather
      params:
        city: "{{city}}"
      as: weather
    # afterwards: {{weather.temperature}}

Guards, in order: recursion depth, circular call, target lookup. A failing
child is re-raised as NestedWorkflowError carrying the target id; a child
that stops early counts as a normal completion.
"""

from typing import Any, Dict, Optional, Type

import structlog

from core.exceptions import (
    CircularCallError,
    MaxDepthExceededError,
    NestedWorkflowError,
    WorkflowNotFoundError,
)
from steps.base_step import BaseStep
from workflow.context import ExecutionContext

logger = structlog.get_logger(__name__)


class CallWorkflowStep(BaseStep):
    step_type = "workflow.call"
    display_name = "Call Workflow"
    description = "Run another workflow with its own variable scope"
    owns_control_flow = True

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        target_id = step.workflow
        namespace = step.as_ or target_id
        max_depth = self.executor.max_depth

        if ctx.current_depth >= max_depth:
            call_path = " → ".join(ctx.call_stack)
            raise MaxDepthExceededError(
                f"Max recursion depth ({max_depth}) exceeded. Call stack: {call_path}"
            )

        if target_id in ctx.call_stack:
            call_path = " → ".join([*ctx.call_stack, target_id])
            raise CircularCallError(f"Circular workflow call detected: {call_path}")

        ctx.emit_log("info", f"Calling workflow: {target_id} (as: {namespace})")

        workflow = ctx.find_workflow(target_id)
        if workflow is None:
            raise WorkflowNotFoundError(target_id)

        child = ctx.create_child_context()
        child.call_stack.append(target_id)

        # Params are resolved in the caller's scope
        for key, value in (step.params or {}).items():
            child.params[key] = ctx.interpolate(value)

        log = logger.bind(run_id=ctx.run_id, workflow_id=target_id, depth=child.current_depth)
        log.debug("Nested workflow starting", params=list(child.params))

        try:
            await self.executor.execute_workflow(workflow, child)
        except Exception as e:
            # A failing child's events still belong in the caller's log
            ctx.merge_child_events(child)
            log.debug("Nested workflow failed", error=str(e))
            raise NestedWorkflowError(target_id, e) from e

        for name, value in child.variables.items():
            key = f"{namespace}.{name}"
            ctx.emit_log("info", f"Variable: {key} = {value}")
            ctx.set_variable(key, value)

        ctx.merge_child_events(child)
        ctx.emit_log("info", f"Completed workflow: {target_id}")

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        if not step.params:
            return step.workflow
        params = ", ".join(f"{k}={ctx.interpolate(v)}" for k, v in step.params.items())
        return f"{step.workflow} ({params})"


WORKFLOW_STEP_TYPES: Dict[str, Type[BaseStep]] = {
    "workflow.call": CallWorkflowStep,
}
