"""Data manipulation steps: data.first and variable.set."""

from typing import Any, Dict, Optional, Type

from steps.base_step import BaseStep
from workflow.context import ExecutionContext

VALUE_LOG_LIMIT = 100
VALUE_DETAILS_LIMIT = 50


class FirstDataStep(BaseStep):
    """Pick the first item of a separator-joined list."""

    step_type = "data.first"
    display_name = "First Item"
    description = "Take the first item from a list string"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        text = ctx.interpolate(step.input)
        separator = step.separator if step.separator is not None else ", "

        ctx.emit_log("info", f"Picking first from list (separator: '{separator}')")

        if separator:
            first = text.split(separator)[0].strip()
        else:
            first = text[:1].strip()

        ctx.last_step_result = first
        ctx.set_variable(step.as_, first)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return f"{ctx.interpolate(step.input)} → ${step.as_}"


class SetVariableDataStep(BaseStep):
    """Set a variable to an interpolated value."""

    step_type = "variable.set"
    display_name = "Set Variable"
    description = "Assign a value to a workflow variable"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        value = ctx.interpolate(step.value)

        suffix = "..." if len(value) > VALUE_LOG_LIMIT else ""
        ctx.emit_log("info", f"Setting {step.name} = {value[:VALUE_LOG_LIMIT]}{suffix}")

        ctx.last_step_result = value
        ctx.set_variable(step.name, value)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return f"${step.name} = {ctx.interpolate(step.value)[:VALUE_DETAILS_LIMIT]}"


DATA_STEP_TYPES: Dict[str, Type[BaseStep]] = {
    "data.first": FirstDataStep,
    "variable.set": SetVariableDataStep,
}
