"""Tests for the step registry and dispatcher."""

import pytest

from core.exceptions import StepNotImplementedError
from steps.base_step import BaseStep
from steps.registry import StepRegistry, get_step_registry
from workflow.dispatcher import StepDispatcher
from workflow.executor import WorkflowExecutor
from workflow.models import parse_step

ALL_TYPES = {
    "browser.navigate", "browser.click", "browser.type", "browser.scroll",
    "browser.extract", "browser.extractAll", "browser.wait", "browser.exists",
    "browser.hover", "browser.key",
    "shell.run", "terminal.open", "terminal.run",
    "llm.generate", "llm.classify",
    "control.if", "control.retry", "control.stop",
    "workflow.call",
    "data.first", "variable.set",
}


class EchoStep(BaseStep):
    step_type = "test.echo"
    display_name = "Echo"

    async def execute(self, step, ctx):
        ctx.set_variable("echo", "called")


class FakeStep:
    type = "test.echo"


@pytest.mark.unit
class TestStepRegistry:

    def test_builtin_types(self):
        registry = StepRegistry()
        assert set(registry.available_types) == ALL_TYPES
        assert len(registry.available_types) == 21

    def test_control_flow_kinds(self):
        owners = {item["step_type"] for item in StepRegistry().list_all() if item["owns_control_flow"]}
        assert owners == {"control.if", "control.retry", "workflow.call"}

    def test_create_instance_binds_executor(self, executor):
        handler = StepRegistry().create_instance("browser.click", executor)
        assert handler.executor is executor
        assert StepRegistry().create_instance("nope", executor) is None

    def test_singleton(self):
        assert get_step_registry() is get_step_registry()


@pytest.mark.unit
class TestStepDispatcher:

    @pytest.mark.asyncio
    async def test_custom_kind(self, make_context, sleep):
        registry = StepRegistry()
        registry.register("test.echo", EchoStep)
        executor = WorkflowExecutor(registry=registry, sleep=sleep)
        ctx = make_context()

        await executor.dispatcher.execute_step(FakeStep(), ctx)

        assert ctx.variables == {"echo": "called"}
        assert executor.dispatcher.get_handler("test.echo") is executor.dispatcher.get_handler("test.echo")

    @pytest.mark.asyncio
    async def test_unknown_kind(self, executor, make_context):
        with pytest.raises(StepNotImplementedError, match="Unknown step type: test.echo"):
            await executor.dispatcher.execute_step(FakeStep(), make_context())

    def test_own_retry_logic(self, executor):
        dispatcher = executor.dispatcher
        assert dispatcher.has_own_retry_logic(parse_step({"type": "control.if", "condition": "x", "then": []}))
        assert not dispatcher.has_own_retry_logic(parse_step({"type": "control.stop"}))
        assert not dispatcher.has_own_retry_logic(FakeStep())

    def test_has_browser_steps(self):
        steps = [parse_step({
            "type": "control.if",
            "condition": "x",
            "then": [],
            "else_steps": [{"type": "browser.hover", "selector": "a"}],
        })]
        assert StepDispatcher.has_browser_steps(steps)
        assert not StepDispatcher.has_browser_steps([parse_step({"type": "control.stop"})])
