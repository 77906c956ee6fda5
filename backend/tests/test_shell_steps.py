"""Tests for shell.run and the terminal.* steps."""

import os
import sys

import pytest

from core.constants import RunStatus
from core.exceptions import ShellError, TerminalError
from steps.implementations.shell_step import build_terminal_script
from workflow.models import parse_step


async def _run(executor, ctx, data):
    await executor.dispatcher.execute_step(parse_step(data), ctx)


def _logs(ctx):
    return [(e.level, e.message) for e in ctx.captured_events if e.type.value == "log"]


@pytest.mark.unit
class TestShellRun:

    @pytest.mark.asyncio
    async def test_captures_trimmed_stdout(self, executor, make_context):
        ctx = make_context(params={"word": "hello"})
        await _run(executor, ctx, {"type": "shell.run", "cmd": "echo {{word}}", "as": "out"})
        assert ctx.variables["out"] == "hello"
        assert ("info", "Running: echo hello") in _logs(ctx)

    @pytest.mark.asyncio
    async def test_without_as_stores_nothing(self, executor, make_context):
        ctx = make_context()
        await _run(executor, ctx, {"type": "shell.run", "cmd": "echo hi"})
        assert ctx.variables == {}

    @pytest.mark.asyncio
    async def test_cwd(self, executor, make_context, tmp_path):
        ctx = make_context(params={"dir": str(tmp_path)})
        await _run(executor, ctx, {"type": "shell.run", "cmd": "pwd", "cwd": "{{dir}}", "as": "where"})
        assert os.path.realpath(ctx.variables["where"]) == os.path.realpath(str(tmp_path))

    @pytest.mark.asyncio
    async def test_nonzero_exit_uses_stderr(self, executor, make_context):
        ctx = make_context()
        with pytest.raises(ShellError, match="Command failed: boom"):
            await _run(executor, ctx, {"type": "shell.run", "cmd": "echo boom >&2; exit 3"})

    @pytest.mark.asyncio
    async def test_nonzero_exit_without_stderr(self, executor, make_context):
        ctx = make_context()
        with pytest.raises(ShellError, match="Command failed: exit code 4"):
            await _run(executor, ctx, {"type": "shell.run", "cmd": "exit 4"})

    @pytest.mark.asyncio
    async def test_stderr_on_success_is_a_warning(self, executor, make_context):
        ctx = make_context()
        await _run(executor, ctx, {"type": "shell.run", "cmd": "echo ok; echo careful >&2", "as": "out"})
        assert ctx.variables["out"] == "ok"
        assert ("warn", "stderr: careful") in _logs(ctx)

    @pytest.mark.asyncio
    async def test_missing_cwd_fails(self, executor, make_context, tmp_path):
        ctx = make_context()
        with pytest.raises(ShellError, match="Command failed"):
            await _run(executor, ctx, {"type": "shell.run", "cmd": "true", "cwd": str(tmp_path / "nope")})

    @pytest.mark.asyncio
    async def test_failures_are_retried(self, executor, make_workflow, tmp_path, sleep):
        counter = tmp_path / "count"
        wf = make_workflow("wf", [{
            "type": "shell.run",
            "cmd": f"echo x >> {counter}; exit 1",
        }])

        result = await executor.run(wf)

        assert result.status == RunStatus.FAILED
        assert result.message == "Command failed: exit code 1"
        assert counter.read_text().count("x") == 4
        assert sleep.delays_ms == [500, 1000, 1500]

    def test_describe(self, executor, make_context):
        ctx = make_context()
        assert executor.describe_step(parse_step({"type": "shell.run", "cmd": "ls", "as": "files"}), ctx) == "ls → $files"
        assert executor.describe_step(parse_step({"type": "shell.run", "cmd": "ls"}), ctx) == "ls"


@pytest.mark.unit
class TestTerminal:

    @pytest.mark.asyncio
    async def test_run_requires_session(self, executor, make_context):
        ctx = make_context()
        with pytest.raises(TerminalError, match="No terminal session - use terminal.open first"):
            await _run(executor, ctx, {"type": "terminal.run", "cmd": "ls"})

    @pytest.mark.asyncio
    async def test_session_errors_are_not_retried(self, executor, make_workflow, sleep):
        result = await executor.run(make_workflow("wf", [{"type": "terminal.run", "cmd": "ls"}]))
        assert result.status == RunStatus.FAILED
        assert sleep.delays == []

    @pytest.mark.skipif(sys.platform == "darwin", reason="needs a non-macOS host")
    @pytest.mark.asyncio
    async def test_open_outside_macos(self, executor, make_context):
        ctx = make_context()
        with pytest.raises(TerminalError, match="Failed to open terminal: Terminal automation requires macOS"):
            await _run(executor, ctx, {"type": "terminal.open", "title": "build"})
        assert ctx.terminal_active is False

    def test_script_with_cwd_and_title(self):
        script = build_terminal_script("My \"job\"", "/tmp/work")
        assert script.splitlines() == [
            'tell application "Terminal"',
            'do script "cd /tmp/work"',
            "activate",
            'set custom title of front window to "My \\"job\\""',
            "end tell",
        ]

    def test_script_defaults(self):
        assert build_terminal_script() == 'tell application "Terminal"\ndo script ""\nactivate\nend tell'
