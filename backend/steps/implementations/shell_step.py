"""Shell and terminal step implementations.

- shell.run: run a command through /bin/sh and capture stdout
- terminal.open / terminal.run: drive a visible macOS Terminal window
  through osascript, for commands the user should watch
"""

import asyncio
import sys
from typing import Any, Dict, Optional, Type

import structlog

from core.exceptions import ShellError, TerminalError
from steps.base_step import BaseStep
from workflow.context import ExecutionContext

logger = structlog.get_logger(__name__)

# Settle delays so Terminal.app catches up between commands
TERMINAL_OPEN_DELAY = 0.5
TERMINAL_RUN_DELAY = 0.3


class ShellRunStep(BaseStep):
    """Run a shell command; optionally store trimmed stdout in a variable.

    Config:
        cmd: Command line (interpolated)
        cwd: Working directory (interpolated, optional)
        as: Variable receiving stdout (optional)
    """

    step_type = "shell.run"
    display_name = "Shell Command"
    description = "Run a shell command"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        cmd = ctx.interpolate(step.cmd)
        cwd = ctx.interpolate(step.cwd) if step.cwd else None

        ctx.emit_log("info", f"Running: {cmd}")

        try:
            process = await asyncio.create_subprocess_shell(
                cmd,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                executable="/bin/sh",
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            raise ShellError(f"Command failed: {e}") from e

        stdout_text = stdout.decode("utf-8", errors="replace")
        stderr_text = stderr.decode("utf-8", errors="replace").strip()

        if process.returncode != 0:
            logger.warning("Shell command failed", cmd=cmd, returncode=process.returncode)
            raise ShellError(f"Command failed: {stderr_text or f'exit code {process.returncode}'}")

        if step.as_:
            ctx.set_variable(step.as_, stdout_text.strip())

        if stderr_text:
            ctx.emit_log("warn", f"stderr: {stderr_text}")

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        cmd = ctx.interpolate(step.cmd)
        if step.as_:
            return f"{cmd} → ${step.as_}"
        return cmd


def _applescript_string(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


async def _osascript(script: str) -> None:
    if sys.platform != "darwin":
        raise TerminalError("Terminal automation requires macOS")

    try:
        process = await asyncio.create_subprocess_exec(
            "osascript", "-e", script,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
    except OSError as e:
        raise TerminalError(f"osascript unavailable: {e}") from e

    if process.returncode != 0:
        raise TerminalError(stderr.decode("utf-8", errors="replace").strip() or "osascript failed")


def build_terminal_script(title: Optional[str] = None, cwd: Optional[str] = None) -> str:
    """AppleScript that opens a Terminal window, optionally cd'd and titled."""
    lines = ['tell application "Terminal"']
    if cwd:
        lines.append(f"do script {_applescript_string('cd ' + cwd)}")
    else:
        lines.append('do script ""')
    lines.append("activate")
    if title:
        lines.append(f"set custom title of front window to {_applescript_string(title)}")
    lines.append("end tell")
    return "\n".join(lines)


class TerminalOpenStep(BaseStep):
    step_type = "terminal.open"
    display_name = "Open Terminal"
    description = "Open a visible terminal window for later terminal.run steps"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        title = ctx.interpolate(step.title) if step.title else None
        cwd = ctx.interpolate(step.cwd) if step.cwd else None

        label = f" '{title}'" if title else ""
        location = f" in {cwd}" if cwd else ""
        ctx.emit_log("info", f"Opening terminal{label}{location}")

        try:
            await _osascript(build_terminal_script(title, cwd))
        except TerminalError as e:
            raise TerminalError(f"Failed to open terminal: {e.message}") from e

        ctx.terminal_active = True
        await self.executor.sleep(TERMINAL_OPEN_DELAY)


class TerminalRunStep(BaseStep):
    step_type = "terminal.run"
    display_name = "Terminal Command"
    description = "Type a command into the open terminal window"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        if not ctx.terminal_active:
            raise TerminalError("No terminal session - use terminal.open first")

        cmd = ctx.interpolate(step.cmd)
        ctx.emit_log("info", f"Running in terminal: {cmd}")

        script = f'tell application "Terminal" to do script {_applescript_string(cmd)} in front window'
        try:
            await _osascript(script)
        except TerminalError as e:
            raise TerminalError(f"Failed to run in terminal: {e.message}") from e

        await self.executor.sleep(TERMINAL_RUN_DELAY)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return ctx.interpolate(step.cmd)


SHELL_STEP_TYPES: Dict[str, Type[BaseStep]] = {
    "shell.run": ShellRunStep,
    "terminal.open": TerminalOpenStep,
    "terminal.run": TerminalRunStep,
}
