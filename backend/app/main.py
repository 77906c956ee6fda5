"""Command-line entry point.

Run with: python -m app.main <command>

    list                         List workflows in ACTIONS_DIR and WORKFLOWS_DIR
    types                        List step kinds (* = runs its own sub-steps)
    run <id-or-file> [-p k=v]    Run a workflow and stream its events

There is no browser transport on the command line, so browser.* steps fail
with an ExtensionError; shell, terminal, LLM, data and control steps run.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from app.config import get_settings
from core.constants import RunStatus
from core.exceptions import ParseError, WorkflowNotFoundError
from core.logging_config import setup_logging
from steps.registry import get_step_registry
from workflow.events import WorkflowEvent
from workflow.executor import get_workflow_executor
from workflow.loader import load_workflow, load_workflows_from_dir
from workflow.models import Workflow, count_step_type, count_steps

logger = structlog.get_logger(__name__)


def parse_params(pairs: List[str]) -> Dict[str, str]:
    """Parse ``key=value`` pairs; the value may itself contain ``=``."""
    params: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid param (expected key=value): {pair}")
        params[key] = value
    return params


def format_event(event: WorkflowEvent) -> str:
    """One human-readable line per event, indented by nesting depth."""
    indent = "  " * event.depth
    data = event.to_dict()
    kind = data["type"]
    if kind == "workflow_start":
        return f"{indent}▶ {data['action_title']} ({data['action_id']})"
    if kind == "workflow_end":
        mark = "✓" if data["success"] else "✗"
        suffix = f": {data['message']}" if data.get("message") else ""
        return f"{indent}{mark} {data['action_id']}{suffix}"
    if kind == "step_start":
        details = f" {data['step_details']}" if data.get("step_details") else ""
        return f"{indent}  [{data['step_index'] + 1}] {data['step_type']}{details}"
    if kind == "step_end":
        if data["success"]:
            return f"{indent}      → {data['result']}" if data.get("result") else ""
        return f"{indent}      ✗ {data.get('message', '')}"
    if kind == "log":
        return f"{indent}      {data['level']}: {data['message']}"
    return f"{indent}      error: {data['message']}"


def _print_event(event: WorkflowEvent) -> None:
    line = format_event(event)
    if line:
        print(line, flush=True)


def load_registries(settings) -> tuple:
    return (
        load_workflows_from_dir(settings.ACTIONS_DIR),
        load_workflows_from_dir(settings.WORKFLOWS_DIR),
    )


def resolve_workflow(target: str, actions: List[Workflow], workflows: List[Workflow]) -> Workflow:
    """Accept a YAML path or a workflow id from either registry."""
    if target.endswith((".yaml", ".yml")) or Path(target).is_file():
        return load_workflow(target)
    for workflow in [*actions, *workflows]:
        if workflow.id == target:
            return workflow
    raise WorkflowNotFoundError(target)


def cmd_list(args) -> int:
    settings = get_settings()
    actions, workflows = load_registries(settings)
    for label, items in (("actions", actions), ("workflows", workflows)):
        print(f"{label}:")
        for workflow in items:
            browser = count_step_type(workflow.steps, "browser.")
            needs_browser = f", {browser} browser" if browser else ""
            print(f"  {workflow.id:<32} {workflow.title} ({count_steps(workflow.steps)} steps{needs_browser})")
    return 0


def cmd_types(args) -> int:
    for item in get_step_registry().list_all():
        marker = "*" if item["owns_control_flow"] else " "
        print(f"{marker} {item['step_type']:<20} {item['description']}")
    return 0


def cmd_run(args) -> int:
    settings = get_settings()
    actions, workflows = load_registries(settings)

    try:
        workflow = resolve_workflow(args.workflow, actions, workflows)
        params = parse_params(args.param)
    except (ParseError, WorkflowNotFoundError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    executor = get_workflow_executor()
    result = asyncio.run(executor.run(
        workflow,
        params,
        actions_registry=actions,
        workflows_registry=workflows,
        on_event=None if args.json else _print_event,
        triggered_by="cli",
    ))

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    elif result.output_message:
        print(result.output_message)

    return 0 if result.status == RunStatus.SUCCESS else 1


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="yamlflow", description=settings.APP_NAME)
    parser.add_argument("--version", action="version", version=f"%(prog)s {settings.APP_VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List available workflows").set_defaults(func=cmd_list)
    sub.add_parser("types", help="List supported step kinds").set_defaults(func=cmd_types)

    run = sub.add_parser("run", help="Run a workflow by id or YAML path")
    run.add_argument("workflow", help="Workflow id or path to a YAML file")
    run.add_argument("-p", "--param", action="append", default=[], help="Parameter as key=value")
    run.add_argument("--json", action="store_true", help="Print the run log as JSON instead of streaming")
    run.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level="DEBUG" if args.verbose else None)
    logger.debug("CLI invoked", command=args.command)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
