"""Load workflow definitions from YAML.

Directory layout understood by ``load_workflows_from_dir``::

    actions/
        open_inbox.yaml          # standalone file
        triage_email/
            workflow.yaml        # one workflow per subdirectory
"""

from pathlib import Path
from typing import List, Union

import structlog
import yaml
from pydantic import ValidationError

from core.exceptions import ParseError
from workflow.models import Workflow

logger = structlog.get_logger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")
SUBDIR_WORKFLOW_FILE = "workflow.yaml"


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "workflow"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_workflow(content: str) -> Workflow:
    """Parse a workflow from a YAML string.

    Raises:
        ParseError: malformed YAML or an invalid workflow shape
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ParseError(f"Failed to parse YAML: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("Invalid workflow: not an object")
    if not data.get("id") or not isinstance(data["id"], str):
        raise ParseError("Invalid workflow: missing id")
    if not data.get("title") or not isinstance(data["title"], str):
        raise ParseError("Invalid workflow: missing title")
    if not isinstance(data.get("steps"), list):
        raise ParseError("Invalid workflow: steps must be an array")

    try:
        return Workflow.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Invalid workflow '{data['id']}': {_format_validation_error(e)}") from e


def load_workflow(path: Union[str, Path]) -> Workflow:
    """Load a workflow from a YAML file."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ParseError(f"Failed to load workflow from {path}: {e}") from e
    return parse_workflow(content)


def load_workflows_from_dir(directory: Union[str, Path]) -> List[Workflow]:
    """Load every workflow in a directory; broken files are logged and skipped."""
    directory = Path(directory)
    workflows: List[Workflow] = []

    if not directory.is_dir():
        return workflows

    for entry in sorted(directory.iterdir()):
        if entry.is_dir():
            candidate = entry / SUBDIR_WORKFLOW_FILE
            if not candidate.is_file():
                continue
        elif entry.suffix in YAML_SUFFIXES:
            candidate = entry
        else:
            continue

        try:
            workflows.append(load_workflow(candidate))
        except ParseError as e:
            logger.warning("Failed to load workflow", path=str(candidate), error=e.message)

    logger.debug("Workflows loaded", directory=str(directory), count=len(workflows))
    return workflows
