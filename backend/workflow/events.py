"""Events streamed to observers while a workflow runs.

Every event carries the nesting ``depth`` of the context that produced it so
renderers can indent nested workflow output.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from core.constants import EventType


@dataclass(frozen=True)
class WorkflowEvent:
    """Base event record."""

    depth: int
    type: EventType = field(init=False)

    def to_dict(self) -> Dict[str, Any]:
        """Flat wire shape, with unset optional fields dropped."""
        data = {k: v for k, v in asdict(self).items() if v is not None}
        data["type"] = self.type.value
        return data


@dataclass(frozen=True)
class WorkflowStartEvent(WorkflowEvent):
    action_id: str = ""
    action_title: str = ""
    # Only set on the top-level workflow
    run_id: Optional[str] = None
    type: EventType = field(init=False, default=EventType.WORKFLOW_START)


@dataclass(frozen=True)
class WorkflowEndEvent(WorkflowEvent):
    action_id: str = ""
    success: bool = True
    message: Optional[str] = None
    type: EventType = field(init=False, default=EventType.WORKFLOW_END)


@dataclass(frozen=True)
class StepStartEvent(WorkflowEvent):
    step_index: int = 0
    step_type: str = ""
    step_details: Optional[str] = None
    type: EventType = field(init=False, default=EventType.STEP_START)


@dataclass(frozen=True)
class StepEndEvent(WorkflowEvent):
    step_index: int = 0
    success: bool = True
    message: Optional[str] = None
    result: Optional[str] = None
    type: EventType = field(init=False, default=EventType.STEP_END)


@dataclass(frozen=True)
class LogEvent(WorkflowEvent):
    level: str = "info"
    message: str = ""
    type: EventType = field(init=False, default=EventType.LOG)


@dataclass(frozen=True)
class ErrorEvent(WorkflowEvent):
    message: str = ""
    type: EventType = field(init=False, default=EventType.ERROR)
