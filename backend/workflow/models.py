"""Workflow and step definitions.

A workflow is an immutable, already-parsed definition: an id, a title,
optional declared params, and an ordered list of steps. Steps form a
discriminated union on ``type``; ``control.if`` and ``control.retry`` embed
child step lists, which makes the step tree recursive.

Example (YAML)::

    id: search_and_summarize
    title: Search and summarize
    params:
      query: string
    steps:
      - type: browser.navigate
        url: "https://example.com/search?q={{query}}"
      - type: browser.extract
        selector: "#results"
        as: results
      - type: control.if
        condition: "{{results}}"
        then:
          - type: llm.generate
            prompt: "Summarize: {{results}}"
            as: summary
        else_steps:
          - type: control.stop
            message: "Nothing found for {{query}}"
"""

from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from core.constants import LlmProvider

ParamType = Literal["string", "number", "boolean"]
ScrollDirection = Literal["up", "down"]


class _Definition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


# ─── Browser steps ────────────────────────────────────────────

class NavigateStep(_Definition):
    type: Literal["browser.navigate"] = "browser.navigate"
    url: str
    new_tab: bool = False


class ClickStep(_Definition):
    type: Literal["browser.click"] = "browser.click"
    selector: str
    new_tab: bool = False


class TypeStep(_Definition):
    type: Literal["browser.type"] = "browser.type"
    selector: str
    text: str


class ScrollStep(_Definition):
    type: Literal["browser.scroll"] = "browser.scroll"
    direction: Optional[ScrollDirection] = None
    amount: Optional[int] = None


class ExtractStep(_Definition):
    type: Literal["browser.extract"] = "browser.extract"
    selector: str
    as_: str = Field(alias="as")


class ExtractAllStep(_Definition):
    type: Literal["browser.extractAll"] = "browser.extractAll"
    selector: str
    as_: str = Field(alias="as")
    separator: Optional[str] = None


class WaitStep(_Definition):
    type: Literal["browser.wait"] = "browser.wait"
    selector: Optional[str] = None
    ms: Optional[int] = None
    timeout: Optional[int] = None


class ExistsStep(_Definition):
    type: Literal["browser.exists"] = "browser.exists"
    selector: str
    as_: str = Field(alias="as")
    timeout: Optional[int] = None


class HoverStep(_Definition):
    type: Literal["browser.hover"] = "browser.hover"
    selector: str


class KeyStep(_Definition):
    type: Literal["browser.key"] = "browser.key"
    key: str
    selector: Optional[str] = None


# ─── Shell / terminal steps ───────────────────────────────────

class ShellRunStep(_Definition):
    type: Literal["shell.run"] = "shell.run"
    cmd: str
    cwd: Optional[str] = None
    as_: Optional[str] = Field(default=None, alias="as")


class TerminalOpenStep(_Definition):
    type: Literal["terminal.open"] = "terminal.open"
    title: Optional[str] = None
    cwd: Optional[str] = None


class TerminalRunStep(_Definition):
    type: Literal["terminal.run"] = "terminal.run"
    cmd: str


# ─── LLM steps ────────────────────────────────────────────────

class ClassifyStep(_Definition):
    type: Literal["llm.classify"] = "llm.classify"
    input: str
    categories: List[str]
    as_: str = Field(alias="as")


class GenerateStep(_Definition):
    type: Literal["llm.generate"] = "llm.generate"
    prompt: str
    as_: str = Field(alias="as")


# ─── Control steps ────────────────────────────────────────────

class IfStep(_Definition):
    type: Literal["control.if"] = "control.if"
    condition: str
    then: List["Step"]
    else_steps: Optional[List["Step"]] = None


class RetryStep(_Definition):
    type: Literal["control.retry"] = "control.retry"
    max_attempts: Optional[int] = None
    delay_ms: Optional[int] = None
    steps: List["Step"]


class StopStep(_Definition):
    type: Literal["control.stop"] = "control.stop"
    message: Optional[str] = None


class CallStep(_Definition):
    type: Literal["workflow.call"] = "workflow.call"
    workflow: str
    params: Optional[Dict[str, str]] = None
    as_: Optional[str] = Field(default=None, alias="as")


# ─── Data steps ───────────────────────────────────────────────

class FirstStep(_Definition):
    type: Literal["data.first"] = "data.first"
    input: str
    as_: str = Field(alias="as")
    separator: Optional[str] = None


class SetVariableStep(_Definition):
    type: Literal["variable.set"] = "variable.set"
    name: str
    value: str


Step = Annotated[
    Union[
        NavigateStep,
        ClickStep,
        TypeStep,
        ScrollStep,
        ExtractStep,
        ExtractAllStep,
        WaitStep,
        ExistsStep,
        HoverStep,
        KeyStep,
        ShellRunStep,
        TerminalOpenStep,
        TerminalRunStep,
        ClassifyStep,
        GenerateStep,
        IfStep,
        RetryStep,
        StopStep,
        CallStep,
        FirstStep,
        SetVariableStep,
    ],
    Field(discriminator="type"),
]

IfStep.model_rebuild()
RetryStep.model_rebuild()

_step_adapter = TypeAdapter(Step)


def parse_step(data: Dict[str, Any]) -> Step:
    """Validate a raw mapping into the matching step model."""
    return _step_adapter.validate_python(data)


# ─── Workflow ─────────────────────────────────────────────────

class Category(_Definition):
    level: Literal["primitive", "task", "process", "workflow", "pipeline"]
    domain: Optional[str] = None
    reusable: Optional[bool] = None


class Policies(_Definition):
    allowed_domains: List[str] = Field(default_factory=list)


class Workflow(_Definition):
    """A parsed workflow definition. Never mutated by the engine."""

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    steps: List[Step]
    description: Optional[str] = None
    schema_version: Optional[int] = None
    namespace: Optional[str] = None
    version: Optional[str] = None
    last_verified: Optional[str] = None
    hotkey: Optional[str] = None
    category: Optional[Category] = None
    parent_id: Optional[str] = None
    params: Optional[Dict[str, ParamType]] = None
    policies: Optional[Policies] = None
    embed: Optional[Dict[str, Any]] = None


class LlmConfig(_Definition):
    """Selects the LLM backend for llm.* steps."""

    provider: LlmProvider = LlmProvider.OPENAI
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None


# ─── Step tree helpers ────────────────────────────────────────

def child_step_lists(step: Any) -> List[Sequence[Any]]:
    """Return the embedded step lists of a control step (empty for leaves)."""
    if step.type == "control.if":
        lists = [step.then]
        if step.else_steps:
            lists.append(step.else_steps)
        return lists
    if step.type == "control.retry":
        return [step.steps]
    return []


def iter_steps(steps: Sequence[Any]) -> Iterator[Any]:
    """Walk a step tree depth-first, through if/retry bodies."""
    for step in steps:
        yield step
        for body in child_step_lists(step):
            yield from iter_steps(body)


def count_steps(steps: Sequence[Any]) -> int:
    """Count steps including nested ones."""
    return sum(1 for _ in iter_steps(steps))


def has_step_type(steps: Sequence[Any], type_prefix: str) -> bool:
    """Check if any step in the tree matches a type prefix."""
    return any(step.type.startswith(type_prefix) for step in iter_steps(steps))


def count_step_type(steps: Sequence[Any], type_prefix: str) -> int:
    """Count steps in the tree matching a type prefix."""
    return sum(1 for step in iter_steps(steps) if step.type.startswith(type_prefix))
