"""Constants and enums for the workflow engine."""

from enum import Enum

# Maximum depth for nested workflow calls
MAX_WORKFLOW_DEPTH = 10

# Automatic per-step retry: 3 retries after the first try, linear backoff
MAX_RETRIES = 3
BASE_RETRY_DELAY_MS = 500

# control.retry defaults (fixed delay)
RETRY_BLOCK_MAX_ATTEMPTS = 3
RETRY_BLOCK_DELAY_MS = 1000

# Params with this prefix flow into nested workflow calls
ENV_PARAM_PREFIX = "env."

DEFAULT_WAIT_TIMEOUT_MS = 30000
DEFAULT_EXISTS_TIMEOUT_MS = 1000
DEFAULT_SCROLL_AMOUNT = 300

# Max chars kept in a step's display result
RESULT_DISPLAY_LIMIT = 500

CANCELLED_MESSAGE = "Workflow cancelled by user"
CANCELLED_RUN_MESSAGE = "Cancelled by user"


class ErrorCode(str, Enum):
    """Failure classification carried by every WorkflowError."""

    EXTENSION_ERROR = "EXTENSION_ERROR"
    SHELL_ERROR = "SHELL_ERROR"
    TERMINAL_ERROR = "TERMINAL_ERROR"
    LLM_ERROR = "LLM_ERROR"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"
    STOPPED = "STOPPED"
    CANCELLED = "CANCELLED"
    WORKFLOW_NOT_FOUND = "WORKFLOW_NOT_FOUND"
    MAX_DEPTH_EXCEEDED = "MAX_DEPTH_EXCEEDED"
    CIRCULAR_CALL = "CIRCULAR_CALL"
    NESTED_ERROR = "NESTED_ERROR"
    PARSE_ERROR = "PARSE_ERROR"


# Configuration/connectivity problems; propagated on first occurrence
NON_RETRYABLE_CODES = frozenset({
    ErrorCode.STOPPED,
    ErrorCode.CANCELLED,
    ErrorCode.NOT_IMPLEMENTED,
    ErrorCode.NESTED_ERROR,
    ErrorCode.LLM_ERROR,
    ErrorCode.EXTENSION_ERROR,
    ErrorCode.TERMINAL_ERROR,
})


class RunStatus(str, Enum):
    """Terminal classification of a workflow run."""

    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EventType(str, Enum):
    """Kinds of events streamed during execution."""

    WORKFLOW_START = "workflow_start"
    WORKFLOW_END = "workflow_end"
    STEP_START = "step_start"
    STEP_END = "step_end"
    LOG = "log"
    ERROR = "error"


class LogLevel(str, Enum):
    """Level of a log event."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LlmProvider(str, Enum):
    """Supported LLM backends."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
