"""Custom exceptions for the workflow engine."""

from typing import Optional

from core.constants import CANCELLED_MESSAGE, NON_RETRYABLE_CODES, ErrorCode


class WorkflowError(Exception):
    """Base exception for the workflow engine."""

    default_code: ErrorCode = ErrorCode.SHELL_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        """Initialize exception with message and classification.

        Args:
            message: Exception message
            code: Failure classification (defaults to the subclass code)
        """
        self.message = message
        self.code = ErrorCode(code) if code is not None else self.default_code
        super().__init__(self.message)

    @property
    def is_retryable(self) -> bool:
        """Whether the automatic step retry may attempt again."""
        return self.code not in NON_RETRYABLE_CODES

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code.value})"


class ExtensionError(WorkflowError):
    """Browser transport missing or not connected."""

    default_code = ErrorCode.EXTENSION_ERROR


class ShellError(WorkflowError):
    """Shell command failed."""

    default_code = ErrorCode.SHELL_ERROR


class TerminalError(WorkflowError):
    """Terminal session unavailable."""

    default_code = ErrorCode.TERMINAL_ERROR


class LLMError(WorkflowError):
    """LLM provider misconfigured or returned an error."""

    default_code = ErrorCode.LLM_ERROR


class StepNotImplementedError(WorkflowError):
    """No handler is registered for a step kind."""

    default_code = ErrorCode.NOT_IMPLEMENTED


class RetryExhaustedError(WorkflowError):
    """Retries ran out without a recorded error."""

    default_code = ErrorCode.RETRY_EXHAUSTED

    def __init__(self, message: str = "Retry exhausted"):
        super().__init__(message)


class WorkflowStopped(WorkflowError):
    """Successful early termination raised by control.stop.

    Not a failure: step sequences and workflow runs treat it as success.
    """

    default_code = ErrorCode.STOPPED

    def __init__(self, message: str = "Workflow stopped"):
        super().__init__(message)


class WorkflowCancelled(WorkflowError):
    """Cancellation observed at a checkpoint."""

    default_code = ErrorCode.CANCELLED

    def __init__(self, message: str = CANCELLED_MESSAGE):
        super().__init__(message)


class WorkflowNotFoundError(WorkflowError):
    """Nested call target is in neither registry."""

    default_code = ErrorCode.WORKFLOW_NOT_FOUND

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class MaxDepthExceededError(WorkflowError):
    """Nested calls went deeper than the configured maximum."""

    default_code = ErrorCode.MAX_DEPTH_EXCEEDED


class CircularCallError(WorkflowError):
    """Nested call target is already on the call stack."""

    default_code = ErrorCode.CIRCULAR_CALL


class NestedWorkflowError(WorkflowError):
    """A nested workflow failed; wraps the inner error with the target id."""

    default_code = ErrorCode.NESTED_ERROR

    def __init__(self, workflow_id: str, cause: BaseException):
        self.workflow_id = workflow_id
        self.cause = cause
        super().__init__(f"Nested workflow '{workflow_id}' failed: {cause}")


class ParseError(WorkflowError):
    """Workflow source is malformed."""

    default_code = ErrorCode.PARSE_ERROR
