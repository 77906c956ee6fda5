"""Tests for workflow retry strategies."""

import pytest

from core.exceptions import (
    ExtensionError,
    LLMError,
    NestedWorkflowError,
    ShellError,
    StepNotImplementedError,
    TerminalError,
    WorkflowCancelled,
    WorkflowStopped,
)
from workflow.retry_strategies import RetryPolicy, RetryStrategy


# ─── RetryStrategy creation ───

class TestRetryStrategyCreation:
    def test_fixed_strategy(self):
        s = RetryStrategy.fixed(max_retries=3, delay=5.0)
        assert s.policy == RetryPolicy.FIXED
        assert s.base_delay == 5.0

    def test_linear_strategy(self):
        s = RetryStrategy.linear(max_retries=4, base_delay=2.0)
        assert s.policy == RetryPolicy.LINEAR
        assert s.base_delay == 2.0

    def test_for_steps_defaults(self):
        s = RetryStrategy.for_steps()
        assert s.policy == RetryPolicy.LINEAR
        assert s.max_retries == 3
        assert s.base_delay == 0.5
        assert s.max_attempts == 4

    def test_for_retry_block_defaults(self):
        s = RetryStrategy.for_retry_block()
        assert s.policy == RetryPolicy.FIXED
        assert s.max_attempts == 3
        assert s.base_delay == 1.0

    def test_for_retry_block_explicit(self):
        s = RetryStrategy.for_retry_block(max_attempts=5, delay_ms=250)
        assert s.max_attempts == 5
        assert s.base_delay == 0.25

    def test_for_retry_block_zero_attempts(self):
        assert RetryStrategy.for_retry_block(max_attempts=0).max_attempts == 0


# ─── Delay computation ───

class TestDelayComputation:
    def test_fixed_delay(self):
        s = RetryStrategy.fixed(delay=5.0)
        assert s.compute_delay(1) == 5.0
        assert s.compute_delay(3) == 5.0

    def test_linear_delay(self):
        s = RetryStrategy.for_steps()
        assert [s.compute_delay(i) for i in (1, 2, 3)] == [0.5, 1.0, 1.5]

    def test_retry_block_delay(self):
        s = RetryStrategy.for_retry_block(max_attempts=3, delay_ms=200)
        assert [s.compute_delay(i) for i in (1, 2)] == [0.2, 0.2]

    def test_custom_step_base_delay(self):
        s = RetryStrategy.for_steps(max_retries=2, base_delay_ms=100)
        assert [s.compute_delay(i) for i in (1, 2)] == [0.1, 0.2]


# ─── Retry decisions ───

class TestShouldRetry:
    def test_retries_until_exhausted(self):
        s = RetryStrategy.for_steps()
        error = RuntimeError("flaky")
        assert [s.should_retry(i, error) for i in (1, 2, 3, 4)] == [True, True, True, False]

    def test_single_attempt_never_retries(self):
        assert RetryStrategy.for_retry_block(max_attempts=1).should_retry(1, RuntimeError()) is False

    def test_shell_error_is_retryable(self):
        assert RetryStrategy.for_steps().should_retry(1, ShellError("Command failed: x")) is True

    @pytest.mark.parametrize("error", [
        WorkflowStopped(),
        WorkflowCancelled(),
        StepNotImplementedError("Unknown step type: x"),
        NestedWorkflowError("child", RuntimeError("boom")),
        LLMError("OpenAI API key not configured"),
        ExtensionError("Browser extension not connected"),
        TerminalError("No terminal session"),
    ])
    def test_non_retryable_classifications(self, error):
        assert RetryStrategy.for_steps().should_retry(1, error) is False
