"""Workflow step retry strategies.

Two policies are used by the engine:
- Linear backoff for the automatic per-step retry
  (``delay = base_delay * attempt`` → 0.5s, 1.0s, 1.5s by default)
- Fixed delay between control.retry block attempts (1s by default)

Failures classified as configuration/connectivity problems
(see ``core.constants.NON_RETRYABLE_CODES``) are never retried.

Usage:
    strategy = RetryStrategy.for_steps()
    attempt = 0
    while True:
        try:
            return await run_step()
        except Exception as e:
            attempt += 1
            if not strategy.should_retry(attempt, e):
                raise
            await sleep(strategy.compute_delay(attempt))
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.config import get_settings
from core.exceptions import WorkflowError


class RetryPolicy(str, Enum):
    """Available retry policies."""
    FIXED = "fixed"
    LINEAR = "linear"


@dataclass
class RetryStrategy:
    """Configurable retry strategy for workflow step execution.

    ``max_retries`` counts retries after the first try, so the total number
    of tries is ``max_retries + 1``.
    """
    policy: RetryPolicy
    max_retries: int = 3
    base_delay: float = 0.5

    @classmethod
    def fixed(cls, max_retries: int = 2, delay: float = 1.0) -> 'RetryStrategy':
        """Fixed delay between retries."""
        return cls(policy=RetryPolicy.FIXED, max_retries=max_retries, base_delay=delay)

    @classmethod
    def linear(cls, max_retries: int = 3, base_delay: float = 0.5) -> 'RetryStrategy':
        """Linear backoff: delay = base_delay * attempt_number."""
        return cls(policy=RetryPolicy.LINEAR, max_retries=max_retries, base_delay=base_delay)

    @classmethod
    def for_steps(
        cls,
        max_retries: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
    ) -> 'RetryStrategy':
        """Automatic per-step retry, defaults from settings."""
        settings = get_settings()
        if max_retries is None:
            max_retries = settings.STEP_MAX_RETRIES
        if base_delay_ms is None:
            base_delay_ms = settings.STEP_RETRY_BASE_DELAY_MS
        return cls.linear(max_retries=max_retries, base_delay=base_delay_ms / 1000)

    @classmethod
    def for_retry_block(
        cls,
        max_attempts: Optional[int] = None,
        delay_ms: Optional[int] = None,
    ) -> 'RetryStrategy':
        """control.retry: ``max_attempts`` total tries with a fixed delay."""
        settings = get_settings()
        if max_attempts is None:
            max_attempts = settings.RETRY_BLOCK_MAX_ATTEMPTS
        if delay_ms is None:
            delay_ms = settings.RETRY_BLOCK_DELAY_MS
        return cls.fixed(max_retries=max_attempts - 1, delay=delay_ms / 1000)

    @property
    def max_attempts(self) -> int:
        """Total number of tries including the first."""
        return self.max_retries + 1

    def compute_delay(self, attempt: int) -> float:
        """Compute the delay in seconds before retry number ``attempt`` (1-based)."""
        if self.policy == RetryPolicy.LINEAR:
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay
        return round(delay, 3)

    def should_retry(self, attempt: int, error: Optional[BaseException] = None) -> bool:
        """Determine if we should retry after ``attempt`` failed tries."""
        if attempt > self.max_retries:
            return False

        if isinstance(error, WorkflowError) and not error.is_retryable:
            return False

        return True
