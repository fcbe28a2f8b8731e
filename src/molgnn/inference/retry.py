"""Bounded retry with exponential backoff for backend calls."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from ..cancellation import CancellationToken
from ..config import RetryConfig
from ..exceptions import (
    InferenceTimeoutError,
    ModelBackendUnavailableError,
    TransientBackendError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to wait before retrying a transient failure.

    Attributes:
        max_retries: Extra attempts after the first call
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay, in seconds
    """

    max_retries: int = 2
    base_delay: float = 0.1
    max_delay: float = 5.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(
            max_retries=config.max_retries,
            base_delay=config.base_delay_ms / 1000.0,
            max_delay=config.max_delay_ms / 1000.0,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0-based): ``base * 2**attempt``."""
        return min(self.base_delay * (2**attempt), self.max_delay)


@dataclass
class RetryState:
    """Progress of one retried call."""

    policy: RetryPolicy
    attempts: int = 0
    errors: list[Exception] = field(default_factory=list)

    @property
    def last_error(self) -> Exception | None:
        return self.errors[-1] if self.errors else None

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.policy.max_attempts

    def record_failure(self, error: Exception) -> None:
        self.errors.append(error)

    def next_delay(self) -> float:
        # attempts counts calls made so far; the first retry waits base_delay
        return self.policy.delay_for(self.attempts - 1)


def call_with_retry(
    func: Callable[[], T],
    policy: RetryPolicy,
    cancel_token: CancellationToken | None = None,
    what: str = "backend call",
) -> T:
    """Call ``func`` and retry transient backend failures with backoff.

    Only :class:`TransientBackendError` is retried; anything else propagates on
    the first occurrence. Backoff sleeps wait on ``cancel_token`` so a cancelled
    request stops retrying immediately.

    Args:
        func: Zero-argument callable performing one attempt
        policy: Retry limits and delays
        cancel_token: Optional cancellation token checked before each attempt
        what: Label used in log messages

    Returns:
        The first successful result of ``func``

    Raises:
        InferenceTimeoutError: If the token is cancelled (never retried)
        ModelBackendUnavailableError: When all attempts failed transiently,
            chained from the last failure
    """
    state = RetryState(policy=policy)
    token = cancel_token or CancellationToken()

    while True:
        token.raise_if_cancelled(what)
        state.attempts += 1
        try:
            return func()
        except TransientBackendError as e:
            state.record_failure(e)

        if state.exhausted:
            break

        delay = state.next_delay()
        logger.warning(
            "%s failed (attempt %d/%d): %s; retrying in %.3fs",
            what,
            state.attempts,
            policy.max_attempts,
            state.last_error,
            delay,
        )
        try:
            token.sleep(delay)
        except InferenceTimeoutError as e:
            raise InferenceTimeoutError(f"{what} cancelled during backoff") from e

    last_error = state.last_error
    logger.error("%s failed after %d attempts: %s", what, state.attempts, last_error)
    raise ModelBackendUnavailableError(last_error, state.attempts) from last_error
