"""Cooperative cancellation for blocking pipeline stages."""

from __future__ import annotations

import threading
import time

from .exceptions import InferenceTimeoutError


class CancellationToken:
    """A cancellation signal with an optional deadline.

    The token is cancelled either explicitly via :meth:`cancel` or implicitly once
    ``timeout`` seconds have passed since construction. Waiting on the token
    returns early as soon as it is cancelled, so backoff sleeps stay interruptible.

    Args:
        timeout: Optional deadline in seconds, measured from construction.

    Example:
        >>> token = CancellationToken(timeout=2.0)
        >>> token.sleep(0.1)  # raises InferenceTimeoutError if cancelled meanwhile
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        """Signal cancellation to every waiter."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self, what: str = "operation") -> None:
        if self.cancelled:
            raise InferenceTimeoutError(f"{what} cancelled")

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first.

        Raises:
            InferenceTimeoutError: If the token is cancelled before or while waiting.
        """
        self.raise_if_cancelled("wait")
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            # The deadline falls inside the wait
            self._event.wait(remaining)
            self._event.set()
            raise InferenceTimeoutError("wait cancelled: deadline reached")
        if self._event.wait(seconds):
            raise InferenceTimeoutError("wait cancelled")


def check_cancelled(token: CancellationToken | None, what: str = "operation") -> None:
    """Raise InferenceTimeoutError when ``token`` is set and cancelled."""
    if token is not None:
        token.raise_if_cancelled(what)
