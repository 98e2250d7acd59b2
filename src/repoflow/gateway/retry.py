"""Retry with exponential backoff for transient gateway failures."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

from repoflow.gateway.exceptions import GatewayUnavailableException
from repoflow.kernel.cancellation import CancellationToken, raise_if_cancelled, sleep_or_cancel

logger = logging.getLogger(__name__)


class RetryPolicy:
    """Retry policy with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (including the first).
        base_delay: Base delay between retries (doubled each attempt).
        max_delay: Upper bound for a single backoff sleep.
        retry_on: Exception types worth another attempt.  Anything else
            propagates immediately.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: timedelta = timedelta(milliseconds=500),
        max_delay: timedelta = timedelta(seconds=30),
        retry_on: tuple[type[Exception], ...] = (GatewayUnavailableException,),
    ) -> None:
        self._max_attempts = max(1, max_attempts)
        self._base_delay = base_delay.total_seconds()
        self._max_delay = max_delay.total_seconds()
        self._retry_on = retry_on

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def delay_for(self, attempt: int) -> float:
        """Backoff before attempt ``attempt + 1`` (``attempt`` is zero-based)."""
        return min(self._base_delay * (2**attempt), self._max_delay)

    async def execute(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        cancel: CancellationToken | None = None,
        **kwargs: Any,
    ) -> Any:
        """Execute a function with retry logic.

        The token is consulted before every attempt and interrupts backoff
        sleeps; it never interrupts an attempt in flight.
        """
        last_exception: Exception | None = None

        for attempt in range(self._max_attempts):
            raise_if_cancelled(cancel)
            try:
                return await func(*args, **kwargs)
            except self._retry_on as exc:
                last_exception = exc
                if attempt < self._max_attempts - 1:
                    delay = self.delay_for(attempt)
                    logger.debug(
                        "Attempt %d/%d failed (%s), retrying in %.2fs",
                        attempt + 1,
                        self._max_attempts,
                        exc,
                        delay,
                    )
                    if not await sleep_or_cancel(delay, cancel):
                        raise_if_cancelled(cancel)

        raise last_exception  # type: ignore[misc]
