# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Circuit breaker guarding calls to the Git gateway.

::

    closed ──threshold consecutive outages──▶ open
      ▲                                         │ recovery_timeout
      │                                         ▼
      └────────── probe answered ─────────── half_open ──probe outage──▶ open

Only outages (``record_on``) are counted.  Any other exception means the
gateway answered, e.g. a 404 or a rejected request, and counts as a
success.  While half-open exactly one probe is in flight; concurrent calls
are rejected as if the circuit were open.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import timedelta
from enum import StrEnum
from typing import Any

from repoflow.gateway.exceptions import GatewayUnavailableException
from repoflow.kernel.exceptions import CircuitBreakerException

logger = logging.getLogger(__name__)


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Fails fast while the gateway is known to be down.

    Args:
        failure_threshold: Consecutive outages before opening.
        recovery_timeout: How long to stay open before probing.
        record_on: Exception types that count as outages.
        name: Label used in log lines and error messages.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: timedelta = timedelta(seconds=30),
        record_on: tuple[type[BaseException], ...] = (GatewayUnavailableException,),
        name: str = "git-gateway",
    ) -> None:
        self._threshold = max(failure_threshold, 1)
        self._cooldown = recovery_timeout.total_seconds()
        self._record_on = record_on
        self._name = name
        self._consecutive = 0
        self._opened_at: float | None = None
        self._probing = False

    @property
    def state(self) -> CircuitState:
        if self._opened_at is None:
            return CircuitState.CLOSED
        if time.monotonic() - self._opened_at >= self._cooldown:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        return self._consecutive

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Run ``func(*args, **kwargs)`` unless the circuit rejects it.

        Raises:
            CircuitBreakerException: Open, or half-open with a probe running.
        """
        state = self.state
        if state == CircuitState.OPEN or (state == CircuitState.HALF_OPEN and self._probing):
            raise CircuitBreakerException(
                f"Circuit breaker '{self._name}' is open",
                code="CIRCUIT_OPEN",
                context={"failures": self._consecutive, "state": state.value},
            )

        probe = state == CircuitState.HALF_OPEN
        if probe:
            self._probing = True
            logger.info("Circuit breaker '%s' half-open, probing", self._name)
        try:
            result = await func(*args, **kwargs)
        except self._record_on:
            self._record_outage()
            raise
        except Exception:
            if probe:
                self._close()
            raise
        finally:
            if probe:
                self._probing = False
        self._close()
        return result

    def reset(self) -> None:
        self._close()

    def _close(self) -> None:
        if self._opened_at is not None:
            logger.info("Circuit breaker '%s' closed", self._name)
        self._consecutive = 0
        self._opened_at = None

    def _record_outage(self) -> None:
        self._consecutive += 1
        if self._opened_at is not None or self._consecutive >= self._threshold:
            if self._opened_at is None:
                logger.warning(
                    "Circuit breaker '%s' opened after %d consecutive outages", self._name, self._consecutive
                )
            self._opened_at = time.monotonic()
