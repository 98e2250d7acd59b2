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
"""Cooperative cancellation token with an optional deadline.

Every public orchestration operation accepts a :class:`CancellationToken`.
It is used two ways:

* cooperative checks (:func:`raise_if_cancelled`, :meth:`CancellationToken.sleep`)
  at suspension points such as phase boundaries, compensation invocations
  and retry sleeps.  These never touch a call that is already running.
* :func:`run_cancellable`, which races an awaitable against the token and
  cancels the awaitable when the token fires first.  Only side-effect-free
  work (validation lookups, confirmation re-fetches) is wrapped this way.

Plain asyncio task cancellation keeps working alongside both.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable
from datetime import timedelta
from typing import Any, TypeVar

from repoflow.kernel.exceptions import OperationCancelledException

T = TypeVar("T")


class CancellationToken:
    """Cancellation signal shared between a caller and a running operation.

    Args:
        timeout: Optional deadline measured from construction.  Once it
            elapses the token reports itself as cancelled.
    """

    def __init__(self, timeout: timedelta | None = None) -> None:
        self._event = asyncio.Event()
        self._deadline: float | None = (
            time.monotonic() + timeout.total_seconds() if timeout is not None else None
        )
        self._reason: str = ""

    @classmethod
    def with_timeout(cls, timeout: timedelta) -> CancellationToken:
        """Create a token that cancels itself once *timeout* has elapsed."""
        return cls(timeout=timeout)

    @property
    def reason(self) -> str:
        if self._reason:
            return self._reason
        if self._deadline_passed():
            return "deadline exceeded"
        return ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self._deadline_passed()

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal cancellation to every waiter."""
        self._reason = reason
        self._event.set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    async def wait(self) -> None:
        """Block until the token is cancelled explicitly."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelledException(
                f"Operation cancelled: {self.reason}",
                code="CANCELLED",
            )

    async def sleep(self, delay: float) -> bool:
        """Sleep for *delay* seconds unless cancelled first.

        Returns ``True`` when the full delay elapsed and ``False`` when the
        token was cancelled (or its deadline hit) during the wait.
        """
        if self.cancelled:
            return False
        remaining = self.remaining()
        wait_for = delay if remaining is None else min(delay, remaining)
        try:
            await asyncio.wait_for(self._event.wait(), timeout=wait_for)
        except TimeoutError:
            return not self.cancelled
        return False

    def _deadline_passed(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline


async def sleep_or_cancel(delay: float, cancel: CancellationToken | None) -> bool:
    """Sleep for *delay* seconds, honouring *cancel* when given."""
    if cancel is None:
        await asyncio.sleep(delay)
        return True
    return await cancel.sleep(delay)


def raise_if_cancelled(cancel: CancellationToken | None) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()


def _consume_result(task: asyncio.Future[Any]) -> None:
    if not task.cancelled():
        task.exception()


async def run_cancellable(awaitable: Awaitable[T], cancel: CancellationToken | None) -> T:
    """Await *awaitable*, abandoning it as soon as *cancel* fires.

    Raises:
        OperationCancelledException: If the token is cancelled (or its
            deadline passes) before *awaitable* completes.
    """
    if cancel is None:
        return await awaitable
    if cancel.cancelled:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        cancel.raise_if_cancelled()

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter},
            timeout=cancel.remaining(),
            return_when=asyncio.FIRST_COMPLETED,
        )
    except BaseException:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    task.add_done_callback(_consume_result)
    raise OperationCancelledException(
        f"Operation cancelled: {cancel.reason or 'cancelled'}",
        code="CANCELLED",
    )
