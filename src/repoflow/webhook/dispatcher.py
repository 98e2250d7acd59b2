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
"""Webhook delivery over a shared ``httpx.AsyncClient``.

Delivery never raises for transport or HTTP failures: every attempt ends in
a :class:`CallbackResult`.  Retries back off exponentially::

    delay(n) = min(backoff_base * 2 ** (n - 1), backoff_cap)

and each retry carries its number in ``retry_count``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

import httpx

from repoflow.core.properties import WebhookProperties
from repoflow.kernel.cancellation import CancellationToken, sleep_or_cancel
from repoflow.webhook.mask import matches_mask
from repoflow.webhook.signature import SIGNATURE_HEADER, sign
from repoflow.webhook.types import CallbackConfig, CallbackEvent, CallbackResult

logger = logging.getLogger(__name__)

_EXCERPT_BYTES = 1024


class CallbackDispatcher:
    """Sends :class:`CallbackEvent` objects to configured endpoints.

    Args:
        http_client: Shared client.  When given it is not closed by
            :meth:`aclose`.
        user_agent: ``User-Agent`` header for every delivery.
        backoff_base: First retry delay, in seconds.
        backoff_cap: Upper bound for any retry delay, in seconds.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        user_agent: str = "repoflow-webhook/1.0",
        backoff_base: float = 1.0,
        backoff_cap: float = 30.0,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()
        self._user_agent = user_agent
        self._backoff_base = backoff_base
        self._backoff_cap = backoff_cap

    @classmethod
    def from_properties(
        cls, props: WebhookProperties, http_client: httpx.AsyncClient | None = None
    ) -> CallbackDispatcher:
        return cls(
            http_client=http_client,
            user_agent=props.user_agent,
            backoff_base=props.backoff_base_s,
            backoff_cap=props.backoff_cap_s,
        )

    def backoff_delay(self, retry: int) -> float:
        """Seconds to wait before retry number *retry* (1-based)."""
        return min(self._backoff_base * 2 ** (retry - 1), self._backoff_cap)

    async def send_callback(self, config: CallbackConfig, event: CallbackEvent) -> CallbackResult:
        """Deliver *event* once.

        Events outside the endpoint's mask are not sent; the result is a
        success with ``skipped=True``.
        """
        if not matches_mask(config.event_mask, event.event_type, event.action):
            logger.debug("Event %s (%s) filtered out for %s", event.event_id, event.qualified_name, config.url)
            return CallbackResult(
                success=True,
                event_id=event.event_id,
                url=config.url,
                retry_count=event.retry_count,
                skipped=True,
            )

        body = event.to_json()
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self._user_agent,
            "X-Event-ID": event.event_id,
            "X-Event-Type": event.event_type,
        }
        headers.update(config.headers)
        if config.secret:
            headers[SIGNATURE_HEADER] = sign(body, config.secret)

        started = time.perf_counter()
        try:
            response = await self._client.post(config.url, content=body, headers=headers, timeout=config.timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            duration = time.perf_counter() - started
            logger.warning("Callback %s to %s failed: %s", event.event_id, config.url, exc)
            return CallbackResult(
                success=False,
                event_id=event.event_id,
                url=config.url,
                duration=duration,
                retry_count=event.retry_count,
                error=f"{type(exc).__name__}: {exc}",
            )

        duration = time.perf_counter() - started
        excerpt = response.content[:_EXCERPT_BYTES].decode("utf-8", errors="replace")
        result = CallbackResult(
            success=response.is_success,
            event_id=event.event_id,
            url=config.url,
            status_code=response.status_code,
            response_excerpt=excerpt,
            duration=duration,
            retry_count=event.retry_count,
        )
        if not result.success:
            result.error = f"HTTP {response.status_code}: {excerpt}"
            logger.warning(
                "Callback %s to %s rejected with %d", event.event_id, config.url, response.status_code
            )
        else:
            logger.debug(
                "Callback %s delivered to %s [status=%d, %.1fms]",
                event.event_id,
                config.url,
                response.status_code,
                duration * 1000,
            )
        return result

    async def send_callback_with_retry(
        self,
        config: CallbackConfig,
        event: CallbackEvent,
        cancel: CancellationToken | None = None,
    ) -> CallbackResult:
        """Deliver *event*, retrying up to ``config.retry_max`` times.

        Cancellation interrupts the backoff sleep; the last attempt's result
        is returned.
        """
        if cancel is not None and cancel.cancelled:
            return CallbackResult(
                success=False,
                event_id=event.event_id,
                url=config.url,
                error=f"cancelled before delivery: {cancel.reason}",
            )

        result = await self.send_callback(config, event)
        retries = max(config.retry_max, 0)
        for retry in range(1, retries + 1):
            if result.success:
                return result
            delay = self.backoff_delay(retry)
            logger.info(
                "Retrying callback %s to %s in %.1fs (%d/%d)", event.event_id, config.url, delay, retry, retries
            )
            if not await sleep_or_cancel(delay, cancel):
                logger.warning("Callback %s to %s cancelled during backoff", event.event_id, config.url)
                return result
            result = await self.send_callback(config, event.with_retry_count(retry))

        if not result.success:
            logger.error(
                "Callback %s to %s failed after %d attempt(s): %s",
                event.event_id,
                config.url,
                result.retry_count + 1,
                result.error,
            )
        return result

    async def broadcast(
        self,
        configs: Sequence[CallbackConfig],
        event: CallbackEvent,
        cancel: CancellationToken | None = None,
    ) -> list[CallbackResult]:
        """Deliver one event to every endpoint concurrently; results keep *configs* order."""
        if not configs:
            return []
        return list(await asyncio.gather(*(self.send_callback_with_retry(c, event, cancel) for c in configs)))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
