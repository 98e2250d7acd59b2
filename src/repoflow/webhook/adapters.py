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
"""Bridges from transactions and compensations to webhook delivery.

:class:`WebhookEventsAdapter` plugs into the transaction events port and
announces terminal outcomes.  :class:`WebhookFailureNotifier` backs the
``notify_failure`` compensation.

Both deliver as background tasks, so a slow endpoint or a retry cycle
never holds up the transaction that triggered it; call ``drain()`` on each
before shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from typing import Any

from repoflow.compensation.types import CompensationEntry
from repoflow.transaction.types import (
    DistributedTransaction,
    TransactionPhase,
    TransactionStatus,
    TransactionType,
)
from repoflow.webhook.dispatcher import CallbackDispatcher
from repoflow.webhook.types import (
    CallbackConfig,
    CallbackEvent,
    CallbackResult,
    create_project_event,
    create_repository_event,
)

logger = logging.getLogger(__name__)

_REPOSITORY_ACTIONS = {
    TransactionType.CREATE_REPOSITORY: "created",
    TransactionType.DELETE_REPOSITORY: "deleted",
}


def _metadata(transaction: DistributedTransaction) -> dict[str, Any]:
    return {
        "transaction_id": str(transaction.id),
        "transaction_type": transaction.type.value,
        "actor_id": str(transaction.actor_id),
        "tenant_id": str(transaction.tenant_id),
    }


class _BackgroundDelivery:
    """Broadcasts events to a fixed endpoint list from tracked tasks."""

    def __init__(self, dispatcher: CallbackDispatcher, endpoints: Sequence[CallbackConfig]) -> None:
        self._dispatcher = dispatcher
        self._endpoints = list(endpoints)
        self._tasks: set[asyncio.Task[list[CallbackResult]]] = set()

    @property
    def pending(self) -> int:
        """Deliveries scheduled but not finished yet."""
        return len(self._tasks)

    def _schedule(self, event: CallbackEvent) -> None:
        task = asyncio.create_task(self._deliver(event))
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    async def _deliver(self, event: CallbackEvent) -> list[CallbackResult]:
        results = await self._dispatcher.broadcast(self._endpoints, event)
        self._delivered(event, results)
        return results

    def _delivered(self, event: CallbackEvent, results: list[CallbackResult]) -> None:
        pass

    def _finished(self, task: asyncio.Task[list[CallbackResult]]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Webhook broadcast crashed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class WebhookEventsAdapter(_BackgroundDelivery):
    """Emits ``repository.*`` and ``transaction.*`` events on completion.

    * confirmed create: ``repository.created`` with the repository
    * confirmed delete: ``repository.deleted`` with the deleted snapshot
    * failed or cancelled: ``transaction.failed`` / ``transaction.cancelled``
    """

    async def on_started(self, transaction: DistributedTransaction) -> None:
        pass

    async def on_phase_completed(
        self, transaction: DistributedTransaction, phase: TransactionPhase, latency_ms: float
    ) -> None:
        pass

    async def on_compensated(
        self,
        transaction: DistributedTransaction,
        compensation_id: uuid.UUID,
        error: Exception | None,
    ) -> None:
        pass

    async def on_completed(self, transaction: DistributedTransaction, error: Exception | None) -> None:
        if not self._endpoints:
            return
        event = self.build_event(transaction, error)
        if event is not None:
            self._schedule(event)

    @staticmethod
    def build_event(transaction: DistributedTransaction, error: Exception | None = None) -> CallbackEvent | None:
        """Translate a terminal transaction into its callback event."""
        if transaction.status == TransactionStatus.CONFIRMED:
            action = _REPOSITORY_ACTIONS.get(transaction.type)
            if action is None:
                return None
            return create_repository_event(
                action, transaction.project_id, transaction.result, metadata=_metadata(transaction)
            )
        if transaction.status in (TransactionStatus.FAILED, TransactionStatus.CANCELLED):
            resource = {
                "transaction_id": str(transaction.id),
                "phase": transaction.phase.value,
                "error_code": transaction.error_code,
                "error_message": transaction.error_message or (str(error) if error else None),
                "compensation_ids": [str(c) for c in transaction.compensation_ids],
            }
            return create_project_event(
                "transaction",
                transaction.status.value,
                transaction.project_id,
                resource,
                metadata=_metadata(transaction),
            )
        return None


class WebhookFailureNotifier(_BackgroundDelivery):
    """Delivers ``compensation.notify_failure`` events for failure compensations.

    The compensation succeeds as soon as the event is scheduled; delivery
    outcomes are only logged.
    """

    async def notify_failure(self, entry: CompensationEntry) -> None:
        if not self._endpoints:
            return
        self._schedule(
            create_project_event(
                "compensation",
                "notify_failure",
                entry.payload.get("project_id", ""),
                entry.to_dict(),
                metadata={"compensation_id": str(entry.id), "resource_id": str(entry.resource_id)},
            )
        )

    def _delivered(self, event: CallbackEvent, results: list[CallbackResult]) -> None:
        failed = [r for r in results if not r.success]
        if failed:
            logger.warning(
                "Failure notification for %s not delivered to %d endpoint(s)",
                event.metadata.get("resource_id"),
                len(failed),
            )
