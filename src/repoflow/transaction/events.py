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
"""Observability adapters for transaction lifecycle events.

* :class:`LoggerEventsAdapter` -- one log line per lifecycle event.
* :class:`MetricsEventsAdapter` -- Prometheus counters and a phase latency
  histogram.
* :class:`CompositeEventsAdapter` -- fans out to several adapters and
  absorbs individual failures so one broken sink never silences the others.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from repoflow.observability.metrics import GATEWAY_LATENCY_BUCKETS, MetricsRegistry
from repoflow.transaction.ports import TransactionEventsPort
from repoflow.transaction.types import DistributedTransaction, TransactionPhase

_logger = logging.getLogger("repoflow.transaction.events")


# ---------------------------------------------------------------------------
# LoggerEventsAdapter
# ---------------------------------------------------------------------------


class LoggerEventsAdapter:
    """Logs lifecycle events through the ``repoflow.transaction.events`` logger.

    Progress logs at :data:`logging.INFO`; failures and compensation errors
    at :data:`logging.WARNING`.
    """

    async def on_started(self, transaction: DistributedTransaction) -> None:
        _logger.info(
            "Transaction %s started [type=%s, project=%s, actor=%s]",
            transaction.id,
            transaction.type,
            transaction.project_id,
            transaction.actor_id,
        )

    async def on_phase_completed(
        self, transaction: DistributedTransaction, phase: TransactionPhase, latency_ms: float
    ) -> None:
        _logger.info(
            "Transaction %s completed phase '%s' [latency=%.1fms]",
            transaction.id,
            phase,
            latency_ms,
        )

    async def on_compensated(
        self,
        transaction: DistributedTransaction,
        compensation_id: uuid.UUID,
        error: Exception | None,
    ) -> None:
        if error is None:
            _logger.info("Transaction %s compensation %s executed", transaction.id, compensation_id)
        else:
            _logger.warning(
                "Transaction %s compensation %s failed: %s", transaction.id, compensation_id, error
            )

    async def on_completed(self, transaction: DistributedTransaction, error: Exception | None) -> None:
        if error is None:
            _logger.info("Transaction %s %s", transaction.id, transaction.status)
        else:
            _logger.warning(
                "Transaction %s %s in phase '%s': %s",
                transaction.id,
                transaction.status,
                transaction.phase,
                error,
            )


# ---------------------------------------------------------------------------
# MetricsEventsAdapter
# ---------------------------------------------------------------------------


class MetricsEventsAdapter:
    """Counts transactions by outcome and times each phase.

    Exposed series:

    * ``repoflow_transactions_total{type, status}``
    * ``repoflow_transaction_phase_seconds{type, phase}``
    * ``repoflow_compensations_total{outcome}``
    * ``repoflow_transactions_in_progress{type}``
    """

    def __init__(self, metrics: MetricsRegistry) -> None:
        self._transactions = metrics.counter(
            "repoflow_transactions_total",
            "Transactions reaching a terminal status",
            labels=["type", "status"],
        )
        self._phases = metrics.histogram(
            "repoflow_transaction_phase_seconds",
            "Duration of successful transaction phases",
            labels=["type", "phase"],
            buckets=GATEWAY_LATENCY_BUCKETS,
        )
        self._compensations = metrics.counter(
            "repoflow_compensations_total",
            "Compensations run on behalf of transactions",
            labels=["outcome"],
        )
        self._in_progress = metrics.gauge(
            "repoflow_transactions_in_progress",
            "Transactions started but not yet terminal",
            labels=["type"],
        )

    async def on_started(self, transaction: DistributedTransaction) -> None:
        self._in_progress.labels(type=transaction.type.value).inc()

    async def on_phase_completed(
        self, transaction: DistributedTransaction, phase: TransactionPhase, latency_ms: float
    ) -> None:
        self._phases.labels(type=transaction.type.value, phase=phase.value).observe(latency_ms / 1000.0)

    async def on_compensated(
        self,
        transaction: DistributedTransaction,
        compensation_id: uuid.UUID,
        error: Exception | None,
    ) -> None:
        self._compensations.labels(outcome="success" if error is None else "error").inc()

    async def on_completed(self, transaction: DistributedTransaction, error: Exception | None) -> None:
        self._transactions.labels(type=transaction.type.value, status=transaction.status.value).inc()
        self._in_progress.labels(type=transaction.type.value).dec()


# ---------------------------------------------------------------------------
# CompositeEventsAdapter
# ---------------------------------------------------------------------------


class CompositeEventsAdapter:
    """Broadcasts lifecycle events to several :class:`TransactionEventsPort` adapters.

    Args:
        *adapters: Adapters to broadcast to, in order.
    """

    def __init__(self, *adapters: TransactionEventsPort) -> None:
        self._adapters: Sequence[TransactionEventsPort] = adapters

    async def _broadcast(self, method: str, *args: object) -> None:
        for adapter in self._adapters:
            try:
                await getattr(adapter, method)(*args)
            except Exception:
                _logger.error("Events adapter %r failed on %s", adapter, method, exc_info=True)

    async def on_started(self, transaction: DistributedTransaction) -> None:
        await self._broadcast("on_started", transaction)

    async def on_phase_completed(
        self, transaction: DistributedTransaction, phase: TransactionPhase, latency_ms: float
    ) -> None:
        await self._broadcast("on_phase_completed", transaction, phase, latency_ms)

    async def on_compensated(
        self,
        transaction: DistributedTransaction,
        compensation_id: uuid.UUID,
        error: Exception | None,
    ) -> None:
        await self._broadcast("on_compensated", transaction, compensation_id, error)

    async def on_completed(self, transaction: DistributedTransaction, error: Exception | None) -> None:
        await self._broadcast("on_completed", transaction, error)
