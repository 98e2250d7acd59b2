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
"""Outbound ports of the transaction manager.

These ``@runtime_checkable`` ``Protocol`` definitions are the boundary
between the manager and its storage and observability adapters.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol, runtime_checkable

from repoflow.transaction.types import DistributedTransaction, TransactionPhase, TransactionStatus


@runtime_checkable
class TransactionStorePort(Protocol):
    """Persistence for transaction snapshots."""

    async def save(self, transaction: DistributedTransaction) -> None:
        """Insert or replace the snapshot for ``transaction.id``."""
        ...

    async def get(self, transaction_id: uuid.UUID) -> DistributedTransaction | None:
        """Return a detached copy of the transaction, or ``None``."""
        ...

    async def find(
        self, statuses: Iterable[TransactionStatus] | None = None
    ) -> list[DistributedTransaction]:
        """Return transactions whose status is in *statuses* (all when ``None``)."""
        ...

    async def delete_completed(self, before: datetime) -> int:
        """Delete terminal transactions completed at or before *before*.

        Returns the number of records deleted.
        """
        ...


@runtime_checkable
class TransactionEventsPort(Protocol):
    """Lifecycle notifications for metrics, audit logs and webhooks."""

    async def on_started(self, transaction: DistributedTransaction) -> None: ...

    async def on_phase_completed(
        self, transaction: DistributedTransaction, phase: TransactionPhase, latency_ms: float
    ) -> None:
        """Fired when *phase* finished successfully."""
        ...

    async def on_compensated(
        self,
        transaction: DistributedTransaction,
        compensation_id: uuid.UUID,
        error: Exception | None,
    ) -> None:
        """Fired after a compensation ran; *error* is ``None`` on success."""
        ...

    async def on_completed(
        self, transaction: DistributedTransaction, error: Exception | None
    ) -> None:
        """Fired once the transaction reached a terminal status."""
        ...
