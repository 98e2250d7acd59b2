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
"""In-memory implementation of :class:`TransactionStorePort`.

Snapshots are deep-copied in both directions.  **All state is lost on
process restart.**
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime

from repoflow.transaction.types import DistributedTransaction, TransactionStatus


class InMemoryTransactionStore:
    """In-memory :class:`TransactionStorePort`.  State lost on restart."""

    def __init__(self) -> None:
        self._transactions: dict[uuid.UUID, DistributedTransaction] = {}

    async def save(self, transaction: DistributedTransaction) -> None:
        self._transactions[transaction.id] = transaction.copy()

    async def get(self, transaction_id: uuid.UUID) -> DistributedTransaction | None:
        tx = self._transactions.get(transaction_id)
        return tx.copy() if tx is not None else None

    async def find(
        self, statuses: Iterable[TransactionStatus] | None = None
    ) -> list[DistributedTransaction]:
        wanted = set(statuses) if statuses is not None else None
        return [
            tx.copy() for tx in self._transactions.values() if wanted is None or tx.status in wanted
        ]

    async def delete_completed(self, before: datetime) -> int:
        to_remove = [
            tid
            for tid, tx in self._transactions.items()
            if tx.is_terminal and tx.completed_at is not None and tx.completed_at <= before
        ]
        for tid in to_remove:
            del self._transactions[tid]
        return len(to_remove)

    def __len__(self) -> int:
        return len(self._transactions)
