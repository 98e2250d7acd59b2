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
"""Transaction recovery service -- settle work a crash or cancellation left behind.

:class:`TransactionRecoveryService` is meant to run periodically (from a
scheduler or a maintenance command).  It finds transactions stuck in a
non-terminal status for longer than a threshold and forces them to a
terminal status, re-drives pending compensations, and prunes old records.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from repoflow.compensation.manager import CompensationManager
from repoflow.kernel.cancellation import CancellationToken, raise_if_cancelled
from repoflow.transaction.exceptions import TransactionException
from repoflow.transaction.manager import DistributedTransactionManager
from repoflow.transaction.types import TransactionStatus

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    transactions_removed: int = 0
    compensations_removed: int = 0


@dataclass
class RecoveryReport:
    """Outcome of one :meth:`TransactionRecoveryService.recover_stale` pass."""

    cancelled: list[uuid.UUID] = field(default_factory=list)
    failed: list[uuid.UUID] = field(default_factory=list)
    skipped: list[uuid.UUID] = field(default_factory=list)

    @property
    def recovered(self) -> int:
        return len(self.cancelled) + len(self.failed)


class TransactionRecoveryService:
    """Recovers stuck transactions and re-drives their compensations.

    Args:
        transaction_manager: Owner of the transactions.
        compensation_manager: Owner of the compensation entries.  Defaults
            to the one the transaction manager enrols into.
        stale_threshold: Age after which a non-terminal transaction counts
            as stuck.
    """

    def __init__(
        self,
        transaction_manager: DistributedTransactionManager,
        compensation_manager: CompensationManager | None = None,
        stale_threshold: timedelta = timedelta(minutes=10),
    ) -> None:
        self._transactions = transaction_manager
        self._compensations = compensation_manager or transaction_manager.compensation_manager
        self._stale_threshold = stale_threshold

    # ── public API ────────────────────────────────────────────

    async def recover_stale(
        self,
        threshold: timedelta | None = None,
        cancel: CancellationToken | None = None,
    ) -> RecoveryReport:
        """Force transactions stuck longer than *threshold* into a terminal status.

        ``executed`` transactions get their compensations run and end
        ``cancelled``; ``pending`` and ``validated`` ones end ``failed``.
        Transactions still driven by a coroutine in this process are skipped.
        """
        cutoff = datetime.now(UTC) - (threshold if threshold is not None else self._stale_threshold)
        report = RecoveryReport()

        for tx in await self._transactions.list_active():
            if tx.updated_at > cutoff:
                continue
            if self._transactions.is_in_flight(tx.id):
                report.skipped.append(tx.id)
                continue
            raise_if_cancelled(cancel)

            logger.warning(
                "Recovering stale transaction %s [type=%s, status=%s, updated_at=%s]",
                tx.id,
                tx.type,
                tx.status,
                tx.updated_at.isoformat(),
            )
            try:
                settled = await self._transactions.abandon(
                    tx.id, f"stale in status '{tx.status}' since {tx.updated_at.isoformat()}"
                )
            except TransactionException as exc:
                logger.info("Skipping transaction %s: %s", tx.id, exc)
                report.skipped.append(tx.id)
                continue

            if settled.status == TransactionStatus.CANCELLED:
                report.cancelled.append(settled.id)
            else:
                report.failed.append(settled.id)

        logger.info(
            "Stale transaction recovery finished: cancelled=%d failed=%d skipped=%d",
            len(report.cancelled),
            len(report.failed),
            len(report.skipped),
        )
        return report

    async def drain_compensations(self, cancel: CancellationToken | None = None) -> int:
        """Re-drive pending compensations of cancelled transactions.

        Entries enrolled by confirmed transactions (or by transactions
        already pruned) are left alone: their side effect stands.  Keeps
        going past failures and raises the first one at the end.

        Returns:
            How many compensations succeeded.
        """
        cancelled = await self._transactions.list_transactions([TransactionStatus.CANCELLED])
        owned = {cid for tx in cancelled for cid in tx.compensation_ids}
        pending = [e for e in await self._compensations.list_pending() if e.id in owned]
        logger.info("Re-driving %d pending compensation(s) of cancelled transactions", len(pending))

        first_error: Exception | None = None
        succeeded = 0
        for entry in pending:
            raise_if_cancelled(cancel)
            try:
                await self._compensations.execute_compensation(entry.id, cancel)
            except Exception as exc:  # noqa: BLE001
                first_error = first_error or exc
                continue
            succeeded += 1

        if first_error is not None:
            raise first_error
        return succeeded

    async def cleanup(
        self,
        transactions_older_than: timedelta | None = None,
        compensations_older_than: timedelta | None = None,
    ) -> CleanupReport:
        """Prune old terminal transactions and executed compensations.

        ``None`` falls back to each manager's configured retention.
        """
        return CleanupReport(
            transactions_removed=await self._transactions.cleanup_completed(transactions_older_than),
            compensations_removed=await self._compensations.clear_executed(compensations_older_than),
        )
