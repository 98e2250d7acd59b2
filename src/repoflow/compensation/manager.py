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
"""CompensationManager: registry and executor for undo intents.

An entry is a promise to carry out an action until it succeeds or its
retry budget is spent::

    pending ──success──▶ executed
       │
       └──retry_count ≥ max_retries──▶ failed

Bookkeeping happens under one map lock; the action executor itself runs
outside it so that status queries never wait on the gateway.  Calls on the
same id additionally serialise on a per-entry lock, so a second caller
only ever sees the outcome of the first.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from repoflow.compensation.exceptions import (
    CompensationExecutionException,
    CompensationNotFoundException,
    CompensationRetriesExhaustedException,
    UnknownCompensationActionException,
)
from repoflow.compensation.memory import InMemoryCompensationStore
from repoflow.compensation.ports import CompensationStorePort, FailureNotifierPort
from repoflow.compensation.types import CompensationAction, CompensationEntry, CompensationStatus
from repoflow.gateway.exceptions import GatewayNotFoundException
from repoflow.gateway.ports import GitGatewayPort
from repoflow.kernel.cancellation import CancellationToken, raise_if_cancelled

logger = logging.getLogger(__name__)

_Executor = Callable[[CompensationEntry], Awaitable[None]]


class CompensationManager:
    """Registers compensation entries and executes them idempotently.

    Args:
        gateway: Git gateway used by ``delete_repository``.
        store: Entry storage.  Defaults to :class:`InMemoryCompensationStore`.
        notifier: Optional sink for ``notify_failure`` entries.
        max_retries: Retry budget given to new entries.
        retention: Default age for :meth:`clear_executed`.  Zero clears every
            executed entry.
    """

    def __init__(
        self,
        gateway: GitGatewayPort,
        store: CompensationStorePort | None = None,
        notifier: FailureNotifierPort | None = None,
        max_retries: int = 3,
        retention: timedelta = timedelta(0),
    ) -> None:
        self._gateway = gateway
        self._store: CompensationStorePort = store if store is not None else InMemoryCompensationStore()
        self._notifier = notifier
        self._max_retries = max_retries
        self._retention = retention
        self._lock = asyncio.Lock()
        self._entry_locks: dict[uuid.UUID, asyncio.Lock] = {}
        self._executors: dict[str, _Executor] = {
            CompensationAction.DELETE_REPOSITORY: self._delete_repository,
            CompensationAction.ROLLBACK_PROJECT: self._rollback_project,
            CompensationAction.NOTIFY_FAILURE: self._notify_failure,
        }

    @property
    def store(self) -> CompensationStorePort:
        return self._store

    # ── registration ──────────────────────────────────────────

    async def add_compensation(
        self,
        action: CompensationAction | str,
        resource_id: uuid.UUID,
        payload: dict[str, Any] | None = None,
    ) -> uuid.UUID:
        """Register a new ``pending`` entry and return its id."""
        try:
            action = CompensationAction(action)
        except ValueError:
            logger.warning("Registering compensation with unknown action '%s'", action)
        entry = CompensationEntry(
            id=uuid.uuid4(),
            action=action,
            resource_id=resource_id,
            payload=dict(payload or {}),
            max_retries=self._max_retries,
        )
        async with self._lock:
            await self._store.save(entry)
            self._entry_locks[entry.id] = asyncio.Lock()

        logger.info(
            "Compensation %s registered: action=%s resource=%s",
            entry.id,
            entry.action,
            resource_id,
        )
        return entry.id

    # ── execution ─────────────────────────────────────────────

    async def execute_compensation(
        self, compensation_id: uuid.UUID, cancel: CancellationToken | None = None
    ) -> None:
        """Run one entry's action, at most once to success.

        Raises:
            CompensationNotFoundException: No entry with that id.
            CompensationRetriesExhaustedException: The budget is spent; the
                entry is now ``failed``.
            CompensationExecutionException: This attempt failed; the entry
                stays ``pending`` with ``last_error`` set.
            UnknownCompensationActionException: No executor for the action.
            OperationCancelledException: *cancel* fired before the action ran.
        """
        entry_lock = await self._entry_lock(compensation_id)

        async with entry_lock:
            async with self._lock:
                entry = await self._require(compensation_id)

                if entry.status == CompensationStatus.EXECUTED:
                    logger.info("Compensation %s already executed, skipping", compensation_id)
                    return

                if entry.status == CompensationStatus.FAILED or entry.retry_count >= entry.max_retries:
                    if entry.status != CompensationStatus.FAILED:
                        entry.status = CompensationStatus.FAILED
                        await self._store.save(entry)
                    logger.error(
                        "Compensation %s exceeded max retries (%d)",
                        compensation_id,
                        entry.retry_count,
                    )
                    raise CompensationRetriesExhaustedException(
                        compensation_id, entry.retry_count, entry.last_error
                    )

                raise_if_cancelled(cancel)

                entry.retry_count += 1
                await self._store.save(entry)

            logger.info(
                "Executing compensation %s: action=%s attempt=%d/%d",
                compensation_id,
                entry.action,
                entry.retry_count,
                entry.max_retries,
            )

            try:
                executor = self._executors.get(entry.action)
                if executor is None:
                    raise UnknownCompensationActionException(compensation_id, str(entry.action))
                await executor(entry.copy())
            except Exception as exc:
                async with self._lock:
                    entry.last_error = str(exc)
                    await self._store.save(entry)
                logger.error("Compensation %s failed: %s", compensation_id, exc)
                if isinstance(exc, UnknownCompensationActionException):
                    raise
                raise CompensationExecutionException(compensation_id, str(entry.action), exc) from exc

            async with self._lock:
                entry.status = CompensationStatus.EXECUTED
                entry.executed_at = datetime.now(UTC)
                entry.last_error = None
                await self._store.save(entry)

        logger.info("Compensation %s executed: action=%s", compensation_id, entry.action)

    async def execute_all_pending(self, cancel: CancellationToken | None = None) -> int:
        """Drain every ``pending`` entry in enrolment order.

        Keeps going past failures and raises the first one once the drain is
        over.  Cancellation is honoured between entries.

        Returns:
            The number of entries executed successfully.
        """
        pending = await self.list_pending()
        logger.info("Draining %d pending compensation(s)", len(pending))

        first_error: Exception | None = None
        succeeded = 0
        for entry in pending:
            raise_if_cancelled(cancel)
            try:
                await self.execute_compensation(entry.id, cancel)
            except Exception as exc:  # noqa: BLE001
                if first_error is None:
                    first_error = exc
                continue
            succeeded += 1

        logger.info(
            "Compensation drain finished: total=%d succeeded=%d failed=%d",
            len(pending),
            succeeded,
            len(pending) - succeeded,
        )
        if first_error is not None:
            raise first_error
        return succeeded

    # ── inspection ────────────────────────────────────────────

    async def get_status(self, compensation_id: uuid.UUID) -> CompensationEntry:
        async with self._lock:
            return await self._require(compensation_id)

    async def list_pending(self) -> list[CompensationEntry]:
        async with self._lock:
            return await self._store.find(CompensationStatus.PENDING)

    async def list_failed(self) -> list[CompensationEntry]:
        async with self._lock:
            return await self._store.find(CompensationStatus.FAILED)

    async def clear_executed(self, older_than: timedelta | None = None) -> int:
        """Drop executed entries whose execution is at least *older_than* ago."""
        cutoff = datetime.now(UTC) - (older_than if older_than is not None else self._retention)
        async with self._lock:
            removed = await self._store.delete_executed(cutoff)
            for cid in removed:
                self._entry_locks.pop(cid, None)
        logger.info("Cleared %d executed compensation(s)", len(removed))
        return len(removed)

    # ── internals ─────────────────────────────────────────────

    async def _entry_lock(self, compensation_id: uuid.UUID) -> asyncio.Lock:
        async with self._lock:
            lock = self._entry_locks.get(compensation_id)
            if lock is None:
                # entries loaded by a durable store from an earlier process
                await self._require(compensation_id)
                lock = self._entry_locks.setdefault(compensation_id, asyncio.Lock())
            return lock

    async def _require(self, compensation_id: uuid.UUID) -> CompensationEntry:
        entry = await self._store.get(compensation_id)
        if entry is None:
            raise CompensationNotFoundException(compensation_id)
        return entry

    async def _delete_repository(self, entry: CompensationEntry) -> None:
        try:
            await self._gateway.delete_repository(entry.resource_id)
        except GatewayNotFoundException:
            logger.info("Repository %s already absent, nothing to delete", entry.resource_id)

    async def _rollback_project(self, entry: CompensationEntry) -> None:
        logger.info(
            "Project rollback recorded for %s (payload=%s)",
            entry.resource_id,
            entry.payload,
        )

    async def _notify_failure(self, entry: CompensationEntry) -> None:
        logger.warning("Failure notification for %s: %s", entry.resource_id, entry.payload)
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_failure(entry)
        except Exception:  # noqa: BLE001
            logger.exception("Failure notifier raised for compensation %s", entry.id)
