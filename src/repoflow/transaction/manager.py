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
"""DistributedTransactionManager: TCC orchestration against the Git gateway.

Each operation runs four strictly sequential phases:

1. **Validation** -- project, access and request checks.  No side effects.
2. **Execution** -- the gateway call that changes remote state.
3. **Compensation enrolment** -- an undo intent is recorded *before*
   confirmation starts, so a crash after execution always leaves something
   to recover from.
4. **Confirmation** -- the gateway is asked whether the change is visible.
   If not, every enrolled compensation runs and the transaction ends
   ``cancelled``.

Errors are tagged with the phase they happened in (see
:mod:`repoflow.transaction.exceptions`).
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from repoflow.compensation.manager import CompensationManager
from repoflow.compensation.types import CompensationAction
from repoflow.gateway.exceptions import GatewayNotFoundException
from repoflow.gateway.models import CreateRepositoryRequest, Repository, RepositoryVisibility
from repoflow.gateway.ports import GitGatewayPort
from repoflow.kernel.cancellation import CancellationToken, raise_if_cancelled, run_cancellable
from repoflow.kernel.exceptions import OperationCancelledException, ValidationException
from repoflow.project.ports import ProjectRepositoryPort
from repoflow.transaction.events import LoggerEventsAdapter
from repoflow.transaction.exceptions import (
    AccessDeniedError,
    CancelFailure,
    ConfirmationFailure,
    ExecutionFailure,
    ProjectNotFoundError,
    TransactionException,
    TransactionNotFoundException,
    ValidationFailure,
)
from repoflow.transaction.memory import InMemoryTransactionStore
from repoflow.transaction.ports import TransactionEventsPort, TransactionStorePort
from repoflow.transaction.types import (
    DistributedTransaction,
    TransactionPhase,
    TransactionStatus,
    TransactionType,
)

logger = logging.getLogger(__name__)

REPOSITORY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,99}$")
DEFAULT_BRANCH = "main"

_ACTIVE = (TransactionStatus.PENDING, TransactionStatus.VALIDATED, TransactionStatus.EXECUTED)


def normalize_create_request(request: CreateRepositoryRequest) -> CreateRepositoryRequest:
    """Validate a create request and fill in defaults.

    Raises:
        ValidationException: Describing the first problem found.
    """
    if not request.name:
        raise ValidationException("repository name must not be empty", code="INVALID_NAME")
    if not REPOSITORY_NAME_PATTERN.fullmatch(request.name):
        raise ValidationException(
            f"repository name '{request.name}' must start with a letter or digit and contain "
            "only letters, digits, '.', '_' or '-' (at most 100 characters)",
            code="INVALID_NAME",
        )
    try:
        visibility = RepositoryVisibility(request.visibility)
    except ValueError:
        allowed = ", ".join(v.value for v in RepositoryVisibility)
        raise ValidationException(
            f"visibility '{request.visibility}' must be one of: {allowed}", code="INVALID_VISIBILITY"
        ) from None
    branch = DEFAULT_BRANCH if request.default_branch is None else request.default_branch
    if not branch.strip():
        raise ValidationException("default branch must not be empty", code="INVALID_BRANCH")
    return request.model_copy(update={"visibility": visibility.value, "default_branch": branch})


class DistributedTransactionManager:
    """Drives repository transactions through validate, execute, enrol, confirm.

    Args:
        project_repository: Project lookup used during validation.
        gateway: The Git gateway.
        compensation_manager: Where undo intents are enrolled.
        store: Transaction storage.  Defaults to :class:`InMemoryTransactionStore`.
        events: Lifecycle sink.  Defaults to :class:`LoggerEventsAdapter`.
        retention: Default age for :meth:`cleanup_completed`.
    """

    def __init__(
        self,
        project_repository: ProjectRepositoryPort,
        gateway: GitGatewayPort,
        compensation_manager: CompensationManager,
        store: TransactionStorePort | None = None,
        events: TransactionEventsPort | None = None,
        retention: timedelta = timedelta(hours=24),
    ) -> None:
        self._projects = project_repository
        self._gateway = gateway
        self._compensations = compensation_manager
        self._store: TransactionStorePort = store if store is not None else InMemoryTransactionStore()
        self._events: TransactionEventsPort = events if events is not None else LoggerEventsAdapter()
        self._retention = retention
        self._lock = asyncio.Lock()
        self._in_flight: set[uuid.UUID] = set()

    @property
    def compensation_manager(self) -> CompensationManager:
        return self._compensations

    # ── operations ────────────────────────────────────────────

    async def create_repository_transaction(
        self,
        project_id: uuid.UUID,
        actor_id: uuid.UUID,
        tenant_id: uuid.UUID,
        request: CreateRepositoryRequest,
        cancel: CancellationToken | None = None,
    ) -> Repository:
        """Create a repository on the gateway and return the confirmed artifact.

        Raises:
            ValidationFailure: Project missing, request invalid, or cancelled
                before execution.  ``ProjectNotFoundError`` is a subclass.
            AccessDeniedError: The actor has no access to the project.
            ExecutionFailure: The gateway did not create the repository.
            ConfirmationFailure: The repository could not be confirmed and
                was deleted again.
            CancelFailure: As above, but the deletion itself failed.
        """
        tx = DistributedTransaction(
            type=TransactionType.CREATE_REPOSITORY,
            actor_id=actor_id,
            tenant_id=tenant_id,
            project_id=project_id,
            payload=request.model_dump(mode="json"),
        )
        normalized: list[CreateRepositoryRequest] = []

        async def validate() -> None:
            await self._check_project_access(tx)
            if request.project_id != project_id:
                raise ValidationFailure(
                    f"request targets project {request.project_id}, not {project_id}", tx.id
                )
            try:
                normalized.append(normalize_create_request(request))
            except ValidationException as exc:
                raise ValidationFailure(str(exc), tx.id, code=exc.code) from exc

        async def execute() -> Repository:
            return await self._gateway.create_repository(normalized[0])

        async def enrol(repo: Repository) -> uuid.UUID:
            return await self._compensations.add_compensation(
                CompensationAction.DELETE_REPOSITORY,
                repo.id,
                {
                    "repository_name": repo.name,
                    "project_id": str(repo.project_id),
                    "actor_id": str(actor_id),
                    "created_at": (repo.created_at or datetime.now(UTC)).isoformat(),
                },
            )

        async def confirm(repo: Repository) -> Repository:
            try:
                current = await self._gateway.get_repository(repo.id)
            except GatewayNotFoundException as exc:
                raise ConfirmationFailure(f"repository {repo.id} is not visible on the gateway", tx.id) from exc
            if current.name != repo.name:
                raise ConfirmationFailure(
                    f"repository {repo.id} name mismatch: expected '{repo.name}', got '{current.name}'",
                    tx.id,
                )
            return current

        async def discard(repo: Repository) -> None:
            try:
                await self._gateway.delete_repository(repo.id)
            except GatewayNotFoundException:
                logger.info("Repository %s already absent on discard", repo.id)

        return await self._run(
            tx, cancel, validate=validate, execute=execute, enrol=enrol, confirm=confirm, discard=discard
        )

    async def delete_repository_transaction(
        self,
        project_id: uuid.UUID,
        actor_id: uuid.UUID,
        tenant_id: uuid.UUID,
        repository_id: uuid.UUID,
        cancel: CancellationToken | None = None,
    ) -> Repository:
        """Delete a repository of the project and return its last snapshot.

        A deletion cannot be undone, so the enrolled compensation is a
        ``notify_failure`` audit record: if the gateway still shows the
        repository afterwards an operator is told about it.
        """
        tx = DistributedTransaction(
            type=TransactionType.DELETE_REPOSITORY,
            actor_id=actor_id,
            tenant_id=tenant_id,
            project_id=project_id,
            payload={"repository_id": str(repository_id)},
        )
        snapshot: list[Repository] = []

        async def validate() -> None:
            await self._check_project_access(tx)
            try:
                repo = await self._gateway.get_repository(repository_id)
            except GatewayNotFoundException as exc:
                raise ValidationFailure(f"repository {repository_id} not found", tx.id) from exc
            if repo.project_id != project_id:
                raise ValidationFailure(
                    f"repository {repository_id} does not belong to project {project_id}", tx.id
                )
            snapshot.append(repo)

        async def execute() -> Repository:
            try:
                await self._gateway.delete_repository(repository_id)
            except GatewayNotFoundException:
                logger.info("Repository %s already absent on delete", repository_id)
            return snapshot[0]

        async def enrol(repo: Repository) -> uuid.UUID:
            return await self._compensations.add_compensation(
                CompensationAction.NOTIFY_FAILURE,
                repo.id,
                {
                    "transaction_id": str(tx.id),
                    "operation": TransactionType.DELETE_REPOSITORY.value,
                    "repository_name": repo.name,
                    "project_id": str(repo.project_id),
                    "actor_id": str(actor_id),
                    "deleted_at": datetime.now(UTC).isoformat(),
                },
            )

        async def confirm(repo: Repository) -> Repository:
            try:
                await self._gateway.get_repository(repo.id)
            except GatewayNotFoundException:
                return repo
            raise ConfirmationFailure(f"repository {repo.id} is still visible after deletion", tx.id)

        return await self._run(tx, cancel, validate=validate, execute=execute, enrol=enrol, confirm=confirm)

    # ── management ────────────────────────────────────────────

    async def get_transaction(self, transaction_id: uuid.UUID) -> DistributedTransaction:
        async with self._lock:
            tx = await self._store.get(transaction_id)
        if tx is None:
            raise TransactionNotFoundException(transaction_id)
        return tx

    async def list_active(self) -> list[DistributedTransaction]:
        """Non-terminal transactions, i.e. pending, validated or executed."""
        async with self._lock:
            return await self._store.find(_ACTIVE)

    async def list_transactions(
        self, statuses: Iterable[TransactionStatus] | None = None
    ) -> list[DistributedTransaction]:
        async with self._lock:
            return await self._store.find(statuses)

    async def cleanup_completed(self, older_than: timedelta | None = None) -> int:
        """Drop terminal transactions completed at least *older_than* ago."""
        cutoff = datetime.now(UTC) - (older_than if older_than is not None else self._retention)
        async with self._lock:
            removed = await self._store.delete_completed(cutoff)
        logger.info("Cleaned up %d completed transaction(s)", removed)
        return removed

    def is_in_flight(self, transaction_id: uuid.UUID) -> bool:
        """``True`` while a coroutine in this process is driving the transaction."""
        return transaction_id in self._in_flight

    async def abandon(self, transaction_id: uuid.UUID, reason: str) -> DistributedTransaction:
        """Force a stuck transaction into a terminal status.

        ``executed`` transactions have their compensations run and end
        ``cancelled``; ``pending`` and ``validated`` ones end ``failed``.
        Terminal transactions are returned unchanged.
        """
        tx = await self.get_transaction(transaction_id)
        if tx.is_terminal:
            return tx
        if tx.id in self._in_flight:
            raise TransactionException(f"transaction is still running: {reason}", tx.id, phase=tx.phase)

        if tx.status == TransactionStatus.EXECUTED:
            errors = await self._compensate(tx)
            phase = TransactionPhase.CANCEL if errors else tx.phase
            error: Exception = (
                CancelFailure(reason, tx.id, tx.compensation_ids, errors)
                if errors
                else ConfirmationFailure(reason, tx.id)
            )
            await self._finish(tx, TransactionStatus.CANCELLED, error, phase=phase)
        else:
            error_type = ValidationFailure if tx.status == TransactionStatus.PENDING else ExecutionFailure
            await self._finish(tx, TransactionStatus.FAILED, error_type(reason, tx.id))
        return tx

    # ── phase driver ──────────────────────────────────────────

    async def _run(
        self,
        tx: DistributedTransaction,
        cancel: CancellationToken | None,
        *,
        validate: Callable[[], Awaitable[None]],
        execute: Callable[[], Awaitable[Repository]],
        enrol: Callable[[Repository], Awaitable[uuid.UUID]],
        confirm: Callable[[Repository], Awaitable[Repository]],
        discard: Callable[[Repository], Awaitable[None]] | None = None,
    ) -> Repository:
        self._in_flight.add(tx.id)
        try:
            await self._save(tx)
            await self._emit("on_started", tx)

            # validation
            started = time.perf_counter()
            try:
                await run_cancellable(validate(), cancel)
            except TransactionException as exc:
                await self._finish(tx, TransactionStatus.FAILED, exc)
                raise
            except Exception as exc:
                err = ValidationFailure(self._reason(exc, "validation failed"), tx.id)
                await self._finish(tx, TransactionStatus.FAILED, err)
                raise err from exc
            tx.transition(TransactionStatus.VALIDATED)
            await self._save(tx)
            await self._emit("on_phase_completed", tx, TransactionPhase.VALIDATION, self._elapsed(started))

            # execution; an in-flight create is never interrupted
            started = time.perf_counter()
            try:
                raise_if_cancelled(cancel)
                artifact = await execute()
            except Exception as exc:
                err = ExecutionFailure(self._reason(exc, "gateway call failed"), tx.id)
                await self._finish(tx, TransactionStatus.FAILED, err)
                raise err from exc

            try:
                compensation_id = await enrol(artifact)
            except Exception as exc:
                err = await self._unrecorded(tx, artifact, exc, discard)
                raise err from exc

            tx.result = artifact.model_dump(mode="json")
            tx.compensation_ids.append(compensation_id)
            tx.transition(TransactionStatus.EXECUTED)
            await self._save(tx)
            await self._emit("on_phase_completed", tx, TransactionPhase.EXECUTION, self._elapsed(started))

            # confirmation
            started = time.perf_counter()
            try:
                confirmed = await run_cancellable(confirm(artifact), cancel)
            except Exception as exc:
                err = await self._cancel(tx, exc)
                if err is exc:
                    raise
                raise err from exc
            tx.transition(TransactionStatus.CONFIRMED)
            await self._save(tx)
            await self._emit("on_phase_completed", tx, TransactionPhase.CONFIRM, self._elapsed(started))
            await self._emit("on_completed", tx, None)
            return confirmed
        finally:
            self._in_flight.discard(tx.id)

    async def _unrecorded(
        self,
        tx: DistributedTransaction,
        artifact: Repository,
        cause: Exception,
        discard: Callable[[Repository], Awaitable[None]] | None,
    ) -> TransactionException:
        """Settle a transaction whose side effect happened but has no compensation.

        The artifact is discarded directly when the operation can be undone;
        the transaction then fails as if execution never happened.  If it
        cannot be undone, the error is a ``CancelFailure`` naming the
        artifact left behind.
        """
        logger.error("Transaction %s could not enrol a compensation for %s: %s", tx.id, artifact.id, cause)
        leftover: Exception | None = None
        if discard is None:
            leftover = cause
        else:
            try:
                await discard(artifact)
            except Exception as exc:  # noqa: BLE001
                leftover = exc

        err: TransactionException
        if leftover is None:
            err = ExecutionFailure(f"could not record compensation, repository discarded: {cause}", tx.id)
            await self._finish(tx, TransactionStatus.FAILED, err)
        else:
            logger.critical("Repository %s is left on the gateway without a compensation", artifact.id)
            err = CancelFailure(
                f"could not record compensation ({cause}) and repository {artifact.id} needs manual cleanup",
                tx.id,
                resource_id=artifact.id,
                errors={artifact.id: leftover},
            )
            await self._finish(tx, TransactionStatus.FAILED, err, phase=TransactionPhase.CANCEL)
        return err

    async def _cancel(self, tx: DistributedTransaction, cause: Exception) -> TransactionException:
        """Compensate after a failed confirmation and mark the transaction ``cancelled``.

        Returns the error the caller should raise.
        """
        logger.warning("Transaction %s confirmation failed, compensating: %s", tx.id, cause)
        errors = await self._compensate(tx)

        if errors:
            err: TransactionException = CancelFailure(
                f"confirmation failed ({self._reason(cause, 'confirmation failed')}) "
                f"and {len(errors)} compensation(s) did not complete",
                tx.id,
                compensation_ids=tx.compensation_ids,
                errors=errors,
            )
            await self._finish(tx, TransactionStatus.CANCELLED, err, phase=TransactionPhase.CANCEL)
        elif isinstance(cause, ConfirmationFailure):
            err = cause
            await self._finish(tx, TransactionStatus.CANCELLED, err)
        else:
            err = ConfirmationFailure(self._reason(cause, "confirmation failed"), tx.id)
            await self._finish(tx, TransactionStatus.CANCELLED, err)
        return err

    async def _compensate(self, tx: DistributedTransaction) -> dict[uuid.UUID, Exception]:
        """Run every enrolled compensation in order; collect the failures.

        Runs without the caller's token: the caller may already be gone,
        and the side effect still has to be undone.
        """
        errors: dict[uuid.UUID, Exception] = {}
        for compensation_id in tx.compensation_ids:
            try:
                await self._compensations.execute_compensation(compensation_id)
            except Exception as exc:  # noqa: BLE001
                errors[compensation_id] = exc
                await self._emit("on_compensated", tx, compensation_id, exc)
            else:
                await self._emit("on_compensated", tx, compensation_id, None)
        return errors

    # ── helpers ───────────────────────────────────────────────

    async def _check_project_access(self, tx: DistributedTransaction) -> None:
        project = await self._projects.get_by_id(tx.project_id, tx.tenant_id)
        if project is None:
            raise ProjectNotFoundError(
                f"project {tx.project_id} not found in tenant {tx.tenant_id}", tx.id
            )
        if not await self._projects.check_user_access(tx.project_id, tx.actor_id):
            raise AccessDeniedError(
                f"user {tx.actor_id} has no access to project {tx.project_id}", tx.id
            )

    async def _finish(
        self,
        tx: DistributedTransaction,
        status: TransactionStatus,
        error: Exception,
        phase: TransactionPhase | None = None,
    ) -> None:
        tx.transition(status, phase=phase, error=error)
        await self._save(tx)
        await self._emit("on_completed", tx, error)

    async def _save(self, tx: DistributedTransaction) -> None:
        async with self._lock:
            await self._store.save(tx)

    async def _emit(self, method: str, *args: Any) -> None:
        try:
            await getattr(self._events, method)(*args)
        except Exception:
            logger.error("Transaction events adapter failed on %s", method, exc_info=True)

    @staticmethod
    def _reason(exc: BaseException, fallback: str) -> str:
        if isinstance(exc, OperationCancelledException):
            return f"cancelled: {exc}"
        return str(exc) or f"{fallback}: {type(exc).__name__}"

    @staticmethod
    def _elapsed(started: float) -> float:
        return (time.perf_counter() - started) * 1000.0
