"""Phase-tagged transaction errors.

Every error names the phase the transaction died in and renders it as a
``[phase]`` prefix, so callers can tell a rejection that happened before
any side effect from a rollback that happened after one.
"""

from __future__ import annotations

import uuid

from repoflow.kernel.exceptions import RepoflowException, ResourceNotFoundException
from repoflow.transaction.types import TransactionPhase


class TransactionException(RepoflowException):
    """Base for errors raised by a transaction run.

    Args:
        phase: Phase the transaction was in.
        reason: Message without the phase prefix.
        transaction_id: The failing transaction.
    """

    default_phase: TransactionPhase = TransactionPhase.VALIDATION
    default_code: str = "TX_ERROR"

    def __init__(
        self,
        reason: str,
        transaction_id: uuid.UUID | None = None,
        phase: TransactionPhase | None = None,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        self.phase = phase or self.default_phase
        self.reason = reason
        self.transaction_id = transaction_id
        ctx = dict(context or {})
        ctx.setdefault("phase", self.phase.value)
        if transaction_id is not None:
            ctx.setdefault("transaction_id", str(transaction_id))
        super().__init__(f"[{self.phase}] {reason}", code=code or self.default_code, context=ctx)


class ValidationFailure(TransactionException):
    """Pre-conditions failed; nothing was sent to the gateway."""

    default_code = "TX_VALIDATION"


class ProjectNotFoundError(ValidationFailure):
    default_code = "TX_PROJECT_NOT_FOUND"


class AccessDeniedError(TransactionException):
    default_code = "TX_ACCESS_DENIED"


class ExecutionFailure(TransactionException):
    """The side effect was refused, failed, or discarded again; nothing to compensate."""

    default_phase = TransactionPhase.EXECUTION
    default_code = "TX_EXECUTION"


class ConfirmationFailure(TransactionException):
    """The side effect could not be confirmed and was compensated."""

    default_phase = TransactionPhase.CONFIRM
    default_code = "TX_CONFIRMATION"


class CancelFailure(TransactionException):
    """Compensating a failed confirmation itself failed.

    Usually the transaction is ``cancelled`` with at least one compensation
    still ``pending`` or ``failed``; consult the compensation manager.  When
    no compensation could be recorded at all, the transaction is ``failed``
    and ``resource_id`` names the artifact left on the gateway.
    """

    default_phase = TransactionPhase.CANCEL
    default_code = "TX_CANCEL"

    def __init__(
        self,
        reason: str,
        transaction_id: uuid.UUID | None = None,
        compensation_ids: list[uuid.UUID] | None = None,
        errors: dict[uuid.UUID, Exception] | None = None,
        resource_id: uuid.UUID | None = None,
    ) -> None:
        self.compensation_ids = list(compensation_ids or [])
        self.errors = dict(errors or {})
        self.resource_id = resource_id
        context: dict = {
            "compensation_ids": [str(cid) for cid in self.compensation_ids],
            "failed_compensations": {str(cid): str(err) for cid, err in self.errors.items()},
        }
        if resource_id is not None:
            context["resource_id"] = str(resource_id)
        super().__init__(reason, transaction_id=transaction_id, context=context)


class TransactionNotFoundException(ResourceNotFoundException):
    def __init__(self, transaction_id: uuid.UUID) -> None:
        super().__init__(
            f"Transaction {transaction_id} not found",
            code="TX_NOT_FOUND",
            context={"transaction_id": str(transaction_id)},
        )
        self.transaction_id = transaction_id
