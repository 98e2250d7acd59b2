"""Compensation manager errors."""

from __future__ import annotations

import uuid

from repoflow.kernel.exceptions import (
    BusinessException,
    InfrastructureException,
    ResourceNotFoundException,
)


class CompensationNotFoundException(ResourceNotFoundException):
    def __init__(self, compensation_id: uuid.UUID) -> None:
        super().__init__(
            f"Compensation {compensation_id} not found",
            code="COMPENSATION_NOT_FOUND",
            context={"compensation_id": str(compensation_id)},
        )
        self.compensation_id = compensation_id


class CompensationRetriesExhaustedException(BusinessException):
    """The entry spent its retry budget and is now ``failed``."""

    def __init__(self, compensation_id: uuid.UUID, retry_count: int, last_error: str | None = None) -> None:
        super().__init__(
            f"Compensation {compensation_id} exceeded max retries ({retry_count})",
            code="COMPENSATION_RETRIES_EXHAUSTED",
            context={
                "compensation_id": str(compensation_id),
                "retry_count": retry_count,
                "last_error": last_error,
            },
        )
        self.compensation_id = compensation_id


class CompensationExecutionException(InfrastructureException):
    """An attempt failed; the entry stays ``pending`` for a later re-drive."""

    def __init__(self, compensation_id: uuid.UUID, action: str, error: BaseException) -> None:
        super().__init__(
            f"Compensation {compensation_id} ({action}) failed: {error}",
            code="COMPENSATION_FAILED",
            context={"compensation_id": str(compensation_id), "action": action},
        )
        self.compensation_id = compensation_id


class UnknownCompensationActionException(BusinessException):
    def __init__(self, compensation_id: uuid.UUID, action: str) -> None:
        super().__init__(
            f"Unknown compensation action '{action}'",
            code="COMPENSATION_UNKNOWN_ACTION",
            context={"compensation_id": str(compensation_id), "action": action},
        )
        self.compensation_id = compensation_id
