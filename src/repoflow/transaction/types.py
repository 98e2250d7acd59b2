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
"""Distributed transaction state and its transition table.

::

    pending ──validate→ validated ──execute→ executed ──confirm→ confirmed
       │                    │                    │
       └─fail→ failed        └─fail→ failed        └─fail→ cancelled

``confirmed``, ``failed`` and ``cancelled`` are terminal.  Every status
change goes through :meth:`DistributedTransaction.transition`.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from repoflow.kernel.exceptions import InvalidTransitionException


class TransactionPhase(StrEnum):
    """Phase a transaction is in, and the tag carried by its errors."""

    VALIDATION = "validation"
    EXECUTION = "execution"
    CONFIRM = "confirm"
    CANCEL = "cancel"


class TransactionStatus(StrEnum):
    PENDING = "pending"
    VALIDATED = "validated"
    EXECUTED = "executed"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


class TransactionType(StrEnum):
    CREATE_REPOSITORY = "create_repository"
    DELETE_REPOSITORY = "delete_repository"


_TERMINAL = frozenset(
    {TransactionStatus.CONFIRMED, TransactionStatus.CANCELLED, TransactionStatus.FAILED}
)

_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset({TransactionStatus.VALIDATED, TransactionStatus.FAILED}),
    TransactionStatus.VALIDATED: frozenset({TransactionStatus.EXECUTED, TransactionStatus.FAILED}),
    TransactionStatus.EXECUTED: frozenset({TransactionStatus.CONFIRMED, TransactionStatus.CANCELLED}),
    TransactionStatus.CONFIRMED: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
    TransactionStatus.FAILED: frozenset(),
}

# phase a transaction moves into when it reaches a non-terminal status
_NEXT_PHASE = {
    TransactionStatus.VALIDATED: TransactionPhase.EXECUTION,
    TransactionStatus.EXECUTED: TransactionPhase.CONFIRM,
}


def can_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
    return target in _TRANSITIONS[current]


@dataclass
class DistributedTransaction:
    """One run of a TCC operation against the Git gateway."""

    type: TransactionType
    actor_id: uuid.UUID
    tenant_id: uuid.UUID
    project_id: uuid.UUID
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    phase: TransactionPhase = TransactionPhase.VALIDATION
    status: TransactionStatus = TransactionStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    result: dict[str, Any] | None = None
    compensation_ids: list[uuid.UUID] = field(default_factory=list)
    error_message: str | None = None
    error_code: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition(
        self,
        target: TransactionStatus,
        phase: TransactionPhase | None = None,
        error: BaseException | None = None,
    ) -> None:
        """Move to *target*, stamping timestamps and the error record.

        Raises:
            InvalidTransitionException: If the edge is not in the diagram.
        """
        if not can_transition(self.status, target):
            raise InvalidTransitionException(
                f"Transaction {self.id} cannot move from {self.status} to {target}",
                code="TX_INVALID_TRANSITION",
                context={"transaction_id": str(self.id), "from": self.status.value, "to": target.value},
            )
        now = datetime.now(UTC)
        self.status = target
        if phase is not None:
            self.phase = phase
        elif target in _NEXT_PHASE:
            self.phase = _NEXT_PHASE[target]
        if error is not None:
            self.error_message = str(error)
            self.error_code = getattr(error, "code", None) or type(error).__name__
        self.updated_at = now
        if target.is_terminal:
            self.completed_at = now

    def copy(self) -> DistributedTransaction:
        return copy.deepcopy(self)

    # ── serialisation helpers ─────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "type": self.type.value,
            "actor_id": str(self.actor_id),
            "tenant_id": str(self.tenant_id),
            "project_id": str(self.project_id),
            "phase": self.phase.value,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at is not None else None,
            "payload": copy.deepcopy(self.payload),
            "result": copy.deepcopy(self.result),
            "compensation_ids": [str(cid) for cid in self.compensation_ids],
            "error_message": self.error_message,
            "error_code": self.error_code,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DistributedTransaction:
        completed_at_raw = data.get("completed_at")
        return cls(
            id=uuid.UUID(data["id"]),
            type=TransactionType(data["type"]),
            actor_id=uuid.UUID(data["actor_id"]),
            tenant_id=uuid.UUID(data["tenant_id"]),
            project_id=uuid.UUID(data["project_id"]),
            phase=TransactionPhase(data["phase"]),
            status=TransactionStatus(data["status"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            completed_at=datetime.fromisoformat(completed_at_raw) if completed_at_raw is not None else None,
            payload=dict(data.get("payload") or {}),
            result=data.get("result"),
            compensation_ids=[uuid.UUID(cid) for cid in data.get("compensation_ids", [])],
            error_message=data.get("error_message"),
            error_code=data.get("error_code"),
        )
