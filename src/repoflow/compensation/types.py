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
"""Compensation entry state, round-trippable through ``to_dict`` / ``from_dict``
so that durable stores can hold it as a plain document.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class CompensationAction(StrEnum):
    """The closed set of undo actions the manager knows how to run."""

    DELETE_REPOSITORY = "delete_repository"
    ROLLBACK_PROJECT = "rollback_project"
    NOTIFY_FAILURE = "notify_failure"


class CompensationStatus(StrEnum):
    """Lifecycle of a compensation entry.

    * **PENDING** -- registered, not yet executed successfully.
    * **EXECUTED** -- the action succeeded; it is never run again.
    * **FAILED** -- the retry budget is spent; only an operator can act.
    """

    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"


def _parse_action(value: str) -> CompensationAction | str:
    try:
        return CompensationAction(value)
    except ValueError:
        return value


@dataclass
class CompensationEntry:
    """A recorded promise to undo a side effect.

    ``action`` holds a :class:`CompensationAction` for every known action.
    Entries restored from storage with an action this version does not
    know keep the raw string so that they can still be inspected.
    """

    id: uuid.UUID
    action: CompensationAction | str
    resource_id: uuid.UUID
    payload: dict[str, Any] = field(default_factory=dict)
    status: CompensationStatus = CompensationStatus.PENDING
    retry_count: int = 0
    max_retries: int = 3
    last_error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    executed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (CompensationStatus.EXECUTED, CompensationStatus.FAILED)

    @property
    def retries_left(self) -> int:
        return max(self.max_retries - self.retry_count, 0)

    def copy(self) -> CompensationEntry:
        """Detached snapshot; mutating it never affects stored state."""
        return copy.deepcopy(self)

    # ── serialisation helpers ─────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "action": str(self.action),
            "resource_id": str(self.resource_id),
            "payload": copy.deepcopy(self.payload),
            "status": self.status.value,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat(),
            "executed_at": self.executed_at.isoformat() if self.executed_at is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompensationEntry:
        executed_at_raw = data.get("executed_at")
        return cls(
            id=uuid.UUID(data["id"]),
            action=_parse_action(data["action"]),
            resource_id=uuid.UUID(data["resource_id"]),
            payload=dict(data.get("payload") or {}),
            status=CompensationStatus(data.get("status", CompensationStatus.PENDING)),
            retry_count=int(data.get("retry_count", 0)),
            max_retries=int(data.get("max_retries", 3)),
            last_error=data.get("last_error"),
            created_at=datetime.fromisoformat(data["created_at"]),
            executed_at=datetime.fromisoformat(executed_at_raw) if executed_at_raw is not None else None,
        )
