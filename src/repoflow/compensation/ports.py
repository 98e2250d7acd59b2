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
"""Outbound ports of the compensation manager.

Stores are plain async key-value contracts; the manager owns locking, so
adapters need not be safe for concurrent writers to the same id.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Protocol, runtime_checkable

from repoflow.compensation.types import CompensationEntry, CompensationStatus


@runtime_checkable
class CompensationStorePort(Protocol):
    """Persistence for compensation entries."""

    async def save(self, entry: CompensationEntry) -> None:
        """Insert or replace *entry*.  New entries keep their enrolment order."""
        ...

    async def get(self, compensation_id: uuid.UUID) -> CompensationEntry | None:
        """Return a detached copy of the entry, or ``None``."""
        ...

    async def find(self, status: CompensationStatus | None = None) -> list[CompensationEntry]:
        """Return entries (optionally filtered by *status*) in enrolment order."""
        ...

    async def delete_executed(self, before: datetime) -> list[uuid.UUID]:
        """Delete executed entries whose ``executed_at`` is not after *before*.

        Returns the ids removed.
        """
        ...


@runtime_checkable
class FailureNotifierPort(Protocol):
    """Receives ``notify_failure`` compensations, e.g. to alert an operator."""

    async def notify_failure(self, entry: CompensationEntry) -> None: ...
