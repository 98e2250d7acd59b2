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
"""In-memory implementation of :class:`CompensationStorePort`.

Entries are copied on the way in and on the way out.  **All state is lost
on process restart.**
"""

from __future__ import annotations

import uuid
from datetime import datetime

from repoflow.compensation.types import CompensationEntry, CompensationStatus


class InMemoryCompensationStore:
    """In-memory :class:`CompensationStorePort`.  State lost on restart."""

    def __init__(self) -> None:
        self._entries: dict[uuid.UUID, CompensationEntry] = {}

    async def save(self, entry: CompensationEntry) -> None:
        self._entries[entry.id] = entry.copy()

    async def get(self, compensation_id: uuid.UUID) -> CompensationEntry | None:
        entry = self._entries.get(compensation_id)
        return entry.copy() if entry is not None else None

    async def find(self, status: CompensationStatus | None = None) -> list[CompensationEntry]:
        return [e.copy() for e in self._entries.values() if status is None or e.status == status]

    async def delete_executed(self, before: datetime) -> list[uuid.UUID]:
        removed = [
            cid
            for cid, e in self._entries.items()
            if e.status == CompensationStatus.EXECUTED and e.executed_at is not None and e.executed_at <= before
        ]
        for cid in removed:
            del self._entries[cid]
        return removed

    def __len__(self) -> int:
        return len(self._entries)
