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
"""Project lookup port consumed by the transaction validation phase.

The owning service backs this with its ORM; :class:`InMemoryProjectRepository`
covers tests and single-process setups.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Project:
    """The subset of a project the orchestrator needs."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    key: str
    name: str
    manager_id: uuid.UUID | None = None
    member_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)
    status: str = "active"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def has_member(self, user_id: uuid.UUID) -> bool:
        return user_id == self.manager_id or user_id in self.member_ids


@runtime_checkable
class ProjectRepositoryPort(Protocol):
    """Read access to projects, scoped by tenant."""

    async def get_by_id(self, project_id: uuid.UUID, tenant_id: uuid.UUID) -> Project | None:
        """Return the project if it exists within *tenant_id*, else ``None``.

        Storage failures propagate as exceptions; a missing project is not
        an error at this level.
        """
        ...

    async def check_user_access(self, project_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """Return ``True`` if *user_id* manages or is a member of the project."""
        ...


class InMemoryProjectRepository:
    """In-memory :class:`ProjectRepositoryPort`."""

    def __init__(self, projects: list[Project] | None = None) -> None:
        self._projects: dict[uuid.UUID, Project] = {p.id: p for p in projects or []}

    def add(self, project: Project) -> Project:
        self._projects[project.id] = project
        return project

    async def get_by_id(self, project_id: uuid.UUID, tenant_id: uuid.UUID) -> Project | None:
        project = self._projects.get(project_id)
        if project is None or project.tenant_id != tenant_id:
            return None
        return project

    async def check_user_access(self, project_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        project = self._projects.get(project_id)
        return project is not None and project.has_member(user_id)
