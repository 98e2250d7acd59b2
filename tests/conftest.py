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
"""Shared fixtures: an in-memory gateway and a project with known members."""

from __future__ import annotations

import uuid

import pytest

from repoflow.compensation.manager import CompensationManager
from repoflow.gateway.memory import InMemoryGitGateway
from repoflow.gateway.models import CreateRepositoryRequest
from repoflow.project.ports import InMemoryProjectRepository, Project
from repoflow.transaction.manager import DistributedTransactionManager

TENANT_ID = uuid.UUID("00000000-0000-0000-0000-00000000000a")
PROJECT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000b1")
MANAGER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000c1")
MEMBER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000c2")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def project() -> Project:
    return Project(
        id=PROJECT_ID,
        tenant_id=TENANT_ID,
        key="CORE",
        name="Core Platform",
        manager_id=MANAGER_ID,
        member_ids=frozenset({MEMBER_ID}),
    )


@pytest.fixture
def projects(project: Project) -> InMemoryProjectRepository:
    return InMemoryProjectRepository([project])


@pytest.fixture
def gateway() -> InMemoryGitGateway:
    return InMemoryGitGateway()


@pytest.fixture
def compensations(gateway: InMemoryGitGateway) -> CompensationManager:
    return CompensationManager(gateway)


@pytest.fixture
def manager(
    projects: InMemoryProjectRepository,
    gateway: InMemoryGitGateway,
    compensations: CompensationManager,
) -> DistributedTransactionManager:
    return DistributedTransactionManager(projects, gateway, compensations)


@pytest.fixture
def make_request(project: Project):
    def _make(name: str = "service-api", **overrides: object) -> CreateRepositoryRequest:
        fields: dict[str, object] = {"project_id": project.id, "name": name}
        fields.update(overrides)
        return CreateRepositoryRequest(**fields)

    return _make
