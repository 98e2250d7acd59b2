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
"""Outbound port for the Git gateway.

The transaction manager and the ``delete_repository`` compensation only
need the repository operations; branches, commits, tags and files are part
of the contract for handlers built on top of this library.

Adapters must raise the :mod:`repoflow.gateway.exceptions` types so that
callers can tell a missing resource from an unavailable gateway.
"""

from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from repoflow.gateway.models import (
    Branch,
    Commit,
    CommitList,
    CreateBranchRequest,
    CreateCommitRequest,
    CreateRepositoryRequest,
    CreateTagRequest,
    FileInfo,
    Repository,
    RepositoryList,
    Tag,
    UpdateRepositoryRequest,
)


@runtime_checkable
class GitGatewayPort(Protocol):
    """Repository lifecycle plus read/write access to Git objects."""

    async def create_repository(self, request: CreateRepositoryRequest) -> Repository:
        """Create a repository; raises ``GatewayConflictException`` on a duplicate name."""
        ...

    async def get_repository(self, repository_id: uuid.UUID) -> Repository:
        """Return the repository or raise ``GatewayNotFoundException``."""
        ...

    async def update_repository(
        self, repository_id: uuid.UUID, request: UpdateRepositoryRequest
    ) -> Repository: ...

    async def delete_repository(self, repository_id: uuid.UUID) -> None:
        """Delete the repository or raise ``GatewayNotFoundException``."""
        ...

    async def list_repositories(
        self, project_id: uuid.UUID, page: int = 1, page_size: int = 20
    ) -> RepositoryList: ...

    async def list_branches(self, repository_id: uuid.UUID) -> list[Branch]: ...

    async def create_branch(
        self, repository_id: uuid.UUID, request: CreateBranchRequest
    ) -> Branch: ...

    async def delete_branch(self, repository_id: uuid.UUID, branch: str) -> None: ...

    async def list_commits(
        self, repository_id: uuid.UUID, branch: str | None = None, page: int = 1, page_size: int = 20
    ) -> CommitList: ...

    async def get_commit(self, repository_id: uuid.UUID, sha: str) -> Commit: ...

    async def create_commit(
        self, repository_id: uuid.UUID, request: CreateCommitRequest
    ) -> Commit: ...

    async def list_tags(self, repository_id: uuid.UUID) -> list[Tag]: ...

    async def create_tag(self, repository_id: uuid.UUID, request: CreateTagRequest) -> Tag: ...

    async def delete_tag(self, repository_id: uuid.UUID, tag: str) -> None: ...

    async def list_files(
        self, repository_id: uuid.UUID, path: str = "", ref: str | None = None
    ) -> list[FileInfo]: ...

    async def get_file_content(
        self, repository_id: uuid.UUID, path: str, ref: str | None = None
    ) -> str: ...

    async def aclose(self) -> None:
        """Release transport resources."""
        ...
