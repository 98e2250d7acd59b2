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
"""Git gateway wire models.

Pydantic models mirroring the JSON documents exchanged with the Git
gateway.  Request models are deliberately lenient about field *values*:
the transaction manager's validation phase decides what is acceptable so
that rejections surface as phase-tagged errors rather than as parse errors.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RepositoryVisibility(StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"
    INTERNAL = "internal"


class RepositoryStatus(StrEnum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class _GatewayModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict without unset optionals, as the gateway expects."""
        return self.model_dump(mode="json", exclude_none=True)


# ── repositories ──────────────────────────────────────────────


class Repository(_GatewayModel):
    """A repository as reported by the gateway."""

    id: uuid.UUID
    project_id: uuid.UUID
    name: str
    description: str | None = None
    visibility: RepositoryVisibility = RepositoryVisibility.PRIVATE
    status: RepositoryStatus = RepositoryStatus.ACTIVE
    default_branch: str = "main"

    git_path: str = ""
    clone_url: str = ""
    ssh_url: str = ""

    size: int = 0
    commit_count: int = 0
    branch_count: int = 0
    tag_count: int = 0

    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_pushed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == RepositoryStatus.ACTIVE


class CreateRepositoryRequest(_GatewayModel):
    project_id: uuid.UUID
    name: str
    description: str | None = None
    visibility: str = RepositoryVisibility.PRIVATE.value
    default_branch: str | None = None
    init_readme: bool = False


class UpdateRepositoryRequest(_GatewayModel):
    name: str | None = None
    description: str | None = None
    visibility: RepositoryVisibility | None = None
    default_branch: str | None = None


class RepositoryList(_GatewayModel):
    repositories: list[Repository] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20


# ── branches ──────────────────────────────────────────────────


class Branch(_GatewayModel):
    name: str
    commit_sha: str = ""
    is_default: bool = False
    is_protected: bool = False
    created_at: datetime | None = None


class CreateBranchRequest(_GatewayModel):
    name: str
    from_sha: str
    protected: bool | None = None


# ── commits ───────────────────────────────────────────────────


class CommitAuthor(_GatewayModel):
    name: str
    email: str


class CommitFile(_GatewayModel):
    path: str
    content: str
    mode: str | None = None


class Commit(_GatewayModel):
    sha: str
    message: str = ""
    author: CommitAuthor | None = None
    parent_shas: list[str] = Field(default_factory=list)
    additions: int = 0
    deletions: int = 0
    committed_at: datetime | None = None

    @property
    def short_sha(self) -> str:
        return self.sha[:8]


class CreateCommitRequest(_GatewayModel):
    branch: str
    message: str
    author: CommitAuthor
    files: list[CommitFile] = Field(default_factory=list)


class CommitList(_GatewayModel):
    commits: list[Commit] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20


# ── tags ──────────────────────────────────────────────────────


class Tag(_GatewayModel):
    name: str
    commit_sha: str
    message: str | None = None
    tagger: CommitAuthor | None = None
    created_at: datetime | None = None

    @property
    def is_annotated(self) -> bool:
        return bool(self.message)


class CreateTagRequest(_GatewayModel):
    name: str
    commit_sha: str
    message: str | None = None
    tagger: CommitAuthor


# ── files ─────────────────────────────────────────────────────


class FileInfo(_GatewayModel):
    name: str
    path: str
    type: str  # file | directory
    size: int = 0
    mode: str = ""
    sha: str = ""
