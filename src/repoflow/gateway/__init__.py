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
"""Git gateway port, wire models and adapters."""

from repoflow.gateway.circuit_breaker import CircuitBreaker, CircuitState
from repoflow.gateway.exceptions import (
    GatewayConflictException,
    GatewayException,
    GatewayNotFoundException,
    GatewayRequestException,
    GatewayUnavailableException,
)
from repoflow.gateway.httpx_adapter import HttpxGitGatewayClient
from repoflow.gateway.memory import InMemoryGitGateway
from repoflow.gateway.models import (
    Branch,
    Commit,
    CommitAuthor,
    CommitFile,
    CommitList,
    CreateBranchRequest,
    CreateCommitRequest,
    CreateRepositoryRequest,
    CreateTagRequest,
    FileInfo,
    Repository,
    RepositoryList,
    RepositoryStatus,
    RepositoryVisibility,
    Tag,
    UpdateRepositoryRequest,
)
from repoflow.gateway.ports import GitGatewayPort
from repoflow.gateway.retry import RetryPolicy

__all__ = [
    "Branch",
    "CircuitBreaker",
    "CircuitState",
    "Commit",
    "CommitAuthor",
    "CommitFile",
    "CommitList",
    "CreateBranchRequest",
    "CreateCommitRequest",
    "CreateRepositoryRequest",
    "CreateTagRequest",
    "FileInfo",
    "GatewayConflictException",
    "GatewayException",
    "GatewayNotFoundException",
    "GatewayRequestException",
    "GatewayUnavailableException",
    "GitGatewayPort",
    "HttpxGitGatewayClient",
    "InMemoryGitGateway",
    "Repository",
    "RepositoryList",
    "RepositoryStatus",
    "RepositoryVisibility",
    "RetryPolicy",
    "Tag",
    "UpdateRepositoryRequest",
]
