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
"""In-memory implementation of :class:`GitGatewayPort`.

Keeps repositories and their Git objects in plain dicts.  Useful for
single-process deployments without a gateway and for tests: every call is
recorded in :attr:`InMemoryGitGateway.calls` and failures can be scheduled
per operation with :meth:`InMemoryGitGateway.fail`.
"""

from __future__ import annotations

import hashlib
import uuid
from collections import defaultdict, deque
from datetime import UTC, datetime
from typing import Any

from repoflow.gateway.exceptions import (
    GatewayConflictException,
    GatewayNotFoundException,
    GatewayRequestException,
)
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
    RepositoryVisibility,
    Tag,
    UpdateRepositoryRequest,
)


class InMemoryGitGateway:
    """In-memory :class:`GitGatewayPort`.  State lost on restart."""

    def __init__(self) -> None:
        self.repositories: dict[uuid.UUID, Repository] = {}
        self.branches: dict[uuid.UUID, dict[str, Branch]] = defaultdict(dict)
        self.commits: dict[uuid.UUID, list[Commit]] = defaultdict(list)
        self.tags: dict[uuid.UUID, dict[str, Tag]] = defaultdict(dict)
        self.files: dict[uuid.UUID, dict[str, str]] = defaultdict(dict)
        self.calls: list[tuple[str, Any]] = []
        self._failures: dict[str, deque[BaseException]] = defaultdict(deque)

    # -- test helpers -------------------------------------------------------

    def fail(self, operation: str, error: BaseException, times: int = 1) -> None:
        """Make the next *times* calls of *operation* raise *error*."""
        self._failures[operation].extend([error] * times)

    def calls_to(self, operation: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == operation]

    def _enter(self, operation: str, arg: Any = None) -> None:
        self.calls.append((operation, arg))
        pending = self._failures.get(operation)
        if pending:
            raise pending.popleft()

    def _require(self, repository_id: uuid.UUID) -> Repository:
        repo = self.repositories.get(repository_id)
        if repo is None:
            raise GatewayNotFoundException(
                f"Repository {repository_id} not found", status_code=404, code="GATEWAY_NOT_FOUND"
            )
        return repo

    # -- repositories -------------------------------------------------------

    async def create_repository(self, request: CreateRepositoryRequest) -> Repository:
        self._enter("create_repository", request)
        for existing in self.repositories.values():
            if existing.project_id == request.project_id and existing.name == request.name:
                raise GatewayConflictException(
                    f"Repository '{request.name}' already exists", status_code=409, code="GATEWAY_CONFLICT"
                )
        try:
            visibility = RepositoryVisibility(request.visibility)
        except ValueError:
            raise GatewayRequestException(
                f"Unsupported visibility '{request.visibility}'", status_code=400
            ) from None
        now = datetime.now(UTC)
        repo_id = uuid.uuid4()
        default_branch = request.default_branch or "main"
        repo = Repository(
            id=repo_id,
            project_id=request.project_id,
            name=request.name,
            description=request.description,
            visibility=visibility,
            default_branch=default_branch,
            git_path=f"/repositories/{repo_id}.git",
            clone_url=f"memory://repositories/{request.name}.git",
            created_at=now,
            updated_at=now,
        )
        self.repositories[repo_id] = repo
        if request.init_readme:
            await self._seed_readme(repo)
        return repo

    async def get_repository(self, repository_id: uuid.UUID) -> Repository:
        self._enter("get_repository", repository_id)
        repo = self._require(repository_id)
        return repo.model_copy(
            update={
                "branch_count": len(self.branches[repository_id]),
                "commit_count": len(self.commits[repository_id]),
                "tag_count": len(self.tags[repository_id]),
            }
        )

    async def update_repository(
        self, repository_id: uuid.UUID, request: UpdateRepositoryRequest
    ) -> Repository:
        self._enter("update_repository", repository_id)
        repo = self._require(repository_id)
        changes = request.model_dump(exclude_none=True)
        changes["updated_at"] = datetime.now(UTC)
        updated = repo.model_copy(update=changes)
        self.repositories[repository_id] = updated
        return updated

    async def delete_repository(self, repository_id: uuid.UUID) -> None:
        self._enter("delete_repository", repository_id)
        self._require(repository_id)
        del self.repositories[repository_id]
        for store in (self.branches, self.commits, self.tags, self.files):
            store.pop(repository_id, None)

    async def list_repositories(
        self, project_id: uuid.UUID, page: int = 1, page_size: int = 20
    ) -> RepositoryList:
        self._enter("list_repositories", project_id)
        matching = [r for r in self.repositories.values() if r.project_id == project_id]
        start = (page - 1) * page_size
        return RepositoryList(
            repositories=matching[start : start + page_size],
            total=len(matching),
            page=page,
            page_size=page_size,
        )

    # -- branches -----------------------------------------------------------

    async def list_branches(self, repository_id: uuid.UUID) -> list[Branch]:
        self._enter("list_branches", repository_id)
        self._require(repository_id)
        return list(self.branches[repository_id].values())

    async def create_branch(self, repository_id: uuid.UUID, request: CreateBranchRequest) -> Branch:
        self._enter("create_branch", repository_id)
        repo = self._require(repository_id)
        if request.name in self.branches[repository_id]:
            raise GatewayConflictException(f"Branch '{request.name}' already exists", status_code=409)
        branch = Branch(
            name=request.name,
            commit_sha=request.from_sha,
            is_default=request.name == repo.default_branch,
            is_protected=bool(request.protected),
            created_at=datetime.now(UTC),
        )
        self.branches[repository_id][request.name] = branch
        return branch

    async def delete_branch(self, repository_id: uuid.UUID, branch: str) -> None:
        self._enter("delete_branch", repository_id)
        self._require(repository_id)
        if self.branches[repository_id].pop(branch, None) is None:
            raise GatewayNotFoundException(f"Branch '{branch}' not found", status_code=404)

    # -- commits ------------------------------------------------------------

    async def list_commits(
        self,
        repository_id: uuid.UUID,
        branch: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> CommitList:
        self._enter("list_commits", repository_id)
        self._require(repository_id)
        history = list(reversed(self.commits[repository_id]))
        start = (page - 1) * page_size
        return CommitList(
            commits=history[start : start + page_size],
            total=len(history),
            page=page,
            page_size=page_size,
        )

    async def get_commit(self, repository_id: uuid.UUID, sha: str) -> Commit:
        self._enter("get_commit", repository_id)
        self._require(repository_id)
        for commit in self.commits[repository_id]:
            if commit.sha == sha:
                return commit
        raise GatewayNotFoundException(f"Commit {sha} not found", status_code=404)

    async def create_commit(self, repository_id: uuid.UUID, request: CreateCommitRequest) -> Commit:
        self._enter("create_commit", repository_id)
        self._require(repository_id)
        history = self.commits[repository_id]
        parents = [history[-1].sha] if history else []
        digest = hashlib.sha1(
            "|".join([request.message, *parents, *(f.path for f in request.files)]).encode()
            + uuid.uuid4().bytes
        ).hexdigest()
        commit = Commit(
            sha=digest,
            message=request.message,
            author=request.author,
            parent_shas=parents,
            additions=sum(f.content.count("\n") + 1 for f in request.files),
            committed_at=datetime.now(UTC),
        )
        history.append(commit)
        for file in request.files:
            self.files[repository_id][file.path] = file.content
        branches = self.branches[repository_id]
        branches[request.branch] = Branch(
            name=request.branch,
            commit_sha=digest,
            is_default=request.branch == self.repositories[repository_id].default_branch,
            created_at=branches[request.branch].created_at if request.branch in branches else commit.committed_at,
        )
        return commit

    # -- tags ---------------------------------------------------------------

    async def list_tags(self, repository_id: uuid.UUID) -> list[Tag]:
        self._enter("list_tags", repository_id)
        self._require(repository_id)
        return list(self.tags[repository_id].values())

    async def create_tag(self, repository_id: uuid.UUID, request: CreateTagRequest) -> Tag:
        self._enter("create_tag", repository_id)
        self._require(repository_id)
        if request.name in self.tags[repository_id]:
            raise GatewayConflictException(f"Tag '{request.name}' already exists", status_code=409)
        tag = Tag(
            name=request.name,
            commit_sha=request.commit_sha,
            message=request.message,
            tagger=request.tagger,
            created_at=datetime.now(UTC),
        )
        self.tags[repository_id][request.name] = tag
        return tag

    async def delete_tag(self, repository_id: uuid.UUID, tag: str) -> None:
        self._enter("delete_tag", repository_id)
        self._require(repository_id)
        if self.tags[repository_id].pop(tag, None) is None:
            raise GatewayNotFoundException(f"Tag '{tag}' not found", status_code=404)

    # -- files --------------------------------------------------------------

    async def list_files(
        self, repository_id: uuid.UUID, path: str = "", ref: str | None = None
    ) -> list[FileInfo]:
        self._enter("list_files", repository_id)
        self._require(repository_id)
        prefix = path.strip("/")
        prefix = f"{prefix}/" if prefix else ""
        entries: dict[str, FileInfo] = {}
        for file_path, content in self.files[repository_id].items():
            if not file_path.startswith(prefix):
                continue
            head, _, rest = file_path[len(prefix) :].partition("/")
            if rest:
                entries.setdefault(head, FileInfo(name=head, path=prefix + head, type="directory", mode="040000"))
            else:
                entries[head] = FileInfo(
                    name=head,
                    path=file_path,
                    type="file",
                    size=len(content.encode()),
                    mode="100644",
                    sha=hashlib.sha1(content.encode()).hexdigest(),
                )
        return sorted(entries.values(), key=lambda f: (f.type != "directory", f.name))

    async def get_file_content(
        self, repository_id: uuid.UUID, path: str, ref: str | None = None
    ) -> str:
        self._enter("get_file_content", repository_id)
        self._require(repository_id)
        try:
            return self.files[repository_id][path.strip("/")]
        except KeyError:
            raise GatewayNotFoundException(f"File '{path}' not found", status_code=404) from None

    async def aclose(self) -> None:
        """Nothing to release."""

    async def _seed_readme(self, repo: Repository) -> None:
        await self.create_commit(
            repo.id,
            CreateCommitRequest(
                branch=repo.default_branch,
                message="Initial commit",
                author={"name": "repoflow", "email": "repoflow@localhost"},
                files=[{"path": "README.md", "content": f"# {repo.name}\n"}],
            ),
        )
