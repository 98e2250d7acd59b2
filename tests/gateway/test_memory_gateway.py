"""Tests for the in-memory Git gateway."""

import uuid

import pytest

from repoflow.gateway.exceptions import (
    GatewayConflictException,
    GatewayNotFoundException,
    GatewayRequestException,
    GatewayUnavailableException,
)
from repoflow.gateway.memory import InMemoryGitGateway
from repoflow.gateway.models import (
    CommitAuthor,
    CommitFile,
    CreateBranchRequest,
    CreateCommitRequest,
    CreateRepositoryRequest,
    CreateTagRequest,
    UpdateRepositoryRequest,
)
from repoflow.gateway.ports import GitGatewayPort

pytestmark = pytest.mark.anyio

PROJECT_ID = uuid.uuid4()
AUTHOR = CommitAuthor(name="Ada", email="ada@example.com")


def request(name: str = "service-api", **kwargs) -> CreateRepositoryRequest:
    return CreateRepositoryRequest(project_id=PROJECT_ID, name=name, **kwargs)


class TestRepositories:
    def test_implements_port(self):
        assert isinstance(InMemoryGitGateway(), GitGatewayPort)

    async def test_create_and_get(self):
        gw = InMemoryGitGateway()
        repo = await gw.create_repository(request(visibility="public"))
        fetched = await gw.get_repository(repo.id)
        assert fetched.name == "service-api"
        assert fetched.visibility == "public"
        assert fetched.default_branch == "main"
        assert gw.calls_to("create_repository")[0].name == "service-api"

    async def test_init_readme_seeds_first_commit(self):
        gw = InMemoryGitGateway()
        repo = await gw.create_repository(request(init_readme=True))
        fetched = await gw.get_repository(repo.id)
        assert fetched.commit_count == 1
        assert fetched.branch_count == 1
        assert await gw.get_file_content(repo.id, "README.md") == "# service-api\n"

    async def test_duplicate_name_conflicts(self):
        gw = InMemoryGitGateway()
        await gw.create_repository(request())
        with pytest.raises(GatewayConflictException):
            await gw.create_repository(request())

    async def test_unknown_visibility_is_rejected(self):
        with pytest.raises(GatewayRequestException):
            await InMemoryGitGateway().create_repository(request(visibility="secret"))

    async def test_update(self):
        gw = InMemoryGitGateway()
        repo = await gw.create_repository(request())
        updated = await gw.update_repository(repo.id, UpdateRepositoryRequest(description="API"))
        assert updated.description == "API"
        assert updated.name == "service-api"

    async def test_delete_then_get_is_not_found(self):
        gw = InMemoryGitGateway()
        repo = await gw.create_repository(request())
        await gw.delete_repository(repo.id)
        with pytest.raises(GatewayNotFoundException):
            await gw.get_repository(repo.id)
        with pytest.raises(GatewayNotFoundException):
            await gw.delete_repository(repo.id)

    async def test_list_paginates_by_project(self):
        gw = InMemoryGitGateway()
        for i in range(3):
            await gw.create_repository(request(f"repo-{i}"))
        await gw.create_repository(CreateRepositoryRequest(project_id=uuid.uuid4(), name="other"))
        page = await gw.list_repositories(PROJECT_ID, page=2, page_size=2)
        assert page.total == 3
        assert [r.name for r in page.repositories] == ["repo-2"]

    async def test_scheduled_failure(self):
        gw = InMemoryGitGateway()
        gw.fail("create_repository", GatewayUnavailableException("down"))
        with pytest.raises(GatewayUnavailableException):
            await gw.create_repository(request())
        repo = await gw.create_repository(request())
        assert repo.name == "service-api"


class TestGitObjects:
    async def test_commits_move_branch_head(self):
        gw = InMemoryGitGateway()
        repo = await gw.create_repository(request())
        first = await gw.create_commit(
            repo.id,
            CreateCommitRequest(
                branch="main", message="init", author=AUTHOR, files=[CommitFile(path="src/app.py", content="x")]
            ),
        )
        second = await gw.create_commit(
            repo.id, CreateCommitRequest(branch="main", message="more", author=AUTHOR)
        )
        assert second.parent_shas == [first.sha]
        branches = await gw.list_branches(repo.id)
        assert branches[0].commit_sha == second.sha
        history = await gw.list_commits(repo.id)
        assert [c.sha for c in history.commits] == [second.sha, first.sha]
        assert (await gw.get_commit(repo.id, first.sha)).message == "init"

    async def test_branches_and_tags(self):
        gw = InMemoryGitGateway()
        repo = await gw.create_repository(request(init_readme=True))
        head = (await gw.list_branches(repo.id))[0].commit_sha

        await gw.create_branch(repo.id, CreateBranchRequest(name="develop", from_sha=head))
        with pytest.raises(GatewayConflictException):
            await gw.create_branch(repo.id, CreateBranchRequest(name="develop", from_sha=head))
        await gw.delete_branch(repo.id, "develop")

        tag = await gw.create_tag(repo.id, CreateTagRequest(name="v1.0.0", commit_sha=head, tagger=AUTHOR))
        assert not tag.is_annotated
        assert [t.name for t in await gw.list_tags(repo.id)] == ["v1.0.0"]
        await gw.delete_tag(repo.id, "v1.0.0")
        with pytest.raises(GatewayNotFoundException):
            await gw.delete_tag(repo.id, "v1.0.0")

    async def test_list_files_groups_directories(self):
        gw = InMemoryGitGateway()
        repo = await gw.create_repository(request())
        await gw.create_commit(
            repo.id,
            CreateCommitRequest(
                branch="main",
                message="tree",
                author=AUTHOR,
                files=[
                    CommitFile(path="README.md", content="hi"),
                    CommitFile(path="src/app.py", content="print()"),
                    CommitFile(path="src/lib/util.py", content=""),
                ],
            ),
        )
        root = await gw.list_files(repo.id)
        assert [(f.name, f.type) for f in root] == [("src", "directory"), ("README.md", "file")]
        src = await gw.list_files(repo.id, "src")
        assert [(f.name, f.type) for f in src] == [("lib", "directory"), ("app.py", "file")]
        with pytest.raises(GatewayNotFoundException):
            await gw.get_file_content(repo.id, "missing.txt")
