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
"""Tests for DistributedTransactionManager: create transactions and management."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from repoflow.compensation.manager import CompensationManager
from repoflow.compensation.types import CompensationAction, CompensationStatus
from repoflow.gateway.exceptions import (
    GatewayConflictException,
    GatewayNotFoundException,
    GatewayUnavailableException,
)
from repoflow.gateway.memory import InMemoryGitGateway
from repoflow.gateway.models import Repository
from repoflow.kernel.cancellation import CancellationToken
from repoflow.kernel.exceptions import OperationCancelledException, ValidationException
from repoflow.transaction.exceptions import (
    AccessDeniedError,
    CancelFailure,
    ConfirmationFailure,
    ExecutionFailure,
    ProjectNotFoundError,
    TransactionNotFoundException,
    ValidationFailure,
)
from repoflow.transaction.manager import DistributedTransactionManager, normalize_create_request
from repoflow.transaction.types import TransactionPhase, TransactionStatus

pytestmark = pytest.mark.anyio


class SlowConfirmGateway(InMemoryGitGateway):
    """Gateway whose re-fetch blocks until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.creates = 0

    async def create_repository(self, request):
        self.creates += 1
        return await super().create_repository(request)

    async def get_repository(self, repository_id: uuid.UUID) -> Repository:
        self.entered.set()
        await self.release.wait()
        return await super().get_repository(repository_id)


async def only_transaction(manager: DistributedTransactionManager):
    (tx,) = await manager.list_transactions()
    return tx


# ---------------------------------------------------------------------------
# Request normalisation
# ---------------------------------------------------------------------------


class TestNormalizeCreateRequest:
    def test_fills_defaults(self, make_request):
        normalized = normalize_create_request(make_request(visibility="internal"))
        assert normalized.default_branch == "main"
        assert normalized.visibility == "internal"

    def test_keeps_explicit_branch(self, make_request):
        assert normalize_create_request(make_request(default_branch="trunk")).default_branch == "trunk"

    @pytest.mark.parametrize("name", ["", "-leading-dash", "has space", "a" * 101, "abc\n"])
    def test_rejects_bad_names(self, make_request, name):
        with pytest.raises(ValidationException) as info:
            normalize_create_request(make_request(name))
        assert info.value.code == "INVALID_NAME"

    @pytest.mark.parametrize("name", ["a", "service-api", "lib_2.0", "X" * 100])
    def test_accepts_good_names(self, make_request, name):
        assert normalize_create_request(make_request(name)).name == name

    def test_rejects_unknown_visibility(self, make_request):
        with pytest.raises(ValidationException) as info:
            normalize_create_request(make_request(visibility="secret"))
        assert info.value.code == "INVALID_VISIBILITY"

    def test_rejects_blank_branch(self, make_request):
        with pytest.raises(ValidationException) as info:
            normalize_create_request(make_request(default_branch="  "))
        assert info.value.code == "INVALID_BRANCH"


# ---------------------------------------------------------------------------
# create_repository_transaction
# ---------------------------------------------------------------------------


class TestValidationPhase:
    async def test_access_denied(self, manager, gateway, project, make_request):
        with pytest.raises(AccessDeniedError) as info:
            await manager.create_repository_transaction(
                project.id, uuid.uuid4(), project.tenant_id, make_request()
            )
        assert info.value.phase == TransactionPhase.VALIDATION
        assert gateway.calls == []
        tx = await only_transaction(manager)
        assert tx.status == TransactionStatus.FAILED
        assert tx.error_code == "TX_ACCESS_DENIED"

    async def test_project_in_other_tenant(self, manager, gateway, project, make_request):
        with pytest.raises(ProjectNotFoundError):
            await manager.create_repository_transaction(
                project.id, project.manager_id, uuid.uuid4(), make_request()
            )
        assert gateway.calls == []

    async def test_invalid_name(self, manager, gateway, project, make_request):
        with pytest.raises(ValidationFailure) as info:
            await manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, make_request("bad name")
            )
        assert info.value.code == "INVALID_NAME"
        assert gateway.calls == []

    async def test_request_for_other_project(self, manager, gateway, project, make_request):
        request = make_request(project_id=uuid.uuid4())
        with pytest.raises(ValidationFailure, match="request targets project"):
            await manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, request
            )
        assert gateway.calls == []

    async def test_cancelled_before_validation(self, manager, gateway, project, make_request):
        token = CancellationToken()
        token.cancel("shutdown")
        with pytest.raises(ValidationFailure, match="cancelled") as info:
            await manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, make_request(), cancel=token
            )
        assert isinstance(info.value.__cause__, OperationCancelledException)
        assert gateway.calls == []


class TestExecutionPhase:
    async def test_conflict(self, manager, gateway, compensations, project, make_request):
        gateway.fail("create_repository", GatewayConflictException("already exists", status_code=409))
        with pytest.raises(ExecutionFailure, match="already exists") as info:
            await manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, make_request()
            )
        assert isinstance(info.value.__cause__, GatewayConflictException)
        assert await compensations.list_pending() == []

    async def test_normalised_request_reaches_gateway(self, manager, gateway, project, make_request):
        await manager.create_repository_transaction(
            project.id, project.manager_id, project.tenant_id, make_request()
        )
        (sent,) = gateway.calls_to("create_repository")
        assert sent.default_branch == "main"

    async def test_enrolment_failure(self, projects, gateway, project, make_request):
        compensations = CompensationManager(gateway)
        compensations.add_compensation = AsyncMock(side_effect=RuntimeError("store offline"))
        manager = DistributedTransactionManager(projects, gateway, compensations)

        with pytest.raises(ExecutionFailure, match="could not record compensation"):
            await manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, make_request()
            )
        tx = await only_transaction(manager)
        assert tx.status == TransactionStatus.FAILED
        assert gateway.repositories == {}
        assert len(gateway.calls_to("delete_repository")) == 1

    async def test_enrolment_failure_with_undeletable_repository(self, projects, gateway, project, make_request):
        compensations = CompensationManager(gateway)
        compensations.add_compensation = AsyncMock(side_effect=RuntimeError("store offline"))
        manager = DistributedTransactionManager(projects, gateway, compensations)
        gateway.fail("delete_repository", GatewayUnavailableException("gateway down"))

        with pytest.raises(CancelFailure, match="needs manual cleanup") as info:
            await manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, make_request()
            )
        (repo_id,) = gateway.repositories
        assert info.value.phase == TransactionPhase.CANCEL
        assert info.value.resource_id == repo_id
        assert info.value.context["resource_id"] == str(repo_id)
        tx = await only_transaction(manager)
        assert tx.status == TransactionStatus.FAILED
        assert tx.phase == TransactionPhase.CANCEL


class TestConfirmationPhase:
    async def test_success_enrols_delete_compensation(self, manager, compensations, project, make_request):
        repo = await manager.create_repository_transaction(
            project.id, project.manager_id, project.tenant_id, make_request()
        )
        tx = await only_transaction(manager)
        assert tx.status == TransactionStatus.CONFIRMED
        assert tx.result is not None and tx.result["id"] == str(repo.id)

        (cid,) = tx.compensation_ids
        entry = await compensations.get_status(cid)
        assert entry.action == CompensationAction.DELETE_REPOSITORY
        assert entry.resource_id == repo.id
        assert entry.status == CompensationStatus.PENDING
        assert set(entry.payload) == {"repository_name", "project_id", "actor_id", "created_at"}

    async def test_name_mismatch_is_compensated(self, projects, project, make_request):
        class RenamingGateway(InMemoryGitGateway):
            async def get_repository(self, repository_id):
                repo = await super().get_repository(repository_id)
                return repo.model_copy(update={"name": "renamed"})

        renaming = RenamingGateway()
        manager = DistributedTransactionManager(projects, renaming, CompensationManager(renaming))
        with pytest.raises(ConfirmationFailure, match="name mismatch"):
            await manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, make_request()
            )
        assert renaming.repositories == {}

    async def test_compensation_failure_raises_cancel_failure(
        self, manager, gateway, compensations, project, make_request
    ):
        gateway.fail("get_repository", GatewayNotFoundException("gone", status_code=404))
        gateway.fail("delete_repository", GatewayUnavailableException("down"))

        with pytest.raises(CancelFailure) as info:
            await manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, make_request()
            )

        tx = await only_transaction(manager)
        assert tx.status == TransactionStatus.CANCELLED
        assert tx.phase == TransactionPhase.CANCEL
        assert info.value.compensation_ids == tx.compensation_ids
        (entry,) = await compensations.list_pending()
        assert entry.last_error == "down"

    async def test_cancel_during_confirm_still_compensates(self, projects, project, make_request):
        slow = SlowConfirmGateway()
        manager = DistributedTransactionManager(projects, slow, CompensationManager(slow))
        token = CancellationToken.with_timeout(timedelta(milliseconds=50))

        with pytest.raises(ConfirmationFailure) as info:
            await manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, make_request(), cancel=token
            )

        assert isinstance(info.value.__cause__, OperationCancelledException)
        assert slow.creates == 1
        assert slow.repositories == {}
        tx = await only_transaction(manager)
        assert tx.status == TransactionStatus.CANCELLED


class TestEvents:
    async def test_lifecycle_events(self, projects, gateway, compensations, project, make_request):
        events = AsyncMock()
        manager = DistributedTransactionManager(projects, gateway, compensations, events=events)

        await manager.create_repository_transaction(
            project.id, project.manager_id, project.tenant_id, make_request()
        )

        events.on_started.assert_awaited_once()
        phases = [c.args[1] for c in events.on_phase_completed.await_args_list]
        assert phases == [TransactionPhase.VALIDATION, TransactionPhase.EXECUTION, TransactionPhase.CONFIRM]
        tx, error = events.on_completed.await_args.args
        assert tx.status == TransactionStatus.CONFIRMED
        assert error is None

    async def test_failing_events_adapter_does_not_break_transaction(
        self, projects, gateway, compensations, project, make_request
    ):
        events = AsyncMock()
        events.on_completed.side_effect = RuntimeError("sink down")
        manager = DistributedTransactionManager(projects, gateway, compensations, events=events)

        repo = await manager.create_repository_transaction(
            project.id, project.manager_id, project.tenant_id, make_request()
        )
        assert repo.name == "service-api"

    async def test_compensation_events(self, projects, gateway, compensations, project, make_request):
        events = AsyncMock()
        manager = DistributedTransactionManager(projects, gateway, compensations, events=events)
        gateway.fail("get_repository", GatewayNotFoundException("gone"))

        with pytest.raises(ConfirmationFailure):
            await manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, make_request()
            )

        _, cid, error = events.on_compensated.await_args.args
        assert error is None
        tx, completion_error = events.on_completed.await_args.args
        assert tx.status == TransactionStatus.CANCELLED
        assert isinstance(completion_error, ConfirmationFailure)


# ---------------------------------------------------------------------------
# Management
# ---------------------------------------------------------------------------


class TestManagement:
    async def test_get_unknown_transaction(self, manager):
        with pytest.raises(TransactionNotFoundException):
            await manager.get_transaction(uuid.uuid4())

    async def test_get_returns_snapshot(self, manager, project, make_request):
        await manager.create_repository_transaction(
            project.id, project.manager_id, project.tenant_id, make_request()
        )
        tx = await only_transaction(manager)
        snapshot = await manager.get_transaction(tx.id)
        snapshot.compensation_ids.clear()
        assert (await manager.get_transaction(tx.id)).compensation_ids == tx.compensation_ids

    async def test_in_flight_transaction_is_active(self, projects, project, make_request):
        slow = SlowConfirmGateway()
        manager = DistributedTransactionManager(projects, slow, CompensationManager(slow))
        task = asyncio.create_task(
            manager.create_repository_transaction(
                project.id, project.manager_id, project.tenant_id, make_request()
            )
        )
        await slow.entered.wait()

        (active,) = await manager.list_active()
        assert active.status == TransactionStatus.EXECUTED
        assert manager.is_in_flight(active.id)

        slow.release.set()
        await task
        assert await manager.list_active() == []
        assert not manager.is_in_flight(active.id)

    async def test_cleanup_completed(self, manager, project, make_request):
        await manager.create_repository_transaction(
            project.id, project.manager_id, project.tenant_id, make_request()
        )
        assert await manager.cleanup_completed() == 0
        assert await manager.cleanup_completed(older_than=timedelta(0)) == 1
        assert await manager.list_transactions() == []


# ---------------------------------------------------------------------------
# delete_repository_transaction
# ---------------------------------------------------------------------------


class TestDeleteTransaction:
    async def test_create_then_delete_leaves_no_repository(self, manager, gateway, project, make_request):
        repo = await manager.create_repository_transaction(
            project.id, project.manager_id, project.tenant_id, make_request("round-trip")
        )
        await manager.delete_repository_transaction(project.id, project.manager_id, project.tenant_id, repo.id)

        remaining = await gateway.list_repositories(project.id)
        assert [r for r in remaining.repositories if r.name == "round-trip"] == []
        statuses = sorted((t.type.value, t.status.value) for t in await manager.list_transactions())
        assert statuses == [("create_repository", "confirmed"), ("delete_repository", "confirmed")]

    async def test_enrolment_failure_reports_deleted_repository(self, projects, gateway, project, make_request):
        compensations = CompensationManager(gateway)
        compensations.add_compensation = AsyncMock(side_effect=RuntimeError("store offline"))
        manager = DistributedTransactionManager(projects, gateway, compensations)
        repo = await gateway.create_repository(make_request())

        with pytest.raises(CancelFailure) as info:
            await manager.delete_repository_transaction(
                project.id, project.manager_id, project.tenant_id, repo.id
            )
        assert info.value.resource_id == repo.id
        assert repo.id not in gateway.repositories
        tx = await only_transaction(manager)
        assert tx.status == TransactionStatus.FAILED

    async def test_deletes_and_records_audit_entry(self, manager, gateway, compensations, project, make_request):
        repo = await gateway.create_repository(make_request())

        snapshot = await manager.delete_repository_transaction(
            project.id, project.manager_id, project.tenant_id, repo.id
        )

        assert snapshot.id == repo.id
        assert repo.id not in gateway.repositories
        tx = next(t for t in await manager.list_transactions() if t.type == "delete_repository")
        assert tx.status == TransactionStatus.CONFIRMED
        (cid,) = tx.compensation_ids
        entry = await compensations.get_status(cid)
        assert entry.action == CompensationAction.NOTIFY_FAILURE
        assert entry.payload["repository_name"] == "service-api"

    async def test_unknown_repository(self, manager, gateway, project):
        with pytest.raises(ValidationFailure, match="not found"):
            await manager.delete_repository_transaction(
                project.id, project.manager_id, project.tenant_id, uuid.uuid4()
            )
        assert gateway.calls_to("delete_repository") == []

    async def test_repository_of_other_project(self, manager, gateway, project, make_request):
        foreign = await gateway.create_repository(make_request(project_id=uuid.uuid4()))
        with pytest.raises(ValidationFailure, match="does not belong"):
            await manager.delete_repository_transaction(
                project.id, project.manager_id, project.tenant_id, foreign.id
            )
        assert foreign.id in gateway.repositories

    async def test_still_visible_is_cancelled(self, projects, project, make_request, caplog):
        caplog.set_level(logging.WARNING, logger="repoflow.compensation.manager")
        class StickyGateway(InMemoryGitGateway):
            async def delete_repository(self, repository_id):
                self._enter("delete_repository", repository_id)

        sticky = StickyGateway()
        compensations = CompensationManager(sticky)
        manager = DistributedTransactionManager(projects, sticky, compensations)
        repo = await sticky.create_repository(make_request())

        with pytest.raises(ConfirmationFailure, match="still visible"):
            await manager.delete_repository_transaction(
                project.id, project.manager_id, project.tenant_id, repo.id
            )

        tx = await only_transaction(manager)
        assert tx.status == TransactionStatus.CANCELLED
        (entry,) = [await compensations.get_status(cid) for cid in tx.compensation_ids]
        assert entry.status.value == "executed"
        assert "Failure notification" in caplog.text
