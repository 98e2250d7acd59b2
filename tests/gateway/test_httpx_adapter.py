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
"""Tests for HttpxGitGatewayClient against an httpx.MockTransport."""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable
from datetime import timedelta

import httpx
import pytest

from repoflow.core.properties import GatewayProperties
from repoflow.gateway.circuit_breaker import CircuitBreaker
from repoflow.gateway.exceptions import (
    GatewayConflictException,
    GatewayException,
    GatewayNotFoundException,
    GatewayRequestException,
    GatewayUnavailableException,
)
from repoflow.gateway.httpx_adapter import HttpxGitGatewayClient
from repoflow.gateway.models import CreateRepositoryRequest, RepositoryVisibility
from repoflow.gateway.ports import GitGatewayPort
from repoflow.gateway.retry import RetryPolicy
from repoflow.kernel.exceptions import CircuitBreakerException

pytestmark = pytest.mark.anyio

REPO_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
PROJECT_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")


def envelope(data: object = None, success: bool = True, error: str | None = None) -> dict:
    return {"success": success, "message": "", "data": data, "error": error}


def repo_json(name: str = "service-api") -> dict:
    return {
        "id": str(REPO_ID),
        "project_id": str(PROJECT_ID),
        "name": name,
        "visibility": "private",
        "default_branch": "main",
        "created_at": "2026-03-01T10:00:00Z",
    }


class Recorder:
    """MockTransport handler replaying canned responses and recording requests."""

    def __init__(self, *responses: httpx.Response | Callable[[httpx.Request], httpx.Response]):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return response(request) if callable(response) else response


def make_client(handler: Recorder, **kwargs) -> tuple[HttpxGitGatewayClient, httpx.AsyncClient]:
    http = httpx.AsyncClient(base_url="http://gateway.test", transport=httpx.MockTransport(handler))
    return HttpxGitGatewayClient(api_key="secret-key", http_client=http, **kwargs), http


class TestRequests:
    def test_implements_port(self):
        client, _ = make_client(Recorder(httpx.Response(200)))
        assert isinstance(client, GitGatewayPort)

    async def test_create_repository(self):
        handler = Recorder(httpx.Response(201, json=envelope(repo_json())))
        client, _ = make_client(handler)

        repo = await client.create_repository(CreateRepositoryRequest(project_id=PROJECT_ID, name="service-api"))

        assert repo.id == REPO_ID
        assert repo.visibility == RepositoryVisibility.PRIVATE
        request = handler.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v1/repositories"
        assert request.headers["Authorization"] == "Bearer secret-key"
        body = json.loads(request.content)
        assert body["name"] == "service-api"
        assert body["project_id"] == str(PROJECT_ID)
        assert "description" not in body

    async def test_get_repository(self):
        handler = Recorder(httpx.Response(200, json=envelope(repo_json())))
        client, _ = make_client(handler)
        repo = await client.get_repository(REPO_ID)
        assert repo.name == "service-api"
        assert handler.requests[0].url.path == f"/api/v1/repositories/{REPO_ID}"

    async def test_delete_repository(self):
        handler = Recorder(httpx.Response(200, json=envelope()))
        client, _ = make_client(handler)
        await client.delete_repository(REPO_ID)
        assert handler.requests[0].method == "DELETE"

    async def test_list_branches_unwraps_collection(self):
        data = {"branches": [{"name": "main", "commit_sha": "abc", "is_default": True}]}
        client, _ = make_client(Recorder(httpx.Response(200, json=envelope(data))))
        branches = await client.list_branches(REPO_ID)
        assert [b.name for b in branches] == ["main"]
        assert branches[0].is_default

    async def test_list_commits_passes_branch(self):
        handler = Recorder(httpx.Response(200, json=envelope({"commits": [], "total": 0})))
        client, _ = make_client(handler)
        await client.list_commits(REPO_ID, branch="develop", page=2)
        params = handler.requests[0].url.params
        assert params["branch"] == "develop"
        assert params["page"] == "2"

    async def test_get_file_content(self):
        handler = Recorder(httpx.Response(200, json=envelope({"content": "# hello\n"})))
        client, _ = make_client(handler)
        content = await client.get_file_content(REPO_ID, "/docs/README.md", ref="main")
        assert content == "# hello\n"
        assert handler.requests[0].url.path.endswith("/files/docs/README.md")
        assert handler.requests[0].url.params["ref"] == "main"

    async def test_injected_client_is_not_closed(self):
        client, http = make_client(Recorder(httpx.Response(200)))
        await client.aclose()
        assert not http.is_closed

    def test_from_properties(self):
        props = GatewayProperties(base_url="http://git:8083", api_key=None, retry_attempts=5)
        client = HttpxGitGatewayClient.from_properties(props)
        assert client._retry is not None
        assert client._retry.max_attempts == 5
        assert client._breaker is not None
        assert "Authorization" not in client._client.headers


class TestErrorMapping:
    async def test_404_maps_to_not_found(self):
        client, _ = make_client(Recorder(httpx.Response(404, json=envelope(success=False, error="no such repo"))))
        with pytest.raises(GatewayNotFoundException, match="no such repo") as info:
            await client.get_repository(REPO_ID)
        assert info.value.status_code == 404
        assert info.value.code == "GATEWAY_NOT_FOUND"

    async def test_409_maps_to_conflict(self):
        client, _ = make_client(Recorder(httpx.Response(409, json=envelope(success=False, error="exists"))))
        with pytest.raises(GatewayConflictException):
            await client.create_repository(CreateRepositoryRequest(project_id=PROJECT_ID, name="dup"))

    async def test_other_4xx_maps_to_request_error(self):
        client, _ = make_client(Recorder(httpx.Response(422, text="unprocessable")))
        with pytest.raises(GatewayRequestException, match="unprocessable"):
            await client.get_repository(REPO_ID)

    async def test_unsuccessful_envelope_is_rejected(self):
        client, _ = make_client(Recorder(httpx.Response(200, json=envelope(success=False, error="quota"))))
        with pytest.raises(GatewayRequestException, match="quota") as info:
            await client.get_repository(REPO_ID)
        assert info.value.code == "GATEWAY_REJECTED"

    async def test_5xx_maps_to_unavailable(self):
        client, _ = make_client(Recorder(httpx.Response(503)))
        with pytest.raises(GatewayUnavailableException) as info:
            await client.get_repository(REPO_ID)
        assert info.value.status_code == 503

    async def test_transport_error_maps_to_unavailable(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = make_client(Recorder(refuse))
        with pytest.raises(GatewayUnavailableException) as info:
            await client.get_repository(REPO_ID)
        assert info.value.code == "GATEWAY_UNREACHABLE"

    async def test_malformed_payload(self):
        client, _ = make_client(Recorder(httpx.Response(200, json=envelope({"id": "not-a-uuid"}))))
        with pytest.raises(GatewayException) as info:
            await client.get_repository(REPO_ID)
        assert info.value.code == "GATEWAY_BAD_PAYLOAD"


class TestResilience:
    async def test_idempotent_call_is_retried(self):
        handler = Recorder(httpx.Response(503), httpx.Response(200, json=envelope(repo_json())))
        client, _ = make_client(handler, retry_policy=RetryPolicy(base_delay=timedelta(milliseconds=1)))
        repo = await client.get_repository(REPO_ID)
        assert repo.id == REPO_ID
        assert len(handler.requests) == 2

    async def test_create_is_never_retried(self):
        handler = Recorder(httpx.Response(503), httpx.Response(201, json=envelope(repo_json())))
        client, _ = make_client(handler, retry_policy=RetryPolicy(base_delay=timedelta(milliseconds=1)))
        with pytest.raises(GatewayUnavailableException):
            await client.create_repository(CreateRepositoryRequest(project_id=PROJECT_ID, name="service-api"))
        assert len(handler.requests) == 1

    async def test_not_found_is_not_retried(self):
        handler = Recorder(httpx.Response(404))
        client, _ = make_client(handler, retry_policy=RetryPolicy(base_delay=timedelta(milliseconds=1)))
        with pytest.raises(GatewayNotFoundException):
            await client.get_repository(REPO_ID)
        assert len(handler.requests) == 1

    async def test_breaker_opens_on_repeated_outage(self):
        handler = Recorder(httpx.Response(500))
        client, _ = make_client(handler, breaker=CircuitBreaker(failure_threshold=2))
        for _ in range(2):
            with pytest.raises(GatewayUnavailableException):
                await client.get_repository(REPO_ID)
        with pytest.raises(CircuitBreakerException):
            await client.get_repository(REPO_ID)
        assert len(handler.requests) == 2
