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
"""httpx-based Git gateway client.

Every gateway response is wrapped in the envelope::

    {"success": true, "message": "...", "data": {...}, "error": null}

The client unwraps ``data``, maps HTTP failures to the gateway exception
hierarchy and layers the retry policy over the circuit breaker the same way
for every call.  Non-idempotent calls (creating resources) are never
retried: a timed-out create may already have happened.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

import httpx
from pydantic import ValidationError

from repoflow.core.properties import GatewayProperties
from repoflow.gateway.circuit_breaker import CircuitBreaker
from repoflow.gateway.exceptions import (
    GatewayConflictException,
    GatewayException,
    GatewayNotFoundException,
    GatewayRequestException,
    GatewayUnavailableException,
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
    Tag,
    UpdateRepositoryRequest,
)
from repoflow.gateway.retry import RetryPolicy

logger = logging.getLogger(__name__)

_API_PREFIX = "/api/v1/repositories"
_ERROR_EXCERPT = 512


class HttpxGitGatewayClient:
    """Git gateway adapter backed by a shared ``httpx.AsyncClient``.

    Args:
        base_url: Gateway root, e.g. ``http://git-gateway:8083``.
        api_key: Sent as a bearer token when non-empty.
        timeout: Per-request timeout.
        retry_policy: Backoff for idempotent calls.  ``None`` disables retries.
        breaker: Circuit breaker shared by all calls.  ``None`` disables it.
        http_client: Pre-built client (tests pass one with a
            ``httpx.MockTransport``).  When given, it is not closed by
            :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str = "",
        api_key: str = "",
        timeout: timedelta = timedelta(seconds=30),
        retry_policy: RetryPolicy | None = None,
        breaker: CircuitBreaker | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout.total_seconds(),
            headers=headers,
        )
        if not self._owns_client:
            self._client.headers.update(headers)
        self._retry = retry_policy
        self._breaker = breaker

    @classmethod
    def from_properties(
        cls, props: GatewayProperties, http_client: httpx.AsyncClient | None = None
    ) -> HttpxGitGatewayClient:
        """Build a client with retry and circuit breaker from configuration."""
        return cls(
            base_url=props.base_url,
            api_key=props.api_key or "",
            timeout=props.timeout,
            retry_policy=RetryPolicy(
                max_attempts=props.retry_attempts,
                base_delay=timedelta(seconds=props.retry_base_delay_s),
            ),
            breaker=CircuitBreaker(
                failure_threshold=props.breaker_failure_threshold,
                recovery_timeout=timedelta(seconds=props.breaker_recovery_s),
            ),
            http_client=http_client,
        )

    # ── repositories ──────────────────────────────────────────

    async def create_repository(self, request: CreateRepositoryRequest) -> Repository:
        data = await self._call("POST", _API_PREFIX, json=request.to_payload(), idempotent=False)
        return self._parse(Repository, data)

    async def get_repository(self, repository_id: uuid.UUID) -> Repository:
        data = await self._call("GET", f"{_API_PREFIX}/{repository_id}")
        return self._parse(Repository, data)

    async def update_repository(
        self, repository_id: uuid.UUID, request: UpdateRepositoryRequest
    ) -> Repository:
        data = await self._call("PUT", f"{_API_PREFIX}/{repository_id}", json=request.to_payload())
        return self._parse(Repository, data)

    async def delete_repository(self, repository_id: uuid.UUID) -> None:
        await self._call("DELETE", f"{_API_PREFIX}/{repository_id}")

    async def list_repositories(
        self, project_id: uuid.UUID, page: int = 1, page_size: int = 20
    ) -> RepositoryList:
        params = {"project_id": str(project_id), "page": page, "page_size": page_size}
        data = await self._call("GET", _API_PREFIX, params=params)
        return self._parse(RepositoryList, data)

    # ── branches ──────────────────────────────────────────────

    async def list_branches(self, repository_id: uuid.UUID) -> list[Branch]:
        data = await self._call("GET", f"{_API_PREFIX}/{repository_id}/branches")
        return [self._parse(Branch, item) for item in (data or {}).get("branches", [])]

    async def create_branch(self, repository_id: uuid.UUID, request: CreateBranchRequest) -> Branch:
        data = await self._call(
            "POST", f"{_API_PREFIX}/{repository_id}/branches", json=request.to_payload(), idempotent=False
        )
        return self._parse(Branch, data)

    async def delete_branch(self, repository_id: uuid.UUID, branch: str) -> None:
        await self._call("DELETE", f"{_API_PREFIX}/{repository_id}/branches/{branch}")

    # ── commits ───────────────────────────────────────────────

    async def list_commits(
        self,
        repository_id: uuid.UUID,
        branch: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> CommitList:
        params: dict[str, Any] = {"page": page, "page_size": page_size}
        if branch:
            params["branch"] = branch
        data = await self._call("GET", f"{_API_PREFIX}/{repository_id}/commits", params=params)
        return self._parse(CommitList, data)

    async def get_commit(self, repository_id: uuid.UUID, sha: str) -> Commit:
        data = await self._call("GET", f"{_API_PREFIX}/{repository_id}/commits/{sha}")
        return self._parse(Commit, data)

    async def create_commit(self, repository_id: uuid.UUID, request: CreateCommitRequest) -> Commit:
        data = await self._call(
            "POST", f"{_API_PREFIX}/{repository_id}/commits", json=request.to_payload(), idempotent=False
        )
        return self._parse(Commit, data)

    # ── tags ──────────────────────────────────────────────────

    async def list_tags(self, repository_id: uuid.UUID) -> list[Tag]:
        data = await self._call("GET", f"{_API_PREFIX}/{repository_id}/tags")
        return [self._parse(Tag, item) for item in (data or {}).get("tags", [])]

    async def create_tag(self, repository_id: uuid.UUID, request: CreateTagRequest) -> Tag:
        data = await self._call(
            "POST", f"{_API_PREFIX}/{repository_id}/tags", json=request.to_payload(), idempotent=False
        )
        return self._parse(Tag, data)

    async def delete_tag(self, repository_id: uuid.UUID, tag: str) -> None:
        await self._call("DELETE", f"{_API_PREFIX}/{repository_id}/tags/{tag}")

    # ── files ─────────────────────────────────────────────────

    async def list_files(
        self, repository_id: uuid.UUID, path: str = "", ref: str | None = None
    ) -> list[FileInfo]:
        params = {"ref": ref} if ref else None
        data = await self._call(
            "GET", f"{_API_PREFIX}/{repository_id}/tree/{path.lstrip('/')}", params=params
        )
        return [self._parse(FileInfo, item) for item in (data or {}).get("files", [])]

    async def get_file_content(
        self, repository_id: uuid.UUID, path: str, ref: str | None = None
    ) -> str:
        params = {"ref": ref} if ref else None
        data = await self._call(
            "GET", f"{_API_PREFIX}/{repository_id}/files/{path.lstrip('/')}", params=params
        )
        return str((data or {}).get("content", ""))

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this adapter created it."""
        if self._owns_client:
            await self._client.aclose()

    # ── plumbing ──────────────────────────────────────────────

    async def _call(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        idempotent: bool = True,
    ) -> Any:
        """Send a request through the breaker (and retry policy) and unwrap ``data``."""

        async def do_request() -> Any:
            return await self._send(method, path, json=json, params=params)

        operation: Callable[[], Awaitable[Any]] = do_request

        if self._breaker is not None:
            breaker = self._breaker
            inner = operation

            async def with_breaker() -> Any:
                return await breaker.call(inner)

            operation = with_breaker

        if self._retry is not None and idempotent:
            retry = self._retry
            guarded = operation

            async def with_retry() -> Any:
                return await retry.execute(guarded)

            operation = with_retry

        return await operation()

    async def _send(
        self, method: str, path: str, *, json: Any = None, params: dict[str, Any] | None = None
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as exc:
            raise GatewayUnavailableException(
                f"Git gateway timed out on {method} {path}", code="GATEWAY_TIMEOUT"
            ) from exc
        except httpx.TransportError as exc:
            raise GatewayUnavailableException(
                f"Git gateway unreachable on {method} {path}: {exc}", code="GATEWAY_UNREACHABLE"
            ) from exc

        envelope = self._decode(response)
        if response.is_success:
            if envelope is not None and envelope.get("success") is False:
                raise GatewayRequestException(
                    self._error_text(response, envelope),
                    status_code=response.status_code,
                    code="GATEWAY_REJECTED",
                )
            return envelope.get("data") if envelope is not None else None

        raise self._map_error(method, path, response, envelope)

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any] | None:
        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    @staticmethod
    def _error_text(response: httpx.Response, envelope: dict[str, Any] | None) -> str:
        if envelope is not None:
            message = envelope.get("error") or envelope.get("message")
            if message:
                return str(message)
        return response.text[:_ERROR_EXCERPT] or response.reason_phrase

    def _map_error(
        self,
        method: str,
        path: str,
        response: httpx.Response,
        envelope: dict[str, Any] | None,
    ) -> GatewayException:
        status = response.status_code
        message = f"{method} {path} returned {status}: {self._error_text(response, envelope)}"
        context = {"method": method, "path": path}
        if status == 404:
            return GatewayNotFoundException(message, status_code=status, code="GATEWAY_NOT_FOUND", context=context)
        if status == 409:
            return GatewayConflictException(message, status_code=status, code="GATEWAY_CONFLICT", context=context)
        if status >= 500:
            return GatewayUnavailableException(
                message, status_code=status, code="GATEWAY_UNAVAILABLE", context=context
            )
        return GatewayRequestException(message, status_code=status, code="GATEWAY_BAD_REQUEST", context=context)

    @staticmethod
    def _parse(model: type[Any], data: Any) -> Any:
        if data is None:
            raise GatewayException("Git gateway returned an empty payload", code="GATEWAY_BAD_PAYLOAD")
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise GatewayException(
                f"Git gateway returned a malformed {model.__name__}: {exc.error_count()} error(s)",
                code="GATEWAY_BAD_PAYLOAD",
            ) from exc
