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
"""Callback events, endpoint configuration and delivery results.

Events are immutable once built: a retry is delivered as a copy carrying
the retry number, so every delivery of one event shares its ``event_id``
and, apart from ``retry_count``, its body.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from repoflow.core.properties import WebhookProperties

logger = logging.getLogger(__name__)

SOURCE_PROJECT_SERVICE = "project-service"
SOURCE_GIT_GATEWAY = "git-gateway"
REPOSITORY_EVENT = "repository"


def _json_default(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"{type(value).__name__} is not JSON serialisable")


def normalize_resource(value: Any) -> dict[str, Any]:
    """Turn an arbitrary resource into a plain JSON object.

    Pydantic models and dataclasses are dumped first; everything then goes
    through a JSON round-trip.  Values that cannot be serialised, or that
    are not objects, end up under a ``"raw"`` key.
    """
    if value is None:
        return {}
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    try:
        data = json.loads(json.dumps(value, default=_json_default))
    except (TypeError, ValueError) as exc:
        logger.warning("Could not normalise %s resource: %s", type(value).__name__, exc)
        return {"raw": str(value)}
    if not isinstance(data, dict):
        return {"raw": data}
    return data


def _rfc3339(ts: datetime) -> str:
    return ts.astimezone(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class CallbackEvent:
    """A typed event delivered to webhook endpoints."""

    event_type: str
    action: str
    project_id: str
    source: str = SOURCE_PROJECT_SERVICE
    resource: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    retry_count: int = 0

    @property
    def qualified_name(self) -> str:
        """``<type>.<action>``, the form event masks match against."""
        return f"{self.event_type}.{self.action}"

    def with_retry_count(self, retry_count: int) -> CallbackEvent:
        return dataclasses.replace(self, retry_count=retry_count)

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "action": self.action,
            "timestamp": _rfc3339(self.timestamp),
            "project_id": self.project_id,
            "source": self.source,
            "resource": self.resource,
            "metadata": self.metadata,
            "retry_count": self.retry_count,
        }

    def to_json(self) -> bytes:
        """The exact request body; the signature is computed over these bytes."""
        return json.dumps(self.to_payload(), separators=(",", ":"), default=_json_default).encode()


def create_project_event(
    event_type: str,
    action: str,
    project_id: uuid.UUID | str,
    resource: Any = None,
    metadata: Mapping[str, Any] | None = None,
) -> CallbackEvent:
    """Build an event emitted by the project service itself."""
    return CallbackEvent(
        event_type=event_type,
        action=action,
        project_id=str(project_id),
        source=SOURCE_PROJECT_SERVICE,
        resource=normalize_resource(resource),
        metadata=normalize_resource(dict(metadata or {})),
    )


def create_repository_event(
    action: str,
    project_id: uuid.UUID | str,
    repository: Any = None,
    metadata: Mapping[str, Any] | None = None,
) -> CallbackEvent:
    """Build a ``repository.<action>`` event describing gateway state."""
    return CallbackEvent(
        event_type=REPOSITORY_EVENT,
        action=action,
        project_id=str(project_id),
        source=SOURCE_GIT_GATEWAY,
        resource=normalize_resource(repository),
        metadata=normalize_resource(dict(metadata or {})),
    )


@dataclass
class CallbackConfig:
    """One webhook endpoint.

    ``timeout`` is in seconds.  ``retry_max`` counts retries after the first
    attempt; zero disables retrying.
    """

    url: str
    secret: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0
    retry_max: int = 3
    event_mask: list[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], defaults: WebhookProperties | None = None) -> CallbackConfig:
        """Build from a ``repoflow.webhook.endpoints`` entry."""
        defaults = defaults or WebhookProperties()
        return cls(
            url=str(data["url"]),
            secret=data.get("secret") or None,
            headers={str(k): str(v) for k, v in (data.get("headers") or {}).items()},
            timeout=float(data.get("timeout_s", defaults.timeout_s)),
            retry_max=int(data.get("retry_max", defaults.retry_max)),
            event_mask=[str(p) for p in data.get("event_mask") or []],
        )


@dataclass
class CallbackResult:
    """Outcome of one delivery (or of the last attempt of a retried one)."""

    success: bool
    event_id: str
    url: str = ""
    status_code: int | None = None
    response_excerpt: str = ""
    duration: float = 0.0
    retry_count: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None
    skipped: bool = False
