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
"""Configuration property groups.

Plain dataclasses bound from :class:`~repoflow.core.config.Config`.

YAML structure::

    repoflow:
      gateway:
        base_url: http://localhost:8083
        timeout_s: 30
        retry_attempts: 3
      transactional:
        retention_hours: 24
        stale_threshold_seconds: 600
      compensation:
        max_retries: 3
      webhook:
        timeout_s: 30
        retry_max: 3
        endpoints:
          - url: https://hooks.example.com/repoflow
            secret: ${WEBHOOK_SECRET:}
            event_mask: ["repository.*"]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from repoflow.core.config import config_properties


@config_properties(prefix="repoflow.gateway")
@dataclass
class GatewayProperties:
    """Connection settings for the Git gateway."""

    base_url: str = "http://localhost:8083"
    api_key: str | None = None
    timeout_s: float = 30.0
    retry_attempts: int = 3
    retry_base_delay_s: float = 0.5
    breaker_failure_threshold: int = 5
    breaker_recovery_s: float = 30.0

    @property
    def timeout(self) -> timedelta:
        return timedelta(seconds=self.timeout_s)


@config_properties(prefix="repoflow.transactional")
@dataclass
class TransactionProperties:
    """Retention and recovery settings for distributed transactions."""

    retention_hours: float = 24.0
    stale_threshold_seconds: int = 600
    metrics_enabled: bool = True

    @property
    def retention(self) -> timedelta:
        return timedelta(hours=self.retention_hours)


@config_properties(prefix="repoflow.compensation")
@dataclass
class CompensationProperties:
    """Retry budget and retention for compensation entries."""

    max_retries: int = 3
    retention_hours: float = 0.0

    @property
    def retention(self) -> timedelta:
        return timedelta(hours=self.retention_hours)


@config_properties(prefix="repoflow.webhook")
@dataclass
class WebhookProperties:
    """Delivery settings shared by every configured callback endpoint."""

    timeout_s: float = 30.0
    retry_max: int = 3
    backoff_base_s: float = 1.0
    backoff_cap_s: float = 30.0
    user_agent: str = "repoflow-webhook/1.0"
    endpoints: list[dict[str, Any]] = field(default_factory=list)
