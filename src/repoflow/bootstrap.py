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
"""Wiring: build a ready-to-use orchestrator from :class:`Config`.

Startup order:

1. Bind the property groups (gateway, transactional, compensation, webhook).
2. Build the gateway client unless one is passed in.
3. Build the webhook dispatcher and endpoint list.
4. Build the compensation manager, with webhook failure notifications.
5. Build the transaction manager with logger, metrics and webhook events.
6. Build the recovery service.

Logging is left to the host; call :func:`configure_logging` once at
process start if repoflow should own it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import httpx
from prometheus_client import CollectorRegistry

from repoflow.compensation.manager import CompensationManager
from repoflow.compensation.ports import CompensationStorePort
from repoflow.core.config import Config
from repoflow.core.properties import (
    CompensationProperties,
    GatewayProperties,
    TransactionProperties,
    WebhookProperties,
)
from repoflow.gateway.httpx_adapter import HttpxGitGatewayClient
from repoflow.gateway.ports import GitGatewayPort
from repoflow.logging.port import LoggingPort
from repoflow.logging.structlog_adapter import StructlogAdapter
from repoflow.observability.metrics import MetricsRegistry
from repoflow.project.ports import ProjectRepositoryPort
from repoflow.transaction.events import (
    CompositeEventsAdapter,
    LoggerEventsAdapter,
    MetricsEventsAdapter,
)
from repoflow.transaction.manager import DistributedTransactionManager
from repoflow.transaction.ports import TransactionEventsPort, TransactionStorePort
from repoflow.transaction.recovery import TransactionRecoveryService
from repoflow.webhook.adapters import WebhookEventsAdapter, WebhookFailureNotifier
from repoflow.webhook.dispatcher import CallbackDispatcher
from repoflow.webhook.types import CallbackConfig

logger = logging.getLogger(__name__)


def configure_logging(config: Config, port: LoggingPort | None = None) -> LoggingPort:
    """Apply the ``repoflow.logging`` section process-wide.  Defaults to structlog."""
    port = port or StructlogAdapter()
    port.configure(config)
    return port


@dataclass
class Orchestrator:
    """Everything a project service needs to run repository transactions."""

    config: Config
    gateway: GitGatewayPort
    compensation_manager: CompensationManager
    transaction_manager: DistributedTransactionManager
    dispatcher: CallbackDispatcher
    recovery: TransactionRecoveryService
    webhook_events: WebhookEventsAdapter
    failure_notifier: WebhookFailureNotifier | None = None
    endpoints: list[CallbackConfig] = field(default_factory=list)
    metrics: MetricsRegistry | None = None
    owns_gateway: bool = True

    async def aclose(self) -> None:
        """Flush pending webhook deliveries and release HTTP clients."""
        await self.webhook_events.drain()
        if self.failure_notifier is not None:
            await self.failure_notifier.drain()
        await self.dispatcher.aclose()
        if self.owns_gateway:
            await self.gateway.aclose()
        logger.info("Orchestrator closed")

    async def __aenter__(self) -> Orchestrator:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()


def build_orchestrator(
    config: Config,
    project_repository: ProjectRepositoryPort,
    gateway: GitGatewayPort | None = None,
    *,
    metrics: MetricsRegistry | None = None,
    transaction_store: TransactionStorePort | None = None,
    compensation_store: CompensationStorePort | None = None,
    gateway_http_client: httpx.AsyncClient | None = None,
    webhook_http_client: httpx.AsyncClient | None = None,
) -> Orchestrator:
    """Wire the orchestration core from configuration.

    Args:
        config: Source of every ``repoflow.*`` setting.
        project_repository: Project lookup used during validation.
        gateway: Existing gateway adapter.  When omitted an
            :class:`HttpxGitGatewayClient` is built from
            ``repoflow.gateway`` and closed by :meth:`Orchestrator.aclose`.
        metrics: Registry for transaction metrics.  When metrics are enabled
            and none is given, one over a private ``CollectorRegistry`` is
            created; pass ``MetricsRegistry()`` to publish on the global one.
        transaction_store: Defaults to the in-memory store.
        compensation_store: Defaults to the in-memory store.
        gateway_http_client: Pre-built client for the gateway adapter.
        webhook_http_client: Pre-built client for webhook delivery.
    """
    gateway_props = config.bind(GatewayProperties)
    tx_props = config.bind(TransactionProperties)
    comp_props = config.bind(CompensationProperties)
    webhook_props = config.bind(WebhookProperties)

    owns_gateway = gateway is None
    if gateway is None:
        gateway = HttpxGitGatewayClient.from_properties(gateway_props, http_client=gateway_http_client)

    dispatcher = CallbackDispatcher.from_properties(webhook_props, http_client=webhook_http_client)
    endpoints = [
        CallbackConfig.from_mapping(entry, webhook_props) for entry in config.resolve(webhook_props.endpoints)
    ]

    failure_notifier = WebhookFailureNotifier(dispatcher, endpoints)
    compensation_manager = CompensationManager(
        gateway,
        store=compensation_store,
        notifier=failure_notifier,
        max_retries=comp_props.max_retries,
        retention=comp_props.retention,
    )

    webhook_events = WebhookEventsAdapter(dispatcher, endpoints)
    adapters: list[TransactionEventsPort] = [LoggerEventsAdapter()]
    if tx_props.metrics_enabled:
        metrics = metrics or MetricsRegistry(CollectorRegistry())
        adapters.append(MetricsEventsAdapter(metrics))
    adapters.append(webhook_events)

    transaction_manager = DistributedTransactionManager(
        project_repository,
        gateway,
        compensation_manager,
        store=transaction_store,
        events=CompositeEventsAdapter(*adapters),
        retention=tx_props.retention,
    )
    recovery = TransactionRecoveryService(
        transaction_manager,
        compensation_manager,
        stale_threshold=timedelta(seconds=tx_props.stale_threshold_seconds),
    )

    logger.info(
        "Orchestrator ready [gateway=%s, webhook_endpoints=%d, metrics=%s]",
        type(gateway).__name__,
        len(endpoints),
        "on" if tx_props.metrics_enabled else "off",
    )
    return Orchestrator(
        config=config,
        gateway=gateway,
        compensation_manager=compensation_manager,
        transaction_manager=transaction_manager,
        dispatcher=dispatcher,
        recovery=recovery,
        webhook_events=webhook_events,
        failure_notifier=failure_notifier,
        endpoints=endpoints,
        metrics=metrics if tx_props.metrics_enabled else None,
        owns_gateway=owns_gateway,
    )
