"""Signed webhook callbacks for repository and transaction events."""

from repoflow.webhook.adapters import WebhookEventsAdapter, WebhookFailureNotifier
from repoflow.webhook.dispatcher import CallbackDispatcher
from repoflow.webhook.mask import matches_mask, matches_pattern
from repoflow.webhook.signature import SIGNATURE_HEADER, sign, verify_signature
from repoflow.webhook.types import (
    CallbackConfig,
    CallbackEvent,
    CallbackResult,
    create_project_event,
    create_repository_event,
    normalize_resource,
)

__all__ = [
    "SIGNATURE_HEADER",
    "CallbackConfig",
    "CallbackDispatcher",
    "CallbackEvent",
    "CallbackResult",
    "WebhookEventsAdapter",
    "WebhookFailureNotifier",
    "create_project_event",
    "create_repository_event",
    "matches_mask",
    "matches_pattern",
    "normalize_resource",
    "sign",
    "verify_signature",
]
