"""repoflow core -- configuration loading and property binding."""

from repoflow.core.config import Config, config_properties
from repoflow.core.properties import (
    CompensationProperties,
    GatewayProperties,
    TransactionProperties,
    WebhookProperties,
)

__all__ = [
    "CompensationProperties",
    "Config",
    "GatewayProperties",
    "TransactionProperties",
    "WebhookProperties",
    "config_properties",
]
