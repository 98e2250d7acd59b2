"""repoflow kernel -- exception hierarchy and cancellation primitives."""

from repoflow.kernel.cancellation import CancellationToken
from repoflow.kernel.exceptions import (
    BusinessException,
    CircuitBreakerException,
    ExternalServiceException,
    InfrastructureException,
    InvalidTransitionException,
    OperationCancelledException,
    RepoflowException,
    ResourceNotFoundException,
    SecurityException,
    ValidationException,
)

__all__ = [
    "BusinessException",
    "CancellationToken",
    "CircuitBreakerException",
    "ExternalServiceException",
    "InfrastructureException",
    "InvalidTransitionException",
    "OperationCancelledException",
    "RepoflowException",
    "ResourceNotFoundException",
    "SecurityException",
    "ValidationException",
]
