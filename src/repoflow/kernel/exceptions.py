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
"""Exception hierarchy shared by every repoflow package.

Everything raised on purpose derives from :class:`RepoflowException` and
falls into one family:

- BusinessException: a rule or a request was wrong; retrying will not help
- SecurityException: the caller may not do this
- InfrastructureException: something outside the process failed or the
  operation was cancelled; retrying may help

Packages subclass these families (``GatewayException``,
``TransactionException``, the compensation errors) rather than raising
them directly.
"""

from __future__ import annotations


class RepoflowException(Exception):
    """Base exception for all repoflow errors.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code, e.g. ``"TX_VALIDATION"``.
        context: Structured details for logs and API responses.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# ── business ──────────────────────────────────────────────────


class BusinessException(RepoflowException):
    pass


class ValidationException(BusinessException):
    """A request field failed validation."""


class ResourceNotFoundException(BusinessException):
    pass


class InvalidTransitionException(BusinessException):
    """A state machine was asked to move along an edge it does not have."""


# ── security ──────────────────────────────────────────────────


class SecurityException(RepoflowException):
    pass


# ── infrastructure ────────────────────────────────────────────


class InfrastructureException(RepoflowException):
    pass


class OperationCancelledException(InfrastructureException):
    """Raised at a suspension point once a cancellation token has fired."""


class CircuitBreakerException(InfrastructureException):
    """The breaker is open; the call was not attempted."""


class ExternalServiceException(InfrastructureException):
    """A remote dependency (Git gateway, webhook receiver) failed."""
