"""Git gateway error types, classified by how callers should react."""

from __future__ import annotations

from repoflow.kernel.exceptions import ExternalServiceException


class GatewayException(ExternalServiceException):
    """The Git gateway rejected or failed a request.

    Args:
        message: Human-readable error description.
        status_code: HTTP status returned by the gateway, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message, code=code or "GATEWAY_ERROR", context=context)
        self.status_code = status_code


class GatewayNotFoundException(GatewayException):
    """The addressed gateway resource does not exist (HTTP 404)."""


class GatewayConflictException(GatewayException):
    """The request collides with existing state, e.g. a duplicate name (HTTP 409)."""


class GatewayRequestException(GatewayException):
    """The gateway refused the request as invalid (other 4xx)."""


class GatewayUnavailableException(GatewayException):
    """Transient failure: 5xx, timeout, or transport error. Safe to retry."""
