"""Domain-specific exceptions for the gateway.

Every ``GatewayError`` carries the HTTP status, machine-readable code and
error type that end up in the error envelope.
"""

from __future__ import annotations

from collections.abc import Mapping


class GatewayError(Exception):
    """Base class for failures that short-circuit the request pipeline."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    error_type: str = "InternalError"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.headers: dict[str, str] = dict(headers or {})


class AuthError(GatewayError):
    """Credential or project-scope check failed."""

    status_code = 401
    code = "AUTHENTICATION_FAILED"
    error_type = "AuthError"


class AuthorizationError(GatewayError):
    """Authenticated identity lacks the required role, plan or admin flag."""

    status_code = 403
    code = "INSUFFICIENT_PERMISSIONS"
    error_type = "AuthorizationError"


class RateLimitError(GatewayError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    error_type = "RateLimitError"


class ConfigError(GatewayError):
    """Server-side misconfiguration (e.g. missing JWT secret)."""

    status_code = 500
    code = "CONFIG_ERROR"
    error_type = "ConfigError"


class CORSError(GatewayError):
    status_code = 403
    code = "ORIGIN_NOT_ALLOWED"
    error_type = "CORSError"


class NotFoundError(GatewayError):
    status_code = 404
    code = "ENDPOINT_NOT_FOUND"
    error_type = "NotFoundError"


class InternalError(GatewayError):
    """Catch-all for unexpected failures; message is always generic."""


class StoreTimeoutError(InternalError):
    """A credential or organization store call exceeded its timeout."""

    code = "STORE_TIMEOUT"


class OrganizationConflictError(Exception):
    """Organization insert collided with a concurrent insert for the same owner."""

    def __init__(self, owner_user_id: str) -> None:
        self.owner_user_id = owner_user_id
        super().__init__(f"Organization already exists for user {owner_user_id}")
