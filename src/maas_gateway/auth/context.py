"""Authenticated identity context for request processing."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class AuthType(StrEnum):
    API_KEY = "api_key"
    JWT = "jwt"


@dataclass(frozen=True)
class VerifiedCredential:
    """Output of an authenticator, before organization resolution.

    ``organization_candidate`` may be missing or malformed.
    """

    user_id: str
    auth_type: AuthType
    role: str = "user"
    plan: str = "free"
    email: str = ""
    organization_candidate: str | None = None
    api_key_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Authenticated caller, built once per request and never persisted.

    ``organization_id`` is always a resolved, valid UUID string by the time
    a route handler sees the identity.
    """

    user_id: str
    organization_id: str
    role: str
    plan: str
    email: str
    auth_type: AuthType
    project_scope: str
    api_key_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        """Admin flag derived from ``metadata.role`` or ``metadata.roles``."""
        if self.metadata.get("role") == "admin":
            return True
        roles = self.metadata.get("roles")
        return isinstance(roles, list) and "admin" in roles

    @property
    def rate_limit_key(self) -> str:
        return f"{self.organization_id}:{self.user_id}"

    def public_view(self) -> dict[str, Any]:
        """Identity fields safe to return to the caller."""
        return {
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "role": self.role,
            "plan": self.plan,
            "email": self.email,
            "auth_type": str(self.auth_type),
            "project_scope": self.project_scope,
            "is_admin": self.is_admin,
        }
