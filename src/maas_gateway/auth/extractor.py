"""Credential extraction and project-scope enforcement.

Order is fixed: project scope first, then ``X-API-Key`` (machine-to-machine
credentials win), then ``Authorization: Bearer``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from maas_gateway.errors import AuthError

API_KEY_HEADER = "x-api-key"
AUTHORIZATION_HEADER = "authorization"
PROJECT_SCOPE_HEADER = "x-project-scope"


class CredentialKind(StrEnum):
    API_KEY = "api_key"
    JWT = "jwt"


@dataclass(frozen=True)
class Credentials:
    kind: CredentialKind
    value: str

    def __repr__(self) -> str:
        return f"Credentials(kind={self.kind!s}, value=***)"


def check_project_scope(headers: Mapping[str, str], expected: str) -> None:
    """Raise 403 INVALID_PROJECT_SCOPE unless the header equals *expected*."""
    if headers.get(PROJECT_SCOPE_HEADER) != expected:
        raise AuthError(
            "Invalid project scope",
            code="INVALID_PROJECT_SCOPE",
            status_code=403,
        )


def _bearer_token(value: str | None) -> str | None:
    if not value:
        return None
    scheme, _, token = value.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def extract_credentials(
    headers: Mapping[str, str], expected_scope: str
) -> Credentials:
    """Classify the request's credential.

    Args:
        headers: Case-insensitive mapping or a dict with lowercase keys.
        expected_scope: The service's fixed project-scope label.

    Raises:
        AuthError 403: project scope mismatch (checked before credentials).
        AuthError 401: neither credential present (MISSING_AUTH).
    """
    check_project_scope(headers, expected_scope)

    api_key = (headers.get(API_KEY_HEADER) or "").strip()
    if api_key:
        return Credentials(CredentialKind.API_KEY, api_key)

    token = _bearer_token(headers.get(AUTHORIZATION_HEADER))
    if token:
        return Credentials(CredentialKind.JWT, token)

    raise AuthError(
        "Authentication required. Provide either X-API-Key header "
        "or Authorization: Bearer token",
        code="MISSING_AUTH",
    )
