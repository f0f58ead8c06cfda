"""Authentication, authorization and API key management.

Note: the FastAPI dependency factories (``require_role``, ``require_plan``,
``require_admin``, ``enforce_policy``) live in ``auth.scopes`` and are NOT
re-exported here to avoid a circular import (auth → scopes → api.deps → auth).
Import directly: ``from maas_gateway.auth.scopes import require_role``.
"""

from maas_gateway.auth.context import AuthenticatedIdentity, AuthType
from maas_gateway.auth.keys import ensure_api_key_hash, generate_api_key, hash_api_key

__all__ = [
    "AuthType",
    "AuthenticatedIdentity",
    "ensure_api_key_hash",
    "generate_api_key",
    "hash_api_key",
]
