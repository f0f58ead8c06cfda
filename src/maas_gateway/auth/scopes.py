"""Policy enforcement dependency factories for protected route groups.

Note: this module imports ``api.deps`` and is NOT re-exported from
``maas_gateway.auth`` to avoid a circular import (auth → scopes → api.deps
→ auth). Import directly: ``from maas_gateway.auth.scopes import require_role``.
"""

from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Depends, Request, Response

from maas_gateway.api.deps import get_current_identity, get_rate_limiter
from maas_gateway.auth.context import AuthenticatedIdentity
from maas_gateway.auth.extractor import check_project_scope
from maas_gateway.auth.policy import (
    check_admin,
    check_plan,
    check_role,
    enforce_rate_limit,
)
from maas_gateway.auth.rate_limiter import PlanRateLimiter

_identity_dep = Depends(get_current_identity)
_limiter_dep = Depends(get_rate_limiter)


async def enforce_policy(
    request: Request,
    response: Response,
    identity: AuthenticatedIdentity = _identity_dep,
    limiter: PlanRateLimiter = _limiter_dep,
) -> AuthenticatedIdentity:
    """Scope re-check plus plan rate limit, then return the identity.

    Usage as parameter dependency::

        async def endpoint(
            identity: AuthenticatedIdentity = Depends(enforce_policy),
        ): ...

    Raises:
        AuthError 403: project scope mismatch.
        RateLimitError 429: quota exhausted (includes Retry-After header).
    """
    check_project_scope(request.headers, identity.project_scope)
    decision = await enforce_rate_limit(limiter, identity)
    response.headers.update(decision.headers())
    return identity


_policy_dep = Depends(enforce_policy)

PolicyCheck = Callable[..., Coroutine[Any, Any, AuthenticatedIdentity]]


def require_role(*allowed_roles: str) -> PolicyCheck:
    """Dependency factory: identity role must be one of *allowed_roles*.

    Raises:
        AuthorizationError 403 INSUFFICIENT_ROLE.
    """

    async def _check_role(
        identity: AuthenticatedIdentity = _policy_dep,
    ) -> AuthenticatedIdentity:
        check_role(identity, allowed_roles)
        return identity

    return _check_role


def require_plan(*allowed_plans: str) -> PolicyCheck:
    """Dependency factory: identity plan must be one of *allowed_plans*."""

    async def _check_plan(
        identity: AuthenticatedIdentity = _policy_dep,
    ) -> AuthenticatedIdentity:
        check_plan(identity, allowed_plans)
        return identity

    return _check_plan


def require_admin() -> PolicyCheck:
    """Dependency factory: identity must carry the admin flag."""

    async def _check_admin(
        identity: AuthenticatedIdentity = _policy_dep,
    ) -> AuthenticatedIdentity:
        check_admin(identity)
        return identity

    return _check_admin
