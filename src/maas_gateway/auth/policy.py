"""Host-independent policy checks: rate limit, role, plan and admin."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from maas_gateway.auth.context import AuthenticatedIdentity
from maas_gateway.auth.rate_limiter import (
    PlanRateLimiter,
    RateLimitDecision,
    normalize_plan,
)
from maas_gateway.errors import AuthorizationError, RateLimitError

logger = structlog.get_logger()


async def enforce_rate_limit(
    limiter: PlanRateLimiter, identity: AuthenticatedIdentity
) -> RateLimitDecision:
    """Count the request against the identity's plan tier.

    Raises:
        RateLimitError 429: window quota exhausted; carries Retry-After and
            X-RateLimit-* headers.
    """
    decision = await limiter.check(identity.rate_limit_key, identity.plan)
    if not decision.allowed:
        logger.warning(
            "rate_limit_exceeded",
            user_id=identity.user_id,
            plan=decision.plan,
            limit=decision.limit,
        )
        raise RateLimitError("Rate limit exceeded", headers=decision.headers())
    return decision


def check_role(identity: AuthenticatedIdentity, allowed_roles: Iterable[str]) -> None:
    allowed = list(allowed_roles)
    if identity.role not in allowed:
        raise AuthorizationError(
            f"This action requires one of the following roles: "
            f"{', '.join(allowed)}. Current role: {identity.role}",
            code="INSUFFICIENT_ROLE",
        )


def check_plan(identity: AuthenticatedIdentity, allowed_plans: Iterable[str]) -> None:
    allowed = list(allowed_plans)
    if normalize_plan(identity.plan) not in {normalize_plan(p) for p in allowed}:
        raise AuthorizationError(
            f"This feature requires one of the following plans: "
            f"{', '.join(allowed)}. Current plan: {identity.plan}",
            code="INSUFFICIENT_PLAN",
        )


def check_admin(identity: AuthenticatedIdentity) -> None:
    if not identity.is_admin:
        raise AuthorizationError(
            "This endpoint requires administrator privileges. "
            f"Current role: {identity.role}",
            code="ADMIN_REQUIRED",
        )
