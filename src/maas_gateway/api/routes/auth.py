"""Identity introspection endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from maas_gateway.api.responses import envelope
from maas_gateway.auth.context import AuthenticatedIdentity
from maas_gateway.auth.rate_limiter import tier_for_plan
from maas_gateway.auth.scopes import enforce_policy

router = APIRouter(prefix="/auth", tags=["auth"])

PolicyDep = Annotated[AuthenticatedIdentity, Depends(enforce_policy)]


@router.get("/me")
async def whoami(request: Request, identity: PolicyDep) -> dict[str, Any]:
    """Echo the resolved identity of the caller."""
    return envelope(request, identity.public_view())


@router.get("/limits")
async def plan_limits(request: Request, identity: PolicyDep) -> dict[str, Any]:
    tier = tier_for_plan(identity.plan)
    return envelope(
        request,
        {
            "plan": identity.plan,
            "requests_per_window": tier.requests_per_window,
            "window_ms": tier.window_ms,
        },
    )
