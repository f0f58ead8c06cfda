"""Plan-gated feature endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from maas_gateway.api.responses import envelope
from maas_gateway.auth.context import AuthenticatedIdentity
from maas_gateway.auth.scopes import require_plan, require_role

router = APIRouter(prefix="/features", tags=["features"])

PaidDep = Annotated[AuthenticatedIdentity, Depends(require_plan("pro", "enterprise"))]
EditorDep = Annotated[AuthenticatedIdentity, Depends(require_role("admin", "user"))]


@router.get("/advanced")
async def advanced_features(request: Request, identity: PaidDep) -> dict[str, Any]:
    return envelope(request, {"enabled": True, "plan": identity.plan})


@router.get("/write-access")
async def write_access(request: Request, identity: EditorDep) -> dict[str, Any]:
    """Viewers are read-only; users and admins may write."""
    return envelope(request, {"can_write": True, "role": identity.role})
