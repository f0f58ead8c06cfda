"""Administrator-only endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from maas_gateway.api.responses import envelope
from maas_gateway.auth.context import AuthenticatedIdentity
from maas_gateway.auth.scopes import require_admin
from maas_gateway.config import settings

router = APIRouter(prefix="/admin", tags=["admin"])

AdminDep = Annotated[AuthenticatedIdentity, Depends(require_admin())]


@router.get("/status")
async def gateway_status(request: Request, identity: AdminDep) -> dict[str, Any]:
    """Gateway configuration summary (no secrets)."""
    return envelope(
        request,
        {
            "environment": str(settings.environment),
            "project_scope": settings.project_scope,
            "rate_limit_backend": str(settings.rate_limit_backend),
            "jwt_configured": settings.jwt_secret is not None,
        },
        meta={"requested_by": identity.user_id},
    )
