"""FastAPI dependency injection."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import Depends, Request

from maas_gateway.auth.context import AuthenticatedIdentity
from maas_gateway.auth.pipeline import AuthPipeline
from maas_gateway.auth.rate_limiter import PlanRateLimiter

__all__ = ["get_auth_pipeline", "get_current_identity", "get_rate_limiter"]


async def get_auth_pipeline(request: Request) -> AuthPipeline:
    """Retrieve AuthPipeline from app state.

    Initialized during lifespan startup.
    """
    return cast(AuthPipeline, request.app.state.auth_pipeline)


async def get_rate_limiter(request: Request) -> PlanRateLimiter:
    """Retrieve PlanRateLimiter from app state.

    In-memory by default; replaced with the Redis backend during lifespan
    startup when configured.
    """
    return cast(PlanRateLimiter, request.app.state.rate_limiter)


_pipeline_dep = Depends(get_auth_pipeline)


async def get_current_identity(
    request: Request,
    pipeline: AuthPipeline = _pipeline_dep,
) -> AuthenticatedIdentity:
    """Authenticate the request via API key or bearer JWT.

    Raises:
        GatewayError: any pipeline rejection, rendered by the app's
            exception handlers.
    """
    identity = await pipeline.authenticate(request.headers)
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(user_id=identity.user_id)
    return identity
