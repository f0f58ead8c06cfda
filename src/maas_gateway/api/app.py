"""FastAPI application with lifespan management."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from maas_gateway.api.middleware import CORSGuardMiddleware, RequestTracingMiddleware
from maas_gateway.api.responses import (
    envelope,
    gateway_error_handler,
    http_exception_handler,
    validation_exception_handler,
)
from maas_gateway.api.routes.admin import router as admin_router
from maas_gateway.api.routes.auth import router as auth_router
from maas_gateway.api.routes.features import router as features_router
from maas_gateway.auth.pipeline import AuthPipeline
from maas_gateway.auth.rate_limiter import (
    InMemoryCounterStore,
    PlanRateLimiter,
    RedisCounterStore,
)
from maas_gateway.config import RateLimitBackend, settings
from maas_gateway.cors import CORSPolicy
from maas_gateway.errors import GatewayError
from maas_gateway.logging_config import configure_logging
from maas_gateway.storage.database import async_session, engine
from maas_gateway.storage.identity_store import SqlIdentityStore

logger = structlog.get_logger()

CLEANUP_INTERVAL_SECONDS = 300


async def _cleanup_loop(counters: InMemoryCounterStore) -> None:
    """Periodic cleanup of expired rate limit windows."""
    while True:
        await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
        try:
            cleaned = await asyncio.to_thread(counters.cleanup)
            if cleaned:
                logger.debug("rate_limiter_cleanup", keys_removed=cleaned)
        except Exception:
            logger.exception("rate_limiter_cleanup_error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown.

    Startup:
        - Build the auth pipeline over the SQL identity store.
        - Select the rate limit counter backend.
        - Start the in-memory counter cleanup task.
    Shutdown:
        - Cancel cleanup task, close Redis.
        - Dispose database engine (close connection pool).
    """
    configure_logging(
        environment=str(settings.environment),
        log_level=settings.log_level,
    )
    app.state.auth_pipeline = AuthPipeline.from_settings(
        SqlIdentityStore(async_session), settings
    )

    redis_client: aioredis.Redis | None = None
    cleanup_task: asyncio.Task[None] | None = None
    if settings.rate_limit_backend == RateLimitBackend.REDIS:
        redis_client = aioredis.from_url(settings.redis_url)
        app.state.rate_limiter = PlanRateLimiter(RedisCounterStore(redis_client))
    else:
        counters = InMemoryCounterStore()
        app.state.rate_limiter = PlanRateLimiter(counters)
        cleanup_task = asyncio.create_task(_cleanup_loop(counters))

    logger.info(
        "app_started",
        environment=str(settings.environment),
        rate_limit_backend=str(settings.rate_limit_backend),
        jwt_configured=settings.jwt_secret is not None,
    )
    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
    if redis_client is not None:
        await redis_client.aclose()
    await engine.dispose()
    logger.info("app_stopped")


app = FastAPI(
    title="MaaS Gateway",
    description="Authentication and authorization gateway for the memory API",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.is_dev,
)

# Replaced during lifespan startup; set here so the app serves without it.
app.state.rate_limiter = PlanRateLimiter(InMemoryCounterStore())

# Last added runs first: tracing wraps the CORS guard.
app.add_middleware(
    CORSGuardMiddleware,
    policy=CORSPolicy(
        allowed_origins=settings.effective_cors_origins,
        allowed_methods=settings.cors_allowed_methods,
        allowed_headers=settings.cors_allowed_headers,
    ),
)
app.add_middleware(RequestTracingMiddleware)

app.add_exception_handler(GatewayError, gateway_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


@app.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Liveness probe; no authentication."""
    return envelope(
        request,
        {"status": "ok", "environment": str(settings.environment)},
    )


app.include_router(auth_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(features_router, prefix="/api/v1")
