"""Stateless function host.

Adapts a serverless HTTP event::

    {"httpMethod": "GET", "path": "/api/v1/auth/me", "headers": {...}}

to the same CORS policy, auth pipeline, rate limiter and envelopes the
ASGI app uses, and returns::

    {"statusCode": 200, "headers": {...}, "body": "<json>"}

Each invocation may run in a fresh process, so an in-memory counter store
only limits bursts within one warm instance. Use the Redis counter store
for limits that hold across invocations.
"""

from __future__ import annotations

import json
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from maas_gateway.auth.context import AuthenticatedIdentity
from maas_gateway.auth.extractor import check_project_scope
from maas_gateway.auth.pipeline import AuthPipeline
from maas_gateway.auth.policy import (
    check_admin,
    check_plan,
    enforce_rate_limit,
)
from maas_gateway.auth.rate_limiter import (
    InMemoryCounterStore,
    PlanRateLimiter,
    tier_for_plan,
)
from maas_gateway.config import Settings, settings as default_settings
from maas_gateway.context import REQUEST_ID_HEADER, RequestContext, new_request_context
from maas_gateway.cors import SECURITY_HEADERS, CORSPolicy
from maas_gateway.envelope import (
    AVAILABLE_ENDPOINTS,
    envelope_for_exception,
    error_envelope,
    success_envelope,
)
from maas_gateway.errors import CORSError, GatewayError
from maas_gateway.stores import IdentityStore

logger = structlog.get_logger()

Handler = Callable[[AuthenticatedIdentity], Awaitable[Any]]
Check = Callable[[AuthenticatedIdentity], None]

PUBLIC_PATHS: frozenset[str] = frozenset({"/health", "/api/health"})


@dataclass(frozen=True)
class Route:
    handler: Handler
    check: Check | None = None


async def _whoami(identity: AuthenticatedIdentity) -> dict[str, Any]:
    return identity.public_view()


async def _limits(identity: AuthenticatedIdentity) -> dict[str, Any]:
    tier = tier_for_plan(identity.plan)
    return {
        "plan": identity.plan,
        "requests_per_window": tier.requests_per_window,
        "window_ms": tier.window_ms,
    }


async def _advanced(identity: AuthenticatedIdentity) -> dict[str, Any]:
    return {"enabled": True, "plan": identity.plan}


async def _admin_status(identity: AuthenticatedIdentity) -> dict[str, Any]:
    return {"project_scope": identity.project_scope, "requested_by": identity.user_id}


def _require_paid(identity: AuthenticatedIdentity) -> None:
    check_plan(identity, ("pro", "enterprise"))


DEFAULT_ROUTES: dict[tuple[str, str], Route] = {
    ("GET", "/api/v1/auth/me"): Route(_whoami),
    ("GET", "/api/v1/auth/limits"): Route(_limits),
    ("GET", "/api/v1/features/advanced"): Route(_advanced, _require_paid),
    ("GET", "/api/v1/admin/status"): Route(_admin_status, check_admin),
}


def _lower_headers(raw: Mapping[str, Any] | None) -> dict[str, str]:
    if not raw:
        return {}
    return {str(k).lower(): str(v) for k, v in raw.items() if v is not None}


class ServerlessGateway:
    """Runs one event through CORS, auth, scope, rate limit and a route."""

    def __init__(
        self,
        pipeline: AuthPipeline,
        limiter: PlanRateLimiter,
        policy: CORSPolicy,
        routes: Mapping[tuple[str, str], Route] | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.limiter = limiter
        self.policy = policy
        self.routes = dict(DEFAULT_ROUTES if routes is None else routes)

    @classmethod
    def from_settings(
        cls,
        store: IdentityStore,
        settings: Settings,
        limiter: PlanRateLimiter | None = None,
    ) -> ServerlessGateway:
        return cls(
            AuthPipeline.from_settings(store, settings),
            limiter or PlanRateLimiter(InMemoryCounterStore()),
            CORSPolicy(
                allowed_origins=settings.effective_cors_origins,
                allowed_methods=settings.cors_allowed_methods,
                allowed_headers=settings.cors_allowed_headers,
            ),
        )

    async def handle(self, event: Mapping[str, Any]) -> dict[str, Any]:
        method = str(event.get("httpMethod") or "GET").upper()
        path = str(event.get("path") or "/")
        headers = _lower_headers(event.get("headers"))
        ctx = new_request_context(method, path, headers.get("x-request-id"))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=ctx.request_id)

        start = time.perf_counter()
        extra_headers: dict[str, str] = {}
        try:
            status, body, extra_headers = await self._dispatch(ctx, headers)
        except GatewayError as exc:
            status, body, extra_headers = envelope_for_exception(ctx, exc)
            log = logger.error if status >= 500 else logger.warning
            log(
                "request_rejected",
                status_code=status,
                code=exc.code,
                error_type=exc.error_type,
                method=method,
                path=path,
            )
        except Exception as exc:
            logger.error("unhandled_exception", exc_info=exc, method=method, path=path)
            status, body, extra_headers = envelope_for_exception(ctx, exc)

        decision = self.policy.evaluate(method, headers.get("origin"))
        response_headers = {
            "Content-Type": "application/json",
            **extra_headers,
            **decision.headers,
            **SECURITY_HEADERS,
            REQUEST_ID_HEADER: ctx.request_id,
        }
        logger.info(
            "http_request",
            method=method,
            path=path,
            status_code=status,
            latency_ms=int((time.perf_counter() - start) * 1000),
        )
        return {
            "statusCode": status,
            "headers": response_headers,
            "body": json.dumps(body) if body is not None else "",
        }

    async def _dispatch(
        self, ctx: RequestContext, headers: dict[str, str]
    ) -> tuple[int, dict[str, Any] | None, dict[str, str]]:
        origin = headers.get("origin")
        decision = self.policy.evaluate(ctx.method, origin)
        if not decision.allowed:
            logger.warning(
                "cors_origin_rejected",
                origin=origin,
                preflight=decision.preflight,
                method=ctx.method,
                path=ctx.path,
            )
            raise CORSError("CORS policy violation")
        if decision.preflight:
            return 204, None, {}

        if ctx.path in PUBLIC_PATHS:
            return 200, success_envelope({"status": "ok"}, ctx), {}

        route = self.routes.get((ctx.method, ctx.path))
        if route is None:
            body = error_envelope(
                ctx, "Endpoint not found", "NotFoundError", "ENDPOINT_NOT_FOUND"
            )
            body["available_endpoints"] = list(AVAILABLE_ENDPOINTS)
            return 404, body, {}

        identity = await self.pipeline.authenticate(headers)
        structlog.contextvars.bind_contextvars(user_id=identity.user_id)
        check_project_scope(headers, identity.project_scope)
        rate = await enforce_rate_limit(self.limiter, identity)
        if route.check is not None:
            route.check(identity)
        data = await route.handler(identity)
        return 200, success_envelope(data, ctx), rate.headers()


async def handle_event(
    event: Mapping[str, Any],
    pipeline: AuthPipeline,
    limiter: PlanRateLimiter,
    *,
    policy: CORSPolicy | None = None,
    routes: Mapping[tuple[str, str], Route] | None = None,
) -> dict[str, Any]:
    """One-shot entry point; builds the CORS policy from settings if omitted."""
    if policy is None:
        policy = CORSPolicy(
            allowed_origins=default_settings.effective_cors_origins,
            allowed_methods=default_settings.cors_allowed_methods,
            allowed_headers=default_settings.cors_allowed_headers,
        )
    return await ServerlessGateway(pipeline, limiter, policy, routes).handle(event)
