"""Request tracing and CORS guard middleware."""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from maas_gateway.api.responses import error_response, unhandled_exception_handler
from maas_gateway.context import REQUEST_ID_HEADER, new_request_context
from maas_gateway.cors import SECURITY_HEADERS, CORSPolicy
from maas_gateway.errors import CORSError

logger = structlog.get_logger()


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Assign a request id, bind it to the log context, log the request.

    Outermost middleware: anything escaping the inner app is turned into
    the 500 envelope here so that every response carries X-Request-ID.
    """

    SKIP_PATHS: frozenset[str] = frozenset(
        {"/health", "/docs", "/openapi.json", "/redoc"}
    )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request and log timing information."""
        ctx = new_request_context(
            request.method,
            request.url.path,
            request.headers.get(REQUEST_ID_HEADER),
        )
        request.state.request_context = ctx
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=ctx.request_id)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            response = await unhandled_exception_handler(request, exc)
            response.headers.update(SECURITY_HEADERS)
        latency_ms = int((time.perf_counter() - start) * 1000)

        response.headers[REQUEST_ID_HEADER] = ctx.request_id

        if request.url.path not in self.SKIP_PATHS:
            logger.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                client_ip=request.client.host if request.client else None,
                status_code=response.status_code,
                latency_ms=latency_ms,
            )
        return response


class CORSGuardMiddleware(BaseHTTPMiddleware):
    """Enforce the origin allowlist and add baseline security headers."""

    def __init__(self, app: ASGIApp, policy: CORSPolicy) -> None:
        super().__init__(app)
        self.policy = policy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        origin = request.headers.get("origin")
        decision = self.policy.evaluate(request.method, origin)

        if not decision.allowed:
            logger.warning(
                "cors_origin_rejected",
                origin=origin,
                preflight=decision.preflight,
                method=request.method,
                path=request.url.path,
            )
            response: Response = error_response(
                request, CORSError("CORS policy violation")
            )
        elif decision.preflight:
            response = Response(status_code=204)
        else:
            response = await call_next(request)

        response.headers.update(decision.headers)
        response.headers.update(SECURITY_HEADERS)
        return response
