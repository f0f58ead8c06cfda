"""Per-request tracing context."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

REQUEST_ID_HEADER = "X-Request-ID"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class RequestContext:
    """Created by the request tracer, read by every later stage."""

    request_id: str
    path: str
    method: str
    timestamp: datetime = field(default_factory=_now)


def coerce_request_id(candidate: str | None) -> str:
    """Return *candidate* if it is a valid UUID, otherwise a fresh UUID4."""
    if candidate:
        try:
            return str(uuid.UUID(candidate.strip()))
        except ValueError:
            pass
    return str(uuid.uuid4())


def new_request_context(
    method: str,
    path: str,
    request_id: str | None = None,
) -> RequestContext:
    return RequestContext(
        request_id=coerce_request_id(request_id),
        path=path,
        method=method.upper(),
    )
