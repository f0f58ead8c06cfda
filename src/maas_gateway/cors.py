"""Origin allowlist and security headers shared by every host adapter."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

PREFLIGHT_MAX_AGE_SECONDS = 86400

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@dataclass(frozen=True)
class CORSDecision:
    """Outcome of evaluating one request against the allowlist.

    ``allowed`` is False only when the request must be rejected with 403.
    ``preflight`` requests that are allowed are answered with 204 directly.
    """

    allowed: bool
    preflight: bool
    headers: dict[str, str] = field(default_factory=dict)


class CORSPolicy:
    """Allowlist-based CORS decisions.

    Preflight (``OPTIONS``) requires an allowlisted origin. Other requests
    without an ``Origin`` header (server-to-server) pass through untouched;
    a present but unknown origin is rejected.
    """

    def __init__(
        self,
        allowed_origins: Iterable[str],
        allowed_methods: Iterable[str],
        allowed_headers: Iterable[str],
    ) -> None:
        self._origins = frozenset(o.strip() for o in allowed_origins if o.strip())
        self._methods = ", ".join(allowed_methods)
        self._headers = ", ".join(allowed_headers)

    def is_allowed(self, origin: str | None) -> bool:
        return origin is not None and origin in self._origins

    def evaluate(self, method: str, origin: str | None) -> CORSDecision:
        if method.upper() == "OPTIONS":
            if origin is None or not self.is_allowed(origin):
                return CORSDecision(allowed=False, preflight=True)
            return CORSDecision(
                allowed=True,
                preflight=True,
                headers={
                    "Access-Control-Allow-Origin": origin,
                    "Access-Control-Allow-Methods": self._methods,
                    "Access-Control-Allow-Headers": self._headers,
                    "Access-Control-Allow-Credentials": "true",
                    "Access-Control-Max-Age": str(PREFLIGHT_MAX_AGE_SECONDS),
                    "Vary": "Origin",
                },
            )

        if origin is None:
            return CORSDecision(allowed=True, preflight=False)
        if not self.is_allowed(origin):
            return CORSDecision(allowed=False, preflight=False)
        return CORSDecision(
            allowed=True,
            preflight=False,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Credentials": "true",
                "Vary": "Origin",
            },
        )
