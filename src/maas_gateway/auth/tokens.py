"""Bearer JWT verification (HS256) and identity claim extraction."""

from __future__ import annotations

from typing import Any

import jwt
import structlog

from maas_gateway.auth.claims import (
    EMAIL_ACCESSORS,
    ORGANIZATION_ACCESSORS,
    PLAN_ACCESSORS,
    ROLE_ACCESSORS,
    SUBJECT_ACCESSORS,
    first_claim,
)
from maas_gateway.auth.context import AuthType, VerifiedCredential
from maas_gateway.errors import AuthError, ConfigError

logger = structlog.get_logger()


class JwtAuthenticator:
    """Verify a bearer token against the configured shared secret.

    The secret may be absent at construction time; that is reported per
    request as ``JWT_SECRET_MISSING`` so API-key traffic keeps working.
    """

    def __init__(
        self,
        secret: str | None,
        algorithm: str = "HS256",
        leeway_seconds: int = 0,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._leeway = leeway_seconds

    def decode(self, token: str) -> dict[str, Any]:
        """Verify signature and expiry, return the claims.

        Raises:
            ConfigError 500 JWT_SECRET_MISSING: no signing secret configured.
            AuthError 401 TOKEN_EXPIRED / INVALID_JWT / AUTHENTICATION_FAILED.
        """
        if not self._secret:
            logger.error("jwt_secret_missing")
            raise ConfigError("JWT secret not configured", code="JWT_SECRET_MISSING")

        try:
            claims: dict[str, Any] = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                leeway=self._leeway,
                # Non-string subjects are stringified by first_claim.
                options={"verify_aud": False, "verify_sub": False},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("JWT token expired", code="TOKEN_EXPIRED") from exc
        except jwt.DecodeError as exc:
            # Covers malformed tokens and bad signatures.
            raise AuthError("Invalid JWT token", code="INVALID_JWT") from exc
        except jwt.InvalidTokenError as exc:
            logger.info("jwt_rejected", reason=type(exc).__name__)
            raise AuthError(
                "Unable to verify authentication credentials",
                code="AUTHENTICATION_FAILED",
            ) from exc
        return claims

    def authenticate(self, token: str) -> VerifiedCredential:
        claims = self.decode(token)

        user_id = first_claim(claims, SUBJECT_ACCESSORS)
        if user_id is None:
            raise AuthError(
                "JWT is missing a subject claim (sub, userId or user_id)",
                code="INVALID_JWT_CLAIMS",
            )

        app_metadata = claims.get("app_metadata")
        return VerifiedCredential(
            user_id=user_id,
            auth_type=AuthType.JWT,
            role=first_claim(claims, ROLE_ACCESSORS) or "user",
            plan=first_claim(claims, PLAN_ACCESSORS) or "free",
            email=first_claim(claims, EMAIL_ACCESSORS) or "",
            organization_candidate=first_claim(claims, ORGANIZATION_ACCESSORS),
            metadata=dict(app_metadata) if isinstance(app_metadata, dict) else {},
        )
