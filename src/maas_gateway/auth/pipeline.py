"""Host-independent authentication pipeline.

Both the ASGI server and the serverless handler call
``AuthPipeline.authenticate`` with the request headers; neither host
re-implements any step. The pipeline raises ``GatewayError`` subclasses
on rejection and returns a fully resolved identity on success.
"""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from maas_gateway.auth.api_keys import ApiKeyAuthenticator
from maas_gateway.auth.context import AuthenticatedIdentity, VerifiedCredential
from maas_gateway.auth.extractor import CredentialKind, extract_credentials
from maas_gateway.auth.rate_limiter import normalize_plan
from maas_gateway.auth.tokens import JwtAuthenticator
from maas_gateway.config import Settings
from maas_gateway.errors import AuthError
from maas_gateway.organizations import OrganizationResolver
from maas_gateway.stores import IdentityStore

logger = structlog.get_logger()


class AuthPipeline:
    def __init__(
        self,
        store: IdentityStore,
        *,
        project_scope: str,
        jwt_secret: str | None,
        jwt_algorithm: str = "HS256",
        store_timeout: float = 5.0,
    ) -> None:
        self.project_scope = project_scope
        self.api_keys = ApiKeyAuthenticator(store, timeout=store_timeout)
        self.tokens = JwtAuthenticator(jwt_secret, algorithm=jwt_algorithm)
        self.organizations = OrganizationResolver(store, timeout=store_timeout)

    @classmethod
    def from_settings(cls, store: IdentityStore, settings: Settings) -> AuthPipeline:
        secret = settings.jwt_secret
        return cls(
            store,
            project_scope=settings.project_scope,
            jwt_secret=secret.get_secret_value() if secret is not None else None,
            jwt_algorithm=settings.jwt_algorithm,
            store_timeout=settings.store_timeout_seconds,
        )

    async def authenticate(self, headers: Mapping[str, str]) -> AuthenticatedIdentity:
        """Run scope check, credential verification and org resolution.

        Args:
            headers: Case-insensitive mapping, or a dict with lowercase keys.

        Raises:
            AuthError: 401/403 rejections.
            ConfigError: JWT secret missing.
            InternalError: store timeout or provisioning failure.
        """
        credentials = extract_credentials(headers, self.project_scope)

        verified: VerifiedCredential
        if credentials.kind is CredentialKind.API_KEY:
            verified = await self.api_keys.authenticate(credentials.value)
        else:
            verified = self.tokens.authenticate(credentials.value)

        if not verified.user_id:
            raise AuthError(
                "Authenticated credential has no user identifier",
                code="AUTHENTICATION_FAILED",
            )

        resolution = await self.organizations.resolve(
            verified.organization_candidate, verified.user_id
        )

        identity = AuthenticatedIdentity(
            user_id=verified.user_id,
            organization_id=resolution.organization_id,
            role=verified.role,
            plan=normalize_plan(verified.plan),
            email=verified.email,
            auth_type=verified.auth_type,
            project_scope=self.project_scope,
            api_key_id=verified.api_key_id,
            metadata=verified.metadata,
        )
        logger.info(
            "authenticated",
            user_id=identity.user_id,
            organization_id=identity.organization_id,
            org_source=str(resolution.source),
            auth_type=str(identity.auth_type),
            plan=identity.plan,
        )
        return identity
