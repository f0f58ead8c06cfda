"""API key authentication against the identity store."""

from __future__ import annotations

import structlog

from maas_gateway.auth.context import AuthType, VerifiedCredential
from maas_gateway.auth.keys import ensure_api_key_hash
from maas_gateway.errors import AuthError, StoreTimeoutError
from maas_gateway.stores import IdentityStore, UserProfile, call_store

logger = structlog.get_logger()


class ApiKeyAuthenticator:
    """Resolve a raw or pre-hashed API key to a verified credential."""

    def __init__(self, store: IdentityStore, timeout: float = 5.0) -> None:
        self._store = store
        self._timeout = timeout

    async def authenticate(self, api_key: str) -> VerifiedCredential:
        """Authenticate request via API key.

        Raises:
            AuthError 401 INVALID_API_KEY: unknown, inactive or expired key.
            StoreTimeoutError: a store call exceeded the timeout.
        """
        key_hash = ensure_api_key_hash(api_key)
        record = await call_store(
            self._store.lookup_api_key_by_hash(key_hash),
            self._timeout,
            "lookup_api_key_by_hash",
        )
        if record is None or not record.is_usable():
            logger.info(
                "api_key_rejected",
                key_hash_prefix=key_hash[:8],
                found=record is not None,
            )
            raise AuthError(
                "The provided API key is invalid or inactive",
                code="INVALID_API_KEY",
            )

        profile = await call_store(
            self._store.lookup_user_profile(record.user_id),
            self._timeout,
            "lookup_user_profile",
        )
        if profile is None:
            profile = UserProfile(user_id=record.user_id)

        await self._touch(record.id)

        return VerifiedCredential(
            user_id=record.user_id,
            auth_type=AuthType.API_KEY,
            role=profile.role or "user",
            plan=profile.plan or "free",
            email=profile.email,
            organization_candidate=profile.organization_id,
            api_key_id=record.id,
            metadata=dict(profile.app_metadata),
        )

    async def _touch(self, key_id: str) -> None:
        # last_used_at bookkeeping must never fail an otherwise valid request
        try:
            await call_store(
                self._store.touch_api_key(key_id), self._timeout, "touch_api_key"
            )
        except StoreTimeoutError:
            pass
        except Exception:
            logger.warning("api_key_touch_failed", api_key_id=key_id, exc_info=True)
