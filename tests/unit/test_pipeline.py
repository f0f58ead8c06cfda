"""Tests for the API key authenticator and the full auth pipeline."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from maas_gateway.auth.api_keys import ApiKeyAuthenticator
from maas_gateway.auth.context import AuthType
from maas_gateway.auth.keys import hash_api_key
from maas_gateway.auth.policy import check_plan
from maas_gateway.errors import AuthError, StoreTimeoutError
from maas_gateway.organizations import is_valid_uuid


def _headers(**extra: str) -> dict[str, str]:
    headers = {"x-project-scope": "lanonasis-maas"}
    headers.update({k.replace("_", "-"): v for k, v in extra.items()})
    return headers


class TestApiKeyAuthenticator:
    async def test_raw_key(self, identity_store) -> None:
        record = identity_store.add_api_key("abc123", "user-1", plan="pro")
        cred = await ApiKeyAuthenticator(identity_store).authenticate("abc123")
        assert cred.user_id == "user-1"
        assert cred.auth_type is AuthType.API_KEY
        assert cred.plan == "pro"
        assert cred.api_key_id == record.id
        assert identity_store.touched == [record.id]

    async def test_prehashed_key(self, identity_store) -> None:
        """Clients may send the SHA-256 digest instead of the raw key."""
        identity_store.add_api_key("abc123", "user-1")
        cred = await ApiKeyAuthenticator(identity_store).authenticate(
            hash_api_key("abc123").upper()
        )
        assert cred.user_id == "user-1"

    async def test_unknown_key(self, identity_store) -> None:
        with pytest.raises(AuthError) as exc_info:
            await ApiKeyAuthenticator(identity_store).authenticate("missing")
        assert exc_info.value.code == "INVALID_API_KEY"
        assert exc_info.value.status_code == 401

    async def test_inactive_key(self, identity_store) -> None:
        identity_store.add_api_key("abc123", "user-1", is_active=False)
        with pytest.raises(AuthError) as exc_info:
            await ApiKeyAuthenticator(identity_store).authenticate("abc123")
        assert exc_info.value.code == "INVALID_API_KEY"

    async def test_expired_key(self, identity_store) -> None:
        identity_store.add_api_key(
            "abc123",
            "user-1",
            expires_at=datetime.now(UTC) - timedelta(minutes=1),
        )
        with pytest.raises(AuthError):
            await ApiKeyAuthenticator(identity_store).authenticate("abc123")

    async def test_missing_profile_uses_defaults(self, identity_store) -> None:
        identity_store.add_api_key("abc123", "user-1", plan="enterprise")
        identity_store.profiles.clear()
        cred = await ApiKeyAuthenticator(identity_store).authenticate("abc123")
        assert cred.role == "user"
        assert cred.plan == "free"

    async def test_touch_failure_does_not_reject(self, identity_store) -> None:
        """last_used_at bookkeeping errors are logged, not raised."""
        identity_store.add_api_key("abc123", "user-1")
        identity_store.touch_api_key = AsyncMock(side_effect=RuntimeError("db down"))
        cred = await ApiKeyAuthenticator(identity_store).authenticate("abc123")
        assert cred.user_id == "user-1"

    async def test_lookup_timeout(self, identity_store) -> None:
        identity_store.add_api_key("abc123", "user-1")
        identity_store.lookup_delay = 0.5
        with pytest.raises(StoreTimeoutError) as exc_info:
            await ApiKeyAuthenticator(identity_store, timeout=0.01).authenticate(
                "abc123"
            )
        assert exc_info.value.code == "STORE_TIMEOUT"
        assert exc_info.value.status_code == 500


class TestAuthPipeline:
    async def test_api_key_identity(self, pipeline, identity_store) -> None:
        org_id = identity_store.add_organization()
        identity_store.add_api_key(
            "abc123", "user-1", role="admin", organization_id=org_id
        )
        identity = await pipeline.authenticate(_headers(x_api_key="abc123"))
        assert identity.user_id == "user-1"
        assert identity.organization_id == org_id
        assert identity.role == "admin"
        assert identity.project_scope == "lanonasis-maas"
        assert identity.rate_limit_key == f"{org_id}:user-1"

    async def test_jwt_with_bad_org_claim(self, pipeline, make_token) -> None:
        """Malformed org claim is replaced by a provisioned organization."""
        token = make_token(sub="jwt-user", organization_id="not-a-uuid")
        identity = await pipeline.authenticate(
            _headers(authorization=f"Bearer {token}")
        )
        assert identity.auth_type is AuthType.JWT
        assert is_valid_uuid(identity.organization_id)

    async def test_scope_mismatch_before_key_lookup(
        self, pipeline, identity_store
    ) -> None:
        identity_store.lookup_api_key_by_hash = AsyncMock()
        with pytest.raises(AuthError) as exc_info:
            await pipeline.authenticate(
                {"x-project-scope": "wrong", "x-api-key": "abc123"}
            )
        assert exc_info.value.code == "INVALID_PROJECT_SCOPE"
        identity_store.lookup_api_key_by_hash.assert_not_called()

    async def test_admin_flag_from_metadata(self, pipeline, identity_store) -> None:
        identity_store.add_api_key(
            "abc123", "user-1", app_metadata={"roles": ["member", "admin"]}
        )
        identity = await pipeline.authenticate(_headers(x_api_key="abc123"))
        assert identity.is_admin is True
        assert identity.role == "user"

    async def test_plan_normalized_for_policy(self, pipeline, make_token) -> None:
        """A mixed-case plan claim gets the pro tier and passes the pro check."""
        token = make_token(sub="jwt-user", plan="Pro")
        identity = await pipeline.authenticate(
            _headers(authorization=f"Bearer {token}")
        )
        assert identity.plan == "pro"
        check_plan(identity, ["pro", "enterprise"])
