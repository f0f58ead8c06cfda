"""Fixtures for unit tests: in-memory identity store, tokens, API client."""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime
from typing import Any

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from maas_gateway.api.app import app
from maas_gateway.api.deps import get_auth_pipeline
from maas_gateway.auth.keys import ensure_api_key_hash
from maas_gateway.auth.pipeline import AuthPipeline
from maas_gateway.auth.rate_limiter import InMemoryCounterStore, PlanRateLimiter
from maas_gateway.errors import OrganizationConflictError
from maas_gateway.stores import ApiKeyRecord, OrganizationSeed, UserProfile

PROJECT_SCOPE = "lanonasis-maas"
JWT_SECRET = "unit-test-signing-secret-0123456789abcdef"


class FakeIdentityStore:
    """Dict-backed ``IdentityStore`` with knobs for latency and conflicts."""

    def __init__(self) -> None:
        self.api_keys: dict[str, ApiKeyRecord] = {}
        self.profiles: dict[str, UserProfile] = {}
        self.organizations: set[str] = set()
        self.user_organizations: dict[str, str] = {}
        self.created: list[OrganizationSeed] = []
        self.owners: set[str] = set()
        self.touched: list[str] = []
        self.create_delay = 0.0
        self.lookup_delay = 0.0
        self.conflicts_remaining = 0

    def add_organization(self) -> str:
        org_id = str(uuid.uuid4())
        self.organizations.add(org_id)
        return org_id

    def add_api_key(
        self,
        raw_key: str,
        user_id: str,
        *,
        is_active: bool = True,
        expires_at: datetime | None = None,
        role: str = "user",
        plan: str = "free",
        organization_id: str | None = None,
        app_metadata: dict[str, Any] | None = None,
    ) -> ApiKeyRecord:
        record = ApiKeyRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            key_hash=ensure_api_key_hash(raw_key),
            is_active=is_active,
            name="test",
            expires_at=expires_at,
        )
        self.api_keys[record.key_hash] = record
        self.profiles[user_id] = UserProfile(
            user_id=user_id,
            email=f"{user_id}@example.com",
            role=role,
            plan=plan,
            organization_id=organization_id,
            app_metadata=app_metadata or {},
        )
        if organization_id is not None:
            self.user_organizations[user_id] = organization_id
        return record

    async def lookup_api_key_by_hash(self, key_hash: str) -> ApiKeyRecord | None:
        if self.lookup_delay:
            await asyncio.sleep(self.lookup_delay)
        return self.api_keys.get(key_hash)

    async def lookup_user_profile(self, user_id: str) -> UserProfile | None:
        return self.profiles.get(user_id)

    async def lookup_user_organization(self, user_id: str) -> str | None:
        return self.user_organizations.get(user_id)

    async def organization_exists(self, organization_id: str) -> bool:
        return organization_id in self.organizations

    async def create_organization(self, seed: OrganizationSeed) -> str:
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if self.conflicts_remaining:
            self.conflicts_remaining -= 1
            raise OrganizationConflictError(seed.owner_user_id)
        if seed.owner_user_id in self.owners:
            raise OrganizationConflictError(seed.owner_user_id)
        org_id = self.add_organization()
        self.owners.add(seed.owner_user_id)
        self.user_organizations[seed.owner_user_id] = org_id
        self.created.append(seed)
        return org_id

    async def touch_api_key(self, key_id: str) -> None:
        self.touched.append(key_id)


@pytest.fixture()
def identity_store() -> FakeIdentityStore:
    return FakeIdentityStore()


@pytest.fixture()
def pipeline(identity_store: FakeIdentityStore) -> AuthPipeline:
    return AuthPipeline(
        identity_store,
        project_scope=PROJECT_SCOPE,
        jwt_secret=JWT_SECRET,
        store_timeout=1.0,
    )


@pytest.fixture()
def make_token() -> Callable[..., str]:
    """Build an HS256 token signed with the test secret."""

    def _make(
        secret: str = JWT_SECRET,
        expires_in: int = 3600,
        **claims: Any,
    ) -> str:
        payload = {"iat": int(time.time()), "exp": int(time.time()) + expires_in}
        payload.update(claims)
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture()
def scope_headers() -> dict[str, str]:
    return {"X-Project-Scope": PROJECT_SCOPE}


@pytest.fixture()
async def client(pipeline: AuthPipeline) -> AsyncGenerator[AsyncClient]:
    """AsyncClient with the auth pipeline over the in-memory store."""
    original_limiter = app.state.rate_limiter
    app.state.rate_limiter = PlanRateLimiter(InMemoryCounterStore())
    app.dependency_overrides[get_auth_pipeline] = lambda: pipeline
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
    app.state.rate_limiter = original_limiter
