"""Shared fixtures for integration tests requiring live infrastructure."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator

import pytest
import redis.asyncio as aioredis
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from maas_gateway.auth.keys import generate_api_key
from maas_gateway.config import get_settings
from maas_gateway.storage.orm import APIKey, Organization, User


@pytest.fixture()
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    engine = create_async_engine(get_settings().database_url, pool_size=5)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(
    async_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture()
async def seeded_user(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[dict[str, str]]:
    """Commit a user with one active API key; delete everything afterwards.

    Returns dict with ``user_id``, ``api_key`` (raw) and ``key_hash``.
    """
    user_id = f"it-user-{uuid.uuid4().hex[:8]}"
    full_key, key_hash, key_prefix = generate_api_key()

    async with session_factory() as session:
        session.add(User(id=user_id, email=f"{user_id}@example.com", plan="pro"))
        await session.flush()
        session.add(
            APIKey(
                user_id=user_id,
                key_hash=key_hash,
                key_prefix=key_prefix,
                name="integration",
            )
        )
        await session.commit()

    yield {"user_id": user_id, "api_key": full_key, "key_hash": key_hash}

    async with session_factory() as session:
        await session.execute(delete(APIKey).where(APIKey.user_id == user_id))
        await session.execute(delete(User).where(User.id == user_id))
        await session.execute(
            delete(Organization).where(Organization.owner_user_id == user_id)
        )
        await session.commit()


@pytest.fixture()
async def redis_client() -> AsyncGenerator[aioredis.Redis]:
    client = aioredis.from_url(get_settings().redis_url)
    yield client
    await client.aclose()
