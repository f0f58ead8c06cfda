"""PostgreSQL-backed implementation of the ``IdentityStore`` protocol."""

from __future__ import annotations

import uuid

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from maas_gateway.errors import OrganizationConflictError
from maas_gateway.stores import ApiKeyRecord, OrganizationSeed, UserProfile
from maas_gateway.storage.orm import APIKey, Organization, User


def _parse_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


class SqlIdentityStore:
    """Identity store over the ``organizations``, ``users`` and ``api_keys`` tables.

    Each call opens its own short-lived session; the auth pipeline never
    shares a transaction with route handlers.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def lookup_api_key_by_hash(self, key_hash: str) -> ApiKeyRecord | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(APIKey).where(APIKey.key_hash == key_hash)
            )
            row = result.scalar_one_or_none()
        if row is None:
            return None
        return ApiKeyRecord(
            id=str(row.id),
            user_id=row.user_id,
            key_hash=row.key_hash,
            is_active=row.is_active,
            name=row.name,
            service=row.service,
            expires_at=row.expires_at,
        )

    async def lookup_user_profile(self, user_id: str) -> UserProfile | None:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
        if user is None:
            return None
        return UserProfile(
            user_id=user.id,
            email=user.email,
            role=user.role,
            plan=user.plan,
            organization_id=str(user.organization_id) if user.organization_id else None,
            app_metadata=dict(user.app_metadata or {}),
        )

    async def lookup_user_organization(self, user_id: str) -> str | None:
        """User's linked organization, else one provisioned for them.

        The owner fallback covers identities with no ``users`` row (JWT
        subjects) whose organization was created by fallback provisioning.
        """
        async with self._session_factory() as session:
            linked = await session.scalar(
                select(User.organization_id).where(User.id == user_id)
            )
            if linked is not None:
                return str(linked)
            owned = await session.scalar(
                select(Organization.id).where(Organization.owner_user_id == user_id)
            )
        return str(owned) if owned is not None else None

    async def organization_exists(self, organization_id: str) -> bool:
        org_uuid = _parse_uuid(organization_id)
        if org_uuid is None:
            return False
        async with self._session_factory() as session:
            found = await session.scalar(
                select(Organization.id).where(Organization.id == org_uuid)
            )
        return found is not None

    async def create_organization(self, seed: OrganizationSeed) -> str:
        try:
            async with self._session_factory() as session, session.begin():
                org = Organization(
                    name=seed.name,
                    slug=seed.slug,
                    plan=seed.plan,
                    owner_user_id=seed.owner_user_id,
                    settings={"type": "user_default", "created_for": seed.owner_user_id},
                )
                session.add(org)
                await session.flush()
                await session.execute(
                    update(User)
                    .where(User.id == seed.owner_user_id)
                    .values(organization_id=org.id)
                )
                organization_id = str(org.id)
        except IntegrityError as exc:
            raise OrganizationConflictError(seed.owner_user_id) from exc
        return organization_id

    async def touch_api_key(self, key_id: str) -> None:
        key_uuid = _parse_uuid(key_id)
        if key_uuid is None:
            return
        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(APIKey).where(APIKey.id == key_uuid).values(last_used_at=func.now())
            )
