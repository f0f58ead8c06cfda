"""Organization resolution with fallback provisioning.

Turns a possibly missing or malformed tenant id into one that is a valid
UUID and exists in the organization store. Resolution order:

1. ``claim_lookup``: the candidate is a valid UUID of an existing org.
2. ``db_lookup``: the user's stored organization.
3. ``fallback_created``: a new single-user organization is provisioned.

Step 3 writes to the store. It runs under a per-user single-flight lock and
relies on the store's unique owner constraint; a conflicting insert from
another process is resolved by re-reading the user's organization.
"""

from __future__ import annotations

import asyncio
import secrets
import time
import uuid
from dataclasses import dataclass
from enum import StrEnum

import structlog

from maas_gateway.errors import InternalError, OrganizationConflictError
from maas_gateway.stores import IdentityStore, OrganizationSeed, call_store

logger = structlog.get_logger()

MAX_CREATE_ATTEMPTS = 3


class ResolutionSource(StrEnum):
    CLAIM_LOOKUP = "claim_lookup"
    DB_LOOKUP = "db_lookup"
    FALLBACK_CREATED = "fallback_created"


@dataclass(frozen=True)
class OrganizationResolution:
    organization_id: str
    source: ResolutionSource


def is_valid_uuid(value: str | None) -> bool:
    if not value:
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def fallback_slug(user_id: str) -> str:
    """Collision-resistant slug from user id, millisecond timestamp and noise."""
    stem = "".join(c for c in user_id.lower() if c.isalnum())[:8] or "anon"
    return f"user-{stem}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class OrganizationResolver:
    def __init__(self, store: IdentityStore, timeout: float = 5.0) -> None:
        self._store = store
        self._timeout = timeout
        # Single-flight per user within this process; the store's unique
        # owner constraint covers other processes.
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    async def resolve(
        self, candidate: str | None, user_id: str
    ) -> OrganizationResolution:
        if candidate is not None and is_valid_uuid(candidate):
            if await self._exists(candidate):
                return OrganizationResolution(
                    str(uuid.UUID(candidate)), ResolutionSource.CLAIM_LOOKUP
                )
            logger.warning(
                "organization_claim_not_found",
                organization_id=candidate,
                user_id=user_id,
            )
        elif candidate:
            logger.warning(
                "organization_claim_malformed", candidate=candidate, user_id=user_id
            )

        stored = await self._stored_organization(user_id)
        if stored is not None:
            return OrganizationResolution(stored, ResolutionSource.DB_LOOKUP)

        return await self._provision(user_id)

    async def _exists(self, organization_id: str) -> bool:
        return await call_store(
            self._store.organization_exists(organization_id),
            self._timeout,
            "organization_exists",
        )

    async def _stored_organization(self, user_id: str) -> str | None:
        stored = await call_store(
            self._store.lookup_user_organization(user_id),
            self._timeout,
            "lookup_user_organization",
        )
        if stored is not None and is_valid_uuid(stored):
            if await self._exists(stored):
                return str(uuid.UUID(stored))
        return None

    async def _provision(self, user_id: str) -> OrganizationResolution:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._waiters[user_id] = self._waiters.get(user_id, 0) + 1
        try:
            async with lock:
                # A concurrent request may have provisioned while we waited.
                stored = await self._stored_organization(user_id)
                if stored is not None:
                    return OrganizationResolution(stored, ResolutionSource.DB_LOOKUP)
                return await self._create_with_retry(user_id)
        finally:
            self._waiters[user_id] -= 1
            if self._waiters[user_id] == 0:
                del self._waiters[user_id]
                self._locks.pop(user_id, None)

    async def _create_with_retry(self, user_id: str) -> OrganizationResolution:
        for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
            seed = OrganizationSeed(
                owner_user_id=user_id,
                slug=fallback_slug(user_id),
                name=f"User {user_id[:8]} Organization",
            )
            try:
                organization_id = await call_store(
                    self._store.create_organization(seed),
                    self._timeout,
                    "create_organization",
                )
            except OrganizationConflictError:
                logger.info(
                    "organization_create_conflict", user_id=user_id, attempt=attempt
                )
                stored = await self._stored_organization(user_id)
                if stored is not None:
                    return OrganizationResolution(stored, ResolutionSource.DB_LOOKUP)
                continue

            logger.info(
                "organization_fallback_created",
                user_id=user_id,
                organization_id=organization_id,
                slug=seed.slug,
            )
            return OrganizationResolution(
                organization_id, ResolutionSource.FALLBACK_CREATED
            )

        logger.error("organization_provisioning_failed", user_id=user_id)
        raise InternalError(
            "Unable to resolve an organization for this user",
            code="ORGANIZATION_RESOLUTION_FAILED",
        )
