"""Records and store protocols consumed by the auth pipeline.

The pipeline never talks to a database directly; hosts inject an
``IdentityStore`` (SQL in production, in-memory fakes in tests).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, TypeVar

import structlog

from maas_gateway.errors import StoreTimeoutError

T = TypeVar("T")

logger = structlog.get_logger()


@dataclass(frozen=True)
class ApiKeyRecord:
    id: str
    user_id: str
    key_hash: str
    is_active: bool
    name: str
    service: str = "all"
    expires_at: datetime | None = None

    def is_usable(self, now: datetime | None = None) -> bool:
        """Active and not past its expiry."""
        if not self.is_active:
            return False
        if self.expires_at is None:
            return True
        return self.expires_at > (now or datetime.now(UTC))


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    email: str = ""
    role: str = "user"
    plan: str = "free"
    organization_id: str | None = None
    app_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OrganizationSeed:
    """Input for fallback organization provisioning."""

    owner_user_id: str
    slug: str
    name: str
    plan: str = "free"


class IdentityStore(Protocol):
    async def lookup_api_key_by_hash(self, key_hash: str) -> ApiKeyRecord | None: ...

    async def lookup_user_profile(self, user_id: str) -> UserProfile | None: ...

    async def lookup_user_organization(self, user_id: str) -> str | None: ...

    async def organization_exists(self, organization_id: str) -> bool: ...

    async def create_organization(self, seed: OrganizationSeed) -> str:
        """Insert an organization owned by ``seed.owner_user_id``.

        Links it as the user's organization and returns the new id.

        Raises:
            OrganizationConflictError: the owner already has an organization.
        """
        ...

    async def touch_api_key(self, key_id: str) -> None: ...


async def call_store(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """Await a store call with an explicit timeout.

    Raises:
        StoreTimeoutError: the store did not answer within *timeout* seconds.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except TimeoutError as exc:
        logger.warning("store_call_timeout", operation=operation, timeout_s=timeout)
        raise StoreTimeoutError(
            "Identity store did not respond in time",
        ) from exc
