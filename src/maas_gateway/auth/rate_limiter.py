"""Plan-tiered fixed-window rate limiting.

The policy (``PlanRateLimiter``) is independent of where counters live.
Counter stores implement ``increment_or_reset``:

- ``InMemoryCounterStore``: process-local, lock-guarded. Counters do not
  survive across stateless function invocations or span several instances,
  so limits there are best-effort only.
- ``RedisCounterStore``: shared across instances. INCR and PEXPIRE are
  separate commands, so concurrent bursts may over- or under-count by the
  number of in-flight requests. Limits are soft quotas, not billing grade.
"""

from __future__ import annotations

import heapq
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Protocol

import redis.asyncio as aioredis


@dataclass(frozen=True)
class PlanTier:
    requests_per_window: int
    window_ms: int


# Authoritative tier table (requests per 60 s window).
PLAN_TIERS: dict[str, PlanTier] = {
    "free": PlanTier(requests_per_window=60, window_ms=60_000),
    "pro": PlanTier(requests_per_window=300, window_ms=60_000),
    "enterprise": PlanTier(requests_per_window=1000, window_ms=60_000),
}
DEFAULT_PLAN = "free"


def normalize_plan(plan: str | None) -> str:
    """Canonical plan name: stripped, lowercased, ``free`` when missing."""
    return (plan or DEFAULT_PLAN).strip().lower() or DEFAULT_PLAN


def tier_for_plan(plan: str | None) -> PlanTier:
    """Tier for *plan*; unknown or missing plans get the free tier."""
    return PLAN_TIERS.get(normalize_plan(plan), PLAN_TIERS[DEFAULT_PLAN])


@dataclass(frozen=True)
class CounterState:
    count: int
    reset_at: float  # epoch seconds


class CounterStore(Protocol):
    async def increment_or_reset(self, key: str, window_ms: int) -> CounterState: ...


class InMemoryCounterStore:
    """Fixed-window counters in a dict.

    Thread-safe via Lock. Single-instance only. A min-heap of window
    expiries is drained on every increment, so the dict only holds live
    windows even where no periodic ``cleanup()`` task runs (serverless).
    """

    def __init__(self) -> None:
        self._counters: dict[str, CounterState] = {}
        self._expiries: list[tuple[float, str]] = []
        self._lock = Lock()

    async def increment_or_reset(self, key: str, window_ms: int) -> CounterState:
        now = time.time()
        with self._lock:
            self._purge_expired(now)
            current = self._counters.get(key)
            if current is None:
                current = CounterState(count=0, reset_at=now + window_ms / 1000)
                heapq.heappush(self._expiries, (current.reset_at, key))
            current = CounterState(count=current.count + 1, reset_at=current.reset_at)
            self._counters[key] = current
            return current

    def cleanup(self) -> int:
        """Remove all expired windows. Call periodically.

        Returns:
            Number of keys cleaned up.
        """
        with self._lock:
            return self._purge_expired(time.time())

    def _purge_expired(self, now: float) -> int:
        removed = 0
        while self._expiries and self._expiries[0][0] <= now:
            reset_at, key = heapq.heappop(self._expiries)
            current = self._counters.get(key)
            if current is not None and current.reset_at == reset_at:
                del self._counters[key]
                removed += 1
        return removed


class RedisCounterStore:
    """Fixed-window counters shared through Redis."""

    KEY_PREFIX = "ratelimit:"

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    async def increment_or_reset(self, key: str, window_ms: int) -> CounterState:
        redis_key = f"{self.KEY_PREFIX}{key}"
        count = int(await self._client.incr(redis_key))
        if count == 1:
            await self._client.pexpire(redis_key, window_ms)
            ttl_ms = window_ms
        else:
            ttl_ms = int(await self._client.pttl(redis_key))
            if ttl_ms < 0:
                # Key lost its expiry (crash between INCR and PEXPIRE).
                await self._client.pexpire(redis_key, window_ms)
                ttl_ms = window_ms
        return CounterState(count=count, reset_at=time.time() + ttl_ms / 1000)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    plan: str
    limit: int
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        return max(math.ceil(self.reset_at - time.time()), 1)

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class PlanRateLimiter:
    def __init__(self, store: CounterStore) -> None:
        self.store = store

    async def check(self, identity_key: str, plan: str | None) -> RateLimitDecision:
        """Count one request for *identity_key* and decide.

        Args:
            identity_key: Rate limit key, e.g. "{organization_id}:{user_id}".
            plan: Subscription plan selecting the tier.
        """
        tier = tier_for_plan(plan)
        state = await self.store.increment_or_reset(identity_key, tier.window_ms)
        return RateLimitDecision(
            allowed=state.count <= tier.requests_per_window,
            plan=normalize_plan(plan),
            limit=tier.requests_per_window,
            remaining=max(tier.requests_per_window - state.count, 0),
            reset_at=state.reset_at,
        )
