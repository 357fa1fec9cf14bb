"""
Fixed-window rate limiter for the journal gateway.

Counters live in Redis under ``{action}:{uid}:{client_ip}``. The first hit of
a window sets the key's expiry, so the store itself ends the window. Any
problem with the counter store (unconfigured, unreachable, timing out)
yields a permissive decision: the limiter never blocks traffic on its own
failure.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, Optional

import redis.asyncio as redis
from fastapi import Request

from shared.logging import get_logger
from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class RateLimitPolicy:
    """Budget for one action: ``max_count`` requests per ``window_seconds``."""

    window_seconds: int
    max_count: int


DEFAULT_POLICIES: Dict[str, RateLimitPolicy] = {
    "ai": RateLimitPolicy(window_seconds=60, max_count=30),
    "list": RateLimitPolicy(window_seconds=30, max_count=60),
    "edit": RateLimitPolicy(window_seconds=60, max_count=60),
    "delete": RateLimitPolicy(window_seconds=60, max_count=60),
}


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single limiter check. Never persisted."""

    allowed: bool
    remaining: int
    reset_at: float
    limit: int
    degraded: bool = False

    @classmethod
    def permissive(cls, max_count: int, window_seconds: int) -> "RateLimitDecision":
        return cls(
            allowed=True,
            remaining=max_count,
            reset_at=time.time() + window_seconds,
            limit=max_count,
            degraded=True,
        )

    @property
    def retry_after(self) -> int:
        return max(1, int(round(self.reset_at - time.time())))

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }


def make_key(action: str, uid: str, client_ip: str) -> str:
    """Compose the counter key scoping a budget to action, identity and address."""
    return f"{action}:{uid}:{client_ip}"


def get_client_ip(request: Request) -> str:
    """Resolve the originating client address from proxy headers.

    The leftmost X-Forwarded-For entry is the original client; X-Real-IP is
    the fallback. Missing information never fails the request.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return "unknown"


class FixedWindowRateLimiter:
    """Distributed fixed-window counter using Redis INCR/EXPIRE/TTL."""

    def __init__(
        self,
        redis_url: Optional[str],
        token: Optional[str] = None,
        *,
        socket_timeout: float = 2.0,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.redis_url = redis_url
        self.token = token
        self.socket_timeout = socket_timeout
        self.metrics = metrics
        self.logger = get_logger("journal.rate_limiter")
        self._redis: Optional[redis.Redis] = None
        self._lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.redis_url)

    async def _get_redis(self) -> Optional[redis.Redis]:
        """Return the shared Redis client, or None when no store is configured."""
        if not self.redis_url:
            return None
        if self._redis is None:
            async with self._lock:
                if self._redis is None:
                    self._redis = redis.from_url(
                        self.redis_url,
                        password=self.token or None,
                        decode_responses=True,
                        socket_connect_timeout=self.socket_timeout,
                        socket_timeout=self.socket_timeout,
                    )
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def check(self, key: str, window_seconds: int, max_count: int) -> RateLimitDecision:
        """Count one hit against ``key`` and decide whether it is allowed."""
        try:
            client = await self._get_redis()
        except Exception as e:
            self.logger.error("Rate limit store unavailable", error=str(e))
            return RateLimitDecision.permissive(max_count, window_seconds)

        if client is None:
            return RateLimitDecision.permissive(max_count, window_seconds)

        try:
            count = int(await client.incr(key))
            if count == 1:
                # Not atomic with INCR; a crash here leaves a key without expiry.
                await client.expire(key, window_seconds)
        except Exception as e:
            self.logger.error("Rate limit check error", key=key, error=str(e))
            return RateLimitDecision.permissive(max_count, window_seconds)

        reset_at = time.time() + window_seconds
        try:
            ttl = await client.ttl(key)
            if isinstance(ttl, (int, float)) and ttl > 0:
                reset_at = time.time() + ttl
        except Exception as e:
            self.logger.warning("Rate limit TTL lookup failed", key=key, error=str(e))

        return RateLimitDecision(
            allowed=count <= max_count,
            remaining=max(0, max_count - count),
            reset_at=reset_at,
            limit=max_count,
        )


class RateLimitMiddleware:
    """Applies per-action policies to requests."""

    def __init__(
        self,
        rate_limiter: FixedWindowRateLimiter,
        policies: Optional[Dict[str, RateLimitPolicy]] = None,
    ):
        self.rate_limiter = rate_limiter
        self.policies = dict(policies or DEFAULT_POLICIES)
        self.logger = get_logger("journal.rate_limit_middleware")

    async def check_request(self, request: Request, action: str, uid: str) -> RateLimitDecision:
        """Check the budget for ``action`` by ``uid`` from the request's address."""
        policy = self.policies[action]
        key = make_key(action, uid, get_client_ip(request))

        try:
            decision = await self.rate_limiter.check(key, policy.window_seconds, policy.max_count)
        except Exception as e:
            self.logger.error("Rate limiter middleware error", action=action, error=str(e))
            decision = RateLimitDecision.permissive(policy.max_count, policy.window_seconds)

        if decision.degraded:
            outcome = "fail_open"
        else:
            outcome = "allowed" if decision.allowed else "limited"
        if self.rate_limiter.metrics is not None:
            self.rate_limiter.metrics.increment_counter("rate_limit_decisions_total", action=action, outcome=outcome)

        if not decision.allowed:
            self.logger.warning("Rate limit exceeded", action=action, key=key, limit=decision.limit)
        return decision
