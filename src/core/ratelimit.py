"""Rate limiting for the generation endpoints.

Uses Upstash's serverless Redis when UPSTASH_REDIS_REST_URL and
UPSTASH_REDIS_REST_TOKEN are set, so limits hold across instances.
Otherwise a per-process fixed window limiter is used.
"""

from __future__ import annotations

import logging
import math
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Annotated, Protocol

from fastapi import Depends, HTTPException, Request, status

from core.config import Settings, get_settings


if TYPE_CHECKING:
    from upstash_ratelimit import Ratelimit

logger = logging.getLogger(__name__)

# Paths that bypass rate limiting (health checks, etc.)
RATE_LIMIT_BYPASS_PATHS: set[str] = {
    "/api/v1/health",
    "/api/v1/health/",
}


class RateLimitResponse(Protocol):
    allowed: bool
    remaining: int
    reset: float  # epoch milliseconds


@dataclass(frozen=True)
class FixedWindowResponse:
    allowed: bool
    limit: int
    remaining: int
    reset: float


class InMemoryRateLimiter:
    """Fixed window limiter keyed by client identifier.

    Mirrors the `limit()` interface of `upstash_ratelimit.Ratelimit`.
    Expired windows are evicted lazily, at most once per window length.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        self._windows = {
            key: (start, count)
            for key, (start, count) in self._windows.items()
            if now - start < self.window_seconds
        }
        self._last_sweep = now

    def limit(self, identifier: str) -> FixedWindowResponse:
        with self._lock:
            now = self._clock()
            self._sweep(now)

            start, count = self._windows.get(identifier, (now, 0))
            if now - start >= self.window_seconds:
                start, count = now, 0

            allowed = count < self.max_requests
            if allowed:
                count += 1
            self._windows[identifier] = (start, count)

            return FixedWindowResponse(
                allowed=allowed,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - count),
                reset=(start + self.window_seconds) * 1000,
            )


@lru_cache
def get_ratelimiter() -> Ratelimit | InMemoryRateLimiter:
    """Create and cache the rate limiter instance."""
    settings = get_settings()

    if not settings.UPSTASH_REDIS_REST_URL or not settings.UPSTASH_REDIS_REST_TOKEN:
        logger.info(
            "Upstash Redis not configured; using in-memory rate limiting "
            "(%d requests per %d seconds)",
            settings.RATE_LIMIT_REQUESTS,
            settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        return InMemoryRateLimiter(
            settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS
        )

    from upstash_ratelimit import Ratelimit, SlidingWindow
    from upstash_redis import Redis

    try:
        redis = Redis(
            url=settings.UPSTASH_REDIS_REST_URL,
            token=settings.UPSTASH_REDIS_REST_TOKEN,
        )
        ratelimit = Ratelimit(
            redis=redis,
            limiter=SlidingWindow(
                max_requests=settings.RATE_LIMIT_REQUESTS,
                window=settings.RATE_LIMIT_WINDOW_SECONDS,
            ),
            prefix="handboek:ratelimit",
        )
        logger.info(
            "Rate limiting enabled: %d requests per %d seconds",
            settings.RATE_LIMIT_REQUESTS,
            settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        return ratelimit
    except Exception as e:
        logger.error("Failed to initialize Upstash rate limiter: %s", e)
        return InMemoryRateLimiter(
            settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS
        )


def _get_client_identifier(request: Request) -> str:
    """Extract client identifier from request for rate limiting.

    Prefers the first X-Forwarded-For hop, then X-Real-IP, then the
    direct client IP.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    # Unidentifiable clients get their own bucket
    return f"unknown:{uuid.uuid4()}"


async def check_rate_limit(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """FastAPI dependency to enforce rate limits on endpoints.

    Raises HTTPException with 429 status if rate limit is exceeded. A
    failing limiter never blocks the request.

    Usage:
        @router.post("/generate", dependencies=[Depends(check_rate_limit)])
    """
    path = request.url.path
    if path in RATE_LIMIT_BYPASS_PATHS:
        return

    ratelimiter = get_ratelimiter()
    identifier = _get_client_identifier(request)

    try:
        response: RateLimitResponse = ratelimiter.limit(identifier)

        if not response.allowed:
            current_time_ms = time.time() * 1000
            reset_in_seconds = max(
                1, math.ceil((response.reset - current_time_ms) / 1000)
            )
            logger.warning(
                "Rate limit exceeded for %s on %s. Reset in %d seconds.",
                identifier,
                path,
                reset_in_seconds,
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Te veel verzoeken. Probeer het later opnieuw.",
                headers={
                    "Retry-After": str(reset_in_seconds),
                    "X-RateLimit-Limit": str(settings.RATE_LIMIT_REQUESTS),
                    "X-RateLimit-Remaining": str(response.remaining),
                },
            )
    except HTTPException:
        raise
    except Exception as e:
        # Log but don't block requests if rate limiting fails
        logger.error("Rate limit check failed: %s", e)
