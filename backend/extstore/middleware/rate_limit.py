"""Per-client rate limiting dependencies for public endpoints."""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request, Response

from extstore.config import settings
from extstore.services.errors import RateLimitExceeded
from extstore.services.rate_limiter import (
    SUBMISSION_WINDOW_MS,
    SYNC_WINDOW_MS,
    RateLimitDecision,
    RateLimiter,
)
from extstore.utils.prometheus_metrics import record_rate_limit_refusal


def get_client_ip(request: Request) -> str:
    """Caller address: CF-Connecting-IP, then first X-Forwarded-For hop, then peer."""
    cf_ip = request.headers.get("CF-Connecting-IP")
    if cf_ip:
        return cf_ip.strip()
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def rate_limit(scope: str, limit: Callable[[], int], window_ms: int):
    """Build a dependency counting one request per client against ``scope``."""

    def dependency(
        request: Request,
        response: Response,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitDecision:
        decision = limiter.check_and_increment(
            f"{scope}:{get_client_ip(request)}", limit(), window_ms
        )
        if not decision.allowed:
            record_rate_limit_refusal(scope)
            raise RateLimitExceeded(
                retry_after=decision.retry_after_seconds,
                headers=decision.headers(),
            )
        response.headers.update(decision.headers())
        return decision

    return dependency


sync_rate_limit = rate_limit(
    "sync", lambda: settings.RATE_LIMIT_SYNC_PER_MINUTE, SYNC_WINDOW_MS
)
submission_rate_limit = rate_limit(
    "submission", lambda: settings.RATE_LIMIT_SUBMISSIONS_PER_HOUR, SUBMISSION_WINDOW_MS
)
