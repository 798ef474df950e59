"""
Backoff policy for rate-limited GitHub requests.

Only rate-limit responses are retried. The wait before attempt ``n`` is the
larger of the upstream ``Retry-After`` / ``X-RateLimit-Reset`` hint and a
jittered exponential delay, capped at ``max_wait``. After ``max_attempts``
attempts the last ``GithubRateLimitError`` is re-raised to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from extstore.config import settings
from extstore.services.github.exceptions import GithubRateLimitError

logger = logging.getLogger(__name__)


class wait_retry_after_or_backoff(wait_base):
    """Honor the upstream retry hint, never waiting less than the jittered backoff."""

    def __init__(self, multiplier: float, max_wait: float):
        self.max_wait = max_wait
        self._backoff = wait_random_exponential(multiplier=multiplier, max=max_wait)

    def __call__(self, retry_state: RetryCallState) -> float:
        backoff = self._backoff(retry_state)
        hint = 0.0
        if retry_state.outcome is not None and retry_state.outcome.failed:
            exc = retry_state.outcome.exception()
            if isinstance(exc, GithubRateLimitError) and exc.retry_after:
                hint = float(exc.retry_after)
        return min(max(hint, backoff), self.max_wait)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        f"GitHub rate limited. Waiting {wait:.1f}s before attempt "
        f"{retry_state.attempt_number + 1}"
    )


@dataclass
class RetryPolicy:
    max_attempts: int = field(default_factory=lambda: settings.GITHUB_RETRY_MAX_ATTEMPTS)
    base_seconds: float = field(default_factory=lambda: settings.GITHUB_RETRY_BASE_SECONDS)
    max_wait_seconds: float = field(
        default_factory=lambda: settings.GITHUB_RETRY_MAX_WAIT_SECONDS
    )
    sleep: Callable[[float], None] = time.sleep

    def build(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_retry_after_or_backoff(self.base_seconds, self.max_wait_seconds),
            retry=retry_if_exception_type(GithubRateLimitError),
            before_sleep=_log_before_sleep,
            sleep=self.sleep,
            reraise=True,
        )
