"""Low-level exceptions raised while talking to the GitHub API.

These stay inside the github package: the retry policy consumes
``GithubRateLimitError`` and the client translates whatever is left into the
domain errors in ``extstore.services.errors``.
"""

from __future__ import annotations


class GithubError(Exception):
    """Base exception for GitHub API failures."""


class GithubRateLimitError(GithubError):
    """Raised when the upstream service enforces a rate limit."""

    def __init__(self, message: str, retry_after: int | float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class GithubSecondaryRateLimitError(GithubRateLimitError):
    """
    Raised when GitHub's secondary rate limit (abuse detection) is triggered.

    These require longer backoff (typically 60s+) compared to primary rate limits.
    """

    pass
