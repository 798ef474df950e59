from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import quote

import httpx

from extstore.config import settings
from extstore.services.errors import (
    ManifestFetchFailed,
    UpstreamError,
    UpstreamRateLimited,
)
from extstore.services.github.exceptions import (
    GithubRateLimitError,
    GithubSecondaryRateLimitError,
)
from extstore.services.github.locator import RepositoryRef
from extstore.services.github.retry_policy import RetryPolicy
from extstore.services.release.models import (
    Release,
    release_from_payload,
    sort_newest_first,
)

API_PREVIEW_HEADERS = {
    "Accept": "application/vnd.github+json",
}

MANIFEST_FILENAME = "extension.json"

logger = logging.getLogger(__name__)


class GitHubClient:
    """Read-only client for public repository releases and raw file content."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str | None = None,
        raw_url: str | None = None,
        http_client: httpx.Client | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Initialize GitHubClient.

        Args:
            token: Optional GitHub token (raises the hourly quota from 60 to 5,000)
            api_url: GitHub API URL (defaults to api.github.com)
            raw_url: Raw content host used for manifest files
            http_client: Pre-built httpx client, mainly for tests
            retry_policy: Backoff applied to rate-limited responses
        """
        self._token = token if token is not None else settings.GITHUB_API_TOKEN
        self._api_url = (api_url or settings.GITHUB_API_URL).rstrip("/")
        self._raw_url = (raw_url or settings.GITHUB_RAW_URL).rstrip("/")
        self._retry_policy = retry_policy or RetryPolicy()
        self._owns_client = http_client is None
        self._rest = http_client or httpx.Client(
            base_url=self._api_url,
            timeout=settings.GITHUB_REQUEST_TIMEOUT_SECONDS,
        )

    def close(self) -> None:
        if self._owns_client:
            self._rest.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": settings.GITHUB_USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        headers.update(API_PREVIEW_HEADERS)
        return headers

    def _raise_for_rate_limit(self, response: httpx.Response) -> None:
        if response.status_code == 429:
            self._handle_rate_limit(response)
        if response.status_code == 403:
            text_lower = response.text.lower()
            if "secondary rate limit" in text_lower:
                self._handle_secondary_rate_limit(response)
            elif (
                response.headers.get("X-RateLimit-Remaining") == "0"
                or "rate limit" in text_lower
            ):
                self._handle_rate_limit(response)

    def _handle_rate_limit(self, response: httpx.Response) -> None:
        reset_header = response.headers.get("X-RateLimit-Reset")
        retry_after_header = response.headers.get("Retry-After")
        wait_seconds: float | None = None

        if retry_after_header:
            try:
                wait_seconds = float(retry_after_header)
            except ValueError:
                pass
        elif reset_header:
            try:
                reset_epoch = float(reset_header)
                now_epoch = datetime.now(timezone.utc).timestamp()
                wait_seconds = max(reset_epoch - now_epoch, 1.0)
            except ValueError:
                pass

        raise GithubRateLimitError("GitHub rate limit reached", retry_after=wait_seconds)

    def _handle_secondary_rate_limit(self, response: httpx.Response) -> None:
        """
        Handle GitHub secondary rate limit (abuse detection).

        Secondary rate limits require longer backoff (typically 60s+).
        """
        retry_after_header = response.headers.get("Retry-After")
        wait_seconds = 60.0

        if retry_after_header:
            try:
                wait_seconds = max(float(retry_after_header), 60.0)
            except ValueError:
                pass

        logger.warning(
            f"GitHub secondary rate limit (abuse detection) hit, "
            f"waiting {wait_seconds}s before retry"
        )
        raise GithubSecondaryRateLimitError(
            "GitHub secondary rate limit (abuse detection) hit",
            retry_after=wait_seconds,
        )

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """GET with timeout handling and rate-limit backoff."""

        def _do_request() -> httpx.Response:
            try:
                response = self._rest.get(url, headers=self._headers(), params=params)
            except httpx.TimeoutException as exc:
                raise UpstreamError(f"GitHub request timed out: {url}") from exc
            except httpx.RequestError as exc:
                raise UpstreamError(f"GitHub request failed: {exc}") from exc
            self._raise_for_rate_limit(response)
            return response

        try:
            return self._retry_policy.build()(_do_request)
        except GithubRateLimitError as exc:
            raise UpstreamRateLimited(
                f"GitHub rate limit persisted after {self._retry_policy.max_attempts} attempts",
                retry_after=exc.retry_after,
            ) from exc

    @staticmethod
    def _next_link(response: httpx.Response) -> Optional[str]:
        link_header = response.headers.get("Link")
        if not link_header:
            return None
        for part in link_header.split(","):
            segment = part.strip()
            if segment.endswith('rel="next"'):
                return segment[segment.find("<") + 1 : segment.find(">")]
        return None

    def _paginate_releases(self, ref: RepositoryRef) -> Iterator[Dict[str, Any]]:
        url: Optional[str] = f"/repos/{ref.full_name}/releases"
        query: Optional[Dict[str, Any]] = {"per_page": settings.RELEASES_PER_PAGE}
        pages = 0

        while url and pages < settings.RELEASES_MAX_PAGES:
            response = self._get(url, params=query)
            pages += 1

            if response.status_code == 404:
                if pages == 1:
                    logger.info(f"Repository {ref.full_name} not found upstream")
                return
            if response.status_code >= 400:
                raise UpstreamError(
                    f"Failed to fetch releases for {ref.full_name}: HTTP {response.status_code}"
                )

            try:
                items = response.json()
            except json.JSONDecodeError as exc:
                raise UpstreamError(
                    f"Release listing for {ref.full_name} was not valid JSON"
                ) from exc
            if not isinstance(items, list):
                raise UpstreamError(f"Unexpected release listing shape for {ref.full_name}")

            for item in items:
                if isinstance(item, dict):
                    yield item

            url = self._next_link(response)
            query = None  # GitHub link already contains query params

        if url:
            logger.info(
                f"Stopped release pagination for {ref.full_name} after {pages} pages"
            )

    def list_releases(self, ref: RepositoryRef) -> List[Release]:
        """
        Return published releases for a repository, newest first.

        A missing repository and a repository with no releases both yield an
        empty list. Transport and auth failures raise UpstreamError; a rate
        limit that outlasts the retry policy raises UpstreamRateLimited.
        """
        releases = [release_from_payload(item) for item in self._paginate_releases(ref)]
        return sort_newest_first([r for r in releases if not r.is_draft and r.tag])

    def fetch_manifest(self, ref: RepositoryRef, tag: str) -> Any:
        """Fetch and decode extension.json at the given tag."""
        url = (
            f"{self._raw_url}/{ref.owner}/{ref.name}/"
            f"{quote(tag, safe='/')}/{MANIFEST_FILENAME}"
        )
        try:
            response = self._get(url)
        except UpstreamRateLimited:
            raise
        except UpstreamError as exc:
            logger.warning(f"Manifest fetch for {ref.full_name}@{tag} failed: {exc}")
            raise ManifestFetchFailed(
                f"Failed to fetch {MANIFEST_FILENAME} for {ref.full_name}@{tag}"
            ) from exc

        if response.status_code == 404:
            raise ManifestFetchFailed(
                f"{MANIFEST_FILENAME} not found in release {tag}. Make sure your "
                f"repository root contains an {MANIFEST_FILENAME} file."
            )
        if response.status_code >= 400:
            raise ManifestFetchFailed(
                f"Failed to fetch {MANIFEST_FILENAME}: HTTP {response.status_code}"
            )

        try:
            return json.loads(response.content)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ManifestFetchFailed(f"{MANIFEST_FILENAME} is not valid JSON") from exc


def get_github_client() -> GitHubClient:
    """Build a client from settings. Callers own its lifetime."""
    return GitHubClient(token=settings.GITHUB_API_TOKEN)
