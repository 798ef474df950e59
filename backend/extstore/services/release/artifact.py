"""Download .bpx packages and compute their content digest.

The digest and size are always computed from the bytes actually received.
Upstream claims (asset size, Content-Length) only serve to reject oversized
downloads early.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from extstore.config import settings
from extstore.services.errors import ArtifactDownloadFailed, ArtifactTooLarge

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ArtifactDigest:
    digest: str  # "sha256:<hex>"
    size_bytes: int


def format_digest(hex_digest: str) -> str:
    return f"sha256:{hex_digest}"


class ArtifactFetcher:
    def __init__(
        self,
        http_client: httpx.Client | None = None,
        max_size_bytes: int | None = None,
        token: str | None = None,
        deadline_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_size = max_size_bytes or settings.ARTIFACT_MAX_SIZE_BYTES
        self._deadline = deadline_seconds or settings.ARTIFACT_DOWNLOAD_DEADLINE_SECONDS
        self._clock = clock
        self._token = token if token is not None else settings.GITHUB_API_TOKEN
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(
            timeout=settings.ARTIFACT_DOWNLOAD_TIMEOUT_SECONDS,
            follow_redirects=True,
        )

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def _headers(self) -> dict:
        headers = {
            "User-Agent": settings.GITHUB_USER_AGENT,
            "Accept": "application/octet-stream",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _too_large(self) -> ArtifactTooLarge:
        return ArtifactTooLarge(
            f"Package too large (max {self._max_size // (1024 * 1024)}MB)"
        )

    def fetch(self, url: str) -> ArtifactDigest:
        """Stream the package, hashing as it arrives and aborting past the ceiling."""
        hasher = hashlib.sha256()
        received = 0
        started = self._clock()
        try:
            with self._http.stream("GET", url, headers=self._headers()) as response:
                if response.status_code >= 400:
                    raise ArtifactDownloadFailed(
                        f"Failed to download package: HTTP {response.status_code}"
                    )

                declared = _content_length(response)
                if declared is not None and declared > self._max_size:
                    raise self._too_large()

                for chunk in response.iter_bytes(CHUNK_SIZE):
                    received += len(chunk)
                    if received > self._max_size:
                        raise self._too_large()
                    hasher.update(chunk)
                    if self._clock() - started > self._deadline:
                        raise ArtifactDownloadFailed(
                            f"Package download exceeded {self._deadline:g}s: {url}"
                        )
        except httpx.TimeoutException as exc:
            raise ArtifactDownloadFailed(f"Package download timed out: {url}") from exc
        except httpx.HTTPError as exc:
            raise ArtifactDownloadFailed(f"Package download failed: {exc}") from exc

        if declared is not None and declared != received:
            logger.warning(
                f"Content-Length {declared} differs from received {received} bytes for {url}"
            )

        return ArtifactDigest(digest=format_digest(hasher.hexdigest()), size_bytes=received)


def _content_length(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
