"""Domain exceptions for release sync and submission review.

Every error carries a stable machine-readable ``code`` and the HTTP status it
maps to. The API layer renders them into the standard error envelope; bulk
sync catches them per extension and records ``str(exc)``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class StoreError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "BAD_REQUEST"
    status_code = 400
    # Safe to show on public endpoints
    public_message: Optional[str] = None

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class InvalidRepositoryUrl(StoreError):
    code = "INVALID_REPOSITORY_URL"


class UpstreamNotFound(StoreError):
    code = "UPSTREAM_NOT_FOUND"
    status_code = 404


class UpstreamError(StoreError):
    """Transport, auth or server failure talking to the release host."""

    code = "UPSTREAM_ERROR"
    status_code = 502
    public_message = "Could not reach the release host. Please try again later."


class UpstreamRateLimited(UpstreamError):
    code = "UPSTREAM_RATE_LIMITED"
    status_code = 503
    public_message = "The release host is rate limiting requests. Please try again later."

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class NoInstallableAsset(StoreError):
    code = "NO_INSTALLABLE_ASSET"
    status_code = 422


class AmbiguousInstallableAsset(StoreError):
    code = "AMBIGUOUS_INSTALLABLE_ASSET"
    status_code = 422


class ManifestFetchFailed(StoreError):
    code = "MANIFEST_FETCH_FAILED"
    status_code = 422


class ManifestSchemaInvalid(StoreError):
    code = "MANIFEST_SCHEMA_INVALID"
    status_code = 422


class ManifestVersionMismatch(ManifestSchemaInvalid):
    code = "MANIFEST_VERSION_MISMATCH"


class ArtifactTooLarge(StoreError):
    code = "ARTIFACT_TOO_LARGE"
    status_code = 422


class ArtifactDownloadFailed(StoreError):
    code = "ARTIFACT_DOWNLOAD_FAILED"
    status_code = 502
    public_message = "Could not download the extension package."


class VersionDigestMismatch(StoreError):
    """Reported in sync results, never raised out of a sync run."""

    code = "VERSION_DIGEST_MISMATCH"
    status_code = 409


class NameCollision(StoreError):
    code = "NAME_COLLISION"
    status_code = 409


class RateLimitExceeded(StoreError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429

    def __init__(
        self,
        retry_after: int,
        message: str = "Rate limit exceeded. Please try again later.",
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.retry_after = retry_after
        # X-RateLimit-* values echoed on the 429 response
        self.headers = headers or {}


class NotAuthenticated(StoreError):
    code = "UNAUTHORIZED"
    status_code = 401


class NotAuthorized(StoreError):
    code = "FORBIDDEN"
    status_code = 403


class ExtensionNotFound(StoreError):
    code = "NOT_FOUND"
    status_code = 404


class SubmissionNotFound(StoreError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidSubmissionState(StoreError):
    code = "INVALID_SUBMISSION_STATE"
    status_code = 409


class DuplicateSubmission(StoreError):
    code = "DUPLICATE_SUBMISSION"
    status_code = 409


class ReviewNotesRequired(StoreError):
    code = "REVIEW_NOTES_REQUIRED"
