"""Parse user-supplied repository URLs into owner/name references."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from extstore.services.errors import InvalidRepositoryUrl

SUPPORTED_HOST = "github.com"

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
_SSH_RE = re.compile(r"^git@github\.com:([^/]+)/([^/]+?)(?:\.git)?/?$")
_SHORTHAND_RE = re.compile(r"^([^/\s:]+)/([^/\s:]+)$")


@dataclass(frozen=True)
class RepositoryRef:
    host: str
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def web_url(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.name}"


def _build_ref(owner: str, name: str, raw: str) -> RepositoryRef:
    if name.endswith(".git"):
        name = name[: -len(".git")]
    for segment in (owner, name):
        if not segment or segment in (".", "..") or not _SEGMENT_RE.match(segment):
            raise InvalidRepositoryUrl(f"Invalid repository URL: {raw!r}")
    return RepositoryRef(host=SUPPORTED_HOST, owner=owner, name=name)


def parse_repository_url(value: str | None) -> RepositoryRef:
    """
    Parse a repository reference.

    Supports formats:
    - https://github.com/owner/repo (optionally .git, trailing slash, sub-paths)
    - git@github.com:owner/repo.git
    - owner/repo

    Raises:
        InvalidRepositoryUrl: for empty input, another host, or fewer than
            two path segments. No network access is performed.
    """
    raw = (value or "").strip()
    if not raw:
        raise InvalidRepositoryUrl("Repository URL is required")

    ssh_match = _SSH_RE.match(raw)
    if ssh_match:
        return _build_ref(ssh_match.group(1), ssh_match.group(2), raw)

    if "://" not in raw:
        shorthand = _SHORTHAND_RE.match(raw)
        if shorthand and "." not in shorthand.group(1):
            return _build_ref(shorthand.group(1), shorthand.group(2), raw)
        # "github.com/owner/repo" without a scheme
        raw_url = f"https://{raw}"
    else:
        raw_url = raw

    parsed = urlparse(raw_url)
    if parsed.scheme not in ("http", "https"):
        raise InvalidRepositoryUrl(f"Unsupported URL scheme: {parsed.scheme!r}")

    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[len("www."):]
    if host != SUPPORTED_HOST:
        raise InvalidRepositoryUrl(
            f"Only {SUPPORTED_HOST} repositories are supported (got {host or 'no host'!r})"
        )

    segments = [part for part in parsed.path.split("/") if part]
    if len(segments) < 2:
        raise InvalidRepositoryUrl("Repository URL must include both owner and repository name")

    return _build_ref(segments[0], segments[1], raw)
