"""Tests for release listing, manifest fetching and rate-limit backoff."""

import json

import httpx
import pytest

from extstore.services.errors import ManifestFetchFailed, UpstreamError, UpstreamRateLimited
from extstore.services.github.github_client import GitHubClient
from extstore.services.github.locator import RepositoryRef
from extstore.services.github.retry_policy import RetryPolicy

REF = RepositoryRef(host="github.com", owner="acme", name="widget")


def release_payload(tag, published_at, assets=("widget.bpx",), draft=False, prerelease=False):
    return {
        "tag_name": tag,
        "name": tag,
        "draft": draft,
        "prerelease": prerelease,
        "published_at": published_at,
        "body": f"Notes for {tag}",
        "assets": [
            {
                "name": name,
                "browser_download_url": f"https://github.com/acme/widget/releases/download/{tag}/{name}",
                "size": 1024,
            }
            for name in assets
        ],
    }


def make_client(handler, sleeps=None, max_attempts=3):
    sleeps = sleeps if sleeps is not None else []
    http = httpx.Client(base_url="https://api.github.com", transport=httpx.MockTransport(handler))
    return GitHubClient(
        token="test-token",
        api_url="https://api.github.com",
        raw_url="https://raw.githubusercontent.com",
        http_client=http,
        retry_policy=RetryPolicy(
            max_attempts=max_attempts,
            base_seconds=0.01,
            max_wait_seconds=5,
            sleep=sleeps.append,
        ),
    )


class TestListReleases:
    def test_releases_sorted_newest_first_without_drafts(self):
        def handler(request):
            assert request.url.path == "/repos/acme/widget/releases"
            assert request.headers["Authorization"] == "Bearer test-token"
            return httpx.Response(
                200,
                json=[
                    release_payload("v1.0.0", "2024-01-01T00:00:00Z"),
                    release_payload("v1.2.0", "2024-03-01T00:00:00Z"),
                    release_payload("v1.3.0", "2024-04-01T00:00:00Z", draft=True),
                    release_payload("v1.1.0", "2024-02-01T00:00:00Z"),
                ],
            )

        releases = make_client(handler).list_releases(REF)

        assert [r.tag for r in releases] == ["v1.2.0", "v1.1.0", "v1.0.0"]
        assert releases[0].assets[0].filename == "widget.bpx"
        assert releases[0].assets[0].declared_size_bytes == 1024
        assert releases[0].notes_raw == "Notes for v1.2.0"

    def test_follows_link_header_pagination(self):
        def handler(request):
            if request.url.params.get("page") == "2":
                return httpx.Response(200, json=[release_payload("v1.0.0", "2024-01-01T00:00:00Z")])
            return httpx.Response(
                200,
                json=[release_payload("v2.0.0", "2024-06-01T00:00:00Z")],
                headers={
                    "Link": '<https://api.github.com/repos/acme/widget/releases?per_page=30&page=2>; rel="next"'
                },
            )

        releases = make_client(handler).list_releases(REF)

        assert [r.tag for r in releases] == ["v2.0.0", "v1.0.0"]

    def test_missing_repository_yields_empty_list(self):
        client = make_client(lambda request: httpx.Response(404, json={"message": "Not Found"}))

        assert client.list_releases(REF) == []

    def test_repository_without_releases_yields_empty_list(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))

        assert client.list_releases(REF) == []

    def test_server_error_raises_upstream_error(self):
        client = make_client(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(UpstreamError):
            client.list_releases(REF)

    def test_transport_error_raises_upstream_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamError):
            make_client(handler).list_releases(REF)


class TestRateLimitBackoff:
    def test_retries_then_succeeds(self):
        calls = []
        sleeps = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, headers={"Retry-After": "2"})
            return httpx.Response(200, json=[release_payload("v1.0.0", "2024-01-01T00:00:00Z")])

        releases = make_client(handler, sleeps=sleeps).list_releases(REF)

        assert len(calls) == 2
        assert [r.tag for r in releases] == ["v1.0.0"]
        # Retry-After hint wins over the tiny exponential backoff
        assert sleeps == [2.0]

    def test_gives_up_after_attempt_ceiling(self):
        calls = []
        sleeps = []

        def handler(request):
            calls.append(request)
            return httpx.Response(
                403,
                json={"message": "API rate limit exceeded"},
                headers={"X-RateLimit-Remaining": "0"},
            )

        with pytest.raises(UpstreamRateLimited):
            make_client(handler, sleeps=sleeps, max_attempts=3).list_releases(REF)

        assert len(calls) == 3
        assert len(sleeps) == 2

    def test_wait_is_capped(self):
        sleeps = []

        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "3600"})

        with pytest.raises(UpstreamRateLimited):
            make_client(handler, sleeps=sleeps, max_attempts=2).list_releases(REF)

        assert sleeps == [5]

    def test_plain_forbidden_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403, json={"message": "Resource not accessible"})

        with pytest.raises(UpstreamError) as exc_info:
            make_client(handler).list_releases(REF)

        assert not isinstance(exc_info.value, UpstreamRateLimited)
        assert len(calls) == 1


class TestFetchManifest:
    def test_fetches_from_raw_host_at_tag(self):
        def handler(request):
            assert request.url.host == "raw.githubusercontent.com"
            assert request.url.path == "/acme/widget/v1.2.0/extension.json"
            return httpx.Response(200, content=json.dumps({"name": "acme.widget"}).encode())

        assert make_client(handler).fetch_manifest(REF, "v1.2.0") == {"name": "acme.widget"}

    def test_missing_manifest(self):
        client = make_client(lambda request: httpx.Response(404, text="404: Not Found"))

        with pytest.raises(ManifestFetchFailed, match="not found"):
            client.fetch_manifest(REF, "v1.2.0")

    def test_transport_failure_keeps_cause_out_of_message(self):
        def handler(request):
            raise httpx.ConnectError("[Errno -2] Name or service not known", request=request)

        with pytest.raises(ManifestFetchFailed) as exc_info:
            make_client(handler).fetch_manifest(REF, "v1.2.0")

        assert "Errno" not in exc_info.value.message
        assert "acme/widget@v1.2.0" in exc_info.value.message

    def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, text="{not json"))

        with pytest.raises(ManifestFetchFailed, match="not valid JSON"):
            client.fetch_manifest(REF, "v1.2.0")
