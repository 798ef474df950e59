"""Tests for asset selection, manifest checks, package hashing, changelogs and reconciliation."""

import hashlib
import itertools
from types import SimpleNamespace

import httpx
import pytest

from conftest import BASE_TIME, make_manifest, make_release
from extstore.services.errors import (
    AmbiguousInstallableAsset,
    ArtifactDownloadFailed,
    ArtifactTooLarge,
    ManifestSchemaInvalid,
    ManifestVersionMismatch,
)
from extstore.services.release.artifact import ArtifactDigest, ArtifactFetcher
from extstore.services.release.assets import find_bpx_asset, find_latest_release_with_bpx
from extstore.services.release.changelog import TRUNCATION_MARKER, sanitize_changelog
from extstore.services.release.manifest import (
    ManifestInvalid,
    ManifestValid,
    ensure_valid,
    validate_manifest,
)
from extstore.services.release.reconciler import ReleaseCandidate, reconcile
from extstore.services.release.versioning import normalize_version, pick_latest, semver_key


class TestAssetSelection:
    def test_single_package_is_selected(self):
        release = make_release("v1.0.0", assets=["README.md", "widget.bpx", "widget.zip"])

        assert find_bpx_asset(release).filename == "widget.bpx"

    def test_extension_match_is_case_insensitive(self):
        assert find_bpx_asset(make_release("v1.0.0", assets=["Widget.BPX"])) is not None

    def test_no_package(self):
        assert find_bpx_asset(make_release("v1.0.0", assets=["widget.zip"])) is None

    def test_two_packages_are_ambiguous(self):
        release = make_release("v1.0.0", assets=["widget.bpx", "widget-debug.bpx"])

        with pytest.raises(AmbiguousInstallableAsset):
            find_bpx_asset(release)

    def test_latest_skips_releases_without_package(self):
        releases = [
            make_release("v1.2.0", days=3, assets=[]),
            make_release("v1.1.0", days=2),
            make_release("v1.0.0", days=1),
        ]

        release, asset = find_latest_release_with_bpx(releases)

        assert release.tag == "v1.1.0"
        assert asset.filename == "widget.bpx"

    def test_prerelease_skipped_by_default(self):
        releases = [
            make_release("v2.0.0-beta.1", days=3, prerelease=True),
            make_release("v1.0.0", days=1),
        ]

        release, _ = find_latest_release_with_bpx(releases)

        assert release.tag == "v1.0.0"

    def test_prerelease_used_only_as_fallback(self):
        releases = [
            make_release("v2.0.0-beta.2", days=3, prerelease=True),
            make_release("v2.0.0-beta.1", days=2, prerelease=True),
            make_release("v1.0.0", days=1, assets=[]),
        ]

        assert find_latest_release_with_bpx(releases) is None
        release, _ = find_latest_release_with_bpx(releases, fallback_to_prerelease=True)
        assert release.tag == "v2.0.0-beta.2"


class TestManifestValidation:
    def test_matching_manifest_is_valid(self):
        result = validate_manifest(make_manifest(version="1.2.0"), "v1.2.0")

        assert isinstance(result, ManifestValid)
        assert result.manifest.name == "acme.widget"
        assert result.manifest.display_name == "Widget"

    def test_unknown_keys_are_tolerated(self):
        raw = make_manifest(version="1.0.0", id="legacy-id", custom={"a": 1})

        assert validate_manifest(raw, "1.0.0").ok

    def test_version_must_match_tag(self):
        result = validate_manifest(make_manifest(version="1.2.0"), "v1.3.0")

        assert isinstance(result, ManifestInvalid)
        assert result.version_mismatch
        with pytest.raises(ManifestVersionMismatch) as exc_info:
            ensure_valid(result, "v1.3.0")
        assert '"1.2.0"' in exc_info.value.message
        assert '"v1.3.0"' in exc_info.value.message

    def test_all_problems_are_reported_together(self):
        raw = make_manifest(version="not-a-version")
        del raw["name"]
        raw["permissions"] = [""]

        result = validate_manifest(raw, "v1.0.0")

        assert not result.ok
        assert len(result.errors) >= 3
        assert any("missing required field: name" in e for e in result.errors)
        assert any("version" in e for e in result.errors)
        with pytest.raises(ManifestSchemaInvalid) as exc_info:
            ensure_valid(result, "v1.0.0")
        assert exc_info.value.details == result.errors

    def test_non_object_manifest(self):
        result = validate_manifest(["not", "an", "object"], "v1.0.0")

        assert result.errors == ["extension.json must be a valid JSON object"]

    def test_numbers_are_not_coerced_to_strings(self):
        raw = make_manifest(version="1.0.0", displayName=42)

        assert not validate_manifest(raw, "v1.0.0").ok


def fetcher_for(handler, max_size_bytes=1024):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return ArtifactFetcher(http_client=http, max_size_bytes=max_size_bytes, token="")


class TestArtifactFetcher:
    URL = "https://github.com/acme/widget/releases/download/v1.0.0/widget.bpx"

    def test_digest_is_computed_from_received_bytes(self):
        payload = b"PK\x03\x04 extension bytes"
        fetcher = fetcher_for(lambda request: httpx.Response(200, content=payload))

        result = fetcher.fetch(self.URL)

        assert result == ArtifactDigest(
            digest="sha256:" + hashlib.sha256(payload).hexdigest(),
            size_bytes=len(payload),
        )

    def test_oversized_content_length_is_rejected(self):
        fetcher = fetcher_for(lambda request: httpx.Response(200, content=b"x" * 20), max_size_bytes=10)

        with pytest.raises(ArtifactTooLarge):
            fetcher.fetch(self.URL)

    def test_oversized_stream_without_length_is_rejected(self):
        def handler(request):
            return httpx.Response(200, content=iter([b"a" * 8, b"b" * 8]))

        with pytest.raises(ArtifactTooLarge):
            fetcher_for(handler, max_size_bytes=10).fetch(self.URL)

    def test_slow_download_stops_at_deadline(self):
        ticks = itertools.count(0, 50)
        http = httpx.Client(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, content=iter([b"a" * 8, b"b" * 8]))
            )
        )
        fetcher = ArtifactFetcher(
            http_client=http, max_size_bytes=1024, token="", deadline_seconds=30, clock=ticks.__next__
        )

        with pytest.raises(ArtifactDownloadFailed, match="exceeded 30s"):
            fetcher.fetch(self.URL)

    def test_http_error(self):
        fetcher = fetcher_for(lambda request: httpx.Response(404))

        with pytest.raises(ArtifactDownloadFailed, match="HTTP 404"):
            fetcher.fetch(self.URL)

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection reset", request=request)

        with pytest.raises(ArtifactDownloadFailed):
            fetcher_for(handler).fetch(self.URL)


class TestChangelogSanitizer:
    def test_script_blocks_removed(self):
        assert sanitize_changelog("<script>alert(1)</script>Fixed a bug") == "Fixed a bug"

    def test_event_handlers_removed(self):
        result = sanitize_changelog('Notes <img src=x onerror="alert(1)"> end')

        assert "onerror" not in result
        assert "<img" not in result

    def test_script_urls_removed(self):
        result = sanitize_changelog("[click me](javascript:alert(1))")

        assert "javascript:" not in result.lower()
        assert "click me" in result

    def test_nested_markup_does_not_survive(self):
        body = "<scr<script>ipt>alert(1)</scr</script>ipt> ok"

        result = sanitize_changelog(body)

        assert "<script" not in result.lower()
        assert sanitize_changelog(result) == result

    def test_markdown_is_kept(self):
        body = "## Fixes\n\n- Faster **startup**\n- See [docs](https://example.com)"

        assert sanitize_changelog(body) == body

    @pytest.mark.parametrize(
        "body",
        [
            "Requires BluePLM < 2.0 and firmware > 1.5",
            "See <https://example.com/docs> for details",
            "Set `online = true` in config",
            "List<Item> and Map<K, V>",
            "Stores metadata: name and version",
        ],
    )
    def test_plain_text_with_angle_brackets_is_kept(self, body):
        assert sanitize_changelog(body) == body

    def test_handler_removed_from_unclosed_tag(self):
        result = sanitize_changelog('Notes <svg onload="alert(1)"')

        assert "onload" not in result
        assert result.startswith("Notes")

    def test_html_comments_removed(self):
        assert sanitize_changelog("Fixed <!-- <b>hidden</b> --> crash") == "Fixed  crash"

    def test_custom_elements_removed(self):
        assert sanitize_changelog("<x-widget>Ready</x-widget>") == "Ready"

    def test_long_notes_truncated_once(self):
        result = sanitize_changelog("a" * 50, max_length=10)

        assert result == "a" * 10 + TRUNCATION_MARKER
        assert sanitize_changelog(result, max_length=10) == result

    @pytest.mark.parametrize("body", [None, "", "   "])
    def test_empty_notes(self, body):
        assert sanitize_changelog(body) == ""


class TestVersioning:
    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("v1.2.0", "1.2.0"),
            ("V1.2.0", "1.2.0"),
            ("release/2.0.0", "2.0.0"),
            ("1.0.0-beta.1", "1.0.0-beta.1"),
            ("nightly", "nightly"),
        ],
    )
    def test_normalize_version(self, tag, expected):
        assert normalize_version(tag) == expected

    def test_prerelease_precedence(self):
        ordered = [
            "1.0.0-alpha",
            "1.0.0-alpha.1",
            "1.0.0-alpha.beta",
            "1.0.0-beta",
            "1.0.0-beta.2",
            "1.0.0-beta.11",
            "1.0.0-rc.1",
            "1.0.0-rc.1.2",
            "1.0.0",
        ]

        assert sorted(reversed(ordered), key=semver_key) == ordered
        assert semver_key("1.0.0+build.5") == semver_key("1.0.0")

    def test_latest_uses_semantic_order(self):
        versions = [
            SimpleNamespace(version="1.9.0", prerelease=False, published_at=BASE_TIME),
            SimpleNamespace(version="1.10.0", prerelease=False, published_at=BASE_TIME),
            SimpleNamespace(version="2.0.0-rc.1", prerelease=True, published_at=BASE_TIME),
        ]

        assert pick_latest(versions) == "1.10.0"

    def test_prerelease_only_when_nothing_stable(self):
        versions = [
            SimpleNamespace(version="1.0.0-alpha", prerelease=True, published_at=BASE_TIME),
            SimpleNamespace(version="1.0.0-alpha.1", prerelease=True, published_at=BASE_TIME),
        ]

        assert pick_latest(versions) == "1.0.0-alpha.1"

    def test_non_semantic_versions_fall_back_to_publish_date(self):
        from datetime import timedelta

        versions = [
            SimpleNamespace(version="2024.03", prerelease=False, published_at=BASE_TIME + timedelta(days=2)),
            SimpleNamespace(version="2024.10", prerelease=False, published_at=BASE_TIME),
        ]

        assert pick_latest(versions) == "2024.03"

    def test_no_versions(self):
        assert pick_latest([]) is None


def candidate(tag, days, digest):
    release = make_release(tag, days=days)
    return ReleaseCandidate(
        version=normalize_version(tag),
        release=release,
        asset=release.assets[0],
        artifact=ArtifactDigest(digest=digest, size_bytes=10) if digest else None,
    )


class TestReconcile:
    def test_new_versions_ordered_oldest_first(self):
        candidates = [
            candidate("v1.2.0", 3, "sha256:c"),
            candidate("v1.1.0", 2, "sha256:b"),
            candidate("v1.0.0", 1, "sha256:a"),
        ]
        persisted = [SimpleNamespace(version="1.0.0", artifact_digest="sha256:a")]

        plan = reconcile(candidates, persisted)

        assert [c.version for c in plan.new] == ["1.1.0", "1.2.0"]
        assert plan.unchanged == ["1.0.0"]
        assert plan.mismatches == []

    def test_changed_bytes_reported_not_replaced(self):
        persisted = [SimpleNamespace(version="1.0.0", artifact_digest="sha256:original")]

        plan = reconcile([candidate("v1.0.0", 1, "sha256:tampered")], persisted)

        assert plan.new == []
        assert len(plan.mismatches) == 1
        mismatch = plan.mismatches[0]
        assert mismatch.stored_digest == "sha256:original"
        assert mismatch.observed_digest == "sha256:tampered"
        assert persisted[0].artifact_digest == "sha256:original"

    def test_unverified_recorded_version_is_unchanged(self):
        persisted = [SimpleNamespace(version="1.0.0", artifact_digest="sha256:a")]

        plan = reconcile([candidate("v1.0.0", 1, None)], persisted)

        assert plan.unchanged == ["1.0.0"]

    def test_versions_gone_upstream_are_left_alone(self):
        persisted = [SimpleNamespace(version="0.9.0", artifact_digest="sha256:old")]

        plan = reconcile([], persisted)

        assert plan.new == [] and plan.mismatches == [] and plan.unchanged == []
