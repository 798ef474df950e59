"""
Prometheus Metrics Integration

This module sets up Prometheus metrics for the FastAPI application.
Metrics are exposed at /api/metrics endpoint.
"""

from typing import Callable

from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator, metrics
from prometheus_fastapi_instrumentator.metrics import Info

from extstore.config import settings

# Custom metrics for business logic
EXTENSION_SYNCS = Counter(
    "extension_syncs_total",
    "Total number of single-extension sync attempts",
    ["status"],  # success, failed, skipped
)

VERSIONS_ADDED = Counter(
    "extension_versions_added_total",
    "Total number of extension versions imported from upstream releases",
)

DIGEST_MISMATCHES = Counter(
    "extension_digest_mismatches_total",
    "Recorded versions whose upstream package bytes changed",
)

RELEASES_REJECTED = Counter(
    "extension_releases_rejected_total",
    "Upstream releases skipped because their content failed a check",
    ["code"],
)

BULK_SYNC_DURATION = Histogram(
    "extension_bulk_sync_duration_seconds",
    "Wall time of a bulk sync run",
    ["triggered_by"],  # schedule, admin
    buckets=[1, 5, 15, 30, 60, 120, 300, 600, 1200],
)

SUBMISSION_DECISIONS = Counter(
    "extension_submission_decisions_total",
    "Review decisions applied to submissions",
    ["status"],  # approved, rejected, needs_changes
)

RATE_LIMIT_REFUSALS = Counter(
    "rate_limit_refusals_total",
    "Requests refused by the public rate limiter",
    ["scope"],
)


def setup_prometheus(app):
    """
    Initialize Prometheus instrumentation for the FastAPI app.

    This sets up:
    - Default HTTP request metrics (latency, count)
    - /api/metrics endpoint for Prometheus scraping

    Instrumentation is only active when ENABLE_METRICS=true.
    """
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        excluded_handlers=["/api/metrics", "/api/health"],
    )

    instrumentator.add(
        metrics.latency(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
        )
    )
    instrumentator.add(
        metrics.requests(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
        )
    )
    instrumentator.add(build_info())

    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint="/api/metrics", include_in_schema=False)

    return instrumentator


def build_info() -> Callable[[Info], None]:
    """Expose the running version once at startup."""
    from prometheus_client import Info as PrometheusInfo

    app_info_metric = PrometheusInfo("extension_store_app", "Extension store API info")
    app_info_metric.info({"version": settings.APP_VERSION, "app_name": settings.APP_NAME})

    def instrumentation(info: Info) -> None:
        pass

    return instrumentation


# Helper functions for recording business metrics
def record_sync(status: str, versions_added: int = 0, mismatches: int = 0):
    EXTENSION_SYNCS.labels(status=status).inc()
    if versions_added:
        VERSIONS_ADDED.inc(versions_added)
    if mismatches:
        DIGEST_MISMATCHES.inc(mismatches)


def record_release_rejected(code: str):
    RELEASES_REJECTED.labels(code=code).inc()


def record_bulk_sync_duration(triggered_by: str, duration_seconds: float):
    """Record a bulk run under its trigger kind ("admin:x" becomes "admin")."""
    kind = triggered_by.split(":", 1)[0]
    BULK_SYNC_DURATION.labels(triggered_by=kind).observe(duration_seconds)


def record_submission_decision(status: str):
    SUBMISSION_DECISIONS.labels(status=status).inc()


def record_rate_limit_refusal(scope: str):
    RATE_LIMIT_REFUSALS.labels(scope=scope).inc()
