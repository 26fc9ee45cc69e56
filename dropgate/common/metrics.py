"""Prometheus metric definitions for the relay."""

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
webhook_events_total = Counter(
    "webhook_events_total",
    "Inbound webhook deliveries by boundary outcome",
    ["service", "outcome"],
)
duplicate_transactions_skipped_total = Counter(
    "duplicate_transactions_skipped_total",
    "Redelivered transactions short-circuited by the idempotency gate",
    ["service"],
)
download_tokens_issued_total = Counter(
    "download_tokens_issued_total",
    "Download tokens minted and persisted",
    ["service"],
)
undeliverable_transactions_total = Counter(
    "undeliverable_transactions_total",
    "Transactions recorded without a resolvable deliverable",
    ["service"],
)
notification_failures_total = Counter(
    "notification_failures_total",
    "Best-effort notification calls that failed",
    ["service", "kind"],
)
downloads_total = Counter(
    "downloads_total",
    "Download requests by gateway outcome",
    ["service", "outcome"],
)


def metrics_response(registry: CollectorRegistry = REGISTRY) -> Response:
    return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
