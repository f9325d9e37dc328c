"""Prometheus metric definitions shared across the bridge."""

from prometheus_client import Counter, Gauge, Histogram, generate_latest
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
gateway_requests_total = Counter(
    "gateway_requests_total",
    "Outbound QPay calls by operation and outcome",
    ["operation", "outcome"],
)
gateway_latency_seconds = Histogram(
    "gateway_latency_seconds",
    "Outbound QPay call latency seconds",
    ["operation"],
)
token_refresh_total = Counter("token_refresh_total", "Bearer token refreshes against QPay auth")
invoices_created_total = Counter("invoices_created_total", "Invoices created", ["promo"])
invoice_failures_total = Counter("invoice_failures_total", "Invoice creations that failed")
status_checks_total = Counter(
    "status_checks_total",
    "Payment status checks by answering source",
    ["source"],
)
callbacks_total = Counter("callbacks_total", "Gateway payment callbacks by outcome", ["outcome"])
promo_lookup_failures_total = Counter("promo_lookup_failures_total", "Promo code lookups that failed open")
emails_total = Counter("emails_total", "Outbound emails by kind and outcome", ["kind", "outcome"])
payment_records = Gauge("payment_records", "In-memory payment records currently held")


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
