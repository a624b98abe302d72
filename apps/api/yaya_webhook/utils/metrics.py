"""Prometheus metrics."""

from prometheus_client import Counter, Gauge, Histogram

# Verification metrics
webhook_verifications = Counter(
    "yaya_webhook_verifications_total",
    "Total webhook verification outcomes",
    ["outcome"],
)

# Processing metrics
webhook_processing = Counter(
    "yaya_webhook_processing_total",
    "Total background processing outcomes",
    ["status"],
)

webhook_processing_duration = Histogram(
    "yaya_webhook_processing_duration_seconds",
    "Background processing duration",
)

webhook_processing_in_flight = Gauge(
    "yaya_webhook_processing_in_flight",
    "Background processing tasks not yet finished",
)

# Rate limit metrics
rate_limit_rejections = Counter(
    "yaya_webhook_rate_limit_rejections_total",
    "Requests rejected by the rate limiter",
)
