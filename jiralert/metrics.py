"""Prometheus metrics definitions."""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

requests_total = Counter(
    "jiralert_requests_total",
    "Alertmanager notifications handled, by receiver and returned HTTP status code",
    labelnames=["receiver", "code"],
)


def get_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
