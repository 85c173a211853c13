"""Prometheus metrics for push delivery."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

push_delivery_total = Counter(
    "notification_push_delivery_total",
    "Push gateway calls by outcome",
    labelnames=["provider", "status"],
)
"""
Labels:
    provider: firebase or webpush
    status: success, failed, timeout
"""

push_delivery_duration_seconds = Histogram(
    "notification_push_delivery_duration_seconds",
    "Push gateway call duration in seconds",
    labelnames=["provider"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

push_invalid_targets_total = Counter(
    "notification_push_invalid_targets_total",
    "Device tokens or browser subscriptions reported as invalid or expired",
    labelnames=["provider"],
)
