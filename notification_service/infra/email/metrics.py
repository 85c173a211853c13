"""Prometheus metrics for email delivery and the delivery queue.

Usage:
    from notification_service.infra.email.metrics import email_delivery_total

    email_delivery_total.labels(provider="smtp", status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Delivery Metrics
# =============================================================================

email_delivery_total = Counter(
    "notification_email_delivery_total",
    "Total number of email delivery attempts per backend",
    labelnames=["provider", "status"],
)
"""
Counter for every backend call made by the failover sender.

Labels:
    provider: sendgrid or smtp
    status: success, failed, timeout
"""

email_delivery_duration_seconds = Histogram(
    "notification_email_delivery_duration_seconds",
    "Email backend call duration in seconds",
    labelnames=["provider"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
"""
Histogram of backend call latency.

Buckets:
    - 0.05s-0.25s: local SMTP relay
    - 0.5s-2.5s: HTTP API
    - 5s-30s: slow calls up to the per-call timeout
"""

# =============================================================================
# Queue Metrics
# =============================================================================

email_queue_jobs_total = Counter(
    "notification_email_queue_jobs_total",
    "Delivery queue job transitions",
    labelnames=["outcome"],
)
"""
Counter of queue job outcomes.

Labels:
    outcome: enqueued, succeeded, retrying, terminal_failure, rate_limited, dropped
"""

email_queue_depth = Gauge(
    "notification_email_queue_depth",
    "Number of jobs currently waiting in the delivery queue",
)
