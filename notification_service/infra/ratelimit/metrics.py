"""Prometheus metrics for backend rate limiting."""

from __future__ import annotations

from prometheus_client import Counter

rate_limit_hits_total = Counter(
    "notification_rate_limit_hits_total",
    "Send checks denied because the backend's rate-limit window is exhausted",
    ["backend"],
)
"""Rate limit denials per backend.

Labels:
    - backend: sendgrid, smtp, firebase, webpush
"""
