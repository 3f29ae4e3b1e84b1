"""Prometheus metrics for the reply relay.

Counters are updated by the inbound webhook service and exposed on /metrics.
"""

from prometheus_client import Counter, Histogram

inbound_messages_total = Counter(
    "klaro_inbound_messages_total",
    "Inbound replies stored",
    ["route", "confidence"]  # route: direct|smart, confidence: high|medium|low|none
)

inbound_rejections_total = Counter(
    "klaro_inbound_rejections_total",
    "Inbound webhook deliveries rejected",
    ["reason"]  # reason: invalid_signature|token_mismatch|recipient_unrecognized|...
)

inbound_duplicates_total = Counter(
    "klaro_inbound_duplicates_total",
    "Redelivered inbound messages skipped by Message-Id",
)

forwarding_failures_total = Counter(
    "klaro_forwarding_failures_total",
    "Inbound replies that could not be forwarded to the user",
)

attachment_archive_failures_total = Counter(
    "klaro_attachment_archive_failures_total",
    "Inbound attachments that could not be written to object storage",
)

webhook_duration_seconds = Histogram(
    "klaro_inbound_webhook_duration_seconds",
    "Time spent handling an inbound webhook delivery",
    ["outcome"],  # outcome: stored|duplicate|rejected|error
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)
