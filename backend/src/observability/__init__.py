"""Observability: structured logging, Prometheus metrics and health checks."""

from .logging_config import configure_logging, get_logger
from .metrics import (
    attachment_archive_failures_total,
    forwarding_failures_total,
    inbound_duplicates_total,
    inbound_messages_total,
    inbound_rejections_total,
    webhook_duration_seconds,
)
from .request_id import generate_request_id, get_request_id, request_id_var, set_request_id
from .health import ComponentHealth, HealthStatus
from .middleware import RequestIDMiddleware

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    # Metrics
    "attachment_archive_failures_total",
    "forwarding_failures_total",
    "inbound_duplicates_total",
    "inbound_messages_total",
    "inbound_rejections_total",
    "webhook_duration_seconds",
    # Request ID
    "request_id_var",
    "get_request_id",
    "set_request_id",
    "generate_request_id",
    # Health
    "HealthStatus",
    "ComponentHealth",
    # Middleware
    "RequestIDMiddleware",
]
