"""Health check utilities.

Provides health and readiness checks for the database and the attachment
bucket.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from domain.attachments.ports import AttachmentStoragePort, StorageError
from .logging_config import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    """Health status for a single component."""
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None


def check_database_health(db: Session) -> ComponentHealth:
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message="Database unreachable",
        )

    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message="Database connection OK",
        latency_ms=round(latency_ms, 2),
    )


def check_object_storage_health(storage: Optional[AttachmentStoragePort]) -> ComponentHealth:
    """Check the attachment bucket.

    Storage that could not be configured reports DEGRADED: replies are still
    stored, only attachment archiving is skipped.
    """
    if storage is None:
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            message="Object storage not configured",
        )

    try:
        start = time.time()
        storage.check_health()
        latency_ms = (time.time() - start) * 1000
    except StorageError as e:
        logger.error(f"Object storage health check failed: {e}")
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            message=str(e),
        )

    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message="Object storage connection OK",
        latency_ms=round(latency_ms, 2),
    )


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    """Determine overall health from component statuses."""
    if all(c.status == HealthStatus.HEALTHY for c in components.values()):
        return HealthStatus.HEALTHY

    if any(c.status == HealthStatus.UNHEALTHY for c in components.values()):
        return HealthStatus.UNHEALTHY

    return HealthStatus.DEGRADED
