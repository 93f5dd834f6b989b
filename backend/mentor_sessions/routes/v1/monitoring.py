# backend/mentor_sessions/routes/v1/monitoring.py
"""
Prometheus metrics and health endpoints.

Both are public, following standard Prometheus and load balancer practice.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...api.dependencies import get_db
from ...core.config import settings
from ...monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

router = APIRouter(tags=["monitoring"])


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    """Prometheus exposition of the service operation and negotiation metrics."""
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )


@router.get("/health")
def health(db: Session = Depends(get_db)) -> Dict[str, Any]:
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Health check database probe failed: %s", exc)
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "service": settings.app_name,
        "environment": settings.environment,
        "database": database,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
