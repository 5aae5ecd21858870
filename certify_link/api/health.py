"""
Health check endpoints.

/health is cheap and only touches our own database; load balancers
poll it. /health/detailed also reports on ORASS and ASACI.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from certify_link.api.deps import get_orass_service
from certify_link.config import get_settings
from certify_link.models.base import get_db
from certify_link.services.orass_service import OrassService

logger = logging.getLogger(__name__)

SERVICE_NAME = "certify-link"

router = APIRouter(tags=["Health"])


def _database_status(db: Session) -> str:
    try:
        db.execute(text("SELECT 1"))
        return "healthy"
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        return "unhealthy"


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Return application health status including database connectivity.

    If the database does not answer, the instance reports itself
    as degraded.
    """
    db_status = _database_status(db)
    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": SERVICE_NAME,
        "database": db_status,
    }


@router.get("/health/detailed")
def detailed_health_check(
    db: Session = Depends(get_db),
    orass: OrassService = Depends(get_orass_service),
):
    settings = get_settings()
    db_status = _database_status(db)
    orass_health = orass.health_check()
    asaci_configured = bool(settings.ASACI_BASE_URL) and bool(
        settings.ASACI_API_KEY or (settings.ASACI_EMAIL and settings.ASACI_PASSWORD)
    )

    checks = [db_status, orass_health["status"]]
    if db_status != "healthy":
        status = "unhealthy"
    elif all(check == "healthy" for check in checks) and asaci_configured:
        status = "healthy"
    else:
        status = "degraded"

    return {
        "status": status,
        "service": SERVICE_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.utcnow(),
        "database": db_status,
        "orass": orass_health,
        "asaci": {
            "configured": asaci_configured,
            "base_url": settings.ASACI_BASE_URL,
        },
    }
