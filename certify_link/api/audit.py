"""
Audit API endpoints: operation logs and reports.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from certify_link.api.deps import page_count, require_permissions, require_roles
from certify_link.models.base import get_db
from certify_link.models.user import User
from certify_link.schemas.audit import (
    OperationLogFilter,
    OperationLogPage,
    OperationLogResponse,
    OperationStatistics,
    SuspiciousActivityReport,
    UserActivity,
)
from certify_link.services.audit_service import AuditService

router = APIRouter(prefix="/audit", tags=["Audit"])

read_logs = require_permissions("logs.read")


@router.get("/logs", response_model=OperationLogPage)
def list_logs(
    filters: Annotated[OperationLogFilter, Query()],
    user: User = Depends(read_logs),
    db: Session = Depends(get_db),
):
    items, total = AuditService(db).list_logs(filters)
    return OperationLogPage(
        items=[OperationLogResponse.model_validate(i) for i in items],
        total=total,
        page=filters.page,
        limit=filters.limit,
        pages=page_count(total, filters.limit),
    )


@router.get("/statistics", response_model=OperationStatistics)
def statistics(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    user: User = Depends(read_logs),
    db: Session = Depends(get_db),
):
    return AuditService(db).get_statistics(start_date, end_date)


@router.get("/users/{user_id}/activity", response_model=UserActivity)
def user_activity(
    user_id: int,
    days: int = Query(default=30, ge=1, le=365),
    user: User = Depends(read_logs),
    db: Session = Depends(get_db),
):
    return AuditService(db).get_user_activity(user_id, days)


@router.get("/suspicious-activity", response_model=SuspiciousActivityReport)
def suspicious_activity(
    window_minutes: int = Query(default=60, ge=1, le=24 * 60),
    threshold: int = Query(default=5, ge=1),
    user: User = Depends(read_logs),
    db: Session = Depends(get_db),
):
    """IP addresses with repeated failed logins in the recent window."""
    return AuditService(db).detect_suspicious_activity(window_minutes, threshold)


@router.post("/cleanup")
def cleanup_logs(
    retention_days: int = Query(default=365, ge=1),
    admin: User = Depends(require_roles("ADMIN", "SUPER_ADMIN")),
    db: Session = Depends(get_db),
):
    """Delete operation logs older than retention_days."""
    deleted = AuditService(db).cleanup_old_logs(retention_days)
    db.commit()
    return {"deleted": deleted, "retention_days": retention_days}
