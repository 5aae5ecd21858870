"""
Audit service: operation logs, certificate history and reports.

Two trails are kept:

* OperationLog: one row per call to ORASS, ASACI or the auth flow,
  with timing and outcome. track_operation() wraps a block of code
  and records how it ended.
* CertificateAuditLog: what happened to one certificate request,
  in order.

Like every service, this one only flushes; the caller commits.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterator

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from certify_link.exceptions import ErrorCode, ExternalServiceError
from certify_link.models.asaci_request import AsaciRequest
from certify_link.models.certificate_audit_log import CertificateAuditLog
from certify_link.models.enums import (
    CertificateAuditAction,
    OperationStatus,
    OperationType,
)
from certify_link.models.operation_log import OperationLog
from certify_link.schemas.audit import OperationLogFilter

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Who/where a request came from, attached to every log row."""
    ip_address: str | None = None
    user_agent: str | None = None
    correlation_id: str | None = None


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class AuditService:

    def __init__(self, db: Session, context: RequestContext | None = None):
        self.db = db
        self.context = context or RequestContext()

    # --- Operation logs ---

    def log_operation(
        self,
        operation_type: OperationType,
        status: OperationStatus,
        user_id: int | None = None,
        asaci_request_id: int | None = None,
        method: str | None = None,
        endpoint: str | None = None,
        request_data: dict[str, Any] | None = None,
        response_data: dict[str, Any] | None = None,
        response_status: int | None = None,
        error_message: str | None = None,
        error_code: str | None = None,
        execution_time_ms: int | None = None,
        extra: dict[str, Any] | None = None,
    ) -> OperationLog:
        """Write a single, already-finished operation."""
        now = datetime.utcnow()
        entry = OperationLog(
            operation_type=operation_type,
            status=status,
            user_id=user_id,
            asaci_request_id=asaci_request_id,
            method=method,
            endpoint=endpoint,
            request_data=request_data,
            response_data=response_data,
            response_status=response_status,
            error_message=error_message,
            error_code=error_code,
            execution_time_ms=execution_time_ms,
            ip_address=self.context.ip_address,
            user_agent=self.context.user_agent,
            correlation_id=self.context.correlation_id,
            extra=extra,
            created_at=now,
            completed_at=None if status == OperationStatus.STARTED else now,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    @contextmanager
    def track_operation(
        self,
        operation_type: OperationType,
        user_id: int | None = None,
        asaci_request_id: int | None = None,
        method: str | None = None,
        endpoint: str | None = None,
        request_data: dict[str, Any] | None = None,
    ) -> Iterator[OperationLog]:
        """
        Record an operation around a block of code.

        A STARTED row is written on entry. On normal exit it becomes
        SUCCESS; on an exception it becomes FAILED (or TIMEOUT) with
        the error attached, and the exception propagates unchanged.
        The block may set response_data/response_status on the
        yielded entry.
        """
        entry = self.log_operation(
            operation_type,
            OperationStatus.STARTED,
            user_id=user_id,
            asaci_request_id=asaci_request_id,
            method=method,
            endpoint=endpoint,
            request_data=request_data,
        )
        started = time.perf_counter()
        try:
            yield entry
        except Exception as e:
            entry.status = OperationStatus.FAILED
            if isinstance(e, ExternalServiceError) and e.details.get("timeout"):
                entry.status = OperationStatus.TIMEOUT
            entry.error_message = str(e)
            code = getattr(e, "code", None)
            entry.error_code = code.value if isinstance(code, ErrorCode) else code
            upstream_status = getattr(e, "details", {}).get("status_code")
            if upstream_status:
                entry.response_status = upstream_status
            raise
        else:
            entry.status = OperationStatus.SUCCESS
        finally:
            entry.execution_time_ms = _elapsed_ms(started)
            entry.completed_at = datetime.utcnow()
            self.db.flush()
            logger.info(
                "%s %s in %sms",
                operation_type.value,
                entry.status.value,
                entry.execution_time_ms,
            )

    # --- Certificate history ---

    def record_certificate_event(
        self,
        asaci_request: AsaciRequest,
        action: CertificateAuditAction,
        user_id: int | None = None,
        old_status: str | None = None,
        new_status: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> CertificateAuditLog:
        entry = CertificateAuditLog(
            asaci_request_id=asaci_request.id,
            user_id=user_id,
            action=action,
            old_status=old_status,
            new_status=new_status,
            details=details,
            ip_address=self.context.ip_address,
            user_agent=self.context.user_agent,
            timestamp=datetime.utcnow(),
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def get_request_history(self, asaci_request_id: int) -> list[CertificateAuditLog]:
        entries = self.db.execute(
            select(CertificateAuditLog)
            .where(CertificateAuditLog.asaci_request_id == asaci_request_id)
            .order_by(CertificateAuditLog.timestamp, CertificateAuditLog.id)
        ).scalars().all()
        return list(entries)

    # --- Queries and reports ---

    def list_logs(self, filters: OperationLogFilter) -> tuple[list[OperationLog], int]:
        """Filtered, newest-first page of operation logs and the total count."""
        conditions = []
        if filters.operation_type:
            conditions.append(OperationLog.operation_type == filters.operation_type)
        if filters.status:
            conditions.append(OperationLog.status == filters.status)
        if filters.user_id is not None:
            conditions.append(OperationLog.user_id == filters.user_id)
        if filters.asaci_request_id is not None:
            conditions.append(
                OperationLog.asaci_request_id == filters.asaci_request_id
            )
        if filters.start_date:
            conditions.append(OperationLog.created_at >= filters.start_date)
        if filters.end_date:
            conditions.append(OperationLog.created_at <= filters.end_date)

        total = self.db.execute(
            select(func.count(OperationLog.id)).where(*conditions)
        ).scalar_one()
        items = self.db.execute(
            select(OperationLog)
            .where(*conditions)
            .order_by(OperationLog.created_at.desc(), OperationLog.id.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        ).scalars().all()
        return list(items), total

    def get_statistics(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> dict[str, Any]:
        conditions = []
        if start_date:
            conditions.append(OperationLog.created_at >= start_date)
        if end_date:
            conditions.append(OperationLog.created_at <= end_date)

        by_type = {
            op_type.value: count
            for op_type, count in self.db.execute(
                select(OperationLog.operation_type, func.count(OperationLog.id))
                .where(*conditions)
                .group_by(OperationLog.operation_type)
            ).all()
        }
        by_status = {
            status.value: count
            for status, count in self.db.execute(
                select(OperationLog.status, func.count(OperationLog.id))
                .where(*conditions)
                .group_by(OperationLog.status)
            ).all()
        }
        average = self.db.execute(
            select(func.avg(OperationLog.execution_time_ms)).where(
                *conditions, OperationLog.execution_time_ms.is_not(None)
            )
        ).scalar_one()

        total = sum(by_status.values())
        successes = by_status.get(OperationStatus.SUCCESS.value, 0)
        success_rate = round(successes * 100 / total, 2) if total else 0.0

        return {
            "total": total,
            "by_operation_type": by_type,
            "by_status": by_status,
            "success_rate": success_rate,
            "average_execution_time_ms": (
                round(float(average), 2) if average is not None else None
            ),
            "start_date": start_date,
            "end_date": end_date,
        }

    def get_user_activity(self, user_id: int, days: int = 30) -> dict[str, Any]:
        since = datetime.utcnow() - timedelta(days=days)
        conditions = [
            OperationLog.user_id == user_id,
            OperationLog.created_at >= since,
        ]
        by_type = {
            op_type.value: count
            for op_type, count in self.db.execute(
                select(OperationLog.operation_type, func.count(OperationLog.id))
                .where(*conditions)
                .group_by(OperationLog.operation_type)
            ).all()
        }
        recent = self.db.execute(
            select(OperationLog)
            .where(*conditions)
            .order_by(OperationLog.created_at.desc(), OperationLog.id.desc())
            .limit(20)
        ).scalars().all()
        return {
            "user_id": user_id,
            "days": days,
            "total_operations": sum(by_type.values()),
            "by_operation_type": by_type,
            "last_activity_at": recent[0].created_at if recent else None,
            "recent": list(recent),
        }

    def detect_suspicious_activity(
        self, window_minutes: int = 60, threshold: int = 5
    ) -> dict[str, Any]:
        """IP addresses with at least `threshold` failed logins in the window."""
        since = datetime.utcnow() - timedelta(minutes=window_minutes)
        failures = func.count(OperationLog.id)
        rows = self.db.execute(
            select(
                OperationLog.ip_address,
                failures,
                func.max(OperationLog.created_at),
            )
            .where(
                OperationLog.operation_type == OperationType.USER_LOGIN,
                OperationLog.status == OperationStatus.FAILED,
                OperationLog.created_at >= since,
                OperationLog.ip_address.is_not(None),
            )
            .group_by(OperationLog.ip_address)
            .having(failures >= threshold)
            .order_by(failures.desc())
        ).all()

        if rows:
            logger.warning(
                "Suspicious login activity from %d IP(s) in the last %d minutes",
                len(rows),
                window_minutes,
            )
        return {
            "window_minutes": window_minutes,
            "threshold": threshold,
            "suspicious_ips": [
                {
                    "ip_address": ip,
                    "failed_attempts": count,
                    "last_attempt_at": last,
                }
                for ip, count, last in rows
            ],
        }

    def cleanup_old_logs(self, retention_days: int = 365) -> int:
        """Delete operation logs older than the retention period."""
        if retention_days < 1:
            raise ValueError("retention_days must be at least 1")
        cutoff = datetime.utcnow() - timedelta(days=retention_days)
        result = self.db.execute(
            delete(OperationLog).where(OperationLog.created_at < cutoff)
        )
        self.db.flush()
        logger.info(
            "Deleted %d operation logs older than %d days",
            result.rowcount,
            retention_days,
        )
        return result.rowcount
