"""
Pydantic schemas for operation logs and their aggregations.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from certify_link.models.enums import OperationStatus, OperationType


class OperationLogFilter(BaseModel):
    operation_type: OperationType | None = None
    status: OperationStatus | None = None
    user_id: int | None = None
    asaci_request_id: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=500)


class OperationLogResponse(BaseModel):
    id: int
    user_id: int | None
    asaci_request_id: int | None
    operation_type: OperationType
    status: OperationStatus
    method: str | None
    endpoint: str | None
    response_status: int | None
    error_message: str | None
    error_code: str | None
    execution_time_ms: int | None
    ip_address: str | None
    correlation_id: str | None
    extra: dict[str, Any] | None
    created_at: datetime
    completed_at: datetime | None

    model_config = {"from_attributes": True}


class OperationLogPage(BaseModel):
    items: list[OperationLogResponse]
    total: int
    page: int
    limit: int
    pages: int


class OperationStatistics(BaseModel):
    total: int
    by_operation_type: dict[str, int]
    by_status: dict[str, int]
    success_rate: float
    average_execution_time_ms: float | None
    start_date: datetime | None
    end_date: datetime | None


class UserActivity(BaseModel):
    user_id: int
    days: int
    total_operations: int
    by_operation_type: dict[str, int]
    last_activity_at: datetime | None
    recent: list[OperationLogResponse]


class SuspiciousIp(BaseModel):
    ip_address: str
    failed_attempts: int
    last_attempt_at: datetime


class SuspiciousActivityReport(BaseModel):
    window_minutes: int
    threshold: int
    suspicious_ips: list[SuspiciousIp]
