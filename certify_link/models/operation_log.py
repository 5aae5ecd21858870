"""
Operation log model.

Records every significant operation against ORASS, ASACI and the
authentication flow, with timing and outcome, for troubleshooting
and compliance reporting.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    String, DateTime, Integer, Text, JSON, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from certify_link.models.base import Base
from certify_link.models.enums import OperationType, OperationStatus


class OperationLog(Base):
    __tablename__ = "operation_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    asaci_request_id: Mapped[int | None] = mapped_column(
        ForeignKey("asaci_requests.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    operation_type: Mapped[OperationType] = mapped_column(
        SAEnum(
            OperationType,
            name="operation_type_enum",
            create_constraint=True,
        ),
        nullable=False,
        index=True,
    )
    status: Mapped[OperationStatus] = mapped_column(
        SAEnum(
            OperationStatus,
            name="operation_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=OperationStatus.STARTED,
        index=True,
    )
    method: Mapped[str | None] = mapped_column(String(10), nullable=True)
    endpoint: Mapped[str | None] = mapped_column(String(500), nullable=True)
    request_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    response_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    response_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    execution_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(
        String(45), nullable=True, index=True
    )
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    correlation_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    extra: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<OperationLog {self.operation_type.value} "
            f"({self.status.value}) {self.execution_time_ms}ms>"
        )
