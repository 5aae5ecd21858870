"""
Certificate audit log.

Append-only history of what happened to a certificate request:
creation, status changes, cancellation, downloads. You never update
or delete an audit record.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import String, DateTime, Text, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from certify_link.models.base import Base
from certify_link.models.enums import CertificateAuditAction


class CertificateAuditLog(Base):
    __tablename__ = "certificate_audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    asaci_request_id: Mapped[int] = mapped_column(
        ForeignKey("asaci_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action: Mapped[CertificateAuditAction] = mapped_column(
        SAEnum(
            CertificateAuditAction,
            name="certificate_audit_action_enum",
            create_constraint=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        index=True,
    )
    old_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, index=True
    )

    asaci_request: Mapped["AsaciRequest"] = relationship(
        back_populates="audit_entries"
    )

    def __repr__(self) -> str:
        return (
            f"<CertificateAuditLog request={self.asaci_request_id} "
            f"{self.action.value} {self.old_status}->{self.new_status}>"
        )
