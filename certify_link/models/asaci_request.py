"""
Certificate request model.

An AsaciRequest follows one ORASS policy through certificate
production at ASACI:

    ORASS_FETCHING -> ORASS_FETCHED -> ASACI_PENDING
        -> ASACI_PROCESSING -> COMPLETED

Any non-terminal step may fall to FAILED. A FAILED request can be
resubmitted (back to ASACI_PENDING) while retries remain. The
transition table below is the only source of truth; the lifecycle
helpers go through transition_to() and never set status directly.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    String, DateTime, Integer, Text, JSON, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from certify_link.exceptions import InvalidStateError
from certify_link.models.base import Base
from certify_link.models.enums import (
    AsaciRequestStatus,
    CertificateType,
    ChannelType,
)


VALID_TRANSITIONS: dict[AsaciRequestStatus, set[AsaciRequestStatus]] = {
    AsaciRequestStatus.ORASS_FETCHING: {
        AsaciRequestStatus.ORASS_FETCHED,
        AsaciRequestStatus.FAILED,
        AsaciRequestStatus.CANCELLED,
    },
    AsaciRequestStatus.ORASS_FETCHED: {
        AsaciRequestStatus.ASACI_PENDING,
        AsaciRequestStatus.FAILED,
        AsaciRequestStatus.CANCELLED,
    },
    AsaciRequestStatus.ASACI_PENDING: {
        AsaciRequestStatus.ASACI_PROCESSING,
        AsaciRequestStatus.FAILED,
        AsaciRequestStatus.CANCELLED,
    },
    AsaciRequestStatus.ASACI_PROCESSING: {
        AsaciRequestStatus.COMPLETED,
        AsaciRequestStatus.FAILED,
    },
    AsaciRequestStatus.FAILED: {
        AsaciRequestStatus.ASACI_PENDING,
        AsaciRequestStatus.CANCELLED,
    },
    AsaciRequestStatus.COMPLETED: set(),  # Terminal
    AsaciRequestStatus.CANCELLED: set(),  # Terminal
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)

IN_PROGRESS_STATUSES = frozenset({
    AsaciRequestStatus.ORASS_FETCHING,
    AsaciRequestStatus.ORASS_FETCHED,
    AsaciRequestStatus.ASACI_PENDING,
    AsaciRequestStatus.ASACI_PROCESSING,
})


def _new_reference() -> str:
    return str(uuid.uuid4())


class AsaciRequest(Base):
    __tablename__ = "asaci_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    reference: Mapped[str] = mapped_column(
        String(36), unique=True, nullable=False, default=_new_reference
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ORASS side
    orass_reference: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True
    )
    orass_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    orass_fetched_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    # ASACI side
    asaci_reference: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    asaci_request_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    asaci_response_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    asaci_submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    asaci_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    # Request details
    office_code: Mapped[str] = mapped_column(String(50), nullable=False)
    organization_code: Mapped[str] = mapped_column(String(50), nullable=False)
    certificate_type: Mapped[CertificateType] = mapped_column(
        SAEnum(
            CertificateType,
            name="certificate_type_enum",
            create_constraint=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    email_notification: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    generated_by: Mapped[str] = mapped_column(String(100), nullable=False)
    channel: Mapped[ChannelType] = mapped_column(
        SAEnum(
            ChannelType,
            name="channel_type_enum",
            create_constraint=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ChannelType.API,
    )

    # Status
    status: Mapped[AsaciRequestStatus] = mapped_column(
        SAEnum(
            AsaciRequestStatus,
            name="asaci_request_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=AsaciRequestStatus.ORASS_FETCHING,
        index=True,
    )
    status_message: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    # Party and contract snapshots
    insured_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    subscriber_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    contract_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Result
    certificate_url: Mapped[str | None] = mapped_column(
        String(500), nullable=True
    )
    download_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    last_download_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    # Errors and retries
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_details: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    # Relationships
    user: Mapped["User"] = relationship()
    audit_entries: Mapped[list["CertificateAuditLog"]] = relationship(
        back_populates="asaci_request",
        cascade="all, delete-orphan",
    )

    # --- State machine ---

    def can_transition_to(self, new_status: AsaciRequestStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def transition_to(
        self, new_status: AsaciRequestStatus, message: str | None = None
    ) -> AsaciRequestStatus:
        """Move to new_status and return the previous status."""
        if not self.can_transition_to(new_status):
            raise InvalidStateError(
                f"Cannot transition from {self.status.value} "
                f"to {new_status.value}",
                details={
                    "current_status": self.status.value,
                    "requested_status": new_status.value,
                },
            )
        old_status = self.status
        self.status = new_status
        self.status_message = message
        self.updated_at = datetime.utcnow()
        return old_status

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def can_retry(self) -> bool:
        return (
            self.status == AsaciRequestStatus.FAILED
            and self.retry_count < self.max_retries
        )

    # --- Lifecycle helpers ---

    def set_orass_data(self, data: dict[str, Any]) -> None:
        self.transition_to(
            AsaciRequestStatus.ORASS_FETCHED,
            "Data fetched from Orass successfully",
        )
        self.orass_data = data
        self.orass_fetched_at = datetime.utcnow()

    def set_asaci_request(self, payload: dict[str, Any]) -> None:
        self.transition_to(
            AsaciRequestStatus.ASACI_PENDING, "Request submitted to Asaci"
        )
        self.asaci_request_payload = payload
        self.asaci_submitted_at = datetime.utcnow()

    def set_asaci_response(
        self, response: dict[str, Any], asaci_reference: str | None = None
    ) -> None:
        self.transition_to(
            AsaciRequestStatus.ASACI_PROCESSING, "Response received from Asaci"
        )
        self.asaci_response_payload = response
        if asaci_reference:
            self.asaci_reference = asaci_reference

    def mark_as_completed(self, certificate_url: str | None = None) -> None:
        self.transition_to(
            AsaciRequestStatus.COMPLETED, "Certificate generated successfully"
        )
        now = datetime.utcnow()
        self.certificate_url = certificate_url
        self.completed_at = now
        self.asaci_completed_at = now
        self.error_message = None
        self.error_details = None

    def mark_as_failed(
        self, error_message: str, error_details: dict[str, Any] | None = None
    ) -> None:
        self.transition_to(AsaciRequestStatus.FAILED, error_message[:255])
        self.error_message = error_message
        self.error_details = error_details
        self.retry_count = (self.retry_count or 0) + 1

    def increment_download_count(self) -> None:
        self.download_count = (self.download_count or 0) + 1
        self.last_download_at = datetime.utcnow()

    def __repr__(self) -> str:
        return (
            f"<AsaciRequest {self.reference} "
            f"policy={self.orass_reference} ({self.status.value})>"
        )
