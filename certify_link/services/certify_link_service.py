"""
Certify-link service: turns ORASS policies into ASACI certificates.

An edition request walks the AsaciRequest state machine:

1. Persisted in ORASS_FETCHING with the request details
2. ORASS data snapshot stored (ORASS_FETCHED)
3. ASACI payload built (ASACI_PENDING)
4. Submitted to ASACI (ASACI_PROCESSING)
5. Certificate URL recorded (COMPLETED)

If ASACI fails, the request is marked FAILED and the error is
re-raised. Callers must commit before propagating the error so the
failure (and its operation log) is kept. A FAILED request can be
resubmitted with retry_request() while retries remain.

Users see their own requests. Holders of edition.requests.read
(and SUPER_ADMIN) see everyone's.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from certify_link.exceptions import (
    ConfigurationError,
    ErrorCode,
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
)
from certify_link.models.asaci_request import AsaciRequest, IN_PROGRESS_STATUSES
from certify_link.models.enums import (
    CERTIFICATE_COLOR_MAP,
    AsaciRequestStatus,
    CertificateAuditAction,
    OperationType,
)
from certify_link.models.user import User
from certify_link.schemas.edition import (
    DEFAULT_GENERATED_BY,
    CreateEditionFromOrassDataRequest,
    EditionRequestFilter,
)
from certify_link.schemas.orass import OrassPolicySearch
from certify_link.services.asaci_client import (
    AsaciClient,
    extract_download_url,
    extract_reference,
)
from certify_link.services.audit_service import AuditService, RequestContext
from certify_link.services.orass_service import OrassService

logger = logging.getLogger(__name__)

READ_ALL_PERMISSION = "edition.requests.read"
SERVICE_NAME = "certify-link"


def can_read_all_requests(user: User) -> bool:
    role = user.role
    return role is not None and (
        role.is_super_admin or role.has_permission(READ_ALL_PERMISSION)
    )


class CertifyLinkService:

    def __init__(
        self,
        db: Session,
        asaci: AsaciClient,
        orass: OrassService | None = None,
        context: RequestContext | None = None,
    ):
        self.db = db
        self.asaci = asaci
        self.orass = orass
        self.audit = AuditService(db, context)

    # --- Lookups ---

    def _require_orass(self) -> OrassService:
        if self.orass is None:
            raise ConfigurationError("ORASS is not configured")
        return self.orass

    def get_request(self, request_id: int, user: User) -> AsaciRequest:
        """
        Get a request the user may see.

        Someone else's request is reported as not found rather than
        forbidden, so ids of other users' requests are not disclosed.
        """
        asaci_request = self.db.get(AsaciRequest, request_id)
        if not asaci_request or (
            asaci_request.user_id != user.id and not can_read_all_requests(user)
        ):
            raise NotFoundError(
                "AsaciRequest", request_id, code=ErrorCode.CERTIFICATE_NOT_FOUND
            )
        return asaci_request

    def _find_by_reference(self, reference: str, user: User) -> AsaciRequest | None:
        asaci_request = self.db.execute(
            select(AsaciRequest).where(
                or_(
                    AsaciRequest.reference == reference,
                    AsaciRequest.asaci_reference == reference,
                )
            ).order_by(AsaciRequest.id.desc()).limit(1)
        ).scalar_one_or_none()
        if asaci_request is None:
            return None
        if asaci_request.user_id != user.id and not can_read_all_requests(user):
            return None
        return asaci_request

    # --- Edition requests ---

    def create_edition_request(
        self, request: CreateEditionFromOrassDataRequest, user: User
    ) -> AsaciRequest:
        """Create a certificate request from ORASS data and submit it to ASACI."""
        asaci_request = AsaciRequest(
            user_id=user.id,
            orass_reference=request.policy_number,
            office_code=request.office_code,
            organization_code=request.organization_code,
            certificate_type=request.certificate_type,
            email_notification=(
                str(request.email_notification) if request.email_notification else None
            ),
            generated_by=request.generated_by or DEFAULT_GENERATED_BY,
            channel=request.channel,
            status=AsaciRequestStatus.ORASS_FETCHING,
            retry_count=0,
            download_count=0,
        )
        self.db.add(asaci_request)
        self.db.flush()
        self.audit.record_certificate_event(
            asaci_request,
            CertificateAuditAction.CREATED,
            user_id=user.id,
            new_status=asaci_request.status.value,
            details={"policy_number": request.policy_number},
        )

        # The submitted data is the ORASS snapshot the client searched.
        asaci_request.subscriber_data = request.subscriber_data()
        asaci_request.insured_data = request.insured_data()
        asaci_request.contract_data = request.contract_data()
        asaci_request.set_orass_data(request.model_dump(mode="json"))

        asaci_request.set_asaci_request(request.to_asaci_production_request())
        self.db.flush()
        logger.info(
            "Edition request %s created for policy %s",
            asaci_request.reference,
            request.policy_number,
        )

        self._submit(asaci_request, user)
        return asaci_request

    def _submit(self, asaci_request: AsaciRequest, user: User) -> None:
        """Send the stored payload to ASACI and record the outcome."""
        try:
            with self.audit.track_operation(
                OperationType.ASACI_REQUEST,
                user_id=user.id,
                asaci_request_id=asaci_request.id,
                method="POST",
                endpoint="/productions",
                request_data=asaci_request.asaci_request_payload,
            ) as operation:
                response = self.asaci.create_production(
                    asaci_request.asaci_request_payload
                )
                operation.response_status = 200
                if isinstance(response, dict):
                    operation.response_data = response
        except ExternalServiceError as e:
            old_status = asaci_request.status
            asaci_request.mark_as_failed(e.message, {"code": e.code.value, **e.details})
            self.audit.record_certificate_event(
                asaci_request,
                CertificateAuditAction.UPDATED,
                user_id=user.id,
                old_status=old_status.value,
                new_status=asaci_request.status.value,
                details={"error": e.message, "code": e.code.value},
            )
            self.db.flush()
            logger.error(
                "Edition request %s failed at ASACI: %s",
                asaci_request.reference,
                e.message,
            )
            raise

        if not isinstance(response, dict):
            response = {}
        old_status = asaci_request.status
        reference = extract_reference(response)
        asaci_request.set_asaci_response(response, reference)
        certificate_url = extract_download_url(response) or (
            self.asaci.production_download_url(reference) if reference else None
        )
        asaci_request.mark_as_completed(certificate_url)
        self.audit.record_certificate_event(
            asaci_request,
            CertificateAuditAction.UPDATED,
            user_id=user.id,
            old_status=old_status.value,
            new_status=asaci_request.status.value,
            details={"asaci_reference": reference},
        )
        self.db.flush()
        logger.info(
            "Edition request %s completed (ASACI reference %s)",
            asaci_request.reference,
            reference,
        )

    def retry_request(self, request_id: int, user: User) -> AsaciRequest:
        """Resubmit a FAILED request's stored payload to ASACI."""
        asaci_request = self.get_request(request_id, user)
        if not asaci_request.can_retry:
            raise InvalidStateError(
                "Request cannot be retried",
                details={
                    "status": asaci_request.status.value,
                    "retry_count": asaci_request.retry_count,
                    "max_retries": asaci_request.max_retries,
                },
            )

        old_status = asaci_request.transition_to(
            AsaciRequestStatus.ASACI_PENDING, "Retrying submission to Asaci"
        )
        asaci_request.asaci_submitted_at = datetime.utcnow()
        self.audit.record_certificate_event(
            asaci_request,
            CertificateAuditAction.UPDATED,
            user_id=user.id,
            old_status=old_status.value,
            new_status=asaci_request.status.value,
            details={"retry": asaci_request.retry_count},
        )
        self.db.flush()
        logger.info(
            "Retrying edition request %s (attempt %d)",
            asaci_request.reference,
            asaci_request.retry_count + 1,
        )

        self._submit(asaci_request, user)
        return asaci_request

    def find_retryable_requests(self, limit: int = 50) -> list[AsaciRequest]:
        """FAILED requests with retries left, least recently touched first."""
        requests = self.db.execute(
            select(AsaciRequest)
            .where(
                AsaciRequest.status == AsaciRequestStatus.FAILED,
                AsaciRequest.retry_count < AsaciRequest.max_retries,
            )
            .order_by(AsaciRequest.updated_at.asc(), AsaciRequest.id.asc())
            .limit(limit)
        ).scalars().all()
        return list(requests)

    def cancel_request(self, request_id: int, user: User) -> AsaciRequest:
        asaci_request = self.get_request(request_id, user)
        if asaci_request.is_terminal:
            raise InvalidStateError(
                f"Request is already {asaci_request.status.value}",
                details={"status": asaci_request.status.value},
            )

        old_status = asaci_request.transition_to(
            AsaciRequestStatus.CANCELLED, "Cancelled by user"
        )
        self.audit.record_certificate_event(
            asaci_request,
            CertificateAuditAction.CANCELLED,
            user_id=user.id,
            old_status=old_status.value,
            new_status=asaci_request.status.value,
        )
        self.db.flush()
        logger.info("Edition request %s cancelled", asaci_request.reference)
        return asaci_request

    # --- Listing ---

    def list_requests(
        self, filters: EditionRequestFilter
    ) -> tuple[list[AsaciRequest], int]:
        """Filtered, newest-first page of requests and the total count."""
        conditions = []
        if filters.status:
            conditions.append(AsaciRequest.status == filters.status)
        if filters.user_id is not None:
            conditions.append(AsaciRequest.user_id == filters.user_id)
        if filters.certificate_type:
            conditions.append(
                AsaciRequest.certificate_type == filters.certificate_type
            )
        if filters.created_from:
            conditions.append(AsaciRequest.created_at >= filters.created_from)
        if filters.created_to:
            conditions.append(AsaciRequest.created_at <= filters.created_to)

        total = self.db.execute(
            select(func.count(AsaciRequest.id)).where(*conditions)
        ).scalar_one()
        items = self.db.execute(
            select(AsaciRequest)
            .where(*conditions)
            .order_by(AsaciRequest.created_at.desc(), AsaciRequest.id.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        ).scalars().all()
        return list(items), total

    def list_user_requests(
        self, user: User, filters: EditionRequestFilter
    ) -> tuple[list[AsaciRequest], int]:
        return self.list_requests(filters.model_copy(update={"user_id": user.id}))

    def get_request_history(self, request_id: int, user: User) -> list:
        asaci_request = self.get_request(request_id, user)
        return self.audit.get_request_history(asaci_request.id)

    # --- Downloads ---

    def download_certificate(self, request_id: int, user: User) -> tuple[str, bytes]:
        """Fetch the certificate archive from ASACI. Returns (filename, content)."""
        asaci_request = self.get_request(request_id, user)
        if asaci_request.status != AsaciRequestStatus.COMPLETED:
            raise InvalidStateError(
                "Certificate is not available for download",
                details={"status": asaci_request.status.value},
            )
        if not asaci_request.asaci_reference:
            raise InvalidStateError(
                "Request has no ASACI reference",
                details={"status": asaci_request.status.value},
            )

        reference = asaci_request.asaci_reference
        with self.audit.track_operation(
            OperationType.ASACI_DOWNLOAD,
            user_id=user.id,
            asaci_request_id=asaci_request.id,
            method="GET",
            endpoint=f"/productions/{reference}/download",
        ) as operation:
            content = self.asaci.download_production(reference)
            operation.response_status = 200

        asaci_request.increment_download_count()
        self.audit.record_certificate_event(
            asaci_request,
            CertificateAuditAction.DOWNLOADED,
            user_id=user.id,
            details={"download_count": asaci_request.download_count},
        )
        self.db.flush()
        return f"certificate-{reference}.zip", content

    def _download_link(self, asaci_request: AsaciRequest) -> dict[str, Any]:
        return {
            "reference": asaci_request.reference,
            "certificate_url": asaci_request.certificate_url,
            "status": asaci_request.status,
            "download_count": asaci_request.download_count,
        }

    def get_download_link(self, reference: str, user: User) -> dict[str, Any]:
        asaci_request = self._find_by_reference(reference, user)
        if asaci_request is None:
            raise NotFoundError(
                "AsaciRequest", reference, code=ErrorCode.CERTIFICATE_NOT_FOUND
            )
        return self._download_link(asaci_request)

    def get_batch_download_links(
        self, references: list[str], user: User
    ) -> dict[str, Any]:
        links, not_found = [], []
        for reference in dict.fromkeys(references):
            asaci_request = self._find_by_reference(reference, user)
            if asaci_request is None:
                not_found.append(reference)
            else:
                links.append(self._download_link(asaci_request))
        return {"links": links, "not_found": not_found}

    # --- Statistics ---

    def get_user_statistics(self, user: User) -> dict[str, Any]:
        rows = self.db.execute(
            select(AsaciRequest.status, func.count(AsaciRequest.id))
            .where(AsaciRequest.user_id == user.id)
            .group_by(AsaciRequest.status)
        ).all()
        by_status = {status.value: count for status, count in rows}
        total_downloads = self.db.execute(
            select(func.coalesce(func.sum(AsaciRequest.download_count), 0))
            .where(AsaciRequest.user_id == user.id)
        ).scalar_one()

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "completed": by_status.get(AsaciRequestStatus.COMPLETED.value, 0),
            "failed": by_status.get(AsaciRequestStatus.FAILED.value, 0),
            "in_progress": sum(
                by_status.get(status.value, 0) for status in IN_PROGRESS_STATUSES
            ),
            "cancelled": by_status.get(AsaciRequestStatus.CANCELLED.value, 0),
            "total_downloads": int(total_downloads),
        }

    # --- ORASS ---

    def search_policies(self, criteria: OrassPolicySearch) -> dict[str, Any]:
        return self._require_orass().search_policies(criteria)

    def get_orass_statistics(self) -> dict[str, Any]:
        return self._require_orass().get_statistics()

    @staticmethod
    def get_available_certificate_colors() -> list[dict[str, str]]:
        return [
            {"orass_code": orass_code, "value": color.value}
            for orass_code, color in CERTIFICATE_COLOR_MAP.items()
        ]

    # --- Health ---

    def health_check(self) -> dict[str, Any]:
        """
        healthy: ORASS answers and ASACI is configured
        degraded: one of the two is down
        unhealthy: both are down
        """
        if self.orass is not None:
            orass = self.orass.health_check()
        else:
            orass = {"status": "unhealthy", "error": "not configured"}
        asaci = {
            "status": "healthy" if self.asaci.is_configured else "unhealthy",
            "base_url": self.asaci.base_url,
        }

        healthy = [d["status"] == "healthy" for d in (orass, asaci)]
        if all(healthy):
            status = "healthy"
        elif any(healthy):
            status = "degraded"
        else:
            status = "unhealthy"

        return {
            "service": SERVICE_NAME,
            "status": status,
            "dependencies": {"orass": orass, "asaci": asaci},
            "timestamp": datetime.utcnow(),
        }
