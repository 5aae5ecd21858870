"""
Tests for the CertifyLinkService: edition requests from ORASS data,
ASACI submission, retries, cancellation, downloads and statistics.
"""

import httpx
import pytest
from sqlalchemy import select

from certify_link.exceptions import (
    ConfigurationError,
    ErrorCode,
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
)
from certify_link.models.asaci_request import AsaciRequest
from certify_link.models.enums import (
    AsaciRequestStatus,
    CertificateAuditAction,
    OperationStatus,
    OperationType,
)
from certify_link.models.operation_log import OperationLog
from certify_link.schemas.edition import (
    CreateEditionFromOrassDataRequest,
    EditionRequestFilter,
)
from certify_link.schemas.orass import OrassPolicySearch
from certify_link.services.certify_link_service import CertifyLinkService

ASACI_SUCCESS = {
    "data": {
        "reference": "ASACI-001",
        "download_link": "https://asaci.test/files/ASACI-001.zip",
    }
}


@pytest.fixture
def service(db_session, asaci_client, orass_service):
    return CertifyLinkService(db_session, asaci_client, orass_service)


def asaci_succeeds(asaci_stub, body=None):
    asaci_stub.add("POST", "/productions", json=body or ASACI_SUCCESS)


def asaci_fails(asaci_stub, status_code=500):
    asaci_stub.add("POST", "/productions", status_code, json={"message": "ASACI error"})


def create(service, user, payload):
    return service.create_edition_request(
        CreateEditionFromOrassDataRequest(**payload), user
    )


def create_failed(service, user, payload, asaci_stub) -> AsaciRequest:
    """Create a request whose submission to ASACI fails."""
    asaci_fails(asaci_stub)
    with pytest.raises(ExternalServiceError):
        create(service, user, payload)
    return service.db.execute(
        select(AsaciRequest).order_by(AsaciRequest.id.desc()).limit(1)
    ).scalar_one()


def operations(db_session, operation_type):
    return db_session.execute(
        select(OperationLog).where(OperationLog.operation_type == operation_type)
    ).scalars().all()


# --- Creation ---

class TestCreateEditionRequest:

    def test_successful_production(self, service, user, edition_payload, asaci_stub):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)

        assert request.status == AsaciRequestStatus.COMPLETED
        assert request.asaci_reference == "ASACI-001"
        assert request.certificate_url == "https://asaci.test/files/ASACI-001.zip"
        assert request.orass_reference == "POL-001"
        assert request.user_id == user.id
        assert request.retry_count == 0

    def test_snapshots_are_stored(self, service, user, edition_payload, asaci_stub):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)

        assert request.orass_data["policy_number"] == "POL-001"
        assert request.subscriber_data["email"] == "jean.kouassi@mail.ci"
        assert request.contract_data["certificate_color"] == "cima-jaune"
        production = request.asaci_request_payload["productions"][0]
        assert production["NUMERO_DE_POLICE"] == "POL-001"
        assert production["COULEUR_D_ATTESTATION_A_EDITER"] == "cima-jaune"
        assert request.asaci_request_payload["generated_by"] == "ORASS_INTEGRATION"

    def test_submitted_payload_reaches_asaci(
        self, service, user, edition_payload, asaci_stub
    ):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)

        sent = asaci_stub.requests[0]
        assert sent.url.path == "/api/v1/productions"
        assert b"IMMATRICULATION_DU_VEHICULE" in sent.content
        assert request.asaci_response_payload == ASACI_SUCCESS

    def test_history_is_recorded(self, service, user, edition_payload, asaci_stub):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)

        history = service.get_request_history(request.id, user)
        assert [entry.action for entry in history] == [
            CertificateAuditAction.CREATED,
            CertificateAuditAction.UPDATED,
        ]
        assert history[-1].new_status == "COMPLETED"

    def test_operation_is_logged(
        self, db_session, service, user, edition_payload, asaci_stub
    ):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)

        (operation,) = operations(db_session, OperationType.ASACI_REQUEST)
        assert operation.status == OperationStatus.SUCCESS
        assert operation.asaci_request_id == request.id
        assert operation.execution_time_ms is not None

    def test_missing_download_link_uses_production_url(
        self, service, user, edition_payload, asaci_stub
    ):
        asaci_succeeds(asaci_stub, {"reference": "ASACI-777"})
        request = create(service, user, edition_payload)
        assert request.certificate_url == (
            "https://asaci.test/api/v1/productions/ASACI-777/download"
        )

    def test_asaci_failure_marks_request_failed(
        self, db_session, service, user, edition_payload, asaci_stub
    ):
        request = create_failed(service, user, edition_payload, asaci_stub)

        assert request.status == AsaciRequestStatus.FAILED
        assert request.retry_count == 1
        assert request.error_details["code"] == ErrorCode.ASACI_API_ERROR.value
        assert request.error_details["status_code"] == 500

        (operation,) = operations(db_session, OperationType.ASACI_REQUEST)
        assert operation.status == OperationStatus.FAILED
        assert operation.response_status == 500

    def test_timeout_is_logged_as_timeout(
        self, db_session, service, user, edition_payload, asaci_stub
    ):
        asaci_stub.fail("POST", "/productions", httpx.ReadTimeout("slow"))
        with pytest.raises(ExternalServiceError):
            create(service, user, edition_payload)

        (operation,) = operations(db_session, OperationType.ASACI_REQUEST)
        assert operation.status == OperationStatus.TIMEOUT


# --- Access ---

class TestAccess:

    def test_owner_can_read(self, service, user, edition_payload, asaci_stub):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)
        assert service.get_request(request.id, user).id == request.id

    def test_other_users_request_is_not_found(
        self, service, user, make_user, edition_payload, asaci_stub
    ):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)
        stranger = make_user(email="stranger@insurer.ci")

        with pytest.raises(NotFoundError) as exc:
            service.get_request(request.id, stranger)
        assert exc.value.code == ErrorCode.CERTIFICATE_NOT_FOUND

    def test_admin_reads_everyone(
        self, service, user, admin, edition_payload, asaci_stub
    ):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)
        assert service.get_request(request.id, admin).id == request.id

    def test_missing_request(self, service, admin):
        with pytest.raises(NotFoundError):
            service.get_request(12345, admin)


# --- Retry and cancel ---

class TestRetry:

    def test_retry_completes_failed_request(
        self, service, user, edition_payload, asaci_stub
    ):
        request = create_failed(service, user, edition_payload, asaci_stub)
        asaci_succeeds(asaci_stub)

        retried = service.retry_request(request.id, user)
        assert retried.status == AsaciRequestStatus.COMPLETED
        assert retried.retry_count == 1
        assert retried.error_message is None

    def test_failed_retry_counts(self, service, user, edition_payload, asaci_stub):
        request = create_failed(service, user, edition_payload, asaci_stub)
        with pytest.raises(ExternalServiceError):
            service.retry_request(request.id, user)
        assert request.status == AsaciRequestStatus.FAILED
        assert request.retry_count == 2

    def test_retries_run_out(self, service, user, edition_payload, asaci_stub):
        request = create_failed(service, user, edition_payload, asaci_stub)
        for _ in range(2):
            with pytest.raises(ExternalServiceError):
                service.retry_request(request.id, user)

        assert request.retry_count == request.max_retries
        with pytest.raises(InvalidStateError, match="cannot be retried"):
            service.retry_request(request.id, user)

    def test_completed_request_cannot_be_retried(
        self, service, user, edition_payload, asaci_stub
    ):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)
        with pytest.raises(InvalidStateError):
            service.retry_request(request.id, user)

    def test_find_retryable_requests(
        self, service, user, edition_payload, asaci_stub
    ):
        failed = create_failed(service, user, edition_payload, asaci_stub)
        asaci_succeeds(asaci_stub)
        create(service, user, edition_payload)

        assert [r.id for r in service.find_retryable_requests()] == [failed.id]


class TestCancel:

    def test_cancel_failed_request(self, service, user, edition_payload, asaci_stub):
        request = create_failed(service, user, edition_payload, asaci_stub)
        cancelled = service.cancel_request(request.id, user)

        assert cancelled.status == AsaciRequestStatus.CANCELLED
        actions = [e.action for e in service.get_request_history(request.id, user)]
        assert actions[-1] == CertificateAuditAction.CANCELLED

    def test_completed_request_cannot_be_cancelled(
        self, service, user, edition_payload, asaci_stub
    ):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)
        with pytest.raises(InvalidStateError, match="already COMPLETED"):
            service.cancel_request(request.id, user)


# --- Listing ---

class TestListing:

    def test_user_sees_only_own_requests(
        self, service, user, make_user, edition_payload, asaci_stub
    ):
        asaci_succeeds(asaci_stub)
        other = make_user(email="other@insurer.ci")
        create(service, user, edition_payload)
        create(service, other, edition_payload)

        items, total = service.list_user_requests(user, EditionRequestFilter())
        assert total == 1
        assert items[0].user_id == user.id

        items, total = service.list_requests(EditionRequestFilter())
        assert total == 2

    def test_status_filter(self, service, user, edition_payload, asaci_stub):
        create_failed(service, user, edition_payload, asaci_stub)
        asaci_succeeds(asaci_stub)
        create(service, user, edition_payload)

        items, total = service.list_requests(
            EditionRequestFilter(status=AsaciRequestStatus.FAILED)
        )
        assert total == 1
        assert items[0].status == AsaciRequestStatus.FAILED


# --- Downloads ---

class TestDownloads:

    def test_download_certificate(self, service, user, edition_payload, asaci_stub):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)
        asaci_stub.add(
            "GET",
            "/productions/ASACI-001/download",
            content=b"PK-archive",
            headers={"content-type": "application/zip"},
        )

        filename, content = service.download_certificate(request.id, user)

        assert filename == "certificate-ASACI-001.zip"
        assert content == b"PK-archive"
        assert request.download_count == 1
        assert request.last_download_at is not None
        actions = [e.action for e in service.get_request_history(request.id, user)]
        assert actions[-1] == CertificateAuditAction.DOWNLOADED

    def test_download_requires_completed(
        self, service, user, edition_payload, asaci_stub
    ):
        request = create_failed(service, user, edition_payload, asaci_stub)
        with pytest.raises(InvalidStateError, match="not available"):
            service.download_certificate(request.id, user)

    def test_failed_download_does_not_count(
        self, db_session, service, user, edition_payload, asaci_stub
    ):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)
        asaci_stub.add("GET", "/productions/ASACI-001/download", 500, json={})

        with pytest.raises(ExternalServiceError):
            service.download_certificate(request.id, user)
        assert request.download_count == 0
        (operation,) = operations(db_session, OperationType.ASACI_DOWNLOAD)
        assert operation.status == OperationStatus.FAILED

    def test_download_link_by_either_reference(
        self, service, user, edition_payload, asaci_stub
    ):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)

        by_ours = service.get_download_link(request.reference, user)
        by_asaci = service.get_download_link("ASACI-001", user)
        assert by_ours == by_asaci
        assert by_ours["certificate_url"] == request.certificate_url

    def test_download_link_not_found(self, service, user):
        with pytest.raises(NotFoundError):
            service.get_download_link("missing", user)

    def test_batch_download_links(self, service, user, edition_payload, asaci_stub):
        asaci_succeeds(asaci_stub)
        request = create(service, user, edition_payload)

        result = service.get_batch_download_links(
            [request.reference, "missing", request.reference], user
        )
        assert [link["reference"] for link in result["links"]] == [request.reference]
        assert result["not_found"] == ["missing"]


# --- Statistics and ORASS ---

def test_user_statistics(service, user, edition_payload, asaci_stub):
    create_failed(service, user, edition_payload, asaci_stub)
    asaci_succeeds(asaci_stub)
    create(service, user, edition_payload)

    stats = service.get_user_statistics(user)
    assert stats["total"] == 2
    assert stats["completed"] == 1
    assert stats["failed"] == 1
    assert stats["in_progress"] == 0
    assert stats["total_downloads"] == 0


def test_search_policies_uses_orass(service):
    result = service.search_policies(OrassPolicySearch(policy_number="POL-002"))
    assert result["total_count"] == 1


def test_orass_is_required_for_search(db_session, asaci_client):
    service = CertifyLinkService(db_session, asaci_client)
    with pytest.raises(ConfigurationError):
        service.search_policies(OrassPolicySearch())


def test_certificate_colors():
    colors = CertifyLinkService.get_available_certificate_colors()
    assert {"orass_code": "CIMA_YELLOW", "value": "cima-jaune"} in colors
    assert len(colors) == 6


class TestHealth:

    def test_healthy(self, service):
        health = service.health_check()
        assert health["status"] == "healthy"
        assert health["service"] == "certify-link"

    def test_degraded_without_orass(self, db_session, asaci_client):
        health = CertifyLinkService(db_session, asaci_client).health_check()
        assert health["status"] == "degraded"
        assert health["dependencies"]["orass"]["status"] == "unhealthy"
