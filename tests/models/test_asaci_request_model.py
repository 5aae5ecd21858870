"""
Tests for the AsaciRequest state machine.

These run on plain instances; nothing is flushed, so every column
default is passed explicitly.
"""

import pytest

from certify_link.exceptions import InvalidStateError
from certify_link.models.asaci_request import (
    AsaciRequest,
    IN_PROGRESS_STATUSES,
    TERMINAL_STATUSES,
)
from certify_link.models.enums import AsaciRequestStatus, CertificateType


def make_request(status=AsaciRequestStatus.ORASS_FETCHING, **fields):
    defaults = dict(
        user_id=1,
        orass_reference="POL-001",
        office_code="OFF1",
        organization_code="ORG1",
        certificate_type=CertificateType.CIMA,
        generated_by="tests",
        status=status,
        retry_count=0,
        max_retries=3,
        download_count=0,
    )
    defaults.update(fields)
    return AsaciRequest(**defaults)


class TestTransitions:

    def test_happy_path_reaches_completed(self):
        request = make_request()

        request.set_orass_data({"policy_number": "POL-001"})
        assert request.status == AsaciRequestStatus.ORASS_FETCHED
        assert request.orass_fetched_at is not None

        request.set_asaci_request({"productions": []})
        assert request.status == AsaciRequestStatus.ASACI_PENDING
        assert request.asaci_submitted_at is not None

        request.set_asaci_response({"reference": "ASACI-1"}, "ASACI-1")
        assert request.status == AsaciRequestStatus.ASACI_PROCESSING
        assert request.asaci_reference == "ASACI-1"

        request.mark_as_completed("https://asaci.test/cert.zip")
        assert request.status == AsaciRequestStatus.COMPLETED
        assert request.certificate_url == "https://asaci.test/cert.zip"
        assert request.completed_at is not None
        assert request.is_terminal

    def test_transition_returns_previous_status(self):
        request = make_request(status=AsaciRequestStatus.ASACI_PENDING)
        old = request.transition_to(AsaciRequestStatus.CANCELLED, "stop")
        assert old == AsaciRequestStatus.ASACI_PENDING
        assert request.status_message == "stop"

    def test_skipping_a_step_is_rejected(self):
        request = make_request()
        with pytest.raises(InvalidStateError, match="Cannot transition"):
            request.transition_to(AsaciRequestStatus.COMPLETED)
        assert request.status == AsaciRequestStatus.ORASS_FETCHING

    def test_terminal_states_accept_nothing(self):
        for status in TERMINAL_STATUSES:
            request = make_request(status=status)
            for target in AsaciRequestStatus:
                assert not request.can_transition_to(target)

    def test_processing_cannot_be_cancelled(self):
        request = make_request(status=AsaciRequestStatus.ASACI_PROCESSING)
        assert not request.can_transition_to(AsaciRequestStatus.CANCELLED)

    def test_status_sets(self):
        assert TERMINAL_STATUSES == {
            AsaciRequestStatus.COMPLETED,
            AsaciRequestStatus.CANCELLED,
        }
        assert AsaciRequestStatus.FAILED not in IN_PROGRESS_STATUSES
        assert AsaciRequestStatus.ASACI_PROCESSING in IN_PROGRESS_STATUSES


class TestFailureAndRetry:

    def test_mark_as_failed_records_error(self):
        request = make_request(status=AsaciRequestStatus.ASACI_PENDING)
        request.mark_as_failed("ASACI down", {"code": "ASACI_API_ERROR"})

        assert request.status == AsaciRequestStatus.FAILED
        assert request.error_message == "ASACI down"
        assert request.error_details == {"code": "ASACI_API_ERROR"}
        assert request.retry_count == 1
        assert request.can_retry

    def test_retries_run_out(self):
        request = make_request(
            status=AsaciRequestStatus.ASACI_PENDING, retry_count=2
        )
        request.mark_as_failed("still down")
        assert request.retry_count == 3
        assert not request.can_retry

    def test_failed_request_goes_back_to_pending(self):
        request = make_request(status=AsaciRequestStatus.FAILED, retry_count=1)
        request.transition_to(AsaciRequestStatus.ASACI_PENDING)
        assert request.status == AsaciRequestStatus.ASACI_PENDING

    def test_long_error_is_truncated_in_status_message(self):
        request = make_request(status=AsaciRequestStatus.ASACI_PENDING)
        request.mark_as_failed("x" * 400)
        assert len(request.status_message) == 255
        assert len(request.error_message) == 400

    def test_completion_clears_previous_error(self):
        request = make_request(
            status=AsaciRequestStatus.ASACI_PROCESSING,
            error_message="old",
            error_details={"code": "X"},
        )
        request.mark_as_completed()
        assert request.error_message is None
        assert request.error_details is None


def test_increment_download_count():
    request = make_request(status=AsaciRequestStatus.COMPLETED)
    request.increment_download_count()
    request.increment_download_count()
    assert request.download_count == 2
    assert request.last_download_at is not None
