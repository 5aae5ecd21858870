"""
Certify-link API endpoints: ORASS policy search and certificate edition.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from certify_link.api.deps import (
    get_asaci_client,
    get_current_user,
    get_orass_service,
    get_request_context,
    page_count,
    require_permissions,
)
from certify_link.exceptions import AppError, ExternalServiceError
from certify_link.models.base import get_db
from certify_link.models.user import User
from certify_link.schemas.edition import (
    BatchDownloadLinksRequest,
    BatchDownloadLinksResponse,
    CertificateAuditEntry,
    CreateEditionFromOrassDataRequest,
    DownloadLink,
    EditionRequestDetail,
    EditionRequestFilter,
    EditionRequestPage,
    EditionRequestResponse,
    UserStatistics,
)
from certify_link.schemas.orass import (
    OrassPolicySearch,
    OrassQueryResult,
    OrassStatistics,
)
from certify_link.services.asaci_client import AsaciClient
from certify_link.services.audit_service import RequestContext
from certify_link.services.certify_link_service import CertifyLinkService
from certify_link.services.orass_service import OrassService

router = APIRouter(prefix="/certify-link", tags=["Certify Link"])


def get_certify_link_service(
    db: Session = Depends(get_db),
    asaci: AsaciClient = Depends(get_asaci_client),
    orass: OrassService = Depends(get_orass_service),
    context: RequestContext = Depends(get_request_context),
) -> CertifyLinkService:
    return CertifyLinkService(db, asaci, orass, context)


def _page(items, total: int, filters: EditionRequestFilter) -> EditionRequestPage:
    return EditionRequestPage(
        items=[EditionRequestResponse.model_validate(i) for i in items],
        total=total,
        page=filters.page,
        limit=filters.limit,
        pages=page_count(total, filters.limit),
    )


# --- Health and reference data ---

@router.get("/health")
def health_check(service: CertifyLinkService = Depends(get_certify_link_service)):
    return service.health_check()


@router.get("/certificate-colors")
def certificate_colors(
    user: User = Depends(require_permissions("policies.read")),
):
    return CertifyLinkService.get_available_certificate_colors()


# --- ORASS ---

@router.get("/policies/search", response_model=OrassQueryResult)
def search_policies(
    criteria: Annotated[OrassPolicySearch, Query()],
    user: User = Depends(require_permissions("policies.read")),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    return service.search_policies(criteria)


@router.get("/orass/statistics", response_model=OrassStatistics)
def orass_statistics(
    user: User = Depends(require_permissions("orass.statistics.read")),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    return service.get_orass_statistics()


# --- Edition requests ---

@router.post(
    "/edition-requests/production",
    response_model=EditionRequestDetail,
    status_code=201,
)
def create_edition_request(
    request: CreateEditionFromOrassDataRequest,
    user: User = Depends(require_permissions("edition.requests.create")),
    db: Session = Depends(get_db),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    """
    Create a certificate from ORASS policy data.

    When ASACI fails the request is kept in FAILED state (so it can be
    retried) and the error is returned as a 502.
    """
    try:
        asaci_request = service.create_edition_request(request, user)
        db.commit()
        return asaci_request
    except ExternalServiceError:
        db.commit()
        raise
    except AppError:
        db.rollback()
        raise


@router.get("/edition-requests", response_model=EditionRequestPage)
def list_edition_requests(
    filters: Annotated[EditionRequestFilter, Query()],
    user: User = Depends(require_permissions("edition.requests.read")),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    items, total = service.list_requests(filters)
    return _page(items, total, filters)


@router.get("/user/edition-requests", response_model=EditionRequestPage)
def list_user_edition_requests(
    filters: Annotated[EditionRequestFilter, Query()],
    user: User = Depends(require_permissions("user.edition.requests.read")),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    items, total = service.list_user_requests(user, filters)
    return _page(items, total, filters)


@router.get(
    "/edition-requests/retryable",
    response_model=list[EditionRequestResponse],
)
def list_retryable_requests(
    limit: int = Query(default=50, ge=1, le=500),
    user: User = Depends(require_permissions("edition.requests.read")),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    return service.find_retryable_requests(limit)


@router.post(
    "/edition-requests/batch-download-links",
    response_model=BatchDownloadLinksResponse,
)
def batch_download_links(
    request: BatchDownloadLinksRequest,
    user: User = Depends(require_permissions("edition.requests.download")),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    return service.get_batch_download_links(request.references, user)


@router.get("/edition-requests/{request_id}", response_model=EditionRequestDetail)
def get_edition_request(
    request_id: int,
    user: User = Depends(get_current_user),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    return service.get_request(request_id, user)


@router.get(
    "/edition-requests/{request_id}/history",
    response_model=list[CertificateAuditEntry],
)
def get_edition_request_history(
    request_id: int,
    user: User = Depends(get_current_user),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    return service.get_request_history(request_id, user)


@router.post(
    "/edition-requests/{request_id}/retry",
    response_model=EditionRequestDetail,
)
def retry_edition_request(
    request_id: int,
    user: User = Depends(require_permissions("edition.requests.create")),
    db: Session = Depends(get_db),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    try:
        asaci_request = service.retry_request(request_id, user)
        db.commit()
        return asaci_request
    except ExternalServiceError:
        db.commit()
        raise
    except AppError:
        db.rollback()
        raise


@router.post(
    "/edition-requests/{request_id}/cancel",
    response_model=EditionRequestResponse,
)
def cancel_edition_request(
    request_id: int,
    user: User = Depends(require_permissions("edition.requests.create")),
    db: Session = Depends(get_db),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    try:
        asaci_request = service.cancel_request(request_id, user)
        db.commit()
        return asaci_request
    except AppError:
        db.rollback()
        raise


@router.post("/edition-requests/{request_id}/download")
def download_certificate(
    request_id: int,
    user: User = Depends(require_permissions("edition.requests.download")),
    db: Session = Depends(get_db),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    """Stream the certificate archive fetched from ASACI."""
    try:
        filename, content = service.download_certificate(request_id, user)
        db.commit()
    except ExternalServiceError:
        db.commit()
        raise
    except AppError:
        db.rollback()
        raise
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/edition-requests/{reference}/download-link",
    response_model=DownloadLink,
)
def get_download_link(
    reference: str,
    user: User = Depends(require_permissions("edition.requests.download")),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    return service.get_download_link(reference, user)


# --- Statistics ---

@router.get("/user/statistics", response_model=UserStatistics)
def user_statistics(
    user: User = Depends(require_permissions("user.statistics.read")),
    service: CertifyLinkService = Depends(get_certify_link_service),
):
    return service.get_user_statistics(user)
