"""
ASACI proxy endpoints.

Thin pass-through to AsaciClient for authenticated users. Reads only
need a valid login; anything that changes state at ASACI needs the
asaci.manage permission, and the welcome flow is for administrators.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response

from certify_link.api.deps import (
    get_asaci_client,
    get_current_user,
    require_permissions,
    require_roles,
)
from certify_link.models.user import User
from certify_link.services.asaci_client import AsaciClient

router = APIRouter(prefix="/asaci", tags=["ASACI"])

manage_asaci = require_permissions("asaci.manage")
administrators = require_roles("ADMIN", "SUPER_ADMIN")

Payload = dict[str, Any]


def _zip(content: bytes, reference: str) -> Response:
    return Response(
        content=content,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{reference}.zip"'
        },
    )


# --- Authentication ---

@router.post("/auth/tokens")
def generate_token(
    email: str = Body(...),
    password: str = Body(...),
    client_name: str | None = Body(default=None),
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.generate_token(email, password, client_name)


@router.post("/auth/otp/validate")
def validate_otp(
    otp: str = Body(..., embed=True),
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.validate_otp(otp)


@router.post("/auth/otp/resend")
def resend_otp(
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.resend_otp()


@router.post("/auth/forgot-password")
def forgot_password(
    email: str = Body(..., embed=True),
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.forgot_password(email)


@router.post("/auth/reset-password")
def reset_password(
    payload: Payload,
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.reset_password(payload)


@router.post("/auth/welcome/send")
def send_welcome(
    user_id: str = Body(..., embed=True),
    admin: User = Depends(administrators),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.send_welcome(user_id)


@router.post("/auth/welcome/{user_id}/set-password")
def set_initial_password(
    user_id: str,
    payload: Payload,
    admin: User = Depends(administrators),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.set_initial_password(user_id, payload)


@router.get("/auth/user")
def current_asaci_user(
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_current_user()


@router.get("/auth/tokens")
def list_tokens(
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.list_tokens()


@router.post("/auth/tokens/revoke")
def revoke_tokens(
    token_ids: list[str] | None = Body(default=None, embed=True),
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.revoke_tokens(token_ids)


@router.delete("/auth/tokens")
def delete_current_token(
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.delete_current_token()


# --- Productions ---

@router.post("/productions")
def create_production(
    payload: Payload,
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.create_production(payload)


@router.get("/productions")
def list_productions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.list_productions(page, limit)


@router.get("/productions/fetch")
def fetch_production(
    policy_number: str,
    organization_code: str,
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.fetch_production(policy_number, organization_code)


@router.get("/productions/{reference}/download")
def download_production(
    reference: str,
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return _zip(asaci.download_production(reference), reference)


# --- Orders ---

@router.post("/orders")
def create_order(
    payload: Payload,
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.create_order(payload)


@router.get("/orders")
def list_orders(
    page: int | None = Query(default=None, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    status: str | None = None,
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.list_orders({"page": page, "limit": limit, "status": status})


@router.get("/orders/statuses")
def order_statuses(
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_order_statuses()


@router.get("/orders/statistics/delivered")
def delivered_order_statistics(
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_delivered_order_statistics()


@router.get("/orders/{reference}")
def get_order(
    reference: str,
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_order(reference)


@router.put("/orders/{reference}")
def update_order(
    reference: str,
    payload: Payload,
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.update_order(reference, payload)


@router.post("/orders/{reference}/{action}")
def order_action(
    reference: str,
    action: str,
    payload: Payload | None = None,
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    """approve, reject, cancel, suspend, submit-for-confirmation or confirm-delivery."""
    return asaci.order_action(reference, action, payload)


# --- Certificates ---

@router.get("/certificates")
def list_certificates(
    page: int | None = Query(default=None, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.list_certificates({"page": page, "limit": limit})


@router.get("/certificate-types")
def certificate_types(
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_certificate_types()


@router.get("/certificate-variants")
def certificate_variants(
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_certificate_variants()


@router.get("/certificates/statistics/usage")
def certificate_usage_statistics(
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_certificate_usage_statistics()


@router.get("/certificates/statistics/available")
def available_certificate_statistics(
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_available_certificate_statistics()


@router.get("/certificates/statistics/used")
def used_certificate_statistics(
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_used_certificate_statistics()


@router.get("/certificates/{reference}")
def get_certificate(
    reference: str,
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_certificate(reference)


@router.get("/certificates/{reference}/download")
def download_certificate(
    reference: str,
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return _zip(asaci.download_certificate(reference), reference)


@router.get("/certificates/{reference}/related")
def related_certificates(
    reference: str,
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_related_certificates(reference)


@router.post("/certificates/{reference}/cancel")
def cancel_certificate(
    reference: str,
    reason: str | None = Body(default=None, embed=True),
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.cancel_certificate(reference, reason)


@router.post("/certificates/{reference}/suspend")
def suspend_certificate(
    reference: str,
    reason: str | None = Body(default=None, embed=True),
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.suspend_certificate(reference, reason)


@router.post("/certificates/{reference}/check")
def check_certificate(
    reference: str,
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.check_certificate(reference)


# --- Transactions ---

@router.post("/transactions")
def create_transaction(
    payload: Payload,
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.create_transaction(payload)


@router.get("/transactions")
def list_transactions(
    page: int | None = Query(default=None, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.list_transactions({"page": page, "limit": limit})


@router.get("/transactions/statistics")
def transaction_statistics(
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_transaction_statistics()


@router.get("/transactions/{reference}")
def get_transaction(
    reference: str,
    user: User = Depends(get_current_user),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.get_transaction(reference)


@router.put("/transactions/{reference}")
def update_transaction(
    reference: str,
    payload: Payload,
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    return asaci.update_transaction(reference, payload)


@router.post("/transactions/{reference}/{action}")
def transaction_action(
    reference: str,
    action: str,
    payload: Payload | None = None,
    user: User = Depends(manage_asaci),
    asaci: AsaciClient = Depends(get_asaci_client),
):
    """approve, reject or cancel."""
    return asaci.transaction_action(reference, action, payload)
