"""
Authentication API endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from certify_link.api.deps import (
    get_current_user,
    get_request_context,
    require_permissions,
)
from certify_link.exceptions import AppError
from certify_link.models.base import get_db
from certify_link.models.user import User
from certify_link.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    TokenResponse,
    TwoFactorCodeRequest,
    TwoFactorDisableRequest,
    TwoFactorSetupResponse,
    UnlockAccountRequest,
    UpdateProfileRequest,
    UserProfile,
    VerifyEmailRequest,
    VerifyTokenRequest,
    VerifyTokenResponse,
)
from certify_link.services.audit_service import RequestContext
from certify_link.services.auth_service import (
    FORGOT_PASSWORD_MESSAGE,
    RESEND_VERIFICATION_MESSAGE,
    AuthService,
)
from certify_link.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _auth_response(user: User, tokens: dict) -> AuthResponse:
    return AuthResponse(
        user=UserProfile.model_validate(user),
        tokens=TokenResponse(**tokens),
    )


# --- Account ---

@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Create an account with the default role and log it in."""
    service = AuthService(db, context)
    try:
        user, tokens = service.register(request)
        db.commit()
        return _auth_response(user, tokens)
    except AppError:
        db.rollback()
        raise


@router.post("/login", response_model=AuthResponse)
def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """
    Log in with email and password (and a TOTP code when 2FA is on).

    Failed attempts are committed too: the attempt counter, the lock
    and the failed USER_LOGIN operation log must survive the error.
    """
    service = AuthService(db, context)
    try:
        user, tokens = service.login(request)
    except AppError:
        db.commit()
        raise
    db.commit()
    return _auth_response(user, tokens)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    request: RefreshTokenRequest,
    db: Session = Depends(get_db),
):
    service = AuthService(db)
    return service.refresh(request.refresh_token)


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: LogoutRequest | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    service = AuthService(db, context)
    message = service.logout(user, logout_all=bool(request and request.logout_all))
    db.commit()
    return MessageResponse(message=message)


@router.post("/verify-token", response_model=VerifyTokenResponse)
def verify_token(
    request: VerifyTokenRequest,
    db: Session = Depends(get_db),
):
    return AuthService(db).verify_token(request.token)


# --- Passwords ---

@router.post("/change-password", response_model=MessageResponse)
def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    service = AuthService(db, context)
    try:
        service.change_password(user, request)
        db.commit()
        return MessageResponse(message="Password changed successfully")
    except AppError:
        db.rollback()
        raise


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db),
):
    """
    Start a password reset.

    The answer is the same whether or not the email exists. The raw
    token goes to the delivery channel, never into the response.
    """
    service = AuthService(db)
    token = service.forgot_password(request.email)
    db.commit()
    if token:
        # No mail transport is wired in; delivery is left to operators.
        logger.debug("Password reset token generated for %s", request.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    request: ResetPasswordRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    service = AuthService(db, context)
    try:
        service.reset_password(request)
        db.commit()
        return MessageResponse(message="Password has been reset successfully")
    except AppError:
        db.rollback()
        raise


# --- Email verification ---

@router.post("/verify-email", response_model=MessageResponse)
def verify_email(
    request: VerifyEmailRequest,
    db: Session = Depends(get_db),
):
    service = AuthService(db)
    try:
        service.verify_email(request.user_id, request.token)
        db.commit()
        return MessageResponse(message="Email verified successfully")
    except AppError:
        db.rollback()
        raise


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(
    request: ResendVerificationRequest,
    db: Session = Depends(get_db),
):
    AuthService(db).resend_verification(request.email)
    return MessageResponse(message=RESEND_VERIFICATION_MESSAGE)


# --- Profile ---

@router.get("/profile", response_model=UserProfile)
def get_profile(user: User = Depends(get_current_user)):
    return user


@router.put("/profile", response_model=UserProfile)
def update_profile(
    request: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = AuthService(db)
    try:
        updated = service.update_profile(user, request)
        db.commit()
        return updated
    except AppError:
        db.rollback()
        raise


# --- Two-factor authentication ---

@router.post("/2fa/setup", response_model=TwoFactorSetupResponse)
def setup_two_factor(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Generate a TOTP secret. 2FA stays off until /2fa/enable confirms a code."""
    service = AuthService(db)
    try:
        result = service.setup_two_factor(user)
        db.commit()
        return result
    except AppError:
        db.rollback()
        raise


@router.post("/2fa/enable", response_model=MessageResponse)
def enable_two_factor(
    request: TwoFactorCodeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = AuthService(db)
    try:
        service.enable_two_factor(user, request.code)
        db.commit()
        return MessageResponse(message="Two-factor authentication enabled")
    except AppError:
        db.rollback()
        raise


@router.post("/2fa/disable", response_model=MessageResponse)
def disable_two_factor(
    request: TwoFactorDisableRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = AuthService(db)
    try:
        service.disable_two_factor(user, request.password, request.code)
        db.commit()
        return MessageResponse(message="Two-factor authentication disabled")
    except AppError:
        db.rollback()
        raise


# --- Administration ---

@router.post("/unlock-account", response_model=MessageResponse)
def unlock_account(
    request: UnlockAccountRequest,
    admin: User = Depends(require_permissions("users.unblock")),
    db: Session = Depends(get_db),
):
    service = UserService(db)
    try:
        user = service.unblock_user(request.user_id)
        db.commit()
        return MessageResponse(message=f"Account {user.email} unlocked")
    except AppError:
        db.rollback()
        raise
