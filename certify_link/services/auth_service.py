"""
Authentication service: login, registration, passwords and 2FA.

Login enforces the lockout policy: every bad password (or bad TOTP
code) increments failed_login_attempts, and reaching
MAX_LOGIN_ATTEMPTS locks the account for ACCOUNT_LOCKOUT_MINUTES.
The counters are written to the session before the error is raised,
so the caller must commit even when login fails.

Passwords are bcrypt hashes. The last PASSWORD_HISTORY_LIMIT hashes
are kept per user and a new password may not match any of them.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from certify_link.config import get_settings
from certify_link.exceptions import (
    AccountLockedError,
    AuthenticationError,
    ErrorCode,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from certify_link.models.enums import OperationStatus, OperationType
from certify_link.models.password_history import PasswordHistory
from certify_link.models.role import Role
from certify_link.models.user import User
from certify_link.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
)
from certify_link.security import (
    REFRESH_TOKEN_TYPE,
    create_token_pair,
    decode_token,
    email_verification_token,
    generate_reset_token,
    generate_totp_secret,
    hash_password,
    hash_token,
    totp_provisioning_uri,
    verify_password,
    verify_totp,
)
from certify_link.services.audit_service import AuditService, RequestContext
from certify_link.services.role_service import ADMIN_ROLE_NAME, RoleService

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
PASSWORD_REUSE_MESSAGE = (
    "Cannot reuse a recent password. Please choose a different password."
)
FORGOT_PASSWORD_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent"
)
RESEND_VERIFICATION_MESSAGE = (
    "If an account with that email exists, a verification email has been sent"
)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _subject_id(claims: dict[str, Any]) -> int | None:
    try:
        return int(claims["sub"])
    except (TypeError, ValueError):
        return None


class AuthService:

    def __init__(self, db: Session, context: RequestContext | None = None):
        self.db = db
        self.settings = get_settings()
        self.audit = AuditService(db, context)
        self.roles = RoleService(db)

    # --- Lookups ---

    def _find_by_email(self, email: str) -> User | None:
        return self.db.execute(
            select(User).where(
                User.email == _normalize_email(email),
                User.deleted_at.is_(None),
            )
        ).scalar_one_or_none()

    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if not user or user.is_deleted:
            raise NotFoundError("User", user_id, code=ErrorCode.USER_NOT_FOUND)
        return user

    # --- Password history ---

    def _recent_password_hashes(self, user: User) -> list[str]:
        return list(self.db.execute(
            select(PasswordHistory.password_hash)
            .where(PasswordHistory.user_id == user.id)
            .order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())
            .limit(self.settings.PASSWORD_HISTORY_LIMIT)
        ).scalars().all())

    def _is_recent_password(self, user: User, password: str) -> bool:
        return any(
            verify_password(password, old_hash)
            for old_hash in self._recent_password_hashes(user)
        )

    def _set_password(self, user: User, password: str) -> None:
        """Hash and store a new password, keeping only the recent history."""
        password_hash = hash_password(password)
        user.password_hash = password_hash
        user.password_changed_at = datetime.utcnow()
        self.db.add(PasswordHistory(user_id=user.id, password_hash=password_hash))
        self.db.flush()

        keep = select(PasswordHistory.id).where(
            PasswordHistory.user_id == user.id
        ).order_by(
            PasswordHistory.created_at.desc(), PasswordHistory.id.desc()
        ).limit(self.settings.PASSWORD_HISTORY_LIMIT)
        keep_ids = list(self.db.execute(keep).scalars().all())
        self.db.execute(
            delete(PasswordHistory).where(
                PasswordHistory.user_id == user.id,
                PasswordHistory.id.not_in(keep_ids),
            ).execution_options(synchronize_session=False)
        )
        self.db.expire(user, ["password_history"])

    # --- Login and tokens ---

    def _register_failed_attempt(self, user: User) -> None:
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        if user.failed_login_attempts >= self.settings.MAX_LOGIN_ATTEMPTS:
            user.locked_until = datetime.utcnow() + timedelta(
                minutes=self.settings.ACCOUNT_LOCKOUT_MINUTES
            )
            logger.warning(
                "Account %s locked after %d failed attempts",
                user.email,
                user.failed_login_attempts,
            )
        self.db.flush()

    def _log_login(
        self,
        status: OperationStatus,
        user: User | None,
        email: str,
        error: Exception | None = None,
    ) -> None:
        self.audit.log_operation(
            OperationType.USER_LOGIN,
            status,
            user_id=user.id if user else None,
            method="POST",
            endpoint="/auth/login",
            request_data={"email": email},
            error_message=str(error) if error else None,
            error_code=error.code.value if error is not None else None,
        )

    def login(self, request: LoginRequest) -> tuple[User, dict[str, Any]]:
        """
        Authenticate a user and issue a token pair.

        Checks run in a fixed order: unknown email, deactivated,
        locked, password, then the TOTP code when 2FA is enabled.
        """
        user = self._find_by_email(request.email)
        try:
            if not user:
                raise InvalidInputError(INVALID_CREDENTIALS)
            if not user.is_active:
                raise PermissionDeniedError(
                    "Account is deactivated", code=ErrorCode.ACCOUNT_DEACTIVATED
                )
            if user.is_locked:
                raise AccountLockedError(
                    "Account is temporarily locked due to too many failed "
                    "login attempts",
                    details={"locked_until": user.locked_until.isoformat()},
                )
            if not verify_password(request.password, user.password_hash):
                self._register_failed_attempt(user)
                raise InvalidInputError(INVALID_CREDENTIALS)
            if user.two_factor_enabled:
                if not request.two_factor_code:
                    raise InvalidInputError(
                        "Two-factor authentication code is required"
                    )
                if not verify_totp(user.two_factor_secret, request.two_factor_code):
                    self._register_failed_attempt(user)
                    raise InvalidInputError(
                        "Invalid two-factor authentication code"
                    )
        except (InvalidInputError, PermissionDeniedError, AccountLockedError) as e:
            self._log_login(OperationStatus.FAILED, user, request.email, e)
            logger.info("Failed login for %s: %s", request.email, e)
            raise

        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = datetime.utcnow()
        self.db.flush()
        self._log_login(OperationStatus.SUCCESS, user, request.email)
        logger.info("User %s logged in", user.email)
        return user, create_token_pair(user.id, request.remember_me)

    def refresh(self, refresh_token: str) -> dict[str, Any]:
        claims = decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        user_id = _subject_id(claims)
        user = self.db.get(User, user_id) if user_id is not None else None
        if not user or user.is_deleted or not user.is_active:
            raise AuthenticationError(
                "Invalid refresh token", code=ErrorCode.INVALID_TOKEN
            )
        return create_token_pair(user.id)

    def logout(self, user: User, logout_all: bool = False) -> str:
        """
        Tokens are stateless, so logout only records the event.
        """
        self.audit.log_operation(
            OperationType.USER_LOGOUT,
            OperationStatus.SUCCESS,
            user_id=user.id,
            method="POST",
            endpoint="/auth/logout",
            extra={"logout_all": logout_all},
        )
        logger.info("User %s logged out", user.email)
        return "Logged out successfully"

    def verify_token(self, token: str) -> dict[str, Any]:
        try:
            claims = decode_token(token)
        except AuthenticationError:
            return {"valid": False, "user_id": None, "expires_at": None}

        user_id = _subject_id(claims)
        user = self.db.get(User, user_id) if user_id is not None else None
        if not user or user.is_deleted or not user.is_active:
            return {"valid": False, "user_id": None, "expires_at": None}
        return {
            "valid": True,
            "user_id": user.id,
            "expires_at": datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        }

    # --- Registration ---

    def register(self, request: RegisterRequest) -> tuple[User, dict[str, Any]]:
        if request.password != request.confirm_password:
            raise InvalidInputError("Password confirmation does not match")

        email = _normalize_email(request.email)
        existing = self.db.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()
        if existing:
            raise InvalidInputError("User with this email already exists")

        if request.role_id is not None:
            role = self.db.get(Role, request.role_id)
            if not role or role.is_super_admin or role.name == ADMIN_ROLE_NAME:
                raise InvalidInputError("Invalid role specified")
        else:
            role = self.roles.get_default_role()

        user = User(
            email=email,
            password_hash="",
            first_name=request.first_name,
            last_name=request.last_name,
            phone_number=request.phone_number,
            role_id=role.id,
            is_active=True,
        )
        self.db.add(user)
        self.db.flush()
        self._set_password(user, request.password)
        self.db.refresh(user)

        logger.info("Registered user %s with role %s", user.email, role.name)
        return user, create_token_pair(user.id)

    # --- Password management ---

    def change_password(self, user: User, request: ChangePasswordRequest) -> None:
        if request.new_password != request.confirm_password:
            raise InvalidInputError("Password confirmation does not match")
        if not verify_password(request.current_password, user.password_hash):
            raise InvalidInputError("Current password is incorrect")
        if self._is_recent_password(user, request.new_password):
            raise InvalidInputError(PASSWORD_REUSE_MESSAGE)

        self._set_password(user, request.new_password)
        self.audit.log_operation(
            OperationType.PASSWORD_CHANGE,
            OperationStatus.SUCCESS,
            user_id=user.id,
            method="POST",
            endpoint="/auth/change-password",
        )
        logger.info("Password changed for user %s", user.email)

    def forgot_password(self, email: str) -> str | None:
        """
        Issue a password reset token.

        Returns the raw token for delivery, or None when no such user
        exists. Only the sha256 of the token is stored. Callers must
        answer with FORGOT_PASSWORD_MESSAGE either way.
        """
        user = self._find_by_email(email)
        if not user or not user.is_active:
            logger.info("Password reset requested for unknown email")
            return None

        token = generate_reset_token()
        user.reset_password_token_hash = hash_token(token)
        user.reset_password_expires_at = datetime.utcnow() + timedelta(
            minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES
        )
        self.db.flush()
        logger.info("Password reset token issued for user %s", user.id)
        return token

    def reset_password(self, request: ResetPasswordRequest) -> None:
        if request.new_password != request.confirm_password:
            raise InvalidInputError("Password confirmation does not match")

        user = self.db.execute(
            select(User).where(
                User.reset_password_token_hash == hash_token(request.token),
                User.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        if (
            not user
            or not user.reset_password_expires_at
            or user.reset_password_expires_at < datetime.utcnow()
        ):
            raise InvalidInputError("Invalid or expired reset token")
        if self._is_recent_password(user, request.new_password):
            raise InvalidInputError(PASSWORD_REUSE_MESSAGE)

        self._set_password(user, request.new_password)
        user.reset_password_token_hash = None
        user.reset_password_expires_at = None
        user.failed_login_attempts = 0
        user.locked_until = None
        self.db.flush()
        self.audit.log_operation(
            OperationType.PASSWORD_CHANGE,
            OperationStatus.SUCCESS,
            user_id=user.id,
            method="POST",
            endpoint="/auth/reset-password",
        )
        logger.info("Password reset for user %s", user.id)

    # --- Email verification ---

    def verify_email(self, user_id: int, token: str) -> None:
        user = self.db.get(User, user_id)
        if not user or user.is_deleted or token != email_verification_token(
            user.id, user.email
        ):
            raise InvalidInputError("Invalid verification link")
        if user.is_email_verified:
            raise InvalidInputError("Email is already verified")

        user.is_email_verified = True
        user.email_verified_at = datetime.utcnow()
        self.db.flush()
        self.audit.log_operation(
            OperationType.EMAIL_VERIFICATION,
            OperationStatus.SUCCESS,
            user_id=user.id,
        )

    def resend_verification(self, email: str) -> str | None:
        """Return a fresh verification token, or None if nothing to send."""
        user = self._find_by_email(email)
        if not user or user.is_email_verified:
            return None
        logger.info("Verification token issued for user %s", user.id)
        return email_verification_token(user.id, user.email)

    # --- Two-factor authentication ---

    def setup_two_factor(self, user: User) -> dict[str, str]:
        if not self.settings.ENABLE_TWO_FACTOR:
            raise InvalidInputError("Two-factor authentication is not available")
        if user.two_factor_enabled:
            raise InvalidInputError("Two-factor authentication is already enabled")

        secret = generate_totp_secret()
        user.two_factor_secret = secret
        self.db.flush()
        return {
            "secret": secret,
            "otpauth_url": totp_provisioning_uri(secret, user.email),
        }

    def enable_two_factor(self, user: User, code: str) -> None:
        if user.two_factor_enabled:
            raise InvalidInputError("Two-factor authentication is already enabled")
        if not user.two_factor_secret:
            raise InvalidInputError("Two-factor setup not initialized")
        if not verify_totp(user.two_factor_secret, code):
            raise InvalidInputError("Invalid verification code")

        user.two_factor_enabled = True
        self.db.flush()
        logger.info("Two-factor authentication enabled for user %s", user.id)

    def disable_two_factor(self, user: User, password: str, code: str) -> None:
        if not user.two_factor_enabled:
            raise InvalidInputError("Two-factor authentication is not enabled")
        if not verify_password(password, user.password_hash):
            raise InvalidInputError("Invalid password")
        if not verify_totp(user.two_factor_secret, code):
            raise InvalidInputError("Invalid verification code")

        user.two_factor_enabled = False
        user.two_factor_secret = None
        self.db.flush()
        logger.info("Two-factor authentication disabled for user %s", user.id)

    # --- Profile ---

    def update_profile(self, user: User, request: UpdateProfileRequest) -> User:
        for field, value in request.model_dump(exclude_unset=True).items():
            if field == "phone_number" or value is not None:
                setattr(user, field, value)
        self.db.flush()
        return user
