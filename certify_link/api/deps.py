"""
Shared request dependencies: authentication, permissions and clients.
"""

import math
from typing import Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from certify_link.api.errors import TRACE_HEADER
from certify_link.exceptions import (
    AccountLockedError,
    AuthenticationError,
    ErrorCode,
    PermissionDeniedError,
)
from certify_link.models.base import get_db
from certify_link.models.orass_policy import get_orass_engine
from certify_link.models.user import User
from certify_link.security import decode_token
from certify_link.services.asaci_client import AsaciClient, get_shared_asaci_client
from certify_link.services.audit_service import RequestContext
from certify_link.services.orass_service import OrassService

bearer_scheme = HTTPBearer(auto_error=False)


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        correlation_id=request.headers.get(TRACE_HEADER),
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the user behind a Bearer access token.

    Missing, malformed or expired tokens and deleted or inactive users
    are 401. A locked user is 423.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Authentication required")

    claims = decode_token(credentials.credentials)
    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token", code=ErrorCode.INVALID_TOKEN)

    user = db.get(User, user_id)
    if not user or user.is_deleted:
        raise AuthenticationError("User not found", code=ErrorCode.USER_NOT_FOUND)
    if not user.is_active:
        raise AuthenticationError(
            "Account is deactivated", code=ErrorCode.ACCOUNT_DEACTIVATED
        )
    if user.is_locked:
        raise AccountLockedError("Account is temporarily locked")
    return user


def require_permissions(*permissions: str) -> Callable[..., User]:
    """Dependency requiring every listed permission. SUPER_ADMIN passes all checks."""

    def checker(user: User = Depends(get_current_user)) -> User:
        role = user.role
        if role is not None and role.is_super_admin:
            return user
        if role is None or not role.is_active or not role.has_all_permissions(
            list(permissions)
        ):
            raise PermissionDeniedError(
                "Insufficient permissions",
                details={"required": list(permissions)},
            )
        return user

    return checker


def require_roles(*role_names: str) -> Callable[..., User]:
    """Dependency requiring the user's role to be one of role_names."""
    wanted = {name.upper() for name in role_names}

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role is None or user.role.name.upper() not in wanted:
            raise PermissionDeniedError(
                "Insufficient role",
                details={"required_roles": sorted(wanted)},
            )
        return user

    return checker


def get_asaci_client() -> AsaciClient:
    return get_shared_asaci_client()


def get_orass_service() -> OrassService:
    return OrassService(get_orass_engine())
