"""
User administration API endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from certify_link.api.deps import page_count, require_permissions
from certify_link.exceptions import AppError
from certify_link.models.base import get_db
from certify_link.models.user import User
from certify_link.schemas.user import (
    BlockUserRequest,
    CreatedUserResponse,
    UserCreate,
    UserPage,
    UserResponse,
    UserUpdate,
)
from certify_link.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=CreatedUserResponse, status_code=201)
def create_user(
    request: UserCreate,
    admin: User = Depends(require_permissions("users.create")),
    db: Session = Depends(get_db),
):
    """Create a user. The temporary password is only ever shown here."""
    service = UserService(db)
    try:
        user, temporary_password = service.create_user(request)
        db.commit()
        return CreatedUserResponse(
            user=UserResponse.model_validate(user),
            temporary_password=temporary_password,
        )
    except AppError:
        db.rollback()
        raise


@router.get("", response_model=UserPage)
def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    is_active: bool | None = None,
    role_id: int | None = None,
    admin: User = Depends(require_permissions("users.read")),
    db: Session = Depends(get_db),
):
    users, total = UserService(db).list_users(page, limit, is_active, role_id)
    return UserPage(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    admin: User = Depends(require_permissions("users.read")),
    db: Session = Depends(get_db),
):
    return UserService(db).get_user(user_id)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    request: UserUpdate,
    admin: User = Depends(require_permissions("users.update")),
    db: Session = Depends(get_db),
):
    service = UserService(db)
    try:
        user = service.update_user(user_id, request)
        db.commit()
        return user
    except AppError:
        db.rollback()
        raise


@router.post("/{user_id}/block", response_model=UserResponse)
def block_user(
    user_id: int,
    request: BlockUserRequest,
    admin: User = Depends(require_permissions("users.block")),
    db: Session = Depends(get_db),
):
    service = UserService(db)
    try:
        user = service.block_user(user_id, request.minutes, request.reason)
        db.commit()
        return user
    except AppError:
        db.rollback()
        raise


@router.post("/{user_id}/unblock", response_model=UserResponse)
def unblock_user(
    user_id: int,
    admin: User = Depends(require_permissions("users.unblock")),
    db: Session = Depends(get_db),
):
    service = UserService(db)
    try:
        user = service.unblock_user(user_id)
        db.commit()
        return user
    except AppError:
        db.rollback()
        raise


@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: int,
    admin: User = Depends(require_permissions("users.delete")),
    db: Session = Depends(get_db),
):
    """Soft delete: the row stays, the user can no longer log in."""
    service = UserService(db)
    try:
        service.delete_user(user_id, acting_user=admin)
        db.commit()
    except AppError:
        db.rollback()
        raise
