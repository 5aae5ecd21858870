"""
Role management API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from certify_link.api.deps import require_permissions
from certify_link.exceptions import AppError
from certify_link.models.base import get_db
from certify_link.models.user import User
from certify_link.schemas.user import RoleCreate, RoleResponse, RoleUpdate
from certify_link.services.role_service import RoleService

router = APIRouter(prefix="/roles", tags=["Roles"])

manage_roles = require_permissions("roles.manage")


@router.post("", response_model=RoleResponse, status_code=201)
def create_role(
    request: RoleCreate,
    admin: User = Depends(manage_roles),
    db: Session = Depends(get_db),
):
    service = RoleService(db)
    try:
        role = service.create_role(request)
        db.commit()
        return role
    except AppError:
        db.rollback()
        raise


@router.get("", response_model=list[RoleResponse])
def list_roles(
    admin: User = Depends(manage_roles),
    db: Session = Depends(get_db),
):
    return RoleService(db).list_roles()


@router.post("/seed", response_model=list[RoleResponse])
def seed_roles(
    admin: User = Depends(manage_roles),
    db: Session = Depends(get_db),
):
    """Create any missing default role (ADMIN, USER, OPERATOR, VIEWER)."""
    roles = RoleService(db).seed_default_roles()
    db.commit()
    return roles


@router.get("/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: int,
    admin: User = Depends(manage_roles),
    db: Session = Depends(get_db),
):
    return RoleService(db).get_role(role_id)


@router.put("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: int,
    request: RoleUpdate,
    admin: User = Depends(manage_roles),
    db: Session = Depends(get_db),
):
    service = RoleService(db)
    try:
        role = service.update_role(role_id, request)
        db.commit()
        return role
    except AppError:
        db.rollback()
        raise


@router.delete("/{role_id}", status_code=204)
def delete_role(
    role_id: int,
    admin: User = Depends(manage_roles),
    db: Session = Depends(get_db),
):
    service = RoleService(db)
    try:
        service.delete_role(role_id)
        db.commit()
    except AppError:
        db.rollback()
        raise
