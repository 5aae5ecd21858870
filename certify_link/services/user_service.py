"""
User administration: create, list, update, block and soft-delete.

Admin-created users get a random temporary password, returned once
to the caller so it can be handed over out of band.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from certify_link.exceptions import (
    ConflictError,
    ErrorCode,
    InvalidInputError,
    NotFoundError,
)
from certify_link.models.password_history import PasswordHistory
from certify_link.models.role import Role
from certify_link.models.user import User
from certify_link.schemas.user import UserCreate, UserUpdate
from certify_link.security import generate_temporary_password, hash_password

logger = logging.getLogger(__name__)


class UserService:

    def __init__(self, db: Session):
        self.db = db

    def _require_role(self, role_id: int) -> Role:
        role = self.db.get(Role, role_id)
        if not role:
            raise InvalidInputError("Invalid role specified")
        return role

    def create_user(self, request: UserCreate) -> tuple[User, str]:
        """Create a user and return it with its temporary password."""
        email = request.email.strip().lower()
        existing = self.db.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()
        if existing:
            raise ConflictError("User with this email already exists")

        self._require_role(request.role_id)

        temporary_password = generate_temporary_password()
        password_hash = hash_password(temporary_password)
        user = User(
            email=email,
            password_hash=password_hash,
            first_name=request.first_name,
            last_name=request.last_name,
            phone_number=request.phone_number,
            role_id=request.role_id,
            is_active=request.is_active,
            password_changed_at=datetime.utcnow(),
        )
        user.password_history.append(PasswordHistory(password_hash=password_hash))
        self.db.add(user)
        self.db.flush()
        logger.info("Admin created user %s", user.email)
        return user, temporary_password

    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if not user or user.is_deleted:
            raise NotFoundError("User", user_id, code=ErrorCode.USER_NOT_FOUND)
        return user

    def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        is_active: bool | None = None,
        role_id: int | None = None,
    ) -> tuple[list[User], int]:
        conditions = [User.deleted_at.is_(None)]
        if is_active is not None:
            conditions.append(User.is_active.is_(is_active))
        if role_id is not None:
            conditions.append(User.role_id == role_id)

        total = self.db.execute(
            select(func.count(User.id)).where(*conditions)
        ).scalar_one()
        users = self.db.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        return list(users), total

    def update_user(self, user_id: int, request: UserUpdate) -> User:
        user = self.get_user(user_id)
        changes = request.model_dump(exclude_unset=True)
        if changes.get("role_id") is not None:
            self._require_role(changes["role_id"])
        for field, value in changes.items():
            if field == "phone_number" or value is not None:
                setattr(user, field, value)
        self.db.flush()
        return user

    def block_user(
        self, user_id: int, minutes: int = 30, reason: str | None = None
    ) -> User:
        user = self.get_user(user_id)
        user.locked_until = datetime.utcnow() + timedelta(minutes=minutes)
        self.db.flush()
        logger.warning(
            "User %s blocked for %d minutes: %s", user.email, minutes, reason or "-"
        )
        return user

    def unblock_user(self, user_id: int) -> User:
        """Clear the lock and the failed-attempt counter."""
        user = self.get_user(user_id)
        user.locked_until = None
        user.failed_login_attempts = 0
        self.db.flush()
        logger.info("User %s unblocked", user.email)
        return user

    def delete_user(self, user_id: int, acting_user: User | None = None) -> None:
        user = self.get_user(user_id)
        if acting_user is not None and acting_user.id == user.id:
            raise InvalidInputError("You cannot delete your own account")
        user.deleted_at = datetime.utcnow()
        user.is_active = False
        self.db.flush()
        logger.info("User %s soft-deleted", user.email)
