"""
Role service: role CRUD and the default role set.

Roles are looked up by their upper-case name. seed_default_roles()
is idempotent and runs at startup when SEED_DEFAULT_DATA is set.
"""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from certify_link.config import get_settings
from certify_link.exceptions import (
    ConfigurationError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from certify_link.models.password_history import PasswordHistory
from certify_link.models.role import DEFAULT_ROLE_NAME, Role
from certify_link.models.user import User
from certify_link.schemas.user import RoleCreate, RoleUpdate
from certify_link.security import (
    MAX_PASSWORD_BYTES,
    hash_password,
    password_too_long,
)

logger = logging.getLogger(__name__)

ADMIN_ROLE_NAME = "ADMIN"

DEFAULT_ROLES: list[dict] = [
    {
        "name": ADMIN_ROLE_NAME,
        "description": "System Administrator with full access",
        "permissions": [
            "users.create",
            "users.read",
            "users.update",
            "users.delete",
            "users.block",
            "users.unblock",
            "verify.email",
            "profile.update",
            "profile.read",
            "password.update",
            "roles.manage",
            "policies.read",
            "edition.requests.create",
            "edition.requests.read",
            "user.edition.requests.read",
            "edition.requests.download",
            "user.statistics.read",
            "orass.statistics.read",
            "logs.read",
            "asaci.manage",
        ],
    },
    {
        "name": DEFAULT_ROLE_NAME,
        "description": "Regular user with basic access",
        "permissions": [
            "verify.email",
            "profile.update",
            "profile.read",
            "password.update",
            "policies.read",
            "edition.requests.create",
            "user.edition.requests.read",
            "edition.requests.download",
            "user.statistics.read",
        ],
    },
    {
        "name": "OPERATOR",
        "description": "Operator with production management access",
        "permissions": [
            "edition.requests.create",
            "user.edition.requests.read",
            "edition.requests.download",
            "user.statistics.read",
            "users.read",
            "logs.read",
            "profile.update",
            "password.update",
        ],
    },
    {
        "name": "VIEWER",
        "description": "Read-only access for monitoring",
        "permissions": [
            "edition.requests.read",
            "users.read",
            "logs.read",
        ],
    },
]


class RoleService:

    def __init__(self, db: Session):
        self.db = db

    def _get_by_name(self, name: str) -> Role | None:
        return self.db.execute(
            select(Role).where(Role.name == name.strip().upper())
        ).scalar_one_or_none()

    def create_role(self, request: RoleCreate) -> Role:
        if self._get_by_name(request.name):
            raise ConflictError(f"Role '{request.name}' already exists")

        role = Role(
            name=request.name,
            description=request.description,
            permissions=list(request.permissions),
            is_active=request.is_active,
        )
        self.db.add(role)
        self.db.flush()
        logger.info("Created role %s", role.name)
        return role

    def get_role(self, role_id: int) -> Role:
        role = self.db.get(Role, role_id)
        if not role:
            raise NotFoundError("Role", role_id)
        return role

    def list_roles(self, include_inactive: bool = True) -> list[Role]:
        query = select(Role).order_by(Role.name)
        if not include_inactive:
            query = query.where(Role.is_active.is_(True))
        return list(self.db.execute(query).scalars().all())

    def update_role(self, role_id: int, request: RoleUpdate) -> Role:
        role = self.get_role(role_id)
        changes = request.model_dump(exclude_unset=True)
        if "permissions" in changes and changes["permissions"] is not None:
            # Reassign so the JSON column is flagged dirty
            role.permissions = list(changes.pop("permissions"))
        for field, value in changes.items():
            if value is not None:
                setattr(role, field, value)
        role.updated_at = datetime.utcnow()
        self.db.flush()
        return role

    def delete_role(self, role_id: int) -> None:
        """Delete a role. Refused while any user still holds it."""
        role = self.get_role(role_id)
        holders = self.db.execute(
            select(func.count(User.id)).where(User.role_id == role.id)
        ).scalar_one()
        if holders:
            raise InvalidInputError(
                f"Role '{role.name}' is assigned to {holders} user(s)"
            )
        self.db.delete(role)
        self.db.flush()
        logger.info("Deleted role %s", role.name)

    def get_default_role(self) -> Role:
        """The role given to self-registered users."""
        role = self._get_by_name(DEFAULT_ROLE_NAME)
        if not role:
            raise ConfigurationError(
                f"Default role '{DEFAULT_ROLE_NAME}' is not configured"
            )
        return role

    def seed_default_roles(self) -> list[Role]:
        """Create any missing default role. Existing roles are left untouched."""
        roles = []
        for definition in DEFAULT_ROLES:
            role = self._get_by_name(definition["name"])
            if role is None:
                role = Role(
                    name=definition["name"],
                    description=definition["description"],
                    permissions=list(definition["permissions"]),
                    is_active=True,
                )
                self.db.add(role)
                logger.info("Seeded role %s", role.name)
            roles.append(role)
        self.db.flush()
        return roles

    def ensure_admin_user(self) -> User | None:
        """
        Create the bootstrap administrator from ADMIN_EMAIL/ADMIN_PASSWORD.

        Does nothing when either setting is empty or the user exists.
        """
        settings = get_settings()
        if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
            return None

        email = settings.ADMIN_EMAIL.strip().lower()
        existing = self.db.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()
        if existing:
            return existing

        role = self._get_by_name(ADMIN_ROLE_NAME)
        if not role:
            raise ConfigurationError(f"Role '{ADMIN_ROLE_NAME}' is not configured")

        if password_too_long(settings.ADMIN_PASSWORD):
            raise ConfigurationError(
                f"ADMIN_PASSWORD must be at most {MAX_PASSWORD_BYTES} bytes long"
            )

        now = datetime.utcnow()
        password_hash = hash_password(settings.ADMIN_PASSWORD)
        admin = User(
            email=email,
            password_hash=password_hash,
            first_name="System",
            last_name="Administrator",
            role_id=role.id,
            is_active=True,
            is_email_verified=True,
            email_verified_at=now,
            password_changed_at=now,
        )
        admin.password_history.append(PasswordHistory(password_hash=password_hash))
        self.db.add(admin)
        self.db.flush()
        logger.info("Created bootstrap admin user %s", email)
        return admin
