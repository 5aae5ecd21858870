"""
Role model.

A role is a named bundle of permission strings. Users hold exactly
one role; access checks ask the role whether it grants a permission.
"""

from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from certify_link.models.base import Base


DEFAULT_ROLE_NAME = "USER"
SUPER_ADMIN_ROLE_NAME = "SUPER_ADMIN"


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    permissions: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    users: Mapped[list["User"]] = relationship(back_populates="role")

    def has_permission(self, permission: str | None) -> bool:
        """Exact, case-sensitive membership test."""
        if not permission:
            return False
        return permission in (self.permissions or [])

    def has_any_permission(self, permissions: list[str | None] | None) -> bool:
        if not permissions:
            return False
        return any(self.has_permission(p) for p in permissions if p)

    def has_all_permissions(self, permissions: list[str | None] | None) -> bool:
        if not permissions:
            return False
        wanted = [p for p in permissions if p]
        if not wanted:
            return False
        return all(self.has_permission(p) for p in wanted)

    @property
    def is_super_admin(self) -> bool:
        return self.name == SUPER_ADMIN_ROLE_NAME

    def __repr__(self) -> str:
        return f"<Role {self.name} ({len(self.permissions or [])} permissions)>"
