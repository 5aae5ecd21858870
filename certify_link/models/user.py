"""
User model.

Users authenticate with email and password (optionally a TOTP code)
and act through their role's permissions. Rows are soft-deleted:
deleted_at is set and the user can no longer log in, but their
certificate requests and logs keep pointing at them.
"""

from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from certify_link.models.base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    role_id: Mapped[int] = mapped_column(
        ForeignKey("roles.id"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    is_email_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    email_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    failed_login_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    locked_until: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    reset_password_token_hash: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    reset_password_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    two_factor_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    two_factor_secret: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )

    # Relationships
    role: Mapped["Role"] = relationship(back_populates="users")
    password_history: Mapped[list["PasswordHistory"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_locked(self) -> bool:
        return self.locked_until is not None and self.locked_until > datetime.utcnow()

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def permissions(self) -> list[str]:
        return list(self.role.permissions or []) if self.role else []

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.name if self.role else '-'})>"
