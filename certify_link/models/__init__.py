"""
Database models package.

All application models must be imported here so that Alembic can
discover them through Base.metadata when generating migrations.
The ORASS table is deliberately absent: it belongs to an external
database and has its own MetaData.
"""

from certify_link.models.base import Base
from certify_link.models.enums import (
    AsaciRequestStatus,
    OperationType,
    OperationStatus,
    CertificateAuditAction,
    CertificateType,
    CertificateColor,
    ChannelType,
)
from certify_link.models.role import Role
from certify_link.models.user import User
from certify_link.models.password_history import PasswordHistory
from certify_link.models.asaci_request import AsaciRequest
from certify_link.models.certificate_audit_log import CertificateAuditLog
from certify_link.models.operation_log import OperationLog

__all__ = [
    "Base",
    "AsaciRequestStatus",
    "OperationType",
    "OperationStatus",
    "CertificateAuditAction",
    "CertificateType",
    "CertificateColor",
    "ChannelType",
    "Role",
    "User",
    "PasswordHistory",
    "AsaciRequest",
    "CertificateAuditLog",
    "OperationLog",
]
