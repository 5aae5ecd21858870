"""Business logic services."""

from certify_link.services.audit_service import AuditService, RequestContext
from certify_link.services.role_service import RoleService
from certify_link.services.auth_service import AuthService
from certify_link.services.user_service import UserService
from certify_link.services.orass_service import OrassService
from certify_link.services.asaci_client import AsaciClient
from certify_link.services.certify_link_service import CertifyLinkService

__all__ = [
    "AuditService",
    "RequestContext",
    "RoleService",
    "AuthService",
    "UserService",
    "OrassService",
    "AsaciClient",
    "CertifyLinkService",
]
