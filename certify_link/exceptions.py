"""
Application exceptions.

Services raise these; the API layer turns them into RFC 7807
problem-details responses (see certify_link.api.errors). Each
exception knows its HTTP status and a stable machine-readable code.
"""

import enum
from typing import Any


class ErrorCode(str, enum.Enum):
    # Generic
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Authentication
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_DEACTIVATED = "ACCOUNT_DEACTIVATED"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    # Certificates
    CERTIFICATE_NOT_FOUND = "CERTIFICATE_NOT_FOUND"
    CERTIFICATE_ALREADY_EXISTS = "CERTIFICATE_ALREADY_EXISTS"

    # External systems
    ORASS_CONNECTION_ERROR = "ORASS_CONNECTION_ERROR"
    ORASS_DATA_NOT_FOUND = "ORASS_DATA_NOT_FOUND"
    ASACI_CONNECTION_ERROR = "ASACI_CONNECTION_ERROR"
    ASACI_AUTHENTICATION_ERROR = "ASACI_AUTHENTICATION_ERROR"
    ASACI_API_ERROR = "ASACI_API_ERROR"

    # Persistence and operations
    DATABASE_ERROR = "DATABASE_ERROR"
    DUPLICATE_OPERATION = "DUPLICATE_OPERATION"
    INVALID_OPERATION_STATE = "INVALID_OPERATION_STATE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


ERROR_TYPE_BASE_URL = "https://example.com/errors"


class AppError(Exception):
    """Base class for every error the API reports to clients."""

    status_code: int = 500
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_problem_details(self, instance: str | None = None) -> dict[str, Any]:
        code = self.code.value if isinstance(self.code, ErrorCode) else str(self.code)
        return {
            "type": f"{ERROR_TYPE_BASE_URL}/{code}",
            "title": self.__class__.__name__,
            "status": self.status_code,
            "detail": self.message,
            "instance": instance,
            "code": code,
            "details": self.details,
        }


class InvalidInputError(AppError, ValueError):
    status_code = 400
    code = ErrorCode.VALIDATION_ERROR


class AuthenticationError(AppError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED


class PermissionDeniedError(AppError):
    status_code = 403
    code = ErrorCode.FORBIDDEN


class NotFoundError(AppError, LookupError):
    status_code = 404
    code = ErrorCode.NOT_FOUND

    def __init__(
        self,
        resource: str,
        identifier: Any,
        code: ErrorCode | None = None,
    ):
        super().__init__(
            f"{resource} with identifier '{identifier}' not found",
            code=code,
            details={"resource": resource, "identifier": str(identifier)},
        )
        self.resource = resource
        self.identifier = identifier


class ConflictError(AppError):
    status_code = 409
    code = ErrorCode.CONFLICT


class InvalidStateError(AppError):
    status_code = 409
    code = ErrorCode.INVALID_OPERATION_STATE


class AccountLockedError(AppError):
    status_code = 423
    code = ErrorCode.ACCOUNT_LOCKED


class ExternalServiceError(AppError):
    """A dependency (ORASS or ASACI) failed or could not be reached."""

    status_code = 502

    def __init__(
        self,
        service: str,
        message: str,
        code: ErrorCode = ErrorCode.ASACI_API_ERROR,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message,
            code=code,
            details={"service": service, **(details or {})},
        )
        self.service = service


class ConfigurationError(AppError):
    status_code = 500
    code = ErrorCode.CONFIGURATION_ERROR
