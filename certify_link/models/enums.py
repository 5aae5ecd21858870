"""
Shared enumerations for database models and request schemas.

Enums mapped to database enums ensure that only valid values are
stored. An unknown request status or operation type is rejected by
the database, not just by Python validation.
"""

import enum


class AsaciRequestStatus(str, enum.Enum):
    """Lifecycle of a certificate request, in the order it is walked."""
    ORASS_FETCHING = "ORASS_FETCHING"
    ORASS_FETCHED = "ORASS_FETCHED"
    ASACI_PENDING = "ASACI_PENDING"
    ASACI_PROCESSING = "ASACI_PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class OperationType(str, enum.Enum):
    ORASS_FETCH = "ORASS_FETCH"
    ASACI_REQUEST = "ASACI_REQUEST"
    ASACI_DOWNLOAD = "ASACI_DOWNLOAD"
    ASACI_AUTH = "ASACI_AUTH"
    CERTIFICATE_VALIDATE = "CERTIFICATE_VALIDATE"
    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"


class OperationStatus(str, enum.Enum):
    STARTED = "STARTED"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"


class CertificateAuditAction(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"
    DOWNLOADED = "downloaded"
    STATUS_CHECKED = "status_checked"


class CertificateType(str, enum.Enum):
    CIMA = "cima"
    POOLTPV = "pooltpv"
    MATCA = "matca"
    POOLTPV_BLEU = "pooltpvbleu"


class CertificateColor(str, enum.Enum):
    CIMA_JAUNE = "cima-jaune"
    CIMA_VERTE = "cima-verte"
    POOLTPV_ROUGE = "pooltpv-rouge"
    POOLTPV_BLEU = "pooltpv-bleu"
    POOLTPV_MARRON = "pooltpv-marron"
    MATCA_BLEU = "matca-bleu"


# ORASS stores colour codes in English; ASACI expects its own labels.
CERTIFICATE_COLOR_MAP: dict[str, CertificateColor] = {
    "CIMA_YELLOW": CertificateColor.CIMA_JAUNE,
    "CIMA_GREEN": CertificateColor.CIMA_VERTE,
    "POOLTPV_RED": CertificateColor.POOLTPV_ROUGE,
    "POOLTPV_BLUE": CertificateColor.POOLTPV_BLEU,
    "POOLTPV_BROWN": CertificateColor.POOLTPV_MARRON,
    "MATCA_BLUE": CertificateColor.MATCA_BLEU,
}


class ChannelType(str, enum.Enum):
    API = "api"
    WEB = "web"


class VehicleEnergy(str, enum.Enum):
    DIESEL = "SEDI"
    ELECTRIC = "SEEL"
    PETROL = "SEES"
    HYBRID = "SEHY"


VehicleCategory = enum.Enum(
    "VehicleCategory",
    {f"C{n:02d}": f"{n:02d}" for n in (*range(1, 11), 12)},
    type=str,
)
VehicleCategory.__doc__ = "ASACI vehicle category codes (01-10 and 12)."

VehicleUsage = enum.Enum(
    "VehicleUsage",
    {f"UV{n:02d}": f"UV{n:02d}" for n in range(1, 11)},
    type=str,
)

VehicleType = enum.Enum(
    "VehicleType",
    {f"TV{n:02d}": f"TV{n:02d}" for n in range(1, 14)},
    type=str,
)

VehicleGenre = enum.Enum(
    "VehicleGenre",
    {f"GV{n:02d}": f"GV{n:02d}" for n in range(1, 13)},
    type=str,
)

SubscriberType = enum.Enum(
    "SubscriberType",
    {f"ST{n:02d}": f"ST{n:02d}" for n in range(1, 13)},
    type=str,
)
