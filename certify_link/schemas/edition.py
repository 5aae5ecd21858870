"""
Pydantic schemas for certificate edition requests.

CreateEditionFromOrassDataRequest carries one ORASS policy's data as
the client saw it in a policy search, and knows how to render itself
as an ASACI production request.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field, model_validator

from certify_link.models.enums import (
    AsaciRequestStatus,
    CertificateAuditAction,
    CertificateColor,
    CertificateType,
    ChannelType,
    SubscriberType,
    VehicleCategory,
    VehicleEnergy,
    VehicleGenre,
    VehicleType,
    VehicleUsage,
)

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"
DEFAULT_GENERATED_BY = "ORASS_INTEGRATION"


# --- Request Schemas ---

class CreateEditionFromOrassDataRequest(BaseModel):
    # Request details
    policy_number: str = Field(min_length=1, max_length=50)
    organization_code: str = Field(min_length=1, max_length=50)
    office_code: str = Field(min_length=1, max_length=50)
    certificate_type: CertificateType
    email_notification: EmailStr | None = None
    generated_by: str | None = Field(default=None, max_length=100)
    channel: ChannelType = ChannelType.API
    certificate_color: CertificateColor

    # Subscriber
    subscriber_name: str = Field(min_length=2, max_length=255)
    subscriber_phone: str = Field(pattern=PHONE_PATTERN)
    subscriber_email: EmailStr
    subscriber_po_box: str = Field(min_length=1, max_length=50)
    subscriber_type: SubscriberType

    # Insured
    insured_name: str = Field(min_length=2, max_length=255)
    insured_phone: str = Field(pattern=PHONE_PATTERN)
    insured_email: EmailStr
    insured_po_box: str = Field(min_length=1, max_length=50)

    # Vehicle
    vehicle_registration_number: str = Field(min_length=1, max_length=20)
    vehicle_chassis_number: str = Field(min_length=10, max_length=50)
    vehicle_brand: str = Field(min_length=1, max_length=50)
    vehicle_model: str = Field(min_length=1, max_length=100)
    vehicle_type: VehicleType
    vehicle_category: VehicleCategory
    vehicle_usage: VehicleUsage
    vehicle_genre: VehicleGenre
    vehicle_energy: VehicleEnergy
    vehicle_seats: int = Field(ge=1, le=100)
    vehicle_fiscal_power: float = Field(ge=1, le=50)
    vehicle_useful_load: float = Field(ge=0, le=100_000)
    fleet_reduction: float = Field(ge=0, le=100)

    # Contract
    premium_rc: float = Field(ge=1, le=10_000_000)
    policy_effective_date: date
    policy_expiry_date: date
    r_num: int = Field(ge=1)
    op_atd: str | None = Field(default=None, max_length=50)

    @model_validator(mode="after")
    def expiry_after_effective(self):
        if self.policy_expiry_date <= self.policy_effective_date:
            raise ValueError(
                "policy_expiry_date must be after policy_effective_date"
            )
        return self

    def subscriber_data(self) -> dict[str, Any]:
        return {
            "name": self.subscriber_name,
            "phone": self.subscriber_phone,
            "email": str(self.subscriber_email),
            "po_box": self.subscriber_po_box,
            "type": self.subscriber_type.value,
        }

    def insured_data(self) -> dict[str, Any]:
        return {
            "name": self.insured_name,
            "phone": self.insured_phone,
            "email": str(self.insured_email),
            "po_box": self.insured_po_box,
        }

    def contract_data(self) -> dict[str, Any]:
        return {
            "policy_number": self.policy_number,
            "effective_date": self.policy_effective_date.isoformat(),
            "expiry_date": self.policy_expiry_date.isoformat(),
            "premium_rc": self.premium_rc,
            "r_num": self.r_num,
            "op_atd": self.op_atd,
            "certificate_color": self.certificate_color.value,
        }

    def to_asaci_production_request(self) -> dict[str, Any]:
        """Render the payload expected by ASACI's productions endpoint."""
        return {
            "office_code": self.office_code,
            "organization_code": self.organization_code,
            "certificate_type": self.certificate_type.value,
            "email_notification": (
                str(self.email_notification) if self.email_notification else None
            ),
            "generated_by": self.generated_by or DEFAULT_GENERATED_BY,
            "channel": self.channel.value,
            "productions": [
                {
                    "COULEUR_D_ATTESTATION_A_EDITER": self.certificate_color.value,
                    "PRIME_RC": self.premium_rc,
                    "ENERGIE_DU_VEHICULE": self.vehicle_energy.value,
                    "NUMERO_DE_CHASSIS_DU_VEHICULE": self.vehicle_chassis_number,
                    "MODELE_DU_VEHICULE": self.vehicle_model,
                    "GENRE_DU_VEHICULE": self.vehicle_genre.value,
                    "CATEGORIE_DU_VEHICULE": self.vehicle_category.value,
                    "USAGE_DU_VEHICULE": self.vehicle_usage.value,
                    "MARQUE_DU_VEHICULE": self.vehicle_brand,
                    "TYPE_DU_VEHICULE": self.vehicle_type.value,
                    "NOMBRE_DE_PLACE_DU_VEHICULE": self.vehicle_seats,
                    "TYPE_DE_SOUSCRIPTEUR": self.subscriber_type.value,
                    "NUMERO_DE_TELEPHONE_DU_SOUSCRIPTEUR": self.subscriber_phone,
                    "BOITE_POSTALE_DU_SOUSCRIPTEUR": self.subscriber_po_box,
                    "ADRESSE_EMAIL_DU_SOUSCRIPTEUR": str(self.subscriber_email),
                    "NOM_DU_SOUSCRIPTEUR": self.subscriber_name,
                    "TELEPHONE_MOBILE_DE_L_ASSURE": self.insured_phone,
                    "BOITE_POSTALE_DE_L_ASSURE": self.insured_po_box,
                    "ADRESSE_EMAIL_DE_L_ASSURE": str(self.insured_email),
                    "NOM_DE_L_ASSURE": self.insured_name,
                    "IMMATRICULATION_DU_VEHICULE": self.vehicle_registration_number,
                    "NUMERO_DE_POLICE": self.policy_number,
                    "DATE_D_EFFET_DU_CONTRAT": self.policy_effective_date.isoformat(),
                    "DATE_D_ECHEANCE_DU_CONTRAT": self.policy_expiry_date.isoformat(),
                    "OP_ATD": self.op_atd,
                    "PUISSANCE_FISCALE": self.vehicle_fiscal_power,
                    "CHARGE_UTILE": self.vehicle_useful_load,
                    "REDUCTION_FLOTTE": self.fleet_reduction,
                }
            ],
        }


class EditionRequestFilter(BaseModel):
    status: AsaciRequestStatus | None = None
    user_id: int | None = None
    certificate_type: CertificateType | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class BatchDownloadLinksRequest(BaseModel):
    references: list[str] = Field(min_length=1, max_length=50)


# --- Response Schemas ---

class EditionRequestResponse(BaseModel):
    id: int
    reference: str
    user_id: int
    orass_reference: str
    asaci_reference: str | None
    office_code: str
    organization_code: str
    certificate_type: CertificateType
    channel: ChannelType
    generated_by: str
    status: AsaciRequestStatus
    status_message: str | None
    certificate_url: str | None
    download_count: int
    last_download_at: datetime | None
    error_message: str | None
    retry_count: int
    max_retries: int
    asaci_submitted_at: datetime | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None

    model_config = {"from_attributes": True}


class EditionRequestDetail(EditionRequestResponse):
    orass_data: dict[str, Any] | None
    subscriber_data: dict[str, Any] | None
    insured_data: dict[str, Any] | None
    contract_data: dict[str, Any] | None
    asaci_request_payload: dict[str, Any] | None
    asaci_response_payload: dict[str, Any] | None
    error_details: dict[str, Any] | None


class EditionRequestPage(BaseModel):
    items: list[EditionRequestResponse]
    total: int
    page: int
    limit: int
    pages: int


class DownloadLink(BaseModel):
    reference: str
    certificate_url: str | None
    status: AsaciRequestStatus
    download_count: int


class BatchDownloadLinksResponse(BaseModel):
    links: list[DownloadLink]
    not_found: list[str]


class CertificateAuditEntry(BaseModel):
    id: int
    action: CertificateAuditAction
    old_status: str | None
    new_status: str | None
    user_id: int | None
    details: dict[str, Any] | None
    timestamp: datetime

    model_config = {"from_attributes": True}


class UserStatistics(BaseModel):
    total: int
    by_status: dict[str, int]
    completed: int
    failed: int
    in_progress: int
    cancelled: int
    total_downloads: int
