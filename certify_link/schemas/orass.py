"""
Pydantic schemas for ORASS policy search.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

MAX_SEARCH_LIMIT = 1000


class OrassPolicySearch(BaseModel):
    """Search criteria; every filter is optional and they combine with AND."""
    policy_number: str | None = Field(default=None, max_length=50)
    vehicle_registration: str | None = Field(default=None, max_length=20)
    vehicle_chassis_number: str | None = Field(default=None, max_length=50)
    subscriber_name: str | None = Field(default=None, max_length=255)
    insured_name: str | None = Field(default=None, max_length=255)
    organization_code: str | None = Field(default=None, max_length=50)
    office_code: str | None = Field(default=None, max_length=50)
    certificate_color: str | None = Field(default=None, max_length=30)
    contract_start_date: date | None = None
    contract_end_date: date | None = None
    limit: int = Field(default=100, ge=1, le=MAX_SEARCH_LIMIT)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def date_range_is_ordered(self):
        if (
            self.contract_start_date
            and self.contract_end_date
            and self.contract_end_date < self.contract_start_date
        ):
            raise ValueError("contract_end_date must not be before contract_start_date")
        return self


class OrassPolicy(BaseModel):
    policy_number: str
    organization_code: str | None = None
    office_code: str | None = None
    subscriber_name: str | None = None
    subscriber_phone: str | None = None
    subscriber_email: str | None = None
    subscriber_address: str | None = None
    insured_name: str | None = None
    insured_phone: str | None = None
    insured_email: str | None = None
    insured_address: str | None = None
    vehicle_registration: str | None = None
    vehicle_chassis_number: str | None = None
    vehicle_brand: str | None = None
    vehicle_model: str | None = None
    vehicle_type: str | None = None
    vehicle_category: str | None = None
    vehicle_usage: str | None = None
    vehicle_genre: str | None = None
    vehicle_energy: str | None = None
    vehicle_seats: int | None = None
    vehicle_fiscal_power: int | None = None
    vehicle_useful_load: Decimal | None = None
    fleet_reduction: Decimal | None = None
    subscriber_type: str | None = None
    premium_rc: Decimal | None = None
    contract_start_date: date | None = None
    contract_end_date: date | None = None
    op_atd: str | None = None
    certificate_color: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrassQueryResult(BaseModel):
    policies: list[OrassPolicy]
    total_count: int
    has_more: bool


class OrassHealth(BaseModel):
    status: str
    response_time_ms: int | None = None
    error: str | None = None
    checked_at: datetime


class OrassStatistics(BaseModel):
    total_policies: int
    by_certificate_color: dict[str, int]
    last_updated: datetime
