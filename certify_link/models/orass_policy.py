"""
ORASS policy table.

ORASS is an external Oracle database owned by the insurer. We only
read from it, so the table lives on its own MetaData: it is never
part of Base.metadata and Alembic never tries to create it.
"""

from functools import lru_cache

from sqlalchemy import (
    Column, Date, DateTime, Integer, MetaData, Numeric, String, Table,
    create_engine,
)
from sqlalchemy.engine import Engine

from certify_link.config import get_settings

orass_metadata = MetaData()

orass_policies = Table(
    "ORASS_POLICIES",
    orass_metadata,
    Column("POLICY_NUMBER", String(50), primary_key=True),
    Column("ORGANIZATION_CODE", String(50)),
    Column("OFFICE_CODE", String(50)),
    Column("SUBSCRIBER_NAME", String(255)),
    Column("SUBSCRIBER_PHONE", String(20)),
    Column("SUBSCRIBER_EMAIL", String(255)),
    Column("SUBSCRIBER_ADDRESS", String(255)),
    Column("INSURED_NAME", String(255)),
    Column("INSURED_PHONE", String(20)),
    Column("INSURED_EMAIL", String(255)),
    Column("INSURED_ADDRESS", String(255)),
    Column("VEHICLE_REGISTRATION", String(20)),
    Column("VEHICLE_CHASSIS_NUMBER", String(50)),
    Column("VEHICLE_BRAND", String(50)),
    Column("VEHICLE_MODEL", String(100)),
    Column("VEHICLE_TYPE", String(10)),
    Column("VEHICLE_CATEGORY", String(10)),
    Column("VEHICLE_USAGE", String(10)),
    Column("VEHICLE_GENRE", String(10)),
    Column("VEHICLE_ENERGY", String(10)),
    Column("VEHICLE_SEATS", Integer),
    Column("VEHICLE_FISCAL_POWER", Integer),
    Column("VEHICLE_USEFUL_LOAD", Numeric(12, 2)),
    Column("FLEET_REDUCTION", Numeric(5, 2)),
    Column("SUBSCRIBER_TYPE", String(10)),
    Column("PREMIUM_RC", Numeric(14, 2)),
    Column("CONTRACT_START_DATE", Date),
    Column("CONTRACT_END_DATE", Date),
    Column("OP_ATD", String(50)),
    Column("CERTIFICATE_COLOR", String(30)),
    Column("CREATED_AT", DateTime),
    Column("UPDATED_AT", DateTime),
)

# Column name -> attribute name on the API side
ORASS_COLUMN_MAP: dict[str, str] = {
    "POLICY_NUMBER": "policy_number",
    "ORGANIZATION_CODE": "organization_code",
    "OFFICE_CODE": "office_code",
    "SUBSCRIBER_NAME": "subscriber_name",
    "SUBSCRIBER_PHONE": "subscriber_phone",
    "SUBSCRIBER_EMAIL": "subscriber_email",
    "SUBSCRIBER_ADDRESS": "subscriber_address",
    "INSURED_NAME": "insured_name",
    "INSURED_PHONE": "insured_phone",
    "INSURED_EMAIL": "insured_email",
    "INSURED_ADDRESS": "insured_address",
    "VEHICLE_REGISTRATION": "vehicle_registration",
    "VEHICLE_CHASSIS_NUMBER": "vehicle_chassis_number",
    "VEHICLE_BRAND": "vehicle_brand",
    "VEHICLE_MODEL": "vehicle_model",
    "VEHICLE_TYPE": "vehicle_type",
    "VEHICLE_CATEGORY": "vehicle_category",
    "VEHICLE_USAGE": "vehicle_usage",
    "VEHICLE_GENRE": "vehicle_genre",
    "VEHICLE_ENERGY": "vehicle_energy",
    "VEHICLE_SEATS": "vehicle_seats",
    "VEHICLE_FISCAL_POWER": "vehicle_fiscal_power",
    "VEHICLE_USEFUL_LOAD": "vehicle_useful_load",
    "FLEET_REDUCTION": "fleet_reduction",
    "SUBSCRIBER_TYPE": "subscriber_type",
    "PREMIUM_RC": "premium_rc",
    "CONTRACT_START_DATE": "contract_start_date",
    "CONTRACT_END_DATE": "contract_end_date",
    "OP_ATD": "op_atd",
    "CERTIFICATE_COLOR": "certificate_color",
    "CREATED_AT": "created_at",
    "UPDATED_AT": "updated_at",
}


@lru_cache()
def get_orass_engine() -> Engine:
    """Engine for the ORASS database, created on first use."""
    settings = get_settings()
    return create_engine(
        settings.ORASS_DATABASE_URL,
        pool_pre_ping=True,
        pool_timeout=settings.ORASS_CONNECTION_TIMEOUT,
    )
