"""
ORASS service: read-only policy lookups against the insurer's database.

Queries are built with SQLAlchemy Core over the ORASS_POLICIES table,
so the dialect takes care of pagination syntax (OFFSET ... FETCH NEXT
on Oracle, LIMIT/OFFSET elsewhere). Any database failure surfaces as
an ExternalServiceError with ORASS_CONNECTION_ERROR.
"""

import logging
import time
from datetime import datetime
from typing import Any

from sqlalchemy import func, literal_column, select
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.exc import SQLAlchemyError

from certify_link.exceptions import ErrorCode, ExternalServiceError, NotFoundError
from certify_link.models.orass_policy import ORASS_COLUMN_MAP, orass_policies
from certify_link.schemas.orass import OrassPolicySearch

logger = logging.getLogger(__name__)

ORASS_SERVICE_NAME = "orass"


def row_to_policy(row: RowMapping) -> dict[str, Any]:
    """Map an ORASS row (upper-case columns) to snake_case keys."""
    return {ORASS_COLUMN_MAP[column]: value for column, value in row.items()}


class OrassService:

    def __init__(self, engine: Engine):
        self.engine = engine

    def _conditions(self, criteria: OrassPolicySearch) -> list:
        c = orass_policies.c
        conditions = []

        # Exact matches
        if criteria.policy_number:
            conditions.append(c.POLICY_NUMBER == criteria.policy_number)
        if criteria.organization_code:
            conditions.append(c.ORGANIZATION_CODE == criteria.organization_code)
        if criteria.office_code:
            conditions.append(c.OFFICE_CODE == criteria.office_code)
        if criteria.certificate_color:
            conditions.append(c.CERTIFICATE_COLOR == criteria.certificate_color)

        # Case-insensitive matches
        if criteria.vehicle_registration:
            conditions.append(
                func.upper(c.VEHICLE_REGISTRATION)
                == criteria.vehicle_registration.upper()
            )
        if criteria.vehicle_chassis_number:
            conditions.append(
                func.upper(c.VEHICLE_CHASSIS_NUMBER)
                == criteria.vehicle_chassis_number.upper()
            )
        if criteria.subscriber_name:
            conditions.append(
                func.upper(c.SUBSCRIBER_NAME).contains(
                    criteria.subscriber_name.upper(), autoescape=True
                )
            )
        if criteria.insured_name:
            conditions.append(
                func.upper(c.INSURED_NAME).contains(
                    criteria.insured_name.upper(), autoescape=True
                )
            )

        if criteria.contract_start_date:
            conditions.append(c.CONTRACT_START_DATE >= criteria.contract_start_date)
        if criteria.contract_end_date:
            conditions.append(c.CONTRACT_END_DATE <= criteria.contract_end_date)
        return conditions

    def _failure(self, action: str, error: SQLAlchemyError) -> ExternalServiceError:
        logger.error("ORASS %s failed: %s", action, error)
        return ExternalServiceError(
            ORASS_SERVICE_NAME,
            f"ORASS {action} failed",
            code=ErrorCode.ORASS_CONNECTION_ERROR,
            details={"error": str(error.__class__.__name__)},
        )

    def search_policies(self, criteria: OrassPolicySearch) -> dict[str, Any]:
        """
        Search policies, newest first.

        Returns {"policies", "total_count", "has_more"} where has_more
        tells whether rows exist beyond offset + len(policies).
        """
        conditions = self._conditions(criteria)
        query = (
            select(orass_policies)
            .where(*conditions)
            .order_by(orass_policies.c.CREATED_AT.desc())
            .limit(criteria.limit)
            .offset(criteria.offset)
        )
        count_query = select(func.count()).select_from(orass_policies).where(
            *conditions
        )

        started = time.perf_counter()
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).mappings().all()
                total = conn.execute(count_query).scalar_one()
        except SQLAlchemyError as e:
            raise self._failure("policy search", e)

        policies = [row_to_policy(row) for row in rows]
        logger.debug(
            "ORASS search returned %d/%d policies in %dms",
            len(policies),
            total,
            (time.perf_counter() - started) * 1000,
        )
        return {
            "policies": policies,
            "total_count": total,
            "has_more": criteria.offset + len(policies) < total,
        }

    def count_policies(self, criteria: OrassPolicySearch) -> int:
        query = select(func.count()).select_from(orass_policies).where(
            *self._conditions(criteria)
        )
        try:
            with self.engine.connect() as conn:
                return conn.execute(query).scalar_one()
        except SQLAlchemyError as e:
            raise self._failure("policy count", e)

    def get_policy(self, policy_number: str) -> dict[str, Any]:
        query = select(orass_policies).where(
            orass_policies.c.POLICY_NUMBER == policy_number
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).mappings().first()
        except SQLAlchemyError as e:
            raise self._failure("policy lookup", e)

        if row is None:
            raise NotFoundError(
                "OrassPolicy", policy_number, code=ErrorCode.ORASS_DATA_NOT_FOUND
            )
        return row_to_policy(row)

    def get_statistics(self) -> dict[str, Any]:
        color = orass_policies.c.CERTIFICATE_COLOR
        query = select(color, func.count()).group_by(color)
        try:
            with self.engine.connect() as conn:
                by_color = {
                    (value or "UNKNOWN"): count
                    for value, count in conn.execute(query).all()
                }
        except SQLAlchemyError as e:
            raise self._failure("statistics", e)

        return {
            "total_policies": sum(by_color.values()),
            "by_certificate_color": by_color,
            "last_updated": datetime.utcnow(),
        }

    def health_check(self) -> dict[str, Any]:
        """Run a trivial query; never raises."""
        started = time.perf_counter()
        try:
            with self.engine.connect() as conn:
                conn.execute(select(literal_column("1")))
        except SQLAlchemyError as e:
            logger.warning("ORASS health check failed: %s", e)
            return {
                "status": "unhealthy",
                "response_time_ms": int((time.perf_counter() - started) * 1000),
                "error": str(e.__class__.__name__),
                "checked_at": datetime.utcnow(),
            }
        return {
            "status": "healthy",
            "response_time_ms": int((time.perf_counter() - started) * 1000),
            "error": None,
            "checked_at": datetime.utcnow(),
        }
