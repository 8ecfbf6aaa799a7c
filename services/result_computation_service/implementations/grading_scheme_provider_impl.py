"""Grading scheme provider backed by tenant rule rows."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from schoolhub_core.error_enums import ResultComputationErrorCode
from schoolhub_core.grading_schemes import GradeRule, GradingScheme, build_scheme, default_scheme
from schoolhub_service_libs.error_handling import raise_validation_error
from schoolhub_service_libs.logging_utils import create_service_logger
from sqlalchemy import select

from services.result_computation_service.models_db import GradingRuleRecord
from services.result_computation_service.protocols import GradingSchemeProviderProtocol

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker

logger = create_service_logger("result_computation_service.grading_schemes")


class GradingSchemeProviderImpl(GradingSchemeProviderProtocol):
    """Loads a tenant's rule table; tenants without rows get the default scheme."""

    def __init__(self, session_factory: async_sessionmaker, service_name: str):
        self.session_factory = session_factory
        self.service_name = service_name

    async def get_scheme(self, tenant_id: str) -> GradingScheme:
        async with self.session_factory() as session:
            result = await session.execute(
                select(GradingRuleRecord).where(GradingRuleRecord.tenant_id == tenant_id)
            )
            rows = result.scalars().all()

        if not rows:
            return default_scheme()

        rules = [
            GradeRule(
                min_score=row.min_score,
                max_score=row.max_score,
                grade=row.grade,
                remark=row.remark,
                points=row.points,
            )
            for row in rows
        ]
        try:
            return build_scheme(rules, scheme_id=f"tenant:{tenant_id}")
        except ValueError as e:
            logger.error("Tenant grading scheme is malformed", tenant_id=tenant_id, error=str(e))
            raise_validation_error(
                service=self.service_name,
                operation="get_scheme",
                field="grading_rules",
                message=f"Grading scheme for tenant {tenant_id} is invalid: {e}",
                correlation_id=uuid4(),
                reason=ResultComputationErrorCode.INVALID_GRADING_SCHEME.value,
                tenant_id=tenant_id,
            )


class StaticGradingSchemeProvider(GradingSchemeProviderProtocol):
    """Returns fixed schemes; tenants not listed get the default."""

    def __init__(self, schemes: dict[str, GradingScheme] | None = None):
        self.schemes = schemes or {}

    async def get_scheme(self, tenant_id: str) -> GradingScheme:
        return self.schemes.get(tenant_id, default_scheme())
