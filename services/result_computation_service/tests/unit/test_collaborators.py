"""Unit tests for the class directory client and grading scheme providers."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from schoolhub_core.grading_schemes import GradeRule, build_scheme
from schoolhub_service_libs.error_handling import SchoolHubError

from services.result_computation_service.config import Settings
from services.result_computation_service.implementations.class_directory_client_impl import (
    ClassDirectoryClientImpl,
)
from services.result_computation_service.implementations.grading_scheme_provider_impl import (
    GradingSchemeProviderImpl,
    StaticGradingSchemeProvider,
)
from services.result_computation_service.tests.conftest import CLASS_ID, TENANT_ID


def http_session(status: int = 200, payload: Any = None, error: Exception | None = None):
    """aiohttp session mock whose get() yields one canned response or raises."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)

    context = MagicMock()
    if error is not None:
        context.__aenter__ = AsyncMock(side_effect=error)
    else:
        context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock(spec=aiohttp.ClientSession)
    session.get.return_value = context
    return session


def session_factory(rows: list[Any]) -> MagicMock:
    """async_sessionmaker mock whose sessions return ``rows`` from any select."""
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    session = AsyncMock()
    session.execute.return_value = result

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session)
    context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=context)


def rule_row(min_score: int, max_score: int, grade: str, points: float) -> SimpleNamespace:
    return SimpleNamespace(
        min_score=min_score, max_score=max_score, grade=grade, remark=grade, points=points
    )


class TestClassDirectoryClient:
    @pytest.mark.asyncio
    async def test_students_in_class(self, settings: Settings) -> None:
        session = http_session(payload={"students": [{"student_id": "s1"}, {"student_id": "s2"}]})
        client = ClassDirectoryClientImpl(settings, session)

        students = await client.students_in_class(TENANT_ID, CLASS_ID)

        assert students == ["s1", "s2"]
        url = session.get.call_args.args[0]
        assert url == f"http://localhost:5002/internal/v1/classes/{CLASS_ID}/students"
        assert session.get.call_args.kwargs["headers"] == {"X-Tenant-ID": TENANT_ID}

    @pytest.mark.asyncio
    async def test_subjects_in_class(self, settings: Settings) -> None:
        session = http_session(payload={"subjects": [{"subject_id": "math"}]})
        client = ClassDirectoryClientImpl(settings, session)

        assert await client.subjects_in_class(TENANT_ID, CLASS_ID) == ["math"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error_code",
        [(404, "RESOURCE_NOT_FOUND"), (503, "EXTERNAL_SERVICE_ERROR")],
    )
    async def test_error_status_is_mapped(
        self, settings: Settings, status: int, error_code: str
    ) -> None:
        client = ClassDirectoryClientImpl(settings, http_session(status=status))

        with pytest.raises(SchoolHubError) as exc_info:
            await client.students_in_class(TENANT_ID, CLASS_ID)

        assert exc_info.value.error_code == error_code

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, error_code",
        [
            (asyncio.TimeoutError(), "TIMEOUT"),
            (aiohttp.ClientConnectionError("refused"), "CONNECTION_ERROR"),
        ],
    )
    async def test_transport_errors_are_mapped(
        self, settings: Settings, error: Exception, error_code: str
    ) -> None:
        client = ClassDirectoryClientImpl(settings, http_session(error=error))

        with pytest.raises(SchoolHubError) as exc_info:
            await client.students_in_class(TENANT_ID, CLASS_ID)

        assert exc_info.value.error_code == error_code


class TestGradingSchemeProviders:
    @pytest.mark.asyncio
    async def test_tenant_without_rules_gets_default(self) -> None:
        provider = GradingSchemeProviderImpl(session_factory([]), "result_computation_service")

        scheme = await provider.get_scheme(TENANT_ID)

        assert scheme.scheme_id == "waec_9_band"

    @pytest.mark.asyncio
    async def test_tenant_rules_build_a_scheme(self) -> None:
        rows = [rule_row(50, 100, "P", 1.0), rule_row(0, 49, "F", 0.0)]
        provider = GradingSchemeProviderImpl(session_factory(rows), "result_computation_service")

        scheme = await provider.get_scheme(TENANT_ID)

        assert scheme.scheme_id == f"tenant:{TENANT_ID}"
        assert [r.grade for r in scheme.rules] == ["P", "F"]
        assert scheme.lowest_rule.grade == "F"

    @pytest.mark.asyncio
    async def test_malformed_tenant_rules_are_rejected(self) -> None:
        # gap between 49 and 60
        rows = [rule_row(60, 100, "P", 1.0), rule_row(0, 49, "F", 0.0)]
        provider = GradingSchemeProviderImpl(session_factory(rows), "result_computation_service")

        with pytest.raises(SchoolHubError) as exc_info:
            await provider.get_scheme(TENANT_ID)

        assert exc_info.value.error_code == "VALIDATION_ERROR"
        assert exc_info.value.reason == "INVALID_GRADING_SCHEME"

    @pytest.mark.asyncio
    async def test_static_provider(self) -> None:
        pass_fail = build_scheme(
            [
                GradeRule(min_score=50, max_score=100, grade="P", remark="Pass", points=1.0),
                GradeRule(min_score=0, max_score=49, grade="F", remark="Fail", points=0.0),
            ],
            scheme_id="pass_fail",
        )
        provider = StaticGradingSchemeProvider({TENANT_ID: pass_fail})

        assert (await provider.get_scheme(TENANT_ID)).scheme_id == "pass_fail"
        assert (await provider.get_scheme("tenant-other")).scheme_id == "waec_9_band"
