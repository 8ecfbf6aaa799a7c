"""Unit tests for statistics, position and broadsheet queries."""

from __future__ import annotations

import pytest
import pytest_asyncio
from schoolhub_core.status_enums import PromotionStatus
from schoolhub_service_libs.error_handling import SchoolHubError

from services.result_computation_service.config import Settings
from services.result_computation_service.implementations.computation_orchestrator_impl import (
    ResultComputationOrchestratorImpl,
)
from services.result_computation_service.implementations.in_memory_repositories import (
    InMemoryResultRepository,
)
from services.result_computation_service.implementations.result_query_service_impl import (
    ResultQueryServiceImpl,
)
from services.result_computation_service.models_api import ComputationRequest
from services.result_computation_service.tests.conftest import (
    CLASS_ID,
    TENANT_ID,
    TERM_ID,
    SeedScores,
)


@pytest.fixture
def query_service(
    result_repository: InMemoryResultRepository, settings: Settings
) -> ResultQueryServiceImpl:
    return ResultQueryServiceImpl(result_repository, settings)


@pytest_asyncio.fixture
async def computed(
    seed_scores: SeedScores, orchestrator: ResultComputationOrchestratorImpl
) -> None:
    # math: s1 90, s2 90, s3 40; english: s1 70, s2 50
    seed_scores("s1", "math", ca=35, exam=55)
    seed_scores("s2", "math", ca=30, exam=60)
    seed_scores("s3", "math", ca=15, exam=25)
    seed_scores("s1", "english", ca=30, exam=40)
    seed_scores("s2", "english", ca=20, exam=30)
    await orchestrator.compute_results(
        ComputationRequest(tenant_id=TENANT_ID, term_id=TERM_ID, class_id=CLASS_ID)
    )


class TestResultQueries:
    @pytest.mark.asyncio
    async def test_class_statistics(
        self, computed: None, query_service: ResultQueryServiceImpl
    ) -> None:
        stats = await query_service.class_statistics(TENANT_ID, TERM_ID, CLASS_ID, "math")

        assert stats.subject_id == "math"
        assert stats.average == 73.33
        assert (stats.highest, stats.lowest) == (90, 40)
        assert stats.student_count == 3

    @pytest.mark.asyncio
    async def test_positions(self, computed: None, query_service: ResultQueryServiceImpl) -> None:
        positions = await query_service.positions(TENANT_ID, TERM_ID, CLASS_ID)

        assert positions == {"s1": 1, "s2": 2, "s3": 3}

    @pytest.mark.asyncio
    async def test_subject_positions_share_ties(
        self, computed: None, query_service: ResultQueryServiceImpl
    ) -> None:
        positions = await query_service.subject_positions(TENANT_ID, TERM_ID, CLASS_ID, "math")

        assert positions == {"s1": 1, "s2": 1, "s3": 3}

    @pytest.mark.asyncio
    async def test_term_statistics(
        self, computed: None, query_service: ResultQueryServiceImpl
    ) -> None:
        stats = await query_service.term_statistics(TENANT_ID, TERM_ID, CLASS_ID)

        # averages: s1 80.0, s2 70.0, s3 40.0
        assert stats.total_students == 3
        assert stats.average == 63.33
        assert (stats.highest, stats.lowest) == (80.0, 40.0)

    @pytest.mark.asyncio
    async def test_broadsheet(self, computed: None, query_service: ResultQueryServiceImpl) -> None:
        sheet = await query_service.broadsheet(TENANT_ID, TERM_ID, CLASS_ID)

        assert sheet.subjects == ["english", "math"]
        assert [row.student_id for row in sheet.rows] == ["s1", "s2", "s3"]
        top = sheet.rows[0]
        assert top.subjects["math"].total == 90
        assert top.subjects["math"].grade == "A1"
        assert top.promotion_status == PromotionStatus.PROMOTED
        assert set(sheet.rows[2].subjects) == {"math"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "operation",
        ["positions", "term_statistics", "broadsheet"],
    )
    async def test_queries_before_computation_are_not_found(
        self, query_service: ResultQueryServiceImpl, operation: str
    ) -> None:
        with pytest.raises(SchoolHubError) as exc_info:
            await getattr(query_service, operation)(TENANT_ID, TERM_ID, CLASS_ID)

        assert exc_info.value.error_code == "RESOURCE_NOT_FOUND"
        assert exc_info.value.reason == "NO_COMPUTED_RESULTS"

    @pytest.mark.asyncio
    async def test_unknown_subject_is_not_found(
        self, computed: None, query_service: ResultQueryServiceImpl
    ) -> None:
        with pytest.raises(SchoolHubError) as exc_info:
            await query_service.class_statistics(TENANT_ID, TERM_ID, CLASS_ID, "physics")

        assert exc_info.value.reason == "NO_COMPUTED_RESULTS"

    @pytest.mark.asyncio
    async def test_other_tenant_sees_nothing(
        self, computed: None, query_service: ResultQueryServiceImpl
    ) -> None:
        with pytest.raises(SchoolHubError):
            await query_service.positions("tenant-other", TERM_ID, CLASS_ID)
