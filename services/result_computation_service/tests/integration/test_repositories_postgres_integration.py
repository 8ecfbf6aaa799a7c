"""
Integration tests for the PostgreSQL score, result and grading scheme stores.

These run against a real PostgreSQL started with testcontainers so the
ON CONFLICT upserts, the unchanged-row comparison and the UPDATE ... RETURNING
publication transitions are exercised as production runs them.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from schoolhub_core.status_enums import ResultStatus, ScoreReviewStatus, TermResultStatus
from schoolhub_service_libs.error_handling import SchoolHubError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from testcontainers.postgres import PostgresContainer

from services.result_computation_service.implementations.class_directory_client_impl import (
    InMemoryClassDirectory,
)
from services.result_computation_service.implementations.computation_orchestrator_impl import (
    ResultComputationOrchestratorImpl,
)
from services.result_computation_service.implementations.grading_scheme_provider_impl import (
    GradingSchemeProviderImpl,
)
from services.result_computation_service.implementations.result_repository_postgres_impl import (
    ResultRepositoryPostgresImpl,
)
from services.result_computation_service.implementations.score_repository_postgres_impl import (
    ScoreRepositoryPostgresImpl,
)
from services.result_computation_service.metrics import ResultComputationMetrics
from services.result_computation_service.models_api import ComputationRequest, ScoreEntryInput
from services.result_computation_service.models_db import Base, GradingRuleRecord
from services.result_computation_service.tests.conftest import CLASS_ID, TENANT_ID, TERM_ID

SERVICE_NAME = "result_computation_service"
TEACHER_ID = "teacher-42"


def entries(student_id: str, subject_id: str, ca: int, exam: int) -> list[ScoreEntryInput]:
    return [
        ScoreEntryInput(
            student_id=student_id,
            subject_id=subject_id,
            assessment_type="CA1",
            score=ca,
            max_score=40,
        ),
        ScoreEntryInput(
            student_id=student_id,
            subject_id=subject_id,
            assessment_type="EXAM",
            score=exam,
            max_score=60,
        ),
    ]


@pytest.mark.integration
@pytest.mark.docker
class TestPostgresRepositoriesIntegration:
    """Score, result and grading scheme stores against a real PostgreSQL."""

    @pytest.fixture(scope="class")
    def postgres_container(self) -> Generator[PostgresContainer, None, None]:
        container = PostgresContainer("postgres:15-alpine").with_env("TZ", "UTC")
        container.start()
        yield container
        container.stop()

    @pytest.fixture
    def database_url(self, postgres_container: PostgresContainer) -> str:
        connection_url = postgres_container.get_connection_url()
        # Convert to async PostgreSQL connection
        if "+psycopg2://" in connection_url:
            return connection_url.replace("+psycopg2://", "+asyncpg://")
        return connection_url.replace("postgresql://", "postgresql+asyncpg://")

    @pytest_asyncio.fixture
    async def database_engine(self, database_url: str) -> AsyncGenerator[AsyncEngine, None]:
        engine = create_async_engine(database_url, pool_size=2, max_overflow=1, echo=False)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        try:
            yield engine
        finally:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
            await engine.dispose()

    @pytest.fixture
    def session_factory(self, database_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return async_sessionmaker(database_engine, expire_on_commit=False, class_=AsyncSession)

    @pytest.fixture
    def pg_scores(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> ScoreRepositoryPostgresImpl:
        return ScoreRepositoryPostgresImpl(session_factory)

    @pytest.fixture
    def pg_results(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> ResultRepositoryPostgresImpl:
        return ResultRepositoryPostgresImpl(session_factory)

    @pytest.fixture
    def pg_orchestrator(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pg_scores: ScoreRepositoryPostgresImpl,
        pg_results: ResultRepositoryPostgresImpl,
        metrics: ResultComputationMetrics,
    ) -> ResultComputationOrchestratorImpl:
        directory = InMemoryClassDirectory()
        directory.students[(TENANT_ID, CLASS_ID)] = ["s1", "s2", "s3"]
        return ResultComputationOrchestratorImpl(
            score_repository=pg_scores,
            result_repository=pg_results,
            scheme_provider=GradingSchemeProviderImpl(session_factory, SERVICE_NAME),
            class_directory=directory,
            metrics=metrics,
        )

    @pytest_asyncio.fixture
    async def computed_class(
        self,
        pg_scores: ScoreRepositoryPostgresImpl,
        pg_orchestrator: ResultComputationOrchestratorImpl,
    ) -> ComputationRequest:
        await pg_scores.upsert_scores(
            TENANT_ID,
            TERM_ID,
            CLASS_ID,
            entries("s1", "math", 35, 50)
            + entries("s1", "english", 30, 40)
            + entries("s2", "math", 20, 30)
            + entries("s2", "english", 25, 45)
            + entries("s3", "math", 35, 50)
            + entries("s3", "english", 10, 20),
            entered_by=TEACHER_ID,
        )
        request = ComputationRequest(tenant_id=TENANT_ID, term_id=TERM_ID, class_id=CLASS_ID)
        progress = await pg_orchestrator.compute_results(request)
        assert (progress.processed, progress.failed) == (3, 0)
        return request

    @pytest.mark.asyncio
    async def test_score_upsert_overwrites_and_resets_review(
        self, pg_scores: ScoreRepositoryPostgresImpl
    ) -> None:
        await pg_scores.upsert_scores(
            TENANT_ID, TERM_ID, CLASS_ID, entries("s1", "math", 30, 50), entered_by=TEACHER_ID
        )
        verified = await pg_scores.update_review_status(
            TENANT_ID,
            TERM_ID,
            CLASS_ID,
            from_statuses=[ScoreReviewStatus.PENDING],
            to_status=ScoreReviewStatus.VERIFIED,
            subject_id="math",
        )
        assert verified == 2

        await pg_scores.upsert_scores(
            TENANT_ID, TERM_ID, CLASS_ID, entries("s1", "math", 38, 50)[:1], entered_by="teacher-7"
        )

        scores = await pg_scores.get_student_scores(TENANT_ID, "s1", TERM_ID, CLASS_ID)
        by_type = {s.assessment_type: s for s in scores}
        assert len(scores) == 2
        assert by_type["CA1"].score == 38
        assert by_type["CA1"].review_status == ScoreReviewStatus.PENDING
        assert by_type["EXAM"].review_status == ScoreReviewStatus.VERIFIED

    @pytest.mark.asyncio
    async def test_scores_are_isolated_by_tenant(
        self, pg_scores: ScoreRepositoryPostgresImpl
    ) -> None:
        await pg_scores.upsert_scores(
            TENANT_ID, TERM_ID, CLASS_ID, entries("s1", "math", 30, 50), entered_by=TEACHER_ID
        )
        await pg_scores.upsert_scores(
            "tenant-other", TERM_ID, CLASS_ID, entries("s1", "math", 1, 2), entered_by=TEACHER_ID
        )

        scores = await pg_scores.get_class_scores(TENANT_ID, TERM_ID, CLASS_ID)

        assert sorted(s.score for s in scores) == [30, 50]

    @pytest.mark.asyncio
    async def test_recompute_leaves_unchanged_rows_untouched(
        self,
        computed_class: ComputationRequest,
        pg_orchestrator: ResultComputationOrchestratorImpl,
        pg_results: ResultRepositoryPostgresImpl,
    ) -> None:
        first_terms = await pg_results.get_term_results(TENANT_ID, TERM_ID, CLASS_ID)
        first_snapshots = await pg_results.get_snapshots(TENANT_ID, TERM_ID, CLASS_ID)

        await pg_orchestrator.compute_results(computed_class)

        assert await pg_results.get_term_results(TENANT_ID, TERM_ID, CLASS_ID) == first_terms
        assert await pg_results.get_snapshots(TENANT_ID, TERM_ID, CLASS_ID) == first_snapshots

        outcome = await pg_results.save_results(
            TENANT_ID,
            [s.values for s in first_snapshots],
            [t.values for t in first_terms],
            computed_at=datetime.now(UTC),
        )
        assert (outcome.inserted, outcome.updated, outcome.unchanged) == (0, 0, 9)

    @pytest.mark.asyncio
    async def test_ties_share_position_after_round_trip(
        self, computed_class: ComputationRequest, pg_results: ResultRepositoryPostgresImpl
    ) -> None:
        math = await pg_results.get_snapshots(TENANT_ID, TERM_ID, CLASS_ID, subject_id="math")

        positions = {s.values.student_id: s.values.position for s in math}
        assert positions == {"s1": 1, "s3": 1, "s2": 3}

    @pytest.mark.asyncio
    async def test_publish_unpublish_round_trip(
        self,
        computed_class: ComputationRequest,
        pg_results: ResultRepositoryPostgresImpl,
        pg_scores: ScoreRepositoryPostgresImpl,
    ) -> None:
        published_at = datetime.now(UTC)

        change = await pg_results.mark_published(TENANT_ID, TERM_ID, CLASS_ID, published_at)

        assert change.student_ids == ["s1", "s2", "s3"]
        assert change.scores_changed == 12
        term_results = await pg_results.get_term_results(TENANT_ID, TERM_ID, CLASS_ID)
        assert {t.status for t in term_results} == {TermResultStatus.PUBLISHED}
        assert {t.published_at for t in term_results} == {published_at}
        snapshots = await pg_results.get_snapshots(TENANT_ID, TERM_ID, CLASS_ID)
        assert {s.status for s in snapshots} == {ResultStatus.PUBLISHED}
        scores = await pg_scores.get_class_scores(TENANT_ID, TERM_ID, CLASS_ID)
        assert {s.review_status for s in scores} == {ScoreReviewStatus.PUBLISHED}

        again = await pg_results.mark_published(TENANT_ID, TERM_ID, CLASS_ID, published_at)
        assert again.student_ids == []

        reverted = await pg_results.mark_unpublished(TENANT_ID, TERM_ID, CLASS_ID)

        assert reverted.student_ids == ["s1", "s2", "s3"]
        assert reverted.scores_changed == 12
        term_results = await pg_results.get_term_results(TENANT_ID, TERM_ID, CLASS_ID)
        assert {t.status for t in term_results} == {TermResultStatus.COMPUTED}
        assert {t.published_at for t in term_results} == {None}
        scores = await pg_scores.get_class_scores(TENANT_ID, TERM_ID, CLASS_ID)
        assert {s.review_status for s in scores} == {ScoreReviewStatus.VERIFIED}

    @pytest.mark.asyncio
    async def test_recompute_after_publish_reopens_only_changed_rows(
        self,
        computed_class: ComputationRequest,
        pg_orchestrator: ResultComputationOrchestratorImpl,
        pg_results: ResultRepositoryPostgresImpl,
        pg_scores: ScoreRepositoryPostgresImpl,
    ) -> None:
        await pg_results.mark_published(TENANT_ID, TERM_ID, CLASS_ID, datetime.now(UTC))

        # s2 improves in english only; the math cohort is unchanged
        await pg_scores.upsert_scores(
            TENANT_ID, TERM_ID, CLASS_ID, entries("s2", "english", 35, 55), entered_by=TEACHER_ID
        )
        await pg_orchestrator.compute_results(computed_class)

        snapshots = {
            (s.values.student_id, s.values.subject_id): s
            for s in await pg_results.get_snapshots(TENANT_ID, TERM_ID, CLASS_ID)
        }
        assert snapshots[("s2", "english")].status == ResultStatus.COMPUTED
        assert snapshots[("s2", "english")].published_at is None
        assert snapshots[("s1", "math")].status == ResultStatus.PUBLISHED
        assert snapshots[("s2", "math")].status == ResultStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_tenant_grading_scheme_is_loaded(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        provider = GradingSchemeProviderImpl(session_factory, SERVICE_NAME)
        async with session_factory() as session:
            async with session.begin():
                session.add_all(
                    [
                        GradingRuleRecord(
                            tenant_id=TENANT_ID,
                            min_score=50,
                            max_score=100,
                            grade="P",
                            remark="Pass",
                            points=1.0,
                        ),
                        GradingRuleRecord(
                            tenant_id=TENANT_ID,
                            min_score=0,
                            max_score=49,
                            grade="F",
                            remark="Fail",
                            points=0.0,
                        ),
                    ]
                )

        scheme = await provider.get_scheme(TENANT_ID)
        default = await provider.get_scheme("tenant-without-rules")

        assert scheme.scheme_id == f"tenant:{TENANT_ID}"
        assert [r.grade for r in scheme.rules] == ["P", "F"]
        assert default.scheme_id == "waec_9_band"

    @pytest.mark.asyncio
    async def test_malformed_tenant_scheme_is_rejected(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        provider = GradingSchemeProviderImpl(session_factory, SERVICE_NAME)
        async with session_factory() as session:
            async with session.begin():
                session.add(
                    GradingRuleRecord(
                        tenant_id=TENANT_ID,
                        min_score=10,
                        max_score=100,
                        grade="P",
                        remark="Pass",
                        points=1.0,
                    )
                )

        with pytest.raises(SchoolHubError) as exc_info:
            await provider.get_scheme(TENANT_ID)

        assert exc_info.value.reason == "INVALID_GRADING_SCHEME"
