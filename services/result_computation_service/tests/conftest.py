"""Shared fixtures for Result Computation Service tests."""

from __future__ import annotations

from typing import Callable

import pytest
from prometheus_client import CollectorRegistry

from services.result_computation_service.computation_core.result_records import ScoreRecord
from services.result_computation_service.config import Settings
from services.result_computation_service.implementations.class_directory_client_impl import (
    InMemoryClassDirectory,
)
from services.result_computation_service.implementations.computation_orchestrator_impl import (
    ResultComputationOrchestratorImpl,
)
from services.result_computation_service.implementations.grading_scheme_provider_impl import (
    StaticGradingSchemeProvider,
)
from services.result_computation_service.implementations.in_memory_repositories import (
    InMemoryResultRepository,
    InMemoryScoreRepository,
)
from services.result_computation_service.metrics import ResultComputationMetrics

TENANT_ID = "tenant-greenfield"
TERM_ID = "2025-first-term"
CLASS_ID = "jss2-a"

SeedScores = Callable[..., None]


@pytest.fixture
def settings() -> Settings:
    """Settings with no retry delay so retry tests run instantly."""
    return Settings(
        JOB_RETRY_BASE_DELAY_SECONDS=0.0,
        JOB_RETRY_MAX_DELAY_SECONDS=0.0,
        JOB_POLL_INTERVAL_SECONDS=0.01,
    )


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> ResultComputationMetrics:
    """Metrics on a private registry so tests never collide on metric names."""
    return ResultComputationMetrics(registry=registry)


@pytest.fixture
def score_repository() -> InMemoryScoreRepository:
    return InMemoryScoreRepository()


@pytest.fixture
def result_repository(score_repository: InMemoryScoreRepository) -> InMemoryResultRepository:
    return InMemoryResultRepository(score_repository)


@pytest.fixture
def class_directory() -> InMemoryClassDirectory:
    return InMemoryClassDirectory()


@pytest.fixture
def seed_scores(
    score_repository: InMemoryScoreRepository, class_directory: InMemoryClassDirectory
) -> SeedScores:
    """
    Seed one subject's CA and exam scores for a student and enrol the student.

    Usage: seed_scores("s1", "math", ca=30, exam=50)
    """

    def _seed(
        student_id: str,
        subject_id: str,
        ca: int,
        exam: int,
        ca_max: int = 40,
        exam_max: int = 60,
    ) -> None:
        for assessment_type, score, max_score in (("CA1", ca, ca_max), ("EXAM", exam, exam_max)):
            score_repository.add(
                TENANT_ID,
                ScoreRecord(
                    student_id=student_id,
                    class_id=CLASS_ID,
                    subject_id=subject_id,
                    term_id=TERM_ID,
                    assessment_type=assessment_type,
                    score=score,
                    max_score=max_score,
                ),
            )
        roster = class_directory.students.setdefault((TENANT_ID, CLASS_ID), [])
        if student_id not in roster:
            roster.append(student_id)

    return _seed


@pytest.fixture
def orchestrator(
    score_repository: InMemoryScoreRepository,
    result_repository: InMemoryResultRepository,
    class_directory: InMemoryClassDirectory,
    metrics: ResultComputationMetrics,
) -> ResultComputationOrchestratorImpl:
    return ResultComputationOrchestratorImpl(
        score_repository=score_repository,
        result_repository=result_repository,
        scheme_provider=StaticGradingSchemeProvider(),
        class_directory=class_directory,
        metrics=metrics,
    )
