"""Dependency injection configuration for Result Computation Service."""

from __future__ import annotations

from typing import AsyncIterator, cast

import aiohttp
from dishka import Provider, Scope, provide
from schoolhub_core.config_enums import JobStoreBackend
from schoolhub_service_libs.kafka_client import KafkaBus
from schoolhub_service_libs.logging_utils import create_service_logger
from schoolhub_service_libs.protocols import KafkaPublisherProtocol, RedisClientProtocol
from schoolhub_service_libs.redis_client import RedisClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from services.result_computation_service.config import Settings
from services.result_computation_service.implementations.class_directory_client_impl import (
    ClassDirectoryClientImpl,
    InMemoryClassDirectory,
)
from services.result_computation_service.implementations.computation_lock_impl import (
    LocalComputationLockImpl,
    RedisComputationLockImpl,
)
from services.result_computation_service.implementations.computation_orchestrator_impl import (
    ResultComputationOrchestratorImpl,
)
from services.result_computation_service.implementations.event_publisher_impl import (
    ResultEventPublisherImpl,
)
from services.result_computation_service.implementations.grading_scheme_provider_impl import (
    GradingSchemeProviderImpl,
    StaticGradingSchemeProvider,
)
from services.result_computation_service.implementations.in_memory_repositories import (
    InMemoryResultRepository,
    InMemoryScoreRepository,
)
from services.result_computation_service.implementations.job_dispatcher_impl import (
    JobDispatcherImpl,
)
from services.result_computation_service.implementations.job_store_local_impl import (
    LocalJobStoreImpl,
)
from services.result_computation_service.implementations.job_store_redis_impl import (
    RedisJobStoreImpl,
)
from services.result_computation_service.implementations.publish_workflow_impl import (
    PublishWorkflowImpl,
)
from services.result_computation_service.implementations.result_query_service_impl import (
    ResultQueryServiceImpl,
)
from services.result_computation_service.implementations.result_repository_postgres_impl import (
    ResultRepositoryPostgresImpl,
)
from services.result_computation_service.implementations.score_entry_service_impl import (
    ScoreEntryServiceImpl,
)
from services.result_computation_service.implementations.score_repository_postgres_impl import (
    ScoreRepositoryPostgresImpl,
)
from services.result_computation_service.metrics import ResultComputationMetrics
from services.result_computation_service.protocols import (
    ClassDirectoryProtocol,
    ComputationLockProtocol,
    GradingSchemeProviderProtocol,
    JobDispatcherProtocol,
    JobStoreProtocol,
    PublishWorkflowProtocol,
    ResultComputationOrchestratorProtocol,
    ResultEventPublisherProtocol,
    ResultQueryServiceProtocol,
    ResultRepositoryProtocol,
    ScoreEntryServiceProtocol,
    ScoreRepositoryProtocol,
)

logger = create_service_logger("result_computation_service.di")


class CoreInfrastructureProvider(Provider):
    """Provider for core infrastructure components."""

    scope = Scope.APP

    @provide
    def provide_settings(self) -> Settings:
        return Settings()

    @provide
    def provide_metrics(self) -> ResultComputationMetrics:
        return ResultComputationMetrics()

    @provide
    async def provide_http_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Provide HTTP client session."""
        timeout = aiohttp.ClientTimeout(total=30)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            yield session

    @provide
    async def provide_kafka_bus(self, settings: Settings) -> AsyncIterator[KafkaPublisherProtocol]:
        """Provide KafkaBus instance for event publishing."""
        kafka_bus = KafkaBus(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            client_id=f"{settings.SERVICE_NAME}-publisher",
            request_timeout_ms=settings.KAFKA_REQUEST_TIMEOUT_MS,
            linger_ms=settings.KAFKA_LINGER_MS,
        )
        await kafka_bus.start()
        try:
            yield kafka_bus
        finally:
            await kafka_bus.stop()


class DatabaseProvider(Provider):
    """Provider for the engine, session factory and repositories."""

    scope = Scope.APP

    @provide
    async def provide_database_engine(self, settings: Settings) -> AsyncIterator[AsyncEngine]:
        engine = create_async_engine(
            settings.DATABASE_URL,
            echo=False,
            future=True,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
        try:
            yield engine
        finally:
            await engine.dispose()
            logger.info("Database connections closed")

    @provide
    def provide_session_factory(self, engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    @provide
    def provide_score_repository(
        self, settings: Settings, session_factory: async_sessionmaker[AsyncSession]
    ) -> ScoreRepositoryProtocol:
        """Provide score repository implementation based on environment configuration."""
        if settings.is_testing() or settings.USE_MOCK_REPOSITORY:
            return InMemoryScoreRepository()
        return ScoreRepositoryPostgresImpl(session_factory)

    @provide
    def provide_result_repository(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        score_repository: ScoreRepositoryProtocol,
    ) -> ResultRepositoryProtocol:
        if settings.is_testing() or settings.USE_MOCK_REPOSITORY:
            return InMemoryResultRepository(score_repository)
        return ResultRepositoryPostgresImpl(session_factory)

    @provide
    def provide_grading_scheme_provider(
        self, settings: Settings, session_factory: async_sessionmaker[AsyncSession]
    ) -> GradingSchemeProviderProtocol:
        if settings.is_testing() or settings.USE_MOCK_REPOSITORY:
            return StaticGradingSchemeProvider()
        return GradingSchemeProviderImpl(session_factory, settings.SERVICE_NAME)


class RedisJobBackendProvider(Provider):
    """Job store and computation lock shared through Redis."""

    scope = Scope.APP

    @provide
    async def provide_redis_client(self, settings: Settings) -> AsyncIterator[RedisClientProtocol]:
        """Provide Redis client instance."""
        redis_client = RedisClient(
            client_id=f"{settings.SERVICE_NAME}-jobs", redis_url=settings.REDIS_URL
        )
        await redis_client.start()
        try:
            yield cast(RedisClientProtocol, redis_client)
        finally:
            await redis_client.stop()

    @provide
    def provide_job_store(
        self, redis_client: RedisClientProtocol, settings: Settings
    ) -> JobStoreProtocol:
        return RedisJobStoreImpl(redis_client, settings.JOB_STATE_TTL_SECONDS)

    @provide
    def provide_computation_lock(
        self, redis_client: RedisClientProtocol
    ) -> ComputationLockProtocol:
        return RedisComputationLockImpl(redis_client)


class LocalJobBackendProvider(Provider):
    """In-process job store and lock table; jobs are visible to this process only."""

    scope = Scope.APP

    @provide
    def provide_job_store(self) -> JobStoreProtocol:
        return LocalJobStoreImpl()

    @provide
    def provide_computation_lock(self) -> ComputationLockProtocol:
        return LocalComputationLockImpl()


class ServiceProvider(Provider):
    """Provider for the computation, publication and query services."""

    scope = Scope.APP

    @provide
    def provide_class_directory(
        self, settings: Settings, http_session: aiohttp.ClientSession
    ) -> ClassDirectoryProtocol:
        if settings.is_testing() or settings.USE_MOCK_REPOSITORY:
            return InMemoryClassDirectory()
        return ClassDirectoryClientImpl(settings, http_session)

    @provide
    def provide_event_publisher(
        self, kafka_bus: KafkaPublisherProtocol, settings: Settings
    ) -> ResultEventPublisherProtocol:
        return ResultEventPublisherImpl(kafka_bus, settings)

    @provide
    def provide_orchestrator(
        self,
        score_repository: ScoreRepositoryProtocol,
        result_repository: ResultRepositoryProtocol,
        scheme_provider: GradingSchemeProviderProtocol,
        class_directory: ClassDirectoryProtocol,
        metrics: ResultComputationMetrics,
    ) -> ResultComputationOrchestratorProtocol:
        return ResultComputationOrchestratorImpl(
            score_repository=score_repository,
            result_repository=result_repository,
            scheme_provider=scheme_provider,
            class_directory=class_directory,
            metrics=metrics,
        )

    @provide
    def provide_job_dispatcher(
        self, job_store: JobStoreProtocol, settings: Settings, metrics: ResultComputationMetrics
    ) -> JobDispatcherProtocol:
        return JobDispatcherImpl(job_store, settings, metrics)

    @provide
    def provide_publish_workflow(
        self,
        result_repository: ResultRepositoryProtocol,
        event_publisher: ResultEventPublisherProtocol,
        settings: Settings,
        metrics: ResultComputationMetrics,
    ) -> PublishWorkflowProtocol:
        return PublishWorkflowImpl(result_repository, event_publisher, settings, metrics)

    @provide
    def provide_score_entry_service(
        self,
        score_repository: ScoreRepositoryProtocol,
        lock: ComputationLockProtocol,
        settings: Settings,
        metrics: ResultComputationMetrics,
    ) -> ScoreEntryServiceProtocol:
        return ScoreEntryServiceImpl(score_repository, lock, settings, metrics)

    @provide
    def provide_query_service(
        self, result_repository: ResultRepositoryProtocol, settings: Settings
    ) -> ResultQueryServiceProtocol:
        return ResultQueryServiceImpl(result_repository, settings)


def create_providers(settings: Settings) -> list[Provider]:
    """Providers for a container; the job backend follows JOB_STORE_BACKEND."""
    job_backend: Provider
    if settings.JOB_STORE_BACKEND == JobStoreBackend.LOCAL:
        job_backend = LocalJobBackendProvider()
    else:
        job_backend = RedisJobBackendProvider()
    return [CoreInfrastructureProvider(), DatabaseProvider(), job_backend, ServiceProvider()]
