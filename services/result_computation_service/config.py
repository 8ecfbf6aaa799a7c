"""Configuration for Result Computation Service."""

from __future__ import annotations

import os

from dotenv import find_dotenv, load_dotenv
from pydantic import Field
from pydantic_settings import SettingsConfigDict
from schoolhub_core.config_enums import Environment, JobStoreBackend
from schoolhub_service_libs.config import SecureServiceSettings

# Load .env file from repository root, regardless of current working directory
load_dotenv(find_dotenv(".env"))


class Settings(SecureServiceSettings):
    """Service configuration."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Service Identity
    SERVICE_NAME: str = Field(default="result_computation_service")
    SERVICE_VERSION: str = Field(default="1.0.0")
    ENVIRONMENT: Environment = Field(
        default=Environment.DEVELOPMENT,
        validation_alias="ENVIRONMENT",
        description="Runtime environment for the service",
    )
    LOG_LEVEL: str = Field(default="INFO")

    @property
    def DATABASE_URL(self) -> str:
        """Return the PostgreSQL database URL for the current environment."""
        env_type = os.getenv("ENV_TYPE", "development").lower()
        if env_type == "docker":
            dev_host = os.getenv("RESULT_COMPUTATION_SERVICE_DB_HOST", "result_computation_db")
            dev_port = int(os.getenv("RESULT_COMPUTATION_SERVICE_DB_PORT", "5432"))
        else:
            dev_host = "localhost"
            dev_port = 5440

        return self.build_database_url(
            database_name="schoolhub_results",
            service_env_var_prefix="RESULT_COMPUTATION_SERVICE",
            dev_port=dev_port,
            dev_host=dev_host,
        )

    DATABASE_POOL_SIZE: int = Field(default=20)
    DATABASE_MAX_OVERFLOW: int = Field(default=10)
    USE_MOCK_REPOSITORY: bool = Field(
        default=False,
        description="Use in-memory stores, a static grading scheme and roster instead of Postgres",
    )

    # Redis Configuration (job store and computation locks)
    REDIS_URL: str = Field(default="redis://localhost:6379")

    # Job Dispatcher Configuration
    JOB_STORE_BACKEND: JobStoreBackend = Field(
        default=JobStoreBackend.REDIS,
        description="Where computation jobs are queued: redis (shared) or local (in-process)",
    )
    JOB_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    JOB_RETRY_BASE_DELAY_SECONDS: float = Field(
        default=5.0, ge=0.0, description="First retry delay; doubles on each further attempt"
    )
    JOB_RETRY_MAX_DELAY_SECONDS: float = Field(default=60.0, ge=0.0)
    JOB_STATE_TTL_SECONDS: int = Field(default=86400)  # 24 hours
    JOB_POLL_INTERVAL_SECONDS: float = Field(default=1.0, gt=0.0)
    COMPUTATION_WORKER_COUNT: int = Field(default=2, ge=1)
    COMPUTATION_LOCK_TTL_SECONDS: int = Field(default=900)
    SHUTDOWN_GRACE_PERIOD_SECONDS: int = Field(default=30)

    # Kafka Configuration
    KAFKA_BOOTSTRAP_SERVERS: str = Field(default="localhost:9093")
    KAFKA_REQUEST_TIMEOUT_MS: int = Field(default=30000, gt=0)
    KAFKA_LINGER_MS: int = Field(
        default=5, ge=0, description="Producer batching window for notification fan-out"
    )

    # Class Management Service Configuration
    CLASS_MANAGEMENT_URL: str = Field(
        default="http://localhost:5002", description="Class Management Service URL"
    )
    CLASS_MANAGEMENT_TIMEOUT_SECONDS: int = Field(default=10)

    # Monitoring Configuration
    METRICS_PORT: int = Field(default=9097)


settings = Settings()
