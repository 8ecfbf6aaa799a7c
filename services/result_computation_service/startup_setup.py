"""Startup logic for Result Computation Service."""

from __future__ import annotations

from prometheus_client import start_http_server
from schoolhub_service_libs.logging_utils import create_service_logger
from sqlalchemy.ext.asyncio import AsyncEngine

from services.result_computation_service.config import Settings
from services.result_computation_service.models_db import Base

logger = create_service_logger("result_computation_service.startup")


async def initialize_database(engine: AsyncEngine) -> None:
    """Create any missing tables; existing tables are left as they are."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized successfully")
    except Exception as e:
        logger.critical(f"Failed to initialize database schema: {e}", exc_info=True)
        raise


def start_metrics_server(settings: Settings) -> None:
    """Expose Prometheus metrics for the worker process."""
    start_http_server(settings.METRICS_PORT)
    logger.info(f"Prometheus metrics exposed on port {settings.METRICS_PORT}")
