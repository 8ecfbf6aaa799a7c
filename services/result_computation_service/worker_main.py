"""Computation worker main for Result Computation Service.

Runs COMPUTATION_WORKER_COUNT consumers of the computation job queue.

This worker implements graceful shutdown handling:
- Responds to SIGTERM and SIGINT signals
- Stops taking new jobs immediately on shutdown
- Lets jobs in flight finish within SHUTDOWN_GRACE_PERIOD_SECONDS
- Cancels whatever is still running after the grace period
"""

from __future__ import annotations

import asyncio
import signal
from typing import Any, Set

from dishka import make_async_container
from schoolhub_service_libs.logging_utils import configure_service_logging, create_service_logger
from sqlalchemy.ext.asyncio import AsyncEngine

from services.result_computation_service.computation_worker import ComputationWorker
from services.result_computation_service.config import settings
from services.result_computation_service.di import create_providers
from services.result_computation_service.metrics import ResultComputationMetrics
from services.result_computation_service.protocols import (
    ComputationLockProtocol,
    JobStoreProtocol,
    ResultComputationOrchestratorProtocol,
    ResultEventPublisherProtocol,
)
from services.result_computation_service.startup_setup import (
    initialize_database,
    start_metrics_server,
)

# Configure logging
configure_service_logging(settings.SERVICE_NAME, log_level=settings.LOG_LEVEL)
logger = create_service_logger("worker_main")

# Global shutdown flag
shutdown_event = asyncio.Event()


def _handle_signal(sig: signal.Signals) -> None:
    logger.info(f"Received {sig.name}, shutting down")
    shutdown_event.set()


async def main() -> None:
    """Main entry point for the Result Computation Service worker."""
    logger.info("Result Computation Service worker starting...")

    container = make_async_container(*create_providers(settings))
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig)

    try:
        if not (settings.is_testing() or settings.USE_MOCK_REPOSITORY):
            engine = await container.get(AsyncEngine)
            await initialize_database(engine)

        start_metrics_server(settings)

        job_store = await container.get(JobStoreProtocol)
        orchestrator = await container.get(ResultComputationOrchestratorProtocol)
        lock = await container.get(ComputationLockProtocol)
        event_publisher = await container.get(ResultEventPublisherProtocol)
        metrics = await container.get(ResultComputationMetrics)

        tasks = [
            asyncio.create_task(
                ComputationWorker(
                    job_store=job_store,
                    orchestrator=orchestrator,
                    lock=lock,
                    event_publisher=event_publisher,
                    settings=settings,
                    metrics=metrics,
                    worker_id=f"worker-{i}",
                ).run(shutdown_event),
                name=f"computation_worker_{i}",
            )
            for i in range(settings.COMPUTATION_WORKER_COUNT)
        ]
        logger.info(
            f"Result Computation Service worker ready with {len(tasks)} workers",
            job_store_backend=settings.JOB_STORE_BACKEND.value,
        )

        shutdown_task = asyncio.create_task(shutdown_event.wait(), name="shutdown_task")
        done: Set[asyncio.Task[Any]]
        done, _ = await asyncio.wait(tasks + [shutdown_task], return_when=asyncio.FIRST_COMPLETED)

        if shutdown_task not in done:
            for task in done:
                if task.exception():
                    logger.error(
                        f"Task {task.get_name()} failed with exception",
                        exc_info=task.exception(),
                    )
            shutdown_event.set()

        grace_period = settings.SHUTDOWN_GRACE_PERIOD_SECONDS
        logger.info(f"Allowing {grace_period} seconds for graceful shutdown...")
        try:
            await asyncio.wait_for(
                asyncio.gather(*[t for t in tasks if not t.done()], return_exceptions=True),
                timeout=grace_period,
            )
            logger.info("All workers stopped gracefully")
        except asyncio.TimeoutError:
            logger.warning("Grace period expired, forcing shutdown...")
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        shutdown_task.cancel()

    except Exception as e:
        logger.error(f"Worker initialization failed: {e}", exc_info=True)
        raise
    finally:
        logger.info("Cleaning up resources...")
        await container.close()


if __name__ == "__main__":
    asyncio.run(main())
