"""Class Management Service client implementation."""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import uuid4

import aiohttp
from schoolhub_service_libs.error_handling import (
    raise_connection_error,
    raise_external_service_error,
    raise_resource_not_found,
    raise_timeout_error,
)
from schoolhub_service_libs.logging_utils import create_service_logger

from services.result_computation_service.config import Settings
from services.result_computation_service.protocols import ClassDirectoryProtocol

logger = create_service_logger("result_computation_service.class_directory")


class ClassDirectoryClientImpl(ClassDirectoryProtocol):
    """HTTP client for the class roster and subject offerings."""

    def __init__(self, settings: Settings, http_session: aiohttp.ClientSession):
        self.settings = settings
        self.http_session = http_session

    async def students_in_class(self, tenant_id: str, class_id: str) -> list[str]:
        data = await self._get(tenant_id, class_id, "students", "students_in_class")
        return [str(item["student_id"]) for item in data.get("students", [])]

    async def subjects_in_class(self, tenant_id: str, class_id: str) -> list[str]:
        data = await self._get(tenant_id, class_id, "subjects", "subjects_in_class")
        return [str(item["subject_id"]) for item in data.get("subjects", [])]

    async def _get(
        self, tenant_id: str, class_id: str, resource: str, operation: str
    ) -> dict[str, Any]:
        url = f"{self.settings.CLASS_MANAGEMENT_URL}/internal/v1/classes/{class_id}/{resource}"
        timeout = aiohttp.ClientTimeout(total=self.settings.CLASS_MANAGEMENT_TIMEOUT_SECONDS)
        correlation_id = uuid4()
        try:
            async with self.http_session.get(
                url, headers={"X-Tenant-ID": tenant_id}, timeout=timeout
            ) as response:
                if response.status == 404:
                    raise_resource_not_found(
                        service=self.settings.SERVICE_NAME,
                        operation=operation,
                        resource_type="Class",
                        resource_id=class_id,
                        correlation_id=correlation_id,
                        tenant_id=tenant_id,
                    )
                if response.status >= 400:
                    raise_external_service_error(
                        service=self.settings.SERVICE_NAME,
                        operation=operation,
                        external_service="class_management_service",
                        message=f"Class directory returned HTTP {response.status}",
                        correlation_id=correlation_id,
                        status_code=response.status,
                        url=url,
                    )
                data: dict[str, Any] = await response.json()
                return data
        except asyncio.TimeoutError:
            logger.error(
                "Timeout while querying class directory",
                class_id=class_id,
                timeout_seconds=self.settings.CLASS_MANAGEMENT_TIMEOUT_SECONDS,
            )
            raise_timeout_error(
                service=self.settings.SERVICE_NAME,
                operation=operation,
                timeout_seconds=self.settings.CLASS_MANAGEMENT_TIMEOUT_SECONDS,
                message="Class directory did not respond in time",
                correlation_id=correlation_id,
                url=url,
            )
        except aiohttp.ClientError as e:
            logger.error(
                "HTTP client error while querying class directory",
                class_id=class_id,
                error=str(e),
                exc_info=True,
            )
            raise_connection_error(
                service=self.settings.SERVICE_NAME,
                operation=operation,
                target=url,
                message=f"Class directory unreachable: {e}",
                correlation_id=correlation_id,
            )


class InMemoryClassDirectory(ClassDirectoryProtocol):
    """Roster and subject offerings held in memory, keyed by (tenant, class)."""

    def __init__(self) -> None:
        self.students: dict[tuple[str, str], list[str]] = {}
        self.subjects: dict[tuple[str, str], list[str]] = {}

    async def students_in_class(self, tenant_id: str, class_id: str) -> list[str]:
        return list(self.students.get((tenant_id, class_id), []))

    async def subjects_in_class(self, tenant_id: str, class_id: str) -> list[str]:
        return list(self.subjects.get((tenant_id, class_id), []))
