"""
Publish/unpublish workflow for computed class results.

Publishing moves every COMPUTED term result and snapshot of a (term, class)
to PUBLISHED together with the class's score entries in one repository
transaction, and only then emits one ResultsPublished event plus one
notification request per student.
Unpublishing reverses the visibility change without notifying anyone.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional
from uuid import UUID, uuid4

from schoolhub_core.error_enums import ResultComputationErrorCode
from schoolhub_core.events.result_events import ResultNotificationRequestedV1, ResultsPublishedV1
from schoolhub_service_libs.error_handling import (
    SchoolHubError,
    raise_kafka_publish_error,
    raise_resource_not_found,
)
from schoolhub_service_libs.logging_utils import bind_request_context, create_service_logger

from services.result_computation_service.config import Settings
from services.result_computation_service.metrics import ResultComputationMetrics
from services.result_computation_service.models_api import PublicationResult
from services.result_computation_service.protocols import (
    PublishWorkflowProtocol,
    ResultEventPublisherProtocol,
    ResultRepositoryProtocol,
)

logger = create_service_logger("result_computation_service.publish_workflow")


class PublishWorkflowImpl(PublishWorkflowProtocol):
    def __init__(
        self,
        result_repository: ResultRepositoryProtocol,
        event_publisher: ResultEventPublisherProtocol,
        settings: Settings,
        metrics: ResultComputationMetrics,
    ):
        self.result_repository = result_repository
        self.event_publisher = event_publisher
        self.settings = settings
        self.metrics = metrics

    async def publish(
        self, tenant_id: str, term_id: str, class_id: str, correlation_id: Optional[UUID] = None
    ) -> PublicationResult:
        """
        Publish a class's computed results and fan out notifications.

        Publishing again without new computed results fails rather than
        re-sending notifications.

        Raises:
            SchoolHubError: RESOURCE_NOT_FOUND (NO_COMPUTED_RESULTS) when no
                term result of the class is COMPUTED; nothing is written.
                KAFKA_PUBLISH_ERROR when events could not be sent after the
                results were committed (``results_committed`` is True).
        """
        correlation_id = correlation_id or uuid4()
        bind_request_context(
            tenant_id=tenant_id, term_id=term_id, class_id=class_id, correlation_id=correlation_id
        )
        published_at = datetime.now(UTC)

        change = await self.result_repository.mark_published(
            tenant_id, term_id, class_id, published_at
        )
        student_ids = change.student_ids
        if not student_ids:
            self.metrics.publication_operations_total.labels(
                operation="publish", status="rejected"
            ).inc()
            raise_resource_not_found(
                service=self.settings.SERVICE_NAME,
                operation="publish",
                resource_type="ComputedResults",
                resource_id=f"{term_id}:{class_id}",
                correlation_id=correlation_id,
                reason=ResultComputationErrorCode.NO_COMPUTED_RESULTS.value,
            )

        logger.info(
            "Results published",
            student_count=len(student_ids),
            scores_published=change.scores_changed,
        )

        try:
            await self.event_publisher.publish_results_published(
                ResultsPublishedV1(
                    tenant_id=tenant_id,
                    term_id=term_id,
                    class_id=class_id,
                    student_ids=student_ids,
                    published_at=published_at,
                ),
                correlation_id,
            )
            notified = await self.event_publisher.publish_notifications_requested(
                [
                    ResultNotificationRequestedV1(
                        tenant_id=tenant_id,
                        term_id=term_id,
                        class_id=class_id,
                        student_id=student_id,
                    )
                    for student_id in student_ids
                ],
                correlation_id,
            )
        except SchoolHubError as e:
            notified = int(e.error_detail.details.get("delivered", 0))
            self.metrics.notifications_enqueued_total.inc(notified)
            self.metrics.publication_operations_total.labels(
                operation="publish", status="events_failed"
            ).inc()
            raise_kafka_publish_error(
                service=self.settings.SERVICE_NAME,
                operation="publish",
                message=f"Results were published but events could not be sent: {e}",
                correlation_id=correlation_id,
                topic=e.error_detail.details.get("topic"),
                results_committed=True,
                student_count=len(student_ids),
                notifications_sent=notified,
            )
        self.metrics.notifications_enqueued_total.inc(notified)

        self.metrics.publication_operations_total.labels(
            operation="publish", status="success"
        ).inc()
        return PublicationResult(
            term_id=term_id, class_id=class_id, student_ids=student_ids, changed_at=published_at
        )

    async def unpublish(
        self, tenant_id: str, term_id: str, class_id: str, correlation_id: Optional[UUID] = None
    ) -> PublicationResult:
        correlation_id = correlation_id or uuid4()
        bind_request_context(
            tenant_id=tenant_id, term_id=term_id, class_id=class_id, correlation_id=correlation_id
        )

        change = await self.result_repository.mark_unpublished(tenant_id, term_id, class_id)
        student_ids = change.student_ids
        if not student_ids:
            self.metrics.publication_operations_total.labels(
                operation="unpublish", status="rejected"
            ).inc()
            raise_resource_not_found(
                service=self.settings.SERVICE_NAME,
                operation="unpublish",
                resource_type="PublishedResults",
                resource_id=f"{term_id}:{class_id}",
                correlation_id=correlation_id,
                reason=ResultComputationErrorCode.NO_PUBLISHED_RESULTS.value,
            )

        self.metrics.publication_operations_total.labels(
            operation="unpublish", status="success"
        ).inc()
        logger.info(
            "Results unpublished",
            student_count=len(student_ids),
            scores_reverted=change.scores_changed,
        )
        return PublicationResult(
            term_id=term_id,
            class_id=class_id,
            student_ids=student_ids,
            changed_at=datetime.now(UTC),
        )
