"""Service-specific metrics for Result Computation Service."""

from __future__ import annotations

from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


class ResultComputationMetrics:
    """Prometheus metrics for computation jobs, publication and score entry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        registry = registry if registry is not None else REGISTRY

        # Job dispatcher metrics
        self.jobs_submitted_total = Counter(
            "rcs_jobs_submitted_total", "Computation jobs submitted", registry=registry
        )
        self.job_attempts_total = Counter(
            "rcs_job_attempts_total",
            "Computation job attempts by outcome",
            ["outcome"],  # succeeded | retried | failed | cancelled
            registry=registry,
        )
        self.job_duration_seconds = Histogram(
            "rcs_job_duration_seconds",
            "Wall time from job start to terminal state",
            ["status"],
            registry=registry,
        )

        # Orchestrator metrics
        self.students_computed_total = Counter(
            "rcs_students_computed_total",
            "Students processed by computation runs",
            ["outcome"],  # processed | failed
            registry=registry,
        )
        self.data_integrity_warnings_total = Counter(
            "rcs_data_integrity_warnings_total",
            "Totals that matched no grading band",
            registry=registry,
        )

        # Publication metrics
        self.publication_operations_total = Counter(
            "rcs_publication_operations_total",
            "Publish and unpublish operations",
            ["operation", "status"],
            registry=registry,
        )
        self.notifications_enqueued_total = Counter(
            "rcs_notifications_enqueued_total",
            "Per-student result notifications requested",
            registry=registry,
        )

        # Score entry metrics
        self.scores_recorded_total = Counter(
            "rcs_scores_recorded_total", "Score entries created or overwritten", registry=registry
        )
        self.score_entry_rejections_total = Counter(
            "rcs_score_entry_rejections_total",
            "Rejected bulk score submissions",
            ["reason"],
            registry=registry,
        )

