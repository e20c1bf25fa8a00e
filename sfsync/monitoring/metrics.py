"""
Prometheus Metrics for the Sync Agent

Per-pass and per-mutation metrics for SAP -> Salesforce reconciliation.
Metrics are exposed over HTTP for Prometheus scraping.
"""

import logging
import time
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    REGISTRY,
    start_http_server,
)

from sfsync.reconciliation.models import RunSummary

logger = logging.getLogger(__name__)


class SyncMetrics:
    """Prometheus metrics for reconciliation passes."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = "sfsync"):
        """
        Initialize sync metrics.

        Args:
            registry: Prometheus registry (process default if not provided)
            namespace: Metric name prefix
        """
        self.registry = registry or REGISTRY
        self.namespace = namespace

        self.passes_total = Counter(
            f'{namespace}_passes_total',
            'Total number of reconciliation passes',
            ['record_type', 'status'],
            registry=self.registry
        )

        self.mutations_total = Counter(
            f'{namespace}_mutations_total',
            'Total Salesforce mutations by operation and outcome',
            ['record_type', 'operation', 'outcome'],
            registry=self.registry
        )

        self.pass_duration_seconds = Histogram(
            f'{namespace}_pass_duration_seconds',
            'Duration of reconciliation passes in seconds',
            ['record_type'],
            buckets=[1, 5, 10, 30, 60, 120, 300, 600, 1800],
            registry=self.registry
        )

        self.last_pass_errors = Gauge(
            f'{namespace}_last_pass_errors',
            'Per-record errors in the last completed pass',
            ['record_type'],
            registry=self.registry
        )

        self.source_records = Gauge(
            f'{namespace}_source_records',
            'Distinct SAP external ids in the last completed pass',
            ['record_type'],
            registry=self.registry
        )

        self.remote_index_size = Gauge(
            f'{namespace}_remote_index_size',
            'Salesforce records indexed in the last completed pass',
            ['record_type'],
            registry=self.registry
        )

        self.last_success_timestamp = Gauge(
            f'{namespace}_last_success_timestamp_seconds',
            'Unix time of the last pass that was not aborted',
            ['record_type'],
            registry=self.registry
        )

        logger.info("SyncMetrics initialized")

    def record_pass(self, summary: RunSummary, duration_seconds: float) -> None:
        """
        Record a completed (not aborted) pass.

        Args:
            summary: Summary of the pass
            duration_seconds: Wall-clock duration of the pass
        """
        record_type = summary.record_type
        status = "cancelled" if summary.cancelled else "success"

        self.passes_total.labels(record_type=record_type, status=status).inc()
        self.pass_duration_seconds.labels(record_type=record_type).observe(duration_seconds)
        self.last_pass_errors.labels(record_type=record_type).set(summary.errored)
        self.source_records.labels(record_type=record_type).set(summary.total_source_external_ids)
        self.remote_index_size.labels(record_type=record_type).set(summary.remote_index_size)
        self.last_success_timestamp.labels(record_type=record_type).set(time.time())

        logger.debug(f"Recorded pass metrics for {record_type}: status={status}, duration={duration_seconds:.2f}s")

    def record_pass_failure(self, record_type: str, duration_seconds: float) -> None:
        """Record an aborted pass."""
        self.passes_total.labels(record_type=record_type, status="failure").inc()
        self.pass_duration_seconds.labels(record_type=record_type).observe(duration_seconds)

    def record_mutation(self, record_type: str, operation: str, outcome: str) -> None:
        """
        Record one mutation attempt.

        Args:
            record_type: Record mapping name
            operation: "delete" or "upsert"
            outcome: deleted / created / updated_no_content / updated_with_body / failed
        """
        self.mutations_total.labels(
            record_type=record_type,
            operation=operation,
            outcome=outcome
        ).inc()

    def start_server(self, port: int) -> None:
        """Start Prometheus metrics HTTP server."""
        try:
            start_http_server(port, registry=self.registry)
            logger.info(f"Metrics server started on port {port}")
        except OSError as e:
            if "Address already in use" in str(e):
                logger.warning(f"Metrics server already running on port {port}")
            else:
                raise
