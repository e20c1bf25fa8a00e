"""
Unit tests for Prometheus sync metrics.
"""

from datetime import datetime, timezone

import pytest
from prometheus_client import CollectorRegistry

from sfsync.monitoring.metrics import SyncMetrics
from sfsync.reconciliation.models import RunSummary


def _summary(**overrides):
    now = datetime.now(timezone.utc)
    values = dict(
        record_type="payment_terms",
        correlation_id="cid",
        started_at=now,
        finished_at=now,
        errored=2,
        total_source_external_ids=40,
        remote_index_size=38,
    )
    values.update(overrides)
    return RunSummary(**values)


class TestSyncMetrics:
    """Test suite for SyncMetrics."""

    @pytest.fixture
    def registry(self):
        return CollectorRegistry()

    @pytest.fixture
    def metrics(self, registry):
        return SyncMetrics(registry=registry)

    def test_record_pass(self, metrics, registry):
        metrics.record_pass(_summary(), 12.5)

        labels = {"record_type": "payment_terms"}
        assert registry.get_sample_value(
            "sfsync_passes_total", {"record_type": "payment_terms", "status": "success"}
        ) == 1
        assert registry.get_sample_value("sfsync_last_pass_errors", labels) == 2
        assert registry.get_sample_value("sfsync_source_records", labels) == 40
        assert registry.get_sample_value("sfsync_remote_index_size", labels) == 38
        assert registry.get_sample_value("sfsync_pass_duration_seconds_sum", labels) == 12.5
        assert registry.get_sample_value("sfsync_last_success_timestamp_seconds", labels) > 0

    def test_cancelled_pass(self, metrics, registry):
        metrics.record_pass(_summary(cancelled=True), 1.0)

        assert registry.get_sample_value(
            "sfsync_passes_total", {"record_type": "payment_terms", "status": "cancelled"}
        ) == 1

    def test_record_pass_failure(self, metrics, registry):
        metrics.record_pass_failure("payment_terms", 0.3)

        assert registry.get_sample_value(
            "sfsync_passes_total", {"record_type": "payment_terms", "status": "failure"}
        ) == 1
        assert registry.get_sample_value(
            "sfsync_last_success_timestamp_seconds", {"record_type": "payment_terms"}
        ) is None

    def test_record_mutation(self, metrics, registry):
        metrics.record_mutation("payment_terms", "upsert", "created")
        metrics.record_mutation("payment_terms", "upsert", "created")
        metrics.record_mutation("payment_terms", "delete", "failed")

        assert registry.get_sample_value("sfsync_mutations_total", {
            "record_type": "payment_terms", "operation": "upsert", "outcome": "created"
        }) == 2
        assert registry.get_sample_value("sfsync_mutations_total", {
            "record_type": "payment_terms", "operation": "delete", "outcome": "failed"
        }) == 1

    def test_custom_namespace(self, registry):
        metrics = SyncMetrics(registry=registry, namespace="acos_sync")
        metrics.record_pass_failure("payment_terms", 1.0)

        assert registry.get_sample_value(
            "acos_sync_passes_total", {"record_type": "payment_terms", "status": "failure"}
        ) == 1
