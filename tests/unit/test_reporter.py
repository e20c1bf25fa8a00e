"""
Unit tests for the run reporter.
"""

import logging

from sfsync.reconciliation.models import MutationFailure, MutationOutcome, OutcomeKind, SourceRow
from sfsync.reconciliation.reporter import RunReporter
from tests.conftest import sap_row


def _outcome(kind, ext="1"):
    return MutationOutcome(kind=kind, external_id=ext, reason="bad" if kind is OutcomeKind.FAILED else None)


class TestRunReporter:
    """Test counter accumulation and summary emission."""

    def test_counts(self):
        reporter = RunReporter("payment_terms", "cid")
        row = SourceRow.from_mapping(sap_row(1), "GroupNum")

        reporter.record_source(total_external_ids=4, skipped_rows=1)
        reporter.record_plan(remote_index_size=3, delete_candidates=2)
        reporter.record_delete(None)
        reporter.record_delete(MutationFailure(external_id="Z", operation="delete", message="x"))
        reporter.record_upsert(_outcome(OutcomeKind.CREATED), row)
        reporter.record_upsert(_outcome(OutcomeKind.UPDATED_NO_CONTENT), row)
        reporter.record_upsert(_outcome(OutcomeKind.UPDATED_WITH_BODY), row)
        reporter.record_upsert(_outcome(OutcomeKind.FAILED), row)

        summary = reporter.build()

        assert summary.upserts_attempted == 4
        assert summary.inserted == 1
        assert summary.updated == 2
        assert summary.deleted == 1
        assert summary.delete_candidates == 2
        assert summary.errored == 2
        assert summary.total_source_external_ids == 4
        assert summary.skipped_rows == 1
        assert summary.remote_index_size == 3
        assert [f.operation for f in summary.failures] == ["delete", "upsert"]
        assert '"GroupNum": 1' in summary.failures[1].row

    def test_build_returns_same_instance(self):
        reporter = RunReporter("t")

        assert reporter.build() is reporter.build()

    def test_emit_logs_one_summary(self, caplog):
        reporter = RunReporter("payment_terms")

        with caplog.at_level(logging.INFO, logger="sfsync.reconciliation.reporter"):
            summary = reporter.emit()

        records = [r for r in caplog.records if r.name == "sfsync.reconciliation.reporter"]
        assert len(records) == 1
        assert records[0].summary == summary.as_dict()
