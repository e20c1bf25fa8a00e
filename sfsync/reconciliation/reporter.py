"""
Run Reporter

Accumulates per-pass counters and produces one immutable RunSummary,
regardless of how many individual mutations failed.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sfsync.reconciliation.models import (
    MutationFailure,
    MutationOutcome,
    RunSummary,
    SourceRow,
)

logger = logging.getLogger(__name__)


class RunReporter:
    """Counters for one reconciliation pass."""

    def __init__(self, record_type: str, correlation_id: Optional[str] = None):
        self.record_type = record_type
        self.correlation_id = correlation_id
        self.started_at = datetime.now(timezone.utc)

        self.upserts_attempted = 0
        self.inserted = 0
        self.updated = 0
        self.deleted = 0
        self.delete_candidates = 0
        self.errored = 0
        self.total_source_external_ids = 0
        self.skipped_rows = 0
        self.remote_index_size = 0
        self.cancelled = False
        self.failures: List[MutationFailure] = []

        self._summary: Optional[RunSummary] = None

    def record_source(self, total_external_ids: int, skipped_rows: int) -> None:
        self.total_source_external_ids = total_external_ids
        self.skipped_rows = skipped_rows

    def record_plan(self, remote_index_size: int, delete_candidates: int) -> None:
        self.remote_index_size = remote_index_size
        self.delete_candidates = delete_candidates

    def record_delete(self, failure: Optional[MutationFailure]) -> None:
        """Count one executed delete attempt."""
        if failure is None:
            self.deleted += 1
        else:
            self.errored += 1
            self.failures.append(failure)

    def record_upsert(self, outcome: MutationOutcome, row: SourceRow) -> None:
        """Count one executed upsert attempt."""
        self.upserts_attempted += 1

        if outcome.failed:
            self.errored += 1
            self.failures.append(MutationFailure(
                external_id=outcome.external_id,
                operation="upsert",
                message=outcome.reason or "",
                row=row.to_json()
            ))
        elif outcome.created:
            self.inserted += 1
        else:
            self.updated += 1

    def mark_cancelled(self) -> None:
        self.cancelled = True

    def build(self) -> RunSummary:
        """
        Freeze the counters into a RunSummary.

        Returns the same instance on repeated calls.
        """
        if self._summary is None:
            self._summary = RunSummary(
                record_type=self.record_type,
                correlation_id=self.correlation_id,
                started_at=self.started_at,
                finished_at=datetime.now(timezone.utc),
                upserts_attempted=self.upserts_attempted,
                inserted=self.inserted,
                updated=self.updated,
                deleted=self.deleted,
                delete_candidates=self.delete_candidates,
                errored=self.errored,
                total_source_external_ids=self.total_source_external_ids,
                skipped_rows=self.skipped_rows,
                remote_index_size=self.remote_index_size,
                cancelled=self.cancelled,
                failures=tuple(self.failures)
            )
        return self._summary

    def emit(self) -> RunSummary:
        """Build the summary and write the single summary log entry."""
        summary = self.build()
        logger.info(
            summary.log_line(),
            extra={"record_type": summary.record_type, "summary": summary.as_dict()}
        )
        return summary
