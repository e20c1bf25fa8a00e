"""
Reconciliation Orchestrator

Runs one reconciliation pass for one record type through a fixed pipeline:
Extract -> Build Index -> Plan -> Delete -> Upsert -> Report.

Token acquisition, source extraction and the full remote index are
all-or-nothing preconditions: a failure there moves the pass to ABORTED and
raises PassAbortedError before any mutation. Failures of single records
never abort the pass.
"""

import logging
import threading
import time
from enum import Enum
from typing import List, Optional

from sfsync.reconciliation.differ import DiffPlanner
from sfsync.reconciliation.errors import (
    CredentialError,
    PassAbortedError,
    PassCancelledError,
    SalesforceApiError,
    SyncError,
)
from sfsync.reconciliation.executor import MutationExecutor
from sfsync.reconciliation.extractor import SourceExtractor
from sfsync.reconciliation.indexer import DEFAULT_MAX_PAGES, RemoteIndexBuilder
from sfsync.reconciliation.mapping import RecordMapping
from sfsync.reconciliation.models import RunSummary
from sfsync.reconciliation.reporter import RunReporter
from sfsync.utils.correlation import CorrelationContext

logger = logging.getLogger(__name__)


class PassState(Enum):
    """States of a reconciliation pass."""

    IDLE = "idle"
    EXTRACTING = "extracting"
    INDEXING_REMOTE = "indexing_remote"
    PLANNING = "planning"
    DELETING = "deleting"
    UPSERTING = "upserting"
    REPORTING = "reporting"
    ABORTED = "aborted"


class ReconciliationOrchestrator:
    """
    One-way SAP -> Salesforce reconciliation for a single record type.

    The credential provider, source executor and Salesforce client are passed
    in and scoped to this instance.
    """

    def __init__(
        self,
        mapping: RecordMapping,
        credential_provider,
        source_executor,
        client,
        metrics=None,
        max_pages: int = DEFAULT_MAX_PAGES
    ):
        """
        Initialize the orchestrator.

        Args:
            mapping: Record mapping describing the record type
            credential_provider: Object exposing get_valid_token() and invalidate()
            source_executor: Object exposing execute_query(sql)
            client: Salesforce query and mutation client
            metrics: Optional SyncMetrics instance
            max_pages: Page ceiling for the remote index build
        """
        self.mapping = mapping
        self.credential_provider = credential_provider
        self.metrics = metrics

        self.extractor = SourceExtractor(source_executor)
        self.index_builder = RemoteIndexBuilder(client, max_pages=max_pages)
        self.planner = DiffPlanner()
        self.executor = MutationExecutor(client, mapping)

        self.state = PassState.IDLE
        self.transitions: List[PassState] = [PassState.IDLE]

    @property
    def record_type(self) -> str:
        return self.mapping.name

    def run_pass(self, cancel_event: Optional[threading.Event] = None) -> RunSummary:
        """
        Run one reconciliation pass.

        Args:
            cancel_event: Optional event; when set, remaining records are skipped

        Returns:
            RunSummary for the pass

        Raises:
            PassAbortedError: If a fatal-to-pass precondition fails
        """
        self.transitions = [PassState.IDLE]
        start = time.monotonic()

        with CorrelationContext() as correlation_id:
            logger.info(f"Starting sync pass for {self.record_type}", extra={"record_type": self.record_type})
            reporter = RunReporter(self.record_type, correlation_id)

            try:
                self._enter(PassState.EXTRACTING)
                snapshot = self.extractor.extract(self.mapping.source_query, self.mapping.join_field)
                reporter.record_source(snapshot.total_external_ids, snapshot.skipped_rows)

                self._enter(PassState.INDEXING_REMOTE)
                token = self.credential_provider.get_valid_token()
                remote_index = self.index_builder.build(
                    token,
                    self.mapping.sobject,
                    self.mapping.external_id_field,
                    cancel_event=cancel_event
                )

                self._enter(PassState.PLANNING)
                plan = self.planner.plan(remote_index, snapshot)
                reporter.record_plan(len(remote_index), len(plan.deletes))

                if _is_cancelled(cancel_event):
                    raise PassCancelledError("Pass cancelled before mutations")

            except SyncError as e:
                stage = self.state.value
                self._enter(PassState.ABORTED)
                logger.error(
                    f"Sync pass for {self.record_type} aborted during {stage}: {e}",
                    extra={"record_type": self.record_type}
                )
                if isinstance(e, CredentialError) or _is_unauthorized(e):
                    # Next pass must request a fresh token
                    self.credential_provider.invalidate()
                if self.metrics is not None:
                    self.metrics.record_pass_failure(self.record_type, time.monotonic() - start)
                raise PassAbortedError(self.record_type, stage, e) from e

            self._enter(PassState.DELETING)
            for external_id, remote_id in plan.deletes:
                if _is_cancelled(cancel_event):
                    reporter.mark_cancelled()
                    break
                failure = self.executor.delete(token, external_id, remote_id)
                reporter.record_delete(failure)
                self._record_mutation("delete", "failed" if failure else "deleted")

            self._enter(PassState.UPSERTING)
            if not reporter.cancelled:
                for row in plan.upserts:
                    if _is_cancelled(cancel_event):
                        reporter.mark_cancelled()
                        break
                    outcome = self.executor.upsert(token, row)
                    reporter.record_upsert(outcome, row)
                    self._record_mutation("upsert", outcome.kind.value)

            self._enter(PassState.REPORTING)
            summary = reporter.emit()
            if self.metrics is not None:
                self.metrics.record_pass(summary, time.monotonic() - start)

            self._enter(PassState.IDLE)
            return summary

    def _enter(self, state: PassState) -> None:
        logger.debug(f"{self.record_type}: {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)

    def _record_mutation(self, operation: str, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_mutation(self.record_type, operation, outcome)


def _is_cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _is_unauthorized(error: BaseException) -> bool:
    """True if Salesforce rejected the token somewhere in the cause chain."""
    while error is not None:
        if isinstance(error, SalesforceApiError) and error.status_code == 401:
            return True
        error = error.__cause__
    return False
