"""
Reconciliation Module for the Sync Agent

This module mirrors SAP rows into Salesforce records using an external-id
field as the join key.

Main components:
- indexer: Remote index builder (paginated SOQL)
- extractor: Source extractor (one SAP query)
- differ: Diff planner (delete-set and upsert-set)
- executor: Mutation executor (per-record fault isolation)
- reporter: Run reporter (one summary per pass)
- orchestrator: Pass state machine composing the above

Usage:
    from sfsync.reconciliation import ReconciliationOrchestrator

    orchestrator = ReconciliationOrchestrator(mapping, auth, sap, client)
    summary = orchestrator.run_pass()
"""

from sfsync.reconciliation.differ import DiffPlanner
from sfsync.reconciliation.executor import MutationExecutor
from sfsync.reconciliation.extractor import SourceExtractor
from sfsync.reconciliation.indexer import RemoteIndexBuilder
from sfsync.reconciliation.mapping import FieldMapping, RecordMapping
from sfsync.reconciliation.orchestrator import PassState, ReconciliationOrchestrator
from sfsync.reconciliation.reporter import RunReporter

__all__ = [
    "DiffPlanner",
    "FieldMapping",
    "MutationExecutor",
    "PassState",
    "ReconciliationOrchestrator",
    "RecordMapping",
    "RemoteIndexBuilder",
    "RunReporter",
    "SourceExtractor",
]
