"""
Source Extractor

Runs the authoritative SAP query once and derives the external-id set from
the designated join field.
"""

import logging

from sfsync.reconciliation.models import SourceRow, SourceSnapshot, external_id_key

logger = logging.getLogger(__name__)


class SourceExtractor:
    """Reads the full current row set from the source system."""

    def __init__(self, executor):
        """
        Args:
            executor: Object exposing execute_query(sql) -> list of row dicts
        """
        self.executor = executor

    def extract(self, sql: str, join_field: str) -> SourceSnapshot:
        """
        Execute the source query and build a snapshot.

        Args:
            sql: SQL text returning the authoritative rows
            join_field: Column holding the external id

        Returns:
            SourceSnapshot with every row and the valid external-id keys

        Raises:
            SourceQueryError: Propagated from the executor
        """
        raw_rows = self.executor.execute_query(sql)

        rows = []
        keys = set()
        skipped = 0

        for raw in raw_rows:
            row = SourceRow.from_mapping(raw, join_field)
            rows.append(row)

            if row.external_id is None:
                skipped += 1
                logger.info(f"Source row skipped: {join_field} is empty")
                continue

            keys.add(external_id_key(row.external_id))

        logger.info(
            f"Extracted {len(rows)} source rows: {len(keys)} distinct external ids, "
            f"{skipped} skipped"
        )

        return SourceSnapshot(
            rows=tuple(rows),
            external_id_keys=frozenset(keys),
            skipped_rows=skipped
        )
