"""
Diff Planner for SAP to Salesforce Reconciliation

Computes which Salesforce records must be removed and which source rows must
be upserted. Every valid source row is always upserted; Salesforce decides
whether that nets to a create or an update.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Tuple

from sfsync.reconciliation.models import (
    DiffPlan,
    RemoteIndex,
    SourceSnapshot,
    external_id_key,
)

logger = logging.getLogger(__name__)


class DiffPlanner:
    """
    Plans the mutations of one pass.

    Identifies:
    - Extra records (in Salesforce but no longer in SAP) -> delete-set
    - Source rows with a valid external id -> upsert-set
    """

    def find_extra_in_target(
        self,
        remote_index: RemoteIndex,
        snapshot: SourceSnapshot
    ) -> List[Tuple[str, str]]:
        """
        Find records that exist in Salesforce but not in SAP.

        Args:
            remote_index: ExternalId -> Salesforce Id index
            snapshot: Source snapshot with the authoritative external ids

        Returns:
            (external id, Salesforce Id) pairs in index iteration order
        """
        extra = [
            (external_id, remote_index[external_id])
            for external_id in remote_index
            if not snapshot.contains(external_id)
        ]

        logger.info(f"Found {len(extra)} Salesforce records missing from SAP")
        return extra

    def find_duplicates(self, snapshot: SourceSnapshot) -> List[Dict[str, object]]:
        """
        Find external ids carried by more than one source row.

        Args:
            snapshot: Source snapshot

        Returns:
            List of duplicates with counts
        """
        counts = defaultdict(int)
        for row in snapshot.rows:
            if row.external_id is not None:
                counts[external_id_key(row.external_id)] += 1

        duplicates = [
            {"key": key, "count": count}
            for key, count in counts.items()
            if count > 1
        ]

        if duplicates:
            logger.warning(f"Found {len(duplicates)} duplicate external ids in SAP rows")

        return duplicates

    def plan(self, remote_index: RemoteIndex, snapshot: SourceSnapshot) -> DiffPlan:
        """
        Compute the delete-set and upsert-set in one call.

        Args:
            remote_index: ExternalId -> Salesforce Id index
            snapshot: Source snapshot

        Returns:
            DiffPlan with deletes and upserts
        """
        deletes = self.find_extra_in_target(remote_index, snapshot)
        upserts = tuple(row for row in snapshot.rows if row.external_id is not None)
        self.find_duplicates(snapshot)

        logger.info(f"Plan: {len(deletes)} deletes, {len(upserts)} upserts")

        return DiffPlan(deletes=tuple(deletes), upserts=upserts)
