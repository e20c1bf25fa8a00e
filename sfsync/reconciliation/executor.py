"""
Mutation Executor for SAP to Salesforce Reconciliation

Applies one delete or one upsert at a time against Salesforce. Failures are
isolated per record: they are logged with the external id, the error detail
and the source row, and returned to the caller instead of raised.
"""

import json
import logging
from typing import Optional

import requests

from sfsync.reconciliation.errors import SalesforceApiError
from sfsync.reconciliation.mapping import RecordMapping
from sfsync.reconciliation.models import (
    MutationFailure,
    MutationOutcome,
    OutcomeKind,
    SourceRow,
)

logger = logging.getLogger(__name__)


class MutationExecutor:
    """
    Executes Salesforce mutations for one record type.

    Creates requests to:
    - DELETE records that no longer exist in SAP
    - UPSERT (PATCH by external id) every SAP row
    """

    def __init__(self, client, mapping: RecordMapping):
        """
        Initialize the executor.

        Args:
            client: Target mutation client (delete / upsert_by_external_id)
            mapping: Record mapping for payloads and object names
        """
        self.client = client
        self.mapping = mapping

    def delete(self, token, external_id: str, remote_id: str) -> Optional[MutationFailure]:
        """
        Remove one Salesforce record.

        Args:
            token: Valid Salesforce credential
            external_id: External id of the record
            remote_id: Salesforce Id of the record

        Returns:
            None on success, a MutationFailure otherwise
        """
        try:
            self.client.delete(token, self.mapping.sobject, remote_id)
        except (SalesforceApiError, requests.RequestException) as e:
            logger.error(
                f"DELETE {self.mapping.sobject} FAILED | ExternalId={external_id} | Error={e}",
                extra={"external_id": external_id, "operation": "delete"}
            )
            return MutationFailure(external_id=external_id, operation="delete", message=str(e))

        logger.info(
            f"DELETE {self.mapping.sobject} OK | ExternalId={external_id} | SFID={remote_id}",
            extra={"external_id": external_id, "operation": "delete"}
        )
        return None

    def upsert(self, token, row: SourceRow) -> MutationOutcome:
        """
        Create or update one Salesforce record from a source row.

        Args:
            token: Valid Salesforce credential
            row: Source row with a valid external id

        Returns:
            MutationOutcome; FAILED outcomes are logged with the raw row
        """
        external_id = row.external_id

        try:
            payload = self.mapping.build_payload(row)
            response = self.client.upsert_by_external_id(
                token,
                self.mapping.sobject,
                self.mapping.external_id_field,
                external_id,
                payload
            )
        except (ValueError, TypeError, requests.RequestException) as e:
            outcome = MutationOutcome(kind=OutcomeKind.FAILED, external_id=external_id, reason=str(e))
            self._log_failure(outcome, row)
            return outcome

        outcome = self.classify(external_id, response.status_code, response.body, response.method)

        if outcome.failed:
            self._log_failure(outcome, row)
        else:
            logger.info(
                f"METHOD={outcome.method} {self.mapping.sobject} {outcome.kind.value} | "
                f"ExternalId={external_id} | HTTP={outcome.status_code}",
                extra={"external_id": external_id, "operation": "upsert"}
            )

        return outcome

    @staticmethod
    def classify(external_id: str, status_code: int, body: str, method: str = "PATCH") -> MutationOutcome:
        """
        Classify an upsert response by its status.

        201 -> CREATED (Id parsed from the body when possible),
        204 -> UPDATED_NO_CONTENT, other 2xx -> UPDATED_WITH_BODY,
        anything else -> FAILED.
        """
        if not 200 <= status_code < 300:
            return MutationOutcome(
                kind=OutcomeKind.FAILED,
                external_id=external_id,
                status_code=status_code,
                raw_body=body,
                reason=f"HTTP {status_code}: {body}",
                method=method
            )

        if status_code == 201:
            remote_id = None
            try:
                remote_id = json.loads(body).get("id")
            except (ValueError, AttributeError):
                logger.warning(f"Could not parse Id from created response for ExternalId={external_id}")

            return MutationOutcome(
                kind=OutcomeKind.CREATED,
                external_id=external_id,
                status_code=status_code,
                remote_id=remote_id,
                raw_body=body,
                method=method
            )

        kind = OutcomeKind.UPDATED_NO_CONTENT if status_code == 204 else OutcomeKind.UPDATED_WITH_BODY
        return MutationOutcome(
            kind=kind,
            external_id=external_id,
            status_code=status_code,
            raw_body=body,
            method=method
        )

    def _log_failure(self, outcome: MutationOutcome, row: SourceRow) -> None:
        logger.error(
            f"ERROR METHOD={outcome.method} {self.mapping.sobject} | ExternalId={outcome.external_id} | "
            f"Error={outcome.reason} | Row={row.to_json()}",
            extra={"external_id": outcome.external_id, "operation": "upsert"}
        )
