"""
Remote Index Builder

Pages through a Salesforce SOQL query to build the complete
ExternalId -> Salesforce Id index for one object. Any page failure aborts
the build; a partial index is never returned.
"""

import logging
import threading
from typing import Optional

import requests
from requests.structures import CaseInsensitiveDict

from sfsync.reconciliation.errors import (
    PassCancelledError,
    RemoteIndexError,
    SalesforceApiError,
)
from sfsync.reconciliation.models import RemoteIndex, normalize_external_id

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 1000


class RemoteIndexBuilder:
    """
    Builds the external-id index of a Salesforce object.

    Follows query continuations until none is reported, guarding against
    repeated continuation tokens and a page ceiling.
    """

    def __init__(self, client, max_pages: int = DEFAULT_MAX_PAGES, id_field: str = "Id"):
        """
        Initialize the index builder.

        Args:
            client: Target query client (query / follow_continuation)
            max_pages: Maximum number of pages fetched per build
            id_field: Field carrying the Salesforce record Id
        """
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")

        self.client = client
        self.max_pages = max_pages
        self.id_field = id_field

    def build(
        self,
        token,
        sobject: str,
        external_id_field: str,
        cancel_event: Optional[threading.Event] = None
    ) -> RemoteIndex:
        """
        Build the index for an object.

        Args:
            token: Valid Salesforce credential
            sobject: Salesforce object API name
            external_id_field: External-id field API name
            cancel_event: Optional event checked between pages

        Returns:
            Complete RemoteIndex (duplicate external ids: last page wins)

        Raises:
            RemoteIndexError: If any page fails or pagination misbehaves
            PassCancelledError: If cancelled between pages
        """
        soql = self.client.build_index_query(sobject, external_id_field)
        entries = CaseInsensitiveDict()
        seen_tokens = set()
        pages = 0

        page = self._fetch(lambda: self.client.query(token, soql), pages + 1)

        while True:
            pages += 1
            self._merge_page(entries, page.records, external_id_field)

            next_url = page.next_records_url
            if not next_url:
                break

            if next_url in seen_tokens:
                raise RemoteIndexError(
                    f"Query continuation {next_url} for {sobject} was already followed"
                )
            if pages >= self.max_pages:
                raise RemoteIndexError(
                    f"Index build for {sobject} exceeded {self.max_pages} pages"
                )
            if cancel_event is not None and cancel_event.is_set():
                raise PassCancelledError(f"Index build for {sobject} cancelled after {pages} pages")

            seen_tokens.add(next_url)
            page = self._fetch(lambda: self.client.follow_continuation(token, next_url), pages + 1)

        logger.info(f"Built remote index for {sobject}: {len(entries)} records across {pages} pages")
        return RemoteIndex(entries)

    def _fetch(self, call, page_number: int):
        # Transport errors (requests exceptions) abort the build like API errors
        try:
            return call()
        except (SalesforceApiError, requests.RequestException) as e:
            logger.error(f"Remote index page {page_number} failed: {e}")
            raise RemoteIndexError(f"Page {page_number} failed: {e}") from e

    def _merge_page(self, entries: CaseInsensitiveDict, records, external_id_field: str) -> None:
        for record in records:
            remote_id = normalize_external_id(record.get(self.id_field))
            external_id = normalize_external_id(record.get(external_id_field))

            if remote_id is None or external_id is None:
                continue

            previous = entries.get(external_id)
            if previous is not None and previous != remote_id:
                logger.warning(
                    f"Duplicate external id {external_id} in Salesforce: "
                    f"{previous} replaced by {remote_id}"
                )

            entries[external_id] = remote_id
