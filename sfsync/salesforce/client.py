"""
Salesforce REST Client for the Sync Agent

Wraps the query, delete and upsert-by-external-id endpoints of the
Salesforce REST API. Each client owns its own requests.Session; every
request carries the bearer token and an explicit timeout.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import requests

from sfsync.reconciliation.errors import SalesforceApiError

logger = logging.getLogger(__name__)


@dataclass
class QueryPage:
    """
    One page of SOQL query results.

    Attributes:
        records: Records on this page
        next_records_url: Relative continuation URL, None on the last page
        total_size: Total number of records matched by the query
        done: Whether Salesforce reports the query as complete
    """

    records: List[Dict[str, Any]] = field(default_factory=list)
    next_records_url: Optional[str] = None
    total_size: int = 0
    done: bool = True


@dataclass
class UpsertResponse:
    """Raw result of an upsert request, classified later by the executor."""

    status_code: int
    body: str = ""
    method: str = "PATCH"


class SalesforceClient:
    """
    Client for the Salesforce REST data API.

    Provides the query/continuation calls used to index existing records and
    the delete/upsert calls used to mutate them.
    """

    def __init__(
        self,
        instance_url: str,
        api_version: str = "v60.0",
        timeout: Union[float, tuple] = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize Salesforce client.

        Args:
            instance_url: Salesforce instance base URL
            api_version: REST API version (e.g., "v60.0")
            timeout: Per-request timeout in seconds (or (connect, read) tuple)
            session: Optional pre-configured requests session
        """
        if not instance_url:
            raise ValueError("Salesforce instance URL must be provided")

        self.instance_url = instance_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self.session = session or requests.Session()

        logger.debug(f"Initialized SalesforceClient for {self.api_root}")

    @property
    def api_root(self) -> str:
        return f"{self.instance_url}/services/data/{self.api_version}"

    def sobject_url(self, sobject: str) -> str:
        return f"{self.api_root}/sobjects/{sobject}"

    @staticmethod
    def build_index_query(sobject: str, external_id_field: str) -> str:
        """SOQL selecting every (Id, external id) pair of an object."""
        return f"SELECT Id, {external_id_field} FROM {sobject} WHERE {external_id_field} != null"

    def query(self, token: str, soql: str) -> QueryPage:
        """
        Run a SOQL query and return its first page.

        Raises:
            SalesforceApiError: If Salesforce returns a non-success status
        """
        logger.debug(f"Executing SOQL: {soql}")
        response = self._request("GET", f"{self.api_root}/query", token, params={"q": soql})
        return self._parse_page(response, "QUERY")

    def follow_continuation(self, token: str, next_records_url: str) -> QueryPage:
        """
        Fetch the next page of a query from its continuation URL.

        Raises:
            SalesforceApiError: If Salesforce returns a non-success status
        """
        url = next_records_url
        if not url.startswith("http"):
            url = f"{self.instance_url}/{next_records_url.lstrip('/')}"

        logger.debug(f"Following query continuation: {next_records_url}")
        response = self._request("GET", url, token)
        return self._parse_page(response, "QUERY continuation")

    def delete(self, token: str, sobject: str, record_id: str) -> bool:
        """
        Delete a record by its Salesforce Id.

        Raises:
            SalesforceApiError: If Salesforce returns a non-success status
        """
        response = self._request("DELETE", f"{self.sobject_url(sobject)}/{record_id}", token)

        if response.ok:
            return True

        raise SalesforceApiError(
            f"DELETE {sobject} Id={record_id} failed (HTTP {response.status_code}): {response.text}",
            status_code=response.status_code,
            body=response.text
        )

    def upsert_by_external_id(
        self,
        token: str,
        sobject: str,
        external_id_field: str,
        external_id: str,
        payload: Dict[str, Any]
    ) -> UpsertResponse:
        """
        Create or update a record keyed by its external id.

        Non-success statuses are returned, not raised; transport errors
        propagate as requests exceptions.
        """
        url = f"{self.sobject_url(sobject)}/{external_id_field}/{quote(external_id, safe='')}"
        response = self._request("PATCH", url, token, json=payload)

        return UpsertResponse(
            status_code=response.status_code,
            body=response.text,
            method="PATCH"
        )

    def close(self):
        """Close the underlying HTTP session."""
        self.session.close()
        logger.debug("Salesforce client session closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _request(self, method: str, url: str, token: str, **kwargs) -> requests.Response:
        headers = {"Authorization": f"Bearer {token}"}
        return self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)

    def _parse_page(self, response: requests.Response, operation: str) -> QueryPage:
        if not response.ok:
            raise SalesforceApiError(
                f"{operation} failed (HTTP {response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SalesforceApiError(
                f"{operation} returned invalid JSON: {e}",
                status_code=response.status_code,
                body=response.text
            ) from e

        return QueryPage(
            records=data.get("records") or [],
            next_records_url=data.get("nextRecordsUrl") or None,
            total_size=data.get("totalSize", 0),
            done=data.get("done", True)
        )
