"""
Pytest configuration and shared fixtures.

Provides in-memory stand-ins for Salesforce, SAP and the credential
provider so the reconciliation engine can be exercised without network
access.
"""

import json
import re

import pytest

from sfsync.reconciliation.errors import CredentialError, SalesforceApiError, SourceQueryError
from sfsync.reconciliation.mapping import FieldMapping, RecordMapping
from sfsync.salesforce.client import QueryPage, SalesforceClient, UpsertResponse

EXTERNAL_ID_FIELD = "CA_IdExterno__c"
SOBJECT = "CA_CondicaoPagamento__c"


class FakeSalesforce:
    """
    In-memory Salesforce object with paginated queries.

    Records are stored as remote id -> external id. Upserts behave like the
    REST API: 201 with a JSON body on create, 204 on update.
    """

    def __init__(self, page_size=2):
        self.page_size = page_size
        self.records = {}
        self.calls = []
        self.fail_page = None
        self.fail_status = 500
        self.fail_deletes = set()
        self.fail_upserts = set()
        self._sequence = 0

    build_index_query = staticmethod(SalesforceClient.build_index_query)

    def seed(self, external_id, remote_id):
        self.records[remote_id] = external_id

    def find(self, external_id):
        for remote_id, ext in self.records.items():
            if ext.lower() == external_id.lower():
                return remote_id
        return None

    def query(self, token, soql):
        self.calls.append(("query", soql))
        return self._page(1)

    def follow_continuation(self, token, next_records_url):
        self.calls.append(("follow", next_records_url))
        return self._page(int(re.search(r"-(\d+)$", next_records_url).group(1)))

    def delete(self, token, sobject, record_id):
        self.calls.append(("delete", record_id))
        if record_id in self.fail_deletes:
            raise SalesforceApiError(f"DELETE {record_id} failed (HTTP 400)", status_code=400, body="[]")
        self.records.pop(record_id, None)
        return True

    def upsert_by_external_id(self, token, sobject, external_id_field, external_id, payload):
        self.calls.append(("upsert", external_id))
        if external_id.lower() in self.fail_upserts:
            return UpsertResponse(status_code=400, body='[{"errorCode":"INVALID_FIELD"}]')

        existing = self.find(external_id)
        if existing is not None:
            return UpsertResponse(status_code=204, body="")

        self._sequence += 1
        remote_id = f"a0X{self._sequence:012d}"
        self.records[remote_id] = external_id
        return UpsertResponse(
            status_code=201,
            body=json.dumps({"id": remote_id, "success": True, "created": True, "errors": []})
        )

    def calls_of(self, kind):
        return [value for call, value in self.calls if call == kind]

    def _page(self, number):
        if number == self.fail_page:
            raise SalesforceApiError(
                f"QUERY failed (HTTP {self.fail_status}) on page {number}",
                status_code=self.fail_status
            )

        items = list(self.records.items())
        start = (number - 1) * self.page_size
        chunk = items[start:start + self.page_size]
        has_more = start + self.page_size < len(items)

        return QueryPage(
            records=[{"Id": rid, EXTERNAL_ID_FIELD: ext} for rid, ext in chunk],
            next_records_url=f"/services/data/v60.0/query/01gxx-{number + 1}" if has_more else None,
            total_size=len(items),
            done=not has_more
        )


class ScriptedPagesClient:
    """Query client returning a fixed sequence of pages keyed by continuation URL."""

    build_index_query = staticmethod(SalesforceClient.build_index_query)

    def __init__(self, first_page, continuations=None):
        self.first_page = first_page
        self.continuations = continuations or {}
        self.fetches = []

    def query(self, token, soql):
        self.fetches.append(None)
        return self.first_page

    def follow_continuation(self, token, next_records_url):
        self.fetches.append(next_records_url)
        return self.continuations[next_records_url]


class FakeSap:
    """Source query executor returning canned rows."""

    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.queries = []

    def execute_query(self, sql):
        self.queries.append(sql)
        if self.error:
            raise SourceQueryError(self.error)
        return [dict(row) for row in self.rows]


class FakeAuth:
    """Credential provider returning a fixed token or failing."""

    def __init__(self, token="00D-test-token", error=None):
        self.token = token
        self.error = error
        self.calls = 0
        self.invalidations = 0

    def get_valid_token(self):
        self.calls += 1
        if self.error:
            raise CredentialError(self.error)
        return self.token

    def invalidate(self):
        self.invalidations += 1


def sap_row(group_num, name="30 dias", **extra):
    row = {
        "GroupNum": group_num,
        "PymntGroup": name,
        "DataSource": None,
        "PaymntsNum": 1,
        "CrdMthd": None,
        "UpdateDate": "2024-03-15",
        "U_CodAcoflex": None,
        "U_Parcelas": None,
        "U_SX_Sifra": None,
        "U_SX_Adiantamento": "N",
        "U_AC_PrazoMedio": "30",
        "OpenRcpt": "Y",
    }
    row.update(extra)
    return row


@pytest.fixture
def record_mapping():
    """Payment-terms mapping as shipped in config/payment_terms.yaml."""
    return RecordMapping(
        name="payment_terms",
        source_query='SELECT * FROM "OCTG"',
        join_field="GroupNum",
        sobject=SOBJECT,
        external_id_field=EXTERNAL_ID_FIELD,
        fields=[
            FieldMapping(source="PymntGroup", target="Name"),
            FieldMapping(source="GroupNum", target="CA_CodCondPagamento__c"),
            FieldMapping(source="DataSource", target="CA_FonteDados__c", default="I"),
            FieldMapping(source="PaymntsNum", target="CA_NumPrestacoes__c", default="0"),
            FieldMapping(source="UpdateDate", target="CA_DataAtualizacao__c", transform="date"),
            FieldMapping(source="U_SX_Adiantamento", target="CA_GeraAtendimento__c", transform="yes_no"),
            FieldMapping(source="OpenRcpt", target="CA_Ativo__c", transform="is_yes"),
        ]
    )


@pytest.fixture
def salesforce():
    return FakeSalesforce()


@pytest.fixture
def auth():
    return FakeAuth()
