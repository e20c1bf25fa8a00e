"""Salesforce REST API access: OAuth2 token provider and data client."""

from sfsync.salesforce.auth import SalesforceAuth, SalesforceToken
from sfsync.salesforce.client import QueryPage, SalesforceClient, UpsertResponse

__all__ = [
    "QueryPage",
    "SalesforceAuth",
    "SalesforceClient",
    "SalesforceToken",
    "UpsertResponse",
]
