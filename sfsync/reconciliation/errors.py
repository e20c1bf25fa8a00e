"""
Exception taxonomy for the SAP to Salesforce sync agent.

Fatal-to-pass errors abort the whole reconciliation pass before any mutation
is attempted. Per-record errors are absorbed by the mutation executor and
never surface here.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for sync agent failures."""


class ConfigError(SyncError):
    """Raised when the sync configuration is invalid or incomplete."""


class CredentialError(SyncError):
    """Raised when no valid Salesforce access token can be obtained."""


class SourceQueryError(SyncError):
    """Raised when the SAP source query fails (connection or syntax)."""


class RemoteIndexError(SyncError):
    """Raised when the Salesforce external-id index cannot be fully built."""


class PassCancelledError(SyncError):
    """Raised when a pass is cancelled before any mutation was attempted."""


class SalesforceApiError(SyncError):
    """
    Non-success response from the Salesforce REST API.

    Attributes:
        status_code: HTTP status returned by Salesforce
        body: Raw response body for diagnostics
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PassAbortedError(SyncError):
    """
    A reconciliation pass reached the Aborted state.

    Attributes:
        record_type: Name of the record mapping being reconciled
        stage: Pass state in which the failure happened
        cause: Underlying fatal error
    """

    def __init__(self, record_type: str, stage: str, cause: Exception):
        super().__init__(f"Sync pass for '{record_type}' aborted during {stage}: {cause}")
        self.record_type = record_type
        self.stage = stage
        self.cause = cause
