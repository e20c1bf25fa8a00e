"""
Pass-scoped data model for reconciliation.

Everything here is created at the start of one reconciliation pass and
discarded at its end. External ids compare case-insensitively.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Optional, Tuple

from requests.structures import CaseInsensitiveDict


def normalize_external_id(value: Any) -> Optional[str]:
    """
    Normalize a raw join-field value into an external id.

    Args:
        value: Raw value read from a source row or a Salesforce record

    Returns:
        The value as a string, or None when it is NULL, empty or whitespace
    """
    if value is None:
        return None

    text = str(value)
    if not text.strip():
        return None

    return text


def external_id_key(external_id: str) -> str:
    """Comparison key for an external id (matches CaseInsensitiveDict)."""
    return external_id.lower()


@dataclass(frozen=True)
class SourceRow:
    """
    One SAP record, immutable once read.

    Attributes:
        fields: Ordered, read-only mapping of column name to value
        external_id: Normalized join-field value, None when absent
    """

    fields: Mapping
    external_id: Optional[str]

    @classmethod
    def from_mapping(cls, row: Dict[str, Any], join_field: str) -> "SourceRow":
        return cls(
            fields=MappingProxyType(dict(row)),
            external_id=normalize_external_id(row.get(join_field)),
        )

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def to_json(self) -> str:
        """Serialize the row for diagnostic log entries."""
        return json.dumps(dict(self.fields), default=str, ensure_ascii=False)


class RemoteIndex(Mapping):
    """
    Read-only ExternalId -> Salesforce Id mapping for one pass.

    Keys compare case-insensitively. The index exposes no mutators, so it
    cannot change once the builder hands it over.
    """

    def __init__(self, entries: Optional[CaseInsensitiveDict] = None):
        self._entries = CaseInsensitiveDict(entries or {})

    def __getitem__(self, external_id: str) -> str:
        return self._entries[external_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, external_id: object) -> bool:
        return isinstance(external_id, str) and external_id in self._entries

    def __repr__(self) -> str:
        return f"RemoteIndex({dict(self._entries.items())!r})"


@dataclass(frozen=True)
class SourceSnapshot:
    """
    Result of one source extraction.

    Attributes:
        rows: Every row returned by the source query, in query order
        external_id_keys: Comparison keys of the valid external ids
        skipped_rows: Rows dropped for an empty or whitespace external id
    """

    rows: Tuple[SourceRow, ...]
    external_id_keys: frozenset
    skipped_rows: int = 0

    @property
    def total_external_ids(self) -> int:
        return len(self.external_id_keys)

    def contains(self, external_id: str) -> bool:
        return external_id_key(external_id) in self.external_id_keys


@dataclass(frozen=True)
class DiffPlan:
    """
    Mutations planned for one pass.

    Attributes:
        deletes: (external id, Salesforce Id) pairs present only in Salesforce
        upserts: Every source row with a valid external id, in query order
    """

    deletes: Tuple[Tuple[str, str], ...]
    upserts: Tuple[SourceRow, ...]


class OutcomeKind(Enum):
    """Classification of a single upsert attempt."""

    CREATED = "created"
    UPDATED_NO_CONTENT = "updated_no_content"
    UPDATED_WITH_BODY = "updated_with_body"
    FAILED = "failed"


@dataclass(frozen=True)
class MutationOutcome:
    """
    Tagged result of one upsert attempt.

    Attributes:
        kind: Outcome classification
        external_id: External id the upsert was keyed on
        status_code: HTTP status, None when the request never completed
        remote_id: Salesforce Id (only known for CREATED with a parsable body)
        raw_body: Raw response payload for diagnostics
        reason: Failure description (FAILED only)
        method: HTTP method used for the upsert
    """

    kind: OutcomeKind
    external_id: str
    status_code: Optional[int] = None
    remote_id: Optional[str] = None
    raw_body: str = ""
    reason: Optional[str] = None
    method: str = "PATCH"

    @property
    def failed(self) -> bool:
        return self.kind is OutcomeKind.FAILED

    @property
    def created(self) -> bool:
        return self.kind is OutcomeKind.CREATED


@dataclass(frozen=True)
class MutationFailure:
    """Diagnostic record kept for operator triage of a failed mutation."""

    external_id: str
    operation: str
    message: str
    row: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "external_id": self.external_id,
            "operation": self.operation,
            "message": self.message,
            "row": self.row,
        }


@dataclass(frozen=True)
class RunSummary:
    """Immutable summary of one reconciliation pass."""

    record_type: str
    correlation_id: Optional[str]
    started_at: datetime
    finished_at: datetime
    upserts_attempted: int = 0
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    delete_candidates: int = 0
    errored: int = 0
    total_source_external_ids: int = 0
    skipped_rows: int = 0
    remote_index_size: int = 0
    cancelled: bool = False
    failures: Tuple[MutationFailure, ...] = field(default_factory=tuple)

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "record_type": self.record_type,
            "correlation_id": self.correlation_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "upserts_attempted": self.upserts_attempted,
            "inserted": self.inserted,
            "updated": self.updated,
            "deleted": self.deleted,
            "delete_candidates": self.delete_candidates,
            "errored": self.errored,
            "total_source_external_ids": self.total_source_external_ids,
            "skipped_rows": self.skipped_rows,
            "remote_index_size": self.remote_index_size,
            "cancelled": self.cancelled,
            "failures": [failure.as_dict() for failure in self.failures],
        }

    def log_line(self) -> str:
        """Single-line summary emitted once per pass."""
        line = (
            f"Sync {self.record_type} finished | Inserted={self.inserted} | "
            f"Updated={self.updated} | Removed={self.deleted}/{self.delete_candidates} | "
            f"Errors={self.errored} | Total SAP={self.total_source_external_ids}"
        )
        if self.cancelled:
            line += " | CANCELLED"
        return line

