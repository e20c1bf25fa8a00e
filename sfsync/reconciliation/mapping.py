"""
Declarative field mapping between SAP rows and Salesforce payloads.

A RecordMapping describes one record type end to end: the SAP query that
produces the authoritative rows, the join field carrying the external id,
the Salesforce object and its external-id field, and the ordered list of
source field -> target field -> transform correspondences.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from sfsync.reconciliation.errors import ConfigError
from sfsync.reconciliation.models import SourceRow

logger = logging.getLogger(__name__)

_YES_VALUES = {"Y", "S", "SIM", "1", "TRUE"}


def to_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def to_date(value: Any) -> Optional[str]:
    """Format a date-like value as YYYY-MM-DD."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return datetime.fromisoformat(str(value).strip()).date().isoformat()


def to_yes_no(value: Any) -> str:
    """Collapse boolean-like SAP flags into the "S"/"N" picklist values."""
    text = "" if value is None else str(value).strip().upper()
    return "S" if text in _YES_VALUES else "N"


def is_yes(value: Any) -> bool:
    return value is not None and str(value).upper() == "Y"


TRANSFORMS: Dict[str, Callable[[Any], Any]] = {
    "string": to_string,
    "date": to_date,
    "yes_no": to_yes_no,
    "is_yes": is_yes,
}


@dataclass(frozen=True)
class FieldMapping:
    """
    One source field -> target field correspondence.

    Attributes:
        source: SAP column name
        target: Salesforce field API name
        transform: Name of a registered transform
        default: Value used when the transformed value is None
    """

    source: str
    target: str
    transform: str = "string"
    default: Any = None

    def __post_init__(self):
        if self.transform not in TRANSFORMS:
            raise ConfigError(
                f"Unknown transform '{self.transform}' for field {self.source} -> {self.target}. "
                f"Available: {sorted(TRANSFORMS)}"
            )

    def apply(self, row: SourceRow) -> Any:
        transform = TRANSFORMS[self.transform]
        value = transform(row.get(self.source))
        if value is None and self.default is not None:
            # YAML defaults may arrive as dates or numbers
            value = transform(self.default)
        return value


@dataclass(frozen=True)
class RecordMapping:
    """
    Full reconciliation definition for one record type.

    Attributes:
        name: Record type name used in logs and metrics
        source_query: SQL text returning the authoritative SAP rows
        join_field: SAP column holding the external id
        sobject: Salesforce object API name
        external_id_field: Salesforce external-id field API name
        fields: Ordered field mappings for the upsert payload
    """

    name: str
    source_query: str
    join_field: str
    sobject: str
    external_id_field: str
    fields: List[FieldMapping] = field(default_factory=list)

    def build_payload(self, row: SourceRow) -> Dict[str, Any]:
        """
        Map a source row into a Salesforce upsert payload.

        Raises:
            ValueError: If a transform cannot convert a field value
        """
        payload = {}
        for mapping in self.fields:
            try:
                payload[mapping.target] = mapping.apply(row)
            except (TypeError, ValueError) as e:
                raise ValueError(
                    f"Cannot map {mapping.source} -> {mapping.target} "
                    f"with '{mapping.transform}': {e}"
                ) from e
        return payload

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "RecordMapping":
        """Build a mapping from its YAML configuration block."""
        required = ["source_query", "join_field", "sobject", "external_id_field", "fields"]
        missing = [key for key in required if not data.get(key)]
        if missing:
            raise ConfigError(f"Record mapping '{name}' is missing: {', '.join(missing)}")

        fields = []
        for i, entry in enumerate(data["fields"]):
            if "source" not in entry or "target" not in entry:
                raise ConfigError(f"Record mapping '{name}' field #{i} needs 'source' and 'target'")
            fields.append(FieldMapping(
                source=entry["source"],
                target=entry["target"],
                transform=entry.get("transform", "string"),
                default=entry.get("default"),
            ))

        logger.debug(f"Loaded record mapping {name} with {len(fields)} fields")

        return cls(
            name=name,
            source_query=data["source_query"],
            join_field=data["join_field"],
            sobject=data["sobject"],
            external_id_field=data["external_id_field"],
            fields=fields,
        )
