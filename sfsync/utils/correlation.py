"""
Pass correlation IDs for the Sync Agent

Every reconciliation pass runs under its own correlation ID so that all log
entries of one pass (extraction, index pages, each mutation and the summary)
can be grouped afterwards.
"""

import contextvars
import logging
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

_pass_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar('sfsync_pass_id', default=None)


def generate_correlation_id() -> str:
    """New random pass ID (UUID4 string)."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    return _pass_id.get()


def set_correlation_id(correlation_id: str) -> None:
    """
    Bind a pass ID to the current context.

    Raises:
        ValueError: If correlation_id is not a non-empty string
    """
    if not isinstance(correlation_id, str) or not correlation_id:
        raise ValueError("Correlation ID must be a non-empty string")
    _pass_id.set(correlation_id)


def clear_correlation_id() -> None:
    _pass_id.set(None)


class CorrelationContext:
    """
    Scopes a pass ID to a ``with`` block.

    Usage:
        with CorrelationContext() as pass_id:
            orchestrator.run_pass()

    The ID active before the block is restored on exit, even on error.
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or generate_correlation_id()
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = _pass_id.set(self.correlation_id)
        logger.debug(f"Pass {self.correlation_id} started")
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        _pass_id.reset(self._token)


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.correlation_id`` with the active pass ID ("N/A" outside a pass)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "N/A"
        return True
