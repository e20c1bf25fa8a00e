"""
Logging setup for the Sync Agent

Console output is human-readable by default; with JSON logging enabled every
record is emitted as one JSON object carrying the pass correlation ID.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sfsync.utils.correlation import CorrelationIdFilter

# Extra attributes copied into JSON log entries when present on a record
_EXTRA_FIELDS = ("record_type", "external_id", "operation", "summary")


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter with correlation ID support."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'correlation_id': getattr(record, 'correlation_id', None),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(
    verbose: bool = False,
    json_logging: bool = False,
    logger_name: Optional[str] = None
) -> logging.Logger:
    """
    Install a single handler on the given logger (root by default).

    Args:
        verbose: Log at DEBUG instead of INFO
        json_logging: Emit structured JSON instead of plain text
        logger_name: Logger to configure

    Returns:
        The configured logger
    """
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())

    if json_logging:
        handler.setFormatter(StructuredJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(correlation_id)s] %(name)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))

    target = logging.getLogger(logger_name)
    for existing in list(target.handlers):
        target.removeHandler(existing)
    target.addHandler(handler)
    target.setLevel(logging.DEBUG if verbose else logging.INFO)

    return target
