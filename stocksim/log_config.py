"""
Logging setup for the CLI.

Plain text by default; with ``structured=True`` each record becomes one JSON
line carrying the ``extra=`` fields the ledger, registry and reconciler attach
(trade ids, symbols, cash balances).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

_LEVELS = {
    'CRITICAL': logging.CRITICAL,
    'ERROR': logging.ERROR,
    'WARNING': logging.WARNING,
    'INFO': logging.INFO,
    'DEBUG': logging.DEBUG,
}

# Attributes every LogRecord has; anything else came in through ``extra=``
_RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {'message', 'asctime'}

_TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _json_value(value: object) -> object:
    """Encode values json cannot: Decimal amounts stay exact as strings."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return repr(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        payload.update({key: value for key, value in record.__dict__.items() if key not in _RESERVED})
        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_value, ensure_ascii=False)


def resolve_level(level: str) -> int:
    """Map a level name to its numeric value, defaulting to INFO."""
    return _LEVELS.get(level.strip().upper(), logging.INFO)


def configure_logger(name: str, level: str = 'INFO', structured: bool = False) -> logging.Logger:
    """
    Attach a single stderr handler to logger ``name``.

    Args:
        name: Logger name (``stocksim`` covers every module in the package)
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: Emit JSON lines instead of plain text

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    level_value = resolve_level(level)
    logger.setLevel(level_value)

    # Repeated calls replace the handler instead of duplicating output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level_value)
    handler.setFormatter(StructuredFormatter() if structured else logging.Formatter(_TEXT_FORMAT))
    logger.addHandler(handler)
    return logger
