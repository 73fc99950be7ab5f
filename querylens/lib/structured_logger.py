"""Structured Logger with JSON Formatting.

Provides structured logging with JSON output for machine-readable logs.
Every record carries the request correlation ID and, during ingestion,
the query ID being processed.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from querylens.lib.distributed_tracing import get_correlation_id, get_query_id

# Attributes every LogRecord has; anything else was passed as context
_RESERVED_ATTRS = frozenset(
  logging.LogRecord('', 0, '', 0, '', (), None).__dict__.keys()
) | {'message', 'asctime'}


def _utc_timestamp() -> str:
  return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f') + 'Z'


class JSONFormatter(logging.Formatter):
  """JSON formatter for structured logging."""

  def format(self, record: logging.LogRecord) -> str:
    """Format log record as JSON.

    Args:
        record: Log record to format

    Returns:
        JSON-formatted log string
    """
    log_data = {
      'timestamp': _utc_timestamp(),
      'level': record.levelname,
      'message': record.getMessage(),
      'module': record.module,
      'function': record.funcName,
      'request_id': get_correlation_id(),
    }

    query_id = get_query_id()
    if query_id is not None:
      log_data['query_id'] = query_id

    # Add context fields passed through **extra
    for key, value in record.__dict__.items():
      if key not in _RESERVED_ATTRS and not key.startswith('_'):
        log_data[key] = value

    # Add exception info if present
    if record.exc_info:
      log_data['exception'] = {
        'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
        'message': str(record.exc_info[1]) if record.exc_info[1] else None,
      }

    return json.dumps(log_data, default=str)


class StructuredLogger:
  """Structured logger with JSON formatting.

  Usage:
      logger = StructuredLogger(__name__)
      logger.info('Event ingested', query_id='20240101_000000_00001_abcde')
      logger.warning('Plan parse failed', exc_info=True)
  """

  def __init__(self, name: str):
    """Initialize structured logger.

    Args:
        name: Logger name (typically module name)
    """
    self.logger = logging.getLogger(name)

    # Set log level from environment variable (default to INFO)
    log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, log_level, logging.INFO)
    self.logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    self.logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    self.logger.addHandler(handler)

    # Propagate so pytest's caplog and root handlers still see records
    self.logger.propagate = True

  def info(self, message: str, **extra: Any) -> None:
    """Log INFO level message.

    Args:
        message: Log message
        **extra: Additional context (query_id, catalog, etc.)
    """
    self.logger.info(message, extra=extra)

  def warning(self, message: str, exc_info: bool = False, **extra: Any) -> None:
    """Log WARNING level message.

    Args:
        message: Log message
        exc_info: Include exception traceback
        **extra: Additional context
    """
    self.logger.warning(message, exc_info=exc_info, extra=extra)

  def error(self, message: str, exc_info: bool = False, **extra: Any) -> None:
    """Log ERROR level message.

    Args:
        message: Log message
        exc_info: Include exception traceback
        **extra: Additional context
    """
    self.logger.error(message, exc_info=exc_info, extra=extra)

  def debug(self, message: str, **extra: Any) -> None:
    """Log DEBUG level message."""
    self.logger.debug(message, extra=extra)


def set_log_level(level: str, prefix: str = 'querylens') -> None:
  """Apply a level to every logger under `prefix` created so far.

  Args:
      level: Level name such as 'DEBUG'; unknown names fall back to INFO
      prefix: Logger name prefix
  """
  resolved = logging.getLevelName(level.upper())
  if not isinstance(resolved, int):
    resolved = logging.INFO
  for name, candidate in logging.root.manager.loggerDict.items():
    if name.startswith(prefix) and isinstance(candidate, logging.Logger):
      candidate.setLevel(resolved)


def log_request(endpoint: str, method: str, status_code: int, duration_ms: float) -> None:
  """Log API request with performance metrics.

  Args:
      endpoint: API endpoint path
      method: HTTP method
      status_code: HTTP status code
      duration_ms: Request duration in milliseconds
  """
  log_data = {
    'timestamp': _utc_timestamp(),
    'level': 'INFO',
    'message': f'{method} {endpoint}',
    'request_id': get_correlation_id(),
    'endpoint': endpoint,
    'method': method,
    'status_code': status_code,
    'duration_ms': duration_ms,
  }
  print(json.dumps(log_data))


def log_event(event: str, level: str = 'INFO', context: Optional[Dict[str, Any]] = None) -> None:
  """Event-based logging without creating a logger instance.

  Args:
      event: Event name (e.g., "ingest.rejected", "catalog.created")
      level: Log level (INFO, WARNING, ERROR, DEBUG)
      context: Additional context dictionary

  Example:
      log_event('catalog.removed', context={'catalog': 'postgres'})
  """
  log_entry = {
    'timestamp': _utc_timestamp(),
    'level': level.upper(),
    'event': event,
    'correlation_id': get_correlation_id(),
    **(context or {}),
  }
  query_id = get_query_id()
  if query_id is not None and 'query_id' not in log_entry:
    log_entry['query_id'] = query_id

  print(json.dumps(log_entry, default=str))
