"""Correlation context for requests and event ingestion.

Carries the HTTP correlation ID and the query ID currently being ingested
through Python contextvars so log lines can be tied back to both.
"""

import contextvars
from contextlib import contextmanager
from typing import Iterator
from uuid import uuid4

# Context variable for correlation ID (request_id)
# This is async-safe and automatically propagates through async calls
correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
  'request_id', default='no-request-id'
)

# Query ID of the event being ingested on this thread/task, if any
current_query_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
  'query_id', default=None
)


def get_correlation_id() -> str:
  """Retrieve the current request's correlation ID.

  Returns:
      Current correlation ID (request_id) or 'no-request-id' if not set
  """
  return correlation_id.get()


def set_correlation_id(request_id: str) -> None:
  """Set the correlation ID for the current request context.

  Args:
      request_id: Unique request identifier (usually UUID or X-Correlation-ID header)
  """
  correlation_id.set(request_id)


def generate_correlation_id() -> str:
  """Generate a new correlation ID and set it in context.

  Returns:
      Generated correlation ID (UUID)
  """
  request_id = str(uuid4())
  set_correlation_id(request_id)
  return request_id


def get_query_id() -> str | None:
  """Query ID bound to the current ingestion context, or None."""
  return current_query_id.get()


@contextmanager
def bind_query_id(query_id: str | None) -> Iterator[None]:
  """Bind a query ID for the duration of a block.

  Usage:
      with bind_query_id(event.query_id):
          discovery.record_references(event)
  """
  token = current_query_id.set(query_id)
  try:
    yield
  finally:
    current_query_id.reset(token)
