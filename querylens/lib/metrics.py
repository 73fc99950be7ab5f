"""Prometheus metrics for event ingestion, tree building and catalog discovery."""

from prometheus_client import Counter, Histogram


# Ingestion metrics
events_ingested_total = Counter(
  'querylens_events_ingested_total',
  'Events appended to a query aggregate',
  ['event_type']
)

events_rejected_total = Counter(
  'querylens_events_rejected_total',
  'Events dropped before reaching an aggregate',
  ['reason']
)

# Plan tree metrics
plan_parse_failures_total = Counter(
  'querylens_plan_parse_failures_total',
  'JSON plans that could not be parsed into an operator tree'
)

tree_builds_total = Counter(
  'querylens_tree_builds_total',
  'Operator trees built, by reconstruction path',
  ['path']
)

# Catalog discovery metrics
catalog_references_total = Counter(
  'querylens_catalog_references_total',
  'Catalog references extracted from events',
  ['source']
)

catalogs_discovered_total = Counter(
  'querylens_catalogs_discovered_total',
  'Catalogs created in the registry',
  ['kind']
)

discovery_source_errors_total = Counter(
  'querylens_discovery_source_errors_total',
  'Reference sources skipped because of malformed metadata',
  ['source']
)

# Notification metrics
notifications_dropped_total = Counter(
  'querylens_notifications_dropped_total',
  'Query view updates that a subscriber failed to accept'
)

# HTTP metrics
request_duration_seconds = Histogram(
  'request_duration_seconds',
  'Request duration in seconds',
  ['endpoint', 'method', 'status'],
  buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0]
)


def record_event_ingested(event_type: str | None):
  """Record an event accepted into an aggregate.

  Args:
      event_type: Event kind ('CREATED', 'COMPLETED', ...); None is reported as 'UNKNOWN'
  """
  events_ingested_total.labels(event_type=event_type or 'UNKNOWN').inc()


def record_event_rejected(reason: str):
  """Record an event dropped at ingestion.

  Args:
      reason: Short reason code ('missing_query_id', 'missing_metadata')
  """
  events_rejected_total.labels(reason=reason).inc()


def record_plan_parse_failure():
  """Record a JSON plan that failed to parse."""
  plan_parse_failures_total.inc()


def record_tree_build(path: str):
  """Record which reconstruction path produced a tree.

  Args:
      path: 'json' or 'legacy'
  """
  tree_builds_total.labels(path=path).inc()


def record_catalog_reference(source: str):
  """Record one extracted catalog reference.

  Args:
      source: 'primary', 'metadata_inputs', 'io_metadata' or 'plan_text'
  """
  catalog_references_total.labels(source=source).inc()


def record_catalog_discovered(kind: str):
  """Record creation of a new catalog.

  Args:
      kind: Catalog kind value ('RELATIONAL', 'DOCUMENT', 'UNKNOWN')
  """
  catalogs_discovered_total.labels(kind=kind).inc()


def record_discovery_source_error(source: str):
  """Record a reference source skipped for one event."""
  discovery_source_errors_total.labels(source=source).inc()


def record_notification_dropped():
  """Record a query view update that was not delivered."""
  notifications_dropped_total.inc()


def record_request_duration(endpoint: str, method: str, status: int, duration_seconds: float):
  """Record overall request duration.

  Args:
      endpoint: API endpoint path
      method: HTTP method (GET, POST, etc.)
      status: HTTP status code
      duration_seconds: Request duration in seconds
  """
  request_duration_seconds.labels(
    endpoint=endpoint,
    method=method,
    status=str(status)
  ).observe(duration_seconds)
