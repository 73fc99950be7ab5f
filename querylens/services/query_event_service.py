"""Query Event Service

Correlates query events by query id and derives the consolidated view of
each query on demand.

Events are appended to a per-query aggregate in arrival order and never
re-sorted in place. Views are recomputed from the aggregate on every read,
so repeated reads over the same events produce identical output.
"""

import threading
from datetime import datetime, timezone
from typing import Any

from querylens.lib.distributed_tracing import bind_query_id
from querylens.lib.metrics import record_event_ingested, record_event_rejected
from querylens.lib.notifications import ViewPublisher
from querylens.lib.structured_logger import StructuredLogger
from querylens.models.query_event import QueryEvent
from querylens.models.query_view import QueryView
from querylens.services.catalog_discovery import CatalogDiscoveryService
from querylens.services.query_plan_parser import QueryPlanParser, order_events

logger = StructuredLogger(__name__)


class QueryEventStore:
    """Process-lifetime event aggregates keyed by query id.

    Each aggregate has its own lock; the store-wide lock is held only to
    create an aggregate or list the keys.
    """

    def __init__(self):
        self._events: dict[str, list[QueryEvent]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._store_lock = threading.Lock()

    def _lock_for(self, query_id: str) -> threading.Lock:
        with self._store_lock:
            lock = self._locks.get(query_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[query_id] = lock
                self._events[query_id] = []
            return lock

    def append(self, event: QueryEvent) -> int:
        """Append an event to its aggregate. Returns the aggregate size."""
        lock = self._lock_for(event.query_id)
        with lock:
            events = self._events[event.query_id]
            events.append(event)
            return len(events)

    def snapshot(self, query_id: str) -> list[QueryEvent] | None:
        """Copy of the aggregate's events in arrival order, or None if unknown."""
        with self._store_lock:
            lock = self._locks.get(query_id)
        if lock is None:
            return None
        with lock:
            return list(self._events[query_id])

    def query_ids(self) -> list[str]:
        with self._store_lock:
            return list(self._events.keys())

    def __len__(self) -> int:
        with self._store_lock:
            return len(self._events)

    def clear(self) -> None:
        with self._store_lock:
            self._events.clear()
            self._locks.clear()


class _ReferenceIndex:
    """Query ids keyed by the primary catalog, schema and table they named."""

    def __init__(self):
        self._lock = threading.Lock()
        self.catalogs: dict[str, set[str]] = {}
        self.schemas: dict[str, set[str]] = {}
        self.tables: dict[str, set[str]] = {}

    def add(self, event: QueryEvent) -> None:
        query_id = event.query_id
        catalog_prefix = f'{event.catalog}.' if event.catalog is not None else ''
        schema_prefix = f'{event.schema_name}.' if event.schema_name is not None else ''
        with self._lock:
            if event.catalog is not None:
                self.catalogs.setdefault(event.catalog, set()).add(query_id)
            if event.schema_name is not None:
                self.schemas.setdefault(catalog_prefix + event.schema_name, set()).add(query_id)
            if event.table_name is not None:
                self.tables.setdefault(catalog_prefix + schema_prefix + event.table_name, set()).add(query_id)

    def lookup(self, index: dict[str, set[str]], key: str) -> list[str]:
        with self._lock:
            return sorted(index.get(key, ()))

    def summary(self) -> dict[str, Any]:
        with self._lock:
            return {
                'catalogs': sorted(self.catalogs),
                'schemas': sorted(self.schemas),
                'tables': sorted(self.tables),
                'catalog_query_counts': {name: len(ids) for name, ids in sorted(self.catalogs.items())},
            }

    def clear(self) -> None:
        with self._lock:
            self.catalogs.clear()
            self.schemas.clear()
            self.tables.clear()


class QueryEventService:
    """Ingests query events and derives query views.

    Usage:
        service = QueryEventService(store, discovery, parser, publisher)
        service.ingest(event)
        view = service.derive_view(event.query_id)
    """

    def __init__(
        self,
        store: QueryEventStore,
        discovery: CatalogDiscoveryService,
        parser: QueryPlanParser,
        publisher: ViewPublisher | None = None,
    ):
        self.store = store
        self.discovery = discovery
        self.parser = parser
        self.publisher = publisher
        self._references = _ReferenceIndex()

    def ingest(self, event: QueryEvent) -> None:
        """Accept one event.

        Events without a query id are logged and dropped. Otherwise the event
        is appended and its catalog references recorded. When the publisher
        has subscribers the refreshed view is derived and published to them.
        Nothing here raises for bad event content.

        Args:
            event: Decoded query event
        """
        if not event.query_id:
            record_event_rejected('missing_query_id')
            logger.warning(
                'Dropping event without query id',
                event_type=event.event_type,
                state=event.state,
            )
            return

        if event.timestamp is None:
            event = event.model_copy(update={'timestamp': datetime.now(timezone.utc)})

        with bind_query_id(event.query_id):
            size = self.store.append(event)
            self._references.add(event)
            self.discovery.record_references(event)
            record_event_ingested(event.event_type or 'UNKNOWN')

            logger.info(
                f'Ingested {event.event_type} event',
                event_type=event.event_type,
                state=event.state,
                catalog=event.catalog,
                schema=event.schema_name,
                table=event.table_name,
                total_events=size,
            )

            if self.publisher is not None and self.publisher.subscriber_count() > 0:
                view = self.derive_view(event.query_id)
                if view is not None:
                    self.publisher.publish(view)

    def derive_view(self, query_id: str) -> QueryView | None:
        """Consolidated view of one query, or None if the id is unknown.

        Events are ordered by timestamp (ties in arrival order). Query text,
        user, state, execution time and error come from the latest event;
        start and end times span the earliest and latest timestamps.
        """
        events = self.store.snapshot(query_id)
        if not events:
            return None

        ordered = order_events(events)
        first, latest = ordered[0], ordered[-1]
        root = self.parser.build_tree(events)

        return QueryView(
            query_id=query_id,
            query=latest.query,
            user=latest.user,
            state=latest.state,
            start_time=first.timestamp,
            end_time=latest.timestamp,
            total_execution_time=latest.execution_time,
            error_message=latest.error_message,
            root=root,
            events=ordered,
        )

    def list_query_ids(self) -> list[str]:
        return self.store.query_ids()

    def list_views(self) -> list[QueryView]:
        return self._views(self.list_query_ids())

    def list_views_by_catalog(self, catalog: str) -> list[QueryView]:
        """Views of queries whose primary catalog is `catalog`."""
        return self._views(self._references.lookup(self._references.catalogs, catalog))

    def list_views_by_schema(self, schema: str) -> list[QueryView]:
        """Views of queries whose primary schema is `schema` ('catalog.schema')."""
        return self._views(self._references.lookup(self._references.schemas, schema))

    def list_views_by_table(self, table: str) -> list[QueryView]:
        """Views of queries whose primary table is `table` ('catalog.schema.table')."""
        return self._views(self._references.lookup(self._references.tables, table))

    def get_database_summary(self) -> dict[str, Any]:
        """Catalogs, schemas and tables named by ingested events, with query counts."""
        summary = self._references.summary()
        summary['total_queries'] = len(self.store)
        return summary

    def extract_operators(self, query_id: str) -> list[str] | None:
        """Operator names from the query's first JSON plan, or None if the id is unknown."""
        events = self.store.snapshot(query_id)
        if events is None:
            return None
        for event in events:
            if event.has_json_plan:
                operators = self.parser.extract_operator_list(event.json_plan)
                if operators:
                    return operators
        return []

    def clear(self) -> None:
        """Forget every query (tests and replays)."""
        self.store.clear()
        self._references.clear()

    def _views(self, query_ids: list[str]) -> list[QueryView]:
        views = []
        for query_id in query_ids:
            view = self.derive_view(query_id)
            if view is not None:
                views.append(view)
        return views
