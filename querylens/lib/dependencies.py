"""Process-lifetime service wiring and FastAPI dependency getters.

One set of services is built per application instance and stored on
`app.state.services`; route handlers reach it through the `Depends`
getters below.
"""

from dataclasses import dataclass

from fastapi import Request, WebSocket

from querylens.lib.config import Settings
from querylens.lib.notifications import ViewPublisher
from querylens.services.catalog_discovery import CatalogDiscoveryService
from querylens.services.catalog_projection import CatalogProjectionService
from querylens.services.catalog_registry import CatalogRegistry
from querylens.services.query_event_service import QueryEventService, QueryEventStore
from querylens.services.query_plan_parser import QueryPlanParser


@dataclass
class Services:
  """Everything the API needs, sharing one registry and one event store."""

  settings: Settings
  registry: CatalogRegistry
  publisher: ViewPublisher
  query_events: QueryEventService
  catalogs: CatalogProjectionService


def build_services(settings: Settings) -> Services:
  """Wire the correlation core for one process."""
  registry = CatalogRegistry()
  publisher = ViewPublisher()
  query_events = QueryEventService(
    store=QueryEventStore(),
    discovery=CatalogDiscoveryService(registry),
    parser=QueryPlanParser(),
    publisher=publisher,
  )
  catalogs = CatalogProjectionService(registry, ttl_seconds=settings.catalog_cache_ttl_seconds)
  return Services(
    settings=settings,
    registry=registry,
    publisher=publisher,
    query_events=query_events,
    catalogs=catalogs,
  )


def get_query_event_service(request: Request) -> QueryEventService:
  return request.app.state.services.query_events


def get_catalog_service(request: Request) -> CatalogProjectionService:
  return request.app.state.services.catalogs


def get_ws_services(websocket: WebSocket) -> Services:
  return websocket.app.state.services
