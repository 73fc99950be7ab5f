"""Catalog Projection Service

Read-side view of the catalog registry served to API consumers. The list
of catalogs is re-derived from the registry at most once per TTL window;
refresh and invalidate force the next read to see current data.
"""

import threading
import time
from typing import Callable

from querylens.lib.structured_logger import StructuredLogger
from querylens.models.catalog import Catalog, Collection, Schema, Table
from querylens.services.catalog_registry import CatalogRegistry

logger = StructuredLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 300.0


class CatalogProjectionService:
    """Cached catalog listing plus per-catalog lookups.

    Per-catalog reads (`get_catalog`, `get_schemas`, ...) always go to the
    registry; only the full listing is cached.
    """

    def __init__(
        self,
        registry: CatalogRegistry,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: list[Catalog] | None = None
        self._cached_at: float | None = None

    def list_catalogs(self) -> list[Catalog]:
        """All discovered catalogs, served from cache while it is fresh."""
        with self._lock:
            if self._cached is not None and not self._expired():
                return list(self._cached)
        return self.refresh()

    def get_catalog(self, catalog_id: str) -> Catalog | None:
        return self.registry.get(catalog_id)

    def get_schemas(self, catalog_id: str) -> list[Schema] | None:
        """Schemas of a catalog; None if the catalog is unknown."""
        catalog = self.registry.get(catalog_id)
        return catalog.schemas if catalog is not None else None

    def get_collections(self, catalog_id: str) -> list[Collection] | None:
        """Collections of a catalog; None if the catalog is unknown."""
        catalog = self.registry.get(catalog_id)
        return catalog.collections if catalog is not None else None

    def get_tables(self, catalog_id: str, schema_name: str) -> list[Table] | None:
        """Tables of one schema; None if the catalog or schema is unknown."""
        catalog = self.registry.get(catalog_id)
        if catalog is None:
            return None
        schema = catalog.get_schema(schema_name)
        return schema.tables if schema is not None else None

    def refresh(self) -> list[Catalog]:
        """Re-derive the listing from the registry now."""
        catalogs = self.registry.list_catalogs()
        with self._lock:
            self._cached = catalogs
            self._cached_at = self._clock()
        logger.debug(f'Refreshed catalog listing: {len(catalogs)} catalogs')
        return list(catalogs)

    def invalidate(self) -> None:
        """Drop the cached listing; the next read re-derives it."""
        with self._lock:
            self._cached = None
            self._cached_at = None
        logger.info('Catalog cache invalidated')

    def remove_catalog(self, catalog_id: str) -> bool:
        """Remove a catalog from the registry. Returns True if it existed."""
        removed = self.registry.remove(catalog_id)
        if removed:
            self.invalidate()
        return removed

    def _expired(self) -> bool:
        return self._cached_at is None or self._clock() - self._cached_at >= self.ttl_seconds
