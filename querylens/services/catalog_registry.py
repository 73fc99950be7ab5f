"""Catalog Registry

Process-lifetime, in-memory store of discovered catalogs and their
schema/table/column or collection/field hierarchies.

Every catalog has its own re-entrant lock. All counter bumps and child
mutations for a catalog run inside that lock, so N concurrent references
raise its counter by exactly N. The registry-wide lock is only held while
looking up or creating a per-catalog lock and while listing names; no
operation holds locks for more than one catalog.
"""

import threading
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from querylens.lib.metrics import record_catalog_discovered
from querylens.lib.structured_logger import StructuredLogger
from querylens.models.catalog import (
    Catalog,
    CatalogKind,
    Collection,
    CollectionField,
    Column,
    DocumentContents,
    Schema,
    Table,
    empty_contents,
)

logger = StructuredLogger(__name__)

# Classifier: catalog name -> (kind, vendor type)
Classifier = Callable[[str], tuple[CatalogKind, str]]

# (name, type) pairs as extracted from input metadata
ColumnSpec = tuple[str, str | None]


class CatalogRegistry:
    """Concurrent catalog store with per-catalog atomic updates."""

    def __init__(self):
        self._catalogs: dict[str, Catalog] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, name: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(name)
            if lock is None:
                lock = threading.RLock()
                self._locks[name] = lock
            return lock

    @contextmanager
    def _editing(self, name: str) -> Iterator[Catalog | None]:
        with self._lock_for(name):
            yield self._catalogs.get(name)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def touch_catalog(
        self,
        name: str,
        timestamp: datetime,
        classify: Classifier,
        count: bool = True,
    ) -> CatalogKind:
        """Create the catalog if absent, then bump last-seen and its query counter.

        The kind is decided by `classify` on creation only and never changes.

        Args:
            name: Catalog name (case-sensitive identifier)
            timestamp: Event timestamp
            classify: Maps a new catalog's name to (kind, vendor type)
            count: Whether to increment total_queries

        Returns:
            The catalog's (possibly pre-existing) kind
        """
        with self._lock_for(name):
            catalog = self._catalogs.get(name)
            if catalog is None:
                kind, vendor_type = classify(name)
                catalog = Catalog(
                    id=name,
                    name=name,
                    kind=kind,
                    type=vendor_type,
                    first_seen=timestamp,
                    last_seen=timestamp,
                    total_queries=0,
                    contents=empty_contents(kind),
                )
                self._catalogs[name] = catalog
                record_catalog_discovered(kind.value)
                logger.info(
                    f"Discovered catalog '{name}'",
                    catalog=name,
                    kind=kind.value,
                    vendor_type=vendor_type,
                )

            catalog.last_seen = _later(catalog.last_seen, timestamp)
            if count:
                catalog.total_queries += 1
            return catalog.kind

    def upsert_schema(self, catalog_name: str, schema_name: str, timestamp: datetime, count: bool = True) -> bool:
        """Create-if-absent a schema under a relational/unknown catalog and bump it.

        Returns:
            False when the catalog is missing or is a document catalog
        """
        with self._editing(catalog_name) as catalog:
            schema = self._schema(catalog, schema_name, timestamp, create=True)
            if schema is None:
                return False
            schema.last_seen = _later(schema.last_seen, timestamp)
            if count:
                schema.total_queries += 1
            return True

    def upsert_table(
        self,
        catalog_name: str,
        schema_name: str,
        table_name: str,
        timestamp: datetime,
        count: bool = True,
    ) -> bool:
        """Create-if-absent a table inside an existing schema and bump it."""
        with self._editing(catalog_name) as catalog:
            schema = self._schema(catalog, schema_name, timestamp, create=False)
            if schema is None:
                return False
            table = schema.get_table(table_name)
            if table is None:
                table = Table(name=table_name, first_seen=timestamp, last_seen=timestamp)
                schema.tables.append(table)
                logger.info(
                    f"Created table '{table_name}' in schema '{schema_name}'",
                    catalog=catalog_name,
                    schema=schema_name,
                    table=table_name,
                )
            table.last_seen = _later(table.last_seen, timestamp)
            if count:
                table.total_queries += 1
            return True

    def merge_columns(
        self,
        catalog_name: str,
        schema_name: str,
        table_name: str,
        columns: Iterable[ColumnSpec],
    ) -> int:
        """Add columns not yet known on a table; existing column types are kept.

        Unnamed columns are ignored.

        Returns:
            Number of columns added
        """
        with self._editing(catalog_name) as catalog:
            schema = self._schema(catalog, schema_name, None, create=False)
            table = schema.get_table(table_name) if schema is not None else None
            if table is None:
                return 0
            known = {column.name for column in table.columns}
            added = 0
            for column_name, column_type in columns:
                if not column_name or column_name in known:
                    continue
                table.columns.append(Column(name=column_name, type=column_type))
                known.add(column_name)
                added += 1
            return added

    def upsert_collection(self, catalog_name: str, collection_name: str, timestamp: datetime, count: bool = True) -> bool:
        """Create-if-absent a collection under a document catalog and bump it."""
        with self._editing(catalog_name) as catalog:
            if catalog is None or not isinstance(catalog.contents, DocumentContents):
                return False
            collection = catalog.get_collection(collection_name)
            if collection is None:
                collection = Collection(name=collection_name, first_seen=timestamp, last_seen=timestamp)
                catalog.contents.collections.append(collection)
                logger.info(
                    f"Created collection '{collection_name}'",
                    catalog=catalog_name,
                    collection=collection_name,
                )
            collection.last_seen = _later(collection.last_seen, timestamp)
            if count:
                collection.total_queries += 1
            return True

    def merge_fields(self, catalog_name: str, collection_name: str, fields: Iterable[ColumnSpec]) -> int:
        """Add fields not yet known on a collection; existing field types are kept."""
        with self._editing(catalog_name) as catalog:
            collection = catalog.get_collection(collection_name) if catalog is not None else None
            if collection is None:
                return 0
            known = {field.name for field in collection.fields}
            added = 0
            for field_name, field_type in fields:
                if not field_name or field_name in known:
                    continue
                collection.fields.append(
                    CollectionField(
                        name=field_name,
                        type=field_type,
                        nested=CollectionField.is_nested_type(field_type),
                    )
                )
                known.add(field_name)
                added += 1
            return added

    def add(self, catalog: Catalog) -> None:
        """Insert or replace a catalog record wholesale."""
        with self._lock_for(catalog.id):
            self._catalogs[catalog.id] = catalog.model_copy(deep=True)
        logger.info(f'Added catalog: {catalog.id}', catalog=catalog.id)

    def remove(self, name: str) -> bool:
        """Remove a catalog. Returns True if it existed."""
        with self._lock_for(name):
            removed = self._catalogs.pop(name, None) is not None
        if removed:
            logger.info(f'Removed catalog: {name}', catalog=name)
        return removed

    # ------------------------------------------------------------------
    # Reads (snapshots; safe to hand to callers)
    # ------------------------------------------------------------------

    def get(self, name: str) -> Catalog | None:
        """Deep copy of one catalog, or None."""
        with self._lock_for(name):
            catalog = self._catalogs.get(name)
            return catalog.model_copy(deep=True) if catalog is not None else None

    def names(self) -> list[str]:
        with self._registry_lock:
            return list(self._catalogs.keys())

    def list_catalogs(self) -> list[Catalog]:
        """Deep copies of every catalog, in discovery order."""
        snapshots = []
        for name in self.names():
            catalog = self.get(name)
            if catalog is not None:
                snapshots.append(catalog)
        return snapshots

    def exists(self, name: str) -> bool:
        return name in self._catalogs

    def count(self) -> int:
        return len(self._catalogs)

    def query_counts(self) -> dict[str, int]:
        """Total queries per catalog name."""
        return {catalog.id: catalog.total_queries for catalog in self.list_catalogs()}

    def clear(self) -> None:
        """Drop every catalog (tests and replays)."""
        with self._registry_lock:
            self._catalogs.clear()
            self._locks.clear()

    # ------------------------------------------------------------------

    @staticmethod
    def _schema(catalog: Catalog | None, schema_name: str, timestamp: datetime | None, create: bool) -> Schema | None:
        """Find (or create, when allowed) a schema. Callers hold the catalog lock."""
        if catalog is None or isinstance(catalog.contents, DocumentContents):
            return None
        schema = catalog.get_schema(schema_name)
        if schema is None and create:
            schema = Schema(name=schema_name, first_seen=timestamp, last_seen=timestamp)
            catalog.contents.schemas.append(schema)
            logger.info(
                f"Created schema '{schema_name}'",
                catalog=catalog.id,
                schema=schema_name,
            )
        return schema


def _later(current: datetime | None, candidate: datetime) -> datetime:
    """Last-seen only moves forward, events may arrive out of order."""
    if current is None or candidate > current:
        return candidate
    return current
