"""Catalog Discovery Service

Extracts catalog references from a query event and applies them to the
catalog registry.

An event can name catalogs in four places, each read independently:
1. the primary catalog/schema/table fields
2. the `inputs` list inside the free-form `metadata` map
3. the structured input metadata carried from the wire message
4. the human-readable plan text (FROM / JOIN / TABLE: lines)

A source with the wrong shape is skipped for that event and the others
still apply. A catalog named by several sources of one event is counted
once for that event.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from querylens.lib.errors import InvalidReferenceError
from querylens.lib.metrics import record_catalog_reference, record_discovery_source_error
from querylens.lib.structured_logger import StructuredLogger
from querylens.models.catalog import CatalogKind
from querylens.models.query_event import QueryEvent
from querylens.services.catalog_registry import CatalogRegistry, ColumnSpec

logger = StructuredLogger(__name__)

# Ordered: first matching keyword wins
VENDOR_KEYWORDS: tuple[tuple[str, CatalogKind, str], ...] = (
    ('postgres', CatalogKind.RELATIONAL, 'postgresql'),
    ('mysql', CatalogKind.RELATIONAL, 'mysql'),
    ('mongo', CatalogKind.DOCUMENT, 'mongodb'),
    ('cassandra', CatalogKind.RELATIONAL, 'cassandra'),
    ('redis', CatalogKind.RELATIONAL, 'redis'),
    ('elastic', CatalogKind.RELATIONAL, 'elasticsearch'),
    ('hive', CatalogKind.RELATIONAL, 'hive'),
    ('kafka', CatalogKind.RELATIONAL, 'kafka'),
    ('s3', CatalogKind.RELATIONAL, 's3'),
    ('minio', CatalogKind.RELATIONAL, 's3'),
)

MONGO_SYSTEM_DATABASES = {'admin', 'local', 'config'}
SYSTEM_SCHEMAS = {'information_schema', 'pg_catalog', 'sys'}
SYSTEM_SCHEMA_PREFIXES = ('pg_', 'mysql_', 'performance_')
SYSTEM_TABLE_PREFIXES = ('pg_', 'information_', 'sys_', 'mysql_')

PLAN_MARKERS = ('FROM ', 'JOIN ', 'TABLE: ')
MIN_PLAN_LINE_LENGTH = 5
_PLAN_TOKEN_SPLIT = re.compile(r'[:.]')


@dataclass
class CatalogReference:
    """One catalog (and optionally schema/table/columns) named by an event."""
    catalog: str
    schema: str | None = None
    table: str | None = None
    columns: list[ColumnSpec] = field(default_factory=list)


def classify_catalog(name: str) -> tuple[CatalogKind, str]:
    """Infer (kind, vendor type) from a catalog name by keyword substring."""
    lowered = name.lower()
    for keyword, kind, vendor_type in VENDOR_KEYWORDS:
        if keyword in lowered:
            return kind, vendor_type
    return CatalogKind.UNKNOWN, name


def is_mongo_system_database(name: str) -> bool:
    lowered = name.lower()
    return lowered in MONGO_SYSTEM_DATABASES or lowered.startswith('system')


def is_system_schema(name: str) -> bool:
    """True for engine-internal namespaces. `public` is never a system schema."""
    if name == 'public':
        return False
    lowered = name.lower()
    return lowered in SYSTEM_SCHEMAS or lowered.startswith(SYSTEM_SCHEMA_PREFIXES)


def is_system_table(name: str) -> bool:
    return name.lower().startswith(SYSTEM_TABLE_PREFIXES)


class _EventCounts:
    """Entities already counted for the event being recorded."""

    def __init__(self):
        self.catalogs: set[str] = set()
        self.schemas: set[tuple[str, str]] = set()
        self.tables: set[tuple[str, str, str]] = set()
        self.collections: set[tuple[str, str]] = set()

    @staticmethod
    def first(seen: set, key) -> bool:
        if key in seen:
            return False
        seen.add(key)
        return True


class CatalogDiscoveryService:
    """Applies the catalog references found in events to a registry."""

    def __init__(self, registry: CatalogRegistry):
        self.registry = registry
        self._sources: tuple[tuple[str, Callable[[QueryEvent], Iterator[CatalogReference]]], ...] = (
            ('primary', self._primary_references),
            ('metadata_inputs', self._metadata_references),
            ('io_metadata', self._io_metadata_references),
            ('plan_text', self._plan_text_references),
        )

    def record_references(self, event: QueryEvent) -> int:
        """Record every catalog reference found in the event.

        Args:
            event: Ingested query event

        Returns:
            Number of references applied
        """
        timestamp = event.timestamp or datetime.now(timezone.utc)
        counts = _EventCounts()
        applied = 0

        for source, extract in self._sources:
            try:
                references = list(extract(event))
            except InvalidReferenceError as e:
                record_discovery_source_error(source)
                logger.warning(
                    f'Skipping malformed {source} references: {str(e)}',
                    source=source,
                )
                continue

            for reference in references:
                self._apply(reference, timestamp, counts)
                record_catalog_reference(source)
                applied += 1

        return applied

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    @staticmethod
    def _primary_references(event: QueryEvent) -> Iterator[CatalogReference]:
        if event.catalog:
            yield CatalogReference(
                catalog=event.catalog,
                schema=event.schema_name or None,
                table=event.table_name or None,
            )

    def _metadata_references(self, event: QueryEvent) -> Iterator[CatalogReference]:
        if event.metadata and 'inputs' in event.metadata:
            yield from self._input_list_references(event.metadata['inputs'])

    def _io_metadata_references(self, event: QueryEvent) -> Iterator[CatalogReference]:
        """Structured wire inputs; events posted without them may carry the same list under `inputs`."""
        if event.io_metadata is not None:
            if not isinstance(event.io_metadata, dict):
                raise InvalidReferenceError(f'io metadata must be an object, got {type(event.io_metadata).__name__}')
            yield from self._input_list_references(event.io_metadata.get('inputs'))
        elif event.inputs and 'inputs' in event.inputs:
            yield from self._input_list_references(event.inputs['inputs'])

    @staticmethod
    def _plan_text_references(event: QueryEvent) -> Iterator[CatalogReference]:
        if not event.plan:
            return
        for line in event.plan.split('\n'):
            if len(line) < MIN_PLAN_LINE_LENGTH:
                continue
            for marker in PLAN_MARKERS:
                index = line.find(marker)
                if index < 0:
                    continue
                tokens = _split_plan_tokens(line[index + len(marker):])
                if len(tokens) < 2 or not tokens[0]:
                    continue
                yield CatalogReference(
                    catalog=tokens[0],
                    schema=tokens[1] or None,
                    table=(tokens[2] or None) if len(tokens) > 2 else None,
                )

    def _input_list_references(self, inputs: Any) -> Iterator[CatalogReference]:
        if inputs is None:
            return
        if not isinstance(inputs, list):
            raise InvalidReferenceError(f'inputs must be a list, got {type(inputs).__name__}')
        for item in inputs:
            if not isinstance(item, dict):
                raise InvalidReferenceError(f'input entry must be an object, got {type(item).__name__}')
            catalog = _string_value(item, 'catalogName', 'connectorName')
            if not catalog:
                continue
            yield CatalogReference(
                catalog=catalog,
                schema=_string_value(item, 'schema') or None,
                table=_string_value(item, 'table') or None,
                columns=_column_specs(item.get('columns')),
            )

    # ------------------------------------------------------------------

    def _apply(self, reference: CatalogReference, timestamp: datetime, counts: _EventCounts) -> None:
        catalog = reference.catalog
        kind = self.registry.touch_catalog(
            catalog,
            timestamp,
            classify_catalog,
            count=counts.first(counts.catalogs, catalog),
        )

        if kind == CatalogKind.DOCUMENT:
            self._apply_document(reference, timestamp, counts)
        else:
            self._apply_relational(reference, timestamp, counts)

    def _apply_document(self, reference: CatalogReference, timestamp: datetime, counts: _EventCounts) -> None:
        catalog = reference.catalog
        collection = reference.table
        if collection is None and reference.schema and not is_mongo_system_database(reference.schema):
            collection = reference.schema
        if collection is None:
            return

        self.registry.upsert_collection(
            catalog,
            collection,
            timestamp,
            count=counts.first(counts.collections, (catalog, collection)),
        )
        if reference.columns:
            self.registry.merge_fields(catalog, collection, reference.columns)

    def _apply_relational(self, reference: CatalogReference, timestamp: datetime, counts: _EventCounts) -> None:
        catalog, schema, table = reference.catalog, reference.schema, reference.table
        # Tables only exist inside a schema
        if schema is None:
            return
        if is_system_schema(schema):
            logger.debug(f"Skipping system schema '{schema}'", catalog=catalog, schema=schema)
            return

        self.registry.upsert_schema(
            catalog,
            schema,
            timestamp,
            count=counts.first(counts.schemas, (catalog, schema)),
        )

        if table is None:
            return
        if is_system_table(table):
            logger.debug(f"Skipping system table '{table}'", catalog=catalog, table=table)
            return

        self.registry.upsert_table(
            catalog,
            schema,
            table,
            timestamp,
            count=counts.first(counts.tables, (catalog, schema, table)),
        )
        if reference.columns:
            self.registry.merge_columns(catalog, schema, table, reference.columns)


def _string_value(item: dict[str, Any], *keys: str) -> str | None:
    """First value among `keys` that is a string; other types are ignored."""
    for key in keys:
        value = item.get(key)
        if isinstance(value, str):
            return value
    return None


def _column_specs(columns: Any) -> list[ColumnSpec]:
    """Column definitions as (name, type) pairs.

    Accepts a list of `{name|column, type}` objects or a `{name: type}` map.
    Entries with a missing or empty name are skipped.
    """
    if columns is None:
        return []
    specs: list[ColumnSpec] = []
    if isinstance(columns, list):
        for column in columns:
            if not isinstance(column, dict):
                raise InvalidReferenceError(f'column entry must be an object, got {type(column).__name__}')
            name = column.get('name') if column.get('name') is not None else column.get('column')
            column_type = column.get('type')
            _append_spec(specs, name, column_type)
        return specs
    if isinstance(columns, dict):
        for name, column_type in columns.items():
            _append_spec(specs, name, column_type)
        return specs
    raise InvalidReferenceError(f'columns must be a list or an object, got {type(columns).__name__}')


def _append_spec(specs: list[ColumnSpec], name: Any, column_type: Any) -> None:
    if name is None or str(name) == '':
        return
    specs.append((str(name), str(column_type) if column_type is not None else None))


def _split_plan_tokens(text: str) -> list[str]:
    """Split `catalog:schema.table` style text; trailing empty tokens are dropped."""
    tokens = _PLAN_TOKEN_SPLIT.split(text)
    while tokens and tokens[-1] == '':
        tokens.pop()
    return [token.strip() for token in tokens]
