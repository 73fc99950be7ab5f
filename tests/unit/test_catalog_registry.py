"""Unit tests for the in-memory catalog registry."""

import threading
from datetime import timedelta

from querylens.models.catalog import Catalog, CatalogKind, RelationalContents
from querylens.services.catalog_discovery import classify_catalog
from tests.helpers import BASE_TIME


def _relational(name):
    return CatalogKind.RELATIONAL, 'postgresql'


def _document(name):
    return CatalogKind.DOCUMENT, 'mongodb'


class TestTouchCatalog:

    def test_creates_once_with_classifier(self, registry):
        calls = []

        def classify(name):
            calls.append(name)
            return classify_catalog(name)

        registry.touch_catalog('postgres', BASE_TIME, classify)
        registry.touch_catalog('postgres', BASE_TIME, classify)

        assert calls == ['postgres']
        assert registry.get('postgres').total_queries == 2

    def test_count_false_only_updates_last_seen(self, registry):
        registry.touch_catalog('pg', BASE_TIME, _relational)
        registry.touch_catalog('pg', BASE_TIME + timedelta(seconds=5), _relational, count=False)

        catalog = registry.get('pg')
        assert catalog.total_queries == 1
        assert catalog.last_seen == BASE_TIME + timedelta(seconds=5)

    def test_last_seen_never_moves_back(self, registry):
        registry.touch_catalog('pg', BASE_TIME + timedelta(seconds=10), _relational)
        registry.touch_catalog('pg', BASE_TIME, _relational)

        catalog = registry.get('pg')
        assert catalog.last_seen == BASE_TIME + timedelta(seconds=10)
        assert catalog.first_seen == BASE_TIME + timedelta(seconds=10)

    def test_returns_existing_kind(self, registry):
        registry.touch_catalog('c', BASE_TIME, _document)

        assert registry.touch_catalog('c', BASE_TIME, _relational) == CatalogKind.DOCUMENT


class TestHierarchy:

    def test_schema_rejected_on_document_catalog(self, registry):
        registry.touch_catalog('mongo', BASE_TIME, _document)

        assert registry.upsert_schema('mongo', 'db', BASE_TIME) is False
        assert registry.get('mongo').schemas == []

    def test_collection_rejected_on_relational_catalog(self, registry):
        registry.touch_catalog('pg', BASE_TIME, _relational)

        assert registry.upsert_collection('pg', 'things', BASE_TIME) is False
        assert registry.get('pg').collections == []

    def test_table_requires_schema(self, registry):
        registry.touch_catalog('pg', BASE_TIME, _relational)

        assert registry.upsert_table('pg', 'public', 'orders', BASE_TIME) is False
        registry.upsert_schema('pg', 'public', BASE_TIME)
        assert registry.upsert_table('pg', 'public', 'orders', BASE_TIME) is True

    def test_unknown_catalog_writes_are_noops(self, registry):
        assert registry.upsert_schema('nope', 's', BASE_TIME) is False
        assert registry.upsert_collection('nope', 'c', BASE_TIME) is False
        assert registry.merge_columns('nope', 's', 't', [('a', 'int')]) == 0
        assert registry.merge_fields('nope', 'c', [('a', 'int')]) == 0

    def test_merge_columns_first_type_wins(self, registry):
        registry.touch_catalog('pg', BASE_TIME, _relational)
        registry.upsert_schema('pg', 'public', BASE_TIME)
        registry.upsert_table('pg', 'public', 't', BASE_TIME)

        assert registry.merge_columns('pg', 'public', 't', [('a', 'int'), ('b', None)]) == 2
        assert registry.merge_columns('pg', 'public', 't', [('a', 'bigint'), ('c', 'text')]) == 1

        table = registry.get('pg').get_schema('public').get_table('t')
        assert [(c.name, c.type) for c in table.columns] == [('a', 'int'), ('b', None), ('c', 'text')]

    def test_unnamed_columns_and_fields_ignored(self, registry):
        registry.touch_catalog('pg', BASE_TIME, _relational)
        registry.upsert_schema('pg', 'public', BASE_TIME)
        registry.upsert_table('pg', 'public', 't', BASE_TIME)
        registry.touch_catalog('mongo', BASE_TIME, _document)
        registry.upsert_collection('mongo', 'c', BASE_TIME)

        assert registry.merge_columns('pg', 'public', 't', [('', 'int'), ('a', 'int')]) == 1
        assert registry.merge_fields('mongo', 'c', [('', 'string')]) == 0

        assert [c.name for c in registry.get('pg').get_schema('public').get_table('t').columns] == ['a']
        assert registry.get('mongo').get_collection('c').fields == []

    def test_names_are_case_sensitive(self, registry):
        registry.touch_catalog('Postgres', BASE_TIME, _relational)
        registry.touch_catalog('postgres', BASE_TIME, _relational)

        assert sorted(registry.names()) == ['Postgres', 'postgres']


class TestSnapshots:

    def test_get_returns_copy(self, registry):
        registry.touch_catalog('pg', BASE_TIME, _relational)
        registry.upsert_schema('pg', 'public', BASE_TIME)

        snapshot = registry.get('pg')
        snapshot.schemas.clear()
        snapshot.total_queries = 99

        assert registry.get('pg').total_queries == 1
        assert len(registry.get('pg').schemas) == 1

    def test_list_catalogs_in_discovery_order(self, registry):
        for name in ['b', 'a', 'c']:
            registry.touch_catalog(name, BASE_TIME, _relational)

        assert [c.id for c in registry.list_catalogs()] == ['b', 'a', 'c']
        assert registry.query_counts() == {'b': 1, 'a': 1, 'c': 1}
        assert registry.count() == 3

    def test_add_and_remove(self, registry):
        catalog = Catalog(
            id='manual',
            name='manual',
            kind=CatalogKind.RELATIONAL,
            type='postgresql',
            contents=RelationalContents(),
        )

        registry.add(catalog)

        assert registry.exists('manual')
        assert registry.remove('manual') is True
        assert registry.remove('manual') is False
        assert registry.get('manual') is None

    def test_clear(self, registry):
        registry.touch_catalog('pg', BASE_TIME, _relational)

        registry.clear()

        assert registry.count() == 0


def test_concurrent_touches_count_exactly(registry):
    """N concurrent references to one catalog raise its counter by exactly N."""
    threads_count = 16
    per_thread = 250
    barrier = threading.Barrier(threads_count)

    def worker():
        barrier.wait()
        for _ in range(per_thread):
            registry.touch_catalog('postgres', BASE_TIME, classify_catalog)
            registry.upsert_schema('postgres', 'public', BASE_TIME)

    threads = [threading.Thread(target=worker) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    catalog = registry.get('postgres')
    assert catalog.total_queries == threads_count * per_thread
    assert catalog.get_schema('public').total_queries == threads_count * per_thread
    assert len(catalog.schemas) == 1
