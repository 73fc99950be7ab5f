"""Integration tests for catalog discovery across event sources.

Each scenario ingests events through the wired-up QueryEventService and
checks what the registry and the catalog projection end up holding.
"""

import pytest

from querylens.models.catalog import CatalogKind
from tests.helpers import make_event

pytestmark = pytest.mark.integration


class TestClassification:

    def test_postgres_main_is_relational_postgresql(self, services):
        services.query_events.ingest(
            make_event(catalog='postgres_main', schema_name='public', table_name='orders')
        )

        catalog = services.catalogs.get_catalog('postgres_main')
        assert catalog.kind == CatalogKind.RELATIONAL
        assert catalog.type == 'postgresql'
        assert [t.name for t in catalog.get_schema('public').tables] == ['orders']

    def test_unrecognized_catalog_keeps_its_name_as_type(self, services):
        services.query_events.ingest(make_event(catalog='tpch', schema_name='sf1', table_name='lineitem'))

        catalog = services.catalogs.get_catalog('tpch')
        assert catalog.kind == CatalogKind.UNKNOWN
        assert catalog.type == 'tpch'
        assert [s.name for s in catalog.schemas] == ['sf1']


class TestMongoCollections:

    def test_table_becomes_collection(self, services):
        services.query_events.ingest(make_event(catalog='mongo_prod', schema_name='shop', table_name='carts'))

        assert [c.name for c in services.catalogs.get_collections('mongo_prod')] == ['carts']
        assert services.catalogs.get_schemas('mongo_prod') == []

    def test_database_stands_in_for_missing_collection(self, services):
        services.query_events.ingest(make_event(catalog='mongodb', schema_name='analytics'))

        assert [c.name for c in services.catalogs.get_collections('mongodb')] == ['analytics']

    def test_system_database_ignored(self, services):
        services.query_events.ingest(make_event(catalog='mongodb', schema_name='admin'))

        assert services.catalogs.get_collections('mongodb') == []

    def test_fields_from_inputs(self, services):
        services.query_events.ingest(make_event(
            catalog='mongodb',
            metadata={'inputs': [{
                'catalogName': 'mongodb',
                'schema': 'shop',
                'table': 'carts',
                'columns': [{'name': 'items', 'type': 'array(row(sku varchar))'}, {'name': 'owner', 'type': 'varchar'}],
            }]},
        ))

        collection = services.catalogs.get_collections('mongodb')[0]
        assert [(f.name, f.nested) for f in collection.fields] == [('items', True), ('owner', False)]


class TestSystemObjects:

    def test_system_schema_skipped(self, services):
        services.query_events.ingest(
            make_event(catalog='postgres', schema_name='information_schema', table_name='tables')
        )

        assert services.catalogs.get_schemas('postgres') == []

    def test_system_table_skipped(self, services):
        services.query_events.ingest(make_event(catalog='postgres', schema_name='public', table_name='pg_stat'))

        assert services.catalogs.get_tables('postgres', 'public') == []


class TestPlanText:

    def test_table_lines(self, services):
        plan = '\n'.join([
            'Fragment 1 [SOURCE]',
            '    TABLE: hive:sales.transactions',
            '    JOIN mysql_crm.crm.accounts',
        ])
        services.query_events.ingest(make_event(plan=plan))

        assert [t.name for t in services.catalogs.get_tables('hive', 'sales')] == ['transactions']
        assert services.catalogs.get_catalog('mysql_crm').type == 'mysql'
        assert [t.name for t in services.catalogs.get_tables('mysql_crm', 'crm')] == ['accounts']
