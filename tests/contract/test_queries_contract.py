"""Contract Tests: Query Endpoints

GET /api/queries* response shapes and error bodies.
"""

import pytest

from tests.helpers import make_event, table_scan_plan


def _post(client, event):
    response = client.post('/api/events', json=event.model_dump(by_alias=True, mode='json'))
    assert response.status_code == 202


@pytest.fixture
def ingested(client):
    _post(client, make_event(query_id='q1', state='QUEUED', catalog='postgres', schema_name='public', table_name='orders'))
    _post(client, make_event(query_id='q1', seconds=2, event_type='COMPLETED', state='FINISHED',
                             execution_time=1830, json_plan=table_scan_plan()))
    _post(client, make_event(query_id='q2', catalog='mongodb', schema_name='shop'))
    return client


class TestListQueries:

    def test_list_views(self, ingested):
        response = ingested.get('/api/queries')

        assert response.status_code == 200
        views = {view['queryId']: view for view in response.json()}
        assert set(views) == {'q1', 'q2'}
        q1 = views['q1']
        for key in ('query', 'user', 'state', 'startTime', 'endTime', 'totalExecutionTime', 'errorMessage', 'root', 'events'):
            assert key in q1
        assert q1['state'] == 'FINISHED'
        assert q1['totalExecutionTime'] == 1830
        assert len(q1['events']) == 2

    def test_filter_by_catalog(self, ingested):
        response = ingested.get('/api/queries', params={'catalog': 'mongodb'})

        assert [view['queryId'] for view in response.json()] == ['q2']

    def test_filter_by_table(self, ingested):
        response = ingested.get('/api/queries', params={'table': 'postgres.public.orders'})

        assert [view['queryId'] for view in response.json()] == ['q1']

    def test_ids(self, ingested):
        assert sorted(ingested.get('/api/queries/ids').json()) == ['q1', 'q2']


class TestGetQuery:

    def test_view_with_tree(self, ingested):
        response = ingested.get('/api/queries/q1')

        assert response.status_code == 200
        view = response.json()
        assert view['queryId'] == 'q1'
        root = view['root']
        assert root['id'] == '0'
        assert root['operatorType'] == 'TableScan'
        assert root['nodeType'] == 'OPERATOR'
        assert root['queryId'] == 'q1'
        assert root['metadata']['table'] == 'postgres:public.customers'
        assert root['metadata']['estimates']['outputSizeInBytes'] == 'NaN'
        assert root['children'] == []
        assert view['events'][0]['schema'] == 'public'
        assert view['events'][0]['tableName'] == 'orders'

    def test_not_found(self, client):
        response = client.get('/api/queries/unknown')

        assert response.status_code == 404
        assert response.json()['detail']['error_code'] == 'QUERY_NOT_FOUND'
        assert 'unknown' in response.json()['detail']['message']

    def test_operators(self, ingested):
        response = ingested.get('/api/queries/q1/operators')

        assert response.status_code == 200
        assert response.json() == {'queryId': 'q1', 'operators': ['TableScan']}

    def test_operators_not_found(self, client):
        response = client.get('/api/queries/unknown/operators')

        assert response.status_code == 404
        assert response.json()['detail']['error_code'] == 'QUERY_NOT_FOUND'


class TestSummary:

    def test_summary_shape(self, ingested):
        response = ingested.get('/api/queries/summary')

        assert response.status_code == 200
        assert response.json() == {
            'catalogs': ['mongodb', 'postgres'],
            'schemas': ['mongodb.shop', 'postgres.public'],
            'tables': ['postgres.public.orders'],
            'totalQueries': 2,
            'catalogQueryCounts': {'mongodb': 1, 'postgres': 1},
        }
