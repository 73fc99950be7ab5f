"""Contract Tests: Event Ingestion Endpoints

POST /api/events and POST /api/events/trino response shapes.
"""

from tests.helpers import make_event, trino_message


class TestIngestDecodedEvent:

    def test_accepted(self, client):
        response = client.post('/api/events', json={
            'queryId': 'q1',
            'eventType': 'CREATED',
            'timestamp': '2025-10-19T10:15:00Z',
            'catalog': 'postgres',
            'schema': 'public',
            'tableName': 'orders',
        })

        assert response.status_code == 202
        assert response.json() == {'accepted': True, 'queryId': 'q1'}

    def test_missing_query_id_not_accepted(self, client):
        response = client.post('/api/events', json={'eventType': 'CREATED', 'catalog': 'postgres'})

        assert response.status_code == 202
        assert response.json() == {'accepted': False, 'queryId': None}
        assert client.get('/api/queries/ids').json() == []
        assert client.get('/api/databases').json() == []

    def test_unknown_fields_ignored(self, client):
        payload = make_event().model_dump(by_alias=True, mode='json')
        payload['somethingNew'] = {'nested': True}

        response = client.post('/api/events', json=payload)

        assert response.status_code == 202

    def test_wrong_types_rejected(self, client):
        response = client.post('/api/events', json={'queryId': 'q1', 'totalRows': 'many'})

        assert response.status_code == 422


class TestIngestTrinoMessage:

    def test_accepted(self, client):
        response = client.post('/api/events/trino', json=trino_message(
            inputs=[{'catalogName': 'postgres', 'schema': 'public', 'table': 'customers'}]
        ))

        assert response.status_code == 202
        assert response.json() == {'accepted': True, 'queryId': '20251019_101500_00042_xk3fq'}

    def test_without_metadata_not_accepted(self, client):
        response = client.post('/api/events/trino', json={'eventPayload': {'context': {'user': 'x'}}})

        assert response.status_code == 202
        assert response.json()['accepted'] is False


class TestQueryUpdatesWebSocket:

    def test_receives_view_after_ingest(self, client):
        with client.websocket_connect('/ws/query-updates') as websocket:
            client.post('/api/events', json=make_event(query_id='ws-1', state='RUNNING').model_dump(by_alias=True, mode='json'))
            view = websocket.receive_json()

        assert view['queryId'] == 'ws-1'
        assert view['state'] == 'RUNNING'
        assert len(view['events']) == 1

    def test_rejected_event_not_published(self, client):
        with client.websocket_connect('/ws/query-updates') as websocket:
            client.post('/api/events', json={'eventType': 'CREATED'})
            client.post('/api/events', json=make_event(query_id='ws-2').model_dump(by_alias=True, mode='json'))
            view = websocket.receive_json()

        assert view['queryId'] == 'ws-2'
