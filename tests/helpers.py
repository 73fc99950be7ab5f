"""Event and message builders shared by unit, contract and integration tests."""

import json
from datetime import datetime, timedelta, timezone

from querylens.models.query_event import QueryEvent

BASE_TIME = datetime(2025, 10, 19, 10, 15, 0, tzinfo=timezone.utc)


def make_event(query_id: str | None = 'q1', seconds: float = 0, **fields) -> QueryEvent:
    """Build a QueryEvent at BASE_TIME + seconds."""
    fields.setdefault('event_type', 'CREATED')
    return QueryEvent(query_id=query_id, timestamp=BASE_TIME + timedelta(seconds=seconds), **fields)


def table_scan_plan(table: str = 'postgres:public.customers') -> str:
    """Single-fragment JSON plan with one TableScan node."""
    return json.dumps({
        '0': {
            'id': '0',
            'name': 'TableScan',
            'descriptor': {'table': table},
            'outputs': [{'name': 'id', 'type': 'bigint'}],
            'details': [],
            'estimates': [{'outputRowCount': 1000, 'outputSizeInBytes': 'NaN', 'cpuCost': 0, 'memoryCost': 0, 'networkCost': 0}],
            'children': []
        }
    })


def trino_message(
    query_id: str = '20251019_101500_00042_xk3fq',
    state: str = 'FINISHED',
    inputs: list[dict] | None = None,
    **metadata
) -> dict:
    """Raw Trino event-listener message as published to the topic."""
    return {
        'eventPayload': {
            'metadata': {'queryId': query_id, 'queryState': state, 'query': 'SELECT 1', **metadata},
            'context': {'user': 'analyst'},
            'createTime': '2025-10-19T10:15:00.000Z',
            'endTime': '2025-10-19T10:15:02.000Z',
            'statistics': {'cpuTime': '1.5s', 'wallTime': '2.25s', 'queuedTime': '12.5ms', 'totalRows': 1000},
            'ioMetadata': {'inputs': inputs or []},
        }
    }
