"""Integration test fixtures.

Integration tests drive the whole pipeline (wire message -> ingestion ->
discovery -> views) through the API or the wired-up services, with no
mocks in between.
"""

import json

import pytest

from querylens.lib.config import Settings
from querylens.lib.dependencies import build_services
from tests.helpers import trino_message


@pytest.fixture
def services():
  """Fully wired services, as the app builds them at startup."""
  return build_services(Settings(catalog_cache_ttl_seconds=0))


@pytest.fixture
def lifecycle_messages():
  """QUEUED -> RUNNING -> FINISHED messages for one query reading two catalogs."""
  inputs = [
    {
      'catalogName': 'postgres_main',
      'schema': 'public',
      'table': 'orders',
      'columns': [{'name': 'id', 'type': 'bigint'}, {'name': 'total', 'type': 'decimal(10,2)'}],
    },
    {'catalogName': 'mongodb', 'schema': 'shop', 'table': 'carts'},
  ]
  plan = {
    '0': {
      'id': '0',
      'name': 'Output',
      'descriptor': {'columnNames': '[id, total]'},
      'children': [{
        'id': '12',
        'name': 'InnerJoin',
        'descriptor': {'criteria': '(id = cart_id)'},
        'children': [
          {'id': '3', 'name': 'TableScan', 'descriptor': {'table': 'postgres_main:public.orders'}, 'children': []},
          {'id': '4', 'name': 'RemoteSource', 'descriptor': {'sourceFragmentIds': '[1]'}, 'children': []},
        ],
      }],
    },
    '1': {
      'id': '9',
      'name': 'TableScan',
      'descriptor': {'table': 'mongodb:shop.carts'},
      'children': [],
    },
  }

  return [
    trino_message(state='QUEUED', inputs=inputs),
    trino_message(state='RUNNING', inputs=inputs),
    trino_message(state='FINISHED', inputs=inputs, jsonPlan=json.dumps(plan)),
  ]
