"""Shared test fixtures and utilities for all tests.

This conftest.py provides reusable fixtures that can be used across
unit, contract, and integration tests: fresh core services and an app
with its own registry and event store. Event builders live in
tests/helpers.py.
"""

import sys
from pathlib import Path

# Ensure the project root is first in sys.path so `scripts` and `tests` are importable
project_root = str(Path(__file__).parent.parent.absolute())
if project_root not in sys.path:
    sys.path.insert(0, project_root)
elif sys.path[0] != project_root:
    sys.path.remove(project_root)
    sys.path.insert(0, project_root)

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from querylens.app import create_app
from querylens.lib.config import Settings
from querylens.lib.notifications import ViewPublisher
from querylens.services.catalog_discovery import CatalogDiscoveryService
from querylens.services.catalog_projection import CatalogProjectionService
from querylens.services.catalog_registry import CatalogRegistry
from querylens.services.query_event_service import QueryEventService, QueryEventStore
from querylens.services.query_plan_parser import QueryPlanParser


# ============================================================================
# Core Service Fixtures
# ============================================================================

@pytest.fixture
def registry():
    return CatalogRegistry()


@pytest.fixture
def discovery(registry):
    return CatalogDiscoveryService(registry)


@pytest.fixture
def parser():
    return QueryPlanParser()


@pytest.fixture
def publisher():
    return ViewPublisher()


@pytest.fixture
def event_service(discovery, parser, publisher):
    return QueryEventService(QueryEventStore(), discovery, parser, publisher)


@pytest.fixture
def projection(registry):
    return CatalogProjectionService(registry, ttl_seconds=300)


# ============================================================================
# FastAPI Application Fixtures
# ============================================================================

@pytest.fixture
def settings():
    """Settings with the catalog cache disabled so reads see every ingest."""
    return Settings(catalog_cache_ttl_seconds=0)


@pytest.fixture
def app(settings):
    """Fresh app per test; services are not shared between tests."""
    return create_app(settings)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def correlation_id():
    return str(uuid4())
