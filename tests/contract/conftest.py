"""Shared test fixtures and utilities for contract tests.

Note: Common fixtures are defined in tests/conftest.py and are
automatically available to all contract tests.
"""

# Contract tests can use fixtures from tests/conftest.py:
# - app, client (fresh services per test, catalog cache disabled)
# - settings
# - correlation_id
#
# Request bodies are built with tests/helpers.py:
# - make_event(...).model_dump(by_alias=True, mode='json')
# - trino_message(...)
