"""
Global pytest configuration and fixtures for the sforce test suite.

Fixtures defined here and in tests/fixtures are available to all test
modules without explicit import.
"""

import os
import sys
from pathlib import Path
from typing import Dict, Generator

import pytest  # type: ignore
from faker import Faker  # type: ignore

# Add the project root to Python path
project_root: Path = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tests.fixtures.salesforce_fixtures import fake_salesforce, rest_client, service  # noqa: E402,F401

fake: Faker = Faker()


@pytest.fixture(scope="session")
def faker_instance() -> Faker:
    """Provide a Faker instance for generating test data."""
    return fake


@pytest.fixture(autouse=True)
def reset_environment() -> Generator[None, None, None]:
    """
    Reset environment state after each test.
    Config tests set SALESFORCE_* variables; they must not leak.
    """
    original_env: Dict[str, str] = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)


def pytest_collection_modifyitems(config, items):
    """Auto-mark tests based on their location and names."""
    for item in items:
        if "auth" in item.nodeid.lower():
            item.add_marker(pytest.mark.auth)
        if "query" in item.nodeid.lower():
            item.add_marker(pytest.mark.query)


def pytest_configure(config):
    """Register the markers applied in pytest_collection_modifyitems."""
    config.addinivalue_line("markers", "auth: token source and authorization tests")
    config.addinivalue_line("markers", "query: SOQL query paging tests")
