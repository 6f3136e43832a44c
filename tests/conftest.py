"""
Global test configuration and fixtures for sqlstore

Provides key material, SQLite-backed and in-memory store clients, and
session stores built on them.
"""

import os
import tempfile

import pytest

from sqlstore.core.config import Settings
from sqlstore.core.utils.session_store import DatabaseStore
from sqlstore.db.store_client import SQLAlchemyStoreClient
from tests.utils.helpers import FakeStoreClient

HASH_KEY = b"EyaC2BPcJtNqU3tjEHy+c+Wmqc1yihYIbUWEl/jk0Ga73kWBclmuSFd9HuJKwJw/"
BLOCK_KEY = b"Wdsh1XnjY2Bw1HBVph6WOw-block-key-material"


# ============================================================================
# Key Material
# ============================================================================

@pytest.fixture(scope="session")
def hash_key() -> bytes:
    return HASH_KEY


@pytest.fixture(scope="session")
def block_key() -> bytes:
    return BLOCK_KEY


# ============================================================================
# Store Clients
# ============================================================================

@pytest.fixture(scope="function")
def database_url():
    """Temporary SQLite database file for each test function"""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')
    yield f"sqlite:///{db_path}"

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture(scope="function")
def sql_client(database_url):
    client = SQLAlchemyStoreClient.from_url(database_url)
    yield client
    client.close()


@pytest.fixture(scope="function")
def fake_client():
    return FakeStoreClient()


# ============================================================================
# Session Stores
# ============================================================================

@pytest.fixture(scope="function")
def store(sql_client):
    """Signed-only store on a real SQLite database"""
    store = DatabaseStore(sql_client, HASH_KEY)
    yield store
    store.close()


@pytest.fixture(scope="function")
def encrypted_store(sql_client):
    """Signed and encrypted store on a real SQLite database"""
    store = DatabaseStore(sql_client, HASH_KEY, BLOCK_KEY)
    yield store
    store.close()


@pytest.fixture(scope="function")
def fake_store(fake_client):
    """Store on the in-memory fake client"""
    return DatabaseStore(fake_client, HASH_KEY)


@pytest.fixture(scope="function")
def test_settings(database_url):
    return Settings(
        database_url=database_url,
        session_keys=[HASH_KEY.decode()],
        cleanup_interval=60,
        dev_mode=False,
    )


# ============================================================================
# Test Markers and Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: fast tests without a real database"
    )
    config.addinivalue_line(
        "markers", "integration: tests against SQLite and the example app"
    )
    config.addinivalue_line(
        "markers", "security: cookie authentication and tampering tests"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on file location"""
    for item in items:
        if "security" in str(item.fspath):
            item.add_marker(pytest.mark.security)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
