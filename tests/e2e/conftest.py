"""
E2E test fixtures for couch-db.

These tests require a running CouchDB server, for instance:

    docker run -d -p 5984:5984 -e COUCHDB_USER=admin -e COUCHDB_PASSWORD=admin couchdb:3

Point the client at it with the usual COUCHDB_* variables.
"""

import os
import socket
import time
import uuid
from urllib.parse import urlsplit

import pytest
import pytest_asyncio

from couch_db import Couch, CouchSettings

# Skip E2E tests if not in E2E mode
E2E_ENABLED = os.environ.get("COUCHDB_E2E_TESTS", "0") == "1"

pytestmark = pytest.mark.skipif(
    not E2E_ENABLED,
    reason="E2E tests disabled. Set COUCHDB_E2E_TESTS=1 to enable."
)


def wait_for_service(host: str, port: int, timeout: int = 60) -> bool:
    """Wait for a service to become available."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1):
                return True
        except OSError:
            time.sleep(1)
    return False


@pytest.fixture(scope="session")
def settings() -> CouchSettings:
    """Client settings from the environment."""
    if not E2E_ENABLED:
        pytest.skip("E2E tests disabled")

    os.environ.setdefault("COUCHDB_API", "3.3.3")
    settings = CouchSettings()

    url = urlsplit(settings.server)
    assert wait_for_service(url.hostname, url.port or 5984, timeout=60), "CouchDB not ready"
    return settings


@pytest_asyncio.fixture
async def couch(settings):
    """Couch connected to the test server, with its version discovered."""
    async with Couch.from_settings(settings) as couch:
        await couch.discover_versions()
        yield couch


@pytest.fixture
def test_db_name() -> str:
    """Generate unique database name for test isolation."""
    return f"test_db_{uuid.uuid4().hex[:8]}"
