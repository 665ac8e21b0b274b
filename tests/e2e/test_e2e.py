"""
End-to-end tests against a real CouchDB server.

Tests cover:
- Version discovery
- Database lifecycle
- Saving, bulk updating and finding documents
- Failover from an unreachable server
"""

import os

import pytest

from couch_db import Couch, Document

E2E_ENABLED = os.environ.get("COUCHDB_E2E_TESTS", "0") == "1"

pytestmark = [
    pytest.mark.skipif(not E2E_ENABLED, reason="E2E tests disabled. Set COUCHDB_E2E_TESTS=1 to enable."),
    pytest.mark.filterwarnings("ignore::couch_db.errors.CompatibilityWarning"),
]


@pytest.mark.asyncio
async def test_version_discovered(couch):
    client = couch.clients()[0]

    assert client.version is not None
    assert client.version.major >= 2


@pytest.mark.asyncio
async def test_database_lifecycle(couch, test_db_name):
    db = couch.db(test_db_name)

    assert (await db.create()).ok
    try:
        assert (await db.ping()).ok

        info = await db.info()
        assert info.values()["db_name"] == test_db_name
    finally:
        assert (await db.delete()).ok

    assert (await db.ping()).status == 404


@pytest.mark.asyncio
async def test_documents(couch, test_db_name):
    db = couch.db(test_db_name)
    await db.create()
    try:
        doc = Document({"title": "Write docs", "done": False})
        result = await db.save_document(doc)
        assert result.ok
        assert doc.id and doc.rev.startswith("1-")

        other = Document({"title": "Review", "done": True})
        doc.data["done"] = True
        result = await db.update_documents([doc, other])
        assert result.ok
        assert doc.rev.startswith("2-")
        assert other.id is not None

        found = await db.find(selector={"done": True}, fields=["title"])
        assert sorted(d["title"] for d in found.values()["docs"]) == ["Review", "Write docs"]

        result = await db.update_documents([], delete=other)
        assert result.ok
        assert other.is_deleted

        listing = await db.list_documents()
        assert listing.values()["total_rows"] == 1
    finally:
        await db.delete()


@pytest.mark.asyncio
async def test_failover_from_unreachable_server(settings):
    async with Couch(settings.api, server="http://127.0.0.1:1") as couch:
        couch.create_client(
            settings.server,
            name="real",
            username=settings.username,
            password=settings.password_value(),
        )

        result = await couch.call("GET", "/")

        assert result.ok
        assert result.client == "real"
        assert result.attempts[0].client == "local"
        assert result.attempts[0].status is None
