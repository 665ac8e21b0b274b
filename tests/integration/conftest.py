"""
Fixtures for integration tests.

FakeServer stands in for a CouchDB node: it answers requests from a
table of canned responses and remembers what it received.
"""

import json

import httpx
import pytest

from couch_db import Couch


class FakeServer:
    """Canned CouchDB answers keyed by (method, path)."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def answer(self, method, path, status=200, body=None):
        self.routes[(method, path)] = (status, body if body is not None else {"ok": True})

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.raw_path.split(b"?")[0].decode()
        status, body = self.routes.get((request.method, path), (200, {"ok": True}))
        return httpx.Response(status, json=body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_body(self):
        return json.loads(self.last.content)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def fake_server():
    return FakeServer()


@pytest.fixture
def couch(fake_server):
    """Couch expecting api 3.3.3 with one client on the fake server."""
    couch = Couch("3.3.3", server=None)
    couch.create_client("http://couch1:5984", name="couch1", version="3.3.3", transport=fake_server.transport())
    return couch
