"""
couch-db Test Suite.

This package contains:
- unit/: Unit tests (no network, no event loop where avoidable)
- integration/: Integration tests (dispatch and endpoints over httpx.MockTransport)
- e2e/: End-to-end tests (a real CouchDB server)
"""
