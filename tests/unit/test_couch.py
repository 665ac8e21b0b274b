"""
Unit tests for the Couch dispatcher.

Tests cover:
- Construction and the default client
- Client registry
- Node registry
- Query normalization
- Call option handling
- JSON text helper
"""

import httpx
import pytest

from couch_db import (
    DEFAULT_SERVER,
    ApiVersion,
    Client,
    ConfigurationError,
    Couch,
    Result,
    UsageError,
)
from couch_db.couch import _query_to_wire


class TestCouchConstruction:
    """Tests for Couch.__init__."""

    @pytest.mark.parametrize("api", [None, ""])
    def test_api_required(self, api):
        """The expected api version is required."""
        with pytest.raises(ConfigurationError, match="'api' is required") as info:
            Couch(api)

        assert info.value.parameter == "api"
        assert info.value.code == "CONFIGURATION_ERROR"

    def test_api_parsed(self):
        couch = Couch("2.4", server=None)

        assert couch.api == ApiVersion(2, 4, 0)

    def test_default_client(self):
        """Without a server argument a client named 'local' is created."""
        couch = Couch("3.3.3")

        (client,) = couch.clients()
        assert client.name == "local"
        assert client.server == httpx.URL(DEFAULT_SERVER)

    def test_default_client_suppressed(self):
        """server=None creates no client."""
        couch = Couch("3.3.3", server=None)

        assert couch.clients() == ()

    def test_empty_server_uses_default(self):
        """An empty server URL falls back to the default server."""
        couch = Couch("3.3.3", server="")

        assert couch.client("local").server == httpx.URL(DEFAULT_SERVER)

    def test_default_client_credentials(self):
        couch = Couch("3.3.3", server="http://couch:5984", username="admin", password="s3cret")

        assert couch.client("local").username == "admin"

    def test_malformed_api(self):
        with pytest.raises(UsageError):
            Couch("latest")


class TestClientRegistry:
    """Tests for adding and finding clients."""

    @pytest.fixture
    def couch(self):
        return Couch("3.3.3", server=None)

    def test_create_client_order(self, couch):
        """Clients keep the order in which they were added."""
        a = couch.create_client("http://a:5984", name="a")
        b = couch.create_client("http://b:5984", name="b")

        assert couch.clients() == (a, b)

    def test_name_defaults_to_server(self, couch):
        client = couch.create_client("http://a:5984")

        assert client.name == "http://a:5984"
        assert couch.client("http://a:5984") is client

    def test_add_client_chains(self, couch):
        client = Client(couch, "http://a:5984", name="a")

        assert couch.add_client(client) is couch
        assert couch.client("a") is client

    def test_add_none_ignored(self, couch):
        assert couch.add_client(None) is couch
        assert couch.clients() == ()

    def test_add_non_client_rejected(self, couch):
        with pytest.raises(TypeError, match="Expected a Client"):
            couch.add_client("http://a:5984")

    def test_lookup_by_object(self, couch):
        """Anything with a name is looked up by that name."""
        client = couch.create_client("http://a:5984", name="a")

        assert couch.client(client) is client

    def test_unknown_client(self, couch):
        assert couch.client("nope") is None

    def test_call_with_unknown_client(self, couch):
        """Naming an unknown client is a usage error."""
        couch.create_client("http://a:5984", name="a")

        with pytest.raises(UsageError, match="Unknown client 'nope'"):
            couch.call("GET", "/", client="nope")

    def test_version_given(self, couch):
        client = couch.create_client("http://a:5984", version="3.1")

        assert client.version == ApiVersion(3, 1, 0)

    def test_timeout_inherited(self):
        couch = Couch("3.3.3", server=None, timeout=5.0)

        client = couch.create_client("http://a:5984")

        assert client._timeout == 5.0


class TestNodeRegistry:
    """Tests for Couch.node()."""

    def test_same_name_same_instance(self):
        couch = Couch("3.3.3", server=None)

        assert couch.node("couchdb@n1") is couch.node("couchdb@n1")

    def test_different_names(self):
        couch = Couch("3.3.3", server=None)

        assert couch.node("couchdb@n1") is not couch.node("couchdb@n2")

    def test_node_knows_couch(self):
        couch = Couch("3.3.3", server=None)
        node = couch.node("couchdb@n1")

        assert node.couch is couch
        assert node.name == "couchdb@n1"
        assert str(node) == "couchdb@n1"

    def test_registry_per_couch(self):
        """Nodes are not shared between dispatchers."""
        first = Couch("3.3.3", server=None)
        second = Couch("3.3.3", server=None)

        assert first.node("n") is not second.node("n")


class TestQueryNormalization:
    """Tests for query values without a natural query form."""

    def test_booleans(self):
        """Booleans become the exact strings true and false."""
        assert _query_to_wire({"a": True, "b": False}) == {"a": "true", "b": "false"}

    def test_node(self):
        couch = Couch("3.3.3", server=None)

        assert _query_to_wire({"node": couch.node("couchdb@n1")}) == {"node": "couchdb@n1"}

    def test_other_values_unchanged(self):
        assert _query_to_wire({"limit": 10, "key": "x"}) == {"limit": 10, "key": "x"}

    def test_input_not_modified(self):
        query = {"a": True}

        _query_to_wire(query)

        assert query == {"a": True}


class TestCallOptions:
    """Tests for the handling of call options by endpoints."""

    def test_results_config(self):
        couch = Couch("3.3.3", server=None)
        options = {"delay": True, "client": "a", "limit": 3}

        config = couch._results_config(options, rest=True)

        assert config == {"delay": True, "client": "a"}
        assert options == {"limit": 3}

    def test_unexpected_options(self):
        couch = Couch("3.3.3", server=None)

        with pytest.raises(TypeError, match="Unexpected options: limit"):
            couch._results_config({"limit": 3})

    def test_endpoint_rejects_unknown_option(self):
        couch = Couch("3.3.3", server=None)

        with pytest.raises(TypeError):
            couch.db("tasks").info(include_everything=True)

    def test_call_returns_pending_result(self):
        """Outside an event loop the request waits for the first await."""
        couch = Couch("3.3.3")

        result = couch.call("GET", "/_up")

        assert isinstance(result, Result)
        assert not result.done
        assert result.couch is couch


class TestJsonText:
    """Tests for Couch.json_text()."""

    def test_compact(self):
        couch = Couch("3.3.3", server=None)

        assert couch.json_text(["_users", "_replicator"], compact=True) == '["_users","_replicator"]'

    def test_pretty(self):
        couch = Couch("3.3.3", server=None)

        text = couch.json_text({"b": 1, "a": 2})

        assert text == '{\n  "a": 2,\n  "b": 1\n}'


def test_repr():
    couch = Couch("3.3.3")

    assert repr(couch) == "<Couch api=3.3.3 clients=['local']>"
