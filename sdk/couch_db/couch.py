"""
CouchDB dispatcher.

Couch is the entry point of the client.  It owns the configured clients,
the API version the application expects, the conversion registry and
the node registry.  Every endpoint method funnels through Couch.call(),
which:

1. converts query parameters into their wire form
2. selects the candidate clients (explicit, or all in precedence order)
3. checks the endpoint's compatibility annotations against the expected
   API version: removed endpoints raise, introduced/deprecated ones warn
4. creates a Result and schedules the failover loop, which tries the
   candidates one after the other until one gives a final answer

Example:
    >>> async with Couch("3.3.3", server="http://127.0.0.1:5984") as couch:
    ...     result = await couch.db("tasks").info()
    ...     if result:
    ...         print(result.values()["doc_count"])

Invariants:
    - A removed endpoint never reaches any client
    - Clients are tried strictly one at a time, never in parallel
    - A client known to run an older server than an endpoint's
      introduced version is never contacted for that endpoint
    - The same name always yields the same Node instance
    - A deprecation warning is given once per (method, path) per Couch
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import warnings
from collections.abc import Mapping, MutableMapping
from typing import TYPE_CHECKING, Any, Callable, Iterable

from .client import DEFAULT_TIMEOUT, Client
from .conversions import ConversionRegistry, Converter
from .errors import CompatibilityWarning, ConfigurationError, TransportFailure, UsageError
from .node import Node
from .result import FinalCallback, Result, ValuesConverter
from .util import flat
from .version import ApiVersion, VersionLike, parse_version

if TYPE_CHECKING:
    from .cluster import Cluster
    from .config import CouchSettings
    from .database import Database

logger = logging.getLogger(__name__)

DEFAULT_SERVER = "http://127.0.0.1:5984"

# Options of endpoint methods which configure the call, not the request
RESULT_OPTIONS = ("delay", "client", "clients", "on_final", "timeout")

_TO_QUERY: list[tuple[type, Callable[[Any], str]]] = [
    (bool, lambda value: "true" if value else "false"),
    (Node, lambda value: value.name),
]


def _query_to_wire(query: Mapping[str, Any]) -> dict[str, Any]:
    """Copy the query, replacing values which have no natural query form."""
    converted = dict(query)
    for key, value in query.items():
        for kind, converter in _TO_QUERY:
            if isinstance(value, kind):
                converted[key] = converter(value)
                break
    return converted


class Couch:
    """Client for a CouchDB cluster.

    Subclasses may set client_class to use another transport.
    """

    client_class: type[Client] = Client

    def __init__(
        self,
        api: VersionLike,
        *,
        server: str | None = DEFAULT_SERVER,
        username: str | None = None,
        password: str | None = None,
        to_native: Mapping[str, Converter] | None = None,
        to_wire: Mapping[str, Converter] | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            api: The API version you expect the servers to run
            server: URL of the default server, named "local"; None
                suppresses the default client, an empty URL means
                DEFAULT_SERVER
            username: Login for the default server
            password: Password for the default server
            to_native: Extra or replacement wire-to-Python converters
            to_wire: Extra or replacement Python-to-wire converters
            timeout: Default request timeout for created clients

        Raises:
            ConfigurationError: If api is missing
        """
        if not api:
            raise ConfigurationError("Parameter 'api' is required", parameter="api")

        self._api = ApiVersion.parse(api)
        self._timeout = timeout
        self._conversions = ConversionRegistry(to_native, to_wire)

        self._clients: list[Client] = []
        self._nodes: dict[str, Node] = {}
        self._nodes_lock = threading.Lock()
        self._warned: set[tuple[str, str]] = set()
        self._warned_lock = threading.Lock()
        self._cluster: Cluster | None = None

        if server is not None:
            self.create_client(server or DEFAULT_SERVER, name="local", username=username, password=password)

    @classmethod
    def from_settings(cls, settings: CouchSettings | None = None, **kwargs: Any) -> Couch:
        """Create a Couch from environment based settings.

        Args:
            settings: Settings, loaded from the environment when omitted
            **kwargs: Passed to the constructor (like to_native)
        """
        from .config import CouchSettings

        settings = settings or CouchSettings()
        couch = cls(
            settings.api,
            server=settings.server,
            username=settings.username,
            password=settings.password_value(),
            timeout=settings.timeout,
            **kwargs,
        )
        for server in settings.extra_servers:
            couch.create_client(server, username=settings.username, password=settings.password_value())
        return couch

    @property
    def api(self) -> ApiVersion:
        """The API version you expect the servers to run."""
        return self._api

    @property
    def conversions(self) -> ConversionRegistry:
        return self._conversions

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def create_client(self, server: str, **kwargs: Any) -> Client:
        """Create a client for a server and add it.

        Args:
            server: Base URL of the server
            **kwargs: Passed to the client class (name, username,
                password, version, timeout, transport)

        Returns:
            The new client
        """
        kwargs.setdefault("timeout", self._timeout)
        client = self.client_class(self, server, **kwargs)
        self.add_client(client)
        return client

    def add_client(self, client: Client | None) -> Couch:
        """Add a client; later clients have lower precedence.

        Returns:
            Self for chaining

        Raises:
            TypeError: If client is not a Client
        """
        if client is None:
            return self

        if not isinstance(client, Client):
            raise TypeError(f"Expected a Client, got {type(client).__name__}")

        self._clients.append(client)
        logger.info(f"Added client {client.name} for {client.server}")
        return self

    def clients(self) -> tuple[Client, ...]:
        """All clients, in order of precedence."""
        return tuple(self._clients)

    def client(self, name: Any) -> Client | None:
        """Find a client by name; objects with a name are looked up by that name."""
        name = getattr(name, "name", name)
        for client in self._clients:
            if client.name == name:
                return client
        return None

    def _candidates(self, client: Any, clients: Any) -> list[Client]:
        selected: list[Client] = []
        for item in flat(client, clients):
            if not isinstance(item, Client):
                found = self.client(item)
                if found is None:
                    raise UsageError(f"Unknown client '{item}'", what=str(item))
                item = found
            selected.append(item)
        return selected or list(self._clients)

    async def discover_versions(self) -> dict[str, ApiVersion | None]:
        """Ask every client's server for its version."""
        return {client.name: await client.discover_version() for client in self._clients}

    async def close(self) -> None:
        """Close the connections of all clients."""
        for client in self._clients:
            await client.close()

    async def __aenter__(self) -> Couch:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def call(
        self,
        method: str,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        send: Any = None,
        client: Any = None,
        clients: Iterable[Any] | None = None,
        introduced: VersionLike | None = None,
        deprecated: VersionLike | None = None,
        removed: VersionLike | None = None,
        to_values: ValuesConverter | None = None,
        on_final: FinalCallback | list[FinalCallback] | None = None,
        delay: bool = False,
        timeout: float | None = None,
    ) -> Result:
        """Call some CouchDB server to get work done.

        Args:
            method: HTTP method
            path: Request path
            query: Query parameters; booleans and Nodes are converted
            send: JSON body
            client: Use only this client (object or name)
            clients: Use only these clients, in this order
            introduced: Version which introduced the endpoint
            deprecated: Version which deprecated the endpoint
            removed: Version which removed the endpoint
            to_values: Converts (result, answer) into Result.values()
            on_final: Callback(s) run once the result is final
            delay: Do not start the request before the result is awaited
            timeout: Timeout in seconds for each client attempt

        Returns:
            Result, possibly still pending

        Raises:
            UsageError: If the endpoint was removed in the expected api,
                or an unknown client name is given
        """
        what = f"{method}({path})"
        if query:
            query = _query_to_wire(query)

        candidates = self._candidates(client, clients)

        removed_in = parse_version(removed)
        if removed_in is not None and self._api >= removed_in:
            raise UsageError(
                f"Using {what} was deprecated in {removed_in}, but you specified api {self._api}.",
                what=what,
            )

        introduced_in = parse_version(introduced)
        if introduced_in is not None and introduced_in <= self._api:
            warnings.warn(
                CompatibilityWarning(
                    f"Using {what}, introduced in {introduced_in} but you specified api {self._api}.",
                    what=what,
                    release=introduced_in,
                ),
                stacklevel=2,
            )

        deprecated_in = parse_version(deprecated)
        if deprecated_in is not None and self._api >= deprecated_in and self._first_use(method, path):
            warnings.warn(
                CompatibilityWarning(
                    f"Using {what}, which got deprecated in {deprecated_in}.",
                    what=what,
                    release=deprecated_in,
                ),
                stacklevel=2,
            )

        result = Result(self, to_values=to_values, on_final=on_final)
        request = {"query": query, "send": send, "timeout": timeout}
        result.schedule(
            lambda: self._dispatch(result, candidates, method, path, introduced_in, request),
            delay=delay,
        )
        return result

    def _first_use(self, method: str, path: str) -> bool:
        key = (method, path)
        with self._warned_lock:
            if key in self._warned:
                return False
            self._warned.add(key)
            return True

    async def _dispatch(
        self,
        result: Result,
        candidates: list[Client],
        method: str,
        path: str,
        introduced: ApiVersion | None,
        request: dict[str, Any],
    ) -> None:
        what = f"{method}({path})"
        logger.debug(f"Dispatching {what} over {len(candidates)} client(s)")
        try:
            for client in candidates:
                if introduced is not None and client.version is not None and client.version < introduced:
                    reason = f"{client.name} runs {client.version}, {what} needs {introduced}"
                    logger.debug(f"Skipping client: {reason}")
                    result.skip(client, reason)
                    continue

                try:
                    final = await client.request(result, method, path, **request)
                except Exception as e:
                    logger.error(f"{what} on {client.name} failed: {e}", exc_info=True)
                    result.record_failure(client, TransportFailure(str(e), client=client.name))
                    continue

                if final:
                    break
        except asyncio.CancelledError:
            if not result.done:
                result.fail(TransportFailure(f"{what} cancelled"))
            raise

        # The error of the last attempt remains
        result.finish(what)

    def _results_config(self, options: MutableMapping[str, Any], *, rest: bool = False) -> dict[str, Any]:
        """Take the call configuration out of an endpoint's options.

        Args:
            options: Keyword arguments of the endpoint method; modified
            rest: Whether the endpoint uses the remaining options itself

        Raises:
            TypeError: If options remain which the endpoint does not use
        """
        config = {key: options.pop(key) for key in RESULT_OPTIONS if key in options}
        if options and not rest:
            raise TypeError(f"Unexpected options: {', '.join(sorted(options))}")
        return config

    # ------------------------------------------------------------------
    # Endpoints and sub-APIs
    # ------------------------------------------------------------------

    def db(self, name: str) -> Database:
        """Access the database with the given name."""
        from .database import Database

        return Database(name, self)

    @property
    def cluster(self) -> Cluster:
        """Cluster management endpoints."""
        if self._cluster is None:
            from .cluster import Cluster

            self._cluster = Cluster(self)
        return self._cluster

    def search_analyse(self, analyzer: str, text: str, **options: Any) -> Result:
        """Check what the built-in Lucene tokenizer does with some text.

        [CouchDB API "POST /_search_analyze", since 3.0]
        """
        return self.call(
            "POST",
            "/_search_analyze",
            introduced="3.0",
            send={"analyzer": analyzer, "text": text},
            **self._results_config(options),
        )

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def node(self, name: str) -> Node:
        """Get the Node with this name, creating it on first use."""
        with self._nodes_lock:
            node = self._nodes.get(name)
            if node is None:
                node = self._nodes[name] = Node(name, self)
            return node

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    def to_native(self, data: MutableMapping[str, Any], tag: str, *keys: str) -> Couch:
        """Convert the named fields of data into Python values of type tag.

        Fields which do not exist are left alone.

        Returns:
            Self for chaining
        """
        self._conversions.apply_to_native(self, data, tag, *keys)
        return self

    def list_to_native(self, name: str, tag: str, values: Iterable[Any]) -> list[Any]:
        """Convert a list of wire values of type tag."""
        return self._conversions.list_to_native(self, name, tag, values)

    def to_wire(self, data: MutableMapping[str, Any], tag: str, *keys: str) -> Couch:
        """Convert the named fields of data into JSON compatible values.

        Returns:
            Self for chaining
        """
        self._conversions.apply_to_wire(self, data, tag, *keys)
        return self

    def json_text(self, data: Any, *, compact: bool = False) -> str:
        """Serialize a structure to JSON; beautified unless compact."""
        if compact:
            return json.dumps(data, separators=(",", ":"))
        return json.dumps(data, indent=2, sort_keys=True)

    def __repr__(self) -> str:
        return f"<Couch api={self._api} clients={[c.name for c in self._clients]}>"
