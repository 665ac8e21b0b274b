"""
Connection to one CouchDB server.

A Client is one configured connection target: a base URL, a name,
optional credentials and the server's API version.  The dispatcher in
couch.py picks which clients to try; this module does the actual HTTP
work with httpx and reports the outcome on the Result.

Transport contract:
    request() records exactly one attempt on the Result and returns
    whether that attempt is final:
    - 2xx: success, final
    - any other status, network errors, undecodable answers: not
      final, the dispatcher continues with the next client; the last
      attempt decides the outcome

Example:
    >>> couch = Couch("3.3", server=None)
    >>> node1 = couch.create_client("http://node1:5984", version="3.3.3")
    >>> node2 = couch.create_client("http://node2:5984", username="admin", password="s3cret")
"""

from __future__ import annotations

import json
import logging
import weakref
from typing import TYPE_CHECKING, Any

import httpx

from .errors import TransportFailure
from .version import ApiVersion, VersionLike, parse_version

if TYPE_CHECKING:
    from .couch import Couch
    from .result import Result

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class Client:
    """One CouchDB server connection.

    The underlying httpx.AsyncClient is created on first use, so a
    Client can be configured outside a running event loop.
    """

    def __init__(
        self,
        couch: Couch,
        server: str | httpx.URL,
        *,
        name: str | None = None,
        username: str | None = None,
        password: str | None = None,
        version: VersionLike | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            couch: The owning dispatcher
            server: Base URL of the server
            name: Unique name, defaults to the server URL
            username: Login for HTTP basic authentication
            password: Password for HTTP basic authentication
            version: Server API version, when known up front
            timeout: Default request timeout in seconds
            transport: Optional httpx transport (tests, proxies)
        """
        self._couch = weakref.ref(couch)
        self._server = httpx.URL(str(server))
        self._name = name or str(server)
        self._username = username
        self._auth = httpx.BasicAuth(username, password or "") if username is not None else None
        self._version = parse_version(version)
        self._timeout = timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def server(self) -> httpx.URL:
        return self._server

    @property
    def username(self) -> str | None:
        return self._username

    @property
    def version(self) -> ApiVersion | None:
        """The server's API version, None while unknown."""
        return self._version

    @property
    def couch(self) -> Couch | None:
        return self._couch()

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self._server,
                auth=self._auth,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._http

    async def request(
        self,
        result: Result,
        method: str,
        path: str,
        *,
        query: dict[str, Any] | None = None,
        send: Any = None,
        timeout: float | None = None,
    ) -> bool:
        """Make one attempt and record it on the result.

        Args:
            result: Result to record the attempt on
            method: HTTP method
            path: Path relative to the server URL
            query: Query parameters, already in wire form
            send: JSON body
            timeout: Request timeout in seconds, overrides the default

        Returns:
            Whether the attempt is final
        """
        kwargs: dict[str, Any] = {"params": query or None}
        if send is not None:
            kwargs["json"] = send
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await self._client().request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} on {self._name} failed: {e}")
            result.record_failure(
                self,
                TransportFailure(f"{self._name}: {e}", client=self._name),
            )
            return False

        try:
            answer = response.json() if response.content else None
        except json.JSONDecodeError as e:
            logger.warning(f"{method} {path} on {self._name}: undecodable answer: {e}")
            result.record_failure(
                self,
                TransportFailure(
                    f"{self._name} sent an undecodable answer",
                    status=response.status_code,
                    client=self._name,
                    reason=str(e),
                ),
            )
            return False

        result.record_response(self, response.status_code, answer, dict(response.headers))
        if not 200 <= response.status_code < 300:
            logger.warning(f"{method} {path} on {self._name}: answered {response.status_code}")
            return False

        logger.debug(f"{method} {path} on {self._name}: {response.status_code}")
        return True

    async def discover_version(self) -> ApiVersion | None:
        """Ask the server for its version (GET /) and remember it.

        Returns:
            The discovered version, or the previously known one when the
            server could not be reached
        """
        try:
            response = await self._client().get("/")
            response.raise_for_status()
            welcome = response.json()
        except (httpx.HTTPError, json.JSONDecodeError) as e:
            logger.warning(f"Version discovery on {self._name} failed: {e}")
            return self._version

        if isinstance(welcome, dict) and welcome.get("version"):
            self._version = parse_version(welcome["version"])
            logger.info(f"Server {self._name} runs CouchDB {self._version}")
        return self._version

    async def close(self) -> None:
        """Close the connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"Client({self._name!r}, server={str(self._server)!r}, version={self._version})"
