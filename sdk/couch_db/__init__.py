"""
couch-db - Client library for CouchDB clusters.

This package provides a typed interface to one or more CouchDB nodes:
- Couch: the dispatcher, with fail-over between configured servers
- Client: one server connection (httpx based)
- Result: the deferred outcome of every call
- ConversionRegistry: JSON <-> Python value conversion by type tag
- Database, Cluster, Document: the endpoint methods

Example:
    >>> from couch_db import Couch, Document
    >>>
    >>> async with Couch("3.3.3", server="http://127.0.0.1:5984") as couch:
    ...     couch.create_client("http://backup:5984", name="backup")
    ...     db = couch.db("tasks")
    ...     result = await db.save_document(Document({"title": "My Task"}))
    ...     if not result:
    ...         print(result.error)

Invariants:
    - Calls return a Result at once; the request completes asynchronously
    - Servers are tried one at a time, in the order they were added
    - Endpoints removed in your declared api version are refused locally

Version: 0.1.0
"""

__version__ = "0.1.0"

from .client import Client
from .cluster import Cluster
from .config import CouchSettings
from .conversions import ConversionRegistry
from .couch import DEFAULT_SERVER, Couch
from .database import Database
from .document import Document
from .errors import (
    CompatibilityWarning,
    ConfigurationError,
    CouchError,
    DocumentRejected,
    ServerReportMismatch,
    TransportFailure,
    UsageError,
)
from .node import Node
from .result import Attempt, Result, ResultState
from .version import ApiVersion

__all__ = [
    # Version
    "__version__",
    # Dispatch
    "Couch",
    "DEFAULT_SERVER",
    "Client",
    "Result",
    "ResultState",
    "Attempt",
    "Node",
    "ApiVersion",
    # Configuration
    "CouchSettings",
    "ConversionRegistry",
    # Endpoints
    "Database",
    "Cluster",
    "Document",
    # Errors
    "CouchError",
    "ConfigurationError",
    "UsageError",
    "TransportFailure",
    "DocumentRejected",
    "ServerReportMismatch",
    "CompatibilityWarning",
]
