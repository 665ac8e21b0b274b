"""
Cluster node handles.

A Node names one member of the CouchDB cluster.  It carries identity
only: connection state lives in the Client objects.  Nodes are created
by Couch.node(), which guarantees one instance per name, so nodes can be
compared with `is` wherever they appear in converted answers.
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .couch import Couch


class Node:
    """A named cluster member.

    Attributes:
        name: Node name as reported by the cluster (like "couchdb@node1")
    """

    __slots__ = ("_name", "_couch", "__weakref__")

    def __init__(self, name: str, couch: Couch) -> None:
        self._name = name
        self._couch = weakref.ref(couch)

    @property
    def name(self) -> str:
        return self._name

    @property
    def couch(self) -> Couch | None:
        """The owning Couch, or None when it has been garbage collected."""
        return self._couch()

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"Node({self._name!r})"
