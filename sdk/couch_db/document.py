"""
Documents stored in a CouchDB database.

A Document wraps the JSON data of one document plus the identifiers the
server assigns.  Database.save_document() and update_documents() stamp
the id and revision on the Document once the server confirms the write.
"""

from __future__ import annotations

from typing import Any

from .errors import UsageError

DESIGN_PREFIX = "_design/"


class Document:
    """One CouchDB document.

    Attributes:
        data: The document body (without _id/_rev)
    """

    def __init__(
        self,
        data: dict[str, Any] | None = None,
        *,
        id: str | None = None,
        rev: str | None = None,
    ) -> None:
        self.data: dict[str, Any] = dict(data or {})
        self._id = id or self.data.pop("_id", None)
        self._rev = rev or self.data.pop("_rev", None)
        self._deleted = False

    @property
    def id(self) -> str | None:
        return self._id

    @property
    def rev(self) -> str | None:
        return self._rev

    @property
    def is_deleted(self) -> bool:
        return self._deleted

    @property
    def is_design(self) -> bool:
        return bool(self._id and self._id.startswith(DESIGN_PREFIX))

    def saved(self, id: str, rev: str) -> None:
        """Record the identifiers the server assigned on save."""
        self._id = id
        self._rev = rev

    def deleted(self) -> None:
        """Record that the server removed this document."""
        self._deleted = True

    def to_wire(self) -> dict[str, Any]:
        """The body to send, including _id and _rev when known."""
        body = dict(self.data)
        if self._id is not None:
            body["_id"] = self._id
        if self._rev is not None:
            body["_rev"] = self._rev
        return body

    def __repr__(self) -> str:
        return f"Document(id={self._id!r}, rev={self._rev!r})"


def design_name(ddoc: Document | str) -> str:
    """Name of a design document, without the _design/ prefix."""
    name = ddoc.id if isinstance(ddoc, Document) else ddoc
    if not name:
        raise UsageError("Design document has no id")
    return name[len(DESIGN_PREFIX):] if name.startswith(DESIGN_PREFIX) else name
