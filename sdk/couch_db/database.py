"""
Database endpoints.

A Database is a cheap handle: a validated name plus a reference to the
Couch which does the work.  All methods build a request and forward it
to Couch.call(); they return the Result without waiting.

Every method accepts the call options delay, client, clients, on_final
and timeout, see Couch.call().

Example:
    >>> db = couch.db("tasks")
    >>> doc = Document({"title": "Write docs"})
    >>> result = await db.save_document(doc)
    >>> doc.id, doc.rev
    ('6e1295ed6c29495e54cc05947f18c8af', '1-2902191555')
"""

from __future__ import annotations

import logging
import re
import weakref
from typing import TYPE_CHECKING, Any, Callable, Iterable
from urllib.parse import quote

from .document import Document, design_name
from .errors import CouchError, DocumentRejected, ServerReportMismatch, UsageError
from .result import Result
from .util import flat, to_int

if TYPE_CHECKING:
    from .couch import Couch

logger = logging.getLogger(__name__)

DB_NAME_RE = re.compile(r"^[a-z][a-z0-9_$()+/-]*$")

ErrorHandler = Callable[[Result, Document, CouchError], Any]

# Boolean parameters of view-like searches, which JSON wants as true/false
_SEARCH_BOOLS = ("conflicts", "descending", "include_docs", "inclusive_end", "update_seq")
_FIND_BOOLS = ("conflicts", "update", "stable", "execution_stats")


def _log_update_error(result: Result, doc: Document, error: CouchError) -> None:
    logger.warning(f"Bulk update on {result.client}: {error.message}")


class Database:
    """One database on the CouchDB cluster."""

    def __init__(self, name: str, couch: Couch) -> None:
        """Initialize a database handle.

        Args:
            name: Database name, must match ^[a-z][a-z0-9_$()+/-]*$
            couch: The owning Couch

        Raises:
            UsageError: If the name is not allowed
        """
        if not DB_NAME_RE.match(name or ""):
            raise UsageError(f"Illegal database name '{name}'.", what=name)

        self._name = name
        self._couch = weakref.ref(couch)

    @property
    def name(self) -> str:
        return self._name

    @property
    def couch(self) -> Couch:
        couch = self._couch()
        if couch is None:
            raise RuntimeError(f"Couch of database {self._name} is gone")
        return couch

    def _path(self, *parts: str) -> str:
        return "/".join(["", quote(self._name, safe=""), *parts])

    def _call(self, method: str, path: str, options: dict[str, Any], **kwargs: Any) -> Result:
        couch = self.couch
        return couch.call(method, path, **kwargs, **couch._results_config(options))

    # ------------------------------------------------------------------
    # Database information
    # ------------------------------------------------------------------

    def ping(self, **options: Any) -> Result:
        """Check whether the database exists. [HEAD /{db}]"""
        return self._call("HEAD", self._path(), options)

    def info(self, **options: Any) -> Result:
        """Collect information about the database. [GET /{db}]"""
        return self._call("GET", self._path(), options)

    def create(self, partitioned: bool | None = None, **options: Any) -> Result:
        """Create the database. [PUT /{db}]

        Args:
            partitioned: Whether to create a partitioned database
        """
        query = {} if partitioned is None else {"partitioned": bool(partitioned)}
        return self._call("PUT", self._path(), options, query=query)

    def delete(self, **options: Any) -> Result:
        """Remove the database. [DELETE /{db}]"""
        return self._call("DELETE", self._path(), options)

    def user_roles(self, **options: Any) -> Result:
        """The users and roles with access to the database. [GET /{db}/_security]"""
        return self._call("GET", self._path("_security"), options)

    def user_roles_change(
        self,
        admins: dict[str, list[str]] | None = None,
        members: dict[str, list[str]] | None = None,
        **options: Any,
    ) -> Result:
        """Replace the security object. [PUT /{db}/_security]

        Args:
            admins: {"names": [...], "roles": [...]} of administrators
            members: {"names": [...], "roles": [...]} of members
        """
        send = {
            "admins": admins or {"names": [], "roles": []},
            "members": members or {"names": [], "roles": []},
        }
        return self._call("PUT", self._path("_security"), options, send=send)

    def compact(self, ddoc: Document | str | None = None, **options: Any) -> Result:
        """Compact the database files, or the views of one design document.

        [POST /{db}/_compact] and [POST /{db}/_compact/{ddoc}]
        """
        path = self._path("_compact")
        if ddoc is not None:
            path += "/" + quote(design_name(ddoc), safe="")
        return self._call("POST", path, options)

    def ensure_full_commit(self, **options: Any) -> Result:
        """Flush pending changes to disk. [POST /{db}/_ensure_full_commit, deprecated 3.0.0]"""
        return self._call("POST", self._path("_ensure_full_commit"), options, deprecated="3.0.0")

    # ------------------------------------------------------------------
    # Purging and revisions
    # ------------------------------------------------------------------

    def purge_documents(self, plan: dict[str, list[str]], **options: Any) -> Result:
        """Remove document revisions for good. [POST /{db}/_purge]

        Args:
            plan: Map of document id to the revisions to purge
        """
        return self._call("POST", self._path("_purge"), options, send=plan)

    def purge_records_limit(self, **options: Any) -> Result:
        """Soft maximum of purge records kept. [GET /{db}/_purged_infos_limit]"""
        return self._call("GET", self._path("_purged_infos_limit"), options)

    def purge_records_limit_set(self, limit: int, **options: Any) -> Result:
        """Set the soft maximum of purge records kept. [PUT /{db}/_purged_infos_limit]"""
        return self._call("PUT", self._path("_purged_infos_limit"), options, send=to_int(limit))

    def purge_unused_views(self, **options: Any) -> Result:
        """Remove index files no design document needs. [POST /{db}/_view_cleanup]"""
        return self._call("POST", self._path("_view_cleanup"), options)

    def revisions_missing(self, plan: dict[str, list[str]], **options: Any) -> Result:
        """Which of the given revisions the database lacks. [POST /{db}/_missing_revs]"""
        return self._call("POST", self._path("_missing_revs"), options, send=plan)

    def revisions_diff(self, plan: dict[str, list[str]], **options: Any) -> Result:
        """Compare revisions with the database. [POST /{db}/_revs_diff]"""
        return self._call("POST", self._path("_revs_diff"), options, send=plan)

    def revision_limit(self, **options: Any) -> Result:
        """Number of revisions tracked per document. [GET /{db}/_revs_limit]"""
        return self._call("GET", self._path("_revs_limit"), options)

    def revision_limit_set(self, limit: int, **options: Any) -> Result:
        """Set the number of revisions tracked per document. [PUT /{db}/_revs_limit]"""
        return self._call("PUT", self._path("_revs_limit"), options, send=to_int(limit))

    # ------------------------------------------------------------------
    # Designs and indexes
    # ------------------------------------------------------------------

    def _search(self, path: str, search: Any, bools: Iterable[str] = ()) -> tuple[str, str, Any]:
        """Pick GET, POST or POST .../queries for zero, one or more searches."""
        searches = []
        for entry in flat(search):
            entry = dict(entry)
            self.couch.to_wire(entry, "bool", *bools)
            searches.append(entry)

        if not searches:
            return "GET", path, None
        if len(searches) == 1:
            return "POST", path, searches[0]
        return "POST", path + "/queries", {"queries": searches}

    def list_designs(self, search: dict | list[dict] | None = None, **options: Any) -> Result:
        """Get design documents.

        [GET /{db}/_design_docs], [POST /{db}/_design_docs] and
        [POST /{db}/_design_docs/queries]
        """
        method, path, send = self._search(self._path("_design_docs"), search, _SEARCH_BOOLS)
        return self._call(method, path, options, send=send)

    def create_index(self, **options: Any) -> Result:
        """Create or confirm an index. [POST /{db}/_index]

        All options except the call options are sent as the index definition.
        """
        couch = self.couch
        config = couch._results_config(options, rest=True)
        send = dict(options)
        couch.to_wire(send, "bool", "partitioned")
        return couch.call("POST", self._path("_index"), send=send, **config)

    def list_indexes(self, **options: Any) -> Result:
        """All indexes of the database. [GET /{db}/_index]"""
        return self._call("GET", self._path("_index"), options)

    def delete_index(self, ddoc: Document | str, name: str, **options: Any) -> Result:
        """Remove an index. [DELETE /{db}/_index/{ddoc}/json/{name}]"""
        path = self._path("_index", quote(design_name(ddoc), safe=""), "json", quote(name, safe=""))
        return self._call("DELETE", path, options)

    def explain_search(self, search: dict[str, Any], **options: Any) -> Result:
        """Explain which index a search would use. [POST /{db}/_explain]"""
        if not search:
            raise UsageError("Explain requires a search", what="explain_search")
        return self._call("POST", self._path("_explain"), options, send=search)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def save_document(
        self,
        doc: Document,
        id: str | None = None,
        batch: bool = False,
        **options: Any,
    ) -> Result:
        """Upload a document. [POST /{db}]

        The document gets the id and revision the server assigns.

        Args:
            doc: Document to save
            id: Document id; generated by the server when missing
            batch: Do not wait for the write to be completed
        """
        query = {"batch": "ok"} if batch else {}
        send = doc.to_wire()
        if id is not None:
            send["_id"] = id

        def saved(result: Result) -> None:
            if result:
                values = result.values()
                doc.saved(values["id"], values["rev"])

        on_final = flat(saved, options.pop("on_final", None))
        return self._call("POST", self._path(), options, query=query, send=send, on_final=on_final)

    def update_documents(
        self,
        docs: list[Document],
        delete: Document | list[Document] | None = None,
        new_edits: bool | None = None,
        on_error: ErrorHandler | None = None,
        **options: Any,
    ) -> Result:
        """Insert, update and delete documents in one go. [POST /{db}/_bulk_docs]

        Args:
            docs: Documents to save
            delete: Documents to remove; do not delete them yourself
            new_edits: When false, the sent revisions replace existing ones
            on_error: Called as on_error(result, doc, error) for each
                document the server refused (DocumentRejected) or did
                not report on (ServerReportMismatch); logs by default

        Raises:
            UsageError: If there are no documents
        """
        deletes = flat(delete)
        plan = [doc.to_wire() for doc in docs]
        plan.extend({"_id": doc.id, "_rev": doc.rev, "_deleted": True} for doc in deletes)
        if not plan:
            raise UsageError("Need at least one document for bulk processing.", what="update_documents")

        send: dict[str, Any] = {"docs": plan}
        if new_edits is not None:
            send["new_edits"] = bool(new_edits)

        handler = on_error or _log_update_error

        def updated(result: Result) -> None:
            if result:
                self._updated(result, docs, deletes, handler)

        on_final = flat(updated, options.pop("on_final", None))
        return self._call("POST", self._path("_bulk_docs"), options, send=send, on_final=on_final)

    def _updated(
        self,
        result: Result,
        docs: list[Document],
        deletes: list[Document],
        on_error: ErrorHandler,
    ) -> None:
        saves = {doc.id: doc for doc in docs if doc.id is not None}
        anonymous = [doc for doc in docs if doc.id is None]
        removals = {doc.id: doc for doc in deletes}

        for report in result.values() or []:
            doc_id = report.get("id")
            deleting = doc_id in removals
            if deleting:
                doc = removals.pop(doc_id)
            elif doc_id in saves:
                doc = saves.pop(doc_id)
            elif anonymous:
                # Server generated ids are reported in the order sent
                doc = anonymous.pop(0)
            else:
                logger.warning(f"Server reported on unknown document {doc_id}")
                continue

            if "error" in report:
                on_error(
                    result,
                    doc,
                    DocumentRejected(doc_id, report["error"], report.get("reason"), deleting),
                )
                continue

            doc.saved(doc_id, report.get("rev"))
            if deleting:
                doc.deleted()

        for doc in [*saves.values(), *anonymous]:
            on_error(result, doc, ServerReportMismatch(doc.id or "(new document)"))
        for doc in removals.values():
            on_error(result, doc, ServerReportMismatch(doc.id, deleting=True))

    def inspect_documents(
        self,
        docs: list[Document | dict[str, Any]],
        revs: bool | None = None,
        **options: Any,
    ) -> Result:
        """Get multiple documents at once. [POST /{db}/_bulk_get]

        Args:
            docs: Documents, or {"id": ..., "rev": ...} specs
            revs: Include the revision history of each document
        """
        if not docs:
            raise UsageError("Need at least one document for bulk query.", what="inspect_documents")

        specs = []
        for doc in docs:
            if isinstance(doc, Document):
                spec = {"id": doc.id}
                if doc.rev is not None:
                    spec["rev"] = doc.rev
                specs.append(spec)
            else:
                specs.append(dict(doc))

        query = {} if revs is None else {"revs": bool(revs)}
        return self._call("POST", self._path("_bulk_get"), options, query=query, send={"docs": specs})

    def list_documents(self, search: dict | list[dict] | None = None, **options: Any) -> Result:
        """Get the documents, optionally limited by a view.

        [GET /{db}/_all_docs], [POST /{db}/_all_docs] and
        [POST /{db}/_all_docs/queries]
        """
        method, path, send = self._search(self._path("_all_docs"), search, _SEARCH_BOOLS)
        return self._call(method, path, options, send=send)

    def find(self, **options: Any) -> Result:
        """Search the database with a Mango query. [POST /{db}/_find]

        All options except the call options are sent as the query.
        """
        couch = self.couch
        config = couch._results_config(options, rest=True)
        send = dict(options)
        couch.to_wire(send, "bool", *_FIND_BOOLS)
        return couch.call("POST", self._path("_find"), send=send, **config)

    def __repr__(self) -> str:
        return f"Database({self._name!r})"
