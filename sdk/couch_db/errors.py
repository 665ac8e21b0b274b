"""
Error types for the CouchDB client.

This module defines all exception and warning types raised by the client:
- CouchError: Base exception
- ConfigurationError: Missing construction parameter, no usable client
- UsageError: Caller broke a documented precondition
- TransportFailure: A client could not complete a request
- DocumentRejected: The server refused one document of a bulk update
- ServerReportMismatch: A bulk response did not mention a document
- CompatibilityWarning: Non-fatal API version mismatch

Invariants:
    - All errors inherit from CouchError
    - ConfigurationError and UsageError are raised before any network activity
    - TransportFailure is stored on a Result, never raised implicitly
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CouchError(Exception):
    """Base exception for all CouchDB client errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "COUCH_ERROR"
        self.details = details or {}


class ConfigurationError(CouchError):
    """The client is not configured to do what was asked.

    Raised when:
    - A required construction parameter is missing
    - No client is available to serve a call
    """

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details={"parameter": parameter},
        )
        self.parameter = parameter


class UsageError(CouchError):
    """The caller violated a documented precondition.

    Raised when:
    - An endpoint is used which was removed in the declared api version
    - A required argument is missing
    - A version, database name or client name is malformed or unknown
    """

    def __init__(
        self,
        message: str,
        what: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="USAGE_ERROR",
            details={"what": what},
        )
        self.what = what


class TransportFailure(CouchError):
    """A client could not complete the request.

    Either the node was unreachable, or it answered with a non-success
    HTTP status.

    Attributes:
        status: HTTP status, None when no response was received
        client: Name of the client which made the attempt
        reason: Reason reported by the server, when available
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        client: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="TRANSPORT_FAILURE",
            details={"status": status, "client": client, "reason": reason},
        )
        self.status = status
        self.client = client
        self.reason = reason


class DocumentRejected(CouchError):
    """The server refused to save or delete a document in a bulk update."""

    def __init__(
        self,
        doc_id: str,
        error: str,
        reason: Optional[str] = None,
        deleting: bool = False,
    ) -> None:
        action = "deleting" if deleting else "saving"
        super().__init__(
            f"Server refused {action} {doc_id}: {error} ({reason})",
            code="DOCUMENT_REJECTED",
            details={
                "id": doc_id,
                "error": error,
                "reason": reason,
                "deleting": deleting,
            },
        )
        self.doc_id = doc_id
        self.error = error
        self.reason = reason
        self.deleting = deleting


class ServerReportMismatch(CouchError):
    """A bulk response omitted a document which was sent."""

    def __init__(
        self,
        doc_id: str,
        deleting: bool = False,
    ) -> None:
        action = "deleting" if deleting else "saving"
        super().__init__(
            f"The server did not report back on {action} {doc_id}.",
            code="MISSING_REPORT",
            details={"id": doc_id, "deleting": deleting},
        )
        self.doc_id = doc_id
        self.deleting = deleting


class CompatibilityWarning(UserWarning):
    """An endpoint is used outside its comfortable API version range.

    Emitted through the warnings module; never blocks a call.

    Attributes:
        what: The endpoint, formatted as METHOD(path)
        release: The version threshold which triggered the warning
    """

    def __init__(self, message: str, what: str, release: Any) -> None:
        super().__init__(message)
        self.what = what
        self.release = release
