"""
Deferred results of CouchDB calls.

Every call returns a Result at once.  The request itself runs in an
asyncio task; the Result collects what happens while the dispatcher
works through its candidate clients:

- attempts: every transport try, in order, with status or error
- skipped: clients which were not tried, with the reason

When the dispatcher is done the Result leaves the PENDING state exactly
once, to SUCCEEDED or FAILED, and runs its completion callbacks.

Example:
    >>> result = couch.call("GET", "/_up")
    >>> await result
    >>> if result:
    ...     print(result.values())
    ... else:
    ...     print(result.error)

Invariants:
    - The terminal state is reached once and never changes afterwards
    - Callbacks run exactly once, whatever the outcome
    - A failed Result keeps the error of the last attempt
"""

from __future__ import annotations

import asyncio
import logging
import threading
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generator, Optional

from .errors import ConfigurationError, CouchError, TransportFailure

if TYPE_CHECKING:
    from .client import Client
    from .couch import Couch

logger = logging.getLogger(__name__)

ValuesConverter = Callable[["Result", Any], Any]
FinalCallback = Callable[["Result"], Any]

_UNSET = object()


class ResultState(Enum):
    """Lifecycle states of a Result."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Attempt:
    """One transport try against one client.

    Attributes:
        client: Name of the client
        status: HTTP status, None if no response was received
        error: Failure of this attempt, None on success
    """

    client: str
    status: Optional[int] = None
    error: Optional[CouchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status is not None and 200 <= self.status < 300


def _client_name(client: Client | str) -> str:
    return client if isinstance(client, str) else client.name


class Result:
    """The deferred outcome of one Couch.call()."""

    def __init__(
        self,
        couch: Couch,
        *,
        to_values: ValuesConverter | None = None,
        on_final: FinalCallback | list[FinalCallback] | None = None,
    ) -> None:
        """Initialize a pending result.

        Args:
            couch: The dispatcher which produced this result
            to_values: Converts (result, answer) into the values()
            on_final: Callback(s) run once the result is final
        """
        self._couch = weakref.ref(couch)
        self._to_values = to_values
        if on_final is None:
            self._callbacks: list[FinalCallback] = []
        elif callable(on_final):
            self._callbacks = [on_final]
        else:
            self._callbacks = list(on_final)

        self._state = ResultState.PENDING
        self._lock = threading.Lock()

        self.attempts: list[Attempt] = []
        self.skipped: list[tuple[str, str]] = []

        self._client: str | None = None
        self._status: int | None = None
        self._answer: Any = None
        self._headers: dict[str, str] = {}
        self._error: CouchError | None = None
        self._values: Any = _UNSET

        self._runner: Callable[[], Awaitable[None]] | None = None
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def couch(self) -> Couch | None:
        """The dispatcher which produced this result."""
        return self._couch()

    @property
    def state(self) -> ResultState:
        return self._state

    @property
    def ok(self) -> bool:
        return self._state is ResultState.SUCCEEDED

    @property
    def done(self) -> bool:
        """Whether the result left the PENDING state."""
        return self._state is not ResultState.PENDING

    def __bool__(self) -> bool:
        return self.ok

    @property
    def client(self) -> str | None:
        """Name of the client whose attempt produced the current answer."""
        return self._client

    @property
    def status(self) -> int | None:
        return self._status

    @property
    def answer(self) -> Any:
        """The decoded JSON body of the current answer."""
        return self._answer

    @property
    def headers(self) -> dict[str, str]:
        return self._headers

    @property
    def error(self) -> CouchError | None:
        return self._error

    @property
    def message(self) -> str:
        """Short human readable description of the outcome."""
        if self._error is not None:
            return self._error.message
        if self._state is ResultState.PENDING:
            return "pending"
        return f"{self._status} OK"

    def values(self) -> Any:
        """The answer converted into Python values.

        Uses the to_values converter given at construction, otherwise
        returns the raw answer.  Computed once the result is final; while
        pending, every call converts the current answer.
        """
        if self._values is not _UNSET:
            return self._values

        if self._to_values is None:
            values = self._answer
        else:
            values = self._to_values(self, self._answer)
        if self.done:
            self._values = values
        return values

    # ------------------------------------------------------------------
    # Recording, used by the transport and the dispatcher
    # ------------------------------------------------------------------

    def record_response(
        self,
        client: Client | str,
        status: int,
        answer: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Attempt:
        """Record an HTTP response received by a client.

        Non-2xx responses are recorded as TransportFailure attempts.
        """
        name = _client_name(client)
        attempt = Attempt(client=name, status=status)
        if not 200 <= status < 300:
            reason = answer.get("reason") if isinstance(answer, dict) else None
            error = answer.get("error") if isinstance(answer, dict) else None
            attempt.error = TransportFailure(
                f"{name} answered {status}" + (f": {error}" if error else ""),
                status=status,
                client=name,
                reason=reason,
            )

        self.attempts.append(attempt)
        self._client = name
        self._status = status
        self._answer = answer
        self._headers = dict(headers or {})
        self._error = attempt.error
        self._values = _UNSET
        return attempt

    def record_failure(self, client: Client | str, error: CouchError) -> Attempt:
        """Record an attempt which did not produce a usable response."""
        name = _client_name(client)
        attempt = Attempt(client=name, status=getattr(error, "status", None), error=error)

        self.attempts.append(attempt)
        self._client = name
        self._status = attempt.status
        self._answer = None
        self._headers = {}
        self._error = error
        self._values = _UNSET
        return attempt

    def skip(self, client: Client | str, reason: str) -> None:
        """Record that a client was not tried."""
        self.skipped.append((_client_name(client), reason))

    def succeed(self) -> None:
        """Resolve as succeeded with the current answer."""
        self._resolve(ResultState.SUCCEEDED, None)

    def fail(self, error: CouchError) -> None:
        """Resolve as failed."""
        self._resolve(ResultState.FAILED, error)

    def finish(self, what: str) -> None:
        """Resolve from the last recorded attempt.

        Args:
            what: Description of the call, used in error messages
        """
        if not self.attempts:
            if self.skipped:
                reasons = "; ".join(reason for _, reason in self.skipped)
                self.fail(ConfigurationError(f"No client can serve {what}: {reasons}"))
            else:
                self.fail(ConfigurationError(f"No clients available for {what}"))
            return

        last = self.attempts[-1]
        if last.ok:
            self.succeed()
        else:
            self.fail(last.error or TransportFailure(f"{what} failed", client=last.client))

    def _resolve(self, state: ResultState, error: CouchError | None) -> None:
        with self._lock:
            if self._state is not ResultState.PENDING:
                raise RuntimeError(f"Result already {self._state.value}")
            self._state = state
            if error is not None:
                self._error = error
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            self._run_callback(callback)

    def add_done_callback(self, callback: FinalCallback) -> None:
        """Run callback(result) once the result is final.

        Runs immediately when the result is already final.
        """
        with self._lock:
            if self._state is ResultState.PENDING:
                self._callbacks.append(callback)
                return
        self._run_callback(callback)

    def _run_callback(self, callback: FinalCallback) -> None:
        try:
            callback(self)
        except Exception as e:
            logger.error(f"Final callback of {self!r} failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(self, runner: Callable[[], Awaitable[None]], *, delay: bool = False) -> None:
        """Attach the coroutine function which produces the outcome.

        It starts at once when an event loop is running and delay is
        False; otherwise it starts on the first await.
        """
        self._runner = runner
        if delay:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, request starts when awaited")
            return
        self._start()

    def _start(self) -> None:
        if self._task is None and self._runner is not None:
            runner, self._runner = self._runner, None
            self._task = asyncio.ensure_future(runner())
            self._task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        # A task cancelled before its first step never runs the dispatcher
        if task.cancelled() and not self.done:
            self.fail(TransportFailure("Request cancelled"))

    def cancel(self) -> bool:
        """Cancel a running or delayed request."""
        if self._task is None:
            if self._runner is None or self.done:
                return False
            self._runner = None
            self.fail(TransportFailure("Request cancelled before it started"))
            return True
        return self._task.cancel()

    async def _wait(self) -> Result:
        self._start()
        if self._task is not None:
            await asyncio.wait({self._task})
            if self._task.cancelled():
                if not self.done:
                    self.fail(TransportFailure("Request cancelled"))
            else:
                self._task.result()
        return self

    def __await__(self) -> Generator[Any, None, Result]:
        return self._wait().__await__()

    def __repr__(self) -> str:
        return f"<Result {self._state.value} client={self._client} status={self._status}>"
