"""
Cluster management endpoints.

Groups the CouchDB API calls which relate to cluster setup and
resharding.  Reach it through Couch.cluster.

Example:
    >>> result = await couch.cluster.reshard_jobs()
    >>> for job in result.values()["jobs"]:
    ...     print(job["node"].name, job["start_time"])
"""

from __future__ import annotations

import copy
import weakref
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from .errors import UsageError
from .result import Result
from .util import flat

if TYPE_CHECKING:
    from .couch import Couch


def _job_values(couch: Couch, job: dict[str, Any]) -> None:
    couch.to_native(job, "isotime", "start_time", "update_time").to_native(job, "node", "node")
    for event in job.get("history") or []:
        couch.to_native(event, "isotime", "timestamp")


def _reshard_jobs_values(result: Result, answer: Any) -> Any:
    values = copy.deepcopy(answer)
    couch = result.couch
    if couch is None or not isinstance(values, dict):
        return values
    for job in values.get("jobs") or []:
        _job_values(couch, job)
    return values


def _reshard_job_values(result: Result, answer: Any) -> Any:
    values = copy.deepcopy(answer)
    couch = result.couch
    if couch is None or not isinstance(values, dict):
        return values
    _job_values(couch, values)
    return values


def _reshard_create_values(result: Result, answer: Any) -> Any:
    values = copy.deepcopy(answer)
    couch = result.couch
    if couch is None or not isinstance(values, list):
        return values
    for job in values:
        if isinstance(job, dict):
            couch.to_native(job, "node", "node")
    return values


class Cluster:
    """Cluster and resharding endpoints of one Couch."""

    def __init__(self, couch: Couch) -> None:
        self._couch = weakref.ref(couch)

    @property
    def couch(self) -> Couch:
        couch = self._couch()
        if couch is None:
            raise RuntimeError("Couch of cluster is gone")
        return couch

    def _single_client(self, options: dict[str, Any], what: str) -> None:
        if len(flat(options.get("client"), options.get("clients"))) != 1:
            raise UsageError(f"Explicitly name one client for {what}().", what=what)

    # ------------------------------------------------------------------
    # Cluster setup
    # ------------------------------------------------------------------

    def cluster_state(self, ensure_dbs_exist: list[str] | None = None, **options: Any) -> Result:
        """Status of this node within the cluster. [GET /_cluster_setup, since 2.0]

        Needs exactly one explicit client.

        Args:
            ensure_dbs_exist: Databases which must exist for the setup to count
        """
        self._single_client(options, "cluster_state")
        couch = self.couch

        query = {}
        need = flat(ensure_dbs_exist)
        if need:
            query["ensure_dbs_exist"] = couch.json_text(need, compact=True)

        return couch.call(
            "GET",
            "/_cluster_setup",
            introduced="2.0",
            query=query,
            **couch._results_config(options),
        )

    def cluster_setup(self, **options: Any) -> Result:
        """Configure a node as part of a cluster. [POST /_cluster_setup, since 2.0]

        Needs exactly one explicit client.  All other options are posted.
        """
        self._single_client(options, "cluster_setup")
        couch = self.couch
        config = couch._results_config(options, rest=True)
        return couch.call("POST", "/_cluster_setup", introduced="2.0", send=dict(options), **config)

    # ------------------------------------------------------------------
    # Resharding
    # ------------------------------------------------------------------

    def reshard_status(self, counts: bool = False, **options: Any) -> Result:
        """Resharding state. [GET /_reshard] or, with counts, [GET /_reshard/state]; since 2.4"""
        couch = self.couch
        path = "/_reshard/state" if counts else "/_reshard"
        return couch.call("GET", path, introduced="2.4", **couch._results_config(options))

    def resharding(self, state: str, reason: str | None = None, **options: Any) -> Result:
        """Start or stop resharding. [PUT /_reshard/state, since 2.4]

        Args:
            state: "running" or "stopped"
            reason: Why, recorded by the server
        """
        if not state:
            raise UsageError("Resharding requires 'state'", what="resharding")

        couch = self.couch
        return couch.call(
            "PUT",
            "/_reshard/state",
            introduced="2.4",
            send={"state": state, "reason": reason},
            **couch._results_config(options),
        )

    def reshard_jobs(self, **options: Any) -> Result:
        """All resharding jobs. [GET /_reshard/jobs, since 2.4]"""
        couch = self.couch
        return couch.call(
            "GET",
            "/_reshard/jobs",
            introduced="2.4",
            to_values=_reshard_jobs_values,
            **couch._results_config(options),
        )

    def reshard_create(self, **options: Any) -> Result:
        """Create resharding jobs. [POST /_reshard/jobs, since 2.4]

        All options except the call options are posted; a Node value for
        "node" is sent by name.
        """
        couch = self.couch
        config = couch._results_config(options, rest=True)
        send = dict(options)
        couch.to_wire(send, "node", "node")
        return couch.call(
            "POST",
            "/_reshard/jobs",
            introduced="2.4",
            send=send,
            to_values=_reshard_create_values,
            **config,
        )

    def _job_path(self, job_id: str, *parts: str) -> str:
        return "/".join(["/_reshard/jobs", quote(job_id, safe=""), *parts])

    def reshard_job(self, job_id: str, **options: Any) -> Result:
        """One resharding job. [GET /_reshard/jobs/{jobid}, since 2.4]"""
        couch = self.couch
        return couch.call(
            "GET",
            self._job_path(job_id),
            introduced="2.4",
            to_values=_reshard_job_values,
            **couch._results_config(options),
        )

    def reshard_job_remove(self, job_id: str, **options: Any) -> Result:
        """Stop and remove a resharding job. [DELETE /_reshard/jobs/{jobid}, since 2.4]"""
        couch = self.couch
        return couch.call(
            "DELETE",
            self._job_path(job_id),
            introduced="2.4",
            **couch._results_config(options),
        )

    def reshard_job_state(self, job_id: str, **options: Any) -> Result:
        """State of a resharding job. [GET /_reshard/jobs/{jobid}/state, since 2.4]"""
        couch = self.couch
        return couch.call(
            "GET",
            self._job_path(job_id, "state"),
            introduced="2.4",
            **couch._results_config(options),
        )

    def reshard_job_change(
        self,
        job_id: str,
        state: str,
        reason: str | None = None,
        **options: Any,
    ) -> Result:
        """Change the state of a resharding job. [PUT /_reshard/jobs/{jobid}/state, since 2.4]

        Args:
            state: "new", "running", "stopped", "completed" or "failed"
            reason: Why, recorded by the server
        """
        if not state:
            raise UsageError("Changing a resharding job requires 'state'", what="reshard_job_change")

        couch = self.couch
        return couch.call(
            "PUT",
            self._job_path(job_id, "state"),
            introduced="2.4",
            send={"state": state, "reason": reason},
            **couch._results_config(options),
        )
