"""Lifecycle reconciliation of an MKS cluster on vSphere.

``ClusterReconciler`` maps a declared ``ClusterSpec`` onto the Morpheus API:
it submits the remote calls for create, read, update and delete, then waits
for the cluster (or its workers) to settle before reporting back.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any

from mks._config import ReconcilerConfig
from mks.exceptions import (
    ConvergenceError,
    InvariantError,
    MksError,
    NotFoundError,
    TerminalFailureState,
    WorkerProvisionFailure,
)
from mks.models.cluster import Cluster, ClusterStatus, ClusterWorker, Host
from mks.models.spec import ClusterSpec, ClusterState
from mks.poller import ConvergenceRequest, Sleeper, wait_for_state
from mks.translator import (
    apply_cluster_record,
    build_add_worker_payload,
    build_create_cluster_payload,
    build_update_cluster_payload,
    filter_out_workers_by_status,
    filter_workers_by_status,
    read_back_worker_pool,
    sort_workers_by_creation,
)

if TYPE_CHECKING:
    from mks.client import MorpheusClient

logger = logging.getLogger("mks.reconciler")

# Synthetic status for a cluster reported as failed while none of its hosts
# are still provisioning. Never sent by Morpheus.
PROVISIONING_FLAKY_FAILURE = "provisioningFlakyFailure"


def _statuses(*members: ClusterStatus) -> frozenset[str]:
    return frozenset(member.value for member in members)


CREATE_PENDING = _statuses(
    ClusterStatus.PROVISIONING,
    ClusterStatus.STARTING,
    ClusterStatus.STOPPING,
    ClusterStatus.PENDING,
    ClusterStatus.SYNCING,
)
CREATE_TARGET = _statuses(
    ClusterStatus.RUNNING,
    ClusterStatus.FAILED,
    ClusterStatus.WARNING,
    ClusterStatus.DENIED,
    ClusterStatus.CANCELLED,
    ClusterStatus.SUSPENDED,
    ClusterStatus.OK,
)
DELETE_PENDING = _statuses(
    ClusterStatus.REMOVING,
    ClusterStatus.PENDING_REMOVAL,
    ClusterStatus.STOPPING,
    ClusterStatus.PENDING,
    ClusterStatus.WARNING,
    ClusterStatus.DEPROVISIONING,
)
DELETE_TARGET = _statuses(ClusterStatus.REMOVED)


def classify_cluster_status(status: str, hosts: list[Host]) -> str:
    """Compatibility shim for clusters that report ``failed`` too early.

    Morpheus before 8.0.4 could flag an MKS cluster as failed while its
    hosts were still being provisioned. A failed cluster with any host
    still provisioning is treated as provisioning; any other failed cluster
    becomes ``PROVISIONING_FLAKY_FAILURE``. Remove once legacy appliances
    are no longer supported.
    """
    if status != ClusterStatus.FAILED:
        return status
    if any(host.status == ClusterStatus.PROVISIONING for host in hosts):
        return ClusterStatus.PROVISIONING.value
    return PROVISIONING_FLAKY_FAILURE


class _Operation:
    """Deadline and cancellation shared by the poll loops of one lifecycle call."""

    def __init__(self, ceiling: float, cancel: threading.Event | None) -> None:
        self.deadline = time.monotonic() + ceiling
        self.sleeper = Sleeper(cancel)

    @property
    def cancel(self) -> threading.Event | None:
        return self.sleeper.cancel

    @property
    def remaining(self) -> float:
        return max(self.deadline - time.monotonic(), 0.0)


class ClusterReconciler:
    """Create, read, update and delete one MKS cluster.

    Example:
        ```python
        from mks import ClusterReconciler, ClusterState, MorpheusClient, ReconcilerConfig

        client = MorpheusClient()
        reconciler = ClusterReconciler(client, ReconcilerConfig.from_config(client.config))

        state = reconciler.create(ClusterState(spec=spec))
        ```

    Each call mutates and returns the given ``ClusterState``. Pass a
    ``threading.Event`` as ``cancel`` to abort a long wait.
    """

    def __init__(self, client: MorpheusClient, config: ReconcilerConfig | None = None) -> None:
        self._client = client
        self._config = config or ReconcilerConfig()

    @property
    def config(self) -> ReconcilerConfig:
        return self._config

    # Create

    def create(
        self, state: ClusterState, *, cancel: threading.Event | None = None
    ) -> ClusterState:
        """Create the cluster and wait until it settles.

        The local id is set as soon as Morpheus accepts the cluster, so a
        failed create can still be read or deleted afterwards.

        Raises:
            InvariantError: The declared configuration lacks a node pool.
            RemoteCallError: The create call failed.
            MksError: Waiting for the cluster failed (prefixed ``error creating cluster``).
            TerminalFailureState: The cluster ended up failed.
        """
        spec = self._require_spec(state)
        op = _Operation(self._config.timeouts.create, cancel)
        payload = build_create_cluster_payload(spec)

        try:
            result = self._client.clusters.create(payload)
        except MksError as e:
            logger.error("API FAILURE: create cluster %s: %s", spec.name, e)
            raise
        cluster = result.cluster
        state.set_id(cluster.id)
        logger.info(
            "Created cluster %s (id %s), waiting for it to settle", cluster.name, cluster.id
        )

        raw_status: dict[str, str] = {"status": ClusterStatus.PROVISIONING.value}

        def refresh() -> tuple[Any, str]:
            current = self._client.clusters.get(cluster.id).cluster
            raw_status["status"] = current.status
            status = current.status
            if status == ClusterStatus.FAILED:
                hosts = self._client.hosts.list(cluster_id=cluster.id).hosts
                status = classify_cluster_status(status, hosts)
            if status == PROVISIONING_FLAKY_FAILURE:
                status = self._settle_flaky_failure(current, op)
            return current, status

        request = ConvergenceRequest.from_schedule(
            self._config.cluster_create,
            pending=CREATE_PENDING,
            target=CREATE_TARGET,
            refresh=refresh,
            description=f"cluster {cluster.id}",
            max_timeout=op.remaining,
        )
        try:
            wait_for_state(request, cancel=op.cancel)
        except MksError as e:
            raise e.with_prefix("error creating cluster") from e

        self.read(state, cancel=cancel)

        # TODO: confirm against Morpheus status semantics whether a cluster
        # that settled after the grace delay should still fail the create.
        if raw_status["status"] == ClusterStatus.FAILED:
            raise TerminalFailureState(
                "error creating cluster: failed to create cluster", cluster_id=cluster.id
            )
        return state

    def _settle_flaky_failure(self, cluster: Cluster, op: _Operation) -> str:
        """Wait out the failed-status flap, then report the cluster as ok."""
        grace = self._config.failed_status_grace
        logger.warning(
            "Cluster %s reported failed with no provisioning hosts; waiting %gs before "
            "treating it as settled",
            cluster.id,
            grace,
        )
        op.sleeper.check(f"cluster {cluster.id}")
        op.sleeper(min(grace, op.remaining))
        op.sleeper.check(f"cluster {cluster.id}")
        return ClusterStatus.OK.value

    # Read

    def read(
        self, state: ClusterState, *, cancel: threading.Event | None = None
    ) -> ClusterState:
        """Refresh the local state from Morpheus.

        Looks the cluster up by id, or by name when no id is known yet. If
        the cluster no longer exists the local id is cleared so the caller
        knows to recreate it. All calls share the read timeout.

        Raises:
            InvariantError: Neither id nor name is known, the id is not numeric,
                or the cluster has no workers.
            RemoteCallError: Any lookup failure other than not found, including
                ``RequestTimeoutError`` once the read timeout has passed.
        """
        name = state.spec.name if state.spec else ""
        if not state.id and not name:
            raise InvariantError("Cluster cannot be read without name or id")
        cluster_id = state.cluster_id
        Sleeper(cancel).check("cluster read")

        with self._client.deadline(self._config.timeouts.read):
            try:
                if cluster_id is not None:
                    result = self._client.clusters.get(cluster_id)
                else:
                    result = self._client.clusters.find_by_name(name)
            except NotFoundError as e:
                logger.info("API 404: %s", e)
                logger.info("Forcing recreation of resource")
                state.clear_id()
                return state
            except MksError as e:
                logger.error("API FAILURE: read cluster: %s", e)
                raise

            cluster = result.cluster
            workers = filter_out_workers_by_status(
                self._list_workers(cluster.id), ClusterStatus.DEPROVISIONING
            )
        worker_pool = read_back_worker_pool(workers)
        return apply_cluster_record(state, cluster, worker_pool)

    # Update

    def update(
        self,
        state: ClusterState,
        previous: ClusterSpec,
        *,
        cancel: threading.Event | None = None,
    ) -> ClusterState:
        """Move the cluster from ``previous`` to ``state.spec``.

        Scales the worker pool when its count changed, then patches changed
        metadata, then reads the cluster back. Makes no remote call when
        nothing relevant changed.
        """
        desired = self._require_spec(state)
        if state.cluster_id is None:
            raise InvariantError("Cluster cannot be updated without an id")
        cluster_id = state.cluster_id
        op = _Operation(self._config.timeouts.update, cancel)

        delta = self._worker_count_delta(previous, desired)
        if delta > 0:
            try:
                self._add_workers(cluster_id, desired, delta, op)
            except MksError as e:
                raise e.with_prefix("error adding cluster worker node(s)") from e
        elif delta < 0:
            try:
                self._delete_workers(cluster_id, -delta, op)
            except MksError as e:
                raise e.with_prefix("error deleting cluster worker node(s)") from e

        payload = build_update_cluster_payload(previous, desired)
        if payload:
            try:
                self._client.clusters.update(cluster_id, payload)
            except MksError as e:
                logger.error("API FAILURE: update cluster %s: %s", cluster_id, e)
                raise

        if delta == 0 and not payload:
            return state
        return self.read(state, cancel=cancel)

    @staticmethod
    def _worker_count_delta(previous: ClusterSpec, desired: ClusterSpec) -> int:
        if previous.worker_node_pool is None or desired.worker_node_pool is None:
            raise InvariantError("failed to get worker_node_pool.count")
        old_count = previous.worker_node_pool.count
        new_count = desired.worker_node_pool.count
        if not isinstance(old_count, int) or isinstance(old_count, bool):
            raise InvariantError("failed to get old worker_node_pool.count as int")
        if not isinstance(new_count, int) or isinstance(new_count, bool):
            raise InvariantError("failed to get new worker_node_pool.count as int")
        return new_count - old_count

    def _add_workers(
        self, cluster_id: int, spec: ClusterSpec, node_count: int, op: _Operation
    ) -> None:
        workers = filter_out_workers_by_status(
            self._list_workers(cluster_id), ClusterStatus.DEPROVISIONING
        )
        if not workers:
            raise InvariantError(f"cluster {cluster_id} has no worker to use as a template")
        desired_count = len(workers) + node_count

        payload = build_add_worker_payload(spec, workers[0], node_count)
        try:
            self._client.clusters.add_worker(cluster_id, payload)
        except MksError as e:
            logger.error("API FAILURE - Error in creating cluster worker node(s): %s", e)
            raise

        def refresh() -> tuple[Any, str]:
            logger.info("Waiting for all cluster worker nodes to be provisioned...")
            current = self._list_workers(cluster_id)
            failed = filter_workers_by_status(current, ClusterStatus.FAILED)
            if failed:
                raise WorkerProvisionFailure(
                    "failed to provision all cluster worker nodes",
                    worker_ids=[worker.id for worker in failed],
                )
            provisioned = filter_workers_by_status(current, ClusterStatus.PROVISIONED)
            if len(provisioned) == desired_count:
                return current, ClusterStatus.PROVISIONED.value
            return current, ClusterStatus.PROVISIONING.value

        request = ConvergenceRequest.from_schedule(
            self._config.worker_add,
            pending=_statuses(ClusterStatus.PROVISIONING),
            target=_statuses(ClusterStatus.PROVISIONED),
            refresh=refresh,
            description=f"workers of cluster {cluster_id}",
            max_timeout=op.remaining,
        )
        self._wait(request, op)

    def _delete_workers(self, cluster_id: int, node_count: int, op: _Operation) -> None:
        workers = filter_out_workers_by_status(
            self._list_workers(cluster_id), ClusterStatus.DEPROVISIONING
        )
        # Newest workers go first
        doomed = workers[max(len(workers) - node_count, 0) :]
        for worker in doomed:
            try:
                self._client.clusters.delete_worker(cluster_id, worker.id)
            except MksError as e:
                logger.error("API FAILURE - Error in deleting cluster worker node: %s", e)
                raise

        def refresh() -> tuple[Any, str]:
            logger.info("Waiting for cluster worker nodes to be deprovisioned...")
            current = self._list_workers(cluster_id)
            if filter_workers_by_status(current, ClusterStatus.DEPROVISIONING):
                return current, ClusterStatus.DEPROVISIONING.value
            return current, ClusterStatus.DEPROVISIONED.value

        request = ConvergenceRequest.from_schedule(
            self._config.worker_delete,
            pending=_statuses(ClusterStatus.DEPROVISIONING),
            target=_statuses(ClusterStatus.DEPROVISIONED),
            refresh=refresh,
            description=f"workers of cluster {cluster_id}",
            max_timeout=op.remaining,
        )
        self._wait(request, op)

    # Delete

    def delete(
        self, state: ClusterState, *, cancel: threading.Event | None = None
    ) -> ClusterState:
        """Delete the cluster and wait until Morpheus reports it removed.

        A 404 from the delete call itself is an error; a 404 while waiting
        means the cluster is gone.
        """
        if state.cluster_id is None:
            raise InvariantError("Cluster cannot be deleted without an id")
        cluster_id = state.cluster_id
        op = _Operation(self._config.timeouts.delete, cancel)

        try:
            self._client.clusters.delete(
                cluster_id,
                remove_instances=True,
                remove_resources=True,
                force=self._config.force_delete,
            )
        except NotFoundError as e:
            logger.error("API 404: delete cluster %s: %s", cluster_id, e)
            raise
        except MksError as e:
            logger.error("API FAILURE: delete cluster %s: %s", cluster_id, e)
            raise

        def refresh() -> tuple[Any, str]:
            try:
                current = self._client.clusters.get(cluster_id).cluster
            except NotFoundError:
                return None, ClusterStatus.REMOVED.value
            return current, current.status

        request = ConvergenceRequest.from_schedule(
            self._config.cluster_delete,
            pending=DELETE_PENDING,
            target=DELETE_TARGET,
            refresh=refresh,
            description=f"cluster {cluster_id} removal",
            max_timeout=op.remaining,
        )
        try:
            self._wait(request, op)
        except MksError as e:
            raise e.with_prefix("error deleting cluster") from e

        state.clear_id()
        return state

    # Helpers

    def _list_workers(self, cluster_id: int) -> list[ClusterWorker]:
        try:
            workers = self._client.clusters.list_workers(cluster_id).workers
        except MksError as e:
            logger.error("API FAILURE - Error in listing cluster worker nodes: %s", e)
            raise
        return sort_workers_by_creation(workers)

    @staticmethod
    def _wait(request: ConvergenceRequest, op: _Operation) -> Any:
        try:
            return wait_for_state(request, cancel=op.cancel)
        except ConvergenceError as e:
            # Surface the worker failure itself rather than the poll wrapper
            if isinstance(e.__cause__, WorkerProvisionFailure):
                raise e.__cause__ from None
            raise

    @staticmethod
    def _require_spec(state: ClusterState) -> ClusterSpec:
        if state.spec is None:
            raise InvariantError("cluster state has no declared configuration")
        return state.spec
