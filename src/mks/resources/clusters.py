"""Clusters resource for the Morpheus API."""

from __future__ import annotations

from typing import Any

from mks.exceptions import NotFoundError, RemoteCallError
from mks.models.cluster import (
    AddClusterWorkerResult,
    CreateClusterResult,
    DeleteResult,
    GetClusterResult,
    ListClustersResult,
    ListClusterWorkersResult,
    UpdateClusterResult,
)
from mks.resources._base import SyncResource

CLUSTERS_PATH = "/api/clusters"


class Clusters(SyncResource):
    """Clusters resource for managing Kubernetes clusters and their workers.

    Example:
        ```python
        from mks import MorpheusClient

        client = MorpheusClient("https://morpheus.example.com", access_token="...")

        cluster = client.clusters.get(42).cluster
        print(f"{cluster.name}: {cluster.status}")

        for worker in client.clusters.list_workers(42).workers:
            print(worker.name, worker.status)
        ```
    """

    def create(self, payload: dict[str, Any]) -> CreateClusterResult:
        """Create a cluster.

        Args:
            payload: Cluster payload, wrapped under the ``cluster`` key.

        Returns:
            Creation result holding the new cluster.
        """
        data = self._http.post(CLUSTERS_PATH, json={"cluster": payload})
        return CreateClusterResult.model_validate(data)

    def get(self, cluster_id: int) -> GetClusterResult:
        """Get a cluster by ID.

        Raises:
            NotFoundError: If the cluster does not exist.
        """
        data = self._http.get(f"{CLUSTERS_PATH}/{cluster_id}")
        return GetClusterResult.model_validate(data)

    def list(
        self, *, name: str | None = None, max_results: int | None = None
    ) -> ListClustersResult:
        """List clusters, optionally filtered by name."""
        data = self._http.get(CLUSTERS_PATH, params={"name": name, "max": max_results})
        return ListClustersResult.model_validate(data)

    def find_by_name(self, name: str) -> GetClusterResult:
        """Find a cluster by its exact name.

        Raises:
            NotFoundError: If no cluster has this name.
            RemoteCallError: If the name is ambiguous.
        """
        clusters = self.list(name=name).clusters
        if not clusters:
            raise NotFoundError(
                f"Cluster not found by name {name}", resource_type="cluster", resource_id=name
            )
        if len(clusters) > 1:
            raise RemoteCallError(f"found {len(clusters)} clusters for {name}")
        return self.get(clusters[0].id)

    def update(self, cluster_id: int, payload: dict[str, Any]) -> UpdateClusterResult:
        """Update cluster attributes.

        Only the keys present in ``payload`` are changed remotely.
        """
        data = self._http.put(f"{CLUSTERS_PATH}/{cluster_id}", json={"cluster": payload})
        return UpdateClusterResult.model_validate(data or {})

    def delete(
        self,
        cluster_id: int,
        *,
        remove_instances: bool = True,
        remove_resources: bool = True,
        force: bool = False,
    ) -> DeleteResult:
        """Delete a cluster.

        Args:
            cluster_id: The cluster ID.
            remove_instances: Also remove the instances backing the cluster.
            remove_resources: Also remove associated resources.
            force: Force removal even if the remote cleanup fails.
        """
        params: dict[str, Any] = {}
        if remove_instances:
            params["removeInstances"] = "on"
        if remove_resources:
            params["removeResources"] = "on"
        if force:
            params["force"] = "true"
        data = self._http.delete(f"{CLUSTERS_PATH}/{cluster_id}", params=params or None)
        return DeleteResult.model_validate(data or {})

    def list_workers(self, cluster_id: int) -> ListClusterWorkersResult:
        """List the worker nodes of a cluster."""
        data = self._http.get(f"{CLUSTERS_PATH}/{cluster_id}/workers")
        return ListClusterWorkersResult.model_validate(data)

    def add_worker(self, cluster_id: int, payload: dict[str, Any]) -> AddClusterWorkerResult:
        """Add worker nodes to a cluster.

        Args:
            cluster_id: The cluster ID.
            payload: Server payload, wrapped under the ``server`` key.
        """
        data = self._http.post(f"{CLUSTERS_PATH}/{cluster_id}/servers", json={"server": payload})
        return AddClusterWorkerResult.model_validate(data or {})

    def delete_worker(self, cluster_id: int, worker_id: int) -> DeleteResult:
        """Remove one worker node from a cluster."""
        data = self._http.delete(f"{CLUSTERS_PATH}/{cluster_id}/servers/{worker_id}")
        return DeleteResult.model_validate(data or {})
