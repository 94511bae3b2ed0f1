"""Cluster, worker and host records returned by the Morpheus API."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from mks.models.common import MksModel, Ref


class ClusterStatus(str, Enum):
    """Status values reported for clusters, workers and hosts."""

    CANCELLED = "cancelled"
    DENIED = "denied"
    DEPROVISIONED = "deprovisioned"
    DEPROVISIONING = "deprovisioning"
    FAILED = "failed"
    OK = "ok"
    PENDING = "pending"
    PENDING_REMOVAL = "pendingRemoval"
    PROVISIONING = "provisioning"
    PROVISIONED = "provisioned"
    REMOVED = "removed"
    REMOVING = "removing"
    RUNNING = "running"
    STARTING = "starting"
    STOPPING = "stopping"
    SUSPENDED = "suspended"
    SYNCING = "syncing"
    WARNING = "warning"


class Tag(MksModel):
    name: str
    value: str | None = None


class Cluster(MksModel):
    """Cluster record."""

    id: int
    name: str
    description: str | None = None
    # Morpheus calls the cloud a zone and the group a site
    zone: Ref | None = None
    site: Ref | None = None
    layout: Ref | None = None
    status: str
    service_version: str | None = None
    service_url: str | None = None
    worker_count: int | None = None


class WorkerVolume(MksModel):
    """Storage volume attached to a worker."""

    id: int | None = None
    name: str | None = None
    root_volume: bool = False
    type_id: int | None = None
    datastore_id: int | None = None
    max_storage: int = 0  # bytes


class NetworkRef(MksModel):
    id: int | str | None = None
    name: str | None = None


class WorkerInterface(MksModel):
    """Network interface attached to a worker."""

    id: int | None = None
    network: NetworkRef | None = None


class ClusterWorker(MksModel):
    """One worker node of a cluster."""

    id: int
    name: str | None = None
    date_created: datetime
    status: str
    plan: Ref | None = None
    resource_pool_id: int | None = None
    compute_server_type: Ref | None = None
    volumes: list[WorkerVolume] = Field(default_factory=list)
    interfaces: list[WorkerInterface] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)


class Host(MksModel):
    """Compute host (server) backing a cluster node."""

    id: int
    name: str | None = None
    status: str


# Per-operation results


class CreateClusterResult(MksModel):
    success: bool = True
    msg: str | None = None
    cluster: Cluster


class GetClusterResult(MksModel):
    cluster: Cluster


class ListClustersResult(MksModel):
    clusters: list[Cluster] = Field(default_factory=list)


class UpdateClusterResult(MksModel):
    success: bool = True
    msg: str | None = None
    cluster: Cluster | None = None


class DeleteResult(MksModel):
    success: bool = True
    msg: str | None = None


class ListClusterWorkersResult(MksModel):
    workers: list[ClusterWorker] = Field(default_factory=list)


class AddClusterWorkerResult(MksModel):
    success: bool = True
    msg: str | None = None


class ListHostsResult(MksModel):
    hosts: list[Host] = Field(default_factory=list, alias="servers")
