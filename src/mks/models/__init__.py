"""Pydantic models for the MKS reconciler."""

from mks.models.cluster import (
    AddClusterWorkerResult,
    Cluster,
    ClusterStatus,
    ClusterWorker,
    CreateClusterResult,
    DeleteResult,
    GetClusterResult,
    Host,
    ListClustersResult,
    ListClusterWorkersResult,
    ListHostsResult,
    Tag,
    UpdateClusterResult,
    WorkerInterface,
    WorkerVolume,
)
from mks.models.common import MksModel, Ref
from mks.models.spec import (
    MINIMUM_WORKER_NODES,
    ClusterSpec,
    ClusterState,
    MasterNodePool,
    NetworkInterfaceSpec,
    StorageVolumeSpec,
    WorkerNodePool,
)

__all__ = [
    # Common
    "MksModel",
    "Ref",
    # Remote records
    "Cluster",
    "ClusterStatus",
    "ClusterWorker",
    "Host",
    "Tag",
    "WorkerInterface",
    "WorkerVolume",
    # Results
    "AddClusterWorkerResult",
    "CreateClusterResult",
    "DeleteResult",
    "GetClusterResult",
    "ListClustersResult",
    "ListClusterWorkersResult",
    "ListHostsResult",
    "UpdateClusterResult",
    # Desired state
    "MINIMUM_WORKER_NODES",
    "ClusterSpec",
    "ClusterState",
    "MasterNodePool",
    "NetworkInterfaceSpec",
    "StorageVolumeSpec",
    "WorkerNodePool",
]
