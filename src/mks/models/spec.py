"""Desired-state models for an MKS cluster on vSphere."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mks.exceptions import InvariantError

MINIMUM_WORKER_NODES = 3

DEFAULT_POD_CIDR = "172.20.0.0/16"
DEFAULT_SERVICE_CIDR = "172.30.0.0/16"


class SpecModel(BaseModel):
    """Base model for declared configuration blocks."""

    model_config = ConfigDict(extra="forbid")


class StorageVolumeSpec(SpecModel):
    """A storage volume to create on each node of a pool."""

    uuid: str | None = None  # computed
    root: bool
    name: str
    size: int = Field(..., description="Size in GB")
    storage_type: int
    datastore_id: int


class NetworkInterfaceSpec(SpecModel):
    network_id: int


class MasterNodePool(SpecModel):
    """Master node pool configuration (always a single node)."""

    plan_id: int
    resource_pool_id: int | None = None
    storage_volume: list[StorageVolumeSpec] = Field(default_factory=list)
    network_interface: list[NetworkInterfaceSpec] = Field(default_factory=list)
    tags: dict[str, str] = Field(default_factory=dict)


class WorkerNodePool(SpecModel):
    """Worker node pool configuration."""

    count: int = MINIMUM_WORKER_NODES
    plan_id: int
    resource_pool_id: int | None = None
    tags: dict[str, str] = Field(default_factory=dict)
    storage_volume: list[StorageVolumeSpec] = Field(default_factory=list)
    network_interface: list[NetworkInterfaceSpec] = Field(default_factory=list)

    @field_validator("count")
    @classmethod
    def _validate_count(cls, count: int) -> int:
        if count < MINIMUM_WORKER_NODES:
            raise ValueError(
                f"count must be a minimum of {MINIMUM_WORKER_NODES}, count is {count}"
            )
        return count


class ClusterSpec(SpecModel):
    """Declared configuration of an MKS cluster.

    Example:
        ```python
        spec = ClusterSpec(
            name="mks-prod",
            cloud_id=1,
            group_id=2,
            cluster_layout_id=3,
            master_node_pool=MasterNodePool(plan_id=10),
            worker_node_pool=WorkerNodePool(plan_id=11, count=3),
        )
        ```
    """

    name: str = ""
    description: str = ""
    resource_prefix: str = ""
    hostname_prefix: str = ""
    cloud_id: int
    group_id: int
    cluster_layout_id: int
    api_proxy_id: int | None = None
    pod_cidr: str = DEFAULT_POD_CIDR
    service_cidr: str = DEFAULT_SERVICE_CIDR
    cluster_repo_account_id: int | None = None
    workflow_id: int | None = None
    master_node_pool: MasterNodePool | None = None
    worker_node_pool: WorkerNodePool | None = None

    @field_validator("pod_cidr", "service_cidr")
    @classmethod
    def _validate_cidr(cls, value: str) -> str:
        ipaddress.ip_network(value)
        return value


@dataclass
class ClusterState:
    """Local state of one managed cluster.

    ``id`` is None until the cluster exists remotely, and is cleared again
    once the cluster is known to be gone.
    """

    spec: ClusterSpec | None = None
    id: str | None = None
    api_endpoint: str | None = None
    kubernetes_version: str | None = None

    @property
    def cluster_id(self) -> int | None:
        if not self.id:
            return None
        try:
            return int(self.id)
        except ValueError:
            raise InvariantError(f"invalid cluster id {self.id!r}, expected an integer") from None

    def set_id(self, cluster_id: int | str) -> None:
        self.id = str(cluster_id)

    def clear_id(self) -> None:
        self.id = None
