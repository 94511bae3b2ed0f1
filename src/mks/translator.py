"""Translation between declared cluster configuration and Morpheus payloads.

The Morpheus API expects a network interface reference in a different shape
depending on the endpoint:

- master pool on cluster create: ``{"network": {"id": "network-<id>"}}``
- worker pool on cluster create: ``{"network": {"id": <id>}}``
- add-worker call:               ``{"network": {"id": "network-<id>"}}``

Each shape has its own encoder below and they must not be unified.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from mks.exceptions import InvariantError
from mks.models.cluster import (
    Cluster,
    ClusterStatus,
    ClusterWorker,
    Tag,
    WorkerInterface,
    WorkerVolume,
)
from mks.models.spec import (
    ClusterSpec,
    ClusterState,
    MasterNodePool,
    NetworkInterfaceSpec,
    StorageVolumeSpec,
    WorkerNodePool,
)

CLUSTER_TYPE = "kubernetes-cluster"
NETWORK_ID_PREFIX = "network-"
BYTES_PER_GB = 1 << 30


def _ref(value: int | None) -> dict[str, Any] | None:
    return {"id": value} if value is not None else None


def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


# Encoding


def encode_storage_volumes(volumes: Iterable[StorageVolumeSpec]) -> list[dict[str, Any]]:
    return [
        {
            "rootVolume": volume.root,
            "name": volume.name,
            "size": volume.size,
            "storageType": volume.storage_type,
            "datastoreId": volume.datastore_id,
        }
        for volume in volumes
    ]


def encode_master_network_interfaces(
    interfaces: Iterable[NetworkInterfaceSpec],
) -> list[dict[str, Any]]:
    """Master pool interfaces reference the network as ``"network-<id>"``."""
    return [
        {"network": {"id": f"{NETWORK_ID_PREFIX}{interface.network_id}"}}
        for interface in interfaces
    ]


def encode_worker_network_interfaces(
    interfaces: Iterable[NetworkInterfaceSpec],
) -> list[dict[str, Any]]:
    """Worker pool interfaces on cluster create reference the bare network id."""
    return [{"network": {"id": interface.network_id}} for interface in interfaces]


def encode_add_worker_network_interfaces(
    interfaces: Iterable[NetworkInterfaceSpec],
) -> list[dict[str, Any]]:
    """The add-worker endpoint wants ``"network-<id>"`` again."""
    return [
        {"network": {"id": f"{NETWORK_ID_PREFIX}{interface.network_id}"}}
        for interface in interfaces
    ]


def encode_tags(tags: Mapping[str, str]) -> list[dict[str, str]]:
    return [{"name": name, "value": tags[name]} for name in sorted(tags)]


def _require_pools(spec: ClusterSpec) -> tuple[MasterNodePool, WorkerNodePool]:
    if spec.master_node_pool is None:
        raise InvariantError("master_node_pool is required to create a cluster")
    if spec.worker_node_pool is None:
        raise InvariantError("worker_node_pool is required to create a cluster")
    return spec.master_node_pool, spec.worker_node_pool


def build_create_cluster_payload(spec: ClusterSpec) -> dict[str, Any]:
    """Build the body of the create-cluster call (without the ``cluster`` wrapper)."""
    master, worker = _require_pools(spec)

    server: dict[str, Any] = {
        "config": _drop_none(
            {
                "podCidr": spec.pod_cidr,
                "serviceCidr": spec.service_cidr,
                "resourcePoolId": master.resource_pool_id,
                "nodeCount": worker.count,
                "defaultRepoAccount": spec.cluster_repo_account_id,
            }
        ),
        "nodeCount": worker.count,
        "volumes": encode_storage_volumes(master.storage_volume),
        "networkInterfaces": encode_master_network_interfaces(master.network_interface),
        "tags": encode_tags(master.tags),
        "plan": {"id": master.plan_id},
        "apiProxy": _ref(spec.api_proxy_id),
        "hostname": spec.hostname_prefix,
        "name": spec.resource_prefix,
    }

    worker_payload: dict[str, Any] = {
        "apiProxy": _ref(spec.api_proxy_id),
        "volumes": encode_storage_volumes(worker.storage_volume),
        "networkInterfaces": encode_worker_network_interfaces(worker.network_interface),
        "config": _drop_none({"resourcePoolId": worker.resource_pool_id}),
        "tags": encode_tags(worker.tags),
        "server": {"plan": {"id": worker.plan_id}},
    }

    return _drop_none(
        {
            "name": spec.name,
            "type": CLUSTER_TYPE,
            "autoRecoverPowerState": False,
            "cloud": {"id": spec.cloud_id},
            "group": {"id": spec.group_id},
            "description": spec.description,
            "layout": {"id": spec.cluster_layout_id},
            "taskSetId": spec.workflow_id,
            "server": _drop_none(server),
            "worker": _drop_none(worker_payload),
        }
    )


def build_add_worker_payload(
    spec: ClusterSpec, template: ClusterWorker, node_count: int
) -> dict[str, Any]:
    """Build the body of the add-worker call (without the ``server`` wrapper).

    Args:
        spec: Declared configuration; the worker pool supplies plan, volumes,
            interfaces and tags.
        template: An existing worker whose server type the new nodes share.
        node_count: Number of workers to add.
    """
    worker = spec.worker_node_pool
    if worker is None:
        raise InvariantError("worker_node_pool is required to add cluster workers")
    server_type_id = template.compute_server_type.id if template.compute_server_type else None

    return _drop_none(
        {
            "config": _drop_none(
                {
                    "podCidr": spec.pod_cidr,
                    "serviceCidr": spec.service_cidr,
                    "nodeCount": worker.count,
                    "resourcePoolId": worker.resource_pool_id,
                    "defaultRepoAccount": spec.cluster_repo_account_id,
                }
            ),
            "serverType": _ref(server_type_id),
            "cloud": {"id": spec.cloud_id},
            "plan": {"id": worker.plan_id},
            "volumes": encode_storage_volumes(worker.storage_volume),
            "networkInterfaces": encode_add_worker_network_interfaces(worker.network_interface),
            "nodeCount": node_count,
            "tags": encode_tags(worker.tags),
            # Not needed from Morpheus 8.0.5 onward
            "server": {"network": {}},
        }
    )


def build_update_cluster_payload(previous: ClusterSpec, desired: ClusterSpec) -> dict[str, Any]:
    """Return only the changed metadata; empty when nothing changed."""
    payload: dict[str, Any] = {}
    if desired.name != previous.name:
        payload["name"] = desired.name
    if desired.description != previous.description:
        payload["description"] = desired.description
    return payload


# Workers


def sort_workers_by_creation(workers: Iterable[ClusterWorker]) -> list[ClusterWorker]:
    """Oldest first; workers created at the same time keep their listed order."""
    return sorted(workers, key=lambda worker: worker.date_created)


def filter_workers_by_status(
    workers: Iterable[ClusterWorker], status: ClusterStatus | str
) -> list[ClusterWorker]:
    return [worker for worker in workers if worker.status == status]


def filter_out_workers_by_status(
    workers: Iterable[ClusterWorker], status: ClusterStatus | str
) -> list[ClusterWorker]:
    return [worker for worker in workers if worker.status != status]


# Read-back


def decode_tags(tags: Iterable[Tag]) -> dict[str, str]:
    return {tag.name: tag.value or "" for tag in tags}


def decode_storage_volumes(volumes: Iterable[WorkerVolume]) -> list[StorageVolumeSpec]:
    return [
        StorageVolumeSpec.model_construct(
            root=volume.root_volume,
            name=volume.name or "",
            size=volume.max_storage // BYTES_PER_GB,
            storage_type=volume.type_id,
            datastore_id=volume.datastore_id,
        )
        for volume in volumes
    ]


def _network_id(value: int | str | None) -> int | None:
    if isinstance(value, str):
        value = value.removeprefix(NETWORK_ID_PREFIX)
        return int(value) if value.isdigit() else None
    return value


def decode_network_interfaces(
    interfaces: Iterable[WorkerInterface],
) -> list[NetworkInterfaceSpec]:
    decoded = []
    for interface in interfaces:
        network_id = _network_id(interface.network.id) if interface.network else None
        decoded.append(NetworkInterfaceSpec.model_construct(network_id=network_id))
    return decoded


def read_back_worker_pool(workers: Sequence[ClusterWorker]) -> WorkerNodePool:
    """Project the live worker pool from the remaining (non-deprovisioning) workers.

    The count is the number of workers; every other field comes from the
    earliest created worker.

    Raises:
        InvariantError: If there are no workers to project from.
    """
    if not workers:
        raise InvariantError("cluster has no worker nodes to read the worker pool from")
    worker = workers[0]
    # Remote truth is not subject to input validation (e.g. count below minimum)
    return WorkerNodePool.model_construct(
        count=len(workers),
        plan_id=worker.plan.id if worker.plan else None,
        resource_pool_id=worker.resource_pool_id,
        tags=decode_tags(worker.tags),
        storage_volume=decode_storage_volumes(worker.volumes),
        network_interface=decode_network_interfaces(worker.interfaces),
    )


def apply_cluster_record(
    state: ClusterState, cluster: Cluster, worker_pool: WorkerNodePool
) -> ClusterState:
    """Copy the readable remote fields into the local state."""
    fields: dict[str, Any] = {
        "name": cluster.name,
        "description": cluster.description or "",
        "cloud_id": cluster.zone.id if cluster.zone else None,
        "group_id": cluster.site.id if cluster.site else None,
        "cluster_layout_id": cluster.layout.id if cluster.layout else None,
        "worker_node_pool": worker_pool,
    }
    if state.spec is None:
        state.spec = ClusterSpec.model_construct(**fields)
    else:
        state.spec = state.spec.model_copy(update=fields)

    state.set_id(cluster.id)
    state.kubernetes_version = cluster.service_version
    state.api_endpoint = cluster.service_url
    return state
