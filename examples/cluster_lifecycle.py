"""Example: Cluster Lifecycle

Shows how to create, scale and delete an MKS cluster with ClusterReconciler.
"""

import logging

from mks import (
    ClusterReconciler,
    ClusterSpec,
    ClusterState,
    MasterNodePool,
    MorpheusClient,
    NetworkInterfaceSpec,
    ReconcilerConfig,
    StorageVolumeSpec,
    WorkerNodePool,
)


def main():
    logging.basicConfig(level=logging.INFO)

    # Reads MORPHEUS_API_URL and MORPHEUS_API_TOKEN (or ~/.mks/config.toml)
    client = MorpheusClient()

    # Option 2: Explicit credentials
    # client = MorpheusClient(
    #     "https://morpheus.example.com",
    #     username="admin",
    #     password="secret",
    # )

    reconciler = ClusterReconciler(client, ReconcilerConfig.from_config(client.config))

    volume = StorageVolumeSpec(root=True, name="root", size=40, storage_type=1, datastore_id=5)
    network = NetworkInterfaceSpec(network_id=20)

    spec = ClusterSpec(
        name="mks-demo",
        description="Demo cluster",
        resource_prefix="mks-demo",
        hostname_prefix="mks-demo",
        cloud_id=1,
        group_id=2,
        cluster_layout_id=3,
        master_node_pool=MasterNodePool(
            plan_id=10, storage_volume=[volume], network_interface=[network]
        ),
        worker_node_pool=WorkerNodePool(
            count=3, plan_id=11, storage_volume=[volume], network_interface=[network]
        ),
    )

    state = reconciler.create(ClusterState(spec=spec))
    print(f"Created cluster {state.id}: {state.api_endpoint} ({state.kubernetes_version})")

    # Scale the worker pool to 5 nodes
    previous = state.spec
    scaled_pool = previous.worker_node_pool.model_copy(update={"count": 5})
    state.spec = previous.model_copy(update={"worker_node_pool": scaled_pool})
    state = reconciler.update(state, previous)
    print(f"Workers: {state.spec.worker_node_pool.count}")

    reconciler.delete(state)
    print("Deleted cluster")

    client.close()


if __name__ == "__main__":
    main()
