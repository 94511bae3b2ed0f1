"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any

import pytest
import respx

from mks._config import MksConfig, PollSchedule, ReconcilerConfig
from mks.client import MorpheusClient
from mks.models.spec import (
    ClusterSpec,
    MasterNodePool,
    NetworkInterfaceSpec,
    StorageVolumeSpec,
    WorkerNodePool,
)

GIB = 1 << 30

# Polls back to back, but still gives up after a few seconds
FAST_SCHEDULE = PollSchedule(timeout=5.0, min_timeout=0.0, delay=0.0, poll_interval=0.0)


@pytest.fixture
def access_token() -> str:
    """Test access token."""
    return "test-access-token"


@pytest.fixture
def base_url() -> str:
    """Test Morpheus appliance URL."""
    return "https://morpheus.test.local"


@pytest.fixture
def mock_api(base_url: str) -> Generator[respx.MockRouter, None, None]:
    """Mock API router."""
    with respx.mock(base_url=base_url, assert_all_called=False) as router:
        yield router


@pytest.fixture
def client(access_token: str, base_url: str) -> Generator[MorpheusClient, None, None]:
    """Create a test MorpheusClient that ignores the environment and config file."""
    c = MorpheusClient(base_url, access_token=access_token, max_retries=0, config=MksConfig())
    yield c
    c.close()


@pytest.fixture
def reconciler_config() -> ReconcilerConfig:
    """Reconciler settings with no waiting between polls."""
    return ReconcilerConfig(
        cluster_create=FAST_SCHEDULE,
        worker_add=FAST_SCHEDULE,
        worker_delete=FAST_SCHEDULE,
        cluster_delete=FAST_SCHEDULE,
        failed_status_grace=0.0,
    )


@pytest.fixture
def cluster_spec() -> ClusterSpec:
    """Declared configuration of a three worker cluster."""
    return ClusterSpec(
        name="mks-prod",
        description="Production cluster",
        resource_prefix="mks-prod",
        hostname_prefix="mks-prod",
        cloud_id=1,
        group_id=2,
        cluster_layout_id=3,
        workflow_id=8,
        master_node_pool=MasterNodePool(
            plan_id=10,
            resource_pool_id=7,
            storage_volume=[
                StorageVolumeSpec(root=True, name="root", size=20, storage_type=1, datastore_id=5)
            ],
            network_interface=[NetworkInterfaceSpec(network_id=20)],
            tags={"role": "master"},
        ),
        worker_node_pool=WorkerNodePool(
            count=3,
            plan_id=11,
            resource_pool_id=7,
            storage_volume=[
                StorageVolumeSpec(root=True, name="root", size=10, storage_type=1, datastore_id=5)
            ],
            network_interface=[NetworkInterfaceSpec(network_id=20)],
            tags={"role": "worker", "env": "prod"},
        ),
    )


@pytest.fixture
def make_cluster() -> Callable[..., dict[str, Any]]:
    """Build a cluster record as returned by the Morpheus API."""

    def _make(status: str = "ok", **overrides: Any) -> dict[str, Any]:
        cluster = {
            "id": 42,
            "name": "mks-prod",
            "description": "Production cluster",
            "zone": {"id": 1, "name": "vcenter"},
            "site": {"id": 2, "name": "platform"},
            "layout": {"id": 3, "name": "MKS 1.29"},
            "status": status,
            "serviceVersion": "1.29.4",
            "serviceUrl": "https://10.0.0.10:6443",
            "workerCount": 3,
        }
        cluster.update(overrides)
        return cluster

    return _make


@pytest.fixture
def make_worker() -> Callable[..., dict[str, Any]]:
    """Build a cluster worker record as returned by the Morpheus API."""

    def _make(
        worker_id: int,
        status: str = "provisioned",
        created: str = "2024-01-01T00:00:00Z",
        **overrides: Any,
    ) -> dict[str, Any]:
        worker = {
            "id": worker_id,
            "name": f"mks-prod-worker-{worker_id}",
            "dateCreated": created,
            "status": status,
            "plan": {"id": 11, "name": "4 CPU, 16GB Memory"},
            "resourcePoolId": 7,
            "computeServerType": {"id": 99, "name": "MKS Kubernetes Worker"},
            "volumes": [
                {
                    "id": 1,
                    "name": "root",
                    "rootVolume": True,
                    "typeId": 1,
                    "datastoreId": 5,
                    "maxStorage": 10 * GIB,
                }
            ],
            "interfaces": [{"id": 1, "network": {"id": 20, "name": "k8s-net"}}],
            "tags": [{"name": "role", "value": "worker"}, {"name": "env", "value": "prod"}],
        }
        worker.update(overrides)
        return worker

    return _make
