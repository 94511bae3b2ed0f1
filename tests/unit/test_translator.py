"""Tests for payload encoding and worker pool read-back."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from mks.exceptions import InvariantError
from mks.models.cluster import Cluster, ClusterStatus, ClusterWorker
from mks.models.spec import ClusterSpec, ClusterState, NetworkInterfaceSpec
from mks.translator import (
    apply_cluster_record,
    build_add_worker_payload,
    build_create_cluster_payload,
    build_update_cluster_payload,
    encode_add_worker_network_interfaces,
    encode_master_network_interfaces,
    encode_tags,
    encode_worker_network_interfaces,
    filter_out_workers_by_status,
    filter_workers_by_status,
    read_back_worker_pool,
    sort_workers_by_creation,
)


def _workers(make_worker: Callable[..., dict[str, Any]], *specs: tuple) -> list[ClusterWorker]:
    return [
        ClusterWorker.model_validate(make_worker(worker_id, status, created))
        for worker_id, status, created in specs
    ]


class TestNetworkInterfaceEncoding:
    """The three network reference shapes stay distinct."""

    def test_master_interfaces_use_prefixed_id(self) -> None:
        encoded = encode_master_network_interfaces([NetworkInterfaceSpec(network_id=5)])
        assert encoded == [{"network": {"id": "network-5"}}]

    def test_worker_interfaces_use_bare_id(self) -> None:
        encoded = encode_worker_network_interfaces([NetworkInterfaceSpec(network_id=5)])
        assert encoded == [{"network": {"id": 5}}]

    def test_add_worker_interfaces_use_prefixed_id(self) -> None:
        encoded = encode_add_worker_network_interfaces([NetworkInterfaceSpec(network_id=5)])
        assert encoded == [{"network": {"id": "network-5"}}]


class TestEncodeTags:
    def test_tags_sorted_by_key(self) -> None:
        assert encode_tags({"zone": "a", "env": "prod", "app": "web"}) == [
            {"name": "app", "value": "web"},
            {"name": "env", "value": "prod"},
            {"name": "zone", "value": "a"},
        ]

    def test_empty_tags(self) -> None:
        assert encode_tags({}) == []


class TestCreatePayload:
    def test_create_payload_shape(self, cluster_spec: ClusterSpec) -> None:
        payload = build_create_cluster_payload(cluster_spec)

        assert payload["name"] == "mks-prod"
        assert payload["type"] == "kubernetes-cluster"
        assert payload["autoRecoverPowerState"] is False
        assert payload["cloud"] == {"id": 1}
        assert payload["group"] == {"id": 2}
        assert payload["layout"] == {"id": 3}
        assert payload["taskSetId"] == 8

        server = payload["server"]
        assert server["config"] == {
            "podCidr": "172.20.0.0/16",
            "serviceCidr": "172.30.0.0/16",
            "resourcePoolId": 7,
            "nodeCount": 3,
        }
        assert server["nodeCount"] == 3
        assert server["plan"] == {"id": 10}
        assert server["networkInterfaces"] == [{"network": {"id": "network-20"}}]
        assert server["volumes"] == [
            {"rootVolume": True, "name": "root", "size": 20, "storageType": 1, "datastoreId": 5}
        ]
        assert server["tags"] == [{"name": "role", "value": "master"}]
        assert server["hostname"] == "mks-prod"
        assert server["name"] == "mks-prod"

        worker = payload["worker"]
        assert worker["networkInterfaces"] == [{"network": {"id": 20}}]
        assert worker["server"] == {"plan": {"id": 11}}
        assert worker["config"] == {"resourcePoolId": 7}
        assert worker["tags"] == [
            {"name": "env", "value": "prod"},
            {"name": "role", "value": "worker"},
        ]

    def test_unset_optional_references_are_omitted(self, cluster_spec: ClusterSpec) -> None:
        payload = build_create_cluster_payload(cluster_spec)

        assert "apiProxy" not in payload["server"]
        assert "apiProxy" not in payload["worker"]
        assert "defaultRepoAccount" not in payload["server"]["config"]

    def test_optional_references_are_sent_when_set(self, cluster_spec: ClusterSpec) -> None:
        spec = cluster_spec.model_copy(update={"api_proxy_id": 4, "cluster_repo_account_id": 6})
        payload = build_create_cluster_payload(spec)

        assert payload["server"]["apiProxy"] == {"id": 4}
        assert payload["worker"]["apiProxy"] == {"id": 4}
        assert payload["server"]["config"]["defaultRepoAccount"] == 6

    def test_missing_pool_raises(self, cluster_spec: ClusterSpec) -> None:
        spec = cluster_spec.model_copy(update={"worker_node_pool": None})
        with pytest.raises(InvariantError, match="worker_node_pool"):
            build_create_cluster_payload(spec)


class TestAddWorkerPayload:
    def test_add_worker_payload(
        self, cluster_spec: ClusterSpec, make_worker: Callable[..., dict[str, Any]]
    ) -> None:
        template = ClusterWorker.model_validate(make_worker(101))

        payload = build_add_worker_payload(cluster_spec, template, 2)

        assert payload["nodeCount"] == 2
        assert payload["serverType"] == {"id": 99}
        assert payload["cloud"] == {"id": 1}
        assert payload["plan"] == {"id": 11}
        assert payload["networkInterfaces"] == [{"network": {"id": "network-20"}}]
        assert payload["server"] == {"network": {}}
        assert payload["config"]["resourcePoolId"] == 7


class TestUpdatePayload:
    def test_no_changes_is_empty(self, cluster_spec: ClusterSpec) -> None:
        assert build_update_cluster_payload(cluster_spec, cluster_spec) == {}

    def test_only_changed_fields(self, cluster_spec: ClusterSpec) -> None:
        desired = cluster_spec.model_copy(update={"description": "Renamed"})
        assert build_update_cluster_payload(cluster_spec, desired) == {"description": "Renamed"}


class TestWorkerHelpers:
    def test_sort_by_creation_is_stable(self, make_worker: Callable[..., dict[str, Any]]) -> None:
        workers = _workers(
            make_worker,
            (3, "provisioned", "2024-01-03T00:00:00Z"),
            (1, "provisioned", "2024-01-01T00:00:00Z"),
            (2, "provisioned", "2024-01-01T00:00:00Z"),
        )

        assert [w.id for w in sort_workers_by_creation(workers)] == [1, 2, 3]

    def test_filters_partition_the_input(
        self, make_worker: Callable[..., dict[str, Any]]
    ) -> None:
        workers = _workers(
            make_worker,
            (1, "provisioned", "2024-01-01T00:00:00Z"),
            (2, "deprovisioning", "2024-01-02T00:00:00Z"),
            (3, "provisioned", "2024-01-03T00:00:00Z"),
        )

        kept = filter_workers_by_status(workers, ClusterStatus.DEPROVISIONING)
        dropped = filter_out_workers_by_status(workers, ClusterStatus.DEPROVISIONING)

        assert [w.id for w in kept] == [2]
        assert [w.id for w in dropped] == [1, 3]
        assert len(kept) + len(dropped) == len(workers)


class TestReadBack:
    def test_worker_pool_from_earliest_worker(
        self, make_worker: Callable[..., dict[str, Any]]
    ) -> None:
        workers = [
            ClusterWorker.model_validate(make_worker(1, plan={"id": 11})),
            ClusterWorker.model_validate(make_worker(2, plan={"id": 12})),
        ]

        pool = read_back_worker_pool(workers)

        assert pool.count == 2
        assert pool.plan_id == 11
        assert pool.resource_pool_id == 7
        assert pool.tags == {"role": "worker", "env": "prod"}
        assert pool.storage_volume[0].size == 10
        assert pool.storage_volume[0].root is True
        assert pool.network_interface[0].network_id == 20

    def test_storage_size_rounds_down_to_gb(
        self, make_worker: Callable[..., dict[str, Any]]
    ) -> None:
        volumes = [{"name": "data", "rootVolume": False, "maxStorage": (5 << 30) + 12345}]
        worker = ClusterWorker.model_validate(make_worker(1, volumes=volumes))

        pool = read_back_worker_pool([worker])

        assert pool.storage_volume[0].size == 5

    def test_prefixed_network_id_is_decoded(
        self, make_worker: Callable[..., dict[str, Any]]
    ) -> None:
        interfaces = [{"id": 1, "network": {"id": "network-31"}}]
        worker = ClusterWorker.model_validate(make_worker(1, interfaces=interfaces))

        pool = read_back_worker_pool([worker])

        assert pool.network_interface[0].network_id == 31

    def test_empty_workers_raises(self) -> None:
        with pytest.raises(InvariantError):
            read_back_worker_pool([])

    def test_apply_cluster_record(
        self,
        cluster_spec: ClusterSpec,
        make_cluster: Callable[..., dict[str, Any]],
        make_worker: Callable[..., dict[str, Any]],
    ) -> None:
        cluster = Cluster.model_validate(make_cluster(description="Changed remotely"))
        pool = read_back_worker_pool([ClusterWorker.model_validate(make_worker(1))])
        state = ClusterState(spec=cluster_spec)

        apply_cluster_record(state, cluster, pool)

        assert state.id == "42"
        assert state.kubernetes_version == "1.29.4"
        assert state.api_endpoint == "https://10.0.0.10:6443"
        assert state.spec is not None
        assert state.spec.description == "Changed remotely"
        assert state.spec.worker_node_pool is not None
        assert state.spec.worker_node_pool.count == 1
        # Fields Morpheus does not report are kept as declared
        assert state.spec.master_node_pool == cluster_spec.master_node_pool

    def test_apply_cluster_record_without_spec(
        self,
        make_cluster: Callable[..., dict[str, Any]],
        make_worker: Callable[..., dict[str, Any]],
    ) -> None:
        cluster = Cluster.model_validate(make_cluster())
        pool = read_back_worker_pool([ClusterWorker.model_validate(make_worker(1))])

        state = apply_cluster_record(ClusterState(), cluster, pool)

        assert state.spec is not None
        assert state.spec.name == "mks-prod"
        assert state.spec.cloud_id == 1
        assert state.spec.group_id == 2
        assert state.spec.cluster_layout_id == 3


def test_worker_dates_are_parsed(make_worker: Callable[..., dict[str, Any]]) -> None:
    worker = ClusterWorker.model_validate(make_worker(1, created="2024-02-03T04:05:06Z"))
    assert worker.date_created == datetime(2024, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
