"""Hosts resource for the Morpheus API."""

from __future__ import annotations

from mks.models.cluster import ListHostsResult
from mks.resources._base import SyncResource


class Hosts(SyncResource):
    """Compute hosts (``/api/servers``)."""

    def list(self, *, cluster_id: int | None = None) -> ListHostsResult:
        """List hosts, optionally only those belonging to a cluster."""
        data = self._http.get("/api/servers", params={"clusterId": cluster_id})
        return ListHostsResult.model_validate(data)
