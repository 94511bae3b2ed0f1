"""API resource modules."""

from mks.resources.clusters import Clusters
from mks.resources.hosts import Hosts

__all__ = [
    "Clusters",
    "Hosts",
]
