"""
In-memory storage nodes and the cluster that spreads encoded chunks
across them.
"""

from .node import LATENCY_MS, Node, NodeState, StorageStats
from .cluster import (
    Cluster,
    ClusterHealth,
    ClusterStatistics,
    NodeStatistics,
    StoredObject,
    chunk_key,
)

__all__ = [
    "LATENCY_MS",
    "Node",
    "NodeState",
    "StorageStats",
    "Cluster",
    "ClusterHealth",
    "ClusterStatistics",
    "NodeStatistics",
    "StoredObject",
    "chunk_key",
]
