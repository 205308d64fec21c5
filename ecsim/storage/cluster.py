"""
Cluster of storage nodes.

The cluster owns its nodes and a single erasure coding scheme. Writes
encode a payload and place chunk ``i`` on the ``i``-th node in ascending
node id order; reads gather the same positions and decode.
"""

import logging
from dataclasses import dataclass, field

from ..erasure import ErasureScheme
from ..errors import (
    InsufficientNodesError,
    NodeNotFoundError,
    NodeUnavailableError,
    SchemeNotConfiguredError,
)
from .node import Node, NodeState

logger = logging.getLogger(__name__)


def chunk_key(key: str, index: int) -> str:
    """Per-node storage key of chunk ``index`` of logical ``key``."""
    return f"{key}_{index}"


@dataclass
class ClusterHealth:
    """Point-in-time health of the cluster.

    Attributes:
        total_nodes: Number of registered nodes.
        healthy_nodes: Nodes in HEALTHY state.
        degraded_nodes: Nodes in DEGRADED state.
        failed_nodes: Nodes in FAILED state.
        can_recover: Whether enough nodes are available to decode.
    """

    total_nodes: int
    healthy_nodes: int
    degraded_nodes: int
    failed_nodes: int
    can_recover: bool

    @property
    def failure_tolerance(self) -> int:
        """How many more nodes can fail before the cluster is at risk."""
        if not self.can_recover:
            return 0
        return max(self.healthy_nodes - 1, 0)

    @property
    def is_critical(self) -> bool:
        return not self.can_recover or self.failure_tolerance == 0


@dataclass(frozen=True)
class StoredObject:
    """Manifest entry for a stored payload.

    Attributes:
        length: Payload length before padding.
        skipped: Chunk positions not written by the latest store. Whatever
            a node holds there belongs to an older write.
    """

    length: int
    skipped: frozenset[int] = frozenset()


@dataclass
class NodeStatistics:
    node_id: int
    state: NodeState
    chunks: int
    bytes: int
    latency_ms: int


@dataclass
class ClusterStatistics:
    """Storage totals across every node."""

    total_chunks: int = 0
    total_bytes: int = 0
    node_stats: list[NodeStatistics] = field(default_factory=list)


class Cluster:
    """A set of storage nodes sharing one erasure coding scheme.

    Node ids come from a counter and are never reused, so removing a node
    leaves a gap. The manifest records each stored payload's original
    length, so decoding can drop padding exactly, and the chunk positions
    the latest write skipped, so stale chunks are never decoded.
    """

    def __init__(self, scheme: ErasureScheme | None = None):
        self._nodes: dict[int, Node] = {}
        self._next_id = 0
        self._scheme = scheme
        self._manifest: dict[str, StoredObject] = {}

    @classmethod
    def with_nodes(cls, node_count: int, scheme: ErasureScheme | None = None) -> "Cluster":
        """Create a cluster with ``node_count`` healthy nodes."""
        cluster = cls(scheme)
        for _ in range(node_count):
            cluster.add_node()
        return cluster

    # -- configuration ---------------------------------------------------

    @property
    def scheme(self) -> ErasureScheme | None:
        return self._scheme

    def set_scheme(self, scheme: ErasureScheme) -> None:
        self._scheme = scheme

    def _require_scheme(self) -> ErasureScheme:
        if self._scheme is None:
            raise SchemeNotConfiguredError()
        return self._scheme

    # -- node registry ---------------------------------------------------

    def add_node(self) -> int:
        """Add a healthy node and return its id."""
        return self.add_node_with_state(NodeState.HEALTHY)

    def add_node_with_state(self, state: NodeState) -> int:
        node_id = self._next_id
        self._nodes[node_id] = Node.with_state(node_id, state)
        self._next_id += 1
        logger.debug("Added node %d (%s)", node_id, state)
        return node_id

    def remove_node(self, node_id: int) -> None:
        if self._nodes.pop(node_id, None) is None:
            raise NodeNotFoundError(node_id)
        logger.debug("Removed node %d", node_id)

    def get_node(self, node_id: int) -> Node | None:
        return self._nodes.get(node_id)

    def _require_node(self, node_id: int) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def node_ids(self) -> list[int]:
        """Node ids in ascending order; this is the chunk placement order."""
        return sorted(self._nodes)

    def nodes(self) -> list[Node]:
        return [self._nodes[node_id] for node_id in self.node_ids()]

    def node_count(self) -> int:
        return len(self._nodes)

    def _count_state(self, state: NodeState) -> int:
        return sum(1 for n in self._nodes.values() if n.state == state)

    def healthy_node_count(self) -> int:
        return self._count_state(NodeState.HEALTHY)

    def degraded_node_count(self) -> int:
        return self._count_state(NodeState.DEGRADED)

    def failed_node_count(self) -> int:
        return self._count_state(NodeState.FAILED)

    def available_node_count(self) -> int:
        """Count nodes that can serve requests (healthy or degraded)."""
        return sum(1 for n in self._nodes.values() if n.is_available)

    def available_node_ids(self) -> list[int]:
        return [n.node_id for n in self.nodes() if n.is_available]

    def failed_node_ids(self) -> list[int]:
        return [n.node_id for n in self.nodes() if not n.is_available]

    # -- state transitions -----------------------------------------------

    def fail_node(self, node_id: int) -> None:
        self._require_node(node_id).fail()

    def recover_node(self, node_id: int) -> None:
        self._require_node(node_id).recover()

    def degrade_node(self, node_id: int) -> None:
        self._require_node(node_id).degrade()

    # -- data path -------------------------------------------------------

    def store_data(self, key: str, data: bytes) -> list[int]:
        """Encode ``data`` and spread its chunks across the nodes.

        Chunks whose target node is unavailable are skipped rather than
        failing the write.

        Args:
            key: Logical key of the payload.
            data: Payload to store.

        Returns:
            Indices of the chunks that could not be written (empty when
            every chunk landed).

        Raises:
            SchemeNotConfiguredError: If no scheme is set.
            InsufficientNodesError: If there are fewer nodes than chunks.
        """
        scheme = self._require_scheme()
        chunks = scheme.encode(data)

        if len(chunks) > self.node_count():
            raise InsufficientNodesError(len(chunks), self.node_count())

        skipped = []
        for index, (node_id, chunk) in enumerate(zip(self.node_ids(), chunks)):
            node = self._nodes[node_id]
            if not node.is_available:
                skipped.append(index)
                continue
            node.store(chunk_key(key, index), chunk)

        self._manifest[key] = StoredObject(len(data), frozenset(skipped))
        if skipped:
            logger.warning(
                "Stored %r with %d/%d chunks; chunks %s dropped on unavailable nodes",
                key, len(chunks) - len(skipped), len(chunks), skipped,
            )
        else:
            logger.debug("Stored %r as %d chunks", key, len(chunks))
        return skipped

    def _gather_chunks(
        self, key: str, scheme: ErasureScheme, stored: StoredObject | None
    ) -> list[bytes | None]:
        """Read each chunk position of ``key``.

        Positions the latest write skipped, and chunks whose size does not
        match the recorded payload, are left as None.
        """
        total = scheme.total_chunks
        expected_size = None if stored is None else scheme.chunk_size(stored.length)
        chunks: list[bytes | None] = [None] * total
        for index, node_id in enumerate(self.node_ids()[:total]):
            if stored is not None and index in stored.skipped:
                continue
            try:
                chunk = self._nodes[node_id].retrieve(chunk_key(key, index))
            except NodeUnavailableError:
                continue
            if chunk is not None and expected_size is not None and len(chunk) != expected_size:
                logger.debug(
                    "Ignoring stale chunk %d of %r on node %d (%d bytes, expected %d)",
                    index, key, node_id, len(chunk), expected_size,
                )
                continue
            chunks[index] = chunk
        return chunks

    def retrieve_data(self, key: str) -> bytes:
        """Gather the chunks of ``key`` and decode them.

        Raises:
            SchemeNotConfiguredError: If no scheme is set.
            InsufficientChunksError: If fewer than ``k`` chunks are readable.
            UnsupportedRecoveryError: If the scheme cannot rebuild the gaps.
            ChunkMismatchError: If chunks of different sizes were found for a
                key this cluster has no record of.
        """
        scheme = self._require_scheme()
        stored = self._manifest.get(key)
        chunks = self._gather_chunks(key, scheme, stored)
        return scheme.decode(chunks, None if stored is None else stored.length)

    def delete_data(self, key: str) -> int:
        """Delete every reachable chunk of ``key``.

        Chunks on failed nodes stay behind. Returns the number of chunks
        removed.
        """
        scheme = self._require_scheme()
        removed = 0
        for index, node_id in enumerate(self.node_ids()[:scheme.total_chunks]):
            node = self._nodes[node_id]
            name = chunk_key(key, index)
            if node.is_available and name in node.list_keys():
                node.delete(name)
                removed += 1
        self._manifest.pop(key, None)
        return removed

    def stored_keys(self) -> list[str]:
        """Logical keys written through this cluster."""
        return list(self._manifest)

    # -- health and statistics -------------------------------------------

    def can_recover_data(self, key: str | None = None) -> bool:
        """Coarse check: are at least ``k`` nodes available?

        The key is accepted for interface symmetry; the check does not look
        at which chunks are actually stored.
        """
        if self._scheme is None:
            return False
        return self._scheme.can_recover(self.available_node_count())

    def health_status(self) -> ClusterHealth:
        return ClusterHealth(
            total_nodes=self.node_count(),
            healthy_nodes=self.healthy_node_count(),
            degraded_nodes=self.degraded_node_count(),
            failed_nodes=self.failed_node_count(),
            can_recover=self.can_recover_data(),
        )

    def get_statistics(self) -> ClusterStatistics:
        statistics = ClusterStatistics()
        for node in self.nodes():
            stats = node.stats()
            statistics.total_chunks += stats.total_chunks
            statistics.total_bytes += stats.total_bytes
            statistics.node_stats.append(
                NodeStatistics(
                    node_id=node.node_id,
                    state=node.state,
                    chunks=node.chunk_count,
                    bytes=node.bytes_stored,
                    latency_ms=node.latency_ms,
                )
            )
        return statistics

    def __repr__(self) -> str:
        return (
            f"Cluster({self.node_count()} nodes, "
            f"{self.available_node_count()} available, scheme={self._scheme!r})"
        )
